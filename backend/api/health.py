"""
Grant Portal Health Check Endpoints
Liveness and readiness checks for the workflow service.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text

from backend.core.config import settings
from backend.database import AsyncSessionLocal

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status values for components and overall system."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Health status for an individual dependency."""

    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    timestamp: str
    components: dict[str, ComponentHealth]
    version: str


class LivenessResponse(BaseModel):
    status: str


async def check_record_store() -> ComponentHealth:
    """Run ``SELECT 1`` against the record store and time it."""
    start_time = time.perf_counter()
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
    except Exception as e:
        logger.error(f"Record store health check failed: {e}")
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            message="Record store unavailable",
        )


async def check_notification_queue() -> ComponentHealth:
    """
    Ping the broker notifications are queued on.

    Only checked when notifications are delivered asynchronously.
    """
    start_time = time.perf_counter()
    try:
        redis_client = aioredis.from_url(
            settings.celery_broker_url,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        try:
            await redis_client.ping()
        finally:
            await redis_client.aclose()
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
    except Exception as e:
        logger.warning(f"Notification queue health check failed: {e}")
        # Transitions still commit without the queue; only emails lag
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            message="Notification queue unavailable",
        )


def determine_overall_status(components: dict[str, ComponentHealth]) -> HealthStatus:
    """The record store is critical; anything else only degrades."""
    store = components.get("record_store")
    if store and store.status == HealthStatus.UNHEALTHY:
        return HealthStatus.UNHEALTHY
    if any(component.status != HealthStatus.HEALTHY for component in components.values()):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Returns OK whenever the process is serving requests."""
    return LivenessResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"description": "Record store unavailable"}},
)
async def readiness_check(response: Response) -> HealthResponse:
    """Dependency readiness with per-component latency."""
    checks = {"record_store": check_record_store()}
    if settings.notifications_async:
        checks["notification_queue"] = check_notification_queue()

    results = await asyncio.gather(*checks.values())
    components = dict(zip(checks.keys(), results))

    overall_status = determine_overall_status(components)
    if overall_status == HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=components,
        version=settings.app_version,
    )
