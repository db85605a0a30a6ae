"""
Sentry Error Tracking Configuration
Sentry SDK initialization for the grant portal API and workers.
"""

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from backend.core.config import settings

logger = logging.getLogger(__name__)

_SENSITIVE_HEADERS = ("authorization", "cookie")


def before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """Drop health-check noise and redact credentials before sending."""
    request = event.get("request") or {}
    if request.get("url", "").endswith("/health"):
        return None

    headers = request.get("headers")
    if headers:
        for header in _SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = "[REDACTED]"

    return event


def init_sentry() -> bool:
    """
    Initialize Sentry SDK.

    Returns:
        bool: True if Sentry was initialized, False when no DSN is configured.
    """
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment or settings.environment,
            release=f"foundation-grant-portal@{settings.app_version}",
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                CeleryIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
                SqlalchemyIntegration(),
            ],
            before_send=before_send,
            send_default_pii=False,
            attach_stacktrace=True,
        )
        sentry_sdk.set_tag("app_name", settings.app_name)
        logger.info(
            "Sentry initialized (env=%s, traces=%s)",
            settings.sentry_environment or settings.environment,
            settings.sentry_traces_sample_rate,
        )
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def capture_exception(
    error: Exception,
    actor_id: str | None = None,
    extra: dict[str, Any] | None = None,
) -> str | None:
    """
    Capture an exception and send to Sentry.

    Args:
        error: The exception to capture
        actor_id: Optional identity provider id of the caller
        extra: Optional extra data to attach

    Returns:
        Event ID if captured, None otherwise
    """
    with sentry_sdk.new_scope() as scope:
        if actor_id:
            scope.set_user({"id": actor_id})

        if extra:
            for key, value in extra.items():
                scope.set_extra(key, value)

        return sentry_sdk.capture_exception(error)
