"""
Foundation Grant Portal FastAPI Application
Main entry point for the grant-record workflow API.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.api import admin, applications, health, lois, reviews
from backend.core.config import settings
from backend.core.logging_config import configure_logging
from backend.core.sentry import capture_exception, init_sentry
from backend.database import close_db, init_db

logger = logging.getLogger(__name__)


INSECURE_SECRET_KEYS = {
    "dev-secret-key-change-in-production",
    "secret",
    "changeme",
}


def validate_security_settings() -> None:
    """
    Validate critical security settings at startup.
    Raises RuntimeError if insecure configuration detected in production.
    """
    is_production = settings.environment.lower() in ("production", "prod")
    errors = []

    if settings.secret_key in INSECURE_SECRET_KEYS or len(settings.secret_key) < 32:
        msg = "SECRET_KEY is insecure or too short (minimum 32 characters required)"
        if is_production:
            errors.append(msg)
        else:
            logger.warning(f"SECURITY WARNING: {msg}")

    if is_production and settings.debug:
        errors.append("DEBUG mode must be disabled in production (set DEBUG=false)")

    if is_production and settings.admin_override_email_list:
        logger.warning(
            f"SECURITY WARNING: admin override active for {len(settings.admin_override_email_list)} address(es)"
        )

    if errors:
        for error in errors:
            logger.error(f"SECURITY ERROR: {error}")
        raise RuntimeError(f"Cannot start in production with insecure configuration: {'; '.join(errors)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handle application startup and shutdown events.

    Startup:
    - Configure logging and validate security settings
    - Initialize Sentry
    - Create tables (debug only; migrations otherwise)

    Shutdown:
    - Close database connections
    """
    configure_logging()
    logger.info("Starting Foundation Grant Portal API...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Version: {settings.app_version}")

    validate_security_settings()

    if init_sentry():
        logger.info("Sentry error tracking enabled")
    else:
        logger.info("Sentry error tracking disabled (no DSN configured)")

    if settings.debug:
        try:
            await init_db()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")

    yield

    logger.info("Shutting down Foundation Grant Portal API...")
    await close_db()
    logger.info("Database connections closed")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Foundation Grant Portal API",
    description="""
    Grant-record workflow API for a community foundation.

    ## Features

    - **Letters of Interest**: draft, submit, review and decide
    - **Applications**: submit, review, request information, decide
    - **Reviewer input**: votes and budget assessments
    - **Decision release**: notify applicants once decisions are ready

    ## Authentication

    Every endpoint except the health checks requires a bearer token issued by
    the identity provider.
    """,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# =============================================================================
# CORS Middleware
# =============================================================================

allowed_origins = [settings.frontend_url]
if settings.debug:
    allowed_origins.extend(["http://localhost:3000", "http://127.0.0.1:3000"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "detail": exc.detail,
            "status_code": exc.status_code,
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    event_id = capture_exception(
        exc,
        extra={
            "request_url": str(request.url),
            "request_method": request.method,
            "request_path": request.url.path,
        },
    )

    # Don't expose internal errors in production
    if settings.debug:
        message = str(exc)
    else:
        message = f"Internal server error (ref: {event_id})" if event_id else "Internal server error"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "detail": {"code": "internal_error", "message": message},
            "status_code": 500,
            "error_id": event_id,
        },
    )


# =============================================================================
# API Routers
# =============================================================================

app.include_router(health.router)
app.include_router(lois.router)
app.include_router(applications.router)
app.include_router(reviews.router)
app.include_router(admin.router)


@app.get("/", tags=["Root"])
async def root() -> dict[str, Any]:
    """API root with basic service information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs_url": "/docs" if settings.debug else None,
        "health_url": "/health",
        "readiness_url": "/health/ready",
    }


def create_app() -> FastAPI:
    """Application factory function."""
    return app


# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
