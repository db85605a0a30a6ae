"""
Grant Portal Celery Application Configuration

Configures the Celery task queue used for notification delivery, including
queues, retry policy and monitoring hooks.
"""

import logging
import time
from typing import Any, Callable, TypeVar

from celery import Celery, Task
from celery.signals import task_failure, task_postrun, task_prerun, worker_process_init
from kombu import Exchange, Queue

from backend.core.config import settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


# =============================================================================
# Queue Definitions
# =============================================================================

default_exchange = Exchange("default", type="direct")

TASK_QUEUES = (
    # Notification intents emitted by workflow transitions
    Queue("notifications", exchange=default_exchange, routing_key="notifications"),
    Queue("normal", exchange=default_exchange, routing_key="normal"),
)

TASK_ROUTES = {
    "backend.tasks.notifications.deliver_notification_intent": {"queue": "notifications"},
}


# =============================================================================
# Celery Application
# =============================================================================

def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Configured Celery application instance.
    """
    app = Celery(
        "grant_portal",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=["backend.tasks.notifications"],
    )

    app.conf.update(
        # Serialization
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",

        # Queues
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="normal",
        task_default_exchange="default",
        task_default_routing_key="normal",

        # Time limits
        task_soft_time_limit=60,
        task_time_limit=120,

        # Retry policy
        task_default_retry_delay=10,
        task_max_retries=3,

        # Results
        result_expires=86400,

        # Delivery guarantees
        task_acks_late=True,
        task_reject_on_worker_lost=True,

        timezone="UTC",
        enable_utc=True,

        broker_connection_retry_on_startup=True,
    )

    return app


celery_app = create_celery_app()


# =============================================================================
# Custom Task Base Class with Retry Policy
# =============================================================================

class BaseTaskWithRetry(Task):
    """
    Base task class with exponential backoff retry policy.

    Implements:
        - 3 retry attempts
        - Exponential backoff starting at 10 seconds
        - Maximum delay of 5 minutes
    """

    autoretry_for = (Exception,)
    max_retries = 3
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Log task failure."""
        logger.error(
            f"Task {self.name}[{task_id}] failed after {self.request.retries} retries: {exc}",
            exc_info=True,
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)


celery_app.Task = BaseTaskWithRetry


# =============================================================================
# Worker and Monitoring Hooks
# =============================================================================

_task_start_times: dict[str, float] = {}


@worker_process_init.connect
def init_worker_process(**kwargs: Any) -> None:
    """Configure logging and error tracking in each worker process."""
    from backend.core.logging_config import configure_logging
    from backend.core.sentry import init_sentry

    configure_logging()
    init_sentry()


@task_prerun.connect
def task_prerun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    **extra: Any,
) -> None:
    """Record task start time for latency logging."""
    if task_id:
        _task_start_times[task_id] = time.time()


@task_postrun.connect
def task_postrun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    state: str | None = None,
    **extra: Any,
) -> None:
    """Log task latency."""
    if task_id and task_id in _task_start_times:
        latency = time.time() - _task_start_times.pop(task_id)
        logger.info(
            f"Task {sender.name if sender else 'unknown'}[{task_id}] completed in {latency:.3f}s with state={state}"
        )


@task_failure.connect
def task_failure_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    exception: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Handle task failure."""
    logger.error(f"Task {sender.name if sender else 'unknown'}[{task_id}] failed: {exception}")
    if task_id:
        _task_start_times.pop(task_id, None)


__all__ = [
    "celery_app",
    "BaseTaskWithRetry",
]
