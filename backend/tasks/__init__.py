"""
Grant Portal Celery Tasks

Task Modules:
    - notifications: delivery of notification intents emitted by workflow
      transitions

Usage:
    from backend.tasks.notifications import deliver_notification_intent

    deliver_notification_intent.delay(intent.model_dump(mode="json"))
"""
