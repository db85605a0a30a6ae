"""
Backend services for the grant-record workflow.
"""

from backend.services.access_policy import (
    AccessPolicy,
    Actor,
    Role,
    build_default_policy,
    get_access_policy,
)
from backend.services.application_workflow import ApplicationWorkflowService
from backend.services.audit import AuditService
from backend.services.cycles import GrantCycleService
from backend.services.decision_release import DecisionReleaseService
from backend.services.email import EmailNotificationSender
from backend.services.loi_workflow import LOIWorkflowService
from backend.services.notification_service import (
    CeleryNotificationDispatcher,
    InlineNotificationDispatcher,
    NotificationIntent,
    NotificationKind,
)
from backend.services.record_deletion import RecordDeletionService
from backend.services.review_workflow import ReviewWorkflowService
from backend.services.status_history import StatusHistoryRecorder
from backend.services.transitions import EntityType, ensure_transition

__all__ = [
    # Access policy
    "AccessPolicy",
    "Actor",
    "Role",
    "build_default_policy",
    "get_access_policy",
    # Transition tables and history
    "EntityType",
    "ensure_transition",
    "StatusHistoryRecorder",
    # Workflows
    "LOIWorkflowService",
    "ApplicationWorkflowService",
    "ReviewWorkflowService",
    "DecisionReleaseService",
    "GrantCycleService",
    "RecordDeletionService",
    # Audit
    "AuditService",
    # Notifications
    "NotificationIntent",
    "NotificationKind",
    "InlineNotificationDispatcher",
    "CeleryNotificationDispatcher",
    "EmailNotificationSender",
]
