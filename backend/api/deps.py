"""
FastAPI Dependencies
Shared dependencies for caller identity, database access and services.
"""
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import UnauthorizedError
from backend.database import get_db
from backend.services.access_policy import AccessPolicy, Actor, get_access_policy
from backend.services.application_workflow import ApplicationWorkflowService
from backend.services.cycles import GrantCycleService
from backend.services.decision_release import DecisionReleaseService
from backend.services.loi_workflow import LOIWorkflowService
from backend.services.notification_service import (
    NotificationDispatcher,
    NotificationSender,
    get_notification_dispatcher,
    get_notification_sender,
)
from backend.services.record_deletion import RecordDeletionService
from backend.services.review_workflow import ReviewWorkflowService

# =============================================================================
# Identity Tokens
# =============================================================================

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

security = HTTPBearer(auto_error=False)


def create_access_token(
    actor: Actor,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a bearer token carrying the identity provider claims for ``actor``."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims: dict[str, Any] = {
        "sub": actor.id,
        "name": actor.display_name,
        "email": actor.email,
        "org_id": str(actor.organization_id) if actor.organization_id else None,
        "org_role": actor.org_role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Actor:
    """
    Decode and validate a bearer token into an ``Actor``.

    Raises:
        JWTError: Invalid signature, expired token or missing subject.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token missing subject")
    if payload.get("type", "access") != "access":
        raise JWTError("Invalid token type")

    org_id = payload.get("org_id")
    try:
        organization_id = UUID(org_id) if org_id else None
    except ValueError:
        raise JWTError("Invalid organization claim")

    return Actor(
        id=str(subject),
        display_name=payload.get("name") or payload.get("email") or str(subject),
        email=payload.get("email"),
        organization_id=organization_id,
        org_role=payload.get("org_role"),
    )


# =============================================================================
# Database Dependency
# =============================================================================

# Re-export get_db for convenience
AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Authentication Dependencies
# =============================================================================

async def get_current_actor(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Actor:
    """
    Get the calling actor from the bearer token.

    Raises UnauthorizedError (401) when the token is missing or invalid.
    """
    if credentials is None:
        raise UnauthorizedError()

    try:
        return decode_token(credentials.credentials)
    except JWTError:
        raise UnauthorizedError()


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
PolicyDep = Annotated[AccessPolicy, Depends(get_access_policy)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]
SenderDep = Annotated[NotificationSender, Depends(get_notification_sender)]


# =============================================================================
# Service Dependencies
# =============================================================================

def get_loi_service(
    db: AsyncSessionDep,
    policy: PolicyDep,
    dispatcher: DispatcherDep,
) -> LOIWorkflowService:
    return LOIWorkflowService(db, policy=policy, dispatcher=dispatcher)


def get_application_service(
    db: AsyncSessionDep,
    policy: PolicyDep,
    dispatcher: DispatcherDep,
) -> ApplicationWorkflowService:
    return ApplicationWorkflowService(db, policy=policy, dispatcher=dispatcher)


def get_review_service(db: AsyncSessionDep, policy: PolicyDep) -> ReviewWorkflowService:
    return ReviewWorkflowService(db, policy=policy)


def get_release_service(
    db: AsyncSessionDep,
    policy: PolicyDep,
    sender: SenderDep,
) -> DecisionReleaseService:
    return DecisionReleaseService(db, policy=policy, sender=sender)


def get_cycle_service(db: AsyncSessionDep, policy: PolicyDep) -> GrantCycleService:
    return GrantCycleService(db, policy=policy)


def get_deletion_service(db: AsyncSessionDep, policy: PolicyDep) -> RecordDeletionService:
    return RecordDeletionService(db, policy=policy)


LOIServiceDep = Annotated[LOIWorkflowService, Depends(get_loi_service)]
ApplicationServiceDep = Annotated[ApplicationWorkflowService, Depends(get_application_service)]
ReviewServiceDep = Annotated[ReviewWorkflowService, Depends(get_review_service)]
ReleaseServiceDep = Annotated[DecisionReleaseService, Depends(get_release_service)]
CycleServiceDep = Annotated[GrantCycleService, Depends(get_cycle_service)]
DeletionServiceDep = Annotated[RecordDeletionService, Depends(get_deletion_service)]
