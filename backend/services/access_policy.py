"""
Access policy evaluation.

Resolves a caller's effective role for a record by walking an ordered rule
chain. The first rule that returns a role wins; when no rule answers the
caller has no role. The admin email override lives in its own rule so it can
be inspected, tested and switched off in one place.
"""
import enum
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import structlog

from backend.core.config import settings
from backend.core.exceptions import ForbiddenError, UnauthorizedError

logger = structlog.get_logger(__name__)


class Role(str, enum.Enum):
    """Effective role of an actor with respect to one record."""

    NONE = "none"
    APPLICANT_OWNER = "applicant_owner"
    MEMBER = "member"
    MANAGER = "manager"
    ADMIN = "admin"


# Staff roles are ordered; APPLICANT_OWNER is a separate lane
STAFF_RANK = {
    Role.MEMBER: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
}

ORG_ROLE_CLAIMS = {
    "org:admin": Role.ADMIN,
    "org:manager": Role.MANAGER,
    "org:member": Role.MEMBER,
}


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity provider."""

    id: str
    display_name: str
    email: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None
    org_role: Optional[str] = None


def role_satisfies(role: Role, required: Role) -> bool:
    """Whether ``role`` meets ``required``."""
    if required == Role.NONE:
        return True
    if required == Role.APPLICANT_OWNER:
        return role == Role.APPLICANT_OWNER
    return STAFF_RANK.get(role, 0) >= STAFF_RANK[required]


class AccessRule(ABC):
    """A single step of the access policy chain."""

    name: str = "rule"

    @abstractmethod
    def evaluate(self, actor: Actor, record: Optional[Any]) -> Optional[Role]:
        """Return a role, or None to defer to the next rule."""


class ClaimRoleRule(AccessRule):
    """Maps the identity provider's organization-role claim to a staff role."""

    name = "claim_role"

    def evaluate(self, actor: Actor, record: Optional[Any]) -> Optional[Role]:
        if not actor.org_role:
            return None
        return ORG_ROLE_CLAIMS.get(actor.org_role)


class AdminOverrideRule(AccessRule):
    """Grants ADMIN to explicitly listed email addresses."""

    name = "admin_override"

    def __init__(self, emails: Iterable[str]):
        self.emails = frozenset(email.lower() for email in emails)

    def evaluate(self, actor: Actor, record: Optional[Any]) -> Optional[Role]:
        if actor.email and actor.email.lower() in self.emails:
            return Role.ADMIN
        return None


class OwnershipRule(AccessRule):
    """Grants APPLICANT_OWNER for records owned by the actor's organization."""

    name = "ownership"

    def evaluate(self, actor: Actor, record: Optional[Any]) -> Optional[Role]:
        if record is None or actor.organization_id is None:
            return None
        if getattr(record, "organization_id", None) == actor.organization_id:
            return Role.APPLICANT_OWNER
        return None


class AccessPolicy:
    """Ordered rule chain resolving an actor's role for a record."""

    def __init__(self, rules: Sequence[AccessRule]):
        self.rules = list(rules)

    def resolve_role(self, actor: Actor, record: Optional[Any] = None) -> Role:
        """Return the first role any rule grants, else NONE."""
        for rule in self.rules:
            role = rule.evaluate(actor, record)
            if role is not None:
                return role
        return Role.NONE

    def require(
        self,
        actor: Optional[Actor],
        required: Role,
        record: Optional[Any] = None,
        action: Optional[str] = None,
    ) -> Role:
        """
        Resolve the actor's role and ensure it satisfies ``required``.

        Raises:
            UnauthorizedError: No actor was identified.
            ForbiddenError: The resolved role is insufficient.
        """
        if actor is None:
            raise UnauthorizedError()

        role = self.resolve_role(actor, record)
        self.ensure_role(actor, role, required, action)
        return role

    def require_access(
        self,
        actor: Optional[Actor],
        record: Optional[Any] = None,
        action: Optional[str] = None,
    ) -> Role:
        """Require any role at all (staff or owner) for a record."""
        if actor is None:
            raise UnauthorizedError()
        role = self.resolve_role(actor, record)
        if role == Role.NONE:
            logger.info("access_denied", actor_id=actor.id, action=action, actual_role=role.value)
            raise ForbiddenError(
                message=f"Not authorized to {action or 'access this record'}",
                actual_role=role.value,
            )
        return role

    def ensure_role(
        self,
        actor: Actor,
        role: Role,
        required: Role,
        action: Optional[str] = None,
    ) -> None:
        """Check an already-resolved role against a transition's required role."""
        if role_satisfies(role, required):
            return
        logger.info(
            "access_denied",
            actor_id=actor.id,
            action=action,
            required_role=required.value,
            actual_role=role.value,
        )
        raise ForbiddenError(
            message=f"Role '{required.value}' required to {action or 'perform this action'}",
            required_role=required.value,
            actual_role=role.value,
        )


def build_default_policy(override_emails: Optional[Iterable[str]] = None) -> AccessPolicy:
    """Claim rule first, explicit override second, ownership last."""
    if override_emails is None:
        override_emails = settings.admin_override_email_list
    return AccessPolicy(
        [
            ClaimRoleRule(),
            AdminOverrideRule(override_emails),
            OwnershipRule(),
        ]
    )


def get_access_policy() -> AccessPolicy:
    """FastAPI dependency returning the configured access policy."""
    return build_default_policy()
