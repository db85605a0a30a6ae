"""
Status transition tables for LOIs and Applications.

These tables are the only place legal status edges and their minimum roles
are defined; workflow services must pass every status change through
``ensure_transition``.
"""
import enum
from dataclasses import dataclass
from typing import Optional

from backend.core.exceptions import InvalidTransitionError
from backend.models import ApplicationStatus, LOIStatus
from backend.services.access_policy import Role


class EntityType(str, enum.Enum):
    LOI = "loi"
    APPLICATION = "application"


LOI_TRANSITIONS: dict[str, dict[str, Role]] = {
    LOIStatus.DRAFT.value: {
        LOIStatus.SUBMITTED.value: Role.APPLICANT_OWNER,
    },
    LOIStatus.SUBMITTED.value: {
        LOIStatus.UNDER_REVIEW.value: Role.MEMBER,
        LOIStatus.APPROVED.value: Role.MEMBER,
        LOIStatus.DECLINED.value: Role.MEMBER,
    },
    LOIStatus.UNDER_REVIEW.value: {
        LOIStatus.APPROVED.value: Role.MEMBER,
        LOIStatus.DECLINED.value: Role.MEMBER,
    },
    LOIStatus.APPROVED.value: {},
    LOIStatus.DECLINED.value: {},
    LOIStatus.WITHDRAWN.value: {},
}

APPLICATION_TRANSITIONS: dict[str, dict[str, Role]] = {
    ApplicationStatus.DRAFT.value: {
        ApplicationStatus.SUBMITTED.value: Role.APPLICANT_OWNER,
    },
    ApplicationStatus.SUBMITTED.value: {
        ApplicationStatus.UNDER_REVIEW.value: Role.MANAGER,
    },
    ApplicationStatus.UNDER_REVIEW.value: {
        ApplicationStatus.INFO_REQUESTED.value: Role.MANAGER,
        ApplicationStatus.APPROVED.value: Role.ADMIN,
        ApplicationStatus.DECLINED.value: Role.ADMIN,
    },
    ApplicationStatus.INFO_REQUESTED.value: {
        ApplicationStatus.UNDER_REVIEW.value: Role.APPLICANT_OWNER,
    },
    ApplicationStatus.APPROVED.value: {},
    ApplicationStatus.DECLINED.value: {},
    ApplicationStatus.WITHDRAWN.value: {},
}

TRANSITION_TABLES: dict[EntityType, dict[str, dict[str, Role]]] = {
    EntityType.LOI: LOI_TRANSITIONS,
    EntityType.APPLICATION: APPLICATION_TRANSITIONS,
}


@dataclass(frozen=True)
class TransitionCheck:
    """Result of looking up one edge."""

    allowed: bool
    required_role: Optional[Role]
    allowed_targets: frozenset[str]


def _status_value(status) -> str:
    return status.value if isinstance(status, enum.Enum) else str(status)


def allowed_targets(entity: EntityType, current_status) -> frozenset[str]:
    """Statuses reachable in one step from ``current_status``."""
    table = TRANSITION_TABLES[EntityType(entity)]
    return frozenset(table.get(_status_value(current_status), {}))


def can_transition(entity: EntityType, current_status, target_status) -> TransitionCheck:
    """Look up the edge ``current_status -> target_status``."""
    table = TRANSITION_TABLES[EntityType(entity)]
    edges = table.get(_status_value(current_status), {})
    required = edges.get(_status_value(target_status))
    return TransitionCheck(
        allowed=required is not None,
        required_role=required,
        allowed_targets=frozenset(edges),
    )


def ensure_transition(entity: EntityType, current_status, target_status) -> Role:
    """
    Return the role required for a legal edge.

    Raises:
        InvalidTransitionError: The edge is not in the table.
    """
    check = can_transition(entity, current_status, target_status)
    if not check.allowed:
        raise InvalidTransitionError(
            entity=EntityType(entity).value,
            current_status=_status_value(current_status),
            target_status=_status_value(target_status),
            allowed=check.allowed_targets,
        )
    return check.required_role
