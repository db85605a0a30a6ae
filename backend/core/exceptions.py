"""
Custom Exception Classes for the Grant Portal API.

Provides standardized HTTP exceptions with consistent, structured error
details across all workflow operations. Every client-facing error carries
a machine-readable ``code`` and enough context for the caller to
self-correct.
"""
from typing import Any, Iterable, Optional

from fastapi import HTTPException, status


def _detail(code: str, message: str, **extra: Any) -> dict[str, Any]:
    detail = {"code": code, "message": message}
    detail.update({key: value for key, value in extra.items() if value is not None})
    return detail


class UnauthorizedError(HTTPException):
    """Exception raised when no actor can be identified for the request."""

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_detail("unauthorized", message),
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    """Exception raised when the actor lacks the role an action requires."""

    def __init__(
        self,
        message: str = "Not authorized to perform this action",
        required_role: Optional[str] = None,
        actual_role: Optional[str] = None,
    ):
        self.required_role = required_role
        self.actual_role = actual_role
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=_detail(
                "forbidden",
                message,
                required_role=required_role,
                actual_role=actual_role,
            ),
        )


class NotFoundError(HTTPException):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource: str, id: Any = None):
        self.resource = resource
        message = f"{resource} not found" + (f": {id}" if id is not None else "")
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_detail(
                "not_found",
                message,
                resource=resource,
                id=str(id) if id is not None else None,
            ),
        )


class InvalidTransitionError(HTTPException):
    """Exception raised when a status change is not a legal edge."""

    def __init__(
        self,
        entity: str,
        current_status: str,
        target_status: str,
        allowed: Iterable[str],
    ):
        self.entity = entity
        self.current_status = current_status
        self.target_status = target_status
        self.allowed = sorted(allowed)
        allowed_text = ", ".join(self.allowed) or "none"
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=_detail(
                "invalid_transition",
                f"Cannot transition {entity} from {current_status} to {target_status}. "
                f"Allowed: {allowed_text}",
                entity=entity,
                current_status=current_status,
                target_status=target_status,
                allowed=self.allowed,
            ),
        )


class PreconditionFailedError(HTTPException):
    """
    Exception raised when a business precondition does not hold.

    Covers passed deadlines, missing required fields, word-count ceilings,
    duplicate records for an (organization, cycle) pair and a second
    information request while one is still pending.
    """

    def __init__(
        self,
        message: str,
        reason: str = "precondition_failed",
        fields: Optional[Any] = None,
    ):
        self.reason = reason
        self.fields = fields
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_detail("precondition_failed", message, reason=reason, fields=fields),
        )


class DependencyUnavailableError(HTTPException):
    """Exception raised when the record store or notification sender fails."""

    def __init__(self, dependency: str, message: Optional[str] = None):
        self.dependency = dependency
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_detail(
                "dependency_unavailable",
                message or f"{dependency} is unavailable. Please try again later.",
                dependency=dependency,
            ),
        )
