"""
Grant Portal Pydantic Schemas
Request/Response models for API endpoints.
"""
from backend.schemas.admin import (
    DeletionResponse,
    GrantCycleCreate,
    GrantCycleResponse,
    GrantCycleUpdate,
    PendingReleaseResponse,
    ReleaseRequest,
    ReleaseResponse,
    ReleaseResult,
)
from backend.schemas.applications import (
    ApplicationDecision,
    ApplicationResponse,
    ApplicationStatusChange,
    ApplicationUpdate,
    CommunicationResponse,
    InfoRequestCreate,
    InfoResponseCreate,
)
from backend.schemas.common import MessageResponse, StatusHistoryResponse
from backend.schemas.lois import (
    LOICreate,
    LOIDecision,
    LOIDecisionResponse,
    LOIResponse,
    LOIStaffResponse,
    LOIUpdate,
)
from backend.schemas.reviews import (
    BudgetAssessmentCreate,
    BudgetAssessmentResponse,
    ReviewNoteCreate,
    ReviewNoteResponse,
    VoteCreate,
    VoteResponse,
)

__all__ = [
    # Admin
    "DeletionResponse",
    "GrantCycleCreate",
    "GrantCycleResponse",
    "GrantCycleUpdate",
    "PendingReleaseResponse",
    "ReleaseRequest",
    "ReleaseResponse",
    "ReleaseResult",
    # Applications
    "ApplicationDecision",
    "ApplicationResponse",
    "ApplicationStatusChange",
    "ApplicationUpdate",
    "CommunicationResponse",
    "InfoRequestCreate",
    "InfoResponseCreate",
    # Common
    "MessageResponse",
    "StatusHistoryResponse",
    # LOIs
    "LOICreate",
    "LOIDecision",
    "LOIDecisionResponse",
    "LOIResponse",
    "LOIStaffResponse",
    "LOIUpdate",
    # Reviews
    "BudgetAssessmentCreate",
    "BudgetAssessmentResponse",
    "ReviewNoteCreate",
    "ReviewNoteResponse",
    "VoteCreate",
    "VoteResponse",
]
