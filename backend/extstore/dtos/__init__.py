"""Data Transfer Objects (DTOs) for API requests and responses"""

from .common import ApiResponse
from .submission import (
    ReviewDecisionRequest,
    SubmissionCountResponse,
    SubmissionCreateRequest,
    SubmissionCreatedResponse,
    SubmissionListResponse,
    SubmissionResponse,
)
from .sync import BulkSyncResult, ReleaseRejection, SyncResult, VersionMismatchReport

__all__ = [
    "ApiResponse",
    "SubmissionCreateRequest",
    "SubmissionCreatedResponse",
    "SubmissionResponse",
    "SubmissionListResponse",
    "SubmissionCountResponse",
    "ReviewDecisionRequest",
    "SyncResult",
    "BulkSyncResult",
    "VersionMismatchReport",
    "ReleaseRejection",
]
