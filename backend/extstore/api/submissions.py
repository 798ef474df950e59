"""Extension submission intake and admin review endpoints."""

import math
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from extstore.api.deps import get_submission_service
from extstore.dtos.common import ApiResponse
from extstore.dtos.submission import (
    ReviewDecisionRequest,
    SubmissionCountResponse,
    SubmissionCreateRequest,
    SubmissionCreatedResponse,
    SubmissionListResponse,
    SubmissionResponse,
)
from extstore.entities.enums import SubmissionStatus
from extstore.entities.extension_submission import ExtensionSubmission
from extstore.middleware.auth import AdminPrincipal, require_admin
from extstore.middleware.rate_limit import submission_rate_limit
from extstore.services.rate_limiter import RateLimitDecision
from extstore.services.submission_service import SubmissionService

router = APIRouter()


# ============================================================================
# Helper Functions
# ============================================================================


def _to_response(submission: ExtensionSubmission) -> SubmissionResponse:
    """Convert entity to response DTO."""
    return SubmissionResponse(
        id=str(submission.id),
        repository_url=submission.repository_url,
        submitter_email=submission.submitter_email,
        submitter_name=submission.submitter_name,
        name=submission.name,
        display_name=submission.display_name,
        description=submission.description,
        category=submission.category,
        status=submission.status,
        reviewer_notes=submission.reviewer_notes,
        reviewer_email=submission.reviewer_email,
        reviewed_at=submission.reviewed_at,
        extension_id=submission.extension_id,
        created_at=submission.created_at,
    )


# ============================================================================
# Public
# ============================================================================


@router.post(
    "/store/submissions",
    response_model=ApiResponse[SubmissionCreatedResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_submission(
    request: SubmissionCreateRequest,
    _limit: RateLimitDecision = Depends(submission_rate_limit),
    service: SubmissionService = Depends(get_submission_service),
):
    """Submit an extension repository for review."""
    created = service.create(request)
    return ApiResponse(
        data=SubmissionCreatedResponse(
            id=str(created.id),
            status=created.status,
            created_at=created.created_at,
        ),
        message="Submission received. We'll review it shortly.",
    )


# ============================================================================
# Admin
# ============================================================================


@router.get("/admin/submissions", response_model=ApiResponse[SubmissionListResponse])
def list_submissions(
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _admin: AdminPrincipal = Depends(require_admin),
    service: SubmissionService = Depends(get_submission_service),
):
    """List submissions, newest first."""
    items, total = service.list(
        status=status_filter.value if status_filter else None,
        search=search,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=SubmissionListResponse(
            items=[_to_response(s) for s in items],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )
    )


@router.get("/admin/submissions/count", response_model=ApiResponse[SubmissionCountResponse])
def count_pending_submissions(
    _admin: AdminPrincipal = Depends(require_admin),
    service: SubmissionService = Depends(get_submission_service),
):
    """Number of submissions awaiting review."""
    return ApiResponse(data=SubmissionCountResponse(pending=service.pending_count()))


@router.get("/admin/submissions/{submission_id}", response_model=ApiResponse[SubmissionResponse])
def get_submission(
    submission_id: str,
    _admin: AdminPrincipal = Depends(require_admin),
    service: SubmissionService = Depends(get_submission_service),
):
    return ApiResponse(data=_to_response(service.get(submission_id)))


@router.post(
    "/admin/submissions/{submission_id}/approve",
    response_model=ApiResponse[SubmissionResponse],
)
def approve_submission(
    submission_id: str,
    body: Optional[ReviewDecisionRequest] = Body(None),
    admin: AdminPrincipal = Depends(require_admin),
    service: SubmissionService = Depends(get_submission_service),
):
    """Approve and publish the submission's newest packaged release."""
    submission, extension = service.approve(
        submission_id, admin.email, notes=body.notes if body else None
    )
    return ApiResponse(
        data=_to_response(submission),
        message=f'Extension "{extension.name}" published at version {extension.latest_version}',
    )


@router.post(
    "/admin/submissions/{submission_id}/reject",
    response_model=ApiResponse[SubmissionResponse],
)
def reject_submission(
    submission_id: str,
    body: Optional[ReviewDecisionRequest] = Body(None),
    admin: AdminPrincipal = Depends(require_admin),
    service: SubmissionService = Depends(get_submission_service),
):
    submission = service.reject(submission_id, admin.email, body.notes if body else None)
    return ApiResponse(data=_to_response(submission), message="Submission rejected")


@router.post(
    "/admin/submissions/{submission_id}/request-changes",
    response_model=ApiResponse[SubmissionResponse],
)
def request_submission_changes(
    submission_id: str,
    body: Optional[ReviewDecisionRequest] = Body(None),
    admin: AdminPrincipal = Depends(require_admin),
    service: SubmissionService = Depends(get_submission_service),
):
    submission = service.request_changes(
        submission_id, admin.email, body.notes if body else None
    )
    return ApiResponse(data=_to_response(submission), message="Changes requested")
