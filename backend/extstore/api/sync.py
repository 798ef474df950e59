"""Release sync endpoints."""

from fastapi import APIRouter, Depends

from extstore.api.deps import get_sync_service
from extstore.dtos.common import ApiResponse
from extstore.dtos.sync import BulkSyncResult, SyncResult
from extstore.middleware.auth import AdminPrincipal, require_admin
from extstore.middleware.rate_limit import sync_rate_limit
from extstore.services.rate_limiter import RateLimitDecision
from extstore.services.sync_service import SyncService

router = APIRouter()


@router.post("/store/extensions/{name}/sync", response_model=ApiResponse[SyncResult])
def sync_extension(
    name: str,
    _limit: RateLimitDecision = Depends(sync_rate_limit),
    service: SyncService = Depends(get_sync_service),
):
    """Pull new releases for one extension from its GitHub repository."""
    result = service.sync_extension(name)
    if result.updated:
        message = f"Added {len(result.new_versions)} new version(s)"
    else:
        message = "Already up to date"
    return ApiResponse(data=result, message=message)


@router.post("/admin/sync/all", response_model=ApiResponse[BulkSyncResult])
def sync_all_extensions(
    admin: AdminPrincipal = Depends(require_admin),
    service: SyncService = Depends(get_sync_service),
):
    """Sync every published extension (admin only)."""
    result = service.sync_all(triggered_by=f"admin:{admin.email}")
    return ApiResponse(
        data=result,
        message=(
            f"Synced {result.succeeded} of {result.total} extension(s), "
            f"{result.new_versions_added} new version(s)"
        ),
    )
