"""Sync DTOs."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class VersionMismatchReport(BaseModel):
    """A recorded version whose upstream package bytes changed."""

    code: str = "VERSION_DIGEST_MISMATCH"
    version: str
    stored_digest: str
    observed_digest: str


class ReleaseRejection(BaseModel):
    """An upstream release skipped because its content failed a check."""

    tag: str
    code: str
    message: str
    details: List[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Outcome of syncing one extension."""

    extension_name: str
    new_versions: List[str] = Field(default_factory=list)
    updated: bool = False
    latest_version: Optional[str] = None
    mismatches: List[VersionMismatchReport] = Field(default_factory=list)
    rejected: List[ReleaseRejection] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    skipped: bool = False


class BulkSyncResult(BaseModel):
    """Aggregate of a bulk sync run."""

    results: List[SyncResult] = Field(default_factory=list)
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    new_versions_added: int = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
