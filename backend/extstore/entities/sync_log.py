from __future__ import annotations

from datetime import datetime
from typing import Optional

from .base import BaseEntity
from .enums import SyncRunStatus


class SyncLogEntry(BaseEntity):
    """Summary row written after every bulk sync run."""

    started_at: datetime
    completed_at: datetime
    extensions_checked: int = 0
    versions_added: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    mismatches: int = 0
    status: SyncRunStatus = SyncRunStatus.SUCCESS
    error_message: Optional[str] = None
    triggered_by: str = "schedule"
