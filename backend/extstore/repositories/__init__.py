"""Repository layer for database operations"""

from .base import BaseRepository
from .extension import ExtensionRepository
from .extension_submission import ExtensionSubmissionRepository
from .extension_version import ExtensionVersionRepository
from .sync_log import SyncLogRepository

__all__ = [
    "BaseRepository",
    "ExtensionRepository",
    "ExtensionVersionRepository",
    "ExtensionSubmissionRepository",
    "SyncLogRepository",
]
