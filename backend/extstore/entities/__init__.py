from .base import BaseEntity, PyObjectIdStr

# Shared enums
from .enums import ExtensionCategory, SubmissionStatus, SyncRunStatus

# Catalogue entities
from .extension import Extension
from .extension_submission import ExtensionSubmission
from .extension_version import ExtensionVersion
from .sync_log import SyncLogEntry

__all__ = [
    # Base
    "BaseEntity",
    "PyObjectIdStr",
    # Enums
    "ExtensionCategory",
    "SubmissionStatus",
    "SyncRunStatus",
    "Extension",
    "ExtensionVersion",
    "ExtensionSubmission",
    "SyncLogEntry",
]
