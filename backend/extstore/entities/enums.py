"""
Shared enums for entities.

This module contains enums that are used across multiple entity files.
"""

from enum import Enum


class ExtensionCategory(str, Enum):
    """Runtime isolation class declared for an extension."""

    SANDBOXED = "sandboxed"
    NATIVE = "native"


class SubmissionStatus(str, Enum):
    """Review state of a community submission. Only PENDING is non-terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_CHANGES = "needs_changes"


class SyncRunStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
