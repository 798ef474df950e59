from __future__ import annotations

from datetime import datetime
from typing import Optional

from .base import BaseEntity
from .enums import ExtensionCategory, SubmissionStatus


class ExtensionSubmission(BaseEntity):
    """
    A community request to list an extension.

    Decision fields (status, reviewer_*, reviewed_at, extension_id) are set
    exactly once when the submission leaves PENDING. A resubmission is a new
    document.
    """

    repository_url: str
    submitter_email: str
    submitter_name: Optional[str] = None

    # Optional metadata, filled from the manifest at approval time
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    category: ExtensionCategory = ExtensionCategory.SANDBOXED

    status: SubmissionStatus = SubmissionStatus.PENDING
    reviewer_notes: Optional[str] = None
    reviewer_email: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    extension_id: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.PENDING
