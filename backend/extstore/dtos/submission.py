"""Submission DTOs."""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from extstore.entities.enums import ExtensionCategory, SubmissionStatus

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SLUG_RE = re.compile(r"^[a-z0-9]([a-z0-9.-]*[a-z0-9])?$")


class SubmissionCreateRequest(BaseModel):
    """Public request to list an extension."""

    repository_url: str = Field(..., min_length=1, max_length=500)
    submitter_email: str = Field(..., max_length=254)
    submitter_name: Optional[str] = Field(None, min_length=1, max_length=100)

    # Optional metadata; the manifest is authoritative at approval time
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    display_name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: ExtensionCategory = ExtensionCategory.SANDBOXED

    @field_validator("submitter_email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_RE.match(value):
            raise ValueError("Valid email required")
        return value

    @field_validator("name")
    @classmethod
    def _name_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not SLUG_RE.match(value):
            raise ValueError(
                'Must be lowercase alphanumeric with dots/hyphens (e.g., "acme.widget")'
            )
        return value


class SubmissionCreatedResponse(BaseModel):
    id: str
    status: SubmissionStatus
    created_at: datetime


class SubmissionResponse(BaseModel):
    """Full submission as seen by reviewers."""

    id: str
    repository_url: str
    submitter_email: str
    submitter_name: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    category: str
    status: SubmissionStatus
    reviewer_notes: Optional[str] = None
    reviewer_email: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    extension_id: Optional[str] = None
    created_at: datetime


class SubmissionListResponse(BaseModel):
    items: List[SubmissionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SubmissionCountResponse(BaseModel):
    pending: int


class ReviewDecisionRequest(BaseModel):
    """Body of approve / reject / request-changes."""

    notes: Optional[str] = Field(None, max_length=2000)
