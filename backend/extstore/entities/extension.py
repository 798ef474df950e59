from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import BaseEntity
from .enums import ExtensionCategory


class Extension(BaseEntity):
    """A published extension. Created only by an approved submission."""

    name: str = Field(..., description="Public identifier, e.g. 'acme.widget'")
    display_name: str
    description: Optional[str] = None
    repository_url: Optional[str] = None
    category: ExtensionCategory = ExtensionCategory.SANDBOXED
    latest_version: Optional[str] = None

    published: bool = True
    deprecated: bool = False
    verified: bool = False

    submission_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None
