from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from .base import BaseEntity


class ExtensionVersion(BaseEntity):
    """
    One installable release of an extension.

    Unique per (extension_id, version). ``artifact_digest`` is written once;
    a later sync that observes different bytes reports a mismatch instead of
    updating it.
    """

    extension_id: str
    version: str
    artifact_digest: str = Field(..., description="'sha256:<hex>' of the package bytes")
    artifact_size_bytes: int
    artifact_url: str
    changelog: str = ""
    manifest: Dict[str, Any] = Field(default_factory=dict)
    prerelease: bool = False
    published_at: Optional[datetime] = None
