"""Transient release-feed types. Retrieved from upstream, never stored verbatim."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Asset:
    filename: str
    download_url: str
    declared_size_bytes: int = 0  # Advisory only


@dataclass
class Release:
    tag: str
    name: str = ""
    is_prerelease: bool = False
    is_draft: bool = False
    published_at: Optional[datetime] = None
    assets: List[Asset] = field(default_factory=list)
    notes_raw: str = ""


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def release_from_payload(payload: Dict[str, Any]) -> Release:
    """Map a GitHub release JSON object onto a Release."""
    assets = []
    for raw_asset in payload.get("assets") or []:
        if not isinstance(raw_asset, dict):
            continue
        try:
            size = int(raw_asset.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        assets.append(
            Asset(
                filename=str(raw_asset.get("name") or ""),
                download_url=str(raw_asset.get("browser_download_url") or ""),
                declared_size_bytes=size,
            )
        )

    tag = str(payload.get("tag_name") or "")
    return Release(
        tag=tag,
        name=str(payload.get("name") or tag),
        is_prerelease=bool(payload.get("prerelease")),
        is_draft=bool(payload.get("draft")),
        published_at=_parse_iso(payload.get("published_at")),
        assets=assets,
        notes_raw=str(payload.get("body") or ""),
    )


def sort_newest_first(releases: List[Release]) -> List[Release]:
    """Order by published_at descending; undated releases go last, in feed order."""
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(
        releases,
        key=lambda r: (r.published_at is not None, r.published_at or epoch),
        reverse=True,
    )
