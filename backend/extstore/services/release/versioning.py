"""Version string helpers: tag normalization, semantic ordering, latest pointer."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol, Sequence, Tuple

SEMVER_RE = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$"
)

_TAG_PREFIX_RE = re.compile(r"^(?:v|release/|releases/)", re.IGNORECASE)


class VersionLike(Protocol):
    version: str
    prerelease: bool
    published_at: Optional[datetime]


def normalize_version(value: str) -> str:
    """Strip tag decorations: 'v1.2.0', 'release/1.2.0' -> '1.2.0'."""
    stripped = (value or "").strip()
    candidate = _TAG_PREFIX_RE.sub("", stripped, count=1)
    if re.match(r"^\d+\.\d+", candidate):
        return candidate
    return stripped


def is_semver(value: str) -> bool:
    return bool(SEMVER_RE.match(value or ""))


def semver_key(value: str) -> Optional[Tuple]:
    """Sort key following semver precedence; None for non-semantic versions."""
    match = SEMVER_RE.match(value or "")
    if not match:
        return None
    major, minor, patch = (int(match.group(i)) for i in (1, 2, 3))
    pre = match.group(4)
    if pre is None:
        # A release ranks above any of its prereleases
        pre_key: Tuple = (1,)
    else:
        identifiers = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in pre.split(".")
        )
        pre_key = (0, identifiers)
    return (major, minor, patch, pre_key)


def _published_key(item: VersionLike) -> datetime:
    return item.published_at or datetime.min.replace(tzinfo=timezone.utc)


def _pick(candidates: Sequence[VersionLike]) -> Optional[str]:
    semantic = [c for c in candidates if semver_key(c.version) is not None]
    if semantic:
        return max(semantic, key=lambda c: semver_key(c.version)).version
    if candidates:
        return max(candidates, key=_published_key).version
    return None


def pick_latest(versions: Iterable[VersionLike]) -> Optional[str]:
    """
    Highest non-prerelease version by semantic ordering.

    Falls back to the most recently published version when none is semantic,
    and to prereleases only when no stable version exists.
    """
    items = list(versions)
    stable = [v for v in items if not v.prerelease]
    return _pick(stable) or _pick(items)


def import_order_key(published_at: Optional[datetime], version: str) -> Tuple:
    """Oldest first; ties broken by semantic order, then lexically."""
    key = semver_key(version)
    return (
        published_at or datetime.min.replace(tzinfo=timezone.utc),
        key is not None,
        key or (),
        version,
    )
