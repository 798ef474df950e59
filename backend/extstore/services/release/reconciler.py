"""Compare the upstream release set against recorded versions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from extstore.services.release.artifact import ArtifactDigest
from extstore.services.release.manifest import ExtensionManifest
from extstore.services.release.models import Asset, Release
from extstore.services.release.versioning import import_order_key

logger = logging.getLogger(__name__)


class RecordedVersion(Protocol):
    version: str
    artifact_digest: str


@dataclass
class ReleaseCandidate:
    """An upstream release that passed asset selection (and manifest checks if new)."""

    version: str
    release: Release
    asset: Asset
    manifest: Optional[ExtensionManifest] = None
    artifact: Optional[ArtifactDigest] = None


@dataclass(frozen=True)
class VersionMismatch:
    version: str
    stored_digest: str
    observed_digest: str


@dataclass
class ReconcilePlan:
    new: List[ReleaseCandidate] = field(default_factory=list)  # oldest first
    mismatches: List[VersionMismatch] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)


def reconcile(
    candidates: Iterable[ReleaseCandidate],
    persisted: Iterable[RecordedVersion],
) -> ReconcilePlan:
    """
    Split candidates into new versions, digest mismatches and unchanged ones.

    A recorded digest is never replaced: a differing upstream digest for a
    known version is only reported. Versions recorded locally but gone
    upstream are left alone.
    """
    recorded = {item.version: item for item in persisted}
    plan = ReconcilePlan()
    seen = set()

    for candidate in candidates:
        if candidate.version in seen:
            continue
        seen.add(candidate.version)

        existing = recorded.get(candidate.version)
        if existing is None:
            plan.new.append(candidate)
            continue

        observed = candidate.artifact.digest if candidate.artifact else None
        if observed is not None and observed != existing.artifact_digest:
            logger.warning(
                f"Digest mismatch for version {candidate.version}: "
                f"stored {existing.artifact_digest}, upstream {observed}"
            )
            plan.mismatches.append(
                VersionMismatch(
                    version=candidate.version,
                    stored_digest=existing.artifact_digest,
                    observed_digest=observed,
                )
            )
        else:
            plan.unchanged.append(candidate.version)

    plan.new.sort(key=lambda c: import_order_key(c.release.published_at, c.version))
    return plan
