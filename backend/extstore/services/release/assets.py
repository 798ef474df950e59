"""Locate the installable .bpx package among a release's assets."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from extstore.services.errors import AmbiguousInstallableAsset
from extstore.services.release.models import Asset, Release

PACKAGE_EXTENSION = ".bpx"


def find_bpx_asset(release: Release) -> Optional[Asset]:
    """
    Return the single .bpx asset of a release, or None when there is none.

    Raises:
        AmbiguousInstallableAsset: when more than one asset matches; we do not
            guess which package is the real one.
    """
    candidates = [
        asset
        for asset in release.assets
        if asset.filename.lower().endswith(PACKAGE_EXTENSION)
    ]
    if not candidates:
        return None
    if len(candidates) > 1:
        names = ", ".join(asset.filename for asset in candidates)
        raise AmbiguousInstallableAsset(
            f"Release {release.tag} has {len(candidates)} {PACKAGE_EXTENSION} assets ({names})"
        )
    return candidates[0]


def find_latest_release_with_bpx(
    releases: Iterable[Release],
    include_prerelease: bool = False,
    fallback_to_prerelease: bool = False,
) -> Optional[Tuple[Release, Asset]]:
    """
    Scan releases newest-first and return the first one carrying a package.

    Drafts are always skipped. Prereleases are skipped unless
    ``include_prerelease`` is set; with ``fallback_to_prerelease`` the newest
    prerelease with a package is used when no stable release has one.
    Ambiguous releases propagate AmbiguousInstallableAsset.
    """
    first_prerelease: Optional[Tuple[Release, Asset]] = None

    for release in releases:
        if release.is_draft:
            continue
        if release.is_prerelease and not include_prerelease:
            if fallback_to_prerelease and first_prerelease is None:
                asset = find_bpx_asset(release)
                if asset is not None:
                    first_prerelease = (release, asset)
            continue
        asset = find_bpx_asset(release)
        if asset is not None:
            return release, asset

    return first_prerelease
