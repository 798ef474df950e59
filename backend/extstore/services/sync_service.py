"""
Sync Service - bring recorded extension versions up to date with GitHub.

Flow for one extension:
    list releases -> pick .bpx asset -> fetch + validate extension.json
    -> download + hash package -> reconcile with recorded versions
    -> append new versions oldest first

Every upstream fetch for a run happens before the first write, so an
extension either imports everything this run found or fails without
importing anything. Content problems in one release (bad manifest, version
mismatch, ambiguous or oversized package) only skip that release and are
reported in ``SyncResult.rejected``. Transport failures abort the extension
and are retried on the next scheduled run.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from extstore.config import settings
from extstore.dtos.sync import (
    BulkSyncResult,
    ReleaseRejection,
    SyncResult,
    VersionMismatchReport,
)
from extstore.entities.enums import SyncRunStatus
from extstore.entities.extension import Extension
from extstore.entities.extension_version import ExtensionVersion
from extstore.entities.sync_log import SyncLogEntry
from extstore.services.errors import (
    AmbiguousInstallableAsset,
    ArtifactTooLarge,
    ExtensionNotFound,
    InvalidRepositoryUrl,
    ManifestSchemaInvalid,
    StoreError,
)
from extstore.services.github.github_client import GitHubClient, get_github_client
from extstore.services.github.locator import RepositoryRef, parse_repository_url
from extstore.services.release.artifact import ArtifactFetcher
from extstore.services.release.assets import find_bpx_asset
from extstore.services.release.changelog import sanitize_changelog
from extstore.services.release.manifest import ensure_valid, validate_manifest
from extstore.services.release.models import Release
from extstore.services.release.reconciler import ReleaseCandidate, reconcile
from extstore.services.release.versioning import normalize_version, pick_latest
from extstore.services.store import ExtensionStore
from extstore.utils.prometheus_metrics import (
    record_bulk_sync_duration,
    record_release_rejected,
    record_sync,
)

logger = logging.getLogger(__name__)

# Problems with a single release's content; the release is skipped
RELEASE_REJECTIONS = (AmbiguousInstallableAsset, ManifestSchemaInvalid, ArtifactTooLarge)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncService:
    """
    Single and bulk release sync.

    Used by the public sync endpoint, the admin bulk endpoint and the
    scheduled Celery task.
    """

    def __init__(
        self,
        store: ExtensionStore,
        github: Optional[GitHubClient] = None,
        artifacts: Optional[ArtifactFetcher] = None,
        verify_existing: Optional[bool] = None,
        max_workers: Optional[int] = None,
        budget_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.github = github or get_github_client()
        self.artifacts = artifacts or ArtifactFetcher()
        self.verify_existing = (
            settings.SYNC_VERIFY_EXISTING_DIGESTS if verify_existing is None else verify_existing
        )
        self.max_workers = max_workers or settings.BULK_SYNC_MAX_WORKERS
        self.budget_seconds = (
            settings.BULK_SYNC_BUDGET_SECONDS if budget_seconds is None else budget_seconds
        )
        self._clock = clock

    # =========================================================================
    # Single extension
    # =========================================================================

    def sync_extension(self, name: str) -> SyncResult:
        """
        Sync one published extension by its public name.

        Raises the first fatal StoreError; nothing is imported in that case.
        """
        extension = self.store.get_extension_by_name(name)
        if extension is None or not extension.published:
            raise ExtensionNotFound(f'Extension "{name}" not found')
        if not extension.repository_url:
            raise InvalidRepositoryUrl(f'Extension "{name}" has no repository URL')
        try:
            return self._sync(extension)
        except StoreError:
            record_sync("failed")
            raise

    def _sync(self, extension: Extension) -> SyncResult:
        ref = parse_repository_url(extension.repository_url)
        releases = self.github.list_releases(ref)
        persisted = self.store.get_versions(extension.id)
        recorded = {v.version for v in persisted}

        result = SyncResult(extension_name=extension.name)
        candidates = self._collect_candidates(extension, ref, releases, recorded, result)

        plan = reconcile(candidates, persisted)
        result.mismatches = [
            VersionMismatchReport(
                version=m.version,
                stored_digest=m.stored_digest,
                observed_digest=m.observed_digest,
            )
            for m in plan.mismatches
        ]

        for candidate in plan.new:
            version = self._build_version(extension, candidate)
            if self.store.append_version(extension, version):
                result.new_versions.append(candidate.version)
                persisted.append(version)
                logger.info(f"Added version {candidate.version} for {extension.name}")

        self.store.mark_synced(extension.id, _utcnow())

        result.updated = bool(result.new_versions)
        result.latest_version = pick_latest(persisted) or extension.latest_version
        record_sync("success", len(result.new_versions), len(result.mismatches))
        return result

    def _collect_candidates(
        self,
        extension: Extension,
        ref: RepositoryRef,
        releases: List[Release],
        recorded: set,
        result: SyncResult,
    ) -> List[ReleaseCandidate]:
        candidates: List[ReleaseCandidate] = []
        seen = set()

        for release in releases:
            try:
                asset = find_bpx_asset(release)
                if asset is None:
                    continue

                version = normalize_version(release.tag)
                if version in seen:
                    continue
                seen.add(version)

                if version in recorded:
                    artifact = (
                        self.artifacts.fetch(asset.download_url)
                        if self.verify_existing
                        else None
                    )
                    candidates.append(
                        ReleaseCandidate(version, release, asset, artifact=artifact)
                    )
                    continue

                # Manifest must validate before spending bandwidth on the package
                raw = self.github.fetch_manifest(ref, release.tag)
                manifest = ensure_valid(validate_manifest(raw, release.tag), release.tag)
                if manifest.name != extension.name:
                    raise ManifestSchemaInvalid(
                        f'extension.json name "{manifest.name}" does not match '
                        f'extension "{extension.name}"'
                    )

                artifact = self.artifacts.fetch(asset.download_url)
                candidates.append(
                    ReleaseCandidate(
                        manifest.version, release, asset, manifest=manifest, artifact=artifact
                    )
                )
            except RELEASE_REJECTIONS as exc:
                logger.warning(f"Skipping {extension.name}@{release.tag}: {exc}")
                record_release_rejected(exc.code)
                result.rejected.append(
                    ReleaseRejection(
                        tag=release.tag,
                        code=exc.code,
                        message=exc.message,
                        details=[str(d) for d in exc.details],
                    )
                )

        return candidates

    def _build_version(self, extension: Extension, candidate: ReleaseCandidate) -> ExtensionVersion:
        release = candidate.release
        return ExtensionVersion(
            extension_id=extension.id,
            version=candidate.version,
            artifact_digest=candidate.artifact.digest,
            artifact_size_bytes=candidate.artifact.size_bytes,
            artifact_url=candidate.asset.download_url,
            changelog=sanitize_changelog(release.notes_raw),
            manifest=candidate.manifest.model_dump(by_alias=True, exclude_none=True),
            prerelease=release.is_prerelease,
            published_at=release.published_at or _utcnow(),
        )

    # =========================================================================
    # Bulk
    # =========================================================================

    def sync_all(self, triggered_by: str = "schedule") -> BulkSyncResult:
        """
        Sync every eligible extension with a small worker pool.

        Each extension's failure is recorded in its own result. Work not
        started before the time budget runs out is reported as skipped.
        """
        started_at = _utcnow()
        deadline = self._clock() + self.budget_seconds

        eligible: List[Extension] = []
        for extension in self.store.list_sync_candidates():
            try:
                parse_repository_url(extension.repository_url)
            except InvalidRepositoryUrl as exc:
                logger.warning(f"Not syncing {extension.name}: {exc}")
                continue
            eligible.append(extension)

        logger.info(f"Bulk sync of {len(eligible)} extension(s) triggered by {triggered_by}")

        by_name: Dict[str, SyncResult] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._sync_isolated, extension, deadline): extension
                for extension in eligible
            }
            for future in as_completed(futures):
                extension = futures[future]
                by_name[extension.name] = future.result()

        results = [by_name[extension.name] for extension in eligible]
        bulk = BulkSyncResult(
            results=results,
            total=len(results),
            succeeded=sum(1 for r in results if r.error is None and not r.skipped),
            failed=sum(1 for r in results if r.error is not None),
            skipped=sum(1 for r in results if r.skipped),
            new_versions_added=sum(len(r.new_versions) for r in results),
            started_at=started_at,
            completed_at=_utcnow(),
        )

        self._record_run(bulk, triggered_by)
        record_bulk_sync_duration(
            triggered_by, (bulk.completed_at - bulk.started_at).total_seconds()
        )
        logger.info(
            f"Bulk sync finished: {bulk.succeeded} succeeded, {bulk.failed} failed, "
            f"{bulk.skipped} skipped, {bulk.new_versions_added} new version(s)"
        )
        return bulk

    def _sync_isolated(self, extension: Extension, deadline: float) -> SyncResult:
        if self._clock() >= deadline:
            record_sync("skipped")
            return SyncResult(extension_name=extension.name, skipped=True)
        try:
            return self._sync(extension)
        except StoreError as exc:
            record_sync("failed")
            logger.warning(f"Sync failed for {extension.name}: [{exc.code}] {exc}")
            return SyncResult(extension_name=extension.name, error=str(exc), error_code=exc.code)
        except Exception as exc:
            logger.exception(f"Unexpected error syncing {extension.name}")
            record_sync("failed")
            return SyncResult(
                extension_name=extension.name, error=str(exc), error_code="INTERNAL_ERROR"
            )

    def _record_run(self, bulk: BulkSyncResult, triggered_by: str) -> None:
        entry = SyncLogEntry(
            started_at=bulk.started_at,
            completed_at=bulk.completed_at,
            extensions_checked=bulk.total,
            versions_added=bulk.new_versions_added,
            succeeded=bulk.succeeded,
            failed=bulk.failed,
            skipped=bulk.skipped,
            mismatches=sum(len(r.mismatches) for r in bulk.results),
            status=SyncRunStatus.ERROR if bulk.failed else SyncRunStatus.SUCCESS,
            error_message=(
                "; ".join(f"{r.extension_name}: {r.error}" for r in bulk.results if r.error)[:2000]
                or None
            ),
            triggered_by=triggered_by,
        )
        try:
            self.store.record_sync_log(entry)
        except Exception as e:
            logger.error(f"Failed to record sync log: {e}")

    def close(self) -> None:
        self.github.close()
        self.artifacts.close()
