"""
Submission Service - community intake and admin review.

State machine:
    pending -> approved | rejected | needs_changes

Only ``pending`` accepts a decision; every decision is applied with a
``status == pending`` guard so two reviewers racing on the same submission
cannot both win. A resubmission after ``needs_changes`` is a new document.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from extstore.config import settings
from extstore.dtos.submission import SubmissionCreateRequest
from extstore.entities.enums import ExtensionCategory, SubmissionStatus
from extstore.entities.extension import Extension
from extstore.entities.extension_submission import ExtensionSubmission
from extstore.entities.extension_version import ExtensionVersion
from extstore.services.errors import (
    DuplicateSubmission,
    InvalidSubmissionState,
    NameCollision,
    NoInstallableAsset,
    ReviewNotesRequired,
    SubmissionNotFound,
)
from extstore.services.github.github_client import GitHubClient, get_github_client
from extstore.services.github.locator import parse_repository_url
from extstore.services.release.artifact import ArtifactFetcher
from extstore.services.release.assets import find_latest_release_with_bpx
from extstore.services.release.changelog import sanitize_changelog
from extstore.services.release.manifest import ensure_valid, validate_manifest
from extstore.services.store import ExtensionStore
from extstore.utils.prometheus_metrics import record_submission_decision

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionService:
    def __init__(
        self,
        store: ExtensionStore,
        github: Optional[GitHubClient] = None,
        artifacts: Optional[ArtifactFetcher] = None,
    ):
        self.store = store
        self._github = github
        self._artifacts = artifacts

    # Upstream clients are only needed for approval
    @property
    def github(self) -> GitHubClient:
        if self._github is None:
            self._github = get_github_client()
        return self._github

    @property
    def artifacts(self) -> ArtifactFetcher:
        if self._artifacts is None:
            self._artifacts = ArtifactFetcher()
        return self._artifacts

    def close(self) -> None:
        if self._github is not None:
            self._github.close()
        if self._artifacts is not None:
            self._artifacts.close()

    # =========================================================================
    # Intake
    # =========================================================================

    def create(self, request: SubmissionCreateRequest) -> ExtensionSubmission:
        """
        Record a pending submission. No upstream access happens here; the
        repository is inspected when a reviewer approves.
        """
        ref = parse_repository_url(request.repository_url)
        repository_url = ref.web_url

        if self.store.find_pending_submission_by_repository(repository_url):
            raise DuplicateSubmission(
                "A submission for this repository is already pending review"
            )

        submission = ExtensionSubmission(
            repository_url=repository_url,
            submitter_email=request.submitter_email,
            submitter_name=request.submitter_name,
            name=request.name,
            display_name=request.display_name,
            description=request.description,
            category=request.category,
        )
        created = self.store.create_submission(submission)
        logger.info(f"New submission {created.id} for {ref.full_name}")
        return created

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, submission_id: str) -> ExtensionSubmission:
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound("Submission not found")
        return submission

    def list(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[ExtensionSubmission], int]:
        skip = (page - 1) * limit
        return self.store.list_submissions(status=status, search=search, skip=skip, limit=limit)

    def pending_count(self) -> int:
        return self.store.count_pending_submissions()

    # =========================================================================
    # Review decisions
    # =========================================================================

    def _require_pending(self, submission_id: str) -> ExtensionSubmission:
        submission = self.get(submission_id)
        if not submission.is_pending:
            raise InvalidSubmissionState(
                f"Cannot review a submission with status '{submission.status}'"
            )
        return submission

    def approve(
        self,
        submission_id: str,
        reviewer_email: str,
        notes: Optional[str] = None,
    ) -> Tuple[ExtensionSubmission, Extension]:
        """
        Approve a pending submission and publish its newest packaged release.

        The release listing, manifest check and package download all happen
        before anything is written; the extension, its first version and the
        decision are then committed together.
        """
        submission = self._require_pending(submission_id)
        ref = parse_repository_url(submission.repository_url)

        releases = self.github.list_releases(ref)
        found = find_latest_release_with_bpx(releases, fallback_to_prerelease=True)
        if found is None:
            raise NoInstallableAsset(
                f"No release with a .bpx package found in {ref.full_name}"
            )
        release, asset = found

        raw = self.github.fetch_manifest(ref, release.tag)
        manifest = ensure_valid(validate_manifest(raw, release.tag), release.tag)

        if self.store.get_extension_by_name(manifest.name):
            raise NameCollision(f'An extension named "{manifest.name}" already exists')

        artifact = self.artifacts.fetch(asset.download_url)

        extension = Extension(
            name=manifest.name,
            display_name=manifest.display_name,
            description=manifest.description or submission.description,
            repository_url=submission.repository_url,
            category=manifest.category or submission.category or ExtensionCategory.SANDBOXED,
            published=True,
            submission_id=submission.id,
            last_synced_at=_utcnow(),
        )
        version = ExtensionVersion(
            extension_id="",  # assigned once the extension is inserted
            version=manifest.version,
            artifact_digest=artifact.digest,
            artifact_size_bytes=artifact.size_bytes,
            artifact_url=asset.download_url,
            changelog=sanitize_changelog(release.notes_raw),
            manifest=manifest.model_dump(by_alias=True, exclude_none=True),
            prerelease=release.is_prerelease,
            published_at=release.published_at or _utcnow(),
        )
        decision = self._decision(SubmissionStatus.APPROVED, reviewer_email, notes)
        decision.update(
            name=manifest.name,
            display_name=manifest.display_name,
        )

        created, approved = self.store.create_extension_with_first_version(
            extension, version, submission.id, decision
        )
        record_submission_decision(SubmissionStatus.APPROVED.value)
        logger.info(
            f"Submission {submission.id} approved by {reviewer_email}: "
            f"{created.name}@{manifest.version}"
        )
        return approved, created

    def reject(self, submission_id: str, reviewer_email: str, notes: Optional[str]) -> ExtensionSubmission:
        return self._decide_with_notes(
            submission_id, SubmissionStatus.REJECTED, reviewer_email, notes
        )

    def request_changes(
        self, submission_id: str, reviewer_email: str, notes: Optional[str]
    ) -> ExtensionSubmission:
        return self._decide_with_notes(
            submission_id, SubmissionStatus.NEEDS_CHANGES, reviewer_email, notes
        )

    def _decide_with_notes(
        self,
        submission_id: str,
        status: SubmissionStatus,
        reviewer_email: str,
        notes: Optional[str],
    ) -> ExtensionSubmission:
        self._require_pending(submission_id)

        notes = (notes or "").strip()
        min_length = settings.REVIEW_NOTES_MIN_LENGTH
        max_length = settings.REVIEW_NOTES_MAX_LENGTH
        if len(notes) < min_length or len(notes) > max_length:
            raise ReviewNotesRequired(
                f"Review notes must be between {min_length} and {max_length} characters"
            )

        updated = self.store.update_submission_decision(
            submission_id, self._decision(status, reviewer_email, notes)
        )
        if updated is None:
            raise InvalidSubmissionState(
                "Submission was reviewed concurrently and is no longer pending"
            )
        record_submission_decision(status.value)
        logger.info(f"Submission {submission_id} marked {status.value} by {reviewer_email}")
        return updated

    @staticmethod
    def _decision(status: SubmissionStatus, reviewer_email: str, notes: Optional[str]) -> dict:
        return {
            "status": status.value,
            "reviewer_email": reviewer_email,
            "reviewer_notes": notes or None,
            "reviewed_at": _utcnow(),
        }
