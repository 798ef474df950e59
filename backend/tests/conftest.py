"""Shared fixtures: in-memory store, fake GitHub and fake package host."""

import hashlib
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from bson import ObjectId

from extstore.entities.extension import Extension
from extstore.entities.extension_submission import ExtensionSubmission
from extstore.entities.extension_version import ExtensionVersion
from extstore.entities.sync_log import SyncLogEntry
from extstore.services.errors import (
    InvalidSubmissionState,
    ManifestFetchFailed,
    NameCollision,
)
from extstore.services.release.artifact import ArtifactDigest, format_digest
from extstore.services.release.models import Asset, Release, sort_newest_first
from extstore.services.release.versioning import pick_latest

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_release(
    tag: str,
    days: int = 0,
    assets: Optional[List[str]] = None,
    prerelease: bool = False,
    body: str = "",
    repo: str = "acme/widget",
) -> Release:
    filenames = ["widget.bpx"] if assets is None else assets
    return Release(
        tag=tag,
        name=tag,
        is_prerelease=prerelease,
        published_at=BASE_TIME + timedelta(days=days),
        assets=[
            Asset(
                filename=filename,
                download_url=f"https://github.com/{repo}/releases/download/{tag}/{filename}",
                declared_size_bytes=10,
            )
            for filename in filenames
        ],
        notes_raw=body,
    )


def make_manifest(name: str = "acme.widget", version: str = "1.0.0", **extra) -> dict:
    manifest = {
        "name": name,
        "displayName": "Widget",
        "version": version,
        "description": "A widget",
        "category": "sandboxed",
        "permissions": ["files:read"],
    }
    manifest.update(extra)
    return manifest


class FakeStore:
    """In-memory ExtensionStore with the same atomicity guarantees."""

    def __init__(self):
        self._lock = threading.Lock()
        self.extensions: Dict[str, Extension] = {}
        self.versions: List[ExtensionVersion] = []
        self.submissions: Dict[str, ExtensionSubmission] = {}
        self.sync_logs: List[SyncLogEntry] = []

    @staticmethod
    def _new_id() -> str:
        return str(ObjectId())

    def add_extension(self, name: str, repository_url: str = "https://github.com/acme/widget", **fields) -> Extension:
        extension = Extension(
            id=self._new_id(),
            name=name,
            display_name=fields.pop("display_name", name),
            repository_url=repository_url,
            **fields,
        )
        self.extensions[extension.id] = extension
        return extension

    def add_version(self, extension: Extension, version: str, digest: str, days: int = 0) -> ExtensionVersion:
        record = ExtensionVersion(
            id=self._new_id(),
            extension_id=extension.id,
            version=version,
            artifact_digest=digest,
            artifact_size_bytes=10,
            artifact_url=f"https://example.invalid/{version}.bpx",
            published_at=BASE_TIME + timedelta(days=days),
        )
        self.versions.append(record)
        extension.latest_version = pick_latest(self.get_versions(extension.id))
        return record

    def add_submission(self, **fields) -> ExtensionSubmission:
        submission = ExtensionSubmission(
            id=self._new_id(),
            repository_url=fields.pop("repository_url", "https://github.com/acme/widget"),
            submitter_email=fields.pop("submitter_email", "dev@acme.test"),
            **fields,
        )
        self.submissions[submission.id] = submission
        return submission

    # ExtensionStore

    def get_extension_by_name(self, name):
        return next((e for e in self.extensions.values() if e.name == name), None)

    def list_sync_candidates(self):
        return sorted(
            (
                e
                for e in self.extensions.values()
                if e.published and not e.deprecated and e.repository_url
            ),
            key=lambda e: e.name,
        )

    def get_versions(self, extension_id):
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(
            (v for v in self.versions if v.extension_id == extension_id),
            key=lambda v: v.published_at or epoch,
            reverse=True,
        )

    def append_version(self, extension, version):
        with self._lock:
            if any(
                v.extension_id == version.extension_id and v.version == version.version
                for v in self.versions
            ):
                return False
            version.id = self._new_id()
            self.versions.append(version)
            self.extensions[extension.id].latest_version = pick_latest(
                self.get_versions(extension.id)
            )
            return True

    def mark_synced(self, extension_id, synced_at):
        self.extensions[extension_id].last_synced_at = synced_at

    def create_extension_with_first_version(self, extension, version, submission_id, decision):
        with self._lock:
            if self.get_extension_by_name(extension.name):
                raise NameCollision(f'An extension named "{extension.name}" already exists')
            submission = self.submissions.get(submission_id)
            if submission is None or not submission.is_pending:
                raise InvalidSubmissionState("Submission is no longer pending")

            extension.id = self._new_id()
            version.id = self._new_id()
            version.extension_id = extension.id
            self.extensions[extension.id] = extension
            self.versions.append(version)
            extension.latest_version = pick_latest([version])

            updated = submission.model_copy(update={**decision, "extension_id": extension.id})
            self.submissions[submission_id] = updated
            return extension, updated

    def get_submission(self, submission_id):
        return self.submissions.get(submission_id)

    def create_submission(self, submission):
        submission.id = self._new_id()
        self.submissions[submission.id] = submission
        return submission

    def find_pending_submission_by_repository(self, repository_url):
        return next(
            (
                s
                for s in self.submissions.values()
                if s.repository_url == repository_url and s.is_pending
            ),
            None,
        )

    def update_submission_decision(self, submission_id, decision):
        with self._lock:
            submission = self.submissions.get(submission_id)
            if submission is None or not submission.is_pending:
                return None
            updated = submission.model_copy(update=decision)
            self.submissions[submission_id] = updated
            return updated

    def list_submissions(self, status=None, search=None, skip=0, limit=20):
        items = [s for s in self.submissions.values() if not status or s.status == status]
        if search:
            needle = search.lower()
            items = [
                s
                for s in items
                if needle in s.repository_url.lower() or needle in s.submitter_email.lower()
            ]
        items.sort(key=lambda s: s.created_at, reverse=True)
        return items[skip : skip + limit], len(items)

    def count_pending_submissions(self):
        return sum(1 for s in self.submissions.values() if s.is_pending)

    def record_sync_log(self, entry):
        self.sync_logs.append(entry)
        return entry


class FakeGitHub:
    """Serves releases and manifests keyed by repository full name."""

    def __init__(self):
        self.releases: Dict[str, List[Release]] = {}
        self.manifests: Dict[tuple, object] = {}
        self.manifest_calls: List[tuple] = []

    def add_release(self, release: Release, manifest=None, repo: str = "acme/widget") -> None:
        self.releases.setdefault(repo, []).append(release)
        if manifest is not None:
            self.manifests[(repo, release.tag)] = manifest

    def list_releases(self, ref):
        return sort_newest_first(list(self.releases.get(ref.full_name, [])))

    def fetch_manifest(self, ref, tag):
        self.manifest_calls.append((ref.full_name, tag))
        value = self.manifests.get((ref.full_name, tag))
        if value is None:
            raise ManifestFetchFailed(f"extension.json not found in release {tag}")
        if isinstance(value, Exception):
            raise value
        return value

    def close(self):
        pass


class FakeArtifacts:
    """Hashes canned payloads; unknown URLs hash their own URL bytes."""

    def __init__(self):
        self.payloads: Dict[str, object] = {}
        self.fetched: List[str] = []

    def fetch(self, url: str) -> ArtifactDigest:
        self.fetched.append(url)
        payload = self.payloads.get(url, url.encode())
        if isinstance(payload, Exception):
            raise payload
        return ArtifactDigest(
            digest=format_digest(hashlib.sha256(payload).hexdigest()),
            size_bytes=len(payload),
        )

    @staticmethod
    def digest_of(url: str) -> str:
        return format_digest(hashlib.sha256(url.encode()).hexdigest())

    def close(self):
        pass


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def artifacts():
    return FakeArtifacts()


@pytest.fixture
def sync_service(store, github, artifacts):
    from extstore.services.sync_service import SyncService

    return SyncService(store, github=github, artifacts=artifacts, max_workers=2, budget_seconds=60)


@pytest.fixture
def submission_service(store, github, artifacts):
    from extstore.services.submission_service import SubmissionService

    return SubmissionService(store, github=github, artifacts=artifacts)


@pytest.fixture
def admin_headers(monkeypatch):
    from extstore.config import settings

    monkeypatch.setattr(settings, "ADMIN_API_KEY", "test-admin-key")
    return {"X-API-Key": "test-admin-key"}


@pytest.fixture
def client(store, github, artifacts):
    from fastapi.testclient import TestClient

    from extstore.api.deps import get_submission_service, get_sync_service
    from extstore.main import app
    from extstore.services.rate_limiter import InMemoryRateLimiter
    from extstore.services.submission_service import SubmissionService
    from extstore.services.sync_service import SyncService

    app.state.rate_limiter = InMemoryRateLimiter()
    app.dependency_overrides[get_sync_service] = lambda: SyncService(
        store, github=github, artifacts=artifacts
    )
    app.dependency_overrides[get_submission_service] = lambda: SubmissionService(
        store, github=github, artifacts=artifacts
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
