"""
Extension store - the persistence boundary used by sync and review.

``ExtensionStore`` is the narrow interface the services depend on;
``MongoExtensionStore`` implements it over the repositories, wrapping every
multi-document write in a transaction so readers never observe a
half-imported version or a half-approved submission.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from extstore.database.mongo import get_transaction
from extstore.entities.extension import Extension
from extstore.entities.extension_submission import ExtensionSubmission
from extstore.entities.extension_version import ExtensionVersion
from extstore.entities.sync_log import SyncLogEntry
from extstore.repositories.extension import ExtensionRepository
from extstore.repositories.extension_submission import ExtensionSubmissionRepository
from extstore.repositories.extension_version import ExtensionVersionRepository
from extstore.repositories.sync_log import SyncLogRepository
from extstore.services.errors import DuplicateSubmission, InvalidSubmissionState, NameCollision
from extstore.services.release.versioning import pick_latest

logger = logging.getLogger(__name__)


@runtime_checkable
class ExtensionStore(Protocol):
    """Persistence operations consumed by SyncService and SubmissionService."""

    def get_extension_by_name(self, name: str) -> Optional[Extension]:
        ...

    def list_sync_candidates(self) -> List[Extension]:
        """Published, non-deprecated extensions with a repository URL."""
        ...

    def get_versions(self, extension_id: str) -> List[ExtensionVersion]:
        ...

    def append_version(self, extension: Extension, version: ExtensionVersion) -> bool:
        """
        Atomically insert a version and refresh the latest pointer.

        Returns False if the version already exists (e.g. a concurrent sync).
        """
        ...

    def mark_synced(self, extension_id: str, synced_at: datetime) -> None:
        ...

    def create_extension_with_first_version(
        self,
        extension: Extension,
        version: ExtensionVersion,
        submission_id: str,
        decision: Dict[str, Any],
    ) -> Tuple[Extension, ExtensionSubmission]:
        """
        Atomically create the extension, its first version and the approval.

        Raises NameCollision if the name is taken and InvalidSubmissionState
        if the submission is no longer pending; nothing is written then.
        """
        ...

    def get_submission(self, submission_id: str) -> Optional[ExtensionSubmission]:
        ...

    def create_submission(self, submission: ExtensionSubmission) -> ExtensionSubmission:
        ...

    def find_pending_submission_by_repository(
        self, repository_url: str
    ) -> Optional[ExtensionSubmission]:
        ...

    def update_submission_decision(
        self, submission_id: str, decision: Dict[str, Any]
    ) -> Optional[ExtensionSubmission]:
        """Apply a decision once; None if the submission was not pending."""
        ...

    def list_submissions(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ExtensionSubmission], int]:
        ...

    def count_pending_submissions(self) -> int:
        ...

    def record_sync_log(self, entry: SyncLogEntry) -> SyncLogEntry:
        ...


class MongoExtensionStore:
    """ExtensionStore backed by MongoDB (replica set required for transactions)."""

    def __init__(self, db: Database):
        self.db = db
        self.extensions = ExtensionRepository(db)
        self.versions = ExtensionVersionRepository(db)
        self.submissions = ExtensionSubmissionRepository(db)
        self.sync_log = SyncLogRepository(db)

    def get_extension_by_name(self, name: str) -> Optional[Extension]:
        return self.extensions.find_by_name(name)

    def list_sync_candidates(self) -> List[Extension]:
        return self.extensions.find_sync_candidates()

    def get_versions(self, extension_id: str) -> List[ExtensionVersion]:
        return self.versions.find_by_extension(extension_id)

    def _refresh_latest(self, extension_id: str, session: ClientSession) -> Optional[str]:
        latest = pick_latest(self.versions.find_by_extension(extension_id, session=session))
        self.extensions.set_latest_version(extension_id, latest, session=session)
        return latest

    def append_version(self, extension: Extension, version: ExtensionVersion) -> bool:
        try:
            with get_transaction(self.db.client) as session:
                self.versions.insert_one(version, session=session)
                self._refresh_latest(extension.id, session)
        except DuplicateKeyError:
            logger.info(
                f"Version {version.version} was added concurrently for {extension.name}"
            )
            return False
        return True

    def mark_synced(self, extension_id: str, synced_at: datetime) -> None:
        self.extensions.mark_synced(extension_id, synced_at)

    def create_extension_with_first_version(
        self,
        extension: Extension,
        version: ExtensionVersion,
        submission_id: str,
        decision: Dict[str, Any],
    ) -> Tuple[Extension, ExtensionSubmission]:
        try:
            with get_transaction(self.db.client) as session:
                if self.extensions.find_by_name(extension.name, session=session):
                    raise NameCollision(f'An extension named "{extension.name}" already exists')

                created = self.extensions.insert_one(extension, session=session)
                version.extension_id = created.id
                self.versions.insert_one(version, session=session)
                created.latest_version = self._refresh_latest(created.id, session)

                submission = self.submissions.decide(
                    submission_id,
                    {**decision, "extension_id": created.id},
                    session=session,
                )
                if submission is None:
                    raise InvalidSubmissionState(
                        "Submission was reviewed concurrently and can no longer be approved"
                    )
        except DuplicateKeyError as exc:
            raise NameCollision(
                f'An extension named "{extension.name}" already exists'
            ) from exc
        return created, submission

    def get_submission(self, submission_id: str) -> Optional[ExtensionSubmission]:
        return self.submissions.find_by_id(submission_id)

    def create_submission(self, submission: ExtensionSubmission) -> ExtensionSubmission:
        try:
            return self.submissions.insert_one(submission)
        except DuplicateKeyError as exc:
            raise DuplicateSubmission(
                "A submission for this repository is already pending review"
            ) from exc

    def find_pending_submission_by_repository(
        self, repository_url: str
    ) -> Optional[ExtensionSubmission]:
        return self.submissions.find_pending_by_repository(repository_url)

    def update_submission_decision(
        self, submission_id: str, decision: Dict[str, Any]
    ) -> Optional[ExtensionSubmission]:
        return self.submissions.decide(submission_id, decision)

    def list_submissions(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ExtensionSubmission], int]:
        return self.submissions.list_submissions(status, search, skip, limit)

    def count_pending_submissions(self) -> int:
        return self.submissions.count_pending()

    def record_sync_log(self, entry: SyncLogEntry) -> SyncLogEntry:
        return self.sync_log.insert_one(entry)
