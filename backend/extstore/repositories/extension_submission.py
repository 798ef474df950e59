"""ExtensionSubmission Repository - intake and guarded review decisions."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo.client_session import ClientSession
from pymongo.database import Database

from extstore.entities.enums import SubmissionStatus
from extstore.entities.extension_submission import ExtensionSubmission
from extstore.repositories.base import BaseRepository


class ExtensionSubmissionRepository(BaseRepository[ExtensionSubmission]):
    COLLECTION_NAME = "extension_submissions"

    def __init__(self, db: Database):
        super().__init__(db, self.COLLECTION_NAME, ExtensionSubmission)

    def find_pending_by_repository(self, repository_url: str) -> Optional[ExtensionSubmission]:
        return self.find_one(
            {"repository_url": repository_url, "status": SubmissionStatus.PENDING.value}
        )

    def decide(
        self,
        submission_id: str,
        decision: Dict[str, Any],
        session: Optional[ClientSession] = None,
    ) -> Optional[ExtensionSubmission]:
        """
        Apply a review decision only if the submission is still pending.

        Returns None when the submission was not pending (already decided or
        missing), so a decision is never overwritten.
        """
        identifier = self._to_object_id(submission_id)
        if identifier is None:
            return None
        updates = {**decision, "updated_at": datetime.now(timezone.utc)}
        return self.find_one_and_update(
            {"_id": identifier, "status": SubmissionStatus.PENDING.value},
            {"$set": updates},
            session=session,
        )

    def list_submissions(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[List[ExtensionSubmission], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {"display_name": {"$regex": pattern, "$options": "i"}},
                {"name": {"$regex": pattern, "$options": "i"}},
                {"submitter_email": {"$regex": pattern, "$options": "i"}},
                {"repository_url": {"$regex": pattern, "$options": "i"}},
            ]
        return self.paginate(query, sort=[("created_at", -1)], skip=skip, limit=limit)

    def count_pending(self) -> int:
        return self.count({"status": SubmissionStatus.PENDING.value})
