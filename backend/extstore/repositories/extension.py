"""Extension repository for database operations"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pymongo.client_session import ClientSession
from pymongo.database import Database

from extstore.entities.extension import Extension

from .base import BaseRepository


class ExtensionRepository(BaseRepository[Extension]):
    COLLECTION_NAME = "extensions"

    def __init__(self, db: Database):
        super().__init__(db, self.COLLECTION_NAME, Extension)

    def find_by_name(
        self, name: str, session: Optional[ClientSession] = None
    ) -> Optional[Extension]:
        return self.find_one({"name": name}, session=session)

    def find_sync_candidates(self) -> List[Extension]:
        """Published, non-deprecated extensions that have a repository URL."""
        return self.find_many(
            {
                "published": True,
                "deprecated": {"$ne": True},
                "repository_url": {"$nin": [None, ""]},
            },
            sort=[("name", 1)],
        )

    def set_latest_version(
        self,
        extension_id: str,
        version: Optional[str],
        session: Optional[ClientSession] = None,
    ) -> None:
        self.collection.update_one(
            {"_id": self._to_object_id(extension_id)},
            {
                "$set": {
                    "latest_version": version,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
            session=session,
        )

    def mark_synced(self, extension_id: str, synced_at: datetime) -> None:
        self.collection.update_one(
            {"_id": self._to_object_id(extension_id)},
            {"$set": {"last_synced_at": synced_at}},
        )
