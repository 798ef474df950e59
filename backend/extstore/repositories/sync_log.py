"""Bulk sync run history."""

from __future__ import annotations

from pymongo.database import Database

from extstore.entities.sync_log import SyncLogEntry
from extstore.repositories.base import BaseRepository


class SyncLogRepository(BaseRepository[SyncLogEntry]):
    COLLECTION_NAME = "extension_sync_log"

    def __init__(self, db: Database):
        super().__init__(db, self.COLLECTION_NAME, SyncLogEntry)
