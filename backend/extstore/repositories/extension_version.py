"""ExtensionVersion Repository - append-only version records."""

from __future__ import annotations

import logging
from typing import List, Optional

from pymongo.client_session import ClientSession
from pymongo.database import Database

from extstore.entities.extension_version import ExtensionVersion
from extstore.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ExtensionVersionRepository(BaseRepository[ExtensionVersion]):
    """Repository for ExtensionVersion entities. There is no update path."""

    COLLECTION_NAME = "extension_versions"

    def __init__(self, db: Database):
        super().__init__(db, self.COLLECTION_NAME, ExtensionVersion)

    def find_by_extension(
        self, extension_id: str, session: Optional[ClientSession] = None
    ) -> List[ExtensionVersion]:
        """All versions of an extension, newest publication first."""
        return self.find_many(
            {"extension_id": extension_id},
            sort=[("published_at", -1)],
            session=session,
        )
