"""Database index management for MongoDB collections."""

import logging
from typing import Any, List, Tuple

from pymongo.database import Database
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)


def ensure_indexes(db: Database) -> None:
    """
    Ensure all required indexes exist.

    Called on application startup. The unique indexes back the store's
    integrity rules: one extension per name, one record per
    (extension, version) and one pending submission per repository.
    """
    _create(db.extensions, [("name", 1)], "extension_name_unique", unique=True)
    _create(
        db.extensions,
        [("published", 1), ("deprecated", 1)],
        "extension_sync_eligibility_idx",
    )
    _create(
        db.extension_versions,
        [("extension_id", 1), ("version", 1)],
        "extension_version_unique",
        unique=True,
    )
    _create(
        db.extension_versions,
        [("extension_id", 1), ("published_at", -1)],
        "extension_version_published_idx",
    )
    _create(
        db.extension_submissions,
        [("status", 1), ("created_at", -1)],
        "submission_status_created_idx",
    )
    # At most one pending submission per repository
    _create(
        db.extension_submissions,
        [("repository_url", 1)],
        "submission_pending_repository_unique",
        unique=True,
        partialFilterExpression={"status": "pending"},
    )
    _create(db.extension_sync_log, [("started_at", -1)], "sync_log_started_idx")
    logger.info("Database indexes ensured successfully")


def _create(
    collection,
    keys: List[Tuple[str, int]],
    name: str,
    unique: bool = False,
    **options: Any,
) -> None:
    try:
        collection.create_index(keys, unique=unique, background=True, name=name, **options)
        logger.debug(f"Created index: {name}")
    except OperationFailure as e:
        # Index may already exist with different options
        if "already exists" not in str(e):
            logger.warning(f"Failed to create {name} index: {e}")
