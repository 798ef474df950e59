"""Scheduled release sync."""

import logging

from extstore.celery_app import celery_app
from extstore.services.store import MongoExtensionStore
from extstore.services.sync_service import SyncService
from extstore.tasks.base import StoreTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=StoreTask,
    name="extstore.tasks.sync.sync_all_extensions",
    queue="sync",
)
def sync_all_extensions(self, triggered_by: str = "schedule") -> dict:
    """
    Sync every published extension.

    Run hourly via Celery beat. Failures are recorded per extension in the
    result and the sync log; the task itself only fails on infrastructure
    errors (e.g. MongoDB unavailable).
    """
    service = SyncService(MongoExtensionStore(self.db))
    try:
        result = service.sync_all(triggered_by=triggered_by)
    finally:
        service.close()

    logger.info(
        f"Scheduled sync: {result.succeeded}/{result.total} succeeded, "
        f"{result.failed} failed, {result.skipped} skipped"
    )
    return result.model_dump(mode="json")
