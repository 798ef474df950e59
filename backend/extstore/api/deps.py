"""Service providers shared by the routers."""

from typing import Iterator

from fastapi import Depends
from pymongo.database import Database

from extstore.database.mongo import get_db
from extstore.services.store import ExtensionStore, MongoExtensionStore
from extstore.services.submission_service import SubmissionService
from extstore.services.sync_service import SyncService


def get_store(db: Database = Depends(get_db)) -> ExtensionStore:
    return MongoExtensionStore(db)


def get_sync_service(store: ExtensionStore = Depends(get_store)) -> Iterator[SyncService]:
    service = SyncService(store)
    try:
        yield service
    finally:
        service.close()


def get_submission_service(
    store: ExtensionStore = Depends(get_store),
) -> Iterator[SubmissionService]:
    service = SubmissionService(store)
    try:
        yield service
    finally:
        service.close()
