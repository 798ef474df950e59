from __future__ import annotations

"""
MongoDB connection helpers.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from pymongo import MongoClient
from pymongo.client_session import ClientSession
from pymongo.database import Database

from extstore.config import settings

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(settings.MONGODB_URI, tz_aware=True)
    return _client


def get_database() -> Database:
    client = get_client()
    return client[settings.MONGODB_DB_NAME]


def get_db():
    db = get_database()
    try:
        yield db
    finally:
        # PyMongo manages connection pooling automatically; nothing to close here.
        pass


@contextmanager
def get_transaction(client: Optional[MongoClient] = None) -> Generator[ClientSession, None, None]:
    """
    Transaction helper for writes spanning several collections.

    Everything executed with the yielded session is committed together, or
    rolled back if the block raises.

    Usage:
        with get_transaction(db.client) as session:
            versions.collection.insert_one(doc, session=session)
            extensions.collection.update_one(q, u, session=session)

    Note:
        Requires MongoDB Replica Set. Will fail on standalone MongoDB.
    """
    client = client or get_client()
    with client.start_session() as session:
        with session.start_transaction():
            yield session
