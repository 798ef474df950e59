from __future__ import annotations

"""Base repository pattern for MongoDB operations"""

from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from extstore.entities.base import BaseEntity
from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(ABC, Generic[T]):
    """Base repository providing common CRUD operations for MongoDB collections"""

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection: Collection = db[collection_name]
        self.model_class = model_class

    def find_by_id(
        self, entity_id: str | ObjectId, session: Optional[ClientSession] = None
    ) -> Optional[T]:
        """Find a document by its ID"""
        identifier = self._to_object_id(entity_id)
        if identifier is None:
            return None
        doc = self.collection.find_one({"_id": identifier}, session=session)
        return self._to_model(doc)

    def find_one(
        self, query: Dict[str, Any], session: Optional[ClientSession] = None
    ) -> Optional[T]:
        """Find a single document matching the query"""
        doc = self.collection.find_one(query, session=session)
        return self._to_model(doc)

    def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
        session: Optional[ClientSession] = None,
    ) -> List[T]:
        """Find multiple documents matching the query"""
        cursor = self.collection.find(query, session=session)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_model(doc) for doc in cursor if doc]

    def paginate(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> tuple[List[T], int]:
        """Return paginated results plus total count for the query."""
        items = self.find_many(query, sort=sort, skip=skip, limit=limit)
        total = self.count(query)
        return items, total

    def insert_one(self, document: T, session: Optional[ClientSession] = None) -> T:
        """Insert a single entity and return it with its new ID"""
        doc_dict = document.to_mongo()
        result = self.collection.insert_one(doc_dict, session=session)
        doc_dict["_id"] = result.inserted_id
        return self._to_model(doc_dict)

    def count(self, query: Dict[str, Any] = None) -> int:
        """Count documents matching the query"""
        if query is None:
            query = {}
        return self.collection.count_documents(query)

    def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        session: Optional[ClientSession] = None,
    ) -> Optional[T]:
        """
        Atomically find and update a document.

        Returns:
            The updated document, or None when nothing matched the query
        """
        doc = self.collection.find_one_and_update(
            query,
            update,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return self._to_model(doc)

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        """Convert a dictionary to a model instance"""
        if not doc:
            return None
        return self.model_class.model_validate(doc)

    @staticmethod
    def _to_object_id(value: str | ObjectId | None) -> ObjectId | None:
        """Convert a string ID to ObjectId"""
        if value is None:
            return None
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str):
            try:
                return ObjectId(value)
            except (InvalidId, TypeError):
                return None
        return None
