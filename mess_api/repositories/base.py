"""
Shared data access for per-day ledger entries (meals and markets).

Both collections carry a unique (user, date) index. Any write that trips it
is reported as a ConflictError so a concurrent double submit surfaces the
same way as the service-level existence check.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from mess_api.core.errors import ConflictError
from mess_api.models.base import MongoModel
from mess_api.schemas.common import Page

EntryType = TypeVar("EntryType", bound=MongoModel)


class EntryRepository(Generic[EntryType]):
    """Base repository for documents keyed by (user, date)."""

    collection_name: str = ""
    model: Type[EntryType]
    duplicate_message: str = "An entry already exists for this date"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = getattr(db, self.collection_name)

    async def insert(self, entry: EntryType, session: Optional[AsyncIOMotorClientSession] = None) -> EntryType:
        try:
            await self.collection.insert_one(entry.to_document(), session=session)
        except DuplicateKeyError:
            raise ConflictError(self.duplicate_message)
        return entry

    async def get_by_id(self, entry_id: ObjectId, session: Optional[AsyncIOMotorClientSession] = None) -> Optional[EntryType]:
        doc = await self.collection.find_one({"_id": entry_id}, session=session)
        if doc:
            return self.model(**doc)
        return None

    async def exists_for_date(
        self,
        user_id: ObjectId,
        date: datetime,
        exclude_id: Optional[ObjectId] = None,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        query: Dict[str, Any] = {"user": user_id, "date": date}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        doc = await self.collection.find_one(query, {"_id": 1}, session=session)
        return doc is not None

    async def update_fields(
        self,
        entry_id: ObjectId,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[EntryType]:
        """
        $set ``fields`` and return the updated entry.

        ``expected`` holds stored values the entry must still have; None is
        returned when the entry is gone or no longer matches them.
        """
        fields = {**fields, "updatedAt": datetime.now(timezone.utc)}
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": entry_id, **(expected or {})},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
                session=session
            )
        except DuplicateKeyError:
            raise ConflictError(self.duplicate_message)
        if doc:
            return self.model(**doc)
        return None

    async def delete(
        self,
        entry_id: ObjectId,
        expected: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        result = await self.collection.delete_one({"_id": entry_id, **(expected or {})}, session=session)
        return result.deleted_count > 0

    async def query(
        self,
        filters: Dict[str, Any],
        sort: Tuple[str, int],
        skip: int,
        limit: int
    ) -> List[EntryType]:
        field, direction = sort
        cursor = (
            self.collection.find(filters)
            .sort([(field, direction), ("_id", direction)])
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(limit)
        return [self.model(**doc) for doc in docs]

    async def count(self, filters: Dict[str, Any]) -> int:
        return await self.collection.count_documents(filters)

    async def paginate(
        self,
        filters: Dict[str, Any],
        sort: Tuple[str, int],
        page: int,
        limit: int
    ) -> Page[EntryType]:
        """1-indexed page of entries plus totals."""
        total = await self.count(filters)
        results = await self.query(filters, sort, skip=(page - 1) * limit, limit=limit)
        return Page[self.model](
            results=results,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
            total_results=total
        )
