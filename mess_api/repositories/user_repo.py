from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from mess_api.core.errors import ConflictError
from mess_api.models.user import User


class UserRepository:
    """User database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.users

    async def create_user(self, user: User) -> User:
        """Insert a new user."""
        try:
            await self.collection.insert_one(user.to_document())
        except DuplicateKeyError:
            raise ConflictError("Email already registered")
        return user

    async def get_user_by_id(self, user_id: ObjectId, session: Optional[AsyncIOMotorClientSession] = None) -> Optional[User]:
        """Get user by ID."""
        doc = await self.collection.find_one({"_id": user_id}, session=session)
        if doc:
            return User(**doc)
        return None

    async def email_taken(self, email: str, exclude_id: Optional[ObjectId] = None) -> bool:
        query: Dict[str, Any] = {"email": email.lower()}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return await self.collection.find_one(query, {"_id": 1}) is not None

    async def update_fields(
        self,
        user_id: ObjectId,
        fields: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[User]:
        """$set ``fields`` (stored key names) and return the updated user."""
        fields = {**fields, "updatedAt": datetime.now(timezone.utc)}
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": user_id},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
                session=session
            )
        except DuplicateKeyError:
            raise ConflictError("Email already in use")
        if doc:
            return User(**doc)
        return None

    async def list_users(self, query: Dict[str, Any], skip: int, limit: int) -> List[User]:
        cursor = self.collection.find(query).sort("createdAt", -1).skip(skip).limit(limit)
        docs = await cursor.to_list(limit)
        return [User(**doc) for doc in docs]

    async def count_users(self, query: Dict[str, Any]) -> int:
        return await self.collection.count_documents(query)

    # ===== AGGREGATE COUNTERS =====

    async def increment_aggregates(
        self,
        user_id: ObjectId,
        deltas: Dict[str, float],
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        """
        Atomically add ``deltas`` to the user's counters with $inc.

        Zero deltas are dropped; if nothing is left no write is issued.
        Returns False when the user does not exist.
        """
        deltas = {field: delta for field, delta in deltas.items() if delta}
        if not deltas:
            return True

        result = await self.collection.update_one(
            {"_id": user_id},
            {
                "$inc": deltas,
                "$set": {"updatedAt": datetime.now(timezone.utc)}
            },
            session=session
        )
        return result.matched_count > 0

    async def add_entry_ref(
        self,
        user_id: ObjectId,
        field: str,
        entry_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> None:
        await self.collection.update_one(
            {"_id": user_id},
            {"$addToSet": {field: entry_id}},
            session=session
        )

    async def remove_entry_ref(
        self,
        user_id: ObjectId,
        field: str,
        entry_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> None:
        await self.collection.update_one(
            {"_id": user_id},
            {"$pull": {field: entry_id}},
            session=session
        )

    # ===== GLOBAL AGGREGATES =====

    async def _sum(self, expression: Any) -> float:
        result = await self.collection.aggregate([
            {"$group": {"_id": None, "total": {"$sum": expression}}}
        ]).to_list(1)
        return result[0]["total"] if result else 0

    async def sum_market_amounts(self) -> float:
        """Sum of totalMarketAmount across all users."""
        return await self._sum("$totalMarketAmount")

    async def sum_meal_counts(self) -> int:
        """Sum of totalMeal across all users."""
        return await self._sum("$totalMeal")

    async def sum_guest_revenue(self) -> float:
        """Sum of guestMeal * chargePerGuestMeal, each user at their own rate."""
        return await self._sum({"$multiply": [
            {"$ifNull": ["$guestMeal", 0]},
            {"$ifNull": ["$chargePerGuestMeal", 0]}
        ]})

    # ===== CHARGES =====

    async def count_active_users(self) -> int:
        return await self.collection.count_documents({"isActive": True})

    async def set_field_for_users(self, query: Dict[str, Any], field: str, value: Any) -> int:
        """Bulk $set one field on every matching user. Returns modified count."""
        result = await self.collection.update_many(
            query,
            {"$set": {field: value, "updatedAt": datetime.now(timezone.utc)}}
        )
        return result.modified_count
