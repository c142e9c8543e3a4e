import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from mess_api.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.MONGODB_DB)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    await db.users.create_index("email", unique=True)
    await db.users.create_index([("isActive", ASCENDING)])

    # One meal entry and one market entry per user per day. These are the
    # real duplicate guards; service-level existence checks only fail fast.
    await db.meals.create_index([("user", ASCENDING), ("date", ASCENDING)], unique=True)
    await db.meals.create_index([("date", DESCENDING)])

    await db.markets.create_index([("user", ASCENDING), ("date", ASCENDING)], unique=True)
    await db.markets.create_index([("date", DESCENDING)])

    await db.settlement_snapshots.create_index("user", unique=True)

