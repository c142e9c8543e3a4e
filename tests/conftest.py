import asyncio
import copy
import os
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from fastapi.testclient import TestClient
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mess_api.core.auth import CurrentUser
from mess_api.core.config import settings
from mess_api.db.mongo import create_indexes
from mess_api.main import app
from mess_api.models.user import UserRole

# Test database configuration
TEST_MONGODB_URI = os.getenv("MONGODB_URI")
TEST_MONGODB_DB = "mess_test"


def make_collection() -> MagicMock:
    """Collection mock whose write methods report one matched document."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    collection.update_many = AsyncMock(return_value=MagicMock(matched_count=0, modified_count=0))
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.count_documents = AsyncMock(return_value=0)
    return collection


def make_cursor(docs) -> MagicMock:
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def mock_db():
    """Database mock with transaction support wired up."""
    db = MagicMock()
    db.users = make_collection()
    db.meals = make_collection()
    db.markets = make_collection()
    db.settlement_snapshots = make_collection()

    # Mock transaction session; with_transaction runs the callback once
    mock_session = MagicMock()

    async def run_transaction(callback, *args, **kwargs):
        return await callback(mock_session)

    mock_session.with_transaction = AsyncMock(side_effect=run_transaction)
    db.client.start_session = AsyncMock(return_value=MagicMock(
        __aenter__=AsyncMock(return_value=mock_session),
        __aexit__=AsyncMock(return_value=False)
    ))
    db.mock_session = mock_session
    return db


class MemoryCollection:
    """
    Small in-process stand-in for a Motor collection.

    Every call yields to the event loop before touching the documents, so
    concurrent service calls interleave between steps while each single
    document operation stays atomic, as it is on the server.
    """

    def __init__(self, unique=()):
        self.docs = []
        self.unique = unique

    def _find(self, query):
        for doc in self.docs:
            if all(_field_matches(doc.get(key), cond) for key, cond in query.items()):
                yield doc

    def _check_unique(self, candidate, ignore=None):
        for doc in self.docs:
            if doc is ignore:
                continue
            if self.unique and all(doc.get(key) == candidate.get(key) for key in self.unique):
                raise DuplicateKeyError("E11000 duplicate key error")

    async def find_one(self, query, projection=None, session=None):
        await asyncio.sleep(0)
        doc = next(self._find(query), None)
        return copy.deepcopy(doc) if doc else None

    async def insert_one(self, doc, session=None):
        await asyncio.sleep(0)
        self._check_unique(doc)
        self.docs.append(copy.deepcopy(doc))
        return MagicMock(inserted_id=doc["_id"])

    async def update_one(self, query, update, session=None):
        await asyncio.sleep(0)
        doc = next(self._find(query), None)
        if doc is None:
            return MagicMock(matched_count=0, modified_count=0)
        _apply_update(doc, update)
        return MagicMock(matched_count=1, modified_count=1)

    async def find_one_and_update(self, query, update, return_document=None, session=None):
        await asyncio.sleep(0)
        doc = next(self._find(query), None)
        if doc is None:
            return None
        changed = copy.deepcopy(doc)
        _apply_update(changed, update)
        self._check_unique(changed, ignore=doc)
        doc.clear()
        doc.update(changed)
        return copy.deepcopy(doc)

    async def delete_one(self, query, session=None):
        await asyncio.sleep(0)
        doc = next(self._find(query), None)
        if doc is None:
            return MagicMock(deleted_count=0)
        self.docs.remove(doc)
        return MagicMock(deleted_count=1)

    async def count_documents(self, query, session=None):
        await asyncio.sleep(0)
        return sum(1 for _ in self._find(query))


def _field_matches(value, cond):
    if isinstance(cond, dict) and "$ne" in cond:
        return value != cond["$ne"]
    return value == cond


def _apply_update(doc, update):
    for field, delta in update.get("$inc", {}).items():
        doc[field] = doc.get(field, 0) + delta
    for field, value in update.get("$set", {}).items():
        doc[field] = value
    for field, value in update.get("$addToSet", {}).items():
        refs = doc.setdefault(field, [])
        if value not in refs:
            refs.append(value)
    for field, value in update.get("$pull", {}).items():
        doc[field] = [ref for ref in doc.get(field, []) if ref != value]


@pytest.fixture
def memory_db(no_transactions):
    """
    In-memory database for interleaving tests. Meals and markets enforce the
    unique (user, date) index, users the unique email.
    """
    db = MagicMock()
    db.users = MemoryCollection(unique=("email",))
    db.meals = MemoryCollection(unique=("user", "date"))
    db.markets = MemoryCollection(unique=("user", "date"))
    return db


@pytest.fixture
def no_transactions(monkeypatch):
    """Run units of work with compensating rollbacks instead of transactions."""
    monkeypatch.setattr(settings, "MONGODB_TRANSACTIONS", False)


@pytest.fixture
def member() -> CurrentUser:
    return CurrentUser(id=ObjectId(), role=UserRole.USER)


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id=ObjectId(), role=UserRole.ADMIN)


@pytest.fixture
def client():
    """FastAPI test client. The lifespan is not entered, so no database is opened."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_db() -> AsyncIOMotorDatabase:
    """Real MongoDB database for integration tests; skipped without MONGODB_URI."""
    if not TEST_MONGODB_URI:
        pytest.skip("MONGODB_URI not set")

    client = AsyncIOMotorClient(TEST_MONGODB_URI, tz_aware=True)
    db = client[TEST_MONGODB_DB]

    # Drop database before test to ensure clean state
    await client.drop_database(TEST_MONGODB_DB)
    await create_indexes(db)

    yield db

    await client.drop_database(TEST_MONGODB_DB)
    client.close()


@pytest.fixture
def cursor_factory():
    """Factory for find()/aggregate() cursor mocks returning ``docs``."""
    return make_cursor
