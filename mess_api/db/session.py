"""
Database access and the unit of work used by ledger mutations.

A ledger mutation always touches two documents: the entry and the owner's
aggregate counters. ``run_in_unit_of_work`` groups those writes. With
transactions enabled the work runs through ``session.with_transaction``,
which retries transient write conflicts and commits or aborts everything
together. Without transactions (standalone servers) each step registers a
compensating action that is replayed in reverse order if the work raises.

The work callable may run more than once, so it must read what it needs
through the unit of work it is given.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from mess_api.core.config import settings
from mess_api.core.errors import ConflictError
from mess_api.db.mongo import mongodb

logger = logging.getLogger(__name__)

TRANSIENT_TRANSACTION_ERROR = "TransientTransactionError"

Compensation = Callable[[], Awaitable[object]]
T = TypeVar("T")


async def get_database() -> AsyncIOMotorDatabase:
    """Return the active database connection."""
    return mongodb.db


class UnitOfWork:
    """Handle passed to repository calls that must commit together."""

    def __init__(self, session: Optional[AsyncIOMotorClientSession] = None):
        self.session = session
        self._compensations: List[Compensation] = []

    @property
    def transactional(self) -> bool:
        return self.session is not None

    def on_rollback(self, compensation: Compensation) -> None:
        """Register an undo step. Ignored inside a real transaction."""
        if not self.transactional:
            self._compensations.append(compensation)

    async def rollback(self) -> None:
        while self._compensations:
            compensation = self._compensations.pop()
            try:
                await compensation()
            except Exception:
                # Keep unwinding; the caller sees the first error.
                logger.exception("Compensating write failed during rollback")


async def run_in_unit_of_work(db: AsyncIOMotorDatabase, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
    """Run ``work`` so that all of its writes apply together or not at all."""
    if settings.MONGODB_TRANSACTIONS:
        return await _run_in_transaction(db, work)

    uow = UnitOfWork()
    try:
        return await work(uow)
    except BaseException:
        await uow.rollback()
        raise


async def _run_in_transaction(db: AsyncIOMotorDatabase, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
    async def txn(session: AsyncIOMotorClientSession) -> T:
        return await work(UnitOfWork(session=session))

    async with await db.client.start_session() as session:
        try:
            return await session.with_transaction(txn)
        except PyMongoError as exc:
            # Only reached once with_transaction has stopped retrying.
            if exc.has_error_label(TRANSIENT_TRANSACTION_ERROR):
                logger.warning("Transaction gave up after write conflicts: %s", exc)
                raise ConflictError("The record is being changed by another request, please retry")
            raise
