import pytest
from unittest.mock import AsyncMock
from pymongo.errors import OperationFailure

from mess_api.core.errors import ConflictError
from mess_api.db.session import UnitOfWork, run_in_unit_of_work


def write_conflict() -> OperationFailure:
    return OperationFailure(
        "WriteConflict error: this operation conflicted with another operation",
        code=112,
        details={"errorLabels": ["TransientTransactionError"]}
    )


@pytest.mark.asyncio
async def test_compensations_run_in_reverse_on_failure(mock_db, no_transactions):
    calls = []

    async def undo(name):
        calls.append(name)

    async def work(uow):
        assert not uow.transactional
        uow.on_rollback(lambda: undo("first"))
        uow.on_rollback(lambda: undo("second"))
        raise ValueError("boom")

    with pytest.raises(ValueError):
        await run_in_unit_of_work(mock_db, work)

    assert calls == ["second", "first"]


@pytest.mark.asyncio
async def test_compensations_skipped_on_success(mock_db, no_transactions):
    undo = AsyncMock()

    async def work(uow):
        uow.on_rollback(undo)
        return "done"

    assert await run_in_unit_of_work(mock_db, work) == "done"
    undo.assert_not_called()


@pytest.mark.asyncio
async def test_failing_compensation_does_not_stop_rollback():
    uow = UnitOfWork()
    later = AsyncMock()
    uow.on_rollback(later)
    uow.on_rollback(AsyncMock(side_effect=RuntimeError("store unavailable")))

    await uow.rollback()

    later.assert_awaited_once()


@pytest.mark.asyncio
async def test_transactional_unit_ignores_compensations(mock_db):
    undo = AsyncMock()

    async def work(uow):
        assert uow.transactional
        assert uow.session is mock_db.mock_session
        uow.on_rollback(undo)
        raise ValueError("boom")

    with pytest.raises(ValueError):
        await run_in_unit_of_work(mock_db, work)

    undo.assert_not_called()
    mock_db.mock_session.with_transaction.assert_awaited_once()


@pytest.mark.asyncio
async def test_transaction_returns_the_work_result(mock_db):
    async def work(uow):
        return uow.session

    assert await run_in_unit_of_work(mock_db, work) is mock_db.mock_session


@pytest.mark.asyncio
async def test_write_conflict_that_outlives_retries_is_a_conflict(mock_db):
    mock_db.mock_session.with_transaction.side_effect = write_conflict()

    with pytest.raises(ConflictError):
        await run_in_unit_of_work(mock_db, AsyncMock())


@pytest.mark.asyncio
async def test_non_transient_database_error_propagates(mock_db):
    failure = OperationFailure("not authorized", code=13)
    mock_db.mock_session.with_transaction.side_effect = failure

    with pytest.raises(OperationFailure) as exc_info:
        await run_in_unit_of_work(mock_db, AsyncMock())

    assert exc_info.value is failure
