"""Fire-and-forget helpers for side effects that must not fail a request."""

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage collected mid-flight.
_pending: Set[asyncio.Task] = set()


def fire_and_forget(awaitable: Awaitable, what: str) -> asyncio.Task:
    """Schedule ``awaitable``; its failure is logged and never re-raised."""

    async def _runner():
        try:
            await awaitable
        except Exception:
            logger.warning("Background task failed: %s", what, exc_info=True)

    task = asyncio.ensure_future(_runner())
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task
