"""Celery tasks for session housekeeping."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from app.core.database import async_session_maker, engine
from app.services.session_sweeper import SessionSweeper
from app.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a fresh event loop, disposing DB connections after.

    asyncpg connections are bound to the loop that created them, so pooled
    connections from a previous task's loop must not be reused.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(engine.dispose())
        loop.close()


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.sessions.close_stale_sessions",
    base=BaseTask,
    bind=True,
)
def close_stale_sessions(self: BaseTask) -> dict[str, int]:  # noqa: ARG001
    """Periodic task: close sessions idle past the inactivity window."""
    return _run_async(_close_stale_sessions_async())


async def _close_stale_sessions_async() -> dict[str, int]:
    """Async implementation of the stale-session sweep."""
    async with async_session_maker() as session:
        result = await SessionSweeper(session).sweep()
    return result.as_dict()
