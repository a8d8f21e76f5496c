"""Tests for the stale-session sweeper and its Celery task."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.session_sweeper import SessionSweeper
from app.services.session_tracker import SessionTracker

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _utc(value: datetime | None) -> datetime | None:
    return value.replace(tzinfo=UTC) if value is not None and value.tzinfo is None else value


class TestSweep:
    """Tests for SessionSweeper.sweep()."""

    @pytest.mark.asyncio
    async def test_open_at_nine_minutes_closed_at_eleven(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        """No page views, no touch: the start time is the last activity."""
        await session_log_factory(session_id="s1", start_time=T0)
        sweeper = SessionSweeper(db_session)
        tracker = SessionTracker(db_session)

        result = await sweeper.sweep(now=T0 + timedelta(minutes=9))
        assert result.closed == 0
        assert await tracker.is_open("s1")

        result = await sweeper.sweep(now=T0 + timedelta(minutes=11))
        assert result.closed == 1
        session = await tracker.get("s1")
        assert session is not None
        assert _utc(session.end_time) == T0 + timedelta(minutes=11)
        # last_activity was never set, so it is backfilled
        assert _utc(session.last_activity) == T0

    @pytest.mark.asyncio
    async def test_recent_page_view_keeps_session_open(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
        page_view_factory: Callable[..., Any],
    ) -> None:
        """A page view newer than last_activity counts and is written back."""
        await session_log_factory(session_id="s1", start_time=T0, last_activity=T0)
        await page_view_factory(session_id="s1", timestamp=T0 + timedelta(minutes=8))

        result = await SessionSweeper(db_session).sweep(now=T0 + timedelta(minutes=15))

        assert result.closed == 0
        assert result.backfilled == 1
        session = await SessionTracker(db_session).get("s1")
        assert session is not None
        assert session.end_time is None
        assert _utc(session.last_activity) == T0 + timedelta(minutes=8)

    @pytest.mark.asyncio
    async def test_second_sweep_closes_nothing_new(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        await session_log_factory(session_id="s1", start_time=T0)
        sweeper = SessionSweeper(db_session)

        first = await sweeper.sweep(now=T0 + timedelta(minutes=30))
        second = await sweeper.sweep(now=T0 + timedelta(minutes=40))

        assert first.closed == 1
        assert second.closed == 0
        session = await SessionTracker(db_session).get("s1")
        assert session is not None
        assert _utc(session.end_time) == T0 + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_session_without_start_is_skipped(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        await session_log_factory(session_id="broken", no_start=True)
        await session_log_factory(session_id="stale", start_time=T0)

        result = await SessionSweeper(db_session).sweep(now=T0 + timedelta(hours=1))

        assert result.skipped == 1
        assert result.closed == 1
        assert await SessionTracker(db_session).is_open("broken")

    @pytest.mark.asyncio
    async def test_already_closed_sessions_ignored(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        ended = T0 + timedelta(minutes=2)
        await session_log_factory(session_id="done", start_time=T0, end_time=ended)

        result = await SessionSweeper(db_session).sweep(now=T0 + timedelta(hours=1))

        assert result.as_dict() == {"closed": 0, "backfilled": 0, "skipped": 0}
        session = await SessionTracker(db_session).get("done")
        assert session is not None
        assert _utc(session.end_time) == ended


class TestCloseStaleSessionsTask:
    """Tests for the Celery task wrapper."""

    @pytest.mark.asyncio
    async def test_task_runs_sweep(
        self,
        session_maker: Any,
        session_log_factory: Callable[..., Any],
    ) -> None:
        from app.workers.tasks.sessions import _close_stale_sessions_async

        await session_log_factory(session_id="s1", start_time=datetime.now(UTC) - timedelta(hours=2))

        with patch("app.workers.tasks.sessions.async_session_maker", session_maker):
            result = await _close_stale_sessions_async()

        assert result == {"closed": 1, "backfilled": 0, "skipped": 0}

    def test_task_is_registered_on_beat_schedule(self) -> None:
        from app.workers.celery_app import celery_app

        schedule = celery_app.conf.beat_schedule["close-stale-sessions"]
        assert schedule["task"] == "tasks.sessions.close_stale_sessions"
        assert schedule["schedule"] == 300.0
