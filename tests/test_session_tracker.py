"""Tests for SessionTracker: start dedupe, explicit end and liveness refresh."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.session_log import SessionLog
from app.services.session_tracker import SessionTracker

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


async def _count_sessions(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(SessionLog))).scalar_one()


class TestStartSession:
    """Tests for SessionTracker.start_session()."""

    @pytest.mark.asyncio
    async def test_creates_open_session(self, db_session: AsyncSession) -> None:
        tracker = SessionTracker(db_session)
        session_id = await tracker.start_session(None, "198.51.100.1", "ua", now=T0)

        session = await tracker.get(session_id)
        assert session is not None
        assert session.end_time is None
        assert session.start_time is not None
        assert await tracker.is_open(session_id)

    @pytest.mark.asyncio
    async def test_duplicate_start_within_window_reuses_session(
        self, db_session: AsyncSession
    ) -> None:
        """Same identity, address and device 30s later gets the same id."""
        tracker = SessionTracker(db_session)
        first = await tracker.start_session(None, "198.51.100.1", "ua", now=T0)
        second = await tracker.start_session(
            None, "198.51.100.1", "ua", now=T0 + timedelta(seconds=30)
        )

        assert first == second
        assert await _count_sessions(db_session) == 1

    @pytest.mark.asyncio
    async def test_start_after_window_creates_new_session(self, db_session: AsyncSession) -> None:
        tracker = SessionTracker(db_session)
        first = await tracker.start_session(None, "198.51.100.1", "ua", now=T0)
        second = await tracker.start_session(
            None, "198.51.100.1", "ua", now=T0 + timedelta(minutes=3)
        )

        assert first != second
        assert await _count_sessions(db_session) == 2

    @pytest.mark.asyncio
    async def test_different_device_is_not_deduplicated(self, db_session: AsyncSession) -> None:
        tracker = SessionTracker(db_session)
        first = await tracker.start_session(None, "198.51.100.1", "ua-a", now=T0)
        second = await tracker.start_session(None, "198.51.100.1", "ua-b", now=T0)

        assert first != second

    @pytest.mark.asyncio
    async def test_closed_supplied_id_is_not_reopened(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        await session_log_factory(session_id="old", start_time=T0, end_time=T0 + timedelta(minutes=1))
        tracker = SessionTracker(db_session)

        new_id = await tracker.start_session(
            None, "198.51.100.9", "ua", session_id="old", now=T0 + timedelta(hours=1)
        )

        assert new_id != "old"
        assert not await tracker.is_open("old")


class TestEndSession:
    """Tests for SessionTracker.end_session()."""

    @pytest.mark.asyncio
    async def test_end_is_idempotent(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        await session_log_factory(session_id="s1", start_time=T0)
        tracker = SessionTracker(db_session)

        assert await tracker.end_session("s1", now=T0 + timedelta(minutes=5)) is True
        assert await tracker.end_session("s1", now=T0 + timedelta(minutes=9)) is False

        session = await tracker.get("s1")
        assert session is not None
        assert session.end_time is not None
        assert session.end_time.replace(tzinfo=UTC) == T0 + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_end_unknown_session_is_noop(self, db_session: AsyncSession) -> None:
        assert await SessionTracker(db_session).end_session("missing") is False


class TestTouch:
    """Tests for SessionTracker.touch()."""

    @pytest.mark.asyncio
    async def test_moves_last_activity_forward_only(
        self,
        db_session: AsyncSession,
        session_log_factory: Callable[..., Any],
    ) -> None:
        await session_log_factory(session_id="s1", start_time=T0)
        tracker = SessionTracker(db_session)

        await tracker.touch("s1", now=T0 + timedelta(minutes=5))
        await tracker.touch("s1", now=T0 + timedelta(minutes=2))

        session = await tracker.get("s1")
        assert session is not None
        assert session.last_activity is not None
        assert session.last_activity.replace(tzinfo=UTC) == T0 + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_upserts_missing_session(self, db_session: AsyncSession) -> None:
        tracker = SessionTracker(db_session)
        await tracker.touch("fresh", ip="198.51.100.1", device="ua", now=T0)

        session = await tracker.get("fresh")
        assert session is not None
        assert session.end_time is None
        assert session.start_time is not None

    @pytest.mark.asyncio
    async def test_without_upsert_missing_session_stays_missing(
        self, db_session: AsyncSession
    ) -> None:
        tracker = SessionTracker(db_session)
        await tracker.touch("ghost", upsert=False, now=T0)

        assert await tracker.get("ghost") is None
