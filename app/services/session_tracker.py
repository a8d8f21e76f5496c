"""Session lifecycle: start, liveness refresh, and explicit end."""

import logging
import uuid
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.session_log import SessionLog

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """Generate a new opaque session identifier."""
    return str(uuid.uuid4())


def _match(column, value):  # type: ignore[no-untyped-def]
    return column.is_(None) if value is None else column == value


class SessionTracker:
    """Opens, refreshes and closes browsing sessions.

    All writes are single-row conditional statements; concurrent callers rely
    on per-row atomicity rather than locks.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, session_id: str) -> SessionLog | None:
        stmt = (
            select(SessionLog)
            .where(SessionLog.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def is_open(self, session_id: str) -> bool:
        """True if the session exists and has not been ended."""
        session = await self.get(session_id)
        return session is not None and session.end_time is None

    async def start_session(
        self,
        user_id: UUID | None,
        ip: str | None,
        device: str | None,
        *,
        session_id: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Return the id of an open session for this visitor, creating one if needed.

        A duplicate start from the same identity, address and device within
        the dedupe window returns the session already opened. A supplied
        ``session_id`` is honoured when it is unused or still open.
        """
        now = now or datetime.now(UTC)
        window_start = now - timedelta(seconds=settings.session_dedupe_seconds)

        stmt = (
            select(SessionLog.session_id)
            .where(
                _match(SessionLog.user_id, user_id),
                _match(SessionLog.ip, ip),
                _match(SessionLog.device, device),
                SessionLog.end_time.is_(None),
                SessionLog.start_time >= window_start,
            )
            .order_by(SessionLog.start_time.desc())
            .limit(1)
        )
        existing = (await self.db.execute(stmt)).scalar_one_or_none()
        if existing:
            logger.info("Reusing recent session %s", existing)
            return existing

        if session_id:
            current = await self.get(session_id)
            if current is not None and current.end_time is None:
                return session_id
            if current is not None:
                # Closed ids are never reopened
                session_id = None

        new_id = session_id or generate_session_id()
        self.db.add(
            SessionLog(
                session_id=new_id,
                user_id=user_id,
                ip=ip,
                device=device,
                start_time=now,
            )
        )
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request opened the same id first
            await self.db.rollback()
            logger.info("Session %s already created concurrently", new_id)
            return new_id

        logger.info("Started session %s", new_id)
        return new_id

    async def end_session(self, session_id: str, *, now: datetime | None = None) -> bool:
        """Close an open session. Missing or already-closed sessions are a no-op."""
        now = now or datetime.now(UTC)
        stmt = (
            update(SessionLog)
            .where(SessionLog.session_id == session_id, SessionLog.end_time.is_(None))
            .values(end_time=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        ended = bool(result.rowcount)
        if ended:
            logger.info("Session ended: %s", session_id)
        else:
            logger.info("No active session to end for %s", session_id)
        return ended

    async def touch(
        self,
        session_id: str,
        *,
        upsert: bool = True,
        user_id: UUID | None = None,
        ip: str | None = None,
        device: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Move ``last_activity`` forward to now.

        With ``upsert`` a missing row is created as an open session so events
        arriving before the explicit start still have a session to belong to.
        """
        now = now or datetime.now(UTC)
        stmt = (
            update(SessionLog)
            .where(
                SessionLog.session_id == session_id,
                or_(SessionLog.last_activity.is_(None), SessionLog.last_activity < now),
            )
            .values(last_activity=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount or not upsert:
            await self.db.commit()
            return

        if await self.get(session_id) is not None:
            # Row exists with a newer last_activity already
            await self.db.commit()
            return

        self.db.add(
            SessionLog(
                session_id=session_id,
                user_id=user_id,
                ip=ip,
                device=device,
                start_time=now,
                last_activity=now,
            )
        )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            await self.db.execute(stmt)
            await self.db.commit()
