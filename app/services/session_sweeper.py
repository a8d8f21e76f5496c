"""Periodic reconciliation of session rows against observed activity.

Closes sessions that went quiet without an explicit end, and pulls
``last_activity`` forward for open sessions whose latest page view is newer
than the stored value.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.events import PageViewLog
from app.models.session_log import SessionLog
from app.services.date_range import as_utc

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    closed: int = 0
    backfilled: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"closed": self.closed, "backfilled": self.backfilled, "skipped": self.skipped}


class SessionSweeper:
    """Closes stale sessions. Safe to run concurrently with request traffic."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Run one reconciliation pass over every open session.

        A session is stale when its effective last activity (the newest of
        ``last_activity``, its latest page view and ``start_time``) is older
        than the inactivity window. Running the pass twice closes nothing
        new.
        """
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(minutes=settings.session_inactivity_minutes)
        result = SweepResult()

        latest_view = (
            select(PageViewLog.session_id, func.max(PageViewLog.timestamp).label("latest"))
            .group_by(PageViewLog.session_id)
            .subquery()
        )
        stmt = (
            select(
                SessionLog.session_id,
                SessionLog.start_time,
                SessionLog.last_activity,
                latest_view.c.latest,
            )
            .outerjoin(latest_view, latest_view.c.session_id == SessionLog.session_id)
            .where(SessionLog.end_time.is_(None))
        )
        rows = (await self.db.execute(stmt)).all()

        for row in rows:
            if row.start_time is None:
                logger.warning("Skipping session %s with no start time", row.session_id)
                result.skipped += 1
                continue

            candidates = [as_utc(row.start_time)]
            if row.last_activity is not None:
                candidates.append(as_utc(row.last_activity))
            if row.latest is not None:
                candidates.append(as_utc(row.latest))
            effective = max(candidates)

            if effective < cutoff:
                if await self._close(row.session_id, now, effective, row.last_activity is None):
                    result.closed += 1
            elif row.latest is not None and (
                row.last_activity is None or as_utc(row.latest) > as_utc(row.last_activity)
            ):
                await self._advance(row.session_id, as_utc(row.latest))
                result.backfilled += 1

        await self.db.commit()
        if result.closed or result.skipped:
            logger.info(
                "Session sweep closed %d, backfilled %d, skipped %d",
                result.closed,
                result.backfilled,
                result.skipped,
            )
        return result

    async def _close(
        self, session_id: str, now: datetime, effective: datetime, backfill: bool
    ) -> bool:
        values: dict[str, datetime] = {"end_time": now}
        if backfill:
            values["last_activity"] = effective
        stmt = (
            update(SessionLog)
            .where(SessionLog.session_id == session_id, SessionLog.end_time.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        closed = bool((await self.db.execute(stmt)).rowcount)
        if closed:
            logger.info("Closed inactive session %s", session_id)
        return closed

    async def _advance(self, session_id: str, seen_at: datetime) -> None:
        stmt = (
            update(SessionLog)
            .where(
                SessionLog.session_id == session_id,
                SessionLog.end_time.is_(None),
                or_(SessionLog.last_activity.is_(None), SessionLog.last_activity < seen_at),
            )
            .values(last_activity=seen_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
