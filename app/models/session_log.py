"""SessionLog model for browsing session lifecycle."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class SessionLog(Base):
    """A bounded span of browsing activity, independent of login state.

    Opened on first activity (or an explicit start call), refreshed on every
    tracked request via ``last_activity``, and closed either explicitly or by
    the stale-session sweeper. A session is live while ``end_time`` is unset
    and ``last_activity`` (or ``start_time``) is inside the inactivity window.
    """

    __tablename__ = "session_logs"
    __table_args__ = (
        Index("ix_session_logs_open_start", "end_time", "start_time"),
    )

    session_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Nullable so rows with a missing start can be detected and skipped by the
    # sweeper; the tracker always sets it.
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def __repr__(self) -> str:
        state = "open" if self.end_time is None else "closed"
        return f"<SessionLog {self.session_id} ({state})>"
