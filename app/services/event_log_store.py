"""Append-only storage for analytics event logs."""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.events import CartActionLog, CheckoutEventLog, PageViewLog, SecurityLog
from app.schemas.events import (
    CartActionRecord,
    CheckoutRecord,
    EventKind,
    EventRecord,
    PageViewRecord,
    SecurityRecord,
)

logger = logging.getLogger(__name__)

EventRow = PageViewLog | CartActionLog | CheckoutEventLog | SecurityLog

MODEL_BY_KIND: dict[str, type[EventRow]] = {
    "page_view": PageViewLog,
    "cart_action": CartActionLog,
    "checkout": CheckoutEventLog,
    "security": SecurityLog,
}

_record_adapter: TypeAdapter[EventRecord] = TypeAdapter(EventRecord)


class EventValidationError(ValueError):
    """An event is missing a required field or has a malformed one."""


class EventLogStore:
    """Writes and reads the four event logs.

    There is no update or delete: rows are immutable once appended.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def append(
        self,
        record: PageViewRecord | CartActionRecord | CheckoutRecord | SecurityRecord,
        *,
        commit: bool = True,
    ) -> EventRow:
        """Append a validated record; the timestamp defaults to now."""
        model = MODEL_BY_KIND[record.kind]
        values = record.model_dump(exclude={"kind"})
        if values.get("timestamp") is None:
            values["timestamp"] = datetime.now(UTC)
        if record.kind == "page_view" and values.get("referrer") is None:
            values["referrer"] = ""

        row = model(**values)
        self.db.add(row)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        return row

    async def append_raw(
        self, kind: EventKind, data: Mapping[str, Any], *, commit: bool = True
    ) -> EventRow:
        """Validate a loose payload against the kind's record type, then append.

        Raises:
            EventValidationError: If a required field (session id, page,
                product, action) is missing or malformed.
        """
        try:
            record = _record_adapter.validate_python({**data, "kind": kind})
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"][1:]) for err in e.errors()})
            raise EventValidationError(f"Invalid {kind} event: {', '.join(fields)}") from e
        return await self.append(record, commit=commit)

    async def query_by_time_range(
        self,
        kind: EventKind,
        start: datetime | None = None,
        end: datetime | None = None,
        **filters: Any,
    ) -> list[EventRow]:
        """Fetch events with ``start <= timestamp < end`` ordered by timestamp.

        Extra keyword filters are equality matches on columns; a list or tuple
        value becomes an IN match.
        """
        model = MODEL_BY_KIND[kind]
        stmt = select(model)
        if start is not None:
            stmt = stmt.where(model.timestamp >= start)
        if end is not None:
            stmt = stmt.where(model.timestamp < end)
        for name, value in filters.items():
            column = getattr(model, name)
            if isinstance(value, list | tuple | set):
                stmt = stmt.where(column.in_(list(value)))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == value)
        stmt = stmt.order_by(model.timestamp)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())
