"""Inclusive calendar-day ranges for dashboard queries."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from app.core.config import settings


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_query_date(value: str | None) -> date | None:
    """Parse a ``startDate``/``endDate`` query value.

    Accepts plain ISO dates and ISO datetimes (only the date part is used).

    Raises:
        ValueError: If the value is not an ISO date.
    """
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip()[:10])


@dataclass(frozen=True)
class DateRange:
    """Closed range of calendar days in the analytics timezone."""

    start: date
    end: date
    tz: ZoneInfo

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("startDate must not be after endDate")

    @classmethod
    def from_query(
        cls,
        start: date | None = None,
        end: date | None = None,
        *,
        today: date | None = None,
        tz_name: str | None = None,
        default_days: int | None = None,
    ) -> "DateRange":
        """Build a range from optional bounds, defaulting to the trailing window.

        The default window ends today and spans ``default_days`` days including
        today (today minus 29 days for the usual 30).
        """
        tz = ZoneInfo(tz_name or settings.analytics_timezone)
        days = default_days or settings.analytics_default_days
        if today is None:
            today = datetime.now(tz).date()
        end = end or today
        start = start or end - timedelta(days=days - 1)
        return cls(start=start, end=end, tz=tz)

    @property
    def start_at(self) -> datetime:
        """Inclusive lower bound, in UTC."""
        return datetime.combine(self.start, time.min, tzinfo=self.tz).astimezone(UTC)

    @property
    def end_at(self) -> datetime:
        """Exclusive upper bound (midnight after the last day), in UTC."""
        next_day = self.end + timedelta(days=1)
        return datetime.combine(next_day, time.min, tzinfo=self.tz).astimezone(UTC)

    @property
    def day_count(self) -> int:
        return (self.end - self.start).days + 1

    def days(self) -> Iterator[date]:
        for offset in range(self.day_count):
            yield self.start + timedelta(days=offset)

    def day_key(self, value: datetime) -> str:
        """Calendar day (YYYY-MM-DD) of a stored timestamp in the range's timezone."""
        return as_utc(value).astimezone(self.tz).date().isoformat()

    def dense(self, counts: dict[str, dict[str, float]], fields: tuple[str, ...]) -> list[dict[str, Any]]:
        """Expand sparse per-day values to one row per day, zero-filled."""
        rows: list[dict[str, Any]] = []
        for day in self.days():
            key = day.isoformat()
            values = counts.get(key, {})
            row: dict[str, Any] = {"date": key}
            for field in fields:
                row[field] = values.get(field, 0)
            rows.append(row)
        return rows
