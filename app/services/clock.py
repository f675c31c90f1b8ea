"""Calendar-day handling for the daily usage counter.

Every day comparison goes through :func:`to_day` so that rows written by
older code paths (``Mon Jan 01 2024`` style strings) and ISO dates compare
as the same calendar day.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.services.errors import InvalidInput

_LEGACY_FORMAT = "%a %b %d %Y"


class Clock:
    """Supplies "today" in the accounting timezone."""

    def __init__(self, tz: str | ZoneInfo = "UTC") -> None:
        if isinstance(tz, str):
            try:
                tz = ZoneInfo(tz)
            except ZoneInfoNotFoundError as exc:
                raise InvalidInput(f"unknown timezone: {tz}") from exc
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def to_day(self, value: date | datetime | str) -> date:
        return to_day(value, self.tz)

    def next_reset(self, today: date | None = None) -> datetime:
        """Start of the accounting day after ``today``."""
        day = today or self.today()
        return datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.tz)


class FixedClock(Clock):
    """Clock pinned to a given day (scripts, tests, backfills)."""

    def __init__(self, day: date | str, tz: str | ZoneInfo = "UTC") -> None:
        super().__init__(tz)
        self._day = to_day(day, self.tz)

    def now(self) -> datetime:
        return datetime.combine(self._day, time(12, 0), tzinfo=self.tz)


def to_day(value: date | datetime | str, tz: ZoneInfo | None = None) -> date:
    """Normalize ``value`` to a calendar day.

    Aware datetimes are converted to ``tz`` first; naive ones are taken as-is.
    """
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        iso = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
        try:
            return to_day(datetime.fromisoformat(iso), tz)
        except ValueError:
            pass
        try:
            return datetime.strptime(raw, _LEGACY_FORMAT).date()
        except ValueError:
            pass
    raise InvalidInput(f"unrecognized day value: {value!r}")


__all__ = ["Clock", "FixedClock", "to_day"]
