"""Date helpers shared by the reporting routes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

DEFAULT_LOOKBACK_DAYS = 30


@dataclass(frozen=True)
class DateRange:
    start: Optional[str]
    end: Optional[str]

    def as_dict(self) -> dict:
        return {"startDate": self.start, "endDate": self.end}

    def bounds(self) -> tuple[Optional[datetime], Optional[datetime]]:
        return (
            parse_timestamp(self.start) if self.start else None,
            parse_timestamp(self.end) if self.end else None,
        )

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        start, end = self.bounds()
        moment = ensure_utc(moment)
        if start and moment < start:
            return False
        if end and moment > end:
            return False
        return True


def ensure_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO date or datetime (``Z`` suffix allowed) into aware UTC."""
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def expand_start(value: Optional[str]) -> Optional[str]:
    if value and "T" not in value:
        return f"{value}T00:00:00.000Z"
    return value


def expand_end(value: Optional[str]) -> Optional[str]:
    if value and "T" not in value:
        return f"{value}T23:59:59.999Z"
    return value


def default_window(
    *, days: int = DEFAULT_LOOKBACK_DAYS, today: Optional[date] = None
) -> tuple[str, str]:
    """Return ``(start, end)`` as ``YYYY-MM-DD`` covering the last ``days`` days."""
    end = today or datetime.now(timezone.utc).date()
    start = end - timedelta(days=days)
    return start.isoformat(), end.isoformat()


def normalize_range(
    start: Optional[str],
    end: Optional[str],
    *,
    default_to_window: bool = False,
    today: Optional[date] = None,
) -> DateRange:
    """Expand bare dates to whole-day timestamps, optionally defaulting both ends."""
    if default_to_window:
        default_start, default_end = default_window(today=today)
        start = start or default_start
        end = end or default_end
    return DateRange(start=expand_start(start), end=expand_end(end))


def to_iso_z(moment: datetime) -> str:
    """Millisecond-precision UTC timestamp ending in ``Z``."""
    moment = ensure_utc(moment)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def iso_week(moment: datetime) -> int:
    return moment.isocalendar()[1]


def quarter(moment: datetime) -> int:
    return (moment.month - 1) // 3 + 1


def js_weekday(moment: datetime) -> int:
    """Day of week with Sunday as 0, the convention Power BI reports expect."""
    return (moment.weekday() + 1) % 7


__all__ = [
    "DEFAULT_LOOKBACK_DAYS",
    "DateRange",
    "default_window",
    "ensure_utc",
    "expand_end",
    "expand_start",
    "iso_week",
    "js_weekday",
    "normalize_range",
    "parse_timestamp",
    "quarter",
    "to_iso_z",
]
