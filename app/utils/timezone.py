"""
Timezone utilities for event tracking.

All timestamps are stored as naive UTC datetimes. TBA reports event dates as
local calendar dates ("2025-03-20") plus an IANA timezone name
("America/Chicago"), so an event's window has to be resolved in the event's
own timezone before it can be compared against "now".

Match times from TBA are unix epoch seconds and are kept as integers.
"""
import calendar
from datetime import date, datetime, time, timezone, timedelta
from typing import NamedTuple, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.logging import get_logger

logger = get_logger(__name__)

UTC = timezone.utc


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (storage format)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def epoch_seconds(value: Optional[datetime] = None) -> int:
    """Unix timestamp for a (naive UTC or aware) datetime, default now."""
    value = to_naive_utc(value) if value is not None else utc_now()
    return calendar.timegm(value.timetuple())


def resolve_timezone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Look up an IANA timezone, falling back to UTC.

    TBA occasionally omits the timezone for off-season events.
    """
    if not tz_name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown event timezone '{tz_name}', using UTC")
        return ZoneInfo("UTC")


class EventWindow(NamedTuple):
    """Inclusive UTC bounds of an event: local start-of-day to local end-of-day."""
    start: datetime
    end: datetime

    def contains(self, moment: Optional[datetime] = None) -> bool:
        moment = to_naive_utc(moment) if moment is not None else utc_now()
        return self.start <= moment <= self.end


def _as_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def event_window(
    start_date: Union[str, date],
    end_date: Union[str, date],
    tz_name: Optional[str] = None,
) -> EventWindow:
    """
    Compute the UTC window of an event from its local dates.

    Args:
        start_date: First day of the event (ISO date string or date)
        end_date: Last day of the event (ISO date string or date)
        tz_name: IANA timezone the dates are expressed in

    Returns:
        EventWindow with naive UTC start (local midnight) and end
        (local 23:59:59.999999 of the last day)

    Examples:
        >>> w = event_window("2025-03-20", "2025-03-22", "America/Chicago")
        >>> w.start
        datetime.datetime(2025, 3, 20, 5, 0)
    """
    tz = resolve_timezone(tz_name)
    local_start = datetime.combine(_as_date(start_date), time.min, tzinfo=tz)
    local_end = datetime.combine(_as_date(end_date), time.max, tzinfo=tz)
    return EventWindow(to_naive_utc(local_start), to_naive_utc(local_end))


def expires_in(seconds: int, now: Optional[datetime] = None) -> datetime:
    """Naive UTC expiry timestamp `seconds` from now."""
    return (now or utc_now()) + timedelta(seconds=seconds)
