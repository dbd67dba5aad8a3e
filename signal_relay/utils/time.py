"""
Session time utilities.

Pure functions from an instant plus a named time zone to session
classifications. Nothing here reads the wall clock except ``utc_now``, which
callers use only as a fallback when no instant is supplied.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now(now: Optional[datetime] = None) -> datetime:
    """
    Get the current instant, preferring an explicitly supplied one.

    Args:
        now: Optional instant supplied by the caller

    Returns:
        Timezone-aware UTC datetime
    """
    if now is not None:
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now

    return datetime.now(timezone.utc)


def to_epoch_ms(ts: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(ts.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return EPOCH + timedelta(milliseconds=ms)


def to_local(ts: datetime, tz_name: str) -> datetime:
    """Convert an instant to the named session time zone."""
    return utc_now(ts).astimezone(ZoneInfo(tz_name))


def parse_clock(value: str) -> time:
    """
    Parse an ``HH:MM`` time-of-day string.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    hours, _, minutes = value.partition(":")
    return time(int(hours), int(minutes or 0))


def session_date(ts: datetime, tz_name: str) -> date:
    """Calendar date of the instant in the session time zone."""
    return to_local(ts, tz_name).date()


def date_key(day: date) -> str:
    """Key fragment for a calendar date."""
    return day.isoformat()


def is_before_cutoff(ts: datetime, tz_name: str, cutoff: str) -> bool:
    """
    Check whether the local time of day is strictly before a cutoff.

    Args:
        ts: Instant to classify
        tz_name: Session time zone name
        cutoff: ``HH:MM`` cutoff in the session time zone

    Returns:
        True if the instant falls before the cutoff on its local day
    """
    local = to_local(ts, tz_name)
    return local.time() < parse_clock(cutoff)


def is_within_window(ts: datetime, tz_name: str, start: str, end: str) -> bool:
    """Check whether the local time of day lies in ``[start, end]`` inclusive."""
    local = to_local(ts, tz_name).time().replace(second=0, microsecond=0)
    return parse_clock(start) <= local <= parse_clock(end)


def week_range(day: date) -> list[date]:
    """Monday through Friday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return [monday + timedelta(days=offset) for offset in range(5)]


# Instants far enough from datetime.min/max to survive any UTC offset
EARLIEST_SIGNAL_TIME = datetime(1, 1, 2, tzinfo=timezone.utc)
LATEST_SIGNAL_TIME = datetime(9999, 12, 30, tzinfo=timezone.utc)


def parse_signal_time(value: object) -> Optional[datetime]:
    """
    Parse a signal timestamp as sent by the charting platform.

    Accepts ISO-8601 strings (with ``Z`` suffix) and epoch milliseconds.
    Returns None when the value is missing, unparseable, or too close to the
    calendar limits to be shown in a local time zone.
    """
    if value is None or value == "":
        return None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = _parse_epoch_ms(value)
    else:
        text = str(value).strip()
        if text.isdigit():
            parsed = _parse_epoch_ms(text)
        else:
            try:
                parsed = utc_now(datetime.fromisoformat(text.replace("Z", "+00:00")))
            except ValueError:
                return None

    if parsed is None or not EARLIEST_SIGNAL_TIME <= parsed <= LATEST_SIGNAL_TIME:
        return None
    return parsed


def _parse_epoch_ms(value: object) -> Optional[datetime]:
    try:
        return from_epoch_ms(int(value))
    except (OverflowError, OSError, ValueError):
        return None


def format_signal_time(ts: Optional[datetime], tz_name: str, label: str = "EST") -> str:
    """
    Format a signal timestamp for messages and fingerprints.

    Example: ``Mon, Oct 19, 2026, 9:45 AM EST``
    """
    if ts is None:
        return "N/A"

    local = to_local(ts, tz_name)
    hour = local.strftime("%I").lstrip("0") or "12"
    return f"{local.strftime('%a, %b')} {local.day}, {local.year}, {hour}:{local.strftime('%M %p')} {label}"
