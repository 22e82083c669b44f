from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
import logging
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_CLOCK = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?:\s*(?P<meridiem>[AaPp][Mm]))?$")


def parse_hhmm(value: str) -> time:
    """Read ``HH:MM`` (24h) or ``HH:MM AM/PM`` (12h) as a wall clock time."""
    match = _CLOCK.match(value.strip())
    if not match:
        raise ValueError(f"Unsupported time format: {value}")
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    meridiem = match.group("meridiem")
    if meridiem:
        if not (1 <= hour <= 12 and 0 <= minute <= 59):
            raise ValueError(f"Hour/minute out of range for 12h format: {value}")
        meridiem = meridiem.upper()
        if meridiem == "PM" and hour < 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0
    elif not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Hour/minute out of range for 24h format: {value}")
    return time(hour=hour, minute=minute)


def parse_duration(value: str) -> timedelta:
    cleaned = value.strip().lower()
    if cleaned.endswith("m"):
        return timedelta(minutes=float(cleaned[:-1]))
    if cleaned.endswith("h"):
        return timedelta(hours=float(cleaned[:-1]))
    if ":" in cleaned:
        hours, minutes = cleaned.split(":", 1)
        return timedelta(hours=int(hours), minutes=int(minutes))
    if "." in cleaned:
        hours, minutes = cleaned.split(".", 1)
        return timedelta(hours=int(hours or 0), minutes=int(minutes or 0))
    if cleaned.isdigit():
        return timedelta(minutes=int(cleaned))
    raise ValueError(f"Unsupported duration format: {value}")


def format_hhmm(value: time | datetime) -> str:
    return value.strftime("%H:%M")


def format_duration(value: timedelta) -> str:
    total_minutes = int(value.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def resolve_zone(name: str | None) -> ZoneInfo:
    """Look up an IANA zone, raising ConfigurationError when it is unknown."""
    if not name or not name.strip():
        raise ConfigurationError("A time zone must be configured (schedule.timezone).")
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown time zone {name!r}: {exc}") from exc


def to_zoned(moment: datetime, zone: ZoneInfo) -> datetime:
    """Return the same instant expressed in ``zone``.

    Naive datetimes are refused: there is no way to know which zone their
    wall clock was read in.
    """
    if moment.tzinfo is None or moment.utcoffset() is None:
        raise ValueError(f"Naive datetime {moment.isoformat()} cannot be compared with zoned times")
    return moment.astimezone(zone)


def zoned_midnight(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=zone)


def at_wall_clock(day: date, hour: int, minute: int, zone: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)


def shift_days(moment: datetime, days: int) -> datetime:
    """Move ``moment`` by whole calendar days, keeping its wall clock time."""
    shifted = moment.replace(tzinfo=None) + timedelta(days=days)
    return shifted.replace(tzinfo=moment.tzinfo)


def as_utc(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed from ``start`` to ``end`` on the UTC timeline."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return int(seconds // 60)


def parse_time(text: object, anchor_date: date, zone: ZoneInfo) -> datetime | None:
    """Place an ``HH:MM`` (or ``HH:MM AM/PM``) reading on ``anchor_date`` in ``zone``.

    Returns None for anything that is not a valid clock reading.
    """
    if not isinstance(text, str):
        logger.warning("Ignoring non-text prayer time %r", text)
        return None
    try:
        clock = parse_hhmm(text)
    except ValueError as exc:
        logger.warning("Invalid prayer time %r: %s", text, exc)
        return None
    return at_wall_clock(anchor_date, clock.hour, clock.minute, zone)
