from __future__ import annotations

from datetime import datetime, timezone, tzinfo
import logging
from typing import Mapping

from .dates import format_display_date
from .models import PrayerName, PrayerTimesResult
from .timeutils import format_hhmm, parse_time

logger = logging.getLogger(__name__)

# Rough summer times for the default mosque; only shown when the source fails.
DEFAULT_FALLBACK_TIMES: dict[PrayerName, str] = {
    PrayerName.FAJR: "03:30",
    PrayerName.SUNRISE: "05:30",
    PrayerName.DHUHR: "13:15",
    PrayerName.ASR: "17:30",
    PrayerName.MAGHRIB: "21:15",
    PrayerName.ISHA: "22:45",
}

UNAVAILABLE_DATE = "Date Unavailable (Formatting Error)"


def build_fallback(
    reason: str,
    reference: datetime | None = None,
    zone: tzinfo | None = None,
    times: Mapping[PrayerName, str] | None = None,
) -> PrayerTimesResult:
    """Produce a complete, clearly flagged result when real data is unavailable.

    Never raises: a broken reference or zone degrades to the current UTC
    time and a placeholder date label.
    """
    logger.warning("Serving fallback prayer times: %s", reason)
    zone = zone or timezone.utc
    times = times or DEFAULT_FALLBACK_TIMES

    try:
        if reference is None or reference.tzinfo is None:
            reference = datetime.now(zone)
        reference = reference.astimezone(zone)
    except Exception:
        logger.exception("Invalid reference for fallback; using current UTC time")
        zone = timezone.utc
        reference = datetime.now(zone)

    try:
        display_date = format_display_date(reference.date())
    except Exception:
        logger.exception("Error formatting fallback date")
        display_date = UNAVAILABLE_DATE

    display_times: list[dict[str, str]] = []
    for name in PrayerName:
        raw = times.get(name)
        try:
            instant = parse_time(raw, reference.date(), zone) if raw else None
            display = format_hhmm(instant) if instant is not None else "N/A"
        except Exception:
            logger.exception("Error placing fallback time for %s", name.value)
            display = "N/A"
        display_times.append({"name": name.value, "time": display})

    return PrayerTimesResult(
        date=f"Error: {display_date}",
        times=display_times,
        current_prayer=None,
        next_prayer=None,
        is_stale=False,
        error=reason,
    )
