from __future__ import annotations

import logging
from typing import Iterable
from zoneinfo import ZoneInfo

from .dates import DateAnchor
from .errors import EmptySchedule
from .models import DailySchedule, NamedTime, PrayerName
from .timeutils import as_utc, format_hhmm, parse_time

logger = logging.getLogger(__name__)


def build_schedule(
    pairs: Iterable[tuple[str, str]],
    anchor: DateAnchor,
    zone: ZoneInfo,
    hijri_date: str | None = None,
) -> DailySchedule:
    """Turn scraped ``(name, time)`` pairs into a chronological DailySchedule.

    Malformed entries are skipped one by one; EmptySchedule is raised when
    nothing usable is left.
    """
    entries: dict[PrayerName, NamedTime] = {}
    for label, raw_time in pairs:
        name = PrayerName.from_label(label or "")
        if name is None:
            logger.warning("Skipping unknown prayer name %r (%r)", label, raw_time)
            continue
        if name in entries:
            logger.warning("Skipping duplicate %s entry %r", name.value, raw_time)
            continue
        instant = parse_time(raw_time, anchor.anchor, zone)
        if instant is None:
            logger.warning("Skipping %s: could not parse time %r for %s", name.value, raw_time, anchor.anchor.isoformat())
            continue
        entries[name] = NamedTime(name=name, display_time=format_hhmm(instant), instant=instant)
        logger.debug("Parsed %s at %s on %s", name.value, raw_time, anchor.anchor.isoformat())

    if not entries:
        raise EmptySchedule("Failed to find prayer times on the page.")

    ordered = sorted(entries.values(), key=lambda entry: as_utc(entry.instant))
    return DailySchedule(
        calendar_date=anchor.anchor,
        entries=tuple(ordered),
        is_stale=anchor.is_stale,
        best_effort=anchor.best_effort,
        display_date=anchor.label,
        hijri_date=hijri_date or None,
    )
