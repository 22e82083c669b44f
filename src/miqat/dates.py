from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
import re
from typing import Sequence
from zoneinfo import ZoneInfo

from .timeutils import to_zoned

logger = logging.getLogger(__name__)

# Order matters: day-first forms seen on the source page come before the
# generic numeric and month-first forms.
DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%d %b %Y",
    "%d %B %Y",
    "%A %d %b %Y",
    "%A %d %B %Y",
    "%A %B %d %Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
)

_PUNCTUATION = re.compile(r"[.,]")
_SPACES = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class ParsedDate:
    value: date
    pattern: str
    text: str


@dataclass(frozen=True, slots=True)
class DateAnchor:
    """The calendar day scraped times are pinned to, plus how it was chosen."""

    anchor: date
    label: str
    scraped: date | None = None
    is_stale: bool = False
    best_effort: bool = False


def _candidates(text: str) -> list[str]:
    raw = _SPACES.sub(" ", text.strip())
    cleaned = _SPACES.sub(" ", _PUNCTUATION.sub("", raw)).strip()
    without_weekday = " ".join(cleaned.split(" ")[1:])
    result: list[str] = []
    for candidate in (raw, cleaned, without_weekday):
        if candidate and candidate not in result:
            result.append(candidate)
    return result


def parse_displayed_date(text: str | None, formats: Sequence[str] = DEFAULT_DATE_FORMATS) -> ParsedDate | None:
    if not text or not text.strip():
        return None
    candidates = _candidates(text)
    for pattern in formats:
        for candidate in candidates:
            try:
                value = datetime.strptime(candidate, pattern).date()
            except ValueError:
                continue
            logger.debug("Parsed displayed date %r with pattern %r (candidate %r)", text, pattern, candidate)
            return ParsedDate(value=value, pattern=pattern, text=candidate)
    logger.warning("Failed to parse displayed date with any known format: %r", text)
    return None


def format_display_date(day: date) -> str:
    return f"{day.strftime('%A')}, {day.day}. {day.strftime('%b %Y')}"


def resolve_anchor(
    text: str | None,
    reference: datetime,
    zone: ZoneInfo,
    formats: Sequence[str] = DEFAULT_DATE_FORMATS,
) -> DateAnchor:
    today = to_zoned(reference, zone).date()
    today_label = format_display_date(today)
    if not text or not text.strip():
        logger.warning("No displayed date on the source page; using %s", today.isoformat())
        return DateAnchor(anchor=today, label=today_label)

    parsed = parse_displayed_date(text, formats)
    if parsed is None:
        logger.warning("Displayed date %r could not be parsed; times anchored to %s", text, today.isoformat())
        return DateAnchor(
            anchor=today,
            label=f"{today_label} (Scraped Date Invalid)",
            best_effort=True,
        )
    if parsed.value == today:
        return DateAnchor(anchor=today, label=today_label, scraped=parsed.value)

    logger.warning(
        "Stale data: source shows %s but today is %s in %s; anchoring times to today",
        parsed.value.isoformat(),
        today.isoformat(),
        zone.key,
    )
    scraped_label = f"{parsed.value.day}. {parsed.value.strftime('%b')}"
    return DateAnchor(
        anchor=today,
        label=f"{today_label} (Data for {scraped_label})",
        scraped=parsed.value,
        is_stale=True,
    )
