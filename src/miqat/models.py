from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
import json
from typing import Any

from .timeutils import format_duration


class PrayerName(str, Enum):
    FAJR = "Fajr"
    SUNRISE = "Sunrise"
    DHUHR = "Dhuhr"
    ASR = "Asr"
    MAGHRIB = "Maghrib"
    ISHA = "Isha"

    @classmethod
    def from_label(cls, label: str) -> "PrayerName | None":
        key = "".join(ch for ch in label.lower() if ch.isalpha())
        return _ALIASES.get(key)


_ALIASES: dict[str, PrayerName] = {
    "fajr": PrayerName.FAJR,
    "fadjr": PrayerName.FAJR,
    "subh": PrayerName.FAJR,
    "sobh": PrayerName.FAJR,
    "sunrise": PrayerName.SUNRISE,
    "shuruq": PrayerName.SUNRISE,
    "shurooq": PrayerName.SUNRISE,
    "chourouk": PrayerName.SUNRISE,
    "dhuhr": PrayerName.DHUHR,
    "duhr": PrayerName.DHUHR,
    "zuhr": PrayerName.DHUHR,
    "dohr": PrayerName.DHUHR,
    "asr": PrayerName.ASR,
    "maghrib": PrayerName.MAGHRIB,
    "maghreb": PrayerName.MAGHRIB,
    "isha": PrayerName.ISHA,
    "ishaa": PrayerName.ISHA,
}

RITUAL_PRAYERS: tuple[PrayerName, ...] = (
    PrayerName.FAJR,
    PrayerName.DHUHR,
    PrayerName.ASR,
    PrayerName.MAGHRIB,
    PrayerName.ISHA,
)


@dataclass(frozen=True, slots=True)
class NamedTime:
    name: PrayerName
    display_time: str
    instant: datetime


@dataclass(frozen=True, slots=True)
class DailySchedule:
    calendar_date: date
    entries: tuple[NamedTime, ...]
    is_stale: bool = False
    best_effort: bool = False
    display_date: str = ""
    hijri_date: str | None = None

    def ritual_entries(self) -> list[NamedTime]:
        return [entry for entry in self.entries if entry.name in RITUAL_PRAYERS]

    def get(self, name: PrayerName) -> NamedTime | None:
        for entry in self.entries:
            if entry.name is name:
                return entry
        return None

    def times(self) -> list[dict[str, str]]:
        return [{"name": entry.name.value, "time": entry.display_time} for entry in self.entries]


@dataclass(frozen=True, slots=True)
class CurrentPrayer:
    name: PrayerName
    time: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name.value, "time": self.time}


@dataclass(frozen=True, slots=True)
class NextPrayer:
    name: PrayerName
    time: str
    instant: datetime
    eta_minutes: int
    tomorrow: bool = False
    estimated: bool = False

    @property
    def eta_hours(self) -> int:
        return self.eta_minutes // 60

    @property
    def eta_remainder_minutes(self) -> int:
        return self.eta_minutes % 60

    @property
    def time_until(self) -> str:
        text = format_duration(timedelta(minutes=self.eta_minutes))
        if self.tomorrow:
            text = f"{text} (tomorrow)"
        return text

    @property
    def label(self) -> str:
        return f"{self.name.value} (tomorrow)" if self.tomorrow else self.name.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name.value,
            "time": self.time,
            "etaMinutes": self.eta_minutes,
            "instant": self.instant.isoformat(),
            "timeUntil": self.time_until,
            "tomorrow": self.tomorrow,
        }


@dataclass(frozen=True, slots=True)
class ScheduleStatus:
    current: CurrentPrayer | None = None
    next: NextPrayer | None = None
    warnings: tuple[str, ...] = ()


@dataclass(slots=True)
class PrayerTimesResult:
    """Renderable record handed to presentation code."""

    date: str
    times: list[dict[str, str]]
    current_prayer: CurrentPrayer | None = None
    next_prayer: NextPrayer | None = None
    is_stale: bool = False
    best_effort: bool = False
    error: str | None = None
    hijri_date: str | None = None
    warnings: list[str] = field(default_factory=list)
    schedule: DailySchedule | None = None

    @classmethod
    def from_status(cls, schedule: DailySchedule, status: ScheduleStatus) -> "PrayerTimesResult":
        return cls(
            date=schedule.display_date or schedule.calendar_date.isoformat(),
            times=schedule.times(),
            current_prayer=status.current,
            next_prayer=status.next,
            is_stale=schedule.is_stale,
            best_effort=schedule.best_effort,
            hijri_date=schedule.hijri_date,
            warnings=list(status.warnings),
            schedule=schedule,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "hijriDate": self.hijri_date,
            "times": [dict(item) for item in self.times],
            "currentPrayer": self.current_prayer.to_dict() if self.current_prayer else None,
            "nextPrayer": self.next_prayer.to_dict() if self.next_prayer else None,
            "isStale": self.is_stale,
            "bestEffort": self.best_effort,
            "error": self.error,
            "warnings": list(self.warnings),
        }

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
