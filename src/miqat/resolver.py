from __future__ import annotations

from datetime import date, datetime, timedelta
import logging

from .models import CurrentPrayer, DailySchedule, NamedTime, NextPrayer, PrayerName, ScheduleStatus
from .timeutils import as_utc, format_hhmm, minutes_between, shift_days, to_zoned, zoned_midnight

logger = logging.getLogger(__name__)

FAJR_MISSING = "fajr-missing"
SCHEDULE_BEHIND = "schedule-behind-reference"


class StatusResolver:
    """Work out the current and the next ritual prayer for a reference instant.

    Sunrise is carried in the schedule for display only and never becomes
    current or next. Window starts are inclusive and ends exclusive.
    """

    DEFAULT_CURRENT_WINDOW = timedelta(minutes=90)
    DEFAULT_MISSING_FAJR_OFFSET = timedelta(hours=8)

    def __init__(
        self,
        current_window: timedelta | None = None,
        missing_fajr_offset: timedelta | None = None,
    ) -> None:
        self.current_window = current_window or self.DEFAULT_CURRENT_WINDOW
        self.missing_fajr_offset = missing_fajr_offset or self.DEFAULT_MISSING_FAJR_OFFSET

    def resolve(self, schedule: DailySchedule, now: datetime) -> ScheduleStatus:
        rituals = sorted(schedule.ritual_entries(), key=lambda entry: as_utc(entry.instant))
        if not rituals:
            logger.warning("No ritual prayers in schedule for %s", schedule.calendar_date.isoformat())
            return ScheduleStatus()
        zone = rituals[0].instant.tzinfo
        reference = to_zoned(now, zone)

        fajr = _find(rituals, PrayerName.FAJR)
        isha = _find(rituals, PrayerName.ISHA)
        warnings: list[str] = []
        if fajr is None:
            logger.warning(
                "Fajr missing from schedule for %s; using a %s offset for night boundaries",
                schedule.calendar_date.isoformat(),
                self.missing_fajr_offset,
            )
            warnings.append(FAJR_MISSING)

        day = schedule.calendar_date
        current = self._current(rituals, fajr, isha, reference, day)
        upcoming = self._next(rituals, fajr, isha, reference, day)
        if upcoming is None and reference.date() > day:
            logger.warning(
                "Reference %s is past every boundary of the schedule for %s",
                reference.isoformat(),
                schedule.calendar_date.isoformat(),
            )
            warnings.append(SCHEDULE_BEHIND)
        return ScheduleStatus(current=current, next=upcoming, warnings=tuple(warnings))

    def _offset(self, moment: datetime, delta: timedelta) -> datetime:
        return (as_utc(moment) + delta).astimezone(moment.tzinfo)

    def _estimated_fajr(self, last: datetime, fajr_day: date) -> datetime:
        # Never earlier than midnight starting the day the estimated Fajr belongs to.
        return max(
            self._offset(last, self.missing_fajr_offset),
            zoned_midnight(fajr_day, last.tzinfo),
            key=as_utc,
        )

    def _tomorrow_fajr(
        self,
        rituals: list[NamedTime],
        fajr: NamedTime | None,
        isha: NamedTime | None,
        day: date,
    ) -> tuple[datetime, bool]:
        if fajr is not None:
            return shift_days(fajr.instant, 1), False
        base = isha or rituals[-1]
        return self._estimated_fajr(base.instant, day + timedelta(days=1)), True

    def _current(
        self,
        rituals: list[NamedTime],
        fajr: NamedTime | None,
        isha: NamedTime | None,
        reference: datetime,
        day: date,
    ) -> CurrentPrayer | None:
        ref = as_utc(reference)

        # Last night's Isha is still running until this morning's Fajr.
        if isha is not None:
            yesterday_isha = shift_days(isha.instant, -1)
            if fajr is not None:
                night_end = fajr.instant
            else:
                night_end = min(
                    self._estimated_fajr(yesterday_isha, day),
                    rituals[0].instant,
                    key=as_utc,
                )
            if as_utc(yesterday_isha) <= ref < as_utc(night_end):
                return CurrentPrayer(name=PrayerName.ISHA, time=isha.display_time)

        for index, entry in enumerate(rituals):
            if entry.name is PrayerName.ISHA:
                end, _ = self._tomorrow_fajr(rituals, fajr, isha, day)
            elif index + 1 < len(rituals):
                end = rituals[index + 1].instant
            else:
                logger.warning("Last prayer %s is not Isha; using a %s window", entry.name.value, self.current_window)
                end = self._offset(entry.instant, self.current_window)
            if as_utc(entry.instant) <= ref < as_utc(end):
                return CurrentPrayer(name=entry.name, time=entry.display_time)
        return None

    def _next(
        self,
        rituals: list[NamedTime],
        fajr: NamedTime | None,
        isha: NamedTime | None,
        reference: datetime,
        day: date,
    ) -> NextPrayer | None:
        ref = as_utc(reference)
        for entry in rituals:
            if ref < as_utc(entry.instant):
                return NextPrayer(
                    name=entry.name,
                    time=entry.display_time,
                    instant=entry.instant,
                    eta_minutes=minutes_between(reference, entry.instant),
                )

        boundary, estimated = self._tomorrow_fajr(rituals, fajr, isha, day)
        if ref >= as_utc(boundary):
            return None
        return NextPrayer(
            name=PrayerName.FAJR,
            time=fajr.display_time if fajr is not None else format_hhmm(boundary),
            instant=boundary,
            eta_minutes=minutes_between(reference, boundary),
            tomorrow=True,
            estimated=estimated,
        )


def _find(entries: list[NamedTime], name: PrayerName) -> NamedTime | None:
    for entry in entries:
        if entry.name is name:
            return entry
    return None
