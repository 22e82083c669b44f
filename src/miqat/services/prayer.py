from __future__ import annotations

import asyncio
from datetime import date, datetime
import logging
from zoneinfo import ZoneInfo

from ..config import MiqatConfig
from ..dates import resolve_anchor
from ..errors import ConfigurationError, EmptySchedule, SourceUnavailable
from ..fallback import build_fallback
from ..models import DailySchedule, PrayerTimesResult, ScheduleStatus
from ..resolver import StatusResolver
from ..schedule import build_schedule
from ..timeutils import to_zoned
from .source import AsyncSourceFetcher, HttpSourceFetcher, SourceFetcher, extract_schedule

logger = logging.getLogger(__name__)


class ScheduleCache:
    """Holds the last schedule built; schedules are immutable and shared read-only."""

    def __init__(self) -> None:
        self._schedule: DailySchedule | None = None

    def get(self, day: date) -> DailySchedule | None:
        schedule = self._schedule
        if schedule is None or schedule.calendar_date != day:
            return None
        return schedule

    def put(self, schedule: DailySchedule) -> None:
        # Stale pages are refetched on every query.
        if schedule.is_stale:
            return
        self._schedule = schedule

    def clear(self) -> None:
        self._schedule = None


class PrayerTimesService:
    def __init__(
        self,
        config: MiqatConfig,
        fetcher: SourceFetcher | None = None,
        resolver: StatusResolver | None = None,
        cache: ScheduleCache | None = None,
    ) -> None:
        self.config = config
        # Raises ConfigurationError for a bad zone before any request is served.
        self.zone: ZoneInfo = config.zone()
        self.fetcher = fetcher or HttpSourceFetcher(config.source.url, config.source.user_agent)
        self.resolver = resolver or StatusResolver(
            current_window=config.schedule.current_window,
            missing_fajr_offset=config.schedule.missing_fajr_offset,
        )
        self.cache = cache or ScheduleCache()

    def _now(self, now: datetime | None) -> datetime:
        if now is None:
            return datetime.now(self.zone)
        return to_zoned(now, self.zone)

    def build_schedule(self, content: str, now: datetime) -> DailySchedule:
        """Parse fetched page content into a schedule anchored to ``now``'s day."""
        raw = extract_schedule(content)
        anchor = resolve_anchor(raw.date_text, now, self.zone, self.config.schedule.date_formats)
        return build_schedule(raw.entries, anchor, self.zone, hijri_date=raw.hijri_text)

    def status(self, schedule: DailySchedule, now: datetime | None = None) -> ScheduleStatus:
        return self.resolver.resolve(schedule, self._now(now))

    def _result(self, schedule: DailySchedule, now: datetime) -> PrayerTimesResult:
        return PrayerTimesResult.from_status(schedule, self.resolver.resolve(schedule, now))

    def _fallback(self, reason: str, now: datetime) -> PrayerTimesResult:
        return build_fallback(reason, now, self.zone, self.config.fallback.times)

    def get_prayer_times(self, now: datetime | None = None, refresh: bool = False) -> PrayerTimesResult:
        now = self._now(now)
        try:
            schedule = None if refresh else self.cache.get(now.date())
            if schedule is None:
                content = self.fetcher.fetch(self.config.source.timeout)
                schedule = self.build_schedule(content, now)
                self.cache.put(schedule)
            return self._result(schedule, now)
        except ConfigurationError:
            raise
        except SourceUnavailable as exc:
            return self._fallback(f"Source unavailable: {exc}", now)
        except EmptySchedule as exc:
            return self._fallback(str(exc), now)
        except Exception as exc:
            logger.exception("Unexpected error while resolving prayer times")
            return self._fallback(f"An unexpected server error occurred: {exc}", now)

    async def aget_prayer_times(
        self,
        fetcher: AsyncSourceFetcher,
        now: datetime | None = None,
        refresh: bool = False,
    ) -> PrayerTimesResult:
        now = self._now(now)
        timeout = self.config.source.timeout
        try:
            schedule = None if refresh else self.cache.get(now.date())
            if schedule is None:
                content = await asyncio.wait_for(fetcher.fetch(timeout), timeout=timeout)
                schedule = self.build_schedule(content, now)
                self.cache.put(schedule)
            return self._result(schedule, now)
        except ConfigurationError:
            raise
        except asyncio.TimeoutError:
            return self._fallback(f"Source unavailable: timed out after {timeout:g}s", now)
        except SourceUnavailable as exc:
            return self._fallback(f"Source unavailable: {exc}", now)
        except EmptySchedule as exc:
            return self._fallback(str(exc), now)
        except Exception as exc:
            logger.exception("Unexpected error while resolving prayer times")
            return self._fallback(f"An unexpected server error occurred: {exc}", now)
