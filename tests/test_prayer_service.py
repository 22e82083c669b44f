from __future__ import annotations

import asyncio
from datetime import date, datetime
import json
import unittest
from unittest.mock import patch
from zoneinfo import ZoneInfo

from miqat.config import MiqatConfig
from miqat.errors import ConfigurationError, SourceUnavailable
from miqat.models import PrayerName
from miqat.services.prayer import PrayerTimesService, ScheduleCache

BERLIN = ZoneInfo("Europe/Berlin")


def _page(date_text: str, times: dict[str, str] | None = None) -> str:
    times = times or {
        "Fajr": "03:30",
        "Dhuhr": "13:15",
        "Asr": "17:30",
        "Maghrib": "21:15",
        "Isha": "22:45",
    }
    blocks = "".join(
        f'<div><div class="name">{name}</div><div class="time"><div>{value}</div></div></div>'
        for name, value in times.items()
    )
    return (
        f'<div id="gregorianDate">{date_text}</div>'
        f'<div id="hijriDate">6 Dhul Hijjah 1446</div>'
        f'<div class="prayers">{blocks}</div>'
    )


class DummyFetcher:
    def __init__(self, content: str = "", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls = 0
        self.timeouts: list[float] = []

    def fetch(self, timeout: float) -> str:
        self.calls += 1
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return self.content


class DummyAsyncFetcher:
    def __init__(self, content: str = "", delay: float = 0.0) -> None:
        self.content = content
        self.delay = delay

    async def fetch(self, timeout: float) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.content


def _at(hour: int, minute: int, day: date = date(2025, 6, 2)) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=BERLIN)


class PrayerTimesServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = MiqatConfig.default()

    def _service(self, fetcher: DummyFetcher) -> PrayerTimesService:
        return PrayerTimesService(self.config, fetcher=fetcher)

    def test_current_page_resolves_status(self) -> None:
        fetcher = DummyFetcher(_page("Monday 2 Jun 2025"))
        result = self._service(fetcher).get_prayer_times(_at(14, 0))

        self.assertIsNone(result.error)
        self.assertFalse(result.is_stale)
        self.assertEqual(result.date, "Monday, 2. Jun 2025")
        self.assertEqual(result.hijri_date, "6 Dhul Hijjah 1446")
        assert result.current_prayer is not None and result.next_prayer is not None
        self.assertEqual(result.current_prayer.name, PrayerName.DHUHR)
        self.assertEqual(result.next_prayer.name, PrayerName.ASR)
        self.assertEqual(result.next_prayer.eta_minutes, 210)
        self.assertEqual(fetcher.timeouts, [self.config.source.timeout])

    def test_stale_page_is_anchored_to_reference_day(self) -> None:
        fetcher = DummyFetcher(_page("Sunday 1 Jun 2025"))
        result = self._service(fetcher).get_prayer_times(_at(8, 0))

        self.assertTrue(result.is_stale)
        assert result.schedule is not None
        self.assertEqual(result.schedule.calendar_date, date(2025, 6, 2))
        self.assertTrue(all(entry.instant.date() == date(2025, 6, 2) for entry in result.schedule.entries))
        self.assertIn("(Data for 1. Jun)", result.date)

    def test_unparseable_date_is_best_effort(self) -> None:
        fetcher = DummyFetcher(_page("soon"))
        result = self._service(fetcher).get_prayer_times(_at(8, 0))

        self.assertTrue(result.best_effort)
        self.assertFalse(result.is_stale)
        self.assertIsNone(result.error)
        self.assertTrue(result.date.endswith("(Scraped Date Invalid)"))

    def test_zero_parseable_entries_returns_fallback(self) -> None:
        fetcher = DummyFetcher(_page("Monday 2 Jun 2025", {"Fajr": "late", "Isha": "99:00"}))
        result = self._service(fetcher).get_prayer_times(_at(8, 0))

        self.assertIsNotNone(result.error)
        self.assertEqual(len(result.times), 6)
        self.assertIsNone(result.current_prayer)
        self.assertIsNone(result.next_prayer)
        self.assertTrue(result.date.startswith("Error: "))

    def test_source_failure_returns_fallback_with_reason(self) -> None:
        fetcher = DummyFetcher(error=SourceUnavailable("ConnectTimeout: timed out"))
        result = self._service(fetcher).get_prayer_times(_at(8, 0))

        self.assertEqual(result.error, "Source unavailable: ConnectTimeout: timed out")
        self.assertEqual(len(result.times), 6)

    def test_unexpected_error_returns_fallback(self) -> None:
        fetcher = DummyFetcher(_page("Monday 2 Jun 2025"))
        service = self._service(fetcher)
        with patch("miqat.services.prayer.extract_schedule", side_effect=RuntimeError("parser exploded")):
            result = service.get_prayer_times(_at(8, 0))

        assert result.error is not None
        self.assertIn("parser exploded", result.error)
        self.assertIsNone(result.next_prayer)

    def test_schedule_is_cached_for_the_day(self) -> None:
        fetcher = DummyFetcher(_page("Monday 2 Jun 2025"))
        service = self._service(fetcher)

        first = service.get_prayer_times(_at(8, 0))
        second = service.get_prayer_times(_at(14, 0))
        self.assertEqual(fetcher.calls, 1)
        self.assertIs(first.schedule, second.schedule)

        service.get_prayer_times(_at(14, 0), refresh=True)
        self.assertEqual(fetcher.calls, 2)

        fetcher.content = _page("Tuesday 3 Jun 2025")
        service.get_prayer_times(_at(1, 0, date(2025, 6, 3)))
        self.assertEqual(fetcher.calls, 3)

    def test_stale_schedules_are_not_cached(self) -> None:
        fetcher = DummyFetcher(_page("Sunday 1 Jun 2025"))
        service = self._service(fetcher)
        service.get_prayer_times(_at(8, 0))
        service.get_prayer_times(_at(8, 5))
        self.assertEqual(fetcher.calls, 2)

    def test_status_is_a_pure_query_on_a_shared_schedule(self) -> None:
        service = self._service(DummyFetcher())
        schedule = service.build_schedule(_page("Monday 2 Jun 2025"), _at(8, 0))

        self.assertEqual(service.status(schedule, _at(22, 50)), service.status(schedule, _at(22, 50)))
        status = service.status(schedule, _at(22, 50))
        assert status.next is not None
        self.assertTrue(status.next.tomorrow)
        self.assertEqual(status.next.instant, _at(3, 30, date(2025, 6, 3)))

    def test_result_is_json_serializable(self) -> None:
        fetcher = DummyFetcher(_page("Monday 2 Jun 2025"))
        result = self._service(fetcher).get_prayer_times(_at(23, 0))
        payload = json.loads(result.to_json())

        self.assertEqual(payload["date"], "Monday, 2. Jun 2025")
        self.assertEqual(payload["times"][0], {"name": "Fajr", "time": "03:30"})
        self.assertEqual(payload["currentPrayer"], {"name": "Isha", "time": "22:45"})
        self.assertEqual(payload["nextPrayer"]["name"], "Fajr")
        self.assertEqual(payload["nextPrayer"]["etaMinutes"], 270)
        self.assertEqual(payload["nextPrayer"]["timeUntil"], "4h 30m (tomorrow)")
        self.assertEqual(payload["nextPrayer"]["instant"], "2025-06-03T03:30:00+02:00")
        self.assertFalse(payload["isStale"])
        self.assertIsNone(payload["error"])

    def test_bad_zone_fails_at_construction(self) -> None:
        self.config.schedule.timezone = "Nowhere/Special"
        with self.assertRaises(ConfigurationError):
            PrayerTimesService(self.config, fetcher=DummyFetcher())

    def test_naive_reference_is_rejected(self) -> None:
        service = self._service(DummyFetcher(_page("Monday 2 Jun 2025")))
        with self.assertRaises(ValueError):
            service.get_prayer_times(datetime(2025, 6, 2, 8, 0))


class AsyncPrayerTimesServiceTests(unittest.TestCase):
    def test_async_fetch_resolves_status(self) -> None:
        service = PrayerTimesService(MiqatConfig.default(), fetcher=DummyFetcher(), cache=ScheduleCache())
        fetcher = DummyAsyncFetcher(_page("Monday 2 Jun 2025"))

        result = asyncio.run(service.aget_prayer_times(fetcher, _at(18, 0)))

        assert result.current_prayer is not None
        self.assertEqual(result.current_prayer.name, PrayerName.ASR)

    def test_async_timeout_returns_fallback(self) -> None:
        config = MiqatConfig.default()
        config.source.timeout = 0.01
        service = PrayerTimesService(config, fetcher=DummyFetcher())
        fetcher = DummyAsyncFetcher(_page("Monday 2 Jun 2025"), delay=1.0)

        result = asyncio.run(service.aget_prayer_times(fetcher, _at(18, 0)))

        assert result.error is not None
        self.assertIn("timed out", result.error)
        self.assertEqual(len(result.times), 6)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
