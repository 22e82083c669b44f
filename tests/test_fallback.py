from __future__ import annotations

from datetime import datetime, timezone
import unittest
from unittest.mock import patch
from zoneinfo import ZoneInfo

from miqat.fallback import DEFAULT_FALLBACK_TIMES, UNAVAILABLE_DATE, build_fallback
from miqat.models import PrayerName

BERLIN = ZoneInfo("Europe/Berlin")


class FallbackTests(unittest.TestCase):
    def test_default_fallback_shape(self) -> None:
        reference = datetime(2025, 6, 1, 23, 30, tzinfo=timezone.utc)
        result = build_fallback("Source unavailable: boom", reference, BERLIN)

        self.assertEqual(result.error, "Source unavailable: boom")
        self.assertIsNone(result.current_prayer)
        self.assertIsNone(result.next_prayer)
        self.assertFalse(result.is_stale)
        self.assertEqual(len(result.times), 6)
        self.assertEqual(result.times[0], {"name": "Fajr", "time": "03:30"})
        self.assertEqual(result.times[-1], {"name": "Isha", "time": "22:45"})
        # 23:30 UTC is already 2 June in Berlin.
        self.assertEqual(result.date, "Error: Monday, 2. Jun 2025")

    def test_serializes_with_null_status(self) -> None:
        payload = build_fallback("x", datetime(2025, 6, 1, 12, 0, tzinfo=BERLIN), BERLIN).to_dict()
        self.assertIsNone(payload["currentPrayer"])
        self.assertIsNone(payload["nextPrayer"])
        self.assertEqual(payload["error"], "x")
        self.assertEqual(len(payload["times"]), 6)

    def test_missing_reference_and_zone_do_not_raise(self) -> None:
        result = build_fallback("no clock")
        self.assertTrue(result.date.startswith("Error: "))
        self.assertEqual(len(result.times), 6)

    def test_naive_reference_is_replaced(self) -> None:
        result = build_fallback("naive", datetime(2025, 6, 1, 12, 0), BERLIN)
        self.assertEqual(result.error, "naive")

    def test_bad_custom_time_renders_placeholder(self) -> None:
        times = dict(DEFAULT_FALLBACK_TIMES)
        times[PrayerName.ASR] = "half past five"
        result = build_fallback("x", datetime(2025, 6, 1, 12, 0, tzinfo=BERLIN), BERLIN, times)
        self.assertIn({"name": "Asr", "time": "N/A"}, result.times)

    def test_formatting_failure_degrades_to_placeholder_date(self) -> None:
        with patch("miqat.fallback.format_display_date", side_effect=ValueError("bad locale")):
            result = build_fallback("x", datetime(2025, 6, 1, 12, 0, tzinfo=BERLIN), BERLIN)
        self.assertEqual(result.date, f"Error: {UNAVAILABLE_DATE}")
        self.assertEqual(len(result.times), 6)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
