import unittest
from datetime import datetime, timezone

from app.hours import is_open, parse_range, validate_hours

# 2024-01-01 was a Monday.
MON_NOON = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
MON_0300 = datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc)
SAT_0100 = datetime(2024, 1, 6, 1, 0, tzinfo=timezone.utc)


class TestHours(unittest.TestCase):
    def test_no_hours_is_always_open(self):
        self.assertTrue(is_open(None, MON_0300))
        self.assertTrue(is_open({}, MON_0300))

    def test_always_open(self):
        self.assertTrue(is_open("24/7", MON_0300))

    def test_daily_range(self):
        self.assertTrue(is_open("08:00-22:00", MON_NOON))
        self.assertFalse(is_open("08:00-22:00", MON_0300))

    def test_overnight_range_same_day(self):
        self.assertTrue(is_open("18:00-04:00", MON_0300))
        self.assertFalse(is_open("18:00-02:00", MON_NOON))

    def test_overnight_range_from_previous_day(self):
        hours = {"fri": "20:00-02:00"}
        self.assertTrue(is_open(hours, SAT_0100))
        self.assertFalse(is_open({"thu": "20:00-02:00"}, SAT_0100))

    def test_missing_weekday_is_closed(self):
        self.assertFalse(is_open({"tue": "00:00-24:00"}, MON_NOON))
        self.assertTrue(is_open({"mon": "00:00-24:00"}, MON_NOON))

    def test_closed_day(self):
        self.assertFalse(is_open({"mon": "closed"}, MON_NOON))

    def test_timezone_applied(self):
        # 12:00 UTC is 06:00 in Chicago (CST).
        self.assertFalse(is_open("08:00-22:00", MON_NOON, tz="America/Chicago"))
        self.assertTrue(is_open("05:00-22:00", MON_NOON, tz="America/Chicago"))

    def test_parse_range(self):
        opens, closes = parse_range("8:30-17:00")
        self.assertEqual((opens.hour, opens.minute), (8, 30))
        self.assertEqual(closes.hour, 17)
        self.assertIsNone(parse_range("Closed"))

    def test_invalid_ranges_rejected(self):
        for bad in ("8-17", "25:00-26:00", "noon-night"):
            with self.assertRaises(ValueError):
                parse_range(bad)

    def test_validate_hours_normalizes_weekdays(self):
        self.assertEqual(validate_hours({"Monday": "08:00-20:00"}), {"mon": "08:00-20:00"})
        with self.assertRaises(ValueError):
            validate_hours({"someday": "08:00-20:00"})


if __name__ == "__main__":
    unittest.main()
