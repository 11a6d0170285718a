from datetime import date, datetime, time

import pytz
from django.test import SimpleTestCase

from algorithms.availability.timezone_normalizer import (
    AMBIGUOUS,
    NONEXISTENT,
    InvalidTimezoneError,
    TimezoneNormalizer,
    get_zone,
    is_valid_timezone,
)

NEW_YORK = "America/New_York"


class TimezoneNormalizerTests(SimpleTestCase):
    def setUp(self):
        self.normalizer = TimezoneNormalizer()

    def test_unknown_zone_is_rejected(self):
        with self.assertRaises(InvalidTimezoneError):
            get_zone("Mars/Olympus_Mons")
        self.assertFalse(is_valid_timezone(""))
        self.assertTrue(is_valid_timezone(NEW_YORK))

    def test_regular_time_has_no_anomaly(self):
        instant = self.normalizer.localize(date(2025, 1, 15), 9 * 60, NEW_YORK)

        self.assertEqual(instant.utc, datetime(2025, 1, 15, 14, 0, tzinfo=pytz.utc))
        self.assertIsNone(instant.anomaly)

    def test_nonexistent_time_moves_past_gap(self):
        # 02:30 does not exist on 2025-03-09 in New York
        instant = self.normalizer.localize(date(2025, 3, 9), 150, NEW_YORK)

        self.assertEqual(instant.utc, datetime(2025, 3, 9, 7, 0, tzinfo=pytz.utc))
        self.assertEqual(instant.anomaly, NONEXISTENT)

    def test_ambiguous_time_uses_earlier_instant(self):
        # 01:30 happens twice on 2025-11-02 in New York
        instant = self.normalizer.localize(date(2025, 11, 2), 90, NEW_YORK)

        self.assertEqual(instant.utc, datetime(2025, 11, 2, 5, 30, tzinfo=pytz.utc))
        self.assertEqual(instant.anomaly, AMBIGUOUS)

    def test_minutes_past_midnight_roll_into_next_day(self):
        instant = self.normalizer.localize(date(2025, 1, 6), 25 * 60, "UTC")

        self.assertEqual(instant.utc, datetime(2025, 1, 7, 1, 0, tzinfo=pytz.utc))

    def test_offsets(self):
        self.assertEqual(self.normalizer.offset_hours(date(2025, 1, 15), NEW_YORK), -5.0)
        self.assertEqual(self.normalizer.offset_hours(date(2025, 7, 15), NEW_YORK), -4.0)
        self.assertEqual(self.normalizer.dst_offset_hours(date(2025, 7, 15), NEW_YORK), 1.0)
        self.assertTrue(self.normalizer.is_dst(date(2025, 7, 15), NEW_YORK))
        self.assertFalse(self.normalizer.is_dst(date(2025, 1, 15), NEW_YORK))
        self.assertEqual(
            self.normalizer.offset_between(NEW_YORK, "Europe/London", date(2025, 1, 15)), 5.0
        )

    def test_transition_dates(self):
        self.assertTrue(self.normalizer.is_dst_transition_date(date(2025, 3, 9), NEW_YORK))
        self.assertTrue(self.normalizer.is_dst_transition_date(date(2025, 11, 2), NEW_YORK))
        self.assertFalse(self.normalizer.is_dst_transition_date(date(2025, 3, 10), NEW_YORK))
        self.assertFalse(self.normalizer.is_dst_transition_date(date(2025, 3, 9), "UTC"))

    def test_to_local_treats_naive_as_utc(self):
        local_date, local_time = self.normalizer.to_local(datetime(2025, 1, 15, 3, 0), NEW_YORK)

        self.assertEqual(local_date, date(2025, 1, 14))
        self.assertEqual(local_time.hour, 22)

    def test_to_utc_round_trips_on_regular_dates(self):
        cases = [
            (date(2025, 1, 15), time(9, 30), NEW_YORK),
            (date(2025, 7, 4), time(23, 45), NEW_YORK),
            (date(2025, 1, 15), time(0, 0), "Asia/Kolkata"),
            (date(2025, 6, 1), time(12, 0), "Europe/London"),
            (date(2025, 1, 15), time(9, 30, 15), "UTC"),
        ]

        for target_date, time_of_day, zone_name in cases:
            with self.subTest(date=target_date, time=time_of_day, zone=zone_name):
                instant = self.normalizer.to_utc(target_date, time_of_day, zone_name)
                self.assertEqual(
                    self.normalizer.to_local(instant, zone_name), (target_date, time_of_day)
                )

    def test_to_utc_moves_gap_times_forward(self):
        instant = self.normalizer.to_utc(date(2025, 3, 9), time(2, 30), NEW_YORK)

        self.assertEqual(instant, datetime(2025, 3, 9, 7, 0, tzinfo=pytz.utc))
        self.assertEqual(self.normalizer.to_local(instant, NEW_YORK), (date(2025, 3, 9), time(3, 0)))

    def test_to_utc_accepts_strings_and_minutes(self):
        expected = datetime(2025, 1, 15, 14, 0, 30, tzinfo=pytz.utc)

        self.assertEqual(self.normalizer.to_utc(date(2025, 1, 15), "09:00:30", NEW_YORK), expected)
        self.assertEqual(
            self.normalizer.to_utc(date(2025, 1, 15), "09:00", NEW_YORK), expected.replace(second=0)
        )
        self.assertEqual(
            self.normalizer.to_utc(date(2025, 1, 15), 540, NEW_YORK), expected.replace(second=0)
        )

    def test_to_utc_rejects_missing_or_malformed_times(self):
        for value in (None, "", "noon", "25:00"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    self.normalizer.to_utc(date(2025, 1, 15), value, NEW_YORK)
