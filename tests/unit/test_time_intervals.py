from datetime import time

from django.test import SimpleTestCase

from algorithms.availability.time_intervals import (
    TimeWindow,
    are_time_intervals_overlapping,
    duration_minutes,
    merge_windows,
    spans_midnight,
    subtract_windows,
    time_to_minutes,
)


class TimeToMinutesTests(SimpleTestCase):
    def test_accepts_times_strings_and_minutes(self):
        self.assertEqual(time_to_minutes(time(9, 30)), 570)
        self.assertEqual(time_to_minutes("09:30"), 570)
        self.assertEqual(time_to_minutes("09:30:00"), 570)
        self.assertEqual(time_to_minutes(570), 570)

    def test_malformed_input_is_none(self):
        self.assertIsNone(time_to_minutes(None))
        self.assertIsNone(time_to_minutes(""))
        self.assertIsNone(time_to_minutes("25:00"))
        self.assertIsNone(time_to_minutes("nine"))
        self.assertIsNone(time_to_minutes(1440))


class TimeWindowTests(SimpleTestCase):
    def test_midnight_span_is_normalised(self):
        window = TimeWindow.from_times(time(22, 0), time(2, 0))

        self.assertEqual(window, TimeWindow(1320, 1560))
        self.assertTrue(window.spans_midnight)
        self.assertTrue(spans_midnight("22:00", "02:00"))
        self.assertEqual(duration_minutes("22:00", "02:00"), 240)

    def test_malformed_duration_is_zero(self):
        self.assertEqual(duration_minutes(None, "10:00"), 0)

    def test_subtract_splits_window(self):
        window = TimeWindow(540, 1020)

        self.assertEqual(
            window.subtract(TimeWindow(720, 780)),
            [TimeWindow(540, 720), TimeWindow(780, 1020)],
        )

    def test_subtract_touching_block_leaves_window(self):
        window = TimeWindow(540, 720)

        self.assertEqual(window.subtract(TimeWindow(720, 780)), [window])

    def test_subtract_covering_block_removes_window(self):
        self.assertEqual(subtract_windows([TimeWindow(600, 660)], [TimeWindow(540, 720)]), [])

    def test_merge_joins_overlapping_and_touching_windows(self):
        merged = merge_windows(
            [TimeWindow(780, 900), TimeWindow(540, 720), TimeWindow(720, 780), TimeWindow(960, 1000)]
        )

        self.assertEqual(merged, [TimeWindow(540, 900), TimeWindow(960, 1000)])

    def test_shrunk_returns_none_when_consumed(self):
        self.assertIsNone(TimeWindow(540, 570).shrunk(15, 15))
        self.assertEqual(TimeWindow(540, 600).shrunk(15, 15), TimeWindow(555, 585))


class OverlapTests(SimpleTestCase):
    def test_overlapping_intervals(self):
        self.assertTrue(are_time_intervals_overlapping("09:00", "12:00", "11:00", "13:00"))
        self.assertFalse(are_time_intervals_overlapping("09:00", "10:00", "11:00", "12:00"))

    def test_adjacency_only_counts_when_allowed(self):
        self.assertFalse(are_time_intervals_overlapping("09:00", "12:00", "12:00", "13:00"))
        self.assertTrue(
            are_time_intervals_overlapping("09:00", "12:00", "12:00", "13:00", allow_adjacency=True)
        )

    def test_midnight_spanning_interval(self):
        self.assertTrue(are_time_intervals_overlapping("22:00", "02:00", "23:00", "23:30"))

    def test_malformed_interval_never_overlaps(self):
        self.assertFalse(are_time_intervals_overlapping(None, "10:00", "09:00", "11:00"))
        self.assertFalse(are_time_intervals_overlapping("bad", "10:00", "09:00", "11:00"))

    def test_documented_midnight_examples(self):
        self.assertTrue(are_time_intervals_overlapping("22:00", "06:00", "23:00", "01:00", False))
        self.assertFalse(are_time_intervals_overlapping("09:00", "10:00", "10:00", "11:00", False))
        self.assertTrue(are_time_intervals_overlapping("09:00", "10:00", "10:00", "11:00", True))

    def test_overlap_is_symmetric(self):
        pairs = [
            (("09:00", "12:00"), ("11:00", "13:00")),
            (("09:00", "10:00"), ("11:00", "12:00")),
            (("09:00", "12:00"), ("12:00", "13:00")),
            (("22:00", "06:00"), ("23:00", "01:00")),
            (("22:00", "02:00"), ("02:00", "04:00")),
            (("23:00", "01:00"), ("08:00", "09:00")),
            ((time(9), time(17)), ("12:00", "12:30")),
            ((None, "10:00"), ("09:00", "11:00")),
            (("bad", "10:00"), ("09:00", "11:00")),
        ]

        for first, second in pairs:
            for allow_adjacency in (False, True):
                with self.subTest(first=first, second=second, allow_adjacency=allow_adjacency):
                    self.assertEqual(
                        are_time_intervals_overlapping(*first, *second, allow_adjacency=allow_adjacency),
                        are_time_intervals_overlapping(*second, *first, allow_adjacency=allow_adjacency),
                    )
