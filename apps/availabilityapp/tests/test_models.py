from datetime import date, datetime, time

import pytz
from django.contrib.auth import get_user_model
from django.test import TestCase

from algorithms.availability.rule_sources import BufferPolicy
from apps.availabilityapp.constants import SOURCE_GOOGLE_CALENDAR
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.organizersapp.models import EventType, Organizer

User = get_user_model()


class AvailabilityModelTests(TestCase):
    """Test the availability rule models."""

    def setUp(self):
        user = User.objects.create_user(username="organizer", password="testpass")
        self.organizer = Organizer.objects.create(
            user=user,
            display_name="Organizer",
            organizer_slug="organizer",
            timezone="America/New_York",
        )
        self.event_type = EventType.objects.create(
            organizer=self.organizer, name="Intro", event_type_slug="intro"
        )

    def test_weekly_rule_to_rule_source(self):
        rule = AvailabilityRule.objects.create(
            organizer=self.organizer, day_of_week=0, start_time=time(9), end_time=time(17)
        )
        rule.event_types.add(self.event_type)

        source = rule.to_rule_source()

        self.assertEqual(source.id, str(rule.id))
        self.assertEqual(source.event_type_ids, frozenset({str(self.event_type.id)}))
        self.assertEqual(str(rule), "Monday: 09:00:00 - 17:00:00")
        self.assertEqual(rule.affected_range(), (None, None))

    def test_spans_midnight(self):
        rule = AvailabilityRule(organizer=self.organizer, day_of_week=4, start_time=time(22), end_time=time(2))

        self.assertTrue(rule.spans_midnight)

    def test_override_range_and_display(self):
        override = DateOverrideRule.objects.create(
            organizer=self.organizer, date=date(2025, 12, 25), is_available=False
        )

        self.assertEqual(override.affected_range(), (date(2025, 12, 24), date(2025, 12, 27)))
        self.assertEqual(str(override), "2025-12-25: unavailable")
        self.assertFalse(override.spans_midnight)
        self.assertIsNone(override.to_rule_source().window)

    def test_recurring_block_range_reaches_neighbours(self):
        bounded = RecurringBlockedTime(
            organizer=self.organizer,
            name="Lunch",
            day_of_week=2,
            start_time=time(12),
            end_time=time(13),
            start_date=date(2025, 3, 1),
            end_date=date(2025, 3, 31),
        )
        open_ended = RecurringBlockedTime(
            organizer=self.organizer, name="Gym", day_of_week=2, start_time=time(7), end_time=time(8)
        )

        self.assertEqual(bounded.affected_range(), (date(2025, 2, 28), date(2025, 4, 2)))
        self.assertEqual(open_ended.affected_range(), (None, None))

    def test_blocked_time_range_uses_organizer_dates(self):
        block = BlockedTime(
            organizer=self.organizer,
            start_datetime=datetime(2025, 1, 15, 3, 0, tzinfo=pytz.utc),
            end_datetime=datetime(2025, 1, 15, 5, 0, tzinfo=pytz.utc),
        )

        # 03:00 UTC is the evening of the 14th in New York
        self.assertEqual(block.affected_range(), (date(2025, 1, 13), date(2025, 1, 16)))
        self.assertFalse(block.is_read_only)

    def test_synced_blocked_time_is_read_only(self):
        block = BlockedTime(organizer=self.organizer, source=SOURCE_GOOGLE_CALENDAR, external_id="evt-1")

        self.assertTrue(block.is_read_only)

    def test_buffer_time_policy(self):
        buffer_time = BufferTime.objects.create(
            organizer=self.organizer, default_buffer_before=10, default_buffer_after=5, minimum_gap=15
        )

        self.assertEqual(
            buffer_time.to_policy(),
            BufferPolicy(buffer_before=10, buffer_after=5, minimum_gap=15, slot_interval_minutes=30),
        )
