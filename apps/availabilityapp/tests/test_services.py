from datetime import date, datetime, time, timedelta

import pytz
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings

from apps.availabilityapp.constants import (
    PRECOMPUTE_CANCELLED,
    PRECOMPUTE_COMPLETED,
    PRECOMPUTE_RUNNING,
    SOURCE_GOOGLE_CALENDAR,
    SOURCE_MANUAL,
)
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.availabilityapp.services.availability_service import AvailabilityService
from apps.availabilityapp.services.cache_service import AvailabilityCache
from apps.availabilityapp.services.rule_service import RuleService
from apps.availabilityapp.services.stats_service import AvailabilityStatsService
from apps.availabilityapp.services.timezone_service import TimezoneDiagnosticService
from apps.organizersapp.models import EventType, Organizer
from core.exceptions import (
    ConcurrentModificationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    SchedulingConflictException,
    ValidationException,
)

User = get_user_model()

MONDAY = date(2025, 1, 6)


class AvailabilityTestMixin:
    def create_organizer(self, slug="ada", zone="UTC"):
        user = User.objects.create_user(username=slug, password="testpass")
        return Organizer.objects.create(
            user=user, display_name=slug.title(), organizer_slug=slug, timezone=zone
        )

    def setUp(self):
        cache.clear()
        AvailabilityCache.reset_stats()
        self.organizer = self.create_organizer()
        self.event_type = EventType.objects.create(
            organizer=self.organizer,
            name="Intro Call",
            event_type_slug="intro",
            duration=30,
            max_attendees=3,
        )

    def calculate(self, start_date=MONDAY, end_date=None, **kwargs):
        return AvailabilityService.calculate_slots(
            self.organizer.organizer_slug,
            self.event_type.event_type_slug,
            start_date,
            end_date or start_date,
            **kwargs,
        )


class AvailabilityServiceTests(AvailabilityTestMixin, TestCase):
    """Test the AvailabilityService."""

    def setUp(self):
        super().setUp()
        self.rule = RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {"day_of_week": 0, "start_time": time(9), "end_time": time(17)},
        )

    def test_calculate_slots_response(self):
        result = self.calculate()

        self.assertEqual(result["total_slots"], 16)
        self.assertEqual(len(result["available_slots"]), 16)
        self.assertEqual(result["available_slots"][0]["start_time"], "2025-01-06T09:00:00+00:00")
        self.assertEqual(result["invitee_timezone"], "UTC")
        self.assertFalse(result["cache_hit"])
        self.assertFalse(result["multi_invitee_mode"])
        self.assertEqual(result["warnings"], [])
        self.assertIn("computation_time_ms", result)

    def test_second_query_is_served_from_cache(self):
        first = self.calculate()
        second = self.calculate()

        self.assertFalse(first["cache_hit"])
        self.assertTrue(second["cache_hit"])
        self.assertEqual(first["available_slots"], second["available_slots"])
        self.assertEqual(AvailabilityCache.stats()["hit_rate"], 50.0)

    def test_rule_edit_invalidates_cached_slots(self):
        self.calculate()

        RuleService.update_rule(self.rule, {"end_time": time(16)})
        result = self.calculate()

        self.assertFalse(result["cache_hit"])
        self.assertEqual(result["total_slots"], 14)

    def test_override_on_other_date_keeps_cache(self):
        self.calculate()

        RuleService.create_rule(
            self.organizer,
            DateOverrideRule,
            {"date": MONDAY + timedelta(days=3), "is_available": False},
        )

        self.assertTrue(self.calculate()["cache_hit"])

    def test_override_on_following_date_invalidates_cache(self):
        RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {"day_of_week": 0, "start_time": time(22), "end_time": time(2)},
        )
        tuesday = MONDAY + timedelta(days=1)
        self.assertEqual(self.calculate(start_date=tuesday)["total_slots"], 4)

        RuleService.create_rule(
            self.organizer, DateOverrideRule, {"date": tuesday, "is_available": False}
        )
        result = self.calculate(start_date=tuesday)

        self.assertFalse(result["cache_hit"])
        self.assertEqual(result["total_slots"], 0)

    def test_override_on_queried_date_invalidates_cache(self):
        self.calculate()

        RuleService.create_rule(
            self.organizer, DateOverrideRule, {"date": MONDAY, "is_available": False}
        )
        result = self.calculate()

        self.assertFalse(result["cache_hit"])
        self.assertEqual(result["total_slots"], 0)

    def test_buffer_change_invalidates_cache(self):
        self.calculate()

        BufferTime.objects.create(
            organizer=self.organizer, default_buffer_before=15, slot_interval_minutes=30
        )
        result = self.calculate()

        self.assertFalse(result["cache_hit"])
        self.assertEqual(result["available_slots"][0]["start_time"], "2025-01-06T09:15:00+00:00")

    def test_default_buffer_row_keeps_cache(self):
        self.calculate()

        BufferTime.objects.create(organizer=self.organizer)

        self.assertTrue(self.calculate()["cache_hit"])

    def test_buffer_update_through_service_invalidates_cache(self):
        self.calculate()

        RuleService.update_buffer_time(self.organizer, {"default_buffer_after": 30})
        result = self.calculate()

        self.assertFalse(result["cache_hit"])
        self.assertEqual(result["total_slots"], 15)

    def test_event_type_buffers_override_organizer_policy(self):
        BufferTime.objects.create(organizer=self.organizer, default_buffer_before=15)
        self.event_type.buffer_time_before = 0
        self.event_type.slot_interval_minutes = 60
        self.event_type.save()

        result = self.calculate()

        self.assertEqual(result["total_slots"], 8)
        self.assertEqual(result["available_slots"][0]["start_time"], "2025-01-06T09:00:00+00:00")

    def test_invitee_timezones_enable_fairness(self):
        result = self.calculate(invitee_timezones="UTC, Asia/Tokyo")

        self.assertTrue(result["multi_invitee_mode"])
        self.assertEqual(result["invitee_timezones"], ["UTC", "Asia/Tokyo"])
        self.assertEqual(result["available_slots"][0]["fairness_score"], 1.0)
        self.assertIn("Asia/Tokyo", result["available_slots"][0]["invitee_times"])

    def test_dst_transition_warning(self):
        RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {"day_of_week": 6, "start_time": time(9), "end_time": time(12)},
        )

        result = self.calculate(start_date=date(2025, 3, 9), invitee_timezone="America/New_York")

        self.assertEqual(
            result["warnings"], ["2025-03-09 is a DST transition date in America/New_York."]
        )

    def test_unknown_organizer(self):
        with self.assertRaises(ResourceNotFoundException):
            AvailabilityService.calculate_slots("nobody", "intro", MONDAY, MONDAY)

    def test_unknown_or_inactive_event_type(self):
        self.event_type.is_active = False
        self.event_type.save()

        with self.assertRaises(ResourceNotFoundException):
            self.calculate()

    def test_invalid_queries(self):
        cases = [
            ({"end_date": MONDAY - timedelta(days=1)}, "end_date"),
            ({"end_date": MONDAY + timedelta(days=120)}, "end_date"),
            ({"invitee_timezone": "Nowhere/City"}, "invitee_timezone"),
            ({"invitee_timezones": ["UTC", "Bad/Zone"]}, "invitee_timezones"),
            ({"attendee_count": 4}, "attendee_count"),
            ({"attendee_count": 0}, "attendee_count"),
        ]
        for kwargs, field in cases:
            with self.subTest(field=field, kwargs=kwargs):
                with self.assertRaises(ValidationException) as ctx:
                    self.calculate(**kwargs)
                self.assertIn(field, ctx.exception.errors)

    def test_organizer_timezone_is_the_default_invitee_zone(self):
        self.organizer.timezone = "America/New_York"
        self.organizer.save()

        result = self.calculate()

        self.assertEqual(result["invitee_timezone"], "America/New_York")
        self.assertEqual(result["available_slots"][0]["start_time"], "2025-01-06T14:00:00+00:00")
        self.assertEqual(
            result["available_slots"][0]["local_start_time"], "2025-01-06T09:00:00-05:00"
        )

    def test_blocked_time_is_subtracted(self):
        BlockedTime.objects.create(
            organizer=self.organizer,
            start_datetime=datetime(2025, 1, 6, 12, 0, tzinfo=pytz.utc),
            end_datetime=datetime(2025, 1, 6, 13, 0, tzinfo=pytz.utc),
        )

        self.assertEqual(self.calculate()["total_slots"], 14)


class PrecomputeTests(AvailabilityTestMixin, TestCase):
    """Test cache precomputation and cancellation."""

    def test_precompute_warms_each_day(self):
        summary = AvailabilityService.precompute(self.organizer, days_ahead=3)

        self.assertEqual(summary["status"], PRECOMPUTE_COMPLETED)
        self.assertEqual(summary["days_processed"], 3)
        first_day = sorted(summary["results"])[0]
        self.assertEqual(summary["results"][first_day], {"intro": "ok"})
        self.assertEqual(
            AvailabilityService.get_precompute_status(self.organizer.id)["status"],
            PRECOMPUTE_COMPLETED,
        )

    def test_cancelled_precompute_stops_before_next_day(self):
        AvailabilityService.mark_precompute_queued(self.organizer.id)
        self.assertTrue(AvailabilityService.cancel_precompute(self.organizer.id))

        summary = AvailabilityService.precompute(self.organizer, days_ahead=5)

        self.assertEqual(summary["status"], PRECOMPUTE_CANCELLED)
        self.assertEqual(summary["days_processed"], 0)
        self.assertFalse(AvailabilityService.is_precompute_cancelled(self.organizer.id))

    def test_cancel_without_running_precompute(self):
        self.assertFalse(AvailabilityService.cancel_precompute(self.organizer.id))

    def test_queueing_keeps_a_running_precompute_cancellable(self):
        AvailabilityService._set_precompute_status(self.organizer.id, PRECOMPUTE_RUNNING)

        AvailabilityService.mark_precompute_queued(self.organizer.id)

        self.assertEqual(
            AvailabilityService.get_precompute_status(self.organizer.id)["status"],
            PRECOMPUTE_RUNNING,
        )
        self.assertTrue(AvailabilityService.cancel_precompute(self.organizer.id))


class RuleServiceTests(AvailabilityTestMixin, TestCase):
    """Test rule writes, conflicts and calendar sync."""

    def setUp(self):
        super().setUp()
        self.morning = RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {"day_of_week": 0, "start_time": time(9), "end_time": time(12)},
        )

    def test_overlapping_rule_is_rejected(self):
        with self.assertRaises(SchedulingConflictException) as ctx:
            RuleService.create_rule(
                self.organizer,
                AvailabilityRule,
                {"day_of_week": 0, "start_time": time(11), "end_time": time(13)},
            )

        self.assertEqual(ctx.exception.conflicting_rule, self.morning)
        self.assertEqual(ctx.exception.errors, {"conflicting_rule_id": str(self.morning.id)})
        self.assertEqual(AvailabilityRule.objects.count(), 1)

    def test_touching_rule_is_rejected(self):
        with self.assertRaises(SchedulingConflictException):
            RuleService.create_rule(
                self.organizer,
                AvailabilityRule,
                {"day_of_week": 0, "start_time": time(12), "end_time": time(14)},
            )

    def test_inactive_rule_does_not_conflict(self):
        rule = RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {"day_of_week": 0, "start_time": time(10), "end_time": time(11), "is_active": False},
        )

        self.assertFalse(rule.is_active)

    def test_other_organizer_rules_do_not_conflict(self):
        other = self.create_organizer(slug="grace")

        rule = RuleService.create_rule(
            other,
            AvailabilityRule,
            {"day_of_week": 0, "start_time": time(9), "end_time": time(12)},
        )

        self.assertEqual(rule.organizer, other)

    def test_update_can_move_rule_within_its_own_slot(self):
        rule = RuleService.update_rule(self.morning, {"start_time": time(8)})

        self.assertEqual(rule.start_time, time(8))

    def test_update_into_conflict_is_rejected(self):
        afternoon = RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {"day_of_week": 0, "start_time": time(14), "end_time": time(17)},
        )

        with self.assertRaises(SchedulingConflictException):
            RuleService.update_rule(afternoon, {"start_time": time(11)})

    def test_event_types_are_assigned(self):
        rule = RuleService.create_rule(
            self.organizer,
            AvailabilityRule,
            {
                "day_of_week": 1,
                "start_time": time(9),
                "end_time": time(12),
                "event_types": [self.event_type],
            },
        )

        self.assertEqual(list(rule.event_types.all()), [self.event_type])

    def test_recurring_blocks_conflict_within_date_bounds(self):
        RuleService.create_rule(
            self.organizer,
            RecurringBlockedTime,
            {
                "name": "Lunch",
                "day_of_week": 0,
                "start_time": time(12),
                "end_time": time(13),
                "end_date": date(2025, 6, 30),
            },
        )

        RuleService.create_rule(
            self.organizer,
            RecurringBlockedTime,
            {
                "name": "Late lunch",
                "day_of_week": 0,
                "start_time": time(12, 30),
                "end_time": time(13, 30),
                "start_date": date(2025, 7, 1),
            },
        )
        with self.assertRaises(SchedulingConflictException):
            RuleService.create_rule(
                self.organizer,
                RecurringBlockedTime,
                {"name": "Always", "day_of_week": 0, "start_time": time(12), "end_time": time(12, 15)},
            )

    @override_settings(AVAILABILITY_LOCK_TIMEOUT=0)
    def test_lock_timeout_raises(self):
        cache.add(f"lock:organizer_rules:{self.organizer.id}", "someone-else", 60)

        with self.assertRaises(ConcurrentModificationException):
            RuleService.create_rule(
                self.organizer,
                AvailabilityRule,
                {"day_of_week": 3, "start_time": time(9), "end_time": time(12)},
            )

    def test_lock_is_released_after_write(self):
        RuleService.delete_rule(self.morning)

        self.assertIsNone(cache.get(f"lock:organizer_rules:{self.organizer.id}"))
        self.assertFalse(AvailabilityRule.objects.exists())

    def test_external_block_upsert(self):
        start = datetime(2025, 1, 6, 10, 0, tzinfo=pytz.utc)
        updated_at = datetime(2025, 1, 1, tzinfo=pytz.utc)

        block = RuleService.upsert_external_block(
            self.organizer,
            SOURCE_GOOGLE_CALENDAR,
            "evt-1",
            start,
            start + timedelta(hours=1),
            reason="Standup",
            external_updated_at=updated_at,
        )
        RuleService.upsert_external_block(
            self.organizer,
            SOURCE_GOOGLE_CALENDAR,
            "evt-1",
            start,
            start + timedelta(hours=2),
            external_updated_at=updated_at - timedelta(days=1),
        )
        RuleService.upsert_external_block(
            self.organizer,
            SOURCE_GOOGLE_CALENDAR,
            "evt-1",
            start,
            start + timedelta(hours=3),
            external_updated_at=updated_at + timedelta(days=1),
        )

        block.refresh_from_db()
        self.assertEqual(BlockedTime.objects.count(), 1)
        self.assertEqual(block.end_datetime, start + timedelta(hours=3))

    def test_external_blocks_are_read_only(self):
        start = datetime(2025, 1, 6, 10, 0, tzinfo=pytz.utc)
        block = RuleService.upsert_external_block(
            self.organizer, SOURCE_GOOGLE_CALENDAR, "evt-2", start, start + timedelta(hours=1)
        )

        with self.assertRaises(PermissionDeniedException):
            RuleService.update_rule(block, {"reason": "mine now"})
        with self.assertRaises(PermissionDeniedException):
            RuleService.delete_rule(block)

        self.assertTrue(
            RuleService.remove_external_block(self.organizer, SOURCE_GOOGLE_CALENDAR, "evt-2")
        )
        self.assertFalse(
            RuleService.remove_external_block(self.organizer, SOURCE_GOOGLE_CALENDAR, "evt-2")
        )

    def test_external_block_validation(self):
        start = datetime(2025, 1, 6, 10, 0, tzinfo=pytz.utc)

        with self.assertRaises(ValidationException):
            RuleService.upsert_external_block(self.organizer, SOURCE_MANUAL, "x", start, start + timedelta(hours=1))
        with self.assertRaises(ValidationException):
            RuleService.upsert_external_block(self.organizer, SOURCE_GOOGLE_CALENDAR, "", start, start + timedelta(hours=1))
        with self.assertRaises(ValidationException):
            RuleService.upsert_external_block(self.organizer, SOURCE_GOOGLE_CALENDAR, "x", start, start)


class AvailabilityCacheTests(AvailabilityTestMixin, TestCase):
    """Test range-aware cache invalidation."""

    def put_entry(self, start_date=MONDAY, end_date=MONDAY):
        key = AvailabilityCache.build_key(
            self.organizer.id, self.event_type.id, start_date, end_date, "UTC", [], 1
        )
        sequence = AvailabilityCache.current_sequence(self.organizer.id)
        AvailabilityCache.put(self.organizer.id, key, [{"start_time": "x"}], start_date, end_date, sequence)
        return key

    def test_key_ignores_invitee_order(self):
        first = AvailabilityCache.build_key(
            self.organizer.id, self.event_type.id, MONDAY, MONDAY, "UTC", ["UTC", "Asia/Tokyo"], 1
        )
        second = AvailabilityCache.build_key(
            self.organizer.id, self.event_type.id, MONDAY, MONDAY, "UTC", ["Asia/Tokyo", "UTC"], 1
        )
        other_primary = AvailabilityCache.build_key(
            self.organizer.id, self.event_type.id, MONDAY, MONDAY, "Asia/Tokyo", ["Asia/Tokyo", "UTC"], 1
        )

        self.assertEqual(first, second)
        self.assertNotEqual(first, other_primary)

    def test_disjoint_invalidation_keeps_entry(self):
        key = self.put_entry()

        AvailabilityCache.invalidate(self.organizer.id, (MONDAY + timedelta(days=1), None))

        self.assertIsNotNone(AvailabilityCache.get(self.organizer.id, key))

    def test_intersecting_invalidation_drops_entry(self):
        key = self.put_entry(end_date=MONDAY + timedelta(days=6))

        AvailabilityCache.invalidate(self.organizer.id, (MONDAY + timedelta(days=3), MONDAY + timedelta(days=3)))

        self.assertIsNone(AvailabilityCache.get(self.organizer.id, key))

    def test_unbounded_invalidation_drops_entry(self):
        key = self.put_entry()

        AvailabilityCache.invalidate(self.organizer.id)

        self.assertIsNone(AvailabilityCache.get(self.organizer.id, key))

    def test_mutation_during_computation_is_detected(self):
        key = AvailabilityCache.build_key(self.organizer.id, self.event_type.id, MONDAY, MONDAY, "UTC", [], 1)
        observed = AvailabilityCache.current_sequence(self.organizer.id)

        # A rule changes after the sequence was read but before the slots are stored
        AvailabilityCache.invalidate(self.organizer.id, (MONDAY, MONDAY))
        AvailabilityCache.put(self.organizer.id, key, [], MONDAY, MONDAY, observed)

        self.assertIsNone(AvailabilityCache.get(self.organizer.id, key))

    @override_settings(AVAILABILITY_INVALIDATION_LOG_SIZE=2)
    def test_truncated_log_drops_entry(self):
        key = self.put_entry()

        for offset in range(3):
            AvailabilityCache.invalidate(self.organizer.id, (MONDAY + timedelta(days=10 + offset),) * 2)

        self.assertIsNone(AvailabilityCache.get(self.organizer.id, key))

    def test_other_organizer_invalidation_is_ignored(self):
        key = self.put_entry()
        other = self.create_organizer(slug="grace")

        AvailabilityCache.invalidate(other.id)

        self.assertIsNotNone(AvailabilityCache.get(self.organizer.id, key))

    def test_clear(self):
        key = self.put_entry()

        AvailabilityCache.clear(self.organizer.id)

        self.assertIsNone(AvailabilityCache.get(self.organizer.id, key))

    def test_stats(self):
        key = self.put_entry()
        AvailabilityCache.get(self.organizer.id, key)
        AvailabilityCache.get(self.organizer.id, "missing")
        AvailabilityCache.get(self.organizer.id, "missing-too")

        self.assertEqual(AvailabilityCache.stats(), {"hits": 1, "misses": 2, "hit_rate": 33.33})


class StatsAndDiagnosticTests(AvailabilityTestMixin, TestCase):
    def test_stats(self):
        AvailabilityRule.objects.create(organizer=self.organizer, day_of_week=0, start_time=time(9), end_time=time(17))
        AvailabilityRule.objects.create(organizer=self.organizer, day_of_week=1, start_time=time(9), end_time=time(12))
        AvailabilityRule.objects.create(
            organizer=self.organizer, day_of_week=2, start_time=time(9), end_time=time(17), is_active=False
        )
        DateOverrideRule.objects.create(organizer=self.organizer, date=MONDAY, is_available=False)

        stats = AvailabilityStatsService.get_stats(self.organizer)

        self.assertEqual(stats["total_rules"], 3)
        self.assertEqual(stats["active_rules"], 2)
        self.assertEqual(stats["total_overrides"], 1)
        self.assertEqual(stats["total_blocks"], 0)
        self.assertEqual(stats["daily_hours"]["Monday"], 8.0)
        self.assertEqual(stats["daily_hours"]["Wednesday"], 0.0)
        self.assertEqual(stats["average_weekly_hours"], 11.0)
        self.assertEqual(stats["busiest_day"], "Monday")
        self.assertEqual(stats["cache_hit_rate"], 0.0)

    def test_stats_without_rules(self):
        stats = AvailabilityStatsService.get_stats(self.organizer)

        self.assertEqual(stats["busiest_day"], "")
        self.assertEqual(stats["average_weekly_hours"], 0.0)

    def test_timezone_diagnostic(self):
        self.organizer.timezone = "America/New_York"

        result = TimezoneDiagnosticService.diagnose(self.organizer, "Europe/London", date(2025, 3, 9))

        self.assertTrue(result["timezone_valid"])
        self.assertEqual(result["offset_hours"], 4.0)
        self.assertEqual(result["utc_offset_hours"], 0.0)
        self.assertFalse(result["is_dst"])
        self.assertFalse(result["is_dst_transition_date"])

        organizer_zone = TimezoneDiagnosticService.diagnose(self.organizer, target_date=date(2025, 3, 9))
        self.assertTrue(organizer_zone["is_dst_transition_date"])

    def test_invalid_timezone_diagnostic(self):
        result = TimezoneDiagnosticService.diagnose(self.organizer, "Nowhere/City", date(2025, 1, 6))

        self.assertFalse(result["timezone_valid"])
        self.assertEqual(result["offset_hours"], 0.0)
