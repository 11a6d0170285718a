# apps/availabilityapp/services/availability_service.py
import logging
import time
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from algorithms.availability.fairness import ReasonableHoursScorer
from algorithms.availability.rule_sources import BufferPolicy, RuleSet
from algorithms.availability.slot_resolver import ResolutionRequest, SlotResolver
from algorithms.availability.timezone_normalizer import (
    TimezoneNormalizer,
    is_valid_timezone,
)
from apps.availabilityapp.constants import (
    AVAILABILITY_PRECOMPUTE_CANCEL_KEY,
    AVAILABILITY_PRECOMPUTE_STATUS_KEY,
    PRECOMPUTE_CANCELLED,
    PRECOMPUTE_COMPLETED,
    PRECOMPUTE_QUEUED,
    PRECOMPUTE_RUNNING,
    PRECOMPUTE_SKIPPED,
)
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.availabilityapp.services.cache_service import AvailabilityCache
from apps.organizersapp.models import EventType, Organizer
from core.exceptions import ResourceNotFoundException, ValidationException

logger = logging.getLogger(__name__)
performance_logger = logging.getLogger("slotwise.performance")


class AvailabilityService:
    """
    Answers slot queries for organizers.

    Validates the query, loads the organizer's rules, runs the slot resolver
    and caches the result. The resolver itself never sees the ORM.
    """

    # Status entries outlive any single precompute run
    PRECOMPUTE_STATUS_TTL = 60 * 60 * 24

    @classmethod
    def calculate_slots(
        cls,
        organizer_slug: str,
        event_type_slug: str,
        start_date: date,
        end_date: date,
        invitee_timezone: Optional[str] = None,
        attendee_count: int = 1,
        invitee_timezones: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Compute (or fetch from cache) the bookable slots for a date range.

        Args:
            organizer_slug: Public slug of the organizer
            event_type_slug: Slug of one of the organizer's event types
            start_date: First organizer-local date of the range
            end_date: Last organizer-local date of the range (inclusive)
            invitee_timezone: Zone slots are projected to; defaults to the
                organizer's zone
            attendee_count: Number of attendees, 1..max_attendees
            invitee_timezones: Zones of every invitee; more than one enables
                fairness ranking

        Returns:
            Response dict with the slots, cache_hit and computation_time_ms

        Raises:
            ResourceNotFoundException: unknown organizer or event type
            ValidationException: malformed range, timezone or attendee count
        """
        started = time.perf_counter()

        organizer = cls.get_organizer(organizer_slug)
        event_type = cls.get_event_type(organizer, event_type_slug)

        invitee_timezone = invitee_timezone or organizer.timezone
        invitee_timezones = cls._clean_timezone_list(invitee_timezones)
        cls.validate_query(
            organizer, event_type, start_date, end_date, invitee_timezone, attendee_count, invitee_timezones
        )

        cache_key = AvailabilityCache.build_key(
            organizer.id,
            event_type.id,
            start_date,
            end_date,
            invitee_timezone,
            invitee_timezones,
            attendee_count,
        )
        slots = AvailabilityCache.get(organizer.id, cache_key)
        cache_hit = slots is not None

        if not cache_hit:
            observed_sequence = AvailabilityCache.current_sequence(organizer.id)
            slots = cls.resolve(
                organizer,
                event_type,
                start_date,
                end_date,
                invitee_timezone,
                attendee_count,
                invitee_timezones,
            )
            AvailabilityCache.put(
                organizer.id, cache_key, slots, start_date, end_date, observed_sequence
            )

        computation_time_ms = round((time.perf_counter() - started) * 1000, 2)
        slow_threshold = getattr(settings, "AVAILABILITY_SLOW_RESOLUTION_MS", 1000)
        if computation_time_ms > slow_threshold:
            performance_logger.warning(
                f"Slow availability resolution for {organizer.organizer_slug}/"
                f"{event_type.event_type_slug} {start_date}..{end_date}: "
                f"{computation_time_ms} ms (cache_hit={cache_hit})"
            )

        return {
            "organizer_slug": organizer.organizer_slug,
            "event_type_slug": event_type.event_type_slug,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "invitee_timezone": invitee_timezone,
            "attendee_count": attendee_count,
            "available_slots": slots,
            "cache_hit": cache_hit,
            "total_slots": len(slots),
            "computation_time_ms": computation_time_ms,
            "invitee_timezones": invitee_timezones,
            "multi_invitee_mode": len(invitee_timezones) > 1,
            "warnings": cls.dst_warnings(
                start_date, end_date, [organizer.timezone, invitee_timezone, *invitee_timezones]
            ),
        }

    @classmethod
    def resolve(
        cls,
        organizer: Organizer,
        event_type: EventType,
        start_date: date,
        end_date: date,
        invitee_timezone: str,
        attendee_count: int = 1,
        invitee_timezones: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Run the resolver without consulting the cache."""
        request = ResolutionRequest(
            event_type_id=str(event_type.id),
            duration_minutes=event_type.duration,
            start_date=start_date,
            end_date=end_date,
            organizer_timezone=organizer.timezone,
            invitee_timezone=invitee_timezone,
            invitee_timezones=tuple(invitee_timezones or ()),
            attendee_count=attendee_count,
        )
        rules = cls.load_rule_set(organizer, start_date, end_date)
        policy = cls.get_buffer_policy(organizer, event_type)
        resolver = SlotResolver(
            fairness_scorer=ReasonableHoursScorer(*organizer.reasonable_hours)
        )
        slots = resolver.resolve(request, rules, policy)
        logger.debug(
            f"Resolved {len(slots)} slots for {organizer.organizer_slug}/"
            f"{event_type.event_type_slug} {start_date}..{end_date}"
        )
        return [slot.to_dict() for slot in slots]

    @staticmethod
    def get_organizer(organizer_slug: str) -> Organizer:
        try:
            return Organizer.objects.get(organizer_slug=organizer_slug)
        except Organizer.DoesNotExist:
            raise ResourceNotFoundException(f"Organizer '{organizer_slug}' not found.")

    @staticmethod
    def get_event_type(organizer: Organizer, event_type_slug: str) -> EventType:
        if not event_type_slug:
            raise ValidationException("event_type_slug is required.")
        try:
            return organizer.event_types.get(event_type_slug=event_type_slug, is_active=True)
        except EventType.DoesNotExist:
            raise ResourceNotFoundException(f"Event type '{event_type_slug}' not found.")

    @staticmethod
    def validate_query(
        organizer: Organizer,
        event_type: EventType,
        start_date: date,
        end_date: date,
        invitee_timezone: str,
        attendee_count: int,
        invitee_timezones: List[str],
    ):
        errors = {}

        if end_date < start_date:
            errors["end_date"] = "end_date must not be before start_date."
        else:
            max_days = getattr(settings, "AVAILABILITY_MAX_RANGE_DAYS", 90)
            if (end_date - start_date).days + 1 > max_days:
                errors["end_date"] = f"Date range cannot exceed {max_days} days."

        if not is_valid_timezone(invitee_timezone):
            errors["invitee_timezone"] = f"Invalid timezone: {invitee_timezone}"

        invalid = [zone for zone in invitee_timezones if not is_valid_timezone(zone)]
        if invalid:
            errors["invitee_timezones"] = f"Invalid timezones: {', '.join(invalid)}"

        if not 1 <= attendee_count <= event_type.max_attendees:
            errors["attendee_count"] = (
                f"attendee_count must be between 1 and {event_type.max_attendees}."
            )

        if errors:
            raise ValidationException("Invalid availability query.", errors=errors)

    @staticmethod
    def _clean_timezone_list(invitee_timezones) -> List[str]:
        if not invitee_timezones:
            return []
        if isinstance(invitee_timezones, str):
            invitee_timezones = invitee_timezones.split(",")
        cleaned = []
        for zone in invitee_timezones:
            zone = zone.strip()
            if zone and zone not in cleaned:
                cleaned.append(zone)
        return cleaned

    @staticmethod
    def load_rule_set(
        organizer: Organizer,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> RuleSet:
        """Load the organizer's active rules relevant to a date range."""
        weekly = AvailabilityRule.objects.filter(organizer=organizer, is_active=True).prefetch_related(
            "event_types"
        )
        overrides = DateOverrideRule.objects.filter(organizer=organizer, is_active=True).prefetch_related(
            "event_types"
        )
        recurring = RecurringBlockedTime.objects.filter(organizer=organizer, is_active=True)
        blocked = BlockedTime.objects.filter(organizer=organizer, is_active=True)

        if start_date and end_date:
            overrides = overrides.filter(date__gte=start_date, date__lte=end_date)
            normalizer = TimezoneNormalizer()
            horizon_start = normalizer.local_midnight(start_date, organizer.timezone)
            horizon_end = normalizer.local_midnight(end_date + timedelta(days=2), organizer.timezone)
            blocked = blocked.filter(end_datetime__gt=horizon_start, start_datetime__lt=horizon_end)

        return RuleSet(
            weekly_rules=[rule.to_rule_source() for rule in weekly],
            overrides=[override.to_rule_source() for override in overrides],
            recurring_blocks=[block.to_rule_source() for block in recurring],
            one_off_blocks=[block.to_rule_source() for block in blocked],
        )

    @staticmethod
    def get_buffer_policy(organizer: Organizer, event_type: Optional[EventType] = None) -> BufferPolicy:
        buffer_time = BufferTime.objects.filter(organizer=organizer).first()
        policy = buffer_time.to_policy() if buffer_time else BufferPolicy()
        if event_type is None:
            return policy
        return policy.with_event_type_overrides(
            buffer_before=event_type.buffer_time_before,
            buffer_after=event_type.buffer_time_after,
            slot_interval_minutes=event_type.slot_interval_minutes,
        )

    @staticmethod
    def dst_warnings(start_date: date, end_date: date, zone_names: List[str]) -> List[str]:
        """Human-readable notes for DST transitions inside the range."""
        normalizer = TimezoneNormalizer()
        warnings = []
        seen = set()
        for zone_name in zone_names:
            if zone_name in seen or not is_valid_timezone(zone_name):
                continue
            seen.add(zone_name)
            current = start_date
            while current <= end_date:
                if normalizer.is_dst_transition_date(current, zone_name):
                    warnings.append(f"{current.isoformat()} is a DST transition date in {zone_name}.")
                current += timedelta(days=1)
        return warnings

    # ------------------------------------------------------------------
    # Precomputation
    # ------------------------------------------------------------------

    @classmethod
    def precompute(cls, organizer: Organizer, days_ahead: Optional[int] = None) -> Dict[str, Any]:
        """
        Warm the cache for a rolling window of single-day queries.

        Every active event type is resolved day by day in the organizer's own
        timezone with one attendee. Failures are recorded per day and do not
        stop the run. A cancellation request is honoured between days.

        Returns:
            Summary with per-day results
        """
        days_ahead = days_ahead or getattr(settings, "AVAILABILITY_PRECOMPUTE_DAYS", 14)
        today = TimezoneNormalizer().to_zone(timezone.now(), organizer.timezone).date()
        event_types = list(organizer.event_types.filter(is_active=True))

        cls._set_precompute_status(organizer.id, PRECOMPUTE_RUNNING)
        results: Dict[str, Dict[str, str]] = {}
        status = PRECOMPUTE_COMPLETED

        for offset in range(days_ahead):
            if cls.is_precompute_cancelled(organizer.id):
                status = PRECOMPUTE_CANCELLED
                logger.info(
                    f"Precompute for {organizer.organizer_slug} cancelled after {offset} days"
                )
                break

            target_date = today + timedelta(days=offset)
            day_results = {}
            for event_type in event_types:
                try:
                    cls.calculate_slots(
                        organizer.organizer_slug,
                        event_type.event_type_slug,
                        target_date,
                        target_date,
                    )
                    day_results[event_type.event_type_slug] = "ok"
                except Exception as e:
                    logger.warning(
                        f"Precompute failed for {organizer.organizer_slug}/"
                        f"{event_type.event_type_slug} on {target_date}: {e}"
                    )
                    day_results[event_type.event_type_slug] = "failed"
            results[target_date.isoformat()] = day_results

        cache.delete(AVAILABILITY_PRECOMPUTE_CANCEL_KEY.format(organizer_id=organizer.id))
        summary = {
            "status": status,
            "days_requested": days_ahead,
            "days_processed": len(results),
            "results": results,
            "finished_at": timezone.now().isoformat(),
        }
        cls._set_precompute_status(organizer.id, status, summary)
        logger.info(
            f"Precompute for {organizer.organizer_slug} {status}: "
            f"{len(results)}/{days_ahead} days, {len(event_types)} event types"
        )
        return summary

    @classmethod
    def mark_precompute_queued(cls, organizer_id):
        current = cls.get_precompute_status(organizer_id)
        if current and current.get("status") == PRECOMPUTE_RUNNING:
            # The running pass stays cancellable; the new task will skip
            return
        cache.delete(AVAILABILITY_PRECOMPUTE_CANCEL_KEY.format(organizer_id=organizer_id))
        cls._set_precompute_status(organizer_id, PRECOMPUTE_QUEUED)

    @classmethod
    def mark_precompute_skipped(cls, organizer_id):
        """Settle a queued run whose task found another precompute holding the lock."""
        current = cls.get_precompute_status(organizer_id)
        if current and current.get("status") == PRECOMPUTE_QUEUED:
            cls._set_precompute_status(organizer_id, PRECOMPUTE_SKIPPED)
            logger.info(f"Precompute for organizer {organizer_id} skipped, another run holds the lock")

    @classmethod
    def cancel_precompute(cls, organizer_id) -> bool:
        """
        Ask a queued or running precompute to stop.

        Returns:
            True if a run was in progress and has been flagged
        """
        status = cls.get_precompute_status(organizer_id)
        if not status or status.get("status") not in (PRECOMPUTE_QUEUED, PRECOMPUTE_RUNNING):
            return False
        cache.set(
            AVAILABILITY_PRECOMPUTE_CANCEL_KEY.format(organizer_id=organizer_id),
            True,
            cls.PRECOMPUTE_STATUS_TTL,
        )
        logger.info(f"Precompute cancellation requested for organizer {organizer_id}")
        return True

    @staticmethod
    def is_precompute_cancelled(organizer_id) -> bool:
        return bool(cache.get(AVAILABILITY_PRECOMPUTE_CANCEL_KEY.format(organizer_id=organizer_id)))

    @staticmethod
    def get_precompute_status(organizer_id) -> Optional[Dict[str, Any]]:
        return cache.get(AVAILABILITY_PRECOMPUTE_STATUS_KEY.format(organizer_id=organizer_id))

    @classmethod
    def _set_precompute_status(cls, organizer_id, status: str, summary: Optional[Dict] = None):
        payload = {"status": status, "updated_at": timezone.now().isoformat()}
        if summary:
            payload.update(summary)
        cache.set(
            AVAILABILITY_PRECOMPUTE_STATUS_KEY.format(organizer_id=organizer_id),
            payload,
            cls.PRECOMPUTE_STATUS_TTL,
        )
