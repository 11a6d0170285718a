"""
Slot resolution.

Turns an organizer's availability rules into a concrete, ordered list of
bookable slots for a date range. Each organizer-local calendar day owns its
own 24 hours and runs through the same pipeline:

1. weekly rules matching the weekday and event type give the base windows,
   together with the part of the previous day's windows that runs past midnight
2. a matching date override replaces them entirely
3. recurring blocks are subtracted
4. one-off blocked intervals are subtracted
5. buffers shrink every remaining window
6. windows are quantised into fixed-length slots
7. slots are projected to UTC and to the invitee timezone(s)

Days are laid end to end on one minute axis before steps 3-6, so a window
running across midnight is buffered and quantised as a single window. A slot
belongs to the date it starts on.

The resolver is pure: it reads only the ``RuleSet`` and ``BufferPolicy`` it is
given and never touches the database or the cache.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .fairness import ReasonableHoursScorer
from .rule_sources import BufferPolicy, RuleSet
from .time_intervals import (
    MINUTES_PER_DAY,
    TimeWindow,
    merge_windows,
    subtract_windows,
)
from .timezone_normalizer import TimezoneNormalizer, get_zone

logger = logging.getLogger(__name__)


class InvalidDateRangeError(ValueError):
    """Raised when a resolution request ends before it starts."""


@dataclass(frozen=True)
class ResolutionRequest:
    """One slot query, already validated against the event-type catalog."""

    event_type_id: str
    duration_minutes: int
    start_date: date
    end_date: date
    organizer_timezone: str = "UTC"
    invitee_timezone: str = "UTC"
    invitee_timezones: Tuple[str, ...] = ()
    attendee_count: int = 1

    def __post_init__(self):
        object.__setattr__(self, "invitee_timezones", tuple(self.invitee_timezones or ()))

    @property
    def multi_invitee_mode(self) -> bool:
        return len(self.invitee_timezones) > 1

    def dates(self) -> Iterator[date]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)


@dataclass
class ResolvedSlot:
    start: datetime
    end: datetime
    duration_minutes: int
    local_start: datetime
    local_end: datetime
    is_dst: bool = False
    dst_anomaly: Optional[str] = None
    invitee_times: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    fairness_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "duration_minutes": self.duration_minutes,
            "local_start_time": self.local_start.isoformat(),
            "local_end_time": self.local_end.isoformat(),
            "is_dst": self.is_dst,
        }
        if self.dst_anomaly:
            data["dst_anomaly"] = self.dst_anomaly
        if self.invitee_times:
            data["invitee_times"] = self.invitee_times
        if self.fairness_score is not None:
            data["fairness_score"] = self.fairness_score
        return data


class SlotResolver:
    """Resolves availability rules into bookable slots."""

    def __init__(
        self,
        normalizer: Optional[TimezoneNormalizer] = None,
        fairness_scorer: Optional[Callable[[Dict[str, Dict[str, Any]]], float]] = None,
    ):
        """
        Args:
            normalizer: Timezone normalizer used for every conversion
            fairness_scorer: Ranking used in multi-invitee mode; defaults to
                the share of invitees inside reasonable hours
        """
        self.normalizer = normalizer or TimezoneNormalizer()
        self.fairness_scorer = fairness_scorer or ReasonableHoursScorer()

    def resolve(
        self, request: ResolutionRequest, rules: RuleSet, policy: BufferPolicy
    ) -> List[ResolvedSlot]:
        """
        Resolve every slot in the request's date range.

        Args:
            request: The slot query
            rules: The organizer's rules
            policy: Effective buffer policy for the event type

        Returns:
            Slots ordered by start time, or by fairness in multi-invitee mode

        Raises:
            InvalidDateRangeError: if the range ends before it starts
            InvalidTimezoneError: if a timezone is unknown
        """
        if request.end_date < request.start_date:
            raise InvalidDateRangeError(
                f"end_date {request.end_date} is before start_date {request.start_date}"
            )

        get_zone(request.organizer_timezone)
        get_zone(request.invitee_timezone)
        for zone_name in request.invitee_timezones:
            get_zone(zone_name)

        slots_by_start: Dict[datetime, ResolvedSlot] = {}
        for slot in self.resolve_range(request, rules, policy):
            existing = slots_by_start.get(slot.start)
            # A spring-forward gap can map two wall-clock starts onto the same
            # instant; a clean slot beats a DST-shifted one.
            if existing is None or (existing.dst_anomaly and not slot.dst_anomaly):
                slots_by_start[slot.start] = slot

        slots = sorted(slots_by_start.values(), key=lambda s: s.start)

        if request.multi_invitee_mode:
            for slot in slots:
                slot.fairness_score = self.fairness_scorer(slot.invitee_times)
            slots.sort(key=lambda s: (-s.fairness_score, s.start))

        logger.debug(
            f"Resolved {len(slots)} slots for event type {request.event_type_id} "
            f"between {request.start_date} and {request.end_date}"
        )
        return slots

    def resolve_range(
        self, request: ResolutionRequest, rules: RuleSet, policy: BufferPolicy
    ) -> List[ResolvedSlot]:
        """
        Resolve the request on one continuous minute axis.

        The axis starts at local midnight of the day before ``start_date`` and
        ends after the day following ``end_date``, so windows that run across
        midnight keep their buffers and slot alignment no matter how the range
        is split. Only slots whose organizer-local start date falls inside the
        request are returned.
        """
        anchor = request.start_date - timedelta(days=1)
        last_date = request.end_date + timedelta(days=1)
        zone_name = request.organizer_timezone

        windows = self.free_windows(
            anchor, last_date, request.event_type_id, rules, policy, zone_name
        )

        duration = request.duration_minutes
        gap = timedelta(minutes=max(policy.minimum_gap, 0))
        slots = []

        for window in windows:
            window_end = self.normalizer.localize(anchor, window.end, zone_name).utc

            for slot_window in self.quantize(window, duration, policy):
                slot_date = anchor + timedelta(days=slot_window.start // MINUTES_PER_DAY)
                if not request.start_date <= slot_date <= request.end_date:
                    continue

                start = self.normalizer.localize(anchor, slot_window.start, zone_name)
                end = start.utc + timedelta(minutes=duration)

                # Wall-clock arithmetic overestimates windows that contain a
                # spring-forward gap.
                if end + gap > window_end:
                    continue

                slots.append(self._project(start.utc, end, duration, start.anomaly, request))

        return slots

    def free_windows(
        self,
        first_date: date,
        last_date: date,
        event_type_id,
        rules: RuleSet,
        policy: BufferPolicy,
        organizer_timezone: str = "UTC",
    ) -> List[TimeWindow]:
        """
        Compute the buffered free windows for a run of dates (pipeline steps 1-5).

        Returns:
            Windows in minutes relative to local midnight of ``first_date``
        """
        windows = []
        blocks = []
        offset = 0
        current = first_date
        while current <= last_date:
            windows.extend(
                window.shifted(offset)
                for window in self.day_windows(current, event_type_id, rules)
            )
            blocks.extend(
                block.shifted(offset) for block in self.recurring_block_windows(current, rules)
            )
            current += timedelta(days=1)
            offset += MINUTES_PER_DAY

        windows = merge_windows(windows)
        if not windows:
            return []

        windows = subtract_windows(windows, blocks)
        windows = subtract_windows(
            windows,
            self.one_off_block_windows(first_date, last_date, rules, organizer_timezone),
        )
        return self.apply_buffers(windows, policy)

    def day_windows(self, target_date: date, event_type_id, rules: RuleSet) -> List[TimeWindow]:
        """
        Available minutes owned by one date, within its own 24 hours.

        The part of a window that runs past midnight belongs to the next date.
        A date with a matching override takes nothing from the day before; an
        unavailable override therefore leaves the whole date empty.
        """
        own = [
            window.clipped(0, MINUTES_PER_DAY)
            for window in self.base_windows(target_date, event_type_id, rules)
        ]

        if self.override_windows(target_date, event_type_id, rules) is None:
            previous_date = target_date - timedelta(days=1)
            for window in self.base_windows(previous_date, event_type_id, rules):
                spillover = window.clipped(MINUTES_PER_DAY, 2 * MINUTES_PER_DAY)
                if spillover is not None:
                    own.append(spillover.shifted(-MINUTES_PER_DAY))

        return merge_windows(own)

    def base_windows(self, target_date: date, event_type_id, rules: RuleSet) -> List[TimeWindow]:
        """Override windows when one applies, otherwise the weekly ones (steps 1-2)."""
        windows = self.override_windows(target_date, event_type_id, rules)
        if windows is None:
            windows = self.weekly_windows(target_date, event_type_id, rules)
        return windows

    @staticmethod
    def weekly_windows(target_date: date, event_type_id, rules: RuleSet) -> List[TimeWindow]:
        weekday = target_date.weekday()
        return merge_windows(
            rule.window
            for rule in rules.weekly_rules
            if rule.is_active
            and rule.day_of_week == weekday
            and rule.applies_to_event_type(event_type_id)
        )

    @staticmethod
    def override_windows(
        target_date: date, event_type_id, rules: RuleSet
    ) -> Optional[List[TimeWindow]]:
        """
        Windows granted by date overrides.

        Returns:
            None when no override applies (weekly rules stand), otherwise the
            replacement windows (empty when the day is blocked)
        """
        overrides = [
            override
            for override in rules.overrides
            if override.is_active
            and override.date == target_date
            and override.applies_to_event_type(event_type_id)
        ]
        if not overrides:
            return None

        if any(not override.is_available for override in overrides):
            return []

        return merge_windows(override.window for override in overrides)

    @staticmethod
    def recurring_block_windows(target_date: date, rules: RuleSet) -> List[TimeWindow]:
        """Blocks on this date plus neighbours that reach across midnight."""
        blocks = []
        for offset_days in (-1, 0, 1):
            block_date = target_date + timedelta(days=offset_days)
            for block in rules.recurring_blocks:
                if not block.is_active or not block.applies_to_date(block_date):
                    continue
                window = block.window
                if window is None:
                    continue
                if offset_days == -1 and not window.spans_midnight:
                    continue
                blocks.append(window.shifted(offset_days * MINUTES_PER_DAY))
        return blocks

    def one_off_block_windows(
        self, first_date: date, last_date: date, rules: RuleSet, organizer_timezone: str
    ) -> List[TimeWindow]:
        """Absolute blocked intervals expressed on the local minute axis of ``first_date``."""
        if not rules.one_off_blocks:
            return []

        days = (last_date - first_date).days + 1
        horizon_start = self.normalizer.local_midnight(first_date, organizer_timezone)
        horizon_end = self.normalizer.local_midnight(
            last_date + timedelta(days=1), organizer_timezone
        )
        midnight = datetime.combine(first_date, datetime.min.time())

        blocks = []
        for block in rules.one_off_blocks:
            if not block.is_active:
                continue
            start = self.normalizer.to_zone(block.start_datetime, organizer_timezone)
            end = self.normalizer.to_zone(block.end_datetime, organizer_timezone)
            if end.astimezone(horizon_start.tzinfo) <= horizon_start:
                continue
            if start.astimezone(horizon_end.tzinfo) >= horizon_end:
                continue

            start_minutes = math.floor(
                (start.replace(tzinfo=None) - midnight).total_seconds() / 60
            )
            end_minutes = math.ceil((end.replace(tzinfo=None) - midnight).total_seconds() / 60)
            window = TimeWindow(start_minutes, end_minutes).clipped(0, days * MINUTES_PER_DAY)
            if window is not None:
                blocks.append(window)
        return blocks

    @staticmethod
    def apply_buffers(windows: List[TimeWindow], policy: BufferPolicy) -> List[TimeWindow]:
        buffered = []
        for window in windows:
            shrunk = window.shrunk(policy.buffer_before, policy.buffer_after)
            if shrunk is not None:
                buffered.append(shrunk)
        return buffered

    @staticmethod
    def quantize(
        window: TimeWindow, duration_minutes: int, policy: BufferPolicy
    ) -> Iterator[TimeWindow]:
        """Yield fixed-length slots stepped by the policy's slot interval."""
        if duration_minutes <= 0:
            return

        step = max(policy.slot_interval_minutes, 1)
        gap = max(policy.minimum_gap, 0)
        current = window.start
        while current + duration_minutes + gap <= window.end:
            yield TimeWindow(current, current + duration_minutes)
            current += step

    def _project(
        self,
        start: datetime,
        end: datetime,
        duration: int,
        anomaly: Optional[str],
        request: ResolutionRequest,
    ) -> ResolvedSlot:
        local_start = self.normalizer.to_zone(start, request.invitee_timezone)
        local_end = self.normalizer.to_zone(end, request.invitee_timezone)

        slot = ResolvedSlot(
            start=start,
            end=end,
            duration_minutes=duration,
            local_start=local_start,
            local_end=local_end,
            is_dst=bool(local_start.dst()),
            dst_anomaly=anomaly,
        )

        if request.multi_invitee_mode:
            slot.invitee_times = {
                zone_name: self._invitee_view(start, end, zone_name)
                for zone_name in request.invitee_timezones
            }
        return slot

    def _invitee_view(self, start: datetime, end: datetime, zone_name: str) -> Dict[str, Any]:
        local_start = self.normalizer.to_zone(start, zone_name)
        local_end = self.normalizer.to_zone(end, zone_name)
        is_reasonable = getattr(self.fairness_scorer, "is_reasonable", None)
        return {
            "start_time": local_start.isoformat(),
            "end_time": local_end.isoformat(),
            "start_hour": local_start.hour,
            "end_hour": local_end.hour,
            "is_reasonable": bool(is_reasonable(local_start.hour)) if is_reasonable else True,
        }
