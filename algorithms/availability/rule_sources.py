"""
Rule sources consumed by the slot resolver.

The four kinds of availability rules look alike (a time range plus some
scoping) but behave differently during resolution: weekly rules contribute
windows, overrides replace them for one date, and both kinds of blocks
subtract. Each kind is a small immutable value so the resolver can run one
pipeline stage per kind without touching the ORM.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import ClassVar, FrozenSet, Iterable, Optional, Tuple

from .time_intervals import TimeWindow


class RuleKind(str, Enum):
    WEEKLY = "weekly"
    OVERRIDE = "override"
    RECURRING_BLOCK = "recurring_block"
    ONE_OFF = "one_off"


def _scope(event_type_ids: Optional[Iterable]) -> FrozenSet[str]:
    return frozenset(str(event_type_id) for event_type_id in (event_type_ids or ()))


def _applies_to(scope: FrozenSet[str], event_type_id) -> bool:
    return not scope or str(event_type_id) in scope


@dataclass(frozen=True)
class WeeklyRule:
    """Recurring weekly availability (0=Monday .. 6=Sunday)."""

    kind: ClassVar[RuleKind] = RuleKind.WEEKLY

    id: str
    day_of_week: int
    start_time: time
    end_time: time
    event_type_ids: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, "event_type_ids", _scope(self.event_type_ids))

    @property
    def window(self) -> Optional[TimeWindow]:
        return TimeWindow.from_times(self.start_time, self.end_time)

    def applies_to_event_type(self, event_type_id) -> bool:
        return _applies_to(self.event_type_ids, event_type_id)


@dataclass(frozen=True)
class DateOverride:
    """Replaces the weekly rules for one organizer-local calendar date."""

    kind: ClassVar[RuleKind] = RuleKind.OVERRIDE

    id: str
    date: date
    is_available: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    event_type_ids: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, "event_type_ids", _scope(self.event_type_ids))

    @property
    def window(self) -> Optional[TimeWindow]:
        if not self.is_available:
            return None
        return TimeWindow.from_times(self.start_time, self.end_time)

    def applies_to_event_type(self, event_type_id) -> bool:
        return _applies_to(self.event_type_ids, event_type_id)


@dataclass(frozen=True)
class RecurringBlock:
    """Weekly blocked range, optionally bounded by an effective date range."""

    kind: ClassVar[RuleKind] = RuleKind.RECURRING_BLOCK

    id: str
    day_of_week: int
    start_time: time
    end_time: time
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    name: str = ""
    is_active: bool = True

    @property
    def window(self) -> Optional[TimeWindow]:
        return TimeWindow.from_times(self.start_time, self.end_time)

    def applies_to_date(self, target_date: date) -> bool:
        if target_date.weekday() != self.day_of_week:
            return False
        if self.start_date and target_date < self.start_date:
            return False
        if self.end_date and target_date > self.end_date:
            return False
        return True


@dataclass(frozen=True)
class OneOffBlock:
    """Absolute blocked interval ``[start_datetime, end_datetime)``."""

    kind: ClassVar[RuleKind] = RuleKind.ONE_OFF

    id: str
    start_datetime: datetime
    end_datetime: datetime
    is_active: bool = True


@dataclass(frozen=True)
class BufferPolicy:
    """
    Spacing policy for one organizer.

    Passed explicitly into every resolution so the result depends only on the
    call's inputs.
    """

    buffer_before: int = 0
    buffer_after: int = 0
    minimum_gap: int = 0
    slot_interval_minutes: int = 30

    def with_event_type_overrides(
        self,
        buffer_before: Optional[int] = None,
        buffer_after: Optional[int] = None,
        slot_interval_minutes: Optional[int] = None,
    ) -> "BufferPolicy":
        """Return a policy where event-type specific values replace the defaults."""
        return BufferPolicy(
            buffer_before=self.buffer_before if buffer_before is None else buffer_before,
            buffer_after=self.buffer_after if buffer_after is None else buffer_after,
            minimum_gap=self.minimum_gap,
            slot_interval_minutes=(
                slot_interval_minutes or self.slot_interval_minutes
            ),
        )


@dataclass(frozen=True)
class RuleSet:
    """Everything the resolver needs to know about one organizer's rules."""

    weekly_rules: Tuple[WeeklyRule, ...] = ()
    overrides: Tuple[DateOverride, ...] = ()
    recurring_blocks: Tuple[RecurringBlock, ...] = ()
    one_off_blocks: Tuple[OneOffBlock, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "weekly_rules", tuple(self.weekly_rules))
        object.__setattr__(self, "overrides", tuple(self.overrides))
        object.__setattr__(self, "recurring_blocks", tuple(self.recurring_blocks))
        object.__setattr__(self, "one_off_blocks", tuple(self.one_off_blocks))
