"""
Availability resolution engine.

This package turns an organizer's availability rules into bookable time slots.
It is free of ORM access: callers hand it plain rule values and get plain slot
values back.

Key components:
- TimeWindow: Time-of-day interval algebra shared by validation and resolution
- ConflictDetector: Rejects overlapping or adjacent rules at authoring time
- TimezoneNormalizer: Wall-clock to UTC conversion with DST handling
- SlotResolver: Computes free windows and quantises them into slots
"""

from .conflict_detector import ConflictDetector, find_conflicting_rule
from .fairness import ReasonableHoursScorer
from .rule_sources import (
    BufferPolicy,
    DateOverride,
    OneOffBlock,
    RecurringBlock,
    RuleKind,
    RuleSet,
    WeeklyRule,
)
from .slot_resolver import (
    InvalidDateRangeError,
    ResolutionRequest,
    ResolvedSlot,
    SlotResolver,
)
from .time_intervals import TimeWindow, are_time_intervals_overlapping
from .timezone_normalizer import InvalidTimezoneError, TimezoneNormalizer

__all__ = [
    "BufferPolicy",
    "ConflictDetector",
    "DateOverride",
    "InvalidDateRangeError",
    "InvalidTimezoneError",
    "OneOffBlock",
    "ReasonableHoursScorer",
    "RecurringBlock",
    "ResolutionRequest",
    "ResolvedSlot",
    "RuleKind",
    "RuleSet",
    "SlotResolver",
    "TimeWindow",
    "TimezoneNormalizer",
    "WeeklyRule",
    "are_time_intervals_overlapping",
    "find_conflicting_rule",
]
