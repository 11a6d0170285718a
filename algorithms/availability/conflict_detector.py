"""
Authoring-time conflict detection for availability rules.

Two active rules of the same kind must not overlap or touch on the same
weekday (or, for date overrides, the same date). Back-to-back rules are
rejected as well because they are ambiguous once buffers are applied.

The detector is duck-typed: it accepts ORM instances, the value objects from
``rule_sources`` or plain dictionaries, as long as they expose ``id``,
``start_time``, ``end_time``, ``is_active`` and either ``day_of_week`` or
``date``. It never blocks slot resolution.
"""

import logging
from typing import Any, Iterable, Optional

from .time_intervals import are_time_intervals_overlapping

logger = logging.getLogger(__name__)


def _field(rule: Any, name: str, default=None):
    if isinstance(rule, dict):
        return rule.get(name, default)
    return getattr(rule, name, default)


def _same_id(left, right) -> bool:
    return left is not None and right is not None and str(left) == str(right)


class ConflictDetector:
    """
    Finds the existing rule a candidate collides with.

    Iteration follows the order of ``existing_rules`` so the reported conflict
    is deterministic.
    """

    def __init__(self, allow_adjacency: bool = True):
        """
        Initialize the conflict detector.

        Args:
            allow_adjacency: When True (the default) rules that merely touch
                are reported as conflicts
        """
        self.allow_adjacency = allow_adjacency

    def find_conflict(
        self,
        candidate: Any,
        existing_rules: Iterable[Any],
        exclude_id: Optional[Any] = None,
    ) -> Optional[Any]:
        """
        Return the first existing rule that conflicts with ``candidate``.

        Args:
            candidate: Rule being created or edited
            existing_rules: Sibling rules of the same kind
            exclude_id: Id of the rule being edited, skipped during the check

        Returns:
            The conflicting rule, or None
        """
        if exclude_id is None:
            exclude_id = _field(candidate, "id")

        for existing in existing_rules:
            if _same_id(_field(existing, "id"), exclude_id):
                continue
            if not _field(existing, "is_active", True):
                continue
            if not self._same_day(candidate, existing):
                continue
            if not self._date_bounds_intersect(candidate, existing):
                continue

            if self._times_conflict(candidate, existing):
                logger.debug(
                    f"Rule {_field(candidate, 'id', 'new')} conflicts with "
                    f"rule {_field(existing, 'id')}"
                )
                return existing

        return None

    def has_conflict(
        self,
        candidate: Any,
        existing_rules: Iterable[Any],
        exclude_id: Optional[Any] = None,
    ) -> bool:
        """Boolean shortcut of ``find_conflict`` for submit-button gating."""
        return self.find_conflict(candidate, existing_rules, exclude_id) is not None

    @staticmethod
    def _same_day(candidate: Any, existing: Any) -> bool:
        candidate_date = _field(candidate, "date")
        if candidate_date is not None:
            return candidate_date == _field(existing, "date")
        return _field(candidate, "day_of_week") == _field(existing, "day_of_week")

    @staticmethod
    def _date_bounds_intersect(candidate: Any, existing: Any) -> bool:
        """Recurring blocks only collide when their effective date ranges meet."""
        start_a, end_a = _field(candidate, "start_date"), _field(candidate, "end_date")
        start_b, end_b = _field(existing, "start_date"), _field(existing, "end_date")

        if end_a is not None and start_b is not None and end_a < start_b:
            return False
        if end_b is not None and start_a is not None and end_b < start_a:
            return False
        return True

    def _times_conflict(self, candidate: Any, existing: Any) -> bool:
        # A date override that makes the whole day unavailable collides with
        # every other override on that date.
        if _field(candidate, "is_available", True) is False:
            return True
        if _field(existing, "is_available", True) is False:
            return True

        return are_time_intervals_overlapping(
            _field(candidate, "start_time"),
            _field(candidate, "end_time"),
            _field(existing, "start_time"),
            _field(existing, "end_time"),
            allow_adjacency=self.allow_adjacency,
        )


def find_conflicting_rule(candidate, existing_rules, exclude_id=None):
    """Module-level shortcut used by serializers and services."""
    return ConflictDetector().find_conflict(candidate, existing_rules, exclude_id)
