import logging
from typing import Any, Dict

from algorithms.availability.time_intervals import merge_windows
from apps.availabilityapp.constants import WEEKDAY_NAMES
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.availabilityapp.services.cache_service import AvailabilityCache
from apps.organizersapp.models import Organizer

logger = logging.getLogger(__name__)


class AvailabilityStatsService:
    """Summary figures for an organizer's availability dashboard"""

    @staticmethod
    def get_stats(organizer: Organizer) -> Dict[str, Any]:
        """
        Compute rule counts and weekly hours.

        Hours come from active weekly rules only, with overlapping rules on the
        same weekday merged so they are not counted twice. A rule that spans
        midnight counts towards the weekday it starts on.

        Returns:
            Dictionary of statistics
        """
        rules = list(AvailabilityRule.objects.filter(organizer=organizer))
        active_rules = [rule for rule in rules if rule.is_active]

        daily_hours = {}
        for day_of_week, day_name in enumerate(WEEKDAY_NAMES):
            windows = merge_windows(
                rule.to_rule_source().window
                for rule in active_rules
                if rule.day_of_week == day_of_week
            )
            minutes = sum(window.width for window in windows)
            daily_hours[day_name] = round(minutes / 60, 2)

        busiest_day = ""
        if any(daily_hours.values()):
            busiest_day = max(WEEKDAY_NAMES, key=lambda name: daily_hours[name])

        return {
            "total_rules": len(rules),
            "active_rules": len(active_rules),
            "total_overrides": DateOverrideRule.objects.filter(organizer=organizer).count(),
            "total_blocks": BlockedTime.objects.filter(organizer=organizer).count(),
            "total_recurring_blocks": RecurringBlockedTime.objects.filter(organizer=organizer).count(),
            "average_weekly_hours": round(sum(daily_hours.values()), 2),
            "busiest_day": busiest_day,
            "daily_hours": daily_hours,
            "cache_hit_rate": AvailabilityCache.stats()["hit_rate"],
        }
