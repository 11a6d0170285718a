import logging
from datetime import date
from typing import Any, Dict, Optional

from django.utils import timezone

from algorithms.availability.timezone_normalizer import (
    TimezoneNormalizer,
    is_valid_timezone,
)
from apps.organizersapp.models import Organizer

logger = logging.getLogger(__name__)


class TimezoneDiagnosticService:
    """Answers "what does this zone look like on this date" for an organizer"""

    @staticmethod
    def diagnose(
        organizer: Organizer,
        zone_name: Optional[str] = None,
        target_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Describe ``zone_name`` on ``target_date`` relative to the organizer.

        An unknown zone is reported with ``timezone_valid`` False rather than
        raised, since checking validity is the point of the call.

        Args:
            organizer: Organizer whose zone is the reference
            zone_name: Zone to test; defaults to the organizer's zone
            target_date: Date to test; defaults to today in the organizer's zone

        Returns:
            Dictionary of offsets and DST flags
        """
        normalizer = TimezoneNormalizer()
        zone_name = zone_name or organizer.timezone
        if target_date is None:
            target_date = normalizer.to_zone(timezone.now(), organizer.timezone).date()

        result = {
            "organizer_timezone": organizer.timezone,
            "test_timezone": zone_name,
            "test_date": target_date.isoformat(),
            "offset_hours": 0.0,
            "utc_offset_hours": 0.0,
            "timezone_valid": is_valid_timezone(zone_name),
            "is_dst": False,
            "dst_offset_hours": 0.0,
            "is_dst_transition_date": False,
        }
        if not result["timezone_valid"]:
            logger.debug(f"Timezone diagnostic for invalid zone {zone_name!r}")
            return result

        result.update(
            {
                "offset_hours": normalizer.offset_between(organizer.timezone, zone_name, target_date),
                "utc_offset_hours": normalizer.offset_hours(target_date, zone_name),
                "is_dst": normalizer.is_dst(target_date, zone_name),
                "dst_offset_hours": normalizer.dst_offset_hours(target_date, zone_name),
                "is_dst_transition_date": normalizer.is_dst_transition_date(target_date, zone_name),
            }
        )
        return result
