"""
Timezone and DST normalisation.

Availability rules are written in the organizer's wall-clock time, slots are
stored as absolute UTC instants, and invitees read them in their own zone.
All conversions go through the IANA database (pytz) so that organizer and
invitee zones can observe DST independently.

Policy for wall-clock times that do not map to exactly one instant:

* nonexistent (spring-forward gap): moved forward to the first valid instant
  after the gap and reported as ``nonexistent``
* ambiguous (fall-back overlap): resolved to the earlier UTC instant and
  reported as ``ambiguous``
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from typing import Optional, Tuple

import pytz

from .time_intervals import time_to_minutes

logger = logging.getLogger(__name__)

NONEXISTENT = "nonexistent"
AMBIGUOUS = "ambiguous"


class InvalidTimezoneError(ValueError):
    """Raised when a string is not a known IANA timezone identifier."""


@dataclass(frozen=True)
class LocalizedInstant:
    """Result of resolving a wall-clock time to an absolute instant."""

    utc: datetime
    anomaly: Optional[str] = None


@lru_cache(maxsize=256)
def get_zone(zone_name: str):
    """
    Look up a timezone by IANA name.

    Raises:
        InvalidTimezoneError: if the name is empty or unknown
    """
    if not zone_name or not isinstance(zone_name, str):
        raise InvalidTimezoneError(f"Invalid timezone: {zone_name!r}")
    try:
        return pytz.timezone(zone_name)
    except pytz.UnknownTimeZoneError as e:
        raise InvalidTimezoneError(f"Invalid timezone: {zone_name}") from e


def is_valid_timezone(zone_name: str) -> bool:
    try:
        get_zone(zone_name)
    except InvalidTimezoneError:
        return False
    return True


class TimezoneNormalizer:
    """Conversions between organizer wall-clock time, UTC and invitee time."""

    # Offsets change on minute boundaries in every zone of the IANA database.
    _SEARCH_RESOLUTION = timedelta(minutes=1)

    def localize(self, target_date: date, minutes: int, zone_name: str) -> LocalizedInstant:
        """
        Resolve a wall-clock time on ``target_date`` to a UTC instant.

        Args:
            target_date: Calendar day the time is anchored to
            minutes: Minutes since that day's midnight; values outside
                ``[0, 1440)`` roll over into neighbouring days
            zone_name: IANA timezone of the wall clock

        Returns:
            LocalizedInstant with the UTC instant and any DST anomaly
        """
        zone = get_zone(zone_name)
        naive = datetime.combine(target_date, time(0)) + timedelta(minutes=minutes)

        try:
            aware = zone.localize(naive, is_dst=None)
            return LocalizedInstant(aware.astimezone(pytz.utc))
        except pytz.AmbiguousTimeError:
            earlier = min(
                zone.localize(naive, is_dst=True).astimezone(pytz.utc),
                zone.localize(naive, is_dst=False).astimezone(pytz.utc),
            )
            logger.debug(f"Ambiguous local time {naive} in {zone_name}, using {earlier}")
            return LocalizedInstant(earlier, AMBIGUOUS)
        except pytz.NonExistentTimeError:
            shifted = self._first_instant_after_gap(zone, naive)
            logger.debug(f"Nonexistent local time {naive} in {zone_name}, shifted to {shifted}")
            return LocalizedInstant(shifted, NONEXISTENT)

    def _first_instant_after_gap(self, zone, naive: datetime) -> datetime:
        """Find the UTC instant at which the offset jump that skips ``naive`` happens."""
        candidates = sorted(
            [
                zone.localize(naive, is_dst=True).astimezone(pytz.utc),
                zone.localize(naive, is_dst=False).astimezone(pytz.utc),
            ]
        )
        low, high = candidates
        low_offset = low.astimezone(zone).utcoffset()

        while high - low > self._SEARCH_RESOLUTION:
            middle = low + (high - low) / 2
            middle = middle.replace(second=0, microsecond=0)
            if middle <= low:
                break
            if middle.astimezone(zone).utcoffset() == low_offset:
                low = middle
            else:
                high = middle
        return high

    def to_utc(self, target_date: date, time_of_day, zone_name: str) -> datetime:
        """
        Convert an organizer-local date and time-of-day to a UTC instant.

        Args:
            target_date: Organizer-local calendar day
            time_of_day: A ``datetime.time``, an ``HH:MM`` / ``HH:MM:SS`` string
                or minutes since midnight
            zone_name: IANA timezone of the wall clock

        Raises:
            ValueError: if ``time_of_day`` is absent or malformed
        """
        if time_of_day is None:
            raise ValueError("A time of day is required")

        if isinstance(time_of_day, str):
            try:
                time_of_day = time.fromisoformat(time_of_day.strip())
            except ValueError:
                pass

        minutes = time_to_minutes(time_of_day)
        if minutes is None:
            raise ValueError(f"Malformed time of day: {time_of_day!r}")

        instant = self.localize(target_date, minutes, zone_name).utc
        if isinstance(time_of_day, time):
            # Offsets only change on whole minutes
            instant += timedelta(seconds=time_of_day.second, microseconds=time_of_day.microsecond)
        return instant

    def to_local(self, instant: datetime, zone_name: str) -> Tuple[date, time]:
        """Convert a UTC instant to a (date, time-of-day) pair in ``zone_name``."""
        local = self.to_zone(instant, zone_name)
        return local.date(), local.time().replace(tzinfo=None)

    def to_zone(self, instant: datetime, zone_name: str) -> datetime:
        """Express an aware instant in ``zone_name``; naive input is taken as UTC."""
        if instant.tzinfo is None:
            instant = pytz.utc.localize(instant)
        return instant.astimezone(get_zone(zone_name))

    def local_midnight(self, target_date: date, zone_name: str) -> datetime:
        return self.localize(target_date, 0, zone_name).utc

    def offset_hours(self, target_date: date, zone_name: str) -> float:
        """UTC offset of ``zone_name`` at local noon on ``target_date``, in hours."""
        noon = self.localize(target_date, 12 * 60, zone_name).utc
        offset = self.to_zone(noon, zone_name).utcoffset()
        return offset.total_seconds() / 3600

    def dst_offset_hours(self, target_date: date, zone_name: str) -> float:
        noon = self.localize(target_date, 12 * 60, zone_name).utc
        dst = self.to_zone(noon, zone_name).dst()
        return dst.total_seconds() / 3600 if dst else 0.0

    def is_dst(self, target_date: date, zone_name: str) -> bool:
        return self.dst_offset_hours(target_date, zone_name) != 0.0

    def is_dst_transition_date(self, target_date: date, zone_name: str) -> bool:
        """
        Return True if the zone's UTC offset changes during ``target_date``.

        Purely diagnostic; resolution does not depend on it.
        """
        zone = get_zone(zone_name)
        one_second = timedelta(seconds=1)
        start = self.local_midnight(target_date, zone_name)
        end = self.local_midnight(target_date + timedelta(days=1), zone_name)

        # A jump exactly at midnight moves the day's first instant onto the
        # transition itself, so the offset just before it is checked as well.
        offsets = {
            (start - one_second).astimezone(zone).utcoffset(),
            start.astimezone(zone).utcoffset(),
            (end - one_second).astimezone(zone).utcoffset(),
        }
        return len(offsets) > 1

    def offset_between(self, from_zone: str, to_zone: str, target_date: date) -> float:
        """Hours to add to a ``from_zone`` wall clock to read ``to_zone`` at local noon."""
        return self.offset_hours(target_date, to_zone) - self.offset_hours(
            target_date, from_zone
        )
