"""
Availability cache.

Resolved slot lists are cached per (organizer, event type, date range,
invitee timezone set, attendee count). Entries are never trusted on their
own: every rule mutation bumps a per-organizer sequence number and records
the dates it affected under that sequence. An entry remembers the sequence
it observed *before* its slots were computed, so ``get`` can tell whether any
later mutation touched its date range, even one that landed while the entry
was being computed.
"""

import logging
import threading
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from apps.availabilityapp.constants import (
    AVAILABILITY_CACHE_NAMESPACE,
    AVAILABILITY_INVALIDATION_KEY,
    AVAILABILITY_SEQUENCE_KEY,
)
from core.cache.key_generator import generate_cache_key

logger = logging.getLogger(__name__)

DateRange = Tuple[Optional[date], Optional[date]]

_stats_lock = threading.Lock()
_stats = {"hits": 0, "misses": 0}


def _record(outcome: str):
    with _stats_lock:
        _stats[outcome] += 1


def _ranges_intersect(first: DateRange, second: DateRange) -> bool:
    """Date ranges are inclusive; None on either side means unbounded."""
    first_start, first_end = first
    second_start, second_end = second
    if first_end is not None and second_start is not None and first_end < second_start:
        return False
    if second_end is not None and first_start is not None and second_end < first_start:
        return False
    return True


def _parse(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _format(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class AvailabilityCache:
    """Memoises resolved slots with range-aware invalidation."""

    @staticmethod
    def ttl() -> int:
        return getattr(settings, "AVAILABILITY_CACHE_TTL", 900)

    @staticmethod
    def log_size() -> int:
        return getattr(settings, "AVAILABILITY_INVALIDATION_LOG_SIZE", 500)

    @classmethod
    def build_key(
        cls,
        organizer_id,
        event_type_id,
        start_date: date,
        end_date: date,
        invitee_timezone: str,
        invitee_timezones,
        attendee_count: int,
    ) -> str:
        """
        Build the cache key for one slot query.

        The invitee timezone set is sorted so that the same invitees in a
        different order share an entry.
        """
        key_data = {
            "event_type": str(event_type_id),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "timezone": invitee_timezone,
            "timezones": sorted(set(invitee_timezones or ())),
            "attendees": attendee_count,
        }
        return generate_cache_key(
            key_data, namespace=f"{AVAILABILITY_CACHE_NAMESPACE}:{organizer_id}:slots"
        )

    @classmethod
    def current_sequence(cls, organizer_id) -> int:
        """Sequence number of the organizer's latest mutation (0 when none)."""
        try:
            return int(cache.get(AVAILABILITY_SEQUENCE_KEY.format(organizer_id=organizer_id)) or 0)
        except Exception as e:
            logger.warning(f"Could not read availability sequence for {organizer_id}: {e}")
            return 0

    @classmethod
    def get(cls, organizer_id, key: str) -> Optional[List[Dict[str, Any]]]:
        """
        Return the cached slots for ``key``, or None on a miss.

        Backend failures are logged and reported as misses.
        """
        try:
            entry = cache.get(key)
            if entry is not None and cls._is_stale(organizer_id, entry):
                logger.debug(f"Availability cache entry {key} is stale")
                cache.delete(key)
                entry = None
        except Exception as e:
            logger.warning(f"Availability cache read failed for {key}: {e}")
            entry = None

        if entry is None:
            _record("misses")
            logger.debug(f"Availability cache miss: {key}")
            return None

        _record("hits")
        logger.debug(f"Availability cache hit: {key}")
        return entry["slots"]

    @classmethod
    def put(
        cls,
        organizer_id,
        key: str,
        slots: List[Dict[str, Any]],
        start_date: date,
        end_date: date,
        observed_sequence: int,
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Store resolved slots.

        Args:
            organizer_id: Owner of the rules the slots came from
            key: Key from ``build_key``
            slots: Serialized slots
            start_date: First date of the query
            end_date: Last date of the query
            observed_sequence: ``current_sequence`` read before resolving
            ttl: Seconds to keep the entry; defaults to AVAILABILITY_CACHE_TTL

        Returns:
            True if the entry was written
        """
        entry = {
            "slots": slots,
            "sequence": observed_sequence,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "computed_at": timezone.now().isoformat(),
        }
        try:
            cache.set(key, entry, ttl if ttl is not None else cls.ttl())
            return True
        except Exception as e:
            logger.warning(f"Availability cache write failed for {key}: {e}")
            return False

    @classmethod
    def invalidate(cls, organizer_id, affected_range: Optional[DateRange] = None) -> Optional[int]:
        """
        Invalidate every entry of ``organizer_id`` whose dates meet ``affected_range``.

        Args:
            organizer_id: Organizer whose rules changed
            affected_range: Inclusive (start, end) dates; None or a None bound
                means unbounded

        Returns:
            The sequence number recorded for this mutation, or None if the
            backend failed
        """
        start, end = affected_range or (None, None)
        sequence_key = AVAILABILITY_SEQUENCE_KEY.format(organizer_id=organizer_id)

        try:
            cache.add(sequence_key, 0, None)
            sequence = cache.incr(sequence_key)
            cache.set(
                AVAILABILITY_INVALIDATION_KEY.format(organizer_id=organizer_id, sequence=sequence),
                (_format(start), _format(end)),
                cls.ttl() + 60,
            )
        except Exception as e:
            logger.error(f"Availability cache invalidation failed for {organizer_id}: {e}")
            return None

        logger.debug(
            f"Invalidated availability for {organizer_id} "
            f"({start or 'open'} .. {end or 'open'}) at sequence {sequence}"
        )
        return sequence

    @classmethod
    def clear(cls, organizer_id) -> Optional[int]:
        """Drop every cached entry of one organizer."""
        sequence = cls.invalidate(organizer_id, None)
        if hasattr(cache, "delete_pattern"):
            try:
                cache.delete_pattern(f"{AVAILABILITY_CACHE_NAMESPACE}:{organizer_id}:slots:*")
            except Exception as e:
                logger.warning(f"Cache delete_pattern failed for {organizer_id}: {e}")
        logger.info(f"Cleared availability cache for organizer {organizer_id}")
        return sequence

    @classmethod
    def _is_stale(cls, organizer_id, entry: Dict[str, Any]) -> bool:
        observed = entry.get("sequence", 0)
        current = cls.current_sequence(organizer_id)
        if current <= observed:
            return False

        # Records older than the log window may already be gone.
        if current - observed > cls.log_size():
            return True

        record_keys = [
            AVAILABILITY_INVALIDATION_KEY.format(organizer_id=organizer_id, sequence=sequence)
            for sequence in range(observed + 1, current + 1)
        ]
        records = cache.get_many(record_keys)
        entry_range = (_parse(entry.get("start_date")), _parse(entry.get("end_date")))

        for record_key in record_keys:
            record = records.get(record_key)
            if record is None:
                return True
            if _ranges_intersect(entry_range, (_parse(record[0]), _parse(record[1]))):
                return True
        return False

    @staticmethod
    def stats() -> Dict[str, Any]:
        """Process-wide hit/miss counters."""
        with _stats_lock:
            hits, misses = _stats["hits"], _stats["misses"]
        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / total * 100, 2) if total else 0.0,
        }

    @staticmethod
    def reset_stats():
        with _stats_lock:
            _stats["hits"] = 0
            _stats["misses"] = 0
