"""
Time-of-day interval algebra.

Every overlap, adjacency and duration question asked about availability rules
is answered here, both when rules are authored (conflict validation) and when
slots are resolved. Intervals are expressed as minutes since the local midnight
of the day they are anchored to; an interval whose end reads earlier than its
start continues past midnight and is normalised by adding a full day to its end.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

TimeLike = Union[time, str, int]


def time_to_minutes(value: Optional[TimeLike]) -> Optional[int]:
    """
    Convert a time-of-day to minutes since midnight.

    Args:
        value: A ``datetime.time``, an ``HH:MM`` / ``HH:MM:SS`` string or an
            integer already expressed in minutes

    Returns:
        Minutes since midnight, or None if the value is absent or malformed
    """
    if value is None or value == "":
        return None

    if isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value if 0 <= value < MINUTES_PER_DAY else None

    if isinstance(value, datetime):
        value = value.time()

    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) not in (2, 3):
            return None
        try:
            hours, minutes = int(parts[0]), int(parts[1])
        except ValueError:
            return None
        if not (0 <= hours < 24 and 0 <= minutes < 60):
            return None
        return hours * 60 + minutes

    return None


def minutes_to_time(minutes: int) -> time:
    """Convert minutes (wrapped to a single day) back to a ``datetime.time``."""
    minutes = minutes % MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def spans_midnight(start: Optional[TimeLike], end: Optional[TimeLike]) -> bool:
    """Return True if the interval, read literally, ends before it starts."""
    start_minutes = time_to_minutes(start)
    end_minutes = time_to_minutes(end)
    if start_minutes is None or end_minutes is None:
        return False
    return end_minutes < start_minutes


def duration_minutes(start: Optional[TimeLike], end: Optional[TimeLike]) -> int:
    """Length of a time-of-day interval, midnight-adjusted. Malformed input is 0."""
    window = TimeWindow.from_times(start, end)
    return window.width if window else 0


@dataclass(frozen=True, order=True)
class TimeWindow:
    """
    A half-open window ``[start, end)`` in minutes relative to a day's midnight.

    ``end`` may exceed ``MINUTES_PER_DAY`` when the window continues into the
    next day, and ``start`` may be negative when a window carried over from the
    previous day is expressed on this day's axis.
    """

    start: int
    end: int

    @classmethod
    def from_times(
        cls, start: Optional[TimeLike], end: Optional[TimeLike]
    ) -> Optional["TimeWindow"]:
        """
        Build a window from two times-of-day, normalising midnight spans.

        Returns:
            The window, or None if either bound is absent or malformed
        """
        start_minutes = time_to_minutes(start)
        end_minutes = time_to_minutes(end)
        if start_minutes is None or end_minutes is None:
            return None

        if end_minutes < start_minutes:
            end_minutes += MINUTES_PER_DAY

        return cls(start_minutes, end_minutes)

    @property
    def width(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    @property
    def spans_midnight(self) -> bool:
        return self.end > MINUTES_PER_DAY

    def overlaps(self, other: "TimeWindow", allow_adjacency: bool = False) -> bool:
        """
        Check whether two windows overlap.

        Args:
            other: Window to compare with
            allow_adjacency: Treat windows that merely touch as overlapping

        Returns:
            True if the windows overlap
        """
        if allow_adjacency:
            return self.start <= other.end and self.end >= other.start
        return self.start < other.end and self.end > other.start

    def shifted(self, minutes: int) -> "TimeWindow":
        return TimeWindow(self.start + minutes, self.end + minutes)

    def clipped(self, lower: int, upper: int) -> Optional["TimeWindow"]:
        """Intersect with ``[lower, upper)``; None if nothing is left."""
        window = TimeWindow(max(self.start, lower), min(self.end, upper))
        return None if window.is_empty else window

    def shrunk(self, before: int, after: int) -> Optional["TimeWindow"]:
        """
        Shrink the window by ``before`` minutes at its start and ``after`` at its end.

        Returns:
            The shrunk window, or None when the buffers consume it entirely
        """
        window = TimeWindow(self.start + max(before, 0), self.end - max(after, 0))
        return None if window.is_empty else window

    def subtract(self, block: "TimeWindow") -> List["TimeWindow"]:
        """
        Remove ``block`` from this window.

        A block strictly inside the window splits it in two. A block that only
        touches a boundary leaves the window untouched.
        """
        if not self.overlaps(block):
            return [self]

        remaining = []
        if block.start > self.start:
            remaining.append(TimeWindow(self.start, block.start))
        if block.end < self.end:
            remaining.append(TimeWindow(block.end, self.end))
        return remaining

    def to_times(self):
        """Return the window as a (start, end) pair of ``datetime.time``."""
        return minutes_to_time(self.start), minutes_to_time(self.end)

    def __str__(self) -> str:
        start, end = self.to_times()
        suffix = " (+1d)" if self.spans_midnight else ""
        return f"{start.strftime('%H:%M')} - {end.strftime('%H:%M')}{suffix}"


def are_time_intervals_overlapping(
    start1: Optional[TimeLike],
    end1: Optional[TimeLike],
    start2: Optional[TimeLike],
    end2: Optional[TimeLike],
    allow_adjacency: bool = False,
) -> bool:
    """
    Canonical overlap check for two time-of-day intervals.

    Midnight-spanning intervals are normalised before comparison. Absent or
    malformed input never raises; it simply does not overlap anything.

    Args:
        start1, end1: First interval
        start2, end2: Second interval
        allow_adjacency: If True, intervals that touch are considered overlapping

    Returns:
        True if the intervals overlap
    """
    first = TimeWindow.from_times(start1, end1)
    second = TimeWindow.from_times(start2, end2)
    if first is None or second is None:
        logger.debug(
            f"Ignoring malformed interval in overlap check: "
            f"({start1!r}, {end1!r}) / ({start2!r}, {end2!r})"
        )
        return False
    return first.overlaps(second, allow_adjacency=allow_adjacency)


def merge_windows(windows: Iterable[TimeWindow]) -> List[TimeWindow]:
    """Sort windows and merge the ones that overlap or touch."""
    ordered = sorted(w for w in windows if w is not None and not w.is_empty)
    if not ordered:
        return []

    merged = [ordered[0]]
    for window in ordered[1:]:
        last = merged[-1]
        if window.start <= last.end:
            merged[-1] = TimeWindow(last.start, max(last.end, window.end))
        else:
            merged.append(window)
    return merged


def subtract_windows(
    windows: Iterable[TimeWindow], blocks: Iterable[TimeWindow]
) -> List[TimeWindow]:
    """Subtract every block from every window, splitting windows as needed."""
    remaining = list(windows)
    for block in blocks:
        if block is None or block.is_empty:
            continue
        next_remaining = []
        for window in remaining:
            next_remaining.extend(window.subtract(block))
        remaining = next_remaining
    return sorted(remaining)
