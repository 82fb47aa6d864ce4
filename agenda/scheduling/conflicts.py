"""
Half-open interval conflict detection.

Pure interval math: status filtering is the caller's job.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence


@dataclass(frozen=True)
class BookedInterval:
    """
    An existing booking as seen by the conflict detector.

    Invariant: start must be before end.
    """
    start: datetime
    end: datetime
    professional_id: str | None = None
    tenant_id: str | None = None
    status: str = 'scheduled'

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f'Start time {self.start} must be before end time {self.end}')


def overlaps(start: datetime, end: datetime, booked_start: datetime, booked_end: datetime) -> bool:
    """[start, end) and [booked_start, booked_end) share at least one instant.

    Touching boundaries (one ends exactly when the other starts) do not overlap.
    """
    return start < booked_end and end > booked_start


def has_conflict(start: datetime, end: datetime, booked: Sequence[BookedInterval]) -> bool:
    """
    Check a candidate interval against booked intervals sorted by start.

    The scan stops at the first booking that starts at or after the
    candidate's end, since no later booking can overlap.
    """
    for interval in booked:
        if interval.start >= end:
            return False
        if overlaps(start, end, interval.start, interval.end):
            return True
    return False
