from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator

from agenda.scheduling.time_window import TimeWindow


@dataclass(frozen=True)
class CandidateSlot:
    start: datetime
    end: datetime


class CandidateSlots:
    """
    Candidate starts for one service duration inside a window.

    Iteration is lazy and can be repeated; each pass yields the same strictly
    increasing sequence. A start is emitted only if the whole service fits
    before the window closes.
    """

    def __init__(self, window: TimeWindow, duration_minutes: int):
        if duration_minutes <= 0:
            raise ValueError('Service duration must be positive.')
        self.window = window
        self.duration = timedelta(minutes=duration_minutes)

    def __iter__(self) -> Iterator[CandidateSlot]:
        if not self.window.is_open:
            return

        close = self.window.closes_at
        step = self.window.granularity
        current = self.window.opens_at

        while current < close:
            end = current + self.duration
            if end <= close:
                yield CandidateSlot(start=current, end=end)
            current += step
