"""
Slot generation.

Candidate slots start at the opening time and step forward by a fixed
interval; a slot is only produced when the whole service fits before
closing.
"""
from dataclasses import dataclass
from datetime import time
from typing import Iterator, Optional

from detailing_scheduler.config import settings
from detailing_scheduler.errors import ValidationError
from detailing_scheduler.services.timeutils import format_time, from_minutes, to_minutes


@dataclass(frozen=True)
class Slot:
    """A candidate [start, end) interval on one day"""

    start: time
    end: time

    def to_dict(self) -> dict:
        return {"start_time": format_time(self.start), "end_time": format_time(self.end)}


def generate(
    open_time: time,
    close_time: time,
    duration_minutes: int,
    interval_minutes: Optional[int] = None,
) -> Iterator[Slot]:
    """
    Enumerate candidate slots between open and close.

    Args:
        open_time: First possible start
        close_time: No slot may end after this
        duration_minutes: Length of each slot
        interval_minutes: Step between consecutive starts (settings default, 30)

    Returns:
        Iterator of Slot in ascending start order
    """
    interval = interval_minutes if interval_minutes is not None else settings.slot_interval_minutes
    if duration_minutes <= 0:
        raise ValidationError(
            "Duration must be positive",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )
    if interval <= 0:
        raise ValidationError(
            "Slot interval must be positive",
            code="INVALID_INTERVAL",
            details={"interval_minutes": interval},
        )
    return _iter_slots(to_minutes(open_time), to_minutes(close_time), duration_minutes, interval)


def _iter_slots(start: int, close: int, duration: int, interval: int) -> Iterator[Slot]:
    while start + duration <= close:
        yield Slot(start=from_minutes(start), end=from_minutes(start + duration))
        start += interval
