"""
Fixed-step availability grid for calendar views, plus time formatting helpers.
"""

import re
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

from .exceptions import InvalidInterval
from .models import BookingInterval, TimeSlot, format_hhmm, parse_hhmm
from .service_rules import calculate_breakdown_time, calculate_setup_time

SLOT_STEP_MINUTES = 15

_TWELVE_HOUR = re.compile(r"^(1[0-2]|0?[1-9]):([0-5]\d)\s*([AaPp][Mm])$")


@dataclass(frozen=True)
class GridSlot:
    """One cell of the day grid."""
    slot: TimeSlot
    available: bool = True
    index: int = 0

    def to_dict(self) -> dict:
        return {**self.slot.to_dict(), "available": self.available, "slotIndex": self.index}


def generate_time_slots(window: TimeSlot, step_minutes: int = SLOT_STEP_MINUTES) -> List[GridSlot]:
    """
    Split ``window`` into consecutive cells of ``step_minutes``.

    A trailing remainder shorter than one step is dropped.
    """
    if step_minutes <= 0:
        raise InvalidInterval(f"step_minutes must be positive, got {step_minutes}")

    cells: List[GridSlot] = []
    start = window.start
    while start + step_minutes <= window.end:
        cells.append(GridSlot(slot=TimeSlot(start, start + step_minutes), index=len(cells)))
        start += step_minutes
    return cells


def mark_availability(
    grid: Sequence[GridSlot],
    bookings: Sequence[BookingInterval],
    buffer_minutes: int = 0,
    include_setup: bool = False,
    include_breakdown: bool = False,
) -> List[GridSlot]:
    """
    Flag every grid cell that touches a booking, its buffer, or optionally
    the booking's setup and breakdown periods.
    """
    blocked: List[Tuple[int, int]] = []
    for booking in bookings:
        start = booking.slot.start - buffer_minutes
        end = booking.slot.end + buffer_minutes
        if include_setup and booking.services:
            start -= calculate_setup_time(booking.services)
        if include_breakdown and booking.services:
            end += calculate_breakdown_time(booking.services)
        blocked.append((start, end))

    marked: List[GridSlot] = []
    for cell in grid:
        taken = any(cell.slot.start < end and cell.slot.end > start for start, end in blocked)
        marked.append(replace(cell, available=cell.available and not taken))
    return marked


def merge_slots(cells: Sequence[GridSlot]) -> List[GridSlot]:
    """
    Merge consecutive cells with the same availability.

    Example: [10:00-10:15 free, 10:15-10:30 free] -> [10:00-10:30 free]
    """
    if not cells:
        return []

    merged: List[GridSlot] = [cells[0]]
    for cell in cells[1:]:
        last = merged[-1]
        if last.slot.end == cell.slot.start and last.available == cell.available:
            merged[-1] = replace(last, slot=TimeSlot(last.slot.start, cell.slot.end))
        else:
            merged.append(cell)
    return merged


def format_time(value: str, style: str = "24h") -> str:
    """Render an ``HH:MM`` time as ``"2:30 PM"`` (``12h``) or unchanged (``24h``)."""
    minutes = parse_hhmm(value)
    if style == "24h":
        return format_hhmm(minutes)
    if style != "12h":
        raise ValueError(f"Unknown time style '{style}'")

    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    display = 12 if hours % 12 == 0 else hours % 12
    return f"{display}:{mins:02d} {period}"


def parse_time(text: str) -> str:
    """Normalise ``"2:30 PM"`` or ``"14:30"`` into 24-hour ``HH:MM``."""
    match = _TWELVE_HOUR.match(text.strip())
    if not match:
        return format_hhmm(parse_hhmm(text))

    hours = int(match.group(1)) % 12
    if match.group(3).upper() == "PM":
        hours += 12
    return f"{hours:02d}:{match.group(2)}"
