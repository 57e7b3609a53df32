"""
In-memory booking store with mutation hooks.
"""

import logging
import threading
from typing import Callable, Dict, List, Union

from pendulum import Date

from ..domain.models import BookingInterval, coerce_date

logger = logging.getLogger(__name__)

MutationCallback = Callable[[Date], None]


class InMemoryBookingStore:
    """
    Keeps booking intervals per date and notifies listeners on every change.

    Used for local development, the CLI demo data and tests. A real
    deployment reads from the booking database or API instead.
    """

    def __init__(self):
        self._bookings: Dict[Date, List[BookingInterval]] = {}
        self._callbacks: List[MutationCallback] = []
        self._lock = threading.Lock()

    async def list_intervals_for_date(self, date: Union[str, Date]) -> List[BookingInterval]:
        """Return a snapshot of the bookings on ``date`` ordered by start time."""
        key = coerce_date(date)
        with self._lock:
            return sorted(self._bookings.get(key, []), key=lambda b: b.slot.start)

    def on_mutation(self, callback: MutationCallback) -> None:
        """Register ``callback(date)`` to run after every add or remove."""
        with self._lock:
            self._callbacks.append(callback)

    def add(self, date: Union[str, Date], interval: BookingInterval) -> None:
        """Store a confirmed booking."""
        key = coerce_date(date)
        with self._lock:
            self._bookings.setdefault(key, []).append(interval)
        logger.debug("Added booking %s on %s at %s", interval.booking_id, key, interval.slot)
        self._notify(key)

    def remove(self, date: Union[str, Date], booking_id: str) -> bool:
        """
        Delete a booking, e.g. after a cancellation.

        Returns:
            True if a booking was removed
        """
        key = coerce_date(date)
        with self._lock:
            current = self._bookings.get(key, [])
            remaining = [b for b in current if b.booking_id != str(booking_id)]
            removed = len(remaining) != len(current)
            self._bookings[key] = remaining
        if removed:
            logger.debug("Removed booking %s on %s", booking_id, key)
            self._notify(key)
        return removed

    def _notify(self, date: Date) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(date)
