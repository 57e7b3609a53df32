"""
Shared fixtures: a controllable clock and booking helpers.
"""

import pendulum
import pytest

from availabilityengine.adapters.memory_store import InMemoryBookingStore
from availabilityengine.domain.models import BookingInterval, ServiceKind, TimeSlot


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start="2024-02-15T09:00:00"):
        self.current = pendulum.parse(start, tz="America/Chicago")

    def now(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current.add(**kwargs)


def booking(booking_id, start, end, *services):
    """Build a BookingInterval from HH:MM strings."""
    return BookingInterval(
        slot=TimeSlot.parse(start, end),
        booking_id=str(booking_id),
        services=frozenset(ServiceKind.from_name(s) for s in services),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def make_booking():
    return booking
