"""
Service layer helpers that orchestrate the booking store and domain logic.
"""

from .availability_engine import AvailabilityEngine, BookingStoreProtocol, ClockProtocol, RequestState
from .notifier import AvailabilityNotifier, Subscription

__all__ = [
    "AvailabilityEngine",
    "AvailabilityNotifier",
    "BookingStoreProtocol",
    "ClockProtocol",
    "RequestState",
    "Subscription",
]
