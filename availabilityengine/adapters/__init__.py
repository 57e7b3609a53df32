"""
Adapters layer - Booking store backends and the system clock.
"""

from .clock import SystemClock
from .http_store import HttpBookingStore
from .json_store import JsonBookingStore
from .memory_store import InMemoryBookingStore

__all__ = ["SystemClock", "HttpBookingStore", "JsonBookingStore", "InMemoryBookingStore"]
