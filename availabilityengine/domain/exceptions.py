"""
Domain-specific exception hierarchy for the availability engine.
"""


class AvailabilityError(Exception):
    """Base class for all application-level errors."""


class InvalidInterval(AvailabilityError, ValueError):
    """Raised when a time slot or booking request is malformed."""


class StoreUnavailable(AvailabilityError):
    """Raised when the booking store cannot be read."""


class DetectionError(AvailabilityError):
    """Raised when detection or scoring receives structurally invalid input."""
