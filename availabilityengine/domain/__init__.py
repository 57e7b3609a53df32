"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .alternative_suggester import AlternativeSuggester
from .auto_resolver import AutoResolver
from .conflict_detector import ConflictDetector
from .exceptions import AvailabilityError, DetectionError, InvalidInterval, StoreUnavailable
from .models import (
    AdjustmentTag,
    AlternativeSlot,
    AvailabilityResult,
    BookingInterval,
    ChangeSummary,
    Conflict,
    ConflictKind,
    ResolutionResult,
    ServiceKind,
    Severity,
    TimeSlot,
    UserPreferences,
)

__all__ = [
    "AdjustmentTag",
    "AlternativeSlot",
    "AlternativeSuggester",
    "AutoResolver",
    "AvailabilityError",
    "AvailabilityResult",
    "BookingInterval",
    "ChangeSummary",
    "Conflict",
    "ConflictDetector",
    "ConflictKind",
    "DetectionError",
    "InvalidInterval",
    "ResolutionResult",
    "ServiceKind",
    "Severity",
    "StoreUnavailable",
    "TimeSlot",
    "UserPreferences",
]
