"""
Per-service event durations and the idle times required around events.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from .exceptions import InvalidInterval
from .models import ServiceKind

BUFFER_TIME_MINUTES = 30  # idle time between two bookings
SETUP_TIME_MINUTES = 60
EXTRA_SETUP_MINUTES = 30  # three or more services on one event
BREAKDOWN_TIME_MINUTES = 30


@dataclass(frozen=True)
class ServiceDuration:
    """Typical and permitted event length for a service, in hours."""
    service: ServiceKind
    default_hours: int
    min_hours: int
    max_hours: int

    def default_minutes(self) -> int:
        return self.default_hours * 60

    def allows(self, minutes: int) -> bool:
        """Check whether an event of ``minutes`` is within the service limits."""
        return self.min_hours * 60 <= minutes <= self.max_hours * 60


SERVICE_DURATIONS: Dict[ServiceKind, ServiceDuration] = {
    ServiceKind.DJ: ServiceDuration(ServiceKind.DJ, default_hours=5, min_hours=4, max_hours=6),
    ServiceKind.PHOTOGRAPHY: ServiceDuration(ServiceKind.PHOTOGRAPHY, default_hours=4, min_hours=3, max_hours=8),
    ServiceKind.KARAOKE: ServiceDuration(ServiceKind.KARAOKE, default_hours=3, min_hours=2, max_hours=5),
}


def _resolve(services: Iterable[Union[str, ServiceKind]]) -> List[ServiceKind]:
    resolved = [ServiceKind.from_name(s) for s in services]
    if not resolved:
        raise InvalidInterval("No services specified")
    return resolved


def calculate_service_duration(
    services: Iterable[Union[str, ServiceKind]],
    custom_duration: Optional[int] = None,
) -> int:
    """
    Event length in minutes for a set of services.

    Services run in parallel, so the longest default wins rather than the sum.
    """
    resolved = _resolve(services)
    if custom_duration:
        return custom_duration
    return max(SERVICE_DURATIONS[s].default_minutes() for s in resolved)


def calculate_setup_time(services: Iterable[Union[str, ServiceKind]]) -> int:
    """Minutes the crew needs on site before an event starts."""
    resolved = set(_resolve(services))
    if len(resolved) >= 3:
        return SETUP_TIME_MINUTES + EXTRA_SETUP_MINUTES
    return SETUP_TIME_MINUTES


def calculate_breakdown_time(services: Iterable[Union[str, ServiceKind]]) -> int:
    """Minutes the crew needs to pack up after an event."""
    _resolve(services)
    return BREAKDOWN_TIME_MINUTES
