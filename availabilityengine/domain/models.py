"""
Domain models for time slots, bookings, conflicts and resolution results.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInterval

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE_OF_DAY = MINUTES_PER_DAY - 1  # 23:59

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    """
    Convert an ``HH:MM`` 24-hour string into minutes since midnight.

    Raises:
        InvalidInterval: If the string is not a valid time of day
    """
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidInterval(f"Invalid time '{value}', expected HH:MM between 00:00 and 23:59")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class ServiceKind(str, Enum):
    """Services offered for an event."""
    DJ = "DJ"
    PHOTOGRAPHY = "Photography"
    KARAOKE = "Karaoke"

    @classmethod
    def match(cls, name: Union[str, "ServiceKind"]) -> Optional["ServiceKind"]:
        """
        Resolve a service by value, member name or a label that names exactly
        one service (``"DJ Services"``, ``"Event Photography"``).

        Returns None when nothing or more than one service matches.
        """
        if isinstance(name, ServiceKind):
            return name
        key = str(name).strip().lower()
        for member in cls:
            if key in (member.value.lower(), member.name.lower()):
                return member

        words = set(re.findall(r"[a-z]+", key))
        found = [member for member in cls if member.value.lower() in words]
        return found[0] if len(found) == 1 else None

    @classmethod
    def from_name(cls, name: Union[str, "ServiceKind"]) -> "ServiceKind":
        """Like ``match`` but raises ``InvalidInterval`` for unknown names."""
        member = cls.match(name)
        if member is None:
            raise InvalidInterval(f"Unknown service '{name}'")
        return member


class ConflictKind(str, Enum):
    """Conflict classifications, most severe first."""
    DIRECT_OVERLAP = "direct-overlap"
    BUFFER_VIOLATION = "buffer-violation"
    SETUP_CONFLICT = "setup-conflict"


class Severity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"


class AdjustmentTag(str, Enum):
    """Strategy applied by the auto-resolver."""
    MOVED_EARLIER = "moved-earlier"
    MOVED_LATER = "moved-later"


@dataclass(frozen=True, order=True)
class TimeSlot:
    """
    Immutable wall-clock interval on a single calendar day.

    Times are stored as minutes since midnight so every comparison is exact
    integer arithmetic.

    Invariant: ``0 <= start < end <= 23:59``.
    """
    start: int
    end: int

    def __post_init__(self):
        for value in (self.start, self.end):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidInterval(f"Slot bounds must be integer minutes, got {value!r}")
            if not 0 <= value <= LAST_MINUTE_OF_DAY:
                raise InvalidInterval(f"Time {value} is outside 00:00-23:59")
        if self.start >= self.end:
            raise InvalidInterval(
                f"Start time {format_hhmm(self.start)} must be before end time {format_hhmm(self.end)}"
            )

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeSlot":
        """Build a slot from two ``HH:MM`` strings."""
        return cls(start=parse_hhmm(start), end=parse_hhmm(end))

    @classmethod
    def coerce(cls, value: Union["TimeSlot", Tuple[str, str], Dict[str, str]]) -> "TimeSlot":
        """Accept a slot, a ``(start, end)`` pair or a ``{"start", "end"}`` mapping."""
        if isinstance(value, TimeSlot):
            return value
        if isinstance(value, dict):
            try:
                return cls.parse(value["start"], value["end"])
            except KeyError as exc:
                raise InvalidInterval(f"Slot mapping is missing {exc}") from exc
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls.parse(value[0], value[1])
        raise InvalidInterval(f"Cannot interpret {value!r} as a time slot")

    def to_minutes(self) -> Tuple[int, int]:
        """Return ``(start, end)`` in minutes since midnight."""
        return self.start, self.end

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeSlot") -> bool:
        """Half-open overlap check; touching slots do not overlap."""
        return self.start < other.end and self.end > other.start

    def overlap_minutes(self, other: "TimeSlot") -> int:
        """Length of the shared portion of both slots."""
        return max(0, min(self.end, other.end) - max(self.start, other.start))

    def minutes_between(self, other: "TimeSlot") -> int:
        """Idle minutes separating two slots, 0 when they touch or overlap."""
        if self.overlaps(other):
            return 0
        if self.end <= other.start:
            return other.start - self.end
        return self.start - other.end

    def precedes(self, other: "TimeSlot") -> bool:
        """True if this slot finishes no later than ``other`` starts."""
        return self.end <= other.start

    def shifted(self, delta_minutes: int) -> "TimeSlot":
        """Return a copy moved by ``delta_minutes`` (negative moves earlier)."""
        return TimeSlot(start=self.start + delta_minutes, end=self.end + delta_minutes)

    def format(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_hhmm(self.start), "end": format_hhmm(self.end)}

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class BookingInterval:
    """
    A confirmed booking as seen by the engine.

    Snapshots are read from the booking store and never mutated here.
    """
    slot: TimeSlot
    booking_id: str
    services: FrozenSet[ServiceKind] = frozenset()

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "BookingInterval":
        """
        Build an interval from a booking record.

        Accepts the booking API's field names (``id``, ``startTime``,
        ``endTime``, ``servicesNeeded`` or ``services``) as well as
        ``start``/``end``. Unrecognised service names never drop the
        booking; see ``services_from_record``.
        """
        try:
            start = record.get("startTime", record.get("start"))
            end = record.get("endTime", record.get("end"))
            booking_id = record.get("id", record.get("bookingId"))
        except AttributeError as exc:
            raise InvalidInterval(f"Booking record must be a mapping, got {record!r}") from exc
        if start is None or end is None or booking_id is None:
            raise InvalidInterval(f"Booking record is incomplete: {record!r}")
        return cls(
            slot=TimeSlot.parse(start, end),
            booking_id=str(booking_id),
            services=services_from_record(record),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookingId": self.booking_id,
            **self.slot.to_dict(),
            "services": sorted(s.value for s in self.services),
        }


@dataclass(frozen=True)
class Conflict:
    """A detected clash between a requested slot and one existing slot."""
    kind: ConflictKind
    existing: TimeSlot
    requested: TimeSlot
    severity: Severity
    required_gap_minutes: int = 0
    booking_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.kind.value,
            "existing": self.existing.to_dict(),
            "new": self.requested.to_dict(),
            "severity": self.severity.value,
        }
        if self.booking_id is not None:
            payload["bookingId"] = self.booking_id
        return payload


@dataclass(frozen=True)
class AlternativeSlot:
    """A suggested replacement slot, ``score`` in [0, 1]."""
    slot: TimeSlot
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {**self.slot.to_dict(), "score": self.score}


@dataclass(frozen=True)
class UserPreferences:
    """Per-request flags steering auto-resolution."""
    allow_early_start: bool = False
    allow_late_end: bool = False
    prefer_morning: bool = False


@dataclass
class ResolutionResult:
    """Outcome of an auto-resolve or engine resolve call."""
    success: bool
    new_slot: Optional[TimeSlot] = None
    adjustments: List[AdjustmentTag] = field(default_factory=list)
    alternatives: List[AlternativeSlot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "newSlot": self.new_slot.to_dict() if self.new_slot else None,
            "adjustments": [tag.value for tag in self.adjustments],
            "alternatives": [alt.to_dict() for alt in self.alternatives],
        }


@dataclass
class AvailabilityResult:
    """Answer to "can this slot be booked on this date?"."""
    date: Date
    requested: TimeSlot
    available: bool
    conflicts: List[Conflict] = field(default_factory=list)
    buffer_violations: List[Conflict] = field(default_factory=list)
    checked_at: Optional[DateTime] = None

    @property
    def all_conflicts(self) -> List[Conflict]:
        return [*self.conflicts, *self.buffer_violations]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.to_date_string(),
            "requested": self.requested.to_dict(),
            "available": self.available,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "bufferViolations": [c.to_dict() for c in self.buffer_violations],
            "checkedAt": self.checked_at.to_iso8601_string() if self.checked_at else None,
        }


@dataclass(frozen=True)
class ChangeSummary:
    """Difference between two booking snapshots for one date."""
    date: Date
    added: Tuple[BookingInterval, ...]
    removed: Tuple[BookingInterval, ...]
    checked_at: DateTime

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)

    @property
    def change_count(self) -> int:
        return len(self.added) + len(self.removed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.to_date_string(),
            "updated": self.changed,
            "changes": self.change_count,
            "added": [b.to_dict() for b in self.added],
            "removed": [b.to_dict() for b in self.removed],
            "timestamp": self.checked_at.to_iso8601_string(),
        }


def services_from_record(record: Dict[str, Any]) -> FrozenSet[ServiceKind]:
    """
    Services of a stored booking record.

    Reads ``servicesNeeded`` (booking database rows) or ``services``. Names
    that match no known service are logged and left out: the booking still
    blocks its time, it just carries no setup rule for them.
    """
    names = record.get("servicesNeeded")
    if names is None:
        names = record.get("services") or []
    if isinstance(names, str):
        names = [names]

    services = set()
    for name in names:
        member = ServiceKind.match(name)
        if member is None:
            logger.warning("Booking %s lists unknown service %r", record.get("id"), name)
            continue
        services.add(member)
    return frozenset(services)


def slots_of(items: Iterable[Union[TimeSlot, BookingInterval]]) -> List[TimeSlot]:
    """Unwrap booking intervals into their slots, keeping order."""
    return [item.slot if isinstance(item, BookingInterval) else item for item in items]


def coerce_date(value: Union[str, date, Date]) -> Date:
    """Normalise ``YYYY-MM-DD`` strings and ``datetime.date`` values to a pendulum Date."""
    if isinstance(value, (date, datetime)):
        return pendulum.date(value.year, value.month, value.day)
    try:
        return pendulum.from_format(str(value).strip(), "YYYY-MM-DD").date()
    except ValueError as exc:
        raise InvalidInterval(f"Invalid date '{value}', expected YYYY-MM-DD") from exc
