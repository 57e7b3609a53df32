"""
Conflict detection between a requested slot and the bookings of one day.

Pure domain logic: no store access, no clock, no I/O.
"""

from typing import List, Optional, Sequence, Tuple, Union

from .exceptions import DetectionError
from .models import BookingInterval, Conflict, ConflictKind, Severity, TimeSlot


class ConflictDetector:
    """
    Classifies how a requested slot clashes with each existing slot.

    Classification per existing slot (first match wins, most severe first):
    1. Direct overlap: ``requested.start < existing.end and requested.end > existing.start``
    2. Buffer violation: no overlap, but the idle gap is shorter than the buffer
    3. Setup conflict: the request ends before the existing booking starts and
       leaves less than the setup time the existing booking needs
    """

    def detect(
        self,
        requested: TimeSlot,
        existing: Sequence[Union[TimeSlot, BookingInterval]],
        buffer_minutes: int,
        setup_minutes: int = 0,
    ) -> List[Conflict]:
        """
        Detect conflicts for ``requested``.

        Args:
            requested: Slot the customer wants
            existing: Booked slots for the same date
            buffer_minutes: Minimum idle time between any two bookings
            setup_minutes: Minimum idle time before an existing booking starts

        Returns:
            One conflict per clashing existing slot, in the order of ``existing``

        Raises:
            DetectionError: If a buffer or setup time is negative
        """
        if buffer_minutes < 0:
            raise DetectionError(f"buffer_minutes must not be negative, got {buffer_minutes}")
        if setup_minutes < 0:
            raise DetectionError(f"setup_minutes must not be negative, got {setup_minutes}")

        conflicts: List[Conflict] = []

        for item in existing:
            if isinstance(item, BookingInterval):
                slot, booking_id = item.slot, item.booking_id
            else:
                slot, booking_id = item, None

            conflict = self._classify(requested, slot, buffer_minutes, setup_minutes, booking_id)
            if conflict is not None:
                conflicts.append(conflict)

        return conflicts

    def _classify(
        self,
        requested: TimeSlot,
        existing: TimeSlot,
        buffer_minutes: int,
        setup_minutes: int,
        booking_id: Optional[str],
    ) -> Optional[Conflict]:
        if requested.overlaps(existing):
            kind = ConflictKind.DIRECT_OVERLAP
            required_gap = 0
        else:
            gap = requested.minutes_between(existing)
            if gap < buffer_minutes:
                kind = ConflictKind.BUFFER_VIOLATION
                required_gap = buffer_minutes
            elif setup_minutes > 0 and requested.precedes(existing) and gap < setup_minutes:
                kind = ConflictKind.SETUP_CONFLICT
                required_gap = setup_minutes
            else:
                return None

        return Conflict(
            kind=kind,
            existing=existing,
            requested=requested,
            severity=self._severity(kind, requested, existing),
            required_gap_minutes=required_gap,
            booking_id=booking_id,
        )

    @staticmethod
    def _severity(kind: ConflictKind, requested: TimeSlot, existing: TimeSlot) -> Severity:
        if kind is ConflictKind.DIRECT_OVERLAP:
            return Severity.MAJOR
        # Overlap beyond half the requested length escalates any kind.
        if requested.overlap_minutes(existing) * 2 > requested.duration_minutes():
            return Severity.MAJOR
        return Severity.MINOR


def split_by_kind(conflicts: Sequence[Conflict]) -> Tuple[List[Conflict], List[Conflict]]:
    """
    Partition conflicts into ``(direct_overlaps, buffer_violations)``.

    Setup conflicts are reported alongside buffer violations since both are
    spacing problems rather than double bookings.
    """
    overlaps = [c for c in conflicts if c.kind is ConflictKind.DIRECT_OVERLAP]
    spacing = [c for c in conflicts if c.kind is not ConflictKind.DIRECT_OVERLAP]
    return overlaps, spacing
