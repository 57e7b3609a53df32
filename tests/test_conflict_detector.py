"""
Tests for conflict detection.
"""

import pytest

from availabilityengine.domain.conflict_detector import ConflictDetector, split_by_kind
from availabilityengine.domain.exceptions import DetectionError
from availabilityengine.domain.models import BookingInterval, ConflictKind, Severity, TimeSlot


@pytest.fixture
def detector():
    return ConflictDetector()


class TestConflictDetector:
    """Tests for ConflictDetector."""

    def test_direct_overlap_inside_existing_is_major(self, detector):
        """Requested 14:30-16:30 inside 14:00-18:00."""
        conflicts = detector.detect(
            TimeSlot.parse("14:30", "16:30"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
        )

        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.DIRECT_OVERLAP
        assert conflicts[0].severity is Severity.MAJOR
        assert conflicts[0].required_gap_minutes == 0

    def test_short_gap_is_minor_buffer_violation(self, detector):
        """Requested 10:00-12:00 against 12:10-14:00 with a 30 minute buffer."""
        conflicts = detector.detect(
            TimeSlot.parse("10:00", "12:00"),
            [TimeSlot.parse("12:10", "14:00")],
            buffer_minutes=30,
        )

        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.BUFFER_VIOLATION
        assert conflicts[0].severity is Severity.MINOR
        assert conflicts[0].required_gap_minutes == 30

    def test_touching_slots_violate_buffer(self, detector):
        conflicts = detector.detect(
            TimeSlot.parse("13:30", "14:00"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
        )

        assert [c.kind for c in conflicts] == [ConflictKind.BUFFER_VIOLATION]

    def test_buffer_violation_after_existing(self, detector):
        conflicts = detector.detect(
            TimeSlot.parse("18:15", "20:00"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
        )

        assert [c.kind for c in conflicts] == [ConflictKind.BUFFER_VIOLATION]

    def test_setup_conflict_before_existing(self, detector):
        """Enough buffer, but not enough time for the next crew to set up."""
        conflicts = detector.detect(
            TimeSlot.parse("12:00", "13:15"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
            setup_minutes=60,
        )

        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.SETUP_CONFLICT
        assert conflicts[0].severity is Severity.MINOR
        assert conflicts[0].required_gap_minutes == 60

    def test_buffer_violation_takes_precedence_over_setup(self, detector):
        conflicts = detector.detect(
            TimeSlot.parse("13:00", "14:00"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
            setup_minutes=60,
        )

        assert [c.kind for c in conflicts] == [ConflictKind.BUFFER_VIOLATION]

    def test_setup_time_does_not_apply_after_existing(self, detector):
        """Setup happens before an event, so a later request is only held to the buffer."""
        conflicts = detector.detect(
            TimeSlot.parse("18:45", "20:00"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
            setup_minutes=60,
        )

        assert conflicts == []

    def test_exact_setup_gap_is_fine(self, detector):
        conflicts = detector.detect(
            TimeSlot.parse("12:00", "13:00"),
            [TimeSlot.parse("14:00", "18:00")],
            buffer_minutes=30,
            setup_minutes=60,
        )

        assert conflicts == []

    def test_results_preserve_input_order(self, detector):
        existing = [
            TimeSlot.parse("18:00", "20:00"),
            TimeSlot.parse("08:00", "09:00"),
            TimeSlot.parse("12:00", "13:00"),
        ]

        conflicts = detector.detect(TimeSlot.parse("09:10", "19:00"), existing, buffer_minutes=30)

        assert [c.existing for c in conflicts] == existing
        assert [c.kind for c in conflicts] == [
            ConflictKind.DIRECT_OVERLAP,
            ConflictKind.BUFFER_VIOLATION,
            ConflictKind.DIRECT_OVERLAP,
        ]

    def test_booking_ids_are_copied(self, detector):
        existing = [BookingInterval(slot=TimeSlot.parse("14:00", "18:00"), booking_id="42")]

        conflicts = detector.detect(TimeSlot.parse("15:00", "17:00"), existing, buffer_minutes=0)

        assert conflicts[0].booking_id == "42"

    def test_negative_buffer_fails_loudly(self, detector):
        with pytest.raises(DetectionError):
            detector.detect(TimeSlot.parse("10:00", "11:00"), [], buffer_minutes=-1)

    def test_negative_setup_fails_loudly(self, detector):
        with pytest.raises(DetectionError):
            detector.detect(TimeSlot.parse("10:00", "11:00"), [], buffer_minutes=0, setup_minutes=-5)

    def test_split_by_kind(self, detector):
        existing = [TimeSlot.parse("08:00", "09:00"), TimeSlot.parse("12:00", "13:00")]
        conflicts = detector.detect(TimeSlot.parse("09:10", "12:30"), existing, buffer_minutes=30)

        overlaps, spacing = split_by_kind(conflicts)

        assert [c.kind for c in overlaps] == [ConflictKind.DIRECT_OVERLAP]
        assert [c.kind for c in spacing] == [ConflictKind.BUFFER_VIOLATION]


class TestConflictDetectorProperties:
    """Exhaustive checks over a coarse grid of slot pairs."""

    HOURS = range(8, 23)

    def _pairs(self):
        for a_start in self.HOURS:
            for a_len in (1, 2, 4):
                for b_start in self.HOURS:
                    for b_len in (1, 3):
                        if a_start + a_len > 23 or b_start + b_len > 23:
                            continue
                        yield (
                            TimeSlot(a_start * 60, (a_start + a_len) * 60),
                            TimeSlot(b_start * 60 + 15, (b_start + b_len) * 60 + 15),
                        )

    def test_wide_gaps_never_conflict(self, detector):
        for requested, existing in self._pairs():
            if requested.overlaps(existing) or requested.minutes_between(existing) < 30:
                continue
            assert detector.detect(requested, [existing], buffer_minutes=30) == []

    def test_every_overlap_is_one_direct_overlap(self, detector):
        for requested, existing in self._pairs():
            if not (requested.start < existing.end and requested.end > existing.start):
                continue
            conflicts = detector.detect(requested, [existing], buffer_minutes=30)
            assert len(conflicts) == 1
            assert conflicts[0].kind is ConflictKind.DIRECT_OVERLAP
            assert conflicts[0].severity is Severity.MAJOR
