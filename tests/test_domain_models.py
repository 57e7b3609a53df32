"""
Tests for domain models.
"""

import datetime

import pendulum
import pytest

from availabilityengine.domain.exceptions import InvalidInterval
from availabilityengine.domain.models import (
    BookingInterval,
    ChangeSummary,
    Conflict,
    ConflictKind,
    ResolutionResult,
    ServiceKind,
    Severity,
    TimeSlot,
    coerce_date,
    parse_hhmm,
)


class TestTimeSlot:
    """Tests for TimeSlot model."""

    def test_create_valid_time_slot(self):
        """Test creating a valid slot from HH:MM strings."""
        slot = TimeSlot.parse("09:00", "17:00")

        assert slot.to_minutes() == (540, 1020)
        assert slot.duration_minutes() == 480  # 8 hours
        assert str(slot) == "09:00-17:00"

    def test_invalid_order_raises_error(self):
        """End before start is rejected."""
        with pytest.raises(InvalidInterval, match="Start time 17:00 must be before end time 09:00"):
            TimeSlot.parse("17:00", "09:00")

    def test_empty_slot_raises_error(self):
        with pytest.raises(InvalidInterval):
            TimeSlot.parse("10:00", "10:00")

    @pytest.mark.parametrize("value", ["24:00", "9:60", "noon", "", "12-00"])
    def test_malformed_time_raises_error(self, value):
        """Times outside 00:00-23:59 or in another format are rejected."""
        with pytest.raises(InvalidInterval):
            TimeSlot.parse("08:00", value)

    def test_minutes_outside_day_raise_error(self):
        with pytest.raises(InvalidInterval):
            TimeSlot(start=-15, end=60)
        with pytest.raises(InvalidInterval):
            TimeSlot(start=600, end=1440)

    def test_invalid_interval_is_value_error(self):
        """Callers catching ValueError also catch malformed slots."""
        with pytest.raises(ValueError):
            TimeSlot.parse("23:00", "22:00")

    def test_single_digit_hour_is_accepted(self):
        assert parse_hhmm("9:05") == 545

    def test_overlaps(self):
        """Test half-open overlap detection."""
        slot1 = TimeSlot.parse("09:00", "12:00")
        slot2 = TimeSlot.parse("11:00", "14:00")
        slot3 = TimeSlot.parse("14:00", "17:00")

        assert slot1.overlaps(slot2)
        assert slot2.overlaps(slot1)
        assert not slot1.overlaps(slot3)
        # Touching slots do not overlap
        assert not slot2.overlaps(slot3)

    def test_minutes_between(self):
        """Gap is measured in either direction and is 0 for overlaps."""
        morning = TimeSlot.parse("10:00", "12:00")
        afternoon = TimeSlot.parse("12:10", "14:00")

        assert morning.minutes_between(afternoon) == 10
        assert afternoon.minutes_between(morning) == 10
        assert morning.minutes_between(TimeSlot.parse("11:00", "13:00")) == 0

    def test_overlap_minutes(self):
        requested = TimeSlot.parse("14:30", "16:30")
        existing = TimeSlot.parse("14:00", "18:00")

        assert requested.overlap_minutes(existing) == 120
        assert requested.overlap_minutes(TimeSlot.parse("17:00", "18:00")) == 0

    def test_shifted_returns_new_slot(self):
        slot = TimeSlot.parse("10:00", "12:00")

        moved = slot.shifted(-20)

        assert moved == TimeSlot.parse("09:40", "11:40")
        assert slot == TimeSlot.parse("10:00", "12:00")

    def test_shifted_out_of_day_raises_error(self):
        with pytest.raises(InvalidInterval):
            TimeSlot.parse("00:10", "01:00").shifted(-30)

    def test_coerce_accepts_pairs_and_mappings(self):
        expected = TimeSlot.parse("10:00", "11:00")

        assert TimeSlot.coerce(("10:00", "11:00")) == expected
        assert TimeSlot.coerce({"start": "10:00", "end": "11:00"}) == expected
        assert TimeSlot.coerce(expected) is expected

    def test_coerce_rejects_garbage(self):
        with pytest.raises(InvalidInterval):
            TimeSlot.coerce({"start": "10:00"})
        with pytest.raises(InvalidInterval):
            TimeSlot.coerce("10:00-11:00")

    def test_slot_is_immutable(self):
        slot = TimeSlot.parse("10:00", "11:00")

        with pytest.raises(AttributeError):
            slot.start = 0


class TestBookingInterval:
    """Tests for BookingInterval parsing."""

    def test_from_api_record(self):
        record = {"id": 7, "startTime": "14:00", "endTime": "18:00", "services": ["DJ", "karaoke"]}

        interval = BookingInterval.from_record(record)

        assert interval.booking_id == "7"
        assert interval.slot == TimeSlot.parse("14:00", "18:00")
        assert interval.services == frozenset({ServiceKind.DJ, ServiceKind.KARAOKE})

    def test_incomplete_record_raises_error(self):
        with pytest.raises(InvalidInterval, match="incomplete"):
            BookingInterval.from_record({"id": 1, "startTime": "14:00"})

    def test_database_service_labels(self):
        record = {
            "id": 3,
            "start": "18:00",
            "end": "23:00",
            "servicesNeeded": ["DJ Services", "Event Photography", "Karaoke Entertainment"],
        }

        interval = BookingInterval.from_record(record)

        assert interval.services == frozenset(ServiceKind)

    def test_unknown_service_keeps_booking(self, caplog):
        """An unknown service name never drops the booked time."""
        record = {"id": 1, "start": "14:00", "end": "15:00", "services": ["Magician", "DJ"]}

        interval = BookingInterval.from_record(record)

        assert interval.slot == TimeSlot.parse("14:00", "15:00")
        assert interval.services == frozenset({ServiceKind.DJ})
        assert "unknown service 'Magician'" in caplog.text

    def test_service_matching(self):
        assert ServiceKind.match("dj") is ServiceKind.DJ
        assert ServiceKind.match("PHOTOGRAPHY") is ServiceKind.PHOTOGRAPHY
        assert ServiceKind.match("Live Band") is None
        assert ServiceKind.match("DJ and Karaoke combo") is None

    def test_from_name_rejects_unknown_service(self):
        with pytest.raises(InvalidInterval, match="Unknown service"):
            ServiceKind.from_name("Magician")

    def test_intervals_are_hashable(self):
        record = {"id": 1, "start": "14:00", "end": "15:00", "services": ["DJ"]}

        assert len({BookingInterval.from_record(record), BookingInterval.from_record(record)}) == 1


class TestSerialization:
    """Tests for the JSON shapes returned to the booking API."""

    def test_conflict_to_dict(self):
        conflict = Conflict(
            kind=ConflictKind.BUFFER_VIOLATION,
            existing=TimeSlot.parse("14:00", "18:00"),
            requested=TimeSlot.parse("13:00", "13:50"),
            severity=Severity.MINOR,
            required_gap_minutes=30,
            booking_id="1",
        )

        assert conflict.to_dict() == {
            "type": "buffer-violation",
            "existing": {"start": "14:00", "end": "18:00"},
            "new": {"start": "13:00", "end": "13:50"},
            "severity": "minor",
            "bookingId": "1",
        }

    def test_resolution_to_dict(self):
        result = ResolutionResult(success=False)

        assert result.to_dict() == {"success": False, "newSlot": None, "adjustments": [], "alternatives": []}

    def test_change_summary_counts(self):
        added = BookingInterval(slot=TimeSlot.parse("10:00", "11:00"), booking_id="1")
        summary = ChangeSummary(
            date=pendulum.date(2024, 2, 15),
            added=(added,),
            removed=(),
            checked_at=pendulum.datetime(2024, 2, 15, 9, 0),
        )

        payload = summary.to_dict()

        assert summary.changed
        assert payload["changes"] == 1
        assert payload["date"] == "2024-02-15"
        assert payload["added"][0]["bookingId"] == "1"


class TestCoerceDate:
    """Tests for date normalisation."""

    def test_parses_iso_date(self):
        assert coerce_date("2024-02-15") == pendulum.date(2024, 2, 15)

    def test_accepts_stdlib_date(self):
        assert coerce_date(datetime.date(2024, 2, 15)) == pendulum.date(2024, 2, 15)

    def test_rejects_invalid_date(self):
        with pytest.raises(InvalidInterval):
            coerce_date("15.02.2024")
