"""
Tests for the day grid and time formatting helpers.
"""

import pytest

from availabilityengine.domain.exceptions import InvalidInterval
from availabilityengine.domain.models import BookingInterval, ServiceKind, TimeSlot
from availabilityengine.domain.time_grid import (
    format_time,
    generate_time_slots,
    mark_availability,
    merge_slots,
    parse_time,
)


class TestGenerateTimeSlots:
    """Tests for grid generation."""

    def test_fifteen_minute_cells(self):
        cells = generate_time_slots(TimeSlot.parse("08:00", "23:00"))

        assert len(cells) == 60  # 15 hours x 4
        assert str(cells[0].slot) == "08:00-08:15"
        assert str(cells[-1].slot) == "22:45-23:00"
        assert cells[-1].index == 59
        assert all(cell.available for cell in cells)

    def test_trailing_remainder_is_dropped(self):
        cells = generate_time_slots(TimeSlot.parse("10:00", "10:40"), step_minutes=15)

        assert [str(c.slot) for c in cells] == ["10:00-10:15", "10:15-10:30"]

    def test_invalid_step(self):
        with pytest.raises(InvalidInterval):
            generate_time_slots(TimeSlot.parse("10:00", "11:00"), step_minutes=0)


class TestMarkAvailability:
    """Tests for marking booked cells."""

    def _booking(self, start, end, *services):
        return BookingInterval(
            slot=TimeSlot.parse(start, end),
            booking_id="1",
            services=frozenset(ServiceKind.from_name(s) for s in services),
        )

    def test_booked_cells_are_blocked(self):
        grid = generate_time_slots(TimeSlot.parse("12:00", "16:00"))

        marked = mark_availability(grid, [self._booking("13:00", "14:00")])

        blocked = [str(c.slot) for c in marked if not c.available]
        assert blocked == ["13:00-13:15", "13:15-13:30", "13:30-13:45", "13:45-14:00"]

    def test_buffer_extends_blocked_range(self):
        grid = generate_time_slots(TimeSlot.parse("12:00", "16:00"))

        marked = mark_availability(grid, [self._booking("13:00", "14:00")], buffer_minutes=30)

        segments = [(str(c.slot), c.available) for c in merge_slots(marked)]
        assert segments == [("12:00-12:30", True), ("12:30-14:30", False), ("14:30-16:00", True)]

    def test_setup_and_breakdown(self):
        grid = generate_time_slots(TimeSlot.parse("10:00", "20:00"))
        bookings = [self._booking("14:00", "18:00", "DJ")]

        marked = mark_availability(grid, bookings, buffer_minutes=30, include_setup=True, include_breakdown=True)

        segments = [(str(c.slot), c.available) for c in merge_slots(marked)]
        # 60 min setup + 30 min buffer before, 30 min breakdown + 30 min buffer after
        assert segments == [("10:00-12:30", True), ("12:30-19:00", False), ("19:00-20:00", True)]


class TestMergeSlots:
    """Tests for merging grid cells."""

    def test_empty(self):
        assert merge_slots([]) == []

    def test_all_free_merges_into_one(self):
        cells = generate_time_slots(TimeSlot.parse("09:00", "10:00"))

        merged = merge_slots(cells)

        assert len(merged) == 1
        assert str(merged[0].slot) == "09:00-10:00"


class TestTimeFormatting:
    """Tests for 12h/24h formatting and parsing."""

    @pytest.mark.parametrize(
        "value, expected",
        [("00:00", "12:00 AM"), ("09:05", "9:05 AM"), ("12:00", "12:00 PM"), ("14:30", "2:30 PM"), ("23:59", "11:59 PM")],
    )
    def test_format_12h(self, value, expected):
        assert format_time(value, "12h") == expected

    def test_format_24h_normalises(self):
        assert format_time("9:05", "24h") == "09:05"

    def test_format_unknown_style(self):
        with pytest.raises(ValueError):
            format_time("09:00", "36h")

    @pytest.mark.parametrize(
        "text, expected",
        [("2:30 PM", "14:30"), ("12:00 AM", "00:00"), ("12:15 PM", "12:15"), ("9:00am", "09:00"), ("18:45", "18:45")],
    )
    def test_parse_time(self, text, expected):
        assert parse_time(text) == expected

    def test_parse_invalid_time(self):
        with pytest.raises(InvalidInterval):
            parse_time("13:00 PM")
