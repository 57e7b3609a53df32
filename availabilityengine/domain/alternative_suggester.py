"""
Alternative slot suggestions for a conflicting booking request.

Algorithm:
1. Widen every existing slot by the buffer and clip it to the day window
2. Merge overlapping busy ranges
3. Invert the busy ranges to free gaps inside the day window
4. For each gap long enough for the requested duration, place the slot as
   close to the originally requested start as the gap allows
5. Score by temporal proximity and return the best candidates
"""

from typing import List, Sequence, Tuple, Union

from .exceptions import DetectionError
from .models import AlternativeSlot, BookingInterval, Conflict, TimeSlot, slots_of

# (start, end) minute pairs; may be empty where TimeSlot may not.
Range = Tuple[int, int]


class AlternativeSuggester:
    """Proposes non-conflicting slots ranked by closeness to the requested time."""

    def suggest(
        self,
        conflict: Conflict,
        existing: Sequence[Union[TimeSlot, BookingInterval]],
        day_bounds: TimeSlot,
        max_results: int,
        buffer_minutes: int = 0,
    ) -> List[AlternativeSlot]:
        """
        Suggest alternatives to ``conflict.requested``.

        Args:
            conflict: The conflict the customer ran into
            existing: Booked slots for the same date
            day_bounds: Window in which events may take place
            max_results: Maximum number of suggestions
            buffer_minutes: Idle time kept free around each existing slot

        Returns:
            Suggestions sorted by score (descending), then start time.
            An empty list means there is no availability that day.
        """
        if max_results < 0:
            raise DetectionError(f"max_results must not be negative, got {max_results}")
        if buffer_minutes < 0:
            raise DetectionError(f"buffer_minutes must not be negative, got {buffer_minutes}")
        if max_results == 0:
            return []

        requested = conflict.requested
        duration = requested.duration_minutes()
        total_minutes = day_bounds.duration_minutes()

        free_gaps = self.free_gaps(slots_of(existing), day_bounds, buffer_minutes)

        candidates: List[AlternativeSlot] = []
        for gap_start, gap_end in free_gaps:
            if gap_end - gap_start < duration:
                continue

            # Closest placement to the requested start inside this gap
            start = min(max(requested.start, gap_start), gap_end - duration)
            slot = TimeSlot(start=start, end=start + duration)

            distance = abs(slot.start - requested.start)
            score = max(0.0, min(1.0, 1 - distance / total_minutes))
            candidates.append(AlternativeSlot(slot=slot, score=round(score, 4)))

        candidates.sort(key=lambda alt: (-alt.score, alt.slot.start))
        return candidates[:max_results]

    def free_gaps(
        self,
        busy: Sequence[TimeSlot],
        day_bounds: TimeSlot,
        buffer_minutes: int = 0,
    ) -> List[Range]:
        """
        Complement of ``busy`` (widened by the buffer) within ``day_bounds``.

        Example:
        Day: 09:00 - 23:00, buffer 0
        Busy: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-23:00]
        """
        padded: List[Range] = []
        for slot in busy:
            start = max(slot.start - buffer_minutes, day_bounds.start)
            end = min(slot.end + buffer_minutes, day_bounds.end)
            if start < end:
                padded.append((start, end))

        gaps: List[Range] = []
        current_start = day_bounds.start

        for busy_start, busy_end in self._merge_ranges(padded):
            if current_start < busy_start:
                gaps.append((current_start, busy_start))
            current_start = max(current_start, busy_end)

        if current_start < day_bounds.end:
            gaps.append((current_start, day_bounds.end))

        return gaps

    @staticmethod
    def _merge_ranges(ranges: List[Range]) -> List[Range]:
        """
        Merge overlapping or adjacent ranges.

        Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
        """
        if not ranges:
            return []

        sorted_ranges = sorted(ranges)
        merged: List[Range] = [sorted_ranges[0]]

        for start, end in sorted_ranges[1:]:
            last_start, last_end = merged[-1]
            if start <= last_end:
                merged[-1] = (last_start, max(last_end, end))
            else:
                merged.append((start, end))

        return merged
