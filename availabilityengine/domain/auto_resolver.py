"""
Automatic resolution of minor spacing conflicts.
"""

import logging
from typing import List, Optional, Tuple

from .exceptions import DetectionError, InvalidInterval
from .models import (
    AdjustmentTag,
    Conflict,
    ConflictKind,
    ResolutionResult,
    Severity,
    TimeSlot,
    UserPreferences,
)

logger = logging.getLogger(__name__)

_SPACING_KINDS = (ConflictKind.BUFFER_VIOLATION, ConflictKind.SETUP_CONFLICT)


class AutoResolver:
    """
    Shifts a requested slot just far enough to restore the required gap.

    Only minor buffer violations and setup conflicts are handled. Direct
    overlaps and major conflicts always fail: they need the customer to pick
    one of the suggested alternatives.

    The preferred move widens the existing gap by exactly the deficit. When
    the customer does not allow that direction, the slot may instead jump to
    the other side of the existing booking if that side is permitted.
    """

    def auto_resolve(
        self,
        conflict: Conflict,
        prefs: Optional[UserPreferences] = None,
    ) -> ResolutionResult:
        prefs = prefs or UserPreferences()

        if conflict.severity is Severity.MAJOR or conflict.kind not in _SPACING_KINDS:
            return ResolutionResult(success=False)

        requested = conflict.requested
        existing = conflict.existing

        deficit = conflict.required_gap_minutes - requested.minutes_between(existing)
        if deficit <= 0 or requested.overlaps(existing):
            raise DetectionError(
                f"{conflict.kind.value} between {requested} and {existing} has no gap deficit"
            )

        for delta, tag, allowed in self._candidate_moves(conflict, deficit, prefs):
            if not allowed:
                continue
            new_slot = self._shift(requested, delta)
            if new_slot is None:
                logger.debug("Moving %s by %s minutes leaves the day", requested, delta)
                continue
            logger.debug("Auto-resolved %s to %s (%s)", requested, new_slot, tag.value)
            return ResolutionResult(success=True, new_slot=new_slot, adjustments=[tag])

        return ResolutionResult(success=False)

    @staticmethod
    def _candidate_moves(
        conflict: Conflict,
        deficit: int,
        prefs: UserPreferences,
    ) -> List[Tuple[int, AdjustmentTag, bool]]:
        """Ordered ``(delta, tag, allowed)`` moves, smallest shift first."""
        requested = conflict.requested
        existing = conflict.existing
        gap = conflict.required_gap_minutes

        if requested.precedes(existing):
            jump_after = existing.end + gap - requested.start
            return [
                (-deficit, AdjustmentTag.MOVED_EARLIER, prefs.allow_early_start),
                (jump_after, AdjustmentTag.MOVED_LATER, prefs.allow_late_end),
            ]

        jump_before = existing.start - gap - requested.end
        return [
            (deficit, AdjustmentTag.MOVED_LATER, prefs.allow_late_end),
            (jump_before, AdjustmentTag.MOVED_EARLIER, prefs.allow_early_start),
        ]

    @staticmethod
    def _shift(slot: TimeSlot, delta: int) -> Optional[TimeSlot]:
        try:
            return slot.shifted(delta)
        except InvalidInterval:
            return None
