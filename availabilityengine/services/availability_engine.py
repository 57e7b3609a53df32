"""
Application service answering "can this slot be booked?" for the booking API.

The engine reads booking snapshots through a store protocol and delegates
classification, suggestions and auto-resolution to the domain layer. Store
reads are cached per date for a short TTL so a calendar that polls
aggressively does not hammer the database.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from pendulum import Date, DateTime

from ..config import AppConfig
from ..domain.alternative_suggester import AlternativeSuggester
from ..domain.auto_resolver import AutoResolver
from ..domain.conflict_detector import ConflictDetector, split_by_kind
from ..domain.exceptions import AvailabilityError, StoreUnavailable
from ..domain.models import (
    AlternativeSlot,
    AvailabilityResult,
    BookingInterval,
    Conflict,
    ResolutionResult,
    ServiceKind,
    TimeSlot,
    UserPreferences,
    coerce_date,
)
from ..domain.service_rules import SERVICE_DURATIONS, calculate_setup_time
from ..domain.time_grid import GridSlot, generate_time_slots, mark_availability

logger = logging.getLogger(__name__)

NOON = 12 * 60


class BookingStoreProtocol(Protocol):
    """Read side of the booking store needed by the engine."""

    async def list_intervals_for_date(self, date: Date) -> Sequence[BookingInterval]:
        """Return the bookings held on ``date``."""


class ClockProtocol(Protocol):
    def now(self) -> DateTime:
        """Current timestamp."""


class RequestState(str, Enum):
    """Lifecycle of a single availability request."""
    IDLE = "idle"
    CHECKING = "checking"
    AVAILABLE = "available"
    CONFLICTS_FOUND = "conflicts-found"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class _CacheEntry:
    intervals: Tuple[BookingInterval, ...]
    fetched_at: DateTime


class AvailabilityEngine:
    """
    Orchestrates store reads, conflict detection and resolution.

    Dependencies are injected so tests can supply an in-memory store and a
    controllable clock.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        clock: ClockProtocol,
        *,
        day_bounds: TimeSlot,
        buffer_minutes: int = 30,
        enforce_setup_time: bool = True,
        cache_ttl_seconds: float = 300,
        store_timeout_seconds: float = 5,
        max_alternatives: int = 3,
    ) -> None:
        self._store = store
        self._clock = clock
        self.day_bounds = day_bounds
        self.buffer_minutes = buffer_minutes
        self.enforce_setup_time = enforce_setup_time
        self.cache_ttl_seconds = cache_ttl_seconds
        self.store_timeout_seconds = store_timeout_seconds
        self.max_alternatives = max_alternatives

        self._detector = ConflictDetector()
        self._suggester = AlternativeSuggester()
        self._resolver = AutoResolver()

        self._cache: Dict[Date, _CacheEntry] = {}
        self._generations: Dict[Date, int] = {}
        self._cache_lock = threading.RLock()

        on_mutation: Optional[Callable] = getattr(store, "on_mutation", None)
        if callable(on_mutation):
            on_mutation(self.invalidate)

    @classmethod
    def from_config(
        cls,
        store: BookingStoreProtocol,
        clock: ClockProtocol,
        config: AppConfig,
    ) -> "AvailabilityEngine":
        return cls(
            store,
            clock,
            day_bounds=config.day_bounds(),
            buffer_minutes=config.buffer_minutes,
            enforce_setup_time=config.enforce_setup_time,
            cache_ttl_seconds=config.cache_ttl_seconds,
            store_timeout_seconds=config.store_timeout_seconds,
            max_alternatives=config.max_alternatives,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_availability(
        self,
        date: Union[str, Date],
        slot: Union[TimeSlot, Tuple[str, str]],
        services: Iterable[Union[str, ServiceKind]] = (),
    ) -> AvailabilityResult:
        """
        Check whether ``slot`` can be booked on ``date``.

        Input is validated before the store is touched, so malformed requests
        raise ``InvalidInterval`` without any I/O.

        Raises:
            InvalidInterval: Malformed date, slot or service name
            StoreUnavailable: Bookings could not be read
        """
        day = coerce_date(date)
        requested = TimeSlot.coerce(slot)
        requested_services = [ServiceKind.from_name(s) for s in services]
        self._warn_on_length(requested, requested_services)

        self._log_state(day, requested, RequestState.CHECKING)
        intervals = await self._intervals_for(day)
        conflicts = self._detect(requested, intervals)

        overlaps, spacing = split_by_kind(conflicts)
        result = AvailabilityResult(
            date=day,
            requested=requested,
            available=not conflicts,
            conflicts=overlaps,
            buffer_violations=spacing,
            checked_at=self._clock.now(),
        )

        state = RequestState.AVAILABLE if result.available else RequestState.CONFLICTS_FOUND
        self._log_state(day, requested, state)
        if not result.available:
            logger.info(
                "Slot %s on %s for %s: %d overlap(s), %d spacing violation(s)",
                requested,
                day.to_date_string(),
                ", ".join(s.value for s in requested_services) or "unspecified services",
                len(overlaps),
                len(spacing),
            )
        return result

    async def resolve_conflicts(
        self,
        date: Union[str, Date],
        conflicts: Sequence[Conflict],
        prefs: Optional[UserPreferences] = None,
    ) -> ResolutionResult:
        """
        Resolve conflicts found by ``check_availability``.

        Each conflict is offered to the auto-resolver in order. A shifted slot
        is accepted only if it is inside the booking window and clashes with
        nothing else that day. Otherwise ranked alternatives are returned so
        the customer can choose.
        """
        prefs = prefs or UserPreferences()

        if not conflicts:
            return ResolutionResult(success=True)

        day = coerce_date(date)
        requested = conflicts[0].requested
        intervals = await self._intervals_for(day)

        for conflict in conflicts:
            attempt = self._resolver.auto_resolve(conflict, prefs)
            if not attempt.success or attempt.new_slot is None:
                continue
            if not self._within_day(attempt.new_slot):
                logger.debug("Rejected %s: outside booking window %s", attempt.new_slot, self.day_bounds)
                continue
            if self._detect(attempt.new_slot, intervals):
                logger.debug("Rejected %s: clashes with another booking", attempt.new_slot)
                continue

            self._log_state(day, requested, RequestState.RESOLVED)
            return attempt

        alternatives = self._rank(
            self._suggester.suggest(
                conflicts[0],
                self._blocked_slots(intervals),
                self.day_bounds,
                self.max_alternatives,
                buffer_minutes=self.buffer_minutes,
            ),
            prefs,
        )
        self._log_state(day, requested, RequestState.UNRESOLVED)
        return ResolutionResult(success=False, alternatives=alternatives)

    async def suggest(
        self,
        date: Union[str, Date],
        conflict: Conflict,
        max_results: Optional[int] = None,
    ) -> List[AlternativeSlot]:
        """Alternative slots for the calendar UI's suggestion chips."""
        intervals = await self._intervals_for(coerce_date(date))
        return self._suggester.suggest(
            conflict,
            self._blocked_slots(intervals),
            self.day_bounds,
            self.max_alternatives if max_results is None else max_results,
            buffer_minutes=self.buffer_minutes,
        )

    async def day_grid(self, date: Union[str, Date], step_minutes: int = 15) -> List[GridSlot]:
        """Per-cell availability for the booking window of ``date``."""
        intervals = await self._intervals_for(coerce_date(date))
        grid = generate_time_slots(self.day_bounds, step_minutes)
        return mark_availability(
            grid,
            intervals,
            buffer_minutes=self.buffer_minutes,
            include_setup=self.enforce_setup_time,
            include_breakdown=self.enforce_setup_time,
        )

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def invalidate(self, date: Union[str, Date]) -> None:
        """Drop the cached snapshot for ``date``; called on every booking mutation."""
        day = coerce_date(date)
        with self._cache_lock:
            self._cache.pop(day, None)
            self._generations[day] = self._generations.get(day, 0) + 1
        logger.debug("Invalidated availability cache for %s", day.to_date_string())

    def clear_cache(self) -> None:
        with self._cache_lock:
            for day in set(self._cache) | set(self._generations):
                self._generations[day] = self._generations.get(day, 0) + 1
            self._cache.clear()

    async def _intervals_for(self, day: Date) -> Tuple[BookingInterval, ...]:
        now = self._clock.now()
        with self._cache_lock:
            entry = self._cache.get(day)
            if entry is not None and (now - entry.fetched_at).total_seconds() < self.cache_ttl_seconds:
                return entry.intervals
            generation = self._generations.get(day, 0)

        intervals = tuple(await self._read_store(day))

        with self._cache_lock:
            # A mutation during the read makes this snapshot stale; skip caching it.
            if self._generations.get(day, 0) == generation:
                self._cache[day] = _CacheEntry(intervals=intervals, fetched_at=now)
        return intervals

    async def _read_store(self, day: Date) -> Sequence[BookingInterval]:
        try:
            return await asyncio.wait_for(
                self._store.list_intervals_for_date(day),
                timeout=self.store_timeout_seconds,
            )
        except AvailabilityError:
            raise
        except asyncio.TimeoutError as exc:
            raise StoreUnavailable(
                f"Booking store did not answer within {self.store_timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise StoreUnavailable(f"Booking store failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _detect(self, requested: TimeSlot, intervals: Sequence[BookingInterval]) -> List[Conflict]:
        """Run detection booking by booking so each uses its own setup time."""
        conflicts: List[Conflict] = []
        for interval in intervals:
            setup = self._setup_minutes(interval)
            conflicts.extend(self._detector.detect(requested, [interval], self.buffer_minutes, setup))
        return conflicts

    def _setup_minutes(self, interval: BookingInterval) -> int:
        if self.enforce_setup_time and interval.services:
            return calculate_setup_time(interval.services)
        return 0

    def _blocked_slots(self, intervals: Sequence[BookingInterval]) -> List[TimeSlot]:
        """
        Booked slots widened at the front so that, once the suggester adds
        the buffer, each leaves ``max(buffer, setup)`` free before it starts.
        """
        blocked: List[TimeSlot] = []
        for interval in intervals:
            extra = max(0, self._setup_minutes(interval) - self.buffer_minutes)
            blocked.append(TimeSlot(start=max(0, interval.slot.start - extra), end=interval.slot.end))
        return blocked

    @staticmethod
    def _warn_on_length(requested: TimeSlot, services: Sequence[ServiceKind]) -> None:
        """Log requests whose length is outside what a booked service offers."""
        minutes = requested.duration_minutes()
        for service in dict.fromkeys(services):
            limits = SERVICE_DURATIONS[service]
            if not limits.allows(minutes):
                logger.warning(
                    "%s booked for %d minutes, outside the %d-%d hour range",
                    service.value,
                    minutes,
                    limits.min_hours,
                    limits.max_hours,
                )

    def _within_day(self, slot: TimeSlot) -> bool:
        return self.day_bounds.start <= slot.start and slot.end <= self.day_bounds.end

    @staticmethod
    def _rank(alternatives: List[AlternativeSlot], prefs: UserPreferences) -> List[AlternativeSlot]:
        if not prefs.prefer_morning:
            return alternatives
        return sorted(alternatives, key=lambda alt: alt.slot.start >= NOON)

    @staticmethod
    def _log_state(day: Date, slot: TimeSlot, state: RequestState) -> None:
        logger.debug("Availability request %s %s -> %s", day.to_date_string(), slot, state.value)
