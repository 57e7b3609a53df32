"""
Polling change notifier for calendar views.

Every subscription runs its own asyncio task that re-reads the bookings of
one date at a fixed interval and reports which intervals appeared or
disappeared. Independent timers keep the implementation simple; with many
subscribers per date a shared fan-out poller would cut store reads.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Union

from pendulum import Date

from ..domain.exceptions import AvailabilityError, StoreUnavailable
from ..domain.models import BookingInterval, ChangeSummary, coerce_date
from .availability_engine import BookingStoreProtocol, ClockProtocol

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeSummary], Union[None, Awaitable[None]]]
Snapshot = FrozenSet[BookingInterval]
SleepFunc = Callable[[float], Awaitable[Any]]


class Subscription:
    """Handle returned by ``AvailabilityNotifier.subscribe``."""

    def __init__(self, notifier: "AvailabilityNotifier", date: Date, callback: ChangeCallback):
        self.date = date
        self.callback = callback
        self._notifier = notifier
        self._task: Optional[asyncio.Task] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """
        Stop polling and release the callback.

        Safe to call repeatedly and from inside the callback itself.
        """
        if not self._active:
            return
        self._active = False
        self._notifier._forget(self)

        task = self._task
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            # From inside the callback the poll loop sees the flag and exits.
            if task is not current:
                task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the poll task has finished."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class AvailabilityNotifier:
    """Pushes booking changes for a date to subscribed listeners."""

    def __init__(
        self,
        store: BookingStoreProtocol,
        clock: ClockProtocol,
        poll_interval_seconds: float = 30,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive, got {poll_interval_seconds}")
        self._store = store
        self._clock = clock
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._subscriptions: List[Subscription] = []
        self._last_snapshots: Dict[Date, Snapshot] = {}

    def subscribe(self, date: Union[str, Date], callback: ChangeCallback) -> Subscription:
        """
        Start watching ``date``; ``callback`` receives a ``ChangeSummary``
        whenever the set of bookings differs from the previous poll.

        Must be called from a running event loop.
        """
        subscription = Subscription(self, coerce_date(date), callback)
        self._subscriptions.append(subscription)
        subscription._task = asyncio.get_running_loop().create_task(self._poll(subscription))
        logger.debug("Subscribed to %s (%d active)", subscription.date.to_date_string(), len(self._subscriptions))
        return subscription

    def subscription_count(self, date: Optional[Union[str, Date]] = None) -> int:
        if date is None:
            return len(self._subscriptions)
        day = coerce_date(date)
        return sum(1 for sub in self._subscriptions if sub.date == day)

    async def check_now(self, date: Union[str, Date]) -> ChangeSummary:
        """
        Compare the bookings of ``date`` with the last snapshot seen.

        With no earlier snapshot every booking counts as added.
        """
        day = coerce_date(date)
        current = await self._snapshot(day)
        previous = self._last_snapshots.get(day, frozenset())
        self._last_snapshots[day] = current
        return self._diff(day, previous, current)

    async def close(self) -> None:
        """Cancel every subscription and wait for the poll tasks to end."""
        subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.unsubscribe()
        for subscription in subscriptions:
            await subscription.wait_closed()

    def _forget(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def _poll(self, subscription: Subscription) -> None:
        day = subscription.date
        previous: Optional[Snapshot] = None

        while subscription.active:
            try:
                current = await self._snapshot(day)
            except AvailabilityError as exc:
                logger.warning("Polling %s failed: %s", day.to_date_string(), exc)
                current = None

            if current is not None:
                self._last_snapshots[day] = current
                if previous is not None:
                    summary = self._diff(day, previous, current)
                    if summary.changed:
                        await self._invoke(subscription, summary)
                previous = current

            if not subscription.active:
                break
            await self._sleep(self.poll_interval_seconds)

        logger.debug("Stopped polling %s", day.to_date_string())

    async def _invoke(self, subscription: Subscription, summary: ChangeSummary) -> None:
        if not subscription.active:
            return
        try:
            result = subscription.callback(summary)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Change callback for %s raised", summary.date.to_date_string())

    async def _snapshot(self, day: Date) -> Snapshot:
        try:
            intervals = await self._store.list_intervals_for_date(day)
        except AvailabilityError:
            raise
        except Exception as exc:
            raise StoreUnavailable(f"Booking store failed: {exc}") from exc
        return frozenset(intervals)

    def _diff(self, day: Date, previous: Snapshot, current: Snapshot) -> ChangeSummary:
        def ordered(items):
            return tuple(sorted(items, key=lambda b: (b.slot.start, b.slot.end, b.booking_id)))

        return ChangeSummary(
            date=day,
            added=ordered(current - previous),
            removed=ordered(previous - current),
            checked_at=self._clock.now(),
        )
