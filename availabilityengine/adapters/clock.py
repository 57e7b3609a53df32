"""
Wall clock used for cache expiry and change timestamps.
"""

import pendulum
from pendulum import DateTime


class SystemClock:
    """Clock backed by pendulum, pinned to the business timezone."""

    def __init__(self, timezone: str = "America/Chicago"):
        self.timezone = timezone

    def now(self) -> DateTime:
        return pendulum.now(self.timezone)
