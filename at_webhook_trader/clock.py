"""
Wall-clock source for the decision engine.

Throttle and last-trade timestamps are always timezone-aware UTC. Tests swap
in a controllable clock through the `Clock` protocol.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now_utc(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Clock backed by the host's system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)
