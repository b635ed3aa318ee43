"""
Time source and id generation.

Task and notification ids are epoch milliseconds, the same values clients
use for ordering and dedup. ``IdGenerator`` keeps them strictly increasing
even when two ids are requested within the same millisecond.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable


class Clock:
    """Wall clock in UTC. Tests substitute a frozen clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class IdGenerator:
    """
    Monotonic millisecond ids.

    Example:
        >>> gen = IdGenerator(Clock())
        >>> a, b = gen.next_id(), gen.next_id()
        >>> b > a
        True
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._last = 0

    def observe(self, existing_ids: Iterable[int]) -> None:
        """Never hand out an id at or below one already persisted."""
        for value in existing_ids:
            if value > self._last:
                self._last = value

    def next_id(self) -> int:
        candidate = max(to_epoch_ms(self._clock.now()), self._last + 1)
        self._last = candidate
        return candidate
