"""
Counters for the EventBus, exposed through ``GET /health``.

The recorder is mutated from the event loop only. ``snapshot()`` returns a
frozen copy that is safe to serialize.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventMetrics:
    published: dict[str, int] = field(default_factory=dict)
    runs_by_tier: dict[str, int] = field(default_factory=dict)
    failures: dict[str, int] = field(default_factory=dict)
    timeouts: int = 0

    def get_summary(self) -> dict[str, Any]:
        """
        >>> EventMetrics({"task.approved": 4}, {"HIGH": 8}, {"task.approved": 1}).get_summary()["failure_rate"]
        12.5
        """
        runs = sum(self.runs_by_tier.values())
        total_errors = sum(self.failures.values())
        return {
            "total_events_published": sum(self.published.values()),
            "events_by_type": dict(self.published),
            "listener_runs_by_tier": dict(self.runs_by_tier),
            "total_errors": total_errors,
            "errors_by_event": dict(self.failures),
            "timeouts": self.timeouts,
            "failure_rate": round(total_errors * 100.0 / max(1, runs), 2),
        }


class EventMetricsRecorder:
    def __init__(self) -> None:
        self._published: Counter[str] = Counter()
        self._runs_by_tier: Counter[str] = Counter()
        self._failures: Counter[str] = Counter()
        self._timeouts = 0

    def record_publish(self, event_name: str) -> None:
        self._published[event_name] += 1

    def record_run(self, tier: str) -> None:
        self._runs_by_tier[tier] += 1

    def record_error(self, event_name: str, *, timed_out: bool = False) -> None:
        self._failures[event_name] += 1
        if timed_out:
            self._timeouts += 1

    def snapshot(self) -> EventMetrics:
        return EventMetrics(
            published=dict(self._published),
            runs_by_tier=dict(self._runs_by_tier),
            failures=dict(self._failures),
            timeouts=self._timeouts,
        )
