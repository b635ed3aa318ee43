"""
Unit tests for the EventBus.

Priority ordering, wildcard routing, error isolation, background (LOW)
listeners and metrics.
"""

import asyncio

import pytest

from taskquest.core.event.bus import EventBus
from taskquest.core.event.router import EventRouter
from taskquest.core.event.types import ListenerPriority


@pytest.fixture
def bus():
    return EventBus(enable_metrics=True, critical_timeout_seconds=1, high_timeout_seconds=1)


@pytest.mark.unit
class TestEventRouter:
    @pytest.mark.parametrize(
        "event_name, pattern, expected",
        [
            ("task.approved", "task.approved", True),
            ("task.approved", "*", True),
            ("task.approved", "task.*", True),
            ("tasks.cleared", "task.*", False),
            ("archive.cleared", "*.cleared", True),
            ("player.stats.updated", "player.*.updated", True),
            ("player.leveled_up", "player.*.updated", False),
        ],
    )
    def test_matches(self, event_name, pattern, expected):
        assert EventRouter().matches(event_name, pattern) is expected


@pytest.mark.unit
class TestPublish:
    async def test_tiers_run_in_priority_order(self, bus):
        order = []

        async def critical(payload):
            order.append("critical")

        async def high(payload):
            order.append("high")

        async def normal(payload):
            order.append("normal")

        bus.subscribe("task.approved", normal, priority=ListenerPriority.NORMAL)
        bus.subscribe("task.approved", high, priority=ListenerPriority.HIGH)
        bus.subscribe("task.approved", critical, priority=ListenerPriority.CRITICAL)

        await bus.publish("task.approved", {"task_id": 1})

        assert order == ["critical", "high", "normal"]

    async def test_wildcard_listener_receives_payload(self, bus):
        received = []

        async def on_task(payload):
            received.append(payload["task_id"])

        bus.subscribe("task.*", on_task)
        await bus.publish("task.created", {"task_id": 1})
        await bus.publish("tasks.cleared", {"removed": 3})
        await bus.publish("task.deleted", {"task_id": 2})

        assert received == [1, 2]

    async def test_failing_listener_does_not_reach_publisher(self, bus):
        calls = []

        async def broken(payload):
            raise RuntimeError("listener blew up")

        async def healthy(payload):
            calls.append(payload)

        bus.subscribe("player.updated", broken)
        bus.subscribe("player.updated", healthy)

        await bus.publish("player.updated", {"player_id": "1"})

        assert calls == [{"player_id": "1"}]
        summary = bus.get_metrics_summary()
        assert summary["total_errors"] == 1
        assert summary["errors_by_event"] == {"player.updated": 1}
        assert summary["listener_runs_by_tier"] == {"NORMAL": 2}
        assert summary["failure_rate"] == 50.0
        assert summary["total_listeners"] == 2

    async def test_high_listener_timeout_is_counted(self, bus):
        async def stuck(payload):
            await asyncio.sleep(5)

        bus.subscribe("task.approved", stuck, priority=ListenerPriority.HIGH)

        assert await bus.publish("task.approved", {"task_id": 1}) == [None]
        assert bus.get_metrics_summary()["timeouts"] == 1

    async def test_low_priority_runs_in_background(self, bus):
        started = asyncio.Event()
        release = asyncio.Event()
        done = []

        async def slow(payload):
            started.set()
            await release.wait()
            done.append(payload)

        bus.subscribe("task.approved", slow, priority=ListenerPriority.LOW)

        await bus.publish("task.approved", {"task_id": 9})
        assert done == []

        await started.wait()
        release.set()
        await bus.drain()

        assert done == [{"task_id": 9}]

    async def test_once_listener_fires_a_single_time(self, bus):
        calls = []

        async def first(payload):
            calls.append(payload)

        bus.subscribe("config.updated", first, once=True)
        await bus.publish("config.updated", {"key": "a"})
        await bus.publish("config.updated", {"key": "b"})

        assert calls == [{"key": "a"}]


@pytest.mark.unit
class TestSubscription:
    def test_callback_must_take_one_argument(self, bus):
        async def two(payload, extra):
            pass

        with pytest.raises(ValueError):
            bus.subscribe("task.created", two)

    def test_duplicate_subscription_is_ignored(self, bus):
        async def listener(payload):
            pass

        bus.subscribe("task.created", listener)
        bus.subscribe("task.created", listener)

        assert bus.get_listener_count("task.created") == 1

    async def test_unsubscribe(self, bus):
        calls = []

        async def listener(payload):
            calls.append(payload)

        identifier = bus.subscribe("task.created", listener)
        assert bus.unsubscribe("task.created", identifier)

        await bus.publish("task.created", {})
        assert calls == []
        assert bus.get_listener_count() == 0
