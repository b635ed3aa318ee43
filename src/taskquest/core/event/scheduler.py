"""
EventScheduler: tiered execution of event listeners.

Execution Model
---------------
- CRITICAL / HIGH: sequential, awaited, timeout protected.
- NORMAL: concurrent via ``asyncio.gather``, awaited.
- LOW: fire-and-forget background tasks, tracked in a set so they are not
  garbage collected early. ``drain()`` awaits whatever is still running.

Every listener is wrapped independently; one failure never affects the rest.
Sync callbacks run in the default executor so they cannot block the loop.
"""

from __future__ import annotations

import asyncio
from logging import Logger
from typing import Any, Optional

from taskquest.core.event.errors import handle_listener_error
from taskquest.core.event.metrics import EventMetricsRecorder
from taskquest.core.event.types import EventListener, EventPayload, ListenerPriority


class EventScheduler:
    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: list[EventListener],
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
        critical_timeout: Optional[float],
        high_timeout: Optional[float],
    ) -> list[Any]:
        """
        Run ``listeners`` (already sorted) for one event.

        Returns results from CRITICAL/HIGH/NORMAL listeners; LOW listeners are
        not awaited and contribute nothing.
        """
        critical = [lst for lst in listeners if lst.priority == ListenerPriority.CRITICAL]
        high = [lst for lst in listeners if lst.priority == ListenerPriority.HIGH]
        normal = [lst for lst in listeners if lst.priority == ListenerPriority.NORMAL]
        low = [lst for lst in listeners if lst.priority == ListenerPriority.LOW]

        results: list[Any] = []

        for listener in critical:
            results.append(
                await self._run_with_timeout(
                    listener=listener,
                    event_name=event_name,
                    payload=payload,
                    metrics=metrics,
                    logger=logger,
                    tier="CRITICAL",
                    timeout=critical_timeout,
                )
            )

        for listener in high:
            results.append(
                await self._run_with_timeout(
                    listener=listener,
                    event_name=event_name,
                    payload=payload,
                    metrics=metrics,
                    logger=logger,
                    tier="HIGH",
                    timeout=high_timeout,
                )
            )

        if normal:
            normal_results = await asyncio.gather(
                *[
                    self._run_listener(
                        listener=lst,
                        event_name=event_name,
                        payload=payload,
                        metrics=metrics,
                        logger=logger,
                        tier="NORMAL",
                    )
                    for lst in normal
                ]
            )
            results.extend(normal_results)

        if low:
            loop = asyncio.get_running_loop()
            for listener in low:
                task = loop.create_task(
                    self._run_listener(
                        listener=listener,
                        event_name=event_name,
                        payload=payload,
                        metrics=metrics,
                        logger=logger,
                        tier="LOW",
                    ),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
        tier: str,
        timeout: Optional[float],
    ) -> Any:
        run = self._run_listener(
            listener=listener,
            event_name=event_name,
            payload=payload,
            metrics=metrics,
            logger=logger,
            tier=tier,
        )
        if timeout is None or timeout <= 0:
            return await run

        try:
            return await asyncio.wait_for(run, timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "tier": tier,
                    "timeout_seconds": timeout,
                },
            )
            handle_listener_error(
                logger=logger,
                event_name=event_name,
                listener=listener,
                exc=exc,
                metrics=metrics,
            )
            return None

    async def _run_listener(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
        tier: str,
    ) -> Any:
        if metrics is not None:
            metrics.record_run(tier)
        try:
            logger.debug(
                "EventBus: executing listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "tier": tier,
                },
            )

            if asyncio.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)

            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, listener.callback, payload)

        except Exception as exc:
            handle_listener_error(
                logger=logger,
                event_name=event_name,
                listener=listener,
                exc=exc,
                metrics=metrics,
            )
            return None

    async def drain(self) -> None:
        """Wait for every outstanding LOW-tier task, including ones they spawn."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)
