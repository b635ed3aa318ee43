"""
Realtime channel.

Every connected WebSocket client receives two kinds of frames:

    {"event": "dataChanged"}                        re-fetch your snapshots
    {"event": "notification", "data": {...}}        one Notification payload

The hub subscribes to the EventBus at NORMAL priority, so broadcasts happen
after the publishing service has committed and before the request returns.

A client connecting with ``?playerId=`` first gets every notification that
player has not acknowledged yet, oldest first. The replay runs as its own task
and is cancelled when the socket closes. Clients may acknowledge over the
socket with ``{"type": "seen", "playerId": "..."}``.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from aiohttp import WSMsgType, web

from taskquest.core.event.types import ListenerPriority
from taskquest.core.logging.logger import LogContext, get_logger
from taskquest.modules.notifications.bus import NOTIFICATION_PUBLISHED
from taskquest.modules.shared.exceptions import TaskQuestError

if TYPE_CHECKING:
    from taskquest.core.event.bus import EventBus
    from taskquest.modules.notifications.bus import NotificationBus

logger = get_logger(__name__)

DATA_CHANGED = "dataChanged"
NOTIFICATION = "notification"

# Families of events that change a snapshot some client renders.
STATE_EVENT_PATTERNS = (
    "task.*",
    "tasks.*",
    "archive.*",
    "player.*",
    "reward.*",
    "notifications.*",
    "config.*",
)


class RealtimeHub:
    """Tracks open sockets and fans bus events out to them."""

    def __init__(self, notifications: NotificationBus, *, heartbeat: float = 30.0) -> None:
        self.notifications = notifications
        self.heartbeat = heartbeat
        self._clients: Set[web.WebSocketResponse] = set()
        self._subscriptions: list[tuple[str, str]] = []
        self.frames_sent = 0

    # ------------------------------------------------------------------ #
    # Bus wiring
    # ------------------------------------------------------------------ #

    def register(self, event_bus: EventBus) -> None:
        for pattern in STATE_EVENT_PATTERNS:
            identifier = event_bus.subscribe(
                pattern,
                self.on_state_changed,
                priority=ListenerPriority.NORMAL,
                identifier=f"realtime.data_changed@{pattern}",
            )
            self._subscriptions.append((pattern, identifier))

        identifier = event_bus.subscribe(
            NOTIFICATION_PUBLISHED,
            self.on_notification,
            priority=ListenerPriority.NORMAL,
            identifier="realtime.notification",
        )
        self._subscriptions.append((NOTIFICATION_PUBLISHED, identifier))

    def unregister(self, event_bus: EventBus) -> None:
        for pattern, identifier in self._subscriptions:
            event_bus.unsubscribe(pattern, identifier)
        self._subscriptions.clear()

    async def on_state_changed(self, payload: Dict[str, Any]) -> None:
        await self.broadcast({"event": DATA_CHANGED})

    async def on_notification(self, payload: Dict[str, Any]) -> None:
        await self.broadcast({"event": NOTIFICATION, "data": payload})

    # ------------------------------------------------------------------ #
    # Fan-out
    # ------------------------------------------------------------------ #

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast(self, frame: Dict[str, Any]) -> int:
        """Send ``frame`` to every open socket. Returns how many accepted it."""
        if not self._clients:
            return 0
        clients = list(self._clients)
        results = await asyncio.gather(*(self._send(ws, frame) for ws in clients))
        return sum(1 for ok in results if ok)

    async def _send(self, ws: web.WebSocketResponse, frame: Dict[str, Any]) -> bool:
        if ws.closed:
            self._clients.discard(ws)
            return False
        try:
            await ws.send_json(frame)
        except (ConnectionResetError, RuntimeError) as exc:
            self._clients.discard(ws)
            logger.debug("Dropping realtime client", extra={"reason": str(exc)})
            return False
        self.frames_sent += 1
        return True

    async def replay(self, ws: web.WebSocketResponse, player_id: str) -> int:
        """Send ``player_id``'s unacknowledged notifications, oldest first."""
        sent = 0
        for notification in self.notifications.list_unacknowledged(player_id):
            if not await self._send(ws, {"event": NOTIFICATION, "data": notification.to_dict()}):
                break
            sent += 1
        logger.info("Notification replay finished", extra={"player_id": player_id, "replayed": sent})
        return sent

    # ------------------------------------------------------------------ #
    # GET /ws
    # ------------------------------------------------------------------ #

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self.heartbeat)
        await ws.prepare(request)

        player_id = (request.query.get("playerId") or "").strip() or None
        self._clients.add(ws)
        replay_task: Optional[asyncio.Task[int]] = None
        if player_id:
            replay_task = asyncio.create_task(self.replay(ws, player_id))

        logger.info("Realtime client connected", extra={"player_id": player_id, "clients": self.client_count})
        try:
            async for message in ws:
                if message.type == WSMsgType.TEXT:
                    await self._on_client_message(ws, message.data)
                elif message.type == WSMsgType.ERROR:
                    logger.warning("Realtime socket error", extra={"error": str(ws.exception())})
        finally:
            self._clients.discard(ws)
            if replay_task is not None and not replay_task.done():
                replay_task.cancel()
            logger.info("Realtime client disconnected", extra={"player_id": player_id, "clients": self.client_count})

        return ws

    async def _on_client_message(self, ws: web.WebSocketResponse, data: str) -> None:
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON realtime frame")
            return
        if not isinstance(message, dict) or message.get("type") != "seen":
            return

        async with LogContext(player_id=message.get("playerId"), component="realtime", operation="seen"):
            try:
                removed = await self.notifications.acknowledge(message.get("playerId"))
            except TaskQuestError as exc:
                await self._send(ws, {"event": "error", "error": exc.to_dict()})
                return
            await self._send(ws, {"event": "seen", "removed": removed})

    async def close_all(self) -> None:
        for ws in list(self._clients):
            await ws.close(code=1001, message=b"server shutdown")
        self._clients.clear()
