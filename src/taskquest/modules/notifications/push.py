"""
Outbound push notifications.

PushDispatcher
    Posts ``{title, message, priority}`` to each registered endpoint with the
    endpoint's token in ``X-Gotify-Key``. Best-effort: failures are logged at
    WARNING and never raised to the caller.

PushNotifier
    EventBus listener (LOW priority, so it runs in the background after the
    publishing request has returned) that turns level-ups, approvals and
    reward claims into pushes.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

import aiohttp

from taskquest.core.config.config import Config
from taskquest.core.event.types import ListenerPriority
from taskquest.core.exceptions import PushDeliveryError
from taskquest.core.logging.logger import get_logger
from taskquest.modules.shared import game_settings

if TYPE_CHECKING:
    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus
    from taskquest.domain.models.player import PushTarget
    from taskquest.modules.players.store import PlayerStatsStore, PushTargetStore

logger = get_logger(__name__)


class PushDispatcher:
    """
    Delivers one title/message pair to zero or more endpoints.

    The HTTP session is created lazily and closed by ``close()``.
    """

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        priority: Optional[int] = None,
    ) -> None:
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or Config.PUSH_TIMEOUT_SECONDS)
        self.priority = priority if priority is not None else Config.PUSH_PRIORITY
        self._session: Optional[aiohttp.ClientSession] = None
        self.sent = 0
        self.failed = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def send(self, title: str, message: str, targets: Sequence[PushTarget]) -> int:
        """
        Post to every target concurrently.

        Returns the number of endpoints that accepted the push.
        """
        if not targets:
            return 0

        payload = {"title": title, "message": message, "priority": self.priority}
        results = await asyncio.gather(
            *(self._deliver(target, payload) for target in targets),
        )
        return sum(1 for ok in results if ok)

    async def _deliver(self, target: PushTarget, payload: Dict[str, Any]) -> bool:
        try:
            await self._post(target, payload)
        except PushDeliveryError as exc:
            self.failed += 1
            logger.warning(
                "Push delivery failed",
                extra={"push_url": exc.url, "status": exc.status, "reason": exc.details.get("reason")},
            )
            return False
        self.sent += 1
        return True

    async def _post(self, target: PushTarget, payload: Dict[str, Any]) -> None:
        session = await self._get_session()
        try:
            async with session.post(
                target.url,
                json=payload,
                headers={"X-Gotify-Key": target.token},
            ) as response:
                if response.status >= 300:
                    raise PushDeliveryError(target.url, "endpoint rejected push", response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise PushDeliveryError(target.url, f"{type(exc).__name__}: {exc}") from exc

    def get_metrics(self) -> Dict[str, int]:
        return {"sent": self.sent, "failed": self.failed}


class PushNotifier:
    """Maps domain events to pushes."""

    EVENTS = ("player.leveled_up", "task.approved", "reward.claimed")

    def __init__(
        self,
        dispatcher: PushDispatcher,
        push_targets: PushTargetStore,
        players: PlayerStatsStore,
        config_manager: Type[ConfigManager],
    ) -> None:
        self.dispatcher = dispatcher
        self.push_targets = push_targets
        self.players = players
        self._config = config_manager

    def register(self, event_bus: EventBus) -> None:
        event_bus.subscribe("player.leveled_up", self.on_level_up, priority=ListenerPriority.LOW)
        event_bus.subscribe("task.approved", self.on_task_approved, priority=ListenerPriority.LOW)
        event_bus.subscribe("reward.claimed", self.on_reward_claimed, priority=ListenerPriority.LOW)

    def _enabled(self) -> bool:
        return game_settings.push_enabled(self._config)

    def _everyone(self) -> Iterable[Tuple[str, Sequence[PushTarget]]]:
        return self.push_targets.all_targets().items()

    async def _fan_out(self, messages: List[Tuple[str, str, Sequence[PushTarget]]]) -> None:
        await asyncio.gather(
            *(self.dispatcher.send(title, body, targets) for title, body, targets in messages if targets)
        )

    async def on_level_up(self, payload: Dict[str, Any]) -> None:
        if not self._enabled():
            return
        leveled = str(payload["player_id"])
        name = payload.get("player_name") or leveled
        level = payload["level"]

        messages = []
        for player_id, targets in self._everyone():
            if player_id == leveled:
                messages.append(("Level up!", f"You reached level {level}!", targets))
            else:
                messages.append(("Level up!", f"{name} reached level {level}!", targets))
        await self._fan_out(messages)

    async def on_task_approved(self, payload: Dict[str, Any]) -> None:
        if not self._enabled():
            return
        owner = str(payload["owner"])
        targets = self.push_targets.targets_for(owner)
        if not targets:
            return
        stars = "★" * int(payload.get("rating") or 0)
        message = (
            f"{payload.get('approver_name') or payload.get('approver')} approved "
            f"\"{payload.get('title', '')}\": {int(payload.get('exp', 0)):+d} EXP {stars}"
        )
        await self.dispatcher.send("Task approved", message, targets)

    async def on_reward_claimed(self, payload: Dict[str, Any]) -> None:
        if not self._enabled():
            return
        claimer = str(payload["player_id"])
        name = payload.get("player_name") or claimer
        reward = payload.get("reward_name") or payload.get("reward_id")

        messages = []
        for player_id, targets in self._everyone():
            if player_id == claimer:
                messages.append(("Reward claimed", f"You claimed {reward}!", targets))
            else:
                messages.append(("Reward claimed", f"{name} claimed {reward}!", targets))
        await self._fan_out(messages)
