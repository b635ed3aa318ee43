"""
Player Service
==============

Purpose
-------
Owns player progression outside of task approval:

- Roster and stats snapshots (with computed level and rank)
- Administrative stats upsert (``POST /player-stats``)
- Player-initiated reward claims
- Push endpoint registration

Level crossings
---------------
``progress()`` is the single place that turns an EXP change into levelup
notifications and events. ApprovalWorkflow calls it too, so an upsert that
jumps several levels fires exactly what an equivalent approval would.

Events
------
- ``player.updated``      stats changed
- ``player.leveled_up``   once per crossed level
- ``reward.claimed``      once per newly claimed reward
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Type
from urllib.parse import urlparse

from taskquest.core.database.service import DatabaseService
from taskquest.core.logging.logger import LogContext, get_logger
from taskquest.domain.models.base import DomainEvent
from taskquest.domain.models.notification import Notification
from taskquest.domain.models.player import PlayerStats, PushTarget
from taskquest.domain.models.task import bounded_int, normalize_player_id
from taskquest.modules.shared import game_settings
from taskquest.modules.shared.base_service import BaseService
from taskquest.modules.shared.exceptions import (
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from taskquest.modules.shared.formulas import levels_crossed, rank_for_level, rewards_unlocked
from taskquest.modules.shared.store import write_locks

if TYPE_CHECKING:
    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus
    from taskquest.modules.notifications.bus import NotificationBus
    from taskquest.modules.players.store import PlayerStatsStore, PushTargetStore

logger = get_logger(__name__)

PLAYER_UPDATED = "player.updated"
PLAYER_LEVELED_UP = "player.leveled_up"
REWARD_CLAIMED = "reward.claimed"


@dataclass
class Progress:
    """Notifications and events produced by one stats change."""

    notifications: List[Notification] = field(default_factory=list)
    events: List[DomainEvent] = field(default_factory=list)


class PlayerService(BaseService):
    """
    Public Methods
    --------------
    - list_players() / list_stats() / get_stats()
    - upsert_stats()
    - claim_reward() / list_rewards() / available_rewards() / list_ranks()
    - set_push_targets() / get_push_targets()
    - progress()  shared with ApprovalWorkflow
    """

    def __init__(
        self,
        players: PlayerStatsStore,
        push_targets: PushTargetStore,
        notifications: NotificationBus,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.players = players
        self.push_targets = push_targets
        self.notifications = notifications

    # ========================================================================
    # READS
    # ========================================================================

    def rank_of(self, player: PlayerStats) -> Optional[str]:
        return rank_for_level(player.level, game_settings.ranks(self._config))

    def stats_dict(self, player: PlayerStats) -> Dict[str, Any]:
        return player.to_dict(rank=self.rank_of(player))

    def list_players(self) -> List[Dict[str, str]]:
        return [{"id": p.id, "name": p.name} for p in self.players.snapshot()]

    def list_stats(self) -> List[Dict[str, Any]]:
        return [self.stats_dict(p) for p in self.players.snapshot()]

    def get_stats(self, player_id: Any) -> Dict[str, Any]:
        return self.stats_dict(self.players.require(normalize_player_id(player_id)))

    def list_ranks(self) -> List[Dict[str, Any]]:
        return game_settings.ranks(self._config)

    def list_rewards(self) -> List[Dict[str, Any]]:
        return game_settings.reward_catalog(self._config)

    def available_rewards(self, player_id: Any) -> List[Dict[str, Any]]:
        """Rewards unlocked at the player's level, flagged if already claimed."""
        player = self.players.require(normalize_player_id(player_id, "playerId"))
        unlocked = rewards_unlocked(player.level, game_settings.reward_catalog(self._config))
        return [
            {**reward, "claimed": player.has_claimed(str(reward["id"]))}
            for reward in unlocked
        ]

    def get_push_targets(self, player_id: Any) -> List[Dict[str, str]]:
        return [t.to_dict() for t in self.push_targets.targets_for(normalize_player_id(player_id))]

    # ========================================================================
    # PROGRESSION
    # ========================================================================

    def progress(
        self,
        before: Optional[PlayerStats],
        after: PlayerStats,
        *,
        source: str,
    ) -> Progress:
        """
        Notifications and events for moving ``before`` -> ``after``.

        One levelup per crossed level and one reward notification per newly
        claimed reward. ``before`` is None for a brand-new player.
        """
        result = Progress()
        old_exp = before.exp if before is not None else 0
        old_claimed = set(before.claimed_rewards) if before is not None else set()

        previous_level = before.level if before is not None else 1
        for level in levels_crossed(old_exp, after.exp):
            notification = self.notifications.new_levelup(after.id, after.name, level)
            result.notifications.append(notification)
            result.events.append(
                DomainEvent(
                    PLAYER_LEVELED_UP,
                    {
                        "player_id": after.id,
                        "player_name": after.name,
                        "level": level,
                        "previous_level": previous_level,
                        "exp": after.exp,
                        "source": source,
                    },
                )
            )
            previous_level = level

        for reward_id in after.claimed_rewards:
            if reward_id in old_claimed:
                continue
            notification = self.notifications.new_reward(after.id, after.name, reward_id)
            result.notifications.append(notification)
            reward = game_settings.find_reward(self._config, reward_id) or {}
            result.events.append(
                DomainEvent(
                    REWARD_CLAIMED,
                    {
                        "player_id": after.id,
                        "player_name": after.name,
                        "reward_id": reward_id,
                        "reward_name": reward.get("name", reward_id),
                        "source": source,
                    },
                )
            )

        if before is None or before != after:
            result.events.append(
                DomainEvent(
                    PLAYER_UPDATED,
                    {
                        "player_id": after.id,
                        "exp": after.exp,
                        "level": after.level,
                        "source": source,
                    },
                )
            )
        return result

    async def _apply(
        self,
        player_id: str,
        mutate: Callable[[Optional[PlayerStats]], PlayerStats],
        *,
        source: str,
    ) -> PlayerStats:
        """
        Read-modify-write one player under the writer locks.

        ``mutate`` receives the current stats (None if unknown) and may raise
        to abort before anything is written.
        """
        async with write_locks(self.players, self.notifications.store):
            before = self.players.get(player_id)
            after = mutate(before)
            if after == before:
                return after

            progress = self.progress(before, after, source=source)
            async with DatabaseService.get_transaction() as session:
                await self.players.persist(session, after)
                await self.notifications.persist_new(session, progress.notifications)
            self.players.commit_put(after)
            announcements = self.notifications.commit_new(progress.notifications)

        await self.publish_events([*progress.events, *announcements])
        return after

    # ========================================================================
    # WRITES
    # ========================================================================

    async def upsert_stats(self, data: Mapping[str, Any]) -> PlayerStats:
        """
        Create or update a player's stats.

        Used both by the client's reward bookkeeping and administrative EXP
        resets. Omitted fields keep their current values.

        Raises:
            ValidationError: missing id, negative EXP, malformed rewards
        """
        player_id = normalize_player_id(data.get("id", data.get("player")), "player")

        exp: Optional[int] = None
        if data.get("exp") is not None:
            exp = bounded_int("exp", data["exp"], 0, None)

        claimed: Optional[List[str]] = None
        if data.get("claimedRewards") is not None:
            raw = data["claimedRewards"]
            if not isinstance(raw, list):
                raise ValidationError("claimedRewards", "must be a list")
            claimed = [str(reward) for reward in raw]

        name = data.get("name")
        if name is not None and (not isinstance(name, str) or not name.strip()):
            raise ValidationError("name", "must be a non-empty string")

        def mutate(before: Optional[PlayerStats]) -> PlayerStats:
            after = before or PlayerStats.new(player_id, name)
            if name is not None:
                after = replace(after, name=name.strip())
            if exp is not None:
                after = after.with_exp(exp)
            if claimed is not None:
                after = after.with_claimed(claimed)
            return after

        with LogContext(player_id=player_id, operation="upsert_stats"):
            after = await self._apply(player_id, mutate, source="upsert")
            self.log_operation("upsert_stats", player_id=player_id, exp=after.exp, level=after.level)
            return after

    async def claim_reward(self, player_id: Any, reward_id: Any) -> PlayerStats:
        """
        Claim a catalog reward for a player.

        Idempotent: claiming an already-claimed reward changes nothing and
        publishes nothing.

        Raises:
            PreconditionError: rewards disabled, or level too low
            NotFoundError: unknown reward or player
        """
        player_id = normalize_player_id(player_id, "playerId")
        if reward_id is None or str(reward_id).strip() == "":
            raise ValidationError("rewardId", "is required")
        reward_id = str(reward_id).strip()

        if not game_settings.rewards_enabled(self._config):
            raise PreconditionError("claim reward", "rewards are disabled")
        reward = game_settings.find_reward(self._config, reward_id)
        if reward is None:
            raise NotFoundError("Reward", reward_id)

        required_level = int(reward.get("level", 1))

        def mutate(before: Optional[PlayerStats]) -> PlayerStats:
            if before is None:
                raise NotFoundError("Player", player_id)
            if before.has_claimed(reward_id):
                return before
            if before.level < required_level:
                raise PreconditionError(
                    "claim reward",
                    f"reward requires level {required_level}",
                    {"reward_id": reward_id, "level": before.level},
                )
            return before.claim(reward_id)

        with LogContext(player_id=player_id, operation="claim_reward"):
            after = await self._apply(player_id, mutate, source="claim")
            self.log_operation("claim_reward", player_id=player_id, reward_id=reward_id)
            return after

    async def set_push_targets(self, player_id: Any, targets: Any) -> List[Dict[str, str]]:
        """
        Replace the player's push endpoints.

        Raises:
            ValidationError: not a list of ``{url, token}`` with http(s) urls
        """
        player_id = normalize_player_id(player_id)
        parsed = _parse_push_targets(targets)

        async with write_locks(self.push_targets):
            async with DatabaseService.get_transaction() as session:
                await self.push_targets.persist_targets(session, player_id, parsed)
            self.push_targets.commit_put((player_id, tuple(parsed)))

        self.log_operation("set_push_targets", player_id=player_id, count=len(parsed))
        return [t.to_dict() for t in parsed]


def _parse_push_targets(targets: Any) -> Sequence[PushTarget]:
    if not isinstance(targets, list):
        raise ValidationError("targets", "must be a list")

    parsed: List[PushTarget] = []
    for index, entry in enumerate(targets):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"targets[{index}]", "must be an object")
        url = entry.get("url")
        token = entry.get("token")
        if not isinstance(url, str) or urlparse(url).scheme not in ("http", "https"):
            raise ValidationError(f"targets[{index}].url", "must be an http(s) URL")
        if not isinstance(token, str) or not token.strip():
            raise ValidationError(f"targets[{index}].token", "is required")
        parsed.append(PushTarget(url=url.strip(), token=token.strip()))
    return parsed
