"""
NotificationBus: durable levelup/reward log with per-player acknowledgment.

Purpose
-------
- ``publish()`` appends to the log and announces the notification so the
  realtime hub can broadcast it.
- ``list_unacknowledged()`` is the replay source for reconnecting clients.
- ``acknowledge()`` marks everything seen by one player and deletes the
  notifications the whole current roster has seen.

Delivery is at-least-once: the live broadcast may be missed, the durable log
may not. Clients dedupe on the notification ``timestamp``.

Roster semantics
----------------
The roster is read from PlayerStatsStore when ``acknowledge()`` runs, not
when the notification was created. A player added later must also
acknowledge older notifications before they are collected.

Multi-store writers (approval, player upsert) call ``persist_new()`` inside
their own transaction and ``commit_new()`` after it, holding the
notification store lock via ``write_locks``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Sequence, Type

from taskquest.core.database.service import DatabaseService
from taskquest.core.logging.logger import get_logger
from taskquest.domain.models.base import DomainEvent
from taskquest.domain.models.notification import Notification
from taskquest.domain.models.task import normalize_player_id
from taskquest.modules.shared.base_service import BaseService
from taskquest.modules.shared.store import write_locks

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus
    from taskquest.modules.notifications.store import NotificationStore
    from taskquest.modules.players.store import PlayerStatsStore
    from taskquest.modules.shared.clock import IdGenerator

logger = get_logger(__name__)

NOTIFICATION_PUBLISHED = "notification.published"
NOTIFICATIONS_ACKNOWLEDGED = "notifications.acknowledged"


class NotificationBus(BaseService):
    def __init__(
        self,
        store: NotificationStore,
        players: PlayerStatsStore,
        ids: IdGenerator,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.store = store
        self.players = players
        self.ids = ids

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def new_levelup(self, player_id: str, player_name: str, level: int) -> Notification:
        return Notification.levelup(self.ids.next_id(), player_id, player_name, level)

    def new_reward(self, player_id: str, player_name: str, reward_id: str) -> Notification:
        return Notification.reward_claimed(self.ids.next_id(), player_id, player_name, reward_id)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def publish(self, notification: Notification) -> Notification:
        """Append one notification and announce it."""
        async with write_locks(self.store):
            async with DatabaseService.get_transaction() as session:
                await self.persist_new(session, [notification])
            events = self.commit_new([notification])

        await self.publish_events(events)
        return notification

    async def persist_new(self, session: AsyncSession, notifications: Sequence[Notification]) -> None:
        for notification in notifications:
            await self.store.persist(session, notification)

    def commit_new(self, notifications: Sequence[Notification]) -> List[DomainEvent]:
        """Swap new notifications into the log; returns their announcements."""
        if not notifications:
            return []
        self.store.commit_put(*notifications)
        for notification in notifications:
            self.log.info(
                "Notification published",
                extra={
                    "notification_id": notification.id,
                    "notification_type": notification.type.value,
                    "player_id": notification.player_id,
                },
            )
        return [DomainEvent(NOTIFICATION_PUBLISHED, n.to_dict()) for n in notifications]

    async def acknowledge(self, player_id: str) -> int:
        """
        Mark every stored notification as seen by ``player_id``.

        Returns the number of notifications garbage-collected.
        """
        player_id = normalize_player_id(player_id, "playerId")

        async with write_locks(self.store):
            roster = set(self.players.roster())
            updated: List[Notification] = []
            removed: List[int] = []

            for notification in self.store.snapshot():
                acked = notification.acknowledged_by(player_id)
                if acked.is_fully_acknowledged(roster):
                    removed.append(acked.id)
                elif acked is not notification:
                    updated.append(acked)

            if updated or removed:
                async with DatabaseService.get_transaction() as session:
                    for notification in updated:
                        await self.store.persist(session, notification)
                    for notification_id in removed:
                        await self.store.persist_delete(session, notification_id)
                self.store.commit_put(*updated)
                self.store.commit_remove(*removed)

        self.log_operation(
            "acknowledge_notifications",
            player_id=player_id,
            marked=len(updated),
            removed=len(removed),
        )
        await self.emit_event(
            NOTIFICATIONS_ACKNOWLEDGED,
            {"player_id": player_id, "marked": len(updated), "removed": len(removed)},
        )
        return len(removed)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def list_all(self) -> List[Notification]:
        return sorted(self.store.snapshot(), key=lambda n: n.id)

    def list_unacknowledged(self, player_id: str) -> List[Notification]:
        """Notifications ``player_id`` has not acknowledged, oldest first."""
        return [n for n in self.list_all() if not n.is_seen_by(player_id)]
