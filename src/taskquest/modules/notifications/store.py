from __future__ import annotations

from taskquest.core.logging.logger import get_logger
from taskquest.database.models.notification import NotificationModel
from taskquest.domain.models.notification import Notification, NotificationType
from taskquest.modules.shared.base_repository import BaseRepository
from taskquest.modules.shared.store import SnapshotStore


class NotificationRepository(BaseRepository[NotificationModel]):
    pass


class NotificationStore(SnapshotStore[int, Notification, NotificationModel]):
    """Durable notification log in creation order."""

    name = "notifications"
    load_order = "id"

    def __init__(self) -> None:
        super().__init__(
            NotificationRepository(NotificationModel, get_logger(f"{__name__}.NotificationRepository")),
            get_logger(f"{__name__}.NotificationStore"),
        )

    def key_of(self, value: Notification) -> int:
        return value.id

    def to_row(self, value: Notification) -> NotificationModel:
        return NotificationModel(
            id=value.id,
            type=value.type.value,
            player_id=value.player_id,
            player_name=value.player_name,
            level=value.level,
            reward=value.reward,
            seen_by=sorted(value.seen_by),
        )

    def from_row(self, row: NotificationModel) -> Notification:
        return Notification(
            id=row.id,
            type=NotificationType(row.type),
            player_id=row.player_id,
            player_name=row.player_name or "",
            level=row.level,
            reward=row.reward,
            seen_by=frozenset(str(player) for player in (row.seen_by or [])),
        )
