"""
Notification domain model.

A notification is a durable "levelup" or "reward" event. Its id is a
millisecond timestamp that clients also use as a dedup key, and it records
which players have acknowledged it. Once every player on the current roster
has acknowledged it, it can be deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional


class NotificationType(str, Enum):
    LEVELUP = "levelup"
    REWARD = "reward"


@dataclass(frozen=True)
class Notification:
    id: int
    type: NotificationType
    player_id: str
    player_name: str
    level: Optional[int] = None
    reward: Optional[str] = None
    seen_by: FrozenSet[str] = frozenset()

    @classmethod
    def levelup(cls, notification_id: int, player_id: str, player_name: str, level: int) -> "Notification":
        return cls(
            id=notification_id,
            type=NotificationType.LEVELUP,
            player_id=player_id,
            player_name=player_name,
            level=level,
        )

    @classmethod
    def reward_claimed(
        cls, notification_id: int, player_id: str, player_name: str, reward_id: str
    ) -> "Notification":
        return cls(
            id=notification_id,
            type=NotificationType.REWARD,
            player_id=player_id,
            player_name=player_name,
            reward=reward_id,
        )

    @property
    def timestamp(self) -> int:
        return self.id

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.id / 1000, tz=timezone.utc)

    def is_seen_by(self, player_id: str) -> bool:
        return player_id in self.seen_by

    def acknowledged_by(self, player_id: str) -> "Notification":
        if player_id in self.seen_by:
            return self
        return replace(self, seen_by=self.seen_by | {player_id})

    def is_fully_acknowledged(self, roster: Iterable[str]) -> bool:
        """True when nobody on ``roster`` is missing from ``seen_by``."""
        return not (set(roster) - self.seen_by)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "playerId": self.player_id,
            "playerName": self.player_name,
            "timestamp": self.timestamp,
            "seenBy": sorted(self.seen_by),
        }
        if self.type is NotificationType.LEVELUP:
            data["level"] = self.level
        else:
            data["reward"] = self.reward
        return data
