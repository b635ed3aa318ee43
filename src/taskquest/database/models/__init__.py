"""
TaskQuest ORM models.

Importing this package registers every table on ``Base.metadata``.
"""

from taskquest.database.models.game_config import GameConfig
from taskquest.database.models.notification import NotificationModel
from taskquest.database.models.player import PlayerStatsModel, PushTargetModel
from taskquest.database.models.task import ArchivedTaskModel, TaskModel

__all__ = [
    "GameConfig",
    "NotificationModel",
    "PlayerStatsModel",
    "PushTargetModel",
    "ArchivedTaskModel",
    "TaskModel",
]
