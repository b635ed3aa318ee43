"""
Players Module
==============

- PlayerService: stats upserts, level-up detection, ranks, reward claims,
  push endpoint registration
- PlayerStatsStore / PushTargetStore: snapshots of ``player_stats`` and
  ``push_targets``
"""

from .service import PlayerService, Progress
from .store import PlayerStatsStore, PushTargetStore

__all__ = ["PlayerService", "Progress", "PlayerStatsStore", "PushTargetStore"]
