"""
TaskQuest Shared Module

Purpose
-------
Domain-level foundations used by every service module:
- Domain exceptions and error classification helpers
- Base service and repository patterns
- Scoring and progression formulas
- Snapshot stores with per-store writer locks

Usage
-----
    from taskquest.modules.shared import (
        BaseService,
        PreconditionError,
        compute_exp,
        write_locks,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService
from .store import LOCK_ORDER, SnapshotStore, write_locks

# Domain exceptions
from .exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    TaskQuestError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

# Formulas
from .formulas import (
    ScoringConfig,
    compute_exp,
    days_late,
    exp_for_level,
    level_of,
    levels_crossed,
    rank_for_level,
    rewards_unlocked,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "LOCK_ORDER",
    "SnapshotStore",
    "write_locks",
    "AuthorizationError",
    "NotFoundError",
    "PreconditionError",
    "TaskQuestError",
    "ValidationError",
    "get_error_severity",
    "is_transient_error",
    "should_alert",
    "ScoringConfig",
    "compute_exp",
    "days_late",
    "exp_for_level",
    "level_of",
    "levels_crossed",
    "rank_for_level",
    "rewards_unlocked",
]
