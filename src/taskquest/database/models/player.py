"""
Player tables.

- ``player_stats``: one row per player, the roster used for notification
  garbage collection.
- ``push_targets``: external push endpoints registered per player.
"""

from __future__ import annotations

from typing import List

from sqlalchemy import JSON, BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from taskquest.core.database.base import Base, IdMixin, TimestampMixin


def _empty_list() -> List[str]:
    return []


class PlayerStatsModel(Base, TimestampMixin):
    """Cumulative EXP and claimed rewards for one player."""

    __tablename__ = "player_stats"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    exp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    claimed_rewards: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=_empty_list,
        doc="Reward ids in first-claim order, no duplicates",
    )


class PushTargetModel(Base, IdMixin):
    __tablename__ = "push_targets"
    __table_args__ = (Index("ix_push_targets_player_position", "player_id", "position"),)

    player_id: Mapped[str] = mapped_column(String(64), nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    url: Mapped[str] = mapped_column(String(500), nullable=False)

    token: Mapped[str] = mapped_column(String(200), nullable=False, default="")
