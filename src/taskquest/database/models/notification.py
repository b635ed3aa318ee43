from __future__ import annotations

from typing import List, Optional

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from taskquest.core.database.base import Base, PortableBigInt


def _empty_list() -> List[str]:
    return []


class NotificationModel(Base):
    """
    Durable levelup/reward notification log.

    Rows are deleted once every player on the roster appears in ``seen_by``.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(
        PortableBigInt,
        primary_key=True,
        autoincrement=False,
        doc="Creation time in epoch milliseconds, unique",
    )

    type: Mapped[str] = mapped_column(String(16), nullable=False)

    player_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    player_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    reward: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    seen_by: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=_empty_list)
