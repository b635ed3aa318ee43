from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from taskquest.core.database.base import Base, IdMixin, TimestampMixin


class GameConfig(Base, IdMixin, TimestampMixin):
    """
    Runtime game configuration overrides stored in the database.

    One row per top-level key (``scoring``, ``progression``, ``rewards``...).
    ConfigManager deep-merges ``config_value`` over the YAML defaults so the
    household can retune scoring without a redeploy.
    """

    __tablename__ = "game_config"

    config_key: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    config_value: Mapped[Any] = mapped_column(
        JSON,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
    )

    modified_by: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )
