"""
Task tables.

Schema-only representation of:
- Active tasks (``tasks``): open or waiting for review
- Archived tasks (``archived_tasks``): completed, immutable

The approver variant is stored as ``approver_mode`` plus ``approver_id``.
All behavior and game rules live in the domain and service layers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from taskquest.core.database.base import Base, PortableBigInt, utc_now

APPROVER_UNASSIGNED = "unassigned"
APPROVER_SPECIFIC = "specific"
APPROVER_ANYONE = "anyone"


class TaskColumnsMixin:
    """Columns shared by active and archived tasks."""

    # ========================================================================
    # IDENTITY
    # ========================================================================

    id: Mapped[int] = mapped_column(
        PortableBigInt,
        primary_key=True,
        autoincrement=False,
        doc="Millisecond timestamp id assigned by the service",
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    owner: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # ========================================================================
    # SCORING INPUTS
    # ========================================================================

    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    urgency: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    due_date: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
        doc="ISO date or datetime exactly as the client sent it",
    )

    minutes_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ========================================================================
    # REVIEW STATE
    # ========================================================================

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")

    approver_mode: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=APPROVER_UNASSIGNED,
    )

    approver_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    commentary: Mapped[str] = mapped_column(Text, nullable=False, default="")

    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )


class TaskModel(TaskColumnsMixin, Base):
    __tablename__ = "tasks"


class ArchivedTaskModel(TaskColumnsMixin, Base):
    __tablename__ = "archived_tasks"

    confirmed_by: Mapped[str] = mapped_column(String(64), nullable=False)

    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    answer_commentary: Mapped[str] = mapped_column(Text, nullable=False, default="")

    exp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        doc="EXP awarded for this completion; may be negative",
    )
