"""
TaskQuest game formulas.

Purpose
-------
Pure calculation functions for the game rules: the EXP award for a completed
task, the level curve, level crossings, ranks and reward unlocks.

Design Notes
------------
- Pure functions only: no I/O, no config access, no clock. Every tunable is
  passed in (``ScoringConfig``, rank and reward tables).
- Integer arithmetic wherever the rule allows it so results are exact.

Usage
-----
    from taskquest.modules.shared.formulas import compute_exp, level_of

    award = compute_exp(
        difficulty=3, urgency=2, minutes_worked=0,
        due_date=due, completed_at=now, config=ScoringConfig(),
    )
    level = level_of(140)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

SECONDS_PER_DAY = 86_400
LEVEL_BASE = 100


@dataclass(frozen=True)
class ScoringConfig:
    """
    Multipliers used by ``compute_exp``.

    Defaults reproduce the stock game balance.
    """

    base_multiplier: int = 10
    urgency_multiplier: int = 5
    early_bonus: int = 20
    late_decay: float = 0.8
    late_floor_days: int = 21
    late_floor: int = -10
    not_urgent_factor: float = 0.5

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "ScoringConfig":
        """
        Build from a ``scoring`` config section, ignoring unknown keys.

        >>> ScoringConfig.from_mapping({"early_bonus": 25}).early_bonus
        25
        """
        if not values:
            return cls()
        defaults = cls()
        return cls(
            base_multiplier=int(values.get("base_multiplier", defaults.base_multiplier)),
            urgency_multiplier=int(
                values.get("urgency_multiplier", defaults.urgency_multiplier)
            ),
            early_bonus=int(values.get("early_bonus", defaults.early_bonus)),
            late_decay=float(values.get("late_decay", defaults.late_decay)),
            late_floor_days=int(values.get("late_floor_days", defaults.late_floor_days)),
            late_floor=int(values.get("late_floor", defaults.late_floor)),
            not_urgent_factor=float(
                values.get("not_urgent_factor", defaults.not_urgent_factor)
            ),
        )


def days_late(due_date: Optional[datetime], completed_at: datetime) -> int:
    """
    Whole days (rounded up) between the due instant and completion.

    Zero when there is no due date or the task was finished on time.

    Example:
        >>> days_late(datetime(2024, 1, 1), datetime(2024, 1, 1, 0, 0, 1))
        1
    """
    if due_date is None or completed_at <= due_date:
        return 0
    return math.ceil((completed_at - due_date).total_seconds() / SECONDS_PER_DAY)


def compute_exp(
    *,
    difficulty: Optional[int],
    urgency: Optional[int],
    minutes_worked: Optional[int],
    due_date: Optional[datetime],
    completed_at: datetime,
    config: ScoringConfig = ScoringConfig(),
) -> int:
    """
    EXP awarded for completing a task.

    Steps, in order:
        1. base = base_multiplier * difficulty (difficulty 0/None counts as 1)
        2. + urgency_multiplier * urgency, when urgent
        3. + 1 per minute worked
        4. + early_bonus, when urgent and finished at or before the due date
        5. late: base = floor(base * late_decay ** days_late)
        6. not urgent: base = floor(base * not_urgent_factor)
        7. result is at least 1, or ``late_floor`` when ``late_floor_days``
           or more days late

    A task that still decays to a positive value keeps it however late it
    is. Only the extreme-lateness floor yields a non-positive award.

    Example:
        >>> due = datetime(2024, 1, 2)
        >>> compute_exp(difficulty=3, urgency=2, minutes_worked=0,
        ...             due_date=due, completed_at=datetime(2024, 1, 1))
        60
        >>> compute_exp(difficulty=3, urgency=2, minutes_worked=0,
        ...             due_date=due, completed_at=datetime(2024, 1, 27))
        -10
    """
    difficulty = difficulty or 1
    urgency = urgency or 0
    minutes = max(0, minutes_worked or 0)

    exp = config.base_multiplier * difficulty
    if urgency > 0:
        exp += config.urgency_multiplier * urgency
    exp += minutes

    if urgency > 0 and due_date is not None and completed_at <= due_date:
        exp += config.early_bonus

    late = days_late(due_date, completed_at)
    if late > 0:
        exp = math.floor(exp * config.late_decay**late)

    if urgency == 0:
        exp = math.floor(exp * config.not_urgent_factor)

    if late >= config.late_floor_days and exp < 1:
        return config.late_floor
    return max(1, exp)


def level_of(exp: int) -> int:
    """
    Level for a cumulative EXP total: floor(1 + log2(1 + exp / 100)).

    Computed in integers: level L starts at 100 * (2**(L-1) - 1) EXP.
    Negative totals are level 1.

    Example:
        >>> [level_of(x) for x in (0, 99, 100, 299, 300, 700, 1500)]
        [1, 1, 2, 2, 3, 4, 5]
    """
    if exp <= 0:
        return 1
    return (1 + exp // LEVEL_BASE).bit_length()


def exp_for_level(level: int) -> int:
    """
    Minimum cumulative EXP for ``level``.

    Example:
        >>> exp_for_level(1), exp_for_level(2), exp_for_level(4)
        (0, 100, 700)
    """
    if level <= 1:
        return 0
    return LEVEL_BASE * (2 ** (level - 1) - 1)


def levels_crossed(old_exp: int, new_exp: int) -> List[int]:
    """
    Every level reached by moving from ``old_exp`` to ``new_exp``, ascending.

    Example:
        >>> levels_crossed(90, 140)
        [2]
        >>> levels_crossed(0, 750)
        [2, 3, 4]
        >>> levels_crossed(500, 100)
        []
    """
    return list(range(level_of(old_exp) + 1, level_of(new_exp) + 1))


def rank_for_level(level: int, ranks: Sequence[Mapping[str, Any]]) -> Optional[str]:
    """
    Name of the highest rank whose ``minLevel`` is at most ``level``.

    Example:
        >>> ranks = [{"name": "Novice", "minLevel": 1}, {"name": "Adept", "minLevel": 5}]
        >>> rank_for_level(6, ranks)
        'Adept'
    """
    best_name: Optional[str] = None
    best_min = -1
    for rank in ranks:
        min_level = int(rank.get("minLevel", 1))
        if min_level <= level and min_level > best_min:
            best_name = str(rank.get("name", ""))
            best_min = min_level
    return best_name


def rewards_unlocked(
    level: int, catalog: Iterable[Mapping[str, Any]]
) -> List[Mapping[str, Any]]:
    """
    Catalog entries whose ``level`` requirement is met, in catalog order.

    Example:
        >>> rewards_unlocked(3, [{"id": "a", "level": 2}, {"id": "b", "level": 5}])
        [{'id': 'a', 'level': 2}]
    """
    return [reward for reward in catalog if int(reward.get("level", 1)) <= level]
