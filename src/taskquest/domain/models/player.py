from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional, Tuple

from taskquest.modules.shared.formulas import level_of


@dataclass(frozen=True)
class PlayerStats:
    """
    A player's progression: cumulative EXP and claimed rewards.

    ``claimed_rewards`` keeps first-claim order and never holds duplicates.
    """

    id: str
    name: str
    exp: int = 0
    claimed_rewards: Tuple[str, ...] = ()

    @classmethod
    def new(cls, player_id: str, name: Optional[str] = None) -> "PlayerStats":
        return cls(id=player_id, name=name or player_id)

    @property
    def level(self) -> int:
        return level_of(self.exp)

    def has_claimed(self, reward_id: str) -> bool:
        return reward_id in self.claimed_rewards

    def with_exp(self, exp: int) -> "PlayerStats":
        return replace(self, exp=max(0, exp))

    def award(self, amount: int) -> "PlayerStats":
        """Add an award; negative awards never push the total below zero."""
        return self.with_exp(self.exp + amount)

    def with_claimed(self, reward_ids: Iterable[str]) -> "PlayerStats":
        return replace(self, claimed_rewards=_dedupe(reward_ids))

    def claim(self, reward_id: str) -> "PlayerStats":
        if self.has_claimed(reward_id):
            return self
        return replace(self, claimed_rewards=self.claimed_rewards + (reward_id,))

    def to_dict(self, rank: Optional[str] = None) -> Dict[str, Any]:
        return {
            "id": self.id,
            "player": self.id,
            "name": self.name,
            "exp": self.exp,
            "level": self.level,
            "rank": rank,
            "claimedRewards": list(self.claimed_rewards),
        }


@dataclass(frozen=True)
class PushTarget:
    """An external push endpoint registered for a player."""

    url: str
    token: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "token": self.token}


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(str(value), None)
    return tuple(seen)
