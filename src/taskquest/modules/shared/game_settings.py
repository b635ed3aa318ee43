"""
Typed accessors for the game-balance sections of ConfigManager.

Values are read on every call so a ``ConfigManager.set()`` takes effect on
the next approval without a restart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Type

from taskquest.modules.shared.formulas import ScoringConfig

if TYPE_CHECKING:
    from taskquest.core.config.manager import ConfigManager


def scoring_config(config_manager: Type[ConfigManager]) -> ScoringConfig:
    section = config_manager.get("scoring", {})
    return ScoringConfig.from_mapping(section if isinstance(section, Mapping) else None)


def ranks(config_manager: Type[ConfigManager]) -> List[Dict[str, Any]]:
    """Configured ranks sorted by ``minLevel``."""
    entries = [
        dict(rank)
        for rank in config_manager.get_list("progression.ranks")
        if isinstance(rank, Mapping) and "name" in rank
    ]
    return sorted(entries, key=lambda rank: int(rank.get("minLevel", 1)))


def reward_catalog(config_manager: Type[ConfigManager]) -> List[Dict[str, Any]]:
    return [
        dict(reward)
        for reward in config_manager.get_list("rewards.catalog")
        if isinstance(reward, Mapping) and "id" in reward
    ]


def find_reward(config_manager: Type[ConfigManager], reward_id: str) -> Optional[Dict[str, Any]]:
    for reward in reward_catalog(config_manager):
        if str(reward["id"]) == reward_id:
            return reward
    return None


def rewards_enabled(config_manager: Type[ConfigManager]) -> bool:
    return config_manager.get_bool("rewards.enabled", True)


def push_enabled(config_manager: Type[ConfigManager]) -> bool:
    return config_manager.get_bool("notifications.push_enabled", True)
