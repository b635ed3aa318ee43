"""
Tests for ConfigManager: YAML defaults, typed getters and database
overrides.
"""

from pathlib import Path

import pytest
from sqlalchemy import select

from taskquest.core.config.manager import ConfigManager, ConfigValidationError
from taskquest.core.database.service import DatabaseService
from taskquest.database.models import GameConfig
from taskquest.modules.shared import game_settings

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


@pytest.mark.unit
class TestDefaults:
    def test_yaml_sections_are_merged(self, config_manager):
        assert config_manager.get_int("scoring.base_multiplier", 0) == 10
        assert config_manager.get_float("scoring.late_decay", 0.0) == 0.8
        assert config_manager.get_bool("notifications.push_enabled", False) is True
        assert config_manager.get_float("core.event.listener_timeout.critical_seconds", 0.0) == 5.0

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("scoring.nope", "fallback") == "fallback"
        assert config_manager.get_list("rewards.nope", ["x"]) == ["x"]

    def test_non_numeric_value_falls_back(self, config_manager):
        assert config_manager.get_int("rewards.catalog", 7) == 7

    def test_game_settings_views(self, config_manager):
        assert [r["name"] for r in game_settings.ranks(config_manager)][:2] == ["Novice", "Apprentice"]
        assert game_settings.find_reward(config_manager, "takeout")["level"] == 5
        assert game_settings.scoring_config(config_manager).early_bonus == 20


@pytest.mark.unit
class TestOverrides:
    async def test_set_persists_and_publishes(self, config_manager, event_bus, recorded_events):
        await config_manager.set("scoring.early_bonus", 25, modified_by="1")

        assert config_manager.get_int("scoring.early_bonus", 0) == 25
        assert config_manager.get_int("scoring.base_multiplier", 0) == 10

        async with DatabaseService.get_session() as session:
            row = (
                await session.execute(select(GameConfig).where(GameConfig.config_key == "scoring"))
            ).scalar_one()
        assert row.config_value == {"early_bonus": 25}
        assert row.modified_by == "1"

        published = recorded_events.payloads("config.updated")
        assert published[0]["previous_value"] == 20
        assert published[0]["new_value"] == 25

    async def test_dotted_sets_accumulate(self, config_manager):
        await config_manager.set("scoring.early_bonus", 25)
        await config_manager.set("scoring.late_floor", -5)

        assert config_manager.get_int("scoring.early_bonus", 0) == 25
        assert config_manager.get_int("scoring.late_floor", 0) == -5

    async def test_unknown_section_rejected(self, config_manager):
        with pytest.raises(ConfigValidationError):
            await config_manager.set("bogus.key", 1)

    async def test_validator_rejects(self, config_manager):
        def positive(value):
            if int(value) <= 0:
                raise ValueError("must be positive")
            return int(value)

        config_manager.register_validator("scoring.base_multiplier", positive)

        with pytest.raises(ConfigValidationError):
            await config_manager.set("scoring.base_multiplier", 0)
        assert config_manager.get_int("scoring.base_multiplier", 0) == 10

    async def test_overrides_survive_reload(self, config_manager):
        await config_manager.set("rewards.enabled", False)

        ConfigManager.clear_cache()
        await ConfigManager.initialize(CONFIG_DIR)

        assert ConfigManager.get_bool("rewards.enabled", True) is False
        assert ConfigManager.health_snapshot()["initialized"] is True

    async def test_refresh_rereads_the_same_sources(self, config_manager, event_bus, recorded_events):
        async with DatabaseService.get_transaction() as session:
            session.add(GameConfig(config_key="notifications", config_value={"push_enabled": False}))

        await config_manager.refresh()

        assert config_manager.get_bool("notifications.push_enabled", True) is False
        assert config_manager.get_int("scoring.base_multiplier", 0) == 10
        assert config_manager.health_snapshot()["refresh_count"] == 1
        assert recorded_events.names() == ["config.refreshed"]
