"""
Unit tests for PlayerService.

Tests stats upsert, multi-level jumps, reward claims and push endpoint
registration.
"""

import pytest

from taskquest.modules.shared.exceptions import NotFoundError, PreconditionError, ValidationError


@pytest.mark.unit
class TestUpsertStats:
    async def test_creates_player_with_defaults(self, container, recorded_events):
        player = await container.players.upsert_stats({"id": 4, "name": "Robin"})

        assert player.id == "4"
        assert player.exp == 0
        assert container.player_store.get("4") == player
        assert recorded_events.names() == ["player.updated"]

    async def test_omitted_fields_are_kept(self, container):
        await container.players.upsert_stats({"id": "1", "name": "Alex", "exp": 150})

        player = await container.players.upsert_stats({"id": "1", "claimedRewards": ["movie-night"]})

        assert player.name == "Alex"
        assert player.exp == 150
        assert player.claimed_rewards == ("movie-night",)

    async def test_unchanged_upsert_publishes_nothing(self, container, recorded_events):
        await container.players.upsert_stats({"id": "1", "exp": 10})
        recorded_events.clear()

        await container.players.upsert_stats({"id": "1", "exp": 10})

        assert recorded_events == []

    async def test_multi_level_jump_notifies_each_level(self, container, recorded_events):
        # level 4 starts at 700 EXP
        await container.players.upsert_stats({"id": "1", "exp": 750})

        levels = [n.level for n in container.notifications.list_all()]
        assert levels == [2, 3, 4]
        assert [p["level"] for p in recorded_events.payloads("player.leveled_up")] == [2, 3, 4]

    @pytest.mark.parametrize(
        "data, field",
        [
            ({}, "player"),
            ({"id": "1", "exp": -1}, "exp"),
            ({"id": "1", "exp": "lots"}, "exp"),
            ({"id": "1", "claimedRewards": "movie-night"}, "claimedRewards"),
            ({"id": "1", "name": "   "}, "name"),
        ],
    )
    async def test_invalid_payloads(self, container, data, field):
        with pytest.raises(ValidationError) as exc_info:
            await container.players.upsert_stats(data)

        assert exc_info.value.field == field
        assert len(container.player_store) == 0

    async def test_stats_carry_rank(self, container):
        await container.players.upsert_stats({"id": "1", "exp": 350})

        stats = container.players.get_stats("1")

        assert stats["level"] == 3
        assert stats["rank"] == "Apprentice"


@pytest.mark.unit
class TestRewards:
    async def test_claim_unlocked_reward(self, container, recorded_events):
        await container.players.upsert_stats({"id": "1", "name": "Alex", "exp": 120})
        recorded_events.clear()

        player = await container.players.claim_reward("1", "movie-night")

        assert player.claimed_rewards == ("movie-night",)
        notifications = [n for n in container.notifications.list_all() if n.type.value == "reward"]
        assert [(n.type.value, n.reward) for n in notifications] == [("reward", "movie-night")]
        claimed = recorded_events.payloads("reward.claimed")
        assert claimed[0]["reward_name"] == "Movie Night"

    async def test_claim_is_idempotent(self, container, recorded_events):
        await container.players.upsert_stats({"id": "1", "exp": 120})
        await container.players.claim_reward("1", "movie-night")
        recorded_events.clear()

        await container.players.claim_reward("1", "movie-night")

        assert recorded_events == []
        assert len([n for n in container.notifications.list_all() if n.type.value == "reward"]) == 1

    async def test_level_too_low(self, container):
        await container.players.upsert_stats({"id": "1", "exp": 120})

        with pytest.raises(PreconditionError):
            await container.players.claim_reward("1", "day-off")

        assert container.player_store.get("1").claimed_rewards == ()

    async def test_unknown_reward_and_player(self, container):
        await container.players.upsert_stats({"id": "1"})

        with pytest.raises(NotFoundError):
            await container.players.claim_reward("1", "pony")
        with pytest.raises(NotFoundError):
            await container.players.claim_reward("9", "movie-night")

    async def test_rewards_disabled(self, container, config_manager):
        await container.players.upsert_stats({"id": "1", "exp": 120})
        await config_manager.set("rewards.enabled", False)

        with pytest.raises(PreconditionError):
            await container.players.claim_reward("1", "movie-night")

    async def test_available_rewards_flags_claimed(self, container):
        await container.players.upsert_stats({"id": "1", "exp": 350, "claimedRewards": ["movie-night"]})

        available = container.players.available_rewards("1")

        assert [(r["id"], r["claimed"]) for r in available] == [("movie-night", True), ("sleep-in", False)]


@pytest.mark.unit
class TestPushTargets:
    async def test_replace_targets(self, container):
        await container.players.set_push_targets("1", [{"url": "https://push.example/message", "token": "a"}])
        saved = await container.players.set_push_targets(
            "1",
            [
                {"url": "https://push.example/message", "token": "b"},
                {"url": "http://phone.lan:8080/message", "token": "c"},
            ],
        )

        assert [t["token"] for t in saved] == ["b", "c"]
        assert container.players.get_push_targets("1") == saved

    async def test_clear_targets(self, container):
        await container.players.set_push_targets("1", [{"url": "https://push.example/message", "token": "a"}])

        assert await container.players.set_push_targets("1", []) == []
        assert container.players.get_push_targets("1") == []

    @pytest.mark.parametrize(
        "targets",
        [
            "https://push.example",
            [{"url": "ftp://push.example", "token": "a"}],
            [{"url": "https://push.example"}],
            ["https://push.example"],
        ],
    )
    async def test_invalid_targets(self, container, targets):
        with pytest.raises(ValidationError):
            await container.players.set_push_targets("1", targets)
