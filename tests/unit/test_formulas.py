"""
Unit tests for the scoring and progression formulas.

Covers EXP awards (urgency, early bonus, lateness decay, floors), the level
curve, level crossings, ranks and reward unlocking.
"""

from datetime import datetime, timedelta, timezone

import pytest

from taskquest.modules.shared.formulas import (
    ScoringConfig,
    compute_exp,
    days_late,
    exp_for_level,
    level_of,
    levels_crossed,
    rank_for_level,
    rewards_unlocked,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def exp(difficulty=1, urgency=0, minutes=0, due=None, completed=NOW, config=ScoringConfig()):
    return compute_exp(
        difficulty=difficulty,
        urgency=urgency,
        minutes_worked=minutes,
        due_date=due,
        completed_at=completed,
        config=config,
    )


# ============================================================================
# COMPUTE EXP
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestComputeExp:
    def test_on_time_urgent_task_gets_early_bonus(self):
        """difficulty 3, urgency 2, due tomorrow: 10*3 + 5*2 + 20 = 60."""
        assert exp(difficulty=3, urgency=2, due=NOW + timedelta(days=1)) == 60

    def test_completion_exactly_at_due_time_is_on_time(self):
        assert exp(difficulty=3, urgency=2, due=NOW) == 60

    def test_no_due_date_means_no_bonus(self):
        assert exp(difficulty=2, urgency=1, minutes=15) == 40

    def test_minutes_worked_add_one_each(self):
        assert exp(difficulty=1, urgency=1, minutes=30) - exp(difficulty=1, urgency=1) == 30

    def test_two_days_late_decays_base(self):
        """(30 + 10) * 0.8**2 = 25.6 -> 25, no early bonus."""
        assert exp(difficulty=3, urgency=2, due=NOW - timedelta(days=1, hours=1)) == 25

    def test_twenty_five_days_late_is_exactly_the_floor(self):
        assert exp(difficulty=3, urgency=2, due=NOW - timedelta(days=25)) == -10

    def test_late_floor_starts_at_twenty_one_days(self):
        assert exp(difficulty=5, urgency=5, due=NOW - timedelta(days=21)) == -10
        assert exp(difficulty=5, urgency=5, due=NOW - timedelta(days=20)) >= 1

    def test_late_floor_ignores_urgency(self):
        assert exp(difficulty=4, urgency=0, due=NOW - timedelta(days=30)) == -10

    def test_late_floor_does_not_cap_a_positive_award(self):
        """(50 + 25 + 3000) * 0.8**21 = 28.36 -> 28."""
        assert exp(difficulty=5, urgency=5, minutes=3000, due=NOW - timedelta(days=21)) == 28

    def test_late_large_task_still_halves_when_not_urgent(self):
        """(10 + 3000) * 0.8**21 = 27.76 -> 27, then * 0.5 = 13."""
        assert exp(difficulty=1, urgency=0, minutes=3000, due=NOW - timedelta(days=21)) == 13

    def test_not_urgent_halves_after_decay(self):
        """10 * 0.8 = 8, then * 0.5 = 4."""
        assert exp(difficulty=1, urgency=0, due=NOW - timedelta(hours=3)) == 4

    def test_result_is_at_least_one_before_the_floor(self):
        assert exp(difficulty=1, urgency=0, due=NOW - timedelta(days=20)) == 1

    def test_zero_difficulty_counts_as_one(self):
        assert exp(difficulty=0, urgency=1) == exp(difficulty=1, urgency=1)

    @pytest.mark.parametrize("difficulty", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("minutes", [0, 7, 45])
    def test_not_urgent_is_half_the_base(self, difficulty, minutes):
        expected = max(1, (10 * difficulty + minutes) // 2)
        assert exp(difficulty=difficulty, urgency=0, minutes=minutes) == expected

    def test_config_overrides_multipliers(self):
        config = ScoringConfig.from_mapping({"base_multiplier": 20, "early_bonus": 0})
        assert exp(difficulty=2, urgency=1, due=NOW + timedelta(days=1), config=config) == 45


@pytest.mark.unit
class TestDaysLate:
    def test_on_time_is_zero(self):
        assert days_late(NOW, NOW) == 0
        assert days_late(None, NOW) == 0

    def test_partial_days_round_up(self):
        assert days_late(NOW, NOW + timedelta(seconds=1)) == 1
        assert days_late(NOW, NOW + timedelta(days=1, seconds=1)) == 2


@pytest.mark.unit
class TestScoringConfig:
    def test_defaults_when_section_missing(self):
        assert ScoringConfig.from_mapping(None) == ScoringConfig()

    def test_unknown_keys_ignored(self):
        config = ScoringConfig.from_mapping({"late_decay": "0.5", "bogus": 1})
        assert config.late_decay == 0.5
        assert config.base_multiplier == 10


# ============================================================================
# LEVELS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestLevels:
    @pytest.mark.parametrize(
        "total, level",
        [(-50, 1), (0, 1), (99, 1), (100, 2), (299, 2), (300, 3), (699, 3), (700, 4), (1500, 5)],
    )
    def test_level_of(self, total, level):
        assert level_of(total) == level

    def test_exp_for_level_is_the_first_total_of_that_level(self):
        for level in range(1, 12):
            threshold = exp_for_level(level)
            assert level_of(threshold) == level
            if threshold > 0:
                assert level_of(threshold - 1) == level - 1

    def test_single_crossing(self):
        assert levels_crossed(90, 140) == [2]

    def test_large_award_crosses_every_level(self):
        assert levels_crossed(0, 750) == [2, 3, 4]

    def test_no_crossing_when_going_down(self):
        assert levels_crossed(500, 100) == []
        assert levels_crossed(120, 150) == []

    @pytest.mark.parametrize("old, new", [(0, 99), (0, 100), (50, 3000), (299, 300), (1000, 100000)])
    def test_crossings_are_contiguous_and_complete(self, old, new):
        crossed = levels_crossed(old, new)
        assert len(crossed) == level_of(new) - level_of(old)
        assert crossed == list(range(level_of(old) + 1, level_of(new) + 1))


@pytest.mark.unit
class TestRanksAndRewards:
    RANKS = [
        {"name": "Apprentice", "minLevel": 3},
        {"name": "Novice", "minLevel": 1},
        {"name": "Master", "minLevel": 9},
    ]

    def test_highest_reached_rank_wins(self):
        assert rank_for_level(1, self.RANKS) == "Novice"
        assert rank_for_level(4, self.RANKS) == "Apprentice"
        assert rank_for_level(20, self.RANKS) == "Master"

    def test_no_rank_below_every_threshold(self):
        assert rank_for_level(0, self.RANKS) is None
        assert rank_for_level(5, []) is None

    def test_rewards_unlocked_keeps_catalog_order(self):
        catalog = [{"id": "b", "level": 5}, {"id": "a", "level": 2}, {"id": "c", "level": 1}]
        assert [r["id"] for r in rewards_unlocked(5, catalog)] == ["b", "a", "c"]
        assert [r["id"] for r in rewards_unlocked(2, catalog)] == ["a", "c"]
