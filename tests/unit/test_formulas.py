"""
Unit Tests for the Leveling Formulas
====================================

Test Coverage
-------------
- Cumulative XP thresholds per level
- Level derivation at and around every threshold
- Monotonicity and inverse consistency
- Progress breakdown and level table
- Rejection of invalid inputs
"""

import pytest

from liferpg.modules.shared.formulas import (
    XP_LEVEL_STEP,
    calculate_level_progress,
    get_level_requirements,
    level_for_xp,
    xp_required_for_level,
    xp_to_next_level,
)


# ============================================================================
# THRESHOLDS
# ============================================================================


@pytest.mark.unit
class TestXpRequiredForLevel:
    """Cumulative XP needed to reach a level."""

    @pytest.mark.parametrize(
        "level, expected",
        [(1, 0), (2, 100), (3, 300), (4, 600), (5, 1000), (6, 1500), (10, 4500)],
    )
    def test_known_thresholds(self, level, expected):
        assert xp_required_for_level(level) == expected

    def test_each_level_costs_one_step_more(self):
        """Level n+1 costs XP_LEVEL_STEP more than level n did."""
        for level in range(2, 50):
            cost = xp_required_for_level(level + 1) - xp_required_for_level(level)
            previous_cost = xp_required_for_level(level) - xp_required_for_level(level - 1)
            assert cost - previous_cost == XP_LEVEL_STEP

    @pytest.mark.parametrize("level", [0, -1, -100])
    def test_rejects_levels_below_one(self, level):
        with pytest.raises(ValueError):
            xp_required_for_level(level)

    @pytest.mark.parametrize("level", [1.0, "2", True, None])
    def test_rejects_non_integers(self, level):
        with pytest.raises(TypeError):
            xp_required_for_level(level)


# ============================================================================
# LEVEL DERIVATION
# ============================================================================


@pytest.mark.unit
class TestLevelForXp:
    """Level derived from cumulative XP."""

    @pytest.mark.parametrize(
        "xp, expected",
        [
            (0, 1),
            (1, 1),
            (99, 1),
            (100, 2),
            (299, 2),
            (300, 3),
            (599, 3),
            (600, 4),
            (999, 4),
            (1000, 5),
            (1250, 5),
        ],
    )
    def test_boundaries(self, xp, expected):
        assert level_for_xp(xp) == expected

    def test_inverse_of_threshold(self):
        """Exactly at a threshold the level is reached; one XP short it is not."""
        for level in range(1, 500):
            threshold = xp_required_for_level(level)
            assert level_for_xp(threshold) == level
            if threshold > 0:
                assert level_for_xp(threshold - 1) == level - 1

    def test_monotonic_non_decreasing(self):
        previous = level_for_xp(0)
        for xp in range(0, 20_000, 7):
            current = level_for_xp(xp)
            assert current >= previous
            previous = current

    def test_exact_for_huge_totals(self):
        """No float drift for totals near the 64-bit limit."""
        level = 1_000_000
        threshold = xp_required_for_level(level)

        assert level_for_xp(threshold) == level
        assert level_for_xp(threshold - 1) == level - 1
        assert level_for_xp(2**63 - 1) >= 1

    def test_rejects_negative_xp(self):
        with pytest.raises(ValueError):
            level_for_xp(-1)

    @pytest.mark.parametrize("xp", [10.0, "100", False, None])
    def test_rejects_non_integers(self, xp):
        with pytest.raises(TypeError):
            level_for_xp(xp)


# ============================================================================
# DISPLAY HELPERS
# ============================================================================


@pytest.mark.unit
class TestProgressHelpers:
    """xp_to_next_level, calculate_level_progress, get_level_requirements."""

    def test_xp_to_next_level(self):
        assert xp_to_next_level(0, 1) == 100
        assert xp_to_next_level(250, 2) == 50
        assert xp_to_next_level(1250, 5) == 250

    def test_progress_mid_level(self):
        # Act
        progress = calculate_level_progress(450)

        # Assert
        assert progress.level == 3
        assert progress.current_level_xp == 300
        assert progress.next_level_xp == 600
        assert progress.xp_into_level == 150
        assert progress.xp_span == 300
        assert progress.progress_percent == 50

    def test_progress_at_threshold_is_zero_percent(self):
        progress = calculate_level_progress(600)

        assert progress.level == 4
        assert progress.xp_into_level == 0
        assert progress.progress_percent == 0

    def test_progress_percent_is_floored(self):
        assert calculate_level_progress(99).progress_percent == 99

    def test_progress_to_dict(self):
        payload = calculate_level_progress(0).to_dict()

        assert payload == {
            "level": 1,
            "current_level_xp": 0,
            "next_level_xp": 100,
            "xp_into_level": 0,
            "xp_span": 100,
            "progress_percent": 0,
        }

    def test_level_requirements_table(self):
        table = get_level_requirements(5)

        assert [r.level for r in table] == [1, 2, 3, 4, 5]
        assert [r.total_xp for r in table] == [0, 100, 300, 600, 1000]
        assert [r.xp_from_previous for r in table] == [0, 100, 200, 300, 400]

    def test_level_requirements_default_length(self):
        assert len(get_level_requirements()) == 20

    def test_level_requirements_rejects_zero(self):
        with pytest.raises(ValueError):
            get_level_requirements(0)
