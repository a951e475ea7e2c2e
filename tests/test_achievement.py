"""Tests for achievement calculation."""

import pytest

from strategy_engine.entity_performance.achievement import (
    clamp_achievement,
    compute_achievement,
    evaluate_achievement_formula,
)
from strategy_engine.entity_performance.constants import (
    ACHIEVEMENT_CAP,
    DIRECTION_DECREASE,
    DIRECTION_INCREASE,
)


class TestStandardCalculation:
    """Baseline -> target progress."""

    def test_obj_revenue_scenario(self):
        """Baseline 100, target 125, current 112.5 gives 50%."""
        assert compute_achievement(100, 112.5, 125, DIRECTION_INCREASE) == 50.0

    def test_direction_defaults_to_increase(self):
        assert compute_achievement(0, 30, 60) == 50.0

    def test_decrease_is_good(self):
        # Cost from 200 down to 100; now at 150
        assert compute_achievement(200, 150, 100, DIRECTION_DECREASE) == 50.0

    def test_capped_at_150(self):
        assert compute_achievement(0, 500, 100) == ACHIEVEMENT_CAP == 150.0

    def test_floored_at_zero(self):
        assert compute_achievement(100, 50, 200) == 0.0

    def test_custom_cap(self):
        assert compute_achievement(0, 500, 100, cap=200.0) == 200.0

    @pytest.mark.parametrize("baseline,current,target", [
        (None, 10, 20),
        (0, None, 20),
        (0, 10, None),
    ])
    def test_missing_input_gives_none(self, baseline, current, target):
        assert compute_achievement(baseline, current, target) is None

    def test_target_equal_to_baseline_gives_none(self):
        assert compute_achievement(100, 120, 100) is None

    @pytest.mark.parametrize("baseline,current,target,direction", [
        (0, -1000, 10, DIRECTION_INCREASE),
        (0, 1e9, 10, DIRECTION_INCREASE),
        (50, 0, 10, DIRECTION_DECREASE),
        (50, 500, 10, DIRECTION_DECREASE),
        (-20, 3, -5, DIRECTION_INCREASE),
    ])
    def test_always_within_bounds(self, baseline, current, target, direction):
        value = compute_achievement(baseline, current, target, direction)
        assert 0.0 <= value <= 150.0


class TestOverrideFormula:
    """Custom achievement formulas."""

    def test_override_replaces_standard_calculation(self):
        value = compute_achievement(100, 112.5, 125, override_formula="currentValue / targetValue * 100")
        assert value == pytest.approx(90.0)

    def test_override_result_clamped(self):
        value = compute_achievement(0, 10, 1, override_formula="currentValue * 1000")
        assert value == 150.0

    def test_override_sees_zero_for_missing_inputs(self):
        value = compute_achievement(None, 40, None, override_formula="currentValue + baselineValue + targetValue")
        assert value == 40.0

    def test_override_failure_gives_none_not_zero(self):
        assert compute_achievement(0, 10, 20, override_formula="currentValue / 0") is None
        assert compute_achievement(0, 10, 20, override_formula="currentValue +") is None

    def test_blank_override_uses_standard_calculation(self):
        assert compute_achievement(100, 112.5, 125, override_formula="   ") == 50.0

    def test_evaluate_achievement_formula_unclamped(self):
        assert evaluate_achievement_formula("currentValue * 10", 0, 50, 100) == 500.0


class TestClamp:

    def test_clamp(self):
        assert clamp_achievement(-5) == 0.0
        assert clamp_achievement(75) == 75
        assert clamp_achievement(151) == 150.0
