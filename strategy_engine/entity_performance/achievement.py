# strategy_engine/entity_performance/achievement.py
"""
Achievement Calculator

Normalized progress from baseline to target, in percent, clamped to
[ACHIEVEMENT_FLOOR, cap]. `None` means "unknown" and is distinct from 0.
"""

import logging
from typing import Optional

from .constants import (
    ACHIEVEMENT_CAP,
    ACHIEVEMENT_FLOOR,
    DIRECTION_DECREASE,
)
from .exceptions import FormulaError
from .formula import FormulaEvaluator

logger = logging.getLogger(__name__)


def clamp_achievement(value: float, cap: float = ACHIEVEMENT_CAP) -> float:
    return max(ACHIEVEMENT_FLOOR, min(cap, value))


def evaluate_achievement_formula(
    formula: str,
    baseline: Optional[float],
    current: Optional[float],
    target: Optional[float],
    evaluator: Optional[FormulaEvaluator] = None,
) -> Optional[float]:
    """
    Evaluate a custom achievement formula.

    The formula sees exactly baselineValue, currentValue and targetValue,
    each defaulted to 0 when absent. Any evaluator failure gives None.
    """
    evaluator = evaluator or FormulaEvaluator()
    variables = {
        'baselineValue': baseline if baseline is not None else 0.0,
        'currentValue': current if current is not None else 0.0,
        'targetValue': target if target is not None else 0.0,
    }
    try:
        return evaluator.evaluate(formula, variables)
    except FormulaError as e:
        logger.warning(f"Achievement formula failed ({e.code}): {e}")
        return None


def compute_achievement(
    baseline: Optional[float],
    current: Optional[float],
    target: Optional[float],
    direction: Optional[str] = None,
    override_formula: Optional[str] = None,
    cap: float = ACHIEVEMENT_CAP,
    evaluator: Optional[FormulaEvaluator] = None,
) -> Optional[float]:
    """
    Calculate achievement percentage.

    Args:
        baseline: Starting value
        current: Current (final) value
        target: Target value
        direction: INCREASE_IS_GOOD (default) or DECREASE_IS_GOOD
        override_formula: Custom formula replacing the standard calculation
        cap: Upper clamp bound

    Returns:
        Percentage in [0, cap], or None when it cannot be determined
    """
    if override_formula and override_formula.strip():
        value = evaluate_achievement_formula(override_formula, baseline, current, target, evaluator)
        return clamp_achievement(value, cap) if value is not None else None

    if baseline is None or current is None or target is None:
        return None
    if target == baseline:
        return None

    if direction == DIRECTION_DECREASE:
        value = (baseline - current) / (baseline - target) * 100
    else:
        value = (current - baseline) / (target - baseline) * 100

    return clamp_achievement(value, cap)
