"""
Performance Predictor

Closed-form coaching forecasts. Pure arithmetic with no dependency on the
other engine components:
- Goal completion timeline at a steady weekly rate
- 5K time with compounding (diminishing) weekly improvement
- Strength max from volume load, recovery and progression rate
- Body weight by linear extrapolation
"""

import math
from typing import Any

from core.exceptions import ValidationError
from analytics.constants import FIVE_K_RATE_BOUNDS, RECOVERY_FACTOR_BOUNDS
from analytics.models import GoalTimeline


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _is_finite_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and math.isfinite(value)


def _require_finite(**values: Any) -> None:
    for name, value in values.items():
        if not _is_finite_number(value):
            raise ValidationError(f"{name} must be a finite number, got {value!r}", field=name)


class PerformancePredictor:
    """Stateless performance formulas."""

    def estimate_goal_timeline(self, current: float, target: float, weekly_rate: float) -> GoalTimeline:
        """
        Weeks (and days) to close the gap between current and target.

        A zero rate or any non-finite input means the goal is never reached
        at this rate: both fields are infinite.
        """
        if not all(_is_finite_number(v) for v in (current, target, weekly_rate)) or weekly_rate == 0:
            return GoalTimeline(weeks=math.inf, days=math.inf)

        weeks = (target - current) / weekly_rate
        return GoalTimeline(weeks=weeks, days=weeks * 7)

    def predict_5k_time(self, current_time: float, weekly_improvement_rate: float, weeks: float) -> float:
        """current_time * (1 - rate)^weeks, rate clamped to [0, 0.2]."""
        _require_finite(current_time=current_time, weekly_improvement_rate=weekly_improvement_rate, weeks=weeks)
        rate = _clamp(weekly_improvement_rate, *FIVE_K_RATE_BOUNDS)
        return current_time * (1 - rate) ** weeks

    def predict_strength_max(
        self,
        current_max: float,
        volume_load: float,
        recovery_factor: float,
        progression_rate: float
    ) -> float:
        """current_max * (1 + load * recovery * rate); recovery in [0.5, 1.5], load >= 0."""
        _require_finite(
            current_max=current_max,
            volume_load=volume_load,
            recovery_factor=recovery_factor,
            progression_rate=progression_rate
        )
        load = max(0.0, volume_load)
        recovery = _clamp(recovery_factor, *RECOVERY_FACTOR_BOUNDS)
        return current_max * (1 + load * recovery * progression_rate)

    def predict_weight_change(self, current_weight: float, weekly_change: float, weeks_ahead: float) -> float:
        _require_finite(current_weight=current_weight, weekly_change=weekly_change, weeks_ahead=weeks_ahead)
        return current_weight + weekly_change * weeks_ahead
