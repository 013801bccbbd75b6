"""
Trend Analyzer

Leaf statistics used by every other engine component:
- Ordinary least squares regression with r² and residual standard error
- Exponential smoothing
- Rolling-window slopes (local trend shape for change-point logic)
- Coefficient of variation
- Trend direction/strength summary for a time series

Degenerate input (too few points, zero variance) never raises; it
returns a well-defined sentinel so callers can keep going.
"""

import logging
import math
import statistics
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.exceptions import ValidationError
from core.logging import get_engine_logger
from analytics.constants import (
    TREND_MIN_POINTS,
    TREND_STABLE_R2,
    TREND_STRENGTH_MODERATE,
    TREND_STRENGTH_STRONG,
)
from analytics.models import (
    RegressionResult,
    TrendDirection,
    TrendStrength,
    TrendSummary,
)
from analytics.series import days_since_start, to_points


def classify_trend_strength(r2: float) -> TrendStrength:
    """Classify trend strength by |r| = sqrt(r²)."""
    r = math.sqrt(max(0.0, r2))
    if r < TREND_STRENGTH_MODERATE:
        return TrendStrength.WEAK
    elif r < TREND_STRENGTH_STRONG:
        return TrendStrength.MODERATE
    else:
        return TrendStrength.STRONG


class TrendAnalyzer:
    """Regression and smoothing primitives over numeric sequences."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_engine_logger(__name__)

    # -------------------------------------------------------------------------
    # Regression
    # -------------------------------------------------------------------------

    def linear_regression(self, points: Iterable[Any]) -> RegressionResult:
        """
        Simple linear regression: y = slope * x + intercept

        Args:
            points: (x, y) pairs or mappings with "x" and "y"

        Returns:
            RegressionResult. With fewer than 2 points, or when every x is
            identical, slope is 0 and r2 is 0.
        """
        xs, ys = self._unzip(points)
        n = len(xs)

        if n < 2:
            return RegressionResult(
                slope=0.0,
                intercept=ys[0] if ys else 0.0,
                r2=0.0,
                standard_error=0.0,
                sample_size=n
            )

        x_mean = sum(xs) / n
        y_mean = sum(ys) / n

        numerator = sum((xi - x_mean) * (yi - y_mean) for xi, yi in zip(xs, ys))
        denominator = sum((xi - x_mean) ** 2 for xi in xs)
        ss_tot = sum((yi - y_mean) ** 2 for yi in ys)

        if denominator == 0:
            # All observations share one x; the best we can say is the mean
            std_error = math.sqrt(ss_tot / (n - 2)) if n > 2 else 0.0
            return RegressionResult(
                slope=0.0,
                intercept=y_mean,
                r2=0.0,
                standard_error=std_error,
                sample_size=n
            )

        slope = numerator / denominator
        intercept = y_mean - slope * x_mean

        ss_res = sum((yi - (slope * xi + intercept)) ** 2 for xi, yi in zip(xs, ys))
        r2 = 1 - (ss_res / ss_tot) if ss_tot > 0 else 0.0
        r2 = max(0.0, min(1.0, r2))

        std_error = math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0

        return RegressionResult(
            slope=slope,
            intercept=intercept,
            r2=r2,
            standard_error=std_error,
            sample_size=n
        )

    def rolling_slopes(self, points: Sequence[Any], window_size: int) -> List[float]:
        """One regression slope per sliding window of `window_size` points."""
        if window_size < 2:
            raise ValidationError("Rolling window must contain at least 2 points", field="window_size")

        pairs = list(points)
        if len(pairs) < window_size:
            return []

        return [
            self.linear_regression(pairs[start:start + window_size]).slope
            for start in range(len(pairs) - window_size + 1)
        ]

    # -------------------------------------------------------------------------
    # Smoothing / dispersion
    # -------------------------------------------------------------------------

    def exponential_moving_average(self, values: Sequence[float], alpha: float) -> List[float]:
        """ema[0] = values[0]; ema[i] = alpha*values[i] + (1-alpha)*ema[i-1]"""
        if not isinstance(alpha, (int, float)) or isinstance(alpha, bool) or not (0 < alpha <= 1):
            raise ValidationError(f"Smoothing factor alpha must be in (0, 1], got {alpha}", field="alpha")

        ema: List[float] = []
        for value in values:
            if not ema:
                ema.append(float(value))
            else:
                ema.append(alpha * value + (1 - alpha) * ema[-1])
        return ema

    def coefficient_of_variation(self, values: Sequence[float]) -> float:
        """
        Sample standard deviation relative to |mean|.

        Returns 0 for fewer than 2 values or a zero mean.
        """
        data = [float(v) for v in values]
        if len(data) < 2:
            return 0.0
        mean_value = statistics.mean(data)
        if mean_value == 0:
            return 0.0
        return statistics.stdev(data) / abs(mean_value)

    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------

    def analyze_trend(self, series: Iterable[Any], lower_is_better: bool = False) -> TrendSummary:
        """
        Direction and strength of a time series' trend.

        Slope is per day. For metrics where a decrease is progress (race
        times, resting HR) pass lower_is_better=True.
        """
        points = to_points(series)
        n = len(points)

        if n < TREND_MIN_POINTS:
            return TrendSummary(
                direction=TrendDirection.INSUFFICIENT,
                strength=TrendStrength.WEAK,
                slope=0.0,
                r2=0.0,
                sample_size=n
            )

        days = days_since_start(points)
        regression = self.linear_regression(zip(days, [p.value for p in points]))
        strength = classify_trend_strength(regression.r2)

        if regression.slope == 0 or regression.r2 < TREND_STABLE_R2:
            direction = TrendDirection.STABLE
        elif (regression.slope > 0) != lower_is_better:
            direction = TrendDirection.IMPROVING
        else:
            direction = TrendDirection.DECLINING

        self.logger.debug(
            f"Trend over {n} points: slope={regression.slope:.4f}/day "
            f"r2={regression.r2:.3f} -> {direction.value}"
        )

        return TrendSummary(
            direction=direction,
            strength=strength,
            slope=regression.slope,
            r2=regression.r2,
            sample_size=n
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _unzip(points: Iterable[Any]) -> Tuple[List[float], List[float]]:
        xs: List[float] = []
        ys: List[float] = []
        for point in points:
            try:
                x, y = (point.get("x"), point.get("y")) if isinstance(point, Mapping) else point
                x, y = float(x), float(y)
            except (TypeError, ValueError):
                raise ValidationError(f"Regression point requires numeric x and y, got {point!r}", field="points")
            if not (math.isfinite(x) and math.isfinite(y)):
                raise ValidationError(f"Regression point requires finite x and y, got {point!r}", field="points")
            xs.append(x)
            ys.append(y)
        return xs, ys
