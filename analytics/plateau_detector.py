"""
Plateau Detector

Heuristic stagnation / change-point scorer over a single series.

Three independent signals each add a fixed weight to the score:
1. Slowdown: recent (~30%) slope collapsed below 10% of the positive
   historical (~70%) slope                                       +0.4
2. Change point: latest rolling slope (window 4) deviates from the
   historical slope by more than 2σ of all rolling slopes          +0.3
3. Flatline: CV of the last 4 values < 0.05 over a span > 14 days +0.2

plateau = score >= 0.6, change_point = score >= 0.4.

Every triggered signal records a reason and a recommendation, so the
result is explainable rather than a bare number.
"""

import logging
import statistics
from typing import Any, Iterable, List, Optional

from core.logging import get_engine_logger
from analytics.constants import (
    CHANGE_POINT_THRESHOLD,
    PLATEAU_CHANGE_POINT_SIGMA,
    PLATEAU_CHANGE_POINT_WEIGHT,
    PLATEAU_CV_THRESHOLD,
    PLATEAU_CV_WEIGHT,
    PLATEAU_CV_WINDOW,
    PLATEAU_MIN_POINTS,
    PLATEAU_MIN_SPAN_DAYS,
    PLATEAU_RECENT_FRACTION,
    PLATEAU_ROLLING_WINDOW,
    PLATEAU_SLOWDOWN_RATIO,
    PLATEAU_SLOWDOWN_WEIGHT,
    PLATEAU_THRESHOLD,
)
from analytics.models import PlateauResult
from analytics.series import days_since_start, span_days, to_points
from analytics.trend_analyzer import TrendAnalyzer


INSUFFICIENT_DATA_REASON = "Insufficient data"


class PlateauDetector:
    """Scores a series for stagnation after earlier improvement."""

    def __init__(
        self,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.logger = logger or get_engine_logger(__name__)
        self.trend_analyzer = trend_analyzer or TrendAnalyzer(self.logger)

    def detect(self, series: Iterable[Any], lower_is_better: bool = False) -> PlateauResult:
        """
        Detect a plateau in a {timestamp, value} series.

        Args:
            series: points in any order; non-finite entries are dropped
            lower_is_better: analyse a metric where decreases are progress
                (race times) by mirroring its values

        Returns:
            PlateauResult. Fewer than 5 usable points short-circuits to a
            non-plateau with confidence 0.
        """
        points = to_points(series)
        n = len(points)

        if n < PLATEAU_MIN_POINTS:
            self.logger.debug(f"Plateau detection skipped: {n} points < {PLATEAU_MIN_POINTS}")
            return PlateauResult(
                plateau=False,
                confidence=0.0,
                reasons=[INSUFFICIENT_DATA_REASON],
                recommendations=[],
                change_point=False
            )

        sign = -1.0 if lower_is_better else 1.0
        days = days_since_start(points)
        values = [sign * p.value for p in points]
        pairs = list(zip(days, values))

        score = 0.0
        reasons: List[str] = []
        recommendations: List[str] = []

        # Signal 1: recent vs historical slope
        recent_count = max(2, round(n * PLATEAU_RECENT_FRACTION))
        historical_slope = self.trend_analyzer.linear_regression(pairs[:-recent_count]).slope
        recent_slope = self.trend_analyzer.linear_regression(pairs[-recent_count:]).slope

        if historical_slope > 0 and recent_slope < historical_slope * PLATEAU_SLOWDOWN_RATIO:
            score += PLATEAU_SLOWDOWN_WEIGHT
            share = recent_slope / historical_slope * 100
            reasons.append(
                f"Recent progress rate is {share:.0f}% of the historical rate "
                f"over the last {recent_count} sessions"
            )
            recommendations.append("Vary the training stimulus: change exercise selection, rep ranges or intensity")

        # Signal 2: change point in local slope
        rolling = self.trend_analyzer.rolling_slopes(pairs, PLATEAU_ROLLING_WINDOW)
        if len(rolling) >= 2:
            spread = statistics.pstdev(rolling)
            deviation = abs(rolling[-1] - historical_slope)
            if spread > 0 and deviation > PLATEAU_CHANGE_POINT_SIGMA * spread:
                score += PLATEAU_CHANGE_POINT_WEIGHT
                reasons.append(
                    f"Trend changed abruptly: latest local slope deviates "
                    f"{deviation / spread:.1f} standard deviations from the historical slope"
                )
                recommendations.append("Review what changed recently: load, sleep, nutrition or schedule")

        # Signal 3: flat and long enough to be real
        recent_values = [p.value for p in points[-PLATEAU_CV_WINDOW:]]
        cv = self.trend_analyzer.coefficient_of_variation(recent_values)
        span = span_days(points)
        if cv < PLATEAU_CV_THRESHOLD and span > PLATEAU_MIN_SPAN_DAYS:
            score += PLATEAU_CV_WEIGHT
            reasons.append(
                f"Last {len(recent_values)} results vary by only {cv * 100:.1f}% "
                f"across {span:.0f} days of data"
            )
            recommendations.append("Schedule a deload week, then reintroduce progressive overload")

        score = round(min(score, 1.0), 2)
        plateau = score >= PLATEAU_THRESHOLD
        change_point = score >= CHANGE_POINT_THRESHOLD

        if plateau:
            self.logger.info(f"Plateau detected over {n} points (confidence {score})")

        return PlateauResult(
            plateau=plateau,
            confidence=score,
            reasons=reasons,
            recommendations=recommendations,
            change_point=change_point
        )
