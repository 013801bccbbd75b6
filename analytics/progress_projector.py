"""
Progress Projector

Forward extrapolation of a series with a 95% normal-approximation band:
one linear regression over the full history (x = days since the first
point), then `steps` future points spaced `interval_days` apart after the
last observation. Band half-width is 1.96 × residual standard error.
"""

import logging
from typing import Any, Iterable, List, Optional

from core.config import settings
from core.exceptions import ValidationError
from core.logging import get_engine_logger
from analytics.constants import DAY_MS, PROJECTION_Z
from analytics.models import Projection, TimeSeriesPoint
from analytics.series import days_since_start, to_points
from analytics.trend_analyzer import TrendAnalyzer


class ProgressProjector:

    def __init__(
        self,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.logger = logger or get_engine_logger(__name__)
        self.trend_analyzer = trend_analyzer or TrendAnalyzer(self.logger)

    def project(
        self,
        series: Iterable[Any],
        steps: Optional[int] = None,
        interval_days: Optional[float] = None
    ) -> Projection:
        """
        Project a series forward.

        With fewer than 2 usable points the projection echoes the input
        unchanged (baseline == upper == lower) with zero slope, intercept
        and error.
        """
        steps = settings.PROJECTION_STEPS if steps is None else steps
        interval_days = settings.PROJECTION_INTERVAL_DAYS if interval_days is None else interval_days
        if steps < 0:
            raise ValidationError(f"steps must be >= 0, got {steps}", field="steps")
        if interval_days <= 0:
            raise ValidationError(f"interval_days must be positive, got {interval_days}", field="interval_days")

        points = to_points(series)

        if len(points) < 2:
            self.logger.warning(f"Projection degenerated: {len(points)} usable points")
            return Projection(
                baseline=list(points),
                upper=list(points),
                lower=list(points),
                slope=0.0,
                intercept=0.0,
                r2=0.0,
                standard_error=0.0
            )

        days = days_since_start(points)
        regression = self.trend_analyzer.linear_regression(zip(days, [p.value for p in points]))
        margin = PROJECTION_Z * regression.standard_error

        baseline: List[TimeSeriesPoint] = []
        upper: List[TimeSeriesPoint] = []
        lower: List[TimeSeriesPoint] = []
        last_day = days[-1]
        last_timestamp = points[-1].timestamp

        for step in range(1, steps + 1):
            offset_days = step * interval_days
            timestamp = last_timestamp + int(round(offset_days * DAY_MS))
            value = regression.value_at(last_day + offset_days)
            baseline.append(TimeSeriesPoint(timestamp=timestamp, value=value))
            upper.append(TimeSeriesPoint(timestamp=timestamp, value=value + margin))
            lower.append(TimeSeriesPoint(timestamp=timestamp, value=value - margin))

        return Projection(
            baseline=baseline,
            upper=upper,
            lower=lower,
            slope=regression.slope,
            intercept=regression.intercept,
            r2=regression.r2,
            standard_error=regression.standard_error
        )
