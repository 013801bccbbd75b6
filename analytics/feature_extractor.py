"""
Feature Extractor

Transforms raw training/performance logs into engineered features:
- Rolling mean / sample std over trailing windows (no look-ahead)
- Rate of change and acceleration per day
- Weekly (ISO-8601) and monthly seasonal means with residuals
- Pairwise Pearson correlation with a two-tailed t-test

validate_series() is the shared gate: every other method runs its input
through it, so all records come back as sorted copies with a numeric
epoch-millisecond timestamp and finite values for the requested keys.
The caller's records are never mutated.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.config import settings
from core.exceptions import EmptySeriesError, MissingValueError, ValidationError
from core.logging import get_engine_logger
from analytics.constants import CORRELATION_R2_FLOOR, DAY_MS, MIN_CORRELATION_SAMPLES
from analytics.models import CorrelationResult
from analytics.series import record_timestamp, to_finite_float
from analytics.student_t import PValueMethod, two_tailed_p_value
from analytics.trend_analyzer import TrendAnalyzer


Record = Dict[str, Any]


class FeatureExtractor:
    """Statistical feature engineering over record sequences."""

    def __init__(
        self,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        windows: Optional[Sequence[int]] = None,
        p_value_method: Optional[PValueMethod] = None,
        integration_intervals: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.logger = logger or get_engine_logger(__name__)
        self.trend_analyzer = trend_analyzer or TrendAnalyzer(self.logger)
        self.windows = list(settings.ROLLING_WINDOWS if windows is None else windows)
        self.p_value_method = settings.P_VALUE_METHOD if p_value_method is None else p_value_method
        self.integration_intervals = (
            settings.T_DIST_INTEGRATION_INTERVALS if integration_intervals is None else integration_intervals
        )

        self._check_windows(self.windows)
        if self.integration_intervals < 2:
            raise ValidationError(
                f"integration_intervals must be >= 2, got {self.integration_intervals}",
                field="integration_intervals"
            )

    # -------------------------------------------------------------------------
    # Validation gate
    # -------------------------------------------------------------------------

    def validate_series(
        self,
        series: Optional[Iterable[Mapping[str, Any]]],
        required_keys: Sequence[str] = ()
    ) -> List[Record]:
        """
        Normalize records into sorted copies.

        Raises:
            EmptySeriesError: no records
            ValidationError: a record has no usable timestamp/date
            MissingValueError: a required key is missing or not finite
        """
        records = list(series or [])
        if not records:
            raise EmptySeriesError("Feature extraction requires non-empty series")

        normalized: List[Record] = []
        for entry in records:
            if not isinstance(entry, Mapping):
                raise ValidationError(f"Entries must be mappings, got {type(entry).__name__}", field="series")

            record = dict(entry)
            timestamp = record_timestamp(entry)
            if timestamp is None:
                raise ValidationError("Entries require numeric timestamp (ms)", field="timestamp")
            record["timestamp"] = timestamp

            for key in required_keys:
                value = to_finite_float(entry.get(key))
                if value is None:
                    raise MissingValueError(key)
                record[key] = value

            normalized.append(record)

        normalized.sort(key=lambda r: r["timestamp"])
        return normalized

    @staticmethod
    def _check_windows(windows: Sequence[int]) -> None:
        if not windows:
            raise ValidationError("At least one rolling window is required", field="windows")
        if any(isinstance(w, bool) or not isinstance(w, int) or w < 1 for w in windows):
            raise ValidationError(f"Rolling windows must be positive integers, got {list(windows)}", field="windows")

    # -------------------------------------------------------------------------
    # Rolling statistics
    # -------------------------------------------------------------------------

    def add_rolling_statistics(
        self,
        series: Iterable[Mapping[str, Any]],
        metric_keys: Sequence[str],
        windows: Optional[Sequence[int]] = None
    ) -> List[Record]:
        """
        Append {key}_ma_{w} and {key}_std_{w} for every metric and window.

        Each window covers the current point and up to w-1 points before it.
        """
        features = self.validate_series(series, metric_keys)
        windows = self.windows if windows is None else list(windows)
        self._check_windows(windows)

        for key in metric_keys:
            values = [record[key] for record in features]
            for window in windows:
                for i, record in enumerate(features):
                    window_values = values[max(0, i - window + 1):i + 1]
                    mean = sum(window_values) / len(window_values)
                    variance = (
                        sum((v - mean) ** 2 for v in window_values)
                        / max(len(window_values) - 1, 1)
                    )
                    record[f"{key}_ma_{window}"] = mean
                    record[f"{key}_std_{window}"] = math.sqrt(variance)

        return features

    # -------------------------------------------------------------------------
    # Rate of change
    # -------------------------------------------------------------------------

    def add_rate_of_change(
        self,
        series: Iterable[Mapping[str, Any]],
        metric_keys: Sequence[str]
    ) -> List[Record]:
        """
        Append {key}_roc (change per day) and {key}_accel (change in roc per day).

        The first record has no predecessor and gets neither column; for the
        second record the missing previous rate counts as 0. Duplicate
        timestamps yield 0 rather than dividing by zero.
        """
        features = self.validate_series(series, metric_keys)

        for i in range(1, len(features)):
            current = features[i]
            previous = features[i - 1]
            delta_days = (current["timestamp"] - previous["timestamp"]) / DAY_MS

            for key in metric_keys:
                rate_key = f"{key}_roc"
                accel_key = f"{key}_accel"
                previous_rate = previous.get(rate_key, 0.0)

                if delta_days > 0:
                    rate = (current[key] - previous[key]) / delta_days
                    current[rate_key] = rate
                    current[accel_key] = (rate - previous_rate) / delta_days
                else:
                    current[rate_key] = 0.0
                    current[accel_key] = 0.0

        return features

    # -------------------------------------------------------------------------
    # Seasonal decomposition
    # -------------------------------------------------------------------------

    def add_seasonal_decomposition(
        self,
        series: Iterable[Mapping[str, Any]],
        metric_key: str
    ) -> List[Record]:
        """
        Append weekly/monthly bucket means and the seasonal residual.

        Weeks follow ISO-8601 (the week holding the year's first Thursday is
        week 1, and the bucket is keyed by ISO year); months are calendar
        months. All bucketing is done in UTC.
        """
        features = self.validate_series(series, [metric_key])

        weekly: Dict[Tuple[int, int], List[float]] = defaultdict(list)
        monthly: Dict[Tuple[int, int], List[float]] = defaultdict(list)
        keys: List[Tuple[Tuple[int, int], Tuple[int, int]]] = []

        for record in features:
            week_key, month_key = self._bucket_keys(record["timestamp"])
            weekly[week_key].append(record[metric_key])
            monthly[month_key].append(record[metric_key])
            keys.append((week_key, month_key))

        weekly_mean = {k: sum(v) / len(v) for k, v in weekly.items()}
        monthly_mean = {k: sum(v) / len(v) for k, v in monthly.items()}

        for record, (week_key, month_key) in zip(features, keys):
            week_value = weekly_mean[week_key]
            month_value = monthly_mean[month_key]
            record[f"{metric_key}_weekly"] = week_value
            record[f"{metric_key}_monthly"] = month_value
            record[f"{metric_key}_seasonal_residual"] = record[metric_key] - (week_value + month_value) / 2

        return features

    @staticmethod
    def _bucket_keys(timestamp: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
        iso_year, iso_week, _ = moment.isocalendar()
        return (iso_year, iso_week), (moment.year, moment.month)

    # -------------------------------------------------------------------------
    # Correlation
    # -------------------------------------------------------------------------

    def correlation_analysis(
        self,
        series: Iterable[Mapping[str, Any]],
        x_key: str,
        y_key: str
    ) -> CorrelationResult:
        """
        Pearson correlation between two columns plus a two-tailed t-test.

        t = r * sqrt((n - 2) / (1 - r²)), with 1 - r² floored so a perfect
        correlation still yields a finite statistic. Zero variance in
        either column gives r = 0 and p = 1.

        slope and r2 describe y across the sorted records (record index as
        x), i.e. how the outcome column trends over time.
        """
        records = self.validate_series(series, [x_key, y_key])
        xs = [record[x_key] for record in records]
        ys = [record[y_key] for record in records]
        n = len(records)

        regression = self.trend_analyzer.linear_regression(enumerate(ys))

        mean_x = sum(xs) / n
        mean_y = sum(ys) / n
        numerator = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
        denominator_x = math.sqrt(sum((x - mean_x) ** 2 for x in xs))
        denominator_y = math.sqrt(sum((y - mean_y) ** 2 for y in ys))

        if denominator_x > 0 and denominator_y > 0:
            correlation = max(-1.0, min(1.0, numerator / (denominator_x * denominator_y)))
        else:
            correlation = 0.0

        degrees_of_freedom = max(0, n - 2)
        if n < MIN_CORRELATION_SAMPLES:
            self.logger.warning(
                f"Correlation {x_key}~{y_key} has only {n} samples; significance not testable"
            )
            t_statistic = 0.0
            p_value = 1.0
        else:
            t_statistic = correlation * math.sqrt(
                degrees_of_freedom / max(1 - correlation ** 2, CORRELATION_R2_FLOOR)
            )
            p_value = two_tailed_p_value(
                t_statistic,
                degrees_of_freedom,
                method=self.p_value_method,
                intervals=self.integration_intervals
            )

        self.logger.debug(
            f"Correlation {x_key}~{y_key}: r={correlation:.3f} t={t_statistic:.3f} "
            f"p={p_value:.4f} n={n}"
        )

        return CorrelationResult(
            correlation=correlation,
            p_value=p_value,
            t_statistic=t_statistic,
            degrees_of_freedom=degrees_of_freedom,
            slope=regression.slope,
            r2=regression.r2,
            sample_size=n
        )
