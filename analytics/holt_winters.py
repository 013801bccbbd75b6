"""
Holt-Winters Forecaster

Additive triple exponential smoothing (level, trend, season) for
performance metrics, with:
- Forecast variance growing linearly with horizon and a 95% band
- Directional-accuracy scoring (did we call up/down/flat correctly?)
- Rolling-origin backtesting
- MAPE and z-score normalization utilities

Unlike the single-series detectors this component requires a minimum
history (two full seasons) and raises on shorter input.
"""

import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.config import settings
from core.exceptions import EmptySeriesError, ValidationError
from core.logging import get_engine_logger
from analytics.constants import PROJECTION_Z
from analytics.models import BacktestResult, BacktestWindow, ForecastPoint
from analytics.series import coerce_timestamp, to_finite_float


VALUE_FIELDS = ("value", "metric", "performance")


def _residual_variance(residuals: Sequence[float]) -> float:
    mean_residual = sum(residuals) / len(residuals)
    return sum((r - mean_residual) ** 2 for r in residuals) / max(len(residuals) - 1, 1)


def _sign(delta: float, epsilon: float) -> int:
    if abs(delta) <= epsilon:
        return 0
    return 1 if delta > 0 else -1


class HoltWintersForecaster:

    def __init__(
        self,
        alpha: Optional[float] = None,
        beta: Optional[float] = None,
        gamma: Optional[float] = None,
        season_length: Optional[int] = None,
        min_data_points: Optional[int] = None,
        directional_epsilon: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.logger = logger or get_engine_logger(__name__)
        self.alpha = self._clamp(settings.HOLT_WINTERS_ALPHA if alpha is None else alpha, 0.01, 0.99)
        self.beta = self._clamp(settings.HOLT_WINTERS_BETA if beta is None else beta, 0.01, 0.99)
        self.gamma = self._clamp(settings.HOLT_WINTERS_GAMMA if gamma is None else gamma, 0.01, 0.99)
        self.season_length = max(3, settings.HOLT_WINTERS_SEASON_LENGTH if season_length is None else season_length)
        self.min_data_points = max(
            self.season_length * 2,
            settings.HOLT_WINTERS_MIN_POINTS if min_data_points is None else min_data_points
        )
        self.directional_epsilon = (
            settings.DIRECTIONAL_EPSILON if directional_epsilon is None else directional_epsilon
        )

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def preprocess_series(self, series: Optional[Iterable[Any]]) -> List[float]:
        """
        Clean a history into an ordered list of values.

        Entries may be bare numbers or records carrying value/metric/
        performance plus an optional timestamp/date. Unusable entries are
        dropped. Records are ordered by time only when every entry has a
        timestamp; otherwise input order is kept.
        """
        entries = list(series or [])
        if not entries:
            raise EmptySeriesError("Performance history is required")

        cleaned: List[Tuple[Optional[int], float]] = []
        for entry in entries:
            if entry is None:
                continue
            if isinstance(entry, (int, float)) and not isinstance(entry, bool):
                value = to_finite_float(entry)
                if value is not None:
                    cleaned.append((None, value))
                continue
            if not isinstance(entry, Mapping):
                continue
            raw = next((entry[f] for f in VALUE_FIELDS if entry.get(f) is not None), None)
            value = to_finite_float(raw)
            if value is None:
                continue
            cleaned.append((coerce_timestamp(entry.get("timestamp"), entry.get("date")), value))

        if len(cleaned) < self.min_data_points:
            raise ValidationError(
                f"At least {self.min_data_points} data points are required for forecasting",
                field="series"
            )

        if all(timestamp is not None for timestamp, _ in cleaned):
            cleaned.sort(key=lambda item: item[0])

        return [value for _, value in cleaned]

    # -------------------------------------------------------------------------
    # Forecasting
    # -------------------------------------------------------------------------

    def predict_performance(self, historical_data: Iterable[Any], horizon: int = 30) -> List[ForecastPoint]:
        """Forecast `horizon` steps ahead with 95% intervals."""
        values = self.preprocess_series(historical_data)
        if isinstance(horizon, bool) or not isinstance(horizon, int) or horizon <= 0:
            raise ValidationError("Forecast horizon must be positive", field="horizon")

        level, trend, seasonal = self._initialize_components(values)
        fitted: List[float] = []

        for i, value in enumerate(values):
            season_index = i % self.season_length
            seasonal_factor = seasonal[season_index]

            new_level = self.alpha * (value - seasonal_factor) + (1 - self.alpha) * (level + trend)
            new_trend = self.beta * (new_level - level) + (1 - self.beta) * trend
            seasonal[season_index] = self.gamma * (value - new_level) + (1 - self.gamma) * seasonal_factor

            level, trend = new_level, new_trend
            fitted.append(level + trend + seasonal_factor)

        residuals = [value - fit for value, fit in zip(values, fitted)]
        base_variance = _residual_variance(residuals)

        forecasts: List[ForecastPoint] = []
        for h in range(1, horizon + 1):
            season_index = (len(values) + h - 1) % self.season_length
            forecast = level + h * trend + seasonal[season_index]
            variance = self.calculate_forecast_variance(residuals, h, base_variance)
            margin = PROJECTION_Z * math.sqrt(variance)
            forecasts.append(ForecastPoint(
                horizon=h,
                value=forecast,
                lower_ci=forecast - margin,
                upper_ci=forecast + margin,
                variance=variance
            ))

        self.logger.debug(
            f"Holt-Winters: n={len(values)} horizon={horizon} level={level:.3f} "
            f"trend={trend:.4f} residual_var={base_variance:.4f}"
        )
        return forecasts

    def calculate_forecast_variance(
        self,
        residuals: Sequence[float],
        horizon: int,
        baseline_variance: Optional[float] = None
    ) -> float:
        """Residual variance scaled linearly by horizon (h >= 1)."""
        if not residuals:
            return 0.0
        base = _residual_variance(residuals) if baseline_variance is None else baseline_variance
        return base * max(1, horizon)

    def _initialize_components(self, values: List[float]) -> Tuple[float, float, List[float]]:
        season = self.season_length
        season_count = len(values) // season
        if season_count < 2:
            return values[0], values[1] - values[0], [0.0] * season

        seasons = [values[s * season:(s + 1) * season] for s in range(season_count)]
        averages = [sum(chunk) / season for chunk in seasons]

        initial_level = averages[0]
        initial_trend = (averages[1] - averages[0]) / season
        seasonal = [
            sum(chunk[i] - average for chunk, average in zip(seasons, averages)) / season_count
            for i in range(season)
        ]
        return initial_level, initial_trend, seasonal

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def compute_directional_accuracy(
        self,
        actual_series: Iterable[Any],
        forecast_series: Sequence[ForecastPoint]
    ) -> float:
        """
        Share of steps where the forecast called the direction correctly.

        Step i compares actual[i] - actual[i-1] with forecast[i-1] - actual[i-1];
        moves within ±epsilon count as flat.
        """
        actual = self.preprocess_series(actual_series)
        return self._directional_accuracy(actual, forecast_series)

    def _directional_accuracy(self, actual: Sequence[float], forecasts: Sequence[ForecastPoint]) -> float:
        if not forecasts:
            return 0.0
        comparisons = min(len(actual) - 1, len(forecasts))
        if comparisons <= 0:
            return 0.0

        correct = 0
        for i in range(1, comparisons + 1):
            actual_sign = _sign(actual[i] - actual[i - 1], self.directional_epsilon)
            predicted_sign = _sign(forecasts[i - 1].value - actual[i - 1], self.directional_epsilon)
            if actual_sign == predicted_sign:
                correct += 1
        return correct / comparisons

    def backtest_performance(self, series: Iterable[Any], horizon: int = 7) -> BacktestResult:
        """
        Rolling-origin backtest.

        Each window trains on min_data_points values and is scored on the
        next `horizon` values, anchored at the last training value.
        """
        values = self.preprocess_series(series)
        window_size = self.min_data_points
        history: List[BacktestWindow] = []

        for start in range(0, len(values) - window_size - horizon + 1):
            training = values[start:start + window_size]
            actual = values[start + window_size:start + window_size + horizon]
            forecasts = self.predict_performance(training, horizon)
            accuracy = self._directional_accuracy([training[-1], *actual], forecasts)
            history.append(BacktestWindow(
                start_index=start,
                training=training,
                actual=actual,
                forecasts=forecasts,
                accuracy=accuracy
            ))

        if not history:
            self.logger.warning(
                f"Backtest produced no windows: {len(values)} values < {window_size} + {horizon}"
            )
        mean_accuracy = sum(w.accuracy for w in history) / (len(history) or 1)
        return BacktestResult(accuracy=mean_accuracy, history=history)

    def calculate_mape(self, actual_series: Iterable[Any], forecast_series: Sequence[ForecastPoint]) -> float:
        """Mean absolute percentage error; zero actuals are skipped."""
        actual = self.preprocess_series(actual_series)
        if not forecast_series:
            return math.inf

        errors = [
            abs((actual_value - forecast.value) / actual_value)
            for actual_value, forecast in zip(actual, forecast_series)
            if actual_value != 0
        ]
        return sum(errors) / len(errors) * 100 if errors else math.inf

    def normalize_series(self, series: Iterable[Any]) -> List[float]:
        """Z-scores with the sample std; all zeros when std is 0."""
        values = self.preprocess_series(series)
        mean_value = sum(values) / len(values)
        std_dev = math.sqrt(_residual_variance(values))
        return [0.0 if std_dev == 0 else (v - mean_value) / std_dev for v in values]

    @staticmethod
    def _clamp(value: float, low: float, high: float) -> float:
        return max(low, min(high, value))
