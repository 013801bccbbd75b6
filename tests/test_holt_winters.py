"""
Unit tests for HoltWintersForecaster

Tests preprocessing, forecasts with intervals, directional accuracy,
rolling backtests and the error/normalization utilities.
"""

import math
import statistics

import pytest

from analytics.holt_winters import HoltWintersForecaster
from analytics.models import ForecastPoint
from core.exceptions import EmptySeriesError, ValidationError
from fixtures.series_fixtures import make_seasonal_values, make_series


@pytest.fixture
def forecaster():
    return HoltWintersForecaster()


def _points(values):
    return [ForecastPoint(horizon=i + 1, value=v, lower_ci=v, upper_ci=v, variance=0.0) for i, v in enumerate(values)]


class TestConfiguration:

    def test_smoothing_factors_clamped(self):
        forecaster = HoltWintersForecaster(alpha=5, beta=0, gamma=-1)
        assert forecaster.alpha == 0.99
        assert forecaster.beta == 0.01
        assert forecaster.gamma == 0.01

    def test_minimum_history_covers_two_seasons(self):
        forecaster = HoltWintersForecaster(season_length=10, min_data_points=5)
        assert forecaster.min_data_points == 20

    def test_season_length_floor(self):
        assert HoltWintersForecaster(season_length=2).season_length == 3


class TestPreprocess:

    def test_empty_history_raises(self, forecaster):
        with pytest.raises(EmptySeriesError):
            forecaster.preprocess_series([])

    def test_short_history_raises(self, forecaster):
        with pytest.raises(ValidationError) as exc:
            forecaster.preprocess_series(list(range(10)))
        assert "14 data points" in str(exc.value)

    def test_drops_unusable_entries(self, forecaster):
        raw = list(range(14)) + [None, float("nan"), "abc", True, {"note": "rest day"}]
        assert forecaster.preprocess_series(raw) == [float(v) for v in range(14)]

    def test_value_aliases(self, forecaster):
        records = [{"metric": 1}, {"performance": 2}, {"value": 3}] * 5
        assert forecaster.preprocess_series(records)[:3] == [1.0, 2.0, 3.0]

    def test_sorts_when_every_entry_is_timestamped(self, forecaster):
        records = list(reversed(make_series(list(range(14)))))
        assert forecaster.preprocess_series(records) == [float(v) for v in range(14)]

    def test_keeps_order_when_a_timestamp_is_missing(self, forecaster):
        records = list(reversed(make_series(list(range(14)))))
        records.append({"value": 99})
        assert forecaster.preprocess_series(records)[0] == 13.0


class TestPredictPerformance:

    def test_horizon_and_intervals(self, forecaster):
        forecasts = forecaster.predict_performance(make_seasonal_values(weeks=4), horizon=10)

        assert [f.horizon for f in forecasts] == list(range(1, 11))
        for f in forecasts:
            assert f.lower_ci <= f.value <= f.upper_ci
            assert f.upper_ci - f.value == pytest.approx(1.96 * math.sqrt(f.variance))

    def test_variance_grows_with_horizon(self, forecaster):
        forecasts = forecaster.predict_performance(make_seasonal_values(weeks=4), horizon=5)
        base = forecasts[0].variance
        assert base > 0
        for f in forecasts:
            assert f.variance == pytest.approx(base * f.horizon)

    def test_constant_history(self, forecaster):
        forecasts = forecaster.predict_performance([5.0] * 14, horizon=3)
        for f in forecasts:
            assert f.value == pytest.approx(5.0)
            assert f.variance == pytest.approx(0.0)
            assert f.lower_ci == pytest.approx(f.upper_ci)

    def test_upward_trend_continues(self, forecaster):
        forecasts = forecaster.predict_performance(make_seasonal_values(weeks=4, trend=1.0), horizon=14)
        assert forecasts[7].value > forecasts[0].value
        assert forecasts[13].value > forecasts[6].value

    @pytest.mark.parametrize("horizon", [0, -3, 2.5, True])
    def test_invalid_horizon(self, forecaster, horizon):
        with pytest.raises(ValidationError):
            forecaster.predict_performance(make_seasonal_values(), horizon=horizon)


class TestForecastVariance:

    def test_scales_sample_variance(self, forecaster):
        assert forecaster.calculate_forecast_variance([1, -1, 1, -1], 3) == pytest.approx(4.0)

    def test_no_residuals(self, forecaster):
        assert forecaster.calculate_forecast_variance([], 5) == 0.0


class TestDirectionalAccuracy:

    def test_all_directions_right(self, forecaster):
        actual = [float(v) for v in range(15)]
        assert forecaster.compute_directional_accuracy(actual, _points([v + 1 for v in actual[:-1]])) == 1.0

    def test_flat_forecast_against_rising_actuals(self, forecaster):
        actual = [float(v) for v in range(15)]
        assert forecaster.compute_directional_accuracy(actual, _points(actual[:-1])) == 0.0

    def test_moves_within_epsilon_are_flat(self, forecaster):
        actual = [10.0 + (0.1 if i % 2 else 0.0) for i in range(15)]
        assert forecaster.compute_directional_accuracy(actual, _points(actual[:-1])) == 1.0

    def test_no_forecasts(self, forecaster):
        assert forecaster.compute_directional_accuracy(list(range(15)), []) == 0.0


class TestBacktest:

    def test_window_count(self, forecaster):
        result = forecaster.backtest_performance(make_seasonal_values(weeks=5)[:30], horizon=7)

        assert len(result.history) == 30 - 14 - 7 + 1
        assert 0.0 <= result.accuracy <= 1.0
        for window in result.history:
            assert len(window.training) == 14
            assert len(window.actual) == 7
            assert len(window.forecasts) == 7

    def test_flat_series_is_perfectly_called(self, forecaster):
        result = forecaster.backtest_performance([20.0] * 30, horizon=7)
        assert result.accuracy == 1.0

    def test_too_short_for_any_window(self, forecaster, caplog):
        with caplog.at_level("WARNING", logger="analytics"):
            result = forecaster.backtest_performance([20.0] * 14, horizon=7)
        assert result.history == []
        assert result.accuracy == 0.0
        assert "no windows" in caplog.text


class TestUtilities:

    def test_mape(self, forecaster):
        assert forecaster.calculate_mape([100.0] * 14, _points([110.0] * 14)) == pytest.approx(10.0)

    def test_mape_skips_zero_actuals(self, forecaster):
        actual = [0.0, 50.0] * 7
        assert forecaster.calculate_mape(actual, _points([25.0] * 14)) == pytest.approx(50.0)

    def test_mape_without_forecasts(self, forecaster):
        assert forecaster.calculate_mape([100.0] * 14, []) == math.inf

    def test_normalize(self, forecaster):
        normalized = forecaster.normalize_series(list(range(1, 15)))
        assert statistics.mean(normalized) == pytest.approx(0.0, abs=1e-12)
        assert statistics.stdev(normalized) == pytest.approx(1.0)

    def test_normalize_constant(self, forecaster):
        assert forecaster.normalize_series([3.0] * 14) == [0.0] * 14
