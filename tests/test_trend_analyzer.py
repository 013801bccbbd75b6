"""
Unit tests for TrendAnalyzer

Tests regression, smoothing, rolling slopes, variability and the
direction/strength summary. Degenerate input must return sentinels,
never raise.
"""

import math

import pytest

from analytics.trend_analyzer import TrendAnalyzer, classify_trend_strength
from analytics.models import TrendDirection, TrendStrength
from core.exceptions import ValidationError
from fixtures.series_fixtures import make_linear_series, make_series


class TestLinearRegression:
    """Test ordinary least squares."""

    @pytest.mark.parametrize("intercept,slope", [
        (0.0, 2.0),
        (12.0, -2.0),
        (-3.5, 0.25),
        (100.0, 7.0),
    ])
    def test_collinear_points_recover_line(self, trend_analyzer, intercept, slope):
        """Collinear points give the exact line with r2 = 1."""
        points = [(x, intercept + slope * x) for x in range(-2, 8)]

        result = trend_analyzer.linear_regression(points)

        assert result.slope == pytest.approx(slope)
        assert result.intercept == pytest.approx(intercept)
        assert result.r2 == pytest.approx(1.0)
        assert result.standard_error == pytest.approx(0.0, abs=1e-9)
        assert result.sample_size == 10

    def test_noisy_fit(self, trend_analyzer):
        """Hand-computed fit for a small noisy set."""
        result = trend_analyzer.linear_regression([(0, 1), (1, 3), (2, 2), (3, 4)])

        assert result.slope == pytest.approx(0.8)
        assert result.intercept == pytest.approx(1.3)
        assert result.r2 == pytest.approx(0.64)
        assert result.standard_error == pytest.approx(math.sqrt(0.9))

    def test_accepts_mapping_points(self, trend_analyzer):
        result = trend_analyzer.linear_regression([{"x": 1, "y": 2}, {"x": 2, "y": 4}, {"x": 3, "y": 6}])
        assert result.slope == pytest.approx(2.0)

    def test_empty_input_is_degenerate(self, trend_analyzer):
        result = trend_analyzer.linear_regression([])
        assert result.slope == 0.0
        assert result.intercept == 0.0
        assert result.r2 == 0.0
        assert result.sample_size == 0

    def test_single_point_is_degenerate(self, trend_analyzer):
        result = trend_analyzer.linear_regression([(5, 42)])
        assert result.slope == 0.0
        assert result.intercept == 42.0
        assert result.r2 == 0.0
        assert result.standard_error == 0.0

    def test_constant_y_has_zero_r2(self, trend_analyzer):
        """All y equal: SS_tot = 0 so r2 is guarded to 0."""
        result = trend_analyzer.linear_regression([(1, 5), (2, 5), (3, 5), (4, 5)])
        assert result.slope == pytest.approx(0.0)
        assert result.intercept == pytest.approx(5.0)
        assert result.r2 == 0.0

    def test_identical_x_does_not_divide_by_zero(self, trend_analyzer):
        result = trend_analyzer.linear_regression([(3, 1), (3, 2), (3, 3)])
        assert result.slope == 0.0
        assert result.intercept == pytest.approx(2.0)
        assert result.r2 == 0.0

    def test_non_numeric_point_raises(self, trend_analyzer):
        with pytest.raises(ValidationError) as exc:
            trend_analyzer.linear_regression([(1, 2), ("a", 3)])
        assert exc.value.field == "points"

    def test_non_finite_point_raises(self, trend_analyzer):
        with pytest.raises(ValidationError):
            trend_analyzer.linear_regression([(1, 2), (2, float("nan"))])

    def test_value_at(self, trend_analyzer):
        result = trend_analyzer.linear_regression([(0, 1), (1, 3), (2, 5)])
        assert result.value_at(10) == pytest.approx(21.0)


class TestExponentialMovingAverage:
    """Test exponential smoothing."""

    def test_reference_values(self, trend_analyzer):
        assert trend_analyzer.exponential_moving_average([10, 20, 30, 40], 0.5) == [10, 15, 22.5, 31.25]

    def test_alpha_one_is_identity(self, trend_analyzer):
        assert trend_analyzer.exponential_moving_average([3, 1, 4, 1, 5], 1) == [3, 1, 4, 1, 5]

    def test_empty_values(self, trend_analyzer):
        assert trend_analyzer.exponential_moving_average([], 0.3) == []

    @pytest.mark.parametrize("alpha", [0, -0.1, 1.5, float("nan")])
    def test_alpha_out_of_range_raises(self, trend_analyzer, alpha):
        with pytest.raises(ValidationError) as exc:
            trend_analyzer.exponential_moving_average([1, 2, 3], alpha)
        assert exc.value.field == "alpha"
        assert exc.value.error_code == "VALIDATION_ERROR_ALPHA"


class TestRollingSlopes:
    """Test sliding-window slopes."""

    def test_one_slope_per_window(self, trend_analyzer):
        points = [(0, 0), (1, 1), (2, 4), (3, 9)]
        slopes = trend_analyzer.rolling_slopes(points, 2)
        assert slopes == pytest.approx([1.0, 3.0, 5.0])

    def test_window_longer_than_series(self, trend_analyzer):
        assert trend_analyzer.rolling_slopes([(0, 1), (1, 2)], 4) == []

    def test_window_below_two_raises(self, trend_analyzer):
        with pytest.raises(ValidationError):
            trend_analyzer.rolling_slopes([(0, 1), (1, 2)], 1)


class TestCoefficientOfVariation:
    """Test relative variability."""

    def test_known_value(self, trend_analyzer):
        values = [2, 4, 4, 4, 5, 5, 7, 9]
        expected = math.sqrt(32 / 7) / 5
        assert trend_analyzer.coefficient_of_variation(values) == pytest.approx(expected)

    def test_constant_values(self, trend_analyzer):
        assert trend_analyzer.coefficient_of_variation([10, 10, 10]) == 0.0

    def test_zero_mean_is_guarded(self, trend_analyzer):
        assert trend_analyzer.coefficient_of_variation([-1, 1]) == 0.0

    def test_too_few_values(self, trend_analyzer):
        assert trend_analyzer.coefficient_of_variation([]) == 0.0
        assert trend_analyzer.coefficient_of_variation([5]) == 0.0

    def test_negative_mean_gives_positive_cv(self, trend_analyzer):
        assert trend_analyzer.coefficient_of_variation([-2, -4]) == pytest.approx(math.sqrt(2) / 3)


class TestAnalyzeTrend:
    """Test the direction/strength summary."""

    def test_rising_series_is_improving(self, trend_analyzer):
        summary = trend_analyzer.analyze_trend(make_linear_series(10, slope_per_day=2.0))

        assert summary.direction == TrendDirection.IMPROVING
        assert summary.strength == TrendStrength.STRONG
        assert summary.slope == pytest.approx(2.0)
        assert summary.r2 == pytest.approx(1.0)
        assert summary.sample_size == 10

    def test_lower_is_better_flips_direction(self, trend_analyzer):
        series = make_linear_series(10, slope_per_day=2.0)
        summary = trend_analyzer.analyze_trend(series, lower_is_better=True)
        assert summary.direction == TrendDirection.DECLINING

    def test_falling_race_times_are_improving(self, trend_analyzer):
        series = make_linear_series(8, intercept=1500, slope_per_day=-3.0)
        summary = trend_analyzer.analyze_trend(series, lower_is_better=True)
        assert summary.direction == TrendDirection.IMPROVING

    def test_flat_series_is_stable(self, trend_analyzer):
        summary = trend_analyzer.analyze_trend(make_series([7, 7, 7, 7, 7]))
        assert summary.direction == TrendDirection.STABLE
        assert summary.strength == TrendStrength.WEAK

    def test_insufficient_points(self, trend_analyzer):
        summary = trend_analyzer.analyze_trend(make_series([1, 2]))
        assert summary.direction == TrendDirection.INSUFFICIENT
        assert summary.to_dict()["direction"] == "insufficient_data"

    def test_unordered_input_is_sorted(self, trend_analyzer):
        series = list(reversed(make_linear_series(6, slope_per_day=1.5)))
        summary = trend_analyzer.analyze_trend(series)
        assert summary.slope == pytest.approx(1.5)

    def test_uses_injected_logger(self):
        import logging
        logger = logging.getLogger("test.injected")
        assert TrendAnalyzer(logger).logger is logger


class TestClassifyTrendStrength:

    @pytest.mark.parametrize("r2,expected", [
        (0.0, TrendStrength.WEAK),
        (0.05, TrendStrength.WEAK),
        (0.25, TrendStrength.MODERATE),
        (0.81, TrendStrength.STRONG),
        (1.0, TrendStrength.STRONG),
    ])
    def test_bands(self, r2, expected):
        assert classify_trend_strength(r2) == expected
