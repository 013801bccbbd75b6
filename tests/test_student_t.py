"""
Unit tests for Student-t significance helpers

The Simpson/Lanczos path is cross-checked against scipy.
"""

import math

import pytest
from scipy import stats

from analytics.student_t import (
    TAIL_SUBSTITUTION_THRESHOLD,
    lanczos_log_gamma,
    student_t_cdf,
    student_t_pdf,
    student_t_sf,
    two_tailed_p_value,
)
from core.exceptions import ValidationError


class TestLanczosGamma:

    @pytest.mark.parametrize("z", [0.5, 1, 2, 5, 7.5, 30])
    def test_matches_math_lgamma(self, z):
        assert lanczos_log_gamma(z) == pytest.approx(math.lgamma(z), abs=1e-12)

    def test_log_gamma_stays_finite_for_large_arguments(self):
        """Γ(200) overflows a float; its logarithm does not."""
        assert lanczos_log_gamma(200) == pytest.approx(math.lgamma(200), rel=1e-10)

    def test_log_gamma_domain(self):
        with pytest.raises(ValidationError):
            lanczos_log_gamma(0.1)


class TestStudentT:

    @pytest.mark.parametrize("df", [1, 4, 30])
    def test_pdf_matches_scipy(self, df):
        for t in (0.0, 0.5, 1.7, 4.0):
            assert student_t_pdf(t, df) == pytest.approx(stats.t.pdf(t, df), rel=1e-9)

    def test_pdf_large_df(self):
        assert student_t_pdf(1.0, 500) == pytest.approx(stats.t.pdf(1.0, 500), rel=1e-8)

    def test_cdf_at_zero(self):
        assert student_t_cdf(0.0, 10) == 0.5

    def test_cdf_matches_scipy(self):
        assert student_t_cdf(2.0, 10) == pytest.approx(stats.t.cdf(2.0, 10), abs=1e-8)

    def test_odd_interval_count_is_rounded_up(self):
        assert student_t_cdf(1.0, 5, intervals=51) == pytest.approx(student_t_cdf(1.0, 5, intervals=52))


class TestTwoTailedPValue:

    @pytest.mark.parametrize("t,df", [(0.5, 8), (1.0, 10), (2.228, 10), (3.0, 30), (1.5, 1)])
    def test_simpson_matches_exact(self, t, df):
        simpson = two_tailed_p_value(t, df, method="simpson")
        exact = two_tailed_p_value(t, df, method="exact")
        assert simpson == pytest.approx(exact, abs=1e-5)

    def test_critical_value(self):
        """t = 2.228 with 10 df is the classic 5% two-tailed cut-off."""
        assert two_tailed_p_value(2.228, 10) == pytest.approx(0.05, abs=1e-3)

    def test_symmetric_in_sign(self):
        assert two_tailed_p_value(-2.5, 12) == two_tailed_p_value(2.5, 12)

    def test_zero_statistic(self):
        assert two_tailed_p_value(0.0, 12) == 1.0

    def test_huge_statistic_is_negligible(self):
        p_value = two_tailed_p_value(5000.0, 8)
        assert 0.0 <= p_value < 1e-20

    @pytest.mark.parametrize("df", [1, 8, 30])
    def test_p_value_falls_as_statistic_grows(self, df):
        """A larger |t| never yields a larger p-value, however coarse the grid."""
        statistics = [10, 50, 200, 400, 600, 1000]
        p_values = [two_tailed_p_value(t, df) for t in statistics]

        for earlier, later in zip(p_values, p_values[1:]):
            assert later < earlier

    @pytest.mark.parametrize("t,df", [(4.5, 3), (6.0, 8), (10.0, 8), (25.0, 8), (40.0, 1), (300.0, 2)])
    def test_tail_matches_exact(self, t, df):
        simpson = two_tailed_p_value(t, df, method="simpson")
        exact = two_tailed_p_value(t, df, method="exact")
        assert simpson == pytest.approx(exact, rel=1e-5)

    def test_body_and_tail_paths_agree_at_threshold(self):
        below = student_t_sf(TAIL_SUBSTITUTION_THRESHOLD, 8)
        above = student_t_sf(TAIL_SUBSTITUTION_THRESHOLD + 1e-9, 8)
        assert above == pytest.approx(below, rel=1e-6)
        assert below == pytest.approx(stats.t.sf(TAIL_SUBSTITUTION_THRESHOLD, 8), rel=1e-6)

    def test_cdf_of_negative_argument(self):
        assert student_t_cdf(-6.0, 8) == pytest.approx(stats.t.cdf(-6.0, 8), rel=1e-5)

    def test_degrees_of_freedom_floor(self):
        assert two_tailed_p_value(1.0, 0) == two_tailed_p_value(1.0, 1)

    def test_unknown_method(self):
        with pytest.raises(ValidationError) as exc:
            two_tailed_p_value(1.0, 5, method="bootstrap")
        assert exc.value.field == "method"
