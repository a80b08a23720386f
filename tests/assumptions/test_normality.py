"""
Tests for the Shapiro-Wilk normality tester.

Validates:
    - W and p-value agree with scipy.stats.shapiro across sample sizes
    - n > 5000 is rejected instead of approximated
    - n < 3 and constant groups give an indeterminate row, never an error
    - A single extreme value drives p below 0.05
    - violations() applies the threshold as p <= alpha
"""

import numpy as np
import pytest
from scipy import stats as sp_stats

from pyfactorial.core.exceptions import InsufficientDataError
from pyfactorial.dataset import Group
from pyfactorial.assumptions import shapiro_test
from pyfactorial.assumptions._shapiro import shapiro_wilk


def _group(values, condition='A', time='1'):
    values = np.asarray(values, dtype=np.float64)
    subjects = np.array([f"s{i + 1}" for i in range(len(values))])
    return Group(condition, time, values, subjects)


class TestShapiroWilk:

    @pytest.mark.parametrize("n", [3, 4, 5, 7, 11, 12, 20, 50, 200])
    def test_matches_scipy(self, rng, n):
        x = rng.normal(5.0, 2.0, n)
        w, p = shapiro_wilk(x)
        expected = sp_stats.shapiro(x)
        np.testing.assert_allclose(w, expected.statistic, rtol=1e-4)
        np.testing.assert_allclose(p, expected.pvalue, rtol=1e-3, atol=1e-6)

    def test_skewed_sample_matches_scipy(self, rng):
        x = rng.exponential(1.0, 40)
        w, p = shapiro_wilk(x)
        expected = sp_stats.shapiro(x)
        np.testing.assert_allclose(w, expected.statistic, rtol=1e-4)
        np.testing.assert_allclose(p, expected.pvalue, rtol=1e-3, atol=1e-8)

    def test_location_scale_invariant(self, rng):
        x = rng.normal(size=15)
        w1, p1 = shapiro_wilk(x)
        w2, p2 = shapiro_wilk(100.0 + 3.0 * x)
        assert w1 == pytest.approx(w2, rel=1e-5)
        assert p1 == pytest.approx(p2, rel=1e-4)

    def test_w_bounded(self, rng):
        w, p = shapiro_wilk(rng.normal(size=10))
        assert 0.0 < w <= 1.0
        assert 0.0 <= p <= 1.0

    def test_too_few(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            shapiro_wilk([1.0, 2.0])
        assert exc_info.value.n == 2
        assert exc_info.value.required == 3

    def test_constant(self):
        with pytest.raises(InsufficientDataError, match="identical"):
            shapiro_wilk([4.0, 4.0, 4.0, 4.0])

    def test_too_many(self, rng):
        with pytest.raises(InsufficientDataError, match="at most 5000"):
            shapiro_wilk(rng.normal(size=5001))


class TestShapiroSolver:

    def test_hundredfold_outlier_non_normal(self, rng):
        values = np.append(rng.normal(10.0, 1.0, 9), 1000.0)
        result = shapiro_test(_group(values))
        row = result.rows[0]
        assert row.p_value < 0.05
        assert result.violations(0.05) == (row,)

    def test_small_group_indeterminate(self):
        result = shapiro_test(_group([1.0, 2.0]))
        row = result.rows[0]
        assert row.indeterminate
        assert row.statistic is None
        assert "at least 3" in row.reason
        assert result.indeterminate == (row,)
        assert result.violations() == ()

    def test_constant_group_indeterminate(self):
        result = shapiro_test(_group([2.0, 2.0, 2.0, 2.0]))
        assert result.rows[0].indeterminate
        assert result.warnings

    def test_one_row_per_group(self, divergence_dataset):
        result = shapiro_test(divergence_dataset)
        assert len(result.rows) == 8
        assert [(r.condition, r.time) for r in result.rows][:2] == [('A', '1'), ('A', '2')]
        assert not result.indeterminate

    def test_mixed_groups(self, rng):
        groups = [_group(rng.normal(size=8), time='1'), _group([1.0], time='2')]
        result = shapiro_test(groups)
        assert [r.indeterminate for r in result.rows] == [False, True]

    def test_threshold_inclusive(self, rng):
        result = shapiro_test(_group(rng.normal(size=12)))
        p = result.rows[0].p_value
        assert result.violations(alpha=p) == result.rows

    def test_rows_and_summary(self, rng):
        result = shapiro_test([_group(rng.normal(size=8)), _group([1.0, 2.0], time='2')])
        rows = result.to_rows()
        assert rows[1]['indeterminate'] is True
        assert rows[1]['p_value'] is None
        text = result.summary()
        assert "Shapiro-Wilk" in text
        assert "indeterminate" in text
