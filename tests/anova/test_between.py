"""
Tests for the between-subjects two-way ANOVA.

Validates:
    - Hand-computed 2 x 2 decomposition (SS, df, F, p)
    - SS partition: Condition + Time + Condition:Time + Residuals = total
    - Divergence scenario: significant interaction
    - Identical conditions: Condition and interaction F ~ 0, p ~ 1
    - Invariance under swapping condition labels
    - Unbalanced designs warn but still fit
    - Effect sizes, rows, summary
"""

import warnings

import numpy as np
import pytest
from scipy import stats as sp_stats

from pyfactorial.core.exceptions import UnbalancedDesignWarning, ValidationError
from pyfactorial.anova import fit_anova


def _rows(result):
    return {row.term: row for row in result.table}


class TestHandComputed:
    """Cells A1 [1, 3], A2 [5, 7], B1 [2, 4], B2 [10, 12]."""

    def test_sums_of_squares(self, tiny_dataset):
        rows = _rows(fit_anova(tiny_dataset))
        assert rows['Condition'].sum_sq == pytest.approx(18.0)
        assert rows['Time'].sum_sq == pytest.approx(72.0)
        assert rows['Condition:Time'].sum_sq == pytest.approx(8.0)
        assert rows['Residuals'].sum_sq == pytest.approx(8.0)

    def test_degrees_of_freedom(self, tiny_dataset):
        rows = _rows(fit_anova(tiny_dataset))
        assert [rows[t].df for t in ('Condition', 'Time', 'Condition:Time', 'Residuals')] == [1, 1, 1, 4]

    def test_f_and_p(self, tiny_dataset):
        rows = _rows(fit_anova(tiny_dataset))
        for term, f_expected in [('Condition', 9.0), ('Time', 36.0), ('Condition:Time', 4.0)]:
            assert rows[term].f_value == pytest.approx(f_expected)
            assert rows[term].p_value == pytest.approx(sp_stats.f.sf(f_expected, 1, 4))
            assert rows[term].error_term == 'Residuals'

    def test_residual_row(self, tiny_dataset):
        res = _rows(fit_anova(tiny_dataset))['Residuals']
        assert res.mean_sq == pytest.approx(2.0)
        assert res.f_value is None
        assert res.p_value is None
        assert res.is_error

    def test_cell_means(self, tiny_dataset):
        result = fit_anova(tiny_dataset)
        np.testing.assert_allclose(result.cell_means, [[2.0, 6.0], [3.0, 11.0]])
        np.testing.assert_array_equal(result.cell_sizes, [[2, 2], [2, 2]])
        assert result.grand_mean == pytest.approx(5.5)
        assert result.total_ss == pytest.approx(106.0)


class TestPartition:

    def test_balanced_partition(self, divergence_dataset):
        result = fit_anova(divergence_dataset)
        total = sum(row.sum_sq for row in result.table)
        np.testing.assert_allclose(total, result.total_ss, rtol=1e-6)

    def test_random_partition(self, rng, make_dataset):
        result = fit_anova(make_dataset(rng.normal(size=(3, 5, 4))))
        np.testing.assert_allclose(
            sum(row.sum_sq for row in result.table), result.total_ss, rtol=1e-6,
        )

    def test_non_negative(self, identical_dataset, divergence_dataset):
        for ds in (identical_dataset, divergence_dataset):
            assert all(row.sum_sq >= 0.0 for row in fit_anova(ds).table)

    def test_pooled_error_is_residual(self, divergence_dataset):
        result = fit_anova(divergence_dataset)
        assert result.pooled_error.df == 40 - 8
        assert result.pooled_error.sum_sq == pytest.approx(_rows(result)['Residuals'].sum_sq)
        assert list(result.strata) == ['Residuals']


class TestScenarios:

    def test_divergence_interaction(self, divergence_dataset):
        rows = _rows(fit_anova(divergence_dataset))
        assert rows['Condition:Time'].p_value < 0.05
        assert rows['Condition'].p_value < 0.05

    def test_identical_conditions(self, identical_dataset):
        rows = _rows(fit_anova(identical_dataset))
        for term in ('Condition', 'Condition:Time'):
            assert rows[term].f_value == pytest.approx(0.0, abs=1e-8)
            assert rows[term].p_value == pytest.approx(1.0, abs=1e-6)

    def test_label_swap_invariance(self, divergence_values, make_dataset):
        original = fit_anova(make_dataset(divergence_values))
        swapped = fit_anova(make_dataset(divergence_values, condition_levels=['B', 'A']))
        for a, b in zip(original.effects, swapped.effects):
            assert a.term == b.term
            assert a.f_value == pytest.approx(b.f_value, rel=1e-10)
            assert a.p_value == pytest.approx(b.p_value, rel=1e-8)
        np.testing.assert_allclose(original.cell_means[::-1], swapped.cell_means)


class TestUnbalanced:

    def test_warns_and_fits(self, tiny_dataset):
        mask = np.zeros(tiny_dataset.n_observations, dtype=bool)
        mask[0] = True
        smaller = tiny_dataset.exclude(mask)
        with pytest.warns(UnbalancedDesignWarning):
            result = fit_anova(smaller)
        assert not result.is_balanced
        assert result.warnings
        assert _rows(result)['Residuals'].df == 3
        np.testing.assert_allclose(
            sum(row.sum_sq for row in result.table), result.total_ss, rtol=1e-6,
        )

    def test_balanced_no_warning(self, tiny_dataset):
        with warnings.catch_warnings():
            warnings.simplefilter("error", UnbalancedDesignWarning)
            result = fit_anova(tiny_dataset)
        assert result.warnings == ()


class TestEdgeCases:

    def test_single_observation_cells(self, make_dataset):
        result = fit_anova(make_dataset(np.arange(4.0).reshape(2, 2, 1)))
        rows = _rows(result)
        assert rows['Residuals'].df == 0
        assert rows['Condition'].f_value is None
        assert rows['Condition'].p_value is None

    def test_not_a_dataset(self):
        with pytest.raises(ValidationError, match="Dataset"):
            fit_anova([1.0, 2.0])

    def test_bad_correction(self, tiny_dataset):
        with pytest.raises(ValidationError, match="correction"):
            fit_anova(tiny_dataset, correction='bonferroni')


class TestEffectSizes:

    def test_eta_squared(self, tiny_dataset):
        result = fit_anova(tiny_dataset)
        assert result.eta_squared['Condition'] == pytest.approx(18.0 / 106.0)
        assert result.partial_eta_squared['Time'] == pytest.approx(72.0 / 80.0)

    def test_generalized_equals_partial_between(self, divergence_dataset):
        result = fit_anova(divergence_dataset)
        for term, value in result.partial_eta_squared.items():
            assert result.generalized_eta_squared[term] == pytest.approx(value)


class TestOutput:

    def test_to_rows(self, tiny_dataset):
        rows = fit_anova(tiny_dataset).to_rows()
        assert [r['term'] for r in rows] == ['Condition', 'Time', 'Condition:Time', 'Residuals']
        assert rows[0]['eta_squared'] == pytest.approx(18.0 / 106.0)
        assert rows[-1]['f_value'] is None

    def test_to_dataframe(self, tiny_dataset):
        df = fit_anova(tiny_dataset).to_dataframe()
        assert df.shape[0] == 4
        assert 'p_value' in df.columns

    def test_summary(self, tiny_dataset):
        result = fit_anova(tiny_dataset)
        text = result.summary()
        assert "Two-Way Analysis of Variance" in text
        assert "Condition:Time" in text
        assert "Mauchly" not in text
        assert repr(result).startswith("AnovaSolution(mode='between'")

    def test_row_lookup(self, tiny_dataset):
        result = fit_anova(tiny_dataset)
        assert result.row('Time').df == 1
        with pytest.raises(KeyError):
            result.row('Block')

    def test_timing_and_info(self, tiny_dataset):
        result = fit_anova(tiny_dataset)
        assert result.info['mode'] == 'between'
        assert 'decomposition' in result.timing
