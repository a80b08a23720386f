"""
Tests for run_analysis() and AnalysisConfig.

Validates:
    - Configuration validation
    - DataFrame, file and Dataset inputs give the same analysis
    - Outlier policies and their recorded exclusions
    - Advisory assumption findings never abort a run
    - Structural problems (schema, missing repeated measures) do
"""

import numpy as np
import pandas as pd
import pytest

from pyfactorial import AnalysisConfig, AnalysisReport, run_analysis
from pyfactorial.core.exceptions import (
    AssumptionWarning,
    MissingRepeatedMeasureError,
    SchemaError,
    ValidationError,
)


@pytest.fixture
def outlier_values(divergence_values):
    values = divergence_values.copy()
    values[0, 2, 0] = 100.0
    return values


class TestConfig:

    def test_defaults(self):
        config = AnalysisConfig()
        assert config.outlier_policy == 'retain'
        assert config.error_term == 'pooled'
        assert config.family == 'all'
        assert config.correction == 'auto'
        assert config.repeated_measures is False

    @pytest.mark.parametrize("kwargs", [
        {'outlier_policy': 'drop'},
        {'error_term': 'subject'},
        {'family': 'pairs'},
        {'correction': 'bonferroni'},
        {'alpha': 0.0},
        {'conf_level': 1.0},
        {'value_col': ''},
        {'time_col': 'subject'},
        {'grouping_factor': 'Time'},
        {'conditioning_factor': 'Subject'},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            AnalysisConfig(**kwargs)


class TestInputs:

    def test_dataframe(self, divergence_dataset):
        report = run_analysis(divergence_dataset.to_dataframe())
        assert isinstance(report, AnalysisReport)
        assert report.dataset.n_observations == 40
        assert report.dataset.condition_levels == ('A', 'B')

    def test_renamed_columns(self, divergence_dataset):
        df = divergence_dataset.to_dataframe().rename(columns={
            'subject': 'id', 'condition': 'group', 'time': 'week', 'value': 'score',
        })
        config = AnalysisConfig(
            subject_col='id', condition_col='group', time_col='week', value_col='score',
        )
        report = run_analysis(df, config)
        assert report.dataset.time_levels == ('1', '2', '3', '4')

    def test_csv_matches_dataset(self, divergence_dataset, tmp_path):
        path = tmp_path / "data.csv"
        divergence_dataset.to_dataframe().to_csv(path, index=False)
        from_file = run_analysis(path)
        direct = run_analysis(divergence_dataset)
        for a, b in zip(from_file.anova.table, direct.anova.table):
            assert a.term == b.term
            np.testing.assert_allclose(a.sum_sq, b.sum_sq, rtol=1e-10)

    def test_missing_column(self, divergence_dataset):
        df = divergence_dataset.to_dataframe().drop(columns=['value'])
        with pytest.raises(SchemaError, match="value"):
            run_analysis(df)

    def test_undeclared_level(self, divergence_dataset):
        config = AnalysisConfig(condition_levels=['A'])
        with pytest.raises(SchemaError):
            run_analysis(divergence_dataset.to_dataframe(), config)


class TestOutlierPolicy:

    def test_retain(self, outlier_values, make_dataset):
        report = run_analysis(make_dataset(outlier_values))
        assert report.excluded == ()
        assert report.dataset.n_observations == 40
        assert any(o.subject_id == 'A1' for o in report.outliers.extreme)
        assert any("Extreme outlier" in w for w in report.warnings)

    def test_exclude_extreme(self, outlier_values, make_dataset):
        config = AnalysisConfig(outlier_policy='exclude_extreme')
        report = run_analysis(make_dataset(outlier_values), config)
        assert ('A1', '3') in [(o.subject_id, o.time) for o in report.excluded]
        assert all(o.severity == 'extreme' for o in report.excluded)
        assert report.dataset.n_observations == 40 - len(report.excluded)
        assert any(w.startswith("Excluded") for w in report.warnings)
        assert not report.anova.is_balanced

    def test_exclusion_breaks_repeated_measures(self, outlier_values, make_dataset):
        config = AnalysisConfig(outlier_policy='exclude_extreme', repeated_measures=True)
        with pytest.raises(MissingRepeatedMeasureError):
            run_analysis(make_dataset(outlier_values), config)


class TestAdvisories:

    def test_assumption_warnings_issued(self, outlier_values, make_dataset):
        with pytest.warns(AssumptionWarning):
            run_analysis(make_dataset(outlier_values))

    def test_bartlett_indeterminate(self, divergence_values, make_dataset):
        values = divergence_values.copy()
        values[0, 1, :] = 5.0
        report = run_analysis(make_dataset(values))
        assert report.homogeneity is None
        assert any("Homogeneity of variances indeterminate" in w for w in report.warnings)
        assert any("Normality indeterminate for A:2" in w for w in report.warnings)
        assert report.anova is not None
        assert report.to_rows()['homogeneity'] == []
        assert "indeterminate" in report.summary()

    def test_posthoc_indeterminate(self, make_dataset):
        values = np.arange(8.0).reshape(2, 4, 1)
        report = run_analysis(make_dataset(values))
        assert report.posthoc is None
        assert any("Post-hoc comparisons indeterminate" in w for w in report.warnings)


class TestReport:

    def test_divergence(self, divergence_dataset):
        report = run_analysis(divergence_dataset)
        assert report.interaction_significant
        assert [c.level for c in report.posthoc.significant()] == ['2', '3', '4']

    def test_repeated_measures(self, divergence_dataset):
        config = AnalysisConfig(repeated_measures=True, error_term='stratified')
        report = run_analysis(divergence_dataset, config)
        assert report.anova.mode == 'repeated'
        assert report.posthoc.error_term == 'stratified'
        assert report.interaction_significant

    def test_identical_conditions(self, identical_dataset):
        report = run_analysis(identical_dataset)
        assert not report.interaction_significant
        assert report.posthoc.significant() == ()

    def test_to_rows(self, divergence_dataset):
        rows = run_analysis(divergence_dataset).to_rows()
        assert set(rows) == {
            'groups', 'outliers', 'normality', 'homogeneity', 'anova', 'posthoc',
        }
        assert len(rows['groups']) == 8
        assert len(rows['normality']) == 8
        assert len(rows['posthoc']) == 4

    def test_summary(self, divergence_dataset):
        report = run_analysis(divergence_dataset)
        text = report.summary()
        assert "Condition x Time interaction is significant" in text
        assert "Two-Way Analysis of Variance" in text
        assert "time = 4:" in text
        assert repr(report).startswith("AnalysisReport(mode='between'")

    def test_timing(self, divergence_dataset):
        timing = run_analysis(divergence_dataset).timing
        for section in ('load', 'outliers', 'normality', 'homogeneity', 'anova', 'posthoc'):
            assert section in timing


class TestCorrectedVerdict:

    @pytest.fixture
    def non_spherical_values(self, rng):
        """Split-plot 2 x 4 x 8 with the last time point far noisier."""
        values = rng.normal(10.0, 1.0, size=(2, 4, 8))
        values[:, 3, :] = rng.normal(10.0, 6.0, size=(2, 8))
        values[1, 1:, :] += 1.0
        return values

    def test_verdict_follows_corrected_p(self, non_spherical_values, make_dataset):
        dataset = make_dataset(non_spherical_values)
        base = run_analysis(
            dataset, AnalysisConfig(repeated_measures=True, correction='gg'),
        )
        row = base.anova.row('Condition:Time')
        assert row.p_value_corrected == row.gg_p_value
        assert row.p_value_corrected != row.p_value

        # alpha between the two p-values: only the corrected one decides
        alpha = (row.p_value + row.p_value_corrected) / 2.0
        report = run_analysis(
            dataset,
            AnalysisConfig(repeated_measures=True, correction='gg', alpha=alpha),
        )
        assert report.interaction_significant == (row.p_value_corrected < alpha)
        assert report.interaction_significant != (row.p_value < alpha)

    def test_between_mode_uses_plain_p(self, divergence_dataset):
        report = run_analysis(divergence_dataset)
        row = report.anova.row('Condition:Time')
        assert row.p_value_corrected == row.p_value
        assert report.interaction_significant == (row.p_value < report.config.alpha)


class TestComparisonDirection:

    def test_time_within_condition(self, divergence_dataset):
        config = AnalysisConfig(grouping_factor='Time', conditioning_factor='Condition')
        report = run_analysis(divergence_dataset, config)
        assert report.posthoc.grouping_factor == 'Time'
        assert [c.level for c in report.posthoc.contrasts] == ['A'] * 6 + ['B'] * 6
        # B jumps by 10 after time 1, A stays flat
        jumps = [c for c in report.posthoc.at_level('B') if c.group1 == '1']
        assert all(c.p_value < 0.05 and c.estimate > 0 for c in jumps)
        assert 'condition' in report.to_rows()['posthoc'][0]
