"""
End-to-end analysis of a condition x time experiment.

Stages run strictly in order:

    Dataset -> outlier screen -> normality -> homogeneity -> ANOVA -> post-hoc

Assumption checks are advisory: their findings travel as report warnings
next to the ANOVA they qualify. Only structural problems (schema errors,
missing repeated measurements, invalid configuration) abort a run.
"""

import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Sequence, Union, TYPE_CHECKING

import numpy as np

from pyfactorial.core.compute.timing import Timer
from pyfactorial.core.exceptions import (
    AssumptionWarning,
    InsufficientDataError,
    ValidationError,
)
from pyfactorial.core.validation import check_choice, check_probability
from pyfactorial.dataset import Dataset
from pyfactorial.assumptions import (
    BartlettSolution,
    NormalitySolution,
    OutlierSolution,
    bartlett_test,
    detect_outliers,
    shapiro_test,
)
from pyfactorial.assumptions._common import OutlierRecord
from pyfactorial.anova import (
    AnovaSolution,
    PostHocSolution,
    compare_conditions,
    fit_anova,
)
from pyfactorial.anova._common import INTERACTION
from pyfactorial.anova.solvers import CORRECTIONS, ERROR_TERMS, FACTORS, FAMILIES

if TYPE_CHECKING:
    import pandas as pd

logger = logging.getLogger(__name__)


OutlierPolicy = Literal['retain', 'exclude_extreme', 'exclude_all']
OUTLIER_POLICIES = ('retain', 'exclude_extreme', 'exclude_all')

DataSource = Union['pd.DataFrame', str, Path, Dataset]


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Explicit configuration for one analysis run.

    Attributes:
        subject_col: Subject identifier column
        condition_col: Condition label column
        time_col: Time label column
        value_col: Numeric outcome column
        condition_levels: Declared condition levels, in order. Labels
            outside this set are a SchemaError. None: infer from the data.
        time_levels: Declared time levels, in order. None: infer.
        repeated_measures: Fit the stratified repeated-measures model
        outlier_policy: 'retain' (default), 'exclude_extreme' or
            'exclude_all'
        alpha: Threshold for flagging assumption violations and for the
            interaction verdict
        conf_level: Confidence level for the post-hoc intervals
        error_term: Post-hoc error source, 'pooled' or 'stratified'
        grouping_factor: Post-hoc factor whose levels are compared,
            'Condition' (default) or 'Time'
        conditioning_factor: Post-hoc factor held fixed, 'Time' (default)
            or 'Condition'
        family: Tukey family, 'all' or 'by_level'
        correction: Sphericity correction, 'none', 'gg', 'hf' or 'auto'
    """
    subject_col: str = 'subject'
    condition_col: str = 'condition'
    time_col: str = 'time'
    value_col: str = 'value'
    condition_levels: Sequence[Any] | None = None
    time_levels: Sequence[Any] | None = None
    repeated_measures: bool = False
    outlier_policy: OutlierPolicy = 'retain'
    alpha: float = 0.05
    conf_level: float = 0.95
    grouping_factor: str = 'Condition'
    conditioning_factor: str = 'Time'
    error_term: str = 'pooled'
    family: str = 'all'
    correction: str = 'auto'

    def __post_init__(self):
        for name in ('subject_col', 'condition_col', 'time_col', 'value_col'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValidationError(f"{name} must be a non-empty string, got {value!r}")
        cols = (self.subject_col, self.condition_col, self.time_col, self.value_col)
        if len(set(cols)) != len(cols):
            raise ValidationError(f"Column names must be distinct, got {cols}")
        check_choice(self.outlier_policy, OUTLIER_POLICIES, 'outlier_policy')
        check_choice(self.grouping_factor, FACTORS, 'grouping_factor')
        check_choice(self.conditioning_factor, FACTORS, 'conditioning_factor')
        if self.grouping_factor == self.conditioning_factor:
            raise ValidationError(
                f"grouping_factor and conditioning_factor must differ, "
                f"both are {self.grouping_factor!r}"
            )
        check_choice(self.error_term, ERROR_TERMS, 'error_term')
        check_choice(self.family, FAMILIES, 'family')
        check_choice(self.correction, CORRECTIONS, 'correction')
        check_probability(self.alpha, 'alpha')
        check_probability(self.conf_level, 'conf_level')


@dataclass(frozen=True)
class AnalysisReport:
    """
    Everything one run produced, stage by stage.

    homogeneity is None when Bartlett's test could not be computed;
    posthoc is None when the contrast error term had no degrees of freedom.
    Both cases are explained in warnings.
    """
    config: AnalysisConfig
    dataset: Dataset
    excluded: tuple[OutlierRecord, ...]
    outliers: OutlierSolution
    normality: NormalitySolution
    homogeneity: BartlettSolution | None
    anova: AnovaSolution
    posthoc: PostHocSolution | None
    warnings: tuple[str, ...] = ()
    timing: dict[str, float] = field(default_factory=dict)

    @property
    def interaction_significant(self) -> bool:
        p = self.anova.row(INTERACTION).p_value_corrected
        return p is not None and p < self.config.alpha

    def to_rows(self) -> dict[str, list[dict[str, Any]]]:
        """Flat tables for every stage, keyed by stage name."""
        return {
            'groups': self.dataset.group_summary(),
            'outliers': self.outliers.to_rows(),
            'normality': self.normality.to_rows(),
            'homogeneity': self.homogeneity.to_rows() if self.homogeneity else [],
            'anova': self.anova.to_rows(),
            'posthoc': self.posthoc.to_rows() if self.posthoc else [],
        }

    def summary(self) -> str:
        sections = [
            "Condition x Time Analysis",
            "=" * 88,
            repr(self.dataset),
        ]
        if self.excluded:
            sections.append(
                f"Excluded {len(self.excluded)} outlier(s) "
                f"(policy: {self.config.outlier_policy})"
            )
        sections += ["", self.outliers.summary(), "", self.normality.summary(), ""]
        if self.homogeneity is not None:
            sections.append(self.homogeneity.summary())
        else:
            sections.append("Bartlett Test of Homogeneity of Variances: indeterminate")
        sections += ["", self.anova.summary(), ""]

        verdict = "significant" if self.interaction_significant else "not significant"
        sections.append(
            f"Condition x Time interaction is {verdict} at alpha = {self.config.alpha}"
        )
        if self.posthoc is not None:
            sections += ["", self.posthoc.summary()]

        if self.warnings:
            sections += ["", "Warnings:"]
            sections += [f"  - {w}" for w in self.warnings]

        return "\n".join(sections)

    def __repr__(self) -> str:
        return (
            f"AnalysisReport(mode={self.anova.mode!r}, "
            f"n={self.dataset.n_observations}, warnings={len(self.warnings)})"
        )


def load_dataset(data: DataSource, config: AnalysisConfig) -> Dataset:
    """Build the Dataset from a DataFrame, a CSV/TSV path, or pass one through."""
    if isinstance(data, Dataset):
        return data

    columns = dict(
        subject_col=config.subject_col,
        condition_col=config.condition_col,
        time_col=config.time_col,
        value_col=config.value_col,
        condition_levels=config.condition_levels,
        time_levels=config.time_levels,
    )
    if isinstance(data, (str, Path)):
        return Dataset.from_file(data, **columns)
    return Dataset.from_dataframe(data, **columns)


def run_analysis(
    data: DataSource,
    config: AnalysisConfig | None = None,
) -> AnalysisReport:
    """
    Run the full analysis sequence.

    Args:
        data: Long-format pandas DataFrame, path to a CSV/TSV file, or a
            Dataset
        config: AnalysisConfig. Default: AnalysisConfig().

    Returns:
        AnalysisReport with every stage's result and all advisory warnings

    Raises:
        SchemaError: Malformed input table
        MissingRepeatedMeasureError: Repeated measures requested and a
            subject lacks an expected measurement
        ValidationError: Invalid configuration

    Examples:
        >>> report = run_analysis(df, AnalysisConfig(repeated_measures=True))
        >>> print(report.summary())
        >>> report.posthoc.at_time('3')
    """
    config = config if config is not None else AnalysisConfig()
    timer = Timer()
    timer.start()
    advisories: list[str] = []

    with timer.section('load'):
        dataset = load_dataset(data, config)
    logger.info(f"Loaded {dataset!r}")

    # Outlier screen on the data as loaded
    with timer.section('outliers'):
        outliers = detect_outliers(dataset)
        dataset, excluded = _apply_outlier_policy(dataset, outliers, config.outlier_policy)
    logger.debug(
        f"Outlier screen: {len(outliers.mild)} mild, {len(outliers.extreme)} extreme"
    )
    advisories.extend(outliers.warnings)
    if excluded:
        msg = (
            f"Excluded {len(excluded)} outlier(s) under "
            f"outlier_policy={config.outlier_policy!r}"
        )
        advisories.append(msg)
        logger.info(msg)

    with timer.section('normality'):
        normality = shapiro_test(dataset)
    advisories.extend(normality.warnings)
    for row in normality.violations(config.alpha):
        advisories.append(
            f"Normality violated for {row.condition}:{row.time} "
            f"(Shapiro-Wilk W = {row.statistic:.4f}, p = {row.p_value:.4g})"
        )
    logger.info(
        f"Normality: {len(normality.violations(config.alpha))} violation(s), "
        f"{len(normality.indeterminate)} indeterminate"
    )

    with timer.section('homogeneity'):
        homogeneity = _homogeneity(dataset, advisories)
    if homogeneity is not None and homogeneity.p_value <= config.alpha:
        advisories.append(
            f"Variances differ across groups (Bartlett K^2 = "
            f"{homogeneity.statistic:.4f}, df = {homogeneity.df}, "
            f"p = {homogeneity.p_value:.4g})"
        )

    for msg in advisories:
        warnings.warn(msg, AssumptionWarning, stacklevel=2)

    with timer.section('anova'):
        anova = fit_anova(
            dataset,
            repeated_measures=config.repeated_measures,
            correction=config.correction,
        )
    advisories.extend(anova.warnings)
    logger.info(
        f"ANOVA ({anova.mode}): interaction p = "
        f"{anova.row(INTERACTION).p_value_corrected} (correction: {anova.correction})"
    )

    with timer.section('posthoc'):
        try:
            posthoc = compare_conditions(
                anova,
                grouping_factor=config.grouping_factor,
                conditioning_factor=config.conditioning_factor,
                error_term=config.error_term,
                family=config.family,
                conf_level=config.conf_level,
            )
        except InsufficientDataError as e:
            posthoc = None
            advisories.append(f"Post-hoc comparisons indeterminate: {e}")
    if posthoc is not None:
        logger.debug(f"Post-hoc: {len(posthoc.contrasts)} contrasts")

    timer.stop()
    logger.info(f"Analysis finished with {len(advisories)} warning(s)")

    return AnalysisReport(
        config=config,
        dataset=dataset,
        excluded=excluded,
        outliers=outliers,
        normality=normality,
        homogeneity=homogeneity,
        anova=anova,
        posthoc=posthoc,
        warnings=tuple(advisories),
        timing=timer.result(),
    )


def _apply_outlier_policy(
    dataset: Dataset,
    outliers: OutlierSolution,
    policy: str,
) -> tuple[Dataset, tuple[OutlierRecord, ...]]:
    if policy == 'retain':
        return dataset, ()

    drop = outliers.extreme if policy == 'exclude_extreme' else outliers.outliers
    if not drop:
        return dataset, ()

    keys = {(o.subject_id, o.condition, o.time) for o in drop}
    mask = np.array([
        (obs.subject_id, obs.condition, obs.time) in keys
        for obs in dataset.observations
    ])
    return dataset.exclude(mask), tuple(drop)


def _homogeneity(dataset: Dataset, advisories: list[str]) -> BartlettSolution | None:
    try:
        return bartlett_test(dataset)
    except InsufficientDataError as e:
        advisories.append(f"Homogeneity of variances indeterminate: {e}")
        logger.info(f"Bartlett test skipped: {e}")
        return None
