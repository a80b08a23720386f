"""
ANOVA solver dispatch.

Public API:
    fit_anova(dataset, ...) -> AnovaSolution
    compare_conditions(anova_result, ...) -> PostHocSolution
"""

import time
import warnings
from typing import Literal

from pyfactorial.core.result import Result
from pyfactorial.core.compute.timing import Timer
from pyfactorial.core.exceptions import UnbalancedDesignWarning, ValidationError
from pyfactorial.core.validation import check_choice, check_probability
from pyfactorial.dataset import Dataset
from pyfactorial.anova._common import (
    CONDITION,
    TIME,
    AnovaParams,
    AnovaTableRow,
    ErrorStratum,
)
from pyfactorial.anova._between import (
    between_subjects_anova,
    cell_statistics,
    within_cell_residual,
)
from pyfactorial.anova._repeated import repeated_measures_anova
from pyfactorial.anova._posthoc import tukey_simple_effects
from pyfactorial.anova.solution import AnovaSolution, PostHocSolution


Correction = Literal['none', 'gg', 'hf', 'auto']
ErrorTerm = Literal['pooled', 'stratified']
Family = Literal['all', 'by_level']
Factor = Literal['Condition', 'Time']

CORRECTIONS = ('none', 'gg', 'hf', 'auto')
ERROR_TERMS = ('pooled', 'stratified')
FAMILIES = ('all', 'by_level')
FACTORS = (CONDITION, TIME)


def fit_anova(
    dataset: Dataset,
    *,
    repeated_measures: bool = False,
    correction: Correction = 'auto',
) -> AnovaSolution:
    """
    Two-way condition x time Analysis of Variance.

    Between mode treats every observation as independent. Repeated mode
    treats time (and condition, when every subject sees every condition)
    as within-subjects factors and tests each effect against its own
    subject stratum.

    Args:
        dataset: Validated Dataset
        repeated_measures: Use the stratified repeated-measures model.
            Default False.
        correction: Sphericity correction reported in p_value_corrected
            for within-subjects effects:
            'none': no correction
            'gg': Greenhouse-Geisser
            'hf': Huynh-Feldt
            'auto': GG if Mauchly p < 0.05, else none (default)

    Returns:
        AnovaSolution with table, cell means, error strata and effect sizes

    Raises:
        ValidationError: dataset is not a Dataset or correction is unknown
        MissingRepeatedMeasureError: repeated_measures=True and a subject
            lacks an expected measurement

    Examples:
        >>> result = fit_anova(dataset)
        >>> print(result.summary())
        >>> result.row('Condition:Time').p_value
        >>> rm = fit_anova(dataset, repeated_measures=True)
        >>> rm.sphericity[0].gg_epsilon
    """
    if not isinstance(dataset, Dataset):
        raise ValidationError(
            f"dataset: expected a Dataset, got {type(dataset).__name__}"
        )
    check_choice(correction, CORRECTIONS, 'correction')

    timer = Timer()
    timer.start()

    a = len(dataset.condition_levels)
    b = len(dataset.time_levels)
    y = dataset.y
    cond_codes = dataset.condition_codes
    time_codes = dataset.time_codes

    with timer.section('cell_means'):
        cell_sizes, cell_means = cell_statistics(y, cond_codes, time_codes, a, b)
        pooled = within_cell_residual(y, cond_codes, time_codes, a, b)

    with timer.section('decomposition'):
        if repeated_measures:
            fit = repeated_measures_anova(
                y,
                dataset.subject_codes,
                cond_codes,
                time_codes,
                subjects=dataset.subjects,
                n_conditions=a,
                n_times=b,
                layout=dataset.layout,
                correction=correction,
            )
            rows, strata, sphericity = fit.rows, fit.strata, fit.sphericity
        else:
            fit = between_subjects_anova(y, cond_codes, time_codes, a, b)
            rows, strata, sphericity = fit.rows, {pooled.name: pooled}, ()

    eta_sq, partial_eta_sq, gen_eta_sq = _effect_sizes(rows, strata, fit.total_ss)

    warning_list = list(dataset.balance_warnings())
    for msg in warning_list:
        warnings.warn(msg, UnbalancedDesignWarning, stacklevel=2)

    timer.stop()

    mode = 'repeated' if repeated_measures else 'between'
    params = AnovaParams(
        table=rows,
        mode=mode,
        layout=dataset.layout,
        n_obs=dataset.n_observations,
        n_subjects=dataset.n_subjects,
        condition_levels=dataset.condition_levels,
        time_levels=dataset.time_levels,
        grand_mean=fit.grand_mean,
        total_ss=fit.total_ss,
        cell_means=cell_means,
        cell_sizes=cell_sizes,
        pooled_error=pooled,
        strata=strata,
        sphericity=sphericity,
        correction=correction if repeated_measures else 'none',
        is_balanced=dataset.is_balanced,
        eta_squared=eta_sq,
        partial_eta_squared=partial_eta_sq,
        generalized_eta_squared=gen_eta_sq,
    )

    result = Result(
        params=params,
        info={
            'mode': mode,
            'layout': dataset.layout,
            'correction': params.correction,
            'n_conditions': a,
            'n_times': b,
        },
        timing=timer.result(),
        warnings=tuple(warning_list),
    )
    return AnovaSolution(_result=result)


def compare_conditions(
    anova_result: AnovaSolution,
    *,
    grouping_factor: Factor = 'Condition',
    conditioning_factor: Factor = 'Time',
    error_term: ErrorTerm = 'pooled',
    family: Family = 'all',
    conf_level: float = 0.95,
) -> PostHocSolution:
    """
    Pairwise simple-effect comparisons, Tukey-adjusted.

    For every level of the conditioning factor, each pair of grouping
    levels (i < j in level order) is compared as mean(j) - mean(i). The
    default compares conditions within each time level.

    Args:
        anova_result: AnovaSolution from fit_anova()
        grouping_factor: Factor whose levels are compared, 'Condition'
            (default) or 'Time'
        conditioning_factor: Factor held fixed, 'Time' (default) or
            'Condition'. Must differ from grouping_factor.
        error_term: Source of the contrast error variance:
            'pooled': within-cell residual of the two-way between-subjects
                model (default)
            'stratified': under repeated measures, the simple-effect error
                of the strata the contrast crosses, with Satterthwaite df
                when two strata are pooled. Identical to 'pooled' in
                between mode.
        family: Tukey family:
            'all': studentized range over every condition x time mean
                (default)
            'by_level': studentized range over the grouping levels within
                one conditioning level
        conf_level: Confidence level for the adjusted intervals. Default 0.95.

    Returns:
        PostHocSolution with contrasts ordered by conditioning level, then
        pair

    Raises:
        ValidationError: Unknown option, or the same factor given twice
        InsufficientDataError: The chosen error term has no df

    Examples:
        >>> fit = fit_anova(dataset)
        >>> contrasts = compare_conditions(fit)
        >>> contrasts.at_time('3')
        >>> by_condition = compare_conditions(
        ...     fit, grouping_factor='Time', conditioning_factor='Condition')
        >>> print(by_condition.summary())
    """
    if not isinstance(anova_result, AnovaSolution):
        raise ValidationError(
            f"anova_result: expected an AnovaSolution, got "
            f"{type(anova_result).__name__}"
        )
    check_choice(grouping_factor, FACTORS, 'grouping_factor')
    check_choice(conditioning_factor, FACTORS, 'conditioning_factor')
    if grouping_factor == conditioning_factor:
        raise ValidationError(
            f"grouping_factor and conditioning_factor must differ, "
            f"both are {grouping_factor!r}"
        )
    check_choice(error_term, ERROR_TERMS, 'error_term')
    check_choice(family, FAMILIES, 'family')
    conf_level = check_probability(conf_level, 'conf_level')

    t0 = time.perf_counter()

    posthoc_params = tukey_simple_effects(
        anova_result.params,
        grouping_factor=grouping_factor,
        conditioning_factor=conditioning_factor,
        error_term=error_term,
        family=family,
        conf_level=conf_level,
    )

    elapsed = time.perf_counter() - t0

    result = Result(
        params=posthoc_params,
        info={
            'method': 'tukey',
            'error_term': error_term,
            'family': family,
            'grouping_factor': grouping_factor,
            'conditioning_factor': conditioning_factor,
            'mode': anova_result.mode,
        },
        timing={'total_seconds': elapsed},
    )
    return PostHocSolution(_result=result)


def _effect_sizes(
    rows: tuple[AnovaTableRow, ...],
    strata: dict[str, ErrorStratum],
    total_ss: float,
) -> tuple[dict[str, float], dict[str, float], dict[str, float]]:
    """
    eta^2, partial eta^2 and generalized eta^2 per effect.

    Generalized eta^2 (Olejnik & Algina 2003) treats every factor as
    manipulated: the denominator adds all error strata, subject strata
    included.
    """
    all_error_ss = sum(e.sum_sq for e in strata.values())

    eta_sq: dict[str, float] = {}
    partial: dict[str, float] = {}
    generalized: dict[str, float] = {}

    for row in rows:
        if row.is_error:
            continue
        ss = row.sum_sq
        err = strata[row.error_term].sum_sq
        eta_sq[row.term] = ss / total_ss if total_ss > 0 else 0.0
        partial[row.term] = ss / (ss + err) if ss + err > 0 else 0.0
        generalized[row.term] = (
            ss / (ss + all_error_ss) if ss + all_error_ss > 0 else 0.0
        )

    return eta_sq, partial, generalized
