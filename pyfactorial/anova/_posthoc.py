"""
Simple-effect pairwise comparisons with Tukey adjustment.

For every level of the conditioning factor, each pair of grouping-factor
means is compared:

    estimate = m_j - m_i                   (i < j in level order)
    SE       = sqrt(MS_error * (1/n_i + 1/n_j))
    t        = estimate / SE

The default compares conditions within each time level; swapping the two
factors compares time levels within each condition.

Tukey HSD:
    Adjusted p-values and simultaneous intervals come from the studentized
    range distribution (scipy.stats.studentized_range) with q = |t| * sqrt(2).
    The family spans either every condition x time mean or the grouping
    levels within one conditioning level.

Error terms:
    pooled      within-cell residual of the two-way between-subjects model
    stratified  under repeated measures, the simple-effect error of the
                strata the contrast crosses, with Satterthwaite df when
                two strata are pooled
"""

import math

import numpy as np
from scipy import stats as sp_stats

from pyfactorial.core.exceptions import InsufficientDataError
from pyfactorial.anova._common import (
    CONDITION,
    RESIDUALS,
    TIME,
    AnovaParams,
    Contrast,
    ErrorStratum,
    PostHocParams,
)
from pyfactorial.anova._repeated import (
    CONDITION_X_SUBJECT,
    SUBJECT_IN_CONDITION,
    TIME_X_SUBJECT,
)


def error_for_contrasts(
    params: AnovaParams,
    error_term: str,
    grouping_factor: str = CONDITION,
) -> tuple[float, float, str]:
    """
    Mean square and df for grouping-factor contrasts at a fixed level of
    the other factor.

    Returns:
        (mean_sq, df, description)
    """
    pooled = params.pooled_error
    if error_term == 'pooled' or params.mode == 'between':
        return pooled.mean_sq, float(pooled.df), "pooled within-cell residual"

    residual = params.strata[RESIDUALS]

    if grouping_factor == TIME:
        if params.layout == 'between':
            # Same subjects on both sides: the subject stratum cancels
            return (
                residual.mean_sq,
                float(residual.df),
                "Time x Subject(Condition)",
            )
        return _satterthwaite(
            params.strata[TIME_X_SUBJECT],
            residual,
            len(params.condition_levels),
            "Time x Subject + Condition x Time x Subject, Satterthwaite df",
        )

    if params.layout == 'between':
        return _satterthwaite(
            params.strata[SUBJECT_IN_CONDITION],
            residual,
            len(params.time_levels),
            "Subject(Condition) + Time x Subject(Condition), Satterthwaite df",
        )
    return _satterthwaite(
        params.strata[CONDITION_X_SUBJECT],
        residual,
        len(params.time_levels),
        "Condition x Subject + Condition x Time x Subject, Satterthwaite df",
    )


def _satterthwaite(
    subject: ErrorStratum,
    residual: ErrorStratum,
    levels: int,
    label: str,
) -> tuple[float, float, str]:
    """[MS_subject + (levels - 1) MS_residual] / levels with Satterthwaite df."""
    part1 = subject.mean_sq / levels
    part2 = (levels - 1) * residual.mean_sq / levels
    ms = part1 + part2

    denom = 0.0
    if subject.df > 0:
        denom += part1 ** 2 / subject.df
    if residual.df > 0:
        denom += part2 ** 2 / residual.df
    df = ms ** 2 / denom if denom > 0 else float(subject.df + residual.df)

    return ms, df, label


def tukey_simple_effects(
    params: AnovaParams,
    *,
    grouping_factor: str = CONDITION,
    conditioning_factor: str = TIME,
    error_term: str = 'pooled',
    family: str = 'all',
    conf_level: float = 0.95,
) -> PostHocParams:
    """
    Pairwise grouping-factor comparisons within each conditioning level.

    Args:
        params: Fitted ANOVA payload (cell means, sizes and error strata)
        grouping_factor: Factor whose levels are compared, 'Condition'
            or 'Time'
        conditioning_factor: The other factor; one block of contrasts per
            level
        error_term: 'pooled' or 'stratified'
        family: 'all' (k = conditions x times) or 'by_level'
            (k = grouping levels)
        conf_level: Confidence level for the simultaneous intervals

    Returns:
        PostHocParams with contrasts ordered by conditioning level, then pair

    Raises:
        InsufficientDataError: The error term has no degrees of freedom
    """
    mse, df, label = error_for_contrasts(params, error_term, grouping_factor)
    if not df > 0 or not np.isfinite(mse):
        raise InsufficientDataError(
            f"Post-hoc error term ({label}) has no degrees of freedom; "
            f"each cell needs more than one observation",
            required=2,
        )

    # Rows index the grouping factor, columns the conditioning factor
    if grouping_factor == CONDITION:
        means, sizes = params.cell_means, params.cell_sizes
        group_levels, block_levels = params.condition_levels, params.time_levels
    else:
        means, sizes = params.cell_means.T, params.cell_sizes.T
        group_levels, block_levels = params.time_levels, params.condition_levels

    g = len(group_levels)
    k = means.size if family == 'all' else g

    q_crit = float(sp_stats.studentized_range.ppf(conf_level, k, df))
    half_width_factor = q_crit / math.sqrt(2.0)

    contrasts = []

    for c, level in enumerate(block_levels):
        for i in range(g):
            for j in range(i + 1, g):
                diff = float(means[j, c] - means[i, c])
                se = math.sqrt(mse * (1.0 / sizes[i, c] + 1.0 / sizes[j, c]))

                if se > 0:
                    t_ratio = diff / se
                    p_raw = float(2.0 * sp_stats.t.sf(abs(t_ratio), df))
                    p_adj = float(sp_stats.studentized_range.sf(
                        abs(t_ratio) * math.sqrt(2.0), k, df
                    ))
                else:
                    # Zero error variance: any difference is exact
                    t_ratio = 0.0 if diff == 0 else math.copysign(math.inf, diff)
                    p_raw = p_adj = 1.0 if diff == 0 else 0.0

                # Family-wise adjustment never lowers a p-value
                p_adj = min(1.0, max(p_adj, p_raw))

                contrasts.append(Contrast(
                    level=level,
                    group1=group_levels[i],
                    group2=group_levels[j],
                    estimate=diff,
                    se=se,
                    df=df,
                    t_ratio=t_ratio,
                    p_value=p_adj,
                    p_unadjusted=p_raw,
                    ci_lower=diff - half_width_factor * se,
                    ci_upper=diff + half_width_factor * se,
                ))

    return PostHocParams(
        contrasts=tuple(contrasts),
        method="Tukey HSD",
        family=family,
        family_size=k,
        n_comparisons=len(contrasts),
        error_term=error_term,
        error_description=label,
        conf_level=conf_level,
        grouping_factor=grouping_factor,
        conditioning_factor=conditioning_factor,
    )
