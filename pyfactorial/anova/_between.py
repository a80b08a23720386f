"""
Between-subjects two-way ANOVA.

Decomposition from grand, marginal and cell means:

    SS_C   = sum_i n_i. (m_i. - m)^2
    SS_T   = sum_j n_.j (m_.j - m)^2
    SS_CT  = sum_ij n_ij (m_ij - m)^2 - SS_C - SS_T
    SS_res = sum (y - m_ij)^2                      (within-cell)

With equal cell sizes the four terms partition SS_total exactly. With
unequal sizes the main effects are no longer orthogonal; the interaction
absorbs the difference so the partition still holds, but the split
between the three effects depends on the weighting.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pyfactorial.anova._common import (
    CONDITION,
    INTERACTION,
    RESIDUALS,
    TIME,
    AnovaTableRow,
    ErrorStratum,
)


@dataclass(frozen=True)
class BetweenDecomposition:
    rows: tuple[AnovaTableRow, ...]
    residual: ErrorStratum
    grand_mean: float
    total_ss: float


def f_test(
    ss: float,
    df: int,
    ss_error: float,
    df_error: int,
) -> tuple[float | None, float | None]:
    """F statistic and upper-tail p-value, or (None, None) when undefined."""
    if df <= 0 or df_error <= 0 or ss_error <= 0:
        return None, None

    ms = ss / df
    ms_error = ss_error / df_error
    if ms_error == 0:
        return None, None

    f_val = float(ms / ms_error)
    p_val = float(sp_stats.f.sf(f_val, df, df_error))
    return f_val, p_val


def clip_ss(ss: float, scale: float) -> float:
    """Zero out negative sums of squares at rounding level."""
    if ss < 0.0 and ss > -1e-10 * max(scale, 1.0):
        return 0.0
    return float(ss)


def effect_row(
    term: str,
    ss: float,
    df: int,
    error: ErrorStratum,
) -> AnovaTableRow:
    f_val, p_val = f_test(ss, df, error.sum_sq, error.df)
    return AnovaTableRow(
        term=term,
        df=df,
        sum_sq=ss,
        mean_sq=ss / df if df > 0 else float('nan'),
        f_value=f_val,
        p_value=p_val,
        error_term=error.name,
        p_value_corrected=p_val,
    )


def error_row(error: ErrorStratum) -> AnovaTableRow:
    return AnovaTableRow(
        term=error.name,
        df=error.df,
        sum_sq=error.sum_sq,
        mean_sq=error.mean_sq,
        f_value=None,
        p_value=None,
        error_term=None,
    )


def make_stratum(name: str, ss: float, df: int) -> ErrorStratum:
    return ErrorStratum(
        name=name,
        sum_sq=ss,
        df=df,
        mean_sq=ss / df if df > 0 else float('nan'),
    )


def cell_statistics(
    y: NDArray,
    cond_codes: NDArray,
    time_codes: NDArray,
    a: int,
    b: int,
) -> tuple[NDArray, NDArray]:
    """(a, b) cell sizes and cell means."""
    sizes = np.zeros((a, b), dtype=np.intp)
    sums = np.zeros((a, b), dtype=np.float64)
    np.add.at(sizes, (cond_codes, time_codes), 1)
    np.add.at(sums, (cond_codes, time_codes), y)
    return sizes, sums / sizes


def within_cell_residual(
    y: NDArray,
    cond_codes: NDArray,
    time_codes: NDArray,
    a: int,
    b: int,
) -> ErrorStratum:
    """Pooled within-cell residual of the two-way between-subjects model."""
    sizes, means = cell_statistics(y, cond_codes, time_codes, a, b)
    resid = y - means[cond_codes, time_codes]
    return make_stratum(RESIDUALS, float(resid @ resid), int(len(y) - a * b))


def between_subjects_anova(
    y: NDArray,
    cond_codes: NDArray,
    time_codes: NDArray,
    a: int,
    b: int,
) -> BetweenDecomposition:
    """
    Two-way fixed-effects decomposition.

    Args:
        y: 1D response
        cond_codes: condition level index per observation (0..a-1)
        time_codes: time level index per observation (0..b-1)
        a: number of condition levels
        b: number of time levels

    Returns:
        BetweenDecomposition with Condition, Time, Condition:Time and
        Residuals rows
    """
    grand = float(np.mean(y))
    total_ss = float(np.sum((y - grand) ** 2))

    sizes, means = cell_statistics(y, cond_codes, time_codes, a, b)

    n_cond = sizes.sum(axis=1)
    n_time = sizes.sum(axis=0)
    m_cond = (sizes * means).sum(axis=1) / n_cond
    m_time = (sizes * means).sum(axis=0) / n_time

    ss_c = float(np.sum(n_cond * (m_cond - grand) ** 2))
    ss_t = float(np.sum(n_time * (m_time - grand) ** 2))
    ss_cells = float(np.sum(sizes * (means - grand) ** 2))
    ss_ct = clip_ss(ss_cells - ss_c - ss_t, total_ss)

    # N == a*b leaves no residual df; F is then undefined for every effect
    residual = within_cell_residual(y, cond_codes, time_codes, a, b)

    rows = (
        effect_row(CONDITION, ss_c, a - 1, residual),
        effect_row(TIME, ss_t, b - 1, residual),
        effect_row(INTERACTION, ss_ct, (a - 1) * (b - 1), residual),
        error_row(residual),
    )

    return BetweenDecomposition(
        rows=rows,
        residual=residual,
        grand_mean=grand,
        total_ss=total_ss,
    )
