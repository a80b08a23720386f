"""
Repeated-measures two-way ANOVA.

Long-format input, reshaped to wide arrays. Two layouts:

    split-plot     condition between subjects, time within:
                   Condition on Subject(Condition); Time and Condition:Time
                   on Time x Subject(Condition)
    fully within   condition and time both within subjects:
                   each effect on its own effect x Subject stratum

Sphericity is tested per within-subjects effect via Mauchly's test on the
orthonormal contrasts that span that effect.

Corrections:
    - Greenhouse-Geisser: conservative, always <= 1
    - Huynh-Feldt: less conservative, can exceed 1 (capped at 1.0)
    - 'auto': use GG when Mauchly p < 0.05, otherwise uncorrected
"""

from dataclasses import dataclass, replace

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pyfactorial.core.exceptions import MissingRepeatedMeasureError, NumericalError
from pyfactorial.anova._common import (
    CONDITION,
    INTERACTION,
    RESIDUALS,
    TIME,
    AnovaTableRow,
    ErrorStratum,
    SphericitySummary,
)
from pyfactorial.anova._between import (
    clip_ss,
    effect_row,
    error_row,
    make_stratum,
)


SUBJECT = 'Subject'
SUBJECT_IN_CONDITION = 'Subject(Condition)'
CONDITION_X_SUBJECT = 'Condition:Subject'
TIME_X_SUBJECT = 'Time:Subject'

SPHERICITY_ALPHA = 0.05


@dataclass(frozen=True)
class RepeatedDecomposition:
    rows: tuple[AnovaTableRow, ...]
    strata: dict[str, ErrorStratum]
    sphericity: tuple[SphericitySummary, ...]
    grand_mean: float
    total_ss: float


def repeated_measures_anova(
    y: NDArray,
    subject_codes: NDArray,
    cond_codes: NDArray,
    time_codes: NDArray,
    *,
    subjects: tuple[str, ...],
    n_conditions: int,
    n_times: int,
    layout: str,
    correction: str = 'auto',
) -> RepeatedDecomposition:
    """
    Compute the stratified repeated-measures decomposition.

    Args:
        y: 1D response (long format)
        subject_codes: subject index per observation
        cond_codes: condition level index per observation
        time_codes: time level index per observation
        subjects: subject identifiers, indexed by subject_codes
        n_conditions: number of condition levels
        n_times: number of time levels
        layout: 'between' (split-plot) or 'within' (fully crossed)
        correction: 'none', 'gg', 'hf', or 'auto'

    Returns:
        RepeatedDecomposition with table rows, error strata and sphericity

    Raises:
        MissingRepeatedMeasureError: layout is 'mixed', or a subject lacks
            an expected measurement
    """
    if layout == 'mixed':
        raise MissingRepeatedMeasureError(
            "Repeated measures need each subject under exactly one condition "
            "or under every condition; some subjects appear under a subset"
        )

    n = len(subjects)
    a, b = n_conditions, n_times

    if layout == 'between':
        # Y[s, j], one condition per subject
        Y = _reshape(y, (subject_codes, time_codes), (n, b), subjects)
        groups = np.zeros(n, dtype=np.intp)
        groups[subject_codes] = cond_codes
        decomposition = _split_plot(Y, groups, a)
    else:
        Y = _reshape(y, (subject_codes, cond_codes, time_codes), (n, a, b), subjects)
        decomposition = _fully_within(Y)

    return _apply_correction(decomposition, correction)


def _reshape(
    y: NDArray,
    index: tuple[NDArray, ...],
    shape: tuple[int, ...],
    subjects: tuple[str, ...],
) -> NDArray:
    """Scatter long-format values into a dense array; every slot exactly once."""
    counts = np.zeros(shape, dtype=np.intp)
    np.add.at(counts, index, 1)

    incomplete = np.flatnonzero(
        (counts != 1).reshape(shape[0], -1).any(axis=1)
    )
    if len(incomplete):
        missing = tuple(subjects[s] for s in incomplete)
        shown = ", ".join(missing[:10])
        more = f" (and {len(missing) - 10} more)" if len(missing) > 10 else ""
        raise MissingRepeatedMeasureError(
            f"{len(missing)} subject(s) lack one or more expected repeated "
            f"measurements: {shown}{more}. Each subject needs exactly one "
            f"observation per time point.",
            subjects=missing,
        )

    Y = np.empty(shape, dtype=np.float64)
    Y[index] = y
    return Y


def _split_plot(Y: NDArray, groups: NDArray, a: int) -> RepeatedDecomposition:
    """Condition between subjects, time within. Y is (subjects, times)."""
    n, b = Y.shape
    grand = float(Y.mean())
    total_ss = float(np.sum((Y - grand) ** 2))

    n_per = np.bincount(groups, minlength=a)
    subj_means = Y.mean(axis=1)
    cond_means = np.bincount(groups, weights=subj_means, minlength=a) / n_per
    time_means = Y.mean(axis=0)
    cell_means = np.vstack([Y[groups == i].mean(axis=0) for i in range(a)])

    ss_subjects = float(b * np.sum((subj_means - grand) ** 2))
    ss_c = float(b * np.sum(n_per * (cond_means - grand) ** 2))
    ss_s_c = clip_ss(ss_subjects - ss_c, total_ss)
    ss_t = float(n * np.sum((time_means - grand) ** 2))
    ss_cells = float(np.sum(n_per[:, None] * (cell_means - grand) ** 2))
    ss_ct = clip_ss(ss_cells - ss_c - ss_t, total_ss)

    resid = (
        Y - subj_means[:, None] - cell_means[groups] + cond_means[groups][:, None]
    )
    ss_res = float(np.sum(resid ** 2))

    e_subj = make_stratum(SUBJECT_IN_CONDITION, ss_s_c, n - a)
    e_res = make_stratum(RESIDUALS, ss_res, (n - a) * (b - 1))

    # Time and Condition:Time share the pooled within-condition covariance
    C_b = helmert_contrasts(b)
    W, p_val, gg, hf = mauchly_test(Y @ C_b, groups)
    sphericity = (
        SphericitySummary(TIME, W, p_val, gg, hf),
        SphericitySummary(INTERACTION, W, p_val, gg, hf),
    )

    rows = (
        effect_row(CONDITION, ss_c, a - 1, e_subj),
        error_row(e_subj),
        effect_row(TIME, ss_t, b - 1, e_res),
        effect_row(INTERACTION, ss_ct, (a - 1) * (b - 1), e_res),
        error_row(e_res),
    )

    return RepeatedDecomposition(
        rows=rows,
        strata={e_subj.name: e_subj, e_res.name: e_res},
        sphericity=sphericity,
        grand_mean=grand,
        total_ss=total_ss,
    )


def _fully_within(Y: NDArray) -> RepeatedDecomposition:
    """Condition and time both within subjects. Y is (subjects, conditions, times)."""
    n, a, b = Y.shape
    g = float(Y.mean())
    total_ss = float(np.sum((Y - g) ** 2))

    m_s = Y.mean(axis=(1, 2))
    m_c = Y.mean(axis=(0, 2))
    m_t = Y.mean(axis=(0, 1))
    m_sc = Y.mean(axis=2)
    m_st = Y.mean(axis=1)
    m_ct = Y.mean(axis=0)

    ss_s = float(a * b * np.sum((m_s - g) ** 2))
    ss_c = float(n * b * np.sum((m_c - g) ** 2))
    ss_t = float(n * a * np.sum((m_t - g) ** 2))
    ss_cs = float(b * np.sum((m_sc - m_s[:, None] - m_c[None, :] + g) ** 2))
    ss_ts = float(a * np.sum((m_st - m_s[:, None] - m_t[None, :] + g) ** 2))
    ss_ct = float(n * np.sum((m_ct - m_c[:, None] - m_t[None, :] + g) ** 2))

    resid = (
        Y
        - m_sc[:, :, None] - m_st[:, None, :] - m_ct[None, :, :]
        + m_s[:, None, None] + m_c[None, :, None] + m_t[None, None, :]
        - g
    )
    ss_res = float(np.sum(resid ** 2))

    e_s = make_stratum(SUBJECT, ss_s, n - 1)
    e_cs = make_stratum(CONDITION_X_SUBJECT, ss_cs, (a - 1) * (n - 1))
    e_ts = make_stratum(TIME_X_SUBJECT, ss_ts, (b - 1) * (n - 1))
    e_res = make_stratum(RESIDUALS, ss_res, (a - 1) * (b - 1) * (n - 1))

    # Rows of the flattened (a*b) layout run condition-major
    flat = Y.reshape(n, a * b)
    C_a, C_b = helmert_contrasts(a), helmert_contrasts(b)
    contrasts = {
        CONDITION: np.kron(C_a, np.full((b, 1), 1.0 / np.sqrt(b))),
        TIME: np.kron(np.full((a, 1), 1.0 / np.sqrt(a)), C_b),
        INTERACTION: np.kron(C_a, C_b),
    }
    sphericity = tuple(
        SphericitySummary(effect, *mauchly_test(flat @ M))
        for effect, M in contrasts.items()
    )

    rows = (
        error_row(e_s),
        effect_row(CONDITION, ss_c, a - 1, e_cs),
        error_row(e_cs),
        effect_row(TIME, ss_t, b - 1, e_ts),
        error_row(e_ts),
        effect_row(INTERACTION, ss_ct, (a - 1) * (b - 1), e_res),
        error_row(e_res),
    )

    return RepeatedDecomposition(
        rows=rows,
        strata={e.name: e for e in (e_s, e_cs, e_ts, e_res)},
        sphericity=sphericity,
        grand_mean=g,
        total_ss=total_ss,
    )


def _apply_correction(
    decomposition: RepeatedDecomposition,
    correction: str,
) -> RepeatedDecomposition:
    """Attach GG/HF p-values and the selected corrected p-value to each within effect."""
    by_effect = {s.effect: s for s in decomposition.sphericity}
    strata = decomposition.strata

    rows = []
    for row in decomposition.rows:
        sph = by_effect.get(row.term)
        if sph is None or row.f_value is None:
            rows.append(row)
            continue

        df_error = strata[row.error_term].df
        gg_p = float(sp_stats.f.sf(
            row.f_value, sph.gg_epsilon * row.df, sph.gg_epsilon * df_error
        ))
        hf_p = float(sp_stats.f.sf(
            row.f_value, sph.hf_epsilon * row.df, sph.hf_epsilon * df_error
        ))

        if correction == 'gg':
            selected = gg_p
        elif correction == 'hf':
            selected = hf_p
        elif correction == 'auto' and sph.p_value < SPHERICITY_ALPHA:
            selected = gg_p
        else:
            selected = row.p_value

        rows.append(replace(
            row, gg_p_value=gg_p, hf_p_value=hf_p, p_value_corrected=selected,
        ))

    return replace(decomposition, rows=tuple(rows))


def mauchly_test(
    Z: NDArray,
    groups: NDArray | None = None,
) -> tuple[float, float, float, float]:
    """
    Mauchly's test of sphericity.

    Tests whether the covariance matrix of the orthonormalized contrast
    variables is proportional to the identity matrix. With groups, the
    covariance is pooled within groups (split-plot designs).

    Args:
        Z: (n, p) contrast scores, subjects x orthonormal contrasts
        groups: optional between-subjects group index per subject

    Returns:
        (W, p_value, gg_epsilon, hf_epsilon)
    """
    n, p = Z.shape
    if p == 1:
        # A single contrast is trivially spherical
        return 1.0, 1.0, 1.0, 1.0

    if groups is None:
        groups = np.zeros(n, dtype=np.intp)
    n_groups = int(groups.max()) + 1
    nu = n - n_groups
    if nu <= 0:
        return float('nan'), float('nan'), 1.0, 1.0

    group_means = np.vstack([Z[groups == k].mean(axis=0) for k in range(n_groups)])
    centered = Z - group_means[groups]
    S = centered.T @ centered / nu
    if not np.all(np.isfinite(S)):
        raise NumericalError(
            "Contrast covariance is not finite; rescale the outcome before fitting"
        )

    trace_S = np.trace(S)
    mean_eigenvalue = trace_S / p

    if mean_eigenvalue <= 0:
        return 0.0, 0.0, 1.0 / p, 1.0 / p

    W = np.linalg.det(S) / (mean_eigenvalue ** p)
    W = max(0.0, min(1.0, W))

    # Chi-squared approximation, df = p(p+1)/2 - 1
    f = 1.0 - (2.0 * p * p + p + 2.0) / (6.0 * p * nu)
    df_chi = p * (p + 1) // 2 - 1

    if W > 0 and df_chi > 0:
        chi_sq = -f * nu * np.log(W)
        p_value = float(sp_stats.chi2.sf(chi_sq, df_chi))
    else:
        p_value = 0.0

    gg_eps = _greenhouse_geisser_epsilon(S, p)
    hf_eps = _huynh_feldt_epsilon(gg_eps, p, nu)

    return float(W), p_value, gg_eps, hf_eps


def helmert_contrasts(k: int) -> NDArray:
    """
    Generate (k, k-1) orthonormal Helmert contrast matrix.

    Column j compares level j+1 with the mean of levels 0..j.
    """
    C = np.zeros((k, k - 1), dtype=np.float64)

    for j in range(k - 1):
        C[:j + 1, j] = -1.0 / (j + 1)
        C[j + 1, j] = 1.0
        C[:, j] /= np.sqrt(np.sum(C[:, j] ** 2))

    return C


def _greenhouse_geisser_epsilon(S: NDArray, p: int) -> float:
    """
    Greenhouse-Geisser epsilon.

    epsilon = trace(S)^2 / (p * trace(S @ S)), bounded to [1/p, 1].
    """
    trace_S = np.trace(S)
    trace_S2 = np.trace(S @ S)

    if trace_S2 == 0:
        return 1.0 / p

    eps = (trace_S ** 2) / (p * trace_S2)
    return float(max(1.0 / p, min(1.0, eps)))


def _huynh_feldt_epsilon(gg_eps: float, p: int, nu: int) -> float:
    """
    Huynh-Feldt epsilon with Lecoutre's correction for grouped designs.

    epsilon_HF = ((nu + 1) * p * gg_eps - 2) / (p * (nu - p * gg_eps))

    nu is the error df of the covariance estimate (n - 1 for one group,
    n - g for g groups). Bounded to [gg_eps, 1].
    """
    numerator = (nu + 1.0) * p * gg_eps - 2.0
    denominator = p * (nu - p * gg_eps)

    if denominator <= 0:
        return 1.0

    hf_eps = numerator / denominator
    return float(max(gg_eps, min(1.0, hf_eps)))
