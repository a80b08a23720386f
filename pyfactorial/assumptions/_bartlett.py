"""
Bartlett's test for homogeneity of variances.

Tests all groups simultaneously (not pairwise):

    K^2 = [(N - k) ln(s_p^2) - sum (n_i - 1) ln(s_i^2)] / C
    C   = 1 + [sum 1/(n_i - 1) - 1/(N - k)] / (3 (k - 1))

K^2 is referred to a chi-square distribution with k - 1 df. The test is
sensitive to non-normality; that sensitivity is accepted rather than
corrected for, and results should be read alongside the normality checks.
"""

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pyfactorial.assumptions._common import BartlettParams
from pyfactorial.core.exceptions import InsufficientDataError


def bartlett_impl(
    samples: list[NDArray],
    labels: list[str],
) -> BartlettParams:
    """
    Compute Bartlett's K^2 statistic.

    Args:
        samples: One 1D array per group
        labels: Group labels aligned with samples

    Returns:
        BartlettParams with statistic, df, p-value and group variances

    Raises:
        InsufficientDataError: Fewer than 2 groups, a group with n < 2,
            or a group with zero variance
    """
    k = len(samples)
    if k < 2:
        raise InsufficientDataError(
            f"Bartlett's test needs at least 2 groups, got {k}",
            n=k, required=2,
        )

    sizes = np.array([len(s) for s in samples], dtype=np.float64)
    for label, n_i in zip(labels, sizes):
        if n_i < 2:
            raise InsufficientDataError(
                f"Bartlett's test needs at least 2 observations per group; "
                f"group {label} has {int(n_i)}",
                group=label, n=int(n_i), required=2,
            )

    variances = np.array([np.var(s, ddof=1) for s in samples], dtype=np.float64)
    zero = [label for label, v in zip(labels, variances) if v <= 0.0]
    if zero:
        raise InsufficientDataError(
            f"Bartlett's test is undefined for zero-variance groups: {zero}",
            group=zero[0],
        )

    N = float(np.sum(sizes))
    df_within = N - k
    pooled_var = float(np.sum((sizes - 1.0) * variances) / df_within)

    numerator = df_within * np.log(pooled_var) - np.sum((sizes - 1.0) * np.log(variances))
    correction = 1.0 + (np.sum(1.0 / (sizes - 1.0)) - 1.0 / df_within) / (3.0 * (k - 1))
    statistic = float(numerator / correction)
    df = k - 1

    return BartlettParams(
        statistic=statistic,
        df=df,
        p_value=float(sp_stats.chi2.sf(statistic, df)),
        n_groups=k,
        pooled_var=pooled_var,
        group_vars={label: float(v) for label, v in zip(labels, variances)},
    )
