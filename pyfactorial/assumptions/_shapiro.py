"""
Shapiro-Wilk test for normality.

scipy.stats.shapiro implements Royston's (1995) algorithm AS R94, the
same one behind R's shapiro.test(). This module adds the sample-size and
constant-data guards so unsupported groups are reported instead of
silently producing a W of 1 or a warning.

Supported sample sizes: 3 <= n <= 5000.
"""

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pyfactorial.core.exceptions import InsufficientDataError

MIN_N = 3
MAX_N = 5000


def shapiro_wilk(x: NDArray) -> tuple[float, float]:
    """
    Compute the Shapiro-Wilk W statistic and its p-value.

    Args:
        x: 1D sample

    Returns:
        (W, p_value)

    Raises:
        InsufficientDataError: n outside [3, 5000] or all values identical
    """
    xs = np.asarray(x, dtype=np.float64)
    n = len(xs)

    if n < MIN_N:
        raise InsufficientDataError(
            f"Shapiro-Wilk needs at least {MIN_N} observations, got {n}",
            n=n, required=MIN_N,
        )
    if n > MAX_N:
        raise InsufficientDataError(
            f"Shapiro-Wilk supports at most {MAX_N} observations, got {n}",
            n=n, required=MIN_N,
        )
    if np.ptp(xs) <= 0.0:
        raise InsufficientDataError(
            "Shapiro-Wilk is undefined when all values are identical",
            n=n, required=MIN_N,
        )

    w, p = sp_stats.shapiro(xs)
    return float(w), float(p)
