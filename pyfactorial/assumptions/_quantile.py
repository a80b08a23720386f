"""
Interpolated sample quantiles.

Implements the continuous Hyndman & Fan (1996) definitions (types 4-9),
as R's quantile() does. Type 7 is the classic order-statistic
interpolation used by boxplot fences and is the default everywhere.

Reference:
    Hyndman, R.J. and Fan, Y. (1996) "Sample Quantiles in Statistical
    Packages", The American Statistician, 50(4), 361-365.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyfactorial.core.exceptions import ValidationError

# Plotting-position constants (a, b): p(k) = (k - a) / (n + 1 - a - b)
_PLOTTING_POSITIONS = {
    4: (0.0, 1.0),
    5: (0.5, 0.5),
    6: (0.0, 0.0),
    7: (1.0, 1.0),
    8: (1.0 / 3.0, 1.0 / 3.0),
    9: (3.0 / 8.0, 3.0 / 8.0),
}

# R fuzz factor: 4 * machine epsilon
_FUZZ = 4.0 * np.finfo(np.float64).eps


def quantile(x: ArrayLike, probs: ArrayLike, qtype: int = 7) -> NDArray:
    """
    Compute sample quantiles matching R's quantile().

    Parameters
    ----------
    x : array-like
        1D sample with no NaN values (need not be sorted).
    probs : array-like
        Probabilities in [0, 1].
    qtype : int
        Continuous quantile type 4-9. Default 7.

    Returns
    -------
    NDArray
        One quantile per probability.
    """
    if qtype not in _PLOTTING_POSITIONS:
        raise ValidationError(f"Quantile type must be 4-9, got {qtype}")

    xs = np.sort(np.asarray(x, dtype=np.float64))
    probs = np.atleast_1d(np.asarray(probs, dtype=np.float64))
    if np.any((probs < 0.0) | (probs > 1.0)):
        raise ValidationError(f"probs must lie in [0, 1], got {probs.tolist()}")

    n = len(xs)
    if n == 0:
        return np.full(len(probs), np.nan)
    if n == 1:
        return np.full(len(probs), xs[0])

    a, b = _PLOTTING_POSITIONS[qtype]
    result = np.empty(len(probs), dtype=np.float64)

    for i, p in enumerate(probs):
        nppm = a + p * (n + 1.0 - a - b)
        j = int(math.floor(nppm + _FUZZ))
        h = nppm - j
        if abs(h) < _FUZZ:
            h = 0.0

        # nppm is 1-indexed: j maps to xs[j - 1]
        if j < 1:
            result[i] = xs[0]
        elif j >= n:
            result[i] = xs[n - 1]
        else:
            result[i] = (1.0 - h) * xs[j - 1] + h * xs[j]

    return result
