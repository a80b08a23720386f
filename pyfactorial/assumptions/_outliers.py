"""
Boxplot-rule outlier classification.

A value is a mild outlier outside [Q1 - 1.5 IQR, Q3 + 1.5 IQR] and an
extreme outlier outside [Q1 - 3 IQR, Q3 + 3 IQR]. The extreme fence always
contains the mild fence, so every extreme outlier is also mild; each value
is labelled with its most severe class only.
"""

from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyfactorial.assumptions._common import OutlierFences
from pyfactorial.assumptions._quantile import quantile
from pyfactorial.core.exceptions import ValidationError


def compute_fences(
    values: NDArray,
    *,
    condition: str,
    time: str,
    coef_mild: float = 1.5,
    coef_extreme: float = 3.0,
    quantile_type: int = 7,
) -> OutlierFences:
    """Quartiles, IQR and both fence pairs for one group."""
    if not (0.0 < coef_mild <= coef_extreme):
        raise ValidationError(
            f"need 0 < coef_mild <= coef_extreme, got {coef_mild}, {coef_extreme}"
        )

    q1, q3 = quantile(values, [0.25, 0.75], qtype=quantile_type)
    iqr = q3 - q1

    return OutlierFences(
        condition=condition,
        time=time,
        q1=float(q1),
        q3=float(q3),
        iqr=float(iqr),
        mild_lower=float(q1 - coef_mild * iqr),
        mild_upper=float(q3 + coef_mild * iqr),
        extreme_lower=float(q1 - coef_extreme * iqr),
        extreme_upper=float(q3 + coef_extreme * iqr),
    )


def classify(values: NDArray, fences: OutlierFences) -> NDArray[Any]:
    """
    Label each value '', 'mild' or 'extreme'.

    Values exactly on a fence are not outliers.
    """
    severity = np.full(values.shape, '', dtype=object)
    mild = (values < fences.mild_lower) | (values > fences.mild_upper)
    extreme = (values < fences.extreme_lower) | (values > fences.extreme_upper)
    severity[mild] = 'mild'
    severity[extreme] = 'extreme'
    return severity
