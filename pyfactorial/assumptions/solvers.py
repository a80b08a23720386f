"""
Assumption-check dispatch.

Public API:
    detect_outliers(data, ...) -> OutlierSolution     # boxplot rule per group
    shapiro_test(data) -> NormalitySolution            # Shapiro-Wilk per group
    bartlett_test(data) -> BartlettSolution            # across all groups

`data` is a Dataset (every condition x time group), a single Group, or a
sequence of Groups. All three checks are advisory; none of them modifies
the data.
"""

import time
from typing import Sequence, Union

import numpy as np

from pyfactorial.core.result import Result
from pyfactorial.core.exceptions import InsufficientDataError, ValidationError
from pyfactorial.dataset import Dataset, Group
from pyfactorial.assumptions._common import (
    NormalityParams,
    NormalityRow,
    OutlierParams,
    OutlierRecord,
)
from pyfactorial.assumptions._outliers import classify, compute_fences
from pyfactorial.assumptions._shapiro import shapiro_wilk
from pyfactorial.assumptions._bartlett import bartlett_impl
from pyfactorial.assumptions.solution import (
    BartlettSolution,
    NormalitySolution,
    OutlierSolution,
)


GroupInput = Union[Dataset, Group, Sequence[Group]]


def _as_groups(data: GroupInput) -> tuple[Group, ...]:
    if isinstance(data, Dataset):
        return data.groups
    if isinstance(data, Group):
        return (data,)
    groups = tuple(data)
    if not groups or not all(isinstance(g, Group) for g in groups):
        raise ValidationError(
            "expected a Dataset, a Group, or a non-empty sequence of Groups"
        )
    return groups


def detect_outliers(
    data: GroupInput,
    *,
    coef_mild: float = 1.5,
    coef_extreme: float = 3.0,
    quantile_type: int = 7,
) -> OutlierSolution:
    """
    Boxplot-rule outlier screen, one group at a time.

    Args:
        data: Dataset, Group, or sequence of Groups
        coef_mild: IQR multiplier for the mild fence. Default 1.5.
        coef_extreme: IQR multiplier for the extreme fence. Default 3.0.
        quantile_type: Quantile definition for Q1/Q3 (4-9). Default 7.

    Returns:
        OutlierSolution with flagged observations and per-group fences

    Examples:
        >>> screen = detect_outliers(dataset)
        >>> screen.extreme        # the observations worth a closer look
        >>> print(screen.summary())
    """
    t0 = time.perf_counter()

    groups = _as_groups(data)
    fences = []
    records: list[OutlierRecord] = []

    for g in groups:
        f = compute_fences(
            g.values,
            condition=g.condition,
            time=g.time,
            coef_mild=coef_mild,
            coef_extreme=coef_extreme,
            quantile_type=quantile_type,
        )
        fences.append(f)
        severity = classify(g.values, f)
        for idx in np.flatnonzero(severity != ''):
            records.append(OutlierRecord(
                subject_id=str(g.subjects[idx]),
                condition=g.condition,
                time=g.time,
                value=float(g.values[idx]),
                severity=severity[idx],
            ))

    warnings = tuple(
        f"{r.severity.capitalize()} outlier in {r.condition}:{r.time} "
        f"(subject {r.subject_id}, value {r.value:.4g})"
        for r in records
    )

    elapsed = time.perf_counter() - t0

    result = Result(
        params=OutlierParams(
            outliers=tuple(records),
            fences=tuple(fences),
            coef_mild=coef_mild,
            coef_extreme=coef_extreme,
            quantile_type=quantile_type,
        ),
        info={'n_groups': len(groups)},
        timing={'total_seconds': elapsed},
        warnings=warnings,
    )
    return OutlierSolution(_result=result)


def shapiro_test(data: GroupInput) -> NormalitySolution:
    """
    Shapiro-Wilk normality test for each group.

    Groups the test cannot support (n < 3, n > 5000, or all values
    identical) get an indeterminate row instead of a statistic; this never
    raises.

    Args:
        data: Dataset, Group, or sequence of Groups

    Returns:
        NormalitySolution with one row per group

    Examples:
        >>> normality = shapiro_test(dataset)
        >>> normality.violations(alpha=0.05)
    """
    t0 = time.perf_counter()

    rows: list[NormalityRow] = []
    for g in _as_groups(data):
        try:
            w, p = shapiro_wilk(g.values)
        except InsufficientDataError as e:
            rows.append(NormalityRow(
                condition=g.condition,
                time=g.time,
                n=g.n,
                statistic=None,
                p_value=None,
                reason=str(e),
            ))
            continue
        rows.append(NormalityRow(
            condition=g.condition,
            time=g.time,
            n=g.n,
            statistic=w,
            p_value=p,
        ))

    warnings = tuple(
        f"Normality indeterminate for {r.condition}:{r.time}: {r.reason}"
        for r in rows if r.indeterminate
    )

    elapsed = time.perf_counter() - t0

    result = Result(
        params=NormalityParams(
            rows=tuple(rows),
            method="Shapiro-Wilk normality test",
        ),
        info={'n_groups': len(rows)},
        timing={'total_seconds': elapsed},
        warnings=warnings,
    )
    return NormalitySolution(_result=result)


def bartlett_test(data: GroupInput) -> BartlettSolution:
    """
    Bartlett's test of equal variances across all groups at once.

    Args:
        data: Dataset (all condition x time cells) or sequence of Groups

    Returns:
        BartlettSolution with K^2, df and p-value

    Raises:
        InsufficientDataError: A group has fewer than 2 observations or
            zero variance. Callers that must not abort should catch this
            and report the test as indeterminate.

    Examples:
        >>> homogeneity = bartlett_test(dataset)
        >>> homogeneity.p_value
    """
    t0 = time.perf_counter()

    groups = _as_groups(data)
    params = bartlett_impl(
        [g.values for g in groups],
        [g.label for g in groups],
    )

    elapsed = time.perf_counter() - t0

    result = Result(
        params=params,
        info={'n_groups': len(groups)},
        timing={'total_seconds': elapsed},
    )
    return BartlettSolution(_result=result)
