"""
Factor level catalogs.

Condition and time columns are parsed into closed enumerations: when the
caller declares the level set, any label outside it is a SchemaError.
When no level set is declared, the observed labels are ordered naturally
("2", "10", "30 min", "120 min" sort by their numeric parts).
"""

import re
from typing import Any, Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from pyfactorial.core.exceptions import SchemaError

_NUMBER = re.compile(r'(-?\d+(?:\.\d+)?)')


def normalize_labels(values: Any, name: str) -> NDArray:
    """Convert a label column to a 1D array of str."""
    arr = np.asarray(values)
    if arr.ndim != 1:
        raise SchemaError(f"{name}: expected 1D labels, got {arr.ndim}D", column=name)
    out = []
    for v in arr:
        if v is None or (isinstance(v, float) and np.isnan(v)):
            raise SchemaError(f"{name}: contains missing labels", column=name)
        out.append(_label_str(v))
    return np.array(out, dtype=str)


def _label_str(value: Any) -> str:
    # 30.0 read from a float column is the same time point as 30
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def natural_key(label: str) -> tuple:
    """Sort key that orders embedded numbers numerically."""
    parts = _NUMBER.split(label)
    key = []
    for part in parts:
        if not part:
            continue
        if _NUMBER.fullmatch(part):
            key.append((0, float(part), ''))
        else:
            key.append((1, 0.0, part))
    return tuple(key)


def resolve_levels(
    labels: NDArray,
    declared: Sequence[Any] | None,
    name: str,
) -> tuple[str, ...]:
    """
    Build the ordered level set for one factor.

    Args:
        labels: Normalized str labels as they appear in the data
        declared: Caller-declared ordered level set, or None
        name: Factor name for error messages

    Returns:
        Ordered tuple of level labels

    Raises:
        SchemaError: If a label is outside the declared set, the declared
            set has duplicates, or fewer than 2 levels are present
    """
    observed = set(labels.tolist())

    if declared is not None:
        levels = tuple(_label_str(v) for v in declared)
        if len(set(levels)) != len(levels):
            raise SchemaError(f"{name}: declared levels contain duplicates: {levels}", column=name)
        unknown = sorted(observed - set(levels), key=natural_key)
        if unknown:
            raise SchemaError(
                f"{name}: labels {unknown} are not among the declared levels {list(levels)}",
                column=name,
            )
    else:
        levels = tuple(sorted(observed, key=natural_key))

    if len(levels) < 2:
        raise SchemaError(f"{name}: need at least 2 levels, got {len(levels)}", column=name)

    return levels


def encode(labels: NDArray, levels: Iterable[str]) -> NDArray[np.intp]:
    """Map labels to integer codes following the level order."""
    index = {level: i for i, level in enumerate(levels)}
    return np.array([index[v] for v in labels.tolist()], dtype=np.intp)
