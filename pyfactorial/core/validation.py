"""
Input validation utilities for pyfactorial.

These validators follow the "fail fast, fail loud" principle. They raise
immediately with clear error messages rather than silently correcting
or making assumptions about user intent.

Design principles:
    - No silent type coercion (except np.asarray on array-likes)
    - Clear, actionable error messages with actual values
    - Each function validates ONE thing
    - Parameter names included in all error messages
"""

from typing import Any, Iterable

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyfactorial.core.exceptions import ValidationError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Validate and convert input to a numeric numpy array.

    Accepts any array-like and converts to numpy array. Rejects inputs
    that result in object dtype (indicating mixed types or non-numeric data).

    Args:
        array: Input to validate
        name: Parameter name for error messages

    Returns:
        numpy.ndarray with floating dtype

    Raises:
        ValidationError: If input cannot be converted to numeric array
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object:
        try:
            result = result.astype(np.float64)
        except (ValueError, TypeError) as e:
            raise ValidationError(
                f"{name}: converted to object dtype, indicating mixed types "
                f"or non-numeric data"
            ) from e

    if result.dtype == bool or not np.issubdtype(result.dtype, np.number):
        raise ValidationError(
            f"{name}: non-numeric dtype {result.dtype}, expected numeric data"
        )

    if not np.issubdtype(result.dtype, np.floating):
        result = result.astype(np.float64)

    return result


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array contains no NaN or Inf values.

    Raises:
        ValidationError: If array contains non-finite values
    """
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_1d(array: NDArray, name: str) -> None:
    """
    Verify array is 1-dimensional.

    Raises:
        ValidationError: If array is not 1D
    """
    if array.ndim != 1:
        raise ValidationError(
            f"{name}: expected 1D array, got {array.ndim}D with shape {array.shape}"
        )


def check_consistent_length(
    *arrays: NDArray,
    names: tuple[str, ...]
) -> None:
    """
    Verify all arrays have the same length (first dimension).

    Raises:
        ValueError: If number of names doesn't match number of arrays
        ValidationError: If arrays have inconsistent lengths
    """
    if len(arrays) != len(names):
        raise ValueError(
            f"Number of arrays ({len(arrays)}) must match number of names ({len(names)})"
        )

    if len(arrays) < 2:
        return

    lengths = [arr.shape[0] for arr in arrays]
    if len(set(lengths)) > 1:
        details = ", ".join(f"{name}={length}" for name, length in zip(names, lengths))
        raise ValidationError(f"Inconsistent lengths: {details}")


def check_probability(value: float, name: str) -> float:
    """
    Verify a level (alpha, confidence) lies strictly inside (0, 1).

    Raises:
        ValidationError: If value is outside (0, 1)
    """
    if not (0.0 < value < 1.0):
        raise ValidationError(f"{name} must be in (0, 1), got {value}")
    return float(value)


def check_choice(value: str, choices: Iterable[str], name: str) -> str:
    """
    Verify a string option is one of the allowed choices.

    Raises:
        ValidationError: If value is not an allowed choice
    """
    allowed = tuple(choices)
    if value not in allowed:
        raise ValidationError(
            f"{name} must be one of {allowed}, got {value!r}"
        )
    return value
