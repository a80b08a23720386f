"""
Core infrastructure for pyfactorial.

This module provides the shared abstractions used by every stage of the
analysis (dataset, assumption checks, ANOVA, post-hoc).

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception and warning hierarchy
    validation: Input validators
    compute: Timing utilities
"""

from pyfactorial.core.result import Result
from pyfactorial.core.exceptions import (
    PyFactorialError,
    ValidationError,
    SchemaError,
    InsufficientDataError,
    MissingRepeatedMeasureError,
    NumericalError,
    PyFactorialWarning,
    UnbalancedDesignWarning,
    AssumptionWarning,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "PyFactorialError",
    "ValidationError",
    "SchemaError",
    "InsufficientDataError",
    "MissingRepeatedMeasureError",
    "NumericalError",
    # Warnings
    "PyFactorialWarning",
    "UnbalancedDesignWarning",
    "AssumptionWarning",
]
