"""
Record types for the dataset model.

Observation is one row of the long-format table. Group is the derived view
of one (condition, time) cell; it is computed from a Dataset and never
stored independently.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class Observation:
    """One measured value: a subject under a condition at a time point."""
    subject_id: str
    condition: str
    time: str
    value: float


@dataclass(frozen=True, eq=False)
class Group:
    """
    The sample of one (condition, time) cell.

    Attributes:
        condition: Condition level
        time: Time level
        values: Cell values in dataset order
        subjects: Subject identifiers aligned with values
    """
    condition: str
    time: str
    values: NDArray[np.floating[Any]]
    subjects: NDArray

    @property
    def label(self) -> str:
        return f"{self.condition}:{self.time}"

    @property
    def n(self) -> int:
        return int(self.values.shape[0])

    @property
    def mean(self) -> float:
        return float(np.mean(self.values))

    @property
    def sd(self) -> float:
        """Sample standard deviation (ddof=1); NaN for a single value."""
        if self.n < 2:
            return float('nan')
        return float(np.std(self.values, ddof=1))

    @property
    def se(self) -> float:
        """Standard error of the mean."""
        return self.sd / np.sqrt(self.n)

    @property
    def median(self) -> float:
        return float(np.median(self.values))

    @property
    def q1(self) -> float:
        """First quartile (linear interpolation, R type 7)."""
        return float(np.quantile(self.values, 0.25))

    @property
    def q3(self) -> float:
        return float(np.quantile(self.values, 0.75))

    @property
    def min(self) -> float:
        return float(np.min(self.values))

    @property
    def max(self) -> float:
        return float(np.max(self.values))

    def to_row(self) -> dict[str, Any]:
        """Flat summary row for tabular display or charting."""
        return {
            'condition': self.condition,
            'time': self.time,
            'n': self.n,
            'mean': self.mean,
            'sd': self.sd,
            'se': self.se,
            'median': self.median,
            'q1': self.q1,
            'q3': self.q3,
            'min': self.min,
            'max': self.max,
        }

    def __repr__(self) -> str:
        return f"Group(condition={self.condition!r}, time={self.time!r}, n={self.n})"
