"""
Common data types for the assumption checks.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container.
"""

from dataclasses import dataclass
from typing import Literal


Severity = Literal['mild', 'extreme']


@dataclass(frozen=True)
class OutlierFences:
    """Quartiles and fences of one (condition, time) group."""
    condition: str
    time: str
    q1: float
    q3: float
    iqr: float
    mild_lower: float
    mild_upper: float
    extreme_lower: float
    extreme_upper: float


@dataclass(frozen=True)
class OutlierRecord:
    """One flagged observation."""
    subject_id: str
    condition: str
    time: str
    value: float
    severity: Severity


@dataclass(frozen=True)
class OutlierParams:
    """Parameter payload for the outlier screen."""
    outliers: tuple[OutlierRecord, ...]
    fences: tuple[OutlierFences, ...]
    coef_mild: float
    coef_extreme: float
    quantile_type: int


@dataclass(frozen=True)
class NormalityRow:
    """
    Shapiro-Wilk result for one group.

    statistic and p_value are None when the test is indeterminate for this
    group (too few observations, or all values identical); reason says why.
    """
    condition: str
    time: str
    n: int
    statistic: float | None
    p_value: float | None
    reason: str | None = None

    @property
    def indeterminate(self) -> bool:
        return self.p_value is None


@dataclass(frozen=True)
class NormalityParams:
    """Parameter payload for per-group normality tests."""
    rows: tuple[NormalityRow, ...]
    method: str


@dataclass(frozen=True)
class BartlettParams:
    """Parameter payload for Bartlett's test."""
    statistic: float
    df: int
    p_value: float
    n_groups: int
    pooled_var: float
    group_vars: dict[str, float]    # "condition:time" -> variance
