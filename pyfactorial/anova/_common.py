"""
Common data types for the ANOVA and post-hoc engines.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container; no computation.
"""

from dataclasses import dataclass
from typing import Any, Literal

import numpy as np
from numpy.typing import NDArray


Mode = Literal['between', 'repeated']

CONDITION = 'Condition'
TIME = 'Time'
INTERACTION = 'Condition:Time'
RESIDUALS = 'Residuals'


@dataclass(frozen=True)
class AnovaTableRow:
    """
    One row of an ANOVA table: an effect or an error stratum.

    Error rows have f_value, p_value and error_term set to None. Effect
    rows name the error row their F ratio is formed against.
    """
    term: str
    df: int
    sum_sq: float
    mean_sq: float
    f_value: float | None
    p_value: float | None
    error_term: str | None
    gg_p_value: float | None = None       # Greenhouse-Geisser corrected
    hf_p_value: float | None = None       # Huynh-Feldt corrected
    p_value_corrected: float | None = None  # per the requested correction

    @property
    def is_error(self) -> bool:
        return self.f_value is None and self.error_term is None


@dataclass(frozen=True)
class ErrorStratum:
    """Sum of squares, df and mean square of one error term."""
    name: str
    sum_sq: float
    df: int
    mean_sq: float


@dataclass(frozen=True)
class SphericitySummary:
    """Mauchly's test and epsilon estimates for one within-subjects effect."""
    effect: str
    mauchly_w: float
    p_value: float
    gg_epsilon: float
    hf_epsilon: float


@dataclass(frozen=True)
class AnovaParams:
    """
    Parameter payload for the two-way ANOVA.

    cell_means and cell_sizes are (n_conditions, n_times) matrices in level
    order. pooled_error is always the within-cell residual of the two-way
    between-subjects model; strata holds every error row of this fit.
    """
    table: tuple[AnovaTableRow, ...]
    mode: Mode
    layout: str
    n_obs: int
    n_subjects: int
    condition_levels: tuple[str, ...]
    time_levels: tuple[str, ...]
    grand_mean: float
    total_ss: float
    cell_means: NDArray[np.floating[Any]]
    cell_sizes: NDArray[np.intp]
    pooled_error: ErrorStratum
    strata: dict[str, ErrorStratum]
    sphericity: tuple[SphericitySummary, ...]
    correction: str
    is_balanced: bool
    eta_squared: dict[str, float]
    partial_eta_squared: dict[str, float]
    generalized_eta_squared: dict[str, float]


@dataclass(frozen=True)
class Contrast:
    """One pairwise comparison at one level of the conditioning factor."""
    level: str
    group1: str
    group2: str
    estimate: float          # mean(group2) - mean(group1)
    se: float
    df: float
    t_ratio: float
    p_value: float           # Tukey-adjusted
    p_unadjusted: float
    ci_lower: float          # Tukey-adjusted interval
    ci_upper: float


@dataclass(frozen=True)
class PostHocParams:
    """Parameter payload for the post-hoc engine."""
    contrasts: tuple[Contrast, ...]
    method: str
    family: str
    family_size: int          # number of means the studentized range spans
    n_comparisons: int
    error_term: str           # requested: pooled or stratified
    error_description: str
    conf_level: float
    grouping_factor: str
    conditioning_factor: str
