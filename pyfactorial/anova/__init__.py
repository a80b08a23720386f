"""
Two-way condition x time Analysis of Variance.

Public API:
    fit_anova(dataset, ...) -> AnovaSolution                # between or repeated measures
    compare_conditions(result, ...) -> PostHocSolution      # Tukey simple-effect contrasts
"""

from pyfactorial.anova.solvers import (
    compare_conditions,
    fit_anova,
)
from pyfactorial.anova.solution import (
    AnovaSolution,
    PostHocSolution,
)

__all__ = [
    "compare_conditions",
    "fit_anova",
    "AnovaSolution",
    "PostHocSolution",
]
