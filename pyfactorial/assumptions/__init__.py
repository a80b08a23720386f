"""
Assumption checks for the ANOVA.

Public API:
    detect_outliers(data, ...) -> OutlierSolution     # boxplot-rule screen
    shapiro_test(data) -> NormalitySolution            # per-group Shapiro-Wilk
    bartlett_test(data) -> BartlettSolution            # homogeneity of variances
    quantile(x, probs, qtype=7)                        # interpolated quantiles
"""

from pyfactorial.assumptions.solvers import (
    bartlett_test,
    detect_outliers,
    shapiro_test,
)
from pyfactorial.assumptions.solution import (
    BartlettSolution,
    NormalitySolution,
    OutlierSolution,
)
from pyfactorial.assumptions._quantile import quantile

__all__ = [
    "bartlett_test",
    "detect_outliers",
    "shapiro_test",
    "quantile",
    "BartlettSolution",
    "NormalitySolution",
    "OutlierSolution",
]
