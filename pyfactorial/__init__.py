"""
pyfactorial: two-way condition x time analysis for repeated-measurement
experiments.

Outlier screening, normality and variance-homogeneity checks, two-way
(optionally repeated-measures) ANOVA, and Tukey-adjusted condition
contrasts at every time point.

Submodules:
    dataset: Observation records and the validated Dataset
    assumptions: Outlier screen, Shapiro-Wilk, Bartlett
    anova: ANOVA engine and post-hoc comparisons
    pipeline: run_analysis() end to end
"""

__version__ = "0.1.0"

from pyfactorial import dataset
from pyfactorial import assumptions
from pyfactorial import anova
from pyfactorial.dataset import Dataset
from pyfactorial.anova import compare_conditions, fit_anova
from pyfactorial.pipeline import AnalysisConfig, AnalysisReport, run_analysis

__all__ = [
    "__version__",
    "dataset",
    "assumptions",
    "anova",
    "Dataset",
    "fit_anova",
    "compare_conditions",
    "AnalysisConfig",
    "AnalysisReport",
    "run_analysis",
]
