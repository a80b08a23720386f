"""
User-facing solution types for the assumption checks.

Each solution wraps a Result[Params] and provides convenient accessors,
a formatted summary, and flat rows for reporting.
"""

from dataclasses import dataclass
from typing import Any

from pyfactorial.core.result import Result
from pyfactorial.core.tables import format_p, rows_to_dataframe
from pyfactorial.assumptions._common import (
    BartlettParams,
    NormalityParams,
    NormalityRow,
    OutlierFences,
    OutlierParams,
    OutlierRecord,
)


# =====================================================================
# OutlierSolution
# =====================================================================


@dataclass
class OutlierSolution:
    """
    User-facing result of the boxplot-rule outlier screen.

    Produced by detect_outliers(). Advisory only: nothing is removed.
    """
    _result: Result[OutlierParams]

    @property
    def outliers(self) -> tuple[OutlierRecord, ...]:
        return self._result.params.outliers

    @property
    def fences(self) -> tuple[OutlierFences, ...]:
        return self._result.params.fences

    @property
    def mild(self) -> tuple[OutlierRecord, ...]:
        return tuple(o for o in self.outliers if o.severity == 'mild')

    @property
    def extreme(self) -> tuple[OutlierRecord, ...]:
        return tuple(o for o in self.outliers if o.severity == 'extreme')

    @property
    def has_extreme(self) -> bool:
        return bool(self.extreme)

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def for_group(self, condition: str, time: str) -> tuple[OutlierRecord, ...]:
        return tuple(
            o for o in self.outliers
            if o.condition == condition and o.time == time
        )

    def to_rows(self) -> list[dict[str, Any]]:
        return [
            {
                'subject': o.subject_id,
                'condition': o.condition,
                'time': o.time,
                'value': o.value,
                'severity': o.severity,
            }
            for o in self.outliers
        ]

    def to_dataframe(self):
        return rows_to_dataframe(self.to_rows())

    def summary(self) -> str:
        p = self._result.params
        lines = [
            "Outlier Screen (boxplot rule)",
            "=" * 72,
            f"Mild: outside Q1/Q3 -/+ {p.coef_mild} IQR; "
            f"extreme: outside Q1/Q3 -/+ {p.coef_extreme} IQR",
            "",
            f"{'Group':<24} {'Q1':>10} {'Q3':>10} {'IQR':>10} {'mild':>6} {'extreme':>8}",
            "-" * 72,
        ]
        for f in self.fences:
            flagged = self.for_group(f.condition, f.time)
            n_mild = sum(1 for o in flagged if o.severity == 'mild')
            n_extreme = sum(1 for o in flagged if o.severity == 'extreme')
            lines.append(
                f"{f.condition + ':' + f.time:<24} {f.q1:>10.4f} {f.q3:>10.4f} "
                f"{f.iqr:>10.4f} {n_mild:>6} {n_extreme:>8}"
            )
        lines.append("-" * 72)

        if self.outliers:
            lines.append("")
            lines.append("Flagged observations:")
            for o in self.outliers:
                lines.append(
                    f"  {o.severity:<8} subject={o.subject_id} "
                    f"{o.condition}:{o.time} value={o.value:.4f}"
                )
        else:
            lines.append("No outliers flagged.")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"OutlierSolution(mild={len(self.mild)}, "
            f"extreme={len(self.extreme)})"
        )


# =====================================================================
# NormalitySolution
# =====================================================================


@dataclass
class NormalitySolution:
    """
    User-facing result of per-group Shapiro-Wilk tests.

    Produced by shapiro_test(). Reports p-values only; the threshold is the
    caller's decision (see violations()).
    """
    _result: Result[NormalityParams]

    @property
    def rows(self) -> tuple[NormalityRow, ...]:
        return self._result.params.rows

    @property
    def method(self) -> str:
        return self._result.params.method

    @property
    def indeterminate(self) -> tuple[NormalityRow, ...]:
        return tuple(r for r in self.rows if r.indeterminate)

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def violations(self, alpha: float = 0.05) -> tuple[NormalityRow, ...]:
        """Groups whose p-value is at or below alpha."""
        return tuple(
            r for r in self.rows
            if not r.indeterminate and r.p_value <= alpha
        )

    def to_rows(self) -> list[dict[str, Any]]:
        return [
            {
                'condition': r.condition,
                'time': r.time,
                'n': r.n,
                'statistic': r.statistic,
                'p_value': r.p_value,
                'indeterminate': r.indeterminate,
                'reason': r.reason,
            }
            for r in self.rows
        ]

    def to_dataframe(self):
        return rows_to_dataframe(self.to_rows())

    def summary(self) -> str:
        lines = [
            self.method,
            "=" * 60,
            f"{'Group':<24} {'n':>5} {'W':>10} {'p-value':>12}",
            "-" * 60,
        ]
        for r in self.rows:
            label = f"{r.condition}:{r.time}"
            if r.indeterminate:
                lines.append(f"{label:<24} {r.n:>5} {'indeterminate':>23}  ({r.reason})")
            else:
                lines.append(
                    f"{label:<24} {r.n:>5} {r.statistic:>10.4f} {format_p(r.p_value)}"
                )
        lines.append("-" * 60)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"NormalitySolution(groups={len(self.rows)}, "
            f"indeterminate={len(self.indeterminate)})"
        )


# =====================================================================
# BartlettSolution
# =====================================================================


@dataclass
class BartlettSolution:
    """
    User-facing result of Bartlett's test.

    Produced by bartlett_test().
    """
    _result: Result[BartlettParams]

    @property
    def statistic(self) -> float:
        return self._result.params.statistic

    @property
    def df(self) -> int:
        return self._result.params.df

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def n_groups(self) -> int:
        return self._result.params.n_groups

    @property
    def pooled_var(self) -> float:
        return self._result.params.pooled_var

    @property
    def group_vars(self) -> dict[str, float]:
        return self._result.params.group_vars

    def to_rows(self) -> list[dict[str, Any]]:
        return [{
            'test': "Bartlett",
            'statistic': self.statistic,
            'df': self.df,
            'p_value': self.p_value,
        }]

    def to_dataframe(self):
        return rows_to_dataframe(self.to_rows())

    def summary(self) -> str:
        lines = [
            "Bartlett Test of Homogeneity of Variances",
            "=" * 50,
            f"K-squared = {self.statistic:.4f}, df = {self.df}, "
            f"p = {self.p_value:.4e}",
            f"Groups: {self.n_groups}, pooled variance: {self.pooled_var:.4f}",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"BartlettSolution(K2={self.statistic:.4f}, "
            f"df={self.df}, p={self.p_value:.4e})"
        )
