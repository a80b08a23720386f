"""
User-facing ANOVA solution types.

Each solution wraps a Result[Params] and provides convenient accessors,
formatted summary output (matching R conventions), and flat rows for
reporting.
"""

from dataclasses import dataclass
from typing import Any

from numpy.typing import NDArray

from pyfactorial.core.result import Result
from pyfactorial.core.exceptions import ValidationError
from pyfactorial.core.tables import format_p, rows_to_dataframe, significance_stars
from pyfactorial.anova._common import (
    TIME,
    AnovaParams,
    AnovaTableRow,
    Contrast,
    ErrorStratum,
    PostHocParams,
    SphericitySummary,
)


# =====================================================================
# AnovaSolution
# =====================================================================


@dataclass
class AnovaSolution:
    """
    User-facing result for the two-way condition x time ANOVA.

    Produced by fit_anova(). Pass it to compare_conditions() for the
    per-time-level condition contrasts.
    """
    _result: Result[AnovaParams]

    @property
    def params(self) -> AnovaParams:
        return self._result.params

    @property
    def table(self) -> tuple[AnovaTableRow, ...]:
        """ANOVA table: effects and error strata in display order."""
        return self._result.params.table

    @property
    def effects(self) -> tuple[AnovaTableRow, ...]:
        return tuple(r for r in self.table if not r.is_error)

    @property
    def mode(self) -> str:
        return self._result.params.mode

    @property
    def layout(self) -> str:
        return self._result.params.layout

    @property
    def n_obs(self) -> int:
        return self._result.params.n_obs

    @property
    def n_subjects(self) -> int:
        return self._result.params.n_subjects

    @property
    def grand_mean(self) -> float:
        return self._result.params.grand_mean

    @property
    def total_ss(self) -> float:
        return self._result.params.total_ss

    @property
    def condition_levels(self) -> tuple[str, ...]:
        return self._result.params.condition_levels

    @property
    def time_levels(self) -> tuple[str, ...]:
        return self._result.params.time_levels

    @property
    def cell_means(self) -> NDArray:
        return self._result.params.cell_means

    @property
    def cell_sizes(self) -> NDArray:
        return self._result.params.cell_sizes

    @property
    def pooled_error(self) -> ErrorStratum:
        return self._result.params.pooled_error

    @property
    def strata(self) -> dict[str, ErrorStratum]:
        return self._result.params.strata

    @property
    def sphericity(self) -> tuple[SphericitySummary, ...]:
        return self._result.params.sphericity

    @property
    def correction(self) -> str:
        return self._result.params.correction

    @property
    def is_balanced(self) -> bool:
        return self._result.params.is_balanced

    @property
    def eta_squared(self) -> dict[str, float]:
        return self._result.params.eta_squared

    @property
    def partial_eta_squared(self) -> dict[str, float]:
        return self._result.params.partial_eta_squared

    @property
    def generalized_eta_squared(self) -> dict[str, float]:
        return self._result.params.generalized_eta_squared

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def row(self, term: str) -> AnovaTableRow:
        """Look up one table row by its term name."""
        for r in self.table:
            if r.term == term:
                return r
        raise KeyError(f"No term {term!r}. Terms: {[r.term for r in self.table]}")

    def to_rows(self) -> list[dict[str, Any]]:
        return [
            {
                'term': r.term,
                'df': r.df,
                'sum_sq': r.sum_sq,
                'mean_sq': r.mean_sq,
                'f_value': r.f_value,
                'p_value': r.p_value,
                'error_term': r.error_term,
                'p_value_gg': r.gg_p_value,
                'p_value_hf': r.hf_p_value,
                'p_value_corrected': r.p_value_corrected,
                'eta_squared': self.eta_squared.get(r.term),
                'partial_eta_squared': self.partial_eta_squared.get(r.term),
                'generalized_eta_squared': self.generalized_eta_squared.get(r.term),
            }
            for r in self.table
        ]

    def to_dataframe(self):
        return rows_to_dataframe(self.to_rows())

    def summary(self) -> str:
        """Generate R-style ANOVA summary table."""
        title = (
            "Repeated-Measures ANOVA" if self.mode == 'repeated'
            else "Two-Way Analysis of Variance"
        )
        lines = [
            title,
            "=" * 80,
            f"Observations: {self.n_obs}, subjects: {self.n_subjects}, "
            f"layout: {self.layout}",
            f"Conditions: {', '.join(self.condition_levels)}",
            f"Times: {', '.join(self.time_levels)}",
        ]
        if not self.is_balanced:
            lines.append("Unbalanced design: effect sums of squares are not orthogonal.")
        lines += [
            "",
            f"{'Source':<22} {'Df':>6} {'Sum Sq':>14} {'Mean Sq':>14} "
            f"{'F value':>10} {'Pr(>F)':>12}",
            "-" * 80,
        ]

        for row in self.table:
            if row.f_value is not None:
                lines.append(
                    f"{row.term:<22} {row.df:>6} {row.sum_sq:>14.4f} "
                    f"{row.mean_sq:>14.4f} {row.f_value:>10.4f} "
                    f"{format_p(row.p_value)} {significance_stars(row.p_value)}"
                )
            else:
                lines.append(
                    f"{row.term:<22} {row.df:>6} {row.sum_sq:>14.4f} "
                    f"{row.mean_sq:>14.4f}"
                )

        lines.append("-" * 80)
        lines.append("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")

        if self.mode == 'repeated':
            lines.append("")
            lines.append("Error terms:")
            for row in self.effects:
                lines.append(f"  {row.term} tested against {row.error_term}")

        if self.sphericity:
            lines.append("")
            lines.append("Mauchly's Test of Sphericity:")
            lines.append(
                f"  {'Effect':<18} {'W':>8} {'p':>12} {'GG eps':>10} {'HF eps':>10}"
            )
            for s in self.sphericity:
                lines.append(
                    f"  {s.effect:<18} {s.mauchly_w:>8.4f} {s.p_value:>12.4e} "
                    f"{s.gg_epsilon:>10.4f} {s.hf_epsilon:>10.4f}"
                )

            lines.append("")
            lines.append(f"Corrected p-values (correction: {self.correction}):")
            for row in self.table:
                if row.gg_p_value is not None:
                    lines.append(
                        f"  {row.term}: GG p = {row.gg_p_value:.4e}, "
                        f"HF p = {row.hf_p_value:.4e}, "
                        f"reported p = {row.p_value_corrected:.4e}"
                    )

        if self.eta_squared:
            lines.append("")
            lines.append("Effect sizes:")
            for term, eta in self.eta_squared.items():
                lines.append(
                    f"  {term}: eta^2 = {eta:.4f}, "
                    f"partial eta^2 = {self.partial_eta_squared[term]:.4f}, "
                    f"generalized eta^2 = {self.generalized_eta_squared[term]:.4f}"
                )

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"AnovaSolution(mode={self.mode!r}, n={self.n_obs}, "
            f"terms={[r.term for r in self.effects]})"
        )


# =====================================================================
# PostHocSolution
# =====================================================================


@dataclass
class PostHocSolution:
    """
    User-facing result for simple-effect pairwise comparisons.

    By default conditions are compared within each time level. Produced by
    compare_conditions().
    """
    _result: Result[PostHocParams]

    @property
    def method(self) -> str:
        return self._result.params.method

    @property
    def contrasts(self) -> tuple[Contrast, ...]:
        return self._result.params.contrasts

    @property
    def family(self) -> str:
        return self._result.params.family

    @property
    def family_size(self) -> int:
        return self._result.params.family_size

    @property
    def error_term(self) -> str:
        return self._result.params.error_term

    @property
    def conf_level(self) -> float:
        return self._result.params.conf_level

    @property
    def grouping_factor(self) -> str:
        return self._result.params.grouping_factor

    @property
    def conditioning_factor(self) -> str:
        return self._result.params.conditioning_factor

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def at_level(self, level: Any) -> tuple[Contrast, ...]:
        """Contrasts at one conditioning-factor level, in pair order."""
        key = str(level)
        return tuple(c for c in self.contrasts if c.level == key)

    def at_time(self, time: Any) -> tuple[Contrast, ...]:
        """Contrasts at one time level; requires conditioning on Time."""
        if self.conditioning_factor != TIME:
            raise ValidationError(
                f"at_time: contrasts are conditioned on "
                f"{self.conditioning_factor}, use at_level()"
            )
        return self.at_level(time)

    def significant(self, alpha: float = 0.05) -> tuple[Contrast, ...]:
        """Contrasts whose adjusted p-value is below alpha."""
        return tuple(c for c in self.contrasts if c.p_value < alpha)

    def to_rows(self) -> list[dict[str, Any]]:
        level_key = self.conditioning_factor.lower()
        return [
            {
                level_key: c.level,
                'contrast': f"{c.group2} - {c.group1}",
                'group1': c.group1,
                'group2': c.group2,
                'estimate': c.estimate,
                'se': c.se,
                'df': c.df,
                't_ratio': c.t_ratio,
                'p_unadjusted': c.p_unadjusted,
                'p_value': c.p_value,
                'ci_lower': c.ci_lower,
                'ci_upper': c.ci_upper,
            }
            for c in self.contrasts
        ]

    def to_dataframe(self):
        return rows_to_dataframe(self.to_rows())

    def summary(self) -> str:
        p = self._result.params
        grouping = self.grouping_factor.lower()
        conditioning = self.conditioning_factor.lower()
        lines = [
            f"{self.method}: {grouping} contrasts by {conditioning}",
            "=" * 88,
            f"Error term: {p.error_description}",
            f"Family: {self.family} (studentized range over {self.family_size} means, "
            f"{p.n_comparisons} comparisons)",
            f"Confidence level: {self.conf_level:.0%}",
        ]

        current = None
        for c in self.contrasts:
            if c.level != current:
                current = c.level
                lines += [
                    "",
                    f"{conditioning} = {c.level}:",
                    f"  {'contrast':<22} {'estimate':>10} {'SE':>9} {'df':>8} "
                    f"{'t.ratio':>8} {'lwr':>10} {'upr':>10} {'p adj':>12}",
                ]
            label = f"{c.group2} - {c.group1}"
            lines.append(
                f"  {label:<22} {c.estimate:>10.4f} {c.se:>9.4f} {c.df:>8.2f} "
                f"{c.t_ratio:>8.3f} {c.ci_lower:>10.4f} {c.ci_upper:>10.4f} "
                f"{format_p(c.p_value)} {significance_stars(c.p_value)}"
            )

        lines.append("-" * 88)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"PostHocSolution(method={self.method!r}, family={self.family!r}, "
            f"grouping={self.grouping_factor!r}, n_comparisons={len(self.contrasts)})"
        )
