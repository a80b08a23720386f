"""
Dataset: validated long-format observation table.

Wraps subject, condition, time and outcome columns plus the ordered level
catalogs of both factors. Construct via factory classmethods; the object is
immutable afterwards, so every derived view (groups, cell means, layout) is
computed once and cached.

Construction:
    Dataset.from_arrays(subject, condition, time, value)
    Dataset.from_observations(observations)
    Dataset.from_dataframe(df, subject_col=..., ...)
    Dataset.from_file("data.csv")
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Iterable, Literal, Sequence, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyfactorial.core.exceptions import SchemaError, ValidationError
from pyfactorial.core.validation import (
    check_array,
    check_finite,
    check_1d,
    check_consistent_length,
)
from pyfactorial.dataset._common import Group, Observation
from pyfactorial.dataset._levels import encode, normalize_labels, resolve_levels

if TYPE_CHECKING:
    import pandas as pd


Layout = Literal['between', 'within', 'mixed']


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Validated container for a condition x time experiment.

    Created via factory methods, not directly.

    Attributes:
        subject: Subject identifiers (str), one per observation
        condition: Condition labels (str)
        time: Time labels (str)
        y: Outcome values (float64, finite)
        condition_levels: Ordered condition levels
        time_levels: Ordered time levels
    """
    subject: NDArray
    condition: NDArray
    time: NDArray
    y: NDArray[np.floating[Any]]
    condition_levels: tuple[str, ...]
    time_levels: tuple[str, ...]

    # === Factory Methods ===

    @classmethod
    def from_arrays(
        cls,
        subject: Any,
        condition: Any,
        time: Any,
        value: Any,
        *,
        condition_levels: Sequence[Any] | None = None,
        time_levels: Sequence[Any] | None = None,
    ) -> Dataset:
        """
        Build a Dataset from parallel 1D columns.

        Args:
            subject: Subject identifiers
            condition: Condition labels
            time: Time labels
            value: Numeric outcome
            condition_levels: Declared, ordered condition level set
            time_levels: Declared, ordered time level set

        Raises:
            SchemaError: Non-numeric or non-finite outcome, unknown labels,
                empty cells, or duplicate (subject, condition, time) rows
        """
        try:
            y = check_array(value, "value")
            check_1d(y, "value")
            check_finite(y, "value")
        except ValidationError as e:
            raise SchemaError(str(e), column="value") from e

        subject_arr = normalize_labels(subject, "subject")
        condition_arr = normalize_labels(condition, "condition")
        time_arr = normalize_labels(time, "time")

        try:
            check_consistent_length(
                subject_arr, condition_arr, time_arr, y,
                names=("subject", "condition", "time", "value"),
            )
        except ValidationError as e:
            raise SchemaError(str(e)) from e

        if len(y) == 0:
            raise SchemaError("Dataset has no observations")

        cond_levels = resolve_levels(condition_arr, condition_levels, "condition")
        time_lvls = resolve_levels(time_arr, time_levels, "time")

        dataset = cls(
            subject=subject_arr,
            condition=condition_arr,
            time=time_arr,
            y=y,
            condition_levels=cond_levels,
            time_levels=time_lvls,
        )
        dataset._validate_cells()
        return dataset

    @classmethod
    def from_observations(
        cls,
        observations: Iterable[Observation],
        *,
        condition_levels: Sequence[Any] | None = None,
        time_levels: Sequence[Any] | None = None,
    ) -> Dataset:
        """Build a Dataset from Observation records."""
        obs = list(observations)
        return cls.from_arrays(
            [o.subject_id for o in obs],
            [o.condition for o in obs],
            [o.time for o in obs],
            [o.value for o in obs],
            condition_levels=condition_levels,
            time_levels=time_levels,
        )

    @classmethod
    def from_dataframe(
        cls,
        df: 'pd.DataFrame',
        *,
        subject_col: str = 'subject',
        condition_col: str = 'condition',
        time_col: str = 'time',
        value_col: str = 'value',
        condition_levels: Sequence[Any] | None = None,
        time_levels: Sequence[Any] | None = None,
    ) -> Dataset:
        """
        Build a Dataset from a long-format pandas DataFrame.

        Ordered categorical columns contribute their category order when no
        level set is declared.

        Raises:
            SchemaError: If a required column is absent or the outcome
                column is not numeric
        """
        import pandas as pd

        required = {
            'subject': subject_col,
            'condition': condition_col,
            'time': time_col,
            'value': value_col,
        }
        missing = [col for col in required.values() if col not in df.columns]
        if missing:
            raise SchemaError(
                f"Required columns not found: {missing}. "
                f"Available: {list(df.columns)}",
                column=missing[0],
            )

        if not pd.api.types.is_numeric_dtype(df[value_col]) or pd.api.types.is_bool_dtype(df[value_col]):
            raise SchemaError(
                f"Outcome column '{value_col}' must be numeric, found {df[value_col].dtype}",
                column=value_col,
            )

        if condition_levels is None:
            condition_levels = _categorical_levels(df[condition_col])
        if time_levels is None:
            time_levels = _categorical_levels(df[time_col])

        return cls.from_arrays(
            df[subject_col].to_numpy(),
            df[condition_col].astype(object).to_numpy(),
            df[time_col].astype(object).to_numpy(),
            df[value_col].to_numpy(dtype=np.float64),
            condition_levels=condition_levels,
            time_levels=time_levels,
        )

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> Dataset:
        """
        Build a Dataset from a CSV or TSV file.

        Keyword arguments are forwarded to from_dataframe().
        """
        import pandas as pd

        path = Path(path)
        suffix = path.suffix.lower()
        if suffix == '.csv':
            df = pd.read_csv(path)
        elif suffix == '.tsv':
            df = pd.read_csv(path, sep='\t')
        else:
            raise ValidationError(f"Unknown file format: {suffix}")
        return cls.from_dataframe(df, **kwargs)

    # === Validation ===

    def _validate_cells(self) -> None:
        counts = self.cell_counts
        empty = [
            f"{c}:{t}"
            for (c, t), n in counts.items()
            if n == 0
        ]
        if empty:
            raise SchemaError(f"Empty condition x time cells: {empty}")

        keys = np.char.add(
            np.char.add(np.char.add(self.subject, '\x1f'), np.char.add(self.condition, '\x1f')),
            self.time,
        )
        unique, counts_per_key = np.unique(keys, return_counts=True)
        if np.any(counts_per_key > 1):
            dupes = [k.replace('\x1f', '/') for k in unique[counts_per_key > 1]]
            raise SchemaError(
                f"Duplicate (subject, condition, time) observations: {dupes[:5]}"
            )

    # === Properties ===

    @property
    def n_observations(self) -> int:
        return int(self.y.shape[0])

    @cached_property
    def subjects(self) -> tuple[str, ...]:
        """Subject identifiers in order of first appearance."""
        _, first = np.unique(self.subject, return_index=True)
        return tuple(self.subject[np.sort(first)].tolist())

    @property
    def n_subjects(self) -> int:
        return len(self.subjects)

    @cached_property
    def condition_codes(self) -> NDArray[np.intp]:
        return encode(self.condition, self.condition_levels)

    @cached_property
    def time_codes(self) -> NDArray[np.intp]:
        return encode(self.time, self.time_levels)

    @cached_property
    def subject_codes(self) -> NDArray[np.intp]:
        return encode(self.subject, self.subjects)

    @cached_property
    def observations(self) -> tuple[Observation, ...]:
        return tuple(
            Observation(subject_id=s, condition=c, time=t, value=float(v))
            for s, c, t, v in zip(
                self.subject.tolist(), self.condition.tolist(),
                self.time.tolist(), self.y.tolist(),
            )
        )

    @cached_property
    def cell_counts(self) -> dict[tuple[str, str], int]:
        """{(condition, time): number of observations}."""
        a, b = len(self.condition_levels), len(self.time_levels)
        counts = np.zeros((a, b), dtype=np.intp)
        np.add.at(counts, (self.condition_codes, self.time_codes), 1)
        return {
            (c, t): int(counts[i, j])
            for i, c in enumerate(self.condition_levels)
            for j, t in enumerate(self.time_levels)
        }

    @property
    def cell_sizes(self) -> NDArray[np.intp]:
        """(a, b) matrix of cell sizes in level order."""
        a, b = len(self.condition_levels), len(self.time_levels)
        return np.array(list(self.cell_counts.values()), dtype=np.intp).reshape(a, b)

    @property
    def cell_means(self) -> NDArray[np.floating[Any]]:
        """(a, b) matrix of cell means in level order."""
        a, b = len(self.condition_levels), len(self.time_levels)
        sums = np.zeros((a, b), dtype=np.float64)
        np.add.at(sums, (self.condition_codes, self.time_codes), self.y)
        return sums / self.cell_sizes

    @property
    def is_balanced(self) -> bool:
        return len(set(self.cell_counts.values())) == 1

    @cached_property
    def layout(self) -> Layout:
        """
        How subjects relate to conditions.

        'between': every subject appears under exactly one condition.
        'within': every subject appears under every condition.
        'mixed': anything else.
        """
        n_cond = len(self.condition_levels)
        conds_per_subject = np.zeros((self.n_subjects, n_cond), dtype=bool)
        conds_per_subject[self.subject_codes, self.condition_codes] = True
        per_subject = conds_per_subject.sum(axis=1)
        if np.all(per_subject == 1):
            return 'between'
        if np.all(per_subject == n_cond):
            return 'within'
        return 'mixed'

    @cached_property
    def groups(self) -> tuple[Group, ...]:
        """All cells, condition-major, each in level order."""
        out = []
        for i, c in enumerate(self.condition_levels):
            for j, t in enumerate(self.time_levels):
                mask = (self.condition_codes == i) & (self.time_codes == j)
                out.append(Group(
                    condition=c,
                    time=t,
                    values=self.y[mask],
                    subjects=self.subject[mask],
                ))
        return tuple(out)

    def group(self, condition: Any, time: Any) -> Group:
        """Look up one cell by its labels."""
        key = (str(condition), str(time))
        for g in self.groups:
            if (g.condition, g.time) == key:
                return g
        raise KeyError(
            f"No group ({condition!r}, {time!r}). "
            f"Conditions: {self.condition_levels}, times: {self.time_levels}"
        )

    def balance_warnings(self) -> tuple[str, ...]:
        """Configuration warnings about unequal cell sizes."""
        if self.is_balanced:
            return ()
        sizes = sorted(set(self.cell_counts.values()))
        return (
            f"Unbalanced design: cell sizes range from {sizes[0]} to {sizes[-1]}. "
            f"Sums of squares are not orthogonal; the exact partition into "
            f"main effects and interaction no longer holds.",
        )

    # === Derived datasets and views ===

    def exclude(self, mask: Any) -> Dataset:
        """
        Return a new Dataset without the observations where mask is True.

        Level catalogs are kept, so dropping a whole cell raises SchemaError.
        """
        mask_arr = np.asarray(mask, dtype=bool)
        if mask_arr.shape != self.y.shape:
            raise ValidationError(
                f"mask: expected shape {self.y.shape}, got {mask_arr.shape}"
            )
        keep = ~mask_arr
        return Dataset.from_arrays(
            self.subject[keep],
            self.condition[keep],
            self.time[keep],
            self.y[keep],
            condition_levels=self.condition_levels,
            time_levels=self.time_levels,
        )

    def group_summary(self) -> list[dict[str, Any]]:
        """One summary row per cell (mean, sd, se, n, ...)."""
        return [g.to_row() for g in self.groups]

    def to_dataframe(self) -> 'pd.DataFrame':
        """Long-format DataFrame with ordered categorical factors."""
        import pandas as pd

        return pd.DataFrame({
            'subject': self.subject,
            'condition': pd.Categorical(self.condition, categories=self.condition_levels, ordered=True),
            'time': pd.Categorical(self.time, categories=self.time_levels, ordered=True),
            'value': self.y,
        })

    def __repr__(self) -> str:
        return (
            f"Dataset(n={self.n_observations}, subjects={self.n_subjects}, "
            f"conditions={list(self.condition_levels)}, times={list(self.time_levels)}, "
            f"layout={self.layout!r})"
        )


def _categorical_levels(series: 'pd.Series') -> tuple[str, ...] | None:
    """Category order of an ordered categorical column, else None."""
    import pandas as pd

    if isinstance(series.dtype, pd.CategoricalDtype) and series.dtype.ordered:
        present = set(series.dropna().tolist())
        return tuple(c for c in series.cat.categories.tolist() if c in present)
    return None
