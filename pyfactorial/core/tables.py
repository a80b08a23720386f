"""
Flat table helpers shared by the solution types.

Every solution exposes to_rows() (a list of plain dicts, one per table row)
for reporting and charting collaborators; to_dataframe() wraps the same
rows in a pandas DataFrame.
"""

from typing import Any, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import pandas as pd


def rows_to_dataframe(rows: list[dict[str, Any]]) -> 'pd.DataFrame':
    """Build a DataFrame from flat rows, keeping column order."""
    import pandas as pd

    return pd.DataFrame.from_records(rows)


def significance_stars(p: float | None) -> str:
    """Return significance stars for a p-value."""
    if p is None or np.isnan(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    if p < 0.1:
        return "."
    return ""


def format_p(p: float | None) -> str:
    """Fixed-width p-value cell; blank when not applicable."""
    if p is None:
        return f"{'NA':>12}"
    return f"{p:>12.4e}"
