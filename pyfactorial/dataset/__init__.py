"""
Dataset model.

Public API:
    Dataset.from_arrays(subject, condition, time, value, ...) -> Dataset
    Dataset.from_dataframe(df, ...) -> Dataset
    Dataset.from_file(path, ...) -> Dataset
    Observation, Group                     # record types
"""

from pyfactorial.dataset._common import Group, Observation
from pyfactorial.dataset.design import Dataset

__all__ = [
    "Dataset",
    "Group",
    "Observation",
]
