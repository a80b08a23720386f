"""
pytest configuration and shared fixtures.

Datasets are built from (conditions, times, replicates) value cubes. By
default subjects are nested in conditions (each subject sees one condition
at every time point); crossed=True puts every subject under every
condition.
"""

import numpy as np
import pytest

from pyfactorial.dataset import Dataset


CONDITION_NAMES = ('A', 'B', 'C', 'D', 'E')


def build_dataset(values, *, crossed=False, condition_levels=None, time_levels=None):
    values = np.asarray(values, dtype=np.float64)
    a, b, n = values.shape
    subject, condition, time, y = [], [], [], []
    for i in range(a):
        for j in range(b):
            for k in range(n):
                cond = CONDITION_NAMES[i]
                subject.append(f"s{k + 1}" if crossed else f"{cond}{k + 1}")
                condition.append(cond)
                time.append(str(j + 1))
                y.append(values[i, j, k])
    return Dataset.from_arrays(
        subject, condition, time, y,
        condition_levels=condition_levels,
        time_levels=time_levels,
    )


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def make_dataset():
    """Factory: value cube (a, b, n) -> Dataset."""
    return build_dataset


@pytest.fixture
def divergence_values(rng):
    """
    2 conditions x 4 times x 5 subjects.

    Every cell is drawn independently from N(10, 1), so the condition
    means are equal at time 1 up to sampling noise; B sits 10 units above
    A at times 2-4.
    """
    values = rng.normal(10.0, 1.0, size=(2, 4, 5))
    values[1, 1:, :] += 10.0
    return values


@pytest.fixture
def divergence_dataset(divergence_values):
    return build_dataset(divergence_values)


@pytest.fixture
def identical_dataset(rng):
    """Both conditions carry identical values at every time point."""
    base = rng.normal(10.0, 1.0, size=(1, 4, 5)) + np.arange(4)[None, :, None]
    return build_dataset(np.repeat(base, 2, axis=0))


@pytest.fixture
def tiny_dataset():
    """
    Hand-computable 2 x 2 design, 2 replicates per cell.

    Cells: A1 [1, 3], A2 [5, 7], B1 [2, 4], B2 [10, 12].
    SS_C = 18, SS_T = 72, SS_CT = 8, SS_res = 8, SS_total = 106.
    """
    values = np.array([
        [[1.0, 3.0], [5.0, 7.0]],
        [[2.0, 4.0], [10.0, 12.0]],
    ])
    return build_dataset(values)


@pytest.fixture
def split_plot_dataset(rng):
    """3 conditions (between subjects) x 4 times, 6 subjects per condition."""
    a, b, n = 3, 4, 6
    subject_effect = rng.normal(0.0, 2.0, size=(a, 1, n))
    cond_effect = np.array([0.0, 1.0, 3.0])[:, None, None]
    time_effect = np.array([0.0, 0.5, 1.5, 2.0])[None, :, None]
    noise = rng.normal(0.0, 1.0, size=(a, b, n))
    return build_dataset(20.0 + subject_effect + cond_effect + time_effect + noise)


@pytest.fixture
def within_dataset(rng):
    """2 conditions x 3 times, both within subjects, 8 subjects."""
    a, b, n = 2, 3, 8
    subject_effect = rng.normal(0.0, 2.0, size=(1, 1, n))
    cond_effect = np.array([0.0, 2.0])[:, None, None]
    time_effect = np.array([0.0, 1.0, 1.5])[None, :, None]
    noise = rng.normal(0.0, 1.0, size=(a, b, n))
    return build_dataset(
        30.0 + subject_effect + cond_effect + time_effect + noise,
        crossed=True,
    )
