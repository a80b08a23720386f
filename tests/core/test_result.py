"""
Tests for the Result[P] envelope and the Timer.

Validates:
    - Generic payload access
    - Frozen immutability
    - Default warnings and has_warning()
    - Timer sections accumulate and require start/stop
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from pyfactorial.core.result import Result
from pyfactorial.core.compute import Timer, timed


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


class TestResult:

    def test_basic_creation(self):
        result = Result(
            params=FakeParams(value=42.0),
            info={"mode": "between"},
            timing={"total_seconds": 0.01},
        )
        assert result.params.value == 42.0
        assert result.info["mode"] == "between"
        assert result.timing["total_seconds"] == 0.01

    def test_default_warnings_empty(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None)
        assert result.warnings == ()
        assert result.timing is None

    def test_frozen(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None)
        with pytest.raises(FrozenInstanceError):
            result.params = FakeParams(2.0)

    def test_has_warning(self):
        result = Result(
            params=FakeParams(1.0),
            info={},
            timing=None,
            warnings=("Unbalanced design: cell sizes range from 4 to 5",),
        )
        assert result.has_warning("Unbalanced")
        assert not result.has_warning("sphericity")


class TestTimer:

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        with timer.section('a'):
            pass
        with timer.section('a'):
            pass
        with timer.section('b'):
            pass
        timer.stop()
        out = timer.result()
        assert set(out) == {'total_seconds', 'a', 'b'}
        assert out['total_seconds'] >= 0.0

    def test_stop_before_start(self):
        with pytest.raises(RuntimeError):
            Timer().stop()

    def test_result_before_stop(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError):
            timer.result()

    def test_timed_context(self):
        with timed() as timer:
            sum(range(100))
        assert timer.result()['total_seconds'] >= 0.0
