"""
Tests for input validation utilities and table helpers.
"""

import numpy as np
import pytest

from pyfactorial.core.exceptions import ValidationError
from pyfactorial.core.tables import format_p, significance_stars
from pyfactorial.core.validation import (
    check_1d,
    check_array,
    check_choice,
    check_consistent_length,
    check_finite,
    check_probability,
)


class TestCheckArray:

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "y")
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_object_numbers_converted(self):
        result = check_array(np.array([1, 2.5], dtype=object), "y")
        assert result.dtype == np.float64

    def test_strings_rejected(self):
        with pytest.raises(ValidationError, match="y"):
            check_array(["a", "b"], "y")

    def test_bool_rejected(self):
        with pytest.raises(ValidationError, match="non-numeric"):
            check_array([True, False], "y")


class TestChecks:

    def test_finite(self):
        check_finite(np.array([1.0, 2.0]), "y")
        with pytest.raises(ValidationError, match="1 NaN"):
            check_finite(np.array([1.0, np.nan]), "y")

    def test_1d(self):
        with pytest.raises(ValidationError, match="expected 1D"):
            check_1d(np.zeros((2, 2)), "y")

    def test_consistent_length(self):
        with pytest.raises(ValidationError, match="a=2, b=3"):
            check_consistent_length(np.zeros(2), np.zeros(3), names=("a", "b"))

    @pytest.mark.parametrize("value", [0.0, 1.0, -0.1, 1.5])
    def test_probability_bounds(self, value):
        with pytest.raises(ValidationError):
            check_probability(value, "alpha")

    def test_probability_ok(self):
        assert check_probability(0.05, "alpha") == 0.05

    def test_choice(self):
        assert check_choice('gg', ('none', 'gg'), 'correction') == 'gg'
        with pytest.raises(ValidationError, match="correction"):
            check_choice('xx', ('none', 'gg'), 'correction')


class TestTables:

    @pytest.mark.parametrize("p, stars", [
        (0.0001, "***"), (0.005, "**"), (0.02, "*"), (0.07, "."), (0.5, ""), (None, ""),
    ])
    def test_significance_stars(self, p, stars):
        assert significance_stars(p) == stars

    def test_format_p_na(self):
        assert format_p(None).strip() == "NA"
