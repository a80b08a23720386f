"""
Exception hierarchy for pyfactorial.

All exceptions inherit from PyFactorialError so callers can catch any
library-specific error. Structural problems (schema, missing repeated
measures) are exceptions; assumption violations are never exceptions and
travel as warnings instead.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class PyFactorialError(Exception):
    """Base exception for all pyfactorial errors."""
    pass


class ValidationError(PyFactorialError):
    """
    Input validation failed.

    Raised when user-provided arguments fail validation checks.
    """
    pass


class SchemaError(ValidationError):
    """
    Input table does not match the expected observation schema.

    Raised when a required column is absent, the outcome column is not
    numeric, a factor label is outside its declared level set, or a
    (subject, condition, time) combination appears more than once.

    Attributes:
        column: Offending column name, if the problem is column-specific
    """

    def __init__(self, message: str, column: str | None = None):
        super().__init__(message)
        self.column = column


class InsufficientDataError(PyFactorialError):
    """
    A group is too small (or degenerate) for the requested test.

    Callers convert this into an indeterminate result for that test only;
    the rest of the analysis continues.

    Attributes:
        group: Label of the offending group, if known
        n: Number of observations in that group
        required: Minimum number of observations the test needs
    """

    def __init__(
        self,
        message: str,
        group: str | None = None,
        n: int | None = None,
        required: int | None = None,
    ):
        super().__init__(message)
        self.group = group
        self.n = n
        self.required = required


class MissingRepeatedMeasureError(PyFactorialError):
    """
    A subject lacks an expected measurement under repeated measures.

    The stratified decomposition needs every subject observed at every
    time point (and under every condition when condition is crossed with
    subject). Subjects are never dropped silently.

    Attributes:
        subjects: Identifiers of the incomplete subjects
    """

    def __init__(self, message: str, subjects: tuple[str, ...] = ()):
        super().__init__(message)
        self.subjects = subjects


class NumericalError(PyFactorialError):
    """
    Numerical computation failed.

    Raised for degenerate inputs a formula cannot handle (for example a
    zero error mean square where a ratio is required).
    """
    pass


class PyFactorialWarning(UserWarning):
    """Base class for advisory warnings issued by pyfactorial."""
    pass


class UnbalancedDesignWarning(PyFactorialWarning):
    """
    Cell sizes differ.

    The ANOVA is still computed with the balanced-design formulas, but the
    sums of squares are no longer orthogonal.
    """
    pass


class AssumptionWarning(PyFactorialWarning):
    """An assumption check (normality, homogeneity, outliers) flagged a problem."""
    pass
