"""
Generic result container for all pyfactorial computations.

The Result class provides a standardized envelope that every stage's
result uses. This enables shared tooling for timing, warnings and
reporting while allowing each stage to define its own parameter payload.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (mode, correction, error source)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True) so results are write-once
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for statistical computations.

    Type Parameters:
        P: The stage-specific parameter payload type

    Attributes:
        params: Stage-specific payload (ANOVA table, contrasts, ...)
        info: Structured metadata (mode, correction, error term)
        timing: Execution timing breakdown, or None if not measured
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=AnovaParams(...),
        ...     info={'mode': 'between'},
        ...     timing={'total_seconds': 0.01},
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
