"""
Shared compute infrastructure for pyfactorial.

Submodules:
    timing: Execution timing utilities
"""

from pyfactorial.core.compute.timing import Timer, timed

__all__ = [
    "Timer",
    "timed",
]
