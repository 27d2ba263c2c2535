"""
Exception and warning classes for the PIT diagnostics package.

Errors fail fast at construction time; degenerate-but-recoverable inputs are
reported with warnings and handled by a documented floor.
"""


class PitVizError(Exception):
    """Base class for all exceptions raised by pitviz."""


class InvalidParameterError(PitVizError, ValueError):
    """
    Raised when a parameter is outside its valid domain.

    Examples: non-positive sample size, quantile count or bin width,
    split_left >= split_right, mixture weights not ordered inside (0, 1).
    """


class CalibrationNonConvergenceError(PitVizError, RuntimeError):
    """
    Raised when the simultaneous band calibration cannot bracket or reach
    the target coverage within its iteration bound.

    Attributes:
        gamma: Last per-point tail probability tried
        coverage: Simultaneous coverage estimated at `gamma`
    """

    def __init__(self, message: str, gamma: float = float("nan"), coverage: float = float("nan")):
        super().__init__(message)
        self.gamma = gamma
        self.coverage = coverage


class DegenerateSampleWarning(UserWarning):
    """Sample has zero spread; a bandwidth or bin-width floor was applied."""


class DotOverflowWarning(UserWarning):
    """A dot stack grew beyond the configured maximum height."""
