"""
Probability integral transform of a sample through a density representation.

If the representation reproduces the true distribution, the PIT values are
uniform on [0, 1]; systematic departures of their ECDF from the identity
line show where the representation is biased.
"""

from typing import Tuple

import numpy as np

from .data import validate_size
from .density import check_sample
from .representation import DensityRepresentation


def compute_pit(representation: DensityRepresentation, sample) -> np.ndarray:
    """
    Map every observation through the representation's CDF.

    Args:
        representation: Dot layout, histogram, or density curve
        sample: Original observations

    Returns:
        PIT values in [0, 1], one per observation, in sample order
    """
    x = check_sample(sample)
    return np.clip(representation.cdf(x), 0.0, 1.0)


def ecdf_grid(k: int) -> np.ndarray:
    """Equally spaced probability points k/K for k = 1..K."""
    K = validate_size(k, "k")
    return np.arange(1, K + 1) / K


def ecdf_counts(values, grid) -> np.ndarray:
    """Number of values <= each grid point."""
    return np.searchsorted(np.sort(np.asarray(values, dtype=float)), grid, side="right")


def ecdf_deviation(pit_sample, k: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    ECDF of a PIT sample minus the uniform CDF, on K grid points.

    Args:
        pit_sample: PIT values
        k: Number of grid points K

    Returns:
        (z, ecdf(z) - z) with z = k/K, k = 1..K
    """
    pit = check_sample(pit_sample)
    z = ecdf_grid(k)
    return z, ecdf_counts(pit, z) / pit.size - z
