"""
Stepped reference distribution: left normal tail, flat middle, right normal tail.

The density has two discontinuities (at split_left and split_right), which is
the feature every density representation is judged against.

    x <  a        : p_left * phi(x) / Phi(a)
    a <= x <= b   : (p_right - p_left) / (b - a)
    x >  b        : (1 - p_right) * phi(x / s) / (s * (1 - Phi(b / s)))

with a = split_left, b = split_right, s = right_scale.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

import numpy as np
from scipy.stats import norm, truncnorm

from .exceptions import InvalidParameterError


class Region(IntEnum):
    """Piece of the reference distribution a point falls in."""

    LEFT = 0
    MIDDLE = 1
    RIGHT = 2


def validate_size(n, name: str = "n") -> int:
    """Return `n` as int, raising InvalidParameterError unless it is a positive integer."""
    if isinstance(n, bool) or int(n) != n or n <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer, got {n!r}.")
    return int(n)


# =============================================================================
# REFERENCE DISTRIBUTION
# =============================================================================


@dataclass(frozen=True)
class ReferenceDistribution:
    """
    Three-piece reference distribution with a flat middle section.

    Attributes:
        split_left: Left discontinuity a
        split_right: Right discontinuity b (must be > a)
        right_scale: Scale of the normal used for the right tail
        p_left: Mass of the left piece; defaults to Phi(split_left)
        p_right: Cumulative mass up to split_right; defaults to Phi(split_right)
    """

    split_left: float = -0.5
    split_right: float = 0.5
    right_scale: float = 0.5
    p_left: Optional[float] = None
    p_right: Optional[float] = None

    def __post_init__(self):
        if self.p_left is None:
            object.__setattr__(self, "p_left", float(norm.cdf(self.split_left)))
        if self.p_right is None:
            object.__setattr__(self, "p_right", float(norm.cdf(self.split_right)))

        values = (self.split_left, self.split_right, self.right_scale, self.p_left, self.p_right)
        if not np.all(np.isfinite(values)):
            raise InvalidParameterError("Distribution parameters must be finite.")
        if not self.split_left < self.split_right:
            raise InvalidParameterError(
                f"split_left must be < split_right, got {self.split_left} >= {self.split_right}."
            )
        if self.right_scale <= 0:
            raise InvalidParameterError(f"right_scale must be > 0, got {self.right_scale}.")
        if not 0 < self.p_left < self.p_right < 1:
            raise InvalidParameterError(
                f"Mixture weights must satisfy 0 < p_left < p_right < 1, "
                f"got p_left={self.p_left}, p_right={self.p_right}."
            )

    @property
    def masses(self) -> Tuple[float, float, float]:
        """Probability mass of the (left, middle, right) pieces."""
        return self.p_left, self.p_right - self.p_left, 1.0 - self.p_right

    @property
    def middle_height(self) -> float:
        return (self.p_right - self.p_left) / (self.split_right - self.split_left)

    @property
    def _left_norm(self) -> float:
        # Phi(a): normaliser of the truncated left tail
        return float(norm.cdf(self.split_left))

    @property
    def _right_norm(self) -> float:
        # 1 - Phi(b / s): normaliser of the truncated right tail
        return float(norm.sf(self.split_right / self.right_scale))

    def region(self, x) -> np.ndarray:
        """
        Classify points by piece. Both split points belong to the middle piece.

        Returns:
            Integer array of Region values with the shape of x
        """
        x = np.asarray(x, dtype=float)
        return np.select(
            [x < self.split_left, x <= self.split_right],
            [Region.LEFT, Region.MIDDLE],
            default=Region.RIGHT,
        ).astype(int)

    def density(self, x) -> np.ndarray:
        """Exact piecewise density."""
        x = np.asarray(x, dtype=float)
        s = self.right_scale
        regions = self.region(x)
        return np.select(
            [regions == Region.LEFT, regions == Region.MIDDLE],
            [
                self.p_left * norm.pdf(x) / self._left_norm,
                np.full_like(x, self.middle_height),
            ],
            default=(1.0 - self.p_right) * norm.pdf(x / s) / (s * self._right_norm),
        )

    def cdf(self, x) -> np.ndarray:
        """Exact piecewise CDF. Tails use survival functions for stability."""
        x = np.asarray(x, dtype=float)
        a, b, s = self.split_left, self.split_right, self.right_scale
        regions = self.region(x)
        with np.errstate(invalid="ignore"):
            middle = self.p_left + (self.p_right - self.p_left) * (x - a) / (b - a)
        return np.select(
            [regions == Region.LEFT, regions == Region.MIDDLE],
            [self.p_left * norm.cdf(x) / self._left_norm, middle],
            default=1.0 - (1.0 - self.p_right) * norm.sf(x / s) / self._right_norm,
        )

    def quantile(self, p) -> np.ndarray:
        """
        Inverse CDF.

        Args:
            p: Probabilities in [0, 1]

        Returns:
            Quantiles; p=0 and p=1 map to -inf and +inf
        """
        p = np.asarray(p, dtype=float)
        if np.any((p < 0) | (p > 1)) or np.any(np.isnan(p)):
            raise InvalidParameterError("Probabilities must lie in [0, 1].")

        a, b, s = self.split_left, self.split_right, self.right_scale
        with np.errstate(invalid="ignore", divide="ignore"):
            left = norm.ppf(p / self.p_left * self._left_norm)
            middle = a + (p - self.p_left) / (self.p_right - self.p_left) * (b - a)
            right = s * norm.isf((1.0 - p) / (1.0 - self.p_right) * self._right_norm)
        return np.select([p < self.p_left, p <= self.p_right], [left, middle], default=right)

    def sample(self, n: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """
        Draw n independent values.

        A first uniform picks the piece from the mixture weights, a second
        one inverts that piece's truncated CDF.

        Args:
            n: Sample size
            rng: Random generator (a fresh default_rng() if None)

        Returns:
            Sample of shape (n,)
        """
        n = validate_size(n)
        rng = np.random.default_rng() if rng is None else rng

        a, b, s = self.split_left, self.split_right, self.right_scale
        u = rng.uniform(size=n)
        v = rng.uniform(size=n)
        piece = np.select([u < self.p_left, u < self.p_right], [Region.LEFT, Region.MIDDLE], default=Region.RIGHT)

        X = np.empty(n, dtype=float)
        for region in Region:
            mask = piece == region
            if not mask.any():
                continue

            if region == Region.LEFT:
                X[mask] = truncnorm.ppf(v[mask], -np.inf, a)
            elif region == Region.MIDDLE:
                X[mask] = a + v[mask] * (b - a)
            else:
                X[mask] = truncnorm.ppf(v[mask], b / s, np.inf, loc=0.0, scale=s)

        return X

    def support_limits(self, eps: float = 1e-4) -> Tuple[float, float]:
        """Range holding all but `eps` of the mass, split evenly between tails."""
        lo, hi = self.quantile([eps / 2, 1 - eps / 2])
        return float(lo), float(hi)


# =============================================================================
# PUBLIC HELPERS
# =============================================================================


def sample_from(
    distribution: ReferenceDistribution,
    n: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Draw the run's sample from the reference distribution."""
    return distribution.sample(n, rng=rng)


def reference_density_curve(distribution: ReferenceDistribution, xs) -> np.ndarray:
    """
    True density evaluated on xs, for overlay plotting.

    Returns:
        Array of shape (m, 2) with columns (x, density)
    """
    xs = np.asarray(xs, dtype=float).ravel()
    return np.column_stack([xs, distribution.density(xs)])
