"""
Common interface of the graphical density representations.

Dot layouts, histograms and kernel density curves all imply a continuous,
piecewise-linear CDF through a set of knots (x_k, F_k). The base class
evaluates and inverts that CDF, so the PIT extractor is written once against
`cdf` rather than once per representation.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
import pandas as pd


def monotone_knots(x: np.ndarray, F: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Collapse tied x positions, keeping the largest CDF value at each.

    np.interp needs strictly increasing abscissae for a well-defined result.
    """
    x = np.asarray(x, dtype=float)
    F = np.asarray(F, dtype=float)
    order = np.argsort(x, kind="stable")
    x, F = x[order], F[order]

    ux, inverse = np.unique(x, return_inverse=True)
    uF = np.full(ux.shape, -np.inf)
    np.maximum.at(uF, inverse, F)
    return ux, np.maximum.accumulate(uF)


class DensityRepresentation(ABC):
    """Evaluable approximation of a sample's density."""

    #: Short label used in summaries and figure legends
    name: str = "representation"

    @abstractmethod
    def cdf_knots(self) -> Tuple[np.ndarray, np.ndarray]:
        """Knots (x, F) of the piecewise-linear CDF, x increasing, F from 0 to 1."""

    @abstractmethod
    def density(self, x) -> np.ndarray:
        """Density implied by the representation at x."""

    @abstractmethod
    def geometry(self) -> pd.DataFrame:
        """Renderable coordinates for the presentation layer."""

    def cdf(self, x) -> np.ndarray:
        """CDF at arbitrary x; 0 left of the first knot and 1 right of the last."""
        xk, Fk = self.cdf_knots()
        return np.interp(np.asarray(x, dtype=float), xk, Fk, left=0.0, right=1.0)

    def quantile(self, p) -> np.ndarray:
        """Inverse of `cdf` on the knots (flat stretches map to their left end)."""
        xk, Fk = self.cdf_knots()
        Fk, first = np.unique(Fk, return_index=True)
        return np.interp(np.asarray(p, dtype=float), Fk, xk[first])

    def knot_slope(self, x) -> np.ndarray:
        """Slope of the piecewise-linear CDF at x (0 outside the knots)."""
        xk, Fk = self.cdf_knots()
        x = np.asarray(x, dtype=float)
        slopes = np.diff(Fk) / np.diff(xk)
        idx = np.searchsorted(xk, x, side="right") - 1
        inside = (idx >= 0) & (idx < slopes.size)
        return np.where(inside, slopes[np.clip(idx, 0, slopes.size - 1)], 0.0)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
