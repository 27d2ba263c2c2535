"""
Quantile dot layouts and density histograms.
"""

import warnings
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np
import pandas as pd
from scipy.stats import iqr

from .data import validate_size
from .density import check_sample
from .exceptions import DegenerateSampleWarning, DotOverflowWarning, InvalidParameterError
from .representation import DensityRepresentation, monotone_knots

# Bin width used when the sample has no spread at all
BIN_WIDTH_FLOOR = 1e-3

OVERFLOW_POLICIES = ("keep", "warn")


def _check_width(width: float, name: str = "bin_width") -> float:
    if width is None or not np.isfinite(width) or width <= 0:
        raise InvalidParameterError(f"{name} must be a positive finite number, got {width!r}.")
    return float(width)


# =============================================================================
# DOT LAYOUT
# =============================================================================


def plotting_positions(quantile_count: int) -> np.ndarray:
    """Median-unbiased plotting positions (i - 0.5) / q for i = 1..q."""
    q = validate_size(quantile_count, "quantile_count")
    return (np.arange(1, q + 1) - 0.5) / q


def sample_quantiles(sample, quantile_count: int) -> np.ndarray:
    """Sample quantiles at the plotting positions (linear interpolation)."""
    x = check_sample(sample)
    return np.quantile(x, plotting_positions(quantile_count))


def stack_dots(positions, bin_width: float) -> np.ndarray:
    """
    Greedy one-dimensional stacking of dots of diameter `bin_width`.

    Dots are processed in ascending order. Each dot takes the lowest slot
    whose rightmost dot lies at least `bin_width` to its left; a new slot is
    opened on top when none qualifies.

    Args:
        positions: Dot centres, sorted ascending
        bin_width: Dot diameter

    Returns:
        Integer slot per dot (0 is the bottom row)
    """
    xs = np.asarray(positions, dtype=float)
    w = _check_width(bin_width)
    if np.any(np.diff(xs) < 0):
        raise InvalidParameterError("Dot positions must be sorted ascending.")

    # tolerance for positions produced by floating point arithmetic
    min_gap = w * (1 - 1e-12)

    rightmost = []
    slots = np.empty(xs.size, dtype=int)
    for i, x in enumerate(xs):
        for slot, right in enumerate(rightmost):
            if x - right >= min_gap:
                rightmost[slot] = x
                slots[i] = slot
                break
        else:
            rightmost.append(x)
            slots[i] = len(rightmost) - 1
    return slots


@dataclass(frozen=True, eq=False)
class DotLayout(DensityRepresentation):
    """
    Quantile dot plot: one dot per sample quantile.

    The implied CDF interpolates linearly through (x_i, (i - 0.5) / q),
    starting half a dot left of the first dot and ending half a dot right of
    the last one.

    Attributes:
        quantile_count: Number of dots q
        bin_width: Dot diameter
        dot_positions: Dot centres (the sample quantiles), ascending
        slots: Stack slot of each dot
    """

    quantile_count: int
    bin_width: float
    dot_positions: np.ndarray
    slots: np.ndarray

    name = "dots"

    @property
    def height(self) -> int:
        """Number of occupied slots in the tallest stack."""
        return int(self.slots.max()) + 1

    def cdf_knots(self):
        x = self.dot_positions
        half = self.bin_width / 2
        F = plotting_positions(self.quantile_count)
        return monotone_knots(
            np.concatenate([[x[0] - half], x, [x[-1] + half]]),
            np.concatenate([[0.0], F, [1.0]]),
        )

    def density(self, x) -> np.ndarray:
        return self.knot_slope(x)

    def geometry(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "x": self.dot_positions,
                "slot": self.slots,
                "y": (self.slots + 0.5) * self.bin_width,
            }
        )


def fit_dot_layout(
    sample,
    quantile_count: int,
    bin_width: float,
    overflow: str = "keep",
    max_height: Optional[int] = None,
) -> DotLayout:
    """
    Build a quantile dot layout.

    Args:
        sample: 1D sample
        quantile_count: Number of quantiles / dots
        bin_width: Dot diameter
        overflow: 'keep' grows the stacks as needed; 'warn' does the same but
            warns when a stack exceeds `max_height`. Dots are never dropped.
        max_height: Maximum stack height checked by the 'warn' policy

    Returns:
        DotLayout with one (x, slot) pair per quantile
    """
    q = validate_size(quantile_count, "quantile_count")
    w = _check_width(bin_width)
    if overflow not in OVERFLOW_POLICIES:
        raise InvalidParameterError(f"Unknown overflow policy: {overflow!r}. Choose from {OVERFLOW_POLICIES}.")
    if max_height is not None:
        max_height = validate_size(max_height, "max_height")

    positions = sample_quantiles(sample, q)
    layout = DotLayout(
        quantile_count=q,
        bin_width=w,
        dot_positions=positions,
        slots=stack_dots(positions, w),
    )

    if overflow == "warn" and max_height is not None and layout.height > max_height:
        warnings.warn(
            f"Dot stacks reach {layout.height} slots, above max_height={max_height}.",
            DotOverflowWarning,
            stacklevel=2,
        )
    return layout


# =============================================================================
# HISTOGRAM
# =============================================================================


def freedman_diaconis_width(x: np.ndarray) -> float:
    """2 * IQR / n^(1/3)"""
    return 2.0 * float(iqr(x)) / x.size ** (1 / 3)


def scott_width(x: np.ndarray) -> float:
    """3.49 * sd / n^(1/3)"""
    sd = float(np.std(x, ddof=1)) if x.size > 1 else 0.0
    return 3.49 * sd / x.size ** (1 / 3)


def sturges_width(x: np.ndarray) -> float:
    """range / ceil(log2(n) + 1)"""
    return float(np.ptp(x)) / np.ceil(np.log2(x.size) + 1)


BIN_WIDTH_RULES = {
    "freedman_diaconis": freedman_diaconis_width,
    "scott": scott_width,
    "sturges": sturges_width,
}

BinWidthRule = Union[str, Callable[[np.ndarray], float]]


def histogram_bin_width(
    sample,
    rule: BinWidthRule = "freedman_diaconis",
    min_bin_width: float = BIN_WIDTH_FLOOR,
) -> float:
    """
    Bin width from a named rule or a callable `sample -> width`.

    A non-positive width (e.g. IQR = 0) falls back to Sturges' rule over the
    sample range, then to `min_bin_width` for a constant sample.
    """
    x = check_sample(sample)
    if callable(rule):
        width = float(rule(x))
    elif rule in BIN_WIDTH_RULES:
        width = BIN_WIDTH_RULES[rule](x)
    else:
        raise InvalidParameterError(f"Unknown bin width rule: {rule!r}. Choose from {sorted(BIN_WIDTH_RULES)}.")

    if np.isfinite(width) and width > 0:
        return width

    width = sturges_width(x)
    if not width > 0:
        width = min_bin_width
    warnings.warn(
        f"Bin width rule {rule!r} gave no positive width; using {width:g}.",
        DegenerateSampleWarning,
        stacklevel=2,
    )
    return width


@dataclass(frozen=True, eq=False)
class Histogram(DensityRepresentation):
    """
    Density histogram with equal-width bins.

    Attributes:
        bin_width: Width of every bin
        bin_edges: Edges, shape (B + 1,)
        bin_heights: Densities, shape (B,); total area is 1
        rule: Name of the rule that chose the width
    """

    bin_width: float
    bin_edges: np.ndarray
    bin_heights: np.ndarray
    rule: Optional[str] = None

    name = "histogram"

    def cdf_knots(self):
        area = np.concatenate([[0.0], np.cumsum(self.bin_heights * np.diff(self.bin_edges))])
        return self.bin_edges, area / area[-1]

    def density(self, x) -> np.ndarray:
        return self.knot_slope(x)

    def geometry(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "left": self.bin_edges[:-1],
                "right": self.bin_edges[1:],
                "height": self.bin_heights,
            }
        )


def fit_histogram(
    sample,
    rule: BinWidthRule = "freedman_diaconis",
    origin: Optional[float] = None,
    bin_width: Optional[float] = None,
    min_bin_width: float = BIN_WIDTH_FLOOR,
) -> Histogram:
    """
    Build a density histogram.

    Bin edges are anchored at `origin` (default: the sample minimum). An
    origin above the minimum is moved down by whole bin widths, so edges
    always fall at origin + k * width.

    Args:
        sample: 1D sample
        rule: Bin width rule, used when `bin_width` is None
        origin: Reference edge
        bin_width: Explicit bin width
        min_bin_width: Floor for degenerate samples

    Returns:
        Histogram covering [min(sample), max(sample)]
    """
    x = check_sample(sample)
    if bin_width is None:
        w = histogram_bin_width(x, rule, min_bin_width=min_bin_width)
        rule_name = rule if isinstance(rule, str) else getattr(rule, "__name__", "custom")
    else:
        w = _check_width(bin_width)
        rule_name = "fixed"

    lo, hi = float(x.min()), float(x.max())
    if origin is None:
        origin = lo
    elif not np.isfinite(origin):
        raise InvalidParameterError(f"origin must be finite, got {origin!r}.")
    elif origin > lo:
        origin -= np.ceil((origin - lo) / w) * w
        if origin > lo:
            origin -= w

    n_bins = max(1, int(np.ceil((hi - origin) / w)))
    edges = origin + w * np.arange(n_bins + 1)
    if edges[-1] < hi:
        edges = np.append(edges, edges[-1] + w)

    heights, _ = np.histogram(x, bins=edges, density=True)
    return Histogram(bin_width=w, bin_edges=edges, bin_heights=heights, rule=rule_name)
