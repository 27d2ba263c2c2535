"""
Simultaneous confidence bands for the ECDF of a uniform PIT sample.

Under calibration the number of PIT values <= z is Binomial(N, z). Pointwise
binomial intervals of level 1 - gamma at K grid points hold jointly with
probability well below 1 - gamma, so gamma is tuned until the joint
(simultaneous) coverage equals the target:

    P(L_k(gamma) <= #{u_i <= k/K} <= U_k(gamma) for all k) = target

The joint probability is estimated by simulation with common random numbers
(the same batch of uniform samples for every candidate gamma) or computed
exactly by a binomial recursion over the grid for small N.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, Tuple

import numpy as np
from scipy.stats import binom

from .data import validate_size
from .exceptions import CalibrationNonConvergenceError, InvalidParameterError
from .pit import ecdf_counts, ecdf_grid

COVERAGE_METHODS = ("simulation", "recursion")

# Bracket width below which gamma is considered resolved
GAMMA_RESOLUTION = 1e-12


@dataclass(frozen=True, eq=False)
class Band:
    """
    Simultaneous envelope for an ECDF evaluated at z = k/K, k = 1..K.

    Limits are stored as counts out of n; `*_ecdf` and `*_deviation` give the
    same limits on the ECDF scale and relative to the identity line.

    Attributes:
        n: PIT sample size N
        k: Number of grid points K
        target_coverage: Requested simultaneous coverage
        gamma: Calibrated per-point tail probability
        achieved_coverage: Simultaneous coverage at `gamma`
        grid: Grid points z, shape (K,)
        lower: Lower count limits, shape (K,)
        upper: Upper count limits, shape (K,)
        method: Coverage estimator used
    """

    n: int
    k: int
    target_coverage: float
    gamma: float
    achieved_coverage: float
    grid: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    method: str = "simulation"

    def __post_init__(self):
        for array in (self.grid, self.lower, self.upper):
            array.setflags(write=False)

    @property
    def lower_ecdf(self) -> np.ndarray:
        return self.lower / self.n

    @property
    def upper_ecdf(self) -> np.ndarray:
        return self.upper / self.n

    @property
    def lower_deviation(self) -> np.ndarray:
        return self.lower / self.n - self.grid

    @property
    def upper_deviation(self) -> np.ndarray:
        return self.upper / self.n - self.grid

    def exceedances(self, pit_sample) -> np.ndarray:
        """Boolean mask of grid points where the sample's ECDF leaves the band."""
        pit = np.asarray(pit_sample, dtype=float).ravel()
        if pit.size != self.n:
            raise InvalidParameterError(f"Band was calibrated for N={self.n}, got a sample of size {pit.size}.")
        counts = ecdf_counts(pit, self.grid)
        return (counts < self.lower) | (counts > self.upper)

    def contains(self, pit_sample) -> bool:
        """True if the ECDF stays inside the band at every grid point."""
        return not self.exceedances(pit_sample).any()


# =============================================================================
# POINTWISE LIMITS AND JOINT COVERAGE
# =============================================================================


def pointwise_limits(n: int, k: int, gamma: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Binomial quantiles of order gamma/2 and 1 - gamma/2 at every grid point.

    Returns:
        (lower, upper) count limits, each of shape (K,)
    """
    z = ecdf_grid(k)
    inner = z < 1.0

    # every PIT value is <= 1, so the last point is pinned at n
    lower = np.full(z.shape, n, dtype=int)
    upper = np.full(z.shape, n, dtype=int)
    lower[inner] = binom.ppf(gamma / 2, n, z[inner])
    upper[inner] = binom.ppf(1 - gamma / 2, n, z[inner])
    return np.clip(lower, 0, n), np.clip(upper, 0, n)


def simulate_uniform_counts(
    n: int,
    k: int,
    n_simulations: int,
    rng: np.random.Generator,
    chunk_size: int = 500,
) -> np.ndarray:
    """
    ECDF counts of independent uniform samples on the grid k/K.

    Returns:
        Array of shape (n_simulations, K); entry [m, j] is the number of
        values of sample m that are <= (j + 1) / K
    """
    out = np.empty((n_simulations, k), dtype=np.int32)
    for start in range(0, n_simulations, chunk_size):
        m = min(chunk_size, n_simulations - start)
        u = rng.uniform(size=(m, n))

        # u <= j/K  <=>  ceil(u K) <= j
        cell = np.ceil(u * k).astype(np.int64)
        flat = cell + (k + 1) * np.arange(m)[:, None]
        hist = np.bincount(flat.ravel(), minlength=m * (k + 1)).reshape(m, k + 1)
        out[start : start + m] = np.cumsum(hist, axis=1)[:, 1:]
    return out


def simulated_coverage(counts: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> float:
    """Fraction of simulated ECDFs inside [lower, upper] at every grid point."""
    inside = np.all((counts >= lower) & (counts <= upper), axis=1)
    return float(inside.mean())


def recursion_coverage(n: int, lower: np.ndarray, upper: np.ndarray, grid: np.ndarray) -> float:
    """
    Exact joint coverage by propagating the distribution of the ECDF count.

    Given c values <= z_{j-1}, the number falling in (z_{j-1}, z_j] is
    Binomial(n - c, (z_j - z_{j-1}) / (1 - z_{j-1})). Mass outside the limits
    is removed at every step. Cost is O(K n^2); intended for small n.
    """
    i = np.arange(n + 1)[:, None]
    j = np.arange(n + 1)[None, :]

    prob = np.zeros(n + 1)
    prob[0] = 1.0
    z_prev = 0.0
    for z, lo, hi in zip(grid, lower, upper):
        step = (z - z_prev) / (1.0 - z_prev)
        prob = prob @ binom.pmf(j - i, n - i, step)
        prob[: max(lo, 0)] = 0.0
        prob[hi + 1 :] = 0.0
        z_prev = z
    return float(prob.sum())


# =============================================================================
# CALIBRATION
# =============================================================================


def _coverage_function(
    n: int,
    k: int,
    method: str,
    rng: Optional[np.random.Generator],
    n_simulations: int,
) -> Callable[[float], float]:
    if method == "simulation":
        rng = np.random.default_rng() if rng is None else rng
        counts = simulate_uniform_counts(n, k, n_simulations, rng)
        return lambda gamma: simulated_coverage(counts, *pointwise_limits(n, k, gamma))

    grid = ecdf_grid(k)
    return lambda gamma: recursion_coverage(n, *pointwise_limits(n, k, gamma), grid)


def simultaneous_band(
    n: int,
    k: int,
    target_coverage: float = 0.95,
    rng: Optional[np.random.Generator] = None,
    method: str = "simulation",
    n_simulations: int = 5000,
    tol: float = 1e-4,
    max_iter: int = 60,
    verbose: bool = False,
) -> Band:
    """
    Calibrate a simultaneous ECDF band by bisection on gamma.

    The bracket keeps coverage(lo) >= target > coverage(hi). The search stops
    when the coverage at the midpoint is within `tol` of the target, or when
    the bracket has collapsed onto a jump of the (discrete) coverage
    function, in which case the conservative end `lo` is returned.

    Args:
        n: PIT sample size N
        k: Number of grid points K
        target_coverage: Joint coverage probability, in (0, 1)
        rng: Random generator for the simulation estimator
        method: 'simulation' or 'recursion'
        n_simulations: Number of simulated uniform samples
        tol: Accepted distance between achieved and target coverage
        max_iter: Bisection iteration bound
        verbose: Print bisection progress

    Returns:
        Band with limits computed at the calibrated gamma

    Raises:
        CalibrationNonConvergenceError: target not bracketed, or not reached
            within max_iter iterations
    """
    n = validate_size(n, "n")
    k = validate_size(k, "k")
    max_iter = validate_size(max_iter, "max_iter")
    n_simulations = validate_size(n_simulations, "n_simulations")
    if not 0 < target_coverage < 1:
        raise InvalidParameterError(f"target_coverage must lie in (0, 1), got {target_coverage}.")
    if not tol > 0:
        raise InvalidParameterError(f"tol must be > 0, got {tol}.")
    if method not in COVERAGE_METHODS:
        raise InvalidParameterError(f"Unknown coverage method: {method!r}. Choose from {COVERAGE_METHODS}.")

    coverage = _coverage_function(n, k, method, rng, n_simulations)

    # gamma -> 0 gives limits [0, n], i.e. coverage 1
    lo, cov_lo = 0.0, 1.0
    hi, cov_hi = 1.0, coverage(1.0)
    if cov_hi >= target_coverage:
        raise CalibrationNonConvergenceError(
            f"Coverage {cov_hi:.4f} at gamma=1 already reaches target {target_coverage}; cannot bracket.",
            gamma=hi,
            coverage=cov_hi,
        )

    result = None
    for iteration in range(max_iter):
        mid = 0.5 * (lo + hi)
        cov_mid = coverage(mid)
        if verbose:
            print(f"Iteration {iteration + 1}/{max_iter}: gamma={mid:.6g}, coverage={cov_mid:.4f}")

        if cov_mid >= target_coverage:
            lo, cov_lo = mid, cov_mid
        else:
            hi, cov_hi = mid, cov_mid

        if abs(cov_mid - target_coverage) <= tol:
            result = (mid, cov_mid)
            break
        if hi - lo <= GAMMA_RESOLUTION and lo > 0:
            result = (lo, cov_lo)
            break

    if result is None:
        raise CalibrationNonConvergenceError(
            f"Band calibration did not converge in {max_iter} iterations "
            f"(gamma in [{lo:.3g}, {hi:.3g}], coverage {cov_lo:.4f} / {cov_hi:.4f}).",
            gamma=lo,
            coverage=cov_lo,
        )

    gamma, achieved = result
    lower, upper = pointwise_limits(n, k, gamma)
    return Band(
        n=n,
        k=k,
        target_coverage=target_coverage,
        gamma=gamma,
        achieved_coverage=achieved,
        grid=ecdf_grid(k),
        lower=lower,
        upper=upper,
        method=method,
    )


@lru_cache(maxsize=32)
def compute_band(
    n: int,
    k: int,
    confidence: float = 0.95,
    seed: int = 0,
    method: str = "simulation",
    n_simulations: int = 5000,
    tol: float = 1e-4,
    max_iter: int = 60,
) -> Band:
    """
    Memoised `simultaneous_band` keyed on (n, k, confidence) and the solver settings.

    The simulation draws from `np.random.default_rng(seed)`, so repeated
    calls return the same band.
    """
    return simultaneous_band(
        n,
        k,
        target_coverage=confidence,
        rng=np.random.default_rng(seed),
        method=method,
        n_simulations=n_simulations,
        tol=tol,
        max_iter=max_iter,
    )
