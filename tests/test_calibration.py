"""Tests for the simultaneous ECDF band calibrator."""

from __future__ import annotations

import numpy as np
import pytest

from pitviz import Band, CalibrationNonConvergenceError, InvalidParameterError, compute_band, simultaneous_band
from pitviz.calibration import (
    pointwise_limits,
    recursion_coverage,
    simulate_uniform_counts,
    simulated_coverage,
)
from pitviz.pit import ecdf_counts, ecdf_grid


def test_band_limits_are_ordered_and_monotone() -> None:
    band = simultaneous_band(200, 50, 0.95, rng=np.random.default_rng(0), n_simulations=2000)

    assert isinstance(band, Band)
    assert band.grid.shape == band.lower.shape == band.upper.shape == (50,)
    assert np.all(band.lower <= band.upper)
    assert np.all(np.diff(band.lower) >= 0)
    assert np.all(np.diff(band.upper) >= 0)
    assert band.upper[-1] == band.lower[-1] == 200


def test_simultaneous_gamma_is_below_pointwise_level() -> None:
    """Joint coverage needs a smaller per-point tail probability than 1 - target."""
    band = simultaneous_band(500, 100, 0.95, rng=np.random.default_rng(1), n_simulations=2000)
    assert 0 < band.gamma < 0.05
    assert band.achieved_coverage == pytest.approx(0.95, abs=0.01)


def test_band_calibration_holds_on_fresh_uniform_samples() -> None:
    """N=1000, K=100: fresh uniform PIT samples stay inside at a rate near 95%."""
    band = compute_band(1000, 100, 0.95, seed=1)
    rng = np.random.default_rng(2024)

    trials = 2000
    inside = sum(band.contains(rng.uniform(size=1000)) for _ in range(trials))
    assert 0.93 <= inside / trials <= 0.97


def test_band_is_deterministic_under_fixed_seed() -> None:
    a = simultaneous_band(300, 30, 0.9, rng=np.random.default_rng(5), n_simulations=1000)
    b = simultaneous_band(300, 30, 0.9, rng=np.random.default_rng(5), n_simulations=1000)
    assert a.gamma == b.gamma
    assert np.array_equal(a.lower, b.lower)
    assert np.array_equal(a.upper, b.upper)


def test_compute_band_is_cached() -> None:
    first = compute_band(100, 20, 0.95, seed=3, n_simulations=500)
    second = compute_band(100, 20, 0.95, seed=3, n_simulations=500)
    assert first is second


def test_band_arrays_are_read_only() -> None:
    band = compute_band(100, 20, 0.95, seed=3, n_simulations=500)
    with pytest.raises(ValueError):
        band.lower[0] = 0


def test_deviation_view_matches_counts() -> None:
    band = compute_band(100, 20, 0.95, seed=3, n_simulations=500)
    assert np.allclose(band.lower_deviation, band.lower / 100 - band.grid)
    assert np.allclose(band.upper_ecdf, band.upper / 100)


def test_simulated_counts_match_direct_ecdf() -> None:
    rng = np.random.default_rng(11)
    counts = simulate_uniform_counts(50, 10, 3, rng)

    replay = np.random.default_rng(11)
    grid = ecdf_grid(10)
    for row in counts:
        assert np.array_equal(row, ecdf_counts(replay.uniform(size=50), grid))


def test_recursion_agrees_with_simulation() -> None:
    """Exact recursion and Monte Carlo estimate the same joint coverage."""
    n, k = 30, 10
    lower, upper = pointwise_limits(n, k, 0.05)
    exact = recursion_coverage(n, lower, upper, ecdf_grid(k))

    counts = simulate_uniform_counts(n, k, 20000, np.random.default_rng(8))
    assert simulated_coverage(counts, lower, upper) == pytest.approx(exact, abs=0.01)


def test_recursion_with_open_limits_has_full_coverage() -> None:
    n, k = 20, 5
    lower = np.zeros(k, dtype=int)
    upper = np.full(k, n)
    assert recursion_coverage(n, lower, upper, ecdf_grid(k)) == pytest.approx(1.0)


def test_recursion_method_calibrates() -> None:
    band = simultaneous_band(25, 5, 0.9, method="recursion")
    exact = recursion_coverage(25, band.lower, band.upper, band.grid)
    assert exact == pytest.approx(band.achieved_coverage)
    assert exact >= 0.9 - 1e-4


def test_iteration_bound_is_enforced() -> None:
    with pytest.raises(CalibrationNonConvergenceError):
        simultaneous_band(200, 20, 0.95, rng=np.random.default_rng(0), n_simulations=500, max_iter=1)


def test_unbracketable_target_is_reported() -> None:
    """With a single grid point at z=1 every sample is covered, so no gamma reaches below target."""
    with pytest.raises(CalibrationNonConvergenceError) as info:
        simultaneous_band(10, 1, 0.95, method="recursion")
    assert info.value.coverage == pytest.approx(1.0)


def test_exceedances_require_matching_size() -> None:
    band = compute_band(100, 20, 0.95, seed=3, n_simulations=500)
    with pytest.raises(InvalidParameterError):
        band.exceedances(np.linspace(0, 1, 50))


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(n=0, k=10),
        dict(n=10, k=0),
        dict(n=10, k=10, target_coverage=1.0),
        dict(n=10, k=10, target_coverage=0.0),
        dict(n=10, k=10, method="bootstrap"),
        dict(n=10, k=10, max_iter=0),
        dict(n=10, k=10, tol=0.0),
    ],
)
def test_invalid_parameters(kwargs) -> None:
    with pytest.raises(InvalidParameterError):
        simultaneous_band(**kwargs)
