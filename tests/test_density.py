"""Tests for bandwidth rules and kernel density curves."""

from __future__ import annotations

import warnings

import numpy as np
import pytest
from scipy.integrate import trapezoid
from scipy.stats import iqr

from pitviz import (
    DegenerateSampleWarning,
    GridDensity,
    InvalidParameterError,
    KernelDensity,
    fit_kernel_density,
    plugin_bandwidth,
    rule_of_thumb_bandwidth,
)
from pitviz.density import BANDWIDTH_FLOOR, select_bandwidth


def test_rule_of_thumb_formula(rng) -> None:
    """h = 0.9 * min(sd, IQR/1.34) * n^(-1/5)"""
    x = rng.normal(size=500)
    expected = 0.9 * min(np.std(x, ddof=1), iqr(x) / 1.34) * 500 ** (-0.2)
    assert rule_of_thumb_bandwidth(x) == pytest.approx(expected)


def test_rule_of_thumb_uses_sd_when_iqr_is_zero() -> None:
    x = np.concatenate([np.zeros(90), np.linspace(1, 2, 10)])
    assert iqr(x) == 0
    expected = 0.9 * np.std(x, ddof=1) * x.size ** (-0.2)
    assert rule_of_thumb_bandwidth(x) == pytest.approx(expected)


def test_plugin_is_smaller_on_stepped_density(scenario, rng) -> None:
    """Plug-in bandwidth reacts to the density steps; the normal reference does not."""
    x = scenario.sample(2000, rng=rng)
    assert plugin_bandwidth(x) < 0.85 * rule_of_thumb_bandwidth(x)


def test_plugin_close_to_normal_optimum(rng) -> None:
    """For normal data the plug-in bandwidth is near 1.06 * sd * n^(-1/5)."""
    x = rng.normal(scale=2.0, size=2000)
    optimum = 1.06 * np.std(x, ddof=1) * x.size ** (-0.2)
    assert plugin_bandwidth(x) == pytest.approx(optimum, rel=0.3)


@pytest.mark.parametrize("rule", [rule_of_thumb_bandwidth, plugin_bandwidth])
def test_constant_sample_gets_bandwidth_floor(rule) -> None:
    with pytest.warns(DegenerateSampleWarning):
        h = rule(np.full(50, 3.0))
    assert h == BANDWIDTH_FLOOR


def test_constant_sample_kde_is_usable() -> None:
    """A constant sample still yields a proper density centred on the value."""
    with pytest.warns(DegenerateSampleWarning):
        kde = fit_kernel_density(np.full(20, 1.5))
    assert kde.bandwidth == BANDWIDTH_FLOOR
    assert kde.cdf(1.5) == pytest.approx(0.5, abs=1e-3)
    assert kde.cdf(1.4) == 0.0
    assert kde.cdf(1.6) == 1.0


@pytest.mark.parametrize("rule", ["rule_of_thumb", "plugin"])
@pytest.mark.parametrize("kernel", ["gaussian", "epanechnikov"])
def test_kde_is_a_normalised_density(scenario, rng, rule, kernel) -> None:
    x = scenario.sample(400, rng=rng)
    kde = fit_kernel_density(x, rule=rule, kernel=kernel, grid_size=256)

    assert isinstance(kde, KernelDensity)
    assert kde.grid.size == 256
    assert kde.grid[0] == pytest.approx(x.min() - 3 * kde.bandwidth)
    assert kde.grid[-1] == pytest.approx(x.max() + 3 * kde.bandwidth)
    assert trapezoid(kde.values, kde.grid) == pytest.approx(1.0)
    assert np.all(kde.values >= 0)

    F = kde.cdf(kde.grid)
    assert F[0] == 0.0
    assert F[-1] == pytest.approx(1.0)
    assert np.all(np.diff(F) >= 0)


def test_evaluate_matches_grid_values(rng) -> None:
    x = rng.normal(size=200)
    kde = fit_kernel_density(x, grid_size=128)
    assert np.allclose(kde.evaluate(kde.grid), kde.values)


def test_kde_geometry(rng) -> None:
    kde = fit_kernel_density(rng.normal(size=100), grid_size=64)
    geom = kde.geometry()
    assert list(geom.columns) == ["x", "density"]
    assert len(geom) == 64


def test_callable_bandwidth_rule(rng) -> None:
    x = rng.normal(size=100)
    kde = fit_kernel_density(x, rule=lambda s: 0.25)
    assert kde.bandwidth == 0.25


def test_unknown_rule_and_kernel_rejected(rng) -> None:
    x = rng.normal(size=50)
    with pytest.raises(InvalidParameterError):
        select_bandwidth(x, "scott-ish")
    with pytest.raises(InvalidParameterError):
        fit_kernel_density(x, kernel="box")
    with pytest.raises(InvalidParameterError):
        fit_kernel_density(x, grid_size=1)
    with pytest.raises(InvalidParameterError):
        KernelDensity(x, bandwidth=0.0, grid=np.linspace(-3, 3, 10))


def test_empty_or_non_finite_sample_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        rule_of_thumb_bandwidth([])
    with pytest.raises(InvalidParameterError):
        fit_kernel_density([0.0, np.nan, 1.0])


def test_grid_density_normalises_values() -> None:
    grid = np.linspace(0, 2, 201)
    dens = GridDensity(grid, np.full(201, 3.0))

    assert np.allclose(dens.values, 0.5)
    assert dens.normalizer == pytest.approx(6.0)
    assert dens.cdf(1.0) == pytest.approx(0.5)
    assert dens.quantile(0.25) == pytest.approx(0.5)


def test_grid_density_validation() -> None:
    with pytest.raises(InvalidParameterError):
        GridDensity([0.0, 1.0, 0.5], [1.0, 1.0, 1.0])
    with pytest.raises(InvalidParameterError):
        GridDensity([0.0, 1.0], [0.0, 0.0])
    with pytest.raises(InvalidParameterError):
        GridDensity([0.0, 1.0], [1.0, -1.0])


def test_regular_sample_emits_no_warning(rng) -> None:
    x = rng.normal(size=300)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        fit_kernel_density(x, rule="plugin")
