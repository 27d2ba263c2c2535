"""Shared fixtures for the pitviz test suite."""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from pitviz import DiagnosticConfig, ReferenceDistribution


@pytest.fixture
def scenario() -> ReferenceDistribution:
    """Stepped distribution with a=-0.5, b=0.5, p_left=0.4, p_right=0.6, s=0.5."""
    return ReferenceDistribution(split_left=-0.5, split_right=0.5, right_scale=0.5, p_left=0.4, p_right=0.6)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


@pytest.fixture
def small_config(tmp_path) -> DiagnosticConfig:
    """Configuration small enough for a fast end-to-end run."""
    return DiagnosticConfig(
        seed=7,
        n_sample=300,
        quantile_count=30,
        dot_bin_width=0.15,
        ecdf_grid_size=100,
        band_simulations=500,
        output_dir=str(tmp_path),
    )
