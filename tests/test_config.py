"""Tests for the YAML-backed run configuration."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

import pytest

from pitviz import DiagnosticConfig, InvalidParameterError, load_config

DEFAULT_YAML = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"


def test_yaml_round_trip(tmp_path) -> None:
    config = DiagnosticConfig(seed=3, n_sample=250, kde_rules=["plugin"], histogram_origin=0.1, ecdf_grid_size=50)
    path = tmp_path / "run.yaml"
    config.to_yaml(path)

    loaded = DiagnosticConfig.from_yaml(path)
    assert loaded == config
    assert loaded.kde_rules == ("plugin",)


def test_partial_yaml_keeps_defaults(tmp_path) -> None:
    path = tmp_path / "partial.yaml"
    path.write_text("n_sample: 200\nconfidence: 0.9\n")

    config = load_config(str(path))
    assert config.n_sample == 200
    assert config.confidence == 0.9
    assert config.quantile_count == DiagnosticConfig().quantile_count


def test_empty_yaml_gives_defaults(tmp_path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(str(path)) == DiagnosticConfig()


def test_load_config_without_path() -> None:
    assert load_config(None) == DiagnosticConfig()


def test_shipped_default_yaml_matches_dataclass() -> None:
    assert asdict(load_config(str(DEFAULT_YAML))) == asdict(DiagnosticConfig())


def test_grid_size_defaults_to_sample_size() -> None:
    assert DiagnosticConfig(n_sample=400).grid_size == 400
    assert DiagnosticConfig(n_sample=400, ecdf_grid_size=80).grid_size == 80


def test_reference_distribution_from_config() -> None:
    dist = DiagnosticConfig(p_left=None, p_right=None).reference_distribution()
    assert dist.split_left == -0.5
    assert dist.p_left == pytest.approx(0.3085375, abs=1e-6)


def test_invalid_distribution_parameters_fail_on_use() -> None:
    config = DiagnosticConfig(split_left=1.0, split_right=0.0)
    with pytest.raises(InvalidParameterError):
        config.reference_distribution()


def test_unknown_yaml_key_rejected(tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("n_samples: 10\n")
    with pytest.raises(TypeError):
        load_config(str(path))
