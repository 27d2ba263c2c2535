"""
End-to-end PIT diagnostics: sample -> representations -> PIT -> ECDF vs band.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .binning import DotLayout, fit_dot_layout, fit_histogram
from .calibration import Band, compute_band
from .config import DiagnosticConfig
from .data import ReferenceDistribution, sample_from
from .density import fit_kernel_density
from .pit import compute_pit, ecdf_deviation
from .representation import DensityRepresentation


@dataclass
class RepresentationDiagnostic:
    """
    PIT diagnostic of a single representation.

    Attributes:
        representation: Fitted dot layout, histogram or density curve
        pit: PIT values of the original sample
        grid: ECDF grid points z
        deviation: ecdf(z) - z
        band: Simultaneous band for (N, K, confidence)
    """

    representation: DensityRepresentation
    pit: np.ndarray
    grid: np.ndarray
    deviation: np.ndarray
    band: Band

    @property
    def exceedances(self) -> np.ndarray:
        return self.band.exceedances(self.pit)

    @property
    def calibrated(self) -> bool:
        """True when the ECDF never leaves the band."""
        return not self.exceedances.any()

    @property
    def max_abs_deviation(self) -> float:
        return float(np.max(np.abs(self.deviation)))


def diagnose_representation(representation: DensityRepresentation, sample, band: Band) -> RepresentationDiagnostic:
    """Compute PIT values and their ECDF deviation on the band's grid."""
    pit = compute_pit(representation, sample)
    grid, deviation = ecdf_deviation(pit, band.k)
    return RepresentationDiagnostic(
        representation=representation,
        pit=pit,
        grid=grid,
        deviation=deviation,
        band=band,
    )


@dataclass
class DiagnosticResults:
    """All diagnostics of one run, keyed by representation name."""

    config: DiagnosticConfig
    distribution: ReferenceDistribution
    sample: np.ndarray
    diagnostics: Dict[str, RepresentationDiagnostic] = field(default_factory=dict)

    def summary(self) -> pd.DataFrame:
        """
        One row per representation.

        Columns: representation, n, k, gamma, max_abs_deviation,
        n_exceedances, calibrated
        """
        rows = []
        for name, diag in self.diagnostics.items():
            rows.append(
                {
                    "representation": name,
                    "n": diag.band.n,
                    "k": diag.band.k,
                    "gamma": diag.band.gamma,
                    "max_abs_deviation": diag.max_abs_deviation,
                    "n_exceedances": int(diag.exceedances.sum()),
                    "calibrated": diag.calibrated,
                }
            )
        return pd.DataFrame(rows)


def fit_representations(sample, config: DiagnosticConfig) -> Dict[str, DensityRepresentation]:
    """Fit the dot layout, the histogram and one KDE per configured bandwidth rule."""
    representations = [
        fit_dot_layout(
            sample,
            config.quantile_count,
            config.dot_bin_width,
            overflow=config.dot_overflow,
            max_height=config.dot_max_height,
        ),
        fit_histogram(sample, rule=config.histogram_rule, origin=config.histogram_origin),
    ]
    for rule in config.kde_rules:
        representations.append(
            fit_kernel_density(
                sample,
                rule=rule,
                kernel=config.kde_kernel,
                grid_size=config.kde_grid_size,
                cut=config.kde_cut,
            )
        )
    return {rep.name: rep for rep in representations}


def run_diagnostics(config: DiagnosticConfig, rng: Optional[np.random.Generator] = None) -> DiagnosticResults:
    """
    Run the full pipeline for one configuration.

    The sample is drawn once and shared by every representation. The dot
    plot is judged on a grid of `quantile_count` points, the histogram and
    KDEs on `config.grid_size` points; bands are cached per (N, K).

    Args:
        config: Run configuration
        rng: Random generator for the sample (default: seeded from config.seed)

    Returns:
        DiagnosticResults
    """
    rng = np.random.default_rng(config.seed) if rng is None else rng
    distribution = config.reference_distribution()
    sample = sample_from(distribution, config.n_sample, rng=rng)

    results = DiagnosticResults(config=config, distribution=distribution, sample=sample)
    for name, representation in fit_representations(sample, config).items():
        k = config.quantile_count if isinstance(representation, DotLayout) else config.grid_size
        band = compute_band(
            config.n_sample,
            k,
            config.confidence,
            seed=config.seed,
            method=config.band_method,
            n_simulations=config.band_simulations,
            tol=config.band_tolerance,
            max_iter=config.band_max_iter,
        )
        results.diagnostics[name] = diagnose_representation(representation, sample, band)

    return results
