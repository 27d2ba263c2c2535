"""
Diagnostic run configuration with YAML support.
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

import yaml

from .data import ReferenceDistribution


@dataclass
class DiagnosticConfig:
    """
    Configuration for a PIT diagnostic run.

    Attributes:
        seed: Random seed for the sample and the band simulations
        n_sample: Sample size N
        split_left: Left discontinuity of the reference distribution
        split_right: Right discontinuity of the reference distribution
        right_scale: Scale of the right normal tail
        p_left: Left piece mass (None: Phi(split_left))
        p_right: Cumulative mass up to split_right (None: Phi(split_right))
        quantile_count: Number of dots in the quantile dot plot
        dot_bin_width: Dot diameter
        dot_overflow: Dot overflow policy ('keep' or 'warn')
        dot_max_height: Stack height checked by the 'warn' policy
        histogram_rule: Bin width rule ('freedman_diaconis', 'scott', 'sturges')
        histogram_origin: Reference bin edge (None: sample minimum)
        kde_rules: Bandwidth rules to compare
        kde_kernel: Kernel name ('gaussian' or 'epanechnikov')
        kde_grid_size: Number of KDE evaluation grid points
        kde_cut: KDE grid margin in bandwidths
        confidence: Target simultaneous coverage of the ECDF bands
        ecdf_grid_size: Band grid size K for histogram/KDE (None: n_sample)
        band_method: Coverage estimator ('simulation' or 'recursion')
        band_simulations: Number of simulated uniform samples per band
        band_tolerance: Coverage tolerance of the gamma bisection
        band_max_iter: Iteration bound of the gamma bisection
        output_dir: Directory for output files
    """

    # Core run parameters
    seed: int = 42
    n_sample: int = 1000

    # Reference distribution
    split_left: float = -0.5
    split_right: float = 0.5
    right_scale: float = 0.5
    p_left: Optional[float] = 0.4
    p_right: Optional[float] = 0.6

    # Quantile dot plot
    quantile_count: int = 100
    dot_bin_width: float = 0.1
    dot_overflow: str = "keep"
    dot_max_height: Optional[int] = None

    # Histogram
    histogram_rule: str = "freedman_diaconis"
    histogram_origin: Optional[float] = None

    # Kernel density
    kde_rules: tuple = ("rule_of_thumb", "plugin")
    kde_kernel: str = "gaussian"
    kde_grid_size: int = 512
    kde_cut: float = 3.0

    # Simultaneous bands
    confidence: float = 0.95
    ecdf_grid_size: Optional[int] = None
    band_method: str = "simulation"
    band_simulations: int = 5000
    band_tolerance: float = 1e-4
    band_max_iter: int = 60

    # Output
    output_dir: str = "."

    def __post_init__(self):
        # YAML loads sequences as lists
        self.kde_rules = tuple(self.kde_rules)

    @property
    def grid_size(self) -> int:
        """Band grid size K used for the histogram and KDE diagnostics."""
        return self.n_sample if self.ecdf_grid_size is None else self.ecdf_grid_size

    def reference_distribution(self) -> ReferenceDistribution:
        return ReferenceDistribution(
            split_left=self.split_left,
            split_right=self.split_right,
            right_scale=self.right_scale,
            p_left=self.p_left,
            p_right=self.p_right,
        )

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = asdict(self)
        data["kde_rules"] = list(self.kde_rules)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, path: Path) -> "DiagnosticConfig":
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))


def load_config(path: Optional[str] = None) -> DiagnosticConfig:
    """
    Load configuration from YAML file or return default config.

    Args:
        path: Path to YAML config file. If None, returns default config.

    Returns:
        DiagnosticConfig instance
    """
    if path is None:
        return DiagnosticConfig()
    return DiagnosticConfig.from_yaml(Path(path))


# Default config for quick access
DEFAULT_CONFIG = DiagnosticConfig()
