"""
pitviz: PIT-based calibration diagnostics for graphical density summaries.

Checks whether a quantile dot plot, a histogram or a kernel density estimate
faithfully represents a sample drawn from a stepped reference distribution,
by comparing the ECDF of each representation's PIT values against calibrated
simultaneous bands.
"""

__version__ = "0.1.0"

from .config import DiagnosticConfig, load_config
from .exceptions import (
    PitVizError,
    InvalidParameterError,
    CalibrationNonConvergenceError,
    DegenerateSampleWarning,
    DotOverflowWarning,
)
from .data import (
    Region,
    ReferenceDistribution,
    sample_from,
    reference_density_curve,
)
from .representation import DensityRepresentation
from .density import (
    GridDensity,
    KernelDensity,
    fit_kernel_density,
    plugin_bandwidth,
    rule_of_thumb_bandwidth,
)
from .binning import (
    DotLayout,
    Histogram,
    fit_dot_layout,
    fit_histogram,
    stack_dots,
)
from .pit import compute_pit, ecdf_deviation
from .calibration import Band, compute_band, simultaneous_band
from .diagnostics import DiagnosticResults, diagnose_representation, run_diagnostics
from .plotting import setup_plotting, plot_representations, plot_pit_deviations

__all__ = [
    # Config
    "DiagnosticConfig",
    "load_config",
    # Errors
    "PitVizError",
    "InvalidParameterError",
    "CalibrationNonConvergenceError",
    "DegenerateSampleWarning",
    "DotOverflowWarning",
    # Reference distribution
    "Region",
    "ReferenceDistribution",
    "sample_from",
    "reference_density_curve",
    # Representations
    "DensityRepresentation",
    "GridDensity",
    "KernelDensity",
    "fit_kernel_density",
    "plugin_bandwidth",
    "rule_of_thumb_bandwidth",
    "DotLayout",
    "Histogram",
    "fit_dot_layout",
    "fit_histogram",
    "stack_dots",
    # PIT and bands
    "compute_pit",
    "ecdf_deviation",
    "Band",
    "compute_band",
    "simultaneous_band",
    # Pipeline
    "DiagnosticResults",
    "diagnose_representation",
    "run_diagnostics",
    # Plotting
    "setup_plotting",
    "plot_representations",
    "plot_pit_deviations",
]
