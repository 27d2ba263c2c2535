"""
Plotting utilities for PIT diagnostics.

Figures only render series computed elsewhere (geometries, deviations and
band limits); no statistics are computed here.
"""

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.gridspec import GridSpec
from matplotlib.patches import Circle

from .binning import DotLayout, Histogram
from .data import reference_density_curve
from .diagnostics import DiagnosticResults

COLORS = {
    "reference": "#d62728",
    "dots": "#1f77b4",
    "histogram": "#2ca02c",
    "kde": "#9467bd",
    "band": "#7f7f7f",
}


def setup_plotting():
    """
    Configure matplotlib and seaborn for publication-quality plots.

    Uses serif fonts with math text for LaTeX-like appearance.
    """
    sns.set_context("paper", font_scale=1.4)
    sns.set_style("whitegrid")
    plt.rcParams.update(
        {
            "text.usetex": False,
            "font.family": "serif",
            "mathtext.fontset": "cm",
            "axes.unicode_minus": False,
        }
    )


def _finish(fig, output_path: str, show: bool) -> None:
    plt.tight_layout()
    plt.savefig(output_path, bbox_inches="tight")

    if show:
        plt.show()
    else:
        plt.close(fig)

    print(f"\nSaved: {output_path}")


def plot_representations(
    results: DiagnosticResults,
    output_path: str = "representations.pdf",
    title: str = "Density representations of a stepped distribution",
    show: bool = True,
) -> None:
    """
    One panel per representation, each with the true density overlaid.

    Args:
        results: Output of run_diagnostics
        output_path: Path to save the figure
        title: Figure title
        show: Whether to display the plot
    """
    setup_plotting()

    dist = results.distribution
    lo, hi = dist.support_limits(1e-3)
    reference = reference_density_curve(dist, np.linspace(lo, hi, 1500))

    names = list(results.diagnostics)
    fig = plt.figure(figsize=(10, 3 * len(names)))
    gs = GridSpec(len(names), 1, hspace=0.3)

    ax_first = None
    for row, name in enumerate(names):
        ax = fig.add_subplot(gs[row], sharex=ax_first)
        ax_first = ax_first or ax
        rep = results.diagnostics[name].representation
        geom = rep.geometry()

        if isinstance(rep, DotLayout):
            for x, y in zip(geom["x"], geom["y"]):
                ax.add_patch(Circle((x, y), rep.bin_width / 2, color=COLORS["dots"], alpha=0.8))
            ax.set_ylim(0, max(rep.height * rep.bin_width, reference[:, 1].max()) * 1.05)
        elif isinstance(rep, Histogram):
            ax.bar(
                geom["left"],
                geom["height"],
                width=geom["right"] - geom["left"],
                align="edge",
                alpha=0.7,
                color=COLORS["histogram"],
                edgecolor="white",
            )
        else:
            ax.fill_between(geom["x"], geom["density"], alpha=0.3, color=COLORS["kde"])
            ax.plot(geom["x"], geom["density"], color=COLORS["kde"], linewidth=1.5)

        ax.plot(reference[:, 0], reference[:, 1], color=COLORS["reference"], linewidth=2, label="True density")
        for split in (dist.split_left, dist.split_right):
            ax.axvline(split, color=COLORS["band"], linestyle=":", linewidth=1)

        ax.set_ylabel("Density", fontsize=12)
        ax.set_title(name, fontsize=13)
        ax.legend(loc="upper right", fontsize=10)
        ax.set_xlim(lo, hi)
        ax.grid(True, alpha=0.3)

    ax.set_xlabel(r"$x$", fontsize=14)
    fig.suptitle(title, fontsize=16)
    _finish(fig, output_path, show)


def plot_pit_deviations(
    results: DiagnosticResults,
    output_path: str = "pit_deviations.pdf",
    title: str = "PIT ECDF difference with simultaneous bands",
    show: bool = True,
) -> None:
    """
    ECDF minus identity for every representation, inside its band.

    Grid points where the ECDF leaves the band are marked.

    Args:
        results: Output of run_diagnostics
        output_path: Path to save the figure
        title: Figure title
        show: Whether to display the plot
    """
    setup_plotting()

    names = list(results.diagnostics)
    fig, axes = plt.subplots(len(names), 1, figsize=(8, 2.6 * len(names)), sharex=True, squeeze=False)

    for ax, name in zip(axes[:, 0], names):
        diag = results.diagnostics[name]
        band = diag.band

        ax.fill_between(
            band.grid,
            band.lower_deviation,
            band.upper_deviation,
            step="post",
            alpha=0.25,
            color=COLORS["band"],
            label=rf"{band.target_coverage:.0%} band",
        )
        ax.step(diag.grid, diag.deviation, where="post", color="black", linewidth=1.2, label="ECDF - z")

        outside = diag.exceedances
        if outside.any():
            ax.scatter(
                diag.grid[outside],
                diag.deviation[outside],
                s=12,
                color=COLORS["reference"],
                zorder=3,
                label="Outside band",
            )

        verdict = "calibrated" if diag.calibrated else "miscalibrated"
        ax.set_title(f"{name} ({verdict})", fontsize=13)
        ax.set_ylabel(r"$\hat F(z) - z$", fontsize=12)
        ax.axhline(0, color=COLORS["band"], linewidth=0.8)
        ax.legend(loc="upper right", fontsize=9)
        ax.grid(True, alpha=0.3)

    axes[-1, 0].set_xlabel(r"PIT $z$", fontsize=14)
    fig.suptitle(title, fontsize=16)
    _finish(fig, output_path, show)
