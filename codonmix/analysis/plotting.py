"""
Plotting functions for codonmix fits.

Diagnostic views of a fitted codon window: observed channels against the
fitted mixture, and the amino-acid proportions.
Requires optional dependency: matplotlib

Author: Kevin R. Roy
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..core.models import FitResult
from ..utils.sequence import BASES

# Conventional Sanger channel colors
CHANNEL_COLORS = {'A': '#22c55e', 'C': '#3b82f6', 'G': '#111111', 'T': '#ef4444'}


def _check_plotting_deps():
    """Check that plotting dependencies are available."""
    try:
        import matplotlib.pyplot as plt

        return plt
    except ImportError:
        raise ImportError(
            "Plotting requires matplotlib. "
            "Install with: pip install codonmix[visualization]"
        )


def plot_trace_fit(
    fit: FitResult,
    title: Optional[str] = None,
    figsize: Tuple[float, float] = (8, 4),
    ax: Optional[Any] = None,
) -> Any:
    """
    Plot observed channels (solid) against the fitted mixture (dashed).

    Args:
        fit: Mixture fit carrying its trace window
        title: Plot title (default: codon called and residual)
        figsize: Figure size as (width, height)
        ax: Optional matplotlib Axes to plot on

    Returns:
        matplotlib Figure object
    """
    plt = _check_plotting_deps()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.get_figure()

    model = fit.model()
    observed = fit.window.data
    t = np.arange(model.shape[0])

    for c, base in enumerate(BASES):
        color = CHANNEL_COLORS[base]
        ax.plot(t, observed[:, c], color=color, linewidth=1.5, label=base)
        ax.plot(t, model[:, c], color=color, linewidth=1.0, linestyle='--')

    for center in fit.window.peak_centers:
        ax.axvline(center, color='#888888', linewidth=0.5, linestyle=':')

    ax.set_xlabel('Sample')
    ax.set_ylabel('Intensity')
    ax.set_title(title or f"{fit.window.codon_called} (residual {fit.residual:.3f})")
    ax.legend(loc='upper right', frameon=False, ncol=4)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)

    return fig


def plot_proportions(
    proportions: Dict[str, float],
    min_percent: float = 0.0,
    title: Optional[str] = None,
    figsize: Tuple[float, float] = (6, 3),
    ax: Optional[Any] = None,
) -> Any:
    """
    Bar chart of amino-acid percentages.

    Args:
        proportions: Amino acid -> percent
        min_percent: Bars below this percent are omitted
        title: Plot title
        figsize: Figure size as (width, height)
        ax: Optional matplotlib Axes to plot on

    Returns:
        matplotlib Figure object
    """
    plt = _check_plotting_deps()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.get_figure()

    items = sorted(
        ((aa, pct) for aa, pct in proportions.items() if pct >= min_percent),
        key=lambda item: (-item[1], item[0]),
    )
    labels = [aa for aa, _ in items]
    values = [pct for _, pct in items]

    ax.bar(range(len(values)), values, color='#22c55e', edgecolor='black', linewidth=1)
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels)
    ax.set_ylim(0, 100)
    ax.set_ylabel('Percent')
    if title:
        ax.set_title(title)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)

    return fig


def save_figure(
    fig: Any,
    path: str,
    dpi: int = 300,
    transparent: bool = False,
) -> None:
    """
    Save figure to file.

    Args:
        fig: matplotlib Figure object
        path: Output file path (format inferred from extension)
        dpi: Resolution in dots per inch
        transparent: Use transparent background
    """
    plt = _check_plotting_deps()
    fig.savefig(path, dpi=dpi, bbox_inches='tight', transparent=transparent)
    plt.close(fig)
