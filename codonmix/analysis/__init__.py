"""
Visualization of codonmix fits.

Plotting requires the optional matplotlib dependency
(pip install codonmix[visualization]); it is imported on first use.

Author: Kevin R. Roy
"""

from .plotting import (
    plot_proportions,
    plot_trace_fit,
    save_figure,
)

__all__ = [
    "plot_trace_fit",
    "plot_proportions",
    "save_figure",
]
