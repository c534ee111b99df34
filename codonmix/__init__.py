"""
codonmix - codon mixture deconvolution of Sanger chromatograms.

Author: Kevin R. Roy
"""

__version__ = "0.1.0"
__author__ = "Kevin R. Roy"

from .config import (
    AnalysisConfig,
    GeneConfig,
    MutationSite,
    PipelineConfig,
)
from .core.models import CallStatus, FailureReason, MotifCallResult
from .io.chromatogram import Chromatogram
from .pipeline import MutationPipeline, run_pipeline

__all__ = [
    "GeneConfig",
    "MutationSite",
    "AnalysisConfig",
    "PipelineConfig",
    "Chromatogram",
    "MotifCallResult",
    "CallStatus",
    "FailureReason",
    "MutationPipeline",
    "run_pipeline",
    "__version__",
]
