"""
Core analysis modules for codonmix.

Author: Kevin R. Roy
"""

from .models import (
    CallStatus,
    FailureReason,
    FitResult,
    MatchWindow,
    MotifCallResult,
    PeakShape,
    Strand,
    TraceWindow,
)
from .scanning import (
    IdentityScorer,
    MotifScanner,
    SubstitutionMatrixScorer,
    get_scorer,
    scan_motif,
)
from .extraction import extract_codon_window
from .templates import CodonModelLibrary
from .fitting import MixtureFitter, decomposition_ambiguity, fit_window
from .summary import fail_result, summarize_fit

__all__ = [
    # Models
    'Strand',
    'CallStatus',
    'FailureReason',
    'MatchWindow',
    'TraceWindow',
    'PeakShape',
    'FitResult',
    'MotifCallResult',
    # Scanning
    'IdentityScorer',
    'SubstitutionMatrixScorer',
    'MotifScanner',
    'get_scorer',
    'scan_motif',
    # Extraction
    'extract_codon_window',
    # Templates and fitting
    'CodonModelLibrary',
    'MixtureFitter',
    'fit_window',
    'decomposition_ambiguity',
    # Summary
    'summarize_fit',
    'fail_result',
]
