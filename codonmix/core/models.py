"""
Data models for codon mixture analysis.

Author: Kevin R. Roy
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..utils.sequence import translate_codon


class Strand(Enum):
    """Orientation of a match relative to the chromatogram's base calls."""
    FORWARD = '+'
    REVERSE = '-'


class CallStatus(Enum):
    """Final status of one (chromatogram, mutation) unit."""
    PASS = 'Pass'
    FAIL = 'FAIL'


class FailureReason(Enum):
    """Why a unit failed. Each stage maps to one reason."""
    MOTIF_NOT_FOUND = 'motif_not_found'
    WINDOW_UNRESOLVED = 'window_unresolved'
    FIT_FAILED = 'fit_failed'
    BELOW_THRESHOLD = 'below_threshold'


@dataclass(frozen=True)
class MatchWindow:
    """
    Best motif match found by the scanner.

    Attributes:
        strand: Strand of the base calls the motif was found on
        frame: Reading frame (1-3) within the oriented call sequence
        score: Normalized similarity score of the match
        nt_start: First call index of the window, oriented coordinates
        nt_end: One past the last call index, oriented coordinates
        sample_start: Lower trace sample bound, original coordinates
        sample_end: Upper trace sample bound, original coordinates
        matched: Translated amino acids of the window
        agrees_with_reference: True if strand/frame match the reference orientation
    """
    strand: Strand
    frame: int
    score: float
    nt_start: int
    nt_end: int
    sample_start: int
    sample_end: int
    matched: str
    agrees_with_reference: bool = False

    def __repr__(self) -> str:
        return (
            f"MatchWindow({self.strand.value}{self.frame}, score={self.score:.3f}, "
            f"nt={self.nt_start}-{self.nt_end}, matched={self.matched})"
        )


@dataclass(frozen=True, eq=False)
class TraceWindow:
    """Observed trace spanning exactly one codon (3 peak periods x 4 channels)."""
    data: np.ndarray
    samples_per_base: int
    start: int
    peak_centers: Tuple[float, float, float]
    codon_called: str = ''

    def __post_init__(self):
        expected = (3 * self.samples_per_base, 4)
        if self.data.shape != expected:
            raise ValueError(
                f"Trace window must have shape {expected}, got {self.data.shape}"
            )

    @property
    def rows(self) -> int:
        return self.data.shape[0]


@dataclass(frozen=True)
class PeakShape:
    """Shared peak-shape nuisance parameters for every template in one fit."""
    offsets: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    sigma: float = 2.5


@dataclass(frozen=True, eq=False)
class FitResult:
    """
    Mixture fit of one trace window.

    Attributes:
        codons: Candidate codons, aligned with weights
        weights: Non-negative mixture weights summing to 1
        shape: Fitted peak shape
        amplitudes: Per-position peak amplitudes
        residual: Sum of squared residuals / total sum of squares
        restart_residuals: Residual of every restart, in restart order
        restart_proportions: Amino-acid proportions of every restart
        evaluations: Objective evaluations spent across all restarts
        converged: True if residual is within the acceptable cut-off
        confidence: Fit quality times restart agreement times (1 - ambiguity), 0-1
        window: The fitted trace window
        ambiguity: Largest amino-acid proportion shift among codon mixtures
            that give the same trace (0 when the decomposition is unique)
    """
    codons: Tuple[str, ...]
    weights: np.ndarray
    shape: PeakShape
    amplitudes: np.ndarray
    residual: float
    restart_residuals: Tuple[float, ...] = ()
    restart_proportions: Tuple[Dict[str, float], ...] = ()
    evaluations: int = 0
    converged: bool = True
    confidence: float = 0.0
    window: Optional[TraceWindow] = None
    ambiguity: float = 0.0

    def amino_acid_proportions(self) -> Dict[str, float]:
        """Sum codon weights by translated amino acid (fractions, 0-1)."""
        return amino_acid_proportions(self.codons, self.weights)

    def codon_weights(self) -> Dict[str, float]:
        """Map each candidate codon to its weight."""
        return {c: float(w) for c, w in zip(self.codons, self.weights)}

    def model(self) -> np.ndarray:
        """Fitted trace of the window, shape (rows, 4)."""
        from .templates import CodonModelLibrary

        if self.window is None:
            raise ValueError("Fit carries no trace window to reconstruct")
        parts = CodonModelLibrary(self.codons).weighted_components(
            self.weights, self.window.rows, self.window.peak_centers, self.shape
        )
        return np.tensordot(self.amplitudes, parts, axes=1)


def amino_acid_proportions(codons, weights) -> Dict[str, float]:
    """Collapse codon weights onto amino acids."""
    proportions: Dict[str, float] = {}
    for codon, weight in zip(codons, weights):
        aa = translate_codon(codon)
        proportions[aa] = proportions.get(aa, 0.0) + float(weight)
    return proportions


@dataclass
class MotifCallResult:
    """Final call for one (chromatogram, mutation) pair."""
    sample_id: str
    mutation: str
    status: CallStatus
    best_aa: str = ''
    best_codon: str = ''
    best_percent: Optional[float] = None
    ref_name: str = ''
    ref_percent: Optional[float] = None
    mutant_name: str = ''
    mutant_percent: Optional[float] = None
    confidence: float = 0.0
    proportions: Dict[str, float] = field(default_factory=dict)
    failure: Optional[FailureReason] = None
    converged: Optional[bool] = None
    match: Optional[MatchWindow] = None

    @property
    def passed(self) -> bool:
        return self.status == CallStatus.PASS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the output record."""
        return {
            'Sample': self.sample_id,
            'Mutation': self.mutation,
            'Status': self.status.value,
            'Best_AA_Call': self.best_aa,
            'Best_Codon': self.best_codon,
            'Best_Percent': self.best_percent,
            'Ref_Name': self.ref_name,
            'Ref_Percent': self.ref_percent,
            'Mutant_Name': self.mutant_name,
            'Mutant_Percent': self.mutant_percent,
            'Confidence': self.confidence,
            'Failure_Reason': self.failure.value if self.failure else '',
            'Converged': self.converged,
            'Proportions': ';'.join(f"{aa}:{pct:.2f}" for aa, pct in self.proportions.items()),
        }
