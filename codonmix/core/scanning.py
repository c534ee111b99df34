"""
Six-frame motif localization.

Translates the chromatogram's base calls in all three reading frames on
both strands and finds the window whose amino acids best match a mutation
motif. Matching is approximate: base-call noise and natural sequence
variation mean an exact match is not guaranteed.

Author: Kevin R. Roy
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging

from ..io.chromatogram import Chromatogram
from ..utils.sequence import reverse_complement, shared_kmer_offsets, translate
from .models import MatchWindow, Strand

logger = logging.getLogger(__name__)

# Fixed scan order: forward frames 1-3, then reverse frames 1-3
ORIENTATIONS: Tuple[Tuple[Strand, int], ...] = tuple(
    (strand, frame) for strand in (Strand.FORWARD, Strand.REVERSE) for frame in (1, 2, 3)
)


class IdentityScorer:
    """Fraction of motif positions with an identical residue.

    'X' in either sequence never matches.
    """
    name = 'identity'

    def score(self, motif: str, window: str) -> float:
        matches = sum(1 for m, w in zip(motif, window) if m == w and m != 'X')
        return matches / len(motif)


class SubstitutionMatrixScorer:
    """
    Substitution-matrix score normalized by the motif's self-score.

    A perfect match scores 1.0; dissimilar windows can score below zero.
    Matrices are loaded from Bio.Align.substitution_matrices.
    """

    def __init__(self, matrix_name: str = 'BLOSUM62'):
        from Bio.Align import substitution_matrices

        self.name = matrix_name.lower()
        self.matrix = substitution_matrices.load(matrix_name)
        self._alphabet = set(self.matrix.alphabet)
        self._self_scores: Dict[str, float] = {}

    def _pair(self, a: str, b: str) -> float:
        if a not in self._alphabet or b not in self._alphabet:
            return 0.0
        return float(self.matrix[a][b])

    def score(self, motif: str, window: str) -> float:
        self_score = self._self_scores.get(motif)
        if self_score is None:
            self_score = sum(self._pair(m, m) for m in motif)
            self._self_scores[motif] = self_score
        if self_score <= 0:
            return 0.0
        return sum(self._pair(m, w) for m, w in zip(motif, window)) / self_score


def get_scorer(name: str):
    """Create a motif scorer by name ('identity' or 'blosum62')."""
    if name == 'identity':
        return IdentityScorer()
    if name == 'blosum62':
        return SubstitutionMatrixScorer('BLOSUM62')
    raise ValueError(f"Unknown motif scorer: {name}")


def oriented_calls(chromatogram: Chromatogram, strand: Strand) -> str:
    """Base calls read 5'->3' on the given strand."""
    if strand == Strand.FORWARD:
        return chromatogram.base_calls
    return reverse_complement(chromatogram.base_calls)


def infer_reference_orientation(
    base_calls: str,
    reference: str,
    kmer_size: int = 12,
) -> Optional[Tuple[Strand, int]]:
    """
    Infer which strand and frame of the calls is in frame with the reference.

    Every k-mer shared between the oriented calls and the in-frame reference
    votes for (strand, (call_pos - ref_pos) mod 3 + 1).

    Returns:
        (strand, frame) with the most votes, or None if nothing is shared
    """
    if not reference:
        return None

    votes: Counter = Counter()
    for strand in (Strand.FORWARD, Strand.REVERSE):
        calls = base_calls if strand == Strand.FORWARD else reverse_complement(base_calls)
        for call_pos, ref_pos in shared_kmer_offsets(calls, reference, kmer_size):
            votes[(strand, (call_pos - ref_pos) % 3 + 1)] += 1

    if not votes:
        return None

    # most_common keeps insertion order among ties: forward strand first
    (orientation, count), = votes.most_common(1)
    logger.debug(f"Reference orientation {orientation[0].value}{orientation[1]} ({count} k-mer votes)")
    return orientation


@dataclass
class MotifScanner:
    """
    Finds the best approximate match of an amino-acid motif in a chromatogram.

    Attributes:
        scorer: Object with a score(motif, window) -> float method
        min_score: A match must score above this normalized threshold
        reference: Optional in-frame reference DNA used to break ties
        kmer_size: K-mer size for reference orientation inference
    """
    scorer: object = None
    min_score: float = 0.7
    reference: str = ''
    kmer_size: int = 12

    def __post_init__(self):
        if self.scorer is None:
            self.scorer = IdentityScorer()

    def candidates(
        self,
        chromatogram: Chromatogram,
        motif: str,
    ) -> List[Tuple[Strand, int, int, str, float]]:
        """
        Score every motif-length window in every orientation.

        Returns:
            List of (strand, frame, residue_index, window, score) in scan order
        """
        motif = motif.upper()
        width = len(motif)
        results = []

        for strand, frame in ORIENTATIONS:
            protein = translate(oriented_calls(chromatogram, strand), frame)
            for i in range(len(protein) - width + 1):
                window = protein[i:i + width]
                results.append((strand, frame, i, window, self.scorer.score(motif, window)))

        return results

    def scan(self, chromatogram: Chromatogram, motif: str) -> Optional[MatchWindow]:
        """
        Locate the motif.

        Ties on score go to the orientation that agrees with the reference
        (when one is configured), then to the first window in scan order.

        Returns:
            MatchWindow, or None if no window scores above min_score
        """
        candidates = self.candidates(chromatogram, motif)
        if not candidates:
            logger.info(f"{chromatogram.name}: read too short to scan for {motif}")
            return None

        preferred = infer_reference_orientation(
            chromatogram.base_calls, self.reference, self.kmer_size
        )

        best = None
        best_key = None
        for order, (strand, frame, residue, window, score) in enumerate(candidates):
            agrees = preferred is not None and (strand, frame) == preferred
            # max score, then reference agreement, then earliest
            key = (score, agrees, -order)
            if best_key is None or key > best_key:
                best_key = key
                best = (strand, frame, residue, window, score, agrees)

        strand, frame, residue, window, score, agrees = best
        if score <= self.min_score:
            logger.info(
                f"{chromatogram.name}: best match for {motif} is {window} "
                f"(score {score:.3f} <= {self.min_score})"
            )
            return None

        nt_start = frame - 1 + 3 * residue
        nt_end = nt_start + 3 * len(motif)
        sample_start, sample_end = _sample_bounds(chromatogram, strand, nt_start, nt_end)

        match = MatchWindow(
            strand=strand,
            frame=frame,
            score=score,
            nt_start=nt_start,
            nt_end=nt_end,
            sample_start=sample_start,
            sample_end=sample_end,
            matched=window,
            agrees_with_reference=agrees,
        )
        logger.debug(f"{chromatogram.name}: {motif} -> {match}")
        return match


def _sample_bounds(
    chromatogram: Chromatogram,
    strand: Strand,
    nt_start: int,
    nt_end: int,
) -> Tuple[int, int]:
    """Trace sample bounds of an oriented call range, in original coordinates."""
    if strand == Strand.FORWARD:
        first, last = nt_start, nt_end - 1
    else:
        n = chromatogram.n_bases
        first, last = n - nt_end, n - 1 - nt_start
    return chromatogram.anchor(first), chromatogram.anchor(last)


def scan_motif(
    chromatogram: Chromatogram,
    motif: str,
    min_score: float = 0.7,
    scoring: str = 'identity',
    reference: str = '',
    kmer_size: int = 12,
) -> Optional[MatchWindow]:
    """
    Convenience function to scan one chromatogram for one motif.

    Args:
        chromatogram: Chromatogram to scan
        motif: Amino-acid motif
        min_score: Normalized score a match must exceed
        scoring: 'identity' or 'blosum62'
        reference: Optional in-frame reference DNA for tie-breaking
        kmer_size: K-mer size for reference orientation inference

    Returns:
        MatchWindow or None
    """
    scanner = MotifScanner(
        scorer=get_scorer(scoring),
        min_score=min_score,
        reference=reference,
        kmer_size=kmer_size,
    )
    return scanner.scan(chromatogram, motif)
