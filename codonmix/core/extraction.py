"""
Codon trace window extraction.

Given a motif match, finds the three peaks of the central codon and cuts
out the trace spanning exactly three peak periods on all four channels.

Author: Kevin R. Roy
"""

from typing import List, Optional
import logging

import numpy as np
from scipy.signal import find_peaks

from ..io.chromatogram import Chromatogram
from .models import MatchWindow, Strand, TraceWindow

logger = logging.getLogger(__name__)


def orient(chromatogram: Chromatogram, strand: Strand) -> Chromatogram:
    """Chromatogram read in the direction of the match."""
    if strand == Strand.FORWARD:
        return chromatogram
    return chromatogram.reverse_complement()


def snap_to_peaks(
    signal: np.ndarray,
    anchors: List[int],
    tolerance: float,
) -> List[int]:
    """
    Move each anchor onto the nearest detected peak of a signal.

    Anchors with no detected peak within the tolerance keep their position.
    """
    peaks, _ = find_peaks(signal, distance=max(1, int(tolerance)))
    snapped = []
    for anchor in anchors:
        if len(peaks) == 0:
            snapped.append(anchor)
            continue
        nearest = peaks[np.argmin(np.abs(peaks - anchor))]
        snapped.append(int(nearest) if abs(nearest - anchor) <= tolerance else anchor)
    return snapped


def extract_codon_window(
    chromatogram: Chromatogram,
    match: MatchWindow,
    center: int,
    context: int = 6,
) -> Optional[TraceWindow]:
    """
    Extract the trace window of the codon at a motif's center residue.

    Args:
        chromatogram: Chromatogram the match was found in (original orientation)
        match: Motif match from the scanner
        center: Index of the residue of interest within the motif
        context: Calls either side of the codon used to estimate peak spacing

    Returns:
        TraceWindow with rows = 3 * samples_per_base, or None if the window
        runs off the trace or the codon's peaks cannot be resolved
    """
    chrom = orient(chromatogram, match.strand)
    name = chrom.name

    codon_start = match.nt_start + 3 * center
    call_indices = [codon_start, codon_start + 1, codon_start + 2]
    if codon_start < 0 or call_indices[-1] >= chrom.n_bases:
        logger.info(f"{name}: codon calls {call_indices} outside the read")
        return None

    spb = chrom.samples_per_base(
        max(0, codon_start - context), min(chrom.n_bases, codon_start + 3 + context)
    )
    if spb < 2:
        logger.info(f"{name}: peak spacing of {spb} sample(s) is too small to resolve")
        return None

    anchors = [chrom.anchor(i) for i in call_indices]
    total = chrom.traces.sum(axis=1)
    anchors = snap_to_peaks(total, anchors, tolerance=spb / 2)

    if not (anchors[0] < anchors[1] < anchors[2]):
        logger.info(f"{name}: codon peaks are not resolved (anchors {anchors})")
        return None

    rows = 3 * spb
    start = int(round(anchors[0] - spb / 2))
    end = start + rows
    if start < 0 or end > chrom.n_samples:
        logger.info(
            f"{name}: codon window {start}-{end} outside trace of {chrom.n_samples} samples"
        )
        return None
    if anchors[2] >= end:
        logger.info(f"{name}: codon peaks span more than three peak periods")
        return None

    data = np.array(chrom.intensities(start, end), dtype=float)
    # Baseline: per-channel minimum over the window
    data -= data.min(axis=0)

    return TraceWindow(
        data=data,
        samples_per_base=spb,
        start=start,
        peak_centers=tuple(float(a - start) for a in anchors),
        codon_called=''.join(chrom.base_calls[i] for i in call_indices),
    )
