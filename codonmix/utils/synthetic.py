"""
Synthetic Sanger chromatograms.

Renders a base sequence as four Gaussian-peak channels, with optional
base mixtures at chosen positions, noise and baseline. Used for tests and
for benchmarking the fitter against known mixtures.

Author: Kevin R. Roy
"""

from typing import Dict, Optional, Tuple

import numpy as np

from ..io.chromatogram import CHANNEL_INDEX, Chromatogram
from .sequence import ALL_CODONS, BASES, translate_codon

# First codon (in ACGT order) of every amino acid
PREFERRED_CODONS: Dict[str, str] = {}
for _codon in ALL_CODONS:
    PREFERRED_CODONS.setdefault(translate_codon(_codon), _codon)


def random_sequence(length: int, rng: Optional[np.random.Generator] = None) -> str:
    """Uniform random DNA sequence."""
    rng = rng if rng is not None else np.random.default_rng()
    return ''.join(rng.choice(list(BASES), size=length))


def back_translate(protein: str, rng: Optional[np.random.Generator] = None) -> str:
    """
    DNA encoding a protein, one fixed codon per amino acid.

    'X' residues get a random codon.
    """
    rng = rng if rng is not None else np.random.default_rng()
    codons = []
    for aa in protein.upper():
        if aa == 'X':
            codons.append(random_sequence(3, rng))
        elif aa in PREFERRED_CODONS:
            codons.append(PREFERRED_CODONS[aa])
        else:
            raise ValueError(f"Cannot back-translate residue '{aa}'")
    return ''.join(codons)


def motif_read(
    motif: str,
    center_codon: Optional[str] = None,
    flank: int = 30,
    seed: Optional[int] = None,
) -> Tuple[str, int]:
    """
    Read carrying a motif between random flanks.

    Args:
        motif: Amino-acid motif, odd length
        center_codon: Codon placed at the motif's center residue
        flank: Random bases on each side
        seed: Random seed for the flanks

    Returns:
        (sequence, nt index of the center codon)
    """
    rng = np.random.default_rng(seed)
    coding = back_translate(motif, rng)
    center = len(motif) // 2
    if center_codon is not None:
        coding = coding[:3 * center] + center_codon.upper() + coding[3 * center + 3:]
    left = random_sequence(flank, rng)
    right = random_sequence(flank, rng)
    return left + coding + right, flank + 3 * center


def simulate_chromatogram(
    sequence: str,
    mixtures: Optional[Dict[int, Dict[str, float]]] = None,
    spacing: int = 12,
    sigma: Optional[float] = None,
    height: float = 1000.0,
    noise: float = 0.0,
    baseline: float = 0.0,
    seed: Optional[int] = None,
    name: str = 'synthetic',
) -> Chromatogram:
    """
    Render a sequence as a chromatogram.

    Args:
        sequence: Bases, one peak each
        mixtures: Optional {position: {base: fraction}} for mixed positions;
            the base call there is the largest fraction
        spacing: Samples between consecutive peaks
        sigma: Peak width in samples (default 0.2 * spacing)
        height: Peak height of a pure base
        noise: Gaussian noise level, as a fraction of height
        baseline: Constant offset added to every channel
        seed: Random seed for the noise
        name: Chromatogram name

    Returns:
        Chromatogram with one margin period before the first and after the
        last peak
    """
    sequence = sequence.upper()
    mixtures = mixtures or {}
    sigma = sigma if sigma is not None else 0.2 * spacing
    rng = np.random.default_rng(seed)

    n_samples = (len(sequence) + 1) * spacing + 1
    t = np.arange(n_samples, dtype=float)
    traces = np.full((n_samples, 4), float(baseline))
    peaks = np.array([spacing * (i + 1) for i in range(len(sequence))], dtype=int)

    calls = []
    for i, base in enumerate(sequence):
        if i in mixtures:
            composition = {b.upper(): f for b, f in mixtures[i].items()}
        else:
            composition = {base: 1.0} if base in BASES else {}
        if not composition:
            calls.append('N')
            continue
        total = sum(composition.values())
        if total <= 0:
            raise ValueError(f"Mixture at position {i} has no signal")
        peak = np.exp(-0.5 * ((t - peaks[i]) / sigma) ** 2)
        for mix_base, fraction in composition.items():
            traces[:, CHANNEL_INDEX[mix_base]] += height * fraction / total * peak
        # Ties go to the first base in ACGT order
        calls.append(max(sorted(composition), key=composition.get))

    if noise > 0:
        traces += rng.normal(0.0, noise * height, size=traces.shape)
        np.clip(traces, 0.0, None, out=traces)

    return Chromatogram(
        traces=traces,
        base_calls=''.join(c if c in BASES else 'N' for c in calls),
        peak_locations=peaks,
        name=name,
    )
