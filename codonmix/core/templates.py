"""
Codon signal templates.

A template is the trace a pure sample of one codon would produce: one
Gaussian peak per nucleotide position, in the channel of that position's
base, and nothing in the other three channels.

Author: Kevin R. Roy
"""

from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..utils.sequence import ALL_CODONS, BASES, codons_for_amino_acids
from .models import PeakShape


class CodonModelLibrary:
    """
    Parametric templates for a set of candidate codons.

    The one-hot base tensor is fixed at construction; peak geometry is
    supplied per call, so templates are regenerated for every parameter set.
    """

    def __init__(self, codons: Optional[Sequence[str]] = None):
        codons = tuple(c.upper() for c in (codons if codons is not None else ALL_CODONS))
        if not codons:
            raise ValueError("Codon model library needs at least one codon")
        invalid = [c for c in codons if len(c) != 3 or set(c) - set(BASES)]
        if invalid:
            raise ValueError(f"Invalid codons: {invalid}")
        if len(set(codons)) != len(codons):
            raise ValueError("Duplicate codons in model library")

        self.codons = codons
        self.one_hot = np.zeros((len(codons), 3, 4))
        for i, codon in enumerate(codons):
            for k, base in enumerate(codon):
                self.one_hot[i, k, BASES.index(base)] = 1.0

    @classmethod
    def for_amino_acids(cls, amino_acids: Iterable[str]) -> 'CodonModelLibrary':
        """Library restricted to codons of the given amino acids."""
        return cls(codons_for_amino_acids(amino_acids))

    def __len__(self) -> int:
        return len(self.codons)

    def index(self, codon: str) -> int:
        return self.codons.index(codon.upper())

    @staticmethod
    def peaks(
        rows: int,
        centers: Sequence[float],
        shape: PeakShape,
    ) -> np.ndarray:
        """Unit-height Gaussian peak of each nucleotide position, shape (3, rows)."""
        t = np.arange(rows, dtype=float)
        mu = np.asarray(centers, dtype=float) + np.asarray(shape.offsets, dtype=float)
        return np.exp(-0.5 * ((t[None, :] - mu[:, None]) / shape.sigma) ** 2)

    def render_all(
        self,
        rows: int,
        centers: Sequence[float],
        shape: PeakShape,
        amplitudes: Sequence[float] = (1.0, 1.0, 1.0),
    ) -> np.ndarray:
        """Every candidate's template, shape (n_codons, rows, 4)."""
        g = self.peaks(rows, centers, shape) * np.asarray(amplitudes, dtype=float)[:, None]
        return np.einsum('nkc,kt->ntc', self.one_hot, g)

    def render(
        self,
        codon: str,
        rows: int,
        centers: Sequence[float],
        shape: PeakShape,
        amplitudes: Sequence[float] = (1.0, 1.0, 1.0),
    ) -> np.ndarray:
        """Template of a single codon, shape (rows, 4)."""
        g = self.peaks(rows, centers, shape) * np.asarray(amplitudes, dtype=float)[:, None]
        one_hot = self.one_hot[self.index(codon)]
        return np.einsum('kc,kt->tc', one_hot, g)

    def mixture(
        self,
        weights: np.ndarray,
        rows: int,
        centers: Sequence[float],
        shape: PeakShape,
        amplitudes: Sequence[float] = (1.0, 1.0, 1.0),
    ) -> np.ndarray:
        """Weighted sum of all candidate templates, shape (rows, 4)."""
        return np.tensordot(weights, self.render_all(rows, centers, shape, amplitudes), axes=1)

    def base_fractions(self, weights: np.ndarray) -> np.ndarray:
        """Per-position base composition implied by codon weights, shape (3, 4)."""
        return np.einsum('n,nkc->kc', weights, self.one_hot)

    def weighted_components(
        self,
        weights: np.ndarray,
        rows: int,
        centers: Sequence[float],
        shape: PeakShape,
    ) -> np.ndarray:
        """
        Weighted sum of the per-position components, shape (3, rows, 4).

        Only the per-position base composition of the weights enters the
        model, so templates are never materialized one codon at a time.
        """
        g = self.peaks(rows, centers, shape)
        return np.einsum('kc,kt->ktc', self.base_fractions(weights), g)


def default_centers(samples_per_base: int) -> List[float]:
    """Nominal peak centers for evenly spaced peaks in a 3-period window."""
    return [(k + 0.5) * samples_per_base for k in range(3)]
