"""
Mixture deconvolution of a codon trace window.

Finds non-negative codon weights (summing to one) and shared peak-shape
parameters whose weighted template sum best reproduces the observed trace.
Peak alignment and mixture weights are optimized jointly, which makes the
objective multi-modal, so the search uses generalized simulated annealing
(scipy.optimize.dual_annealing) with several seeded restarts.

Parameter vector layout, for n candidate codons:

    x[0:n]      raw weights in [0, 1]; weights = raw / raw.sum()
    x[n:n+3]    peak center offsets, in samples
    x[n+3]      peak sigma, in samples

Per-position peak amplitudes are not searched: for any weights and shape
they are the non-negative least-squares solution (scipy.optimize.nnls).

The trace only sees the base composition at each codon position. Once two
or more positions are mixed, different codon mixtures give the same trace
(AAA + GAT looks exactly like GAA + AAT), so the fitter measures how far
the amino-acid proportions could move and prefers the decomposition into
the mutation's reference/alternate codons when that fits as well.

Author: Kevin R. Roy
"""

from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import time

import numpy as np
from scipy.optimize import dual_annealing, linprog, nnls

from ..utils.sequence import translate_codon
from .models import FitResult, PeakShape, TraceWindow, amino_acid_proportions
from .templates import CodonModelLibrary

logger = logging.getLogger(__name__)

# Cap on L-BFGS-B iterations per local search, keeps the evaluation budget tight
LOCAL_SEARCH_MAXITER = 50

# Bases below this fraction of a codon position are treated as absent
MIN_BASE_FRACTION = 0.05

# Amino-acid proportion spread above which a decomposition counts as ambiguous
AMBIGUITY_TOLERANCE = 0.05


class MixtureObjective:
    """Relative residual of a parameter vector against one trace window."""

    def __init__(self, library: CodonModelLibrary, window: TraceWindow):
        self.library = library
        self.window = window
        self.n = len(library)
        self.observed = np.asarray(window.data, dtype=float).ravel()
        self.sst = float(np.dot(self.observed, self.observed))
        if self.sst <= 0:
            raise ValueError("Trace window has no signal to fit")
        self.evaluations = 0

    def unpack(self, x: np.ndarray) -> Tuple[np.ndarray, PeakShape]:
        raw = np.clip(x[:self.n], 0.0, None)
        total = raw.sum()
        weights = raw / total if total > 0 else np.full(self.n, 1.0 / self.n)
        shape = PeakShape(
            offsets=(float(x[self.n]), float(x[self.n + 1]), float(x[self.n + 2])),
            sigma=float(x[self.n + 3]),
        )
        return weights, shape

    def solve(self, x: np.ndarray) -> Tuple[np.ndarray, PeakShape, np.ndarray, float]:
        """Weights, shape, profiled amplitudes and relative residual for x."""
        weights, shape = self.unpack(x)
        parts = self.library.weighted_components(
            weights, self.window.rows, self.window.peak_centers, shape
        )
        design = parts.reshape(3, -1).T
        amplitudes, rnorm = nnls(design, self.observed)
        return weights, shape, amplitudes, rnorm ** 2 / self.sst

    def __call__(self, x: np.ndarray) -> float:
        self.evaluations += 1
        return self.solve(x)[3]


class MixtureFitter:
    """
    Fits a trace window as a weighted mixture of codon templates.

    Attributes:
        library: Candidate codon templates
        max_evaluations: Objective evaluations allowed per restart
        n_restarts: Independent annealing runs; the lowest residual wins
        seed: Seed for the restart seeds; None draws fresh entropy
        max_shift: Maximum peak offset, as a fraction of the peak period
        sigma_bounds: Peak sigma bounds, as fractions of the peak period
        max_residual: Relative residual above which the fit is not converged
        time_limit: Optional wall-clock cap in seconds per restart
        preferred: Codons tried when the decomposition is ambiguous,
            usually those of the mutation's reference/alternate amino acids
        parsimony_tolerance: Extra residual the preferred fit may have and
            still be reported instead of the full fit
    """

    def __init__(
        self,
        library: CodonModelLibrary,
        max_evaluations: int = 20000,
        n_restarts: int = 3,
        seed: Optional[int] = None,
        max_shift: float = 0.35,
        sigma_bounds: Tuple[float, float] = (0.1, 0.6),
        max_residual: float = 0.25,
        time_limit: Optional[float] = None,
        preferred: Optional[CodonModelLibrary] = None,
        parsimony_tolerance: float = 0.02,
    ):
        self.library = library
        self.max_evaluations = max_evaluations
        self.n_restarts = n_restarts
        self.seed = seed
        self.max_shift = max_shift
        self.sigma_bounds = sigma_bounds
        self.max_residual = max_residual
        self.time_limit = time_limit
        self.preferred = preferred
        self.parsimony_tolerance = parsimony_tolerance

    def bounds(
        self,
        window: TraceWindow,
        library: Optional[CodonModelLibrary] = None,
    ) -> List[Tuple[float, float]]:
        """Search bounds for the parameter vector."""
        library = library or self.library
        spb = window.samples_per_base
        shift = self.max_shift * spb
        lo, hi = self.sigma_bounds
        return (
            [(0.0, 1.0)] * len(library)
            + [(-shift, shift)] * 3
            + [(lo * spb, hi * spb)]
        )

    def initial_guess(
        self,
        window: TraceWindow,
        library: Optional[CodonModelLibrary] = None,
    ) -> np.ndarray:
        """
        Data-driven starting point.

        Base fractions are read from channel heights at the peak centers;
        each codon starts at the product of its bases' fractions.
        """
        library = library or self.library
        spb = window.samples_per_base
        rows = [min(window.rows - 1, max(0, int(round(c)))) for c in window.peak_centers]
        heights = np.clip(window.data[rows, :], 0.0, None)
        totals = heights.sum(axis=1, keepdims=True)
        fractions = np.where(totals > 0, heights / np.where(totals > 0, totals, 1.0), 0.25)

        raw = np.prod(np.einsum('nkc,kc->nk', library.one_hot, fractions), axis=1)
        if raw.max() > 0:
            raw = raw / raw.max()
        else:
            raw = np.full(len(library), 0.5)

        lo, hi = self.sigma_bounds
        sigma = float(np.clip(0.25 * spb, lo * spb, hi * spb))
        return np.concatenate([raw, [0.0, 0.0, 0.0, sigma]])

    def restart_seeds(self) -> List[int]:
        rng = np.random.default_rng(self.seed)
        return [int(s) for s in rng.integers(0, 2 ** 32 - 1, size=self.n_restarts)]

    def _anneal(self, objective: MixtureObjective, window: TraceWindow, seed: int, x0):
        bounds = self.bounds(window, objective.library)
        minimizer_kwargs = {
            'method': 'L-BFGS-B',
            'bounds': bounds,
            'options': {'maxiter': LOCAL_SEARCH_MAXITER},
        }

        callback = None
        if self.time_limit is not None:
            deadline = time.monotonic() + self.time_limit

            def callback(x, f, context):
                return time.monotonic() > deadline

        return dual_annealing(
            objective,
            bounds,
            maxfun=self.max_evaluations,
            minimizer_kwargs=minimizer_kwargs,
            seed=seed,
            x0=x0,
            callback=callback,
        )

    def fit(self, window: TraceWindow) -> FitResult:
        """
        Fit one trace window.

        If the fitted base composition admits codon mixtures with different
        amino-acid proportions, the window is refitted against the preferred
        codons, and that fit is reported when its residual is within
        parsimony_tolerance of the full fit. Confidence is scaled down by the
        ambiguity either way.

        Raises:
            ValueError: If the window carries no signal
        """
        result = self._fit_library(self.library, window)
        ambiguity = decomposition_ambiguity(result.codons, result.weights)
        if ambiguity <= AMBIGUITY_TOLERANCE:
            return result

        logger.info(
            f"Codon mixture is not unique: amino-acid proportions can shift by {ambiguity:.2f}"
        )
        if self.preferred is not None and set(self.preferred.codons) != set(self.library.codons):
            narrow = self._fit_library(self.preferred, window)
            if narrow.residual <= result.residual + self.parsimony_tolerance:
                logger.info(
                    f"Using {len(self.preferred)}-codon fit "
                    f"(residual {narrow.residual:.4f} vs {result.residual:.4f})"
                )
                result = replace(narrow, evaluations=result.evaluations + narrow.evaluations)

        best = result.restart_residuals.index(result.residual)
        return replace(
            result,
            ambiguity=ambiguity,
            confidence=fit_confidence(
                result.residual, result.restart_proportions, best, ambiguity
            ),
        )

    def _fit_library(self, library: CodonModelLibrary, window: TraceWindow) -> FitResult:
        objective = MixtureObjective(library, window)
        x0 = self.initial_guess(window, library)

        runs = []
        for i, seed in enumerate(self.restart_seeds()):
            result = self._anneal(objective, window, seed, x0 if i == 0 else None)
            weights, shape, amplitudes, residual = objective.solve(result.x)
            runs.append((residual, weights, shape, amplitudes))
            logger.debug(
                f"Restart {i + 1}/{self.n_restarts}: residual {residual:.4f} "
                f"after {result.nfev} evaluations"
            )

        best = min(range(len(runs)), key=lambda i: runs[i][0])
        residual, weights, shape, amplitudes = runs[best]

        restart_proportions = tuple(
            amino_acid_proportions(library.codons, run[1]) for run in runs
        )
        confidence = fit_confidence(residual, restart_proportions, best)
        converged = residual <= self.max_residual
        if not converged:
            logger.info(
                f"Fit did not converge: residual {residual:.3f} > {self.max_residual}"
            )

        return FitResult(
            codons=library.codons,
            weights=weights,
            shape=shape,
            amplitudes=amplitudes,
            residual=float(residual),
            restart_residuals=tuple(float(r[0]) for r in runs),
            restart_proportions=restart_proportions,
            evaluations=objective.evaluations,
            converged=converged,
            confidence=confidence,
            window=window,
        )


def proportion_distance(a: Dict[str, float], b: Dict[str, float]) -> float:
    """Total variation distance between two amino-acid proportion maps."""
    keys = set(a) | set(b)
    return 0.5 * sum(abs(a.get(k, 0.0) - b.get(k, 0.0)) for k in keys)


def fit_confidence(
    residual: float,
    restart_proportions: Tuple[Dict[str, float], ...],
    best: int,
    ambiguity: float = 0.0,
) -> float:
    """
    Confidence in a fit, between 0 and 1.

    Fit quality (1 - relative residual) times agreement of the restarts
    with the best restart (1 - mean total variation distance), times
    (1 - ambiguity) of the codon decomposition.
    """
    quality = max(0.0, 1.0 - residual)
    others = [p for i, p in enumerate(restart_proportions) if i != best]
    if others:
        reference = restart_proportions[best]
        agreement = 1.0 - float(np.mean([proportion_distance(reference, p) for p in others]))
    else:
        agreement = 1.0
    return float(np.clip(quality * agreement * (1.0 - ambiguity), 0.0, 1.0))


def amino_acid_ranges(
    codons: Sequence[str],
    weights: np.ndarray,
    min_fraction: float = MIN_BASE_FRACTION,
) -> Dict[str, Tuple[float, float]]:
    """
    Range of each amino acid's proportion over every codon mixture with the
    same per-position base composition as the given weights.

    Each bound is a linear program over the candidate codons whose bases
    are all present, constrained to reproduce the base fractions.

    Args:
        codons: Candidate codons
        weights: Codon weights summing to 1
        min_fraction: Bases below this fraction of a position are dropped

    Returns:
        Dict mapping amino acid to (lowest, highest) proportion
    """
    library = CodonModelLibrary(codons)
    fractions = library.base_fractions(np.asarray(weights, dtype=float))
    fractions = np.where(fractions >= min_fraction, fractions, 0.0)
    fractions = fractions / fractions.sum(axis=1, keepdims=True)
    present = fractions > 0

    # Codons made only of present bases
    usable = np.flatnonzero(
        np.all(np.einsum('nkc,kc->nk', library.one_hot, present.astype(float)) > 0, axis=1)
    )
    amino_acids = [translate_codon(library.codons[i]) for i in usable]

    constraints = np.argwhere(present)
    a_eq = np.array([[library.one_hot[i, k, c] for i in usable] for k, c in constraints])
    b_eq = np.array([fractions[k, c] for k, c in constraints])

    observed = amino_acid_proportions(library.codons, weights)
    ranges = {}
    for aa in sorted(set(amino_acids)):
        target = np.array([1.0 if a == aa else 0.0 for a in amino_acids])
        low = linprog(target, A_eq=a_eq, b_eq=b_eq, bounds=(0, None), method='highs')
        high = linprog(-target, A_eq=a_eq, b_eq=b_eq, bounds=(0, None), method='highs')
        if low.success and high.success:
            ranges[aa] = (float(low.fun), float(-high.fun))
        else:
            # Dropping minor bases can leave no exact decomposition
            logger.debug(f"No feasible decomposition for {aa}: {low.message}")
            ranges[aa] = (observed.get(aa, 0.0), observed.get(aa, 0.0))
    return ranges


def decomposition_ambiguity(
    codons: Sequence[str],
    weights: np.ndarray,
    min_fraction: float = MIN_BASE_FRACTION,
) -> float:
    """
    Largest spread of any amino acid's proportion among codon mixtures
    that produce the same trace. 0 when the decomposition is unique.
    """
    ranges = amino_acid_ranges(codons, weights, min_fraction)
    return max((high - low for low, high in ranges.values()), default=0.0)


def fit_window(
    window: TraceWindow,
    library: Optional[CodonModelLibrary] = None,
    **kwargs,
) -> FitResult:
    """Convenience function: fit a window against all 64 codons by default."""
    fitter = MixtureFitter(library or CodonModelLibrary(), **kwargs)
    return fitter.fit(window)
