"""
Amino-acid level summary of a mixture fit.

Author: Kevin R. Roy
"""

from typing import TYPE_CHECKING, Dict, Optional

from ..utils.sequence import translate_codon
from .models import (
    CallStatus,
    FailureReason,
    FitResult,
    MatchWindow,
    MotifCallResult,
)

if TYPE_CHECKING:
    from ..config import MutationSite


def thresholded_percentages(
    proportions: Dict[str, float],
    min_percent: float = 5.0,
) -> Dict[str, float]:
    """
    Convert fractions to percentages, drop those below the threshold and
    sort descending (ties alphabetically).
    """
    percents = {aa: 100.0 * frac for aa, frac in proportions.items()}
    kept = [(aa, pct) for aa, pct in percents.items() if pct >= min_percent]
    kept.sort(key=lambda item: (-item[1], item[0]))
    return dict(kept)


def best_codon_for(fit: FitResult, amino_acid: str) -> str:
    """Highest-weight codon translating to the given amino acid."""
    best, best_weight = '', -1.0
    # Sorted so ties go to the lexicographically first codon
    for codon, weight in sorted(fit.codon_weights().items()):
        if translate_codon(codon) == amino_acid and weight > best_weight:
            best, best_weight = codon, weight
    return best


def fail_result(
    sample_id: str,
    site: 'MutationSite',
    reason: FailureReason,
    match: Optional[MatchWindow] = None,
    confidence: float = 0.0,
    converged: Optional[bool] = None,
) -> MotifCallResult:
    """FAIL record with every call field empty."""
    return MotifCallResult(
        sample_id=sample_id,
        mutation=site.name,
        status=CallStatus.FAIL,
        confidence=confidence,
        failure=reason,
        converged=converged,
        match=match,
    )


def summarize_fit(
    fit: FitResult,
    site: 'MutationSite',
    sample_id: str,
    min_percent: float = 5.0,
    match: Optional[MatchWindow] = None,
) -> MotifCallResult:
    """
    Collapse a codon mixture fit into the reported call.

    Args:
        fit: Mixture fit of the codon window
        site: Mutation whose reference/alternate amino acids are reported
        sample_id: Sample the chromatogram came from
        min_percent: Amino acids below this percent are dropped
        match: Motif match, carried through for reporting

    Returns:
        MotifCallResult with status PASS if any amino acid clears the threshold
    """
    percents = thresholded_percentages(fit.amino_acid_proportions(), min_percent)

    if not percents:
        return fail_result(
            sample_id, site, FailureReason.BELOW_THRESHOLD,
            match=match, confidence=fit.confidence, converged=fit.converged,
        )

    best_aa, best_percent = next(iter(percents.items()))

    return MotifCallResult(
        sample_id=sample_id,
        mutation=site.name,
        status=CallStatus.PASS,
        best_aa=best_aa,
        best_codon=best_codon_for(fit, best_aa),
        best_percent=best_percent,
        ref_name=site.ref_aa,
        ref_percent=percents.get(site.ref_aa),
        mutant_name=site.alt_aa,
        mutant_percent=percents.get(site.alt_aa),
        confidence=fit.confidence,
        proportions=percents,
        converged=fit.converged,
        match=match,
    )
