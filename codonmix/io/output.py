"""
Output generation for codonmix results.

Author: Kevin R. Roy
"""

from pathlib import Path
from typing import Dict, List, Optional, Any
import pandas as pd
import logging

from ..core.models import MotifCallResult

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    'Sample', 'Mutation', 'Status', 'Best_AA_Call', 'Best_Codon', 'Best_Percent',
    'Ref_Name', 'Ref_Percent', 'Mutant_Name', 'Mutant_Percent', 'Confidence',
    'Failure_Reason', 'Converged', 'Proportions',
]


def _format_percent(value: Optional[float]) -> str:
    return 'NA' if value is None else f"{value:.2f}"


def result_row(
    result: MotifCallResult,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Flatten one call into a formatted output row."""
    row = result.to_dict()
    row['Best_Percent'] = _format_percent(result.best_percent)
    row['Ref_Percent'] = _format_percent(result.ref_percent)
    row['Mutant_Percent'] = _format_percent(result.mutant_percent)
    row['Confidence'] = f"{result.confidence:.4f}"
    row['Converged'] = 'NA' if result.converged is None else str(result.converged).upper()

    if result.match is not None:
        row['Strand'] = result.match.strand.value
        row['Frame'] = result.match.frame
        row['Match_Score'] = f"{result.match.score:.4f}"
        row['Matched_Motif'] = result.match.matched
    else:
        row['Strand'] = row['Frame'] = row['Match_Score'] = row['Matched_Motif'] = ''

    # Add metadata
    if metadata:
        for k, v in metadata.items():
            row.setdefault(k, v)

    return row


def results_to_dataframe(
    results: List[MotifCallResult],
    metadata: Optional[Dict[str, Dict[str, Any]]] = None,
) -> pd.DataFrame:
    """
    Tabulate calls, one row per (sample, mutation).

    Args:
        results: Calls in output order
        metadata: Optional sample_id -> metadata columns from the sample key

    Returns:
        DataFrame whose leading columns are RESULT_COLUMNS
    """
    metadata = metadata or {}
    rows = [result_row(r, metadata.get(r.sample_id)) for r in results]
    if not rows:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    df = pd.DataFrame(rows)
    extra = [c for c in df.columns if c not in RESULT_COLUMNS]
    return df[RESULT_COLUMNS + extra]


def write_results_tsv(
    results: List[MotifCallResult],
    output_path: Path,
    metadata: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Path:
    """
    Write results to TSV file.

    Args:
        results: List of MotifCallResult objects
        output_path: Path for output TSV
        metadata: Optional per-sample metadata columns

    Returns:
        Path to written file
    """
    df = results_to_dataframe(results, metadata)
    df.to_csv(output_path, sep='\t', index=False)

    logger.info(f"Wrote {len(df)} calls to {output_path}")

    return output_path


def generate_summary_report(results: List[MotifCallResult]) -> str:
    """
    Generate a human-readable summary of a batch.

    Args:
        results: List of MotifCallResult objects

    Returns:
        Formatted summary string
    """
    lines = []
    lines.append("=" * 60)
    lines.append("codonmix Analysis Summary")
    lines.append("=" * 60)
    lines.append("")

    samples = sorted({r.sample_id for r in results})
    passed = [r for r in results if r.passed]
    lines.append(f"Samples: {len(samples)}")
    lines.append(f"Calls: {len(results)} ({len(passed)} Pass, {len(results) - len(passed)} FAIL)")
    lines.append("")

    failures: Dict[str, int] = {}
    for r in results:
        if r.failure is not None:
            failures[r.failure.value] = failures.get(r.failure.value, 0) + 1
    if failures:
        lines.append("Failure reasons:")
        for reason, count in sorted(failures.items()):
            lines.append(f"  {reason}: {count}")
        lines.append("")

    mutations = []
    for r in results:
        if r.mutation not in mutations:
            mutations.append(r.mutation)
    for mutation in mutations:
        calls = [r for r in passed if r.mutation == mutation]
        mutant = [r for r in calls if r.mutant_percent is not None]
        lines.append(
            f"{mutation}: {len(calls)} called, {len(mutant)} with mutant above threshold"
        )

    lines.append("")
    lines.append("=" * 60)

    return "\n".join(lines)
