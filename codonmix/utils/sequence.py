"""
Sequence manipulation utilities.

Provides common functions for DNA sequence and codon operations.

Author: Kevin R. Roy
"""

from itertools import product
from typing import Dict, Iterable, List, Tuple

BASES = 'ACGT'

AMINO_ACIDS = 'ACDEFGHIKLMNPQRSTVWY*'

CODON_TABLE = {
    'TTT': 'F', 'TTC': 'F', 'TTA': 'L', 'TTG': 'L',
    'TCT': 'S', 'TCC': 'S', 'TCA': 'S', 'TCG': 'S',
    'TAT': 'Y', 'TAC': 'Y', 'TAA': '*', 'TAG': '*',
    'TGT': 'C', 'TGC': 'C', 'TGA': '*', 'TGG': 'W',
    'CTT': 'L', 'CTC': 'L', 'CTA': 'L', 'CTG': 'L',
    'CCT': 'P', 'CCC': 'P', 'CCA': 'P', 'CCG': 'P',
    'CAT': 'H', 'CAC': 'H', 'CAA': 'Q', 'CAG': 'Q',
    'CGT': 'R', 'CGC': 'R', 'CGA': 'R', 'CGG': 'R',
    'ATT': 'I', 'ATC': 'I', 'ATA': 'I', 'ATG': 'M',
    'ACT': 'T', 'ACC': 'T', 'ACA': 'T', 'ACG': 'T',
    'AAT': 'N', 'AAC': 'N', 'AAA': 'K', 'AAG': 'K',
    'AGT': 'S', 'AGC': 'S', 'AGA': 'R', 'AGG': 'R',
    'GTT': 'V', 'GTC': 'V', 'GTA': 'V', 'GTG': 'V',
    'GCT': 'A', 'GCC': 'A', 'GCA': 'A', 'GCG': 'A',
    'GAT': 'D', 'GAC': 'D', 'GAA': 'E', 'GAG': 'E',
    'GGT': 'G', 'GGC': 'G', 'GGA': 'G', 'GGG': 'G',
}

# All 64 codons in lexicographic ACGT order
ALL_CODONS = tuple(''.join(p) for p in product(BASES, repeat=3))


def reverse_complement(seq: str) -> str:
    """Return reverse complement of DNA sequence."""
    complement = {
        'A': 'T', 'T': 'A', 'G': 'C', 'C': 'G', 'N': 'N',
        'a': 't', 't': 'a', 'g': 'c', 'c': 'g', 'n': 'n'
    }
    return ''.join(complement.get(base, 'N') for base in reversed(seq))


def translate_codon(codon: str) -> str:
    """Translate a DNA codon to amino acid (single letter).

    Returns '*' for stop codons, 'X' for invalid or ambiguous codons.
    """
    return CODON_TABLE.get(codon.upper(), 'X')


def translate(sequence: str, frame: int = 1) -> str:
    """Translate a DNA sequence in the given reading frame.

    Args:
        sequence: DNA sequence
        frame: Reading frame, 1-3 (1 starts at the first base)

    Returns:
        Amino acid string; trailing partial codons are dropped
    """
    if frame not in (1, 2, 3):
        raise ValueError(f"Reading frame must be 1, 2 or 3, got {frame}")
    offset = frame - 1
    n_codons = (len(sequence) - offset) // 3
    return ''.join(
        translate_codon(sequence[offset + 3 * i:offset + 3 * i + 3])
        for i in range(n_codons)
    )


def codons_for_amino_acids(amino_acids: Iterable[str]) -> List[str]:
    """Return all codons encoding any of the given amino acids.

    Codons are returned in lexicographic order.
    """
    wanted = {aa.upper() for aa in amino_acids}
    return [codon for codon in ALL_CODONS if CODON_TABLE[codon] in wanted]


def kmer_positions(sequence: str, kmer_size: int = 12) -> Dict[str, List[int]]:
    """Index every ACGT-only k-mer of a sequence by its start positions."""
    index: Dict[str, List[int]] = {}
    seq_upper = sequence.upper()
    for i in range(len(seq_upper) - kmer_size + 1):
        kmer = seq_upper[i:i + kmer_size]
        if set(kmer) <= set(BASES):
            index.setdefault(kmer, []).append(i)
    return index


def shared_kmer_offsets(
    query: str,
    reference: str,
    kmer_size: int = 12,
) -> List[Tuple[int, int]]:
    """Find (query_pos, reference_pos) pairs for k-mers shared by both sequences.

    Only k-mers that occur exactly once in the reference are used, so
    repeats do not cast spurious votes.
    """
    ref_index = kmer_positions(reference, kmer_size)
    pairs = []
    for kmer, query_positions in kmer_positions(query, kmer_size).items():
        ref_positions = ref_index.get(kmer)
        if ref_positions is None or len(ref_positions) != 1:
            continue
        for q in query_positions:
            pairs.append((q, ref_positions[0]))
    return sorted(pairs)
