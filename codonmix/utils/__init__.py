"""
Utility modules for codonmix.

Author: Kevin R. Roy
"""

from .sequence import (
    ALL_CODONS,
    CODON_TABLE,
    reverse_complement,
    translate,
    translate_codon,
)

__all__ = [
    'ALL_CODONS',
    'CODON_TABLE',
    'reverse_complement',
    'translate',
    'translate_codon',
]
