"""
I/O modules for codonmix.

Author: Kevin R. Roy
"""

from .chromatogram import Chromatogram
from .output import (
    generate_summary_report,
    results_to_dataframe,
    write_results_tsv,
)
from .sample_key import (
    Sample,
    create_sample_key_template,
    load_sample_key,
)

__all__ = [
    'Chromatogram',
    'Sample',
    'load_sample_key',
    'create_sample_key_template',
    'results_to_dataframe',
    'write_results_tsv',
    'generate_summary_report',
]
