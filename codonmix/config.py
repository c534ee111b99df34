"""
Configuration classes for codonmix.

One GeneConfig holds the reference sequence and the mutation motifs of a
single target gene; AnalysisConfig holds the tunable thresholds and
optimizer budget. Both are passed explicitly into the pipeline.

Author: Kevin R. Roy
"""

from dataclasses import dataclass, field, fields
from functools import cached_property
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
import logging
import re
import yaml

from .io.sample_key import Sample
from .utils.sequence import AMINO_ACIDS, translate

logger = logging.getLogger(__name__)

# Regex to detect if string is pure DNA sequence
DNA_PATTERN = re.compile(r'^[ACGTacgtNn]+$')

# Motif alphabet: amino acids plus X for an unknown residue
MOTIF_PATTERN = re.compile(r'^[ACDEFGHIKLMNPQRSTVWYX*]+$')

SCORING_METHODS = ('identity', 'blosum62')
CANDIDATE_SETS = ('all', 'motif')


def is_dna_sequence(s: str) -> bool:
    """Check if string is a pure DNA sequence (not a file path)."""
    # Must be non-empty and contain only valid DNA characters
    return bool(s) and bool(DNA_PATTERN.match(s)) and len(s) < 100000


def parse_sequence_input(value: str) -> str:
    """
    Parse sequence input - can be either a DNA string or a FASTA file path.

    Args:
        value: Either a DNA sequence string or path to a FASTA file

    Returns:
        The DNA sequence (uppercase)
    """
    value = value.strip()

    # Check if it's a DNA sequence
    if is_dna_sequence(value):
        return value.upper()

    # Otherwise treat as file path
    path = Path(value)
    if not path.exists():
        raise ValueError(f"File not found: {value}")

    return load_fasta(path)


@dataclass(frozen=True)
class MutationSite:
    """
    A mutation of interest, located by the amino-acid motif around it.

    Attributes:
        name: Human-readable mutation name (e.g. "K76T")
        motif: Amino-acid context with the residue of interest at its center
        ref_aa: Reference (wild-type) amino acid
        alt_aa: Alternate (mutant) amino acid
    """
    name: str
    motif: str
    ref_aa: str
    alt_aa: str

    def __post_init__(self):
        motif = str(self.motif).strip().upper()
        ref_aa = str(self.ref_aa).strip().upper()
        alt_aa = str(self.alt_aa).strip().upper()

        if not self.name:
            raise ValueError("Mutation name must not be empty")
        if len(motif) < 3 or len(motif) % 2 == 0:
            raise ValueError(
                f"{self.name}: motif must have odd length >= 3, got '{motif}' ({len(motif)} residues)"
            )
        if not MOTIF_PATTERN.match(motif):
            raise ValueError(f"{self.name}: motif '{motif}' contains non amino-acid characters")
        for label, aa in (('reference', ref_aa), ('alternate', alt_aa)):
            if len(aa) != 1 or aa not in AMINO_ACIDS:
                raise ValueError(f"{self.name}: {label} amino acid must be one residue, got '{aa}'")

        object.__setattr__(self, 'motif', motif)
        object.__setattr__(self, 'ref_aa', ref_aa)
        object.__setattr__(self, 'alt_aa', alt_aa)

        if motif[self.center] not in (ref_aa, 'X'):
            logger.warning(
                f"{self.name}: motif center '{motif[self.center]}' differs from reference '{ref_aa}'"
            )

    @property
    def center(self) -> int:
        """Index of the residue of interest within the motif."""
        return len(self.motif) // 2

    @classmethod
    def from_dict(cls, d: Dict) -> 'MutationSite':
        """Create from a gene-config mapping."""
        missing = [k for k in ('name', 'motif', 'ref', 'alt') if k not in d]
        if missing:
            raise ValueError(f"Mutation entry {d} is missing fields: {', '.join(missing)}")
        return cls(name=str(d['name']), motif=d['motif'], ref_aa=d['ref'], alt_aa=d['alt'])


@dataclass(frozen=True)
class GeneConfig:
    """Reference sequence and mutation sites for one target gene."""
    name: str
    reference: str
    mutations: Tuple[MutationSite, ...] = ()

    def __post_init__(self):
        reference = str(self.reference).strip().upper()
        if reference and not DNA_PATTERN.match(reference):
            raise ValueError(f"{self.name}: reference must be a DNA sequence")
        object.__setattr__(self, 'reference', reference)
        object.__setattr__(self, 'mutations', tuple(self.mutations))

        names = [m.name for m in self.mutations]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"{self.name}: duplicate mutation names {duplicates}")

    @cached_property
    def reference_protein(self) -> str:
        """Frame-1 translation of the reference."""
        return translate(self.reference, 1) if self.reference else ''

    def mutation(self, name: str) -> MutationSite:
        """Look up a mutation by name."""
        for site in self.mutations:
            if site.name == name:
                return site
        raise KeyError(f"{self.name}: no mutation named '{name}'")

    def locate_in_reference(self, site: MutationSite) -> Optional[int]:
        """0-based residue index of the motif center in the reference protein."""
        pos = self.reference_protein.find(site.motif)
        return None if pos == -1 else pos + site.center

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> 'GeneConfig':
        """
        Create from a parsed gene YAML mapping.

        A reference given as a relative FASTA path is resolved against base_dir.
        """
        reference = str(data.get('reference', '') or '').strip()
        if reference:
            if base_dir is not None and not is_dna_sequence(reference):
                reference = str(Path(base_dir) / reference)
            reference = parse_sequence_input(reference)
        mutations = tuple(MutationSite.from_dict(m) for m in data.get('mutations', []) or [])
        return cls(
            name=str(data.get('gene', data.get('name', 'unnamed'))),
            reference=reference,
            mutations=mutations,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> 'GeneConfig':
        """Load a gene configuration from YAML."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data, base_dir=Path(path).parent)

    def print_summary(self):
        """Print a human-readable summary of the gene configuration."""
        print("\n" + "=" * 60)
        print(f"=== codonmix gene configuration: {self.name} ===")
        print("=" * 60)

        if self.reference:
            print(f"\nReference sequence: {len(self.reference)} bp "
                  f"({len(self.reference_protein)} codons)")
        else:
            print("\nReference sequence: none (orientation tie-breaking disabled)")

        print(f"\n  Mutations ({len(self.mutations)} total):")
        for site in self.mutations:
            pos = self.locate_in_reference(site) if self.reference else None
            where = f"residue {pos + 1} of reference" if pos is not None else "not in reference"
            print(f"    * {site.name}: {site.motif} ({site.ref_aa} -> {site.alt_aa}), {where}")

        print()


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Tunable parameters for motif scanning, fitting and reporting.

    Attributes:
        min_match_score: A match must score above this normalized threshold
        min_percent: Amino acids below this percent are not reported
        max_evaluations: Objective evaluations allowed per optimizer restart
        n_restarts: Independent annealing runs per fit
        seed: Random seed; None draws fresh entropy
        scoring: Motif scorer, 'identity' or 'blosum62'
        candidates: 'all' 64 codons, or 'motif' for codons of the ref/alt amino acids
        max_shift: Maximum peak offset, as a fraction of the peak period
        sigma_bounds: Peak width bounds, as fractions of the peak period
        max_residual: Relative residual above which a fit is not converged
        time_limit: Optional wall-clock cap per optimizer restart, in seconds
        kmer_size: K-mer size for inferring the reference orientation
        threads: Worker processes for batch runs
    """
    min_match_score: float = 0.7
    min_percent: float = 5.0
    max_evaluations: int = 20000
    n_restarts: int = 3
    seed: Optional[int] = None
    scoring: str = 'identity'
    candidates: str = 'all'
    max_shift: float = 0.35
    sigma_bounds: Tuple[float, float] = (0.1, 0.6)
    max_residual: float = 0.25
    time_limit: Optional[float] = None
    kmer_size: int = 12
    threads: int = 1

    def __post_init__(self):
        object.__setattr__(self, 'sigma_bounds', tuple(float(s) for s in self.sigma_bounds))

        if not self.min_match_score < 1.0:
            raise ValueError(f"min_match_score must be below 1, got {self.min_match_score}")
        if not 0.0 <= self.min_percent <= 100.0:
            raise ValueError(f"min_percent must be within 0-100, got {self.min_percent}")
        if self.max_evaluations < 1:
            raise ValueError(f"max_evaluations must be positive, got {self.max_evaluations}")
        if self.n_restarts < 1:
            raise ValueError(f"n_restarts must be at least 1, got {self.n_restarts}")
        if self.scoring not in SCORING_METHODS:
            raise ValueError(f"Unknown scoring '{self.scoring}', choose from {SCORING_METHODS}")
        if self.candidates not in CANDIDATE_SETS:
            raise ValueError(f"Unknown candidates '{self.candidates}', choose from {CANDIDATE_SETS}")
        if not 0.0 < self.max_shift <= 0.5:
            raise ValueError(f"max_shift must be within (0, 0.5], got {self.max_shift}")
        lo, hi = self.sigma_bounds
        if not 0.0 < lo < hi:
            raise ValueError(f"sigma_bounds must satisfy 0 < low < high, got {self.sigma_bounds}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")
        if self.max_residual <= 0:
            raise ValueError(f"max_residual must be positive, got {self.max_residual}")
        if self.kmer_size < 4:
            raise ValueError(f"kmer_size must be at least 4, got {self.kmer_size}")
        if self.threads < 1:
            raise ValueError(f"threads must be at least 1, got {self.threads}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'AnalysisConfig':
        """Create from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown analysis options: {', '.join(unknown)}")
        return cls(**d)

    def replace(self, **changes) -> 'AnalysisConfig':
        """Copy with some options changed; None values are ignored."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in changes.items() if v is not None})
        return AnalysisConfig(**values)


@dataclass
class PipelineConfig:
    """Full pipeline configuration."""
    gene: GeneConfig
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    samples: List[Sample] = field(default_factory=list)
    output_path: Path = Path('codonmix_results.tsv')

    @classmethod
    def from_yaml(cls, path: Path) -> 'PipelineConfig':
        """
        Load configuration from YAML.

        The file holds the gene definition (gene, reference, mutations) and
        optionally an `analysis` mapping, a `sample_key` TSV and an `output`
        path.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        base_dir = Path(path).parent
        gene = GeneConfig.from_dict(data, base_dir=base_dir)
        analysis = AnalysisConfig.from_dict(data.get('analysis', {}) or {})

        samples = []
        if data.get('sample_key'):
            from .io.sample_key import load_sample_key
            key_path = base_dir / str(data['sample_key'])
            if not key_path.exists():
                raise ValueError(f"Sample key not found: {key_path}")
            samples = load_sample_key(key_path)

        return cls(
            gene=gene,
            analysis=analysis,
            samples=samples,
            output_path=Path(data.get('output', 'codonmix_results.tsv')),
        )


def _read_fasta_sequence(path: str) -> str:
    """Read first sequence from a FASTA file."""
    sequence = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line.startswith('>'):
                if sequence:
                    break  # Only read first sequence
                continue
            sequence.append(line.upper())
    return ''.join(sequence)


def load_fasta(path: Path) -> str:
    """Load sequence from FASTA file."""
    return _read_fasta_sequence(str(path))
