"""
Command-line interface for codonmix.

codonmix: codon mixture deconvolution of Sanger chromatograms

Author: Kevin R. Roy
"""

import sys
from pathlib import Path

import click

from . import __version__
from .config import CANDIDATE_SETS, SCORING_METHODS, GeneConfig, parse_sequence_input


@click.group()
@click.version_option(version=__version__)
def cli():
    """codonmix: codon mixture deconvolution of Sanger chromatograms."""
    pass


@cli.command()
@click.argument('chromatograms', nargs=-1, type=click.Path(exists=True))
@click.option('--config', '-c', type=click.Path(exists=True), required=True,
              help='Gene configuration YAML (reference and mutation motifs)')
@click.option('--sample-key', '-s', type=click.Path(exists=True),
              help='Sample key TSV file (for multiple samples)')
@click.option('--output', '-o', type=click.Path(),
              help='Output TSV (default: from config, else codonmix_results.tsv)')
@click.option('--min-percent', type=float,
              help='Minimum percent for an amino acid to be reported (default: 5)')
@click.option('--min-score', type=float,
              help='Normalized score a motif match must exceed (default: 0.7)')
@click.option('--max-evaluations', type=int,
              help='Objective evaluations per optimizer restart (default: 20000)')
@click.option('--restarts', type=int,
              help='Independent optimizer restarts per fit (default: 3)')
@click.option('--seed', type=int,
              help='Random seed for reproducible fits')
@click.option('--threads', '-t', type=int,
              help='Number of worker processes (default: 1)')
@click.option('--scoring', type=click.Choice(SCORING_METHODS),
              help='Motif scorer (default: identity)')
@click.option('--candidates', type=click.Choice(CANDIDATE_SETS),
              help="Candidate codons: 'all' 64 or 'motif' ref/alt codons (default: all)")
def run(chromatograms, config, sample_key, output, min_percent, min_score,
        max_evaluations, restarts, seed, threads, scoring, candidates):
    """
    Call every configured mutation in every chromatogram.

    Chromatograms can be given as ABI (.ab1) paths, or listed in a sample
    key TSV (sample_id, chromatogram columns).

    \b
    Example:
      codonmix run -c pfcrt.yaml SAMPLE_01.ab1 SAMPLE_02.ab1 -o calls.tsv

    \b
    Example with a sample key and a fixed seed:
      codonmix run -c pfcrt.yaml --sample-key samples.tsv --seed 42 -t 4
    """
    import logging

    from .config import PipelineConfig
    from .io.output import generate_summary_report
    from .io.sample_key import Sample, load_sample_key
    from .pipeline import run_pipeline

    # Set up logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        pipeline_config = PipelineConfig.from_yaml(Path(config))
        pipeline_config.analysis = pipeline_config.analysis.replace(
            min_percent=min_percent,
            min_match_score=min_score,
            max_evaluations=max_evaluations,
            n_restarts=restarts,
            seed=seed,
            threads=threads,
            scoring=scoring,
            candidates=candidates,
        )
    except ValueError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if not pipeline_config.gene.mutations:
        click.echo("Error: configuration defines no mutations", err=True)
        sys.exit(1)

    # Samples from the command line replace those named in the config
    if sample_key:
        try:
            pipeline_config.samples = load_sample_key(Path(sample_key))
        except ValueError as e:
            click.echo(f"Error loading sample key: {e}", err=True)
            sys.exit(1)
    elif chromatograms:
        pipeline_config.samples = [
            Sample(sample_id=Path(p).stem, chromatogram_path=Path(p))
            for p in chromatograms
        ]

    if not pipeline_config.samples:
        click.echo("Error: Either chromatogram paths or --sample-key must be provided", err=True)
        sys.exit(1)

    if output:
        pipeline_config.output_path = Path(output)

    try:
        results = run_pipeline(pipeline_config)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(generate_summary_report(results))
    click.echo(f"\nResults written to: {pipeline_config.output_path}")


@cli.command()
@click.argument('chromatogram', type=click.Path(exists=True))
@click.option('--motif', '-m', type=str, required=True,
              help='Amino-acid motif to locate')
@click.option('--reference', '-r', type=str,
              help='In-frame reference: DNA sequence or FASTA file path (breaks ties)')
@click.option('--min-score', type=float, default=0.7,
              help='Normalized score a match must exceed (default: 0.7)')
@click.option('--scoring', type=click.Choice(SCORING_METHODS), default='identity',
              help='Motif scorer (default: identity)')
def scan(chromatogram, motif, reference, min_score, scoring):
    """
    Locate an amino-acid motif in a chromatogram's six reading frames.

    \b
    Example:
      codonmix scan SAMPLE_01.ab1 -m VCVMNKIFAKR
    """
    from .core.scanning import scan_motif
    from .io.chromatogram import Chromatogram

    try:
        ref_seq = parse_sequence_input(reference) if reference else ''
        chrom = Chromatogram.from_abi(Path(chromatogram))
        match = scan_motif(
            chrom, motif.upper(),
            min_score=min_score,
            scoring=scoring,
            reference=ref_seq,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if match is None:
        click.echo(f"{chrom.name}: no match for {motif.upper()} scoring above {min_score}")
        sys.exit(1)

    click.echo(f"{chrom.name}: {motif.upper()}")
    click.echo(f"  Matched:  {match.matched}")
    click.echo(f"  Score:    {match.score:.3f}")
    click.echo(f"  Strand:   {match.strand.value}  Frame: {match.frame}")
    click.echo(f"  Calls:    {match.nt_start}-{match.nt_end} (read orientation)")
    click.echo(f"  Samples:  {match.sample_start}-{match.sample_end}")
    if reference:
        click.echo(f"  Agrees with reference orientation: {match.agrees_with_reference}")


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), required=True,
              help='Gene configuration YAML')
def info(config):
    """
    Display the gene configuration without running the pipeline.

    \b
    Example:
      codonmix info -c pfcrt.yaml
    """
    try:
        gene = GeneConfig.from_yaml(Path(config))
    except ValueError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    gene.print_summary()


@cli.command()
@click.option('--output', '-o', type=click.Path(), default='codonmix_config.yaml',
              help='Output config file path')
def init(output):
    """Generate a template gene configuration file."""
    template = '''# codonmix Configuration Template
# Edit this file to configure your analysis

# Target gene
gene: pfcrt

# In-frame reference coding sequence: DNA string or FASTA path (optional,
# used to break ties between equally good motif matches)
reference: pfcrt_cds.fasta

# Mutations: amino-acid motif with the residue of interest at its center
mutations:
  - name: K76T
    motif: VCVMNKIFAKR
    ref: K
    alt: T

# Sample information: TSV with sample_id and chromatogram columns
sample_key: samples.tsv

# Output TSV
output: codonmix_results.tsv

# Analysis options (all optional)
analysis:
  min_percent: 5.0          # Amino acids below this percent are not reported
  min_match_score: 0.7      # Minimum normalized motif match score
  scoring: identity         # identity or blosum62
  candidates: all           # all (64 codons) or motif (ref/alt codons only)
  max_evaluations: 20000    # Objective evaluations per optimizer restart
  n_restarts: 3             # Independent optimizer restarts per fit
  seed: 42                  # Random seed for reproducible fits
  threads: 1
'''

    with open(output, 'w') as f:
        f.write(template)

    click.echo(f"Generated configuration template: {output}")
    click.echo("\nEdit this file and run:")
    click.echo(f"  codonmix run --config {output}")


if __name__ == '__main__':
    cli()
