"""
Main pipeline orchestration for codonmix.

Each (chromatogram, mutation) pair is an independent unit of work:

    Scanning -> Extracting -> Fitting -> Summarizing -> Pass / Fail

A stage that fails moves the unit straight to Fail; nothing is retried.

Author: Kevin R. Roy
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import logging

from .config import AnalysisConfig, GeneConfig, MutationSite, PipelineConfig
from .core.extraction import extract_codon_window
from .core.fitting import MixtureFitter
from .core.models import FailureReason, MotifCallResult
from .core.scanning import MotifScanner, get_scorer
from .core.summary import fail_result, summarize_fit
from .core.templates import CodonModelLibrary
from .io.chromatogram import Chromatogram
from .io.output import write_results_tsv
from .io.sample_key import Sample

logger = logging.getLogger(__name__)


def _analyze_unit_worker(unit_data):
    """
    Worker function for parallel analysis of one (chromatogram, mutation) unit.

    This is a module-level function (not a method) for efficient pickling
    when using ProcessPoolExecutor.

    Args:
        unit_data: Tuple of (gene, analysis, sample_id, chromatogram, mutation_index)

    Returns:
        MotifCallResult
    """
    gene, analysis, sample_id, chromatogram, mutation_index = unit_data
    pipeline = MutationPipeline(gene, analysis)
    return pipeline.analyze(chromatogram, gene.mutations[mutation_index], sample_id)


class MutationPipeline:
    """Runs motif scanning, window extraction, mixture fitting and summary."""

    def __init__(self, gene: GeneConfig, analysis: Optional[AnalysisConfig] = None):
        self.gene = gene
        self.analysis = analysis or AnalysisConfig()
        self.scanner = MotifScanner(
            scorer=get_scorer(self.analysis.scoring),
            min_score=self.analysis.min_match_score,
            reference=gene.reference,
            kmer_size=self.analysis.kmer_size,
        )

    def library_for(self, site: MutationSite) -> CodonModelLibrary:
        """Candidate codons for a mutation site."""
        if self.analysis.candidates == 'motif':
            return CodonModelLibrary.for_amino_acids({site.ref_aa, site.alt_aa})
        return CodonModelLibrary()

    def fitter_for(self, site: MutationSite) -> MixtureFitter:
        """Fitter for a site; ambiguous mixtures fall back to its ref/alt codons."""
        return MixtureFitter(
            self.library_for(site),
            max_evaluations=self.analysis.max_evaluations,
            n_restarts=self.analysis.n_restarts,
            seed=self.analysis.seed,
            max_shift=self.analysis.max_shift,
            sigma_bounds=self.analysis.sigma_bounds,
            max_residual=self.analysis.max_residual,
            time_limit=self.analysis.time_limit,
            preferred=CodonModelLibrary.for_amino_acids({site.ref_aa, site.alt_aa}),
        )

    def analyze(
        self,
        chromatogram: Chromatogram,
        site: MutationSite,
        sample_id: Optional[str] = None,
    ) -> MotifCallResult:
        """
        Call one mutation in one chromatogram.

        Args:
            chromatogram: Chromatogram to analyze
            site: Mutation to call
            sample_id: Sample name for the record (defaults to chromatogram name)

        Returns:
            MotifCallResult; expected failures are reported as FAIL records
        """
        sample_id = sample_id or chromatogram.name

        # Scanning
        match = self.scanner.scan(chromatogram, site.motif)
        if match is None:
            logger.info(f"{sample_id} {site.name}: motif {site.motif} not found")
            return fail_result(sample_id, site, FailureReason.MOTIF_NOT_FOUND)

        # Extracting
        window = extract_codon_window(chromatogram, match, site.center)
        if window is None:
            logger.info(f"{sample_id} {site.name}: codon window could not be resolved")
            return fail_result(sample_id, site, FailureReason.WINDOW_UNRESOLVED, match=match)

        # Fitting
        try:
            fit = self.fitter_for(site).fit(window)
        except ValueError as e:
            logger.warning(f"{sample_id} {site.name}: fit failed: {e}")
            return fail_result(sample_id, site, FailureReason.FIT_FAILED, match=match)

        # Summarizing
        result = summarize_fit(
            fit, site, sample_id,
            min_percent=self.analysis.min_percent,
            match=match,
        )
        logger.info(
            f"{sample_id} {site.name}: {result.status.value} "
            f"{result.best_aa or '-'} {result.best_percent or 0:.1f}% "
            f"(confidence {result.confidence:.2f})"
        )
        return result

    def analyze_chromatogram(
        self,
        chromatogram: Chromatogram,
        sample_id: Optional[str] = None,
    ) -> List[MotifCallResult]:
        """Call every configured mutation in one chromatogram."""
        return [self.analyze(chromatogram, site, sample_id) for site in self.gene.mutations]

    def analyze_batch(
        self,
        chromatograms: Sequence[Tuple[str, Chromatogram]],
    ) -> List[MotifCallResult]:
        """
        Call every mutation in every chromatogram.

        Units run in a process pool when threads > 1. Results are returned
        ordered by sample (input order), then mutation (config order).

        Args:
            chromatograms: (sample_id, Chromatogram) pairs

        Returns:
            List of MotifCallResult
        """
        units = [
            (sample_idx, mutation_idx, sample_id, chrom)
            for sample_idx, (sample_id, chrom) in enumerate(chromatograms)
            for mutation_idx in range(len(self.gene.mutations))
        ]
        logger.info(
            f"Analyzing {len(chromatograms)} chromatograms x "
            f"{len(self.gene.mutations)} mutations ({len(units)} units)"
        )

        results = {}
        if self.analysis.threads <= 1 or len(units) <= 1:
            for sample_idx, mutation_idx, sample_id, chrom in units:
                results[(sample_idx, mutation_idx)] = self.analyze(
                    chrom, self.gene.mutations[mutation_idx], sample_id
                )
        else:
            with ProcessPoolExecutor(max_workers=self.analysis.threads) as executor:
                future_to_unit = {
                    executor.submit(
                        _analyze_unit_worker,
                        (self.gene, self.analysis, sample_id, chrom, mutation_idx),
                    ): (sample_idx, mutation_idx)
                    for sample_idx, mutation_idx, sample_id, chrom in units
                }

                # Collect results as they complete
                for future in as_completed(future_to_unit):
                    key = future_to_unit[future]
                    try:
                        results[key] = future.result()
                    except Exception as e:
                        logger.error(f"Unit {key} failed: {e}")
                        raise

        return [results[key] for key in sorted(results)]

    def run(self, samples: List[Sample]) -> List[MotifCallResult]:
        """
        Load every sample's chromatogram, then analyze them all.

        Chromatograms are loaded before any analysis starts, so a malformed
        file stops the run before work is spent on the others.
        """
        chromatograms = []
        for i, sample in enumerate(samples):
            logger.info(f"Loading sample {i+1}/{len(samples)}: {sample.sample_id}")
            chromatograms.append(
                (sample.sample_id, Chromatogram.from_abi(sample.chromatogram_path, sample.sample_id))
            )
        return self.analyze_batch(chromatograms)


def run_pipeline(config: PipelineConfig) -> List[MotifCallResult]:
    """
    Convenience function to run the full pipeline and write the results TSV.

    Args:
        config: Pipeline configuration with gene, analysis options and samples

    Returns:
        List of MotifCallResult objects
    """
    pipeline = MutationPipeline(config.gene, config.analysis)
    results = pipeline.run(config.samples)

    metadata = {s.sample_id: s.metadata for s in config.samples}
    output_path = Path(config.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    write_results_tsv(results, output_path, metadata=metadata)

    return results
