"""End-to-end tests for codonmix.pipeline."""

import numpy as np
import pandas as pd
import pytest
from codonmix.config import AnalysisConfig, GeneConfig, MutationSite, PipelineConfig
from codonmix.core.models import CallStatus, FailureReason
from codonmix.io.chromatogram import Chromatogram
from codonmix.io.sample_key import Sample
from codonmix.pipeline import MutationPipeline, run_pipeline
from codonmix.utils.synthetic import (
    motif_read,
    random_sequence,
    simulate_chromatogram,
)


MOTIF = "VCVMNKIFAKR"
K76T = MutationSite(name="K76T", motif=MOTIF, ref_aa="K", alt_aa="T")
GENE = GeneConfig(name="pfcrt", reference="", mutations=(K76T,))
ANALYSIS = AnalysisConfig(max_evaluations=4000, n_restarts=2, seed=42)


def sample_chromatogram(codon="AAA", mixture=None, seed=1, name="SAMPLE_01"):
    """Synthetic read with the K76T motif and a chosen center codon."""
    seq, offset = motif_read(MOTIF, center_codon=codon, flank=30, seed=seed)
    mixtures = {offset + k: m for k, m in (mixture or {}).items()}
    return simulate_chromatogram(seq, mixtures=mixtures, seed=seed, name=name)


@pytest.fixture
def pipeline():
    return MutationPipeline(GENE, ANALYSIS)


class TestAnalyze:
    """Test single (chromatogram, mutation) units."""

    def test_wild_type_sample(self, pipeline):
        """Test SAMPLE_01 carrying AAA at K76."""
        result = pipeline.analyze(sample_chromatogram("AAA"), K76T)
        assert result.status == CallStatus.PASS
        assert result.sample_id == "SAMPLE_01"
        assert result.mutation == "K76T"
        assert result.best_aa == "K"
        assert result.best_codon == "AAA"
        assert result.best_percent >= 90
        assert result.ref_name == "K"
        assert result.ref_percent >= 90
        assert result.mutant_name == "T"
        assert result.mutant_percent is None or result.mutant_percent < 5
        assert result.converged

    def test_mutant_sample(self, pipeline):
        """Test a pure K76T mutant."""
        result = pipeline.analyze(sample_chromatogram("ACA"), K76T)
        assert result.status == CallStatus.PASS
        assert result.best_aa == "T"
        assert result.mutant_percent >= 90

    def test_mixed_sample(self, pipeline):
        """Test a 50/50 K/T mixture reports both amino acids."""
        chrom = sample_chromatogram("AAA", mixture={1: {"A": 0.5, "C": 0.5}})
        result = pipeline.analyze(chrom, K76T)
        assert result.status == CallStatus.PASS
        assert abs(result.ref_percent - 50) <= 15
        assert abs(result.mutant_percent - 50) <= 15
        assert result.ref_percent >= ANALYSIS.min_percent
        assert result.mutant_percent >= ANALYSIS.min_percent

    @pytest.mark.parametrize("codon,alt", [("ACG", "T"), ("GAT", "D"), ("GCG", "A")])
    def test_mixture_differing_at_several_positions(self, pipeline, codon, alt):
        """Test a 50/50 mixture of AAA and a codon differing at two or three positions."""
        site = MutationSite(name=f"K76{alt}", motif=MOTIF, ref_aa="K", alt_aa=alt)
        mixture = {k: {"A": 0.5, base: 0.5} for k, base in enumerate(codon) if base != "A"}
        result = pipeline.analyze(sample_chromatogram("AAA", mixture=mixture), site)
        assert result.status == CallStatus.PASS
        assert result.mutant_name == alt
        assert abs(result.ref_percent - 50) <= 15
        assert abs(result.mutant_percent - 50) <= 15

    def test_ambiguous_mixture_reported_with_low_confidence(self, pipeline):
        """Test that AAA + GAT is called as K/D but not with high confidence."""
        site = MutationSite(name="K76D", motif=MOTIF, ref_aa="K", alt_aa="D")
        mixture = {0: {"A": 0.5, "G": 0.5}, 2: {"A": 0.5, "T": 0.5}}
        result = pipeline.analyze(sample_chromatogram("AAA", mixture=mixture), site)
        assert set(result.proportions) == {"K", "D"}
        assert result.confidence <= 0.6

    def test_strand_invariance(self, pipeline):
        """Test that the reverse-complemented chromatogram gives the same call."""
        chrom = sample_chromatogram("AAA", mixture={1: {"A": 0.7, "C": 0.3}})
        forward = pipeline.analyze(chrom, K76T)
        reverse = pipeline.analyze(chrom.reverse_complement(), K76T)
        assert reverse.match.strand.value == "-"
        assert reverse.best_aa == forward.best_aa
        assert reverse.proportions == pytest.approx(forward.proportions)

    def test_same_seed_is_idempotent(self, pipeline):
        """Test identical records from repeated runs."""
        chrom = sample_chromatogram("AAA", mixture={1: {"A": 0.5, "C": 0.5}})
        first = pipeline.analyze(chrom, K76T)
        second = MutationPipeline(GENE, ANALYSIS).analyze(chrom, K76T)
        assert first.to_dict() == second.to_dict()

    def test_negative_control(self, pipeline):
        """Test that a read without the motif fails cleanly."""
        seq = random_sequence(300, np.random.default_rng(9))
        result = pipeline.analyze(simulate_chromatogram(seq, name="NEG"), K76T)
        assert result.status == CallStatus.FAIL
        assert result.failure == FailureReason.MOTIF_NOT_FOUND
        assert result.best_aa == ""
        assert result.to_dict()["Best_AA_Call"] == ""

    def test_window_unresolved(self, pipeline):
        """Test FAIL when the codon peaks cannot be separated."""
        seq, offset = motif_read(MOTIF, flank=30, seed=3)
        traces = np.zeros((len(seq) * 12 + 24, 4))
        peaks = [12 * (i + 1) for i in range(len(seq))]
        peaks[offset + 1] = peaks[offset]
        chrom = Chromatogram(traces=traces, base_calls=seq, peak_locations=peaks)
        result = pipeline.analyze(chrom, K76T)
        assert result.failure == FailureReason.WINDOW_UNRESOLVED
        assert result.match is not None

    def test_fit_failed_on_flat_window(self, pipeline):
        """Test FAIL when the extracted window carries no signal."""
        seq, offset = motif_read(MOTIF, flank=30, seed=4)
        chrom = simulate_chromatogram(seq)
        traces = np.array(chrom.traces)
        start = chrom.anchor(offset) - 6
        traces[start:start + 36] = 0.0
        flat = Chromatogram(traces=traces, base_calls=seq, peak_locations=chrom.peak_locations)
        result = pipeline.analyze(flat, K76T)
        assert result.failure == FailureReason.FIT_FAILED

    def test_motif_candidates(self):
        """Test fitting against the ref/alt codons only."""
        analysis = ANALYSIS.replace(candidates="motif")
        pipeline = MutationPipeline(GENE, analysis)
        assert len(pipeline.library_for(K76T)) == 6
        result = pipeline.analyze(sample_chromatogram("ACA"), K76T)
        assert result.best_aa == "T"

    def test_analyze_chromatogram_all_mutations(self):
        """Test every configured mutation is reported, in config order."""
        other = MutationSite(name="M74I", motif="LVCVMNKIF", ref_aa="M", alt_aa="I")
        gene = GeneConfig(name="pfcrt", reference="", mutations=(K76T, other))
        results = MutationPipeline(gene, ANALYSIS).analyze_chromatogram(sample_chromatogram())
        assert [r.mutation for r in results] == ["K76T", "M74I"]
        # The residue before the motif is random flank; the other 8 of 9 match
        assert results[1].status == CallStatus.PASS
        assert results[1].best_aa == "M"


class TestBatch:
    """Test batch runs."""

    def test_order_and_parallel_consistency(self):
        """Test that parallel results match sequential ones, in input order."""
        chroms = [
            ("S2", sample_chromatogram("ACA", seed=2, name="S2")),
            ("S1", sample_chromatogram("AAA", seed=1, name="S1")),
            ("NEG", simulate_chromatogram(random_sequence(200, np.random.default_rng(8)))),
        ]
        sequential = MutationPipeline(GENE, ANALYSIS).analyze_batch(chroms)
        parallel = MutationPipeline(GENE, ANALYSIS.replace(threads=2)).analyze_batch(chroms)
        assert [r.sample_id for r in sequential] == ["S2", "S1", "NEG"]
        assert [r.to_dict() for r in parallel] == [r.to_dict() for r in sequential]

    def test_run_pipeline_writes_tsv(self, tmp_path, monkeypatch):
        """Test the full run from samples to TSV."""
        chroms = {
            "S1": sample_chromatogram("AAA", seed=1, name="S1"),
            "S2": sample_chromatogram("ACA", seed=2, name="S2"),
        }
        monkeypatch.setattr(
            Chromatogram, "from_abi",
            classmethod(lambda cls, path, name=None: chroms[name]),
        )
        samples = [
            Sample("S1", tmp_path / "S1.ab1", {"site": "clinic_a"}),
            Sample("S2", tmp_path / "S2.ab1", {"site": "clinic_b"}),
        ]
        config = PipelineConfig(
            gene=GENE, analysis=ANALYSIS, samples=samples,
            output_path=tmp_path / "out" / "calls.tsv",
        )
        results = run_pipeline(config)
        assert [r.best_aa for r in results] == ["K", "T"]

        df = pd.read_csv(tmp_path / "out" / "calls.tsv", sep="\t", dtype=str, keep_default_na=False)
        assert df["Sample"].tolist() == ["S1", "S2"]
        assert df["Best_AA_Call"].tolist() == ["K", "T"]
        assert df["site"].tolist() == ["clinic_a", "clinic_b"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
