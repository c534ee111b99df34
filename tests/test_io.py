"""Tests for codonmix I/O, plotting and command-line modules."""

import numpy as np
import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from codonmix.cli import cli
from codonmix.config import MutationSite
from codonmix.core.fitting import fit_window
from codonmix.core.extraction import extract_codon_window
from codonmix.core.models import (
    CallStatus,
    FailureReason,
    MatchWindow,
    MotifCallResult,
    Strand,
)
from codonmix.core.scanning import scan_motif
from codonmix.core.summary import fail_result
from codonmix.io.output import (
    RESULT_COLUMNS,
    generate_summary_report,
    results_to_dataframe,
    write_results_tsv,
)
from codonmix.io.sample_key import create_sample_key_template, load_sample_key
from codonmix.utils.synthetic import motif_read, simulate_chromatogram


MOTIF = "VCVMNKIFAKR"
K76T = MutationSite(name="K76T", motif=MOTIF, ref_aa="K", alt_aa="T")


def passing_result(sample_id="S1"):
    return MotifCallResult(
        sample_id=sample_id,
        mutation="K76T",
        status=CallStatus.PASS,
        best_aa="K",
        best_codon="AAA",
        best_percent=93.456,
        ref_name="K",
        ref_percent=93.456,
        mutant_name="T",
        mutant_percent=6.544,
        confidence=0.87654,
        proportions={"K": 93.456, "T": 6.544},
        converged=True,
        match=MatchWindow(Strand.REVERSE, 2, 1.0, 31, 64, 100, 500, MOTIF),
    )


class TestOutput:
    """Test TSV output."""

    def test_dataframe_columns(self):
        """Test column order and formatting."""
        df = results_to_dataframe([passing_result()])
        assert list(df.columns[:len(RESULT_COLUMNS)]) == RESULT_COLUMNS
        row = df.iloc[0]
        assert row["Best_Percent"] == "93.46"
        assert row["Mutant_Percent"] == "6.54"
        assert row["Confidence"] == "0.8765"
        assert row["Converged"] == "TRUE"
        assert row["Proportions"] == "K:93.46;T:6.54"
        assert row["Strand"] == "-"
        assert row["Frame"] == 2

    def test_fail_rows(self):
        """Test that failures have NA percents and empty calls."""
        df = results_to_dataframe([fail_result("S2", K76T, FailureReason.MOTIF_NOT_FOUND)])
        row = df.iloc[0]
        assert row["Status"] == "FAIL"
        assert row["Best_AA_Call"] == ""
        assert row["Best_Percent"] == "NA"
        assert row["Converged"] == "NA"
        assert row["Failure_Reason"] == "motif_not_found"
        assert row["Strand"] == ""

    def test_empty_results(self):
        """Test that an empty batch still has the header."""
        df = results_to_dataframe([])
        assert list(df.columns) == RESULT_COLUMNS

    def test_write_with_metadata(self, tmp_path):
        """Test writing a TSV with sample metadata columns."""
        path = tmp_path / "calls.tsv"
        write_results_tsv(
            [passing_result("S1"), fail_result("S2", K76T, FailureReason.WINDOW_UNRESOLVED)],
            path,
            metadata={"S1": {"site": "clinic_a"}, "S2": {"site": "clinic_b"}},
        )
        df = pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)
        assert df["Sample"].tolist() == ["S1", "S2"]
        assert df["site"].tolist() == ["clinic_a", "clinic_b"]
        assert df["Failure_Reason"].tolist() == ["", "window_unresolved"]

    def test_summary_report(self):
        """Test the human-readable summary."""
        report = generate_summary_report([
            passing_result("S1"),
            fail_result("S2", K76T, FailureReason.MOTIF_NOT_FOUND),
        ])
        assert "Samples: 2" in report
        assert "1 Pass, 1 FAIL" in report
        assert "motif_not_found: 1" in report
        assert "K76T: 1 called, 1 with mutant above threshold" in report


class TestSampleKey:
    """Test sample key loading."""

    def test_load(self, tmp_path):
        """Test relative paths and metadata columns."""
        (tmp_path / "a.ab1").write_bytes(b"")
        key = tmp_path / "samples.tsv"
        key.write_text("sample_id\tchromatogram\tsite\nS1\ta.ab1\tclinic_a\n")
        samples = load_sample_key(key)
        assert len(samples) == 1
        assert samples[0].sample_id == "S1"
        assert samples[0].chromatogram_path == tmp_path / "a.ab1"
        assert samples[0].metadata == {"site": "clinic_a"}

    def test_missing_column(self, tmp_path):
        """Test that the chromatogram column is required."""
        key = tmp_path / "samples.tsv"
        key.write_text("sample_id\tfile\nS1\ta.ab1\n")
        with pytest.raises(ValueError, match="chromatogram"):
            load_sample_key(key)

    def test_duplicate_ids(self, tmp_path):
        """Test that sample IDs must be unique."""
        key = tmp_path / "samples.tsv"
        key.write_text("sample_id\tchromatogram\nS1\ta.ab1\nS1\tb.ab1\n")
        with pytest.raises(ValueError, match="duplicate"):
            load_sample_key(key, validate=False)

    def test_template(self, tmp_path):
        """Test that the template is a loadable sample key."""
        path = tmp_path / "template.tsv"
        create_sample_key_template(path)
        samples = load_sample_key(path, validate=False)
        assert [s.sample_id for s in samples] == ["SAMPLE_01", "SAMPLE_02", "SAMPLE_03"]


class TestPlotting:
    """Test diagnostic plots."""

    def test_plot_trace_fit(self, tmp_path):
        """Test that a fit can be drawn and saved."""
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        from codonmix.analysis.plotting import (
            plot_proportions,
            plot_trace_fit,
            save_figure,
        )

        seq, _ = motif_read(MOTIF, flank=30, seed=1)
        chrom = simulate_chromatogram(seq)
        window = extract_codon_window(chrom, scan_motif(chrom, MOTIF), K76T.center)
        fit = fit_window(window, max_evaluations=1000, n_restarts=1, seed=1)

        model = fit.model()
        assert model.shape == window.data.shape
        assert np.argmax(model[int(window.peak_centers[0])]) == 0

        fig = plot_trace_fit(fit)
        save_figure(fig, str(tmp_path / "fit.png"))
        assert (tmp_path / "fit.png").exists()

        fig = plot_proportions({"K": 93.0, "T": 7.0}, min_percent=5.0)
        save_figure(fig, str(tmp_path / "proportions.png"))
        assert (tmp_path / "proportions.png").exists()


class TestCLI:
    """Test the command-line interface."""

    def test_init_and_info(self, tmp_path):
        """Test that the generated template is a valid gene config."""
        runner = CliRunner()
        config = tmp_path / "gene.yaml"
        result = runner.invoke(cli, ["init", "-o", str(config)])
        assert result.exit_code == 0
        data = yaml.safe_load(config.read_text())
        assert data["mutations"][0]["motif"] == MOTIF

        # Drop the file references so the config loads on its own
        del data["reference"], data["sample_key"]
        config.write_text(yaml.safe_dump(data))
        result = runner.invoke(cli, ["info", "-c", str(config)])
        assert result.exit_code == 0
        assert "K76T" in result.output

    def test_run_without_samples(self, tmp_path):
        """Test that run needs chromatograms or a sample key."""
        config = tmp_path / "gene.yaml"
        config.write_text(yaml.safe_dump({
            "gene": "pfcrt",
            "mutations": [{"name": "K76T", "motif": MOTIF, "ref": "K", "alt": "T"}],
        }))
        result = CliRunner().invoke(cli, ["run", "-c", str(config)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_run_bad_config(self, tmp_path):
        """Test that invalid analysis options exit with an error."""
        config = tmp_path / "gene.yaml"
        config.write_text(yaml.safe_dump({
            "gene": "pfcrt",
            "mutations": [{"name": "K76T", "motif": MOTIF, "ref": "K", "alt": "T"}],
            "analysis": {"min_pct": 5},
        }))
        result = CliRunner().invoke(cli, ["run", "-c", str(config)])
        assert result.exit_code == 1
        assert "Unknown analysis options" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
