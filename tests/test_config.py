"""Tests for codonmix.config module."""

import pytest
import yaml
from codonmix.config import (
    AnalysisConfig,
    GeneConfig,
    MutationSite,
    PipelineConfig,
    parse_sequence_input,
)
from codonmix.utils.synthetic import back_translate


PFCRT_MOTIF = "VCVMNKIFAKR"


class TestMutationSite:
    """Test MutationSite validation."""

    def test_basic_initialization(self):
        """Test normalization and center index."""
        site = MutationSite(name="K76T", motif="vcvmnkifakr", ref_aa="k", alt_aa="t")
        assert site.motif == PFCRT_MOTIF
        assert site.ref_aa == "K"
        assert site.alt_aa == "T"
        assert site.center == 5
        assert site.motif[site.center] == "K"

    def test_even_motif_rejected(self):
        """Test that the residue of interest must sit at a unique center."""
        with pytest.raises(ValueError, match="odd length"):
            MutationSite(name="bad", motif="VCVMNK", ref_aa="K", alt_aa="T")

    def test_short_motif_rejected(self):
        """Test that one-residue motifs are rejected."""
        with pytest.raises(ValueError):
            MutationSite(name="bad", motif="K", ref_aa="K", alt_aa="T")

    def test_non_amino_acid_motif_rejected(self):
        """Test that digits and other symbols are rejected."""
        with pytest.raises(ValueError, match="non amino-acid"):
            MutationSite(name="bad", motif="VC1MN", ref_aa="M", alt_aa="T")

    def test_bad_amino_acid_rejected(self):
        """Test that ref/alt must be one residue."""
        with pytest.raises(ValueError):
            MutationSite(name="bad", motif="VCVMN", ref_aa="KT", alt_aa="T")

    def test_from_dict(self):
        """Test creation from a YAML mapping."""
        site = MutationSite.from_dict({"name": "K76T", "motif": PFCRT_MOTIF, "ref": "K", "alt": "T"})
        assert site.name == "K76T"

    def test_from_dict_missing_field(self):
        """Test that missing fields are reported."""
        with pytest.raises(ValueError, match="alt"):
            MutationSite.from_dict({"name": "K76T", "motif": PFCRT_MOTIF, "ref": "K"})


class TestGeneConfig:
    """Test GeneConfig."""

    def test_duplicate_names_rejected(self):
        """Test that mutation names must be unique."""
        site = MutationSite("K76T", PFCRT_MOTIF, "K", "T")
        with pytest.raises(ValueError, match="duplicate"):
            GeneConfig(name="pfcrt", reference="", mutations=(site, site))

    def test_reference_must_be_dna(self):
        """Test that the reference is validated."""
        with pytest.raises(ValueError):
            GeneConfig(name="pfcrt", reference="MKV?", mutations=())

    def test_locate_in_reference(self):
        """Test motif position in the reference protein."""
        reference = back_translate("MAAA" + PFCRT_MOTIF + "GG")
        site = MutationSite("K76T", PFCRT_MOTIF, "K", "T")
        gene = GeneConfig(name="pfcrt", reference=reference, mutations=(site,))
        assert gene.reference_protein.startswith("MAAA")
        assert gene.locate_in_reference(site) == 4 + 5

    def test_mutation_lookup(self):
        """Test lookup by name."""
        site = MutationSite("K76T", PFCRT_MOTIF, "K", "T")
        gene = GeneConfig(name="pfcrt", reference="", mutations=[site])
        assert gene.mutation("K76T") is site
        with pytest.raises(KeyError):
            gene.mutation("N75E")

    def test_from_yaml_with_fasta_reference(self, tmp_path):
        """Test YAML loading with a FASTA reference next to the config."""
        reference = back_translate("M" + PFCRT_MOTIF)
        (tmp_path / "ref.fasta").write_text(f">pfcrt\n{reference[:20]}\n{reference[20:]}\n")
        config = {
            "gene": "pfcrt",
            "reference": "ref.fasta",
            "mutations": [{"name": "K76T", "motif": PFCRT_MOTIF, "ref": "K", "alt": "T"}],
        }
        path = tmp_path / "gene.yaml"
        path.write_text(yaml.safe_dump(config))

        gene = GeneConfig.from_yaml(path)
        assert gene.name == "pfcrt"
        assert gene.reference == reference
        assert len(gene.mutations) == 1


class TestAnalysisConfig:
    """Test AnalysisConfig defaults and validation."""

    def test_defaults(self):
        """Test default thresholds."""
        config = AnalysisConfig()
        assert config.min_percent == 5.0
        assert config.min_match_score == 0.7
        assert config.scoring == "identity"
        assert config.candidates == "all"
        assert config.seed is None

    @pytest.mark.parametrize("field,value", [
        ("min_match_score", 1.0),
        ("min_percent", 120.0),
        ("max_evaluations", 0),
        ("n_restarts", 0),
        ("scoring", "pam250"),
        ("candidates", "some"),
        ("max_shift", 0.0),
        ("sigma_bounds", (0.5, 0.2)),
        ("time_limit", -1.0),
        ("threads", 0),
    ])
    def test_invalid_values_rejected(self, field, value):
        """Test that out-of-range options raise at construction."""
        with pytest.raises(ValueError):
            AnalysisConfig(**{field: value})

    def test_from_dict_rejects_unknown_keys(self):
        """Test that typos in the analysis block are caught."""
        with pytest.raises(ValueError, match="min_pct"):
            AnalysisConfig.from_dict({"min_pct": 5})

    def test_replace_ignores_none(self):
        """Test that unset overrides keep the current value."""
        config = AnalysisConfig(seed=1).replace(seed=None, min_percent=10.0)
        assert config.seed == 1
        assert config.min_percent == 10.0


class TestPipelineConfig:
    """Test full YAML loading."""

    def test_from_yaml(self, tmp_path):
        """Test analysis block, sample key and output path."""
        (tmp_path / "a.ab1").write_bytes(b"")
        (tmp_path / "samples.tsv").write_text("sample_id\tchromatogram\nS1\ta.ab1\n")
        config = {
            "gene": "pfcrt",
            "mutations": [{"name": "K76T", "motif": PFCRT_MOTIF, "ref": "K", "alt": "T"}],
            "analysis": {"min_percent": 10, "seed": 42, "sigma_bounds": [0.1, 0.5]},
            "sample_key": "samples.tsv",
            "output": "out.tsv",
        }
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config))

        loaded = PipelineConfig.from_yaml(path)
        assert loaded.analysis.min_percent == 10
        assert loaded.analysis.seed == 42
        assert loaded.analysis.sigma_bounds == (0.1, 0.5)
        assert [s.sample_id for s in loaded.samples] == ["S1"]
        assert loaded.samples[0].chromatogram_path == tmp_path / "a.ab1"
        assert str(loaded.output_path) == "out.tsv"

    def test_missing_sample_key(self, tmp_path):
        """Test that a missing sample key is a configuration error."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"gene": "pfcrt", "sample_key": "nope.tsv"}))
        with pytest.raises(ValueError, match="Sample key not found"):
            PipelineConfig.from_yaml(path)


class TestSequenceInput:
    """Test DNA string / FASTA path parsing."""

    def test_dna_string(self):
        """Test that DNA strings are uppercased."""
        assert parse_sequence_input("acgt") == "ACGT"

    def test_missing_file(self):
        """Test that a missing FASTA path raises ValueError."""
        with pytest.raises(ValueError, match="File not found"):
            parse_sequence_input("missing.fasta")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
