"""Tests for the command-line interface."""

import csv

import pytest
from Bio import SeqIO
from click.testing import CliRunner

from spliceforge import __version__
from spliceforge.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def a5ss_table(tmp_path, a5ss_factory, table_writer):
    """Quantification table with one regulated and one unregulated event."""
    records = a5ss_factory() + a5ss_factory(
        event_id="ENSG01_low", distal_probability=0.2, proximal_probability=0.2
    )
    return table_writer(tmp_path / "alt5prime.tsv", records)


def read_tsv(path):
    with open(path, newline="") as f:
        return list(csv.DictReader(f, delimiter="\t"))


class TestMain:
    """Tests for the command group."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "classify" in result.output
        assert "run" in result.output

    def test_invalid_config(self, runner, tmp_path, a5ss_table):
        config = tmp_path / "bad.yaml"
        config.write_text("plotting:\n  width: 3\n")
        result = runner.invoke(
            main,
            ["--config", str(config), "classify", str(a5ss_table), "-c", "alt5prime", "-o", "x.tsv"],
        )
        assert result.exit_code == 1
        assert "Unknown configuration section" in result.output


class TestClassifyCommand:
    """Tests for the classify command."""

    def test_classify(self, runner, tmp_path, a5ss_table):
        output = tmp_path / "calls.tsv"
        result = runner.invoke(
            main, ["classify", str(a5ss_table), "--event-class", "alt5prime", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert "Regulated:" in result.output
        rows = {r["event_id"]: r for r in read_tsv(output)}
        assert rows["ENSG01_ev1"]["is_regulated"] == "True"
        assert rows["ENSG01_low"]["is_regulated"] == "False"

    def test_config_threshold(self, runner, tmp_path, a5ss_table):
        config = tmp_path / "strict.yaml"
        config.write_text("regulation:\n  min_probability: 0.99\n")
        output = tmp_path / "calls.tsv"
        result = runner.invoke(
            main,
            ["--config", str(config), "classify", str(a5ss_table), "-c", "alt5prime", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        assert all(r["is_regulated"] == "False" for r in read_tsv(output))

    def test_malformed_table(self, runner, tmp_path):
        table = tmp_path / "bad.tsv"
        table.write_text("event_id\tlsv_id\nev\tlsv\n")
        result = runner.invoke(
            main, ["classify", str(table), "-c", "alt5prime", "-o", str(tmp_path / "o.tsv")]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_event_class_required(self, runner, a5ss_table):
        result = runner.invoke(main, ["classify", str(a5ss_table), "-o", "o.tsv"])
        assert result.exit_code != 0


class TestRunCommand:
    """Tests for the full pipeline command."""

    def run_pipeline(self, runner, tmp_path, table, gff, genome, proteins, *extra):
        output_dir = tmp_path / "results"
        result = runner.invoke(
            main,
            [
                "run",
                "--a5ss",
                str(table),
                "--gff",
                str(gff),
                "--genome",
                str(genome),
                "--proteins",
                str(proteins),
                "-o",
                str(output_dir),
                *extra,
            ],
        )
        return result, output_dir

    def test_run(self, runner, tmp_path, a5ss_table, annotation_gff, genome_fasta, protein_fasta, reference_protein):
        result, output_dir = self.run_pipeline(
            runner, tmp_path, a5ss_table, annotation_gff, genome_fasta, protein_fasta
        )

        assert result.exit_code == 0, result.output
        assert "A5SS SUMMARY" in result.output
        for name in ("regulation.tsv", "events.tsv", "integration.tsv", "edited_proteins.fa", "summary.tsv"):
            assert (output_dir / name).exists()

        events = read_tsv(output_dir / "events.tsv")
        assert [e["event_id"] for e in events] == ["ENSG01_ev1"]
        assert events[0]["outcome"] == "integrated"
        assert events[0]["variant_group"] == "shortened"

        edited = {r.id: str(r.seq) for r in SeqIO.parse(str(output_dir / "edited_proteins.fa"), "fasta")}
        assert set(edited) == {"ENSP01.1", "ENSP01.1_ENSG01_ev1_distal"}
        assert edited["ENSP01.1"] == reference_protein

        summary = {r["metric"]: r["value"] for r in read_tsv(output_dir / "summary.tsv")}
        assert summary["total_events"] == "2"
        assert summary["not_regulated"] == "1"
        assert summary["integrated"] == "1"

    def test_run_threads(self, runner, tmp_path, a5ss_table, annotation_gff, genome_fasta, protein_fasta):
        result, output_dir = self.run_pipeline(
            runner,
            tmp_path,
            a5ss_table,
            annotation_gff,
            genome_fasta,
            protein_fasta,
            "-j",
            "2",
            "--backend",
            "threads",
        )
        assert result.exit_code == 0, result.output
        assert read_tsv(output_dir / "events.tsv")[0]["outcome"] == "integrated"

    def test_run_exon_mode(self, runner, tmp_path, a5ss_table, annotation_gff, genome_fasta, protein_fasta):
        result, output_dir = self.run_pipeline(
            runner,
            tmp_path,
            a5ss_table,
            annotation_gff,
            genome_fasta,
            protein_fasta,
            "--mode",
            "exon",
        )
        assert result.exit_code == 0, result.output
        events = read_tsv(output_dir / "events.tsv")
        assert events[0]["proximal_length"] == "30"
        assert events[0]["distal_length"] == "26"

    def test_run_missing_input(self, runner, tmp_path, a5ss_table, annotation_gff, protein_fasta):
        result, _ = self.run_pipeline(
            runner, tmp_path, a5ss_table, annotation_gff, tmp_path / "none.fa", protein_fasta
        )
        assert result.exit_code != 0
