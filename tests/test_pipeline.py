"""Tests for the A5SS pipeline and its reports.

The synthetic genome and catalogues from conftest hold one event that
passes every step. Variants of it are built to reach each other outcome.
"""

import csv

import attrs
import pytest
from Bio import SeqIO

from spliceforge.config import Config, ParallelConfig
from spliceforge.core.models import JunctionRole, ProteinIsoform, ReferenceCodingExon
from spliceforge.core.pipeline import (
    A5SSPipeline,
    EventResult,
    Outcome,
    PipelineSummary,
    ReportWriter,
)
from spliceforge.core.variants import VariantGroup
from spliceforge.io.fasta import InMemoryGenome
from spliceforge.parallel.executor import ParallelExecutor


class CountingGenome(InMemoryGenome):
    """In-memory genome that counts how often it is pickled."""

    pickled = 0

    def __getstate__(self):
        type(self).pickled += 1
        return self.__dict__


@pytest.fixture
def catalogues(coding_exons, proteins, random_protein):
    """Coding exons and proteins extended with genes for each outcome."""
    exons = dict(coding_exons)
    for gene_id in ("ENSG03", "ENSG05"):
        exons[gene_id] = tuple(attrs.evolve(e, gene_id=gene_id) for e in coding_exons["ENSG01"])

    isoforms = dict(proteins)
    isoforms["ENSG05"] = (ProteinIsoform("ENSP05", "ENSG05", random_protein),)
    return exons, isoforms


@pytest.fixture
def all_outcome_records(a5ss_factory):
    """Rows reaching every pipeline outcome once."""
    bad = a5ss_factory(event_id="ENSG04_bad", gene_id="ENSG04", reference_exon_coord="101..190")
    return (
        a5ss_factory()
        + a5ss_factory(event_id="ENSG01_low", distal_probability=0.2, proximal_probability=0.2)
        + a5ss_factory(event_id="ENSG01_na", distal_dpsi=None)
        + a5ss_factory(event_id="ENSG02_ev1", gene_id="ENSG02")
        + a5ss_factory(event_id="ENSG03_ev1", gene_id="ENSG03")
        + bad
        + a5ss_factory(event_id="ENSG05_ev1", gene_id="ENSG05")
    )


@pytest.fixture
def pipeline(genome, catalogues):
    exons, isoforms = catalogues
    return A5SSPipeline(genome=genome, coding_exons=exons, proteins=isoforms)


@pytest.fixture
def pipeline_run(pipeline, all_outcome_records):
    return pipeline.run(all_outcome_records)


# =============================================================================
# Test Processing
# =============================================================================


class TestProcessEvent:
    """Tests for the per-event steps."""

    def test_requires_run(self, pipeline):
        with pytest.raises(RuntimeError, match="call run"):
            pipeline.process_event("ENSG01_ev1")

    def test_integrated_event(self, pipeline_run, proximal_peptide, distal_peptide, reference_protein):
        result = {r.event_id: r for r in pipeline_run.results}["ENSG01_ev1"]

        assert result.outcome is Outcome.INTEGRATED
        assert result.group is VariantGroup.SHORTENED
        assert result.phase.nucleotides_to_remove == 0
        assert result.peptides[JunctionRole.PROXIMAL].sequence == proximal_peptide
        assert result.peptides[JunctionRole.DISTAL].sequence == distal_peptide

        accepted = {r.role: r for r in result.accepted}
        assert accepted[JunctionRole.PROXIMAL].identifier == "ENSP01"
        assert accepted[JunctionRole.PROXIMAL].edited_sequence == reference_protein
        assert accepted[JunctionRole.DISTAL].identifier == "ENSP01_ENSG01_ev1_distal"
        assert accepted[JunctionRole.DISTAL].edited_sequence == "MSEQ" + distal_peptide + "KLRE"

    def test_elongated_event(self, genome, catalogues, a5ss_factory):
        exons, isoforms = catalogues
        pipeline = A5SSPipeline(genome, exons, isoforms)
        run = pipeline.run(a5ss_factory(distal_dpsi=-0.3, proximal_dpsi=0.3))
        assert run.results[0].group is VariantGroup.ELONGATED

    def test_frame_shift_event(self, genome, catalogues, a5ss_factory):
        """A 10 nt donor shift disrupts the reading frame."""
        exons, isoforms = catalogues
        rows = a5ss_factory(event_id="ENSG01_fs")
        rows[0] = attrs.evolve(rows[0], junction_coord="180-301")

        run = A5SSPipeline(genome, exons, isoforms).run(rows)
        result = run.results[0]
        assert result.geometry.event_size == 10
        assert result.peptides[JunctionRole.DISTAL].frame_shift
        assert result.group is VariantGroup.DISRUPTED

    def test_each_outcome(self, pipeline_run):
        outcomes = {r.event_id: r.outcome for r in pipeline_run.results}
        assert outcomes == {
            "ENSG01_ev1": Outcome.INTEGRATED,
            "ENSG02_ev1": Outcome.NO_PHASE_MATCH,
            "ENSG03_ev1": Outcome.NO_CANDIDATE_ISOFORM,
            "ENSG04_bad": Outcome.FAILED,
            "ENSG05_ev1": Outcome.ALIGNMENT_REJECTED,
        }

    def test_failed_event_keeps_error(self, pipeline_run):
        failed = {r.event_id: r for r in pipeline_run.results}["ENSG04_bad"]
        assert failed.error.startswith("CoordinateFormatError:")
        assert failed.geometry is None

    def test_no_candidate_isoform_still_grouped(self, pipeline_run):
        result = {r.event_id: r for r in pipeline_run.results}["ENSG03_ev1"]
        assert result.group is VariantGroup.SHORTENED
        assert result.integrations == []

    def test_results_sorted(self, pipeline_run):
        ids = [r.event_id for r in pipeline_run.results]
        assert ids == sorted(ids)


class TestRun:
    """Tests for run-level tallies and executors."""

    def test_summary(self, pipeline_run):
        summary = pipeline_run.summary
        assert summary.total_events == 7
        assert all(count == 1 for count in summary.outcomes.values())
        assert summary.groups[VariantGroup.SHORTENED] == 3
        assert summary.n_edited_proteins == 2

    def test_regulation_kept(self, pipeline_run):
        assert pipeline_run.regulation.incomplete_events == ["ENSG01_na"]
        assert not pipeline_run.regulation.calls["ENSG01_low"].is_regulated

    def test_stats(self, pipeline_run):
        assert pipeline_run.stats.total_tasks == 5
        assert pipeline_run.stats.failed == 1

    def test_threads_match_serial(self, pipeline, pipeline_run, all_outcome_records):
        executor = ParallelExecutor(n_workers=3, backend="threads")
        threaded = pipeline.run(all_outcome_records, executor=executor)
        assert [r.outcome for r in threaded.results] == [r.outcome for r in pipeline_run.results]
        assert threaded.summary.to_dict() == pipeline_run.summary.to_dict()

    def test_processes_match_serial(self, pipeline, pipeline_run, all_outcome_records):
        executor = ParallelExecutor(n_workers=2, backend="processes")
        forked = pipeline.run(all_outcome_records, executor=executor)
        assert [r.event_id for r in forked.results] == [r.event_id for r in pipeline_run.results]
        assert [r.outcome for r in forked.results] == [r.outcome for r in pipeline_run.results]
        assert forked.summary.to_dict() == pipeline_run.summary.to_dict()

    def test_processes_ship_pipeline_once_per_worker(
        self, chromosome, catalogues, all_outcome_records
    ):
        """The genome travels with the worker setup, not with each of the 5 events."""
        exons, isoforms = catalogues
        pipeline = A5SSPipeline(CountingGenome({"chr1": chromosome}), exons, isoforms)
        CountingGenome.pickled = 0

        run = pipeline.run(
            all_outcome_records, executor=ParallelExecutor(n_workers=2, backend="processes")
        )

        assert run.stats.total_tasks == 5
        assert CountingGenome.pickled <= 2

    def test_executor_from_config(self, genome, catalogues, a5ss_records):
        exons, isoforms = catalogues
        config = Config(parallel=ParallelConfig(max_workers=2, backend="threads"))
        run = A5SSPipeline(genome, exons, isoforms, config).run(a5ss_records)
        assert run.results[0].outcome is Outcome.INTEGRATED

    def test_no_regulated_events(self, pipeline, a5ss_factory):
        run = pipeline.run(a5ss_factory(distal_probability=0.1, proximal_probability=0.1))
        assert run.results == []
        assert run.summary.outcomes[Outcome.NOT_REGULATED] == 1


class TestPipelineSummary:
    """Tests for PipelineSummary."""

    def test_add(self):
        summary = PipelineSummary()
        summary.add(EventResult("a", Outcome.NO_PHASE_MATCH))
        summary.add(EventResult("b", Outcome.FAILED, error="x"))
        assert summary.total_events == 2
        assert summary.outcomes[Outcome.FAILED] == 1

    def test_edited_proteins_counted_once(self, pipeline_run):
        """Identifiers repeated across results match the deduplicated FASTA."""
        result = {r.event_id: r for r in pipeline_run.results}["ENSG01_ev1"]
        summary = PipelineSummary()
        summary.add(result)
        summary.add(result)
        assert summary.n_edited_proteins == 2
        assert summary.to_dict()["edited_proteins"] == 2

    def test_to_dict_keys(self):
        data = PipelineSummary().to_dict()
        assert data["total_events"] == 0
        assert "integrated" in data
        assert "group_disrupted" in data
        assert data["edited_proteins"] == 0


# =============================================================================
# Test Reports
# =============================================================================


def read_tsv(path):
    with open(path, newline="") as f:
        return list(csv.DictReader(f, delimiter="\t"))


class TestReportWriter:
    """Tests for report files."""

    def test_regulation_tsv(self, tmp_path, pipeline_run):
        path = tmp_path / "regulation.tsv"
        ReportWriter.write_regulation_tsv(pipeline_run.regulation, path)
        rows = read_tsv(path)
        assert len(rows) == 6
        assert {r["event_id"] for r in rows if r["is_regulated"] == "True"} == {
            "ENSG01_ev1",
            "ENSG02_ev1",
            "ENSG03_ev1",
            "ENSG04_bad",
            "ENSG05_ev1",
        }

    def test_event_tsv(self, tmp_path, pipeline_run):
        path = tmp_path / "events.tsv"
        ReportWriter.write_event_tsv(pipeline_run.results, path)
        rows = {r["event_id"]: r for r in read_tsv(path)}

        integrated = rows["ENSG01_ev1"]
        assert integrated["outcome"] == "integrated"
        assert integrated["E1D_start"] == "101"
        assert integrated["E1D_end"] == "178"
        assert integrated["event_size"] == "12"
        assert integrated["variant_group"] == "shortened"
        assert integrated["frame_shift"] == "False"
        assert integrated["distal_length"] == "46"
        assert rows["ENSG04_bad"]["E1D_start"] == ""
        assert rows["ENSG04_bad"]["error"].startswith("CoordinateFormatError")

    def test_integration_tsv(self, tmp_path, pipeline_run):
        path = tmp_path / "integration.tsv"
        ReportWriter.write_integration_tsv(pipeline_run.results, path)
        rows = read_tsv(path)
        assert len(rows) == 4
        kept = [r for r in rows if r["keep"] == "True"]
        assert {r["identifier"] for r in kept} == {"ENSP01", "ENSP01_ENSG01_ev1_distal"}

    def test_edited_proteins_written_once(self, tmp_path, pipeline_run):
        result = {r.event_id: r for r in pipeline_run.results}["ENSG01_ev1"]
        path = tmp_path / "edited.fa"

        n = ReportWriter.write_edited_proteins([result, result], path)

        assert n == 2
        records = list(SeqIO.parse(str(path), "fasta"))
        assert [r.id for r in records] == ["ENSP01_ENSG01_ev1_distal", "ENSP01"]
        assert "reference=ENSP01" in records[0].description

    def test_summary_tsv(self, tmp_path, pipeline_run):
        path = tmp_path / "summary.tsv"
        ReportWriter.write_summary_tsv(pipeline_run.summary, path)
        rows = {r["metric"]: r["value"] for r in read_tsv(path)}
        assert rows["total_events"] == "7"
        assert rows["integrated"] == "1"
        assert rows["edited_proteins"] == "2"

    def test_format_summary(self, pipeline_run):
        text = ReportWriter.format_summary(pipeline_run.summary)
        assert "A5SS SUMMARY" in text
        assert "Total events:" in text
        assert "no_phase_match:" in text
