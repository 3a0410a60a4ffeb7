"""Main A5SS pipeline from junction statistics to edited proteins.

This module ties the per-event steps together and keeps a tally of what
happened to every event, so that expected drop-outs (no phase match, no
reference isoform, rejected alignment) are counted rather than lost.

Key components:
- Outcome: Final state of one event
- EventResult: Everything derived for one event
- PipelineSummary: Outcome and variant-group tallies
- A5SSPipeline: Main orchestration class
- ReportWriter: Report generation utilities

Example:
    >>> from spliceforge.core.pipeline import A5SSPipeline
    >>> pipeline = A5SSPipeline(genome, coding_exons, proteins, config)
    >>> run = pipeline.run(records)
    >>> print(ReportWriter.format_summary(run.summary))
"""

from __future__ import annotations

import csv
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence

import attrs

from spliceforge.config import Config
from spliceforge.core.geometry import EventGeometryBuilder
from spliceforge.core.models import (
    EventGeometry,
    JunctionRecord,
    JunctionRole,
    PeptideRecord,
    ProteinIsoform,
    ReferenceCodingExon,
)
from spliceforge.core.phase import PhaseMatch, PhaseResolver
from spliceforge.core.regulation import EventClassifier, RegulationResult
from spliceforge.core.translation import SequenceSource, Translator
from spliceforge.core.variants import VariantGroup, classify_event
from spliceforge.homology.integrate import AlignmentIntegrator, IntegrationRecord
from spliceforge.io.fasta import write_protein_fasta
from spliceforge.parallel.executor import (
    ExecutionStats,
    ExecutorBackend,
    ParallelExecutor,
    TaskResult,
    get_optimal_workers,
)
from spliceforge.utils.logging import ProgressLogger

logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================


class Outcome(Enum):
    """Final state of an event in the pipeline."""

    INCOMPLETE_EVIDENCE = "incomplete_evidence"
    NOT_REGULATED = "not_regulated"
    NO_PHASE_MATCH = "no_phase_match"
    NO_CANDIDATE_ISOFORM = "no_candidate_isoform"
    ALIGNMENT_REJECTED = "alignment_rejected"
    INTEGRATED = "integrated"
    FAILED = "failed"


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True)
class EventResult:
    """Everything derived for one regulated event.

    Attributes:
        event_id: Event identifier.
        outcome: Final state of the event.
        geometry: Phase-adjusted geometry (original geometry when no
            phase match was found).
        phase: Phase resolution result.
        peptides: Translated variants keyed by role.
        group: Variant group.
        integrations: Alignment results against every isoform.
        error: Error message for failed events.
    """

    event_id: str
    outcome: Outcome
    geometry: EventGeometry | None = None
    phase: PhaseMatch | None = None
    peptides: dict[JunctionRole, PeptideRecord] = attrs.Factory(dict)
    group: VariantGroup | None = None
    integrations: list[IntegrationRecord] = attrs.Factory(list)
    error: str | None = None

    @property
    def accepted(self) -> list[IntegrationRecord]:
        """Integration records that passed the acceptance test."""
        return [record for record in self.integrations if record.keep]

    def to_report_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary for events.tsv."""
        row: dict[str, Any] = {
            "event_id": self.event_id,
            "outcome": self.outcome.value,
            "variant_group": self.group.value if self.group else "",
            "error": self.error or "",
        }
        if self.geometry is not None:
            row.update(self.geometry.to_dict())
        if self.phase is not None:
            row.update(
                {
                    "phase_reference": (
                        f"{self.phase.reference.start + 1}-{self.phase.reference.end}"
                    ),
                    "phase_counts": ",".join(map(str, self.phase.reference.phase_counts)),
                    "nucleotides_to_remove": self.phase.nucleotides_to_remove,
                    "phase_overlap": self.phase.overlap,
                    "boundary_shift": self.phase.boundary_shift,
                }
            )
        for role, peptide in self.peptides.items():
            row[f"{role.value}_peptide"] = peptide.sequence
            row[f"{role.value}_length"] = peptide.length
            row[f"{role.value}_stop"] = peptide.stop_codon
        distal = self.peptides.get(JunctionRole.DISTAL)
        if distal is not None:
            row["frame_shift"] = distal.frame_shift
        return row


@attrs.define(slots=True)
class PipelineSummary:
    """Tallies over all events of a run."""

    outcomes: dict[Outcome, int] = attrs.Factory(lambda: {outcome: 0 for outcome in Outcome})
    groups: dict[VariantGroup, int] = attrs.Factory(lambda: {group: 0 for group in VariantGroup})
    edited_identifiers: set[str] = attrs.Factory(set)

    @property
    def total_events(self) -> int:
        return sum(self.outcomes.values())

    @property
    def n_edited_proteins(self) -> int:
        """Distinct accepted identifiers, as written to the edited FASTA."""
        return len(self.edited_identifiers)

    def add(self, result: EventResult) -> None:
        """Count one event result."""
        self.outcomes[result.outcome] += 1
        if result.group is not None:
            self.groups[result.group] += 1
        self.edited_identifiers.update(record.identifier for record in result.accepted)

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        data = {"total_events": self.total_events}
        data.update({outcome.value: count for outcome, count in self.outcomes.items()})
        data.update({f"group_{group.value}": count for group, count in self.groups.items()})
        data["edited_proteins"] = self.n_edited_proteins
        return data


@attrs.define(slots=True)
class PipelineRun:
    """Output of one pipeline run.

    Attributes:
        regulation: Regulation calls for every event.
        results: Per-event results for regulated events, sorted by id.
        summary: Outcome tallies over all events.
        stats: Executor statistics.
    """

    regulation: RegulationResult
    results: list[EventResult]
    summary: PipelineSummary
    stats: ExecutionStats | None = None


# =============================================================================
# Pipeline
# =============================================================================


class A5SSPipeline:
    """Main A5SS pipeline.

    Orchestrates:
    1. Regulation calling
    2. Three-exon geometry
    3. Phase resolution
    4. Translation of both splice choices
    5. Variant grouping
    6. Integration into reference isoforms

    Steps 2-6 run independently per regulated event.

    Attributes:
        genome: Sequence source.
        coding_exons: Reference coding exons by gene id.
        proteins: Reference protein isoforms by gene id.
        config: Pipeline configuration.

    Example:
        >>> pipeline = A5SSPipeline(
        ...     genome=GenomeAccessor("genome.fa"),
        ...     coding_exons=CodingExonCatalog.from_gff("annotation.gff3"),
        ...     proteins=ProteinCatalog.from_fasta("pep.fa"),
        ... )
        >>> run = pipeline.run(read_junction_table("alt5prime.tsv", "alt5prime"))
    """

    def __init__(
        self,
        genome: SequenceSource,
        coding_exons: Mapping[str, Sequence[ReferenceCodingExon]],
        proteins: Mapping[str, Sequence[ProteinIsoform]],
        config: Config | None = None,
    ) -> None:
        self.genome = genome
        self.coding_exons = coding_exons
        self.proteins = proteins
        self.config = config or Config()

        self.classifier = EventClassifier(self.config.regulation)
        self.resolver = PhaseResolver(coding_exons)
        self.translator = Translator(genome, self.config.translation.mode)
        self.integrator = AlignmentIntegrator(self.config.alignment)
        self._builder: EventGeometryBuilder | None = None

    def process_event(self, event_id: str) -> EventResult:
        """Run geometry, phase, translation, grouping and integration.

        Args:
            event_id: Identifier of a regulated event.

        Returns:
            EventResult with the outcome of the event.

        Raises:
            EventGeometryError: If the rows cannot form a three-exon model.
            CoordinateFormatError: If a coordinate string is malformed.
            UnknownEventError: If the event has no junction rows.
        """
        if self._builder is None:
            raise RuntimeError("No junction rows indexed; call run() first")

        geometry = self._builder.build(event_id)

        match = self.resolver.resolve(geometry)
        if match is None:
            return EventResult(event_id, Outcome.NO_PHASE_MATCH, geometry=geometry)

        adjusted = self.resolver.apply(geometry, match)
        peptides = self.translator.translate_event(adjusted)

        distal_dpsi = adjusted.e1d.stats.dpsi if adjusted.e1d.stats else None
        group = classify_event(peptides, distal_dpsi or 0.0)

        result = EventResult(
            event_id,
            Outcome.NO_CANDIDATE_ISOFORM,
            geometry=adjusted,
            phase=match,
            peptides=peptides,
            group=group,
        )

        isoforms = self.proteins.get(adjusted.gene_id, ())
        if not isoforms:
            logger.debug(f"{event_id}: no reference isoforms for {adjusted.gene_id}")
            return result

        result.integrations = self.integrator.integrate(event_id, peptides, isoforms)
        result.outcome = Outcome.INTEGRATED if result.accepted else Outcome.ALIGNMENT_REJECTED
        return result

    def run(
        self,
        records: Sequence[JunctionRecord],
        executor: ParallelExecutor | None = None,
    ) -> PipelineRun:
        """Run the pipeline over a quantification table.

        Args:
            records: Junction rows of A5SS events.
            executor: Executor for the per-event steps. Defaults to one
                built from the parallel configuration.

        Returns:
            PipelineRun with regulation calls, event results and tallies.
        """
        regulation = self.classifier.classify(records)
        summary = PipelineSummary()
        summary.outcomes[Outcome.INCOMPLETE_EVIDENCE] += len(regulation.incomplete_events)
        summary.outcomes[Outcome.NOT_REGULATED] += len(regulation.calls) - regulation.n_regulated

        event_ids = sorted(regulation.regulated_ids())
        self._builder = EventGeometryBuilder(records)

        if executor is None:
            executor = ParallelExecutor(
                n_workers=get_optimal_workers(self.config.parallel.max_workers),
                backend=self.config.parallel.backend,
                progress_callback=ProgressLogger(logger, len(event_ids), description="Events"),
            )

        if executor.backend is ExecutorBackend.PROCESSES:
            # Ship the pipeline once per worker, then only event ids.
            task_results, stats = executor.map_items(
                _process_in_worker,
                event_ids,
                key=str,
                initializer=_install_worker_pipeline,
                initargs=(self,),
            )
        else:
            task_results, stats = executor.map_items(self.process_event, event_ids, key=str)

        results = [self._collect(task) for task in task_results]
        results.sort(key=lambda r: r.event_id)
        for result in results:
            summary.add(result)

        logger.info(
            "Outcomes: "
            + ", ".join(f"{o.value}={n}" for o, n in summary.outcomes.items() if n)
        )
        return PipelineRun(regulation=regulation, results=results, summary=summary, stats=stats)

    @staticmethod
    def _collect(task: TaskResult) -> EventResult:
        """Turn an executor result into an EventResult."""
        if task.success:
            return task.result

        message = f"{task.error_type}: {task.error}"
        logger.warning(f"Event {task.task_id} failed: {message}")
        return EventResult(task.task_id, Outcome.FAILED, error=message)


# Pipeline of the current worker process, set by the pool initializer.
_worker_pipeline: A5SSPipeline | None = None


def _install_worker_pipeline(pipeline: A5SSPipeline) -> None:
    global _worker_pipeline
    _worker_pipeline = pipeline


def _process_in_worker(event_id: str) -> EventResult:
    if _worker_pipeline is None:
        raise RuntimeError("Worker pipeline not installed")
    return _worker_pipeline.process_event(event_id)


# =============================================================================
# Report Writer
# =============================================================================

REGULATION_COLUMNS = [
    "event_id",
    "event_class",
    "gene_name",
    "module_id",
    "regulated",
    "change",
    "opposite_sign",
    "magnitude_ratio_ok",
    "is_regulated",
]

EVENT_COLUMNS = [
    "event_id",
    "outcome",
    "gene_id",
    "gene_name",
    "module_id",
    "lsv_id",
    "chromosome",
    "strand",
    "event_size",
    "E1D_start",
    "E1D_end",
    "E1P_start",
    "E1P_end",
    "E2_start",
    "E2_end",
    "phase_reference",
    "phase_counts",
    "nucleotides_to_remove",
    "phase_overlap",
    "boundary_shift",
    "distal_peptide",
    "distal_length",
    "distal_stop",
    "proximal_peptide",
    "proximal_length",
    "proximal_stop",
    "frame_shift",
    "variant_group",
    "error",
]

INTEGRATION_COLUMNS = [
    "event_id",
    "role",
    "isoform_id",
    "peptide_start",
    "peptide_end",
    "reference_start",
    "reference_end",
    "matches",
    "mismatches",
    "insertions",
    "deletions",
    "internal_indel",
    "exact",
    "stop_codon",
    "keep",
    "identifier",
    "edited_length",
]


class ReportWriter:
    """Write pipeline reports."""

    @staticmethod
    def write_regulation_tsv(regulation: RegulationResult, output_path: Path) -> None:
        """Write one row per regulation call.

        Args:
            regulation: Regulation calls.
            output_path: Output file path.
        """
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=REGULATION_COLUMNS, delimiter="\t")
            writer.writeheader()
            for event_id in sorted(regulation.calls):
                writer.writerow(regulation.calls[event_id].to_dict())

        logger.info(f"Wrote {len(regulation.calls)} regulation calls to {output_path}")

    @staticmethod
    def write_event_tsv(results: list[EventResult], output_path: Path) -> None:
        """Write one row per regulated event.

        Args:
            results: Event results.
            output_path: Output file path.
        """
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(
                f, fieldnames=EVENT_COLUMNS, delimiter="\t", extrasaction="ignore"
            )
            writer.writeheader()
            for result in results:
                writer.writerow(result.to_report_dict())

        logger.info(f"Wrote {len(results)} events to {output_path}")

    @staticmethod
    def write_integration_tsv(results: list[EventResult], output_path: Path) -> None:
        """Write one row per (event, isoform, role) alignment.

        Args:
            results: Event results.
            output_path: Output file path.
        """
        n_rows = 0
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=INTEGRATION_COLUMNS, delimiter="\t")
            writer.writeheader()
            for result in results:
                for record in result.integrations:
                    writer.writerow(record.to_dict())
                    n_rows += 1

        logger.info(f"Wrote {n_rows} integration records to {output_path}")

    @staticmethod
    def write_edited_proteins(results: list[EventResult], output_path: Path) -> int:
        """Write accepted edited proteins to FASTA.

        An identifier produced by more than one event is written once.

        Args:
            results: Event results.
            output_path: Output file path.

        Returns:
            Number of proteins written.
        """
        seen: set[str] = set()
        proteins = []
        for result in results:
            for record in result.accepted:
                if record.identifier in seen:
                    continue
                seen.add(record.identifier)
                description = (
                    f"event={record.event_id} role={record.role.value} "
                    f"reference={record.isoform_id}"
                )
                proteins.append((record.identifier, description, record.edited_sequence))

        return write_protein_fasta(proteins, output_path)

    @staticmethod
    def write_summary_tsv(summary: PipelineSummary, output_path: Path) -> None:
        """Write summary tallies as metric/value rows.

        Args:
            summary: Pipeline summary.
            output_path: Output file path.
        """
        with open(output_path, "w", newline="") as f:
            writer = csv.writer(f, delimiter="\t")
            writer.writerow(["metric", "value"])
            for key, value in summary.to_dict().items():
                writer.writerow([key, value])

    @staticmethod
    def format_summary(summary: PipelineSummary) -> str:
        """Format summary as text.

        Args:
            summary: Pipeline summary.

        Returns:
            Formatted text string.
        """
        lines = [
            "=" * 50,
            "A5SS SUMMARY",
            "=" * 50,
            f"Total events:            {summary.total_events:,}",
        ]
        for outcome in Outcome:
            label = f"{outcome.value}:"
            lines.append(f"  {label:<23}{summary.outcomes[outcome]:,}")
        for group in VariantGroup:
            label = f"{group.value}:"
            lines.append(f"  {label:<23}{summary.groups[group]:,}")
        lines.extend(
            [
                f"Edited proteins:         {summary.n_edited_proteins:,}",
                "=" * 50,
            ]
        )
        return "\n".join(lines)
