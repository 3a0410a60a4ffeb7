"""Integration of A5SS peptide variants into reference proteins.

Both peptides of an event are aligned against every reference isoform of
the gene. The pair is accepted for an isoform when one peptide matches
the isoform exactly and the other differs from it by an internal indel or
ends in a premature stop. Accepted peptides are spliced into the isoform
sequence to give edited full-length proteins.

Alignment uses a global mode in which the peptide must align end to end
while overhanging reference residues are free, with identity scoring and
a harsh mismatch penalty so exact segment matches always win.

Example:
    >>> from spliceforge.homology.integrate import AlignmentIntegrator
    >>> integrator = AlignmentIntegrator()
    >>> records = integrator.integrate("ev1", peptides, isoforms)
    >>> [r.identifier for r in records if r.keep]
    ['ENSP0001', 'ENSP0001_ev1_proximal']
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import attrs
from Bio.Align import PairwiseAligner

from spliceforge.config import AlignmentConfig
from spliceforge.core.models import JunctionRole, PeptideRecord, ProteinIsoform

logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True, frozen=True)
class AlignmentSummary:
    """Span and edit counts of one peptide-to-reference alignment.

    Spans are 0-based half-open.

    Attributes:
        peptide_start: First aligned peptide residue.
        peptide_end: End of the aligned peptide span.
        reference_start: First aligned reference residue.
        reference_end: End of the aligned reference span.
        peptide_length: Full peptide length.
        reference_length: Full reference length.
        matches: Identical aligned residue pairs.
        mismatches: Non-identical aligned residue pairs.
        insertions: Peptide residues with no reference counterpart.
        deletions: Reference residues skipped inside the aligned span.
        internal_indel: Whether any gap lies strictly inside the span.
        score: Alignment score.
    """

    peptide_start: int
    peptide_end: int
    reference_start: int
    reference_end: int
    peptide_length: int
    reference_length: int
    matches: int
    mismatches: int
    insertions: int
    deletions: int
    internal_indel: bool
    score: float = 0.0

    @property
    def is_exact(self) -> bool:
        """Whether the whole peptide matches the reference without edits."""
        return (
            self.peptide_start == 0
            and self.peptide_end == self.peptide_length
            and self.mismatches == 0
            and self.insertions == 0
            and self.deletions == 0
        )


@attrs.define(slots=True, frozen=True)
class IntegrationRecord:
    """Result of aligning one peptide variant against one isoform.

    Attributes:
        event_id: Event identifier.
        role: Splice choice of the peptide.
        isoform_id: Reference isoform identifier.
        alignment: Alignment summary, or None when nothing aligned.
        stop_codon: Whether the peptide ends in a premature stop.
        keep: Whether the event passed the acceptance test on this isoform.
        identifier: Identifier of the edited protein (accepted only).
        edited_sequence: Edited full-length protein (accepted only).
    """

    event_id: str
    role: JunctionRole
    isoform_id: str
    alignment: AlignmentSummary | None
    stop_codon: bool
    keep: bool = False
    identifier: str | None = None
    edited_sequence: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (1-based inclusive spans)."""
        row: dict[str, Any] = {
            "event_id": self.event_id,
            "role": self.role.value,
            "isoform_id": self.isoform_id,
            "stop_codon": self.stop_codon,
            "keep": self.keep,
            "identifier": self.identifier or "",
            "edited_length": len(self.edited_sequence) if self.edited_sequence else 0,
        }
        aln = self.alignment
        if aln is not None:
            row.update(
                {
                    "peptide_start": aln.peptide_start + 1,
                    "peptide_end": aln.peptide_end,
                    "reference_start": aln.reference_start + 1,
                    "reference_end": aln.reference_end,
                    "matches": aln.matches,
                    "mismatches": aln.mismatches,
                    "insertions": aln.insertions,
                    "deletions": aln.deletions,
                    "internal_indel": aln.internal_indel,
                    "exact": aln.is_exact,
                }
            )
        return row


# =============================================================================
# Alignment
# =============================================================================


def build_aligner(config: AlignmentConfig) -> PairwiseAligner:
    """Create an aligner with free reference overhang.

    The reference is aligned as target and the peptide as query, so end
    gaps in the query are the unaligned reference flanks.
    """
    aligner = PairwiseAligner()
    aligner.mode = "global"
    aligner.match_score = config.match_score
    aligner.mismatch_score = config.mismatch_score
    aligner.open_gap_score = config.open_gap_score
    aligner.extend_gap_score = config.extend_gap_score
    aligner.query_end_gap_score = 0.0
    return aligner


def summarize_alignment(alignment, reference: str, peptide: str) -> AlignmentSummary | None:
    """Count matches and edits from the aligned blocks of an alignment.

    Args:
        alignment: Biopython alignment with reference as target.
        reference: Reference protein sequence.
        peptide: Peptide sequence.

    Returns:
        AlignmentSummary, or None if no residue pairs were aligned.
    """
    target_blocks, query_blocks = alignment.aligned
    if len(target_blocks) == 0:
        return None

    matches = mismatches = 0
    for (t_start, t_end), (q_start, _q_end) in zip(target_blocks, query_blocks):
        for offset in range(t_end - t_start):
            if reference[t_start + offset] == peptide[q_start + offset]:
                matches += 1
            else:
                mismatches += 1

    internal_insertions = internal_deletions = 0
    for i in range(1, len(target_blocks)):
        internal_deletions += int(target_blocks[i][0] - target_blocks[i - 1][1])
        internal_insertions += int(query_blocks[i][0] - query_blocks[i - 1][1])

    peptide_start = int(query_blocks[0][0])
    peptide_end = int(query_blocks[-1][1])
    overhang = peptide_start + (len(peptide) - peptide_end)

    return AlignmentSummary(
        peptide_start=peptide_start,
        peptide_end=peptide_end,
        reference_start=int(target_blocks[0][0]),
        reference_end=int(target_blocks[-1][1]),
        peptide_length=len(peptide),
        reference_length=len(reference),
        matches=matches,
        mismatches=mismatches,
        insertions=internal_insertions + overhang,
        deletions=internal_deletions,
        internal_indel=(internal_insertions + internal_deletions) > 0,
        score=float(alignment.score),
    )


def edit_sequence(reference: str, peptide: str, alignment: AlignmentSummary, stop_codon: bool) -> str:
    """Substitute the aligned reference segment with the peptide.

    A peptide that ends in a premature stop replaces everything from its
    alignment start onward.
    """
    prefix = reference[: alignment.reference_start]
    if stop_codon:
        return prefix + peptide
    return prefix + peptide + reference[alignment.reference_end :]


# =============================================================================
# Integrator
# =============================================================================


class AlignmentIntegrator:
    """Aligns event peptide pairs to reference isoforms and edits them in.

    Attributes:
        config: Alignment scoring.

    Example:
        >>> integrator = AlignmentIntegrator(AlignmentConfig(mismatch_score=-50))
        >>> summary = integrator.align("MKTAYIAK", "KTAY")
        >>> summary.reference_start, summary.is_exact
        (1, True)
    """

    def __init__(self, config: AlignmentConfig | None = None) -> None:
        self.config = config or AlignmentConfig()
        self._aligner: PairwiseAligner | None = None

    def __getstate__(self) -> dict[str, Any]:
        # The aligner is rebuilt lazily in worker processes
        return {"config": self.config}

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.config = state["config"]
        self._aligner = None

    @property
    def aligner(self) -> PairwiseAligner:
        if self._aligner is None:
            self._aligner = build_aligner(self.config)
        return self._aligner

    def align(self, reference: str, peptide: str) -> AlignmentSummary | None:
        """Align a peptide against a full reference protein.

        Args:
            reference: Reference protein sequence.
            peptide: Peptide sequence.

        Returns:
            AlignmentSummary of the best alignment, or None when either
            sequence is empty or nothing aligns.
        """
        if not reference or not peptide:
            return None

        alignments = self.aligner.align(reference, peptide)
        return summarize_alignment(alignments[0], reference, peptide)

    def evaluate_pair(
        self,
        alignments: Mapping[JunctionRole, AlignmentSummary | None],
        peptides: Mapping[JunctionRole, PeptideRecord],
    ) -> bool:
        """Acceptance test for both peptides of an event on one isoform.

        Args:
            alignments: Alignment of each peptide against the isoform.
            peptides: Both peptides of the event.

        Returns:
            True if the pair is kept.
        """
        distal = alignments[JunctionRole.DISTAL]
        proximal = alignments[JunctionRole.PROXIMAL]
        if distal is None or proximal is None:
            return False

        # Same anchor on the reference, no unaligned peptide prefix
        if distal.reference_start != proximal.reference_start:
            return False
        if distal.peptide_start != 0 or proximal.peptide_start != 0:
            return False

        stops = {role: peptides[role].stop_codon for role in JunctionRole}
        informative = False
        for exact_role, other_role in (
            (JunctionRole.DISTAL, JunctionRole.PROXIMAL),
            (JunctionRole.PROXIMAL, JunctionRole.DISTAL),
        ):
            if alignments[exact_role].is_exact and (
                alignments[other_role].internal_indel or stops[other_role]
            ):
                informative = True
        if not informative:
            return False

        both_exact = distal.is_exact and proximal.is_exact
        same_stop_state = stops[JunctionRole.DISTAL] == stops[JunctionRole.PROXIMAL]
        reaches_end = max(distal.reference_end, proximal.reference_end) >= distal.reference_length
        if both_exact and same_stop_state and not reaches_end:
            return False

        return True

    def identifier(
        self,
        isoform: ProteinIsoform,
        event_id: str,
        peptide: PeptideRecord,
        alignment: AlignmentSummary,
    ) -> str:
        """Identifier of an edited protein.

        A peptide that reproduces the isoform exactly keeps its id.
        """
        if alignment.is_exact and not peptide.stop_codon:
            return isoform.isoform_id
        return f"{isoform.isoform_id}_{event_id}_{peptide.role.value}"

    def integrate(
        self,
        event_id: str,
        peptides: Mapping[JunctionRole, PeptideRecord],
        isoforms: Sequence[ProteinIsoform],
    ) -> list[IntegrationRecord]:
        """Evaluate both peptides of an event against every isoform.

        Args:
            event_id: Event identifier.
            peptides: Distal and proximal peptides.
            isoforms: Reference isoforms of the event's gene.

        Returns:
            One record per (isoform, role); accepted records carry an
            identifier and an edited sequence.
        """
        records = []
        for isoform in isoforms:
            alignments = {
                role: self.align(isoform.sequence, peptides[role].sequence)
                for role in JunctionRole
            }
            keep = self.evaluate_pair(alignments, peptides)

            for role in JunctionRole:
                peptide = peptides[role]
                alignment = alignments[role]
                identifier = edited = None
                if keep:
                    identifier = self.identifier(isoform, event_id, peptide, alignment)
                    edited = edit_sequence(
                        isoform.sequence, peptide.sequence, alignment, peptide.stop_codon
                    )
                records.append(
                    IntegrationRecord(
                        event_id=event_id,
                        role=role,
                        isoform_id=isoform.isoform_id,
                        alignment=alignment,
                        stop_codon=peptide.stop_codon,
                        keep=keep,
                        identifier=identifier,
                        edited_sequence=edited,
                    )
                )

            if keep:
                logger.debug(f"{event_id}: accepted on {isoform.isoform_id}")

        return records
