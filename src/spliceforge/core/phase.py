"""Reading-frame phase resolution for A5SS upstream exons.

The distal upstream exon (E1D) is matched against annotated coding exons
of the same gene. The best-matching reference exon tells us where codons
start; the shared 5' boundary of E1D and E1P is then moved so that
translation from it begins at phase 0.

Selection order among overlapping reference exons:
1. Largest overlap with E1D.
2. Most phase annotations (transcripts) supporting the exon.
3. Leftmost genomic position, so the choice never depends on row order.

Example:
    >>> from spliceforge.core.phase import PhaseResolver
    >>> resolver = PhaseResolver(catalog)
    >>> match = resolver.resolve(geometry)
    >>> if match is not None:
    ...     print(match.nucleotides_to_remove, match.e1d.start)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Mapping, Sequence

import attrs
import numpy as np

from spliceforge.core.models import EventGeometry, ExonInterval, ReferenceCodingExon
from spliceforge.utils.intervals import (
    GenomicInterval,
    overlap_length,
    set_boundary,
    truncate,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True, frozen=True)
class PhaseCandidate:
    """A distinct reference exon position with its phase evidence.

    Attributes:
        chromosome: Chromosome name.
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
        strand: Strand (+ or -).
        gene_id: Gene identifier.
        phase_counts: Number of annotations with phase 0, 1 and 2.
        overlap: Overlap with E1D in bases.
    """

    chromosome: str
    start: int
    end: int
    strand: str
    gene_id: str
    phase_counts: tuple[int, int, int]
    overlap: int

    @property
    def evidence(self) -> int:
        """Total number of phase annotations."""
        return sum(self.phase_counts)

    @property
    def best_phase(self) -> int:
        """Most supported phase; the lowest phase wins ties."""
        return int(np.argmax(self.phase_counts))

    @property
    def interval(self) -> GenomicInterval:
        return GenomicInterval(self.chromosome, self.start, self.end, self.strand)


def selection_key(candidate: PhaseCandidate) -> tuple[int, int, int, int]:
    """Total ordering used to pick the best candidate (largest wins)."""
    return (candidate.overlap, candidate.evidence, -candidate.start, -candidate.end)


@attrs.define(slots=True, frozen=True)
class PhaseMatch:
    """Result of phase resolution for one event.

    Attributes:
        event_id: Event identifier.
        reference: Selected reference exon.
        nucleotides_to_remove: Bases trimmed from the reference 5' end.
        in_frame_boundary: Reference 5' boundary after trimming.
        original_boundary: 5' boundary of E1D before adjustment.
        e1d: Phase-adjusted E1D.
        e1p: Phase-adjusted E1P.
    """

    event_id: str
    reference: PhaseCandidate
    nucleotides_to_remove: int
    in_frame_boundary: int
    original_boundary: int
    e1d: ExonInterval
    e1p: ExonInterval

    @property
    def overlap(self) -> int:
        return self.reference.overlap

    @property
    def adjusted_boundary(self) -> int:
        """5' boundary shared by the adjusted E1D and E1P."""
        return self.e1d.interval.five_prime

    @property
    def boundary_shift(self) -> int:
        """Bases the 5' boundary moved; positive means trimmed inward."""
        shift = self.adjusted_boundary - self.original_boundary
        return shift if self.e1d.strand == "+" else -shift

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event_id": self.event_id,
            "reference_start": self.reference.start + 1,
            "reference_end": self.reference.end,
            "phase_counts": ",".join(map(str, self.reference.phase_counts)),
            "overlap": self.overlap,
            "nucleotides_to_remove": self.nucleotides_to_remove,
            "boundary_shift": self.boundary_shift,
        }


# =============================================================================
# Frame Arithmetic
# =============================================================================


def in_frame_boundary(reference: GenomicInterval, phase: int) -> int:
    """5' boundary of a reference exon after skipping ``phase`` bases."""
    return truncate(reference, phase, "five_prime").five_prime


def align_boundary(boundary: int, frame_boundary: int, strand: str) -> int:
    """Move an exon 5' boundary onto the reading frame of a reference.

    A boundary downstream of the in-frame reference boundary is extended
    out to it. A boundary upstream of it is trimmed inward to the nearest
    codon start, so the distance to the reference stays a multiple of 3.

    Args:
        boundary: Current 5' boundary coordinate.
        frame_boundary: In-frame 5' boundary of the reference exon.
        strand: Strand (+ or -).

    Returns:
        The adjusted boundary coordinate.
    """
    # Positive when the boundary lies upstream of the reference (transcript order)
    upstream_offset = frame_boundary - boundary if strand == "+" else boundary - frame_boundary

    if upstream_offset <= 0:
        return frame_boundary

    trim = upstream_offset % 3
    return boundary + trim if strand == "+" else boundary - trim


# =============================================================================
# Resolver
# =============================================================================


class PhaseResolver:
    """Matches E1D against coding exons and aligns E1D/E1P to phase 0.

    Attributes:
        coding_exons: Reference coding exons keyed by gene id.

    Example:
        >>> resolver = PhaseResolver({"gene1": exons})
        >>> match = resolver.resolve(geometry)
    """

    def __init__(self, coding_exons: Mapping[str, Sequence[ReferenceCodingExon]]) -> None:
        self.coding_exons = coding_exons

    def candidates(self, geometry: EventGeometry) -> list[PhaseCandidate]:
        """Collapse overlapping reference exons of the gene by position.

        Args:
            geometry: Event geometry.

        Returns:
            One candidate per distinct (start, end), with phase tallies.
        """
        e1d = geometry.e1d.interval
        phases: dict[tuple[int, int], list[int]] = defaultdict(list)

        for exon in self.coding_exons.get(geometry.gene_id, ()):
            if exon.gene_id != geometry.gene_id or exon.strand != e1d.strand:
                continue
            if overlap_length(exon.interval, e1d) > 0:
                phases[(exon.start, exon.end)].append(exon.phase)

        candidates = []
        for (start, end), values in phases.items():
            counts = np.bincount(np.asarray(values, dtype=int), minlength=3)
            interval = GenomicInterval(e1d.seqid, start, end, e1d.strand)
            candidates.append(
                PhaseCandidate(
                    chromosome=e1d.seqid,
                    start=start,
                    end=end,
                    strand=e1d.strand,
                    gene_id=geometry.gene_id,
                    phase_counts=(int(counts[0]), int(counts[1]), int(counts[2])),
                    overlap=overlap_length(interval, e1d),
                )
            )
        return candidates

    def select(self, candidates: Sequence[PhaseCandidate]) -> PhaseCandidate | None:
        """Pick the best candidate by overlap, then phase evidence."""
        if not candidates:
            return None
        return max(candidates, key=selection_key)

    def resolve(self, geometry: EventGeometry) -> PhaseMatch | None:
        """Resolve the reading frame of an event's upstream exons.

        Args:
            geometry: Event geometry.

        Returns:
            PhaseMatch with adjusted E1D/E1P, or None when no coding exon
            of the gene overlaps E1D or the adjustment empties E1D.
        """
        reference = self.select(self.candidates(geometry))
        if reference is None:
            logger.debug(f"{geometry.event_id}: no coding exon overlaps E1D")
            return None

        phase = reference.best_phase
        frame_boundary = in_frame_boundary(reference.interval, phase)
        original = geometry.e1d.interval.five_prime
        adjusted = align_boundary(original, frame_boundary, geometry.strand)

        e1d = set_boundary(geometry.e1d.interval, adjusted, "five_prime")
        e1p = set_boundary(geometry.e1p.interval, adjusted, "five_prime")
        if e1d.length <= 0:
            logger.debug(f"{geometry.event_id}: E1D is empty after phase adjustment")
            return None

        return PhaseMatch(
            event_id=geometry.event_id,
            reference=reference,
            nucleotides_to_remove=phase,
            in_frame_boundary=frame_boundary,
            original_boundary=original,
            e1d=geometry.e1d.with_interval(e1d),
            e1p=geometry.e1p.with_interval(e1p),
        )

    def apply(self, geometry: EventGeometry, match: PhaseMatch) -> EventGeometry:
        """Return the geometry with phase-adjusted upstream exons."""
        return attrs.evolve(geometry, e1d=match.e1d, e1p=match.e1p)
