"""Three-exon models for alternative 5' splice site events.

An A5SS event has one downstream exon (E2) and two versions of the
upstream exon that differ only at their donor boundary: E1P uses the
proximal donor (longer exon, nearer E2) and E1D the distal donor
(shorter exon). The quantifier reports the upstream exon at its longest
extent, so E1D is derived by moving the donor boundary of a copy of E1P
to the distal junction.

Raw coordinates are 1-based inclusive "start-end" strings. A junction
string names the last base of the left exon and the first base of the
right exon.

Example:
    >>> from spliceforge.core.geometry import EventGeometryBuilder
    >>> builder = EventGeometryBuilder(records)
    >>> geometry = builder.build("ENSG0001:s:1000-1100")
    >>> geometry.e1d.length, geometry.e1p.length
    (90, 100)
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Iterable, Mapping

from spliceforge.core.models import (
    CoordinateFormatError,
    EventGeometry,
    EventGeometryError,
    ExonInterval,
    ExonType,
    JunctionRecord,
    JunctionRole,
    JunctionStats,
    UnknownEventError,
)
from spliceforge.utils.intervals import GenomicInterval, set_boundary

logger = logging.getLogger(__name__)

# =============================================================================
# Coordinate Parsing
# =============================================================================

COORD_PATTERN = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


def parse_coordinates(coord: str) -> tuple[int, int]:
    """Parse a 1-based inclusive "start-end" string.

    Args:
        coord: Raw coordinate string, e.g. "1001-1100".

    Returns:
        Tuple of (start, end) as 0-based half-open coordinates.

    Raises:
        CoordinateFormatError: If the string is not a valid range.
    """
    match = COORD_PATTERN.match(coord or "")
    if match is None:
        raise CoordinateFormatError(f"Malformed coordinate string: {coord!r}")

    start, end = int(match.group(1)), int(match.group(2))
    if end < start:
        raise CoordinateFormatError(f"Coordinate end before start: {coord!r}")

    return start - 1, end


def parse_junction(coord: str) -> tuple[int, int]:
    """Parse a junction string into its intron span.

    Args:
        coord: Raw junction string "a-b", where a is the last base of the
            left exon and b the first base of the right exon (1-based).

    Returns:
        Intron as 0-based half-open (start, end).

    Raises:
        CoordinateFormatError: If the string is not a valid junction.
    """
    match = COORD_PATTERN.match(coord or "")
    if match is None:
        raise CoordinateFormatError(f"Malformed junction string: {coord!r}")

    left_last, right_first = int(match.group(1)), int(match.group(2))
    if right_first <= left_last:
        raise CoordinateFormatError(f"Junction acceptor before donor: {coord!r}")

    return left_last, right_first - 1


def donor_position(intron: tuple[int, int], strand: str) -> int:
    """Coordinate of the donor-side exon boundary of an intron."""
    return intron[0] if strand == "+" else intron[1]


# =============================================================================
# Builder
# =============================================================================


class EventGeometryBuilder:
    """Builds E1D/E1P/E2 exon models from junction rows.

    The builder indexes the rows once by event id and then answers
    per-event requests from that index.

    Attributes:
        n_events: Number of events in the index.

    Example:
        >>> builder = EventGeometryBuilder(records)
        >>> for event_id in regulated_ids:
        ...     geometry = builder.build(event_id)
    """

    def __init__(self, records: Iterable[JunctionRecord]) -> None:
        index: dict[str, list[JunctionRecord]] = defaultdict(list)
        for record in records:
            index[record.event_id].append(record)
        self._index: Mapping[str, tuple[JunctionRecord, ...]] = {
            event_id: tuple(rows) for event_id, rows in index.items()
        }

    @property
    def n_events(self) -> int:
        return len(self._index)

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._index

    def rows(self, event_id: str) -> tuple[JunctionRecord, ...]:
        """Junction rows indexed for an event.

        Raises:
            UnknownEventError: If the event is not in the index.
        """
        try:
            return self._index[event_id]
        except KeyError:
            raise UnknownEventError(f"Unknown event id: {event_id}") from None

    def select_perspective(
        self,
        event_id: str,
    ) -> tuple[JunctionRecord, JunctionRecord]:
        """Pick the distal and proximal rows from a single perspective.

        The first LSV (in sorted order) that carries both roles is used.

        Args:
            event_id: Event identifier.

        Returns:
            Tuple of (distal_row, proximal_row).

        Raises:
            UnknownEventError: If the event is not in the index.
            EventGeometryError: If no perspective has both roles.
        """
        by_lsv: dict[str, dict[JunctionRole, JunctionRecord]] = defaultdict(dict)
        for row in self.rows(event_id):
            role = row.role
            if role is not None and row.lsv_id.strip():
                by_lsv[row.lsv_id].setdefault(role, row)

        for lsv_id in sorted(by_lsv):
            roles = by_lsv[lsv_id]
            if JunctionRole.DISTAL in roles and JunctionRole.PROXIMAL in roles:
                return roles[JunctionRole.DISTAL], roles[JunctionRole.PROXIMAL]

        raise EventGeometryError(
            f"Event {event_id} has no perspective with both distal and proximal junctions"
        )

    def build(self, event_id: str) -> EventGeometry:
        """Build the three-exon model of one event.

        Args:
            event_id: Event identifier.

        Returns:
            EventGeometry with E1D, E1P and E2.

        Raises:
            UnknownEventError: If the event is not in the index.
            EventGeometryError: If the rows cannot form a valid model.
            CoordinateFormatError: If a coordinate string is malformed.
        """
        distal, proximal = self.select_perspective(event_id)
        strand = distal.strand
        if strand not in ("+", "-"):
            raise EventGeometryError(f"Event {event_id} has invalid strand {strand!r}")

        chromosome = distal.chromosome
        reference = parse_coordinates(distal.reference_exon_coord)
        partner = parse_coordinates(distal.spliced_with_coord)

        # Provisional labels by position: E1P is upstream in transcript order
        left, right = sorted((reference, partner))
        e1p_span, e2_span = (left, right) if strand == "+" else (right, left)

        distal_donor = donor_position(parse_junction(distal.junction_coord), strand)
        proximal_donor = donor_position(parse_junction(proximal.junction_coord), strand)

        e1p_interval = GenomicInterval(chromosome, e1p_span[0], e1p_span[1], strand)
        e1d_interval = set_boundary(e1p_interval, distal_donor, "three_prime")
        if e1d_interval.length <= 0:
            raise EventGeometryError(
                f"Event {event_id}: distal donor {distal_donor} lies outside "
                f"upstream exon {e1p_span[0]}-{e1p_span[1]}"
            )

        geometry = EventGeometry(
            event_id=event_id,
            e1d=ExonInterval(
                exon_type=ExonType.E1D,
                chromosome=chromosome,
                start=e1d_interval.start,
                end=e1d_interval.end,
                strand=strand,
                stats=JunctionStats.from_record(distal),
            ),
            e1p=ExonInterval(
                exon_type=ExonType.E1P,
                chromosome=chromosome,
                start=e1p_interval.start,
                end=e1p_interval.end,
                strand=strand,
                stats=JunctionStats.from_record(proximal),
            ),
            e2=ExonInterval(
                exon_type=ExonType.E2,
                chromosome=chromosome,
                start=e2_span[0],
                end=e2_span[1],
                strand=strand,
            ),
            module_id=distal.module_id,
            lsv_id=distal.lsv_id,
            gene_id=distal.gene_id,
            gene_name=distal.gene_name,
            event_size=abs(proximal_donor - distal_donor),
        )

        logger.debug(
            f"Built geometry for {event_id}: E1D={geometry.e1d.start}-{geometry.e1d.end}, "
            f"E1P={geometry.e1p.start}-{geometry.e1p.end}, E2={geometry.e2.start}-{geometry.e2.end}"
        )
        return geometry
