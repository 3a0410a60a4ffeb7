"""Shared record types for alternative splicing events.

Key components:
- EventClass: Splicing event categories reported by the quantifier
- JunctionRole / ExonType: Roles of junctions and exons in an A5SS event
- JunctionRecord: One raw quantification row (read-only)
- JunctionStats: Per-junction statistics copied onto an exon variant
- ExonInterval: One typed exon of an event
- EventGeometry: The three-exon model of an A5SS event
- ReferenceCodingExon: Catalogue entry for an annotated coding exon
- PeptideRecord: A translated exon variant
- ProteinIsoform: A reference protein isoform
- normalize_gene_id: Gene id key shared by all input readers

All coordinates are 0-based half-open.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

import attrs

from spliceforge.utils.intervals import GenomicInterval

# =============================================================================
# Exceptions
# =============================================================================


class CoordinateFormatError(ValueError):
    """Raised when a raw coordinate string cannot be parsed."""

    pass


class EventGeometryError(ValueError):
    """Raised when an event's junction rows cannot form a three-exon model."""

    pass


class UnknownEventError(ValueError):
    """Raised when a record references an event id missing from the index."""

    pass


# =============================================================================
# Enums
# =============================================================================


class EventClass(Enum):
    """Splicing event categories."""

    CASSETTE_EXON = "cassette_exon"
    ALT5PRIME = "alt5prime"
    ALT3PRIME = "alt3prime"
    ALT_FIRST_EXON = "alt_first_exon"
    ALT_LAST_EXON = "alt_last_exon"
    MUTUALLY_EXCLUSIVE = "mutually_exclusive"
    INTRON_RETENTION = "intron_retention"
    MULTI_EXON_SPANNING = "multi_exon_spanning"
    TANDEM_CASSETTE = "tandem_cassette"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | EventClass) -> EventClass:
        """Parse an event class name, case-insensitively."""
        if isinstance(value, EventClass):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


class JunctionRole(Enum):
    """Role of a junction in an alternative 5' splice site event."""

    DISTAL = "distal"  # further from E2, shorter upstream exon
    PROXIMAL = "proximal"  # nearer E2, longer upstream exon

    @classmethod
    def from_name(cls, junction_name: str) -> JunctionRole | None:
        """Map a quantifier junction name onto a role, if it has one."""
        name = junction_name.strip().lower()
        for role in cls:
            if name == role.value or name.startswith(role.value):
                return role
        return None


class ExonType(Enum):
    """Exon labels of an A5SS event."""

    E1D = "E1D"  # upstream exon, distal splice choice
    E1P = "E1P"  # upstream exon, proximal splice choice
    E2 = "E2"  # downstream exon


# =============================================================================
# Gene Ids
# =============================================================================

VERSION_SUFFIX_PATTERN = re.compile(r"\.\d+$")


def normalize_gene_id(gene_id: str) -> str:
    """Drop a trailing ".N" version so ids from every input join.

    Example:
        >>> normalize_gene_id("ENSG00000100320.23")
        'ENSG00000100320'
    """
    return VERSION_SUFFIX_PATTERN.sub("", gene_id.strip())


# =============================================================================
# Input Records
# =============================================================================


@attrs.define(slots=True, frozen=True)
class JunctionRecord:
    """One raw per-junction quantification row.

    Attributes:
        event_id: Gene-prefixed event identifier.
        lsv_id: Perspective grouping key (empty when unknown).
        junction_name: Categorical junction label, e.g. "Distal".
        probability_changing: Probability that |dPSI| exceeds the
            quantifier threshold, or None.
        median_dpsi: Median dPSI between conditions, or None.
        median_psi_a: Median PSI in condition A, or None.
        median_psi_b: Median PSI in condition B, or None.
        annotated: Whether the junction exists in the reference annotation.
        reference_exon_coord: Raw "start-end" string of the reference exon.
        spliced_with_coord: Raw "start-end" string of the partner exon.
        junction_coord: Raw "start-end" string of the junction.
        gene_id: Gene identifier.
        gene_name: Gene symbol.
        module_id: Quantifier module identifier.
        chromosome: Chromosome name.
        strand: Strand (+ or -).
        event_class: Event category of the table the row came from.
    """

    event_id: str
    lsv_id: str
    junction_name: str
    probability_changing: float | None
    median_dpsi: float | None
    median_psi_a: float | None = None
    median_psi_b: float | None = None
    annotated: bool = True
    reference_exon_coord: str = ""
    spliced_with_coord: str = ""
    junction_coord: str = ""
    gene_id: str = ""
    gene_name: str = ""
    module_id: str = ""
    chromosome: str = ""
    strand: str = "+"
    event_class: EventClass = EventClass.OTHER

    @property
    def role(self) -> JunctionRole | None:
        """Junction role derived from the junction name."""
        return JunctionRole.from_name(self.junction_name)

    @property
    def has_evidence(self) -> bool:
        """Whether both probability and dPSI are defined."""
        return self.probability_changing is not None and self.median_dpsi is not None


# =============================================================================
# Exon Model
# =============================================================================


@attrs.define(slots=True, frozen=True)
class JunctionStats:
    """Per-junction statistics carried by an exon variant."""

    psi_a: float | None
    psi_b: float | None
    dpsi: float | None
    probability: float | None
    annotated: bool

    @classmethod
    def from_record(cls, record: JunctionRecord) -> JunctionStats:
        """Copy the statistics of a junction row."""
        return cls(
            psi_a=record.median_psi_a,
            psi_b=record.median_psi_b,
            dpsi=record.median_dpsi,
            probability=record.probability_changing,
            annotated=record.annotated,
        )


@attrs.define(slots=True, frozen=True)
class ExonInterval:
    """One typed exon of an A5SS event.

    Attributes:
        exon_type: E1D, E1P or E2.
        chromosome: Chromosome name.
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
        strand: Strand (+ or -).
        stats: Statistics of the junction this exon variant represents
            (None for E2).
    """

    exon_type: ExonType
    chromosome: str
    start: int
    end: int
    strand: str
    stats: JunctionStats | None = None

    @property
    def length(self) -> int:
        """Exon length in base pairs."""
        return self.end - self.start

    @property
    def interval(self) -> GenomicInterval:
        """Plain genomic interval view of this exon."""
        return GenomicInterval(self.chromosome, self.start, self.end, self.strand)

    def with_interval(self, interval: GenomicInterval) -> ExonInterval:
        """Return a copy with new boundaries."""
        return attrs.evolve(self, start=interval.start, end=interval.end)


@attrs.define(slots=True, frozen=True)
class EventGeometry:
    """Three-exon model of one A5SS event.

    Attributes:
        event_id: Event identifier.
        e1d: Upstream exon, distal (shorter) splice choice.
        e1p: Upstream exon, proximal (longer) splice choice.
        e2: Downstream exon.
        module_id: Quantifier module identifier.
        lsv_id: Perspective the coordinates were taken from.
        gene_id: Gene identifier.
        gene_name: Gene symbol.
        event_size: Distance in nt between the two splice choices.
    """

    event_id: str
    e1d: ExonInterval
    e1p: ExonInterval
    e2: ExonInterval
    module_id: str = ""
    lsv_id: str = ""
    gene_id: str = ""
    gene_name: str = ""
    event_size: int = 0

    @property
    def chromosome(self) -> str:
        return self.e1p.chromosome

    @property
    def strand(self) -> str:
        return self.e1p.strand

    @property
    def frame_shift(self) -> bool:
        """Whether the two splice choices differ by a non-codon length."""
        return self.event_size % 3 != 0

    def exons(self) -> list[ExonInterval]:
        """Exons sorted by genomic position."""
        return sorted((self.e1d, self.e1p, self.e2), key=lambda e: (e.start, e.end))

    def upstream(self, role: JunctionRole) -> ExonInterval:
        """Upstream exon variant for a junction role."""
        return self.e1d if role is JunctionRole.DISTAL else self.e1p

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary for reports (1-based coordinates)."""
        row: dict[str, Any] = {
            "event_id": self.event_id,
            "module_id": self.module_id,
            "lsv_id": self.lsv_id,
            "gene_id": self.gene_id,
            "gene_name": self.gene_name,
            "chromosome": self.chromosome,
            "strand": self.strand,
            "event_size": self.event_size,
        }
        for exon in (self.e1d, self.e1p, self.e2):
            key = exon.exon_type.value
            row[f"{key}_start"] = exon.start + 1
            row[f"{key}_end"] = exon.end
        return row


@attrs.define(slots=True, frozen=True)
class ReferenceCodingExon:
    """Annotated coding exon with its reading-frame phase.

    Attributes:
        chromosome: Chromosome name.
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
        strand: Strand (+ or -).
        gene_id: Parent gene identifier.
        phase: Bases to skip from the 5' end to reach a codon start.
        transcript_id: Parent transcript identifier.
    """

    chromosome: str
    start: int
    end: int
    strand: str
    gene_id: str
    phase: int = attrs.field(validator=attrs.validators.in_((0, 1, 2)))
    transcript_id: str = ""

    @property
    def interval(self) -> GenomicInterval:
        return GenomicInterval(self.chromosome, self.start, self.end, self.strand)


# =============================================================================
# Peptides
# =============================================================================


@attrs.define(slots=True, frozen=True)
class PeptideRecord:
    """A translated exon variant.

    Attributes:
        event_id: Event identifier.
        role: Which splice choice the peptide represents.
        sequence: Amino-acid sequence, truncated before the first stop.
        frame_shift: Whether the event size is not a multiple of three.
        stop_codon: Whether a stop codon was found and truncated.
    """

    event_id: str
    role: JunctionRole
    sequence: str
    frame_shift: bool
    stop_codon: bool

    @property
    def length(self) -> int:
        """Peptide length in residues."""
        return len(self.sequence)


@attrs.define(slots=True, frozen=True)
class ProteinIsoform:
    """Reference protein isoform of a gene.

    Attributes:
        isoform_id: Stable isoform identifier.
        gene_id: Parent gene identifier.
        sequence: Amino-acid sequence.
    """

    isoform_id: str
    gene_id: str
    sequence: str

    @property
    def length(self) -> int:
        return len(self.sequence)
