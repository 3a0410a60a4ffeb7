"""Translation of phase-adjusted exon variants into peptides.

Each A5SS event yields two peptides, one per splice choice. In junction
mode the upstream exon variant is joined to E2 before translation, which
is the spliced segment that can be matched against reference proteins.
In exon mode the upstream exon variant is translated alone.

Translation starts at the phase-adjusted 5' boundary, so the first codon
is always in frame. The first codon is never forced to methionine.

Example:
    >>> from spliceforge.core.translation import Translator
    >>> translator = Translator(genome)
    >>> peptides = translator.translate_event(adjusted_geometry)
    >>> peptides[JunctionRole.DISTAL].stop_codon
    False
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from spliceforge.core.models import EventGeometry, JunctionRole, PeptideRecord
from spliceforge.utils.sequences import STOP_SYMBOL, translate

logger = logging.getLogger(__name__)


# =============================================================================
# Interfaces
# =============================================================================


class SequenceSource(Protocol):
    """Anything that returns strand-corrected nucleotide sequence."""

    def get_sequence(self, seqid: str, start: int, end: int, strand: str = "+") -> str:
        """Return sequence of a 0-based half-open region."""
        ...


class TranslationMode(Enum):
    """What gets translated for each splice choice."""

    JUNCTION = "junction"  # upstream exon variant + E2
    EXON = "exon"  # upstream exon variant alone


# =============================================================================
# Peptide Construction
# =============================================================================


def translate_variant(
    nucleotides: str,
    event_id: str,
    role: JunctionRole,
    event_size: int,
) -> PeptideRecord:
    """Translate an in-frame nucleotide sequence and cut at the first stop.

    Args:
        nucleotides: Sequence starting at a codon boundary. A trailing
            incomplete codon is ignored.
        event_id: Event identifier.
        role: Splice choice the sequence represents.
        event_size: Distance between the two splice choices.

    Returns:
        PeptideRecord with the truncated peptide and its flags.
    """
    protein = translate(nucleotides, allow_partial=True)
    stop_index = protein.find(STOP_SYMBOL)

    return PeptideRecord(
        event_id=event_id,
        role=role,
        sequence=protein if stop_index < 0 else protein[:stop_index],
        frame_shift=event_size % 3 != 0,
        stop_codon=stop_index >= 0,
    )


# =============================================================================
# Translator
# =============================================================================


class Translator:
    """Translates the two upstream exon variants of an event.

    Attributes:
        sequences: Sequence source.
        mode: Translation mode.
    """

    def __init__(
        self,
        sequences: SequenceSource,
        mode: TranslationMode | str = TranslationMode.JUNCTION,
    ) -> None:
        self.sequences = sequences
        self.mode = TranslationMode(mode) if isinstance(mode, str) else mode

    def nucleotides(self, geometry: EventGeometry, role: JunctionRole) -> str:
        """Transcript-oriented sequence of one splice choice.

        Args:
            geometry: Phase-adjusted event geometry.
            role: Splice choice.

        Returns:
            Nucleotide sequence, 5' to 3'.
        """
        upstream = geometry.upstream(role)
        sequence = self.sequences.get_sequence(
            upstream.chromosome, upstream.start, upstream.end, upstream.strand
        )

        if self.mode is TranslationMode.JUNCTION:
            e2 = geometry.e2
            sequence += self.sequences.get_sequence(e2.chromosome, e2.start, e2.end, e2.strand)

        return sequence

    def translate_event(self, geometry: EventGeometry) -> dict[JunctionRole, PeptideRecord]:
        """Translate both splice choices of an event.

        Args:
            geometry: Phase-adjusted event geometry.

        Returns:
            Peptides keyed by junction role.
        """
        peptides = {
            role: translate_variant(
                self.nucleotides(geometry, role),
                event_id=geometry.event_id,
                role=role,
                event_size=geometry.event_size,
            )
            for role in JunctionRole
        }

        logger.debug(
            f"{geometry.event_id}: distal={peptides[JunctionRole.DISTAL].length} aa, "
            f"proximal={peptides[JunctionRole.PROXIMAL].length} aa"
        )
        return peptides
