"""Coding-consequence groups for A5SS events.

An event is grouped by what the change in donor usage does to the
protein: the upstream exon gets shorter or longer in frame, or the
reading frame is disrupted by a frameshift or premature stop.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from spliceforge.core.models import JunctionRole, PeptideRecord


class VariantGroup(Enum):
    """Coding-consequence group of an event."""

    SHORTENED = "shortened"
    ELONGATED = "elongated"
    DISRUPTED = "disrupted"


def exon_length_direction(distal_dpsi: float) -> VariantGroup:
    """Direction of the exon length change.

    Increased distal usage favours the shorter upstream exon.
    """
    return VariantGroup.SHORTENED if distal_dpsi > 0 else VariantGroup.ELONGATED


def classify_variant(frame_shift: bool, stop: bool, direction: VariantGroup) -> VariantGroup:
    """Map (frameshift, stop, direction) onto a variant group.

    Args:
        frame_shift: Whether the event size is not a multiple of three.
        stop: Whether either variant carries a premature stop codon.
        direction: SHORTENED or ELONGATED.

    Returns:
        ``direction`` for an in-frame change without stops, else DISRUPTED.

    Raises:
        ValueError: If ``direction`` is DISRUPTED.
    """
    if direction is VariantGroup.DISRUPTED:
        raise ValueError("direction must be shortened or elongated")

    if not frame_shift and not stop:
        return direction
    return VariantGroup.DISRUPTED


def classify_event(
    peptides: Mapping[JunctionRole, PeptideRecord],
    distal_dpsi: float,
) -> VariantGroup:
    """Group an event from its two translated variants.

    Args:
        peptides: Distal and proximal peptides of the event.
        distal_dpsi: dPSI of the distal junction.

    Returns:
        VariantGroup of the event.
    """
    distal = peptides[JunctionRole.DISTAL]
    proximal = peptides[JunctionRole.PROXIMAL]

    return classify_variant(
        frame_shift=distal.frame_shift,
        stop=distal.stop_codon or proximal.stop_codon,
        direction=exon_length_direction(distal_dpsi),
    )
