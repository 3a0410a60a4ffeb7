"""Core A5SS logic for SpliceForge.

This module contains the per-event algorithms and data structures:

- Regulation calling
- Three-exon event geometry
- Reading-frame phase resolution
- Translation and variant grouping

The pipeline itself lives in spliceforge.core.pipeline.

Example:
    >>> from spliceforge.core import EventClassifier, EventGeometryBuilder
"""

from spliceforge.core.geometry import EventGeometryBuilder
from spliceforge.core.models import (
    CoordinateFormatError,
    EventClass,
    EventGeometry,
    EventGeometryError,
    ExonInterval,
    ExonType,
    JunctionRecord,
    JunctionRole,
    PeptideRecord,
    ProteinIsoform,
    ReferenceCodingExon,
    UnknownEventError,
    normalize_gene_id,
)
from spliceforge.core.phase import PhaseMatch, PhaseResolver
from spliceforge.core.regulation import EventClassifier, RegulationCall, RegulationResult
from spliceforge.core.translation import Translator, TranslationMode
from spliceforge.core.variants import VariantGroup, classify_event, classify_variant

__all__: list[str] = [
    # Models
    "CoordinateFormatError",
    "EventClass",
    "EventGeometry",
    "EventGeometryError",
    "ExonInterval",
    "ExonType",
    "JunctionRecord",
    "JunctionRole",
    "PeptideRecord",
    "ProteinIsoform",
    "ReferenceCodingExon",
    "UnknownEventError",
    "normalize_gene_id",
    # Steps
    "EventClassifier",
    "RegulationCall",
    "RegulationResult",
    "EventGeometryBuilder",
    "PhaseMatch",
    "PhaseResolver",
    "Translator",
    "TranslationMode",
    "VariantGroup",
    "classify_event",
    "classify_variant",
]
