"""GFF3 coding-exon catalogue.

This module reads the CDS features of a GFF3 annotation into a
read-only catalogue of coding exons with their reading-frame phase,
indexed by gene id. Genes can be filtered by biotype.

Features:
    - Gene -> transcript -> CDS parent resolution
    - Ensembl-style "gene:"/"transcript:" id prefixes stripped
    - Gene id version suffixes dropped
    - Biotype filtering (gene_biotype, gene_type or biotype attribute)

Example:
    >>> from spliceforge.io.gff import CodingExonCatalog
    >>> catalog = CodingExonCatalog.from_gff("annotation.gff3")
    >>> for exon in catalog.get("ENSG00000100320", ()):
    ...     print(exon.start, exon.end, exon.phase)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Iterator, Mapping
from urllib.parse import unquote

import attrs

from spliceforge.core.models import ReferenceCodingExon, normalize_gene_id

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

N_COLUMNS = 9

GENE_FEATURES = frozenset({"gene", "ncRNA_gene", "pseudogene"})
TRANSCRIPT_FEATURES = frozenset({"mRNA", "transcript", "ncRNA", "lnc_RNA"})

BIOTYPE_ATTRIBUTES = ("gene_biotype", "gene_type", "biotype")
ID_PREFIXES = ("gene:", "transcript:")


# =============================================================================
# Line Parsing
# =============================================================================


@attrs.define(slots=True, frozen=True)
class GFFFeature:
    """One GFF3 row, converted to 0-based half-open coordinates."""

    seqid: str
    feature_type: str
    start: int
    end: int
    strand: str
    phase: int | None
    attributes: dict[str, str]

    @property
    def feature_id(self) -> str:
        return self.attributes.get("ID", "")

    @property
    def parents(self) -> list[str]:
        parent = self.attributes.get("Parent", "")
        return parent.split(",") if parent else []


def parse_attributes(column: str) -> dict[str, str]:
    """Column 9 as a dict, with percent-escapes decoded.

    Entries without ``=`` are ignored.
    """
    attributes = {}
    if column in ("", "."):
        return attributes
    for entry in column.split(";"):
        key, sep, value = entry.strip().partition("=")
        if sep and key:
            attributes[key] = unquote(value)
    return attributes


def strip_id_prefix(feature_id: str) -> str:
    """Remove an Ensembl-style type prefix from a feature id."""
    for prefix in ID_PREFIXES:
        if feature_id.startswith(prefix):
            return feature_id[len(prefix) :]
    return feature_id


def gene_biotype(attributes: Mapping[str, str]) -> str | None:
    """Biotype declared by a gene feature, if any."""
    for key in BIOTYPE_ATTRIBUTES:
        if key in attributes:
            return attributes[key]
    return None


def parse_line(line: str) -> GFFFeature | None:
    """Parse one GFF3 line.

    Returns:
        The feature, or None for comments, blank lines and lines that
        cannot be parsed (the latter logged as warnings).
    """
    line = line.rstrip("\n")
    if not line.strip() or line.startswith("#"):
        return None

    columns = line.split("\t")
    if len(columns) < N_COLUMNS:
        logger.warning(f"Skipping GFF3 line with {len(columns)} columns: {line[:50]}")
        return None

    seqid, _, feature_type, start, end, _, strand, phase, attributes = columns[:N_COLUMNS]
    try:
        return GFFFeature(
            seqid=seqid,
            feature_type=feature_type,
            start=int(start) - 1,
            end=int(end),
            strand=strand,
            phase=None if phase == "." else int(phase),
            attributes=parse_attributes(attributes),
        )
    except ValueError as e:
        logger.warning(f"Skipping unparseable GFF3 line ({e}): {line[:50]}")
        return None


# =============================================================================
# Catalogue
# =============================================================================


class CodingExonCatalog(Mapping[str, tuple[ReferenceCodingExon, ...]]):
    """Read-only coding exons grouped by gene id.

    Each CDS feature contributes one entry per parent transcript, so the
    same exon annotated in several transcripts counts as several pieces of
    phase evidence.

    Example:
        >>> catalog = CodingExonCatalog.from_gff("annotation.gff3")
        >>> print(f"{len(catalog)} coding genes, {catalog.n_exons} CDS entries")
    """

    def __init__(self, exons: Iterable[ReferenceCodingExon]) -> None:
        by_gene: dict[str, list[ReferenceCodingExon]] = defaultdict(list)
        for exon in exons:
            by_gene[exon.gene_id].append(exon)
        self._by_gene = {
            gene_id: tuple(sorted(rows, key=lambda e: (e.start, e.end, e.transcript_id)))
            for gene_id, rows in by_gene.items()
        }

    def __getitem__(self, gene_id: str) -> tuple[ReferenceCodingExon, ...]:
        return self._by_gene[gene_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_gene)

    def __len__(self) -> int:
        return len(self._by_gene)

    @property
    def n_exons(self) -> int:
        return sum(len(rows) for rows in self._by_gene.values())

    @classmethod
    def from_gff(
        cls,
        gff_path: Path | str,
        gene_types: Iterable[str] | None = ("protein_coding",),
    ) -> CodingExonCatalog:
        """Build the catalogue from a GFF3 file.

        CDS rows without a phase are read as phase 0. Rows on an unknown
        strand, or whose transcript does not lead to a kept gene, are
        dropped.

        Args:
            gff_path: Path to GFF3 file.
            gene_types: Biotypes to keep. Genes that declare no biotype are
                always kept. None or empty keeps every gene.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        path = Path(gff_path)
        if not path.is_file():
            raise FileNotFoundError(f"GFF3 file not found: {path}")

        allowed = set(gene_types or ())
        kept_genes: dict[str, str] = {}  # gene feature ID -> reported gene id
        n_filtered = 0
        transcript_to_gene: dict[str, str] = {}
        cds_rows: list[GFFFeature] = []

        with open(path) as handle:
            for feature in filter(None, map(parse_line, handle)):
                if feature.feature_type in GENE_FEATURES:
                    biotype = gene_biotype(feature.attributes)
                    if allowed and biotype is not None and biotype not in allowed:
                        n_filtered += 1
                        continue
                    kept_genes[feature.feature_id] = normalize_gene_id(
                        feature.attributes.get("gene_id", strip_id_prefix(feature.feature_id))
                    )
                elif feature.feature_type in TRANSCRIPT_FEATURES and feature.parents:
                    transcript_to_gene[feature.feature_id] = feature.parents[0]
                elif feature.feature_type == "CDS":
                    cds_rows.append(feature)

        exons = []
        for cds in cds_rows:
            if cds.strand not in ("+", "-"):
                continue
            phase = cds.phase or 0
            if phase not in (0, 1, 2):
                logger.warning(
                    f"Skipping CDS with invalid phase {phase} at {cds.seqid}:{cds.start + 1}"
                )
                continue
            for transcript_id in cds.parents:
                gene_id = kept_genes.get(transcript_to_gene.get(transcript_id, ""))
                if gene_id is None:
                    continue
                exons.append(
                    ReferenceCodingExon(
                        chromosome=cds.seqid,
                        start=cds.start,
                        end=cds.end,
                        strand=cds.strand,
                        gene_id=gene_id,
                        phase=phase,
                        transcript_id=strip_id_prefix(transcript_id),
                    )
                )

        catalog = cls(exons)
        logger.info(
            f"Loaded {catalog.n_exons} CDS entries for {len(catalog)} genes "
            f"({n_filtered} genes filtered by biotype)"
        )
        return catalog
