"""Pytest configuration and shared fixtures for SpliceForge tests.

This module contains fixtures that are shared across multiple test modules.
Fixtures are organized by category:

- Genome fixtures: A small synthetic chromosome with one A5SS event
- Junction fixtures: Factories for quantification rows
- Catalogue fixtures: Coding exons and reference proteins
- File fixtures: The same data written as TSV, GFF3 and FASTA

The synthetic event (plus strand, 0-based half-open):

    E1P  [100, 190)  proximal upstream exon, 30 codons
    E1D  [100, 178)  distal upstream exon, 26 codons
    E2   [300, 360)  downstream exon, 20 codons

In 1-based quantifier coordinates the exons are "101-190" and
"301-360", and the junctions are "178-301" (distal) and "190-301"
(proximal). The two donors are 12 nt apart.
"""

from pathlib import Path
from typing import Callable

import numpy as np
import pytest

from spliceforge.core.models import (
    EventClass,
    JunctionRecord,
    ProteinIsoform,
    ReferenceCodingExon,
)
from spliceforge.io.fasta import InMemoryGenome
from spliceforge.io.quant import COLUMNS
from spliceforge.utils.sequences import CODON_TABLE_STANDARD, translate

# =============================================================================
# Constants
# =============================================================================

CHROM = "chr1"
GENE_ID = "ENSG01"
ISOFORM_ID = "ENSP01"
EVENT_ID = "ENSG01_ev1"

E1_START, E1_END = 100, 190
DISTAL_DONOR = 178
E2_START, E2_END = 300, 360
GENOME_LENGTH = 500

PROTEIN_PREFIX = "MSEQ"
PROTEIN_SUFFIX = "KLRE"

SENSE_CODONS = sorted(codon for codon, aa in CODON_TABLE_STANDARD.items() if aa != "*")


# =============================================================================
# Genome Fixtures
# =============================================================================


def build_chromosome() -> str:
    """Build chr1 with stop-free coding exons and a GT-AG intron."""
    np.random.seed(42)

    def filler(n: int) -> str:
        return "".join(np.random.choice(list("ACGT"), n))

    def codons(n: int) -> str:
        return "".join(np.random.choice(SENSE_CODONS, n))

    sequence = (
        filler(E1_START)
        + codons((E1_END - E1_START) // 3)
        + "GT"
        + filler(E2_START - E1_END - 4)
        + "AG"
        + codons((E2_END - E2_START) // 3)
        + filler(GENOME_LENGTH - E2_END)
    )
    assert len(sequence) == GENOME_LENGTH
    return sequence


@pytest.fixture
def chromosome() -> str:
    """Sequence of the synthetic chromosome."""
    return build_chromosome()


@pytest.fixture
def genome(chromosome: str) -> InMemoryGenome:
    """In-memory sequence source holding chr1."""
    return InMemoryGenome({CHROM: chromosome})


@pytest.fixture
def proximal_peptide(chromosome: str) -> str:
    """Translation of E1P + E2."""
    return translate(chromosome[E1_START:E1_END] + chromosome[E2_START:E2_END])


@pytest.fixture
def distal_peptide(chromosome: str) -> str:
    """Translation of E1D + E2."""
    return translate(chromosome[E1_START:DISTAL_DONOR] + chromosome[E2_START:E2_END])


# =============================================================================
# Junction Fixtures
# =============================================================================


def make_junction(
    event_id: str = EVENT_ID,
    junction_name: str = "Distal",
    probability: float | None = 0.95,
    dpsi: float | None = 0.3,
    lsv_id: str = "ENSG01:s:101-190",
    junction_coord: str = "178-301",
    reference_exon_coord: str = "101-190",
    spliced_with_coord: str = "301-360",
    gene_id: str = GENE_ID,
    strand: str = "+",
    event_class: EventClass = EventClass.ALT5PRIME,
    chromosome: str = CHROM,
) -> JunctionRecord:
    """Build one junction row with sensible defaults."""
    return JunctionRecord(
        event_id=event_id,
        lsv_id=lsv_id,
        junction_name=junction_name,
        probability_changing=probability,
        median_dpsi=dpsi,
        median_psi_a=0.2,
        median_psi_b=0.5,
        annotated=True,
        reference_exon_coord=reference_exon_coord,
        spliced_with_coord=spliced_with_coord,
        junction_coord=junction_coord,
        gene_id=gene_id,
        gene_name=f"{gene_id}_name",
        module_id=f"{gene_id}_1",
        chromosome=chromosome,
        strand=strand,
        event_class=event_class,
    )


def make_a5ss_pair(
    event_id: str = EVENT_ID,
    gene_id: str = GENE_ID,
    distal_dpsi: float | None = 0.3,
    proximal_dpsi: float | None = -0.3,
    distal_probability: float | None = 0.95,
    proximal_probability: float | None = 0.95,
    **kwargs,
) -> list[JunctionRecord]:
    """Build the distal and proximal rows of the synthetic event."""
    return [
        make_junction(
            event_id=event_id,
            gene_id=gene_id,
            junction_name="Distal",
            probability=distal_probability,
            dpsi=distal_dpsi,
            junction_coord="178-301",
            **kwargs,
        ),
        make_junction(
            event_id=event_id,
            gene_id=gene_id,
            junction_name="Proximal",
            probability=proximal_probability,
            dpsi=proximal_dpsi,
            junction_coord="190-301",
            **kwargs,
        ),
    ]


@pytest.fixture
def junction_factory() -> Callable[..., JunctionRecord]:
    """Factory for single junction rows."""
    return make_junction


@pytest.fixture
def a5ss_factory() -> Callable[..., list[JunctionRecord]]:
    """Factory for distal/proximal row pairs."""
    return make_a5ss_pair


@pytest.fixture
def a5ss_records() -> list[JunctionRecord]:
    """Rows of the synthetic regulated event."""
    return make_a5ss_pair()


# =============================================================================
# Catalogue Fixtures
# =============================================================================


@pytest.fixture
def coding_exons() -> dict[str, tuple[ReferenceCodingExon, ...]]:
    """Coding exons of the synthetic gene, annotated in two transcripts."""
    exons = []
    for transcript_id in ("ENST01", "ENST02"):
        exons.append(
            ReferenceCodingExon(CHROM, E1_START, E1_END, "+", GENE_ID, 0, transcript_id)
        )
        exons.append(
            ReferenceCodingExon(CHROM, E2_START, E2_END, "+", GENE_ID, 0, transcript_id)
        )
    return {GENE_ID: tuple(exons)}


@pytest.fixture
def reference_protein(proximal_peptide: str) -> str:
    """Reference protein containing the proximal peptide."""
    return PROTEIN_PREFIX + proximal_peptide + PROTEIN_SUFFIX


@pytest.fixture
def proteins(reference_protein: str) -> dict[str, tuple[ProteinIsoform, ...]]:
    """Reference isoforms by gene id."""
    return {GENE_ID: (ProteinIsoform(ISOFORM_ID, GENE_ID, reference_protein),)}


@pytest.fixture
def random_protein() -> str:
    """Reproducible 200-residue protein without tryptophan."""
    np.random.seed(42)
    return "".join(np.random.choice(list("ACDEFGHIKLMNPQRSTVY"), 200))


# =============================================================================
# File Fixtures
# =============================================================================


def write_junction_table(path: Path, records: list[JunctionRecord]) -> Path:
    """Write junction rows as a quantification TSV."""
    with open(path, "w") as f:
        f.write("\t".join(COLUMNS) + "\n")
        for record in records:
            values = []
            for column in COLUMNS:
                value = getattr(record, column)
                values.append("na" if value is None else str(value))
            f.write("\t".join(values) + "\n")
    return path


@pytest.fixture
def table_writer() -> Callable[[Path, list[JunctionRecord]], Path]:
    """Function writing junction rows to a TSV file."""
    return write_junction_table


@pytest.fixture
def genome_fasta(tmp_path: Path, chromosome: str) -> Path:
    """Synthetic genome written as FASTA (80-character lines)."""
    fasta_path = tmp_path / "genome.fa"
    with open(fasta_path, "w") as f:
        f.write(f">{CHROM}\n")
        for i in range(0, len(chromosome), 80):
            f.write(chromosome[i : i + 80] + "\n")
    return fasta_path


@pytest.fixture
def annotation_gff(tmp_path: Path) -> Path:
    """GFF3 with the synthetic coding gene and a filtered lncRNA gene."""
    gff_path = tmp_path / "annotation.gff3"
    lines = [
        "##gff-version 3",
        f"{CHROM}\ttest\tgene\t101\t360\t.\t+\t.\tID=gene:{GENE_ID};gene_id={GENE_ID};biotype=protein_coding",
        f"{CHROM}\ttest\tmRNA\t101\t360\t.\t+\t.\tID=transcript:ENST01;Parent=gene:{GENE_ID}",
        f"{CHROM}\ttest\texon\t101\t190\t.\t+\t.\tParent=transcript:ENST01",
        f"{CHROM}\ttest\tCDS\t101\t190\t.\t+\t0\tID=CDS:ENSP01;Parent=transcript:ENST01",
        f"{CHROM}\ttest\tCDS\t301\t360\t.\t+\t0\tID=CDS:ENSP01;Parent=transcript:ENST01",
        f"{CHROM}\ttest\tmRNA\t101\t360\t.\t+\t.\tID=transcript:ENST02;Parent=gene:{GENE_ID}",
        f"{CHROM}\ttest\tCDS\t101\t190\t.\t+\t0\tID=CDS:ENSP02;Parent=transcript:ENST02",
        f"{CHROM}\ttest\tgene\t400\t480\t.\t-\t.\tID=gene:ENSG09;gene_id=ENSG09;biotype=lncRNA",
        f"{CHROM}\ttest\ttranscript\t400\t480\t.\t-\t.\tID=transcript:ENST09;Parent=gene:ENSG09",
        f"{CHROM}\ttest\tCDS\t400\t480\t.\t-\t1\tParent=transcript:ENST09",
    ]
    gff_path.write_text("\n".join(lines) + "\n")
    return gff_path


@pytest.fixture
def protein_fasta(tmp_path: Path, reference_protein: str) -> Path:
    """Ensembl-style protein FASTA with one isoform of the synthetic gene."""
    fasta_path = tmp_path / "proteins.fa"
    fasta_path.write_text(
        f">{ISOFORM_ID}.1 pep chromosome:test:{CHROM}:101:360:1 "
        f"gene:{GENE_ID}.3 transcript:ENST01.1 gene_biotype:protein_coding\n"
        f"{reference_protein}*\n"
        ">ORPHAN1 pep no gene token\n"
        "MKV\n"
    )
    return fasta_path
