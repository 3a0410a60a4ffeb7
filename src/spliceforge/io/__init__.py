"""Input/output handlers for SpliceForge.

- Quantification: per-junction TSV tables
- GFF3: coding exons with phases
- FASTA: genome sequence, reference and edited proteins

Example:
    >>> from spliceforge.io import read_junction_table, CodingExonCatalog
    >>> records = read_junction_table("alt5prime.tsv", "alt5prime")
    >>> catalog = CodingExonCatalog.from_gff("annotation.gff3")
"""

from spliceforge.io.fasta import (
    GenomeAccessor,
    InMemoryGenome,
    ProteinCatalog,
    write_protein_fasta,
)
from spliceforge.io.gff import CodingExonCatalog
from spliceforge.io.quant import QuantTableError, read_junction_table

__all__: list[str] = [
    "CodingExonCatalog",
    "GenomeAccessor",
    "InMemoryGenome",
    "ProteinCatalog",
    "QuantTableError",
    "read_junction_table",
    "write_protein_fasta",
]
