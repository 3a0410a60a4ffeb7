"""FASTA file handling for genome and protein sequences.

Genome sequence is read through pyfaidx for indexed random access.
Reference proteins are read, and edited proteins written, with
Biopython's SeqIO.

Example:
    >>> from spliceforge.io.fasta import GenomeAccessor, ProteinCatalog
    >>> genome = GenomeAccessor("genome.fa")
    >>> seq = genome.get_sequence("chr1", 1000, 2000, strand="-")
    >>> proteins = ProteinCatalog.from_fasta("pep.all.fa")
    >>> isoforms = proteins.get("ENSG00000100320", ())
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Iterable, Iterator, Literal, Mapping

import pyfaidx
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from spliceforge.core.models import ProteinIsoform, normalize_gene_id
from spliceforge.utils.sequences import reverse_complement

# =============================================================================
# Type Aliases
# =============================================================================

Strand = Literal["+", "-"]

logger = logging.getLogger(__name__)

# "gene:ENSG..." (Ensembl) or "gene=XYZ" / "[gene=XYZ]" (RefSeq-style)
GENE_TOKEN_PATTERN = re.compile(r"(?:^|[\s\[])gene[:=]([^\s\]]+)")


# =============================================================================
# Genome Sequence
# =============================================================================


class IndexedSequences:
    """Strand-aware region lookup shared by the genome backends.

    Subclasses provide ``_lengths`` and ``_fetch``. Regions are 0-based
    half-open; a ``"-"`` strand region comes back reverse complemented.
    """

    _lengths: dict[str, int]

    def __contains__(self, seqid: str) -> bool:
        return seqid in self._lengths

    @property
    def scaffold_lengths(self) -> dict[str, int]:
        return dict(self._lengths)

    def _fetch(self, seqid: str, start: int, end: int) -> str:
        raise NotImplementedError

    def get_sequence(self, seqid: str, start: int, end: int, strand: Strand = "+") -> str:
        """Sequence of ``seqid[start:end]`` read on ``strand``.

        Raises:
            KeyError: If the scaffold is unknown.
            ValueError: If the region does not fit the scaffold.
        """
        length = self._lengths.get(seqid)
        if length is None:
            raise KeyError(f"Unknown scaffold: {seqid}")
        if start < 0:
            raise ValueError(f"Region start is negative: {seqid}:{start}")
        if end > length:
            raise ValueError(f"Region end {end} exceeds length of {seqid} ({length})")
        if start >= end:
            raise ValueError(f"Region start {start} is not less than end {end}")

        sequence = self._fetch(seqid, start, end)
        return reverse_complement(sequence) if strand == "-" else sequence


class GenomeAccessor(IndexedSequences):
    """Genome FASTA read through a pyfaidx index.

    The ``.fai`` index is built next to the FASTA when missing. Pickling
    keeps only the path, so worker processes reopen the index themselves.

    Example:
        >>> with GenomeAccessor("genome.fa") as genome:
        ...     donor_region = genome.get_sequence("chr1", 1000, 1012, strand="-")
    """

    def __init__(self, fasta_path: Path | str) -> None:
        self.path = Path(fasta_path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Genome FASTA not found: {self.path}")
        self._fasta: pyfaidx.Fasta | None = None
        self._lengths = {}
        self._load_index()

    def _load_index(self) -> None:
        self._fasta = pyfaidx.Fasta(str(self.path), sequence_always_upper=True, read_ahead=10000)
        self._lengths = {name: len(self._fasta[name]) for name in self._fasta.keys()}
        logger.info(
            f"Indexed genome {self.path.name}: {len(self._lengths)} scaffolds, "
            f"{sum(self._lengths.values()):,} bp"
        )

    def _fetch(self, seqid: str, start: int, end: int) -> str:
        if self._fasta is None:
            raise RuntimeError(f"Genome {self.path.name} has been closed")
        return str(self._fasta[seqid][start:end])

    def close(self) -> None:
        if self._fasta is not None:
            self._fasta.close()
            self._fasta = None

    def __enter__(self) -> GenomeAccessor:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __getstate__(self) -> dict[str, Any]:
        return {"path": self.path}

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.path = state["path"]
        self._fasta = None
        self._load_index()


class InMemoryGenome(IndexedSequences):
    """Genome held as a dict of sequences.

    Example:
        >>> genome = InMemoryGenome({"chr1": "ACGTACGT"})
        >>> genome.get_sequence("chr1", 0, 4, "-")
        'ACGT'
    """

    def __init__(self, sequences: Mapping[str, str]) -> None:
        self.sequences = {seqid: seq.upper() for seqid, seq in sequences.items()}
        self._lengths = {seqid: len(seq) for seqid, seq in self.sequences.items()}

    def _fetch(self, seqid: str, start: int, end: int) -> str:
        return self.sequences[seqid][start:end]


# =============================================================================
# Reference Proteins
# =============================================================================


def parse_gene_id(description: str, strip_version: bool = True) -> str | None:
    """Extract the gene id from a protein FASTA header.

    Args:
        description: Full header line without ">".
        strip_version: Drop a trailing ".N" version suffix.

    Returns:
        Gene id, or None if the header carries no gene token.
    """
    match = GENE_TOKEN_PATTERN.search(description)
    if match is None:
        return None
    gene_id = match.group(1)
    return normalize_gene_id(gene_id) if strip_version else gene_id


class ProteinCatalog(Mapping[str, tuple[ProteinIsoform, ...]]):
    """Read-only reference protein isoforms grouped by gene id.

    Example:
        >>> catalog = ProteinCatalog.from_fasta("Homo_sapiens.pep.all.fa")
        >>> for isoform in catalog.get("ENSG00000100320", ()):
        ...     print(isoform.isoform_id, isoform.length)
    """

    def __init__(self, isoforms: Iterable[ProteinIsoform]) -> None:
        by_gene: dict[str, list[ProteinIsoform]] = defaultdict(list)
        for isoform in isoforms:
            by_gene[isoform.gene_id].append(isoform)
        self._by_gene = {
            gene_id: tuple(sorted(rows, key=lambda i: i.isoform_id))
            for gene_id, rows in by_gene.items()
        }

    def __getitem__(self, gene_id: str) -> tuple[ProteinIsoform, ...]:
        return self._by_gene[gene_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_gene)

    def __len__(self) -> int:
        return len(self._by_gene)

    @property
    def n_isoforms(self) -> int:
        return sum(len(rows) for rows in self._by_gene.values())

    @classmethod
    def from_fasta(cls, fasta_path: Path | str, strip_version: bool = True) -> ProteinCatalog:
        """Read reference proteins from a FASTA file.

        Records without a gene token in the header are skipped. A
        trailing stop symbol is removed from each sequence.

        Args:
            fasta_path: Path to protein FASTA.
            strip_version: Drop ".N" version suffixes from gene ids.

        Returns:
            ProteinCatalog indexed by gene id.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        path = Path(fasta_path)
        if not path.exists():
            raise FileNotFoundError(f"Protein FASTA not found: {path}")

        isoforms = []
        n_skipped = 0
        for record in SeqIO.parse(str(path), "fasta"):
            gene_id = parse_gene_id(record.description, strip_version=strip_version)
            if gene_id is None:
                n_skipped += 1
                continue
            isoforms.append(
                ProteinIsoform(
                    isoform_id=record.id,
                    gene_id=gene_id,
                    sequence=str(record.seq).upper().rstrip("*"),
                )
            )

        catalog = cls(isoforms)
        logger.info(f"Loaded {catalog.n_isoforms} protein isoforms for {len(catalog)} genes")
        if n_skipped:
            logger.warning(f"Skipped {n_skipped} protein records without a gene id")
        return catalog


# =============================================================================
# Writers
# =============================================================================


def write_protein_fasta(
    proteins: Iterable[tuple[str, str, str]],
    output_path: Path | str,
) -> int:
    """Write protein sequences to FASTA.

    Args:
        proteins: (identifier, description, sequence) tuples.
        output_path: Output path.

    Returns:
        Number of records written.
    """
    records = (
        SeqRecord(Seq(sequence), id=identifier, description=description)
        for identifier, description, sequence in proteins
    )
    n_written = SeqIO.write(records, str(output_path), "fasta")
    logger.info(f"Wrote {n_written} proteins to {output_path}")
    return n_written
