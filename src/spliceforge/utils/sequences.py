"""Nucleotide sequence helpers.

Codon tables come from Biopython's NCBI genetic code tables. Translation
here differs from ``Bio.Seq.translate`` in two ways that the A5SS
peptides rely on: a trailing incomplete codon can be dropped, and stop
codons are kept in the output unless ``to_stop`` is set.

Example:
    >>> from spliceforge.utils.sequences import reverse_complement, translate
    >>> reverse_complement("ATGCATGC")
    'GCATGCAT'
    >>> translate("ATGAAATAG")
    'MK*'
"""

from functools import lru_cache

from Bio.Data import CodonTable

# =============================================================================
# Constants
# =============================================================================

COMPLEMENT_TABLE = str.maketrans(
    "ACGTacgtNnRYSWKMBDHVryswkmbdhv",
    "TGCAtgcaNnYRSWMKVHDByrswmkvhdb",
)

STOP_SYMBOL = "*"
UNKNOWN_AMINO_ACID = "X"


@lru_cache(maxsize=None)
def codon_table(table: int = 1) -> dict[str, str]:
    """All 64 codons of an NCBI genetic code mapped to one-letter residues.

    Stop codons map to ``STOP_SYMBOL``.

    Raises:
        ValueError: If ``table`` is not an NCBI table id.
    """
    try:
        code = CodonTable.unambiguous_dna_by_id[table]
    except KeyError:
        raise ValueError(f"Unknown genetic code table: {table}") from None

    codons = dict(code.forward_table)
    codons.update({codon: STOP_SYMBOL for codon in code.stop_codons})
    return codons


CODON_TABLE_STANDARD = codon_table(1)


def reverse_complement(sequence: str) -> str:
    """Reverse complement, keeping case and IUPAC ambiguity codes."""
    return sequence.translate(COMPLEMENT_TABLE)[::-1]


# =============================================================================
# Translation
# =============================================================================


def translate(
    sequence: str,
    table: int = 1,
    to_stop: bool = False,
    allow_partial: bool = False,
) -> str:
    """Translate an in-frame DNA sequence codon by codon.

    The first codon is translated like any other; a non-ATG initiator is
    never replaced by methionine. Codons containing ambiguous bases become
    ``UNKNOWN_AMINO_ACID``.

    Args:
        sequence: DNA coding sequence, already in reading frame.
        table: NCBI genetic code table number.
        to_stop: If True, stop at the first stop codon.
        allow_partial: If True, drop a trailing incomplete codon instead of
            raising.

    Returns:
        Amino acid sequence.

    Raises:
        ValueError: If the length is not a multiple of 3 and
            ``allow_partial`` is False, or the table id is unknown.
    """
    remainder = len(sequence) % 3
    if remainder and not allow_partial:
        raise ValueError(f"Sequence length ({len(sequence)}) is not a multiple of 3")

    codons = codon_table(table)
    protein = []
    for i in range(0, len(sequence) - remainder, 3):
        residue = codons.get(sequence[i : i + 3].upper(), UNKNOWN_AMINO_ACID)
        if residue == STOP_SYMBOL and to_stop:
            break
        protein.append(residue)

    return "".join(protein)
