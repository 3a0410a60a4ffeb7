"""SpliceForge: coding consequences of alternative 5' splice site events.

SpliceForge turns per-junction splicing quantification into regulated
A5SS events, three-exon models, in-frame peptides and edited reference
proteins.

Example:
    >>> import spliceforge
    >>> spliceforge.__version__
    '0.1.0'

Modules:
    io: Readers for quantification tables, GFF3 and FASTA files
    core: Regulation calling, geometry, phase, translation and pipeline
    homology: Peptide integration into reference proteins
    parallel: Parallel execution utilities
    utils: Interval, sequence and logging utilities
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
