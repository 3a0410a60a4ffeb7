"""Genomic interval operations.

This module provides the interval algebra used to build and edit exon
models:

- Overlap detection and overlap length
- Containment
- Truncation from either end (strand-aware)
- Gap between two intervals
- Resizing with a fixed anchor

All intervals are 0-based half-open. Strand-aware helpers speak in
transcript terms: the 5' end of a minus-strand interval is its ``end``.

Example:
    >>> from spliceforge.utils.intervals import GenomicInterval, gap_between
    >>> a = GenomicInterval("chr1", 100, 200, "+")
    >>> b = GenomicInterval("chr1", 300, 400, "+")
    >>> gap_between(a, b)
    GenomicInterval(seqid='chr1', start=200, end=300, strand='+')
"""

from __future__ import annotations

from typing import Literal, NamedTuple

Strand = Literal["+", "-"]
Anchor = Literal["start", "end", "five_prime", "three_prime"]

# =============================================================================
# Data Structures
# =============================================================================


class GenomicInterval(NamedTuple):
    """A stranded interval on one sequence.

    Attributes:
        seqid: Chromosome/contig identifier.
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
        strand: Strand (+ or -).
    """

    seqid: str
    start: int
    end: int
    strand: str = "+"

    @property
    def length(self) -> int:
        """Get interval length."""
        return self.end - self.start

    @property
    def five_prime(self) -> int:
        """Boundary coordinate at the transcript 5' end."""
        return self.start if self.strand == "+" else self.end

    @property
    def three_prime(self) -> int:
        """Boundary coordinate at the transcript 3' end."""
        return self.end if self.strand == "+" else self.start


# =============================================================================
# Overlap Operations
# =============================================================================


def overlaps(a: GenomicInterval, b: GenomicInterval) -> bool:
    """Check if two intervals overlap.

    Intervals on different sequences never overlap.

    Args:
        a: First interval.
        b: Second interval.

    Returns:
        True if intervals overlap.
    """
    return a.seqid == b.seqid and a.start < b.end and b.start < a.end


def overlap_length(a: GenomicInterval, b: GenomicInterval) -> int:
    """Calculate overlap length between two intervals.

    Args:
        a: First interval.
        b: Second interval.

    Returns:
        Overlap length (0 if no overlap).
    """
    if not overlaps(a, b):
        return 0
    return min(a.end, b.end) - max(a.start, b.start)


def contains(outer: GenomicInterval, inner: GenomicInterval) -> bool:
    """Check whether ``outer`` fully contains ``inner``.

    Args:
        outer: Enclosing interval.
        inner: Enclosed interval.

    Returns:
        True if every base of inner lies within outer.
    """
    return outer.seqid == inner.seqid and outer.start <= inner.start and inner.end <= outer.end


# =============================================================================
# Editing Operations
# =============================================================================


def truncate(interval: GenomicInterval, n: int, from_end: Anchor) -> GenomicInterval:
    """Remove ``n`` bases from one end of an interval.

    A negative ``n`` extends the interval outwards at that end.

    Args:
        interval: Interval to edit.
        n: Number of bases to remove.
        from_end: "start"/"end" for genomic ends, "five_prime"/"three_prime"
            for transcript ends.

    Returns:
        The edited interval.

    Raises:
        ValueError: If the result would have negative length.
    """
    side = _genomic_side(interval.strand, from_end)
    if side == "start":
        result = interval._replace(start=interval.start + n)
    else:
        result = interval._replace(end=interval.end - n)

    if result.end < result.start:
        raise ValueError(
            f"Cannot remove {n} bases from {from_end} of a {interval.length} bp interval"
        )
    return result


def resize(interval: GenomicInterval, width: int, anchor: Anchor) -> GenomicInterval:
    """Resize an interval to ``width`` keeping one end fixed.

    Args:
        interval: Interval to resize.
        width: New length in bases (>= 0).
        anchor: End that stays fixed.

    Returns:
        The resized interval.
    """
    if width < 0:
        raise ValueError(f"Width must be non-negative, got {width}")

    side = _genomic_side(interval.strand, anchor)
    if side == "start":
        return interval._replace(end=interval.start + width)
    return interval._replace(start=interval.end - width)


def set_boundary(interval: GenomicInterval, position: int, which: Anchor) -> GenomicInterval:
    """Move one boundary of an interval to ``position``.

    Args:
        interval: Interval to edit.
        position: New coordinate of the boundary.
        which: Boundary to move.

    Returns:
        The edited interval.
    """
    if _genomic_side(interval.strand, which) == "start":
        return interval._replace(start=position)
    return interval._replace(end=position)


def gap_between(a: GenomicInterval, b: GenomicInterval) -> GenomicInterval | None:
    """Return the uncovered interval lying between two intervals.

    Args:
        a: First interval.
        b: Second interval.

    Returns:
        The gap, or None if the intervals touch, overlap or lie on
        different sequences.
    """
    if a.seqid != b.seqid:
        return None
    left, right = sorted((a, b), key=lambda iv: (iv.start, iv.end))
    if left.end >= right.start:
        return None
    return GenomicInterval(left.seqid, left.end, right.start, left.strand)


def _genomic_side(strand: str, which: Anchor) -> Literal["start", "end"]:
    """Translate a transcript-relative end into a genomic one."""
    if which in ("start", "end"):
        return which  # type: ignore[return-value]
    if which == "five_prime":
        return "start" if strand == "+" else "end"
    if which == "three_prime":
        return "end" if strand == "+" else "start"
    raise ValueError(f"Unknown interval end: {which}")
