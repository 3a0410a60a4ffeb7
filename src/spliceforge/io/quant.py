"""Per-junction quantification tables.

One tab-separated table per event class, one row per junction, with a
header line naming the columns in COLUMNS. Numeric statistics may be
"na" or empty, which is read as undefined (None). Gene ids lose any
".N" version suffix so they join the annotation catalogues.

Example:
    >>> from spliceforge.io.quant import read_junction_table
    >>> records = read_junction_table("alt5prime.tsv", "alt5prime")
    >>> records[0].junction_name
    'Distal'
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from spliceforge.core.models import EventClass, JunctionRecord, normalize_gene_id

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

COLUMNS = (
    "event_id",
    "lsv_id",
    "junction_name",
    "probability_changing",
    "median_dpsi",
    "median_psi_a",
    "median_psi_b",
    "annotated",
    "reference_exon_coord",
    "spliced_with_coord",
    "junction_coord",
    "gene_id",
    "gene_name",
    "module_id",
    "chromosome",
    "strand",
)

REQUIRED_COLUMNS = (
    "event_id",
    "lsv_id",
    "junction_name",
    "probability_changing",
    "median_dpsi",
    "reference_exon_coord",
    "spliced_with_coord",
    "junction_coord",
    "gene_id",
    "chromosome",
    "strand",
)

FLOAT_COLUMNS = ("probability_changing", "median_dpsi", "median_psi_a", "median_psi_b")
MISSING_VALUES = {"", "na", "nan", "none", "."}
TRUE_VALUES = {"true", "t", "1", "yes", "y"}
FALSE_VALUES = {"false", "f", "0", "no", "n"}


class QuantTableError(ValueError):
    """Raised when a quantification table cannot be read."""

    pass


# =============================================================================
# Value Parsing
# =============================================================================


def parse_float(value: str | None) -> float | None:
    """Parse a statistic, mapping missing markers to None.

    Raises:
        ValueError: If the value is neither missing nor numeric.
    """
    if value is None or value.strip().lower() in MISSING_VALUES:
        return None
    return float(value)


def parse_bool(value: str | None, default: bool = True) -> bool:
    """Parse a boolean flag column.

    Raises:
        ValueError: If the value is not a recognised flag.
    """
    if value is None or value.strip().lower() in MISSING_VALUES:
        return default
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


# =============================================================================
# Reader
# =============================================================================


def read_junction_table(
    path: Path | str,
    event_class: EventClass | str,
) -> list[JunctionRecord]:
    """Read a per-junction quantification table.

    Args:
        path: Path to the tab-separated table.
        event_class: Event class of every row in the table.

    Returns:
        JunctionRecords in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        QuantTableError: If required columns are missing or a value is
            malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Quantification table not found: {path}")

    event_class = EventClass.parse(event_class)
    records = []

    with open(path, newline="") as f:
        reader = csv.DictReader(f, delimiter="\t")
        missing = [col for col in REQUIRED_COLUMNS if col not in (reader.fieldnames or ())]
        if missing:
            raise QuantTableError(f"{path.name}: missing columns {', '.join(missing)}")

        for line_number, row in enumerate(reader, start=2):
            try:
                values = {col: (row.get(col) or "").strip() for col in COLUMNS}
                for col in FLOAT_COLUMNS:
                    values[col] = parse_float(values[col])
                values["annotated"] = parse_bool(values["annotated"])
                values["gene_id"] = normalize_gene_id(values["gene_id"])
            except ValueError as e:
                raise QuantTableError(f"{path.name}:{line_number}: {e}") from e

            records.append(JunctionRecord(event_class=event_class, **values))

    logger.info(
        f"Read {len(records)} junction rows "
        f"({len({r.event_id for r in records})} events) from {path.name}"
    )
    return records
