"""Regulation calling for multi-junction splicing events.

An event is quantified from one or two perspectives (LSVs). Each
perspective is judged on its own, then the perspectives of an event are
combined: one confident perspective is enough to call the event changing,
but every perspective must agree on the size, direction and balance of
the change.

Key components:
- GroupCall: Evidence flags for one (event, LSV) group
- RegulationCall: Combined evidence flags for one event
- RegulationResult: Calls for a table plus the incomplete-evidence tally
- EventClassifier: Applies the decision rules

Example:
    >>> from spliceforge.core.regulation import EventClassifier
    >>> classifier = EventClassifier()
    >>> result = classifier.classify(records)
    >>> for event_class, gene_name, module_id, event_id in result.regulated_events():
    ...     print(event_id)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable

import attrs
import numpy as np

from spliceforge.config import RegulationConfig
from spliceforge.core.models import EventClass, JunctionRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True, frozen=True)
class GroupCall:
    """Evidence flags for the junctions of one (event, LSV) group.

    Attributes:
        event_id: Event identifier.
        lsv_id: Perspective identifier.
        regulated: Every junction passes the probability threshold.
        change: Every junction passes the |dPSI| threshold.
        opposite_sign: The dPSI signs cancel out.
        magnitude_ratio_ok: No junction's |dPSI| is a small residual of
            the largest one.
    """

    event_id: str
    lsv_id: str
    regulated: bool
    change: bool
    opposite_sign: bool
    magnitude_ratio_ok: bool


@attrs.define(slots=True, frozen=True)
class RegulationCall:
    """Combined regulation evidence for one event.

    Attributes:
        event_id: Event identifier.
        event_class: Event category.
        gene_name: Gene symbol.
        module_id: Quantifier module identifier.
        regulated: At least one perspective is confidently changing.
        change: All perspectives pass the |dPSI| threshold.
        opposite_sign: All perspectives show cancelling dPSI signs.
        magnitude_ratio_ok: All perspectives pass the magnitude ratio.
        opposite_sign_required: Whether the class must show opposite signs.
    """

    event_id: str
    event_class: EventClass
    gene_name: str
    module_id: str
    regulated: bool
    change: bool
    opposite_sign: bool
    magnitude_ratio_ok: bool
    opposite_sign_required: bool = True

    @property
    def is_regulated(self) -> bool:
        """Final inclusion decision."""
        passed = self.regulated and self.change and self.magnitude_ratio_ok
        if self.opposite_sign_required:
            passed = passed and self.opposite_sign
        return passed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event_id": self.event_id,
            "event_class": self.event_class.value,
            "gene_name": self.gene_name,
            "module_id": self.module_id,
            "regulated": self.regulated,
            "change": self.change,
            "opposite_sign": self.opposite_sign,
            "magnitude_ratio_ok": self.magnitude_ratio_ok,
            "is_regulated": self.is_regulated,
        }


@attrs.define(slots=True)
class RegulationResult:
    """Regulation calls for one or more quantification tables.

    Attributes:
        calls: Calls keyed by event id.
        incomplete_events: Events dropped for undefined evidence.
        records_without_lsv: Rows dropped for an empty LSV id.
    """

    calls: dict[str, RegulationCall] = attrs.Factory(dict)
    incomplete_events: list[str] = attrs.Factory(list)
    records_without_lsv: int = 0

    @property
    def n_regulated(self) -> int:
        return sum(1 for call in self.calls.values() if call.is_regulated)

    def regulated_events(self) -> list[tuple[str, str, str, str]]:
        """Regulated events as (event_class, gene_name, module_id, event_id).

        Returns:
            Tuples sorted by event id.
        """
        return [
            (call.event_class.value, call.gene_name, call.module_id, call.event_id)
            for call in sorted(self.calls.values(), key=lambda c: c.event_id)
            if call.is_regulated
        ]

    def regulated_ids(self) -> set[str]:
        """Identifiers of regulated events."""
        return {call.event_id for call in self.calls.values() if call.is_regulated}


# =============================================================================
# Classifier
# =============================================================================


class EventClassifier:
    """Decides whether multi-junction events are regulated.

    Attributes:
        config: Thresholds and class exemptions.

    Example:
        >>> classifier = EventClassifier(RegulationConfig(min_probability=0.95))
        >>> result = classifier.classify(records)
        >>> print(f"{result.n_regulated} regulated events")
    """

    def __init__(self, config: RegulationConfig | None = None) -> None:
        self.config = config or RegulationConfig()
        self._exempt = {
            EventClass(name.strip().lower()) for name in self.config.opposite_sign_exempt
        }

    def filter_records(
        self,
        records: Iterable[JunctionRecord],
    ) -> tuple[dict[str, list[JunctionRecord]], list[str], int]:
        """Drop incomplete events and rows without a perspective key.

        Args:
            records: Junction rows.

        Returns:
            Tuple of (rows grouped by event id, dropped event ids, number
            of rows dropped for an empty LSV id).
        """
        by_event: dict[str, list[JunctionRecord]] = defaultdict(list)
        for record in records:
            by_event[record.event_id].append(record)

        incomplete = sorted(
            event_id
            for event_id, rows in by_event.items()
            if not all(row.has_evidence for row in rows)
        )
        for event_id in incomplete:
            del by_event[event_id]

        n_without_lsv = 0
        kept: dict[str, list[JunctionRecord]] = {}
        for event_id, rows in by_event.items():
            with_lsv = [row for row in rows if row.lsv_id.strip()]
            n_without_lsv += len(rows) - len(with_lsv)
            if with_lsv:
                kept[event_id] = with_lsv

        return kept, incomplete, n_without_lsv

    def call_group(self, rows: list[JunctionRecord]) -> GroupCall:
        """Evaluate the junctions of one (event, LSV) group.

        Args:
            rows: Junction rows sharing event id and LSV id, all with
                defined probability and dPSI.

        Returns:
            GroupCall with the four evidence flags.
        """
        probability = np.array([row.probability_changing for row in rows], dtype=float)
        dpsi = np.array([row.median_dpsi for row in rows], dtype=float)
        magnitude = np.abs(dpsi)

        max_magnitude = magnitude.max()
        if max_magnitude > 0:
            ratio_ok = bool(np.all(magnitude / max_magnitude >= self.config.min_dpsi_fraction))
        else:
            ratio_ok = False

        return GroupCall(
            event_id=rows[0].event_id,
            lsv_id=rows[0].lsv_id,
            regulated=bool(np.all(probability >= self.config.min_probability)),
            change=bool(np.all(magnitude >= self.config.min_abs_dpsi)),
            opposite_sign=int(np.sign(dpsi).sum()) == 0,
            magnitude_ratio_ok=ratio_ok,
        )

    def call_event(self, rows: list[JunctionRecord]) -> RegulationCall:
        """Combine the perspectives of one event into a single call.

        Args:
            rows: All usable junction rows of the event.

        Returns:
            RegulationCall for the event.
        """
        by_lsv: dict[str, list[JunctionRecord]] = defaultdict(list)
        for row in rows:
            by_lsv[row.lsv_id].append(row)

        groups = [self.call_group(by_lsv[lsv_id]) for lsv_id in sorted(by_lsv)]
        first = rows[0]

        return RegulationCall(
            event_id=first.event_id,
            event_class=first.event_class,
            gene_name=first.gene_name,
            module_id=first.module_id,
            regulated=any(g.regulated for g in groups),
            change=all(g.change for g in groups),
            opposite_sign=all(g.opposite_sign for g in groups),
            magnitude_ratio_ok=all(g.magnitude_ratio_ok for g in groups),
            opposite_sign_required=first.event_class not in self._exempt,
        )

    def classify(self, records: Iterable[JunctionRecord]) -> RegulationResult:
        """Call regulation for every event in a set of junction rows.

        Args:
            records: Junction rows of one or more event classes.

        Returns:
            RegulationResult with one call per usable event.
        """
        by_event, incomplete, n_without_lsv = self.filter_records(records)

        result = RegulationResult(
            incomplete_events=incomplete,
            records_without_lsv=n_without_lsv,
        )
        for event_id in sorted(by_event):
            result.calls[event_id] = self.call_event(by_event[event_id])

        if incomplete:
            logger.info(f"Dropped {len(incomplete)} events with incomplete evidence")
        if n_without_lsv:
            logger.debug(f"Dropped {n_without_lsv} junction rows without an LSV id")
        logger.info(
            f"Regulation calls: {result.n_regulated}/{len(result.calls)} events regulated"
        )

        return result
