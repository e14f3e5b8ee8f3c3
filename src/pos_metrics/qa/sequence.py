"""Missing ticket sequence numbers per store.

Ticket numbers carry a per-store sequence: a literal ``T`` followed by
digits (``AB-TOR-T001234`` -> 1234). Given a numeric range, this module
reports the sequence numbers that never showed up, which usually means an
export was incomplete.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Optional

import pandas as pd

from pos_metrics.exceptions import ComputationInputError

logger = logging.getLogger(__name__)

# Digits after the last literal "T"
SEQUENCE_RE = re.compile(r"T(\d+)(?!.*T\d)")


@dataclass
class MissingSequenceReport:
    """Gap report for one store and range.

    Attributes:
        store_id: Store inspected.
        range: Human-readable range, "lo - hi".
        total_found: Distinct sequence numbers present inside the range.
        missing_count: Numbers in the range never seen.
        missing_numbers: First missing numbers, ascending (capped).
        sample_existing: First present numbers, ascending, for sanity checks.
        unparsed_count: Store tickets without a numeric sequence suffix.
    """

    store_id: str
    range: str
    total_found: int
    missing_count: int
    missing_numbers: list[int] = field(default_factory=list)
    sample_existing: list[int] = field(default_factory=list)
    unparsed_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def parse_sequence_number(ticket_number: str) -> Optional[int]:
    """Extract the sequence number from a ticket number, or None.

    Examples:
        >>> parse_sequence_number("AB-TOR-T001234")
        1234
        >>> parse_sequence_number("AB-TO-1T000077")
        77
        >>> parse_sequence_number("ABTOR1234-01") is None
        True

    """
    match = SEQUENCE_RE.search(ticket_number)
    return int(match.group(1)) if match else None


def find_missing_ticket_numbers(
    tickets: pd.DataFrame,
    store_id: str,
    lo: int,
    hi: int,
    limit: int = 100,
    sample_size: int = 10,
) -> MissingSequenceReport:
    """Report sequence numbers in [lo, hi] absent for a store.

    Args:
        tickets: Canonical ticket table (needs ticket_number and store_id).
        store_id: Store to inspect.
        lo: First sequence number (inclusive).
        hi: Last sequence number (inclusive).
        limit: Maximum missing numbers listed.
        sample_size: Present numbers included as a sample.

    Returns:
        MissingSequenceReport.

    Raises:
        ComputationInputError: If lo > hi.

    """
    if lo > hi:
        raise ComputationInputError(f"Invalid sequence range: start ({lo}) > end ({hi})")

    store_numbers = tickets.loc[tickets["store_id"] == store_id, "ticket_number"]
    parsed = store_numbers.map(parse_sequence_number)
    unparsed = int(parsed.isna().sum())
    if unparsed:
        logger.info("Store %s: %d ticket number(s) without a sequence suffix", store_id, unparsed)

    present = {int(n) for n in parsed.dropna()}
    in_range = sorted(n for n in present if lo <= n <= hi)

    missing_count = (hi - lo + 1) - len(in_range)

    # Walk the gaps between present numbers; stops once limit is reached
    missing: list[int] = []
    expected = lo
    for n in in_range + [hi + 1]:
        if len(missing) >= limit:
            break
        missing.extend(range(expected, min(n, expected + limit - len(missing))))
        expected = n + 1

    logger.info(
        "Store %s range %d-%d: %d present, %d missing", store_id, lo, hi, len(in_range), missing_count
    )
    return MissingSequenceReport(
        store_id=store_id,
        range=f"{lo} - {hi}",
        total_found=len(in_range),
        missing_count=missing_count,
        missing_numbers=missing,
        sample_existing=sorted(present)[:sample_size],
        unparsed_count=unparsed,
    )
