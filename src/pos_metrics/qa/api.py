"""Public API for ticket QA.

This module builds the ticket validation report (totals, zero-total tickets,
format histogram, deltas vs. expected figures) and the per-store sequence gap
report. Data-quality findings are returned as report fields; only invalid
parameters raise.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

import pandas as pd

from pos_metrics.config import EngineConfig
from pos_metrics.qa.patterns import pattern_histogram
from pos_metrics.qa.sequence import MissingSequenceReport, find_missing_ticket_numbers
from pos_metrics.records import Stream
from pos_metrics.store import RecordQuery, RecordStore, fetch_records
from pos_metrics.tickets import canonicalize, stream_breakdown

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Result of validating an owner's ticket set.

    Attributes:
        actual_ticket_count: Distinct ticket numbers across all streams.
        actual_total_amount: Sum of canonical totals, rounded to cents.
        zero_total_ticket_count: Canonical tickets whose total is 0.
        sample_zero_total_tickets: First zero-total tickets (by number).
        pattern_histogram: Format name -> count of distinct ticket numbers.
        anomalous_tickets: Ticket numbers matching no known format.
        stream_breakdown: Winning stream -> ticket count.
        ticket_count_difference: actual - expected, when expected was given.
        amount_difference: actual - expected (cents), when expected was given.
        truncated: The underlying read hit its hard limit.
    """

    actual_ticket_count: int
    actual_total_amount: float
    zero_total_ticket_count: int
    sample_zero_total_tickets: list[dict] = field(default_factory=list)
    pattern_histogram: dict[str, int] = field(default_factory=dict)
    anomalous_tickets: list[str] = field(default_factory=list)
    stream_breakdown: dict[str, int] = field(default_factory=dict)
    ticket_count_difference: Optional[int] = None
    amount_difference: Optional[float] = None
    truncated: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _zero_ticket_rows(records: pd.DataFrame, zero: pd.DataFrame) -> list[dict]:
    """Describe zero-total tickets, including which streams mention them."""
    if zero.empty:
        return []
    mentioned = records[records["ticket_number"].isin(zero["ticket_number"])]
    in_streams = {
        ticket: [s.value for s in Stream if s.value in set(streams)]
        for ticket, streams in mentioned.groupby("ticket_number")["stream"]
    }
    rows = []
    for row in zero.itertuples(index=False):
        rows.append({
            "ticket_number": row.ticket_number,
            "store_id": row.store_id,
            "sale_date": None if pd.isna(row.sale_date) else pd.Timestamp(row.sale_date).isoformat(),
            "sales_rep": None if pd.isna(row.sales_rep) else row.sales_rep,
            "winning_stream": row.winning_stream,
            "in_streams": in_streams.get(row.ticket_number, []),
        })
    return rows


def validate_ticket_totals(
    records: pd.DataFrame,
    expected_ticket_count: Optional[int] = None,
    expected_total_amount: Optional[float] = None,
    sample_size: int = 10,
    truncated: bool = False,
) -> ValidationReport:
    """Validate a normalized record set and summarize its canonical tickets.

    Args:
        records: Normalized records (all streams) for one owner.
        expected_ticket_count: Ticket count reported by the source system.
        expected_total_amount: Total amount reported by the source system.
        sample_size: Number of zero-total tickets to include.
        truncated: Whether the read that produced ``records`` was truncated.

    Returns:
        ValidationReport.

    """
    tickets = canonicalize(records)
    actual_total = float(tickets["canonical_total"].sum())
    actual_count = len(tickets)

    zero = tickets[tickets["canonical_total"] == 0]
    histogram = pattern_histogram(tickets["ticket_number"])

    report = ValidationReport(
        actual_ticket_count=actual_count,
        actual_total_amount=round(actual_total, 2),
        zero_total_ticket_count=len(zero),
        sample_zero_total_tickets=_zero_ticket_rows(records, zero.head(sample_size)),
        pattern_histogram=histogram.counts,
        anomalous_tickets=histogram.anomalous,
        stream_breakdown=stream_breakdown(tickets),
        truncated=truncated,
    )
    if expected_ticket_count is not None:
        report.ticket_count_difference = actual_count - expected_ticket_count
    if expected_total_amount is not None:
        report.amount_difference = round(actual_total - expected_total_amount, 2)

    logger.info(
        "Validation complete: %d tickets, total %.2f, %d zero-total, %d anomalous format(s)",
        actual_count,
        report.actual_total_amount,
        report.zero_total_ticket_count,
        len(histogram.anomalous),
    )
    return report


def run_ticket_validation(
    store: RecordStore,
    owner_id: Optional[str],
    config: EngineConfig,
    expected_ticket_count: Optional[int] = None,
    expected_total_amount: Optional[float] = None,
) -> ValidationReport:
    """Read every record for an owner (bounded) and validate it."""
    batch = fetch_records(
        store,
        RecordQuery(owner_id=owner_id),
        page_size=config.page_size,
        hard_limit=config.hard_limit,
    )
    return validate_ticket_totals(
        batch.records,
        expected_ticket_count=expected_ticket_count,
        expected_total_amount=expected_total_amount,
        sample_size=config.zero_ticket_sample,
        truncated=batch.truncated,
    )


def run_sequence_check(
    store: RecordStore,
    owner_id: Optional[str],
    store_id: str,
    lo: int,
    hi: int,
    config: EngineConfig,
) -> MissingSequenceReport:
    """Read an owner's records for one store and report sequence gaps."""
    batch = fetch_records(
        store,
        RecordQuery(owner_id=owner_id, store_id=store_id),
        page_size=config.page_size,
        hard_limit=config.hard_limit,
    )
    return find_missing_ticket_numbers(
        canonicalize(batch.records),
        store_id,
        lo,
        hi,
        limit=config.gap_report_limit,
        sample_size=config.gap_sample_size,
    )
