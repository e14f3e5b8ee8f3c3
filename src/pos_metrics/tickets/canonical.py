"""Resolve the three raw record streams into one canonical ticket each.

A ticket number can appear in the sale, return and gift-card streams at the
same time. Exactly one canonical total is produced per ticket number:

1. Present in the sale stream: the winning sale record's amount.
2. Else present in the return stream: the winning return record's amount.
3. Else (gift cards only): the sum of every gift-card amount on the ticket.

"Winning" record within a stream is the one with the lowest ``record_id``
(ingestion sequence); records without an id keep their input order. The
winning record also supplies store, date and rep for the ticket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd

from pos_metrics.records import STREAM_PRECEDENCE, Stream

logger = logging.getLogger(__name__)

CANONICAL_COLUMNS = [
    "ticket_number",
    "store_id",
    "sale_date",
    "sales_rep",
    "canonical_total",
    "winning_stream",
]


@dataclass(frozen=True)
class CanonicalTicket:
    """The single authoritative resolution of a ticket number."""

    ticket_number: str
    store_id: str
    sale_date: Optional[datetime]
    sales_rep: Optional[str]
    canonical_total: float
    winning_stream: Stream


def _empty_canonical() -> pd.DataFrame:
    df = pd.DataFrame({col: pd.Series(dtype="object") for col in CANONICAL_COLUMNS})
    df["sale_date"] = pd.to_datetime(df["sale_date"])
    df["canonical_total"] = df["canonical_total"].astype("float64")
    return df


def canonicalize(records: pd.DataFrame) -> pd.DataFrame:
    """Build the ticket-grain table from normalized raw records.

    Args:
        records: Output of ``prepare_records_df`` (any mix of streams).

    Returns:
        DataFrame with CANONICAL_COLUMNS, one row per ticket number, sorted by
        ticket_number. Pure: the same input always gives the same output.

    Examples:
        >>> from pos_metrics.records import prepare_records_df
        >>> raw = prepare_records_df(pd.DataFrame({
        ...     "ticket_number": ["T001", "T001", "T002", "T002"],
        ...     "stream": ["sale", "return", "gift_card", "gift_card"],
        ...     "sale_date": ["2025-01-15"] * 4,
        ...     "store_id": ["TO"] * 4,
        ...     "amount": [50, 10, 20, 5],
        ... }))
        >>> canonicalize(raw)[["ticket_number", "canonical_total", "winning_stream"]].values.tolist()
        [['T001', 50.0, 'sale'], ['T002', 25.0, 'gift_card']]

    """
    blank = records["ticket_number"] == ""
    if blank.any():
        logger.debug("Skipping %d record(s) without a ticket number", int(blank.sum()))
    df = records[~blank]
    if df.empty:
        return _empty_canonical()

    df = df.assign(
        _rank=df["stream"].map(STREAM_PRECEDENCE),
        _pos=np.arange(len(df)),
    )
    ordered = df.sort_values(
        ["ticket_number", "_rank", "record_id", "_pos"],
        kind="mergesort",
        na_position="last",
    )
    winners = ordered.drop_duplicates("ticket_number", keep="first")

    gift_sums = (
        df[df["stream"] == Stream.GIFT_CARD.value].groupby("ticket_number")["amount"].sum()
    )
    is_gift = winners["stream"] == Stream.GIFT_CARD.value
    totals = winners["amount"].where(~is_gift, winners["ticket_number"].map(gift_sums))

    out = pd.DataFrame({
        "ticket_number": winners["ticket_number"].to_numpy(),
        "store_id": winners["store_id"].to_numpy(),
        "sale_date": winners["sale_date"].to_numpy(),
        "sales_rep": winners["sales_rep"].to_numpy(),
        "canonical_total": totals.astype("float64").to_numpy(),
        "winning_stream": winners["stream"].to_numpy(),
    })
    return out.reset_index(drop=True)


def canonical_tickets(records: pd.DataFrame) -> dict[str, CanonicalTicket]:
    """Return the canonical mapping ticket_number -> CanonicalTicket."""
    table = canonicalize(records)
    result: dict[str, CanonicalTicket] = {}
    for row in table.itertuples(index=False):
        sale_date = None if pd.isna(row.sale_date) else pd.Timestamp(row.sale_date).to_pydatetime()
        result[row.ticket_number] = CanonicalTicket(
            ticket_number=row.ticket_number,
            store_id=row.store_id,
            sale_date=sale_date,
            sales_rep=None if pd.isna(row.sales_rep) else row.sales_rep,
            canonical_total=float(row.canonical_total),
            winning_stream=Stream(row.winning_stream),
        )
    return result


def stream_breakdown(tickets: pd.DataFrame) -> dict[str, int]:
    """Count canonical tickets by winning stream (every stream present, maybe 0)."""
    counts = tickets["winning_stream"].value_counts()
    return {s.value: int(counts.get(s.value, 0)) for s in Stream}
