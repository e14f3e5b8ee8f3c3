"""Tickets domain module.

Resolves raw sale, return and gift-card records into canonical tickets
(one row per ticket number).

Example:
    >>> from pos_metrics.records import prepare_records_df
    >>> from pos_metrics.tickets import canonicalize
    >>>
    >>> tickets = canonicalize(prepare_records_df(raw_df))
"""

from pos_metrics.tickets.canonical import (
    CANONICAL_COLUMNS,
    CanonicalTicket,
    canonical_tickets,
    canonicalize,
    stream_breakdown,
)

__all__ = [
    "CANONICAL_COLUMNS",
    "CanonicalTicket",
    "canonical_tickets",
    "canonicalize",
    "stream_breakdown",
]
