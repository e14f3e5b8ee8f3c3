"""Tests for canonical ticket resolution across the three record streams."""

from datetime import date

import pandas as pd

from pos_metrics.metrics import aggregate_metrics
from pos_metrics.records import Stream, prepare_records_df
from pos_metrics.tickets import (
    CANONICAL_COLUMNS,
    canonical_tickets,
    canonicalize,
    stream_breakdown,
)
from pos_metrics.window import Window


def _records(rows: list[tuple]) -> pd.DataFrame:
    """Build normalized records from (record_id, ticket_number, stream, amount) tuples."""
    return prepare_records_df(pd.DataFrame({
        "record_id": [r[0] for r in rows],
        "ticket_number": [r[1] for r in rows],
        "stream": [r[2] for r in rows],
        "amount": [r[3] for r in rows],
        "sale_date": ["2025-01-15 12:00"] * len(rows),
        "store_id": ["TOR"] * len(rows),
        "owner_id": ["u1"] * len(rows),
    }))


class TestPrecedence:
    def test_sale_beats_return_and_gift_card(self) -> None:
        records = _records([
            (1, "T1", "gift_card", 5.0),
            (2, "T1", "return", 10.0),
            (3, "T1", "sale", 50.0),
        ])

        tickets = canonicalize(records)

        assert len(tickets) == 1
        assert tickets.iloc[0]["canonical_total"] == 50.0
        assert tickets.iloc[0]["winning_stream"] == "sale"

    def test_return_beats_gift_card(self) -> None:
        records = _records([
            (1, "T1", "gift_card", 5.0),
            (2, "T1", "return", 10.0),
        ])

        tickets = canonicalize(records)

        assert tickets.iloc[0]["canonical_total"] == 10.0
        assert tickets.iloc[0]["winning_stream"] == "return"

    def test_gift_card_only_sums_every_record(self) -> None:
        records = _records([
            (1, "T1", "gift_card", 20.0),
            (2, "T1", "gift_card", 5.0),
            (3, "T1", "gift_card", 2.5),
        ])

        tickets = canonicalize(records)

        assert tickets.iloc[0]["canonical_total"] == 27.5
        assert tickets.iloc[0]["winning_stream"] == "gift_card"

    def test_exactly_one_ticket_per_number(self) -> None:
        records = _records([
            (1, "T1", "sale", 10.0),
            (2, "T1", "sale", 10.0),
            (3, "T2", "return", 4.0),
            (4, "T3", "gift_card", 1.0),
            (5, "T3", "return", 3.0),
            (6, "T4", "gift_card", 2.0),
        ])

        tickets = canonicalize(records)

        assert tickets["ticket_number"].tolist() == ["T1", "T2", "T3", "T4"]
        assert tickets["winning_stream"].tolist() == ["sale", "return", "return", "gift_card"]
        assert list(tickets.columns) == CANONICAL_COLUMNS


class TestTieBreak:
    def test_lowest_record_id_wins(self) -> None:
        records = _records([
            (5, "T1", "sale", 30.0),
            (2, "T1", "sale", 40.0),
            (9, "T1", "sale", 50.0),
        ])

        tickets = canonicalize(records)

        assert tickets.iloc[0]["canonical_total"] == 40.0

    def test_winner_supplies_attribution(self) -> None:
        records = prepare_records_df(pd.DataFrame({
            "record_id": [8, 3],
            "ticket_number": ["T1", "T1"],
            "stream": ["sale", "sale"],
            "amount": [12.0, 12.0],
            "sale_date": ["2025-01-16", "2025-01-15"],
            "store_id": ["B", "A"],
            "sales_rep": ["Bea", "Ana"],
        }))

        ticket = canonical_tickets(records)["T1"]

        assert ticket.store_id == "A"
        assert ticket.sales_rep == "Ana"
        assert ticket.sale_date.date() == date(2025, 1, 15)

    def test_input_order_does_not_matter(self) -> None:
        records = _records([
            (1, "T1", "sale", 10.0),
            (2, "T1", "sale", 99.0),
            (3, "T2", "gift_card", 5.0),
            (4, "T2", "gift_card", 6.0),
            (5, "T3", "return", 7.0),
        ])
        shuffled = records.sample(frac=1.0, random_state=7).reset_index(drop=True)

        pd.testing.assert_frame_equal(canonicalize(records), canonicalize(shuffled))


def test_idempotent() -> None:
    records = _records([
        (1, "T1", "sale", 10.0),
        (2, "T1", "return", 3.0),
        (3, "T2", "gift_card", 5.0),
    ])

    assert canonical_tickets(records) == canonical_tickets(records)
    pd.testing.assert_frame_equal(canonicalize(records), canonicalize(records))


def test_blank_ticket_numbers_are_skipped() -> None:
    records = _records([(1, "", "sale", 10.0), (2, "T1", "sale", 5.0)])

    tickets = canonicalize(records)

    assert tickets["ticket_number"].tolist() == ["T1"]


def test_empty_input() -> None:
    records = _records([])

    tickets = canonicalize(records)

    assert tickets.empty
    assert list(tickets.columns) == CANONICAL_COLUMNS


def test_stream_breakdown_lists_every_stream() -> None:
    tickets = canonicalize(_records([(1, "T1", "sale", 1.0), (2, "T2", "sale", 1.0)]))

    assert stream_breakdown(tickets) == {"sale": 2, "return": 0, "gift_card": 0}


def test_end_to_end_owner_scenario() -> None:
    records = _records([
        (1, "T001", "sale", 50.0),
        (2, "T001", "return", 10.0),
        (3, "T002", "gift_card", 20.0),
        (4, "T002", "gift_card", 5.0),
    ])

    tickets = canonical_tickets(records)

    assert set(tickets) == {"T001", "T002"}
    assert tickets["T001"].canonical_total == 50.0
    assert tickets["T001"].winning_stream is Stream.SALE
    assert tickets["T002"].canonical_total == 25.0
    assert tickets["T002"].winning_stream is Stream.GIFT_CARD

    metrics = aggregate_metrics(records, Window.from_strings("2025-01-01", "2025-02-01"))

    assert metrics.revenue == 75.0
    assert metrics.transaction_count == 2
    assert metrics.avg_ticket == 37.5
