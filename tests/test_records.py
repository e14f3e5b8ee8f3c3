"""Tests for raw record normalization."""

from datetime import datetime

import pandas as pd
import pytest

from pos_metrics.exceptions import ComputationInputError, DataQualityError
from pos_metrics.records import (
    RECORD_COLUMNS,
    RawRecord,
    Stream,
    empty_records_df,
    filter_streams,
    parse_percent,
    prepare_records_df,
    records_to_frame,
)


class TestStreamParse:
    def test_source_table_names(self) -> None:
        assert Stream.parse("ticket_history") is Stream.SALE
        assert Stream.parse("return_tickets") is Stream.RETURN
        assert Stream.parse("Gift_Card_Tickets ") is Stream.GIFT_CARD

    def test_passthrough(self) -> None:
        assert Stream.parse(Stream.RETURN) is Stream.RETURN

    def test_unknown_stream_raises(self) -> None:
        with pytest.raises(ComputationInputError, match="Unknown stream"):
            Stream.parse("refunds")

    def test_unknown_stream_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Stream.parse("refunds")


class TestPrepareRecords:
    def test_upstream_aliases_are_renamed(self) -> None:
        raw = pd.DataFrame({
            "_id": [10, 11],
            "user_id": ["u1", "u1"],
            "ticket_type": ["ticket_history", "gift_card_tickets"],
            "ticket_number": [" AB-TOR-T000001 ", "AB-TOR-T000002"],
            "sale_date": ["2025-01-15", "2025-01-16"],
            "store_id": ["TOR", "TOR"],
            "transaction_total": [50.0, None],
            "giftcard_amount": [None, 20.0],
        })

        df = prepare_records_df(raw)

        assert list(df.columns[: len(RECORD_COLUMNS)]) == RECORD_COLUMNS
        assert df["record_id"].tolist() == [10, 11]
        assert df["owner_id"].tolist() == ["u1", "u1"]
        assert df["stream"].tolist() == ["sale", "gift_card"]
        assert df["ticket_number"].tolist() == ["AB-TOR-T000001", "AB-TOR-T000002"]
        assert df["amount"].tolist() == [50.0, 20.0]

    def test_missing_required_columns_raise(self) -> None:
        raw = pd.DataFrame({"ticket_number": ["T1"], "stream": ["sale"]})
        with pytest.raises(DataQualityError, match="Missing required record columns"):
            prepare_records_df(raw)

    def test_unknown_stream_rows_are_dropped(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1", "T2"],
            "stream": ["sale", "voided"],
            "sale_date": ["2025-01-15", "2025-01-15"],
            "store_id": ["TOR", "TOR"],
            "amount": [10, 20],
        })

        df = prepare_records_df(raw)

        assert df["ticket_number"].tolist() == ["T1"]

    def test_bad_amounts_become_zero(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1", "T2"],
            "stream": ["sale", "return"],
            "sale_date": ["2025-01-15", "2025-01-15"],
            "store_id": ["TOR", "TOR"],
            "amount": ["abc", None],
        })

        df = prepare_records_df(raw)

        assert df["amount"].tolist() == [0.0, 0.0]

    def test_record_id_defaults_to_position(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1", "T2", "T3"],
            "stream": ["sale"] * 3,
            "sale_date": ["2025-01-15"] * 3,
            "store_id": ["TOR"] * 3,
        })

        df = prepare_records_df(raw)

        assert df["record_id"].tolist() == [0, 1, 2]

    def test_epoch_millisecond_created_at(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1"],
            "stream": ["sale"],
            "sale_date": ["2025-01-15"],
            "store_id": ["TOR"],
            "_creationTime": [1736899200000],
        })

        df = prepare_records_df(raw)

        assert df["created_at"].iloc[0] == pd.Timestamp("2025-01-15")

    def test_unparseable_sale_date_is_nat(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1"],
            "stream": ["sale"],
            "sale_date": ["not a date"],
            "store_id": ["TOR"],
        })

        df = prepare_records_df(raw)

        assert df["sale_date"].isna().all()

    def test_blank_optional_text_is_none(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1"],
            "stream": ["sale"],
            "sale_date": ["2025-01-15"],
            "store_id": ["TOR"],
            "sales_rep": ["   "],
        })

        df = prepare_records_df(raw)

        assert df["sales_rep"].isna().all()

    def test_extra_columns_are_kept_after_record_columns(self) -> None:
        raw = pd.DataFrame({
            "ticket_number": ["T1"],
            "stream": ["sale"],
            "sale_date": ["2025-01-15"],
            "store_id": ["TOR"],
            "payment_method": ["card"],
        })

        df = prepare_records_df(raw)

        assert df.columns[-1] == "payment_method"


def test_records_to_frame() -> None:
    records = [
        RawRecord(
            ticket_number="T1",
            store_id="TOR",
            sale_date=datetime(2025, 1, 15, 10, 30),
            amount=50.0,
            stream=Stream.SALE,
            owner_id="u1",
            record_id=3,
        ),
        RawRecord(
            ticket_number="T1",
            store_id="TOR",
            sale_date=datetime(2025, 1, 15, 11, 0),
            amount=10.0,
            stream=Stream.RETURN,
            owner_id="u1",
            record_id=4,
        ),
    ]

    df = records_to_frame(records)

    assert df["stream"].tolist() == ["sale", "return"]
    assert df["amount"].tolist() == [50.0, 10.0]
    assert df["sale_date"].iloc[0] == pd.Timestamp("2025-01-15 10:30")


def test_records_to_frame_empty() -> None:
    df = records_to_frame([])
    assert df.empty
    assert list(df.columns) == RECORD_COLUMNS


def test_filter_streams() -> None:
    df = prepare_records_df(pd.DataFrame({
        "ticket_number": ["T1", "T1", "T2"],
        "stream": ["sale", "return", "gift_card"],
        "sale_date": ["2025-01-15"] * 3,
        "store_id": ["TOR"] * 3,
    }))

    out = filter_streams(df, Stream.RETURN, "gift_card")

    assert out["stream"].tolist() == ["return", "gift_card"]


def test_empty_records_df_dtypes() -> None:
    df = empty_records_df()
    assert str(df["record_id"].dtype) == "Int64"
    assert pd.api.types.is_datetime64_any_dtype(df["sale_date"])
    assert df["amount"].dtype == "float64"


@pytest.mark.parametrize(
    "value, expected",
    [("42.5%", 42.5), (" 10 % ", 10.0), ("-3%", -3.0), ("n/a", None), ("", None), (None, None)],
)
def test_parse_percent(value, expected) -> None:
    assert parse_percent(value) == expected
