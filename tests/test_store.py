"""Tests for bounded, cursor-paginated record reads."""

from datetime import date
from pathlib import Path

import pandas as pd
import pytest

from pos_metrics.exceptions import DataQualityError
from pos_metrics.records import Stream
from pos_metrics.store import (
    InMemoryRecordStore,
    RecordQuery,
    fetch_records,
    load_records_csv,
)


def _raw(n: int, owner_id: str = "u1", start_id: int = 1) -> pd.DataFrame:
    return pd.DataFrame({
        "record_id": list(range(start_id, start_id + n)),
        "ticket_number": [f"AB-TOR-T{i:06d}" for i in range(start_id, start_id + n)],
        "stream": ["sale"] * n,
        "amount": [10.0] * n,
        "sale_date": ["2025-01-15"] * n,
        "store_id": ["TOR"] * n,
        "owner_id": [owner_id] * n,
    })


class TestFetchRecords:
    def test_reads_every_page(self) -> None:
        store = InMemoryRecordStore(_raw(25))

        batch = fetch_records(store, RecordQuery(owner_id="u1"), page_size=10, hard_limit=100)

        assert len(batch.records) == 25
        assert batch.records["record_id"].tolist() == list(range(1, 26))
        assert batch.pages == 3
        assert batch.truncated is False

    def test_hard_limit_sets_truncated(self) -> None:
        store = InMemoryRecordStore(_raw(25))

        batch = fetch_records(store, RecordQuery(owner_id="u1"), page_size=10, hard_limit=20)

        assert len(batch.records) == 20
        assert batch.truncated is True

    def test_exactly_at_limit_is_not_truncated(self) -> None:
        store = InMemoryRecordStore(_raw(20))

        batch = fetch_records(store, RecordQuery(owner_id="u1"), page_size=10, hard_limit=20)

        assert len(batch.records) == 20
        assert batch.truncated is False

    def test_empty_result(self) -> None:
        store = InMemoryRecordStore(_raw(5))

        batch = fetch_records(store, RecordQuery(owner_id="nobody"), page_size=10, hard_limit=20)

        assert batch.records.empty
        assert batch.truncated is False

    def test_owner_scope(self) -> None:
        store = InMemoryRecordStore(pd.concat([_raw(5, "u1"), _raw(5, "u2", start_id=6)]))

        batch = fetch_records(store, RecordQuery(owner_id="u2"))

        assert set(batch.records["owner_id"]) == {"u2"}
        assert len(batch.records) == 5


class TestQueryFilters:
    @pytest.fixture
    def store(self) -> InMemoryRecordStore:
        return InMemoryRecordStore(pd.DataFrame({
            "record_id": [1, 2, 3, 4],
            "ticket_number": ["T1", "T1", "T2", "T3"],
            "stream": ["sale", "return", "sale", "gift_card"],
            "amount": [10.0, 2.0, 5.0, 1.0],
            "sale_date": ["2025-01-10", "2025-01-11", "2025-01-12", "2025-01-13"],
            "store_id": ["A", "A", "B", "A"],
            "sales_rep": ["Ana", "Ana", "Bea", None],
            "owner_id": ["u1"] * 4,
        }))

    def test_streams(self, store: InMemoryRecordStore) -> None:
        q = RecordQuery(owner_id="u1", streams=(Stream.SALE,))
        assert store.query(q, None, 10).records["record_id"].tolist() == [1, 3]

    def test_store_and_rep(self, store: InMemoryRecordStore) -> None:
        assert store.query(RecordQuery("u1", store_id="A"), None, 10).records["record_id"].tolist() == [1, 2, 4]
        assert store.query(RecordQuery("u1", sales_rep="Bea"), None, 10).records["record_id"].tolist() == [3]

    def test_date_range_is_half_open(self, store: InMemoryRecordStore) -> None:
        q = RecordQuery("u1", start=date(2025, 1, 11), end=date(2025, 1, 13))
        assert store.query(q, None, 10).records["record_id"].tolist() == [2, 3]

    def test_cursor(self, store: InMemoryRecordStore) -> None:
        page = store.query(RecordQuery("u1"), None, 2)
        assert page.records["record_id"].tolist() == [1, 2]
        assert page.next_cursor == 2

        page = store.query(RecordQuery("u1"), page.next_cursor, 2)
        assert page.records["record_id"].tolist() == [3, 4]


class TestInMemoryRecordStore:
    def test_duplicate_ids_raise(self) -> None:
        raw = _raw(2)
        raw["record_id"] = [7, 7]
        with pytest.raises(DataQualityError, match="unique"):
            InMemoryRecordStore(raw)

    def test_missing_ids_are_numbered_after_max(self) -> None:
        raw = _raw(3)
        raw["record_id"] = [5, None, None]

        store = InMemoryRecordStore(raw)

        assert store.records["record_id"].tolist() == [5, 6, 7]

    def test_append_assigns_new_ids(self) -> None:
        store = InMemoryRecordStore(_raw(3))

        store.append(_raw(2, start_id=1))

        assert len(store) == 5
        assert store.records["record_id"].tolist() == [1, 2, 3, 4, 5]

    def test_select_missing_and_update(self) -> None:
        store = InMemoryRecordStore(_raw(5))

        ids = store.select_missing(Stream.SALE, "franchise_id", 3)
        assert ids == [1, 2, 3]

        assert store.update_records(ids, franchise_id="fr-1") == 3
        assert store.select_missing(Stream.SALE, "franchise_id", 10) == [4, 5]

    def test_update_unknown_field_raises(self) -> None:
        store = InMemoryRecordStore(_raw(1))
        with pytest.raises(DataQualityError, match="Unknown record fields"):
            store.update_records([1], nope=1)


def test_from_csv_glob(tmp_path: Path) -> None:
    _raw(2).to_csv(tmp_path / "a.csv", index=False)
    _raw(3, start_id=10).to_csv(tmp_path / "b.csv", index=False)

    store = InMemoryRecordStore.from_csv(str(tmp_path / "*.csv"))

    assert len(store) == 5


def test_load_records_csv_no_match(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="No input files matched"):
        load_records_csv(str(tmp_path / "*.csv"))
