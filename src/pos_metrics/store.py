"""Bounded, cursor-paginated access to raw POS records.

The engine never scans a record store without a bound. Reads go through
``fetch_records``, which pages by ``record_id`` cursor until the store is
exhausted or a hard limit is hit; hitting the limit sets ``truncated`` on the
returned batch instead of silently undercounting.

``InMemoryRecordStore`` is the pandas-backed implementation used by the CLI,
the tests and small deployments. Anything exposing the same ``query`` method
can stand in for it.
"""

from __future__ import annotations

import glob
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Protocol, Sequence

import pandas as pd

from pos_metrics.config import EngineConfig
from pos_metrics.exceptions import DataQualityError
from pos_metrics.records import Stream, empty_records_df, prepare_records_df
from pos_metrics.window import Window

logger = logging.getLogger(__name__)

ALL_STREAMS = (Stream.SALE, Stream.RETURN, Stream.GIFT_CARD)


@dataclass(frozen=True)
class RecordQuery:
    """Filter for a record read.

    Attributes:
        owner_id: Owner scope. None reads every owner (admin jobs only).
        streams: Streams to include.
        store_id: Optional store filter.
        sales_rep: Optional rep filter.
        start: Optional first sale day (inclusive).
        end: Optional last sale day (exclusive).
    """

    owner_id: Optional[str]
    streams: tuple[Stream, ...] = ALL_STREAMS
    store_id: Optional[str] = None
    sales_rep: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None

    @classmethod
    def for_window(
        cls,
        owner_id: Optional[str],
        window: Window,
        store_id: Optional[str] = None,
        sales_rep: Optional[str] = None,
    ) -> RecordQuery:
        return cls(
            owner_id=owner_id,
            store_id=store_id,
            sales_rep=sales_rep,
            start=window.start,
            end=window.end,
        )


@dataclass
class RecordPage:
    """One page of records plus the cursor for the next page (None when done)."""

    records: pd.DataFrame
    next_cursor: Optional[int]


@dataclass
class RecordBatch:
    """Records accumulated across pages.

    Attributes:
        records: Normalized record DataFrame.
        truncated: True if the hard limit stopped the read before exhaustion.
        pages: Number of pages read.
    """

    records: pd.DataFrame
    truncated: bool = False
    pages: int = 0


class RecordStore(Protocol):
    """Anything that can serve paginated record reads."""

    def query(self, q: RecordQuery, cursor: Optional[int], limit: int) -> RecordPage: ...


def fetch_records(
    store: RecordStore,
    q: RecordQuery,
    page_size: int = 1000,
    hard_limit: int = 50000,
) -> RecordBatch:
    """Read every record matching ``q``, page by page, up to ``hard_limit``.

    Args:
        store: Record store to read from.
        q: Query filter.
        page_size: Records requested per page.
        hard_limit: Maximum records accumulated.

    Returns:
        RecordBatch. ``truncated`` is True only when more matching records
        exist beyond ``hard_limit``.

    """
    pages: list[pd.DataFrame] = []
    fetched = 0
    cursor: Optional[int] = None
    n_pages = 0
    truncated = False

    while True:
        limit = min(page_size, hard_limit - fetched)
        page = store.query(q, cursor, limit)
        n_pages += 1
        if not page.records.empty:
            pages.append(page.records)
            fetched += len(page.records)
        cursor = page.next_cursor
        if cursor is None:
            break
        if fetched >= hard_limit:
            # Probe for one more record to tell "exactly at the limit" from "cut off"
            probe = store.query(q, cursor, 1)
            truncated = not probe.records.empty
            break

    if truncated:
        logger.warning(
            "Record read truncated at %d records (owner=%s, streams=%s)",
            hard_limit,
            q.owner_id,
            [s.value for s in q.streams],
        )

    records = pd.concat(pages, ignore_index=True) if pages else empty_records_df()
    logger.debug("Fetched %d records in %d page(s)", len(records), n_pages)
    return RecordBatch(records=records, truncated=truncated, pages=n_pages)


def read_window(
    store: RecordStore,
    owner_id: Optional[str],
    window: Window,
    config: EngineConfig,
    store_id: Optional[str] = None,
    sales_rep: Optional[str] = None,
) -> RecordBatch:
    """Read all three streams for an owner and window with the configured bounds."""
    q = RecordQuery.for_window(owner_id, window, store_id=store_id, sales_rep=sales_rep)
    return fetch_records(store, q, page_size=config.page_size, hard_limit=config.hard_limit)


def load_records_csv(paths: str | Sequence[str]) -> pd.DataFrame:
    """Read one or many record CSVs (supports globs, including recursive with **).

    Raises:
        FileNotFoundError: If no file matches.

    """
    specs = [paths] if isinstance(paths, str) else list(paths)
    files: list[str] = []
    for p in specs:
        files.extend(sorted(glob.glob(p, recursive="**" in p)))
    if not files:
        raise FileNotFoundError(f"No input files matched: {specs!r}")
    logger.info("Reading %d CSV file(s)...", len(files))
    dfs = [pd.read_csv(f, encoding="utf-8", low_memory=False) for f in files]
    return dfs[0] if len(dfs) == 1 else pd.concat(dfs, ignore_index=True)


class InMemoryRecordStore:
    """Pandas-backed record store.

    Records are normalized on the way in and kept ordered by ``record_id``,
    which is the pagination cursor. Ids must be unique; rows without an id are
    numbered after the current maximum.

    Example:
        >>> store = InMemoryRecordStore.from_csv("data/records/*.csv")
        >>> batch = fetch_records(store, RecordQuery(owner_id="u1"))

    """

    def __init__(self, records: pd.DataFrame | None = None) -> None:
        self._df = empty_records_df()
        if records is not None and not records.empty:
            self._df = self._assign_ids(prepare_records_df(records), start=0)

    @classmethod
    def from_csv(cls, paths: str | Sequence[str]) -> InMemoryRecordStore:
        return cls(load_records_csv(paths))

    def __len__(self) -> int:
        return len(self._df)

    @property
    def records(self) -> pd.DataFrame:
        """A copy of every stored record."""
        return self._df.copy()

    @staticmethod
    def _assign_ids(df: pd.DataFrame, start: int) -> pd.DataFrame:
        ids = df["record_id"]
        missing = ids.isna()
        if missing.any():
            base = max(start, int(ids.max()) + 1 if ids.notna().any() else start)
            df.loc[missing, "record_id"] = list(range(base, base + int(missing.sum())))
        if df["record_id"].duplicated().any():
            dupes = df.loc[df["record_id"].duplicated(), "record_id"].head(5).tolist()
            raise DataQualityError(f"record_id values must be unique, duplicates: {dupes}")
        return df.sort_values("record_id", kind="mergesort").reset_index(drop=True)

    def append(self, records: pd.DataFrame) -> pd.DataFrame:
        """Ingest new records. Ids are assigned after the current maximum.

        Returns:
            The normalized appended rows.

        """
        new = prepare_records_df(records)
        next_id = int(self._df["record_id"].max()) + 1 if not self._df.empty else 0
        new["record_id"] = pd.array(range(next_id, next_id + len(new)), dtype="Int64")
        self._df = self._assign_ids(pd.concat([self._df, new], ignore_index=True), start=0)
        logger.debug("Appended %d records (total %d)", len(new), len(self._df))
        return new

    def query(self, q: RecordQuery, cursor: Optional[int], limit: int) -> RecordPage:
        df = self._df
        mask = df["stream"].isin([s.value for s in q.streams])
        if q.owner_id is not None:
            mask &= df["owner_id"] == q.owner_id
        if q.store_id is not None:
            mask &= df["store_id"] == q.store_id
        if q.sales_rep is not None:
            mask &= df["sales_rep"] == q.sales_rep
        if q.start is not None:
            mask &= df["sale_date"] >= pd.Timestamp(q.start)
        if q.end is not None:
            mask &= df["sale_date"] < pd.Timestamp(q.end)
        if cursor is not None:
            mask &= df["record_id"] > cursor

        page = df[mask.fillna(False)].head(limit).copy()
        next_cursor = int(page["record_id"].iloc[-1]) if len(page) == limit and limit > 0 else None
        return RecordPage(records=page.reset_index(drop=True), next_cursor=next_cursor)

    def select_missing(self, stream: Stream, field_name: str, limit: int) -> list[int]:
        """Ids of up to ``limit`` records of ``stream`` whose field is unset."""
        df = self._df
        if field_name not in df.columns:
            raise DataQualityError(f"Unknown record field '{field_name}'")
        mask = (df["stream"] == Stream.parse(stream).value) & df[field_name].isna()
        return [int(i) for i in df.loc[mask, "record_id"].head(limit)]

    def update_records(self, record_ids: Sequence[int], **values: Any) -> int:
        """Set fields on the given records. Returns the number of rows updated.

        The stored frame is replaced as a whole, so concurrent readers see
        either the old or the new state.
        """
        unknown = [k for k in values if k not in self._df.columns]
        if unknown:
            raise DataQualityError(f"Unknown record fields: {unknown}")
        df = self._df.copy()
        mask = df["record_id"].isin(list(record_ids))
        for name, value in values.items():
            df.loc[mask, name] = value
        self._df = df
        return int(mask.sum())
