"""Raw record schema shared by every component.

Raw POS records arrive in three overlapping streams (sales, returns and
gift-card redemptions). Each stream names its monetary column differently;
this module folds them into one normalized DataFrame layout:

    record_id      store-assigned ingestion sequence (tie-break key)
    ticket_number  business key, not unique across streams
    store_id       store code
    sale_date      datetime of the sale
    sales_rep      optional rep name
    amount         ticket-level amount (transaction_total / giftcard_amount)
    stream         "sale" | "return" | "gift_card"
    owner_id       caller-scoped owner
    item_number, product_name, qty_sold, line_amount
                   optional per-line product attribution
    gross_profit   optional percent string ("42.5%")
    created_at     optional ingestion timestamp
    franchise_id   optional scoping field (see pos_metrics.migrations)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from pos_metrics.exceptions import ComputationInputError, DataQualityError

logger = logging.getLogger(__name__)


class Stream(str, Enum):
    """The three raw record streams, in precedence order."""

    SALE = "sale"
    RETURN = "return"
    GIFT_CARD = "gift_card"

    @classmethod
    def parse(cls, value: str | Stream) -> Stream:
        """Resolve a stream name or source table name to a Stream.

        Raises:
            ComputationInputError: If the name is not a known stream.

        Examples:
            >>> Stream.parse("return_tickets")
            <Stream.RETURN: 'return'>

        """
        if isinstance(value, Stream):
            return value
        key = str(value).strip().lower()
        stream = STREAM_ALIASES.get(key)
        if stream is None:
            raise ComputationInputError(f"Unknown stream '{value}'")
        return stream


# Precedence rank used by the canonicalizer (lower wins)
STREAM_PRECEDENCE = {Stream.SALE.value: 0, Stream.RETURN.value: 1, Stream.GIFT_CARD.value: 2}

# Source table names as exported by the POS, mapped to streams
STREAM_ALIASES = {
    "sale": Stream.SALE,
    "sales": Stream.SALE,
    "ticket_history": Stream.SALE,
    "return": Stream.RETURN,
    "returns": Stream.RETURN,
    "return_tickets": Stream.RETURN,
    "gift_card": Stream.GIFT_CARD,
    "giftcard": Stream.GIFT_CARD,
    "gift_cards": Stream.GIFT_CARD,
    "gift_card_tickets": Stream.GIFT_CARD,
}

REQUIRED_COLUMNS = ["ticket_number", "stream", "sale_date", "store_id"]

RECORD_COLUMNS = [
    "record_id",
    "ticket_number",
    "store_id",
    "sale_date",
    "sales_rep",
    "amount",
    "stream",
    "owner_id",
    "item_number",
    "product_name",
    "qty_sold",
    "line_amount",
    "gross_profit",
    "created_at",
    "franchise_id",
]

# Column names used by the upstream exports
COLUMN_ALIASES = {
    "_id": "record_id",
    "_creationTime": "created_at",
    "user_id": "owner_id",
    "franchiseId": "franchise_id",
    "ticket_type": "stream",
}

# Stream-specific amount columns
STREAM_AMOUNT_COLUMNS = {
    "transaction_total": [Stream.SALE.value, Stream.RETURN.value],
    "giftcard_amount": [Stream.GIFT_CARD.value],
}


@dataclass(frozen=True)
class RawRecord:
    """One raw POS record as ingested. Never mutated by the engine."""

    ticket_number: str
    store_id: str
    sale_date: datetime
    amount: float
    stream: Stream
    owner_id: str
    sales_rep: Optional[str] = None
    record_id: Optional[int] = None
    item_number: Optional[str] = None
    product_name: Optional[str] = None
    qty_sold: Optional[float] = None
    line_amount: Optional[float] = None
    gross_profit: Optional[str] = None
    created_at: Optional[datetime] = None
    franchise_id: Optional[str] = None


def records_to_frame(records: Iterable[RawRecord]) -> pd.DataFrame:
    """Build a normalized record DataFrame from RawRecord objects."""
    rows = []
    for record in records:
        row = asdict(record)
        row["stream"] = Stream.parse(record.stream).value
        rows.append(row)
    if not rows:
        return empty_records_df()
    return prepare_records_df(pd.DataFrame(rows))


def empty_records_df() -> pd.DataFrame:
    """Return an empty DataFrame with the normalized record layout."""
    df = pd.DataFrame({col: pd.Series(dtype="object") for col in RECORD_COLUMNS})
    df["record_id"] = df["record_id"].astype("Int64")
    df["amount"] = df["amount"].astype("float64")
    df["qty_sold"] = df["qty_sold"].astype("float64")
    df["line_amount"] = df["line_amount"].astype("float64")
    df["sale_date"] = pd.to_datetime(df["sale_date"])
    df["created_at"] = pd.to_datetime(df["created_at"])
    return df


def _clean_text(series: pd.Series, empty_as_na: bool) -> pd.Series:
    """Strip string values; optionally turn blanks into NA."""
    out = series.where(series.notna(), "").astype(str).str.strip()
    if empty_as_na:
        out = out.where(out != "", None)
    return out


def _parse_datetimes(series: pd.Series) -> pd.Series:
    """Parse datetimes leniently; unparseable values become NaT (tz-naive, UTC)."""
    parsed = pd.to_datetime(series, errors="coerce", utc=True)
    return parsed.dt.tz_localize(None)


def parse_percent(value) -> Optional[float]:
    """Parse a gross-profit string such as ``"42.5%"``; None if unparseable.

    Examples:
        >>> parse_percent("42.5%")
        42.5
        >>> parse_percent("n/a") is None
        True

    """
    if value is None or pd.isna(value):
        return None
    try:
        result = float(str(value).replace("%", "").strip())
    except ValueError:
        return None
    return None if pd.isna(result) else result


def prepare_records_df(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize a raw record DataFrame to the shared layout.

    - Renames upstream column aliases (user_id -> owner_id, ...).
    - Maps stream/table names to Stream values; rows with an unknown stream
      are dropped with a warning.
    - Derives ``amount`` from the stream-specific column when missing.
      Non-numeric or missing amounts become 0.0, never an error.
    - Parses ``sale_date`` and ``created_at`` (unparseable -> NaT).
    - Assigns ``record_id`` from input position when absent.

    Args:
        df: DataFrame with at least REQUIRED_COLUMNS (or their aliases).

    Returns:
        New DataFrame with all RECORD_COLUMNS, in that order, plus any extra
        input columns after them.

    Raises:
        DataQualityError: If required columns are missing.

    Examples:
        >>> raw = pd.DataFrame({
        ...     "ticket_number": ["AB-TO-T000001"],
        ...     "ticket_type": ["gift_card_tickets"],
        ...     "sale_date": ["2025-01-15"],
        ...     "store_id": ["TO"],
        ...     "giftcard_amount": ["20"],
        ... })
        >>> prepare_records_df(raw)["amount"].tolist()
        [20.0]

    """
    df = df.rename(columns={k: v for k, v in COLUMN_ALIASES.items() if k in df.columns})

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise DataQualityError(
            f"Missing required record columns: {missing}. Required: {REQUIRED_COLUMNS}"
        )

    df = df.reset_index(drop=True).copy()

    if "record_id" in df.columns:
        df["record_id"] = pd.to_numeric(df["record_id"], errors="coerce").astype("Int64")
    else:
        df["record_id"] = pd.array(np.arange(len(df)), dtype="Int64")

    stream_key = _clean_text(df["stream"].astype(object), empty_as_na=False).str.lower()
    df["stream"] = stream_key.map(lambda s: STREAM_ALIASES[s].value if s in STREAM_ALIASES else None)
    unknown = df["stream"].isna()
    if unknown.any():
        logger.warning(
            "Dropping %d record(s) with unknown stream: %s",
            int(unknown.sum()),
            sorted(stream_key[unknown].unique().tolist())[:10],
        )
        df = df[~unknown].reset_index(drop=True)

    # Amount: explicit column first, then the stream-specific source column
    if "amount" in df.columns:
        amount = pd.to_numeric(df["amount"], errors="coerce")
    else:
        amount = pd.Series(np.nan, index=df.index, dtype="float64")
    for source_col, streams in STREAM_AMOUNT_COLUMNS.items():
        if source_col in df.columns:
            source = pd.to_numeric(df[source_col], errors="coerce")
            mask = amount.isna() & df["stream"].isin(streams)
            amount = amount.where(~mask, source)
    df["amount"] = amount.fillna(0.0).astype("float64")

    df["ticket_number"] = _clean_text(df["ticket_number"], empty_as_na=False)
    df["store_id"] = _clean_text(df["store_id"], empty_as_na=False)
    df["sale_date"] = _parse_datetimes(df["sale_date"])

    for col in ["sales_rep", "owner_id", "item_number", "product_name", "gross_profit", "franchise_id"]:
        if col in df.columns:
            df[col] = _clean_text(df[col], empty_as_na=True)
        else:
            df[col] = None

    for col in ["qty_sold", "line_amount"]:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype("float64")
        else:
            df[col] = np.nan

    if "created_at" in df.columns:
        created = df["created_at"]
        if pd.api.types.is_numeric_dtype(created):
            # Epoch milliseconds, as exported by the document store
            df["created_at"] = pd.to_datetime(created, unit="ms", errors="coerce")
        else:
            df["created_at"] = _parse_datetimes(created)
    else:
        df["created_at"] = pd.NaT

    bad_dates = int(df["sale_date"].isna().sum())
    if bad_dates:
        logger.warning("%d record(s) have an unparseable sale_date", bad_dates)

    extra = [c for c in df.columns if c not in RECORD_COLUMNS]
    return df[RECORD_COLUMNS + extra]


def filter_streams(df: pd.DataFrame, *streams: Stream) -> pd.DataFrame:
    """Return the rows of df that belong to any of the given streams."""
    values = [Stream.parse(s).value for s in streams]
    return df[df["stream"].isin(values)]
