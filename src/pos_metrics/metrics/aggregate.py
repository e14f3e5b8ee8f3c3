"""Windowed sales metrics over canonical tickets.

Revenue, transaction count and average ticket come from canonical tickets
(one total per ticket). Return rate and gift-card sales come from the raw
return and gift-card records in the window, because those streams contribute
even when a ticket's canonical total came from the sale stream.

All functions here are pure: the same records and window always produce the
same metrics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pandas as pd

from pos_metrics.records import STREAM_PRECEDENCE, Stream, parse_percent
from pos_metrics.tickets import canonicalize
from pos_metrics.window import Window

logger = logging.getLogger(__name__)

TREND_COLUMNS = ["date", "revenue", "transactions"]
PRODUCT_COLUMNS = ["item_id", "name", "revenue", "qty", "transaction_count"]
STORE_COLUMNS = ["store_id", "revenue", "transaction_count", "avg_ticket", "is_underperforming"]
REP_COLUMNS = [
    "sales_rep",
    "revenue",
    "transaction_count",
    "avg_ticket",
    "store_count",
    "is_underperforming",
]


@dataclass
class WindowMetrics:
    """Metrics for one window.

    Attributes:
        window: The half-open window the metrics cover.
        revenue: Sum of canonical totals.
        transaction_count: Number of canonical tickets.
        avg_ticket: revenue / transaction_count, or 0.
        return_total: Sum of return amounts in the window.
        return_rate: return_total / revenue * 100, or 0.
        giftcard_sales: Sum of gift-card amounts in the window.
        gross_profit_percent: Mean gross-profit percent over canonical tickets
            (tickets without one count as 0).
        total_sales_reps: Distinct reps on any record in the window.
        total_stores: Distinct stores on any record in the window.
        underperforming_stores: Stores flagged in store_stats.
        underperforming_reps: Reps flagged in rep_stats.
        trend: Per-day revenue and transactions, ascending by date.
        top_products: Best-selling products by line revenue.
        store_stats: Per-store breakdown, descending by revenue.
        rep_stats: Per-rep breakdown, descending by revenue.
    """

    window: Window
    revenue: float = 0.0
    transaction_count: int = 0
    avg_ticket: float = 0.0
    return_total: float = 0.0
    return_rate: float = 0.0
    giftcard_sales: float = 0.0
    gross_profit_percent: float = 0.0
    total_sales_reps: int = 0
    total_stores: int = 0
    underperforming_stores: int = 0
    underperforming_reps: int = 0
    trend: list[dict] = field(default_factory=list)
    top_products: list[dict] = field(default_factory=list)
    store_stats: list[dict] = field(default_factory=list)
    rep_stats: list[dict] = field(default_factory=list)


def _records(df: pd.DataFrame) -> list[dict]:
    """DataFrame -> list of plain-Python dicts (JSON friendly)."""
    return [
        {k: (v.item() if hasattr(v, "item") else v) for k, v in row.items()}
        for row in df.to_dict(orient="records")
    ]


def daily_trend(tickets: pd.DataFrame) -> pd.DataFrame:
    """Revenue and transaction count per calendar day, ascending.

    Examples:
        >>> tickets = pd.DataFrame({
        ...     "sale_date": pd.to_datetime(["2025-01-15 10:00", "2025-01-15 18:30", "2025-01-16"]),
        ...     "canonical_total": [50.0, 25.0, 10.0],
        ... })
        >>> daily_trend(tickets).values.tolist()
        [['2025-01-15', 75.0, 2], ['2025-01-16', 10.0, 1]]

    """
    if tickets.empty:
        return pd.DataFrame(columns=TREND_COLUMNS)
    day = tickets["sale_date"].dt.strftime("%Y-%m-%d")
    trend = (
        tickets.assign(date=day)
        .groupby("date", sort=True)
        .agg(revenue=("canonical_total", "sum"), transactions=("canonical_total", "size"))
        .reset_index()
    )
    trend["transactions"] = trend["transactions"].astype(int)
    return trend[TREND_COLUMNS]


def top_products(sale_lines: pd.DataFrame, top_n: int = 10) -> pd.DataFrame:
    """Rank products by line revenue.

    Only lines with an item number count. Every line is summed, including
    repeat lines of the same item on one ticket.

    Args:
        sale_lines: Sale-stream records carrying item_number, product_name,
            qty_sold and line_amount.
        top_n: Number of products kept.

    Returns:
        DataFrame with PRODUCT_COLUMNS, descending by revenue.

    """
    lines = sale_lines[sale_lines["item_number"].notna()]
    if lines.empty:
        return pd.DataFrame(columns=PRODUCT_COLUMNS)
    products = (
        lines.groupby(["item_number", "product_name"], dropna=False)
        .agg(
            revenue=("line_amount", "sum"),
            qty=("qty_sold", "sum"),
            transaction_count=("ticket_number", "nunique"),
        )
        .reset_index()
        .rename(columns={"item_number": "item_id", "product_name": "name"})
    )
    products["name"] = [None if pd.isna(name) else name for name in products["name"]]
    products = products.sort_values(["revenue", "item_id"], ascending=[False, True], kind="mergesort")
    return products.head(top_n).reset_index(drop=True)[PRODUCT_COLUMNS]


def store_breakdown(tickets: pd.DataFrame, benchmark: float = 70.0) -> pd.DataFrame:
    """Revenue, ticket count and average ticket per store, descending by revenue."""
    if tickets.empty:
        return pd.DataFrame(columns=STORE_COLUMNS)
    stats = (
        tickets.groupby("store_id")
        .agg(revenue=("canonical_total", "sum"), transaction_count=("ticket_number", "size"))
        .reset_index()
    )
    stats["avg_ticket"] = stats["revenue"] / stats["transaction_count"]
    stats["is_underperforming"] = (stats["avg_ticket"] > 0) & (stats["avg_ticket"] < benchmark)
    stats = stats.sort_values(["revenue", "store_id"], ascending=[False, True], kind="mergesort")
    return stats.reset_index(drop=True)[STORE_COLUMNS]


def rep_breakdown(tickets: pd.DataFrame, benchmark: float = 70.0) -> pd.DataFrame:
    """Per-rep revenue, tickets, average ticket and store count.

    Tickets without a rep are not attributed to anyone.
    """
    attributed = tickets[tickets["sales_rep"].notna()]
    if attributed.empty:
        return pd.DataFrame(columns=REP_COLUMNS)
    stats = (
        attributed.groupby("sales_rep")
        .agg(
            revenue=("canonical_total", "sum"),
            transaction_count=("ticket_number", "size"),
            store_count=("store_id", "nunique"),
        )
        .reset_index()
    )
    stats["avg_ticket"] = stats["revenue"] / stats["transaction_count"]
    stats["is_underperforming"] = (stats["avg_ticket"] > 0) & (stats["avg_ticket"] < benchmark)
    stats = stats.sort_values(["revenue", "sales_rep"], ascending=[False, True], kind="mergesort")
    return stats.reset_index(drop=True)[REP_COLUMNS]


def gross_profit_percent(records: pd.DataFrame, ticket_count: int) -> float:
    """Mean gross-profit percent per canonical ticket.

    A ticket's percent comes from its highest-precedence stream (sale, then
    return), lowest record_id first. Gift-card-only tickets and tickets
    without a parseable percent add 0 but still count in the denominator.
    """
    if ticket_count == 0:
        return 0.0
    rows = records[
        records["stream"].isin([Stream.SALE.value, Stream.RETURN.value])
        & (records["ticket_number"] != "")
    ]
    if rows.empty:
        return 0.0
    rows = rows.assign(
        _gp=rows["gross_profit"].map(parse_percent),
        _rank=rows["stream"].map(STREAM_PRECEDENCE),
    )
    best_rank = rows.groupby("ticket_number")["_rank"].transform("min")
    rows = rows[(rows["_rank"] == best_rank) & rows["_gp"].notna()]
    per_ticket = rows.sort_values("record_id", kind="mergesort").drop_duplicates("ticket_number")
    return float(per_ticket["_gp"].astype("float64").sum()) / ticket_count


def aggregate_metrics(
    records: pd.DataFrame,
    window: Window,
    top_n: int = 10,
    benchmark: float = 70.0,
) -> WindowMetrics:
    """Compute all window metrics from normalized raw records.

    Args:
        records: Normalized records (any streams, may extend past the window).
        window: Half-open window [start, end) on sale_date.
        top_n: Number of top products kept.
        benchmark: Average-ticket threshold for underperformance flags.

    Returns:
        WindowMetrics for the window.

    """
    in_window = records[window.mask(records["sale_date"])]
    tickets = canonicalize(in_window)

    revenue = float(tickets["canonical_total"].sum())
    count = len(tickets)
    avg_ticket = revenue / count if count > 0 else 0.0

    return_total = float(in_window.loc[in_window["stream"] == Stream.RETURN.value, "amount"].sum())
    return_rate = return_total / revenue * 100 if revenue > 0 else 0.0
    giftcard_sales = float(
        in_window.loc[in_window["stream"] == Stream.GIFT_CARD.value, "amount"].sum()
    )

    sale_lines = in_window[in_window["stream"] == Stream.SALE.value]
    stores = store_breakdown(tickets, benchmark)
    reps = rep_breakdown(tickets, benchmark)
    store_ids = in_window["store_id"]

    metrics = WindowMetrics(
        window=window,
        revenue=revenue,
        transaction_count=count,
        avg_ticket=avg_ticket,
        return_total=return_total,
        return_rate=return_rate,
        giftcard_sales=giftcard_sales,
        gross_profit_percent=gross_profit_percent(in_window, count),
        total_sales_reps=int(in_window["sales_rep"].nunique()),
        total_stores=int(store_ids[store_ids != ""].nunique()),
        underperforming_stores=int(stores["is_underperforming"].sum()),
        underperforming_reps=int(reps["is_underperforming"].sum()),
        trend=_records(daily_trend(tickets)),
        top_products=_records(top_products(sale_lines, top_n)),
        store_stats=_records(stores),
        rep_stats=_records(reps),
    )
    logger.debug(
        "Window %s..%s: revenue=%.2f tickets=%d",
        window.start,
        window.end,
        metrics.revenue,
        metrics.transaction_count,
    )
    return metrics
