"""Public API for metrics snapshots.

A MetricsSnapshot is what dashboards and reports consume: the current
window's metrics, deltas against the preceding window, the data hash of the
records it was computed from, and when it was computed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pos_metrics.config import EngineConfig
from pos_metrics.metrics.compare import ComparisonResult, Delta, run_comparison
from pos_metrics.store import RecordBatch, RecordStore
from pos_metrics.window import Window

logger = logging.getLogger(__name__)


@dataclass
class MetricsSnapshot:
    """Cached metrics for one owner and window.

    Attributes:
        owner_id: Owner the snapshot belongs to.
        window: Window covered.
        revenue: Sum of canonical ticket totals.
        transaction_count: Canonical tickets in the window.
        avg_ticket: revenue / transaction_count, or 0.
        return_total: Sum of return amounts.
        return_rate: return_total / revenue * 100, or 0.
        giftcard_sales: Sum of gift-card amounts.
        gross_profit_percent: Mean gross-profit percent per ticket.
        total_sales_reps: Distinct reps in the window.
        total_stores: Distinct stores in the window.
        underperforming_stores: Stores below the average-ticket benchmark.
        underperforming_reps: Reps below the average-ticket benchmark.
        deltas: revenue / transactions / avg_ticket -> Delta or None.
        trend: Per-day revenue and transactions.
        top_products: Best-selling products.
        store_stats: Per-store breakdown.
        rep_stats: Per-rep breakdown.
        truncated: A raw read hit its hard limit; figures may undercount.
        data_hash: Digest of the records the snapshot was computed from.
        computed_at: UTC timestamp of the computation.
    """

    owner_id: str
    window: Window
    revenue: float
    transaction_count: int
    avg_ticket: float
    return_total: float
    return_rate: float
    giftcard_sales: float
    gross_profit_percent: float = 0.0
    total_sales_reps: int = 0
    total_stores: int = 0
    underperforming_stores: int = 0
    underperforming_reps: int = 0
    deltas: dict[str, Optional[Delta]] = field(default_factory=dict)
    trend: list[dict] = field(default_factory=list)
    top_products: list[dict] = field(default_factory=list)
    store_stats: list[dict] = field(default_factory=list)
    rep_stats: list[dict] = field(default_factory=list)
    truncated: bool = False
    data_hash: str = ""
    computed_at: str = ""

    @classmethod
    def from_comparison(
        cls,
        owner_id: str,
        comparison: ComparisonResult,
        data_hash: str,
        computed_at: Optional[datetime] = None,
    ) -> MetricsSnapshot:
        current = comparison.current
        computed_at = computed_at or datetime.now(timezone.utc)
        return cls(
            owner_id=owner_id,
            window=current.window,
            revenue=current.revenue,
            transaction_count=current.transaction_count,
            avg_ticket=current.avg_ticket,
            return_total=current.return_total,
            return_rate=current.return_rate,
            giftcard_sales=current.giftcard_sales,
            gross_profit_percent=current.gross_profit_percent,
            total_sales_reps=current.total_sales_reps,
            total_stores=current.total_stores,
            underperforming_stores=current.underperforming_stores,
            underperforming_reps=current.underperforming_reps,
            deltas=dict(comparison.deltas),
            trend=current.trend,
            top_products=current.top_products,
            store_stats=current.store_stats,
            rep_stats=current.rep_stats,
            truncated=comparison.truncated,
            data_hash=data_hash,
            computed_at=computed_at.isoformat(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "window": self.window.to_dict(),
            "revenue": self.revenue,
            "transaction_count": self.transaction_count,
            "avg_ticket": self.avg_ticket,
            "return_total": self.return_total,
            "return_rate": self.return_rate,
            "giftcard_sales": self.giftcard_sales,
            "gross_profit_percent": self.gross_profit_percent,
            "total_sales_reps": self.total_sales_reps,
            "total_stores": self.total_stores,
            "underperforming_stores": self.underperforming_stores,
            "underperforming_reps": self.underperforming_reps,
            "deltas": {k: (d.to_dict() if d else None) for k, d in self.deltas.items()},
            "trend": self.trend,
            "top_products": self.top_products,
            "store_stats": self.store_stats,
            "rep_stats": self.rep_stats,
            "truncated": self.truncated,
            "data_hash": self.data_hash,
            "computed_at": self.computed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetricsSnapshot:
        deltas = {
            k: (Delta(value=d["value"], type=d["type"]) if d else None)
            for k, d in data.get("deltas", {}).items()
        }
        return cls(
            owner_id=data["owner_id"],
            window=Window.from_dict(data["window"]),
            revenue=data["revenue"],
            transaction_count=data["transaction_count"],
            avg_ticket=data["avg_ticket"],
            return_total=data.get("return_total", 0.0),
            return_rate=data["return_rate"],
            giftcard_sales=data["giftcard_sales"],
            gross_profit_percent=data.get("gross_profit_percent", 0.0),
            total_sales_reps=data.get("total_sales_reps", 0),
            total_stores=data.get("total_stores", 0),
            underperforming_stores=data.get("underperforming_stores", 0),
            underperforming_reps=data.get("underperforming_reps", 0),
            deltas=deltas,
            trend=data.get("trend", []),
            top_products=data.get("top_products", []),
            store_stats=data.get("store_stats", []),
            rep_stats=data.get("rep_stats", []),
            truncated=data.get("truncated", False),
            data_hash=data.get("data_hash", ""),
            computed_at=data.get("computed_at", ""),
        )


def build_snapshot(
    store: RecordStore,
    owner_id: str,
    window: Window,
    config: EngineConfig,
    current_batch: Optional[RecordBatch] = None,
    previous_batch: Optional[RecordBatch] = None,
    data_hash: str = "",
) -> MetricsSnapshot:
    """Compute a fresh MetricsSnapshot for an owner and window.

    This function:
    - reads the current and previous windows (bounded),
    - aggregates both and derives deltas,
    - does NOT write anything; storing is the cache's job.

    Args:
        store: Record store.
        owner_id: Owner scope.
        window: Current window.
        config: Engine configuration.
        current_batch: Current-window records already read by the caller.
        previous_batch: Previous-window records already read by the caller.
        data_hash: Hash of the records the snapshot depends on, recorded on it.

    Returns:
        MetricsSnapshot.

    """
    comparison = run_comparison(
        store, owner_id, window, config, current_batch=current_batch, previous_batch=previous_batch
    )
    snapshot = MetricsSnapshot.from_comparison(owner_id, comparison, data_hash)
    logger.info(
        "Computed snapshot for owner %s, %s..%s: revenue=%.2f tickets=%d",
        owner_id,
        window.start,
        window.end,
        snapshot.revenue,
        snapshot.transaction_count,
    )
    return snapshot
