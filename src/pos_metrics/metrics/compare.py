"""Period-over-period comparison.

The previous window is the window of equal length immediately before the
current one. Deltas are percentages rounded to one decimal, and are ``None``
whenever the previous value is 0, so there is never a delta against a
baseline that does not exist.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from pos_metrics.config import EngineConfig
from pos_metrics.metrics.aggregate import WindowMetrics, aggregate_metrics
from pos_metrics.store import RecordBatch, RecordStore, read_window
from pos_metrics.window import Window

logger = logging.getLogger(__name__)

DELTA_METRICS = {
    "revenue": "revenue",
    "transactions": "transaction_count",
    "avg_ticket": "avg_ticket",
}


@dataclass(frozen=True)
class Delta:
    """Signed percentage change and its direction ("positive" or "negative")."""

    value: float
    type: str

    def to_dict(self) -> dict:
        return {"value": self.value, "type": self.type}


@dataclass
class ComparisonResult:
    """Current and previous window metrics plus deltas.

    Attributes:
        current: Metrics for the requested window.
        previous: Metrics for the preceding window of equal length.
        deltas: Metric name -> Delta, or None when there is no baseline.
        truncated: Either window's read hit its hard limit.
    """

    current: WindowMetrics
    previous: WindowMetrics
    deltas: dict[str, Optional[Delta]] = field(default_factory=dict)
    truncated: bool = False


def percent_delta(current: float, previous: float) -> Optional[Delta]:
    """Percentage change from previous to current.

    Examples:
        >>> percent_delta(150, 100)
        Delta(value=50.0, type='positive')
        >>> percent_delta(80, 100)
        Delta(value=-20.0, type='negative')
        >>> percent_delta(10, 0) is None
        True

    """
    if previous == 0:
        return None
    value = round((current - previous) / previous * 100, 1)
    if value == 0:
        value = 0.0  # normalize -0.0
    return Delta(value=value, type="positive" if value >= 0 else "negative")


def compute_deltas(current: WindowMetrics, previous: WindowMetrics) -> dict[str, Optional[Delta]]:
    """Deltas for revenue, transactions and avg_ticket."""
    return {
        name: percent_delta(getattr(current, attr), getattr(previous, attr))
        for name, attr in DELTA_METRICS.items()
    }


def compare_windows(
    records: pd.DataFrame,
    window: Window,
    top_n: int = 10,
    benchmark: float = 70.0,
    parallel: bool = False,
) -> ComparisonResult:
    """Aggregate ``window`` and its predecessor from one record set.

    Args:
        records: Normalized records covering both windows.
        window: Current window.
        top_n: Number of top products kept.
        benchmark: Average-ticket threshold for underperformance flags.
        parallel: Aggregate the two windows on a thread pool.

    Returns:
        ComparisonResult.

    """
    previous_window = window.previous()
    if parallel:
        with ThreadPoolExecutor(max_workers=2) as pool:
            current_future = pool.submit(aggregate_metrics, records, window, top_n, benchmark)
            previous_future = pool.submit(
                aggregate_metrics, records, previous_window, top_n, benchmark
            )
            current, previous = current_future.result(), previous_future.result()
    else:
        current = aggregate_metrics(records, window, top_n, benchmark)
        previous = aggregate_metrics(records, previous_window, top_n, benchmark)

    return ComparisonResult(current=current, previous=previous, deltas=compute_deltas(current, previous))


def run_comparison(
    store: RecordStore,
    owner_id: str,
    window: Window,
    config: EngineConfig,
    current_batch: Optional[RecordBatch] = None,
    previous_batch: Optional[RecordBatch] = None,
) -> ComparisonResult:
    """Read both windows from the store and compare them.

    Args:
        store: Record store.
        owner_id: Owner scope.
        window: Current window.
        config: Engine configuration (bounds, top_n, benchmark, parallelism).
        current_batch: Records already read for the current window, reused
            instead of reading them again.
        previous_batch: Same, for the previous window.

    Returns:
        ComparisonResult with ``truncated`` set if either read was truncated.

    """
    previous_window = window.previous()

    def _aggregate(batch: RecordBatch, w: Window) -> WindowMetrics:
        return aggregate_metrics(batch.records, w, config.top_products, config.underperforming_benchmark)

    def _current() -> tuple[RecordBatch, WindowMetrics]:
        batch = current_batch
        if batch is None:
            batch = read_window(store, owner_id, window, config)
        return batch, _aggregate(batch, window)

    def _previous() -> tuple[RecordBatch, WindowMetrics]:
        batch = previous_batch
        if batch is None:
            batch = read_window(store, owner_id, previous_window, config)
        return batch, _aggregate(batch, previous_window)

    if config.parallel_comparison:
        with ThreadPoolExecutor(max_workers=2) as pool:
            current_future = pool.submit(_current)
            previous_future = pool.submit(_previous)
            (cur_batch, current), (prev_batch, previous) = (
                current_future.result(),
                previous_future.result(),
            )
    else:
        cur_batch, current = _current()
        prev_batch, previous = _previous()

    deltas = compute_deltas(current, previous)
    logger.info(
        "Compared %s..%s with %s..%s for owner %s: revenue delta %s",
        window.start,
        window.end,
        previous_window.start,
        previous_window.end,
        owner_id,
        deltas["revenue"],
    )
    return ComparisonResult(
        current=current,
        previous=previous,
        deltas=deltas,
        truncated=cur_batch.truncated or prev_batch.truncated,
    )
