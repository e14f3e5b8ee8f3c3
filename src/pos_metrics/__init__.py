"""POS Metrics - ticket reconciliation and sales metrics for POS records.

This package turns raw point-of-sale records from three streams (sales,
returns, gift cards) into canonical tickets, validates them, and serves
windowed metrics through a hash-invalidated snapshot cache.

Module Structure:
    pos_metrics.records: Raw record schema and normalization
    pos_metrics.store: Bounded, cursor-paginated record reads
    pos_metrics.tickets: Canonical ticket resolution
    pos_metrics.qa: Ticket format histogram, sequence gaps, validation report
    pos_metrics.metrics: Window aggregation and period-over-period deltas
    pos_metrics.cache: Snapshot cache (missing / fresh / stale)
    pos_metrics.migrations: Chunked, resumable field backfill

Quick Start:
    >>> from pos_metrics import EngineConfig, InMemoryRecordStore, SnapshotCache
    >>> from pos_metrics.cache import JsonSnapshotBackend
    >>>
    >>> store = InMemoryRecordStore.from_csv("data/records/*.csv")
    >>> cache = SnapshotCache(store, JsonSnapshotBackend("data/cache"), EngineConfig())
    >>> lookup = cache.get_metrics("u1", 30)
    >>> print(lookup.snapshot.revenue, lookup.snapshot.deltas["revenue"])

Grain Reference:
    - records: one row per raw record (a sale may have one row per item line)
    - canonical tickets: one row per ticket number
    - snapshot: one per owner x window length
"""

__version__ = "0.1.0"

from pos_metrics.cache import SnapshotCache
from pos_metrics.config import EngineConfig
from pos_metrics.exceptions import (
    BatchOperationError,
    ComputationInputError,
    ConfigError,
    DataQualityError,
    PosMetricsError,
)
from pos_metrics.records import Stream
from pos_metrics.store import InMemoryRecordStore
from pos_metrics.window import Window

__all__ = [
    "BatchOperationError",
    "ComputationInputError",
    "ConfigError",
    "DataQualityError",
    "EngineConfig",
    "InMemoryRecordStore",
    "PosMetricsError",
    "SnapshotCache",
    "Stream",
    "Window",
    "__version__",
]
