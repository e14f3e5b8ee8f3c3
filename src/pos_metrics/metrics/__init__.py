"""Metrics domain module.

This module aggregates canonical tickets into windowed metrics and compares
them with the preceding window:

- **aggregate**: revenue, transactions, average ticket, return rate,
  gift-card sales, gross-profit percent, daily trend, top products, store
  and rep breakdowns.
- **compare**: previous window of equal length and percentage deltas.
- **api**: MetricsSnapshot assembly from a record store.

Example:
    >>> from pos_metrics.config import EngineConfig
    >>> from pos_metrics.metrics import build_snapshot
    >>> from pos_metrics.window import Window
    >>>
    >>> window = Window.trailing(30)
    >>> snapshot = build_snapshot(store, "u1", window, EngineConfig())
    >>> snapshot.deltas["revenue"]
"""

from pos_metrics.metrics.aggregate import WindowMetrics, aggregate_metrics
from pos_metrics.metrics.api import MetricsSnapshot, build_snapshot
from pos_metrics.metrics.compare import (
    ComparisonResult,
    Delta,
    compare_windows,
    percent_delta,
    run_comparison,
)

__all__ = [
    "ComparisonResult",
    "Delta",
    "MetricsSnapshot",
    "WindowMetrics",
    "aggregate_metrics",
    "build_snapshot",
    "compare_windows",
    "percent_delta",
    "run_comparison",
]
