"""Engine configuration for POS Metrics.

This module provides a single configuration class injected into every
component (record reads, aggregation, QA reports, cache). Nothing is read
from the environment; callers build an EngineConfig at startup and pass it
down.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from pos_metrics.exceptions import ConfigError


@dataclass(frozen=True)
class EngineConfig:
    """Tunable limits and thresholds for the metrics engine.

    Attributes:
        page_size: Records fetched per store page.
        hard_limit: Maximum records accumulated per read. Reads that hit it
            are flagged as truncated.
        top_products: Number of products kept in top_products.
        gap_report_limit: Maximum missing sequence numbers listed in a
            MissingSequenceReport.
        gap_sample_size: Number of present sequence numbers sampled.
        zero_ticket_sample: Number of zero-total tickets sampled in a
            ValidationReport.
        underperforming_benchmark: Average ticket below which a store or rep
            is flagged as underperforming.
        default_windows: Window lengths (days) refreshed by default.
        parallel_comparison: Aggregate current and previous windows on a
            thread pool.
        admin_owner_ids: Owner ids allowed to run administrative jobs such
            as backfills.
    """

    page_size: int = 1000
    hard_limit: int = 50000
    top_products: int = 10
    gap_report_limit: int = 100
    gap_sample_size: int = 10
    zero_ticket_sample: int = 10
    underperforming_benchmark: float = 70.0
    default_windows: tuple[int, ...] = (7, 30, 60, 90)
    parallel_comparison: bool = True
    admin_owner_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in (
            "page_size",
            "hard_limit",
            "top_products",
            "gap_report_limit",
            "gap_sample_size",
            "zero_ticket_sample",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

        if self.hard_limit < self.page_size:
            raise ConfigError(
                f"hard_limit ({self.hard_limit}) must be >= page_size ({self.page_size})"
            )
        if self.underperforming_benchmark < 0:
            raise ConfigError("underperforming_benchmark must be non-negative")
        if not self.default_windows or any(d <= 0 for d in self.default_windows):
            raise ConfigError(f"default_windows must be positive, got {self.default_windows!r}")

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> EngineConfig:
        """Build an EngineConfig from plain settings (e.g. parsed JSON).

        Args:
            settings: Mapping of field name to value. Lists are accepted for
                default_windows and admin_owner_ids.

        Returns:
            EngineConfig instance.

        Raises:
            ConfigError: If a key is unknown or a value is invalid.

        Examples:
            >>> cfg = EngineConfig.from_mapping({"page_size": 500, "admin_owner_ids": ["u1"]})
            >>> cfg.is_admin("u1")
            True

        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(settings) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {unknown}")

        kwargs = dict(settings)
        if "default_windows" in kwargs:
            kwargs["default_windows"] = tuple(kwargs["default_windows"])
        if "admin_owner_ids" in kwargs:
            kwargs["admin_owner_ids"] = frozenset(kwargs["admin_owner_ids"])
        return cls(**kwargs)

    def is_admin(self, owner_id: str) -> bool:
        """Return True if owner_id is on the configured admin allow-list."""
        return owner_id in self.admin_owner_ids
