"""Snapshot cache keyed by (owner, window length).

Each key moves through three states:

- MISSING: no snapshot stored yet.
- FRESH: a snapshot is stored for the same owner and window, and its data
  hash matches the hash of the records currently in that window and in the
  preceding window its deltas compare against.
- STALE: a snapshot is stored but the owner, the window or the data hash
  differs.

Reads return the stored snapshot only when FRESH. Any other state recomputes
synchronously and overwrites the stored snapshot in a single replace. There
is no locking: concurrent recomputations of one key are allowed and the last
write wins, since snapshots are derived data.

The data hash is an approximation (per-stream count, min/max ingestion time
and amount total), not a content hash. Edits that leave all of those
aggregates unchanged are not detected.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Protocol

import pandas as pd

from pos_metrics.config import EngineConfig
from pos_metrics.metrics.api import MetricsSnapshot, build_snapshot
from pos_metrics.records import Stream
from pos_metrics.store import RecordBatch, RecordStore, read_window
from pos_metrics.window import Window

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    MISSING = "missing"
    FRESH = "fresh"
    STALE = "stale"


@dataclass
class CacheLookup:
    """Result of a cache read.

    Attributes:
        snapshot: The snapshot served (stored or freshly computed).
        state: State of the key before the read.
        recomputed: True if the snapshot was computed during this read.
    """

    snapshot: MetricsSnapshot
    state: CacheState
    recomputed: bool


def compute_data_hash(records: pd.DataFrame) -> str:
    """Approximate digest of a record set.

    Per stream: row count, earliest and latest ingestion timestamp
    (``created_at``, falling back to ``sale_date``) and amount total in
    cents. Cheap to compute, but blind to edits that preserve all of these.

    Examples:
        >>> from pos_metrics.records import empty_records_df
        >>> len(compute_data_hash(empty_records_df()))
        40

    """
    parts = []
    for stream in Stream:
        rows = records[records["stream"] == stream.value]
        stamps = rows["created_at"].fillna(rows["sale_date"]).dropna()
        first = stamps.min().isoformat() if not stamps.empty else "-"
        last = stamps.max().isoformat() if not stamps.empty else "-"
        total = round(float(rows["amount"].sum()), 2)
        parts.append(f"{stream.value}:{len(rows)}:{first}:{last}:{total:.2f}")
    return hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()


def compute_snapshot_hash(current: pd.DataFrame, previous: pd.DataFrame) -> str:
    """Digest of both windows a snapshot depends on (metrics and deltas)."""
    combined = f"{compute_data_hash(current)}:{compute_data_hash(previous)}"
    return hashlib.sha1(combined.encode("utf-8")).hexdigest()


class SnapshotBackend(Protocol):
    """Storage for one snapshot per (owner, window length)."""

    def read(self, owner_id: str, window_days: int) -> Optional[MetricsSnapshot]: ...

    def write(self, owner_id: str, window_days: int, snapshot: MetricsSnapshot) -> None: ...


class MemorySnapshotBackend:
    """Process-local snapshot storage."""

    def __init__(self) -> None:
        self._snapshots: dict[tuple[str, int], MetricsSnapshot] = {}

    def read(self, owner_id: str, window_days: int) -> Optional[MetricsSnapshot]:
        return self._snapshots.get((owner_id, window_days))

    def write(self, owner_id: str, window_days: int, snapshot: MetricsSnapshot) -> None:
        self._snapshots[(owner_id, window_days)] = snapshot


class JsonSnapshotBackend:
    """One JSON file per key under ``root/_snapshots``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so readers never see a half-written snapshot.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, owner_id: str, window_days: int) -> Path:
        snapshot_dir = self.root / "_snapshots"
        snapshot_dir.mkdir(parents=True, exist_ok=True)
        # Owner ids are free-form; the digest keeps file names distinct and safe
        owner_key = hashlib.sha1(owner_id.encode("utf-8")).hexdigest()
        return snapshot_dir / f"{owner_key}_{window_days}d.json"

    def read(self, owner_id: str, window_days: int) -> Optional[MetricsSnapshot]:
        path = self._path(owner_id, window_days)
        if not path.exists():
            return None
        try:
            return MetricsSnapshot.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Error reading snapshot %s: %s", path, e)
            return None

    def write(self, owner_id: str, window_days: int, snapshot: MetricsSnapshot) -> None:
        path = self._path(owner_id, window_days)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.stem, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote snapshot: %s", path)


class SnapshotCache:
    """Serve MetricsSnapshots, recomputing only when the data changed.

    Example:
        >>> cache = SnapshotCache(store, JsonSnapshotBackend("data/cache"), EngineConfig())
        >>> lookup = cache.get_metrics("u1", 30)
        >>> lookup.state, lookup.snapshot.revenue

    """

    def __init__(
        self,
        store: RecordStore,
        backend: SnapshotBackend,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.config = config or EngineConfig()

    def _read(self, owner_id: str, window: Window) -> tuple[RecordBatch, RecordBatch, str]:
        """Read the window and its predecessor; return both batches and their hash."""
        current = read_window(self.store, owner_id, window, self.config)
        previous = read_window(self.store, owner_id, window.previous(), self.config)
        return current, previous, compute_snapshot_hash(current.records, previous.records)

    @staticmethod
    def _classify(
        stored: Optional[MetricsSnapshot], owner_id: str, window: Window, data_hash: str
    ) -> CacheState:
        if stored is None:
            return CacheState.MISSING
        if (
            stored.owner_id == owner_id
            and stored.window == window
            and stored.data_hash == data_hash
        ):
            return CacheState.FRESH
        return CacheState.STALE

    def state(self, owner_id: str, window_days: int, as_of: Optional[date] = None) -> CacheState:
        """Current state of a key without recomputing anything."""
        window = Window.trailing(window_days, as_of)
        _, _, data_hash = self._read(owner_id, window)
        stored = self.backend.read(owner_id, window_days)
        return self._classify(stored, owner_id, window, data_hash)

    def get_metrics(
        self,
        owner_id: str,
        window_days: int,
        as_of: Optional[date] = None,
        force: bool = False,
    ) -> CacheLookup:
        """Return the snapshot for a trailing window, recomputing if needed.

        Args:
            owner_id: Owner scope.
            window_days: Window length in days.
            as_of: Last day included in the window (default: today).
            force: Recompute even when the stored snapshot is fresh.

        Returns:
            CacheLookup.

        Raises:
            ComputationInputError: If window_days is not positive.

        """
        window = Window.trailing(window_days, as_of)
        current, previous, data_hash = self._read(owner_id, window)
        stored = self.backend.read(owner_id, window_days)
        state = self._classify(stored, owner_id, window, data_hash)

        if state is CacheState.FRESH and not force:
            logger.debug("Cache hit for owner %s, %d days (hash %s)", owner_id, window_days, data_hash)
            return CacheLookup(snapshot=stored, state=state, recomputed=False)

        logger.info(
            "Recomputing metrics for owner %s, %d days (state=%s)", owner_id, window_days, state.value
        )
        snapshot = build_snapshot(
            self.store,
            owner_id,
            window,
            self.config,
            current_batch=current,
            previous_batch=previous,
            data_hash=data_hash,
        )
        self.backend.write(owner_id, window_days, snapshot)
        return CacheLookup(snapshot=snapshot, state=state, recomputed=True)

    def refresh(
        self,
        owner_id: str,
        window_days: Optional[Iterable[int]] = None,
        as_of: Optional[date] = None,
    ) -> dict[int, Optional[CacheLookup]]:
        """Recompute several window lengths (default: config.default_windows).

        A failure for one length is logged and reported as None; the other
        lengths are still refreshed.
        """
        results: dict[int, Optional[CacheLookup]] = {}
        for days in window_days or self.config.default_windows:
            try:
                results[days] = self.get_metrics(owner_id, days, as_of=as_of, force=True)
            except Exception as e:
                logger.error("Failed to refresh metrics for owner %s, %s days: %s", owner_id, days, e)
                results[days] = None
        return results
