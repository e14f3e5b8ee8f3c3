"""Chunked, resumable backfill of a newly introduced record field.

When a scoping field (e.g. ``franchise_id``) is added after records were
already ingested, historical records must be tagged. The backfill runs in
bounded batches per stream table:

- each batch selects up to ``batch_size`` records whose field is still unset
  (an idempotent predicate, so re-running a batch is safe),
- sets the field, and reports ``has_more``,
- a failure on one table is captured in that table's result and does not
  stop the other tables.

Progress is persisted to a JSON state file so an interrupted job resumes
where it left off.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

from pos_metrics.config import EngineConfig
from pos_metrics.exceptions import BatchOperationError
from pos_metrics.records import Stream

logger = logging.getLogger(__name__)


class MutableRecordStore(Protocol):
    """Record store operations the backfill needs."""

    def select_missing(self, stream: Stream, field_name: str, limit: int) -> list[int]: ...

    def update_records(self, record_ids: Sequence[int], **values: Any) -> int: ...


@dataclass
class BackfillResult:
    """Outcome of one batch (or of a whole run) for one table.

    Attributes:
        table: Stream table name.
        updated: Records tagged.
        has_more: More untagged records remain.
        error: Failure message, or None on success.
        last_record_id: Highest record id tagged by the batch.
    """

    table: str
    updated: int = 0
    has_more: bool = False
    error: Optional[str] = None
    last_record_id: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BackfillState:
    """Persisted progress of a backfill job.

    ``complete`` reports the outcome of each table's latest batch. It never
    skips work: every batch re-runs the "field still unset" selection, so
    records added after a finished run are still picked up.
    """

    field_name: str
    value: Any
    updated: dict[str, int] = field(default_factory=dict)
    complete: dict[str, bool] = field(default_factory=dict)
    batches: int = 0
    last_run: Optional[str] = None

    @classmethod
    def load(cls, path: Path, field_name: str, value: Any) -> BackfillState:
        if not path.exists():
            return cls(field_name=field_name, value=value)
        try:
            data = json.loads(path.read_text())
            state = cls(**data)
        except (ValueError, TypeError) as e:
            logger.warning("Error reading backfill state %s: %s", path, e)
            return cls(field_name=field_name, value=value)
        if state.field_name != field_name or state.value != value:
            logger.info("Backfill state %s is for a different target, starting over", path)
            return cls(field_name=field_name, value=value)
        return state

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(self), indent=2))


class BackfillJob:
    """Tag records missing ``field_name`` with ``value``, one bounded batch at a time.

    Example:
        >>> job = BackfillJob(store, "franchise_id", "fr-01", batch_size=500,
        ...                   state_path=Path("data/_meta/backfill_franchise.json"))
        >>> results = job.run_until_complete()
        >>> [r for r in results if not r.success]
        []

    """

    def __init__(
        self,
        store: MutableRecordStore,
        field_name: str,
        value: Any,
        tables: Sequence[Stream | str] = tuple(Stream),
        batch_size: int = 100,
        state_path: Optional[str | Path] = None,
        config: Optional[EngineConfig] = None,
        requested_by: Optional[str] = None,
    ) -> None:
        if config is not None and not config.is_admin(requested_by or ""):
            raise PermissionError(f"Owner '{requested_by}' is not allowed to run backfills")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.store = store
        self.field_name = field_name
        self.value = value
        self.tables = [Stream.parse(t) for t in tables]
        self.batch_size = batch_size
        self.state_path = Path(state_path) if state_path else None
        if self.state_path:
            self.state = BackfillState.load(self.state_path, field_name, value)
        else:
            self.state = BackfillState(field_name=field_name, value=value)

    def _save(self) -> None:
        self.state.last_run = datetime.now(timezone.utc).isoformat()
        if self.state_path:
            self.state.save(self.state_path)

    def _tag_batch(self, table: Stream) -> BackfillResult:
        try:
            ids = self.store.select_missing(table, self.field_name, self.batch_size)
            updated = self.store.update_records(ids, **{self.field_name: self.value}) if ids else 0
        except Exception as e:
            raise BatchOperationError(table.value, str(e)) from e
        return BackfillResult(
            table=table.value,
            updated=updated,
            has_more=len(ids) == self.batch_size,
            last_record_id=max(ids) if ids else None,
        )

    def run_batch(self, table: Stream | str) -> BackfillResult:
        """Process one batch for one table. Failures are returned, not raised."""
        stream = Stream.parse(table)
        try:
            result = self._tag_batch(stream)
        except BatchOperationError as e:
            logger.error("Backfill of %s failed: %s", stream.value, e)
            return BackfillResult(table=stream.value, error=str(e))

        self.state.updated[stream.value] = self.state.updated.get(stream.value, 0) + result.updated
        self.state.complete[stream.value] = not result.has_more
        logger.info("Updated %d records in %s (has_more=%s)", result.updated, stream.value, result.has_more)
        return result

    def _run_tables(self, tables: Sequence[Stream]) -> list[BackfillResult]:
        results = [self.run_batch(t) for t in tables]
        self.state.batches += 1
        self._save()
        return results

    def run_all(self) -> list[BackfillResult]:
        """One batch for every table. One table failing does not block the others."""
        return self._run_tables(self.tables)

    def run_until_complete(self, max_batches: int = 100) -> list[BackfillResult]:
        """Repeat batches until no table has more work, or max_batches.

        A table that fails is left out of the remaining batches of this run;
        the other tables keep going.

        Returns:
            One cumulative result per table.

        """
        totals = {t.value: BackfillResult(table=t.value) for t in self.tables}
        active = list(self.tables)
        for _ in range(max_batches):
            results = self._run_tables(active)
            for r in results:
                total = totals[r.table]
                total.updated += r.updated
                total.has_more = r.has_more
                total.error = r.error
                if r.last_record_id is not None:
                    total.last_record_id = r.last_record_id
            active = [t for t, r in zip(active, results) if r.has_more and r.success]
            if not active:
                break
        else:
            logger.warning("Backfill stopped after %d batches with work remaining", max_batches)
        return list(totals.values())
