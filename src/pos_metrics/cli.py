"""Command-line entry point: ``pos-metrics``.

Runs the QA reports and the metrics snapshot over record CSV exports and
prints the result as JSON.

Usage:
    pos-metrics validate -i "data/records/*.csv" --owner u1 --expected-count 1200
    pos-metrics gaps -i data/records.csv --owner u1 --store S1 --start 1 --end 500
    pos-metrics metrics -i data/records.csv --owner u1 --days 30 --cache-dir data/cache
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from pos_metrics.cache import JsonSnapshotBackend, MemorySnapshotBackend, SnapshotCache
from pos_metrics.config import EngineConfig
from pos_metrics.exceptions import ComputationInputError, DataQualityError
from pos_metrics.qa import run_sequence_check, run_ticket_validation
from pos_metrics.store import InMemoryRecordStore
from pos_metrics.window import parse_day

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-i", "--input",
        nargs="+",
        required=True,
        help="Input record CSV file(s) or glob(s).",
    )
    common.add_argument(
        "-v", "--verbose", "--debug",
        action="store_true",
        dest="verbose",
        help="Verbose/debug logging output.",
    )

    p = argparse.ArgumentParser(
        prog="pos-metrics",
        description="Ticket reconciliation and sales metrics over POS record exports.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    v = sub.add_parser(
        "validate",
        parents=[common],
        help="Ticket totals, zero-total tickets and format histogram.",
    )
    v.add_argument("--owner", default=None, help="Owner id (default: every owner).")
    v.add_argument("--expected-count", type=int, default=None, help="Expected ticket count.")
    v.add_argument("--expected-total", type=float, default=None, help="Expected total amount.")

    g = sub.add_parser(
        "gaps", parents=[common], help="Missing ticket sequence numbers for one store."
    )
    g.add_argument("--owner", default=None, help="Owner id (default: every owner).")
    g.add_argument("--store", required=True, help="Store id.")
    g.add_argument("--start", type=int, required=True, help="First sequence number.")
    g.add_argument("--end", type=int, required=True, help="Last sequence number (inclusive).")

    m = sub.add_parser("metrics", parents=[common], help="Metrics snapshot for a trailing window.")
    m.add_argument("--owner", required=True, help="Owner id.")
    m.add_argument("--days", type=int, required=True, help="Window length in days.")
    m.add_argument("--as-of", default=None, help="Last day in the window, YYYY-MM-DD (default: today).")
    m.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for cached snapshots. Without it snapshots live only for this run.",
    )
    m.add_argument("--force", action="store_true", help="Recompute even if the snapshot is fresh.")
    return p


def _run(args: argparse.Namespace, config: EngineConfig) -> dict[str, Any]:
    store = InMemoryRecordStore.from_csv(args.input)
    logger.info("Loaded %d records", len(store))

    if args.command == "validate":
        report = run_ticket_validation(
            store,
            args.owner,
            config,
            expected_ticket_count=args.expected_count,
            expected_total_amount=args.expected_total,
        )
        return report.to_dict()

    if args.command == "gaps":
        report = run_sequence_check(store, args.owner, args.store, args.start, args.end, config)
        return report.to_dict()

    as_of = parse_day(args.as_of) if args.as_of else None
    backend = JsonSnapshotBackend(args.cache_dir) if args.cache_dir else MemorySnapshotBackend()
    lookup = SnapshotCache(store, backend, config).get_metrics(
        args.owner, args.days, as_of=as_of, force=args.force
    )
    result = lookup.snapshot.to_dict()
    result["cache_state"] = lookup.state.value
    return result


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        result = _run(args, EngineConfig())
    except (ComputationInputError, DataQualityError, FileNotFoundError) as e:
        logger.error("Error: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
