#!/usr/bin/env python3
"""
Maintenance commands for a ledger database.

Usage:
    python3 scripts/ledger_admin.py migrate [--to N]
    python3 scripts/ledger_admin.py open-day [--date YYYY-MM-DD]
    python3 scripts/ledger_admin.py snapshot PRODUCT_ID [--date YYYY-MM-DD]
    python3 scripts/ledger_admin.py low-stock [--date YYYY-MM-DD] [--threshold N]
    python3 scripts/ledger_admin.py avg-costs [--date YYYY-MM-DD]

All commands accept --config PATH and --database-url URL.
"""

import argparse
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from ledger_config import get_active_config  # noqa: E402
from ledger_config.bridges import apply_logging, build_clock, build_policy, build_store  # noqa: E402
from ledger_kernel.db.engine import create_sqlite_engine  # noqa: E402
from ledger_kernel.db.migrations import SchemaManager  # noqa: E402
from ledger_kernel.exceptions import LedgerKernelError  # noqa: E402
from ledger_kernel.selectors import StockSelector  # noqa: E402
from ledger_kernel.services import InventoryLedger  # noqa: E402


def _settings(args):
    overrides = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    settings = get_active_config(args.config, overrides or None)
    apply_logging(settings)
    return settings


def cmd_migrate(args, stream) -> int:
    settings = _settings(args)
    engine = create_sqlite_engine(settings.database_url)
    try:
        manager = SchemaManager(engine, build_clock(settings))
        before = manager.current_version()
        after = manager.upgrade(args.to)
    finally:
        engine.dispose()
    stream.write(f"Schema version: {before} -> {after}\n")
    return 0


def cmd_open_day(args, stream) -> int:
    settings = _settings(args)
    clock = build_clock(settings)
    store = build_store(settings).open()
    try:
        with store.session_scope() as session:
            business_date = args.date or clock.today()
            created = InventoryLedger(session, clock, build_policy(settings)).open_day(
                business_date
            )
    finally:
        store.close()
    stream.write(f"Opened {business_date}: {created} snapshot(s) carried forward\n")
    return 0


def cmd_snapshot(args, stream) -> int:
    settings = _settings(args)
    clock = build_clock(settings)
    store = build_store(settings).open()
    try:
        with store.session_scope() as session:
            business_date = args.date or clock.today()
            snapshot = StockSelector(session).snapshot_on_or_before(
                args.product_id, business_date
            )
    finally:
        store.close()
    if snapshot is None:
        stream.write(f"No stock history for {args.product_id} on or before {business_date}\n")
        return 1
    stream.write(
        f"{snapshot.product_id}  {snapshot.date}  qty={snapshot.available_qty}"
        f"  avg_cost={snapshot.avg_cost}\n"
    )
    return 0


def cmd_low_stock(args, stream) -> int:
    settings = _settings(args)
    clock = build_clock(settings)
    threshold = args.threshold if args.threshold is not None else settings.low_stock_threshold
    store = build_store(settings).open()
    try:
        with store.session_scope() as session:
            business_date = args.date or clock.today()
            rows = StockSelector(session).low_stock(business_date, threshold)
    finally:
        store.close()
    stream.write(f"Products below {threshold} on {business_date}:\n")
    for row in rows:
        stream.write(f"  {row.product_id}  qty={row.available_qty}\n")
    if not rows:
        stream.write("  (none)\n")
    return 0


def cmd_avg_costs(args, stream) -> int:
    settings = _settings(args)
    clock = build_clock(settings)
    store = build_store(settings).open()
    try:
        with store.session_scope() as session:
            business_date = args.date or clock.today()
            rows = StockSelector(session).avg_costs(business_date)
    finally:
        store.close()
    for product_id, name, snapshot in rows:
        stream.write(
            f"  {name:<30} {product_id}  qty={snapshot.available_qty}"
            f"  avg_cost={snapshot.avg_cost}  ({snapshot.date})\n"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inventory ledger maintenance")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--database-url", default=None, help="Override database_url")
    sub = parser.add_subparsers(dest="command", required=True)

    migrate = sub.add_parser("migrate", help="Upgrade the schema")
    migrate.add_argument("--to", type=int, default=None, help="Target version (default: latest)")
    migrate.set_defaults(func=cmd_migrate)

    open_day = sub.add_parser("open-day", help="Carry yesterday's stock forward")
    open_day.add_argument("--date", default=None)
    open_day.set_defaults(func=cmd_open_day)

    snapshot = sub.add_parser("snapshot", help="Show a product's stock")
    snapshot.add_argument("product_id")
    snapshot.add_argument("--date", default=None)
    snapshot.set_defaults(func=cmd_snapshot)

    low = sub.add_parser("low-stock", help="List products below a threshold")
    low.add_argument("--date", default=None)
    low.add_argument("--threshold", type=int, default=None)
    low.set_defaults(func=cmd_low_stock)

    costs = sub.add_parser("avg-costs", help="Weighted average cost per product")
    costs.add_argument("--date", default=None)
    costs.set_defaults(func=cmd_avg_costs)
    return parser


def main(argv=None, stream=sys.stdout) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args, stream)
    except LedgerKernelError as exc:
        sys.stderr.write(f"{exc.code}: {exc}\n")
        return 2


if __name__ == "__main__":
    sys.exit(main())
