"""Lightweight CLI helpers for inspecting pool state and performance rows."""
from __future__ import annotations

import argparse
import json

from config.settings import settings
from services.pool import POOL_COLLECTION, POOL_DOC_ID
from services.runtime import build_runtime


def show_pool() -> None:
    runtime = build_runtime()
    doc = runtime.gateway.get(POOL_COLLECTION, POOL_DOC_ID)
    if doc is None:
        print("no persisted pool metrics")
        return
    print(
        f"active={doc.get('active')} available={doc.get('available')} "
        f"total={doc.get('total')} avg_latency_ms={doc.get('avg_latency_ms')}"
    )


def tail_perf(limit: int = 20) -> None:
    runtime = build_runtime()
    for row in runtime.perf.latest(limit):
        meta = json.dumps(row.get("metadata", {}), default=str)
        print(f"[{row.get('timestamp')}] {row.get('operation')} {row.get('duration_ms')}ms meta={meta}")


def cleanup_perf(retention_days: int | None = None) -> None:
    runtime = build_runtime()
    days = settings.PERF_LOG_RETENTION_DAYS if retention_days is None else retention_days
    removed = runtime.perf.cleanup(days)
    print(f"removed {removed} performance rows older than {days} days")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--pool", action="store_true", help="Show the persisted pool metrics")
    parser.add_argument("--tail-perf", type=int, help="Show the latest performance rows")
    parser.add_argument("--cleanup-perf", action="store_true", help="Delete expired performance rows")
    parser.add_argument("--retention-days", type=int, help="Override the retention window for cleanup")
    args = parser.parse_args()

    if args.pool:
        show_pool()
    if args.tail_perf:
        tail_perf(args.tail_perf)
    if args.cleanup_perf:
        cleanup_perf(args.retention_days)


if __name__ == "__main__":
    main()
