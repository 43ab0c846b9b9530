"""
Inspect and flush a persisted offline queue from the command line.

    pharmasync status --storage-file queue.json
    pharmasync sync --redis-url redis://localhost:6379/0 --db-url postgresql://...
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from redis import Redis
from sqlalchemy import create_engine

from .connectivity import ConnectivityMonitor, engine_probe
from .errors import PharmasyncError
from .queue import FileQueueStorage, OfflineQueue, QueueStorage, RedisQueueStorage
from .remote import SqlRemoteStore


def _build_storage(args: argparse.Namespace) -> QueueStorage:
    if args.storage_file:
        return FileQueueStorage(args.storage_file)
    if args.redis_url:
        return RedisQueueStorage(Redis.from_url(args.redis_url), key=args.key)
    raise PharmasyncError(
        "No queue storage configured: pass --storage-file or --redis-url "
        "(or set PHARMASYNC_STORAGE_FILE / PHARMASYNC_REDIS_URL)"
    )


def cmd_status(args: argparse.Namespace) -> int:
    operations = _build_storage(args).load()
    print(f"{len(operations)} pending operation(s)")
    for op in operations:
        queued_at = datetime.fromtimestamp(op.timestamp / 1000, tz=timezone.utc).isoformat()
        print(f"{op.id}  {op.kind.value:<6}  {op.table:<20}  {queued_at}")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    if not args.db_url:
        raise PharmasyncError("No remote database configured: pass --db-url or set PHARMASYNC_DB_URL")

    engine = create_engine(args.db_url, pool_pre_ping=True)
    try:
        connectivity = ConnectivityMonitor(probe=engine_probe(engine))
        if not connectivity.is_online:
            print("Remote store is unreachable; nothing replayed", file=sys.stderr)
            return 1

        queue = OfflineQueue(
            SqlRemoteStore(engine),
            _build_storage(args),
            connectivity,
        )
        try:
            report = queue.sync_now()
        finally:
            queue.close()
    finally:
        engine.dispose()

    print(f"synced={report.synced} failed={report.failed} remaining={report.remaining}")
    return 0 if report.remaining == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pharmasync", description="Offline write queue tools")
    parser.add_argument(
        "--storage-file",
        default=os.environ.get("PHARMASYNC_STORAGE_FILE"),
        help="JSON file holding the queue",
    )
    parser.add_argument(
        "--redis-url",
        default=os.environ.get("PHARMASYNC_REDIS_URL"),
        help="Redis URL holding the queue",
    )
    parser.add_argument(
        "--key",
        default="pending_operations",
        help="Storage key of the queue (default: pending_operations)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="List pending operations")
    status.set_defaults(func=cmd_status)

    sync = sub.add_parser("sync", help="Replay pending operations against the remote database")
    sync.add_argument(
        "--db-url",
        default=os.environ.get("PHARMASYNC_DB_URL"),
        help="SQLAlchemy URL of the remote database",
    )
    sync.set_defaults(func=cmd_sync)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except PharmasyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
