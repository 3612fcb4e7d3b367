# src/thryve_sync/scripts/queue_admin.py
"""Inspect and repair the local pending-message queue.

Typical usage:
  python -m thryve_sync.scripts.queue_admin list --room general
  python -m thryve_sync.scripts.queue_admin retry-failed
  python -m thryve_sync.scripts.queue_admin sync
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from thryve_sync.core.settings import Settings, settings
from thryve_sync.db.session import build_engine, build_session_factory, create_tables
from thryve_sync.db.time import ms_to_datetime
from thryve_sync.models import PendingMessage
from thryve_sync.runtime import SyncRuntime
from thryve_sync.services.pending_store import PendingMessageStore, PendingStoreError


def say(msg: str) -> None:
    print(f"[queue-admin] {msg}")


def fail(msg: str) -> None:
    print(f"[queue-admin][FAIL] {msg}", file=sys.stderr)


def format_entry(entry: PendingMessage) -> str:
    preview = entry.message if len(entry.message) <= 40 else entry.message[:37] + "..."
    image = " [image]" if entry.image_data or entry.uploaded_image_url else ""
    return (
        f"{entry.id}  {entry.room_id:<16} {entry.status:<9} "
        f"retries={entry.retry_count}  {ms_to_datetime(entry.client_timestamp):%Y-%m-%d %H:%M:%S}  "
        f"{preview!r}{image}"
    )


def build_store(config: Settings) -> PendingMessageStore:
    engine = build_engine(config.database_url, echo=config.sql_debug)
    create_tables(engine)
    return PendingMessageStore(build_session_factory(engine))


def cmd_list(store: PendingMessageStore, args: argparse.Namespace) -> int:
    if args.room:
        entries = store.list_for_room(args.room)
    else:
        entries = sorted(store.list(), key=lambda item: item.client_timestamp)
    for entry in entries:
        print(format_entry(entry))
    say(f"{len(entries)} message(s)")
    return 0


def cmd_count(store: PendingMessageStore, args: argparse.Namespace) -> int:
    print(store.count())
    return 0


def cmd_retry_failed(store: PendingMessageStore, args: argparse.Namespace) -> int:
    reset = store.reset_failed(args.ids or None)
    say(f"re-queued {reset} failed message(s)")
    return 0


def cmd_clear(store: PendingMessageStore, args: argparse.Namespace) -> int:
    if not args.yes:
        fail("refusing to drop queued messages without --yes")
        return 1
    say(f"removed {store.clear_all()} message(s)")
    return 0


async def _drain(config: Settings) -> int:
    engine = build_engine(config.database_url, echo=config.sql_debug)
    create_tables(engine)
    runtime = SyncRuntime.create(config, session_factory=build_session_factory(engine))
    try:
        online = await runtime.remote.ping()
        await runtime.connectivity.set_online(online)
        if not online:
            fail(f"remote store at {config.remote_store_base_url} is unreachable")
            return 1
        result = await runtime.sync_engine.sync_pending_messages()
        say(f"synced={result.synced} failed={result.failed} remaining={runtime.store.count()}")
        return 0 if result.failed == 0 else 1
    finally:
        await runtime.dispose()
        engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the offline pending-message queue")
    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list", help="Show queued messages in compose order")
    list_parser.add_argument("--room", default=None, help="Only show one room")

    sub.add_parser("count", help="Print the number of queued messages")

    retry_parser = sub.add_parser("retry-failed", help="Move failed messages back to pending")
    retry_parser.add_argument("ids", nargs="*", help="Limit to these message ids")

    clear_parser = sub.add_parser("clear", help="Drop every queued message")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm the deletion")

    sub.add_parser("sync", help="Drain the queue to the remote store once")
    return parser


def main(argv: Sequence[str] | None = None, config: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = config or settings

    try:
        if args.command == "sync":
            return asyncio.run(_drain(config))

        handlers = {
            "list": cmd_list,
            "count": cmd_count,
            "retry-failed": cmd_retry_failed,
            "clear": cmd_clear,
        }
        return handlers[args.command](build_store(config), args)
    except PendingStoreError as exc:
        fail(str(exc))
        return 2


if __name__ == "__main__":
    sys.exit(main())
