"""
CLI commands — argparse subcommands for chronos.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from ..config import HistoryConfig
from ..core.differ import get_provider
from ..core.selection import SelectionRange
from ..errors import ContentUnavailable
from ..history.manager import HistoryManager
from ..history.views import HistoryViews
from ..store.ledger import SnapshotStore
from ..store.models import EventType
from ..utils.logging import setup_logging
from . import formatter


def _get_store(args) -> tuple[HistoryConfig, SnapshotStore]:
    """Get config and snapshot store for the project in args."""
    project_root = Path(args.project).resolve()
    config = HistoryConfig.load(project_root)
    return config, SnapshotStore.from_config(config, project_root)


def _get_views(args) -> tuple[HistoryConfig, SnapshotStore, HistoryViews]:
    config, store = _get_store(args)
    return config, store, HistoryViews(store, get_provider(config.diff), config)


def _read_live(store: SnapshotStore, path: str) -> str:
    target = store.resolver.absolute(path)
    try:
        return target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"Cannot read {target}: {e}")


def _fail(message: str) -> None:
    print(message, file=sys.stderr)
    raise SystemExit(1)


def _print_history(args, snapshots, title: str, show_path: bool = False) -> None:
    if args.json:
        print(json.dumps(formatter.snapshots_to_json(snapshots), indent=2))
    else:
        print(formatter.format_history(snapshots, title, show_path=show_path))


def cmd_save(args):
    """Record the file's current content."""
    config, store = _get_store(args)
    manager = HistoryManager(store, config)
    snapshot = asyncio.run(manager.on_file_saved(args.path, _read_live(store, args.path)))
    if snapshot:
        print(f"Snapshot: {snapshot.file_path} ({snapshot.id[:8]})")
    else:
        print("Nothing saved (unchanged, excluded or history disabled).")


def cmd_open(args):
    """Create the initial baseline if the file has no history yet."""
    config, store = _get_store(args)
    manager = HistoryManager(store, config)
    snapshot = asyncio.run(manager.on_file_opened(args.path, _read_live(store, args.path)))
    if snapshot:
        print(f"Baseline: {snapshot.file_path} ({snapshot.id[:8]})")
    else:
        print("History already exists.")


def cmd_rename(args):
    """Record a renamed file under its new path."""
    config, store = _get_store(args)
    manager = HistoryManager(store, config)
    snapshot = asyncio.run(manager.on_file_renamed(args.old_path, args.new_path))
    if snapshot:
        print(f"Snapshot: {snapshot.file_path} ({snapshot.id[:8]})")
    else:
        print("Nothing saved.")


def cmd_label(args):
    """Put a label on the timeline."""
    config, store = _get_store(args)
    manager = HistoryManager(store, config)
    snapshot = asyncio.run(manager.put_label(args.name, args.description))
    print(f"Label: {snapshot.label} ({snapshot.id[:8]})")


def cmd_history(args):
    """Show a file's history."""
    _, store = _get_store(args)
    history = asyncio.run(store.history_for_file(args.path))
    _print_history(args, history, f"History of {store.resolver.relative_path(args.path)}")


def cmd_project_history(args):
    """Show every snapshot in the project."""
    _, store = _get_store(args)
    history = asyncio.run(store.history_for_scope())
    _print_history(args, history, "Project history", show_path=True)


def cmd_recent(args):
    """Show the most recent snapshots across the project."""
    _, _, views = _get_views(args)
    history = asyncio.run(views.recent_changes(limit=args.limit))
    _print_history(args, history, "Recent changes", show_path=True)


async def _find(store: SnapshotStore, snapshot_id: str, path: str):
    snapshot = await store.find_snapshot(snapshot_id, path)
    if snapshot is None:
        raise ContentUnavailable(snapshot_id, "not found in file history")
    return snapshot


def cmd_diff(args):
    """Show what a snapshot changed."""
    _, store, views = _get_views(args)

    async def run():
        snapshot = await _find(store, args.snapshot_id, args.path)
        return await views.diff_for_snapshot(snapshot, args.path)

    try:
        print(asyncio.run(run()), end="")
    except ContentUnavailable as e:
        _fail(str(e))


def cmd_compare(args):
    """Diff a snapshot against the file on disk."""
    _, store, views = _get_views(args)

    async def run():
        snapshot = await _find(store, args.snapshot_id, args.path)
        return await views.compare_to_current(snapshot, args.path)

    try:
        print(asyncio.run(run()), end="")
    except ContentUnavailable as e:
        _fail(str(e))


def cmd_show(args):
    """Print a snapshot's content."""
    _, store = _get_store(args)

    async def run():
        snapshot = await _find(store, args.snapshot_id, args.path)
        return await store.read_content(snapshot)

    try:
        print(asyncio.run(run()), end="")
    except ContentUnavailable as e:
        _fail(str(e))


def cmd_restore(args):
    """Write a snapshot's content back to the file."""
    _, store, views = _get_views(args)

    async def run():
        content = await views.restore_snapshot(args.snapshot_id, args.path)
        target = store.resolver.absolute(args.path)
        await asyncio.to_thread(target.write_text, content, encoding="utf-8")
        return await store.save_snapshot(
            content, args.path, EventType.MANUAL, label=f"Restored {args.snapshot_id[:8]}",
        )

    try:
        asyncio.run(run())
    except ContentUnavailable as e:
        _fail(str(e))
    except OSError as e:
        _fail(f"Cannot write {args.path}: {e}")
    print(f"Restored {args.path} from {args.snapshot_id[:8]}")


def cmd_select(args):
    """Show only the snapshots that touched a line range (1-based, inclusive)."""
    _, store, views = _get_views(args)
    if args.start < 1 or args.end < args.start:
        _fail("Line range must satisfy 1 <= start <= end")
    selection = SelectionRange.lines(args.start - 1, args.end - 1)
    history = asyncio.run(views.history_for_selection(args.path, selection))
    rel_path = store.resolver.relative_path(args.path)
    _print_history(args, history, f"History of {rel_path}:{args.start}-{args.end}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chronos",
        description="Local file history with selection-aware filtering",
    )
    parser.add_argument(
        "--project", "-p", default=".",
        help="Project root directory (default: current dir)",
    )
    parser.add_argument(
        "--json", "-j", action="store_true", default=False,
        help="Output as JSON",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", default=False,
        help="Debug logging",
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")

    p = sub.add_parser("save", help="Snapshot a file's current content")
    p.add_argument("path", help="File path")

    p = sub.add_parser("open", help="Create an initial baseline for a file")
    p.add_argument("path", help="File path")

    p = sub.add_parser("rename", help="Record a renamed file")
    p.add_argument("old_path", help="Previous path")
    p.add_argument("new_path", help="New path")

    p = sub.add_parser("label", help="Put a label on the timeline")
    p.add_argument("name", help="Label name")
    p.add_argument("--description", "-d", default=None)

    p = sub.add_parser("history", help="Show a file's history")
    p.add_argument("path", help="File path")

    sub.add_parser("project-history", help="Show all snapshots")

    p = sub.add_parser("recent", help="Show recent changes")
    p.add_argument("--limit", type=int, default=20)

    for name, help_text in (
        ("diff", "Show what a snapshot changed"),
        ("compare", "Diff a snapshot against the current file"),
        ("show", "Print a snapshot's content"),
        ("restore", "Restore a file from a snapshot"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("snapshot_id", help="Snapshot id or unique prefix")
        p.add_argument("path", help="File path")

    p = sub.add_parser("select", help="History for a line range")
    p.add_argument("path", help="File path")
    p.add_argument("start", type=int, help="First line (1-based)")
    p.add_argument("end", type=int, help="Last line (1-based, inclusive)")

    return parser


def run_cli(argv: Optional[list[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, console=args.verbose)

    commands = {
        "save": cmd_save,
        "open": cmd_open,
        "rename": cmd_rename,
        "label": cmd_label,
        "history": cmd_history,
        "project-history": cmd_project_history,
        "recent": cmd_recent,
        "diff": cmd_diff,
        "compare": cmd_compare,
        "show": cmd_show,
        "restore": cmd_restore,
        "select": cmd_select,
    }

    cmd = commands.get(args.command)
    if cmd:
        cmd(args)
    else:
        parser.print_help()
