"""
Human-readable output formatting for CLI.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from ..store.models import Snapshot


def format_timestamp(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def format_snapshot(s: Snapshot, show_path: bool = False) -> str:
    """One line per snapshot: id prefix, time, event, label."""
    parts = [s.id[:8], format_timestamp(s.timestamp), f"{s.event_type:7s}"]
    if show_path and s.file_path:
        parts.append(s.file_path)
    if s.label:
        parts.append(f"[{s.label}]")
    if s.description:
        parts.append(f"- {s.description}")
    return "  ".join(parts)


def format_history(snapshots: Sequence[Snapshot], title: str, show_path: bool = False) -> str:
    """Format a newest-first snapshot list for display."""
    if not snapshots:
        return f"{title}: no local history found."
    lines = [f"{title} ({len(snapshots)}):"]
    for s in snapshots:
        lines.append(f"  {format_snapshot(s, show_path=show_path)}")
    return "\n".join(lines)


def snapshots_to_json(snapshots: Sequence[Snapshot]) -> list[dict[str, Any]]:
    return [s.to_dict() for s in snapshots]
