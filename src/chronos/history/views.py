"""
History views — per-snapshot diffs, compare, restore, recent changes.

Single-diff requests surface failures as inline text instead of raising.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config import HistoryConfig
from ..core.differ import NULL_SOURCE, DiffProvider
from ..core.hunks import split_lines
from ..core.selection import HistoryFilter, SelectionRange
from ..errors import ContentUnavailable, DiffProviderError
from ..store.ledger import SnapshotStore
from ..store.models import Snapshot

NOT_FOUND = "Snapshot not found in file history."
NO_CONTENT = "Snapshot has no content."
PREVIOUS_UNAVAILABLE = "Previous snapshot content unavailable."


class HistoryViews:
    """Read-side operations over a file's snapshot history."""

    def __init__(self, store: SnapshotStore, provider: DiffProvider, config: Optional[HistoryConfig] = None):
        self.store = store
        self.provider = provider
        self.config = config or HistoryConfig()
        self.filter = HistoryFilter(store, provider)

    async def diff_for_snapshot(self, snapshot: Snapshot, path: Path | str) -> str:
        """What this snapshot changed relative to the revision before it."""
        history = await self.store.history_for_file(path)
        if not any(s.id == snapshot.id for s in history):
            return NOT_FOUND
        if not snapshot.has_content:
            return NO_CONTENT

        revisions = [s for s in history if s.has_content]
        position = next(i for i, s in enumerate(revisions) if s.id == snapshot.id)
        try:
            current = self.store.content_location(snapshot)
        except ContentUnavailable:
            return NO_CONTENT

        if position == len(revisions) - 1:
            previous = NULL_SOURCE
        else:
            try:
                previous = self.store.content_location(revisions[position + 1])
            except ContentUnavailable:
                return PREVIOUS_UNAVAILABLE

        try:
            diff = await self.provider.diff(previous, current)
        except DiffProviderError as e:
            return f"Error calculating diff: {e}"
        rel_path = self.store.resolver.relative_path(path)
        return relabel_diff(diff, rel_path, created=previous == NULL_SOURCE)

    async def compare_to_current(self, snapshot: Snapshot, path: Path | str) -> str:
        """Diff from the snapshot to the live file on disk."""
        try:
            blob = self.store.content_location(snapshot)
            diff = await self.provider.diff(blob, self.store.resolver.absolute(path))
        except ContentUnavailable as e:
            return f"Could not open diff: {e}"
        except DiffProviderError as e:
            return f"Error calculating diff: {e}"
        return relabel_diff(diff, self.store.resolver.relative_path(path))

    async def restore_snapshot(self, snapshot_id: str, path: Path | str) -> str:
        """Content of a snapshot, for the caller to write back."""
        snapshot = await self.store.find_snapshot(snapshot_id, path)
        if snapshot is None:
            raise ContentUnavailable(snapshot_id, "not found in file history")
        return await self.store.read_content(snapshot)

    async def recent_changes(self, limit: int = 20) -> list[Snapshot]:
        return (await self.store.history_for_scope())[:limit]

    async def history_for_selection(self, path: Path | str, selection: SelectionRange) -> list[Snapshot]:
        """File history narrowed to the selection when selection tracking is on."""
        history = await self.store.history_for_file(path)
        if not self.config.track_selection_history:
            return history
        return await self.filter.filter_history_for_selection(history, path, selection)


def relabel_diff(diff: str, rel_path: str, created: bool = False) -> str:
    """Replace blob/temp paths in diff headers with a/<rel_path> and b/<rel_path>."""
    old_name = "/dev/null" if created else f"a/{rel_path}"
    lines = []
    for line in split_lines(diff):
        if line.startswith("diff --git "):
            line = f"diff --git a/{rel_path} b/{rel_path}"
        elif line.startswith("--- "):
            line = f"--- {old_name}"
        elif line.startswith("+++ "):
            line = f"+++ b/{rel_path}"
        elif line.startswith("@@"):
            # headers end here for this file; copy the rest verbatim
            lines.append(line)
            break
        lines.append(line)
    rest = split_lines(diff)[len(lines):]
    result = "\n".join(lines + rest)
    return result + "\n" if result else ""
