"""
Selection history — which snapshots touched a selected line range.

Walks a file's history from newest to oldest. At every step the
selection is expressed in the newer revision's coordinates, tested
against that step's hunks, then mapped back into the older revision.
All mapping is line-granular.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from ..errors import ChronosError
from ..store.ledger import SnapshotStore, newest_first
from ..store.models import Snapshot
from .differ import DiffProvider
from .hunks import DiffHunk, parse_hunks

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionRange:
    """Half-open line interval [start_line, end_line).

    end_character only decides whether the end sits exactly on a line
    boundary (0) or mid-line.
    """
    start_line: int
    end_line: int
    end_character: int = 0

    @property
    def effective_end(self) -> int:
        """Last selected line, inclusive."""
        if self.end_character == 0 and self.end_line > self.start_line:
            return self.end_line - 1
        return self.end_line

    @classmethod
    def lines(cls, first: int, last: int) -> "SelectionRange":
        """Whole lines first..last (0-based, inclusive)."""
        return cls(first, last + 1, 0)


def is_relevant(selection: SelectionRange, hunks: Sequence[DiffHunk]) -> bool:
    """True if any hunk touches a line inside the selection."""
    start, end = selection.start_line, selection.effective_end
    return any(
        start <= line <= end
        for hunk in hunks
        for line in hunk.touched_lines
    )


def map_range_backwards(selection: SelectionRange, hunks: Sequence[DiffHunk]) -> SelectionRange:
    """Translate selection from the newer revision into the older one.

    Hunks wholly before a boundary shift it by their net line change; a
    hunk straddling a boundary snaps it onto the hunk's old-side extent.
    Character precision is dropped.
    """
    start = selection.start_line
    end = selection.effective_end
    mapped_start, mapped_end = start, end

    for h in hunks:
        h_new_start = h.new_start - 1
        h_new_end = h_new_start + h.new_lines  # exclusive

        if h_new_end <= start:
            mapped_start -= h.shift
        elif h_new_start < start < h_new_end:
            mapped_start = h.old_start - 1

        if h_new_end <= end:
            mapped_end -= h.shift
        elif h_new_start <= end < h_new_end:
            mapped_end = (h.old_start - 1) + max(h.old_lines - 1, 0)

    return SelectionRange(mapped_start, mapped_end + 1, 0)


class HistoryFilter:
    """Filter a file's history down to the snapshots relevant to a selection."""

    def __init__(self, store: SnapshotStore, provider: DiffProvider):
        self.store = store
        self.provider = provider

    async def _hunks(self, old_source: Path | str, new_source: Path | str) -> list[DiffHunk]:
        return parse_hunks(await self.provider.diff(old_source, new_source))

    async def filter_history_for_selection(
        self,
        history: Sequence[Snapshot],
        file_path: Path | str,
        selection: SelectionRange,
    ) -> list[Snapshot]:
        """Snapshots whose changes touched selection, newest first.

        selection is made against the live file at file_path. The oldest
        snapshot is always included. Label markers carry no content and
        are not part of the walk.
        """
        revisions = newest_first(s for s in history if s.has_content)
        if not revisions:
            return []

        LOGGER.debug(
            "Filtering %d snapshots for %s selection %d-%d",
            len(revisions), file_path, selection.start_line, selection.end_line,
        )

        current = selection
        try:
            newest = self.store.content_location(revisions[0])
            hunks = await self._hunks(newest, self.store.resolver.absolute(file_path))
            current = map_range_backwards(selection, hunks)
        except ChronosError as e:
            LOGGER.error("Error mapping initial range for %s: %s", file_path, e)

        relevant: list[Snapshot] = []
        for newer, older in zip(revisions, revisions[1:]):
            try:
                hunks = await self._hunks(
                    self.store.content_location(older),
                    self.store.content_location(newer),
                )
            except ChronosError as e:
                LOGGER.error("Skipping %s -> %s: %s", older.id, newer.id, e)
                continue

            if is_relevant(current, hunks):
                relevant.append(newer)
                LOGGER.debug("Relevant snapshot %s (%s)", newer.id, newer.label or newer.event_type)
            current = map_range_backwards(current, hunks)

        relevant.append(revisions[-1])
        LOGGER.debug("Found %d relevant snapshots", len(relevant))
        return relevant
