"""
Unified-diff hunk parser.

Turns diff text into DiffHunk records whose touched_lines are 0-based
line indices in the newer revision. Deletions touch the seam where the
old lines used to be; additions touch the line they add.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..errors import ParseError

LOGGER = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class DiffHunk:
    """One contiguous change region, anchored in both revisions (1-based)."""
    old_start: int = 0
    old_lines: int = 1
    new_start: int = 0
    new_lines: int = 1
    touched_lines: set[int] = field(default_factory=set)

    @property
    def shift(self) -> int:
        """Net lines added (+) or removed (-) by this hunk."""
        return self.new_lines - self.old_lines


def split_lines(text: str) -> list[str]:
    """Split on line feeds only, so line indices match git and the editor.

    str.splitlines() also breaks on form feeds and Unicode separators.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_header(line: str) -> DiffHunk:
    """Parse '@@ -a[,b] +c[,d] @@'. Omitted counts default to 1."""
    match = HUNK_HEADER.match(line)
    if not match:
        raise ParseError(line)
    old_start, old_lines, new_start, new_lines = match.groups()
    return DiffHunk(
        old_start=int(old_start),
        old_lines=int(old_lines) if old_lines is not None else 1,
        new_start=int(new_start),
        new_lines=int(new_lines) if new_lines is not None else 1,
    )


def parse_hunks(diff_text: str) -> list[DiffHunk]:
    """Parse unified diff text into hunks, in diff order.

    A malformed hunk header drops only that hunk; its body lines are
    ignored up to the next header.
    """
    hunks: list[DiffHunk] = []
    current: Optional[DiffHunk] = None
    cursor = 0  # 0-based line index in the new revision
    old_left = new_left = 0

    for line in split_lines(diff_text):
        line = line.removesuffix("\r")
        if line.startswith("@@"):
            try:
                current = parse_header(line)
            except ParseError as e:
                LOGGER.warning("%s; skipping hunk", e)
                current = None
                continue
            hunks.append(current)
            cursor = current.new_start - 1
            old_left, new_left = current.old_lines, current.new_lines
            continue

        if current is None:
            continue
        if old_left <= 0 and new_left <= 0:
            # Body exhausted: anything until the next header is file metadata.
            current = None
            continue

        if line.startswith(" ") or line == "":
            cursor += 1
            old_left -= 1
            new_left -= 1
        elif line.startswith("-"):
            current.touched_lines.add(cursor)
            old_left -= 1
        elif line.startswith("+"):
            current.touched_lines.add(cursor)
            cursor += 1
            new_left -= 1
        # "\ No newline at end of file" and anything else: ignored

    return hunks
