"""
Error taxonomy for the snapshot store and selection history engine.

None of these are fatal. Each is either recovered with a best-effort
fallback or surfaced to the user as a message.
"""

from __future__ import annotations


class ChronosError(Exception):
    """Base class for all chronos errors."""


class StoreIOError(ChronosError):
    """Ledger or blob read/write failed."""


class ContentUnavailable(ChronosError):
    """The requested snapshot has no retrievable content."""

    def __init__(self, snapshot_id: str, reason: str = "no content"):
        self.snapshot_id = snapshot_id
        self.reason = reason
        super().__init__(f"Snapshot {snapshot_id}: {reason}")


class DiffProviderError(ChronosError):
    """The external diff invocation failed or produced unusable output."""


class ParseError(ChronosError):
    """A unified-diff hunk header could not be parsed."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Malformed hunk header: {line!r}")
