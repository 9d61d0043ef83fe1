"""
History manager — file lifecycle hooks that create snapshots.

The editor integration calls these; each honours the enabled flag and
the exclude patterns, and logs rather than raises on failure.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ..config import HistoryConfig
from ..errors import ChronosError
from ..store.ledger import SnapshotStore
from ..store.models import EventType, Snapshot

LOGGER = logging.getLogger(__name__)

BASELINE_LABEL = "Initial Baseline"


class HistoryManager:
    """Record snapshots on save/open/rename and place labels."""

    def __init__(self, store: SnapshotStore, config: Optional[HistoryConfig] = None):
        self.store = store
        self.config = config or HistoryConfig()

    def is_tracked(self, path: Path | str) -> bool:
        if not self.config.enabled:
            return False
        rel_path = self.store.resolver.relative_path(path)
        return not self.config.is_excluded(rel_path)

    async def on_file_saved(self, path: Path | str, content: str) -> Optional[Snapshot]:
        if not self.is_tracked(path):
            return None
        snapshot = await self.store.save_snapshot(content, path, EventType.SAVE)
        if snapshot:
            LOGGER.info("Snapshot: %s", snapshot.file_path)
        return snapshot

    async def on_file_opened(self, path: Path | str, content: str) -> Optional[Snapshot]:
        """Create a baseline snapshot the first time a file is seen."""
        if not self.is_tracked(path):
            return None
        try:
            history = await self.store.history_for_file(path)
        except ChronosError as e:
            LOGGER.error("Baseline check failed for %s: %s", path, e)
            return None
        if any(not s.is_label for s in history):
            return None
        LOGGER.info("Creating initial baseline for: %s", self.store.resolver.relative_path(path))
        return await self.store.save_snapshot(content, path, EventType.MANUAL, label=BASELINE_LABEL)

    async def on_file_renamed(
        self,
        old_path: Path | str,
        new_path: Path | str,
        content: Optional[str] = None,
    ) -> Optional[Snapshot]:
        """Record the renamed file's content under its new path."""
        if not self.is_tracked(new_path):
            return None
        if content is None:
            target = self.store.resolver.absolute(new_path)
            try:
                content = await asyncio.to_thread(target.read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                LOGGER.error("Cannot read renamed file %s: %s", target, e)
                return None
        LOGGER.debug("Rename %s -> %s", old_path, new_path)
        return await self.store.save_snapshot(content, new_path, EventType.RENAME)

    async def on_file_deleted(self, path: Path | str) -> None:
        # Deletions are not recorded; EventType.DELETE is reserved.
        return None

    async def put_label(self, name: str, description: Optional[str] = None) -> Snapshot:
        return await self.store.create_label(name, description)
