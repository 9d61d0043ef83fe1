"""
Snapshot store — append-only JSON ledgers plus immutable content blobs.

One ledger (index.json) per storage scope, loaded lazily on first use and
cached for the life of the store. Every mutation of a ledger runs under
that scope's lock, so persists happen one at a time in submission order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..config import HistoryConfig
from ..errors import ContentUnavailable, StoreIOError
from .models import EventType, HistoryIndex, Snapshot
from .scope import Scope, ScopeResolver

LOGGER = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def newest_first(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Sort by timestamp descending; equal timestamps keep insertion order."""
    return sorted(snapshots, key=lambda s: -s.timestamp)


class _LedgerState:
    """In-memory ledger for one scope plus its write lock."""

    def __init__(self, scope: Scope):
        self.scope = scope
        self.index: Optional[HistoryIndex] = None
        self.lock = asyncio.Lock()


class SnapshotStore:
    """Versioned, content-deduplicated, append-only record of file revisions."""

    def __init__(self, resolver: ScopeResolver, clock: Optional[Callable[[], int]] = None):
        self.resolver = resolver
        self._clock = clock or _now_ms
        self._ledgers: dict[str, _LedgerState] = {}
        self._owners: dict[str, Scope] = {}  # snapshot id -> scope holding its blob

    @classmethod
    def from_config(cls, config: HistoryConfig, project_root: Optional[Path] = None) -> "SnapshotStore":
        resolver = ScopeResolver(
            config.global_root(),
            project_root=project_root,
            save_in_project=config.save_in_project_folder,
        )
        return cls(resolver)

    # ── Ledger state ──

    async def _ledger(self, scope: Scope) -> _LedgerState:
        state = self._ledgers.get(scope.key)
        if state is None:
            state = _LedgerState(scope)
            self._ledgers[scope.key] = state
        if state.index is None:
            async with state.lock:
                if state.index is None:
                    index = await asyncio.to_thread(_read_index, scope.index_path)
                    for s in index.snapshots:
                        self._owners[s.id] = scope
                    state.index = index
        return state

    async def _persist(self, state: _LedgerState) -> None:
        # Caller holds state.lock.
        try:
            await asyncio.to_thread(_write_index, state.scope.index_path, state.index)
        except StoreIOError as e:
            LOGGER.error("Index save failed for %s: %s", state.scope.index_path, e)

    # ── Mutations ──

    async def save_snapshot(
        self,
        content: str,
        path: Path | str,
        event_type: str = EventType.SAVE,
        label: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[Snapshot]:
        """Record content as a new revision of path.

        Returns None when the content equals the latest revision of the
        same path, or when the blob could not be written.
        """
        scope = self.resolver.scope_for(path)
        rel_path = self.resolver.relative_path(path)
        state = await self._ledger(scope)
        data = content.encode("utf-8")

        async with state.lock:
            last = _latest_for_path(state.index.snapshots, rel_path)
            if last is not None and last.storage_path:
                try:
                    previous = await asyncio.to_thread(_read_blob, scope.blob_path(last.storage_path))
                except StoreIOError as e:
                    LOGGER.debug("Could not read last snapshot %s, saving anyway: %s", last.id, e)
                else:
                    if previous == data:
                        LOGGER.info("Content identical to last snapshot of %s, skipping save.", rel_path)
                        return None

            snapshot_id = str(uuid.uuid4())
            try:
                await asyncio.to_thread(_write_blob, scope.blob_path(snapshot_id), data)
            except StoreIOError as e:
                LOGGER.error("Save failed for %s: %s", rel_path, e)
                return None

            snapshot = Snapshot(
                id=snapshot_id,
                timestamp=self._clock(),
                file_path=rel_path,
                event_type=event_type,
                storage_path=snapshot_id,
                label=label,
                description=description,
            )
            state.index.snapshots.append(snapshot)
            self._owners[snapshot_id] = scope
            await self._persist(state)

        LOGGER.debug("Saved snapshot %s (%s) for %s", snapshot.id, event_type, rel_path)
        return snapshot

    async def create_label(self, name: str, description: Optional[str] = None) -> Snapshot:
        """Append a scope-wide label marker to the project scope, or global if none."""
        scope = self.resolver.default_scope()
        state = await self._ledger(scope)
        snapshot = Snapshot(
            id=str(uuid.uuid4()),
            timestamp=self._clock(),
            file_path="",
            event_type=EventType.LABEL,
            label=name,
            description=description,
        )
        async with state.lock:
            state.index.snapshots.append(snapshot)
            self._owners[snapshot.id] = scope
            await self._persist(state)
        return snapshot

    # ── Queries ──

    async def history_for_file(self, path: Path | str) -> list[Snapshot]:
        """Revisions of path plus every label in its scope, newest first."""
        rel_path = self.resolver.relative_path(path)
        state = await self._ledger(self.resolver.scope_for(path))
        return newest_first(
            s for s in state.index.snapshots
            if s.file_path == rel_path or s.is_label
        )

    async def history_for_scope(self) -> list[Snapshot]:
        """All snapshots across every loaded ledger, newest first.

        The default scope and the global scope are loaded first so a fresh
        store still sees what was persisted by earlier runs.
        """
        await self._ledger(self.resolver.default_scope())
        await self._ledger(Scope(self.resolver.global_root))
        everything: list[Snapshot] = []
        for state in list(self._ledgers.values()):
            if state.index is not None:
                everything.extend(state.index.snapshots)
        return newest_first(everything)

    async def find_snapshot(self, snapshot_id: str, path: Path | str) -> Optional[Snapshot]:
        """Look up a snapshot by id (or unique id prefix) in path's history."""
        history = await self.history_for_file(path)
        exact = [s for s in history if s.id == snapshot_id]
        if exact:
            return exact[0]
        prefixed = [s for s in history if s.id.startswith(snapshot_id)]
        return prefixed[0] if len(prefixed) == 1 else None

    def content_location(self, snapshot: Snapshot) -> Path:
        """Path of the blob holding snapshot's content."""
        if not snapshot.storage_path:
            raise ContentUnavailable(snapshot.id, "snapshot has no content")
        scope = self._owners.get(snapshot.id)
        if scope is None:
            raise ContentUnavailable(snapshot.id, "snapshot is not in any loaded ledger")
        blob = scope.blob_path(snapshot.storage_path)
        if not blob.is_file():
            raise ContentUnavailable(snapshot.id, f"blob missing at {blob}")
        return blob

    async def read_content(self, snapshot: Snapshot) -> str:
        blob = self.content_location(snapshot)
        try:
            data = await asyncio.to_thread(_read_blob, blob)
        except StoreIOError as e:
            raise ContentUnavailable(snapshot.id, str(e)) from e
        return data.decode("utf-8", errors="replace")


def _latest_for_path(snapshots: list[Snapshot], rel_path: str) -> Optional[Snapshot]:
    latest: Optional[Snapshot] = None
    for s in snapshots:
        if s.file_path != rel_path:
            continue
        # >= so that a later append wins a timestamp tie
        if latest is None or s.timestamp >= latest.timestamp:
            latest = s
    return latest


# ── Blocking file helpers (run via asyncio.to_thread) ──

def _read_index(path: Path) -> HistoryIndex:
    """Missing or corrupt ledgers load as empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return HistoryIndex()
    except OSError as e:
        LOGGER.warning("Could not read ledger %s: %s", path, e)
        return HistoryIndex()
    try:
        return HistoryIndex.from_dict(json.loads(text))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        LOGGER.warning("Ledger %s is corrupt, starting empty: %s", path, e)
        return HistoryIndex()


def _write_index(path: Path, index: HistoryIndex) -> None:
    body = json.dumps(index.to_dict(), indent=2)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        raise StoreIOError(f"cannot write {path}: {e}") from e


def _read_blob(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise StoreIOError(f"cannot read {path}: {e}") from e


def _write_blob(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "xb") as f:  # blobs are write-once
            f.write(data)
    except OSError as e:
        raise StoreIOError(f"cannot write {path}: {e}") from e
