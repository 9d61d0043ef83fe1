"""
Domain models for the snapshot store.

Pure dataclasses — no external dependencies. A HistoryIndex is the
persisted ledger of one storage scope; each Snapshot is one record in it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


class EventType:
    """Snapshot event tags."""
    SAVE = "save"
    RENAME = "rename"
    MANUAL = "manual"
    LABEL = "label"
    DELETE = "delete"  # reserved, nothing creates it

    ALL = (SAVE, RENAME, MANUAL, LABEL, DELETE)


@dataclass
class Snapshot:
    """One recorded revision of a file, or a scope-wide label marker."""
    id: str = ""
    timestamp: int = 0  # epoch milliseconds
    file_path: str = ""  # relative to the project root; "" for labels
    event_type: str = EventType.SAVE
    storage_path: Optional[str] = None  # blob file name under the scope root
    label: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_label(self) -> bool:
        return self.event_type == EventType.LABEL

    @property
    def has_content(self) -> bool:
        return bool(self.storage_path)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "file_path": self.file_path,
            "event_type": self.event_type,
        }
        if self.storage_path:
            result["storage_path"] = self.storage_path
        if self.label is not None:
            result["label"] = self.label
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        return cls(
            id=str(data["id"]),
            timestamp=int(data.get("timestamp", 0)),
            file_path=str(data.get("file_path", "")),
            event_type=str(data.get("event_type", EventType.SAVE)),
            storage_path=data.get("storage_path"),
            label=data.get("label"),
            description=data.get("description"),
        )


@dataclass
class HistoryIndex:
    """The ledger for one scope: snapshots in append order."""
    snapshots: list[Snapshot] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"snapshots": [s.to_dict() for s in self.snapshots]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryIndex":
        return cls(snapshots=[Snapshot.from_dict(s) for s in data.get("snapshots", [])])
