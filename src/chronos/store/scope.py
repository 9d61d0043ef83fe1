"""
Storage scope resolution.

Every file maps to exactly one scope root: the global per-install
directory, or <project>/.history when project-local storage is on and
the file lives inside the project.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import PROJECT_HISTORY_DIR

INDEX_NAME = "index.json"


@dataclass(frozen=True)
class Scope:
    """A storage root holding one ledger file and its content blobs."""
    root: Path

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_NAME

    @property
    def key(self) -> str:
        return str(self.index_path)

    def blob_path(self, storage_path: str) -> Path:
        return self.root / storage_path


class ScopeResolver:
    """Map files to scopes and to project-relative paths."""

    def __init__(
        self,
        global_root: Path,
        project_root: Optional[Path] = None,
        save_in_project: bool = False,
    ):
        self.global_root = Path(global_root).expanduser()
        self.project_root = Path(project_root).resolve() if project_root else None
        self.save_in_project = save_in_project

    def absolute(self, path: Path | str) -> Path:
        p = Path(path).expanduser()
        if not p.is_absolute():
            base = self.project_root or Path.cwd()
            p = base / p
        return p.resolve()

    def in_project(self, path: Path | str) -> bool:
        if self.project_root is None:
            return False
        return self.absolute(path).is_relative_to(self.project_root)

    def relative_path(self, path: Path | str) -> str:
        """Project-relative posix path, or the absolute posix path outside the project."""
        abs_path = self.absolute(path)
        if self.project_root is not None and abs_path.is_relative_to(self.project_root):
            return abs_path.relative_to(self.project_root).as_posix()
        return abs_path.as_posix()

    def scope_for(self, path: Path | str) -> Scope:
        if self.save_in_project and self.in_project(path):
            return Scope(self.project_root / PROJECT_HISTORY_DIR)
        return Scope(self.global_root)

    def default_scope(self) -> Scope:
        """Scope for scope-wide markers: the project's if one is open, else global."""
        if self.project_root is not None:
            return self.scope_for(self.project_root)
        return Scope(self.global_root)
