"""
History configuration — loads .chronos.yaml and provides defaults.

Supports:
- enable flag and retention hints (max age, max size)
- selection-tracking toggle
- storage scope selection (global vs project-local)
- exclude patterns (gitwildmatch, via pathspec)
- diff provider selection
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pathspec
import yaml

LOGGER = logging.getLogger(__name__)

CONFIG_NAMES = (".chronos.yaml", ".chronos.yml")
DEFAULT_STORAGE_DIR = "~/.chronos"
PROJECT_HISTORY_DIR = ".history"


@dataclass
class DiffConfig:
    """Which diff provider to run and how much context it emits."""
    provider: str = "git"  # git, difflib
    context_lines: int = 3


@dataclass
class HistoryConfig:
    """Local history configuration from .chronos.yaml."""
    enabled: bool = True
    max_days: int = 30
    max_size_mb: int = 500
    track_selection_history: bool = True
    save_in_project_folder: bool = False
    storage_dir: str = DEFAULT_STORAGE_DIR
    exclude: list[str] = field(default_factory=list)
    diff: DiffConfig = field(default_factory=DiffConfig)
    _exclude_spec: Optional[pathspec.PathSpec] = field(default=None, init=False, repr=False, compare=False)

    @classmethod
    def load(cls, project_root: Path) -> "HistoryConfig":
        """Load config from .chronos.yaml in project root, or return defaults."""
        for name in CONFIG_NAMES:
            config_path = project_root / name
            if config_path.exists():
                break
        else:
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOGGER.warning("Ignoring unreadable config %s: %s", config_path, e)
            return cls()

        if not isinstance(data, dict):
            LOGGER.warning("Ignoring config %s: expected a mapping", config_path)
            return cls()
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "HistoryConfig":
        history = data.get("history") or {}
        diff = data.get("diff") or {}
        defaults = cls()

        return cls(
            enabled=bool(history.get("enabled", defaults.enabled)),
            max_days=int(history.get("max_days", defaults.max_days)),
            max_size_mb=int(history.get("max_size_mb", defaults.max_size_mb)),
            track_selection_history=bool(
                history.get("track_selection_history", defaults.track_selection_history)
            ),
            save_in_project_folder=bool(
                history.get("save_in_project_folder", defaults.save_in_project_folder)
            ),
            storage_dir=str(history.get("storage_dir", defaults.storage_dir)),
            exclude=[str(p) for p in data.get("exclude") or []],
            diff=DiffConfig(
                provider=str(diff.get("provider", "git")),
                context_lines=int(diff.get("context_lines", 3)),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "history": {
                "enabled": self.enabled,
                "max_days": self.max_days,
                "max_size_mb": self.max_size_mb,
                "track_selection_history": self.track_selection_history,
                "save_in_project_folder": self.save_in_project_folder,
                "storage_dir": self.storage_dir,
            },
            "diff": {
                "provider": self.diff.provider,
                "context_lines": self.diff.context_lines,
            },
        }
        if self.exclude:
            result["exclude"] = list(self.exclude)
        return result

    def global_root(self) -> Path:
        """Global per-install storage root. CHRONOS_HOME wins over the config."""
        override = os.environ.get("CHRONOS_HOME")
        return Path(override or self.storage_dir).expanduser()

    def is_excluded(self, rel_path: str) -> bool:
        """True if rel_path matches any exclude pattern."""
        if not self.exclude:
            return False
        if self._exclude_spec is None:
            self._exclude_spec = pathspec.PathSpec.from_lines("gitwildmatch", self.exclude)
        return self._exclude_spec.match_file(rel_path)
