"""
Diff providers — compute unified diff text between two files.

The selection engine only consumes diff text; how it is produced is
up to the provider. GitDiffProvider shells out to `git diff --no-index`,
DifflibDiffProvider stays in-process.
"""

from __future__ import annotations

import asyncio
import difflib
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from ..config import DiffConfig
from ..errors import DiffProviderError
from .hunks import split_lines

LOGGER = logging.getLogger(__name__)

NULL_SOURCE = Path(os.devnull)


class DiffProvider(ABC):
    """Abstract base for diff providers."""

    def __init__(self, context_lines: int = 3):
        self.context_lines = max(0, int(context_lines))

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'git')."""

    @abstractmethod
    async def diff(self, old_source: Path | str, new_source: Path | str) -> str:
        """Unified diff from old_source to new_source.

        Returns "" when there are no differences. Raises DiffProviderError
        when the diff cannot be computed.
        """


class GitDiffProvider(DiffProvider):
    """`git diff --no-index` between two paths."""

    name = "git"

    def __init__(self, context_lines: int = 3, git: str = "git"):
        super().__init__(context_lines)
        self.git = git

    async def diff(self, old_source: Path | str, new_source: Path | str) -> str:
        args = [
            self.git, "diff", "--no-index", "--no-color", "--no-ext-diff",
            f"-U{self.context_lines}", str(old_source), str(new_source),
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DiffProviderError(f"cannot run {self.git}: {e}") from e

        stdout, stderr = await proc.communicate()
        # 0 = identical, 1 = differences found, anything else is a failure
        if proc.returncode not in (0, 1):
            message = stderr.decode("utf-8", errors="replace").strip()
            LOGGER.warning("git diff failed (%s): %s", proc.returncode, message)
            raise DiffProviderError(message or f"git diff exited with {proc.returncode}")
        return stdout.decode("utf-8", errors="replace")


class DifflibDiffProvider(DiffProvider):
    """In-process unified diff using difflib."""

    name = "difflib"

    async def diff(self, old_source: Path | str, new_source: Path | str) -> str:
        old_text, new_text = await asyncio.gather(
            asyncio.to_thread(_read_source, Path(old_source)),
            asyncio.to_thread(_read_source, Path(new_source)),
        )
        return self.diff_text(old_text, new_text, str(old_source), str(new_source))

    def diff_text(self, old_text: str, new_text: str, old_label: str = "a", new_label: str = "b") -> str:
        lines = difflib.unified_diff(
            split_lines(old_text),
            split_lines(new_text),
            fromfile=old_label,
            tofile=new_label,
            lineterm="",
            n=self.context_lines,
        )
        body = "\n".join(lines)
        return body + "\n" if body else ""


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise DiffProviderError(f"cannot read {path}: {e}") from e


_PROVIDERS: dict[str, type[DiffProvider]] = {
    GitDiffProvider.name: GitDiffProvider,
    DifflibDiffProvider.name: DifflibDiffProvider,
}


def get_provider(config: DiffConfig) -> DiffProvider:
    """Build the provider named in config."""
    cls = _PROVIDERS.get(config.provider)
    if cls is None:
        raise ValueError(
            f"Unknown diff provider {config.provider!r} (expected one of {sorted(_PROVIDERS)})"
        )
    return cls(context_lines=config.context_lines)
