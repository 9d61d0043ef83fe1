"""
Logging setup — a rotating chronos.log under the storage root, stderr on request.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from ..config import HistoryConfig

LOG_NAME = "chronos.log"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_log_path: Optional[Path] = None


def default_log_dir() -> Path:
    """CHRONOS_LOG_DIR if set, else <global storage root>/logs."""
    override = os.environ.get("CHRONOS_LOG_DIR")
    if override:
        return Path(override).expanduser()
    return HistoryConfig().global_root() / "logs"


def setup_logging(
    level: int = logging.WARNING,
    log_dir: Path | str | None = None,
    console: bool = False,
) -> Path:
    """Attach handlers to the ``chronos`` logger and return the log file path.

    Calling again replaces the handlers from the previous call. Records
    still propagate to the root logger.
    """
    global _log_path
    target_dir = Path(log_dir).expanduser() if log_dir else default_log_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / LOG_NAME

    logger = logging.getLogger("chronos")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    logger.setLevel(level)
    _log_path = path
    return path


def get_log_path() -> Optional[Path]:
    """Log file installed by the last setup_logging call, if any."""
    return _log_path
