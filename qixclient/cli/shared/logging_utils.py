"""Loguru helpers for consistent logging in CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from qixclient.config.loader import get_data_dir

_SINK_IDS: dict[str, int] = {}

_STDERR_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>"


def _log_dir() -> Path:
    return get_data_dir() / "logs"


def configure_cli_logging(verbose: bool) -> None:
    """Replace loguru's default handler: DEBUG to stderr when verbose, otherwise files only."""
    logger.remove()
    _SINK_IDS.clear()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_STDERR_FORMAT)
    logger.enable("qixclient")


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = _log_dir() / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path
