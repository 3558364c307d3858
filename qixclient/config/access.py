"""Process-local config cache.

``load_config`` layers QLIK_* environment variables under the file's values,
so an entry is only reused while both the resolved file path and the QLIK_*
environment are unchanged.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from qixclient.config.loader import get_config_path, load_config
from qixclient.config.schema import Config

ENV_PREFIX = "QLIK_"

_lock = threading.RLock()
_cache: dict[Path, tuple[tuple[tuple[str, str], ...], Config]] = {}


def _resolve(config_path: Path | None) -> Path:
    return Path(config_path or get_config_path()).expanduser().resolve()


def env_snapshot() -> tuple[tuple[str, str], ...]:
    """Sorted QLIK_* variables currently set (case-insensitive prefix)."""
    return tuple(sorted((k, v) for k, v in os.environ.items() if k.upper().startswith(ENV_PREFIX)))


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """Return the config for ``config_path``, reloading when the environment moved."""
    path = _resolve(config_path)
    snapshot = env_snapshot()
    with _lock:
        entry = _cache.get(path)
        if force_reload or entry is None or entry[0] != snapshot:
            _cache[path] = (snapshot, load_config(path))
        return _cache[path][1]


def clear_config_cache(*, config_path: Path | None = None) -> None:
    with _lock:
        if config_path is None:
            _cache.clear()
        else:
            _cache.pop(_resolve(config_path), None)
