"""Runtime settings for the form builder.

``FORMBUILDER_DATA_DIR`` selects the data directory (default ``data``).
``DEV_MODE`` is True when ``FORMBUILDER_DEV=1`` is set or ``app.ini`` in the
data directory has ``dev = true`` under ``[app]``.
"""

from __future__ import annotations

import configparser
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def data_dir() -> Path:
    return Path(os.environ.get("FORMBUILDER_DATA_DIR", "data"))


def store_path() -> Path:
    return data_dir() / "formbuilder.db"


def _read_ini_flag(directory: Path) -> bool:
    ini_path = directory / "app.ini"
    if not ini_path.exists():
        return False
    try:
        cp = configparser.ConfigParser()
        cp.read(ini_path)
        raw = cp.get("app", "dev", fallback="0").strip().lower()
    except configparser.Error as exc:
        logger.warning("Ignoring unreadable %s: %s", ini_path, exc)
        return False
    return raw in {"1", "true", "yes", "on"}


def dev_mode() -> bool:
    return (
        str(os.environ.get("FORMBUILDER_DEV", "0")).strip().lower() in {"1", "true"}
        or _read_ini_flag(data_dir())
    )


DATA_DIR: Path = data_dir()
STORE_PATH: Path = store_path()
DEV_MODE: bool = dev_mode()


def default_store():
    """Return the SQLite store under the configured data directory."""

    from .services.store import SQLiteStore

    return SQLiteStore(store_path())


__all__ = ["DATA_DIR", "STORE_PATH", "DEV_MODE", "data_dir", "store_path", "dev_mode", "default_store"]
