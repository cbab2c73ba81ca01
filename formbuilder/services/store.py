"""Key-value persistence for the form builder.

Values are JSON documents stored under a handful of fixed keys.  Reads are
forgiving: a missing key, unreadable JSON or a value of the wrong shape reads
as empty so a damaged store degrades to a fresh start.  Writes are not:
any failure raises :class:`~formbuilder.exceptions.PersistenceError`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Protocol

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

RECENT_FORMS_KEY = "recentForms"
TEMPLATES_KEY = "templates"
SUBMITTED_TEMPLATES_KEY = "submittedTemplates"
THEME_KEY = "theme"

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class KeyValueStore(Protocol):
    """Interface the repository needs from a storage backend."""

    def get(self, key: str) -> list[Any]:
        ...

    def put(self, key: str, value: list[Any]) -> None:
        ...

    def get_value(self, key: str, default: Any = None) -> Any:
        ...

    def put_value(self, key: str, value: Any) -> None:
        ...


def _decode(key: str, raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored value for %s is not valid JSON; treating it as empty", key)
        return None


def _as_list(key: str, decoded: Any) -> list[Any]:
    if decoded is None:
        return []
    if not isinstance(decoded, list):
        logger.warning("Stored value for %s is not a list; treating it as empty", key)
        return []
    return decoded


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"Value for {key} is not JSON serialisable: {exc}") from exc


class MemoryStore:
    """Dictionary backed store for tests and throwaway sessions.

    Values are kept as JSON text so callers never share objects with the
    store, exactly as with the SQLite backend.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = _encode(key, value)

    def get(self, key: str) -> list[Any]:
        return _as_list(key, _decode(key, self._data.get(key)))

    def put(self, key: str, value: list[Any]) -> None:
        self._data[key] = _encode(key, list(value))

    def get_value(self, key: str, default: Any = None) -> Any:
        decoded = _decode(key, self._data.get(key))
        return default if decoded is None else decoded

    def put_value(self, key: str, value: Any) -> None:
        self._data[key] = _encode(key, value)

    def raw(self, key: str) -> str | None:
        """Return the stored text for ``key`` (used to seed corrupt data in tests)."""

        return self._data.get(key)

    def set_raw(self, key: str, text: str) -> None:
        self._data[key] = text


class SQLiteStore:
    """Store backed by a single ``kv_store`` table in a SQLite file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        try:
            with self._connection() as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS kv_store (
                      key TEXT PRIMARY KEY,
                      value TEXT NOT NULL,
                      updated_at TEXT NOT NULL
                    );
                    """
                )
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"Cannot open store at {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    def get(self, key: str) -> list[Any]:
        return _as_list(key, _decode(key, self._read(key)))

    def put(self, key: str, value: list[Any]) -> None:
        self._write(key, _encode(key, list(value)))

    def get_value(self, key: str, default: Any = None) -> Any:
        decoded = _decode(key, self._read(key))
        return default if decoded is None else decoded

    def put_value(self, key: str, value: Any) -> None:
        self._write(key, _encode(key, value))

    # ------------------------------------------------------------------
    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA busy_timeout = 4000")
        except sqlite3.DatabaseError:
            pass
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _read(self, key: str) -> str | None:
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Unable to read %s from %s: %s", key, self.path, exc)
            return None
        return None if row is None else row["value"]

    def _write(self, key: str, text: str) -> None:
        now = datetime.now(timezone.utc).strftime(ISO_FORMAT)
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, text, now),
                )
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"Failed to save {key}: {exc}") from exc


__all__ = [
    "RECENT_FORMS_KEY",
    "TEMPLATES_KEY",
    "SUBMITTED_TEMPLATES_KEY",
    "THEME_KEY",
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
]
