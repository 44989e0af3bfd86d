"""SQLite key-value storage for named JSON blobs."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DATE_FIELDS
from .errors import PersistenceError

logger = logging.getLogger(__name__)


def revive_dates(obj: dict[str, Any]) -> dict[str, Any]:
    """``json`` object hook turning ISO strings under date fields into datetimes."""
    for key in DATE_FIELDS:
        value = obj.get(key)
        if isinstance(value, str):
            try:
                obj[key] = datetime.fromisoformat(value)
            except ValueError:
                logger.debug("Leaving unparseable %s value as-is: %r", key, value)
    return obj


def _encode_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def loads(text: str) -> Any:
    """Parse JSON text, reviving date fields."""
    return json.loads(text, object_hook=revive_dates)


class StateStorage:
    """SQLite-backed key-value store. Each value is one JSON document."""

    def __init__(self, db_path: Path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._migrate()

    def _migrate(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
        """)
        self.conn.commit()

    def load(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key``.

        Missing keys and corrupt JSON both yield ``default``; corruption is
        logged, never raised.
        """
        row = self.conn.execute(
            "SELECT value FROM kv_state WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default

        try:
            return loads(row["value"])
        except json.JSONDecodeError as e:
            err = PersistenceError(f"Stored value for '{key}' is corrupt: {e}")
            logger.warning("%s; falling back to defaults", err)
            return default

    def save(self, key: str, value: Any):
        try:
            payload = json.dumps(value, ensure_ascii=False, default=_encode_default)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize value for '{key}': {e}") from e

        self.conn.execute(
            """INSERT INTO kv_state (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   value = excluded.value,
                   updated_at = excluded.updated_at""",
            (key, payload, datetime.now(timezone.utc).isoformat()),
        )
        self.conn.commit()

    def delete(self, key: str):
        self.conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
        self.conn.commit()

    def keys(self) -> list[str]:
        rows = self.conn.execute("SELECT key FROM kv_state ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    def close(self):
        self.conn.close()
