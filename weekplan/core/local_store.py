"""
FILE: weekplan/core/local_store.py
PURPOSE: Device-local key-value cache holding the guest scope
EXPORTS:
  - LocalCacheStore (class)
    - get(key) -> str | None
    - set(key, blob) -> None
    - remove(key) -> None
    - get_json(key) -> Any | None
    - set_json(key, value) -> None
DEPENDENCIES:
  - sqlite3 (stdlib)
  - json (stdlib)
  - pathlib (stdlib)
  - weekplan.core.exceptions (BackingStoreError)
NOTES:
  - One SQLite file with a single kv table, the device equivalent of localStorage
  - Auto-creates directory and table on first connection
  - sqlite3 errors and undecodable blobs surface as BackingStoreError
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from .constants import CACHE_DB_PATH
from .exceptions import BackingStoreError


logger = logging.getLogger(__name__)


class LocalCacheStore:
    """Serialized blobs keyed by name, scoped to this device."""

    def __init__(self, db_path: Path = CACHE_DB_PATH):
        self.db_path = Path(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """
        Get SQLite connection to the cache file.

        Creates the parent directory and kv table if they don't exist.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def get(self, key: str) -> Optional[str]:
        """
        Fetch the blob stored under key.

        Returns:
            Stored string, or None if the key is absent

        Raises:
            BackingStoreError: If the cache file can't be read
        """
        try:
            conn = self.get_connection()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise BackingStoreError(f"Local cache read failed for '{key}': {e}") from e

        return row[0] if row else None

    def set(self, key: str, blob: str) -> None:
        """Store blob under key, replacing any previous value."""
        try:
            conn = self.get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, blob),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise BackingStoreError(f"Local cache write failed for '{key}': {e}") from e

    def remove(self, key: str) -> None:
        """Delete key. Missing keys are ignored."""
        try:
            conn = self.get_connection()
            try:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise BackingStoreError(f"Local cache remove failed for '{key}': {e}") from e

    def get_json(self, key: str) -> Any:
        """
        Fetch and decode a JSON blob.

        Returns:
            Decoded value, or None if the key is absent

        Raises:
            BackingStoreError: If the stored blob is not valid JSON
        """
        blob = self.get(key)
        if blob is None:
            return None

        try:
            return json.loads(blob)
        except ValueError as e:
            logger.error("Corrupt local cache entry %r: %s", key, e)
            raise BackingStoreError(f"Local cache entry '{key}' is corrupt: {e}") from e

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))
