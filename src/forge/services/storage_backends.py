"""
Key/value persistence media consumed by the ContextStore.

Any medium offering ``get``/``set``/``remove`` over string keys and string
values can back the store. Two are provided: a process-local dictionary and
a SQLite table.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from src.forge.config import DEFAULT_DATABASE_PATH
from src.forge.models.exceptions import StorageError

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "ai-context"


def storage_key(project_id: str, document_name: str) -> str:
    """Build the medium key for one document of one project."""
    return f"{STORAGE_KEY_PREFIX}-{project_id}-{document_name}"


class KeyValueStorage(ABC):
    """
    Abstract Base Class for persistence media.
    Implementations raise StorageError when the medium itself fails.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key; deleting a missing key is not an error."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with ``prefix``."""
        pass


class InMemoryStorage(KeyValueStorage):
    """Dictionary-backed storage. Contents are lost when the process exits."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(key for key in self._data if key.startswith(prefix))


class SqliteStorage(KeyValueStorage):
    """
    Persists key/value pairs to a SQLite database, with a graceful
    in-memory fallback when the database cannot be opened.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path) if db_path else DEFAULT_DATABASE_PATH
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._fallback: Optional[InMemoryStorage] = None

        self._initialize_database()

    # --------------------------------------------------------------------- #
    # Initialization & teardown
    # --------------------------------------------------------------------- #
    def _initialize_database(self) -> None:
        """Attempt to set up the SQLite database; enable in-memory fallback on failure."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.execute("PRAGMA journal_mode=WAL;")
            self._create_schema()
            logger.info("Context storage initialized at %s", self.db_path)
        except (OSError, sqlite3.Error) as exc:
            logger.error(
                "Failed to initialize context database at %s: %s. "
                "Falling back to in-memory storage.",
                self.db_path,
                exc,
            )
            self._activate_fallback_mode()

    def _create_schema(self) -> None:
        """Create the key/value table if it does not already exist."""
        if not self._connection:
            return
        with self._connection:
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    def close(self) -> None:
        """Close the SQLite connection if it is open."""
        if self._connection:
            try:
                self._connection.close()
            except sqlite3.Error:
                logger.debug("Failed to close context database connection cleanly.", exc_info=True)
        self._connection = None

    def _activate_fallback_mode(self) -> None:
        """Switch to in-memory persistence so the app remains functional."""
        self._fallback = InMemoryStorage()
        self.close()

    @property
    def fallback_mode(self) -> bool:
        return self._fallback is not None

    # --------------------------------------------------------------------- #
    # KeyValueStorage
    # --------------------------------------------------------------------- #
    def get(self, key: str) -> Optional[str]:
        if self._fallback is not None:
            return self._fallback.get(key)
        try:
            with self._lock:
                cursor = self._require_connection().execute(
                    "SELECT value FROM kv_store WHERE key = ?;", (key,)
                )
                row = cursor.fetchone()
                return row[0] if row else None
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read '{key}': {exc}", key=key, cause=exc) from exc

    def set(self, key: str, value: str) -> None:
        if self._fallback is not None:
            self._fallback.set(key, value)
            return
        try:
            with self._lock:
                connection = self._require_connection()
                connection.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at;
                    """,
                    (key, value, self._now()),
                )
                connection.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write '{key}': {exc}", key=key, cause=exc) from exc

    def remove(self, key: str) -> None:
        if self._fallback is not None:
            self._fallback.remove(key)
            return
        try:
            with self._lock:
                connection = self._require_connection()
                connection.execute("DELETE FROM kv_store WHERE key = ?;", (key,))
                connection.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to remove '{key}': {exc}", key=key, cause=exc) from exc

    def keys(self, prefix: str = "") -> List[str]:
        if self._fallback is not None:
            return self._fallback.keys(prefix)
        try:
            with self._lock:
                cursor = self._require_connection().execute(
                    "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key;",
                    (len(prefix), prefix),
                )
                return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to list keys with prefix '{prefix}': {exc}", cause=exc) from exc

    # --------------------------------------------------------------------- #
    # Helpers
    # --------------------------------------------------------------------- #
    def _require_connection(self) -> sqlite3.Connection:
        if not self._connection:
            raise sqlite3.OperationalError("Context database connection is not available.")
        return self._connection

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
