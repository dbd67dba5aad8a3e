"""Durable key-value store backing all relay state."""

import sqlite3
import threading
import time
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import orjson
import structlog

from ..errors import StoreError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreateResult:
    """Outcome of create_if_absent_matching."""
    created: bool
    conflict_key: Optional[str] = None
    conflict: Optional[Any] = None


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of atomic_update."""
    written: bool
    previous: Optional[Any] = None
    current: Optional[Any] = None


@dataclass(frozen=True)
class MoveResult:
    """Outcome of move_if_absent."""
    moved: bool
    source: Optional[Any] = None
    target: Optional[Any] = None


def _prefix_upper_bound(prefix: str) -> str:
    # Smallest string greater than every string starting with prefix
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


class KeyValueStore:
    """
    SQLite-based key-value store.

    Values are arbitrary JSON-serializable structures. All operations hold a
    process-wide lock and the compound primitives run inside a single
    ``BEGIN IMMEDIATE`` transaction, so they are linearizable for every
    thread and process sharing the database file.
    """

    def __init__(self, db_path: str = "relay.db", timeout_seconds: float = 30.0):
        self.db_path = Path(db_path)
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(db_path=str(self.db_path))
        self._lock = threading.RLock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection, translating driver errors to StoreError."""
        conn = None
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout_seconds,
                isolation_level=None,
            )
            yield conn
        except sqlite3.Error as e:
            if conn is not None and conn.in_transaction:
                conn.rollback()
            self.logger.error("Store operation failed", error=str(e))
            raise StoreError(f"Store operation failed: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def _transaction(self):
        """Serialized write transaction."""
        with self._lock, self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    @staticmethod
    def _encode(value: Any) -> bytes:
        return orjson.dumps(value)

    @staticmethod
    def _decode(raw: bytes) -> Any:
        return orjson.loads(raw)

    def _read(self, conn: sqlite3.Connection, key: str) -> Optional[Any]:
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return self._decode(row[0]) if row else None

    def _write(self, conn: sqlite3.Connection, key: str, value: Any) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
            (key, self._encode(value), int(time.time() * 1000))
        )

    def _scan(self, conn: sqlite3.Connection, prefix: str) -> list[tuple[str, Any]]:
        if prefix:
            rows = conn.execute(
                "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key",
                (prefix, _prefix_upper_bound(prefix))
            ).fetchall()
        else:
            rows = conn.execute("SELECT key, value FROM kv ORDER BY key").fetchall()
        return [(row[0], self._decode(row[1])) for row in rows]

    def get(self, key: str) -> Optional[Any]:
        """Get the value stored under ``key``, or None."""
        with self._lock, self._get_connection() as conn:
            return self._read(conn, key)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any existing value."""
        with self._transaction() as conn:
            self._write(conn, key, value)

    def delete(self, key: str) -> bool:
        """Delete ``key``. Returns True if a record was removed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def delete_many(self, keys: Iterable[str]) -> int:
        """Delete several keys in one transaction. Returns the number removed."""
        keys = list(keys)
        if not keys:
            return 0
        with self._transaction() as conn:
            removed = 0
            for key in keys:
                removed += conn.execute("DELETE FROM kv WHERE key = ?", (key,)).rowcount
            return removed

    def scan(self, prefix: str = "") -> list[tuple[str, Any]]:
        """Return all ``(key, value)`` pairs whose key starts with ``prefix``, ordered by key."""
        with self._lock, self._get_connection() as conn:
            return self._scan(conn, prefix)

    def count(self, prefix: str = "") -> int:
        """Count records whose key starts with ``prefix``."""
        with self._lock, self._get_connection() as conn:
            if not prefix:
                return conn.execute("SELECT COUNT(*) FROM kv").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM kv WHERE key >= ? AND key < ?",
                (prefix, _prefix_upper_bound(prefix))
            ).fetchone()[0]

    def create_if_absent_matching(
        self,
        prefix: str,
        predicate: Callable[[Any], bool],
        key: str,
        value: Any
    ) -> CreateResult:
        """
        Atomically write ``key`` unless a record under ``prefix`` matches.

        Args:
            prefix: Key prefix to scan
            predicate: Returns True for records that block creation
            key: Key to create
            value: Value to store

        Returns:
            CreateResult with the first blocking record when creation was refused
        """
        with self._transaction() as conn:
            for existing_key, existing in self._scan(conn, prefix):
                if predicate(existing):
                    return CreateResult(
                        created=False,
                        conflict_key=existing_key,
                        conflict=existing
                    )

            self._write(conn, key, value)
            return CreateResult(created=True)

    def atomic_update(
        self,
        key: str,
        updater: Callable[[Optional[Any]], Optional[Any]]
    ) -> UpdateResult:
        """
        Atomically read, decide and write a single key.

        ``updater`` receives the current value (None if absent) and returns the
        value to write, or None to leave the record untouched.
        """
        with self._transaction() as conn:
            previous = self._read(conn, key)
            current = updater(previous)

            if current is None:
                return UpdateResult(written=False, previous=previous, current=previous)

            self._write(conn, key, current)
            return UpdateResult(written=True, previous=previous, current=current)

    def move_if_absent(
        self,
        source_key: str,
        target_key: str,
        builder: Callable[[Optional[Any]], Optional[Any]]
    ) -> MoveResult:
        """
        Atomically replace ``source_key`` with a new record at ``target_key``.

        ``builder`` receives the source value (None if absent) and returns the
        target value, or None to leave both keys untouched. An existing target
        is never overwritten; the source is still removed in that case, since
        the target already records what the source stood for.
        """
        with self._transaction() as conn:
            source = self._read(conn, source_key)
            value = builder(source)

            if value is None:
                return MoveResult(moved=False, source=source)

            conn.execute("DELETE FROM kv WHERE key = ?", (source_key,))

            existing = self._read(conn, target_key)
            if existing is not None:
                return MoveResult(moved=False, source=source, target=existing)

            self._write(conn, target_key, value)
            return MoveResult(moved=True, source=source, target=value)

    def clear(self) -> None:
        """Delete every record."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM kv")
