"""Key-value store boundary and the backends shipped with the ledger.

The ledger only needs a handful of primitives: hash-map fields, plain string
values, and append-only lists, all addressed by string keys. Each primitive is
atomic on its own. ``lock(key)`` lets callers make a read-decide-write sequence
on one key atomic with respect to other writers going through the same store.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, ContextManager, Iterable, Iterator, Sequence

if TYPE_CHECKING:  # pragma: no cover - import cycle guard for type checkers
    from .config import LedgerConfig

logger = logging.getLogger(__name__)

MEMORY_BACKEND = "memory"
SQLITE_BACKEND = "sqlite"
SUPPORTED_BACKENDS = (MEMORY_BACKEND, SQLITE_BACKEND)


def _list_slice(items: Sequence[str], start: int, stop: int) -> list[str]:
    """Inclusive range with negative indexes counted from the end."""

    length = len(items)
    if start < 0:
        start = max(length + start, 0)
    if stop < 0:
        stop = length + stop
    if start >= length or start > stop:
        return []
    return list(items[start : stop + 1])


class KeyValueStore:
    """Interface for the flat key-value service the ledger persists into."""

    def hget(self, key: str, field: str) -> str | None:
        raise NotImplementedError

    def hset(self, key: str, field: str, value: str) -> None:
        raise NotImplementedError

    def hsetnx(self, key: str, field: str, value: str) -> bool:
        """Set *field* only when it does not exist yet; return whether it was written."""

        raise NotImplementedError

    def hgetall(self, key: str) -> dict[str, str]:
        raise NotImplementedError

    def hkeys(self, key: str) -> list[str]:
        raise NotImplementedError

    def hdel(self, key: str, fields: Iterable[str]) -> int:
        raise NotImplementedError

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def rpush(self, key: str, *values: str) -> int:
        raise NotImplementedError

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        raise NotImplementedError

    def lock(self, key: str) -> ContextManager[None]:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe dictionary-backed store for tests and one-shot runs."""

    def __init__(self) -> None:
        self._hashes: dict[str, dict[str, str]] = {}
        self._strings: dict[str, str] = {}
        self._lists: dict[str, list[str]] = {}
        self._guard = threading.RLock()
        # key -> [lock, number of callers holding or waiting on it]
        self._key_locks: dict[str, list] = {}

    def hget(self, key: str, field: str) -> str | None:
        with self._guard:
            return self._hashes.get(key, {}).get(field)

    def hset(self, key: str, field: str, value: str) -> None:
        with self._guard:
            self._hashes.setdefault(key, {})[field] = value

    def hsetnx(self, key: str, field: str, value: str) -> bool:
        with self._guard:
            fields = self._hashes.setdefault(key, {})
            if field in fields:
                return False
            fields[field] = value
            return True

    def hgetall(self, key: str) -> dict[str, str]:
        with self._guard:
            return dict(self._hashes.get(key, {}))

    def hkeys(self, key: str) -> list[str]:
        with self._guard:
            return list(self._hashes.get(key, {}))

    def hdel(self, key: str, fields: Iterable[str]) -> int:
        with self._guard:
            existing = self._hashes.get(key)
            if not existing:
                return 0
            removed = 0
            for field in fields:
                if existing.pop(field, None) is not None:
                    removed += 1
            if not existing:
                del self._hashes[key]
            return removed

    def get(self, key: str) -> str | None:
        with self._guard:
            return self._strings.get(key)

    def set(self, key: str, value: str) -> None:
        with self._guard:
            self._strings[key] = value

    def rpush(self, key: str, *values: str) -> int:
        with self._guard:
            items = self._lists.setdefault(key, [])
            items.extend(str(value) for value in values)
            return len(items)

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        with self._guard:
            return _list_slice(self._lists.get(key, []), start, stop)

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._key_locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]


class SQLiteKeyValueStore(KeyValueStore):
    """Persist hash maps, strings, and lists to a local SQLite database.

    ``lock`` opens an immediate transaction, so a locked sequence is also
    serialized against other processes writing the same database file.
    """

    DEFAULT_DB_PATH = Path.home() / ".ordinal-ledger" / "ledger.sqlite"

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), isolation_level=None, check_same_thread=False)
        self._mutex = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_hashes (
                key TEXT NOT NULL,
                field TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (key, field)
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_strings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_lists (
                key TEXT NOT NULL,
                position INTEGER NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (key, position)
            )
            """
        )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        with self._mutex:
            outermost = self._depth == 0
            if outermost:
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self.conn.cursor()
            except BaseException:
                self._depth -= 1
                if outermost:
                    self.conn.execute("ROLLBACK")
                raise
            self._depth -= 1
            if outermost:
                self.conn.execute("COMMIT")

    def _query(self, sql: str, params: Sequence[object]) -> list[tuple]:
        with self._mutex:
            return self.conn.execute(sql, params).fetchall()

    def close(self) -> None:
        self.conn.close()

    def hget(self, key: str, field: str) -> str | None:
        rows = self._query("SELECT value FROM kv_hashes WHERE key = ? AND field = ?", (key, field))
        return rows[0][0] if rows else None

    def hset(self, key: str, field: str, value: str) -> None:
        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO kv_hashes (key, field, value) VALUES (?, ?, ?)
                ON CONFLICT (key, field) DO UPDATE SET value = excluded.value
                """,
                (key, field, value),
            )

    def hsetnx(self, key: str, field: str, value: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute(
                "INSERT OR IGNORE INTO kv_hashes (key, field, value) VALUES (?, ?, ?)",
                (key, field, value),
            )
            return cursor.rowcount == 1

    def hgetall(self, key: str) -> dict[str, str]:
        rows = self._query("SELECT field, value FROM kv_hashes WHERE key = ? ORDER BY rowid", (key,))
        return {field: value for field, value in rows}

    def hkeys(self, key: str) -> list[str]:
        rows = self._query("SELECT field FROM kv_hashes WHERE key = ? ORDER BY rowid", (key,))
        return [row[0] for row in rows]

    def hdel(self, key: str, fields: Iterable[str]) -> int:
        names = list(fields)
        if not names:
            return 0
        placeholders = ", ".join("?" for _ in names)
        with self._transaction() as cursor:
            cursor.execute(
                f"DELETE FROM kv_hashes WHERE key = ? AND field IN ({placeholders})",
                (key, *names),
            )
            return cursor.rowcount

    def get(self, key: str) -> str | None:
        rows = self._query("SELECT value FROM kv_strings WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    def set(self, key: str, value: str) -> None:
        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO kv_strings (key, value) VALUES (?, ?)
                ON CONFLICT (key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def rpush(self, key: str, *values: str) -> int:
        with self._transaction() as cursor:
            cursor.execute("SELECT COALESCE(MAX(position), -1) FROM kv_lists WHERE key = ?", (key,))
            position = cursor.fetchone()[0]
            for value in values:
                position += 1
                cursor.execute(
                    "INSERT INTO kv_lists (key, position, value) VALUES (?, ?, ?)",
                    (key, position, str(value)),
                )
            return position + 1

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        rows = self._query("SELECT value FROM kv_lists WHERE key = ? ORDER BY position", (key,))
        return _list_slice([row[0] for row in rows], start, stop)

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        with self._transaction():
            yield


def create_key_value_store(config: "LedgerConfig") -> KeyValueStore:
    """Instantiate the backend selected by *config*."""

    if config.backend == MEMORY_BACKEND:
        logger.debug("Using in-memory key-value store")
        return InMemoryKeyValueStore()
    if config.backend == SQLITE_BACKEND:
        logger.debug("Using SQLite key-value store at %s", config.sqlite_path)
        return SQLiteKeyValueStore(config.sqlite_path)
    raise ValueError(f"Unsupported key-value backend: {config.backend}")


__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "MEMORY_BACKEND",
    "SQLITE_BACKEND",
    "SQLiteKeyValueStore",
    "SUPPORTED_BACKENDS",
    "create_key_value_store",
]
