"""Lifecycle of the embedded SQLite database.

The database lives in memory while the process runs. ``init`` loads the file
image (if any) into a fresh in-memory connection and ``save`` writes the whole
image back through the vault. Nothing reaches the disk between saves, so every
unit of work that must survive a crash ends with ``save()``.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .errors import ErrorCode, SyncFailure
from .results import Ok, Result, failure
from .schema import load_statements
from .vault import VaultAdapter

LOGGER = logging.getLogger(__name__)


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


class SqliteDatabase:
    """Owns the in-memory connection and its backing file."""

    def __init__(self, vault: VaultAdapter) -> None:
        self._vault = vault
        self._conn: sqlite3.Connection | None = None
        self._db_folder: str | None = None
        self._db_file: str | None = None

    @property
    def db_file_path(self) -> str:
        return f"{self._db_folder}/{self._db_file}"

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None and self._db_folder is not None and self._db_file is not None

    @property
    def instance(self) -> Result[sqlite3.Connection, SyncFailure]:
        if self._conn is None or not self.is_initialized:
            return failure(ErrorCode.DATABASE_IS_NOT_INITIALIZED)
        return Ok(self._conn)

    def init(self, db_folder: str, db_file: str) -> Result[sqlite3.Connection, SyncFailure]:
        """Open or create the database file, apply the schema and save it."""

        db_folder = db_folder.rstrip("/") or "."
        if self._conn is not None:
            if (self._db_folder, self._db_file) == (db_folder, db_file):
                return Ok(self._conn)
            return failure(
                ErrorCode.INITIALIZATION_FAILED,
                f"already initialized with {self.db_file_path}",
            )

        self._db_folder = db_folder
        self._db_file = db_file
        opened = self._open()
        if opened.is_err():
            self._reset()
            return opened

        self._conn = opened.value
        migrated = self._apply_schema(self._conn)
        if migrated.is_err():
            self._conn.close()
            self._reset()
            return migrated

        saved = self.save()
        if saved.is_err():
            self._conn.close()
            self._reset()
            return saved

        LOGGER.info("Database %s is ready", self.db_file_path)
        return Ok(self._conn)

    def save(self) -> Result[None, SyncFailure]:
        """Serialize the whole database and write it to the vault."""

        instance = self.instance
        if instance.is_err():
            return instance
        conn = instance.value
        if conn.in_transaction:
            return failure(ErrorCode.DATABASE_SAVE_FAILED, "a transaction is still open")
        try:
            data = conn.serialize()
            self._vault.get_or_create_folder(self._db_folder or ".")
            self._vault.write_binary(self.db_file_path, data)
        except (OSError, sqlite3.Error, ValueError) as exc:
            LOGGER.error("Unable to save database %s: %s", self.db_file_path, exc)
            return failure(ErrorCode.DATABASE_SAVE_FAILED, exc)
        LOGGER.debug("Saved %s bytes to %s", len(data), self.db_file_path)
        return Ok(None)

    def close(self) -> Result[None, SyncFailure]:
        if self._conn is not None:
            self._conn.close()
        self._reset()
        return Ok(None)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside ``BEGIN``/``COMMIT``; roll back on any exception."""

        conn = self.instance.unwrap()
        if conn.in_transaction:
            raise RuntimeError("Nested transactions are not supported")
        conn.execute("BEGIN")
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def _open(self) -> Result[sqlite3.Connection, SyncFailure]:
        path = self.db_file_path
        try:
            data = self._vault.read_binary(path) if self._vault.exists(path) else None
        except OSError as exc:
            LOGGER.error("Unable to read database file %s: %s", path, exc)
            return failure(ErrorCode.FILE_IS_NOT_EXISTS, exc)

        conn = sqlite3.connect(":memory:", isolation_level=None)
        try:
            if data:
                conn.deserialize(data)
                LOGGER.debug("Loaded %s bytes from %s", len(data), path)
            else:
                LOGGER.info("Creating new database at %s", path)
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            conn.close()
            LOGGER.error("Unable to open database %s: %s", path, exc)
            return failure(ErrorCode.INITIALIZATION_FAILED, exc)
        conn.row_factory = dict_factory
        return Ok(conn)

    def _apply_schema(self, conn: sqlite3.Connection) -> Result[None, SyncFailure]:
        try:
            conn.execute("BEGIN")
            for statement in load_statements():
                conn.execute(statement)
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            LOGGER.error("Database schema creation failed: %s", exc)
            return failure(ErrorCode.SCHEMA_CREATION_FAILED, exc)
        return Ok(None)

    def _reset(self) -> None:
        self._conn = None
        self._db_folder = None
        self._db_file = None


__all__ = ["SqliteDatabase", "dict_factory"]
