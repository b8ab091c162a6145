"""
Database connection management and schema initialization.

Every call opens its own short-lived connection. Connections run in autocommit
mode so a single SELECT is its own consistent snapshot; writes go through
transaction(), which takes the write lock up front (BEGIN IMMEDIATE) so that
read-modify-write sequences serialize. The store runs in WAL mode so readers
never wait on a writer and never see its uncommitted rows.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..exceptions import SchemaError
from .migrations import apply_all

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Manages database connections and schema."""

    def __init__(self, db_path: Path, busy_timeout: float = 5.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Get an autocommit connection for reads."""
        connection = self._connect()
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Run the block as one transaction.

        Commits on success, rolls back on any exception. Deferred transactions
        (immediate=False) are used for multi-statement reads that need one
        snapshot.
        """
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield connection
            except BaseException:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise
            connection.execute("COMMIT")
        finally:
            connection.close()

    def _init_schema(self):
        """Switch to WAL and bring the schema up to date. Failures are fatal."""
        try:
            connection = self._connect()
            mode = connection.execute("PRAGMA journal_mode = WAL").fetchone()[0]
        except sqlite3.Error as e:
            raise SchemaError(0, f"cannot open {self.db_path}: {e}") from e

        try:
            logger.debug(f"Opened {self.db_path} (journal_mode={mode})")
            version = apply_all(connection)
            logger.debug(f"Schema at version {version}")
        finally:
            connection.close()
