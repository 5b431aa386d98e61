from __future__ import annotations

import itertools
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from config import APP_DIR, DatabaseConfig

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = APP_DIR / "init.sql"

_memory_ids = itertools.count(1)


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if isinstance(value, str) else value


class DatabaseError(Exception):
    """Raised when a connection to the configured database cannot be opened."""


class ConnectionProvider:
    """Hands out one fresh SQLite connection per operation."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._lock = threading.Lock()
        self._anchor: Optional[sqlite3.Connection] = None
        if config.is_memory:
            # A shared-cache in-memory database only lives while a connection holds it open.
            self._target = f"file:library_{next(_memory_ids)}?mode=memory&cache=shared"
            self._uri = True
            self._anchor = sqlite3.connect(self._target, uri=True, check_same_thread=False)
        else:
            path = Path(config.database_path).expanduser()
            self._target = str(path)
            self._uri = False

    # --------------------------------------------------------------------- #
    # Connections
    # --------------------------------------------------------------------- #
    def _open(self) -> sqlite3.Connection:
        try:
            if not self._uri:
                Path(self._target).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._target, uri=self._uri)
        except (sqlite3.Error, OSError) as error:
            raise DatabaseError(f"Cannot open {self._target}: {error}") from error
        conn.row_factory = sqlite3.Row
        # SQLite's lower() only folds ASCII.
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that is committed on success and always closed."""
        conn = self._open()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def test_connection(self) -> bool:
        try:
            with self.connect() as conn:
                conn.execute("SELECT 1").fetchone()
        except (sqlite3.Error, DatabaseError) as error:
            logger.error("Connection test failed: %s", error)
            return False
        return True

    # --------------------------------------------------------------------- #
    # Schema
    # --------------------------------------------------------------------- #
    def initialize_database(self, script_path: Optional[Path] = None) -> bool:
        """Run the schema script as a single transaction.

        Nothing from the script is kept when any statement in it fails.
        """
        path = Path(script_path or DEFAULT_SCHEMA_PATH)
        if not path.exists():
            logger.error("Could not find schema script %s", path)
            return False
        try:
            script = path.read_text(encoding="utf-8")
        except OSError as error:
            logger.error("Error reading %s: %s", path, error)
            return False

        with self._lock:
            try:
                conn = self._open()
            except DatabaseError as error:
                logger.error("Error initializing database: %s", error)
                return False
            try:
                conn.executescript(f"BEGIN;\n{script}\nCOMMIT;")
            except sqlite3.Error as error:
                if conn.in_transaction:
                    conn.rollback()
                logger.error("Error initializing database from %s: %s", path.name, error)
                return False
            finally:
                conn.close()

        logger.info("Database initialized from %s", path.name)
        return True

    def close(self) -> None:
        with self._lock:
            if self._anchor is not None:
                self._anchor.close()
                self._anchor = None


def prepare_database(
    config: DatabaseConfig, script_path: Optional[Path] = None
) -> Optional[ConnectionProvider]:
    """Check connectivity and apply the schema; ``None`` if the database is unreachable.

    A schema script that fails is logged and the existing database is used as is.
    """
    provider = ConnectionProvider(config)
    if not provider.test_connection():
        provider.close()
        return None
    if not provider.initialize_database(script_path):
        logger.warning("Schema bootstrap did not complete; continuing with the existing database")
    return provider
