"""SQLite connection handling: opening, extension loading and transactions.

The connection runs in autocommit mode (``isolation_level=None``); every
write goes through :func:`transaction`, which issues explicit
``BEGIN IMMEDIATE`` / ``COMMIT`` / ``ROLLBACK``.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union
import logging
import sqlite3

import sqlite_vec

from ..errors import StorageBusyError, StorageError, StorageUnavailableError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

_BUSY_MARKERS = ("database is locked", "database table is locked", "database is busy")


def translate_sqlite_error(exc: sqlite3.Error) -> StorageError:
    """Map a raw sqlite3 error onto the storage error family."""
    message = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        if any(marker in message for marker in _BUSY_MARKERS):
            return StorageBusyError(str(exc))
        if "unable to open" in message or "not a database" in message:
            return StorageUnavailableError(str(exc))
    if isinstance(exc, sqlite3.DatabaseError) and "not a database" in message:
        return StorageUnavailableError(str(exc))
    return StorageError(str(exc))


def load_vector_extension(conn: sqlite3.Connection) -> None:
    try:
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
    except (AttributeError, sqlite3.Error) as e:
        raise StorageUnavailableError(f"sqlite-vec extension could not be loaded: {e}") from e


def open_connection(path: Union[str, Path], *, busy_timeout_ms: int = 5000) -> sqlite3.Connection:
    """Open ``path`` and load sqlite-vec into the connection."""
    db_path = str(path)
    if db_path != MEMORY_PATH:
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create directory for {db_path}: {e}") from e

    try:
        conn = sqlite3.connect(db_path, timeout=max(busy_timeout_ms, 0) / 1000.0, isolation_level=None)
    except sqlite3.Error as e:
        raise StorageUnavailableError(f"Cannot open database {db_path}: {e}") from e

    try:
        load_vector_extension(conn)
        conn.execute(f"PRAGMA busy_timeout = {int(max(busy_timeout_ms, 0))}")
        # Touch the schema so unreadable files fail here rather than mid-run.
        conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    except sqlite3.Error as e:
        conn.close()
        raise translate_sqlite_error(e) from e
    except StorageError:
        conn.close()
        raise

    logger.debug(f"Opened database {db_path}")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the body as one atomic unit.

    Raw sqlite3 errors raised by the body are translated into ``StorageError``
    subclasses after the rollback; other exceptions propagate unchanged.
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.Error as e:
        raise translate_sqlite_error(e) from e

    try:
        yield conn
    except sqlite3.Error as e:
        _rollback(conn)
        raise translate_sqlite_error(e) from e
    except BaseException:
        _rollback(conn)
        raise

    try:
        conn.execute("COMMIT")
    except sqlite3.Error as e:
        _rollback(conn)
        raise translate_sqlite_error(e) from e


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


__all__ = [
    "MEMORY_PATH",
    "open_connection",
    "load_vector_extension",
    "transaction",
    "translate_sqlite_error",
]
