"""Shared SQLite helpers: WAL mode, row_factory defaults, write transactions."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


def wal_connect(db_path: str | Path, row_factory: bool = False, timeout: float = 10.0) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        timeout: Seconds to wait for another writer's lock.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def write_transaction(db_path: str | Path, timeout: float = 10.0) -> Iterator[sqlite3.Connection]:
    """Yield a connection holding the write lock (BEGIN IMMEDIATE).

    Commits on success, rolls back on any exception. Used where a
    read-check-write sequence must not interleave with another writer.
    """
    conn = wal_connect(db_path, row_factory=True, timeout=timeout)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.execute("COMMIT")
    except BaseException:
        # BEGIN IMMEDIATE itself may have failed, leaving nothing to undo
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def ensure_parent(db_path: str | Path) -> Path:
    """Expand ~ and create the parent directory of a database file."""
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
