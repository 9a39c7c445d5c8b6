"""Shared SQLite helpers: WAL mode, foreign keys, row_factory defaults."""

import sqlite3
from pathlib import Path

BUSY_TIMEOUT_SECONDS = 10.0


def wal_connect(db_path: str | Path, row_factory: bool = False) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    The store is the serialization point between concurrent batches, so writers wait
    up to BUSY_TIMEOUT_SECONDS for the lock instead of failing immediately.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
    """
    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
