"""SQLite connections for the document store."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from .config import get_default_timeout, get_path_config, load_section


class DatabaseError(Exception):
    """Raised when the SQLite database cannot be opened or configured."""


def iso_utcnow() -> str:
    """Current UTC time as ISO-8601 with a ``Z`` suffix, to the second."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def apply_pragmas(
    conn: sqlite3.Connection, *, enable_wal: bool = True, busy_timeout_ms: int | None = None
) -> None:
    """Configure journaling and lock waits, and check for JSON support.

    The repositories query stored documents with ``json_extract`` and
    ``json_each``, so a SQLite build without JSON functions is rejected here.

    Raises:
        DatabaseError: If a PRAGMA fails or JSON functions are unavailable.
    """
    try:
        if enable_wal:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        if busy_timeout_ms is not None:
            conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    except sqlite3.Error as exc:
        raise DatabaseError(f"Failed to apply PRAGMAs: {exc}") from exc
    try:
        conn.execute("SELECT json_extract('{\"a\": 1}', '$.a')").fetchone()
    except sqlite3.OperationalError as exc:
        raise DatabaseError("SQLite was built without JSON functions") from exc


@contextmanager
def get_connection(
    db_path: str | Path | None = None,
    *,
    timeout: float | None = None,
    enable_wal: bool | None = None,
) -> Iterator[sqlite3.Connection]:
    """Open the store at ``db_path`` (default: the configured path) and close it on exit.

    Uncommitted work is rolled back when the block raises.
    """
    path = Path(db_path) if db_path is not None else get_path_config()["db_path"]
    path.parent.mkdir(parents=True, exist_ok=True)
    timeout_value = timeout if timeout is not None else get_default_timeout()
    if enable_wal is None:
        enable_wal = bool(load_section("db").get("enable_wal", True))
    try:
        conn = sqlite3.connect(path, timeout=timeout_value)
    except sqlite3.Error as exc:
        raise DatabaseError(f"Failed to open {path}: {exc}") from exc
    try:
        apply_pragmas(conn, enable_wal=enable_wal, busy_timeout_ms=int(timeout_value * 1000))
        yield conn
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
