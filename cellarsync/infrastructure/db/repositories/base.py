"""Row access shared by the document repositories."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Sequence

Params = Sequence[Any]


def _as_dict(cursor: sqlite3.Cursor, row: Sequence[Any]) -> dict[str, Any]:
    return {column[0]: value for column, value in zip(cursor.description, row)}


class BaseRepository:
    """Wraps one open connection; subclasses own the SQL for their table.

    Stored documents are JSON text with sorted keys so that an unchanged
    record serializes to the same bytes on every sync.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _run(self, query: str, params: Params = ()) -> sqlite3.Cursor:
        return self.conn.execute(query, tuple(params))

    def _rows(self, query: str, params: Params = ()) -> list[dict[str, Any]]:
        cursor = self._run(query, params)
        return [_as_dict(cursor, row) for row in cursor.fetchall()]

    def _row(self, query: str, params: Params = ()) -> dict[str, Any] | None:
        cursor = self._run(query, params)
        row = cursor.fetchone()
        return _as_dict(cursor, row) if row is not None else None

    def _scalar(self, query: str, params: Params = ()) -> Any:
        row = self._run(query, params).fetchone()
        return None if row is None else row[0]

    def _insert(self, query: str, params: Params = ()) -> int:
        """Run an INSERT and return the new rowid."""
        return int(self._run(query, params).lastrowid or 0)

    @staticmethod
    def to_json(value: Any) -> str | None:
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)

    @staticmethod
    def from_json(text: str | None, default: Any = None) -> Any:
        return json.loads(text) if text else default

    @staticmethod
    def page_offset(page: int, limit: int) -> int:
        """Row offset of 1-based ``page``; pages below 1 read as the first."""
        return (max(page, 1) - 1) * limit
