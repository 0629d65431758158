"""Repository recording one row per sync run."""

from __future__ import annotations

import sqlite3
from typing import Any

from ..connection import iso_utcnow
from ..schema import ensure_schema
from .base import BaseRepository


class SyncRunRepository(BaseRepository):
    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def start(self, mode: str, parameters: dict[str, Any] | None = None) -> int:
        with self.conn:
            return self._insert(
                "INSERT INTO sync_runs (mode, status, started_at, parameters) VALUES (?, ?, ?, ?)",
                (mode, "running", iso_utcnow(), self.to_json(parameters or {})),
            )

    def finish(
        self,
        run_id: int,
        *,
        status: str,
        processed: int,
        saved: int,
        skipped: int,
        failed: int,
        errors: list[dict[str, Any]],
        summary: dict[str, Any] | None = None,
        log_path: str | None = None,
    ) -> None:
        with self.conn:
            self._run(
                """
                UPDATE sync_runs
                SET status = ?, finished_at = ?, processed = ?, saved = ?, skipped = ?,
                    failed = ?, errors = ?, summary = ?, log_path = ?
                WHERE id = ?
                """,
                (
                    status,
                    iso_utcnow(),
                    processed,
                    saved,
                    skipped,
                    failed,
                    self.to_json(errors),
                    self.to_json(summary or {}),
                    log_path,
                    run_id,
                ),
            )

    def get(self, run_id: int) -> dict[str, Any] | None:
        row = self._row("SELECT * FROM sync_runs WHERE id = ?", (run_id,))
        return self._decode(row) if row else None

    def list_recent(self, limit: int = 10) -> list[dict[str, Any]]:
        rows = self._rows(
            "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [self._decode(row) for row in rows]

    def _decode(self, row: dict[str, Any]) -> dict[str, Any]:
        row["parameters"] = self.from_json(row.get("parameters"), {})
        row["errors"] = self.from_json(row.get("errors"), [])
        row["summary"] = self.from_json(row.get("summary"), {})
        return row
