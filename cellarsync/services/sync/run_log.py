"""Durable, append-only text log for full-sweep runs."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from cellarsync.infrastructure.db import iso_utcnow


class RunLog:
    """One text file per run: a start banner, failure lines, a summary banner.

    Failure lines have the form ``[timestamp] id=<id> error=<message>``.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def for_run(cls, logs_dir: Path, mode: str, run_id: int | None) -> "RunLog":
        stamp = iso_utcnow().replace(":", "").replace("-", "")[:15]
        return cls(logs_dir / f"{mode}-run-{run_id or 0}-{stamp}.log")

    def _write(self, line: str) -> None:
        with open(self.path, "a", encoding="utf-8") as fh:
            fh.write(f"[{iso_utcnow()}] {line}\n")

    def start(self, mode: str, run_id: int | None, parameters: Mapping[str, Any]) -> None:
        params = " ".join(f"{k}={v}" for k, v in parameters.items())
        self._write(f"=== {mode} run {run_id} started {params} ===".replace("  ", " "))

    def record_failure(self, item_id: int | None, message: str) -> None:
        flat = " ".join(str(message).split())
        self._write(f"id={item_id if item_id is not None else '-'} error={flat}")

    def finish(self, summary: Mapping[str, Any]) -> None:
        fields = " ".join(f"{k}={v}" for k, v in summary.items())
        self._write(f"=== run finished {fields} ===")
