"""Forward-only schema changes for databases created by older releases.

``CREATE TABLE IF NOT EXISTS`` covers new databases; the migrations here only
bring existing tables up to date. Each one is applied at most once and
recorded by name in ``schema_migrations``.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..connection import iso_utcnow
from .tables import SCHEMA_MIGRATIONS_SQL, SCHEMA_VERSION_SQL


@dataclass(frozen=True)
class AddColumns:
    """Add ``columns`` (name to SQL type) to ``table`` where they are missing."""

    name: str
    table: str
    columns: Mapping[str, str] = field(default_factory=dict)


MIGRATIONS: tuple[AddColumns, ...] = (
    AddColumns(
        "add_inventory_movement_columns_v2",
        "inventory_items",
        {
            "moved_last_12_months": "INTEGER NOT NULL DEFAULT 0",
            "last_movement_date": "TEXT",
            "movement_checked_at": "TEXT",
        },
    ),
)

# One more than the number of migrations: version 1 is the initial layout.
CURRENT_SCHEMA_VERSION = len(MIGRATIONS) + 1


class SchemaMigrator:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def ensure_tables(self) -> None:
        self.conn.executescript(SCHEMA_MIGRATIONS_SQL + SCHEMA_VERSION_SQL)

    def applied(self) -> set[str]:
        return {row[0] for row in self.conn.execute("SELECT name FROM schema_migrations")}

    def get_version(self) -> int | None:
        row = self.conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row else None

    def _columns(self, table: str) -> set[str]:
        return {row[1] for row in self.conn.execute(f"PRAGMA table_info({table})")}

    def apply(self, migration: AddColumns) -> list[str]:
        """Run ``migration`` and return the columns it added."""
        present = self._columns(migration.table)
        added = [column for column in migration.columns if column not in present]
        for column in added:
            self.conn.execute(
                f"ALTER TABLE {migration.table} ADD COLUMN {column} {migration.columns[column]}"
            )
        self.conn.execute(
            "INSERT OR IGNORE INTO schema_migrations (name, applied_at, notes) VALUES (?, ?, ?)",
            (migration.name, iso_utcnow(), ",".join(added) or None),
        )
        return added

    def migrate(self, migrations: Iterable[AddColumns] = MIGRATIONS) -> list[str]:
        """Apply every pending migration and stamp the current version.

        Returns the names of the migrations that ran.
        """
        done = self.applied()
        ran = []
        for migration in migrations:
            if migration.name in done:
                continue
            self.apply(migration)
            ran.append(migration.name)
        version = self.get_version()
        if version is None or version < CURRENT_SCHEMA_VERSION:
            self.conn.execute("DELETE FROM schema_version")
            self.conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (CURRENT_SCHEMA_VERSION, iso_utcnow()),
            )
        return ran
