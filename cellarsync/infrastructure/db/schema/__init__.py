from __future__ import annotations

import sqlite3

from .migrations import CURRENT_SCHEMA_VERSION, MIGRATIONS, AddColumns, SchemaMigrator
from .tables import (
    SCHEMA_INVENTORY_ITEMS_SQL,
    SCHEMA_SALES_ORDERS_SQL,
    SCHEMA_SYNC_RUNS_SQL,
)


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index the store needs. Safe to call repeatedly."""
    migrator = SchemaMigrator(conn)
    migrator.ensure_tables()
    conn.executescript(SCHEMA_INVENTORY_ITEMS_SQL + SCHEMA_SALES_ORDERS_SQL + SCHEMA_SYNC_RUNS_SQL)
    migrator.migrate()
    conn.commit()


__all__ = ["AddColumns", "CURRENT_SCHEMA_VERSION", "MIGRATIONS", "SchemaMigrator", "ensure_schema"]
