"""Sync status and run history reporting."""

from __future__ import annotations

from typing import Any

from cellarsync.infrastructure.db.repositories import (
    InventoryRepository,
    SalesOrderRepository,
    SyncRunRepository,
)

from .base import BaseService
from .dto import SyncStatus


class ReportingService(BaseService):
    """Summaries of what has been synced and how recent runs went."""

    def sync_status(self, *, recent: int = 5) -> SyncStatus:
        def _status(conn) -> SyncStatus:
            inventory = InventoryRepository(conn)
            bounds = inventory.sync_bounds()
            return SyncStatus(
                total_items=inventory.count(),
                total_sales_orders=SalesOrderRepository(conn).count(),
                first_sync=bounds["first_sync"],
                last_sync=bounds["last_sync"],
                recent_runs=SyncRunRepository(conn).list_recent(recent),
            )

        return self._with_connection(_status)

    def recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        return self._with_connection(lambda conn: SyncRunRepository(conn).list_recent(limit))
