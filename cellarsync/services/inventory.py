"""Read-side inventory use cases for the API and CLI."""

from __future__ import annotations

from typing import Any

from cellarsync.infrastructure.db.repositories import InventoryRepository

from .base import BaseService
from .dto import InventoryPage, InventorySearchPage, ItemCheck, Pagination


class InventoryService(BaseService):
    """Query, inspect and remove stored inventory items."""

    def list_items(self, *, page: int = 1, limit: int = 50) -> InventoryPage:
        items, total = self._with_connection(
            lambda conn: InventoryRepository(conn).list_items(page=page, limit=limit)
        )
        return InventoryPage(
            data=items, pagination=Pagination.build(page=page, limit=limit, total=total)
        )

    def get_item(self, internal_id: int) -> dict[str, Any] | None:
        return self._with_connection(lambda conn: InventoryRepository(conn).get(internal_id))

    def search(self, text: str, *, page: int = 1, limit: int = 50) -> InventorySearchPage:
        items, total = self._with_connection(
            lambda conn: InventoryRepository(conn).search(text, page=page, limit=limit)
        )
        self._logger.debug("Search %r matched %d items", text, total)
        return InventorySearchPage(
            query=text,
            data=items,
            pagination=Pagination.build(page=page, limit=limit, total=total),
        )

    def filter_items(
        self,
        *,
        country: str | None = None,
        vintage: str | None = None,
        wine_type: str | None = None,
        region: str | None = None,
        producer: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> InventoryPage:
        items, total = self._with_connection(
            lambda conn: InventoryRepository(conn).filter_items(
                country=country,
                vintage=vintage,
                wine_type=wine_type,
                region=region,
                producer=producer,
                page=page,
                limit=limit,
            )
        )
        return InventoryPage(
            data=items, pagination=Pagination.build(page=page, limit=limit, total=total)
        )

    def statistics(self) -> dict[str, Any]:
        return self._with_connection(lambda conn: InventoryRepository(conn).statistics())

    def check_item(self, internal_id: int) -> ItemCheck:
        """Whether an item is stored, with its name and last sync time."""
        document = self.get_item(internal_id)
        if document is None:
            return ItemCheck(internal_id=internal_id, stored=False)
        return ItemCheck(
            internal_id=internal_id,
            stored=True,
            item_name=document.get("displayName") or document.get("itemName"),
            last_synced=document.get("lastSynced"),
        )

    def delete_item(self, internal_id: int) -> bool:
        deleted = self._with_connection(lambda conn: InventoryRepository(conn).delete(internal_id))
        self._logger.info("Delete item %s: %s", internal_id, "removed" if deleted else "not found")
        return deleted

    def clear_all(self) -> int:
        removed = self._with_connection(lambda conn: InventoryRepository(conn).delete_all())
        self._logger.warning("Cleared %d inventory items", removed)
        return removed
