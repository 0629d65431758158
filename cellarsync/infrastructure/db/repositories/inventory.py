"""Repository for canonical inventory items."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable

from cellarsync.domain.models import InventoryItem, Movement, to_document

from ..connection import DatabaseError, iso_utcnow
from ..schema import ensure_schema
from .base import BaseRepository
from .documents import InventoryRecordModel, validate_document

_ITEM_COLUMNS = """
    internal_id, document, raw_data, moved_last_12_months, last_movement_date,
    movement_checked_at, first_synced, last_synced
"""


class InventoryRepository(BaseRepository):
    """Stores one row per upstream inventory item keyed by ``internal_id``.

    The full canonical document is kept as JSON; the frequently filtered
    attributes are mirrored into columns. Movement columns are written only
    by :meth:`update_movement`, so re-syncing an item keeps its movement.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, item: InventoryItem, *, synced_at: str | None = None) -> dict[str, Any]:
        """Insert or fully replace the stored document for ``item``.

        Raises:
            RecordValidationError: If the item fails document validation.
        """
        document = validate_document(
            InventoryRecordModel, "inventory", item.to_document()
        )
        document.pop("movement", None)
        timestamp = synced_at or iso_utcnow()
        pricing = document["pricing"]
        with self.conn:
            self._run(
                """
                INSERT INTO inventory_items (
                    internal_id, omtis_id, item_name, omtis_name_detail, producer,
                    region, country, vintage, type, is_inactive, price, currency,
                    trade_price, retail_price, average_cost, total_value,
                    total_quantity, location_count, created_date, last_modified_date,
                    document, raw_data, first_synced, last_synced
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(internal_id) DO UPDATE SET
                    omtis_id = excluded.omtis_id,
                    item_name = excluded.item_name,
                    omtis_name_detail = excluded.omtis_name_detail,
                    producer = excluded.producer,
                    region = excluded.region,
                    country = excluded.country,
                    vintage = excluded.vintage,
                    type = excluded.type,
                    is_inactive = excluded.is_inactive,
                    price = excluded.price,
                    currency = excluded.currency,
                    trade_price = excluded.trade_price,
                    retail_price = excluded.retail_price,
                    average_cost = excluded.average_cost,
                    total_value = excluded.total_value,
                    total_quantity = excluded.total_quantity,
                    location_count = excluded.location_count,
                    created_date = excluded.created_date,
                    last_modified_date = excluded.last_modified_date,
                    document = excluded.document,
                    raw_data = excluded.raw_data,
                    last_synced = excluded.last_synced
                """,
                (
                    document["internalId"],
                    document["omtisId"],
                    document["itemName"],
                    document["omtisNameDetail"],
                    document["producer"],
                    document["region"],
                    document["country"],
                    document["vintage"],
                    document["type"],
                    None if document["isInactive"] is None else int(document["isInactive"]),
                    document["price"],
                    document["currency"],
                    pricing["tradePrice"],
                    pricing["retailPrice"],
                    document["averageCost"],
                    document["totalValue"],
                    document["totalQuantity"],
                    len(document["locations"]),
                    document["createdDate"],
                    document["lastModifiedDate"],
                    self.to_json(document),
                    self.to_json(to_document(item.raw_data)),
                    timestamp,
                    timestamp,
                ),
            )
        stored = self.get(item.internal_id)
        if stored is None:
            raise DatabaseError(f"Inventory item {item.internal_id} was not readable after upsert")
        return stored

    def update_movement(
        self, internal_id: int, movement: Movement, *, checked_at: str | None = None
    ) -> bool:
        """Set the movement status of one stored item. Returns False if absent."""
        with self.conn:
            cur = self._run(
                """
                UPDATE inventory_items
                SET moved_last_12_months = ?, last_movement_date = ?, movement_checked_at = ?
                WHERE internal_id = ?
                """,
                (
                    int(movement.moved_last_12_months),
                    movement.last_movement_date.isoformat()
                    if movement.last_movement_date
                    else None,
                    checked_at or iso_utcnow(),
                    internal_id,
                ),
            )
        return cur.rowcount > 0

    def delete(self, internal_id: int) -> bool:
        with self.conn:
            cur = self._run(
                "DELETE FROM inventory_items WHERE internal_id = ?", (internal_id,)
            )
        return cur.rowcount > 0

    def delete_all(self) -> int:
        with self.conn:
            cur = self._run("DELETE FROM inventory_items")
        return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, internal_id: int) -> dict[str, Any] | None:
        row = self._row(
            f"SELECT {_ITEM_COLUMNS} FROM inventory_items WHERE internal_id = ?",
            (internal_id,),
        )
        return self._row_to_document(row) if row else None

    def exists(self, internal_id: int) -> bool:
        return (
            self._scalar(
                "SELECT 1 FROM inventory_items WHERE internal_id = ?", (internal_id,)
            )
            is not None
        )

    def existing_ids(self, internal_ids: Iterable[int]) -> set[int]:
        wanted = list(internal_ids)
        found: set[int] = set()
        # Stay well below SQLite's bound-parameter limit.
        for start in range(0, len(wanted), 500):
            chunk = wanted[start : start + 500]
            placeholders = ",".join("?" for _ in chunk)
            rows = self._run(
                f"SELECT internal_id FROM inventory_items WHERE internal_id IN ({placeholders})",
                tuple(chunk),
            ).fetchall()
            found.update(row[0] for row in rows)
        return found

    def list_ids(self, limit: int | None = None) -> list[int]:
        query = "SELECT internal_id FROM inventory_items ORDER BY internal_id"
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [row[0] for row in self._run(query, params).fetchall()]

    def count(self) -> int:
        return int(self._scalar("SELECT COUNT(*) FROM inventory_items") or 0)

    def list_items(self, *, page: int = 1, limit: int = 50) -> tuple[list[dict[str, Any]], int]:
        rows = self._rows(
            f"SELECT {_ITEM_COLUMNS} FROM inventory_items ORDER BY internal_id LIMIT ? OFFSET ?",
            (limit, self.page_offset(page, limit)),
        )
        return [self._row_to_document(row) for row in rows], self.count()

    def search(
        self, text: str, *, page: int = 1, limit: int = 50
    ) -> tuple[list[dict[str, Any]], int]:
        """Case-insensitive substring search over name, name detail, producer and vintage."""
        pattern = f"%{text.lower()}%"
        where = """
            WHERE lower(item_name) LIKE ? OR lower(omtis_name_detail) LIKE ?
               OR lower(producer) LIKE ? OR lower(vintage) LIKE ?
        """
        params = (pattern, pattern, pattern, pattern)
        rows = self._rows(
            f"SELECT {_ITEM_COLUMNS} FROM inventory_items {where} "
            "ORDER BY last_synced DESC, internal_id LIMIT ? OFFSET ?",
            params + (limit, self.page_offset(page, limit)),
        )
        total = self._scalar(f"SELECT COUNT(*) FROM inventory_items {where}", params)
        return [self._row_to_document(row) for row in rows], int(total or 0)

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
    ) -> tuple[list[dict[str, Any]], int]:
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("country", country),
            ("type", wine_type),
            ("region", region),
            ("producer", producer),
        ):
            if value:
                clauses.append(f"lower({column}) LIKE ?")
                params.append(f"%{value.lower()}%")
        if vintage:
            clauses.append("vintage = ?")
            params.append(vintage)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._rows(
            f"SELECT {_ITEM_COLUMNS} FROM inventory_items {where} "
            "ORDER BY vintage DESC, internal_id LIMIT ? OFFSET ?",
            tuple(params) + (limit, self.page_offset(page, limit)),
        )
        total = self._scalar(
            f"SELECT COUNT(*) FROM inventory_items {where}", tuple(params)
        )
        return [self._row_to_document(row) for row in rows], int(total or 0)

    def sync_bounds(self) -> dict[str, str | None]:
        row = self._row(
            "SELECT MIN(last_synced) AS first_sync, MAX(last_synced) AS last_sync "
            "FROM inventory_items"
        )
        return {
            "first_sync": row["first_sync"] if row else None,
            "last_sync": row["last_sync"] if row else None,
        }

    def statistics(self) -> dict[str, Any]:
        """Aggregate overview figures and the top groupings for reporting."""
        overview = self._row(
            """
            SELECT
                COUNT(*) AS total_items,
                COALESCE(SUM(total_quantity), 0) AS total_quantity,
                COALESCE(SUM(average_cost), 0) AS total_average_cost,
                COALESCE(SUM(total_value), 0) AS total_value,
                SUM(CASE WHEN average_cost > 0 THEN 1 ELSE 0 END) AS items_with_cost,
                SUM(CASE WHEN total_value > 0 THEN 1 ELSE 0 END) AS items_with_value,
                SUM(CASE WHEN total_quantity > 0 THEN 1 ELSE 0 END) AS items_in_stock,
                SUM(CASE WHEN moved_last_12_months = 1 THEN 1 ELSE 0 END) AS items_moved,
                COUNT(DISTINCT NULLIF(producer, '')) AS producers,
                COUNT(DISTINCT NULLIF(country, '')) AS countries
            FROM inventory_items
            """
        ) or {}
        overview = {key: value or 0 for key, value in overview.items()}
        return {
            "overview": overview,
            "top_producers": self._group_counts("producer", limit=10),
            "by_type": self._group_counts("type"),
            "by_country": self._group_counts("country", limit=10),
        }

    def _group_counts(self, column: str, limit: int | None = None) -> list[dict[str, Any]]:
        query = (
            f"SELECT {column} AS name, COUNT(*) AS count FROM inventory_items "
            f"WHERE {column} IS NOT NULL AND {column} != '' "
            f"GROUP BY {column} ORDER BY count DESC, {column}"
        )
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return self._rows(query, params)

    def _row_to_document(self, row: dict[str, Any]) -> dict[str, Any]:
        document = self.from_json(row["document"], {})
        document["movement"] = {
            "lastMovementDate": row["last_movement_date"],
            "movedLast12Months": bool(row["moved_last_12_months"]),
        }
        document["lastSynced"] = row["last_synced"]
        document["firstSynced"] = row["first_synced"]
        return document
