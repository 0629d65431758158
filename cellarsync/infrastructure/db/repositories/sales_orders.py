"""Repository for canonical sales orders."""

from __future__ import annotations

import sqlite3
from typing import Any

from cellarsync.domain.models import SalesOrder, to_document

from ..connection import DatabaseError, iso_utcnow
from ..schema import ensure_schema
from .base import BaseRepository
from .documents import SalesOrderRecordModel, validate_document


class SalesOrderRepository(BaseRepository):
    """Stores one row per upstream sales order keyed by ``internal_id``."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def upsert(self, order: SalesOrder, *, synced_at: str | None = None) -> dict[str, Any]:
        """Insert or fully replace the stored document for ``order``.

        Raises:
            RecordValidationError: If the order fails document validation.
        """
        document = validate_document(
            SalesOrderRecordModel, "sales order", order.to_document()
        )
        timestamp = synced_at or iso_utcnow()
        customer = document["customer"]
        with self.conn:
            self._run(
                """
                INSERT INTO sales_orders (
                    internal_id, transaction_number, customer_id, customer_name,
                    order_status, order_date, currency, subtotal, total_amount,
                    item_count, last_modified_date, document, raw_data,
                    first_synced, last_synced
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(internal_id) DO UPDATE SET
                    transaction_number = excluded.transaction_number,
                    customer_id = excluded.customer_id,
                    customer_name = excluded.customer_name,
                    order_status = excluded.order_status,
                    order_date = excluded.order_date,
                    currency = excluded.currency,
                    subtotal = excluded.subtotal,
                    total_amount = excluded.total_amount,
                    item_count = excluded.item_count,
                    last_modified_date = excluded.last_modified_date,
                    document = excluded.document,
                    raw_data = excluded.raw_data,
                    last_synced = excluded.last_synced
                """,
                (
                    document["internalId"],
                    document["transactionNumber"],
                    customer["customerId"],
                    customer["customerName"],
                    document["orderStatus"],
                    document["orderDate"],
                    document["currency"]["name"],
                    document["subtotal"],
                    document["totalAmount"],
                    len(document["items"]),
                    document["lastModifiedDate"],
                    self.to_json(document),
                    self.to_json(to_document(order.raw_data)),
                    timestamp,
                    timestamp,
                ),
            )
        stored = self.get(order.internal_id)
        if stored is None:
            raise DatabaseError(f"Sales order {order.internal_id} was not readable after upsert")
        return stored

    def get(self, internal_id: int) -> dict[str, Any] | None:
        row = self._row(
            "SELECT document, first_synced, last_synced FROM sales_orders WHERE internal_id = ?",
            (internal_id,),
        )
        return self._row_to_document(row) if row else None

    def count(self) -> int:
        return int(self._scalar("SELECT COUNT(*) FROM sales_orders") or 0)

    def list_orders(
        self,
        *,
        customer: str | None = None,
        status: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[dict[str, Any]], int, dict[str, float]]:
        """Return one page of orders, the matching count and the amount total."""
        where, params = self._filters(
            customer=customer, status=status, from_date=from_date, to_date=to_date
        )
        rows = self._rows(
            f"SELECT document, first_synced, last_synced FROM sales_orders {where} "
            "ORDER BY order_date DESC, internal_id DESC LIMIT ? OFFSET ?",
            params + (limit, self.page_offset(page, limit)),
        )
        totals = self._row(
            f"SELECT COUNT(*) AS count, COALESCE(SUM(total_amount), 0) AS total_amount "
            f"FROM sales_orders {where}",
            params,
        ) or {"count": 0, "total_amount": 0.0}
        return (
            [self._row_to_document(row) for row in rows],
            int(totals["count"]),
            {"total_amount": float(totals["total_amount"]), "count": int(totals["count"])},
        )

    def stats(self, *, from_date: str, to_date: str) -> dict[str, Any]:
        """Aggregate orders whose order date falls inside the given range."""
        where, params = self._filters(from_date=from_date, to_date=to_date)
        overall = self._row(
            f"""
            SELECT
                COUNT(*) AS total_orders,
                COALESCE(SUM(total_amount), 0) AS total_amount,
                COALESCE(AVG(total_amount), 0) AS avg_order_value,
                COALESCE(SUM(item_count), 0) AS total_items
            FROM sales_orders {where}
            """,
            params,
        )
        by_status = self._rows(
            f"""
            SELECT order_status AS status, COUNT(*) AS count,
                   COALESCE(SUM(total_amount), 0) AS total_amount
            FROM sales_orders {where}
            GROUP BY order_status ORDER BY total_amount DESC
            """,
            params,
        )
        by_customer = self._rows(
            f"""
            SELECT customer_name AS customer, COUNT(*) AS count,
                   COALESCE(SUM(total_amount), 0) AS total_amount
            FROM sales_orders {where}
            GROUP BY customer_name ORDER BY total_amount DESC LIMIT 10
            """,
            params,
        )
        return {"overall": overall, "by_status": by_status, "by_customer": by_customer}

    def referenced_item_ids(self) -> list[int]:
        """Distinct inventory item ids referenced by any stored order line."""
        rows = self._run(
            """
            SELECT DISTINCT json_extract(line.value, '$.itemId') AS item_id
            FROM sales_orders, json_each(sales_orders.document, '$.items') AS line
            WHERE json_extract(line.value, '$.itemId') != ''
            """
        ).fetchall()
        ids: set[int] = set()
        for (item_id,) in rows:
            try:
                ids.add(int(item_id))
            except (TypeError, ValueError):
                continue
        return sorted(ids)

    def _filters(
        self,
        *,
        customer: str | None = None,
        status: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
    ) -> tuple[str, tuple[Any, ...]]:
        clauses: list[str] = []
        params: list[Any] = []
        if customer:
            clauses.append("lower(customer_name) LIKE ?")
            params.append(f"%{customer.lower()}%")
        if status:
            clauses.append("order_status = ?")
            params.append(status)
        if from_date:
            clauses.append("order_date >= ?")
            params.append(from_date)
        if to_date:
            clauses.append("order_date <= ?")
            params.append(to_date)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, tuple(params)

    def _row_to_document(self, row: dict[str, Any]) -> dict[str, Any]:
        document = self.from_json(row["document"], {})
        document["lastSynced"] = row["last_synced"]
        document["firstSynced"] = row["first_synced"]
        return document
