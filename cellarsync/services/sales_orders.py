"""Read-side sales order use cases for the API and CLI."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable

from cellarsync.infrastructure.db.repositories import SalesOrderRepository

from .base import BaseService, ConnectionFactory
from .dto import Pagination, SalesOrderPage, SalesOrderTotals

DEFAULT_STATS_DAYS = 30


def _end_of_day(value: str | None) -> str | None:
    # Stored order dates are full timestamps; a bare date bound covers the whole day.
    if value and len(value) == 10:
        return f"{value}T23:59:59.999999"
    return value


class SalesOrderService(BaseService):
    """Query stored sales orders and their aggregates."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(connection_factory)
        self._today = today

    def list_orders(
        self,
        *,
        customer: str | None = None,
        status: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> SalesOrderPage:
        orders, total, totals = self._with_connection(
            lambda conn: SalesOrderRepository(conn).list_orders(
                customer=customer,
                status=status,
                from_date=from_date,
                to_date=_end_of_day(to_date),
                page=page,
                limit=limit,
            )
        )
        return SalesOrderPage(
            data=orders,
            pagination=Pagination.build(page=page, limit=limit, total=total),
            totals=SalesOrderTotals(**totals),
        )

    def get_order(self, internal_id: int) -> dict[str, Any] | None:
        return self._with_connection(lambda conn: SalesOrderRepository(conn).get(internal_id))

    def stats(self, *, from_date: str | None = None, to_date: str | None = None) -> dict[str, Any]:
        """Totals by status and top customers; defaults to the last 30 days."""
        today = self._today()
        start = from_date or (today - timedelta(days=DEFAULT_STATS_DAYS)).isoformat()
        end = to_date or today.isoformat()
        stats = self._with_connection(
            lambda conn: SalesOrderRepository(conn).stats(
                from_date=start, to_date=_end_of_day(end) or end
            )
        )
        return {"period": {"from": start, "to": end}, **stats}
