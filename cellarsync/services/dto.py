"""
Centralized request and response models for cellarsync services.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cellarsync.domain.models import camel_case


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid", alias_generator=camel_case, populate_by_name=True
    )


# --- Sync requests ---
class IncrementalSyncRequest(_CamelModel):
    limit: int = Field(default=100, ge=1, le=1000)
    date: str | None = Field(
        default=None,
        pattern=r"^\d{2}/\d{2}/\d{4}$",
        description="Lower bound on the upstream modification date (DD/MM/YYYY).",
    )


class SalesOrderSyncRequest(IncrementalSyncRequest):
    limit: int = Field(default=10, ge=1, le=1000)


class SweepRequest(_CamelModel):
    batch_size: int = Field(default=1000, ge=1, le=1000)
    max_items: int | None = Field(default=None, ge=1)
    batch_delay: float = Field(default=3.0, ge=0)


class FromSalesOrdersRequest(_CamelModel):
    batch_size: int = Field(default=50, ge=1)
    max_items: int | None = Field(default=None, ge=1)


class MovementRequest(_CamelModel):
    batch_size: int = Field(default=200, ge=1, le=1000)
    max_items: int | None = Field(default=None, ge=1)


# --- Read-side responses ---
class Pagination(_CamelModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=-(-total // limit) if limit else 0)


class InventoryPage(_CamelModel):
    success: bool = True
    data: list[dict[str, Any]]
    pagination: Pagination


class InventorySearchPage(InventoryPage):
    query: str


class SalesOrderTotals(_CamelModel):
    total_amount: float = 0.0
    count: int = 0


class SalesOrderPage(_CamelModel):
    success: bool = True
    data: list[dict[str, Any]]
    pagination: Pagination
    totals: SalesOrderTotals


class ItemCheck(_CamelModel):
    internal_id: int
    stored: bool
    item_name: str | None = None
    last_synced: str | None = None


class SyncStatus(_CamelModel):
    success: bool = True
    total_items: int
    total_sales_orders: int
    first_sync: str | None = None
    last_sync: str | None = None
    recent_runs: list[dict[str, Any]] = Field(default_factory=list)
