"""Upstream-to-store synchronization pipeline."""

from .fetcher import EnrichedInventoryRecord, EnrichedSalesOrder, RecordFetcher
from .movement import (
    MovementEnricher,
    MovementResult,
    build_movement_query,
    movement_from_row,
    one_year_before,
)
from .pagination import CandidatePage, Paginator
from .run_log import RunLog
from .sync import (
    MAX_REPORTED_ERRORS,
    FinancialSummary,
    RecordError,
    SalesOrderSummary,
    SyncOrchestrator,
    SyncRunReport,
)
from .transform import select_price, transform_inventory, transform_sales_order

__all__ = [
    "CandidatePage",
    "EnrichedInventoryRecord",
    "EnrichedSalesOrder",
    "FinancialSummary",
    "MAX_REPORTED_ERRORS",
    "MovementEnricher",
    "MovementResult",
    "Paginator",
    "RecordError",
    "RecordFetcher",
    "RunLog",
    "SalesOrderSummary",
    "SyncOrchestrator",
    "SyncRunReport",
    "build_movement_query",
    "movement_from_row",
    "one_year_before",
    "select_price",
    "transform_inventory",
    "transform_sales_order",
]
