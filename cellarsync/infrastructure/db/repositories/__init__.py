from .base import BaseRepository
from .documents import (
    InventoryRecordModel,
    RecordValidationError,
    SalesOrderRecordModel,
)
from .inventory import InventoryRepository
from .sales_orders import SalesOrderRepository
from .sync_runs import SyncRunRepository

__all__ = [
    "BaseRepository",
    "InventoryRecordModel",
    "InventoryRepository",
    "RecordValidationError",
    "SalesOrderRecordModel",
    "SalesOrderRepository",
    "SyncRunRepository",
]
