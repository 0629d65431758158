"""Service layer modules for cellarsync."""

from .base import BaseService  # noqa: F401
from .inventory import InventoryService  # noqa: F401
from .reporting import ReportingService  # noqa: F401
from .sales_orders import SalesOrderService  # noqa: F401
from .sync import *  # noqa: F401,F403
from .sync_service import SyncService  # noqa: F401

__all__ = [
    name
    for name in dir()
    if not name.startswith("_")
]
