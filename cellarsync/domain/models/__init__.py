"""Domain models for Cellarsync."""

from .document import camel_case, to_document
from .inventory import (
    Currency,
    InventoryItem,
    Movement,
    PriceSelection,
    Pricing,
    StockLocation,
)
from .sales_order import Customer, Reference, SalesOrder, SalesOrderLine

__all__ = [
    "Currency",
    "Customer",
    "InventoryItem",
    "Movement",
    "PriceSelection",
    "Pricing",
    "Reference",
    "SalesOrder",
    "SalesOrderLine",
    "StockLocation",
    "camel_case",
    "to_document",
]
