"""Sales order domain model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .document import to_document


@dataclass
class Reference:
    """An ``{id, name}`` pair taken from an upstream reference object."""

    id: str = ""
    name: str = ""


@dataclass
class Customer:
    customer_id: str = ""
    customer_name: str = ""
    email: str = ""


@dataclass
class SalesOrderLine:
    """One line of a sales order, with producer and region of the item sold."""

    line: int | None = None
    item_id: str = ""
    item_name: str = ""
    sales_description: str = ""
    omtis_id: str = ""
    producer: str = ""
    region: str = ""
    quantity: float = 0.0
    units: str = ""
    fulfilled: float = 0.0
    invoiced: float = 0.0
    available: float = 0.0
    price_level: str = ""
    unit_price: float = 0.0
    total: float = 0.0
    gross_profit: float = 0.0
    is_closed: bool = False
    is_open: bool = False


@dataclass
class SalesOrder:
    """Canonical sales order record keyed by the upstream ``internal_id``.

    Monetary totals are copied from the upstream order, never recomputed from
    the lines.
    """

    internal_id: int
    customer: Customer = field(default_factory=Customer)
    transaction_number: str = ""
    order_date: datetime | None = None
    delivery_date: datetime | None = None
    subsidiary: Reference = field(default_factory=Reference)
    department: Reference = field(default_factory=Reference)
    location: Reference = field(default_factory=Reference)
    currency: Reference = field(default_factory=Reference)
    terms: Reference = field(default_factory=Reference)
    sales_rep: Reference = field(default_factory=Reference)
    hold_type: Reference = field(default_factory=Reference)
    invoice_number: str = ""
    customer_balance: float = 0.0
    customer_balance_group: float = 0.0
    credit_limit: float = 0.0
    consolidated_overdue_balance: float = 0.0
    consolidated_days_overdue: float = 0.0
    hold_extension_date: datetime | None = None
    ship_to: str = ""
    ship_contact: str = ""
    items: list[SalesOrderLine] = field(default_factory=list)
    subtotal: float = 0.0
    discount_total: float = 0.0
    total_amount: float = 0.0
    est_gross_profit: float = 0.0
    est_gross_profit_percent: float = 0.0
    order_status: str = ""
    created_date: datetime | None = None
    last_modified_date: datetime | None = None
    raw_data: dict[str, Any] = field(default_factory=dict, metadata={"document": False})

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def item_ids(self) -> list[str]:
        return [line.item_id for line in self.items if line.item_id]

    def to_document(self) -> dict[str, Any]:
        return to_document(self)
