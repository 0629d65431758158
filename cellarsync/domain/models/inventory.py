"""Inventory domain model with derived quantity and display helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from .document import to_document


class Currency(str, Enum):
    """Currencies an item price can be expressed in."""

    HKD = "HKD"
    EUR = "EUR"
    USD = "USD"

    @classmethod
    def from_reference(cls, name: str | None) -> "Currency":
        """Map an upstream currency reference name, defaulting to HKD."""
        if not name:
            return cls.HKD
        if "EUR" in name:
            return cls.EUR
        if "USD" in name:
            return cls.USD
        return cls.HKD


@dataclass
class Pricing:
    trade_price: float = 0.0
    retail_price: float = 0.0


@dataclass
class PriceSelection:
    """Display price chosen from the item's price levels."""

    price: float = 0.0
    currency: Currency = Currency.HKD
    trade_price: float = 0.0
    retail_price: float = 0.0

    @property
    def pricing(self) -> Pricing:
        return Pricing(trade_price=self.trade_price, retail_price=self.retail_price)


@dataclass
class StockLocation:
    """Stock held for an item at one warehouse location."""

    location_id: str
    name: str = ""
    address: str = ""
    city: str = ""
    country: str = ""
    zip: str = ""
    quantity_on_hand: float = 0.0
    quantity_available: float = 0.0


@dataclass
class Movement:
    """Outbound movement status populated by the movement pass."""

    last_movement_date: date | None = None
    moved_last_12_months: bool = False


@dataclass
class InventoryItem:
    """Canonical inventory record keyed by the upstream ``internal_id``.

    ``total_quantity`` is always derived from ``locations`` so it cannot drift
    from the per-location quantities.
    """

    internal_id: int
    omtis_id: str = ""
    unit_type: str = ""
    item_name: str = ""
    replenishment_id: str = ""
    purchase_description: str = ""
    product_description: str = ""
    inventory_category: str = ""
    inventory_subcategory: str = ""
    omtis_wine_category: str = ""
    producer: str = ""
    omtis_name_detail: str = ""
    omtis_name: str = ""
    classification: str = ""
    vintage: str = ""
    appellation: str = ""
    bottle_size: str = ""
    sub_region: str = ""
    item_weight: float = 0.0
    weight_unit: str = ""
    region: str = ""
    country: str = ""
    type: str = ""
    is_inactive: bool | None = None
    price: float = 0.0
    currency: Currency = Currency.HKD
    pricing: Pricing = field(default_factory=Pricing)
    average_cost: float = 0.0
    total_value: float = 0.0
    locations: list[StockLocation] = field(default_factory=list)
    created_date: datetime | None = None
    last_modified_date: datetime | None = None
    movement: Movement = field(default_factory=Movement)
    raw_data: dict[str, Any] = field(default_factory=dict, metadata={"document": False})

    @property
    def total_quantity(self) -> float:
        return sum(location.quantity_available for location in self.locations)

    @property
    def display_name(self) -> str:
        parts = [self.producer, self.item_name]
        if self.vintage:
            parts.append(f"({self.vintage})")
        if self.bottle_size:
            parts.append(f"[{self.bottle_size}]")
        return " ".join(part for part in parts if part)

    @property
    def formatted_weight(self) -> str:
        if self.item_weight and self.weight_unit:
            return f"{self.item_weight:g} {self.weight_unit}"
        return ""

    def to_document(self) -> dict[str, Any]:
        """Return the JSON document persisted for this item."""
        document = to_document(self)
        document["totalQuantity"] = self.total_quantity
        document["displayName"] = self.display_name
        document["formattedWeight"] = self.formatted_weight
        return document
