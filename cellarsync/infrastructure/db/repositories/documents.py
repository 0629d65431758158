"""Pydantic schemas for the documents stored in the document tables.

Every canonical record is validated against these models before it is
written. Keys are camelCase on the wire and in storage.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from cellarsync.domain.models import camel_case


class RecordValidationError(ValueError):
    """Raised when a canonical record does not satisfy its stored schema."""

    def __init__(self, kind: str, internal_id: Any, detail: str) -> None:
        super().__init__(f"Invalid {kind} record {internal_id}: {detail}")
        self.kind = kind
        self.internal_id = internal_id
        self.detail = detail


class _DocumentModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=camel_case,
        populate_by_name=True,
        allow_inf_nan=False,
    )


# --- Inventory ---


class StockLocationModel(_DocumentModel):
    location_id: str
    name: str = ""
    address: str = ""
    city: str = ""
    country: str = ""
    zip: str = ""
    quantity_on_hand: float = 0.0
    quantity_available: float = 0.0


class PricingModel(_DocumentModel):
    trade_price: float = Field(0.0, ge=0)
    retail_price: float = Field(0.0, ge=0)


class MovementModel(_DocumentModel):
    last_movement_date: date | None = None
    moved_last_12_months: bool = False


class InventoryRecordModel(_DocumentModel):
    internal_id: int = Field(gt=0)
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
    price: float = Field(0.0, ge=0)
    currency: Literal["HKD", "EUR", "USD"] = "HKD"
    pricing: PricingModel = Field(default_factory=PricingModel)
    average_cost: float = 0.0
    total_value: float = 0.0
    locations: list[StockLocationModel] = Field(default_factory=list)
    total_quantity: float = 0.0
    display_name: str = ""
    formatted_weight: str = ""
    created_date: datetime | None = None
    last_modified_date: datetime | None = None
    movement: MovementModel = Field(default_factory=MovementModel)

    @model_validator(mode="after")
    def _derive_total_quantity(self) -> "InventoryRecordModel":
        self.total_quantity = sum(loc.quantity_available for loc in self.locations)
        return self


# --- Sales orders ---


class ReferenceModel(_DocumentModel):
    id: str = ""
    name: str = ""


class CustomerModel(_DocumentModel):
    customer_id: str = ""
    customer_name: str = ""
    email: str = ""


class SalesOrderLineModel(_DocumentModel):
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


class SalesOrderRecordModel(_DocumentModel):
    internal_id: int = Field(gt=0)
    customer: CustomerModel = Field(default_factory=CustomerModel)
    transaction_number: str = ""
    order_date: datetime | None = None
    delivery_date: datetime | None = None
    subsidiary: ReferenceModel = Field(default_factory=ReferenceModel)
    department: ReferenceModel = Field(default_factory=ReferenceModel)
    location: ReferenceModel = Field(default_factory=ReferenceModel)
    currency: ReferenceModel = Field(default_factory=ReferenceModel)
    terms: ReferenceModel = Field(default_factory=ReferenceModel)
    sales_rep: ReferenceModel = Field(default_factory=ReferenceModel)
    hold_type: ReferenceModel = Field(default_factory=ReferenceModel)
    invoice_number: str = ""
    customer_balance: float = 0.0
    customer_balance_group: float = 0.0
    credit_limit: float = 0.0
    consolidated_overdue_balance: float = 0.0
    consolidated_days_overdue: float = 0.0
    hold_extension_date: datetime | None = None
    ship_to: str = ""
    ship_contact: str = ""
    items: list[SalesOrderLineModel] = Field(default_factory=list)
    subtotal: float = 0.0
    discount_total: float = 0.0
    total_amount: float = 0.0
    est_gross_profit: float = 0.0
    est_gross_profit_percent: float = 0.0
    order_status: str = ""
    created_date: datetime | None = None
    last_modified_date: datetime | None = None


def validate_document(
    model: type[_DocumentModel], kind: str, document: dict[str, Any]
) -> dict[str, Any]:
    """Validate ``document`` and return its normalised JSON form.

    Raises:
        RecordValidationError: If the document does not match ``model``.
    """
    try:
        validated = model.model_validate(document)
    except ValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise RecordValidationError(kind, document.get("internalId"), detail) from exc
    return validated.model_dump(mode="json", by_alias=True)
