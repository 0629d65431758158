"""Pure mapping from upstream ERP payloads to canonical records.

Nothing here performs I/O. Upstream payloads are loosely typed trees of
dicts; every lookup tolerates absent keys and falls back to an empty string,
``0.0`` or ``None`` instead of raising.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Mapping

from cellarsync.domain.models import (
    Currency,
    Customer,
    InventoryItem,
    PriceSelection,
    Reference,
    SalesOrder,
    SalesOrderLine,
    StockLocation,
)

_MISSING = object()

TRADE_PRICE_LEVEL = "WLP (Base)"
RETAIL_PRICE_LEVEL = "LPCP (HKD)"

# Canonical attribute -> dotted upstream path for the plain text fields.
INVENTORY_TEXT_FIELDS: dict[str, str] = {
    "omtis_id": "custitem_wineid",
    "unit_type": "unitsType.refName",
    "item_name": "itemId",
    "replenishment_id": "custitem86",
    "purchase_description": "purchaseDescription",
    "product_description": "custitem_product_desc",
    "inventory_category": "custitem_inventory_category.refName",
    "inventory_subcategory": "custitem_inventory_subcategory.refName",
    "omtis_wine_category": "custitem20.refName",
    "producer": "custitem15.refName",
    "omtis_name_detail": "custitemliveexwinename",
    "omtis_name": "custitem26.refName",
    "classification": "custitem_classification.refName",
    "vintage": "custitem3",
    "appellation": "custitem_wine_appellation.refName",
    "bottle_size": "custitem19.refName",
    "sub_region": "custitem_sub_region.refName",
    "weight_unit": "weightUnit.refName",
    "region": "custitem_region.refName",
    "country": "custitem9.refName",
    "type": "custitem_type.refName",
}

SALES_ORDER_REFERENCE_FIELDS: dict[str, str] = {
    "subsidiary": "subsidiary",
    "department": "department",
    "location": "location",
    "currency": "currency",
    "terms": "terms",
    "sales_rep": "salesRep",
    "hold_type": "custbody37",
}

SALES_ORDER_NUMERIC_FIELDS: dict[str, str] = {
    "customer_balance": "custbody2",
    "customer_balance_group": "custbody27",
    "credit_limit": "custbody7",
    "consolidated_overdue_balance": "custbody29",
    "consolidated_days_overdue": "custbody28",
    "subtotal": "subtotal",
    "discount_total": "discountTotal",
    "total_amount": "total",
    "est_gross_profit": "estGrossProfit",
    "est_gross_profit_percent": "estGrossProfitPercent",
}


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dotted ``path`` through nested mappings.

    Returns the ``_MISSING`` sentinel when any segment is absent.
    """
    current = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return current


def extract_value(data: Any, path: str) -> Any:
    """Value at ``path``, with reference objects reduced to their ``refName``.

    Any missing segment or falsy value yields ``""``.
    """
    value = resolve_path(data, path)
    if value is _MISSING:
        return ""
    if isinstance(value, Mapping) and "refName" in value:
        value = value["refName"]
    if value is None or value == "" or value == 0:
        return ""
    return value


def extract_text(data: Any, path: str) -> str:
    value = extract_value(data, path)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value) if value != "" else ""


def to_number(value: Any) -> float:
    """Coerce an upstream numeric-ish value to a finite float, defaulting to ``0.0``."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def extract_number(data: Any, path: str) -> float:
    value = resolve_path(data, path)
    return 0.0 if value is _MISSING else to_number(value)


def first_link(node: Any) -> str:
    """The ``href`` of the first hyperlink on a reference node, or ``""``."""
    links = node.get("links") if isinstance(node, Mapping) else None
    if isinstance(links, list) and links and isinstance(links[0], Mapping):
        return str(links[0].get("href") or "")
    return ""


def parse_dmy_date(value: Any) -> date | None:
    """Parse ``DD/MM/YYYY`` as used by the movement query feed."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), "%d/%m/%Y").date()
    except ValueError:
        return None


def parse_iso_date(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp or date. Naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_internal_id(record: Mapping[str, Any]) -> int:
    """Upstream ``internalId`` when numeric, else the integer form of ``id``, else 0."""
    for key in ("internalId", "id"):
        value = record.get(key)
        if value in (None, ""):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return 0


def to_reference(data: Any, path: str) -> Reference:
    value = resolve_path(data, path)
    if not isinstance(value, Mapping):
        return Reference()
    ref_id = value.get("id")
    return Reference(
        id="" if ref_id is None else str(ref_id), name=str(value.get("refName") or "")
    )


def customer_display_name(entity_name: str) -> str:
    """Drop the leading token of a space-delimited entity name.

    The upstream entity reference name usually starts with an account code
    (``"C1042 Wine Club Ltd"``), which is stripped. Names without a space are
    kept unchanged.
    """
    if " " not in entity_name:
        return entity_name
    return " ".join(entity_name.split(" ")[1:])


def transform_inventory(
    record: Mapping[str, Any],
    pricing: PriceSelection | None = None,
    locations: list[StockLocation] | None = None,
) -> InventoryItem:
    """Build the canonical :class:`InventoryItem` for one upstream record."""
    selection = pricing or PriceSelection()
    inactive = record.get("isInactive")
    item = InventoryItem(
        internal_id=parse_internal_id(record),
        item_weight=extract_number(record, "weight"),
        is_inactive=inactive if isinstance(inactive, bool) else None,
        price=selection.price,
        currency=selection.currency,
        pricing=selection.pricing,
        average_cost=extract_number(record, "averageCost"),
        total_value=extract_number(record, "totalValue"),
        locations=list(locations or []),
        created_date=parse_iso_date(record.get("createdDate")),
        last_modified_date=parse_iso_date(record.get("lastModifiedDate")),
        raw_data=dict(record),
    )
    for attribute, path in INVENTORY_TEXT_FIELDS.items():
        setattr(item, attribute, extract_text(record, path))
    return item


def transform_location(
    detail: Mapping[str, Any], address: Mapping[str, Any] | None = None
) -> StockLocation:
    """Map a location-detail payload and its optional mailing address."""
    location_id = extract_text(detail, "locationId") or extract_text(detail, "location.id")
    name = extract_text(detail, "location_display") or extract_text(
        detail, "location.refName"
    )
    address = address or {}
    return StockLocation(
        location_id=location_id,
        name=name,
        address=extract_text(address, "addressee"),
        city=extract_text(address, "city"),
        country=extract_text(address, "country"),
        zip=extract_text(address, "zip"),
        quantity_on_hand=extract_number(detail, "quantityOnHand"),
        quantity_available=extract_number(detail, "quantityAvailable"),
    )


def transform_order_line(
    line: Mapping[str, Any], producer: str = "", region: str = ""
) -> SalesOrderLine:
    raw_line = line.get("line")
    return SalesOrderLine(
        line=int(raw_line) if isinstance(raw_line, (int, float)) else None,
        item_id=extract_text(line, "item.id"),
        item_name=extract_text(line, "item.refName"),
        sales_description=extract_text(line, "description"),
        omtis_id=extract_text(line, "custcol17"),
        producer=producer,
        region=region,
        quantity=extract_number(line, "quantity"),
        units=extract_text(line, "units"),
        fulfilled=extract_number(line, "quantityFulfilled"),
        invoiced=extract_number(line, "quantityBilled"),
        available=extract_number(line, "quantityAvailable"),
        price_level=extract_text(line, "price.refName"),
        unit_price=extract_number(line, "rate"),
        total=extract_number(line, "amount"),
        gross_profit=extract_number(line, "grossProfit"),
        is_closed=bool(line.get("isClosed") is True),
        is_open=bool(line.get("isOpen") is True),
    )


def transform_sales_order(
    record: Mapping[str, Any], lines: list[SalesOrderLine] | None = None
) -> SalesOrder:
    """Build the canonical :class:`SalesOrder` for one upstream order."""
    entity = record.get("entity") if isinstance(record.get("entity"), Mapping) else {}
    entity_id = entity.get("id")
    order = SalesOrder(
        internal_id=parse_internal_id(record),
        customer=Customer(
            customer_id="" if entity_id is None else str(entity_id),
            customer_name=customer_display_name(str(entity.get("refName") or "")),
            email=extract_text(record, "email"),
        ),
        transaction_number=extract_text(record, "tranId"),
        order_date=parse_iso_date(record.get("salesEffectiveDate"))
        or parse_iso_date(record.get("tranDate")),
        delivery_date=parse_iso_date(record.get("shipDate")),
        invoice_number=extract_text(record, "invoiceNumber"),
        hold_extension_date=parse_iso_date(record.get("custbodyHoldExtensionDate")),
        ship_to=extract_text(record, "shipAddress"),
        ship_contact=extract_text(record, "custbody13"),
        items=list(lines or []),
        order_status=extract_text(record, "orderStatus.id")
        or extract_text(record, "status.id"),
        created_date=parse_iso_date(record.get("createdDate")),
        last_modified_date=parse_iso_date(record.get("lastModifiedDate")),
        raw_data=dict(record),
    )
    for attribute, path in SALES_ORDER_REFERENCE_FIELDS.items():
        setattr(order, attribute, to_reference(record, path))
    for attribute, path in SALES_ORDER_NUMERIC_FIELDS.items():
        setattr(order, attribute, extract_number(record, path))
    return order


def select_price(
    levels: list[Mapping[str, Any]], item_currency: str | None = None
) -> PriceSelection:
    """Choose trade, retail and display price from price-level details.

    ``WLP (Base)`` is the trade price. ``LPCP (HKD)`` is the retail price and
    also the display price in HKD. Without a retail level the trade price is
    displayed. Scanning stops once both levels are found.
    """
    selection = PriceSelection(currency=Currency.from_reference(item_currency))
    has_trade = has_retail = False
    for level in levels:
        if has_trade and has_retail:
            break
        name = level.get("priceLevelName")
        if name == TRADE_PRICE_LEVEL:
            selection.trade_price = to_number(level.get("price"))
            has_trade = True
        if name == RETAIL_PRICE_LEVEL:
            selection.retail_price = to_number(level.get("price"))
            selection.price = selection.retail_price
            selection.currency = Currency.HKD
            has_retail = True
    if not has_retail:
        selection.price = selection.trade_price
    return selection

