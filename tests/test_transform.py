from datetime import date, datetime, timezone
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.domain.models import Currency, StockLocation
from cellarsync.services.sync.transform import (
    customer_display_name,
    extract_text,
    extract_value,
    parse_dmy_date,
    parse_iso_date,
    select_price,
    to_number,
    transform_inventory,
    transform_location,
    transform_sales_order,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 0.0), ("abc", 0.0), ("12.5", 12.5), (7, 7.0), ("", 0.0), (float("nan"), 0.0), (True, 0.0)],
)
def test_to_number_coerces_to_finite_float(raw, expected) -> None:
    assert to_number(raw) == expected


def test_to_number_absent_path_is_zero() -> None:
    record = {"averageCost": "3.5"}
    item = transform_inventory({"id": "1", **record})
    assert item.average_cost == 3.5
    assert item.total_value == 0.0


def test_parse_dmy_date() -> None:
    assert parse_dmy_date("15/03/2024") == date(2024, 3, 15)
    assert parse_dmy_date("") is None
    assert parse_dmy_date("2024-03-15") is None
    assert parse_dmy_date("31/02/2024") is None
    assert parse_dmy_date(None) is None


def test_parse_iso_date_handles_zulu_and_naive_values() -> None:
    assert parse_iso_date("2024-03-01T08:00:00Z") == datetime(2024, 3, 1, 8, tzinfo=timezone.utc)
    assert parse_iso_date("2024-03-01").tzinfo == timezone.utc
    assert parse_iso_date("not a date") is None


def test_extract_value_reduces_references_and_blanks_falsy_values() -> None:
    record = {"custitem15": {"id": "9", "refName": "Domaine X"}, "weight": 0, "custitem3": None}

    assert extract_value(record, "custitem15") == "Domaine X"
    assert extract_value(record, "custitem15.refName") == "Domaine X"
    assert extract_value(record, "weight") == ""
    assert extract_value(record, "custitem3") == ""
    assert extract_value(record, "missing.deeply.nested") == ""
    assert extract_text({"custitem3": 2015.0}, "custitem3") == "2015"


def test_customer_name_drops_leading_token() -> None:
    assert customer_display_name("C1042 Wine Club Ltd") == "Wine Club Ltd"
    # Names without an account prefix still lose their first word.
    assert customer_display_name("Wine Club") == "Club"
    assert customer_display_name("Solo") == "Solo"
    assert customer_display_name("") == ""


@pytest.mark.parametrize(
    "levels",
    [
        [{"priceLevelName": "WLP (Base)", "price": 100}, {"priceLevelName": "LPCP (HKD)", "price": 120}],
        [{"priceLevelName": "LPCP (HKD)", "price": 120}, {"priceLevelName": "WLP (Base)", "price": 100}],
    ],
)
def test_retail_level_wins_in_any_order(levels) -> None:
    selection = select_price(levels, "EUR")

    assert selection.price == 120
    assert selection.currency is Currency.HKD
    assert selection.pricing.trade_price == 100
    assert selection.pricing.retail_price == 120


def test_trade_level_is_the_fallback_price() -> None:
    selection = select_price([{"priceLevelName": "WLP (Base)", "price": "100"}], "Euro (EUR)")

    assert selection.price == 100
    assert selection.currency is Currency.EUR
    assert selection.pricing.retail_price == 0


def test_no_price_levels_yields_zero_in_hkd() -> None:
    selection = select_price([])
    assert (selection.price, selection.currency) == (0, Currency.HKD)


def test_total_quantity_sums_available_quantities() -> None:
    locations = [
        StockLocation(location_id="1", quantity_on_hand=10, quantity_available=4),
        StockLocation(location_id="2", quantity_on_hand=3, quantity_available=2.5),
    ]
    item = transform_inventory({"id": "5"}, locations=locations)

    assert item.total_quantity == 6.5
    assert transform_inventory({"id": "6"}).total_quantity == 0


def test_transform_inventory_maps_canonical_fields() -> None:
    record = {
        "id": "42",
        "itemId": "LAF-2010",
        "custitem15": {"refName": "Chateau Lafite"},
        "custitem3": "2010",
        "custitem19": {"refName": "75cl"},
        "custitem_region": {"refName": "Bordeaux"},
        "weight": 1.5,
        "weightUnit": {"refName": "kg"},
        "isInactive": False,
        "createdDate": "2023-01-05T00:00:00Z",
    }

    item = transform_inventory(record)
    document = item.to_document()

    assert item.internal_id == 42
    assert item.producer == "Chateau Lafite"
    assert item.region == "Bordeaux"
    assert item.display_name == "Chateau Lafite LAF-2010 (2010) [75cl]"
    assert item.formatted_weight == "1.5 kg"
    assert document["internalId"] == 42
    assert document["totalQuantity"] == 0
    assert document["isInactive"] is False
    assert "rawData" not in document


def test_transform_location_reads_detail_and_address() -> None:
    location = transform_location(
        {"location": {"id": "8", "refName": "Bonded"}, "quantityOnHand": "4", "quantityAvailable": 3},
        {"addressee": "Bonded Store", "city": "Kowloon", "country": {"refName": "HK"}},
    )

    assert location.location_id == "8"
    assert location.name == "Bonded"
    assert location.address == "Bonded Store"
    assert location.country == "HK"
    assert location.quantity_on_hand == 4.0


def test_transform_sales_order_copies_totals_and_references() -> None:
    order = transform_sales_order(
        {
            "id": "900",
            "tranId": "SO-900",
            "entity": {"id": "77", "refName": "C77 Cellar Club"},
            "email": "club@example.com",
            "salesEffectiveDate": "2024-03-02",
            "currency": {"id": "1", "refName": "HKD"},
            "orderStatus": {"id": "B", "refName": "Pending Fulfillment"},
            "subtotal": 1000,
            "total": "1100.50",
            "custbody7": "50000",
        }
    )

    assert order.internal_id == 900
    assert order.customer.customer_id == "77"
    assert order.customer.customer_name == "Cellar Club"
    assert order.currency.name == "HKD"
    assert order.order_status == "B"
    assert order.total_amount == 1100.5
    assert order.credit_limit == 50000
    assert order.item_count == 0
