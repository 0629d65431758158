import asyncio
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.services.sync import RecordFetcher
from erp_fakes import FakeErp, link, no_sleep


def _fetch(erp: FakeErp, item_id: int, **fetcher_kwargs):
    async def run():
        async with erp.client() as client:
            fetcher = RecordFetcher(client, sleep=no_sleep, **fetcher_kwargs)
            return await fetcher.fetch_full_record(item_id)

    return asyncio.run(run())


def test_inactive_item_skips_price_and_location_fetches() -> None:
    erp = FakeErp()
    erp.add_item(3, inactive=True)

    enriched = _fetch(erp, 3)

    assert enriched is not None
    assert enriched.pricing.price == 0
    assert enriched.locations == []
    assert erp.paths() == ["/inventoryitem/3"]


def test_active_item_is_fully_enriched() -> None:
    erp = FakeErp()
    erp.add_item(
        4,
        locations=[("11", "Main Cellar", 6.0, 5.0), ("12", "Bonded", 2.0, 1.0)],
    )

    enriched = _fetch(erp, 4)

    assert enriched.pricing.price == 120
    assert enriched.pricing.trade_price == 100
    assert [loc.location_id for loc in enriched.locations] == ["11", "12"]
    assert enriched.locations[0].city == "Hong Kong"
    assert sum(loc.quantity_available for loc in enriched.locations) == 6.0


def test_missing_address_keeps_location_quantities() -> None:
    erp = FakeErp()
    erp.add_item(5)
    erp.add("/location/11/mainAddress", {"title": "boom"}, status=500)

    enriched = _fetch(erp, 5)

    assert len(enriched.locations) == 1
    location = enriched.locations[0]
    assert location.quantity_available == 5.0
    assert location.address == ""
    assert location.city == ""


def test_location_fan_out_is_capped() -> None:
    erp = FakeErp()
    erp.add_item(
        6,
        locations=[(str(n), f"Loc {n}", 1.0, 1.0) for n in range(20, 25)],
    )

    enriched = _fetch(erp, 6, max_locations=2)

    assert enriched.locations_truncated is True
    assert [loc.location_id for loc in enriched.locations] == ["20", "21"]
    assert erp.count("/inventoryitem/6/locations/22") == 0


def test_price_failure_degrades_to_zero_price() -> None:
    erp = FakeErp()
    erp.add_item(7)
    erp.add("/inventoryitem/7/price", {"title": "boom"}, status=500)

    enriched = _fetch(erp, 7)

    assert enriched.pricing.price == 0
    assert len(enriched.locations) == 1


def test_price_scan_stops_once_both_levels_are_found() -> None:
    erp = FakeErp()
    erp.add_item(
        8,
        price_levels=[
            ("WLP (Base)", 90.0),
            ("LPCP (HKD)", 110.0),
            ("Export", 70.0),
            ("Staff", 60.0),
        ],
    )

    enriched = _fetch(erp, 8)

    assert enriched.pricing.price == 110
    assert erp.count("/inventoryitem/8/price/2") == 0
    assert erp.count("/inventoryitem/8/price/3") == 0


def test_failed_base_fetch_returns_none() -> None:
    erp = FakeErp()

    assert _fetch(erp, 404) is None


def test_non_object_base_payload_is_treated_as_a_failed_fetch() -> None:
    erp = FakeErp()
    erp.add("/inventoryitem/1", [])

    assert _fetch(erp, 1) is None
    assert erp.paths() == ["/inventoryitem/1"]


def test_address_comes_from_the_referenced_warehouse() -> None:
    erp = FakeErp()
    erp.add_item(6, locations=[("7", "Main Cellar", 6.0, 5.0)])
    erp.add(
        "/inventoryitem/6/locations/7",
        {
            "locationId": 7,
            "location": {"id": "11", "refName": "Main Cellar"},
            "quantityOnHand": 6.0,
            "quantityAvailable": 5.0,
        },
    )
    erp.add("/location/7/mainAddress", None, status=404)
    erp.add("/location/11/mainAddress", {"addressee": "Main Cellar", "city": "Hong Kong"})

    enriched = _fetch(erp, 6)

    location = enriched.locations[0]
    assert location.location_id == "7"
    assert location.address == "Main Cellar"
    assert erp.count("/location/11/mainAddress") == 1
    assert erp.count("/location/7/mainAddress") == 0


def test_sales_order_lines_resolve_item_attributes() -> None:
    erp = FakeErp()
    erp.add("/salesorder/70", {"id": "70", "tranId": "SO-70"})
    erp.add("/salesorder/70/item", {"items": [link("/salesorder/70/item/1"), link("/salesorder/70/item/2")]})
    erp.add(
        "/salesorder/70/item/1",
        {"line": 1, "item": {"id": "5", "refName": "Wine 5", **link("/inventoryitem/5")}, "quantity": 6},
    )
    erp.add("/salesorder/70/item/2", {"title": "gone"}, status=500)
    erp.add(
        "/inventoryitem/5",
        {"custitem15": {"refName": "Domaine Five"}, "custitem_region": {"refName": "Burgundy"}},
    )

    async def run():
        async with erp.client() as client:
            return await RecordFetcher(client).fetch_sales_order(70)

    enriched = asyncio.run(run())

    assert len(enriched.lines) == 1
    line = enriched.lines[0]
    assert (line.item_id, line.producer, line.region, line.quantity) == (
        "5",
        "Domaine Five",
        "Burgundy",
        6.0,
    )
