from datetime import date
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.domain.models import (
    Customer,
    InventoryItem,
    Movement,
    SalesOrder,
    SalesOrderLine,
    StockLocation,
)
from cellarsync.infrastructure.db import DatabaseError, get_connection
from cellarsync.infrastructure.db.schema import CURRENT_SCHEMA_VERSION, SchemaMigrator, ensure_schema
from cellarsync.infrastructure.db.schema.tables import SCHEMA_INVENTORY_ITEMS_SQL
from cellarsync.infrastructure.db.repositories import (
    InventoryRepository,
    RecordValidationError,
    SalesOrderRepository,
    SyncRunRepository,
)

SYNCED_AT = "2024-05-01T10:00:00+00:00"


def _item(internal_id: int = 7, **overrides) -> InventoryItem:
    values = dict(
        internal_id=internal_id,
        omtis_id=f"ITEM-{internal_id}",
        item_name="Grand Vin",
        producer="Chateau Test",
        vintage="2015",
        country="France",
        type="Red",
        price=120.0,
        locations=[
            StockLocation(location_id="11", name="Main Cellar", quantity_on_hand=6, quantity_available=5),
            StockLocation(location_id="12", name="Bonded", quantity_on_hand=2, quantity_available=1),
        ],
        raw_data={"id": str(internal_id)},
    )
    values.update(overrides)
    return InventoryItem(**values)


def test_upsert_twice_leaves_one_identical_row(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        repo = InventoryRepository(conn)
        first = repo.upsert(_item(), synced_at=SYNCED_AT)
        second = repo.upsert(_item(), synced_at=SYNCED_AT)

        assert repo.count() == 1
        assert first == second
        assert second["lastSynced"] == SYNCED_AT


def test_stored_total_quantity_matches_locations(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        repo = InventoryRepository(conn)
        stored = repo.upsert(_item())

        assert stored["totalQuantity"] == 6
        assert stored["totalQuantity"] == sum(
            location["quantityAvailable"] for location in stored["locations"]
        )
        assert stored["displayName"] == "Chateau Test Grand Vin (2015)"


def test_resync_keeps_first_synced_and_movement(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        repo = InventoryRepository(conn)
        repo.upsert(_item(), synced_at="2024-01-01T00:00:00+00:00")
        assert repo.update_movement(
            7, Movement(last_movement_date=date(2024, 3, 2), moved_last_12_months=True)
        )

        stored = repo.upsert(_item(price=150.0), synced_at=SYNCED_AT)

        assert stored["price"] == 150.0
        assert stored["firstSynced"] == "2024-01-01T00:00:00+00:00"
        assert stored["lastSynced"] == SYNCED_AT
        assert stored["movement"] == {
            "lastMovementDate": "2024-03-02",
            "movedLast12Months": True,
        }


def test_update_movement_for_unknown_item_reports_absent(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        assert InventoryRepository(conn).update_movement(99, Movement()) is False


def test_invalid_item_is_rejected_without_writing(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        repo = InventoryRepository(conn)

        with pytest.raises(RecordValidationError) as excinfo:
            repo.upsert(_item(internal_id=0))

        assert excinfo.value.kind == "inventory"
        assert repo.count() == 0


def test_search_and_filter(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        repo = InventoryRepository(conn)
        repo.upsert(_item(1))
        repo.upsert(_item(2, producer="Domaine Autre", country="Italy", type="White"))

        found, total = repo.search("autre")
        assert total == 1
        assert found[0]["internalId"] == 2

        filtered, total = repo.filter_items(country="france", wine_type="red")
        assert total == 1
        assert filtered[0]["internalId"] == 1

        assert repo.existing_ids([1, 2, 3]) == {1, 2}
        assert repo.delete(1) is True
        assert repo.delete(1) is False
        assert repo.list_ids() == [2]


def test_sales_order_round_trip_and_referenced_items(tmp_path: Path) -> None:
    order = SalesOrder(
        internal_id=501,
        transaction_number="SO-501",
        customer=Customer(customer_id="77", customer_name="Club"),
        order_status="Pending Fulfillment",
        total_amount=480.0,
        items=[
            SalesOrderLine(line=1, item_id="7", quantity=2, total=240.0),
            SalesOrderLine(line=2, item_id="9", quantity=2, total=240.0),
            SalesOrderLine(line=3, item_id="7", quantity=1, total=0.0),
        ],
        raw_data={"id": "501"},
    )
    with get_connection(tmp_path / "cellar.db") as conn:
        repo = SalesOrderRepository(conn)
        repo.upsert(order, synced_at=SYNCED_AT)
        repo.upsert(order, synced_at=SYNCED_AT)

        stored = repo.get(501)
        assert repo.count() == 1
        assert stored["customer"]["customerName"] == "Club"
        assert stored["totalAmount"] == 480.0
        assert repo.referenced_item_ids() == [7, 9]

        orders, total, totals = repo.list_orders(customer="club")
        assert total == 1
        assert totals["total_amount"] == 480.0
        assert orders[0]["transactionNumber"] == "SO-501"


def test_sync_run_lifecycle(tmp_path: Path) -> None:
    with get_connection(tmp_path / "cellar.db") as conn:
        runs = SyncRunRepository(conn)
        run_id = runs.start("inventory", {"limit": 10})
        assert runs.get(run_id)["status"] == "running"

        runs.finish(
            run_id,
            status="partial",
            processed=3,
            saved=2,
            skipped=0,
            failed=1,
            errors=[{"id": 5, "error": "HTTP 500"}],
        )

        run = runs.get(run_id)
        assert run["status"] == "partial"
        assert run["parameters"] == {"limit": 10}
        assert run["errors"] == [{"id": 5, "error": "HTTP 500"}]
        assert run["finished_at"] is not None
        assert [recent["id"] for recent in runs.list_recent()] == [run_id]


def _table_without_movement() -> str:
    movement = ("moved_last_12_months", "last_movement_date", "movement_checked_at")
    return "\n".join(
        line for line in SCHEMA_INVENTORY_ITEMS_SQL.splitlines() if not line.strip().startswith(movement)
    )


def test_schema_upgrade_adds_movement_columns_once(tmp_path: Path) -> None:
    with get_connection(tmp_path / "old.db") as conn:
        conn.executescript(_table_without_movement())
        conn.execute(
            "INSERT INTO inventory_items (internal_id, document, first_synced, last_synced) "
            "VALUES (5, '{}', ?, ?)",
            (SYNCED_AT, SYNCED_AT),
        )
        conn.commit()

        ensure_schema(conn)
        columns = {row[1] for row in conn.execute("PRAGMA table_info(inventory_items)")}
        moved = conn.execute("SELECT moved_last_12_months FROM inventory_items").fetchone()[0]
        migrator = SchemaMigrator(conn)

        assert {"moved_last_12_months", "last_movement_date", "movement_checked_at"} <= columns
        assert moved == 0
        assert migrator.applied() == {"add_inventory_movement_columns_v2"}
        assert migrator.get_version() == CURRENT_SCHEMA_VERSION
        assert migrator.migrate() == []


def test_upsert_raises_when_the_row_cannot_be_read_back(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(InventoryRepository, "get", lambda self, internal_id: None)

    with get_connection(tmp_path / "cellar.db") as conn:
        repo = InventoryRepository(conn)
        with pytest.raises(DatabaseError, match="Inventory item 7"):
            repo.upsert(_item(), synced_at=SYNCED_AT)
