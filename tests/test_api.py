from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.app.api import app
from cellarsync.app.config import ApiSettings
from cellarsync.app.dependencies import get_api_settings, get_db_path, get_sync_service
from cellarsync.domain.models import Customer, InventoryItem, SalesOrder, StockLocation
from cellarsync.infrastructure.db import get_connection
from cellarsync.infrastructure.db.repositories import InventoryRepository, SalesOrderRepository
from cellarsync.services import SyncService
from erp_fakes import FakeErp, make_settings, no_sleep


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = tmp_path / "cellar.db"
    with get_connection(path) as conn:
        inventory = InventoryRepository(conn)
        inventory.upsert(
            InventoryItem(
                internal_id=1,
                item_name="Grand Vin",
                producer="Chateau Test",
                vintage="2015",
                country="France",
                type="Red",
                locations=[StockLocation(location_id="11", quantity_available=4)],
            )
        )
        inventory.upsert(
            InventoryItem(internal_id=2, item_name="Bianco", producer="Cantina", country="Italy", type="White")
        )
        SalesOrderRepository(conn).upsert(
            SalesOrder(
                internal_id=70,
                transaction_number="SO-70",
                customer=Customer(customer_id="77", customer_name="Wine Club"),
                order_status="B",
                total_amount=480.0,
            )
        )
    return str(path)


@pytest.fixture
def erp() -> FakeErp:
    fake = FakeErp()
    fake.add_listing("inventoryItem", [5])
    fake.add_item(5)
    return fake


@pytest.fixture
def client(db_path: str, erp: FakeErp, tmp_path: Path):
    service = SyncService(
        db_path=db_path,
        settings=make_settings(),
        client_factory=erp.client,
        logs_dir=tmp_path / "logs",
        record_delay_seconds=0,
        sleep=no_sleep,
    )
    app.dependency_overrides[get_db_path] = lambda: db_path
    app.dependency_overrides[get_sync_service] = lambda: service
    app.dependency_overrides[get_api_settings] = lambda: ApiSettings(environment="development")
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_and_get_inventory(client: TestClient) -> None:
    listing = client.get("/api/inventory", params={"limit": 1}).json()

    assert listing["success"] is True
    assert listing["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    assert listing["data"][0]["internalId"] == 1

    item = client.get("/api/inventory/1").json()["data"]
    assert item["totalQuantity"] == 4
    assert item["displayName"] == "Chateau Test Grand Vin (2015)"


def test_missing_item_returns_error_body(client: TestClient) -> None:
    response = client.get("/api/inventory/999")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Inventory item 999 not found"}


def test_search_and_filter(client: TestClient) -> None:
    found = client.get("/api/inventory/search", params={"q": "bianco"}).json()
    assert found["query"] == "bianco"
    assert [item["internalId"] for item in found["data"]] == [2]

    filtered = client.get("/api/inventory/filter", params={"country": "France"}).json()
    assert [item["internalId"] for item in filtered["data"]] == [1]


def test_invalid_limit_is_a_bad_request(client: TestClient) -> None:
    response = client.get("/api/inventory", params={"limit": 0})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_sales_orders(client: TestClient) -> None:
    listing = client.get("/api/sales-orders", params={"customer": "club"}).json()
    assert listing["totals"] == {"totalAmount": 480.0, "count": 1}

    order = client.get("/api/sales-orders/70").json()["data"]
    assert order["transactionNumber"] == "SO-70"
    assert client.get("/api/sales-orders/71").status_code == 404


def test_sync_trigger_runs_an_incremental_sync(client: TestClient, db_path: str) -> None:
    response = client.post("/api/sync", json={"limit": 5, "date": "01/01/2024"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "success"
    assert body["saved"] == 1
    with get_connection(db_path) as conn:
        assert InventoryRepository(conn).exists(5)

    status = client.get("/api/status").json()
    assert status["totalItems"] == 3
    assert status["recentRuns"][0]["mode"] == "inventory"


def test_sync_request_rejects_malformed_date(client: TestClient) -> None:
    response = client.post("/api/sync", json={"date": "2024-01-01"})

    assert response.status_code == 400


def test_authentication_failure_maps_to_401(client: TestClient, erp: FakeErp) -> None:
    erp.add("/inventoryItem", {"title": "Unauthorized"}, status=401)

    assert client.get("/api/test-auth").status_code == 401

    response = client.post("/api/sync")
    assert response.status_code == 401
    assert response.json()["status"] == "auth_failed"


def test_clear_inventory_is_refused_in_production(client: TestClient) -> None:
    app.dependency_overrides[get_api_settings] = lambda: ApiSettings(environment="production")

    response = client.delete("/api/inventory")

    assert response.status_code == 403
    assert client.get("/api/inventory").json()["pagination"]["total"] == 2


def test_clear_inventory(client: TestClient) -> None:
    response = client.delete("/api/inventory")

    assert response.json()["deleted"] == 2
    assert client.get("/api/inventory").json()["pagination"]["total"] == 0


def test_metrics_endpoint_exposes_request_counters(client: TestClient) -> None:
    client.get("/")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "api_requests_total" in response.text
