"""FastAPI application exposing sync triggers and the synchronized data.

Run with ``uvicorn cellarsync.app.api:app``.
"""

from __future__ import annotations

import time
from typing import Annotated, Any

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cellarsync import __version__
from cellarsync.app.dependencies import (
    ApiSettingsDep,
    InventoryServiceDep,
    ReportingServiceDep,
    SalesOrderServiceDep,
    SyncServiceDep,
    get_api_settings,
)
from cellarsync.infrastructure.observability import (
    configure_logging,
    format_prometheus,
    get_logger,
    record_api_request,
)
from cellarsync.services.dto import (
    FromSalesOrdersRequest,
    IncrementalSyncRequest,
    InventoryPage,
    InventorySearchPage,
    MovementRequest,
    SalesOrderPage,
    SalesOrderSyncRequest,
    SweepRequest,
)
from cellarsync.services.sync import SyncRunReport

configure_logging()
logger = get_logger(__name__)

app = FastAPI(title="cellarsync API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_api_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PageParam = Annotated[int, Query(ge=1)]
LimitParam = Annotated[int, Query(ge=1, le=1000)]


# =============================================================================
# Error handling and request metrics
# =============================================================================


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message, **extra}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return _error(status.HTTP_400_BAD_REQUEST, f"{location}: {message}" if location else message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error serving %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or exc.__class__.__name__)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        record_api_request(endpoint, request.method, status_code, time.perf_counter() - start)


def _report_response(report: SyncRunReport) -> JSONResponse:
    payload = report.to_dict()
    if report.status == "auth_failed":
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={**payload, "error": report.message},
        )
    if report.status == "failed":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={**payload, "error": report.message or "Sync failed"},
        )
    return JSONResponse(content=payload)


# =============================================================================
# Health and metrics
# =============================================================================


@app.get("/")
async def root(settings: ApiSettingsDep) -> dict[str, Any]:
    return {
        "status": "ok",
        "name": "cellarsync API",
        "version": __version__,
        "environment": settings.environment,
        "endpoints": {
            "sync": "/api/sync",
            "inventory": "/api/inventory",
            "salesOrders": "/api/sales-orders",
            "status": "/api/status",
            "metrics": "/metrics",
        },
    }


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics() -> PlainTextResponse:
    return PlainTextResponse(format_prometheus(), media_type="text/plain; version=0.0.4")


# =============================================================================
# Sync triggers
# =============================================================================


@app.get("/api/test-auth")
async def test_auth(service: SyncServiceDep) -> JSONResponse:
    if await service.test_authentication():
        return JSONResponse(content={"success": True, "message": "Authentication successful"})
    return _error(
        status.HTTP_401_UNAUTHORIZED,
        "Authentication failed. Please check your OAuth credentials.",
    )


@app.post("/api/sync")
async def trigger_inventory_sync(
    service: SyncServiceDep, payload: IncrementalSyncRequest | None = None
) -> JSONResponse:
    payload = payload or IncrementalSyncRequest()
    report = await service.sync_inventory(limit=payload.limit, since=payload.date)
    return _report_response(report)


@app.post("/api/sync/sweep")
async def trigger_sweep(service: SyncServiceDep, payload: SweepRequest | None = None) -> JSONResponse:
    payload = payload or SweepRequest()
    report = await service.sweep_inventory(
        batch_size=payload.batch_size,
        max_items=payload.max_items,
        batch_delay_seconds=payload.batch_delay,
    )
    return _report_response(report)


@app.post("/api/sync/sales-orders")
async def trigger_sales_order_sync(
    service: SyncServiceDep, payload: SalesOrderSyncRequest | None = None
) -> JSONResponse:
    payload = payload or SalesOrderSyncRequest()
    report = await service.sync_sales_orders(limit=payload.limit, since=payload.date)
    return _report_response(report)


@app.post("/api/sync/from-sales-orders")
async def trigger_from_sales_orders_sync(
    service: SyncServiceDep, payload: FromSalesOrdersRequest | None = None
) -> JSONResponse:
    payload = payload or FromSalesOrdersRequest()
    report = await service.sync_from_sales_orders(
        batch_size=payload.batch_size, max_items=payload.max_items
    )
    return _report_response(report)


@app.post("/api/sync/movement")
async def trigger_movement_sync(
    service: SyncServiceDep, payload: MovementRequest | None = None
) -> JSONResponse:
    payload = payload or MovementRequest()
    report = await service.enrich_movement(
        batch_size=payload.batch_size, max_items=payload.max_items
    )
    return _report_response(report)


# =============================================================================
# Inventory
# =============================================================================


@app.get("/api/inventory", response_model=InventoryPage, response_model_by_alias=True)
async def list_inventory(
    service: InventoryServiceDep, page: PageParam = 1, limit: LimitParam = 50
) -> InventoryPage:
    return service.list_items(page=page, limit=limit)


@app.get("/api/inventory/search", response_model=InventorySearchPage, response_model_by_alias=True)
async def search_inventory(
    service: InventoryServiceDep,
    q: Annotated[str, Query(min_length=1)],
    page: PageParam = 1,
    limit: LimitParam = 50,
) -> InventorySearchPage:
    return service.search(q, page=page, limit=limit)


@app.get("/api/inventory/filter", response_model=InventoryPage, response_model_by_alias=True)
async def filter_inventory(
    service: InventoryServiceDep,
    country: str | None = None,
    vintage: str | None = None,
    type: str | None = None,
    region: str | None = None,
    producer: str | None = None,
    page: PageParam = 1,
    limit: LimitParam = 50,
) -> InventoryPage:
    return service.filter_items(
        country=country,
        vintage=vintage,
        wine_type=type,
        region=region,
        producer=producer,
        page=page,
        limit=limit,
    )


@app.get("/api/inventory/statistics")
async def inventory_statistics(service: InventoryServiceDep) -> dict[str, Any]:
    return {"success": True, "data": service.statistics()}


@app.get("/api/inventory/{internal_id}")
async def get_inventory_item(internal_id: int, service: InventoryServiceDep) -> dict[str, Any]:
    item = service.get_item(internal_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Inventory item {internal_id} not found")
    return {"success": True, "data": item}


@app.delete("/api/inventory")
async def clear_inventory(
    service: InventoryServiceDep, settings: ApiSettingsDep
) -> dict[str, Any]:
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Clearing inventory is disabled in production")
    removed = service.clear_all()
    return {"success": True, "message": f"Deleted {removed} inventory items", "deleted": removed}


@app.get("/api/status")
async def sync_status(service: ReportingServiceDep) -> dict[str, Any]:
    return service.sync_status().model_dump(by_alias=True)


# =============================================================================
# Sales orders
# =============================================================================


@app.get("/api/sales-orders", response_model=SalesOrderPage, response_model_by_alias=True)
async def list_sales_orders(
    service: SalesOrderServiceDep,
    customer: str | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    from_date: Annotated[str | None, Query(alias="fromDate")] = None,
    to_date: Annotated[str | None, Query(alias="toDate")] = None,
    page: PageParam = 1,
    limit: LimitParam = 50,
) -> SalesOrderPage:
    return service.list_orders(
        customer=customer,
        status=status_filter,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
    )


@app.get("/api/sales-orders/stats")
async def sales_order_stats(
    service: SalesOrderServiceDep,
    from_date: Annotated[str | None, Query(alias="fromDate")] = None,
    to_date: Annotated[str | None, Query(alias="toDate")] = None,
) -> dict[str, Any]:
    return {"success": True, "data": service.stats(from_date=from_date, to_date=to_date)}


@app.get("/api/sales-orders/{internal_id}")
async def get_sales_order(internal_id: int, service: SalesOrderServiceDep) -> dict[str, Any]:
    order = service.get_order(internal_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Sales order {internal_id} not found")
    return {"success": True, "data": order}
