"""Shared FastAPI dependencies for cellarsync application components."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from cellarsync.app.config import ApiSettings, load_api_settings
from cellarsync.infrastructure.db import get_path_config
from cellarsync.services import (
    InventoryService,
    ReportingService,
    SalesOrderService,
    SyncService,
)

__all__ = [
    "get_api_settings",
    "get_db_path",
    "get_inventory_service",
    "get_reporting_service",
    "get_sales_order_service",
    "get_sync_service",
    "ApiSettingsDep",
    "InventoryServiceDep",
    "ReportingServiceDep",
    "SalesOrderServiceDep",
    "SyncServiceDep",
]


@lru_cache(maxsize=1)
def get_api_settings() -> ApiSettings:
    return load_api_settings()


def get_db_path() -> str:
    return str(get_path_config()["db_path"])


def get_inventory_service(db_path: Annotated[str, Depends(get_db_path)]) -> InventoryService:
    return InventoryService.from_sqlite_path(db_path)


def get_sales_order_service(db_path: Annotated[str, Depends(get_db_path)]) -> SalesOrderService:
    return SalesOrderService.from_sqlite_path(db_path)


def get_reporting_service(db_path: Annotated[str, Depends(get_db_path)]) -> ReportingService:
    return ReportingService.from_sqlite_path(db_path)


@lru_cache(maxsize=1)
def _shared_sync_service() -> SyncService:
    # One instance per process so its run lock serializes every sync request.
    return SyncService()


def get_sync_service() -> SyncService:
    return _shared_sync_service()


# Annotated dependency types
ApiSettingsDep = Annotated[ApiSettings, Depends(get_api_settings)]
InventoryServiceDep = Annotated[InventoryService, Depends(get_inventory_service)]
SalesOrderServiceDep = Annotated[SalesOrderService, Depends(get_sales_order_service)]
ReportingServiceDep = Annotated[ReportingService, Depends(get_reporting_service)]
SyncServiceDep = Annotated[SyncService, Depends(get_sync_service)]
