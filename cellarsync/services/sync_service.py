from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

from cellarsync.infrastructure.db import get_connection, get_path_config
from cellarsync.infrastructure.http import ErpClient, ErpSettings, load_erp_settings
from cellarsync.infrastructure.observability import get_logger
from cellarsync.services.sync import SyncOrchestrator, SyncRunReport

ClientFactory = Callable[[ErpSettings], ErpClient]


class SyncService:
    """Coordinate sync runs against one database and one upstream account.

    Runs are serialized with a lock: the upstream tolerates a single
    in-flight caller, so two overlapping runs would only queue behind each
    other inside the client anyway.
    """

    def __init__(
        self,
        *,
        db_path: str | None = None,
        settings: ErpSettings | None = None,
        client_factory: ClientFactory | None = None,
        logs_dir: Path | None = None,
        record_delay_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        paths = get_path_config()
        self._db_path = db_path or str(paths["db_path"])
        self._logs_dir = logs_dir or paths["logs_dir"]
        self._settings = settings or load_erp_settings()
        self._client_factory = client_factory or ErpClient
        self._record_delay_seconds = record_delay_seconds
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    @property
    def settings(self) -> ErpSettings:
        return self._settings

    @asynccontextmanager
    async def _orchestrator(self) -> AsyncIterator[SyncOrchestrator]:
        async with self._lock:
            async with self._client_factory(self._settings) as client:
                with get_connection(self._db_path) as conn:
                    yield SyncOrchestrator(
                        client,
                        conn,
                        record_delay_seconds=self._record_delay_seconds,
                        logs_dir=Path(self._logs_dir),
                        sleep=self._sleep,
                    )

    async def test_authentication(self) -> bool:
        async with self._client_factory(self._settings) as client:
            return await client.test_authentication()

    async def sync_inventory(self, *, limit: int = 100, since: str | None = None) -> SyncRunReport:
        async with self._orchestrator() as orchestrator:
            return await orchestrator.sync_inventory(limit=limit, since=since)

    async def sweep_inventory(
        self,
        *,
        batch_size: int = 1000,
        max_items: int | None = None,
        batch_delay_seconds: float = 3.0,
    ) -> SyncRunReport:
        async with self._orchestrator() as orchestrator:
            return await orchestrator.sweep_inventory(
                batch_size=batch_size,
                max_items=max_items,
                batch_delay_seconds=batch_delay_seconds,
            )

    async def sync_sales_orders(self, *, limit: int = 10, since: str | None = None) -> SyncRunReport:
        async with self._orchestrator() as orchestrator:
            return await orchestrator.sync_sales_orders(limit=limit, since=since)

    async def sync_from_sales_orders(
        self, *, batch_size: int = 50, max_items: int | None = None
    ) -> SyncRunReport:
        async with self._orchestrator() as orchestrator:
            return await orchestrator.sync_from_sales_orders(
                batch_size=batch_size, max_items=max_items
            )

    async def enrich_movement(
        self, *, batch_size: int = 200, max_items: int | None = None
    ) -> SyncRunReport:
        async with self._orchestrator() as orchestrator:
            return await orchestrator.enrich_movement(batch_size=batch_size, max_items=max_items)

    async def sync_single_item(
        self, item_id: int, *, include_locations: bool = True
    ) -> SyncRunReport:
        async with self._orchestrator() as orchestrator:
            return await orchestrator.sync_single_item(
                item_id, include_locations=include_locations
            )
