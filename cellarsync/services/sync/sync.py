"""Sync orchestration: probe, page, fetch, transform and upsert.

A run moves through authentication, paging and a per-record loop. A failed
authentication probe ends the run before any listing call or write. Inside
the loop every record is isolated: a failure is recorded in the run report
and the loop moves on to the next id.
"""

from __future__ import annotations

import asyncio
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from cellarsync.domain.models import InventoryItem, SalesOrder
from cellarsync.infrastructure.db import iso_utcnow
from cellarsync.infrastructure.db.repositories import (
    InventoryRepository,
    SalesOrderRepository,
    SyncRunRepository,
)
from cellarsync.infrastructure.http import ErpApiError, ErpClient
from cellarsync.infrastructure.observability import (
    get_logger,
    log_context,
    log_exception,
    record_sync_run,
)

from .fetcher import RecordFetcher, chunked
from .movement import MovementEnricher
from .pagination import Paginator
from .run_log import RunLog
from .transform import transform_inventory, transform_sales_order

logger = get_logger(__name__)

MAX_REPORTED_ERRORS = 50
AUTH_FAILED_MESSAGE = "Authentication failed. Please check your OAuth credentials."

Sleeper = Callable[[float], Awaitable[None]]


class RecordFetchError(Exception):
    """Raised when a record's base payload could not be fetched."""


@dataclass
class RecordError:
    id: int | None
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "error": self.error}


@dataclass
class FinancialSummary:
    """Cost and value totals over the inventory items saved in one run."""

    total_average_cost: float = 0.0
    total_value: float = 0.0
    items_with_cost: int = 0
    items_with_value: int = 0
    items_with_trade_price: int = 0
    items_with_retail_price: int = 0
    items: int = 0

    def add(self, item: InventoryItem) -> None:
        self.items += 1
        self.total_average_cost += item.average_cost
        self.total_value += item.total_value
        self.items_with_cost += item.average_cost > 0
        self.items_with_value += item.total_value > 0
        self.items_with_trade_price += item.pricing.trade_price > 0
        self.items_with_retail_price += item.pricing.retail_price > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "financialSummary": {
                "totalAverageCost": round(self.total_average_cost, 2),
                "totalValue": round(self.total_value, 2),
                "itemsWithCost": self.items_with_cost,
                "itemsWithValue": self.items_with_value,
                "averageCostPerItem": round(self.total_average_cost / self.items, 2)
                if self.items
                else 0.0,
                "averageValuePerItem": round(self.total_value / self.items, 2)
                if self.items
                else 0.0,
                "itemsWithTradePrice": self.items_with_trade_price,
                "itemsWithRetailPrice": self.items_with_retail_price,
            }
        }


@dataclass
class SalesOrderSummary:
    total_amount: float = 0.0
    total_orders: int = 0
    total_items: int = 0

    def add(self, order: SalesOrder) -> None:
        self.total_orders += 1
        self.total_amount += order.total_amount
        self.total_items += order.item_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAmount": round(self.total_amount, 2),
            "totalOrders": self.total_orders,
            "totalItems": self.total_items,
        }


@dataclass
class SyncRunReport:
    """Outcome of one sync run. Owned by the orchestrator while the run lasts."""

    mode: str
    status: str = "running"
    run_id: int | None = None
    processed: int = 0
    saved: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[RecordError] = field(default_factory=list)
    error_count: int = 0
    summary: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    duration_seconds: float = 0.0
    log_path: str | None = None

    @property
    def success(self) -> bool:
        return self.status in ("success", "partial")

    @property
    def errors_truncated(self) -> bool:
        return self.error_count > len(self.errors)

    def add_error(self, item_id: int | None, message: str) -> None:
        self.error_count += 1
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(RecordError(id=item_id, error=message))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "mode": self.mode,
            "status": self.status,
            "runId": self.run_id,
            "message": self.message,
            "processed": self.processed,
            "saved": self.saved,
            "skipped": self.skipped,
            "failed": self.failed,
            "errorCount": self.error_count,
            "errors": [error.to_dict() for error in self.errors],
            "errorsTruncated": self.errors_truncated,
            "summary": self.summary,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "durationSeconds": round(self.duration_seconds, 3),
            "logPath": self.log_path,
        }


class SyncOrchestrator:
    """Top-level control loop shared by every sync mode.

    Delays are injectable so tests can run with zero pacing:
    ``record_delay_seconds`` follows every record; the per-mode batch
    delays separate listing pages or id batches.
    """

    def __init__(
        self,
        client: ErpClient,
        conn: sqlite3.Connection,
        *,
        fetcher: RecordFetcher | None = None,
        record_delay_seconds: float = 0.5,
        logs_dir: Path | None = None,
        default_since: str | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.client = client
        self.conn = conn
        self.fetcher = fetcher or RecordFetcher(
            client, group_delay_seconds=3.0, sleep=sleep
        )
        self.record_delay_seconds = max(0.0, record_delay_seconds)
        self.logs_dir = logs_dir
        self.default_since = default_since or client.settings.sync_date
        self._sleep = sleep
        self.inventory = InventoryRepository(conn)
        self.sales_orders = SalesOrderRepository(conn)
        self.runs = SyncRunRepository(conn)
        self._run_log: RunLog | None = None

    # ------------------------------------------------------------------
    # Run scaffolding
    # ------------------------------------------------------------------

    async def _run(
        self,
        mode: str,
        parameters: dict[str, Any],
        body: Callable[[SyncRunReport], Awaitable[None]],
        *,
        durable_log: bool = False,
    ) -> SyncRunReport:
        report = SyncRunReport(mode=mode, started_at=iso_utcnow())
        report.run_id = self.runs.start(mode, parameters)
        run_log: RunLog | None = None
        if durable_log and self.logs_dir is not None:
            run_log = RunLog.for_run(self.logs_dir, mode, report.run_id)
            run_log.start(mode, report.run_id, parameters)
            report.log_path = str(run_log.path)
        self._run_log = run_log
        start = time.perf_counter()

        with log_context(mode=mode, run_id=report.run_id):
            logger.info("Starting %s sync %s", mode, parameters)
            try:
                if not await self.client.test_authentication():
                    report.status = "auth_failed"
                    report.message = AUTH_FAILED_MESSAGE
                    return report
                await body(report)
                report.status = "partial" if report.error_count else "success"
            except Exception as exc:
                log_exception(logger, f"{mode} sync aborted", exc)
                report.status = "failed"
                report.message = str(exc)
                report.add_error(None, str(exc))
            finally:
                report.finished_at = iso_utcnow()
                report.duration_seconds = time.perf_counter() - start
                self._finish(report, run_log)
        return report

    def _finish(self, report: SyncRunReport, run_log: RunLog | None) -> None:
        self.runs.finish(
            report.run_id or 0,
            status=report.status,
            processed=report.processed,
            saved=report.saved,
            skipped=report.skipped,
            failed=report.failed,
            errors=[error.to_dict() for error in report.errors],
            summary=report.summary,
            log_path=report.log_path,
        )
        record_sync_run(
            report.mode,
            report.status,
            report.duration_seconds,
            report.processed,
            report.failed,
        )
        if run_log is not None:
            run_log.finish(
                {
                    "status": report.status,
                    "processed": report.processed,
                    "saved": report.saved,
                    "skipped": report.skipped,
                    "failed": report.failed,
                    "duration": f"{report.duration_seconds:.1f}s",
                }
            )
        self._run_log = None
        logger.info(
            "Finished %s sync: status=%s processed=%s saved=%s skipped=%s failed=%s",
            report.mode,
            report.status,
            report.processed,
            report.saved,
            report.skipped,
            report.failed,
        )

    def _record_failure(self, report: SyncRunReport, item_id: int | None, message: str) -> None:
        report.add_error(item_id, message)
        if self._run_log is not None:
            self._run_log.record_failure(item_id, message)

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    # ------------------------------------------------------------------
    # Per-record steps
    # ------------------------------------------------------------------

    async def _sync_inventory_id(
        self,
        report: SyncRunReport,
        item_id: int,
        totals: FinancialSummary,
        *,
        include_locations: bool = True,
        require_active: bool = False,
    ) -> None:
        """Fetch, transform and upsert one item; failures stay with this item.

        With ``require_active`` the item is skipped unless its inactive flag is
        explicitly ``False``.
        """
        report.processed += 1
        with log_context(item_id=item_id):
            try:
                try:
                    record = await self.fetcher.fetch_base_record(item_id)
                except ErpApiError as exc:
                    raise RecordFetchError(f"Failed to fetch item {item_id}: {exc}") from exc
                if require_active and record.get("isInactive") is not False:
                    report.skipped += 1
                    logger.info("Skipping item %s (inactive flag %r)", item_id, record.get("isInactive"))
                    return
                enriched = await self.fetcher.enrich(
                    item_id, record, include_locations=include_locations
                )
                item = transform_inventory(enriched.record, enriched.pricing, enriched.locations)
                self.inventory.upsert(item)
                report.saved += 1
                totals.add(item)
                logger.info(
                    "Saved item %s %s: price=%s %s qty=%s locations=%s",
                    item.internal_id,
                    item.display_name,
                    item.price,
                    item.currency.value,
                    item.total_quantity,
                    len(item.locations),
                )
            except Exception as exc:
                report.failed += 1
                self._record_failure(report, item_id, str(exc))
                logger.error("Failed to sync item %s: %s", item_id, exc)
        await self._pause(self.record_delay_seconds)

    async def _sync_sales_order_id(
        self, report: SyncRunReport, order_id: int, totals: SalesOrderSummary
    ) -> None:
        report.processed += 1
        with log_context(order_id=order_id):
            try:
                enriched = await self.fetcher.fetch_sales_order(order_id)
                if enriched is None:
                    raise RecordFetchError(f"Failed to fetch sales order {order_id}")
                order = transform_sales_order(enriched.record, enriched.lines)
                self.sales_orders.upsert(order)
                report.saved += 1
                totals.add(order)
                logger.info(
                    "Saved order %s %s: customer=%s total=%s lines=%s",
                    order.internal_id,
                    order.transaction_number,
                    order.customer.customer_name,
                    order.total_amount,
                    order.item_count,
                )
            except Exception as exc:
                report.failed += 1
                self._record_failure(report, order_id, str(exc))
                logger.error("Failed to sync sales order %s: %s", order_id, exc)
        await self._pause(self.record_delay_seconds)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def sync_inventory(self, *, limit: int = 100, since: str | None = None) -> SyncRunReport:
        """Bounded incremental sync of items modified after ``since`` (``DD/MM/YYYY``)."""
        since = since or self.default_since
        paginator = Paginator(self.client, "inventoryItem")

        async def body(report: SyncRunReport) -> None:
            totals = FinancialSummary()
            try:
                page = await paginator.fetch_modified_since(since, limit)
            except ErpApiError as exc:
                self._record_failure(report, None, f"Listing failed: {exc}")
                return
            for item_id in page.ids:
                await self._sync_inventory_id(report, item_id, totals)
            report.summary = totals.to_dict()

        return await self._run("inventory", {"limit": limit, "since": since}, body)

    async def sweep_inventory(
        self,
        *,
        batch_size: int = 1000,
        max_items: int | None = None,
        batch_delay_seconds: float = 3.0,
    ) -> SyncRunReport:
        """Unfiltered pass over the whole catalogue with a durable failure log."""
        paginator = Paginator(
            self.client,
            "inventoryItem",
            page_size=batch_size,
            page_delay_seconds=batch_delay_seconds,
            sleep=self._sleep,
        )

        async def body(report: SyncRunReport) -> None:
            totals = FinancialSummary()
            pages = 0
            total_known: int | None = None
            async for page in paginator.iter_pages(max_items=max_items):
                pages += 1
                total_known = page.total_known if page.total_known is not None else total_known
                if page.error:
                    self._record_failure(
                        report, None, f"Page at offset {page.offset} failed: {page.error}"
                    )
                    continue
                for item_id in page.ids:
                    await self._sync_inventory_id(report, item_id, totals)
                report.summary = {**totals.to_dict(), "pages": pages, "totalKnown": total_known}
            report.summary = {**totals.to_dict(), "pages": pages, "totalKnown": total_known}

        return await self._run(
            "sweep",
            {"batchSize": batch_size, "maxItems": max_items, "batchDelay": batch_delay_seconds},
            body,
            durable_log=True,
        )

    async def sync_sales_orders(self, *, limit: int = 10, since: str | None = None) -> SyncRunReport:
        """Bounded incremental sync of sales orders modified after ``since``."""
        since = since or self.default_since
        paginator = Paginator(self.client, "salesOrder")

        async def body(report: SyncRunReport) -> None:
            totals = SalesOrderSummary()
            try:
                page = await paginator.fetch_modified_since(since, limit)
            except ErpApiError as exc:
                self._record_failure(report, None, f"Listing failed: {exc}")
                return
            for order_id in page.ids:
                await self._sync_sales_order_id(report, order_id, totals)
            report.summary = totals.to_dict()

        return await self._run("sales_orders", {"limit": limit, "since": since}, body)

    async def sync_from_sales_orders(
        self,
        *,
        batch_size: int = 50,
        batch_delay_seconds: float = 0.2,
        max_items: int | None = None,
    ) -> SyncRunReport:
        """Sync the items referenced by stored orders that are not stored yet."""

        async def body(report: SyncRunReport) -> None:
            totals = FinancialSummary()
            referenced = self.sales_orders.referenced_item_ids()
            existing = self.inventory.existing_ids(referenced)
            missing = [item_id for item_id in referenced if item_id not in existing]
            if max_items is not None:
                missing = missing[: max(0, max_items)]
            logger.info(
                "Orders reference %s items; %s already stored, %s to fetch",
                len(referenced),
                len(existing),
                len(missing),
            )
            for index, batch in enumerate(chunked(missing, batch_size)):
                if index:
                    await self._pause(batch_delay_seconds)
                for item_id in batch:
                    await self._sync_inventory_id(report, item_id, totals, require_active=True)
            report.summary = {
                **totals.to_dict(),
                "referencedItems": len(referenced),
                "alreadyStored": len(existing),
            }

        return await self._run(
            "from_sales_orders", {"batchSize": batch_size, "maxItems": max_items}, body
        )

    async def enrich_movement(
        self,
        *,
        batch_size: int = 200,
        max_items: int | None = None,
        batch_delay_seconds: float = 1.0,
        enricher: MovementEnricher | None = None,
    ) -> SyncRunReport:
        """Set the movement status of stored items from one query per id batch."""
        enricher = enricher or MovementEnricher(
            self.client,
            self.inventory,
            batch_size=batch_size,
            batch_delay_seconds=batch_delay_seconds,
            sleep=self._sleep,
        )

        async def body(report: SyncRunReport) -> None:
            result = await enricher.run(max_items=max_items)
            report.processed += result.processed
            report.saved += result.updated
            report.failed += result.failed
            for error in result.errors:
                self._record_failure(report, None, error)
            report.summary = result.to_dict()

        return await self._run(
            "movement", {"batchSize": batch_size, "maxItems": max_items}, body
        )

    async def sync_single_item(
        self, item_id: int, *, include_locations: bool = True
    ) -> SyncRunReport:
        """Fetch, transform and upsert one item on demand."""

        async def body(report: SyncRunReport) -> None:
            totals = FinancialSummary()
            await self._sync_inventory_id(
                report, item_id, totals, include_locations=include_locations
            )
            report.summary = totals.to_dict()

        return await self._run(
            "single_item",
            {"itemId": item_id, "includeLocations": include_locations},
            body,
        )
