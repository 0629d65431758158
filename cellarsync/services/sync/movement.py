"""Bulk movement enrichment for stored inventory items.

For each batch of stored ids, one analytical query returns the latest
outbound shipment date per item. Every id in the batch is then written back:
ids present in the result get their date, ids missing from it are explicitly
reset to "no movement".
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Iterable

from cellarsync.domain.models import Movement
from cellarsync.infrastructure.db import iso_utcnow
from cellarsync.infrastructure.db.repositories import InventoryRepository
from cellarsync.infrastructure.http import ErpApiError, ErpClient, require_object
from cellarsync.infrastructure.observability import get_logger

from .fetcher import chunked
from .transform import parse_dmy_date, parse_internal_id

logger = get_logger(__name__)

MOVEMENT_QUERY = """
SELECT tl.item AS item_id, TO_CHAR(MAX(t.trandate), 'DD/MM/YYYY') AS last_movement_date
FROM transactionline tl
JOIN transaction t ON t.id = tl.transaction
WHERE t.type = 'ItemShip' AND tl.item IN ({ids})
GROUP BY tl.item
"""


def one_year_before(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # 29 February
        return day.replace(year=day.year - 1, day=28)


def build_movement_query(item_ids: Iterable[int]) -> str:
    ids = ",".join(str(int(item_id)) for item_id in item_ids)
    return " ".join(MOVEMENT_QUERY.format(ids=ids).split())


def movement_from_row(row: dict[str, Any] | None, today: date) -> Movement:
    """Movement status for one query row; ``None`` means the item never shipped."""
    if not row:
        return Movement()
    last = parse_dmy_date(row.get("last_movement_date"))
    if last is None:
        return Movement()
    return Movement(
        last_movement_date=last,
        moved_last_12_months=last >= one_year_before(today),
    )


@dataclass
class MovementResult:
    processed: int = 0
    updated: int = 0
    failed: int = 0
    moved: int = 0
    not_moved: int = 0
    queries: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemsMoved": self.moved,
            "itemsNotMoved": self.not_moved,
            "queries": self.queries,
        }


class MovementEnricher:
    """Runs the movement pass over stored inventory ids."""

    def __init__(
        self,
        client: ErpClient,
        inventory: InventoryRepository,
        *,
        batch_size: int = 200,
        batch_delay_seconds: float = 1.0,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.inventory = inventory
        self.batch_size = max(1, batch_size)
        self.batch_delay_seconds = max(0.0, batch_delay_seconds)
        self._today = today
        self._sleep = sleep

    async def query_batch(self, item_ids: list[int]) -> dict[int, dict[str, Any]]:
        """Latest shipment row per item id for one batch.

        Raises:
            ErpApiError: If the query call fails.
        """
        url = self.client.settings.suiteql_url
        data = await self.client.post_json(
            url, {"q": build_movement_query(item_ids)}, headers={"Prefer": "transient"}
        )
        rows: dict[int, dict[str, Any]] = {}
        for row in require_object(data, url).get("items") or []:
            if not isinstance(row, dict):
                continue
            item_id = parse_internal_id({"id": row.get("item_id")})
            if item_id:
                rows[item_id] = row
        return rows

    async def run(self, *, max_items: int | None = None) -> MovementResult:
        result = MovementResult()
        item_ids = self.inventory.list_ids(limit=max_items)
        today = self._today()
        logger.info("Checking movement for %s stored items", len(item_ids))

        for index, batch in enumerate(chunked(item_ids, self.batch_size)):
            if index and self.batch_delay_seconds:
                await self._sleep(self.batch_delay_seconds)
            result.processed += len(batch)
            result.queries += 1
            try:
                rows = await self.query_batch(batch)
            except ErpApiError as exc:
                result.failed += len(batch)
                result.errors.append(
                    f"Movement query for ids {batch[0]}-{batch[-1]} failed: {exc}"
                )
                logger.error("Movement query for batch %s failed: %s", index + 1, exc)
                continue

            checked_at = iso_utcnow()
            for item_id in batch:
                movement = movement_from_row(rows.get(item_id), today)
                if self.inventory.update_movement(item_id, movement, checked_at=checked_at):
                    result.updated += 1
                if movement.moved_last_12_months:
                    result.moved += 1
                else:
                    result.not_moved += 1
            logger.info(
                "Movement batch %s: %s ids, %s with shipments", index + 1, len(batch), len(rows)
            )
        return result
