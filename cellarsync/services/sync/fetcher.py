"""Per-record enrichment fetches against the upstream API.

:class:`RecordFetcher` turns one identifier into a complete upstream record:
the base payload plus its price levels and stock locations (inventory) or its
line items (sales orders). Enrichment failures degrade the record instead of
failing it; only a failed base fetch yields ``None``.

Independent sub-fetches are gathered in small groups. They still pass through
the client's single rate-limited queue, so grouping does not add network
parallelism beyond the client's concurrency bound.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Iterator, TypeVar

from cellarsync.domain.models import PriceSelection, SalesOrderLine, StockLocation
from cellarsync.infrastructure.http import ErpApiError, ErpClient
from cellarsync.infrastructure.observability import get_logger

from .transform import (
    RETAIL_PRICE_LEVEL,
    TRADE_PRICE_LEVEL,
    extract_text,
    first_link,
    select_price,
    transform_location,
    transform_order_line,
)

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_LOCATIONS = 50
DEFAULT_GROUP_SIZE = 2


def chunked(values: list[T], size: int) -> Iterator[list[T]]:
    size = max(1, size)
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _is_inactive(record: dict[str, Any]) -> bool:
    return record.get("isInactive") is True


@dataclass
class EnrichedInventoryRecord:
    """Base inventory payload with its resolved price and stock locations."""

    item_id: int
    record: dict[str, Any]
    pricing: PriceSelection = field(default_factory=PriceSelection)
    locations: list[StockLocation] = field(default_factory=list)
    locations_truncated: bool = False

    @property
    def is_inactive(self) -> bool:
        return _is_inactive(self.record)


@dataclass
class EnrichedSalesOrder:
    order_id: int
    record: dict[str, Any]
    lines: list[SalesOrderLine] = field(default_factory=list)


class RecordFetcher:
    """Fetches and enriches individual inventory items and sales orders."""

    def __init__(
        self,
        client: ErpClient,
        *,
        max_locations: int = DEFAULT_MAX_LOCATIONS,
        group_size: int = DEFAULT_GROUP_SIZE,
        group_delay_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.max_locations = max(0, max_locations)
        self.group_size = max(1, group_size)
        self.group_delay_seconds = max(0.0, group_delay_seconds)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def fetch_base_record(self, item_id: int) -> dict[str, Any]:
        """Fetch the bare inventory record. Errors propagate to the caller."""
        return await self.client.get_object(self.client.record_url("inventoryitem", item_id))

    async def fetch_full_record(
        self, item_id: int, *, include_locations: bool = True
    ) -> EnrichedInventoryRecord | None:
        """Fetch and enrich one inventory item, or ``None`` if the base fetch fails."""
        try:
            record = await self.fetch_base_record(item_id)
        except ErpApiError as exc:
            logger.error("Failed to fetch inventory item %s: %s", item_id, exc)
            return None
        return await self.enrich(item_id, record, include_locations=include_locations)

    async def enrich(
        self, item_id: int, record: dict[str, Any], *, include_locations: bool = True
    ) -> EnrichedInventoryRecord:
        """Resolve price and locations for an already fetched base record.

        Inactive items skip both fan-outs and keep zeroed price and no locations.
        """
        enriched = EnrichedInventoryRecord(item_id=item_id, record=record)
        if enriched.is_inactive:
            logger.debug("Item %s is inactive; skipping price and location lookups", item_id)
            return enriched
        enriched.pricing = await self.fetch_pricing(item_id, record)
        if include_locations:
            enriched.locations, enriched.locations_truncated = await self.fetch_locations(
                item_id, record
            )
        return enriched

    async def fetch_pricing(self, item_id: int, record: dict[str, Any]) -> PriceSelection:
        price_href = first_link(record.get("price"))
        if not price_href:
            return PriceSelection()
        try:
            listing = await self.client.get_json(price_href)
        except ErpApiError as exc:
            logger.warning("Price list unavailable for item %s: %s", item_id, exc)
            return PriceSelection()

        detail_hrefs = [href for href in map(first_link, _items(listing)) if href]
        levels: list[dict[str, Any]] = []
        found: set[str] = set()
        for group in chunked(detail_hrefs, self.group_size):
            if {TRADE_PRICE_LEVEL, RETAIL_PRICE_LEVEL} <= found:
                break
            for detail in await self._gather_optional(group):
                if isinstance(detail, dict):
                    levels.append(detail)
                    found.add(str(detail.get("priceLevelName") or ""))
        return select_price(levels, extract_text(record, "currency.refName"))

    async def fetch_locations(
        self, item_id: int, record: dict[str, Any]
    ) -> tuple[list[StockLocation], bool]:
        """Return the enriched locations and whether the list was truncated."""
        locations_href = first_link(record.get("locations"))
        if not locations_href:
            return [], False
        try:
            listing = await self.client.get_json(locations_href)
        except ErpApiError as exc:
            logger.warning("Location list unavailable for item %s: %s", item_id, exc)
            return [], False

        hrefs = [href for href in map(first_link, _items(listing)) if href]
        truncated = len(hrefs) > self.max_locations
        if truncated:
            logger.info(
                "Item %s has %s locations; enriching the first %s",
                item_id,
                len(hrefs),
                self.max_locations,
            )
            hrefs = hrefs[: self.max_locations]

        locations: list[StockLocation] = []
        for index, group in enumerate(chunked(hrefs, self.group_size)):
            if index and self.group_delay_seconds:
                await self._sleep(self.group_delay_seconds)
            results = await asyncio.gather(*(self._fetch_location(href) for href in group))
            locations.extend(location for location in results if location is not None)
        return locations, truncated

    async def _fetch_location(self, href: str) -> StockLocation | None:
        try:
            detail = await self.client.get_object(href)
        except ErpApiError as exc:
            logger.warning("Location detail unavailable at %s: %s", href, exc)
            return None
        # The address belongs to the referenced warehouse, not the sublist row.
        warehouse_id = extract_text(detail, "location.id") or extract_text(detail, "locationId")
        address: dict[str, Any] = {}
        if warehouse_id:
            try:
                address = await self.client.get_object(
                    self.client.record_url("location", warehouse_id, "mainAddress")
                )
            except ErpApiError as exc:
                # Quantities are still usable without the mailing address.
                logger.warning("Address unavailable for location %s: %s", warehouse_id, exc)
        return transform_location(detail, address)

    # ------------------------------------------------------------------
    # Sales orders
    # ------------------------------------------------------------------

    async def fetch_sales_order(self, order_id: int) -> EnrichedSalesOrder | None:
        """Fetch one sales order with its line items, or ``None`` if the order fails."""
        try:
            record = await self.client.get_object(self.client.record_url("salesorder", order_id))
        except ErpApiError as exc:
            logger.error("Failed to fetch sales order %s: %s", order_id, exc)
            return None
        lines = await self.fetch_order_lines(order_id)
        return EnrichedSalesOrder(order_id=order_id, record=record, lines=lines)

    async def fetch_order_lines(self, order_id: int) -> list[SalesOrderLine]:
        try:
            listing = await self.client.get_json(
                self.client.record_url("salesorder", order_id, "item")
            )
        except ErpApiError as exc:
            logger.warning("Line items unavailable for order %s: %s", order_id, exc)
            return []

        line_ids = [
            href.rstrip("/").rsplit("/", 1)[-1]
            for href in map(first_link, _items(listing))
            if href
        ]
        lines: list[SalesOrderLine] = []
        for group in chunked(line_ids, self.group_size):
            results = await asyncio.gather(
                *(self._fetch_order_line(order_id, line_id) for line_id in group)
            )
            lines.extend(line for line in results if line is not None)
        return lines

    async def _fetch_order_line(self, order_id: int, line_id: str) -> SalesOrderLine | None:
        try:
            line = await self.client.get_object(
                self.client.record_url("salesorder", order_id, "item", line_id)
            )
        except ErpApiError as exc:
            logger.warning("Line %s of order %s unavailable: %s", line_id, order_id, exc)
            return None
        producer, region = await self.fetch_item_attributes(line)
        return transform_order_line(line, producer=producer, region=region)

    async def fetch_item_attributes(self, line: dict[str, Any]) -> tuple[str, str]:
        """Producer and region of the inventory item a line refers to."""
        item_href = first_link(line.get("item"))
        if not item_href:
            return "", ""
        try:
            item = await self.client.get_object(item_href)
        except ErpApiError as exc:
            logger.debug("Item attributes unavailable at %s: %s", item_href, exc)
            return "", ""
        return (
            extract_text(item, "custitem15.refName"),
            extract_text(item, "custitem_region.refName"),
        )

    async def _gather_optional(self, urls: Iterable[str]) -> list[Any]:
        async def _get(url: str) -> Any:
            try:
                return await self.client.get_json(url)
            except ErpApiError as exc:
                logger.debug("Optional fetch failed for %s: %s", url, exc)
                return None

        return await asyncio.gather(*(_get(url) for url in urls))


def _items(listing: Any) -> list[Any]:
    if isinstance(listing, dict) and isinstance(listing.get("items"), list):
        return listing["items"]
    return []
