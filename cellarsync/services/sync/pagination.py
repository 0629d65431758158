"""Candidate retrieval from the upstream record-listing endpoints."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

from cellarsync.infrastructure.http import ErpApiError, ErpClient
from cellarsync.infrastructure.observability import get_logger

from .transform import to_number

logger = get_logger(__name__)

MAX_PAGE_SIZE = 1000
# Failed pages tolerated in a row before a sweep with no known total gives up.
MAX_CONSECUTIVE_PAGE_FAILURES = 3


@dataclass
class CandidatePage:
    """One page of candidate record stubs from a listing endpoint."""

    items: list[dict[str, Any]] = field(default_factory=list)
    offset: int = 0
    next_cursor: int | None = None
    has_more: bool = False
    total_known: int | None = None
    error: str | None = None

    @property
    def ids(self) -> list[int]:
        ids: list[int] = []
        for item in self.items:
            try:
                ids.append(int(item["id"]))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping listing entry without a numeric id: %s", item)
        return ids


class Paginator:
    """Drives incremental (date-filtered) and full-sweep listing retrieval.

    The paginator never retries; retries on rate limiting happen in the
    client. During a sweep a failed page is skipped by advancing one page
    width. The sweep stops once that offset reaches the last known total or,
    while no total has been seen, after
    :data:`MAX_CONSECUTIVE_PAGE_FAILURES` failed pages in a row.
    """

    def __init__(
        self,
        client: ErpClient,
        resource: str = "inventoryItem",
        *,
        page_size: int = MAX_PAGE_SIZE,
        page_delay_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.resource = resource
        self.page_size = min(max(1, page_size), MAX_PAGE_SIZE)
        self.page_delay_seconds = max(0.0, page_delay_seconds)
        self._sleep = sleep

    async def fetch_modified_since(self, since: str, limit: int) -> CandidatePage:
        """Single page of records modified after ``since`` (``DD/MM/YYYY``), capped at ``limit``.

        Raises:
            ErpApiError: If the listing call fails.
        """
        url = self.client.record_url(
            self.resource,
            params={
                "q": f'lastModifiedDate AFTER "{since}"',
                "limit": min(max(1, limit), self.page_size),
            },
        )
        data = await self.client.get_json(url)
        page = self._to_page(data, offset=0)
        page.items = page.items[: max(0, limit)]
        logger.info(
            "Found %s %s records modified after %s (using %s)",
            page.total_known if page.total_known is not None else len(page.items),
            self.resource,
            since,
            len(page.items),
        )
        return page

    async def fetch_page(self, offset: int) -> CandidatePage:
        """Fetch one unfiltered page starting at ``offset``.

        Raises:
            ErpApiError: If the listing call fails.
        """
        url = self.client.record_url(
            self.resource, params={"limit": self.page_size, "offset": offset}
        )
        data = await self.client.get_json(url)
        return self._to_page(data, offset=offset)

    async def iter_pages(self, *, max_items: int | None = None) -> AsyncIterator[CandidatePage]:
        """Yield every page of the full catalogue in order.

        Failed pages are yielded with ``error`` set and no items.
        """
        offset = 0
        total: int | None = None
        yielded = 0
        failures = 0
        first = True
        while True:
            if not first and self.page_delay_seconds:
                await self._sleep(self.page_delay_seconds)
            first = False
            try:
                page = await self.fetch_page(offset)
            except ErpApiError as exc:
                logger.error("Listing page at offset %s failed: %s", offset, exc)
                offset += self.page_size
                yield CandidatePage(
                    offset=offset - self.page_size,
                    next_cursor=offset,
                    has_more=True,
                    total_known=total,
                    error=str(exc),
                )
                failures += 1
                if total is not None and offset >= total:
                    return
                if total is None and failures >= MAX_CONSECUTIVE_PAGE_FAILURES:
                    return
                continue

            failures = 0

            if page.total_known is not None:
                total = page.total_known
            if max_items is not None:
                page.items = page.items[: max(0, max_items - yielded)]
            yielded += len(page.items)
            logger.info(
                "Fetched %s records at offset %s (%s/%s)",
                len(page.items),
                offset,
                yielded,
                total if total is not None else "?",
            )
            yield page

            if not page.has_more or page.next_cursor is None:
                return
            if max_items is not None and yielded >= max_items:
                return
            offset = page.next_cursor

    def _to_page(self, data: Any, *, offset: int) -> CandidatePage:
        data = data if isinstance(data, dict) else {}
        items = [item for item in data.get("items") or [] if isinstance(item, dict)]
        has_more = data.get("hasMore") is True
        total = data.get("totalResults")
        return CandidatePage(
            items=items,
            offset=offset,
            next_cursor=offset + len(items) if has_more and items else None,
            has_more=has_more,
            total_known=int(to_number(total)) if total is not None else None,
        )
