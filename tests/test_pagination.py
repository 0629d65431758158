import asyncio
from pathlib import Path
import sys

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.services.sync import Paginator
from erp_fakes import FakeErp, no_sleep


def _paged_listing(pages: dict[int, list[int]], *, total: int | None, failing: set[int] = frozenset()):
    """Listing handler serving ``pages`` keyed by offset."""

    def handler(request: httpx.Request) -> httpx.Response:
        offset = int(request.url.params.get("offset", 0))
        if offset in failing:
            return httpx.Response(500, json={"title": "Internal error"})
        ids = pages.get(offset, [])
        last_offset = max(pages)
        payload = {
            "items": [{"id": str(item_id)} for item_id in ids],
            "hasMore": offset < last_offset,
            "offset": offset,
        }
        if total is not None:
            payload["totalResults"] = total
        return httpx.Response(200, json=payload)

    return handler


def _collect(erp: FakeErp, *, page_size: int, max_items: int | None = None):
    async def run():
        async with erp.client() as client:
            paginator = Paginator(client, "inventoryItem", page_size=page_size, sleep=no_sleep)
            return [page async for page in paginator.iter_pages(max_items=max_items)]

    return asyncio.run(run())


def test_sweep_concatenates_pages_until_has_more_is_false() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        handler=_paged_listing({0: [1, 2], 2: [3, 4], 4: [5]}, total=5),
    )

    pages = _collect(erp, page_size=2)

    assert [item_id for page in pages for item_id in page.ids] == [1, 2, 3, 4, 5]
    assert [page.offset for page in pages] == [0, 2, 4]
    assert pages[-1].has_more is False
    assert len(erp.requests) == 3


def test_failed_page_is_skipped_by_one_page_width() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        handler=_paged_listing({0: [1, 2], 2: [3, 4], 4: [5, 6]}, total=6, failing={2}),
    )

    pages = _collect(erp, page_size=2)

    assert [page.error is not None for page in pages] == [False, True, False]
    assert [item_id for page in pages for item_id in page.ids] == [1, 2, 5, 6]


def test_failure_past_known_total_ends_the_sweep() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        handler=_paged_listing({0: [1, 2], 2: [3, 4]}, total=4, failing={2}),
    )

    pages = _collect(erp, page_size=2)

    assert len(pages) == 2
    assert pages[-1].error is not None
    assert len(erp.requests) == 2


def test_failed_first_page_does_not_end_the_sweep() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        handler=_paged_listing({0: [1, 2], 2: [3, 4], 4: [5, 6]}, total=6, failing={0}),
    )

    pages = _collect(erp, page_size=2)

    assert [int(request.url.params["offset"]) for request in erp.requests] == [0, 2, 4]
    assert [item_id for page in pages for item_id in page.ids] == [3, 4, 5, 6]


def test_repeated_failures_with_unknown_total_end_the_sweep() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        handler=_paged_listing({0: [1], 6: [7]}, total=None, failing={0, 2, 4}),
    )

    pages = _collect(erp, page_size=2)

    assert len(pages) == 3
    assert all(page.error is not None for page in pages)
    assert len(erp.requests) == 3


def test_max_items_truncates_the_sweep() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        handler=_paged_listing({0: [1, 2], 2: [3, 4], 4: [5]}, total=5),
    )

    pages = _collect(erp, page_size=2, max_items=3)

    assert [item_id for page in pages for item_id in page.ids] == [1, 2, 3]
    assert len(erp.requests) == 2


def test_modified_since_filters_by_date_and_caps_the_limit() -> None:
    erp = FakeErp()
    erp.add(
        "/inventoryItem",
        {"items": [{"id": str(n)} for n in range(1, 11)], "hasMore": False, "totalResults": 10},
    )

    async def run():
        async with erp.client() as client:
            return await Paginator(client).fetch_modified_since("15/03/2024", 4)

    page = asyncio.run(run())

    assert page.ids == [1, 2, 3, 4]
    assert page.total_known == 10
    params = erp.requests[0].url.params
    assert params["q"] == 'lastModifiedDate AFTER "15/03/2024"'
    assert params["limit"] == "4"
