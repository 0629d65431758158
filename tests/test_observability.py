import asyncio
import logging
from pathlib import Path
import sys

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.infrastructure.http import ErpClient
from cellarsync.infrastructure.observability import (
    MetricRegistry,
    current_log_context,
    get_registry,
    log_context,
    record_sync_run,
)
from cellarsync.infrastructure.observability.logging import ContextualFormatter
from erp_fakes import BASE_URL, StaticSigner, make_settings


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("cellarsync.test", logging.INFO, __file__, 1, message, None, None)


def test_counters_and_summaries_render_as_prometheus_text() -> None:
    registry = MetricRegistry()
    registry.inc("sync_runs_total", "Finished sync runs", {"mode": "sweep", "status": "partial"})
    registry.inc("sync_runs_total", "Finished sync runs", {"status": "partial", "mode": "sweep"})
    registry.observe("sync_run_duration_seconds", "Sync run wall time", 1.5, {"mode": "sweep"})
    registry.observe("sync_run_duration_seconds", "Sync run wall time", 0.5, {"mode": "sweep"})

    text = registry.exposition()

    assert "# TYPE sync_runs_total counter" in text
    assert 'sync_runs_total{mode="sweep",status="partial"} 2.0' in text
    assert "# TYPE sync_run_duration_seconds summary" in text
    assert 'sync_run_duration_seconds_count{mode="sweep"} 2' in text
    assert 'sync_run_duration_seconds_sum{mode="sweep"} 2.0' in text
    assert registry.value("sync_run_duration_seconds", {"mode": "sweep"}) == 2.0


def test_empty_registry_renders_nothing() -> None:
    registry = MetricRegistry()
    assert registry.exposition() == ""
    assert registry.value("missing_total") == 0.0


def test_sync_run_recorder_adds_record_counts() -> None:
    registry = get_registry()
    registry.reset()

    record_sync_run("from-orders", "success", 3.0, processed=4, failed=1)

    assert registry.value("sync_runs_total", {"mode": "from-orders", "status": "success"}) == 1.0
    assert registry.value("sync_records_processed_total", {"mode": "from-orders"}) == 4.0
    assert registry.value("sync_records_failed_total", {"mode": "from-orders"}) == 1.0


def test_client_counts_every_attempt_and_each_rate_limit_retry() -> None:
    registry = get_registry()
    registry.reset()
    responses = iter([httpx.Response(429), httpx.Response(200, json={"id": "3"})])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    async def no_sleep(seconds: float) -> None:
        return None

    async def run():
        async with ErpClient(
            make_settings(),
            signer=StaticSigner(),
            transport=httpx.MockTransport(handler),
            sleep=no_sleep,
        ) as client:
            return await client.get_json(f"{BASE_URL}/inventoryitem/3")

    assert asyncio.run(run()) == {"id": "3"}
    assert registry.value("erp_requests_total", {"method": "GET", "status": "429"}) == 1.0
    assert registry.value("erp_requests_total", {"method": "GET", "status": "200"}) == 1.0
    assert registry.value("erp_rate_limit_retries_total") == 1.0


def test_log_context_nests_and_restores() -> None:
    assert current_log_context() == {}
    with log_context(mode="sweep", run_id=4):
        with log_context(item_id=12):
            assert current_log_context() == {"mode": "sweep", "run_id": 4, "item_id": 12}
        assert current_log_context() == {"mode": "sweep", "run_id": 4}
    assert current_log_context() == {}


def test_formatter_appends_bound_fields_and_skips_none() -> None:
    formatter = ContextualFormatter("%(message)s")

    assert formatter.format(_record("plain")) == "plain"
    with log_context(mode="single-item", run_id=None, item_id=42):
        assert formatter.format(_record("Syncing")) == "Syncing [mode=single-item item_id=42]"
