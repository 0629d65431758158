import asyncio
import json
from pathlib import Path
import sys

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellarsync.infrastructure.http import (
    AuthenticationError,
    ErpApiError,
    ErpClient,
    OAuth1Signer,
    RateLimiter,
    RateLimitExceededError,
    load_erp_settings,
)
from erp_fakes import BASE_URL, StaticSigner, make_settings


def _client(handler, *, sleeps=None, **settings):
    async def sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return ErpClient(
        make_settings(**settings),
        signer=StaticSigner(),
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )


def test_rate_limited_call_is_retried_three_times_then_fails() -> None:
    attempts = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(429, json={"title": "Too many requests"})

    async def run() -> None:
        async with _client(handler, sleeps=sleeps, backoff_base_seconds=5.0) as client:
            await client.get_json(f"{BASE_URL}/inventoryitem/1")

    with pytest.raises(RateLimitExceededError) as excinfo:
        asyncio.run(run())

    assert len(attempts) == 4
    assert sleeps == [5.0, 10.0, 15.0]
    assert excinfo.value.status_code == 429


def test_rate_limited_call_recovers_on_retry() -> None:
    responses = iter([httpx.Response(429), httpx.Response(200, json={"id": "7"})])
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return next(responses)

    async def run():
        async with _client(handler) as client:
            return await client.get_json(f"{BASE_URL}/inventoryitem/7")

    assert asyncio.run(run()) == {"id": "7"}
    assert len(attempts) == 2


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(500, ErpApiError), (404, ErpApiError), (401, AuthenticationError), (403, AuthenticationError)],
)
def test_other_error_statuses_are_not_retried(status, error_type) -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(status, json={"title": "nope"})

    async def run() -> None:
        async with _client(handler) as client:
            await client.get_json(f"{BASE_URL}/inventoryitem/1")

    with pytest.raises(error_type) as excinfo:
        asyncio.run(run())

    assert len(attempts) == 1
    assert excinfo.value.status_code == status


def test_timeouts_are_wrapped_and_not_retried() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ReadTimeout("slow upstream", request=request)

    async def run() -> None:
        async with _client(handler) as client:
            await client.get_json(f"{BASE_URL}/inventoryitem/1")

    with pytest.raises(ErpApiError, match="Timed out"):
        asyncio.run(run())
    assert len(attempts) == 1


def test_requests_carry_signature_and_json_headers() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"items": []})

    async def run() -> None:
        async with _client(handler) as client:
            await client.post_json(
                client.settings.suiteql_url, {"q": "SELECT 1"}, headers={"Prefer": "transient"}
            )

    asyncio.run(run())

    request = seen[0]
    assert request.url.path == "/services/rest/query/v1/suiteql"
    assert request.headers["Authorization"] == "OAuth test"
    assert request.headers["Prefer"] == "transient"
    assert json.loads(request.content) == {"q": "SELECT 1"}


def test_rate_limiter_spaces_dispatch_starts() -> None:
    sleeps: list[float] = []

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    limiter = RateLimiter(1.2, clock=lambda: 100.0, sleep=sleep)

    async def run() -> None:
        for _ in range(3):
            await limiter.wait_turn()

    asyncio.run(run())

    assert sleeps == pytest.approx([1.2, 2.4])


def test_rate_limiter_serializes_concurrent_callers() -> None:
    active = 0
    peak = 0

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    async def run() -> None:
        nonlocal active, peak
        limiter = RateLimiter(0.0, max_concurrent=1)

        async def call() -> None:
            nonlocal active, peak
            async with limiter.slot():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0)
                active -= 1

        await asyncio.gather(*(call() for _ in range(5)))

    asyncio.run(run())
    assert peak == 1


def test_authentication_probe_reports_success_and_failure() -> None:
    async def probe(status: int) -> bool:
        async with _client(lambda request: httpx.Response(status, json={"items": []})) as client:
            return await client.test_authentication()

    assert asyncio.run(probe(200)) is True
    assert asyncio.run(probe(401)) is False


def test_oauth_signer_builds_hmac_sha256_header() -> None:
    signer = OAuth1Signer.from_settings(make_settings())

    header = signer.sign("GET", f"{BASE_URL}/inventoryItem?limit=1")["Authorization"]

    assert header.startswith('OAuth realm="TEST_REALM"')
    assert 'oauth_signature_method="HMAC-SHA256"' in header
    assert 'oauth_consumer_key="ck"' in header
    assert 'oauth_token="tk"' in header


def test_settings_merge_config_file_and_environment(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"erp": {"realm": "FROM_FILE", "max_retries": "5", "unknown": 1}}),
        encoding="utf-8",
    )

    settings = load_erp_settings(
        config_path,
        environ={
            "NETSUITE_CONSUMER_KEY": "env-key",
            "NETSUITE_BASE_URL": "https://acct.suitetalk.api.netsuite.com/services/rest/record/v1",
        },
    )

    assert settings.realm == "FROM_FILE"
    assert settings.max_retries == 5
    assert settings.consumer_key == "env-key"
    assert settings.has_credentials is False
    assert settings.suiteql_url == (
        "https://acct.suitetalk.api.netsuite.com/services/rest/query/v1/suiteql"
    )
