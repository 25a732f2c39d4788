import time

import httpx
import pytest

from storefront_backend.core.exceptions import PartnerTimeoutError, PartnerUnavailableError
from storefront_backend.core.http_client import PartnerHTTPClient, RetryConfig, get_delhivery_client

NO_DELAY = RetryConfig(max_retries=1, base_delay=0, max_delay=0, jitter_factor=0)


def make_client(handler, retry_config: RetryConfig = NO_DELAY, timeout: float = 5.0) -> PartnerHTTPClient:
    return PartnerHTTPClient(
        "test-partner",
        retry_config=retry_config,
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_gateway_error_retried_then_recovers():
    """
    A single 502 is retried and the second answer is returned.
    """
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"ok": True})

    async with make_client(handler) as client:
        resp = await client.get("https://partner.test/rates")

    assert resp.status_code == 200
    assert call_count == 2


@pytest.mark.asyncio
async def test_gives_up_after_retry_budget():
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        return httpx.Response(503)

    client = make_client(handler)
    with pytest.raises(PartnerUnavailableError) as exc_info:
        await client.get("https://partner.test/rates")
    await client.close()

    assert call_count == 2
    assert exc_info.value.details["status_code"] == 503
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_internal_server_error_not_retried():
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        return httpx.Response(500)

    client = make_client(handler)
    with pytest.raises(PartnerUnavailableError):
        await client.post("https://partner.test/rates", json={})
    await client.close()

    assert call_count == 1


@pytest.mark.asyncio
async def test_client_errors_returned_to_caller():
    client = make_client(lambda request: httpx.Response(404, json={"message": "not found"}))

    resp = await client.get("https://partner.test/rates")
    await client.close()

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_timeout_raises_without_retry():
    """
    Timeouts are never retried so the request stays inside one timeout budget.
    """
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        raise httpx.ConnectTimeout("timed out", request=request)

    client = make_client(handler, timeout=8.0)
    with pytest.raises(PartnerTimeoutError) as exc_info:
        await client.get("https://partner.test/rates")
    await client.close()

    assert call_count == 1
    assert exc_info.value.details["timeout_seconds"] == 8.0
    assert isinstance(exc_info.value, PartnerUnavailableError)


@pytest.mark.asyncio
async def test_connection_error_retried():
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    client = make_client(handler)
    resp = await client.get("https://partner.test/rates")
    await client.close()

    assert resp.status_code == 200
    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_skipped_when_backoff_exceeds_deadline():
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        return httpx.Response(503)

    slow_retry = RetryConfig(max_retries=3, base_delay=10, max_delay=10, jitter_factor=0)
    client = make_client(handler, retry_config=slow_retry, timeout=1.0)
    with pytest.raises(PartnerUnavailableError):
        await client.get("https://partner.test/rates")
    await client.close()

    assert call_count == 1


def test_backoff_is_capped():
    client = PartnerHTTPClient(
        "test-partner",
        retry_config=RetryConfig(base_delay=0.5, max_delay=2.0, exponential_base=2.0, jitter_factor=0.5),
    )

    for attempt in range(6):
        delay = client._calculate_backoff(attempt)
        assert 0.0 <= delay <= 2.0


@pytest.mark.asyncio
async def test_lifecycle():
    client = make_client(lambda request: httpx.Response(200))
    assert not client.is_open

    async with client:
        assert client.is_open

    assert not client.is_open


def test_delhivery_client_uses_settings(test_settings):
    client = get_delhivery_client(test_settings)

    assert client.partner_name == "delhivery"
    assert client.timeout == test_settings.PARTNER_TIMEOUT_SECONDS
    assert client.retry_config.max_retries == test_settings.PARTNER_MAX_RETRIES


@pytest.mark.asyncio
async def test_retry_only_gets_remaining_budget():
    """
    A slow 502 eats into the budget; the retried attempt must not get a fresh full timeout.
    """
    seen_timeouts = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_timeouts.append(request.extensions["timeout"]["read"])
        if len(seen_timeouts) == 1:
            time.sleep(0.3)
            return httpx.Response(502)
        return httpx.Response(200, json={"ok": True})

    fast_retry = RetryConfig(max_retries=1, base_delay=0.05, max_delay=0.05, jitter_factor=0)
    client = make_client(handler, retry_config=fast_retry, timeout=1.0)
    resp = await client.get("https://partner.test/rates")
    await client.close()

    assert resp.status_code == 200
    assert seen_timeouts[0] <= 1.0
    assert seen_timeouts[1] <= 1.0 - 0.3 - 0.05
