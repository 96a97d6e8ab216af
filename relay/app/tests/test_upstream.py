"""
Unit Tests for the Upstream Health Probe
========================================

Tests for relay/app/upstream.py

Run tests:
----------
    pytest relay/app/tests/test_upstream.py -v
"""

import httpx
import pytest

from relay.app.config import Settings
from relay.app.upstream import UpstreamAccessDenied, check_service_status


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        SERVICE_BASE_URL="http://10.0.0.12:8000",
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
    )


def client_returning(status_code: int, seen=None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json={"status": status_code})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_healthy_upstream(settings):
    seen = []

    result = await check_service_status(settings, client=client_returning(200, seen))

    assert result is True
    assert seen[0].method == "GET"
    assert str(seen[0].url) == "http://10.0.0.12:8000/v1/health/check"


@pytest.mark.asyncio
async def test_redirected_health_path_is_healthy(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/v1/health/check":
            return httpx.Response(302, headers={"location": "/v1/health/check/"})
        return httpx.Response(200, json={"status": "ok"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    result = await check_service_status(settings, client=client)

    assert result is True
    assert [r.url.path for r in seen] == ["/v1/health/check", "/v1/health/check/"]


@pytest.mark.asyncio
async def test_forbidden_is_fatal(settings):
    with pytest.raises(UpstreamAccessDenied):
        await check_service_status(settings, client=client_returning(403))


@pytest.mark.asyncio
async def test_unavailable_is_logged_only(settings, caplog):
    result = await check_service_status(settings, client=client_returning(503))

    assert result is False
    assert "Forwarding service unavailable" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 404, 500])
async def test_other_errors_ignored(settings, status_code, caplog):
    result = await check_service_status(settings, client=client_returning(status_code))

    assert result is False
    assert "Error checking service status" in caplog.text


@pytest.mark.asyncio
async def test_network_error_ignored(settings, caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    result = await check_service_status(settings, client=client)

    assert result is False
    assert "Connection refused" in caplog.text


@pytest.mark.asyncio
async def test_disabled_probe_makes_no_request():
    settings = Settings(
        _env_file=None,
        SERVICE_BASE_URL="http://10.0.0.12:8000",
        HEALTH_CHECK_PATH="",
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
    )
    seen = []

    result = await check_service_status(settings, client=client_returning(200, seen))

    assert result is False
    assert seen == []
