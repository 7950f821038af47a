"""
Unit Tests for the HTTP Transport

The aiohttp session is replaced by a fake returning scripted responses, and
asyncio.sleep is stubbed so retry backoff does not slow the suite down.

Run with:
    pytest tests/unit/test_transport.py -v
"""

import aiohttp
import pytest

from core.errors import TransportError
from core.transport import HttpTransport


class FakeResponse:
    def __init__(self, status, payload=None, body=""):
        self.status = status
        self.payload = payload
        self.body = body

    async def json(self, content_type=None):
        return self.payload

    async def text(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    def __init__(self, script):
        self.script = list(script)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        outcome = self.script.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def no_sleep(monkeypatch):
    async def fake_sleep(delay):
        return None
    monkeypatch.setattr("core.transport.asyncio.sleep", fake_sleep)


def make_transport(script) -> HttpTransport:
    transport = HttpTransport(provider="test", max_attempts=3)
    transport.session = FakeSession(script)
    return transport


class TestRequest:
    @pytest.mark.asyncio
    async def test_success_returns_json(self, no_sleep):
        transport = make_transport([FakeResponse(200, {"ok": True})])

        assert await transport.get("https://api.test/ping", {"a": 1}) == {"ok": True}
        method, url, kwargs = transport.session.requests[0]
        assert (method, url, kwargs["params"]) == ("GET", "https://api.test/ping", {"a": 1})

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, no_sleep):
        transport = make_transport([FakeResponse(200, {"data": {}})])

        await transport.post("https://graph.test", {"query": "{x}"})

        method, _, kwargs = transport.session.requests[0]
        assert method == "POST"
        assert kwargs["json"] == {"query": "{x}"}

    @pytest.mark.asyncio
    async def test_extra_headers_are_merged(self, no_sleep):
        transport = make_transport([FakeResponse(200, [])])

        await transport.post("https://api.test/audit", {"addresses": []}, headers={"Authorization": "Bearer k"})

        headers = transport.session.requests[0][2]["headers"]
        assert headers == {"Accept": "application/json", "Authorization": "Bearer k"}

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, no_sleep):
        transport = make_transport([FakeResponse(429, body="slow down"), FakeResponse(200, [1])])

        assert await transport.get("https://api.test/x") == [1]
        assert len(transport.session.requests) == 2

    @pytest.mark.asyncio
    async def test_client_error_status_not_retried(self, no_sleep):
        transport = make_transport([FakeResponse(404, body="not found")])

        with pytest.raises(TransportError) as exc_info:
            await transport.get("https://api.test/x")

        assert exc_info.value.status == 404
        assert exc_info.value.body == "not found"
        assert len(transport.session.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_attempts(self, no_sleep):
        transport = make_transport([FakeResponse(429, body="slow down")] * 3)

        with pytest.raises(TransportError) as exc_info:
            await transport.get("https://api.test/x")

        assert exc_info.value.status == 429
        assert len(transport.session.requests) == 3

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_status_zero(self, no_sleep):
        transport = make_transport([aiohttp.ClientConnectionError("refused")] * 3)

        with pytest.raises(TransportError) as exc_info:
            await transport.get("https://api.test/x")

        assert exc_info.value.status == 0

    @pytest.mark.asyncio
    async def test_without_session_raises(self):
        with pytest.raises(RuntimeError):
            await HttpTransport(provider="test").get("https://api.test/x")
