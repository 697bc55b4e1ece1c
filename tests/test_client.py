"""Tests for the step backends used by the session controller."""

import json

import httpx
import pytest

from micromove.client import HttpBackend, LocalBackend
from micromove.state import UserSettings
from micromove.tools.fallback import generate_fallback_reframe, generate_fallback_steps
from conftest import FakeChatClient


class TestLocalBackend:
    @pytest.mark.asyncio
    async def test_breakdown_without_key_is_fallback(self):
        client = FakeChatClient()
        steps = await LocalBackend(UserSettings(), client).breakdown("tidy the desk")
        assert steps == generate_fallback_steps("tidy the desk")
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_settings_key_and_model_forwarded(self):
        client = FakeChatClient(reply="Open the doc and type one word.")
        backend = LocalBackend(UserSettings(api_key="sk-user", model="gpt-4o"), client)
        assert await backend.reframe("Write intro", "essay") == "Open the doc and type one word."
        assert client.requests[0]["api_key"] == "sk-user"
        assert client.requests[0]["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_validation_error_propagates(self):
        with pytest.raises(Exception, match="too short"):
            await LocalBackend().breakdown("ab")


def _transport(seen):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((request.url.path, body))
        if request.url.path == "/api/breakdown":
            return httpx.Response(200, json={"steps": ["a", "b", 3]})
        if request.url.path == "/api/reframe":
            return httpx.Response(200, json={"newStep": "smaller"})
        return httpx.Response(404, json={"error": "nope"})
    return httpx.MockTransport(handler)


class TestHttpBackend:
    @pytest.mark.asyncio
    async def test_breakdown(self):
        seen = []
        backend = HttpBackend("http://test/", UserSettings(api_key="k"), transport=_transport(seen))
        assert await backend.breakdown("do taxes") == ["a", "b"]
        assert seen == [("/api/breakdown", {"task": "do taxes", "apiKey": "k", "model": "gpt-4o-mini"})]

    @pytest.mark.asyncio
    async def test_reframe(self):
        seen = []
        backend = HttpBackend("http://test", transport=_transport(seen))
        assert await backend.reframe("step", "task") == "smaller"
        assert seen[0][1] == {"originalStep": "step", "task": "task"}

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(400, json={"error": "Task is too short"}))
        backend = HttpBackend("http://test", transport=transport)
        with pytest.raises(httpx.HTTPStatusError):
            await backend.breakdown("ab")
