"""
Step backends used by SessionMachine.

LocalBackend calls the request handlers in-process; HttpBackend talks to a
running API server. Both forward the user's API key and model from settings.
"""
from typing import Any, Dict, List, Optional

import httpx

from micromove.infrastructure.llm import ChatCompletionClient
from micromove.state import UserSettings
from micromove.tools.breakdown import handle_breakdown
from micromove.tools.reframe import handle_reframe

# Short connect timeout, room for the model to answer.
_HTTP_TIMEOUT = httpx.Timeout(connect=10.0, read=60.0, write=10.0, pool=5.0)

def _credentials(settings: Optional[UserSettings]) -> Dict[str, Any]:
    if settings is None:
        return {}
    payload = {}
    if settings.api_key:
        payload["apiKey"] = settings.api_key
    if settings.model:
        payload["model"] = settings.model
    return payload

class LocalBackend:
    def __init__(self, settings: Optional[UserSettings] = None, client: Optional[ChatCompletionClient] = None):
        self.settings = settings
        self.client = client

    async def breakdown(self, task: str) -> List[str]:
        response = await handle_breakdown({"task": task, **_credentials(self.settings)}, client=self.client)
        return response.steps

    async def reframe(self, step: str, task: str) -> str:
        body = {"originalStep": step, "task": task, **_credentials(self.settings)}
        response = await handle_reframe(body, client=self.client)
        return response.new_step

class HttpBackend:
    """
    Calls POST /api/breakdown and /api/reframe on a MicroMove server.
    Transport errors and non-2xx answers raise; the machine falls back locally.
    """
    def __init__(
        self,
        base_url: str,
        settings: Optional[UserSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.settings = settings
        self.transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=_HTTP_TIMEOUT, transport=self.transport
        ) as client:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return response.json()

    async def breakdown(self, task: str) -> List[str]:
        data = await self._post("/api/breakdown", {"task": task, **_credentials(self.settings)})
        steps = data.get("steps") or []
        return [s for s in steps if isinstance(s, str)]

    async def reframe(self, step: str, task: str) -> str:
        data = await self._post(
            "/api/reframe",
            {"originalStep": step, "task": task, **_credentials(self.settings)},
        )
        return data.get("newStep") or ""
