"""Service calls layered on the request client."""

from __future__ import annotations

from typing import Any, Dict

from .client import RequestClient


class ServiceAPI:
    """AI worker and health endpoints with call-specific retry budgets.

    Chat and message calls get long deadlines; health probes fail fast so a
    dashboard does not hang on an unavailable backend.
    """

    def __init__(self, client: RequestClient) -> None:
        self._client = client

    async def send_message(self, session_id: str, message: Dict[str, Any]) -> Any:
        return await self._client.post(
            "/ai-worker/message",
            {**message, "sessionId": session_id},
            retries=3,
            timeout=45000,
        )

    async def get_session(self, session_id: str) -> Any:
        return await self._client.get(f"/ai-worker/session/{session_id}", retries=2)

    async def chat(self, session_id: str, message: str) -> Any:
        return await self._client.post(
            "/ai-worker/chat",
            {"sessionId": session_id, "message": message},
            retries=3,
            timeout=60000,
        )

    async def get_health(self) -> Any:
        return await self._client.get("/health/status", retries=1, timeout=5000)

    async def get_service_health(self, service: str) -> Any:
        return await self._client.get(
            f"/health/service/{service}", retries=1, timeout=5000
        )
