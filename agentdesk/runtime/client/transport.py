from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

START_PATH = "/api/agent-execute"
CONTINUE_PATH = "/api/agent-execute/continue"
FOLLOW_UP_PATH = "/api/agent-execute/follow-up"


class EndpointError(RuntimeError):
    """A protocol endpoint answered with a non-streaming error body."""

    def __init__(self, message: str, *, status_code: int, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionNotFoundError(EndpointError):
    pass


async def error_message(response: httpx.Response) -> str:
    """`{error}` from a non-streaming reply, else `Request failed: <status>`."""

    try:
        await response.aread()
        body = response.json()
    except (httpx.HTTPError, ValueError):
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"].strip():
        return body["error"]
    return f"Request failed: {response.status_code}"


class AgentTransport:
    """
    Thin async HTTP client for the three streaming endpoints.

    Every call returns an open streamed response; callers iterate its bytes and must
    `aclose()` it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float | None = 180.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def start(self, body: dict[str, Any]) -> httpx.Response:
        return await self._post(START_PATH, body)

    async def continue_(self, body: dict[str, Any]) -> httpx.Response:
        return await self._post(CONTINUE_PATH, body)

    async def follow_up(self, body: dict[str, Any]) -> httpx.Response:
        response = await self._post(FOLLOW_UP_PATH, body)
        if response.status_code == 404:
            message = await error_message(response)
            await response.aclose()
            raise SessionNotFoundError(message, status_code=404)
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        request = self._client.build_request(
            "POST",
            f"{self._base_url}{path}",
            json=body,
            headers={"accept": "text/event-stream"},
        )
        logger.debug("POST %s", path)
        return await self._client.send(request, stream=True)
