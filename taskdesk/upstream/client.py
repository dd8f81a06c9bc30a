"""Async HTTP client for the upstream portal REST API.

One ``httpx.AsyncClient`` is shared per process (created in the app lifespan).
Failures are translated into RFC 7807 exceptions carrying the upstream ``msg``
so they reach the browser unchanged. There is no retry.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import Request

from taskdesk.common.exceptions import (
    AppException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    UpstreamError,
    ValidationException,
)
from taskdesk.config import settings

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "No response from server. Please check your connection."
INVALID_RESPONSE_MESSAGE = "Invalid response from server"


class UpstreamClient:
    """Thin JSON client: bearer auth in, parsed JSON or problem exceptions out."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "User-Agent": "TaskDesk/1.0",
            },
        )

    @classmethod
    def from_settings(cls) -> "UpstreamClient":
        return cls(settings.UPSTREAM_API_URL, timeout=settings.UPSTREAM_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Core request ─────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        error_message: str = "Request failed",
    ) -> Any:
        """Send one request and return the decoded JSON body (``None`` if empty)."""
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            resp = await self._client.request(
                method, path, headers=headers, json=json, params=params,
            )
        except httpx.TransportError as exc:
            logger.warning("Upstream %s %s unreachable: %s", method, path, exc)
            raise UpstreamError(NO_RESPONSE_MESSAGE) from exc

        if resp.is_success:
            if not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as exc:
                raise UpstreamError(INVALID_RESPONSE_MESSAGE, resp.status_code) from exc

        logger.warning("Upstream %s %s → %s", method, path, resp.status_code)
        raise error_from_response(resp, error_message)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)


# ── Error translation ──────────────────────────────────────────────

def _upstream_message(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("msg") or body.get("message") or body.get("error")
    return None


def error_from_response(resp: httpx.Response, default_message: str) -> AppException:
    """Map an upstream failure onto the gateway's exception hierarchy."""
    message = _upstream_message(resp) or default_message
    status = resp.status_code
    if status == 401:
        return UnauthorizedException(detail=message)
    if status == 403:
        return ForbiddenException(detail=message)
    if status == 404:
        return NotFoundException("Resource", resp.request.url.path, detail=message)
    if status in (400, 422):
        return ValidationException({"upstream": [message]}, detail=message)
    return UpstreamError(message, status)


# ── FastAPI dependency ─────────────────────────────────────────────

def get_upstream(request: Request) -> UpstreamClient:
    """Return the process-wide client stored on ``app.state`` by the lifespan."""
    return request.app.state.upstream
