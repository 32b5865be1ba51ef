"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Outbound fetch transport contract and the httpx implementation.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from .errors import FetchTransportError
from .types import FetchResponse, Target


class Transport(Protocol):
    """Performs one outbound fetch for a target."""

    async def fetch(self, target: Target) -> FetchResponse:
        """
        Fetch `target` and return its status and body.

        Raises:
            FetchTransportError: When no HTTP response could be obtained.
        """
        ...


class HttpxTransport:
    """
    Transport backed by a shared ``httpx.AsyncClient``.

    The client is created lazily unless one is injected; only clients created
    here are closed by ``aclose``.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float | None = 30.0,
        max_connections: int | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout_s = timeout_s
        self._max_connections = max_connections

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout_s,
                limits=httpx.Limits(max_connections=self._max_connections),
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, target: Target) -> FetchResponse:
        try:
            response = await self._get_client().get(target.url)
        except httpx.HTTPError as exc:
            raise FetchTransportError(f"{type(exc).__name__}: {exc}") from exc
        return FetchResponse(status_code=response.status_code, body=response.text)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
