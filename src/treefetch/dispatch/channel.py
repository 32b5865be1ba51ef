"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Inter-worker dispatch channels.

A channel delivers one batch to the worker addressed by a freshly minted
handle and returns that worker's outcome map. Failures to reach or complete
the worker surface as ``DispatchError`` subclasses, never as outcome payloads.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import httpx

from ..aggregate import is_outcome_map, outcome_total
from ..config import DispatchConfig
from ..errors import (
    DispatchOverloadedError,
    DispatchProtocolError,
    DispatchRejectedError,
    DispatchTransportError,
)
from ..metrics import NoOpWorkerMetrics, WorkerMetrics
from ..runtime.retry import is_retryable_status
from ..transport import Transport
from ..types import Batch, OutcomeMap, WorkerHandle
from .worker import DispatchWorker

WORKER_DISPATCH_PATH = "/workers/{handle}/dispatch"


class DispatchChannel(Protocol):
    """Delivers a batch to the worker addressed by `handle`."""

    async def dispatch(
        self,
        handle: WorkerHandle,
        batch: Batch,
        config: DispatchConfig,
    ) -> OutcomeMap:
        """Run `batch` on a new worker instance and return its outcomes."""
        ...


class InProcessDispatchChannel:
    """
    Spawn every addressed worker as an independent asyncio task.

    Each child runs under ``asyncio.shield`` so abandoning a parent never
    cancels its in-flight children.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        metrics: WorkerMetrics | None = None,
    ) -> None:
        self._transport = transport
        self._metrics: WorkerMetrics = metrics or NoOpWorkerMetrics()
        self._live: dict[str, asyncio.Task[OutcomeMap]] = {}
        self._spawned = 0

    @property
    def live_workers(self) -> int:
        """Number of worker tasks that have not finished yet."""
        return len(self._live)

    @property
    def spawned_workers(self) -> int:
        """Total number of worker instances spawned through this channel."""
        return self._spawned

    async def dispatch(
        self,
        handle: WorkerHandle,
        batch: Batch,
        config: DispatchConfig,
    ) -> OutcomeMap:
        if handle.id in self._live:
            raise ValueError(f"Worker handle '{handle.short}' is already in use")

        worker = DispatchWorker(
            handle,
            config=config,
            transport=self._transport,
            channel=self,
            metrics=self._metrics,
        )
        task = asyncio.create_task(
            worker.run(list(batch)), name=f"treefetch-worker-{handle.short}"
        )
        self._live[handle.id] = task
        self._spawned += 1
        task.add_done_callback(lambda _: self._live.pop(handle.id, None))
        return await asyncio.shield(task)


class HttpDispatchChannel:
    """
    Dispatch to remote worker endpoints over HTTP.

    Posts ``{"targets": [...], "config": {...}}`` to
    ``{base_url}/workers/{handle}/dispatch`` and expects
    ``{"outcomes": {...}}`` back.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._timeout_s = timeout_s
        self._headers = dict(headers or {})

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # A parent holds its connection until every child answers, so a
            # bounded pool deadlocks once parents occupy all of it.
            self._client = httpx.AsyncClient(
                timeout=self._timeout_s,
                limits=httpx.Limits(max_connections=None),
            )
        return self._client

    def url_for(self, handle: WorkerHandle) -> str:
        return self._base_url + WORKER_DISPATCH_PATH.format(handle=handle.id)

    async def dispatch(
        self,
        handle: WorkerHandle,
        batch: Batch,
        config: DispatchConfig,
    ) -> OutcomeMap:
        body = {
            "targets": [target.as_payload() for target in batch],
            "config": config.as_payload(),
        }
        try:
            response = await self._get_client().post(
                self.url_for(handle),
                json=body,
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise DispatchTransportError(f"{type(exc).__name__}: {exc}") from exc

        if is_retryable_status(response.status_code):
            raise DispatchOverloadedError(response.status_code)
        if not response.is_success:
            raise DispatchRejectedError(response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DispatchProtocolError(
                f"Worker '{handle.short}' returned invalid JSON"
            ) from exc

        outcomes = payload.get("outcomes") if isinstance(payload, dict) else None
        if not is_outcome_map(outcomes):
            raise DispatchProtocolError(
                f"Worker '{handle.short}' returned no outcome map"
            )
        if outcome_total(outcomes) != len(batch):
            raise DispatchProtocolError(
                f"Worker '{handle.short}' accounted for {outcome_total(outcomes)} "
                f"of {len(batch)} target(s)"
            )
        return dict(outcomes)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
