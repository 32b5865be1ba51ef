"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Recursive dispatch worker: execute a batch directly or fan it out to children.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..aggregate import attribute_failure, merge_outcomes
from ..config import DispatchConfig
from ..errors import DispatchError
from ..metrics import NoOpWorkerMetrics, WorkerMetrics
from ..runtime.backoff import BackoffPolicy
from ..runtime.leaf import LeafExecutor
from ..transport import Transport
from ..types import (
    DISPATCH_FAILED_KEY,
    INTERNAL_FAILURE_KEY,
    Batch,
    OutcomeMap,
    Target,
    WorkerHandle,
)
from .partition import partition_batch

if TYPE_CHECKING:
    from .channel import DispatchChannel

logger = logging.getLogger("treefetch.dispatch.worker")


class DispatchWorker:
    """
    One ephemeral worker bound to a single handle and a single invocation.

    Batches at or below ``base_case_threshold`` run through the leaf
    executor; larger batches are partitioned and each chunk is dispatched to
    a freshly minted child handle. ``run`` never raises: orchestration errors
    attribute the whole input batch to ``INTERNAL_FAILURE_KEY``.
    """

    def __init__(
        self,
        handle: WorkerHandle,
        *,
        config: DispatchConfig,
        transport: Transport,
        channel: DispatchChannel,
        metrics: WorkerMetrics | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        self.handle = handle
        self._config = config
        self._transport = transport
        self._channel = channel
        self._metrics: WorkerMetrics = metrics or NoOpWorkerMetrics()
        self._backoff = backoff or BackoffPolicy(config)
        self._active_children = 0

    @property
    def active_children(self) -> int:
        """Number of child dispatches currently in flight from this worker."""
        return self._active_children

    async def run(self, batch: Batch) -> OutcomeMap:
        """Process `batch` and return its outcome counts."""
        if not batch:
            return {}
        try:
            if len(batch) <= self._config.base_case_threshold:
                return await self._run_direct(batch)
            return await self._run_recursive(batch)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            self._metrics.incr("worker_failed_total")
            logger.exception(
                "Worker %s failed on %d target(s)",
                self.handle.short,
                len(batch),
            )
            return attribute_failure(INTERNAL_FAILURE_KEY, len(batch))

    async def _run_direct(self, batch: Batch) -> OutcomeMap:
        leaf = LeafExecutor(
            self._transport,
            config=self._config,
            backoff=self._backoff,
            metrics=self._metrics,
        )
        return await leaf.execute_batch(batch)

    async def _run_recursive(self, batch: Batch) -> OutcomeMap:
        chunks = partition_batch(batch, self._config.branching_factor)
        logger.debug(
            "Worker %s splitting %d target(s) into %d chunk(s)",
            self.handle.short,
            len(batch),
            len(chunks),
        )
        results = await asyncio.gather(*(self._dispatch_chunk(chunk) for chunk in chunks))
        return merge_outcomes(results)

    async def _dispatch_chunk(self, chunk: list[Target]) -> OutcomeMap:
        """Dispatch one chunk, retrying against a new child handle on failure."""
        attempts = 0
        while True:
            child = WorkerHandle.mint()
            self._active_children += 1
            self._metrics.incr("dispatch_children_total")
            try:
                return await self._channel.dispatch(child, chunk, self._config)
            except DispatchError as exc:
                error = exc
            finally:
                self._active_children -= 1

            attempts += 1
            if attempts >= self._config.max_retries:
                self._metrics.incr("dispatch_failed_total")
                logger.warning(
                    "Worker %s gave up dispatching %d target(s) after %d attempts: %s",
                    self.handle.short,
                    len(chunk),
                    attempts,
                    error,
                )
                return attribute_failure(DISPATCH_FAILED_KEY, len(chunk))

            delay = self._backoff.next_delay(attempts, self._active_children)
            self._metrics.incr("dispatch_retries_total")
            logger.debug(
                "Worker %s retrying child dispatch in %.3fs (attempt %d, child %s): %s",
                self.handle.short,
                delay,
                attempts,
                child.short,
                error,
            )
            await asyncio.sleep(delay)
