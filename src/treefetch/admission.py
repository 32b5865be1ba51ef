"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Root-level admission control: time-windowed initiation of dispatch trees.
"""

from __future__ import annotations

import asyncio
import logging
import time

from .aggregate import attribute_failure, merge_outcomes
from .config import DispatchConfig
from .dispatch.channel import DispatchChannel
from .dispatch.partition import chunk_batch
from .metrics import NoOpWorkerMetrics, WorkerMetrics
from .types import CHUNK_FAILED_KEY, Batch, DispatchResult, OutcomeMap, Target, WorkerHandle

logger = logging.getLogger("treefetch.admission")


class AdmissionScheduler:
    """
    Start one independent dispatch tree per admission window.

    With windowing enabled the root batch is cut into ``items_per_window``
    chunks. Chunk ``i`` is started without waiting for it, then the scheduler
    sleeps until ``window_s`` has elapsed since chunk ``i`` started, which caps
    the rate of tree initiations rather than completions. All trees are joined
    once the last chunk has been started.
    """

    def __init__(
        self,
        channel: DispatchChannel,
        *,
        config: DispatchConfig,
        metrics: WorkerMetrics | None = None,
    ) -> None:
        self._channel = channel
        self._config = config
        self._metrics: WorkerMetrics = metrics or NoOpWorkerMetrics()

    async def run(self, batch: Batch) -> DispatchResult:
        """Dispatch `batch` and return merged outcomes plus elapsed time."""
        started = time.monotonic()
        window_size = self._config.items_per_window if self._config.windowing_enabled else None
        chunks = chunk_batch(batch, window_size)
        loop = asyncio.get_running_loop()

        pending: list[asyncio.Task[OutcomeMap]] = []
        for index, chunk in enumerate(chunks):
            window_started = loop.time()
            logger.info(
                "batch %d: %d target(s) (%s)",
                index,
                len(chunk),
                time.strftime("%Y-%m-%dT%H:%M:%S"),
            )
            pending.append(
                asyncio.create_task(
                    self._run_chunk(index, chunk), name=f"treefetch-window-{index}"
                )
            )
            self._metrics.incr("admission_windows_total")

            if window_size is not None and index < len(chunks) - 1:
                deadline = window_started + self._config.window_s
                while (remaining := deadline - loop.time()) > 0:
                    await asyncio.sleep(remaining)

        results = await asyncio.gather(*pending)
        duration_ms = int((time.monotonic() - started) * 1000)
        return DispatchResult(
            outcomes=merge_outcomes(results),
            duration_ms=duration_ms,
            windows=len(chunks),
        )

    async def _run_chunk(self, index: int, chunk: list[Target]) -> OutcomeMap:
        handle = WorkerHandle.mint()
        try:
            return await self._channel.dispatch(handle, chunk, self._config)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.exception(
                "Dispatch tree %s for batch %d failed (%d target(s))",
                handle.short,
                index,
                len(chunk),
            )
            return attribute_failure(CHUNK_FAILED_KEY, len(chunk))
