"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Per-worker registry of in-flight target executions.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class InflightRegistry(Generic[K, T]):
    """
    Deduplicate identical in-flight executions within one worker.

    Owned by exactly one worker invocation, so no lock is needed: the
    check-and-insert below never awaits between lookup and registration.
    """

    def __init__(self) -> None:
        self._tasks: dict[K, asyncio.Task[T]] = {}
        self.coalesced = 0

    async def run(self, key: K, factory: Callable[[], Awaitable[T]]) -> T:
        existing = self._tasks.get(key)
        if existing is not None:
            self.coalesced += 1
            return await asyncio.shield(existing)

        task: asyncio.Task[T] = asyncio.ensure_future(factory())
        self._tasks[key] = task
        return await asyncio.shield(task)

    def __len__(self) -> int:
        return len(self._tasks)
