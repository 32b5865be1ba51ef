"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Core value types shared by the dispatch engine.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeAlias

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]

OutcomeKey: TypeAlias = str
OutcomeMap: TypeAlias = dict[str, int]

SUCCESS_KEY = "200"
RETRIES_EXHAUSTED_KEY = "Error Fetching URL"
DISPATCH_FAILED_KEY = "500 - Failed to dispatch child"
INTERNAL_FAILURE_KEY = "500 - Internal dispatch error"
CHUNK_FAILED_KEY = "500"


@dataclass(frozen=True, slots=True)
class Target:
    """
    One unit of external work.

    Attributes:
        url: Resource locator fetched by the leaf executor.
        id: Optional external correlation identifier.
    """

    url: str
    id: str | None = None

    def as_payload(self) -> dict[str, JSONValue]:
        """Serialize target for inter-worker transport."""
        return {"url": self.url, "id": self.id}

    @classmethod
    def from_payload(cls, payload: dict[str, JSONValue]) -> Target:
        url = payload.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("target payload requires a non-empty 'url'")
        raw_id = payload.get("id")
        return cls(url=url, id=None if raw_id is None else str(raw_id))


Batch: TypeAlias = Sequence[Target]


@dataclass(frozen=True, slots=True)
class WorkerHandle:
    """Opaque one-shot identity for a single dispatch worker invocation."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def mint(cls) -> WorkerHandle:
        """Return a brand-new handle. Handles are never reused."""
        return cls()

    @property
    def short(self) -> str:
        return self.id[:8]


@dataclass(frozen=True, slots=True)
class FetchResponse:
    """Status and body returned by one transport fetch."""

    status_code: int
    body: str = ""


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """
    Final result of one top-level dispatch.

    Attributes:
        outcomes: Merged outcome counts across every window.
        duration_ms: Wall-clock duration of the whole call in milliseconds.
        windows: Number of admission windows (tree initiations) used.
    """

    outcomes: OutcomeMap
    duration_ms: int
    windows: int = 1

    @property
    def total(self) -> int:
        return sum(self.outcomes.values())
