"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request and response bodies for the HTTP entry point and worker endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..config import DispatchConfig
from ..types import DispatchResult, Target


class TargetModel(BaseModel):
    """Wire form of one target."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(min_length=1)
    id: str | None = None

    def to_target(self) -> Target:
        return Target(url=self.url, id=self.id)


class ConfigOverrides(BaseModel):
    """Per-call overrides applied on top of the service defaults."""

    model_config = ConfigDict(extra="forbid")

    branching_factor: int | None = Field(default=None, ge=2)
    base_case_threshold: int | None = Field(default=None, ge=1)
    initial_backoff_s: float | None = Field(default=None, ge=0)
    max_backoff_s: float | None = Field(default=None, ge=0)
    jitter_max_s: float | None = Field(default=None, ge=0)
    max_retries: int | None = Field(default=None, ge=1)
    overload_threshold: int | None = Field(default=None, ge=0)
    overload_multiplier: float | None = Field(default=None, ge=1)
    window_s: float | None = Field(default=None, ge=0)
    items_per_window: int | None = Field(default=None, ge=0)
    body_excerpt_chars: int | None = Field(default=None, ge=0)
    coalesce_duplicates: bool | None = None

    def apply(self, base: DispatchConfig) -> DispatchConfig:
        return base.with_overrides(**self.model_dump(exclude_none=True))


class RunRequest(BaseModel):
    """Explicit batch submitted to ``POST /runs``."""

    targets: list[TargetModel]
    config: ConfigOverrides = Field(default_factory=ConfigOverrides)


class WorkerDispatchRequest(BaseModel):
    """Body of one inter-worker dispatch call."""

    targets: list[TargetModel]
    config: dict[str, object] | None = None


class WorkerDispatchResponse(BaseModel):
    handle: str
    outcomes: dict[str, int]


class RunResponse(BaseModel):
    """Merged outcome counts plus elapsed wall-clock duration in milliseconds."""

    model_config = ConfigDict(populate_by_name=True)

    results: dict[str, int]
    result_count: int = Field(serialization_alias="resultCount")
    duration: int
    windows: int

    @classmethod
    def from_result(cls, result: DispatchResult) -> RunResponse:
        return cls(
            results=result.outcomes,
            result_count=result.total,
            duration=result.duration_ms,
            windows=result.windows,
        )
