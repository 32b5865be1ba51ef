"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dispatch tree configuration and explicit environment loading.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from typing import Any

from .types import JSONValue

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _env_int(name: str, default: int | None) -> int | None:
    raw = _env_first(name)
    if raw is None:
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = _env_first(name)
    if raw is None:
        return default
    return float(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_first(name)
    if raw is None:
        return default
    return raw.lower() in _TRUE_VALUES


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """
    Parameters for one dispatch tree.

    Every recursive child inherits the same config unless a caller builds an
    explicit override with ``with_overrides``.

    Attributes:
        branching_factor: Maximum number of children spawned per split.
        base_case_threshold: Largest batch a worker executes directly.
        initial_backoff_s: Base delay for exponential backoff.
        max_backoff_s: Cap applied to the exponential component.
        jitter_max_s: Upper bound of the uniform jitter added to each delay.
        max_retries: Attempt budget for one fetch or one child dispatch.
        overload_threshold: Other in-flight child dispatches above which a
            dispatch retry delay is scaled. ``None`` means
            ``(branching_factor - 1) // 2``, i.e. more than half of the
            sibling dispatches are still running.
        overload_multiplier: Scale applied to delays under overload.
        window_s: Admission window duration.
        items_per_window: Targets admitted per window. ``None`` or ``0``
            disables windowing.
        body_excerpt_chars: Body excerpt length used in terminal outcome keys.
        coalesce_duplicates: Share one fetch between identical targets in a
            direct-mode batch.
    """

    branching_factor: int = 10
    base_case_threshold: int = 60
    initial_backoff_s: float = 0.1
    max_backoff_s: float = 5.0
    jitter_max_s: float = 0.05
    max_retries: int = 10
    overload_threshold: int | None = None
    overload_multiplier: float = 1.5
    window_s: float = 1.0
    items_per_window: int | None = None
    body_excerpt_chars: int = 200
    coalesce_duplicates: bool = True

    @property
    def effective_overload_threshold(self) -> int:
        if self.overload_threshold is not None:
            return self.overload_threshold
        return (self.branching_factor - 1) // 2

    @property
    def windowing_enabled(self) -> bool:
        return self.items_per_window is not None and self.items_per_window > 0

    def validate(self) -> DispatchConfig:
        """Raise ``ValueError`` for out-of-range values and return self."""
        if self.branching_factor < 2:
            raise ValueError("branching_factor must be >= 2")
        if self.base_case_threshold < 1:
            raise ValueError("base_case_threshold must be >= 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.initial_backoff_s < 0:
            raise ValueError("initial_backoff_s must be >= 0")
        if self.max_backoff_s < 0:
            raise ValueError("max_backoff_s must be >= 0")
        if self.jitter_max_s < 0:
            raise ValueError("jitter_max_s must be >= 0")
        if self.overload_multiplier < 1:
            raise ValueError("overload_multiplier must be >= 1")
        if self.window_s < 0:
            raise ValueError("window_s must be >= 0")
        if self.items_per_window is not None and self.items_per_window < 0:
            raise ValueError("items_per_window must be >= 0")
        if self.body_excerpt_chars < 0:
            raise ValueError("body_excerpt_chars must be >= 0")
        return self

    def with_overrides(self, **changes: Any) -> DispatchConfig:
        """Return a validated copy with explicit overrides applied."""
        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied).validate()

    def as_payload(self) -> dict[str, JSONValue]:
        """Serialize config for inter-worker dispatch bodies."""
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, JSONValue] | None) -> DispatchConfig:
        """Build config from a dispatch body, ignoring unknown fields."""
        if not payload:
            return cls()
        known = set(cls.__dataclass_fields__)
        values = {key: value for key, value in payload.items() if key in known}
        return cls(**values).validate()  # type: ignore[arg-type]

    @staticmethod
    def from_env() -> DispatchConfig:
        """Load dispatch defaults from ``TREEFETCH_*`` environment variables."""
        return DispatchConfig(
            branching_factor=_env_int("TREEFETCH_BRANCHING_FACTOR", 10) or 10,
            base_case_threshold=_env_int("TREEFETCH_BASE_CASE_THRESHOLD", 60) or 60,
            initial_backoff_s=_env_float("TREEFETCH_INITIAL_BACKOFF_S", 0.1),
            max_backoff_s=_env_float("TREEFETCH_MAX_BACKOFF_S", 5.0),
            jitter_max_s=_env_float("TREEFETCH_JITTER_MAX_S", 0.05),
            max_retries=_env_int("TREEFETCH_MAX_RETRIES", 10) or 10,
            overload_threshold=_env_int("TREEFETCH_OVERLOAD_THRESHOLD", None),
            overload_multiplier=_env_float("TREEFETCH_OVERLOAD_MULTIPLIER", 1.5),
            window_s=_env_float("TREEFETCH_WINDOW_S", 1.0),
            items_per_window=_env_int("TREEFETCH_ITEMS_PER_WINDOW", None),
            body_excerpt_chars=_env_int("TREEFETCH_BODY_EXCERPT_CHARS", 200) or 0,
            coalesce_duplicates=_env_bool("TREEFETCH_COALESCE_DUPLICATES", True),
        ).validate()


DEFAULT_TARGET_TEMPLATE = "https://hacker-news.firebaseio.com/v0/item/{random}.json"


@dataclass(frozen=True, slots=True)
class ServiceSettings:
    """Settings for the HTTP entry point and worker endpoints."""

    secret: str | None = None
    public_max_targets: int = 9000
    secret_max_targets: int = 1_000_000
    target_template: str = DEFAULT_TARGET_TEMPLATE
    self_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 8787
    fetch_timeout_s: float = 30.0

    def max_targets_for(self, secret: str | None) -> int:
        """Return the target ceiling for a caller presenting `secret`."""
        if self.secret and secret == self.secret:
            return self.secret_max_targets
        return self.public_max_targets

    @staticmethod
    def from_env() -> ServiceSettings:
        """Load service settings from ``TREEFETCH_*`` environment variables."""
        return ServiceSettings(
            secret=_env_first("TREEFETCH_SECRET"),
            public_max_targets=_env_int("TREEFETCH_PUBLIC_MAX_TARGETS", 9000) or 9000,
            secret_max_targets=(
                _env_int("TREEFETCH_SECRET_MAX_TARGETS", 1_000_000) or 1_000_000
            ),
            target_template=(
                _env_first("TREEFETCH_TARGET_TEMPLATE", default=DEFAULT_TARGET_TEMPLATE)
                or DEFAULT_TARGET_TEMPLATE
            ),
            self_url=_env_first("TREEFETCH_SELF_URL"),
            host=_env_first("TREEFETCH_HOST", default="0.0.0.0") or "0.0.0.0",
            port=_env_int("TREEFETCH_PORT", 8787) or 8787,
            fetch_timeout_s=_env_float("TREEFETCH_FETCH_TIMEOUT_S", 30.0),
        )
