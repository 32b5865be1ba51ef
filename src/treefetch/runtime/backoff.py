"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Capped exponential backoff with jitter and overload scaling.
"""

from __future__ import annotations

import random

from ..config import DispatchConfig


class BackoffPolicy:
    """
    Stateless retry delay calculator.

    ``delay = min(initial * 2**attempt, max) + uniform(0, jitter)``, scaled by
    ``overload_multiplier`` when ``local_load`` exceeds the overload threshold.
    The attempt count is always supplied by the caller.
    """

    def __init__(self, config: DispatchConfig, *, rng: random.Random | None = None) -> None:
        self._config = config
        self._rng = rng or random.Random()

    def base_delay(self, attempt: int) -> float:
        """Return the capped exponential component without jitter."""
        cfg = self._config
        if cfg.initial_backoff_s <= 0:
            return 0.0
        # Bound the exponent so huge attempt counts cannot overflow.
        exponent = min(max(0, attempt), 62)
        return min(cfg.initial_backoff_s * (2**exponent), cfg.max_backoff_s)

    def next_delay(self, attempt: int, local_load: int = 0) -> float:
        """Return the delay in seconds before retry number `attempt`."""
        cfg = self._config
        delay = self.base_delay(attempt)
        if cfg.jitter_max_s > 0:
            delay += self._rng.uniform(0.0, cfg.jitter_max_s)
        if local_load > cfg.effective_overload_threshold:
            delay *= cfg.overload_multiplier
        return delay
