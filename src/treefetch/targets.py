"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Synthetic target generation for count-based requests.
"""

from __future__ import annotations

import random

from .types import Target

MAX_RANDOM_ITEM = 42_000_000


def generate_targets(
    count: int,
    template: str,
    *,
    rng: random.Random | None = None,
) -> list[Target]:
    """
    Build `count` targets from a URL template.

    The template is formatted with ``index`` (1-based position) and
    ``random`` (uniform integer in ``1..42_000_000``, useful as a cache
    buster or random item id).
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    source = rng or random.Random()
    return [
        Target(
            url=template.format(index=index, random=source.randint(1, MAX_RANDOM_ITEM)),
            id=str(index),
        )
        for index in range(1, count + 1)
    ]
