"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Outcome map reduction helpers.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .types import OutcomeKey, OutcomeMap


def merge_outcomes(maps: Iterable[Mapping[str, int]]) -> OutcomeMap:
    """
    Sum counts per key across every input map.

    Absent keys contribute zero; no inputs yield an empty map.
    """
    merged: OutcomeMap = {}
    for outcome_map in maps:
        for key, count in outcome_map.items():
            merged[key] = merged.get(key, 0) + count
    return merged


def count_outcomes(keys: Iterable[OutcomeKey]) -> OutcomeMap:
    """Fold individual outcome keys into a count map (one count per key)."""
    counts: OutcomeMap = {}
    for key in keys:
        counts[key] = counts.get(key, 0) + 1
    return counts


def attribute_failure(key: OutcomeKey, size: int) -> OutcomeMap:
    """Attribute a whole batch of `size` targets to one failure key."""
    if size <= 0:
        return {}
    return {key: size}


def outcome_total(outcomes: Mapping[str, int]) -> int:
    return sum(outcomes.values())


def is_outcome_map(value: object) -> bool:
    """Whether `value` is a well-formed outcome map (str keys, non-negative ints)."""
    if not isinstance(value, dict):
        return False
    return all(
        isinstance(key, str)
        and isinstance(count, int)
        and not isinstance(count, bool)
        and count >= 0
        for key, count in value.items()
    )
