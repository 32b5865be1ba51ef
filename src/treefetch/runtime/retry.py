"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Outcome classification for fetch attempts.
"""

from __future__ import annotations

import asyncio
import socket

from ..errors import FetchTransportError
from ..types import SUCCESS_KEY, FetchResponse, OutcomeKey

RETRYABLE_STATUS_CODES = frozenset({429, 503})


def is_retryable_status(status_code: int) -> bool:
    """Whether a response status signals overload or rate limiting."""
    return status_code in RETRYABLE_STATUS_CODES


def is_retryable_error(error: BaseException) -> bool:
    """Whether an exception raised by a fetch attempt is transient."""
    return isinstance(
        error,
        (
            FetchTransportError,
            asyncio.TimeoutError,
            TimeoutError,
            socket.timeout,
            ConnectionError,
            OSError,
        ),
    )


def classify_response(response: FetchResponse, *, excerpt_chars: int) -> OutcomeKey:
    """
    Map a terminal response to its outcome key.

    ``200`` maps to the canonical success key. Anything else is keyed by
    status plus a short body excerpt, or the bare status when the body is empty.
    """
    if response.status_code == 200:
        return SUCCESS_KEY
    excerpt = response.body[:excerpt_chars].strip() if excerpt_chars > 0 else ""
    if not excerpt:
        return str(response.status_code)
    return f"{response.status_code}:{excerpt}"


def classify_unexpected(error: BaseException) -> OutcomeKey:
    """Outcome key for a non-transport exception raised during a fetch."""
    return f"Error: {type(error).__name__}"
