"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy for fetches, inter-worker dispatch, and inbound requests.
"""

from __future__ import annotations


class TreeFetchError(Exception):
    """Base error for treefetch."""


class FetchTransportError(TreeFetchError):
    """Raised by a transport when a fetch fails below the HTTP status level."""


class DispatchError(TreeFetchError):
    """Raised when a child worker invocation cannot be completed."""


class DispatchTransportError(DispatchError):
    """The child worker was unreachable or the connection failed."""


class DispatchOverloadedError(DispatchError):
    """The child worker answered with an overload status (429/503)."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Rate limited: {status_code}")
        self.status_code = status_code


class DispatchRejectedError(DispatchError):
    """The child worker answered with a non-success, non-overload status."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Other status: {status_code}")
        self.status_code = status_code


class DispatchProtocolError(DispatchError):
    """The child worker answered with a payload that is not an outcome map."""


class InvalidRequestError(TreeFetchError):
    """Raised for malformed or out-of-range top-level input."""
