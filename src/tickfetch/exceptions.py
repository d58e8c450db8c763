"""
Custom exceptions for tickfetch.

This module defines the error taxonomy surfaced to callers. Each
exception's ``str()`` is the bare message, so completion callbacks
receive the provider's text unchanged.
"""

from typing import Optional


class FetchError(Exception):
    """Base exception for all tickfetch errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class PermissionDeniedError(FetchError):
    """Raised when the transport provider refuses to open a connection."""

    def __init__(self, message: str = "Permission denied", cause: Optional[Exception] = None) -> None:
        super().__init__(message, cause)


class TransportError(FetchError):
    """Raised when the provider reports a failure before or during a request."""


class ProtocolError(TransportError):
    """Raised when a provider fires its lifecycle hooks out of order."""


class IssueError(FetchError):
    """Raised when a request could not be dispatched on an open connection."""


class MalformedURLError(FetchError, ValueError):
    """Raised when a URL cannot be decomposed into connection parameters."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Malformed URL: {url!r}")
        self.url = url


class InvalidRequestError(FetchError, ValueError):
    """Raised when the request options cannot describe a request."""
