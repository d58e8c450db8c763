"""
Transport connection interface for tickfetch.

This module defines the TransportConnection interface: the handle a
transport provider returns for a single request. The client never
touches sockets itself; it registers hooks on this handle and queries
it when the hooks fire.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from ..http_primitives import RequestBody, RequestHeaders

Hook = Callable[[], None]


class TransportConnection(ABC):
    """
    Interface for a single-use connection handle.

    Hooks are zero-argument callables. A well-behaved implementation
    fires ``headers ready`` once, ``data available`` zero or more times,
    and ``request complete`` exactly once, after which nothing fires.
    """

    @abstractmethod
    def set_connect_timeout(self, seconds: float) -> None:
        """
        Bound the time allowed to establish the connection.

        Args:
            seconds: The connect timeout. Expiry must be reported through
                     ``error`` and the request complete hook.
        """
        pass

    @abstractmethod
    def on_headers_ready(self, callback: Hook) -> None:
        """Register the hook fired once the status line and headers arrived."""
        pass

    @abstractmethod
    def on_data_available(self, callback: Hook) -> None:
        """Register the hook fired whenever body bytes become readable."""
        pass

    @abstractmethod
    def on_request_complete(self, callback: Hook) -> None:
        """Register the terminal hook."""
        pass

    @abstractmethod
    def issue_request(
        self,
        method: str,
        path: str,
        headers: Optional[RequestHeaders] = None,
        body: Optional[RequestBody] = None,
    ) -> Tuple[bool, Optional[str]]:
        """
        Send the request.

        Args:
            method: HTTP method
            path: Request target, starting with "/"
            headers: Raw header lines or a name to value mapping
            body: Optional request body

        Returns:
            ``(True, None)`` once the request is under way, or
            ``(False, message)`` if it could not be dispatched.
        """
        pass

    @abstractmethod
    def read(self, max_bytes: int) -> bytes:
        """
        Read up to ``max_bytes`` of buffered body data.

        Returns:
            The data read, possibly empty.
        """
        pass

    @property
    @abstractmethod
    def bytes_available(self) -> int:
        """Number of body bytes that can be read without waiting."""
        pass

    @property
    @abstractmethod
    def response_status(self) -> Optional[int]:
        """The response status code, once headers are ready."""
        pass

    @property
    @abstractmethod
    def response_headers(self) -> Optional[Dict[str, str]]:
        """The response header mapping, once headers are ready."""
        pass

    @property
    @abstractmethod
    def error(self) -> Optional[str]:
        """The transport-level error message, if the request failed."""
        pass
