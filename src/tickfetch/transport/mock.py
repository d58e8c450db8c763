"""
Mock transport implementations for testing.

This module provides a scriptable in-memory TransportProvider. Tests
queue canned responses with ``add_response`` and then inspect what the
client opened and sent, without any network I/O.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..http_primitives import RequestBody, RequestHeaders
from .connection import Hook, TransportConnection
from .provider import TransportProvider

logger = logging.getLogger(__name__)

Chunk = Union[str, bytes]


@dataclass
class MockResponse:
    """A canned outcome for one mock connection."""
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    chunks: Sequence[Chunk] = ()
    error: Optional[str] = None
    issue_error: Optional[str] = None
    send_headers: bool = True


class MockConnection(TransportConnection):
    """
    Mock connection handle.

    The scripted events (headers, one data notification per chunk, and
    completion) are either delivered synchronously from
    ``issue_request`` or one per ``step()``.
    """

    def __init__(
        self,
        script: MockResponse,
        host: str,
        port: int,
        use_tls: bool,
        access_reason: Optional[str] = None,
    ) -> None:
        self.script = script
        self.host = host
        self.port = port
        self.use_tls = use_tls
        self.access_reason = access_reason
        self.connect_timeout: Optional[float] = None

        self.method: Optional[str] = None
        self.path: Optional[str] = None
        self.headers: Optional[RequestHeaders] = None
        self.body: Optional[RequestBody] = None
        self.issued = False

        self._hooks: Dict[str, Optional[Hook]] = {
            "headers": None,
            "data": None,
            "complete": None,
        }
        self._events: List[Tuple[str, Any]] = []
        self._inbox = bytearray()
        self._status: Optional[int] = None
        self._response_headers: Optional[Dict[str, str]] = None
        self._error: Optional[str] = None

    def set_connect_timeout(self, seconds: float) -> None:
        self.connect_timeout = seconds

    def on_headers_ready(self, callback: Hook) -> None:
        self._hooks["headers"] = callback

    def on_data_available(self, callback: Hook) -> None:
        self._hooks["data"] = callback

    def on_request_complete(self, callback: Hook) -> None:
        self._hooks["complete"] = callback

    def issue_request(
        self,
        method: str,
        path: str,
        headers: Optional[RequestHeaders] = None,
        body: Optional[RequestBody] = None,
    ) -> Tuple[bool, Optional[str]]:
        self.method = method
        self.path = path
        self.headers = headers
        self.body = body

        if self.script.issue_error is not None:
            return False, self.script.issue_error

        self.issued = True
        self._events = self._build_events()
        return True, None

    def _build_events(self) -> List[Tuple[str, Any]]:
        script = self.script
        if script.error is not None:
            return [("complete", script.error)]

        events: List[Tuple[str, Any]] = []
        if script.send_headers:
            events.append(("headers", None))
        for chunk in script.chunks:
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            events.append(("data", chunk))
        events.append(("complete", None))
        return events

    def step(self) -> bool:
        """
        Deliver the next scripted event.

        Returns:
            True if an event was delivered, False if none remain.
        """
        if not self._events:
            return False

        kind, value = self._events.pop(0)
        if kind == "headers":
            self._status = self.script.status
            self._response_headers = dict(self.script.headers)
        elif kind == "data":
            self._inbox.extend(value)
        elif kind == "complete":
            self._error = value

        hook = self._hooks[kind]
        if hook is not None:
            hook()
        return True

    def deliver_all(self) -> None:
        """Deliver every remaining scripted event."""
        while self.step():
            pass

    @property
    def pending_events(self) -> int:
        """Number of scripted events not yet delivered."""
        return len(self._events)

    def read(self, max_bytes: int) -> bytes:
        data = bytes(self._inbox[:max_bytes])
        del self._inbox[:max_bytes]
        return data

    @property
    def bytes_available(self) -> int:
        return len(self._inbox)

    @property
    def response_status(self) -> Optional[int]:
        return self._status

    @property
    def response_headers(self) -> Optional[Dict[str, str]]:
        return self._response_headers

    @property
    def error(self) -> Optional[str]:
        return self._error


class MockTransportProvider(TransportProvider):
    """
    Mock transport provider for testing.

    Responses are handed out in the order they were added; when none
    are scripted a bare 200 is used.
    """

    def __init__(self, deny: bool = False, instant: bool = True) -> None:
        """
        Initialize the mock provider.

        Args:
            deny: Refuse every connection, as a declined permission
                  prompt would.
            instant: Deliver all events from inside ``issue_request``.
                     Otherwise each ``poll()`` delivers one event.
        """
        self.deny = deny
        self.instant = instant
        self.opened: List[Tuple[str, int, bool, Optional[str]]] = []
        self.requests: List[MockConnection] = []
        self.poll_count = 0
        self._scripts: List[MockResponse] = []

    def add_response(
        self,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        chunks: Sequence[Chunk] = (),
        error: Optional[str] = None,
        issue_error: Optional[str] = None,
        send_headers: bool = True,
    ) -> MockResponse:
        """
        Script the outcome of the next unscripted connection.

        Args:
            status: Response status code
            headers: Response headers
            chunks: Body pieces, one data notification each
            error: Transport error reported on completion instead of a response
            issue_error: Make ``issue_request`` fail with this message
            send_headers: Whether the headers ready hook fires at all
        """
        script = MockResponse(
            status=status,
            headers=dict(headers or {}),
            chunks=list(chunks),
            error=error,
            issue_error=issue_error,
            send_headers=send_headers,
        )
        self._scripts.append(script)
        return script

    def open_connection(
        self,
        host: str,
        port: int,
        use_tls: bool,
        access_reason: Optional[str] = None,
    ) -> Optional[MockConnection]:
        self.opened.append((host, port, use_tls, access_reason))
        if self.deny:
            logger.debug(f"Mock provider denied {host}:{port}")
            return None

        script = self._scripts.pop(0) if self._scripts else MockResponse()
        connection = _InstantConnection(script, host, port, use_tls, access_reason) \
            if self.instant else MockConnection(script, host, port, use_tls, access_reason)
        self.requests.append(connection)
        return connection

    def poll(self) -> None:
        self.poll_count += 1
        for connection in list(self.requests):
            connection.step()

    @property
    def active(self) -> List[MockConnection]:
        """Connections with undelivered events."""
        return [c for c in self.requests if c.pending_events]

    def reset(self) -> None:
        """Forget all connections and scripted responses."""
        self.opened.clear()
        self.requests.clear()
        self._scripts.clear()
        self.poll_count = 0


class _InstantConnection(MockConnection):
    """Mock connection that completes before ``issue_request`` returns."""

    def issue_request(
        self,
        method: str,
        path: str,
        headers: Optional[RequestHeaders] = None,
        body: Optional[RequestBody] = None,
    ) -> Tuple[bool, Optional[str]]:
        result = super().issue_request(method, path, headers, body)
        if result[0]:
            self.deliver_all()
        return result
