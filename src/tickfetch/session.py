"""
Transport session implementation for tickfetch.

This module implements the TransportSession class that drives one
request descriptor through the transport provider's connection
lifecycle and turns the result into a normalized Response.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from .exceptions import (
    FetchError,
    InvalidRequestError,
    IssueError,
    MalformedURLError,
    PermissionDeniedError,
    ProtocolError,
    TransportError,
)
from .http_primitives import RequestDescriptor, Response
from .transport.connection import TransportConnection
from .transport.provider import TransportProvider

logger = logging.getLogger(__name__)

TerminalCallback = Callable[[Optional[Response], Optional[FetchError]], None]


class SessionState(Enum):
    """States of a transport session."""
    NEW = "new"             # Session created, not yet run
    OPENING = "opening"     # Waiting on the provider for a handle
    ACTIVE = "active"       # Request issued, hooks pending
    COMPLETE = "complete"   # Terminal callback fired


class TransportSession:
    """
    Per-request protocol driver.

    Opens a connection through the provider, wires the three lifecycle
    hooks, accumulates body bytes and reports exactly one terminal
    outcome: a Response or a FetchError.
    """

    DEFAULT_CONNECT_TIMEOUT = 5

    def __init__(
        self,
        descriptor: RequestDescriptor,
        provider: TransportProvider,
        connect_timeout: Optional[float] = None,
    ):
        """
        Initialize the session.

        Args:
            descriptor: The request to run
            provider: Source of connection handles
            connect_timeout: Connect timeout passed to the handle
        """
        self._descriptor = descriptor
        self._provider = provider
        if connect_timeout is None:
            connect_timeout = self.DEFAULT_CONNECT_TIMEOUT
        self._connect_timeout = connect_timeout
        self._state = SessionState.NEW
        self._connection: Optional[TransportConnection] = None
        self._on_terminal: Optional[TerminalCallback] = None

        self._status: Optional[int] = None
        self._headers: Optional[dict] = None
        self._buffer: List[bytes] = []

    def run(self, on_terminal: TerminalCallback) -> None:
        """
        Start the request.

        ``on_terminal`` is called exactly once, either before this method
        returns or from a later provider hook.

        Args:
            on_terminal: Receives ``(response, None)`` or ``(None, error)``
        """
        if self._state != SessionState.NEW:
            raise RuntimeError("Session has already been run")

        self._on_terminal = on_terminal
        descriptor = self._descriptor

        if descriptor.malformed:
            self._finish(None, MalformedURLError(descriptor.url))
            return

        if descriptor.invalid:
            self._finish(None, InvalidRequestError(descriptor.invalid))
            return

        self._state = SessionState.OPENING
        try:
            connection = self._provider.open_connection(
                descriptor.host,
                descriptor.port,
                descriptor.use_tls,
                descriptor.access_reason,
            )
        except Exception as e:
            logger.warning(f"Provider failed to open {descriptor.host}:{descriptor.port}: {e}")
            self._finish(None, PermissionDeniedError(cause=e))
            return

        if connection is None:
            logger.warning(f"Access to {descriptor.host}:{descriptor.port} denied")
            self._finish(None, PermissionDeniedError())
            return

        self._connection = connection
        try:
            connection.set_connect_timeout(self._connect_timeout)
            connection.on_headers_ready(self._headers_ready)
            connection.on_data_available(self._data_available)
            connection.on_request_complete(self._request_complete)
        except Exception as e:
            logger.warning(f"Could not configure connection to {descriptor.host}:{descriptor.port}: {e}")
            self._finish(None, TransportError(str(e) or e.__class__.__name__, cause=e))
            return

        self._state = SessionState.ACTIVE
        logger.debug(f"Issuing {descriptor.method} {descriptor.path} to {descriptor.host}:{descriptor.port}")

        try:
            ok, error = connection.issue_request(
                descriptor.method,
                descriptor.path,
                descriptor.headers,
                descriptor.body,
            )
        except Exception as e:
            # Raised from our own terminal callback when hooks fired synchronously
            if self._state == SessionState.COMPLETE:
                raise
            self._finish(None, IssueError(str(e) or e.__class__.__name__, cause=e))
            return

        if not ok:
            self._finish(None, IssueError(error or "Request could not be issued"))

    def _headers_ready(self) -> None:
        if self._state != SessionState.ACTIVE:
            return
        self._status = self._connection.response_status
        self._headers = self._connection.response_headers

    def _data_available(self) -> None:
        if self._state != SessionState.ACTIVE:
            return
        available = self._connection.bytes_available
        if available > 0:
            chunk = self._connection.read(available)
            if chunk:
                self._buffer.append(chunk)

    def _request_complete(self) -> None:
        if self._state != SessionState.ACTIVE:
            return

        error = self._connection.error
        if error:
            self._finish(None, TransportError(error))
            return

        if self._status is None:
            logger.warning(
                f"Request to {self._descriptor.host} completed before headers were received"
            )
            self._finish(None, ProtocolError("Request completed before response headers were received"))
            return

        response = Response.create(
            status=self._status,
            headers=self._headers,
            content=b"".join(self._buffer),
        )
        self._finish(response, None)

    def _finish(self, response: Optional[Response], error: Optional[FetchError]) -> None:
        if self._state == SessionState.COMPLETE:
            return
        self._state = SessionState.COMPLETE
        self._buffer = []

        if error is not None:
            logger.debug(f"Request {self._descriptor.url} failed: {error}")
        else:
            logger.debug(f"Request {self._descriptor.url} -> {response.status} ({len(response.content)} bytes)")

        callback = self._on_terminal
        self._on_terminal = None
        callback(response, error)

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_complete(self) -> bool:
        """Check if the terminal callback has fired."""
        return self._state == SessionState.COMPLETE

    @property
    def descriptor(self) -> RequestDescriptor:
        """The request being run."""
        return self._descriptor
