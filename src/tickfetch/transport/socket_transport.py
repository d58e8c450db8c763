"""
Non-blocking socket transport for tickfetch.

This module implements a TransportProvider that speaks HTTP/1.1 over
plain or TLS sockets, using h11 for framing. All socket work happens in
``poll()``, which the client calls once per tick while a request is in
flight, so the host loop is never blocked on I/O.
"""

import errno
import logging
import select
import ssl
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import h11

from ..http_primitives import RequestBody, RequestHeaders
from .connection import Hook, TransportConnection
from .provider import TransportProvider
from .utils import (
    build_request_headers,
    create_connection_socket,
    create_ssl_context,
    format_host_header,
    get_socket_error,
    merge_response_headers,
)

logger = logging.getLogger(__name__)

AccessCheck = Callable[[str, int, Optional[str]], bool]

_CONNECT_IN_PROGRESS = {0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY}
_WOULD_BLOCK = (BlockingIOError, ssl.SSLWantReadError, ssl.SSLWantWriteError)


class SocketState(Enum):
    """States of a socket connection."""
    IDLE = "idle"                 # Created, request not yet issued
    CONNECTING = "connecting"     # TCP connect in progress
    HANDSHAKING = "handshaking"   # TLS handshake in progress
    SENDING = "sending"           # Writing the request
    RECEIVING = "receiving"       # Reading the response
    CLOSED = "closed"             # Finished, successfully or not


class SocketConnection(TransportConnection):
    """
    Single-use HTTP/1.1 connection over a non-blocking socket.

    The request is serialized by h11 when issued and written once the
    connection is up; the response is parsed incrementally, firing the
    hooks as h11 produces events.
    """

    DEFAULT_CONNECT_TIMEOUT = 5.0

    def __init__(
        self,
        provider: "SocketTransportProvider",
        host: str,
        port: int,
        use_tls: bool,
        ssl_context: Optional[ssl.SSLContext] = None,
        read_chunk_size: int = 65536,
    ):
        self._provider = provider
        self._host = host
        self._port = port
        self._use_tls = use_tls
        self._ssl_context = ssl_context
        self._read_chunk_size = read_chunk_size

        self._h11_connection = h11.Connection(h11.CLIENT)
        self._state = SocketState.IDLE
        self._sock = None
        self._address: Optional[tuple] = None
        self._connect_timeout = self.DEFAULT_CONNECT_TIMEOUT
        self._deadline: Optional[float] = None
        self._outgoing = bytearray()

        self._headers_hook: Optional[Hook] = None
        self._data_hook: Optional[Hook] = None
        self._complete_hook: Optional[Hook] = None

        self._inbox = bytearray()
        self._status: Optional[int] = None
        self._response_headers: Optional[Dict[str, str]] = None
        self._error: Optional[str] = None

        # Metrics
        self._bytes_sent = 0
        self._bytes_received = 0

    def set_connect_timeout(self, seconds: float) -> None:
        self._connect_timeout = seconds

    def on_headers_ready(self, callback: Hook) -> None:
        self._headers_hook = callback

    def on_data_available(self, callback: Hook) -> None:
        self._data_hook = callback

    def on_request_complete(self, callback: Hook) -> None:
        self._complete_hook = callback

    def issue_request(
        self,
        method: str,
        path: str,
        headers: Optional[RequestHeaders] = None,
        body: Optional[RequestBody] = None,
    ) -> Tuple[bool, Optional[str]]:
        if self._state != SocketState.IDLE:
            return False, "Request already issued on this connection"

        if isinstance(body, str):
            body = body.encode("utf-8")

        try:
            header_list = build_request_headers(
                headers,
                format_host_header(self._host, self._port, self._use_tls),
                len(body) if body else None,
            )
            self._send_event(h11.Request(method=method, target=path, headers=header_list))
            if body:
                self._send_event(h11.Data(data=body))
            self._send_event(h11.EndOfMessage())
        except (h11.LocalProtocolError, ValueError, UnicodeError) as e:
            logger.debug(f"Could not serialize request to {self._host}: {e}")
            return False, str(e)

        self._state = SocketState.CONNECTING
        self._provider._register(self)
        return True, None

    def _send_event(self, event: h11.Event) -> None:
        data = self._h11_connection.send(event)
        if data:
            self._outgoing.extend(data)

    def poll(self) -> None:
        """Advance the connection as far as it can go without blocking."""
        try:
            if self._state == SocketState.CONNECTING:
                self._poll_connect()
            if self._state == SocketState.HANDSHAKING:
                self._poll_handshake()
            if self._state == SocketState.SENDING:
                self._poll_send()
            if self._state == SocketState.RECEIVING:
                self._poll_receive()
        except h11.RemoteProtocolError as e:
            self._complete(f"Protocol error: {e}")
        except OSError as e:
            # Already closed means it came out of a completion hook
            if self._state == SocketState.CLOSED:
                raise
            self._complete(str(e) or e.__class__.__name__)

    def _poll_connect(self) -> None:
        if self._sock is None:
            try:
                self._sock, self._address = create_connection_socket(self._host, self._port)
            except (OSError, ValueError) as e:
                # IDNA encoding of a bad host name raises UnicodeError
                self._complete(f"Connection failed: {e}")
                return
            self._deadline = time.monotonic() + self._connect_timeout
            result = self._sock.connect_ex(self._address)
            if result not in _CONNECT_IN_PROGRESS:
                self._complete(f"Connection failed: {errno.errorcode.get(result, result)}")
                return
            logger.debug(f"Connecting to {self._host}:{self._port}")

        _, writable, _ = select.select([], [self._sock], [], 0)
        if not writable:
            self._check_deadline()
            return

        error = get_socket_error(self._sock)
        if error:
            self._complete(f"Connection failed: {error}")
            return

        if self._use_tls:
            context = self._ssl_context or create_ssl_context()
            self._sock = context.wrap_socket(
                self._sock,
                server_hostname=self._host,
                do_handshake_on_connect=False,
            )
            self._state = SocketState.HANDSHAKING
        else:
            self._state = SocketState.SENDING

    def _poll_handshake(self) -> None:
        try:
            self._sock.do_handshake()
        except _WOULD_BLOCK:
            self._check_deadline()
            return
        logger.debug(f"TLS established with {self._host}:{self._port}")
        self._state = SocketState.SENDING

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._complete("Connection timed out")

    def _poll_send(self) -> None:
        while self._outgoing:
            try:
                sent = self._sock.send(self._outgoing)
            except _WOULD_BLOCK:
                return
            del self._outgoing[:sent]
            self._bytes_sent += sent
        self._state = SocketState.RECEIVING

    def _poll_receive(self) -> None:
        while self._state == SocketState.RECEIVING:
            event = self._h11_connection.next_event()

            if event is h11.NEED_DATA:
                try:
                    data = self._sock.recv(self._read_chunk_size)
                except _WOULD_BLOCK:
                    return
                self._bytes_received += len(data)
                self._h11_connection.receive_data(data)
                continue

            if isinstance(event, h11.InformationalResponse):
                continue

            if isinstance(event, h11.Response):
                self._status = event.status_code
                self._response_headers = merge_response_headers(event.headers.raw_items())
                self._fire(self._headers_hook)
            elif isinstance(event, h11.Data):
                self._inbox.extend(event.data)
                self._fire(self._data_hook)
            elif isinstance(event, h11.EndOfMessage):
                self._complete(None)
            elif isinstance(event, h11.ConnectionClosed):
                self._complete("Connection closed unexpectedly")
            else:
                # PAUSED cannot happen before EndOfMessage on a client
                self._complete(f"Unexpected HTTP event: {event!r}")

    def _fire(self, hook: Optional[Hook]) -> None:
        if hook is not None:
            hook()

    def _complete(self, error: Optional[str]) -> None:
        if self._state == SocketState.CLOSED:
            return
        self._state = SocketState.CLOSED
        self._error = error
        self._release()

        if error:
            logger.debug(f"Request to {self._host}:{self._port} failed: {error}")
        else:
            logger.debug(
                f"Request to {self._host}:{self._port} finished "
                f"({self._bytes_sent} bytes sent, {self._bytes_received} received)"
            )
        self._fire(self._complete_hook)

    def close(self) -> None:
        """
        Close the connection.

        A request still under way completes with a "Connection closed"
        error.
        """
        if self._state in (SocketState.IDLE, SocketState.CLOSED):
            self._state = SocketState.CLOSED
            self._release()
        else:
            self._complete("Connection closed")

    def _release(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError as e:
                logger.warning(f"Error closing socket: {e}")
            self._sock = None
        self._provider._unregister(self)

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

    @property
    def state(self) -> SocketState:
        """Current connection state."""
        return self._state

    @property
    def metrics(self) -> Dict[str, int]:
        """Bytes sent and received on this connection."""
        return {
            "bytes_sent": self._bytes_sent,
            "bytes_received": self._bytes_received,
        }


class SocketTransportProvider(TransportProvider):
    """
    Transport provider backed by real sockets.

    Hooks fire from ``poll()``, never from ``open_connection`` or
    ``issue_request``.
    """

    DEFAULT_READ_CHUNK_SIZE = 65536

    def __init__(
        self,
        ssl_context: Optional[ssl.SSLContext] = None,
        allow: Optional[AccessCheck] = None,
        read_chunk_size: Optional[int] = None,
    ):
        """
        Initialize the provider.

        Args:
            ssl_context: Context for https connections; a verifying
                         default is created when None
            allow: Permission check called with ``(host, port,
                   access_reason)``; returning False denies access
            read_chunk_size: Maximum bytes read from a socket per call
        """
        self._ssl_context = ssl_context
        self._allow = allow
        self._read_chunk_size = read_chunk_size or self.DEFAULT_READ_CHUNK_SIZE
        self._active: List[SocketConnection] = []

    def open_connection(
        self,
        host: str,
        port: int,
        use_tls: bool,
        access_reason: Optional[str] = None,
    ) -> Optional[SocketConnection]:
        if self._allow is not None and not self._allow(host, port, access_reason):
            logger.debug(f"Access to {host}:{port} refused")
            return None

        if use_tls and self._ssl_context is None:
            self._ssl_context = create_ssl_context()

        return SocketConnection(
            self,
            host,
            port,
            use_tls,
            ssl_context=self._ssl_context,
            read_chunk_size=self._read_chunk_size,
        )

    def poll(self) -> None:
        for connection in list(self._active):
            connection.poll()

    def close(self) -> None:
        """Close every active connection."""
        for connection in list(self._active):
            connection.close()

    def _register(self, connection: SocketConnection) -> None:
        if connection not in self._active:
            self._active.append(connection)

    def _unregister(self, connection: SocketConnection) -> None:
        if connection in self._active:
            self._active.remove(connection)

    @property
    def active_connections(self) -> int:
        """Number of connections with I/O still pending."""
        return len(self._active)
