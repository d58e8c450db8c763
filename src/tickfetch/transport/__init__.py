"""
Transport providers for tickfetch.

This package defines the narrow interface the client consumes to open
connections, along with a scriptable mock provider and a real
non-blocking socket provider.
"""

from .connection import TransportConnection
from .provider import TransportProvider
from .mock import MockConnection, MockResponse, MockTransportProvider
from .socket_transport import SocketConnection, SocketState, SocketTransportProvider
from .utils import (
    build_request_headers,
    create_ssl_context,
    format_host_header,
    merge_response_headers,
    parse_header_lines,
)

__all__ = [
    "TransportConnection",
    "TransportProvider",
    "MockConnection",
    "MockResponse",
    "MockTransportProvider",
    "SocketConnection",
    "SocketState",
    "SocketTransportProvider",
    "build_request_headers",
    "create_ssl_context",
    "format_host_header",
    "merge_response_headers",
    "parse_header_lines",
]
