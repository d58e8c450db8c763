"""
tickfetch - HTTP requests for cooperative main loops

Queue HTTP requests from code that must never block (game loops and
other poll-driven hosts) and receive a normalized response through a
callback once ``tick()`` has driven the request to completion.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .http_primitives import (
    FetchOptions,
    RequestDescriptor,
    Response,
    URLComponents,
    parse_url,
)
from .status import STATUS_TEXT, UNKNOWN_STATUS, reason_phrase
from .session import SessionState, TransportSession
from .scheduler import Scheduler
from .client import HTTPClient
from .exceptions import (
    FetchError,
    InvalidRequestError,
    IssueError,
    MalformedURLError,
    PermissionDeniedError,
    ProtocolError,
    TransportError,
)
from .transport import (
    MockTransportProvider,
    SocketTransportProvider,
    TransportConnection,
    TransportProvider,
)

__all__ = [
    "FetchOptions",
    "RequestDescriptor",
    "Response",
    "URLComponents",
    "parse_url",
    "STATUS_TEXT",
    "UNKNOWN_STATUS",
    "reason_phrase",
    "SessionState",
    "TransportSession",
    "Scheduler",
    "HTTPClient",
    "FetchError",
    "InvalidRequestError",
    "IssueError",
    "MalformedURLError",
    "PermissionDeniedError",
    "ProtocolError",
    "TransportError",
    "MockTransportProvider",
    "SocketTransportProvider",
    "TransportConnection",
    "TransportProvider",
]
