"""
HTTP primitives for tickfetch.

This module defines the URL parser and the core data structures that
flow through the client: the queued request descriptor and the
normalized response. Both records are immutable.
"""

import re
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    NamedTuple,
    Optional,
    Union,
)

from typing_extensions import TypedDict

from .exceptions import MalformedURLError
from .status import is_success, reason_phrase


# Type aliases for better readability
RequestHeaders = Union[str, Mapping[str, str]]
RequestBody = Union[str, bytes]
ResponseHeaders = Dict[str, str]
CompletionCallback = Callable[[Optional["Response"], Optional[Any]], None]

_URL_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://([^/:]+):?(\d*)(/?.*)$", re.DOTALL)


class FetchOptions(TypedDict, total=False):
    """Options accepted by ``HTTPClient.fetch``."""
    method: str
    headers: RequestHeaders
    body: RequestBody


class URLComponents(NamedTuple):
    """Immutable representation of a parsed URL."""
    scheme: str
    host: str
    port: Optional[int]
    path: str

    @property
    def use_tls(self) -> bool:
        """Whether the scheme calls for an encrypted connection."""
        return self.scheme == "https"

    @property
    def default_port(self) -> int:
        """The explicit port, or 443/80 depending on the scheme."""
        if self.port is not None:
            return self.port
        return 443 if self.use_tls else 80

    @property
    def request_path(self) -> str:
        """The path to request; never empty."""
        return self.path or "/"


def parse_url(url: str) -> URLComponents:
    """
    Parse ``scheme://host[:port][/path]`` into its components.

    The port is left as None when absent and the path is returned as
    written; see ``URLComponents.default_port`` and
    ``URLComponents.request_path`` for the defaulted values.

    Raises:
        MalformedURLError: If the URL does not match the pattern.
    """
    if not isinstance(url, str):
        raise MalformedURLError(repr(url))

    match = _URL_PATTERN.match(url)
    if match is None:
        raise MalformedURLError(url)

    scheme, host, port, path = match.groups()
    return URLComponents(
        scheme=scheme,
        host=host,
        port=int(port) if port else None,
        path=path,
    )


def _noop(response: Optional["Response"], error: Optional[Any]) -> None:
    pass


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Immutable description of one pending request.

    Created from a parsed URL and caller options, owned by the queue
    until dequeued and then by the transport session that runs it.
    A descriptor built from an unparseable URL has ``malformed`` set
    and no host or port. One whose options were unusable carries the
    reason in ``invalid`` and fails in the same way once dequeued.
    """

    host: Optional[str]
    port: Optional[int]
    use_tls: bool
    path: str
    method: str = "GET"
    headers: Optional[RequestHeaders] = None
    body: Optional[RequestBody] = None
    access_reason: Optional[str] = None
    on_complete: CompletionCallback = field(default=_noop, compare=False)
    url: str = ""
    malformed: bool = False
    invalid: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate descriptor data after initialization."""
        if not isinstance(self.method, str) or not self.method:
            raise ValueError("method must be a non-empty string")

        if not callable(self.on_complete):
            raise ValueError("on_complete must be callable")

        if self.malformed or self.invalid:
            return

        if not isinstance(self.host, str) or not self.host:
            raise ValueError("host must be a non-empty string")

        if not isinstance(self.port, int):
            raise ValueError("port must be int")

        if not self.path:
            raise ValueError("path must not be empty")

    @classmethod
    def from_url(
        cls,
        url: str,
        method: str = "GET",
        headers: Optional[RequestHeaders] = None,
        body: Optional[RequestBody] = None,
        access_reason: Optional[str] = None,
        on_complete: Optional[CompletionCallback] = None,
    ) -> "RequestDescriptor":
        """
        Build a descriptor from a URL string.

        An unparseable URL does not raise: the descriptor comes back
        marked ``malformed`` and fails once it is run.
        """
        callback = on_complete or _noop
        try:
            components = parse_url(url)
        except MalformedURLError:
            return cls(
                host=None,
                port=None,
                use_tls=False,
                path="/",
                method=method,
                headers=headers,
                body=body,
                access_reason=access_reason,
                on_complete=callback,
                url=url if isinstance(url, str) else repr(url),
                malformed=True,
            )

        return cls(
            host=components.host,
            port=components.default_port,
            use_tls=components.use_tls,
            path=components.request_path,
            method=method,
            headers=headers,
            body=body,
            access_reason=access_reason,
            on_complete=callback,
            url=url,
        )

    @classmethod
    def rejected(
        cls,
        url: str,
        reason: str,
        access_reason: Optional[str] = None,
        on_complete: Optional[CompletionCallback] = None,
    ) -> "RequestDescriptor":
        """Build a descriptor that fails with ``reason`` when it is run."""
        return cls(
            host=None,
            port=None,
            use_tls=False,
            path="/",
            access_reason=access_reason,
            on_complete=on_complete or _noop,
            url=url if isinstance(url, str) else repr(url),
            invalid=reason,
        )


@dataclass(frozen=True)
class Response:
    """
    Immutable, fully-drained HTTP response.

    A non-2xx status is still a response: ``ok`` is False but no error
    is reported.
    """

    ok: bool
    status: int
    status_text: str
    body: str
    headers: ResponseHeaders = field(default_factory=dict)
    content: bytes = b""

    @classmethod
    def create(
        cls,
        status: int,
        headers: Optional[ResponseHeaders] = None,
        content: bytes = b"",
    ) -> "Response":
        """
        Create a Response, deriving the classification fields.

        Args:
            status: HTTP status code
            headers: Response header mapping, empty when None
            content: The complete response body

        Returns:
            New Response instance
        """
        if not isinstance(status, int):
            raise ValueError("status must be int")

        return cls(
            ok=is_success(status),
            status=status,
            status_text=reason_phrase(status),
            body=content.decode("utf-8", errors="replace"),
            headers=dict(headers) if headers else {},
            content=content,
        )

    def get_header(self, name: str) -> Optional[str]:
        """Get a header value by name (case-insensitive)."""
        name_lower = name.lower()
        for header_name, header_value in self.headers.items():
            if header_name.lower() == name_lower:
                return header_value
        return None

    def has_header(self, name: str) -> bool:
        """Check if a header exists (case-insensitive)."""
        return self.get_header(name) is not None
