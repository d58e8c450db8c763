"""
Transport utilities for tickfetch.

Helpers shared by the socket transport: socket and SSL context setup,
and request header normalization.
"""

import os
import socket
import ssl
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

HeaderList = List[Tuple[str, str]]


def create_ssl_context(
    verify_mode: int = ssl.CERT_REQUIRED,
    check_hostname: bool = True,
) -> ssl.SSLContext:
    """
    Create a client SSL context.

    Args:
        verify_mode: SSL verification mode
        check_hostname: Whether to verify hostname

    Returns:
        Configured SSL context
    """
    context = ssl.create_default_context()
    context.check_hostname = check_hostname
    context.verify_mode = verify_mode
    context.options |= ssl.OP_NO_COMPRESSION
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def create_connection_socket(host: str, port: int) -> Tuple[socket.socket, tuple]:
    """
    Resolve ``host`` and create a non-blocking socket for it.

    Name resolution blocks; everything after it does not.

    Returns:
        The socket and the address to connect it to

    Raises:
        OSError: If resolution or socket creation fails
    """
    family, type_, proto, _, address = socket.getaddrinfo(
        host, port, type=socket.SOCK_STREAM
    )[0]
    sock = socket.socket(family, type_, proto)
    sock.setblocking(False)
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    return sock, address


def get_socket_error(sock: socket.socket) -> Optional[str]:
    """
    Get the pending error message for a socket.

    Returns:
        Error message or None if no error
    """
    try:
        error_code = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError as e:
        return str(e)
    if error_code == 0:
        return None
    return os.strerror(error_code)


def is_ipv6_address(host: str) -> bool:
    """Check if a host string is an IPv6 address."""
    try:
        socket.inet_pton(socket.AF_INET6, host)
        return True
    except (OSError, ValueError):
        return False


def format_host_header(host: str, port: int, use_tls: bool) -> str:
    """
    Format the Host header value.

    The port is left out when it is the default for the scheme.
    """
    if is_ipv6_address(host):
        host = f"[{host}]"
    if (use_tls and port == 443) or (not use_tls and port == 80):
        return host
    return f"{host}:{port}"


def parse_header_lines(text: str) -> HeaderList:
    """
    Parse raw ``Name: value`` lines.

    Raises:
        ValueError: If a non-empty line has no colon
    """
    headers: HeaderList = []
    for line in text.splitlines():
        if not line.strip():
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Malformed header line: {line!r}")
        headers.append((name.strip(), value.strip()))
    return headers


def build_request_headers(
    headers: Union[str, Mapping[str, str], None],
    host_header: str,
    body_length: Optional[int] = None,
) -> HeaderList:
    """
    Normalize caller headers into a list and add the framing headers.

    ``Host``, ``Content-Length`` (when there is a body) and
    ``Connection: close`` are added unless the caller set them.
    """
    if headers is None:
        header_list: HeaderList = []
    elif isinstance(headers, str):
        header_list = parse_header_lines(headers)
    else:
        header_list = [(str(name), str(value)) for name, value in headers.items()]

    present = {name.lower() for name, _ in header_list}
    if "host" not in present:
        header_list.insert(0, ("Host", host_header))
    if body_length is not None and not present & {"content-length", "transfer-encoding"}:
        header_list.append(("Content-Length", str(body_length)))
    if "connection" not in present:
        header_list.append(("Connection", "close"))
    return header_list


def merge_response_headers(raw_items: Iterable[Tuple[bytes, bytes]]) -> Dict[str, str]:
    """
    Flatten response headers into a mapping.

    Repeated headers are joined with ", ".
    """
    merged: Dict[str, str] = {}
    for name, value in raw_items:
        key = name.decode("latin-1")
        text = value.decode("latin-1")
        if key in merged:
            merged[key] = f"{merged[key]}, {text}"
        else:
            merged[key] = text
    return merged
