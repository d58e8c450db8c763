"""
Tests for the mock transport provider and transport utilities.
"""

import pytest

from tickfetch.transport import (
    MockTransportProvider,
    TransportConnection,
    TransportProvider,
    build_request_headers,
    format_host_header,
    merge_response_headers,
    parse_header_lines,
)


class TestMockTransportProvider:
    """Test cases for MockTransportProvider."""

    def test_is_transport_provider(self) -> None:
        """Test the mock implements the provider interfaces."""
        provider = MockTransportProvider()
        connection = provider.open_connection("example.com", 80, False)
        assert isinstance(provider, TransportProvider)
        assert isinstance(connection, TransportConnection)

    def test_records_open_calls(self) -> None:
        """Test every open_connection call is recorded."""
        provider = MockTransportProvider()
        provider.open_connection("example.com", 443, True, "reason")
        provider.open_connection("other.com", 80, False)
        assert provider.opened == [
            ("example.com", 443, True, "reason"),
            ("other.com", 80, False, None),
        ]
        assert len(provider.requests) == 2

    def test_deny(self) -> None:
        """Test a denying provider returns no handle."""
        provider = MockTransportProvider(deny=True)
        assert provider.open_connection("example.com", 80, False) is None
        assert provider.requests == []
        assert len(provider.opened) == 1

    def test_scripts_are_fifo(self) -> None:
        """Test scripted responses are used in order."""
        provider = MockTransportProvider()
        provider.add_response(201)
        provider.add_response(404)
        first = provider.open_connection("a", 80, False)
        second = provider.open_connection("b", 80, False)
        third = provider.open_connection("c", 80, False)
        assert first.script.status == 201
        assert second.script.status == 404
        assert third.script.status == 200

    def test_instant_delivery(self) -> None:
        """Test instant connections fire all hooks inside issue_request."""
        provider = MockTransportProvider()
        provider.add_response(200, {"X-A": "1"}, ["ab", "cd"])
        connection = provider.open_connection("example.com", 80, False)

        events = []
        connection.on_headers_ready(lambda: events.append(("headers", connection.response_status)))
        connection.on_data_available(lambda: events.append(("data", connection.read(connection.bytes_available))))
        connection.on_request_complete(lambda: events.append(("complete", connection.error)))

        assert connection.issue_request("GET", "/") == (True, None)
        assert events == [
            ("headers", 200),
            ("data", b"ab"),
            ("data", b"cd"),
            ("complete", None),
        ]
        assert connection.response_headers == {"X-A": "1"}
        assert connection.pending_events == 0

    def test_polled_delivery(self) -> None:
        """Test polled connections deliver one event per poll."""
        provider = MockTransportProvider(instant=False)
        provider.add_response(200, chunks=["x"])
        connection = provider.open_connection("example.com", 80, False)
        connection.issue_request("GET", "/")

        assert connection.response_status is None
        assert provider.active == [connection]

        provider.poll()
        assert connection.response_status == 200
        provider.poll()
        assert connection.bytes_available == 1
        provider.poll()
        assert provider.active == []
        assert provider.poll_count == 3

    def test_no_events_before_issue(self) -> None:
        """Test polling before the request is issued delivers nothing."""
        provider = MockTransportProvider(instant=False)
        connection = provider.open_connection("example.com", 80, False)
        provider.poll()
        assert connection.response_status is None
        assert connection.step() is False

    def test_error_script(self) -> None:
        """Test an error script completes without headers."""
        provider = MockTransportProvider()
        provider.add_response(error="Connection refused")
        connection = provider.open_connection("example.com", 80, False)
        connection.issue_request("GET", "/")
        assert connection.error == "Connection refused"
        assert connection.response_status is None

    def test_issue_error_script(self) -> None:
        """Test an issue error fails issue_request."""
        provider = MockTransportProvider()
        provider.add_response(issue_error="not connected")
        connection = provider.open_connection("example.com", 80, False)
        assert connection.issue_request("PUT", "/x", None, "body") == (False, "not connected")
        assert connection.method == "PUT"
        assert connection.body == "body"
        assert connection.issued is False

    def test_partial_read(self) -> None:
        """Test read returns at most the requested number of bytes."""
        provider = MockTransportProvider(instant=False)
        provider.add_response(200, chunks=["hello"])
        connection = provider.open_connection("example.com", 80, False)
        connection.issue_request("GET", "/")
        connection.step()
        connection.step()

        assert connection.read(2) == b"he"
        assert connection.bytes_available == 3
        assert connection.read(10) == b"llo"
        assert connection.read(10) == b""

    def test_reset(self) -> None:
        """Test reset clears recorded state."""
        provider = MockTransportProvider()
        provider.add_response(500)
        provider.open_connection("example.com", 80, False)
        provider.poll()
        provider.reset()
        assert provider.opened == []
        assert provider.requests == []
        assert provider.poll_count == 0
        assert provider.open_connection("example.com", 80, False).script.status == 200


class TestHeaderUtilities:
    """Test header normalization helpers."""

    def test_parse_header_lines(self) -> None:
        """Test raw header lines are split into pairs."""
        text = "Content-Type: application/json\r\nX-Token:  abc \n\nAccept: */*"
        assert parse_header_lines(text) == [
            ("Content-Type", "application/json"),
            ("X-Token", "abc"),
            ("Accept", "*/*"),
        ]

    def test_parse_header_value_with_colon(self) -> None:
        """Test only the first colon separates name and value."""
        assert parse_header_lines("Referer: http://example.com:8080/") == [
            ("Referer", "http://example.com:8080/"),
        ]

    def test_parse_malformed_line(self) -> None:
        """Test a line without a colon is rejected."""
        with pytest.raises(ValueError, match="Malformed header line"):
            parse_header_lines("NoColonHere")

    def test_build_adds_framing_headers(self) -> None:
        """Test Host, Content-Length and Connection are added."""
        headers = build_request_headers({"Accept": "*/*"}, "example.com", 12)
        assert headers == [
            ("Host", "example.com"),
            ("Accept", "*/*"),
            ("Content-Length", "12"),
            ("Connection", "close"),
        ]

    def test_build_keeps_caller_headers(self) -> None:
        """Test caller-supplied framing headers are not duplicated."""
        headers = build_request_headers(
            "host: api.example.com\nconnection: keep-alive\ncontent-length: 3",
            "example.com",
            3,
        )
        assert headers == [
            ("host", "api.example.com"),
            ("connection", "keep-alive"),
            ("content-length", "3"),
        ]

    def test_build_without_headers_or_body(self) -> None:
        """Test a bare request gets only Host and Connection."""
        assert build_request_headers(None, "example.com:8080") == [
            ("Host", "example.com:8080"),
            ("Connection", "close"),
        ]

    @pytest.mark.parametrize(
        "host, port, use_tls, expected",
        [
            ("example.com", 80, False, "example.com"),
            ("example.com", 443, True, "example.com"),
            ("example.com", 443, False, "example.com:443"),
            ("example.com", 8080, True, "example.com:8080"),
            ("::1", 8080, False, "[::1]:8080"),
        ],
    )
    def test_format_host_header(self, host, port, use_tls, expected) -> None:
        """Test the Host header omits default ports."""
        assert format_host_header(host, port, use_tls) == expected

    def test_merge_response_headers(self) -> None:
        """Test repeated response headers are joined."""
        raw = [
            (b"Content-Type", b"text/html"),
            (b"Set-Cookie", b"a=1"),
            (b"Set-Cookie", b"b=2"),
        ]
        assert merge_response_headers(raw) == {
            "Content-Type": "text/html",
            "Set-Cookie": "a=1, b=2",
        }
