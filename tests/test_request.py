"""Unit tests for HTTP request-head parsing."""

import pytest

from request import HTTPRequest, HTTPRequestParseError


def test_parse_get_request_head() -> None:
    head = (
        b"GET /search?q=hello&lang=en HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: pytest"
    )

    request = HTTPRequest.from_message(head)

    assert request.method == "GET"
    assert request.path == "/search"
    assert request.raw_target == "/search?q=hello&lang=en"
    assert request.http_version == "HTTP/1.1"
    assert request.headers.get("host") == "localhost"
    assert request.body == b""
    assert request.keep_alive is True


def test_body_is_taken_as_given() -> None:
    head = b"POST /submit HTTP/1.1\r\nHost: localhost\r\nContent-Length: 5"

    request = HTTPRequest.from_message(head, b"World")

    assert request.method == "POST"
    assert request.headers.get("Content-Length") == "5"
    assert request.body == b"World"


def test_method_is_normalized_to_upper_case() -> None:
    request = HTTPRequest.from_message(b"delete /item HTTP/1.1\r\nHost: localhost")

    assert request.method == "DELETE"


@pytest.mark.parametrize("method", ["PROPFIND", "CONNECT", "PURGE", "X-CUSTOM_VERB"])
def test_any_method_token_is_accepted(method: str) -> None:
    request = HTTPRequest.from_message(f"{method} / HTTP/1.1\r\nHost: localhost".encode("ascii"))

    assert request.method == method


def test_repeated_request_headers_are_kept() -> None:
    head = (
        b"GET / HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Accept: text/xml\r\n"
        b"Accept: application/json"
    )

    request = HTTPRequest.from_message(head)

    assert request.headers.get_all("accept") == ["text/xml", "application/json"]
    assert request.headers.read_only is True


def test_connection_close_disables_keep_alive() -> None:
    head = b"GET / HTTP/1.1\r\nHost: localhost\r\nConnection: close"

    assert HTTPRequest.from_message(head).keep_alive is False


def test_http10_defaults_to_close() -> None:
    assert HTTPRequest.from_message(b"GET / HTTP/1.0").keep_alive is False
    assert HTTPRequest.from_message(b"GET / HTTP/1.0\r\nConnection: keep-alive").keep_alive is True


@pytest.mark.parametrize(
    ("head", "message"),
    [
        (b"BROKEN-LINE\r\nHost: localhost", "Invalid request line"),
        (b"GET  HTTP/1.1", "Invalid request line"),
        (b"GE(T / HTTP/1.1", "Invalid method token"),
        (b"GET / HTTX/1.1", "Invalid HTTP version"),
        (b"GET / HTTP/1.1\r\nno-colon-here", "Malformed header line"),
    ],
)
def test_malformed_heads_are_bad_requests(head: bytes, message: str) -> None:
    with pytest.raises(HTTPRequestParseError, match=message) as exc_info:
        HTTPRequest.from_message(head)

    assert exc_info.value.status_code == 400


def test_other_major_versions_are_not_supported() -> None:
    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_message(b"GET / HTTP/2.0\r\nHost: localhost")

    assert exc_info.value.status_code == 505
