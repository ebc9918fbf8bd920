"""Unit tests for HTTP response serialization."""

import pytest

from headers import Headers
from response import HTTPResponse, build_response_head, encode_chunk, reason_phrase


def test_response_serialization_sets_length_and_default_content_type() -> None:
    response = HTTPResponse(status_code=404, body="Not Found")

    raw = response.to_bytes()

    assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"Content-Type: text/plain; charset=utf-8\r\n" in raw
    assert b"Content-Length: 9\r\n" in raw
    assert b"Connection: close\r\n" in raw
    assert raw.endswith(b"\r\n\r\nNot Found")


def test_listener_response_always_closes_the_connection() -> None:
    response = HTTPResponse(status_code=503, headers=Headers([("Connection", "keep-alive")]))

    raw = response.to_bytes()

    assert b"Connection: close\r\n" in raw
    assert b"keep-alive" not in raw


def test_response_head_adds_date_and_server() -> None:
    head = build_response_head(200, Headers([("Content-Length", "0")]))

    assert head.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"\r\nDate: " in head
    assert b"\r\nServer: " in head
    assert head.endswith(b"\r\n\r\n")


def test_response_head_emits_each_header_value() -> None:
    headers = Headers([("Set-Cookie", "a=1"), ("Server", "fixture")])
    headers.add("Set-Cookie", "b=2")

    head = build_response_head(201, headers)

    assert head.startswith(b"HTTP/1.1 201 Created\r\n")
    assert b"Set-Cookie: a=1\r\nSet-Cookie: b=2\r\nServer: fixture\r\n" in head
    assert head.count(b"Server:") == 1


def test_response_head_rejects_invalid_status() -> None:
    with pytest.raises(ValueError, match="invalid status code"):
        build_response_head(42, Headers())


def test_unknown_status_has_generic_reason() -> None:
    assert reason_phrase(299) == "Unknown"


def test_encode_chunk_prefixes_hex_length() -> None:
    assert encode_chunk(b"x" * 26) == b"1A\r\n" + b"x" * 26 + b"\r\n"
