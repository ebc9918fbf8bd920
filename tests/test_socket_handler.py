"""Unit tests for request framing on raw sockets."""

import socket
import threading

import pytest

from config import MAX_BODY_BYTES, MAX_HEADER_BYTES, READ_CHUNK_SIZE
from response import HTTPResponse
from socket_handler import (
    HeaderTooLargeError,
    MalformedRequestError,
    PayloadTooLargeError,
    RequestMessage,
    SocketTimeoutError,
    decode_chunked_body,
    extract_http_request_message,
    read_http_request_message,
    write_http_response,
)


def test_extract_waits_for_complete_body() -> None:
    partial = b"POST / HTTP/1.1\r\nHost: localhost\r\nContent-Length: 5\r\n\r\nWor"

    assert extract_http_request_message(partial) is None


def test_extract_splits_head_and_body() -> None:
    raw = b"POST /submit HTTP/1.1\r\nHost: localhost\r\nContent-Length: 5\r\n\r\nWorld"

    extracted = extract_http_request_message(raw)

    assert extracted == (
        RequestMessage(
            head=b"POST /submit HTTP/1.1\r\nHost: localhost\r\nContent-Length: 5",
            body=b"World",
            wire_length=len(raw),
        ),
        b"",
    )


def test_extract_splits_pipelined_requests() -> None:
    first = b"GET /a HTTP/1.1\r\nHost: localhost\r\n\r\n"
    second = b"GET /b HTTP/1.1\r\nHost: localhost\r\n\r\n"

    extracted = extract_http_request_message(first + second)

    assert extracted is not None
    message, leftover = extracted
    assert message.head == first[:-4]
    assert message.wire_length == len(first)
    assert leftover == second


def test_extract_decodes_chunked_body() -> None:
    raw = (
        b"PUT / HTTP/1.1\r\nHost: localhost\r\nTransfer-Encoding: chunked\r\n\r\n"
        b"6;ext=1\r\nHello \r\n5\r\nAgain\r\n0\r\nX-Trailer: done\r\n\r\n"
    )

    extracted = extract_http_request_message(raw + b"extra")

    assert extracted is not None
    message, leftover = extracted
    assert message.body == b"Hello Again"
    assert message.wire_length == len(raw)
    assert leftover == b"extra"
    assert extract_http_request_message(raw[:-2]) is None


def test_decode_chunked_body_waits_for_terminator() -> None:
    assert decode_chunked_body(b"5\r\nAgain\r\n") is None
    assert decode_chunked_body(b"5\r\nAgain\r\n0\r\n\r\n") == (b"Again", 15)


@pytest.mark.parametrize(
    "encoded",
    [b"zz\r\nAgain\r\n0\r\n\r\n", b"5\r\nAgainXX0\r\n\r\n", b"0\r\nno-colon\r\n\r\n"],
)
def test_malformed_chunked_bodies_are_rejected(encoded: bytes) -> None:
    with pytest.raises(MalformedRequestError):
        decode_chunked_body(encoded)


def test_oversized_chunk_is_rejected_before_it_arrives() -> None:
    encoded = f"{MAX_BODY_BYTES + 1:X}\r\n".encode("ascii")

    with pytest.raises(PayloadTooLargeError):
        decode_chunked_body(encoded)


def test_chunked_with_content_length_is_malformed() -> None:
    message = (
        b"POST / HTTP/1.1\r\nHost: localhost\r\n"
        b"Transfer-Encoding: chunked\r\nContent-Length: 3\r\n\r\n"
    )

    with pytest.raises(MalformedRequestError):
        extract_http_request_message(message)


@pytest.mark.parametrize("value", [b"abc", b"-1", b"1.5"])
def test_invalid_content_length_is_malformed(value: bytes) -> None:
    message = b"POST / HTTP/1.1\r\nHost: localhost\r\nContent-Length: " + value + b"\r\n\r\n"

    with pytest.raises(MalformedRequestError, match="Invalid Content-Length"):
        extract_http_request_message(message)


def test_oversized_headers_are_rejected() -> None:
    message = b"GET / HTTP/1.1\r\nX-Big: " + b"a" * MAX_HEADER_BYTES

    with pytest.raises(HeaderTooLargeError):
        extract_http_request_message(message)


def test_oversized_body_is_rejected() -> None:
    message = (
        b"POST / HTTP/1.1\r\nHost: localhost\r\n"
        + f"Content-Length: {MAX_BODY_BYTES + 1}\r\n\r\n".encode("ascii")
    )

    with pytest.raises(PayloadTooLargeError):
        extract_http_request_message(message)


def test_read_returns_request_and_leftover() -> None:
    left, right = socket.socketpair()
    with left, right:
        right.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\nGET")

        message, leftover = read_http_request_message(left)

    assert message is not None
    assert message.head == b"GET / HTTP/1.1\r\nHost: localhost"
    assert message.body == b""
    assert leftover == b"GET"


def test_read_collects_body_larger_than_one_recv() -> None:
    body = b"x" * (READ_CHUNK_SIZE * 3 + 17)
    raw = f"POST / HTTP/1.1\r\nHost: localhost\r\nContent-Length: {len(body)}\r\n\r\n".encode("ascii")
    left, right = socket.socketpair()
    with left, right:
        sender = threading.Thread(target=right.sendall, args=(raw + body,))
        sender.start()
        message, leftover = read_http_request_message(left)
        sender.join()

    assert message is not None
    assert message.body == body
    assert leftover == b""


def test_read_returns_no_message_on_clean_close() -> None:
    left, right = socket.socketpair()
    with left:
        right.close()

        assert read_http_request_message(left) == (None, b"")


def test_read_raises_on_truncated_request() -> None:
    left, right = socket.socketpair()
    with left:
        right.sendall(b"GET / HTTP/1.1\r\nHost: local")
        right.close()

        with pytest.raises(MalformedRequestError, match="closed before request completed"):
            read_http_request_message(left)


def test_read_raises_timeout_error() -> None:
    left, right = socket.socketpair()
    with left, right:
        left.settimeout(0.05)

        with pytest.raises(SocketTimeoutError):
            read_http_request_message(left)


def test_write_http_response_reports_bytes_sent() -> None:
    left, right = socket.socketpair()
    with left, right:
        bytes_sent = write_http_response(left, HTTPResponse(status_code=503, body="busy"))
        received = right.recv(4096)

    assert bytes_sent == len(received)
    assert received.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
    assert received.endswith(b"busy")
