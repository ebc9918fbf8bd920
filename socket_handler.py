"""Request framing on client sockets: one message at a time, with carry-over."""

from __future__ import annotations

import socket
from dataclasses import dataclass

from config import (
    MAX_BODY_BYTES,
    MAX_HEADER_BYTES,
    MAX_REQUEST_BYTES,
    READ_CHUNK_SIZE,
)
from response import HTTPResponse


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when socket bytes do not form a complete HTTP request."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when HTTP headers exceed configured maximum size."""


class PayloadTooLargeError(HTTPReadError):
    """Raised when request body exceeds configured maximum size."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


@dataclass(slots=True, frozen=True)
class RequestMessage:
    """One framed request: its head, its decoded body and its size on the wire."""

    head: bytes
    body: bytes
    wire_length: int


def _scan_framing_headers(head: bytes) -> tuple[str | None, str | None]:
    transfer_encoding: str | None = None
    content_length: str | None = None
    for line in head.decode("iso-8859-1").split("\r\n")[1:]:
        name, separator, value = line.partition(":")
        if not separator:
            raise MalformedRequestError("Malformed header while reading request")
        normalized_name = name.strip().lower()
        if normalized_name == "transfer-encoding":
            transfer_encoding = value.strip().lower()
        elif normalized_name == "content-length":
            content_length = value.strip()
    return transfer_encoding, content_length


def _parse_content_length(raw_value: str | None) -> int:
    if raw_value is None:
        return 0
    if not raw_value.isdigit():
        raise MalformedRequestError("Invalid Content-Length header")
    content_length = int(raw_value)
    if content_length > MAX_BODY_BYTES:
        raise PayloadTooLargeError("Body exceeded MAX_BODY_BYTES")
    return content_length


def decode_chunked_body(encoded: bytes) -> tuple[bytes, int] | None:
    """Decode a chunked body from the front of ``encoded``.

    Returns ``(body, consumed_bytes)``, or ``None`` while the terminating
    chunk and trailer section have not fully arrived. Trailer fields are
    discarded.
    """
    position = 0
    decoded = bytearray()
    while True:
        line_end = encoded.find(b"\r\n", position)
        if line_end == -1:
            return None
        size_token = encoded[position:line_end].split(b";", 1)[0].strip()
        try:
            chunk_size = int(size_token, 16)
        except ValueError as exc:
            raise MalformedRequestError("Malformed chunk size") from exc
        position = line_end + 2

        if chunk_size == 0:
            while True:
                trailer_end = encoded.find(b"\r\n", position)
                if trailer_end == -1:
                    return None
                if trailer_end == position:
                    return bytes(decoded), trailer_end + 2
                if b":" not in encoded[position:trailer_end]:
                    raise MalformedRequestError("Malformed chunked trailer")
                position = trailer_end + 2

        chunk_end = position + chunk_size
        if len(decoded) + chunk_size > MAX_BODY_BYTES:
            raise PayloadTooLargeError("Decoded chunked body exceeded MAX_BODY_BYTES")
        if len(encoded) < chunk_end + 2:
            return None
        if encoded[chunk_end : chunk_end + 2] != b"\r\n":
            raise MalformedRequestError("Chunk missing CRLF terminator")
        decoded.extend(encoded[position:chunk_end])
        position = chunk_end + 2


def extract_http_request_message(buffer: bytes) -> tuple[RequestMessage, bytes] | None:
    """Split one complete request off the front of ``buffer``.

    Returns the framed message and the bytes left over after it, or ``None``
    while more bytes are needed.
    """
    if len(buffer) > MAX_REQUEST_BYTES:
        raise PayloadTooLargeError("Request exceeded MAX_REQUEST_BYTES")

    head_end = buffer.find(b"\r\n\r\n")
    if head_end == -1:
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
        return None
    if head_end + 4 > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    head = buffer[:head_end]
    body_start = head_end + 4
    transfer_encoding, raw_content_length = _scan_framing_headers(head)

    if transfer_encoding and "chunked" in transfer_encoding:
        if raw_content_length is not None:
            raise MalformedRequestError("Content-Length cannot be combined with chunked transfer")
        decoded = decode_chunked_body(buffer[body_start:])
        if decoded is None:
            return None
        body, consumed = decoded
        request_length = body_start + consumed
    else:
        request_length = body_start + _parse_content_length(raw_content_length)
        if len(buffer) < request_length:
            return None
        body = buffer[body_start:request_length]

    message = RequestMessage(head=head, body=body, wire_length=request_length)
    return message, buffer[request_length:]


def read_http_request_message(
    client_socket: socket.socket,
    initial_buffer: bytes = b"",
) -> tuple[RequestMessage | None, bytes]:
    """Read one HTTP/1.x request and return ``(message, leftover_bytes)``.

    ``message`` is ``None`` when the peer closes cleanly between requests.
    """
    buffer = bytearray(initial_buffer)

    while True:
        extracted = extract_http_request_message(bytes(buffer))
        if extracted is not None:
            return extracted

        try:
            chunk = client_socket.recv(READ_CHUNK_SIZE)
        except socket.timeout as exc:
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if not buffer:
                return None, b""
            raise MalformedRequestError("Connection closed before request completed")

        buffer.extend(chunk)


def write_http_response(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Write a complete listener-generated response and return bytes sent."""
    payload = response.to_bytes()
    client_socket.sendall(payload)
    return len(payload)
