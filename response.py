"""HTTP response head serialization and chunked body framing."""

from __future__ import annotations

from dataclasses import dataclass, field
from email.utils import formatdate

from config import SERVER_NAME
from headers import Headers

REASON_PHRASES: dict[int, str] = {
    100: "Continue",
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    409: "Conflict",
    413: "Payload Too Large",
    414: "URI Too Long",
    415: "Unsupported Media Type",
    422: "Unprocessable Entity",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}

CHUNKED_TERMINATOR = b"0\r\n\r\n"


@dataclass(slots=True)
class HTTPResponse:
    """A fixed-length response the listener sends before closing the connection."""

    status_code: int
    body: bytes | str = b""
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        headers = self.headers.copy()
        headers.setdefault("Content-Type", "text/plain; charset=utf-8")
        headers.set("Content-Length", str(len(self.body)))
        headers.set("Connection", "close")
        return build_response_head(self.status_code, headers) + bytes(self.body)


def reason_phrase(status_code: int) -> str:
    return REASON_PHRASES.get(status_code, "Unknown")


def build_response_head(status_code: int, headers: Headers) -> bytes:
    """Render the status line and header block, terminated by a blank line.

    ``Date`` and ``Server`` are added when the caller did not set them.
    Repeated header names are emitted once per value, in insertion order.
    """
    if not 100 <= status_code <= 999:
        raise ValueError(f"invalid status code: {status_code}")
    normalized_headers = headers.copy()
    normalized_headers.setdefault(
        "Date",
        formatdate(timeval=None, localtime=False, usegmt=True),
    )
    normalized_headers.setdefault("Server", SERVER_NAME)

    header_lines = [f"HTTP/1.1 {status_code} {reason_phrase(status_code)}"]
    header_lines.extend(f"{name}: {value}" for name, value in normalized_headers.items())
    return "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"


def encode_chunk(chunk: bytes) -> bytes:
    return f"{len(chunk):X}\r\n".encode("ascii") + chunk + b"\r\n"
