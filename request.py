"""HTTP request model and request-head parser."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from headers import Headers

# RFC 9110 token characters; any such method is handed to the handler.
METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
HTTP_VERSION = re.compile(r"HTTP/(\d)\.(\d)")


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str
    raw_target: str = "/"
    headers: Headers = field(default_factory=lambda: Headers(read_only=True))
    body: bytes = b""
    keep_alive: bool = False

    @classmethod
    def from_message(cls, head: bytes, body: bytes = b"") -> "HTTPRequest":
        """Parse a request head; ``body`` is already de-framed."""
        lines = head.decode("iso-8859-1").split("\r\n")
        parts = lines[0].split(" ")
        if len(parts) != 3 or not all(parts):
            raise HTTPRequestParseError("Invalid request line")

        method, target, http_version = parts
        if not METHOD_TOKEN.fullmatch(method):
            raise HTTPRequestParseError("Invalid method token")

        version = HTTP_VERSION.fullmatch(http_version)
        if version is None:
            raise HTTPRequestParseError("Invalid HTTP version")
        if version.group(1) != "1":
            raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)

        header_pairs: list[tuple[str, str]] = []
        for line in lines[1:]:
            name, separator, value = line.partition(":")
            if not separator or not name.strip():
                raise HTTPRequestParseError("Malformed header line")
            header_pairs.append((name.strip(), value.strip()))
        headers = Headers(header_pairs, read_only=True)

        return cls(
            method=method.upper(),
            path=urlsplit(target).path or "/",
            raw_target=target,
            http_version=http_version,
            headers=headers,
            body=body,
            keep_alive=_is_keep_alive(version.group(2), headers.get("connection", "")),
        )


def _is_keep_alive(minor_version: str, connection_header: str) -> bool:
    token = connection_header.lower()
    if minor_version == "0":
        return "keep-alive" in token
    return "close" not in token
