"""Client connection handle returned by the fixture's request helpers."""

from __future__ import annotations

import http.client
import io
from email.message import Message

from config import CLIENT_TIMEOUT_SECS

BODY_METHODS = {"POST", "PUT", "PATCH"}


class ClientConnection:
    """A connected request whose body and response are handled lazily.

    The TCP connection is opened on construction. Anything passed to
    ``write`` is buffered; the request goes out on the first access to the
    response (``response_code``, ``read`` and friends).
    """

    def __init__(
        self,
        host: str,
        port: int,
        method: str,
        path: str,
        *,
        timeout: float = CLIENT_TIMEOUT_SECS,
    ) -> None:
        self.host = host
        self.port = port
        self.method = method.upper()
        self.path = path
        self._request_headers: list[tuple[str, str]] = []
        self._body = io.BytesIO()
        self._response: http.client.HTTPResponse | None = None
        self._connection = http.client.HTTPConnection(host, port, timeout=timeout)
        self._connection.connect()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    @property
    def request_sent(self) -> bool:
        return self._response is not None

    @property
    def output_stream(self) -> io.BytesIO:
        self._check_not_sent()
        return self._body

    def set_request_header(self, name: str, value: str) -> None:
        self._check_not_sent()
        self._request_headers.append((name, value))

    def write(self, data: bytes | str) -> int:
        self._check_not_sent()
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self._body.write(data)

    @property
    def response(self) -> http.client.HTTPResponse:
        if self._response is None:
            self._response = self._send()
        return self._response

    @property
    def response_code(self) -> int:
        return self.response.status

    @property
    def response_message(self) -> str:
        return self.response.reason

    @property
    def response_headers(self) -> Message:
        return self.response.headers

    @property
    def input_stream(self) -> http.client.HTTPResponse:
        return self.response

    def get_header(self, name: str) -> str | None:
        return self.response.getheader(name)

    def get_headers(self, name: str) -> list[str]:
        return self.response.headers.get_all(name) or []

    def read(self) -> bytes:
        return self.response.read()

    def read_text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding)

    def read_line(self, encoding: str = "utf-8") -> str | None:
        """Read one line without its terminator, or ``None`` at end of body."""
        raw_line = self.response.readline()
        if not raw_line:
            return None
        return raw_line.decode(encoding).rstrip("\r\n")

    def close(self) -> None:
        if self._response is not None:
            self._response.close()
        self._connection.close()

    def __enter__(self) -> "ClientConnection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ClientConnection({self.method} {self.url})"

    def _send(self) -> http.client.HTTPResponse:
        body = self._body.getvalue()
        self._connection.putrequest(self.method, self.path, skip_accept_encoding=True)
        for name, value in self._request_headers:
            self._connection.putheader(name, value)
        # One request per connection.
        if not any(name.lower() == "connection" for name, _ in self._request_headers):
            self._connection.putheader("Connection", "close")
        if body or self.method in BODY_METHODS:
            self._connection.putheader("Content-Length", str(len(body)))
        self._connection.endheaders(body or None)
        return self._connection.getresponse()

    def _check_not_sent(self) -> None:
        if self._response is not None:
            raise RuntimeError("request already sent")
