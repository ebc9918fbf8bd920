"""One HTTP request/response exchange on a live client connection."""

from __future__ import annotations

import io
import logging
import socket

from headers import Headers
from request import HTTPRequest
from response import CHUNKED_TERMINATOR, build_response_head, encode_chunk
from router import HTTPContext

logger = logging.getLogger(__name__)

NO_RESPONSE_BODY = -1
CHUNKED_RESPONSE_BODY = None


class ExchangeStateError(RuntimeError):
    """Raised when an exchange operation is used out of order."""


class _ResponseBodyStream(io.RawIOBase):
    """Binary stream view of the exchange's response body."""

    def __init__(self, exchange: "HTTPExchange") -> None:
        super().__init__()
        self._exchange = exchange

    def writable(self) -> bool:
        return True

    def write(self, data: bytes | bytearray | memoryview) -> int:
        return self._exchange._write_body(bytes(data))

    def close(self) -> None:
        if not self.closed:
            self._exchange.close()
        super().close()


class HTTPExchange:
    """Request data plus the means to answer it exactly once.

    The handler sets ``response_headers``, calls ``send_response_headers``
    with the status code and the body length, writes the body through
    ``response_body`` and finally calls ``close``.

    ``response_length`` follows these rules: ``-1`` means no body, ``None``
    streams with chunked transfer encoding, any other value is the exact
    ``Content-Length``.
    """

    def __init__(
        self,
        request: HTTPRequest,
        client_socket: socket.socket,
        remote_address: tuple[str, int],
        *,
        context: HTTPContext | None = None,
        keep_alive: bool = False,
    ) -> None:
        self._request = request
        self._socket = client_socket
        self.remote_address = remote_address
        self.http_context = context
        self.keep_alive = keep_alive
        self.request_headers = request.headers
        self.request_body = io.BytesIO(request.body)
        self.response_headers = Headers()
        self.response_body = _ResponseBodyStream(self)
        self.response_code: int | None = None
        self.bytes_sent = 0
        self._headers_sent = False
        self._chunked = False
        self._body_allowed = True
        self._remaining: int | None = None
        self._closed = False

    @property
    def request_method(self) -> str:
        return self._request.method

    @property
    def request_uri(self) -> str:
        return self._request.raw_target

    @property
    def request_path(self) -> str:
        return self._request.path

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def completed(self) -> bool:
        """True once a full response went out and the exchange was closed."""
        return self._closed and self._headers_sent and not self._remaining

    def send_response_headers(self, status_code: int, response_length: int | None) -> None:
        if self._closed:
            raise ExchangeStateError("exchange is closed")
        if self._headers_sent:
            raise ExchangeStateError("response headers already sent")
        if response_length is not None and response_length < NO_RESPONSE_BODY:
            raise ValueError(f"invalid response length: {response_length}")

        headers = self.response_headers
        headers.remove("Content-Length")
        headers.remove("Transfer-Encoding")
        bodiless_status = status_code < 200 or status_code in (204, 304)
        if bodiless_status or response_length == NO_RESPONSE_BODY:
            self._body_allowed = False
            self._remaining = 0
            if not bodiless_status:
                headers.set("Content-Length", "0")
        elif response_length is CHUNKED_RESPONSE_BODY:
            self._chunked = True
            headers.set("Transfer-Encoding", "chunked")
        else:
            self._remaining = response_length
            headers.set("Content-Length", str(response_length))

        if self.request_method == "HEAD":
            self._remaining = 0
        if not self.keep_alive:
            headers.set("Connection", "close")

        head = build_response_head(status_code, headers)
        self._socket.sendall(head)
        self.bytes_sent += len(head)
        self.response_code = status_code
        self._headers_sent = True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._headers_sent:
            return
        if self._chunked and self.request_method != "HEAD":
            self._socket.sendall(CHUNKED_TERMINATOR)
            self.bytes_sent += len(CHUNKED_TERMINATOR)
        elif self._remaining:
            logger.warning(
                "exchange %s %s closed with %d body bytes unsent",
                self.request_method,
                self.request_path,
                self._remaining,
            )

    def _write_body(self, data: bytes) -> int:
        if not self._headers_sent:
            raise ExchangeStateError("response headers must be sent before the body")
        if self._closed:
            raise ExchangeStateError("exchange is closed")
        if not data:
            return 0
        if not self._body_allowed:
            raise ExchangeStateError("response was declared without a body")
        if self.request_method == "HEAD":
            return len(data)

        if self._chunked:
            payload = encode_chunk(data)
        else:
            assert self._remaining is not None
            if len(data) > self._remaining:
                raise ExchangeStateError("write exceeds declared Content-Length")
            self._remaining -= len(data)
            payload = data
        self._socket.sendall(payload)
        self.bytes_sent += len(payload)
        return len(data)
