"""Method-dispatching exchange handler that buffers the response body."""

from __future__ import annotations

import io
import logging
from collections.abc import Callable
from typing import BinaryIO, TextIO

from exchange import ExchangeStateError, HTTPExchange
from headers import Headers

logger = logging.getLogger(__name__)

HTTP_OK = 200

Hook = Callable[["ExchangeContext"], None]


class ResponseAlreadySentError(ExchangeStateError):
    """Raised when a response is sent twice for the same exchange."""


class ExchangeContext:
    """Per-exchange state handed to a hook.

    Holds the exchange, an in-memory response buffer, a UTF-8 text writer
    over that buffer and the status code once a response has been sent.
    A new context is built for every exchange, so hooks never share buffers.
    """

    def __init__(self, exchange: HTTPExchange) -> None:
        self.exchange = exchange
        self.buffer = io.BytesIO()
        self.response_writer: TextIO = io.TextIOWrapper(
            self.buffer,
            encoding="utf-8",
            newline="",
            write_through=True,
        )
        self.response_code_sent: int | None = None

    @property
    def request_method(self) -> str:
        return self.exchange.request_method

    @property
    def request_uri(self) -> str:
        return self.exchange.request_uri

    @property
    def request_body(self) -> BinaryIO:
        return self.exchange.request_body

    @property
    def request_headers(self) -> Headers:
        return self.exchange.request_headers

    @property
    def response_headers(self) -> Headers:
        return self.exchange.response_headers

    @property
    def response_sent(self) -> bool:
        return self.response_code_sent is not None

    def read_request_text(self, encoding: str = "utf-8") -> str:
        return self.request_body.read().decode(encoding)

    def send_response(self, response_code: int) -> None:
        """Send ``response_code`` with everything written so far, then close."""
        if self.response_code_sent is not None:
            raise ResponseAlreadySentError(
                f"response {self.response_code_sent} already sent for "
                f"{self.request_method} {self.request_uri}"
            )
        self.response_writer.flush()
        payload = self.buffer.getvalue()
        self.exchange.send_response_headers(response_code, len(payload))
        response_body = self.exchange.response_body
        response_body.write(payload)
        response_body.flush()
        self.exchange.close()
        self.response_code_sent = response_code


class SimpleHTTPHandler:
    """Calls one hook per GET/POST/PUT/DELETE and falls back to ``200 OK``.

    Hooks are supplied at construction time, or by overriding ``on_get``,
    ``on_post``, ``on_put`` and ``on_delete`` in a subclass. A hook that
    does not call ``send_response`` gets the buffered body sent with 200.
    Other methods skip straight to that default response.
    """

    def __init__(
        self,
        *,
        on_get: Hook | None = None,
        on_post: Hook | None = None,
        on_put: Hook | None = None,
        on_delete: Hook | None = None,
    ) -> None:
        self._hooks: dict[str, Hook | None] = {
            "GET": on_get,
            "POST": on_post,
            "PUT": on_put,
            "DELETE": on_delete,
        }

    def __call__(self, exchange: HTTPExchange) -> None:
        context = ExchangeContext(exchange)
        self.dispatch(context)
        if not context.response_sent:
            context.send_response(HTTP_OK)

    def dispatch(self, context: ExchangeContext) -> None:
        method = context.request_method.upper()
        if method == "GET":
            self.on_get(context)
        elif method == "POST":
            self.on_post(context)
        elif method == "PUT":
            self.on_put(context)
        elif method == "DELETE":
            self.on_delete(context)
        else:
            logger.debug("no hook for %s %s", method, context.request_uri)

    def on_get(self, context: ExchangeContext) -> None:
        self._run_hook("GET", context)

    def on_post(self, context: ExchangeContext) -> None:
        self._run_hook("POST", context)

    def on_put(self, context: ExchangeContext) -> None:
        self._run_hook("PUT", context)

    def on_delete(self, context: ExchangeContext) -> None:
        self._run_hook("DELETE", context)

    def _run_hook(self, method: str, context: ExchangeContext) -> None:
        hook = self._hooks[method]
        if hook is not None:
            hook(context)
