"""Embeddable HTTP listener: bind, dispatch exchanges to path contexts, stop."""

from __future__ import annotations

import json
import logging
import socket
import threading
import time

from config import (
    ACCEPT_POLL_SECS,
    DEFAULT_HTTP_PORT,
    HOST,
    LISTEN_BACKLOG,
    LOG_FORMAT,
    MAX_KEEPALIVE_REQUESTS,
    REQUEST_QUEUE_SIZE,
    SOCKET_TIMEOUT_SECS,
    STOP_JOIN_TIMEOUT_SECS,
    WORKER_COUNT,
)
from exchange import HTTPExchange
from metrics import MetricsRegistry
from request import HTTPRequest, HTTPRequestParseError
from response import HTTPResponse, reason_phrase
from router import ContextRegistry, ExchangeHandler, HTTPContext
from socket_handler import (
    HeaderTooLargeError,
    HTTPReadError,
    MalformedRequestError,
    PayloadTooLargeError,
    SocketTimeoutError,
    read_http_request_message,
    write_http_response,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

READ_ERROR_STATUS: dict[type[HTTPReadError], int] = {
    MalformedRequestError: 400,
    SocketTimeoutError: 408,
    PayloadTooLargeError: 413,
    HeaderTooLargeError: 431,
}


class HTTPServer:
    """Threaded HTTP/1.1 listener that hands each exchange to a path context.

    ``start`` binds and returns once the accept loop is running; ``stop``
    closes the listening socket and every open client connection.
    """

    def __init__(
        self,
        host: str = HOST,
        port: int = DEFAULT_HTTP_PORT,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        log_format: str = LOG_FORMAT,
        socket_timeout_secs: float = SOCKET_TIMEOUT_SECS,
    ) -> None:
        if log_format not in ("plain", "json"):
            raise ValueError(f"Unsupported log format: {log_format}")
        self.host = host
        self.port = port
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.log_format = log_format
        self.socket_timeout_secs = socket_timeout_secs
        self.contexts = ContextRegistry()
        self.metrics = MetricsRegistry()

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._accept_thread: threading.Thread | None = None
        self._running = threading.Event()
        self._clients_lock = threading.Lock()
        self._clients: set[socket.socket] = set()

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def create_context(self, path: str, handler: ExchangeHandler) -> HTTPContext:
        return self.contexts.add_context(path, handler)

    def remove_context(self, path: str) -> None:
        self.contexts.remove_context(path)

    def start(self) -> None:
        """Bind the listening socket and start accepting in the background."""
        if self._server_socket is not None:
            raise RuntimeError("server already started")

        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(LISTEN_BACKLOG)
            server_socket.settimeout(ACCEPT_POLL_SECS)
        except OSError:
            server_socket.close()
            raise
        self._server_socket = server_socket
        self.port = server_socket.getsockname()[1]

        self._pool = ThreadPool(
            worker_count=self.worker_count,
            queue_size=self.request_queue_size,
            handler=self._handle_client,
            name_prefix=f"http-{self.port}-worker",
        )
        self._pool.start()
        self._running.set()
        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            args=(server_socket,),
            name=f"http-{self.port}-accept",
            daemon=True,
        )
        self._accept_thread.start()
        logger.info("listening on %s:%s", self.host, self.port)

    def stop(self) -> None:
        """Stop accepting, drop open connections and release the port."""
        was_running = self._running.is_set()
        self._running.clear()

        if self._accept_thread is not None:
            self._accept_thread.join(timeout=STOP_JOIN_TIMEOUT_SECS)
            self._accept_thread = None
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

        with self._clients_lock:
            open_clients = list(self._clients)
        for client_socket in open_clients:
            try:
                client_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                logger.debug("client socket already disconnected")

        if self._pool is not None:
            self._pool.shutdown(timeout=STOP_JOIN_TIMEOUT_SECS)
            self._pool = None
        if was_running:
            logger.info("stopped listener on %s:%s", self.host, self.port)

    def _accept_loop(self, server_socket: socket.socket) -> None:
        while self._running.is_set():
            try:
                client_socket, address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._running.is_set():
                    logger.exception("accept failed on %s:%s", self.host, self.port)
                break

            pool = self._pool
            if pool is None or not pool.submit(client_socket, address):
                self._send_queue_full_response(client_socket, address)

    def _send_queue_full_response(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
    ) -> None:
        with client_socket:
            started_at = time.perf_counter()
            response = HTTPResponse(status_code=503, body="Service Unavailable")
            try:
                bytes_sent = write_http_response(client_socket, response)
            except OSError:
                return
            self._record_and_log(
                address=address,
                method="-",
                path="-",
                status_code=503,
                bytes_in=0,
                bytes_out=bytes_sent,
                started_at=started_at,
            )

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            with self._clients_lock:
                self._clients.add(client_socket)
            self.metrics.connection_opened()
            client_socket.settimeout(self.socket_timeout_secs)
            carry = b""
            try:
                for served in range(MAX_KEEPALIVE_REQUESTS):
                    if not self._running.is_set():
                        return
                    started_at = time.perf_counter()
                    try:
                        message, carry = read_http_request_message(client_socket, carry)
                    except SocketTimeoutError as exc:
                        if served > 0:
                            return
                        self._reject(client_socket, address, exc, started_at)
                        return
                    except HTTPReadError as exc:
                        self._reject(client_socket, address, exc, started_at)
                        return
                    except OSError:
                        return

                    if message is None:
                        return

                    try:
                        request = HTTPRequest.from_message(message.head, message.body)
                    except HTTPRequestParseError as exc:
                        response = HTTPResponse(
                            status_code=exc.status_code,
                            body=reason_phrase(exc.status_code),
                        )
                        bytes_sent = write_http_response(client_socket, response)
                        self._record_and_log(
                            address=address,
                            method="-",
                            path="-",
                            status_code=exc.status_code,
                            bytes_in=message.wire_length,
                            bytes_out=bytes_sent,
                            started_at=started_at,
                        )
                        return

                    keep_alive = request.keep_alive and served + 1 < MAX_KEEPALIVE_REQUESTS
                    if not self._serve_exchange(
                        client_socket,
                        address,
                        request,
                        keep_alive=keep_alive,
                        bytes_in=message.wire_length,
                        started_at=started_at,
                    ):
                        return
            finally:
                with self._clients_lock:
                    self._clients.discard(client_socket)
                self.metrics.connection_closed()

    def _reject(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        exc: HTTPReadError,
        started_at: float,
    ) -> None:
        self.metrics.record_read_error(exc.__class__.__name__)
        status_code = READ_ERROR_STATUS.get(type(exc), 400)
        response = HTTPResponse(status_code=status_code, body=reason_phrase(status_code))
        try:
            bytes_sent = write_http_response(client_socket, response)
        except OSError:
            return
        self._record_and_log(
            address=address,
            method="-",
            path="-",
            status_code=status_code,
            bytes_in=0,
            bytes_out=bytes_sent,
            started_at=started_at,
        )

    def _serve_exchange(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        request: HTTPRequest,
        *,
        keep_alive: bool,
        bytes_in: int,
        started_at: float,
    ) -> bool:
        """Run one exchange; return whether the connection may be reused."""
        context = self.contexts.resolve(request.path)
        exchange = HTTPExchange(
            request,
            client_socket,
            address,
            context=context,
            keep_alive=keep_alive,
        )
        handler = context.handler if context is not None else _not_found
        reusable = False
        try:
            handler(exchange)
        except Exception:
            self.metrics.record_handler_error()
            logger.exception(
                "Unhandled error in handler for %s %s",
                request.method,
                request.path,
            )
            if not exchange.headers_sent:
                exchange.keep_alive = False
                try:
                    _send_plain(exchange, 500)
                except OSError:
                    logger.debug("client went away before the 500 response was sent")
        else:
            if not exchange.headers_sent:
                self.metrics.record_unanswered_exchange()
                logger.warning(
                    "handler for %s %s returned without sending a response",
                    request.method,
                    request.path,
                )
            exchange.close()
            reusable = keep_alive and exchange.completed
        finally:
            if not exchange.closed:
                try:
                    exchange.close()
                except OSError:
                    logger.debug("client went away before the exchange closed")

        if exchange.response_code is not None:
            self._record_and_log(
                address=address,
                method=request.method,
                path=request.path,
                status_code=exchange.response_code,
                bytes_in=bytes_in,
                bytes_out=exchange.bytes_sent,
                started_at=started_at,
                context_path=context.path if context is not None else None,
            )
        return reusable

    def _record_and_log(
        self,
        *,
        address: tuple[str, int],
        method: str,
        path: str,
        status_code: int,
        bytes_in: int,
        bytes_out: int,
        started_at: float,
        context_path: str | None = None,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        self.metrics.record_exchange(
            status_code,
            bytes_in=bytes_in,
            bytes_out=bytes_out,
            context_path=context_path,
        )
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": status_code,
            "bytes_in": bytes_in,
            "bytes_out": bytes_out,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_in=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
        )


def _send_plain(exchange: HTTPExchange, status_code: int) -> None:
    body = reason_phrase(status_code).encode("utf-8")
    exchange.response_headers.set("Content-Type", "text/plain; charset=utf-8")
    exchange.send_response_headers(status_code, len(body))
    exchange.response_body.write(body)
    exchange.close()


def _not_found(exchange: HTTPExchange) -> None:
    _send_plain(exchange, 404)
