"""Test fixture that runs an HTTP listener for the duration of one test."""

from __future__ import annotations

import logging
from types import TracebackType

from client import ClientConnection
from config import (
    CLIENT_TIMEOUT_SECS,
    DEFAULT_HTTP_PORT,
    HOST,
    LOG_FORMAT,
    REQUEST_QUEUE_SIZE,
    WORKER_COUNT,
)
from router import ExchangeHandler
from server import HTTPServer

logger = logging.getLogger(__name__)

Address = tuple[str, int]


class TestFixture:
    """Resource acquired in ``set_up`` and released in ``tear_down``.

    Used as a context manager, ``tear_down`` runs on every exit path. When
    ``set_up`` fails part-way, ``tear_down`` still runs to release whatever
    was acquired, and the ``set_up`` error is the one that propagates. A
    ``tear_down`` failure never replaces an error raised by the test body.
    """

    __test__ = False

    def set_up(self) -> None:
        pass

    def tear_down(self) -> None:
        pass

    def __enter__(self) -> "TestFixture":
        try:
            self.set_up()
        except BaseException:
            try:
                self.tear_down()
            except Exception:
                logger.exception("tear_down failed after set_up error in %s", type(self).__name__)
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool:
        try:
            self.tear_down()
        except Exception:
            if exc is None:
                raise
            logger.exception(
                "tear_down failed in %s while %s was propagating",
                type(self).__name__,
                exc_type.__name__ if exc_type is not None else "an error",
            )
        return False


class HTTPServerFixture(TestFixture):
    """Starts an ``HTTPServer`` before a test and stops it afterwards.

    ``address`` may be ``None`` (``localhost:8000``), a port number or a
    ``(host, port)`` pair. Port ``0`` binds a free port; ``address`` reports
    the bound port once the fixture is set up.
    """

    def __init__(
        self,
        address: int | Address | None = None,
        *,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        log_format: str = LOG_FORMAT,
        client_timeout_secs: float = CLIENT_TIMEOUT_SECS,
    ) -> None:
        if address is None:
            address = (HOST, DEFAULT_HTTP_PORT)
        elif isinstance(address, int):
            address = (HOST, address)
        self._host, self._port = address
        self._worker_count = worker_count
        self._request_queue_size = request_queue_size
        self._log_format = log_format
        self._client_timeout_secs = client_timeout_secs
        self._server: HTTPServer | None = None
        self._connections: list[ClientConnection] = []

    @property
    def address(self) -> Address:
        if self._server is not None:
            return self._server.address
        return self._host, self._port

    @property
    def server(self) -> HTTPServer | None:
        return self._server

    def url(self, path: str = "/") -> str:
        host, port = self.address
        return f"http://{host}:{port}{path}"

    def set_up(self) -> None:
        if self._server is not None:
            raise RuntimeError("fixture is already set up")
        self._server = HTTPServer(
            self._host,
            self._port,
            worker_count=self._worker_count,
            request_queue_size=self._request_queue_size,
            log_format=self._log_format,
        )
        self._server.start()

    def tear_down(self) -> None:
        connections, self._connections = self._connections, []
        for connection in connections:
            connection.close()
        server, self._server = self._server, None
        if server is not None:
            server.stop()

    def add_handler(self, path: str, handler: ExchangeHandler) -> None:
        self._require_server().create_context(path, handler)

    def remove_handler(self, path: str) -> None:
        self._require_server().remove_context(path)

    def request(self, method: str, path: str) -> ClientConnection:
        host, port = self._require_server().address
        connection = ClientConnection(
            host,
            port,
            method,
            path,
            timeout=self._client_timeout_secs,
        )
        self._connections.append(connection)
        return connection

    def get(self, path: str) -> ClientConnection:
        return self.request("GET", path)

    def post(self, path: str) -> ClientConnection:
        return self.request("POST", path)

    def put(self, path: str) -> ClientConnection:
        return self.request("PUT", path)

    def delete(self, path: str) -> ClientConnection:
        return self.request("DELETE", path)

    def _require_server(self) -> HTTPServer:
        if self._server is None:
            raise RuntimeError("fixture is not set up; call set_up() or use it as a context manager")
        return self._server
