"""pytest plugin providing the ``http_server`` fixture.

Enable it from a conftest with ``pytest_plugins = ["pytest_http_fixture"]``.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from config import DEFAULT_HTTP_PORT, HOST
from http_fixture import HTTPServerFixture


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("http-fixture", "test HTTP listener")
    group.addoption(
        "--http-fixture-host",
        default=HOST,
        help="host the http_server fixture binds (default: %(default)s)",
    )
    group.addoption(
        "--http-fixture-port",
        type=int,
        default=DEFAULT_HTTP_PORT,
        help="port the http_server fixture binds, 0 for any free port (default: %(default)s)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "http_fixture(host=None, port=None): override the http_server bind address for one test",
    )


@pytest.fixture()
def http_server(request: pytest.FixtureRequest) -> Iterator[HTTPServerFixture]:
    host = request.config.getoption("http_fixture_host")
    port = request.config.getoption("http_fixture_port")
    marker = request.node.get_closest_marker("http_fixture")
    if marker is not None:
        host = marker.kwargs.get("host") or host
        port = marker.kwargs.get("port", port)

    with HTTPServerFixture((host, port)) as fixture:
        yield fixture
