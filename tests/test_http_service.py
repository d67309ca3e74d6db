from __future__ import annotations

import contextlib
import socket

import pytest
from aiohttp import web

from mcp_servers.lens.errors import PortUnavailableError
from mcp_servers.lens.http_client import HttpClientError, http_json
from mcp_servers.lens.http_service import LoopbackHttpService, is_loopback_origin


class EchoService(LoopbackHttpService):
    thread_name = "test-echo"

    def __init__(self, port: int = 0, port_fallbacks: int = 0) -> None:
        super().__init__(port=port, port_fallbacks=port_fallbacks)
        self.stopped = False

    def _build_app(self) -> web.Application:
        app = web.Application()

        async def _echo(request: web.Request) -> web.Response:
            return web.json_response({"path": request.path, "query": dict(request.query)})

        app.router.add_get("/echo", _echo)
        return app

    async def _on_stopped(self) -> None:
        self.stopped = True


def test_start_stop_lifecycle() -> None:
    service = EchoService()
    assert service.port is None
    port = service.start()
    try:
        assert service.is_running
        assert service.port == port
        assert service.start() == port
        assert http_json(f"http://127.0.0.1:{port}/echo?a=1") == {"path": "/echo", "query": {"a": "1"}}
    finally:
        service.stop()
    assert service.port is None
    assert not service.is_running
    assert service.stopped


def test_context_manager() -> None:
    with EchoService() as service:
        assert service.port is not None
        port = service.port
    with pytest.raises(HttpClientError) as info:
        http_json(f"http://127.0.0.1:{port}/echo", timeout=2.0)
    assert info.value.refused or not info.value.timed_out


def test_busy_port_without_fallbacks() -> None:
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    port = blocker.getsockname()[1]
    service = EchoService(port=port)
    try:
        with pytest.raises(PortUnavailableError) as info:
            service.start()
        assert f"127.0.0.1:{port}" in str(info.value)
    finally:
        with contextlib.suppress(Exception):
            service.stop()
        blocker.close()


def test_port_candidates() -> None:
    assert EchoService(port=0, port_fallbacks=3).port_candidates() == [0]
    assert EchoService(port=4000, port_fallbacks=2).port_candidates() == [4000, 4001, 4002]
    assert EchoService(port=65535, port_fallbacks=2).port_candidates() == [65535]


@pytest.mark.parametrize(
    ("origin", "expected"),
    [
        ("http://localhost:3000", True),
        ("http://127.0.0.1", True),
        ("http://[::1]:8080", True),
        ("https://localhost.evil.com", False),
        ("null", False),
        ("", False),
    ],
)
def test_is_loopback_origin(origin: str, expected: bool) -> None:
    assert is_loopback_origin(origin) is expected


def test_http_json_refuses_non_loopback_hosts() -> None:
    with pytest.raises(HttpClientError, match="not a loopback"):
        http_json("http://example.com/")
    with pytest.raises(HttpClientError, match="Only http://"):
        http_json("https://127.0.0.1/")
