from __future__ import annotations

import contextlib
import json
import socket
import threading
import time
import urllib.request
from typing import Any
from urllib.error import HTTPError

import pytest

from mcp_servers.lens.bridge.client import BridgeClient
from mcp_servers.lens.bridge.server import BridgeServer
from mcp_servers.lens.config import LensConfig
from mcp_servers.lens.errors import (
    BackendFaultError,
    InvalidTargetError,
    NotConnectedError,
    NotFoundError,
    PortUnavailableError,
    ProtocolError,
    WaitTimeoutError,
)
from mcp_servers.lens.handlers.base import AutomationHandler, ElementDescriptor
from mcp_servers.lens.http_client import http_json

SECRET = "sk-" + "Z" * 32


def _free_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])
    finally:
        s.close()


class StubHandler(AutomationHandler):
    name = "stub"

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, Any]] = []

    def current_url(self) -> str:
        return "http://localhost:3000/"

    def navigate(self, url: str) -> dict[str, Any]:
        self.calls.append(("navigate", url))
        return {"success": True}

    def reload(self) -> None:
        self.calls.append(("reload", None))

    def go_back(self) -> None:
        self.calls.append(("go_back", None))

    def go_forward(self) -> None:
        self.calls.append(("go_forward", None))

    def set_viewport(self, width: int) -> None:
        self.calls.append(("set_viewport", width))

    def page_info(self) -> dict[str, Any]:
        return {"url": self.current_url(), "title": "Stub", "width": 1280, "height": 720}

    def dom_tree(self, max_depth: int) -> dict[str, Any] | None:
        return {"tagName": "body", "children": []}

    def inspect_element(self, selector: str | None = None) -> ElementDescriptor | None:
        if selector == "#missing":
            return None
        return self._remember(ElementDescriptor(tag_name="button", selector=selector or "body", id="go"))

    def inspect_element_at_point(self, x: float, y: float) -> ElementDescriptor | None:
        return ElementDescriptor(tag_name="div", selector=f"point({x:g},{y:g})")

    def highlight(self, selector: str, color: str = "#3b82f6", duration: int = 3000) -> None:
        self.calls.append(("highlight", (selector, color, duration)))

    def clear_highlights(self) -> None:
        self.calls.append(("clear_highlights", None))

    def screenshot(self, selector: str | None = None) -> str:
        return "iVBORw0KGgo" + SECRET

    def get_text(self, selector: str) -> str:
        if selector == "#gone":
            raise NotFoundError(f"Element not found: {selector}")
        return "Hello"

    def get_attribute(self, selector: str, name: str) -> str | None:
        return None

    def is_visible(self, selector: str) -> bool:
        return True

    def is_enabled(self, selector: str) -> bool:
        return False

    def is_checked(self, selector: str) -> bool:
        return True

    def evaluate(self, script: str) -> Any:
        if script == "leak":
            raise RuntimeError(f"failed with key {SECRET}")
        return {"note": f"key is {SECRET}", "n": 1}

    def get_accessibility_snapshot(self) -> str:
        return "{}"

    def click(self, selector: str, button: str = "left", click_count: int = 1, delay: int = 0) -> None:
        if selector == "#broken":
            raise RuntimeError("boom")
        self.calls.append(("click", (selector, button, click_count, delay)))

    def type_text(self, selector: str, text: str, clear_first: bool = False, delay: int = 0) -> None:
        self.calls.append(("type_text", (selector, text, clear_first)))

    def fill(self, selector: str, value: str) -> None:
        self.calls.append(("fill", (selector, value)))

    def select_option(self, selector: str, values: list[str]) -> list[str]:
        return list(values)

    def hover(self, selector: str) -> None:
        self.calls.append(("hover", selector))

    def press_key(self, key: str) -> None:
        self.calls.append(("press_key", key))

    def drag_and_drop(self, source: str, target: str) -> None:
        self.calls.append(("drag_and_drop", (source, target)))

    def scroll(self, selector: str | None = None, direction: str | None = None, distance: float | None = None) -> None:
        self.calls.append(("scroll", (selector, direction, distance)))

    def wait_for(self, selector: str, timeout: int = 5000, visible: bool = True) -> ElementDescriptor:
        raise WaitTimeoutError(f"Timed out after {timeout}ms waiting for {selector}")

    def wait_for_response(self, pattern: str, timeout: int = 30000) -> dict[str, Any]:
        return {"url": f"http://localhost:3000{pattern}", "status": 200}


def _start(handler: AutomationHandler | None = None) -> tuple[BridgeServer, BridgeClient]:
    server = BridgeServer(LensConfig(), port=0)
    if handler is not None:
        server.set_handler(handler)
    port = server.start()
    client = BridgeClient(base_url=f"http://127.0.0.1:{port}", timeout=5.0)
    return server, client


def test_navigate_reaches_bound_handler() -> None:
    handler = StubHandler()
    server, client = _start(handler)
    try:
        assert client.navigate("http://localhost:4000") == {"success": True}
        assert handler.calls == [("navigate", "http://localhost:4000")]
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_unbound_bridge_answers_not_connected() -> None:
    server, client = _start()
    try:
        with pytest.raises(NotConnectedError):
            client.inspect_element("#x")
        assert client.is_connected() is False
        assert client.health()["connected"] is False
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_unbound_bridge_checks_the_slot_before_params() -> None:
    server, client = _start()
    try:
        with pytest.raises(NotConnectedError):
            client.call("click", {})
        with pytest.raises(ProtocolError, match="Unknown method"):
            client.call("teleport")
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_foreign_navigation_is_refused_on_both_sides() -> None:
    handler = StubHandler()
    server, client = _start(handler)
    try:
        with pytest.raises(InvalidTargetError):
            client.navigate("https://example.com")

        envelope = http_json(f"{client.base_url}/", {"method": "navigate", "params": {"url": "http://localhost.evil.com"}})
        assert envelope["success"] is False
        assert envelope["kind"] == "InvalidTarget"
        assert handler.calls == []
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_commands_forward_decoded_params() -> None:
    handler = StubHandler()
    server, client = _start(handler)
    try:
        client.click("#go", click_count=2)
        client.type_text("#q", "hello", clear_first=True)
        client.scroll(direction="up")
        client.highlight("#go")
        assert client.select_option("select", ["a", "b"]) == ["a", "b"]
        assert client.get_text("h1") == "Hello"
        assert client.is_visible("h1") is True
        assert client.is_enabled("h1") is False
        assert client.get_attribute("h1", "title") is None
        assert client.wait_for_response("/api/users")["status"] == 200

        element = client.inspect_element("#go")
        assert element["tagName"] == "button"
        assert client.inspect_element("#missing") is None
        assert client.get_state()["lastInspectedElement"]["selector"] == "#go"

        assert handler.calls == [
            ("click", ("#go", "left", 2, 0)),
            ("type_text", ("#q", "hello", True)),
            ("scroll", (None, "up", None)),
            ("highlight", ("#go", "#3b82f6", 3000)),
        ]
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_handler_failures_map_to_kinds() -> None:
    server, client = _start(StubHandler())
    try:
        with pytest.raises(BackendFaultError, match="boom"):
            client.click("#broken")
        with pytest.raises(NotFoundError, match="#gone"):
            client.get_text("#gone")
        with pytest.raises(WaitTimeoutError):
            client.wait_for(".spinner", timeout=50)
        with pytest.raises(ProtocolError, match="Unknown method"):
            client.call("teleport")
        with pytest.raises(ProtocolError, match="missing required parameter 'selector'"):
            client.call("click", {})
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_results_and_errors_are_redacted_but_images_are_not() -> None:
    server, client = _start(StubHandler())
    try:
        envelope = http_json(f"{client.base_url}/", {"method": "evaluate", "params": {"script": "x"}})
        assert envelope["success"] is True
        assert envelope["result"] == {"note": "key is [REDACTED:OpenAI]", "n": 1}
        assert envelope["redactedCount"] == 1

        failure = http_json(f"{client.base_url}/", {"method": "evaluate", "params": {"script": "leak"}})
        assert failure["success"] is False
        assert failure["kind"] == "BackendFault"
        assert SECRET not in failure["error"]
        assert failure["redactedCount"] == 1

        assert client.screenshot().endswith(SECRET)
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_method_path_route_and_health() -> None:
    server, client = _start(StubHandler())
    try:
        envelope = http_json(f"{client.base_url}/getState", {})
        assert envelope["success"] is True
        assert envelope["result"]["connected"] is True
        assert envelope["result"]["currentUrl"] == "http://localhost:3000/"

        health = client.health()
        assert health["status"] == "ok"
        assert health["backend"] == "stub"
        assert client.is_connected() is True
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_non_json_body_is_a_400() -> None:
    server, client = _start(StubHandler())
    try:
        opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
        req = urllib.request.Request(
            f"{client.base_url}/", data=b"{not json", headers={"Content-Type": "application/json"}, method="POST"
        )
        with pytest.raises(HTTPError) as info:
            opener.open(req, timeout=5)
        assert info.value.code == 400
        body = json.loads(info.value.read().decode("utf-8"))
        assert body["success"] is False
        assert body["kind"] == "ProtocolError"
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_cors_preflight_only_echoes_loopback_origins() -> None:
    server, client = _start()
    try:
        opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
        local = urllib.request.Request(f"{client.base_url}/", headers={"Origin": "http://localhost:3000"}, method="OPTIONS")
        with opener.open(local, timeout=5) as resp:
            assert resp.status == 204
            assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"

        foreign = urllib.request.Request(f"{client.base_url}/", headers={"Origin": "https://evil.com"}, method="OPTIONS")
        with opener.open(foreign, timeout=5) as resp:
            assert resp.status == 204
            assert resp.headers.get("Access-Control-Allow-Origin") is None
    finally:
        with contextlib.suppress(Exception):
            server.stop()


def test_set_handler_returns_previous() -> None:
    server = BridgeServer(LensConfig(), port=0)
    first, second = StubHandler(), StubHandler()
    assert server.set_handler(first) is None
    assert server.set_handler(second) is first
    assert server.get_handler() is second
    assert server.set_handler(None) is second
    assert server.connected is False


def test_bridge_fails_fast_when_port_is_taken() -> None:
    port = _free_port()
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", port))
    blocker.listen(1)
    server = BridgeServer(LensConfig(), port=port)
    try:
        assert server.port_candidates() == [port]
        with pytest.raises(PortUnavailableError) as info:
            server.start()
        assert info.value.port == port
    finally:
        with contextlib.suppress(Exception):
            server.stop()
        blocker.close()


def test_client_without_bridge_is_not_connected() -> None:
    client = BridgeClient(base_url=f"http://127.0.0.1:{_free_port()}", timeout=2.0)
    assert client.is_connected() is False
    with pytest.raises(NotConnectedError, match="not reachable"):
        client.reload()


def test_deeply_nested_body_is_a_protocol_error() -> None:
    server, client = _start(StubHandler())
    try:
        opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
        req = urllib.request.Request(f"{client.base_url}/", data=b"[" * 200_000, method="POST")
        with pytest.raises(HTTPError) as info:
            opener.open(req, timeout=5)
        assert info.value.code == 400
        body = json.loads(info.value.read().decode("utf-8"))
        assert body["success"] is False
        assert body["kind"] == "ProtocolError"
        assert client.health()["status"] == "ok"
    finally:
        with contextlib.suppress(Exception):
            server.stop()


class RecordingHandler(StubHandler):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.events: list[tuple[str, str]] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def get_text(self, selector: str) -> str:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.events.append(("enter", selector))
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
            self.events.append(("exit", selector))
        return f"text of {selector}"


def test_concurrent_commands_run_one_at_a_time_in_arrival_order() -> None:
    handler = RecordingHandler(delay=0.15)
    server, client = _start(handler)
    results: dict[str, str] = {}
    selectors = [f"#item{i}" for i in range(4)]

    def read(selector: str) -> None:
        results[selector] = client.get_text(selector)

    threads = []
    try:
        for selector in selectors:
            t = threading.Thread(target=read, args=(selector,))
            t.start()
            threads.append(t)
            time.sleep(0.05)
        for t in threads:
            t.join(timeout=10)

        assert handler.peak == 1
        assert handler.events == [ev for s in selectors for ev in (("enter", s), ("exit", s))]
        assert results == {s: f"text of {s}" for s in selectors}
    finally:
        with contextlib.suppress(Exception):
            server.stop()


class GatedHandler(StubHandler):
    name = "old"

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def get_text(self, selector: str) -> str:
        self.entered.set()
        self.release.wait(timeout=5)
        return "from the old page"


def test_in_flight_command_keeps_the_handler_it_started_with() -> None:
    old = GatedHandler()
    server, client = _start(old)
    out: dict[str, str] = {}
    worker = threading.Thread(target=lambda: out.update(text=client.get_text("h1")))
    try:
        worker.start()
        assert old.entered.wait(timeout=5)

        replacement = StubHandler()
        assert server.set_handler(replacement) is old
        old.release.set()
        worker.join(timeout=5)

        assert out["text"] == "from the old page"
        assert client.get_text("h1") == "Hello"
        assert client.health()["backend"] == "stub"
    finally:
        old.release.set()
        with contextlib.suppress(Exception):
            server.stop()
