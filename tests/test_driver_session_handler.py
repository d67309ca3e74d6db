from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest

from mcp_servers.lens.browser_session import BrowserSession, parse_key_combo
from mcp_servers.lens.console import ConsoleLog
from mcp_servers.lens.errors import NotFoundError, ProtocolError, WaitTimeoutError
from mcp_servers.lens.handlers import scripts
from mcp_servers.lens.handlers.driver_session import DriverSessionHandler, build_ax_tree


class DummyConn:
    def __init__(self) -> None:
        self.timeout = 5.0
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.batches: list[list[dict[str, Any]]] = []
        self.posted: list[tuple[str, dict[str, Any]]] = []
        self.discarded: list[str] = []
        self.drained = 0
        self.sink: Callable[[dict[str, Any]], None] | None = None
        self.responses: dict[str, Any] = {}
        self.scripts: dict[str, Any] = {}
        self.events: dict[str, list[dict[str, Any]]] = {"Page.loadEventFired": [{}] * 10}

    def set_event_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None:
        self.sink = sink

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        self.sent.append((method, params))
        if method == "Runtime.evaluate":
            return self._evaluate(params["expression"])
        answer = self.responses.get(method, {})
        return answer(params) if callable(answer) else answer

    def _evaluate(self, expression: str) -> dict[str, Any]:
        for source, value in self.scripts.items():
            if expression.startswith(f"({source})(") or expression == source:
                return {"result": {"type": "object", "value": value}}
        return {"result": {"type": "undefined"}}

    def send_many(self, commands: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.batches.append(commands)
        return [{} for _ in commands]

    def post(self, method: str, params: dict[str, Any] | None = None) -> int:
        self.posted.append((method, params or {}))
        return len(self.posted)

    def drain_events(self, *, max_messages: int = 200) -> int:
        self.drained += 1
        return 0

    def discard_events(self, event_name: str) -> int:
        self.discarded.append(event_name)
        return 0

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        queue = self.events.get(event_name) or []
        return queue.pop(0) if queue else None

    def close(self) -> None:
        self.sent.append(("close", {}))

    def methods(self) -> list[str]:
        return [m for m, _ in self.sent]


def _handler(conn: DummyConn, console: ConsoleLog | None = None) -> DriverSessionHandler:
    return DriverSessionHandler(BrowserSession(conn, target_id="T1"), console or ConsoleLog())  # type: ignore[arg-type]


def test_construction_enables_domains_and_installs_sink() -> None:
    conn = DummyConn()
    handler = _handler(conn)
    assert conn.methods() == ["Page.enable", "Runtime.enable", "Log.enable", "Network.enable"]
    assert conn.sink is not None
    handler.close()
    assert conn.methods()[-1] == "close"


def test_click_dispatches_real_mouse_events_at_element_center() -> None:
    conn = DummyConn()
    conn.scripts[scripts.ELEMENT_RECT] = {"x": 40, "y": 10, "width": 20, "height": 20, "cx": 50, "cy": 20}
    handler = _handler(conn)

    handler.click("#go", button="left", click_count=2)

    assert ("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": 50.0, "y": 20.0, "button": "none"}) in conn.sent
    pressed, released = conn.batches[-1]
    assert pressed["params"]["type"] == "mousePressed"
    assert pressed["params"]["clickCount"] == 2
    assert released["params"]["type"] == "mouseReleased"


def test_click_on_missing_or_hidden_element() -> None:
    conn = DummyConn()
    handler = _handler(conn)
    with pytest.raises(NotFoundError, match="Element not found"):
        handler.click("#ghost")

    conn.scripts[scripts.ELEMENT_RECT] = {"x": 0, "y": 0, "width": 0, "height": 0, "cx": 0, "cy": 0}
    with pytest.raises(NotFoundError, match="not visible"):
        handler.hover("#hidden")


def test_dialogs_are_answered_without_blocking() -> None:
    conn = DummyConn()
    handler = _handler(conn)
    assert conn.sink is not None

    conn.sink({"method": "Page.javascriptDialogOpening", "params": {"type": "prompt", "defaultPrompt": "Ada"}})
    handler.set_dialog_handler("dismiss")
    conn.sink({"method": "Page.javascriptDialogOpening", "params": {"type": "confirm"}})

    assert conn.posted == [
        ("Page.handleJavaScriptDialog", {"accept": True, "promptText": "Ada"}),
        ("Page.handleJavaScriptDialog", {"accept": False}),
    ]


def test_console_events_land_in_the_log() -> None:
    console = ConsoleLog()
    conn = DummyConn()
    handler = _handler(conn, console)
    assert conn.sink is not None
    conn.sink(
        {
            "method": "Runtime.consoleAPICalled",
            "params": {"type": "error", "args": [{"type": "string", "value": "failed to fetch"}]},
        }
    )
    logs = handler.get_console_logs("error")
    assert [m["text"] for m in logs] == ["failed to fetch"]
    assert conn.drained == 1


def test_wait_for_response_skips_non_matching_urls() -> None:
    conn = DummyConn()
    conn.events["Network.responseReceived"] = [
        {"response": {"url": "http://localhost:3000/static/app.css", "status": 200}},
        {"response": {"url": "http://localhost:3000/api/users", "status": 404}},
    ]
    handler = _handler(conn)

    assert handler.wait_for_response("*/api/*", timeout=1000) == {"url": "http://localhost:3000/api/users", "status": 404}
    assert "Network.responseReceived" in conn.discarded

    with pytest.raises(WaitTimeoutError):
        handler.wait_for_response("/api/", timeout=20)


def test_navigate_reports_failed_loads() -> None:
    conn = DummyConn()
    handler = _handler(conn)
    assert handler.navigate("http://localhost:3000") == {"success": True}

    conn.responses["Page.navigate"] = {"errorText": "net::ERR_CONNECTION_REFUSED"}
    result = handler.navigate("http://localhost:3999")
    assert result["success"] is False
    assert "ERR_CONNECTION_REFUSED" in result["error"]


def test_history_navigation_stays_in_bounds() -> None:
    conn = DummyConn()
    conn.responses["Page.getNavigationHistory"] = {"currentIndex": 1, "entries": [{"id": 7}, {"id": 8}]}
    handler = _handler(conn)

    handler.go_back()
    handler.go_forward()
    assert [p for m, p in conn.sent if m == "Page.navigateToHistoryEntry"] == [{"entryId": 7}]


def test_typing_focuses_then_inserts_text() -> None:
    conn = DummyConn()
    conn.scripts[scripts.FOCUS] = True
    handler = _handler(conn)

    handler.type_text("#q", "hello", clear_first=True)
    assert ("Input.insertText", {"text": "hello"}) in conn.sent

    handler.press_key("Control+a")
    down, up = conn.batches[-1]
    assert down["params"]["modifiers"] == 2
    assert "text" not in down["params"]
    assert up["params"]["type"] == "keyUp"

    batches = len(conn.batches)
    with pytest.raises(ProtocolError, match="Unknown key"):
        handler.press_key("")
    assert len(conn.batches) == batches

    conn.scripts[scripts.FOCUS] = False
    with pytest.raises(NotFoundError):
        handler.fill("#gone", "x")


def test_scroll_wheel_at_viewport_center() -> None:
    conn = DummyConn()
    conn.scripts[scripts.PAGE_INFO] = {"url": "http://localhost:3000/", "title": "", "width": 800, "height": 600}
    handler = _handler(conn)

    handler.scroll()
    wheel = [p for m, p in conn.sent if m == "Input.dispatchMouseEvent" and p.get("type") == "mouseWheel"]
    assert wheel == [{"type": "mouseWheel", "x": 400.0, "y": 300.0, "deltaX": 0.0, "deltaY": 300.0}]


def test_accessibility_snapshot_folds_the_ax_tree() -> None:
    conn = DummyConn()
    conn.responses["Accessibility.getFullAXTree"] = {
        "nodes": [
            {"nodeId": "1", "role": {"value": "RootWebArea"}, "name": {"value": "Shop"}, "childIds": ["2"]},
            {"nodeId": "2", "ignored": True, "childIds": ["3", "4"]},
            {"nodeId": "3", "role": {"value": "button"}, "name": {"value": "Buy"}},
            {"nodeId": "4", "role": {"value": "link"}, "name": {"value": "Help"}},
        ]
    }
    handler = _handler(conn)

    snapshot = handler.get_accessibility_snapshot()
    assert json.loads(snapshot) == {
        "role": "RootWebArea",
        "name": "Shop",
        "children": [{"role": "button", "name": "Buy"}, {"role": "link", "name": "Help"}],
    }
    assert "Accessibility.enable" in conn.methods()


def test_build_ax_tree_handles_empty_input() -> None:
    assert build_ax_tree([]) is None
    assert build_ax_tree([{"nodeId": 1, "childIds": [1]}]) is None


def test_parse_key_combo() -> None:
    assert parse_key_combo("Enter") == ("Enter", 0)
    assert parse_key_combo("Control+Shift+K") == ("K", 10)
    assert parse_key_combo("Meta++") == ("+", 4)
    assert parse_key_combo("") == ("", 0)
