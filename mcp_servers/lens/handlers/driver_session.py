"""Driver-session backend: a live DevTools connection to the host's page.

Input is real (``Input.*`` events), responses are awaited from the Network
domain, the accessibility snapshot comes from the browser's AX tree, and
JavaScript dialogs are answered as soon as ``Page.javascriptDialogOpening``
arrives.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from ..browser_session import BrowserSession, parse_key_combo
from ..console import ConsoleLog
from ..errors import NotFoundError, ProtocolError, WaitTimeoutError
from ..http_client import HttpClientError
from . import scripts
from .base import (
    DEFAULT_RESPONSE_TIMEOUT_MS,
    AutomationHandler,
    MouseButton,
    ScrollDirection,
    scroll_delta,
    url_matches,
)
from .cdp_events import CONSOLE_EVENTS, record_console_event
from .page_queries import PageQueryMixin

logger = logging.getLogger("mcp.lens.handlers")

_MAX_AX_DEPTH = 64


def build_ax_tree(nodes: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Fold ``Accessibility.getFullAXTree`` nodes into nested ``{role, name, children}``.

    Ignored nodes are skipped and their children promoted to the parent.
    """
    by_id = {str(n.get("nodeId")): n for n in nodes if isinstance(n, dict) and n.get("nodeId") is not None}
    if not by_id:
        return None
    child_ids = {str(c) for n in by_id.values() for c in n.get("childIds") or ()}
    root = next((n for n in by_id.values() if str(n.get("nodeId")) not in child_ids), None)
    if root is None:
        return None

    def _value(prop: Any) -> str:
        return str(prop.get("value") or "") if isinstance(prop, dict) else ""

    def _children(node: dict[str, Any], depth: int) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        if depth > _MAX_AX_DEPTH:
            return out
        for cid in node.get("childIds") or ():
            child = by_id.get(str(cid))
            if child is None:
                continue
            if child.get("ignored"):
                out.extend(_children(child, depth + 1))
                continue
            out.append(_fold(child, depth + 1))
        return out

    def _fold(node: dict[str, Any], depth: int) -> dict[str, Any]:
        item: dict[str, Any] = {"role": _value(node.get("role")), "name": _value(node.get("name"))}
        children = _children(node, depth)
        if children:
            item["children"] = children
        return item

    return _fold(root, 0)


class DriverSessionHandler(PageQueryMixin, AutomationHandler):
    name = "driver"

    def __init__(self, session: BrowserSession, console: ConsoleLog | None = None, *, load_timeout: float = 10.0):
        super().__init__(console)
        self.session = session
        self.load_timeout = load_timeout
        session.conn.set_event_sink(self._on_event)
        session.enable_domains("Page", "Runtime", "Log", "Network")

    def close(self) -> None:
        self.session.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────────────────

    def _on_event(self, event: dict[str, Any]) -> None:
        method = event.get("method")
        if method in CONSOLE_EVENTS:
            record_console_event(self.console, event)
        elif method == "Page.javascriptDialogOpening":
            self._answer_dialog(event.get("params") or {})

    def _answer_dialog(self, params: dict[str, Any]) -> None:
        accept = self.dialog_action == "accept"
        payload: dict[str, Any] = {"accept": accept}
        if accept and params.get("type") == "prompt":
            payload["promptText"] = str(params.get("defaultPrompt") or "")
        # The command that triggered the dialog is still waiting: do not block on this reply.
        self.session.conn.post("Page.handleJavaScriptDialog", payload)
        logger.info("JS %s dialog %s", params.get("type") or "dialog", "accepted" if accept else "dismissed")

    def sync_console(self) -> None:
        self.session.conn.drain_events()

    def _run(self, function_source: str, *args: Any) -> Any:
        return self.session.eval_js(scripts.invoke_expression(function_source, *args))

    def _element_center(self, selector: str) -> tuple[float, float]:
        rect = self._run(scripts.ELEMENT_RECT, selector)
        if not isinstance(rect, dict):
            raise NotFoundError(f"Element not found: {selector}")
        if float(rect.get("width") or 0) <= 0 or float(rect.get("height") or 0) <= 0:
            raise NotFoundError(f"Element is not visible: {selector}")
        return float(rect["cx"]), float(rect["cy"])

    # ─────────────────────────────────────────────────────────────────────────
    # Page
    # ─────────────────────────────────────────────────────────────────────────

    def current_url(self) -> str:
        return self.session.get_url()

    def navigate(self, url: str) -> dict[str, Any]:
        try:
            self.session.navigate(url, wait_load=True, timeout=self.load_timeout)
        except HttpClientError as exc:
            logger.warning("navigate(%s) failed: %s", url, exc)
            return {"success": False, "error": str(exc)}
        return {"success": True}

    def reload(self) -> None:
        self.session.reload(timeout=self.load_timeout)

    def _go_history(self, offset: int) -> None:
        index, entries = self.session.history()
        target = index + offset
        if not 0 <= target < len(entries):
            return
        self.session.go_to_history_entry(int(entries[target]["id"]), timeout=self.load_timeout)

    def go_back(self) -> None:
        self._go_history(-1)

    def go_forward(self) -> None:
        self._go_history(1)

    def set_viewport(self, width: int) -> None:
        self.session.set_viewport_width(int(width))

    # ─────────────────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(self, selector: str | None = None) -> str:
        if not selector:
            return self.session.screenshot()
        rect = self._run(scripts.ELEMENT_RECT, selector)
        if not isinstance(rect, dict):
            raise NotFoundError(f"Element not found: {selector}")
        if float(rect.get("width") or 0) <= 0 or float(rect.get("height") or 0) <= 0:
            raise NotFoundError("Element has no visible area to capture")
        clip = {k: float(rect[k]) for k in ("x", "y", "width", "height")}
        return self.session.screenshot(clip=clip)

    def evaluate(self, script: str) -> Any:
        return self.session.eval_js(script)

    def get_accessibility_snapshot(self) -> str:
        self.session.enable_domains("Accessibility")
        result = self.session.send("Accessibility.getFullAXTree")
        nodes = result.get("nodes") if isinstance(result.get("nodes"), list) else []
        return json.dumps(build_ax_tree(nodes), indent=2, ensure_ascii=False)

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    def click(self, selector: str, button: MouseButton = "left", click_count: int = 1, delay: int = 0) -> None:
        x, y = self._element_center(selector)
        self.session.click(x, y, button=button, click_count=max(1, int(click_count)), delay_ms=int(delay))

    def type_text(self, selector: str, text: str, clear_first: bool = False, delay: int = 0) -> None:
        self._require(self._run(scripts.FOCUS, selector, bool(clear_first)), selector)
        self.session.type_text(text, delay_ms=max(0, int(delay)))

    def fill(self, selector: str, value: str) -> None:
        self._require(self._run(scripts.FOCUS, selector, True), selector)
        self.session.type_text(value)

    def hover(self, selector: str) -> None:
        x, y = self._element_center(selector)
        self.session.move_mouse(x, y)

    def press_key(self, key: str) -> None:
        name, modifiers = parse_key_combo(key)
        if not name:
            raise ProtocolError(f"Unknown key: {key!r}")
        self.session.press_key(name, modifiers)

    def drag_and_drop(self, source: str, target: str) -> None:
        from_x, from_y = self._element_center(source)
        to_x, to_y = self._element_center(target)
        self.session.drag(from_x, from_y, to_x, to_y)

    def scroll(
        self,
        selector: str | None = None,
        direction: ScrollDirection | None = None,
        distance: float | None = None,
    ) -> None:
        if selector:
            self._require(self._run(scripts.ELEMENT_RECT, selector), selector)
            return
        dx, dy = scroll_delta(direction, distance)
        info = self.page_info()
        cx = float(info.get("width") or 0) / 2
        cy = float(info.get("height") or 0) / 2
        self.session.scroll(delta_x=dx, delta_y=dy, x=cx, y=cy)

    # ─────────────────────────────────────────────────────────────────────────
    # Waiting
    # ─────────────────────────────────────────────────────────────────────────

    def wait_for_response(self, pattern: str, timeout: int = DEFAULT_RESPONSE_TIMEOUT_MS) -> dict[str, Any]:
        """Wait for the next ``Network.responseReceived`` whose URL matches ``pattern``."""
        self.session.enable_domains("Network")
        # Only responses that arrive after this call count.
        self.session.conn.drain_events()
        self.session.conn.discard_events("Network.responseReceived")
        deadline = time.monotonic() + max(0, int(timeout)) / 1000.0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(f"No response matching {pattern!r} within {timeout}ms")
            params = self.session.wait_for_event("Network.responseReceived", timeout=remaining)
            if params is None:
                continue
            response = params.get("response") if isinstance(params.get("response"), dict) else {}
            url = str(response.get("url") or "")
            if url_matches(pattern, url):
                return {"url": url, "status": int(response.get("status") or 0)}


__all__ = ["DriverSessionHandler", "build_ax_tree"]
