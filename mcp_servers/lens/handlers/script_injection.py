"""Script-injection backend.

Stateless: each call re-derives element state by running a query script in
the page. Input is simulated with synthetic DOM events, so it is best-effort
(no trusted events, no real focus handling by the browser).
"""

from __future__ import annotations

import base64
import io
import json
import logging
import time
from typing import Any, Protocol

from PIL import Image

from ..browser_session import BrowserSession
from ..console import ConsoleLog
from ..errors import NotFoundError, WaitTimeoutError
from . import scripts
from .base import (
    DEFAULT_RESPONSE_TIMEOUT_MS,
    AutomationHandler,
    DialogAction,
    MouseButton,
    ScrollDirection,
    scroll_delta,
    url_matches,
)
from .cdp_events import console_event_sink
from .page_queries import POLL_INTERVAL_S, PageQueryMixin

logger = logging.getLogger("mcp.lens.handlers")


class PageSurface(Protocol):
    """What the script backend needs from the host's page."""

    def execute_script(self, expression: str) -> Any: ...

    def load_url(self, url: str) -> None: ...

    def current_url(self) -> str: ...

    def reload(self) -> None: ...

    def capture_png(self) -> bytes: ...

    def set_width(self, width: int) -> None: ...

    def pump_events(self) -> None: ...


class CdpPageSurface:
    """PageSurface over a DevTools BrowserSession."""

    def __init__(self, session: BrowserSession, *, console: ConsoleLog | None = None, load_timeout: float = 10.0):
        self.session = session
        self.load_timeout = load_timeout
        if console is not None:
            session.conn.set_event_sink(console_event_sink(console))
            session.enable_domains("Page", "Runtime", "Log")

    def execute_script(self, expression: str) -> Any:
        self.pump_events()
        return self.session.eval_js(expression)

    def load_url(self, url: str) -> None:
        self.session.navigate(url, wait_load=True, timeout=self.load_timeout)

    def current_url(self) -> str:
        return self.session.get_url()

    def reload(self) -> None:
        self.session.reload(timeout=self.load_timeout)

    def capture_png(self) -> bytes:
        return base64.b64decode(self.session.screenshot())

    def set_width(self, width: int) -> None:
        self.session.set_viewport_width(width)

    def pump_events(self) -> None:
        self.session.conn.drain_events()

    def close(self) -> None:
        self.session.close()


def crop_png(png: bytes, rect: dict[str, Any]) -> bytes:
    """Crop a viewport capture to an element rect (CSS px scaled by devicePixelRatio)."""
    scale = float(rect.get("dpr") or 1)
    x = float(rect.get("x") or 0)
    y = float(rect.get("y") or 0)
    with Image.open(io.BytesIO(png)) as image:
        left = max(0, round(x * scale))
        top = max(0, round(y * scale))
        right = min(image.width, round((x + float(rect.get("width") or 0)) * scale))
        bottom = min(image.height, round((y + float(rect.get("height") or 0)) * scale))
        if right <= left or bottom <= top:
            raise NotFoundError("Element has no visible area to capture")
        out = io.BytesIO()
        image.crop((left, top, right, bottom)).save(out, format="PNG")
        return out.getvalue()


class ScriptInjectionHandler(PageQueryMixin, AutomationHandler):
    name = "script"

    def __init__(self, surface: PageSurface, console: ConsoleLog | None = None) -> None:
        super().__init__(console)
        self.surface = surface
        self._dialog_policy_set = False

    def _run(self, function_source: str, *args: Any) -> Any:
        return self.surface.execute_script(scripts.invoke_expression(function_source, *args))

    def sync_console(self) -> None:
        self.surface.pump_events()

    def close(self) -> None:
        closer = getattr(self.surface, "close", None)
        if callable(closer):
            closer()

    # ─────────────────────────────────────────────────────────────────────────
    # Page
    # ─────────────────────────────────────────────────────────────────────────

    def current_url(self) -> str:
        return self.surface.current_url()

    def navigate(self, url: str) -> dict[str, Any]:
        try:
            self.surface.load_url(url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("navigate(%s) failed: %s", url, exc)
            return {"success": False, "error": str(exc)}
        self._reapply_dialog_policy()
        return {"success": True}

    def reload(self) -> None:
        self.surface.reload()
        self._reapply_dialog_policy()

    def go_back(self) -> None:
        self._run(scripts.HISTORY_BACK)
        time.sleep(0.3)

    def go_forward(self) -> None:
        self._run(scripts.HISTORY_FORWARD)
        time.sleep(0.3)

    def set_viewport(self, width: int) -> None:
        self.surface.set_width(int(width))

    def _apply_dialog_policy(self, action: DialogAction) -> None:
        self._dialog_policy_set = True
        self._run(scripts.INSTALL_DIALOG_POLICY, action == "accept")

    def _reapply_dialog_policy(self) -> None:
        if not self._dialog_policy_set:
            return
        try:
            self._run(scripts.INSTALL_DIALOG_POLICY, self.dialog_action == "accept")
        except Exception as exc:  # noqa: BLE001
            logger.debug("dialog policy not re-applied: %s", exc)

    # ─────────────────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(self, selector: str | None = None) -> str:
        if not selector:
            return base64.b64encode(self.surface.capture_png()).decode("ascii")
        rect = self._run(scripts.ELEMENT_RECT, selector)
        if not isinstance(rect, dict):
            raise NotFoundError(f"Element not found: {selector}")
        return base64.b64encode(crop_png(self.surface.capture_png(), rect)).decode("ascii")

    def evaluate(self, script: str) -> Any:
        return self.surface.execute_script(script)

    def get_accessibility_snapshot(self) -> str:
        return json.dumps(self._run(scripts.ACCESSIBILITY_TREE, 10), indent=2, ensure_ascii=False)

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    def click(self, selector: str, button: MouseButton = "left", click_count: int = 1, delay: int = 0) -> None:
        if delay > 0:
            time.sleep(delay / 1000.0)
        self._require(self._run(scripts.CLICK, selector, button, max(1, int(click_count))), selector)

    def type_text(self, selector: str, text: str, clear_first: bool = False, delay: int = 0) -> None:
        self._require(self._run(scripts.TYPE_TEXT, selector, text, bool(clear_first), max(0, int(delay))), selector)

    def fill(self, selector: str, value: str) -> None:
        self._require(self._run(scripts.FILL, selector, value), selector)

    def hover(self, selector: str) -> None:
        self._require(self._run(scripts.HOVER, selector), selector)

    def press_key(self, key: str) -> None:
        self._run(scripts.PRESS_KEY, key)

    def drag_and_drop(self, source: str, target: str) -> None:
        missing = self._run(scripts.DRAG_AND_DROP, source, target)
        if missing == "source":
            raise NotFoundError(f"Element not found: {source}")
        if missing == "target":
            raise NotFoundError(f"Element not found: {target}")

    def scroll(
        self,
        selector: str | None = None,
        direction: ScrollDirection | None = None,
        distance: float | None = None,
    ) -> None:
        if selector:
            self._require(self._run(scripts.SCROLL, selector, 0, 0), selector)
            return
        dx, dy = scroll_delta(direction, distance)
        self._run(scripts.SCROLL, None, dx, dy)

    # ─────────────────────────────────────────────────────────────────────────
    # Waiting
    # ─────────────────────────────────────────────────────────────────────────

    def wait_for_response(self, pattern: str, timeout: int = DEFAULT_RESPONSE_TIMEOUT_MS) -> dict[str, Any]:
        """Poll the Resource Timing buffer for a resource started after this call."""
        deadline = time.monotonic() + max(0, int(timeout)) / 1000.0
        since = float(self._run(scripts.PERFORMANCE_NOW) or 0)
        while True:
            payload = self._run(scripts.RESOURCE_ENTRIES, since)
            entries = payload.get("entries") if isinstance(payload, dict) else None
            for entry in entries or []:
                url = str(entry.get("url") or "")
                if url_matches(pattern, url):
                    return {"url": url, "status": int(entry.get("status") or 0)}
            if time.monotonic() >= deadline:
                raise WaitTimeoutError(f"No response matching {pattern!r} within {timeout}ms")
            time.sleep(POLL_INTERVAL_S)


__all__ = ["CdpPageSurface", "PageSurface", "ScriptInjectionHandler", "crop_png"]
