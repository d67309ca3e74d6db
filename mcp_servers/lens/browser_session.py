from __future__ import annotations

from typing import Any

from .http_client import HttpClientError
from .session_cdp import CdpConnection

_KEY_CODES = {
    "Enter": 13,
    "Tab": 9,
    "Escape": 27,
    "Backspace": 8,
    "Delete": 46,
    "Space": 32,
    "ArrowUp": 38,
    "ArrowDown": 40,
    "ArrowLeft": 37,
    "ArrowRight": 39,
    "Home": 36,
    "End": 35,
    "PageUp": 33,
    "PageDown": 34,
}

_MODIFIER_BITS = {"Alt": 1, "Control": 2, "Ctrl": 2, "Meta": 4, "Cmd": 4, "Shift": 8}


def parse_key_combo(combo: str) -> tuple[str, int]:
    """Split ``"Control+Shift+A"`` into the key and a CDP modifier bitmask."""
    parts = [p for p in (combo or "").split("+") if p]
    if not parts:
        return "", 0
    if combo.endswith("++"):
        parts.append("+")
    modifiers = 0
    for part in parts[:-1]:
        modifiers |= _MODIFIER_BITS.get(part, 0)
    return parts[-1], modifiers


class BrowserSession:
    """
    High-level page session.

    Wraps CdpConnection with the page operations the automation backends use.
    Use as context manager for automatic cleanup.
    """

    def __init__(self, connection: CdpConnection, target_id: str = "", url: str = ""):
        self.conn = connection
        self.target_id = target_id
        self.url = url
        self._enabled: set[str] = set()

    def __enter__(self) -> BrowserSession:
        self.enable_domains("Page", "Runtime")
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        self.conn.close()

    def enable_domains(self, *domains: str) -> None:
        """Enable CDP domains once per session (``Page``, ``Runtime``, ``Network``...)."""
        for domain in domains:
            if domain in self._enabled:
                continue
            self.conn.send(f"{domain}.enable")
            self._enabled.add(domain)

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.conn.send(method, params)

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        return self.conn.wait_for_event(event_name, timeout=timeout)

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def navigate(self, url: str, wait_load: bool = True, timeout: float = 10.0) -> str:
        """Navigate to URL, optionally waiting for load."""
        self.enable_domains("Page")
        self.conn.discard_events("Page.loadEventFired")
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text:
            raise HttpClientError(f"Navigation to {url} failed: {error_text}")
        if wait_load:
            self.wait_load(timeout)
        self.url = url
        return url

    def wait_load(self, timeout: float = 10.0) -> bool:
        return self.conn.wait_for_event("Page.loadEventFired", timeout) is not None

    def reload(self, ignore_cache: bool = False, timeout: float = 10.0) -> None:
        self.enable_domains("Page")
        self.conn.discard_events("Page.loadEventFired")
        self.conn.send("Page.reload", {"ignoreCache": ignore_cache})
        self.wait_load(timeout)

    def history(self) -> tuple[int, list[dict[str, Any]]]:
        """Current index and entries of the navigation history."""
        result = self.conn.send("Page.getNavigationHistory")
        entries = result.get("entries")
        return int(result.get("currentIndex") or 0), entries if isinstance(entries, list) else []

    def go_to_history_entry(self, entry_id: int, timeout: float = 10.0) -> None:
        self.enable_domains("Page")
        self.conn.discard_events("Page.loadEventFired")
        self.conn.send("Page.navigateToHistoryEntry", {"entryId": int(entry_id)})
        self.wait_load(timeout)

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def eval_js(self, expression: str, *, timeout: float | None = None) -> Any:
        """Evaluate JavaScript and return the JSON value (undefined/null -> None)."""
        self.enable_domains("Runtime")

        old_timeout: float | None = None
        if timeout is not None:
            old_timeout = self.conn.timeout
            self.conn.timeout = float(timeout)
        try:
            result = self.conn.send(
                "Runtime.evaluate",
                {
                    "expression": expression,
                    "returnByValue": True,
                    "awaitPromise": True,
                },
            )
        finally:
            if old_timeout is not None:
                self.conn.timeout = old_timeout

        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            text = exc.get("description") or details.get("text") or "Script error"
            raise HttpClientError(f"Script error: {str(text).splitlines()[0]}")

        if "result" not in result:
            return None
        value = result["result"]
        # CDP reports undefined as {"type": "undefined"} with no "value" field.
        if isinstance(value, dict) and value.get("type") == "undefined":
            return None
        if isinstance(value, dict) and value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value", value) if isinstance(value, dict) else value

    def get_url(self) -> str:
        return self.eval_js("window.location.href") or ""

    # ─────────────────────────────────────────────────────────────────────────
    # Mouse Input
    # ─────────────────────────────────────────────────────────────────────────

    def click(self, x: float, y: float, button: str = "left", click_count: int = 1, delay_ms: int = 0) -> None:
        """Click at coordinates."""
        self.move_mouse(x, y)
        self.conn.send_many(
            [
                {
                    "method": "Input.dispatchMouseEvent",
                    "params": {"type": "mousePressed", "x": x, "y": y, "button": button, "clickCount": click_count},
                    "delayMs": max(0, int(delay_ms)),
                },
                {
                    "method": "Input.dispatchMouseEvent",
                    "params": {"type": "mouseReleased", "x": x, "y": y, "button": button, "clickCount": click_count},
                },
            ]
        )

    def move_mouse(self, x: float, y: float) -> None:
        self.conn.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y, "button": "none"})

    def drag(self, from_x: float, from_y: float, to_x: float, to_y: float, steps: int = 10) -> None:
        """Drag from one point to another."""
        steps = max(1, int(steps))
        cmds: list[dict[str, Any]] = [
            {
                "method": "Input.dispatchMouseEvent",
                "params": {"type": "mouseMoved", "x": from_x, "y": from_y, "button": "none"},
            },
            {
                "method": "Input.dispatchMouseEvent",
                "params": {"type": "mousePressed", "x": from_x, "y": from_y, "button": "left", "clickCount": 1},
            },
        ]
        for i in range(1, steps + 1):
            progress = i / steps
            cmds.append(
                {
                    "method": "Input.dispatchMouseEvent",
                    "params": {
                        "type": "mouseMoved",
                        "x": from_x + (to_x - from_x) * progress,
                        "y": from_y + (to_y - from_y) * progress,
                        "button": "left",
                        "buttons": 1,
                    },
                    "delayMs": 10,
                }
            )
        cmds.append(
            {
                "method": "Input.dispatchMouseEvent",
                "params": {"type": "mouseReleased", "x": to_x, "y": to_y, "button": "left", "clickCount": 1},
            }
        )
        self.conn.send_many(cmds)

    def scroll(self, delta_x: float = 0, delta_y: float = 0, x: float = 0, y: float = 0) -> None:
        self.conn.send(
            "Input.dispatchMouseEvent",
            {"type": "mouseWheel", "x": x, "y": y, "deltaX": delta_x, "deltaY": delta_y},
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Keyboard Input
    # ─────────────────────────────────────────────────────────────────────────

    def press_key(self, key: str, modifiers: int = 0) -> None:
        """Press a key; single characters also produce text input."""
        key_code = _KEY_CODES.get(key, ord(key[0].upper()) if len(key) == 1 else 0)
        code = f"Key{key.upper()}" if len(key) == 1 and key.isalpha() else key
        down: dict[str, Any] = {
            "type": "keyDown",
            "key": key,
            "code": code,
            "windowsVirtualKeyCode": key_code,
            "modifiers": modifiers,
        }
        if len(key) == 1 and not modifiers & ~8:
            down["text"] = key
        elif key == "Enter":
            down["text"] = "\r"
        self.conn.send_many(
            [
                {"method": "Input.dispatchKeyEvent", "params": down},
                {
                    "method": "Input.dispatchKeyEvent",
                    "params": {
                        "type": "keyUp",
                        "key": key,
                        "code": code,
                        "windowsVirtualKeyCode": key_code,
                        "modifiers": modifiers,
                    },
                },
            ]
        )

    def type_text(self, text: str, delay_ms: int = 0) -> None:
        """Insert text into the focused element (per character when ``delay_ms`` > 0)."""
        if not text:
            return
        if delay_ms <= 0:
            self.conn.send("Input.insertText", {"text": str(text)})
            return
        cmds = [
            {"method": "Input.dispatchKeyEvent", "params": {"type": "char", "text": c}, "delayMs": int(delay_ms)}
            for c in text
        ]
        self.conn.send_many(cmds)

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots & viewport
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(self, clip: dict[str, Any] | None = None) -> str:
        """Capture a PNG screenshot, return base64 data."""
        params: dict[str, Any] = {"format": "png", "fromSurface": True}
        if clip:
            params["clip"] = {**clip, "scale": clip.get("scale", 1)}
            params["captureBeyondViewport"] = True
        result = self.conn.send("Page.captureScreenshot", params)
        data = result.get("data")
        if not isinstance(data, str) or not data:
            raise HttpClientError("Page.captureScreenshot returned no data")
        return data

    def set_viewport_width(self, width: int) -> None:
        height = self.eval_js("window.innerHeight") or 800
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {"width": int(width), "height": int(height), "deviceScaleFactor": 0, "mobile": False},
        )


__all__ = ["BrowserSession", "parse_key_combo"]
