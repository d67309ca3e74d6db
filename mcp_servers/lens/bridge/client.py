"""Agent-side Bridge client.

One method per command. Failures surface as typed ``BridgeError`` subclasses
rebuilt from the envelope's ``kind``; transport failures map to
``NotConnectedError`` (refused/unreachable) or ``WaitTimeoutError``.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import LensConfig
from ..errors import InvalidTargetError, NotConnectedError, ProtocolError, WaitTimeoutError, error_from_kind
from ..http_client import HttpClientError, http_json
from ..origins import OriginAllowList
from .protocol import COMMAND_SPECS, wait_budget_seconds

logger = logging.getLogger("mcp.lens.bridge")

HEALTH_TIMEOUT = 2.0


def _params(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


class BridgeClient:
    def __init__(
        self,
        config: LensConfig | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        allow_list: OriginAllowList | None = None,
    ) -> None:
        self.config = config or LensConfig()
        self.base_url = (base_url or self.config.bridge_url).rstrip("/")
        self.timeout = float(timeout if timeout is not None else self.config.request_timeout)
        self.allow_list = allow_list or OriginAllowList(self.config.allow_origins)

    # ─────────────────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────────────────

    def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one command and return its ``result``; raises on ``success: false``."""
        params = params or {}
        spec = COMMAND_SPECS.get(method)
        timeout = self.timeout + (wait_budget_seconds(spec, params) if spec is not None else 0.0)
        try:
            envelope = http_json(f"{self.base_url}/", {"method": method, "params": params}, timeout=timeout)
        except HttpClientError as exc:
            if exc.timed_out:
                raise WaitTimeoutError(f"Bridge did not answer {method} within {timeout:.0f}s") from exc
            raise NotConnectedError(f"Bridge is not reachable at {self.base_url} ({exc})") from exc

        if not isinstance(envelope, dict) or not isinstance(envelope.get("success"), bool):
            raise ProtocolError(f"Malformed bridge response for {method}")
        if envelope["success"]:
            return envelope.get("result")
        raise error_from_kind(envelope.get("kind"), str(envelope.get("error") or "Unknown bridge error"))

    def health(self) -> dict[str, Any]:
        try:
            data = http_json(f"{self.base_url}/health", timeout=min(HEALTH_TIMEOUT, self.timeout))
        except HttpClientError as exc:
            raise NotConnectedError(f"Bridge is not reachable at {self.base_url} ({exc})") from exc
        if not isinstance(data, dict):
            raise ProtocolError("Malformed bridge health response")
        return data

    def is_connected(self) -> bool:
        """Cheap probe: True when the Bridge answers and a handler is bound."""
        try:
            return bool(self.health().get("connected"))
        except Exception as exc:  # noqa: BLE001
            logger.debug("bridge health probe failed: %s", exc)
            return False

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    def navigate(self, url: str) -> dict[str, Any]:
        check = self.allow_list.validate_url(url)
        if not check.valid:
            raise InvalidTargetError(check.error or f"URL not allowed: {url}")
        return self.call("navigate", {"url": url})

    def inspect_element(self, selector: str | None = None) -> dict[str, Any] | None:
        return self.call("inspectElement", _params(selector=selector))

    def inspect_element_at_point(self, x: float, y: float) -> dict[str, Any] | None:
        return self.call("inspectElementAtPoint", {"x": x, "y": y})

    def highlight(self, selector: str, color: str | None = None, duration: int | None = None) -> None:
        self.call("highlight", _params(selector=selector, color=color, duration=duration))

    def clear_highlights(self) -> None:
        self.call("clearHighlights")

    def screenshot(self, selector: str | None = None) -> str:
        result = self.call("screenshot", _params(selector=selector))
        image = result.get("image") if isinstance(result, dict) else None
        if not isinstance(image, str) or not image:
            raise ProtocolError("Screenshot response carried no image")
        return image

    def get_console_logs(self, level: str | None = None, limit: int | None = None) -> list[dict[str, Any]]:
        result = self.call("getConsoleLogs", _params(level=level, limit=limit))
        return result if isinstance(result, list) else []

    def reload(self) -> None:
        self.call("reload")

    def click(
        self,
        selector: str,
        button: str | None = None,
        click_count: int | None = None,
        delay: int | None = None,
    ) -> None:
        self.call("click", _params(selector=selector, button=button, clickCount=click_count, delay=delay))

    def type_text(self, selector: str, text: str, clear_first: bool | None = None, delay: int | None = None) -> None:
        self.call("type", _params(selector=selector, text=text, clearFirst=clear_first, delay=delay))

    def fill(self, selector: str, value: str) -> None:
        self.call("fill", {"selector": selector, "value": value})

    def select_option(self, selector: str, values: str | list[str]) -> list[str]:
        result = self.call("selectOption", {"selector": selector, "values": values})
        return list(result) if isinstance(result, list) else []

    def hover(self, selector: str) -> None:
        self.call("hover", {"selector": selector})

    def press_key(self, key: str) -> None:
        self.call("pressKey", {"key": key})

    def drag_and_drop(self, source: str, target: str) -> None:
        self.call("dragAndDrop", {"source": source, "target": target})

    def scroll(self, selector: str | None = None, direction: str | None = None, distance: float | None = None) -> None:
        self.call("scroll", _params(selector=selector, direction=direction, distance=distance))

    def wait_for(self, selector: str, timeout: int | None = None, visible: bool | None = None) -> dict[str, Any]:
        return self.call("waitFor", _params(selector=selector, timeout=timeout, visible=visible))

    def wait_for_response(self, pattern: str, timeout: int | None = None) -> dict[str, Any]:
        return self.call("waitForResponse", _params(pattern=pattern, timeout=timeout))

    def get_text(self, selector: str) -> str:
        return str(self.call("getText", {"selector": selector}) or "")

    def get_attribute(self, selector: str, name: str) -> str | None:
        return self.call("getAttribute", {"selector": selector, "name": name})

    def is_visible(self, selector: str) -> bool:
        return bool(self.call("isVisible", {"selector": selector}))

    def is_enabled(self, selector: str) -> bool:
        return bool(self.call("isEnabled", {"selector": selector}))

    def is_checked(self, selector: str) -> bool:
        return bool(self.call("isChecked", {"selector": selector}))

    def evaluate(self, script: str) -> Any:
        return self.call("evaluate", {"script": script})

    def get_accessibility_snapshot(self) -> str:
        return str(self.call("getAccessibilitySnapshot") or "")

    def go_back(self) -> None:
        self.call("goBack")

    def go_forward(self) -> None:
        self.call("goForward")

    def set_dialog_handler(self, action: str) -> None:
        self.call("setDialogHandler", {"action": action})

    def set_viewport(self, width: int) -> None:
        self.call("setViewport", {"width": width})

    def get_state(self) -> dict[str, Any]:
        result = self.call("getState")
        return result if isinstance(result, dict) else {}


__all__ = ["BridgeClient"]
