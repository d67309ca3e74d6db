"""
Tool registry with dispatch table for the agent-facing MCP server.

Each agent tool forwards to one Bridge command through a BridgeClient.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..errors import NotConnectedError, render_error
from .definitions import TOOL_METHODS
from .types import ToolResult

if TYPE_CHECKING:
    from ..bridge.client import BridgeClient

logger = logging.getLogger("mcp.lens.registry")

HandlerFunc = Callable[["BridgeClient", dict[str, Any]], ToolResult]

NOT_CONNECTED_HINT = "start the lens host (scripts/run_lens_host.py) with Chrome open, then retry"


class ToolRegistry:
    """Registry for tool handlers with a Bridge connectivity probe."""

    def __init__(self) -> None:
        # name -> (handler, requires_connection)
        self._handlers: dict[str, tuple[HandlerFunc, bool]] = {}

    def register(self, name: str, handler: HandlerFunc, requires_connection: bool = True) -> None:
        self._handlers[name] = (handler, requires_connection)

    def get(self, name: str) -> tuple[HandlerFunc, bool] | None:
        return self._handlers.get(name)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def dispatch(self, name: str, client: BridgeClient, arguments: dict[str, Any]) -> ToolResult:
        """Dispatch tool call to its handler.

        Tools with side effects on the page first probe ``client.is_connected()``
        so a missing host fails fast with a readable message.

        Raises:
            KeyError: If tool not found
        """
        handler_info = self._handlers.get(name)
        if handler_info is None:
            raise KeyError(f"Unknown tool: {name}")

        handler, requires_connection = handler_info
        if requires_connection and not client.is_connected():
            message = render_error(NotConnectedError(f"no page is attached to the bridge; {NOT_CONNECTED_HINT}"))
            return ToolResult.error(message, tool=name)
        return handler(client, arguments)

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers.keys())

    def __len__(self) -> int:
        return len(self._handlers)


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


def _done(message: str) -> ToolResult:
    result = ToolResult.text(message)
    result.data = {"ok": True}
    return result


def _command(name: str, describe: Callable[[dict[str, Any]], str] | None = None) -> HandlerFunc:
    """Plain forwarder: JSON result, or a one-line confirmation for ``null``."""
    method = TOOL_METHODS[name]

    def handler(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
        result = client.call(method, args)
        if result is None:
            return _done(describe(args) if describe else f"{name}: done")
        return ToolResult.json(result)

    handler.__name__ = f"handle_{name}"
    return handler


def handle_navigate(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
    url = args.get("url")
    if not isinstance(url, str) or not url.strip():
        return ToolResult.error("navigate: 'url' is required", tool="navigate")
    result = client.navigate(url.strip())
    if isinstance(result, dict) and result.get("success") is False:
        return ToolResult.error(f"Navigation failed: {result.get('error') or 'unknown error'}", tool="navigate")
    return _done(f"Navigated to {url.strip()}")


def handle_inspect_element(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
    selector = args.get("selector")
    element = client.inspect_element(selector if isinstance(selector, str) and selector else None)
    if element is None:
        return ToolResult.text(f"No element matches {selector}" if selector else "No element has been inspected yet")
    return ToolResult.json(element)


def handle_inspect_at_point(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
    element = client.call("inspectElementAtPoint", args)
    if element is None:
        return ToolResult.text(f"No element at ({args.get('x')}, {args.get('y')})")
    return ToolResult.json(element)


def handle_screenshot(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
    selector = args.get("selector")
    selector = selector if isinstance(selector, str) and selector else None
    image = client.screenshot(selector)
    return ToolResult.with_image(f"Screenshot captured{f' of {selector}' if selector else ''}", image)


def handle_get_console(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
    logs = client.get_console_logs(args.get("level"), args.get("limit"))
    if not logs:
        return ToolResult.text("No console messages")
    lines = [f"[{m.get('level', 'log')}] {m.get('text', '')}" for m in logs if isinstance(m, dict)]
    result = ToolResult.text("\n".join(lines))
    result.data = logs
    return result


def handle_accessibility_snapshot(client: BridgeClient, _args: dict[str, Any]) -> ToolResult:
    return ToolResult.text(client.get_accessibility_snapshot() or "(empty accessibility tree)")


def handle_get_text(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
    return ToolResult.text(client.call("getText", args) or "")


def _flag(name: str, label: str) -> HandlerFunc:
    method = TOOL_METHODS[name]

    def handler(client: BridgeClient, args: dict[str, Any]) -> ToolResult:
        value = bool(client.call(method, args))
        result = ToolResult.text(f"{args.get('selector')} {label}: {str(value).lower()}")
        result.data = value
        return result

    handler.__name__ = f"handle_{name}"
    return handler


def create_default_registry() -> ToolRegistry:
    """Create registry with all agent tools registered."""
    registry = ToolRegistry()

    registry.register("navigate", handle_navigate, True)
    registry.register("reload", _command("reload", lambda _a: "Page reloaded"), True)
    registry.register("go_back", _command("go_back", lambda _a: "Went back"), True)
    registry.register("go_forward", _command("go_forward", lambda _a: "Went forward"), True)
    registry.register("set_viewport", _command("set_viewport", lambda a: f"Viewport width set to {a.get('width')}px"), True)

    registry.register("inspect_element", handle_inspect_element, False)
    registry.register("inspect_element_at_point", handle_inspect_at_point, False)
    registry.register("highlight_element", _command("highlight_element", lambda a: f"Highlighted {a.get('selector')}"), True)
    registry.register("clear_highlights", _command("clear_highlights", lambda _a: "Highlights cleared"), True)
    registry.register("screenshot", handle_screenshot, False)
    registry.register("get_console", handle_get_console, False)
    registry.register("get_text", handle_get_text, False)
    registry.register(
        "get_attribute",
        _command("get_attribute", lambda a: f"{a.get('selector')} has no attribute {a.get('name')}"),
        False,
    )
    registry.register("is_visible", _flag("is_visible", "visible"), False)
    registry.register("is_enabled", _flag("is_enabled", "enabled"), False)
    registry.register("is_checked", _flag("is_checked", "checked"), False)
    registry.register("evaluate", _command("evaluate", lambda _a: "undefined"), True)
    registry.register("accessibility_snapshot", handle_accessibility_snapshot, False)
    registry.register("get_state", _command("get_state"), False)

    registry.register("click", _command("click", lambda a: f"Clicked {a.get('selector')}"), True)
    registry.register("type_text", _command("type_text", lambda a: f"Typed into {a.get('selector')}"), True)
    registry.register("fill", _command("fill", lambda a: f"Filled {a.get('selector')}"), True)
    registry.register("select_option", _command("select_option"), True)
    registry.register("hover", _command("hover", lambda a: f"Hovered {a.get('selector')}"), True)
    registry.register("press_key", _command("press_key", lambda a: f"Pressed {a.get('key')}"), True)
    registry.register(
        "drag_and_drop",
        _command("drag_and_drop", lambda a: f"Dragged {a.get('source')} onto {a.get('target')}"),
        True,
    )
    registry.register("scroll", _command("scroll", lambda a: f"Scrolled {a.get('selector') or 'page'}"), True)
    registry.register(
        "set_dialog_handler",
        _command("set_dialog_handler", lambda a: f"Dialogs will be {a.get('action')}ed"),
        True,
    )

    registry.register("wait_for", _command("wait_for"), False)
    registry.register("wait_for_response", _command("wait_for_response"), False)

    logger.info("Registered %d tool handlers", len(registry))
    return registry


__all__ = ["HandlerFunc", "ToolRegistry", "create_default_registry"]
