"""Read-only inspection tools served by the tool catalog."""

from __future__ import annotations

import base64
import binascii
import io
from collections.abc import Callable
from typing import Any

from PIL import Image, UnidentifiedImageError

from ..console import DEFAULT_LOG_LIMIT, ConsoleLog
from ..handlers.base import AutomationHandler
from .dom import DEFAULT_DOM_DEPTH, clamp_depth, serialize_dom
from .types import ToolResult

# Returns a JSON value, or a ToolResult when the reply carries an image.
CatalogHandler = Callable[[AutomationHandler | None, ConsoleLog, dict[str, Any]], Any]

NO_PAGE = {"error": "No browser page is connected"}

CATALOG_TOOLS: list[dict[str, Any]] = [
    {
        "name": "get_page_info",
        "description": "Get information about the current browser page (URL, title)",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "get_console_logs",
        "description": f"Get recent console messages from the browser (last {DEFAULT_LOG_LIMIT} messages)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "level": {
                    "type": "string",
                    "description": "Filter by log level (log, warn, error, info). Optional.",
                    "enum": ["log", "warn", "error", "info"],
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_element_info",
        "description": "Get information about a DOM element by CSS selector",
        "inputSchema": {
            "type": "object",
            "properties": {
                "selector": {
                    "type": "string",
                    "description": 'CSS selector to find the element (e.g., "#myButton", ".card", "button[type=submit]")',
                },
            },
            "required": ["selector"],
        },
    },
    {
        "name": "get_page_dom",
        "description": "Get a simplified DOM structure of the current page",
        "inputSchema": {
            "type": "object",
            "properties": {
                "maxDepth": {
                    "type": "number",
                    "description": f"Maximum depth to traverse (default: {DEFAULT_DOM_DEPTH})",
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_screenshot",
        "description": "Capture a screenshot of the current browser page. Returns base64-encoded PNG image.",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
]


def png_size(data_b64: str) -> tuple[int, int]:
    """Pixel dimensions of a base64 PNG."""
    try:
        raw = base64.b64decode(data_b64, validate=True)
        with Image.open(io.BytesIO(raw)) as img:
            return img.size
    except (binascii.Error, UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Screenshot is not a valid image: {exc}") from exc


def get_page_info(handler: AutomationHandler | None, _console: ConsoleLog, _args: dict[str, Any]) -> Any:
    if handler is None:
        return None
    info = handler.page_info()
    return {"url": info.get("url", ""), "title": info.get("title", "")}


def get_console_logs(_handler: AutomationHandler | None, console: ConsoleLog, args: dict[str, Any]) -> Any:
    level = args.get("level")
    level = level if isinstance(level, str) and level.strip() else None
    return [message.to_dict() for message in console.snapshot(level, DEFAULT_LOG_LIMIT)]


def get_element_info(handler: AutomationHandler | None, _console: ConsoleLog, args: dict[str, Any]) -> Any:
    selector = args.get("selector")
    if not isinstance(selector, str) or not selector.strip():
        raise ValueError("get_element_info: 'selector' is required")
    if handler is None:
        return dict(NO_PAGE)
    element = handler.inspect_element(selector)
    return element.to_dict() if element is not None else {"error": "Element not found"}


def get_page_dom(handler: AutomationHandler | None, _console: ConsoleLog, args: dict[str, Any]) -> Any:
    if handler is None:
        return dict(NO_PAGE)
    depth = clamp_depth(args.get("maxDepth"))
    tree = serialize_dom(handler.dom_tree(depth), depth)
    return tree if tree is not None else {"error": "Could not serialize DOM"}


def get_screenshot(handler: AutomationHandler | None, _console: ConsoleLog, _args: dict[str, Any]) -> Any:
    if handler is None:
        return dict(NO_PAGE)
    image = handler.screenshot()
    width, height = png_size(image)
    return ToolResult.with_image(
        f"Screenshot captured: {width}x{height}px", image, data={"width": width, "height": height}
    )


CATALOG_HANDLERS: dict[str, CatalogHandler] = {
    "get_page_info": get_page_info,
    "get_console_logs": get_console_logs,
    "get_element_info": get_element_info,
    "get_page_dom": get_page_dom,
    "get_screenshot": get_screenshot,
}


__all__ = ["CATALOG_HANDLERS", "CATALOG_TOOLS", "CatalogHandler", "png_size"]
