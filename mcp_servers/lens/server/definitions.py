"""
Agent tool definitions.

One tool per Bridge command. Names are snake_case; arguments keep the Bridge's
camelCase parameter names so they pass through unchanged.
"""

from __future__ import annotations

from typing import Any

from ..handlers.base import (
    DEFAULT_HIGHLIGHT_COLOR,
    DEFAULT_HIGHLIGHT_DURATION_MS,
    DEFAULT_RESPONSE_TIMEOUT_MS,
    DEFAULT_SCROLL_DISTANCE,
    DEFAULT_WAIT_TIMEOUT_MS,
)


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": properties or {},
        "additionalProperties": False,
    }
    if required:
        schema["required"] = required
    return schema


_SELECTOR = {"type": "string", "description": "CSS selector of the target element"}


# ═══════════════════════════════════════════════════════════════════════════════
# NAVIGATION
# ═══════════════════════════════════════════════════════════════════════════════

NAVIGATE_TOOL: dict[str, Any] = {
    "name": "navigate",
    "description": """Navigate the browser to a URL.
Only local development origins are allowed (localhost, 127.0.0.1, ::1, plus any
origins configured in MCP_LENS_ALLOW_ORIGINS).
RESPONSE EXAMPLE:
{
  "success": true
}""",
    "inputSchema": _schema({"url": {"type": "string", "description": "URL to open (must be local)"}}, ["url"]),
}

RELOAD_TOOL: dict[str, Any] = {
    "name": "reload",
    "description": "Reload the current page.",
    "inputSchema": _schema(),
}

GO_BACK_TOOL: dict[str, Any] = {
    "name": "go_back",
    "description": "Go back one entry in the page history.",
    "inputSchema": _schema(),
}

GO_FORWARD_TOOL: dict[str, Any] = {
    "name": "go_forward",
    "description": "Go forward one entry in the page history.",
    "inputSchema": _schema(),
}

SET_VIEWPORT_TOOL: dict[str, Any] = {
    "name": "set_viewport",
    "description": "Resize the page viewport to the given CSS pixel width (responsive testing).",
    "inputSchema": _schema({"width": {"type": "integer", "minimum": 1, "description": "Viewport width in px"}}, ["width"]),
}

# ═══════════════════════════════════════════════════════════════════════════════
# INSPECTION
# ═══════════════════════════════════════════════════════════════════════════════

INSPECT_ELEMENT_TOOL: dict[str, Any] = {
    "name": "inspect_element",
    "description": """Inspect a DOM element: tag, id, classes, attributes, computed styles, bounding box, text.
USAGE:
- inspect_element(selector="#submit")
- inspect_element() returns the last inspected element
RESPONSE: element descriptor, or null when nothing matches.""",
    "inputSchema": _schema({"selector": {"type": "string", "description": "CSS selector (optional)"}}),
}

INSPECT_AT_POINT_TOOL: dict[str, Any] = {
    "name": "inspect_element_at_point",
    "description": "Inspect the topmost element at viewport coordinates (x, y).",
    "inputSchema": _schema(
        {
            "x": {"type": "number", "description": "Viewport X in CSS px"},
            "y": {"type": "number", "description": "Viewport Y in CSS px"},
        },
        ["x", "y"],
    ),
}

HIGHLIGHT_TOOL: dict[str, Any] = {
    "name": "highlight_element",
    "description": "Draw an outline around an element to show it to the user.",
    "inputSchema": _schema(
        {
            "selector": _SELECTOR,
            "color": {"type": "string", "default": DEFAULT_HIGHLIGHT_COLOR, "description": "CSS color"},
            "duration": {
                "type": "integer",
                "default": DEFAULT_HIGHLIGHT_DURATION_MS,
                "description": "Duration in ms (0 = until cleared)",
            },
        },
        ["selector"],
    ),
}

CLEAR_HIGHLIGHTS_TOOL: dict[str, Any] = {
    "name": "clear_highlights",
    "description": "Remove every highlight overlay.",
    "inputSchema": _schema(),
}

SCREENSHOT_TOOL: dict[str, Any] = {
    "name": "screenshot",
    "description": "Capture a PNG of the viewport, or of one element when a selector is given.",
    "inputSchema": _schema({"selector": {"type": "string", "description": "Element selector (optional)"}}),
}

GET_CONSOLE_TOOL: dict[str, Any] = {
    "name": "get_console",
    "description": "Recent console messages from the page (secrets are redacted).",
    "inputSchema": _schema(
        {
            "level": {
                "type": "string",
                "enum": ["all", "log", "info", "warn", "error", "debug"],
                "description": "Filter by level (default: all)",
            },
            "limit": {"type": "integer", "minimum": 0, "default": 20, "description": "Maximum messages"},
        }
    ),
}

GET_TEXT_TOOL: dict[str, Any] = {
    "name": "get_text",
    "description": "Text content of an element.",
    "inputSchema": _schema({"selector": _SELECTOR}, ["selector"]),
}

GET_ATTRIBUTE_TOOL: dict[str, Any] = {
    "name": "get_attribute",
    "description": "Value of one attribute of an element (null when absent).",
    "inputSchema": _schema(
        {"selector": _SELECTOR, "name": {"type": "string", "description": "Attribute name"}},
        ["selector", "name"],
    ),
}

IS_VISIBLE_TOOL: dict[str, Any] = {
    "name": "is_visible",
    "description": "Whether an element is rendered and visible (false when missing).",
    "inputSchema": _schema({"selector": _SELECTOR}, ["selector"]),
}

IS_ENABLED_TOOL: dict[str, Any] = {
    "name": "is_enabled",
    "description": "Whether a form control is enabled.",
    "inputSchema": _schema({"selector": _SELECTOR}, ["selector"]),
}

IS_CHECKED_TOOL: dict[str, Any] = {
    "name": "is_checked",
    "description": "Whether a checkbox or radio is checked.",
    "inputSchema": _schema({"selector": _SELECTOR}, ["selector"]),
}

EVALUATE_TOOL: dict[str, Any] = {
    "name": "evaluate",
    "description": "Evaluate a JavaScript expression in the page and return its JSON value.",
    "inputSchema": _schema({"script": {"type": "string", "description": "JavaScript expression"}}, ["script"]),
}

ACCESSIBILITY_TOOL: dict[str, Any] = {
    "name": "accessibility_snapshot",
    "description": "Accessibility tree of the page (roles and accessible names) as JSON text.",
    "inputSchema": _schema(),
}

GET_STATE_TOOL: dict[str, Any] = {
    "name": "get_state",
    "description": "Session state: connected flag, current URL, last inspected element, recent console.",
    "inputSchema": _schema(),
}

# ═══════════════════════════════════════════════════════════════════════════════
# INTERACTION
# ═══════════════════════════════════════════════════════════════════════════════

CLICK_TOOL: dict[str, Any] = {
    "name": "click",
    "description": "Click an element.",
    "inputSchema": _schema(
        {
            "selector": _SELECTOR,
            "button": {"type": "string", "enum": ["left", "right", "middle"], "default": "left"},
            "clickCount": {"type": "integer", "minimum": 1, "default": 1},
            "delay": {"type": "integer", "minimum": 0, "default": 0, "description": "Delay before the click in ms"},
        },
        ["selector"],
    ),
}

TYPE_TOOL: dict[str, Any] = {
    "name": "type_text",
    "description": "Type text into an element, key by key.",
    "inputSchema": _schema(
        {
            "selector": _SELECTOR,
            "text": {"type": "string"},
            "clearFirst": {"type": "boolean", "default": False, "description": "Clear the field before typing"},
            "delay": {"type": "integer", "minimum": 0, "default": 0, "description": "Delay between keys in ms"},
        },
        ["selector", "text"],
    ),
}

FILL_TOOL: dict[str, Any] = {
    "name": "fill",
    "description": "Replace the value of an input or textarea.",
    "inputSchema": _schema({"selector": _SELECTOR, "value": {"type": "string"}}, ["selector", "value"]),
}

SELECT_OPTION_TOOL: dict[str, Any] = {
    "name": "select_option",
    "description": "Select option(s) of a <select> by value or label. Returns the selected values.",
    "inputSchema": _schema(
        {
            "selector": _SELECTOR,
            "values": {
                "oneOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}],
                "description": "Value or list of values",
            },
        },
        ["selector", "values"],
    ),
}

HOVER_TOOL: dict[str, Any] = {
    "name": "hover",
    "description": "Move the pointer over an element.",
    "inputSchema": _schema({"selector": _SELECTOR}, ["selector"]),
}

PRESS_KEY_TOOL: dict[str, Any] = {
    "name": "press_key",
    "description": "Press a key or key combo, e.g. Enter, Escape, Control+A.",
    "inputSchema": _schema({"key": {"type": "string"}}, ["key"]),
}

DRAG_AND_DROP_TOOL: dict[str, Any] = {
    "name": "drag_and_drop",
    "description": "Drag one element onto another.",
    "inputSchema": _schema(
        {
            "source": {"type": "string", "description": "Selector of the dragged element"},
            "target": {"type": "string", "description": "Selector of the drop target"},
        },
        ["source", "target"],
    ),
}

SCROLL_TOOL: dict[str, Any] = {
    "name": "scroll",
    "description": """Scroll the page or an element.
USAGE:
- scroll(selector="#footer") scrolls the element into view
- scroll(direction="down", distance=500) scrolls the page""",
    "inputSchema": _schema(
        {
            "selector": {"type": "string", "description": "Element to scroll (optional)"},
            "direction": {"type": "string", "enum": ["up", "down", "left", "right"], "default": "down"},
            "distance": {"type": "number", "minimum": 0, "default": DEFAULT_SCROLL_DISTANCE},
        }
    ),
}

SET_DIALOG_HANDLER_TOOL: dict[str, Any] = {
    "name": "set_dialog_handler",
    "description": "Automatically accept or dismiss alert/confirm/prompt dialogs.",
    "inputSchema": _schema({"action": {"type": "string", "enum": ["accept", "dismiss"]}}, ["action"]),
}

# ═══════════════════════════════════════════════════════════════════════════════
# WAITING
# ═══════════════════════════════════════════════════════════════════════════════

WAIT_FOR_TOOL: dict[str, Any] = {
    "name": "wait_for",
    "description": "Wait until an element exists (and is visible, by default). Returns its descriptor.",
    "inputSchema": _schema(
        {
            "selector": _SELECTOR,
            "timeout": {"type": "integer", "minimum": 0, "default": DEFAULT_WAIT_TIMEOUT_MS, "description": "ms"},
            "visible": {"type": "boolean", "default": True},
        },
        ["selector"],
    ),
}

WAIT_FOR_RESPONSE_TOOL: dict[str, Any] = {
    "name": "wait_for_response",
    "description": """Wait for a network response whose URL matches a pattern.
Pattern forms: "/regex/", a glob with * or ?, or a plain substring.
RESPONSE EXAMPLE:
{
  "url": "http://localhost:3000/api/items",
  "status": 200
}""",
    "inputSchema": _schema(
        {
            "pattern": {"type": "string"},
            "timeout": {"type": "integer", "minimum": 0, "default": DEFAULT_RESPONSE_TIMEOUT_MS, "description": "ms"},
        },
        ["pattern"],
    ),
}


AGENT_TOOL_DEFINITIONS: list[dict[str, Any]] = [
    NAVIGATE_TOOL,
    RELOAD_TOOL,
    GO_BACK_TOOL,
    GO_FORWARD_TOOL,
    SET_VIEWPORT_TOOL,
    INSPECT_ELEMENT_TOOL,
    INSPECT_AT_POINT_TOOL,
    HIGHLIGHT_TOOL,
    CLEAR_HIGHLIGHTS_TOOL,
    SCREENSHOT_TOOL,
    GET_CONSOLE_TOOL,
    GET_TEXT_TOOL,
    GET_ATTRIBUTE_TOOL,
    IS_VISIBLE_TOOL,
    IS_ENABLED_TOOL,
    IS_CHECKED_TOOL,
    EVALUATE_TOOL,
    ACCESSIBILITY_TOOL,
    GET_STATE_TOOL,
    CLICK_TOOL,
    TYPE_TOOL,
    FILL_TOOL,
    SELECT_OPTION_TOOL,
    HOVER_TOOL,
    PRESS_KEY_TOOL,
    DRAG_AND_DROP_TOOL,
    SCROLL_TOOL,
    SET_DIALOG_HANDLER_TOOL,
    WAIT_FOR_TOOL,
    WAIT_FOR_RESPONSE_TOOL,
]

# Agent tool name -> Bridge wire method.
TOOL_METHODS: dict[str, str] = {
    "navigate": "navigate",
    "reload": "reload",
    "go_back": "goBack",
    "go_forward": "goForward",
    "set_viewport": "setViewport",
    "inspect_element": "inspectElement",
    "inspect_element_at_point": "inspectElementAtPoint",
    "highlight_element": "highlight",
    "clear_highlights": "clearHighlights",
    "screenshot": "screenshot",
    "get_console": "getConsoleLogs",
    "get_text": "getText",
    "get_attribute": "getAttribute",
    "is_visible": "isVisible",
    "is_enabled": "isEnabled",
    "is_checked": "isChecked",
    "evaluate": "evaluate",
    "accessibility_snapshot": "getAccessibilitySnapshot",
    "get_state": "getState",
    "click": "click",
    "type_text": "type",
    "fill": "fill",
    "select_option": "selectOption",
    "hover": "hover",
    "press_key": "pressKey",
    "drag_and_drop": "dragAndDrop",
    "scroll": "scroll",
    "set_dialog_handler": "setDialogHandler",
    "wait_for": "waitFor",
    "wait_for_response": "waitForResponse",
}


__all__ = ["AGENT_TOOL_DEFINITIONS", "TOOL_METHODS"]
