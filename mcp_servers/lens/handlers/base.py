"""Automation backend contract.

A handler is the pluggable set of browser-automation primitives bound to the
Bridge. Read operations report a missing element as ``None`` (or ``False`` for
``is_visible``); operations with mandatory side effects raise
``NotFoundError``. Handlers never redact: the Bridge envelope does.
"""

from __future__ import annotations

import fnmatch
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from ..console import DEFAULT_LOG_LIMIT, ConsoleLog
from ..errors import ProtocolError

DialogAction = Literal["accept", "dismiss"]
MouseButton = Literal["left", "right", "middle"]
ScrollDirection = Literal["up", "down", "left", "right"]

DEFAULT_HIGHLIGHT_COLOR = "#3b82f6"
DEFAULT_HIGHLIGHT_DURATION_MS = 3000
DEFAULT_WAIT_TIMEOUT_MS = 5000
DEFAULT_RESPONSE_TIMEOUT_MS = 30000
DEFAULT_SCROLL_DISTANCE = 300

_DESCRIPTOR_KEYS = (
    "tagName",
    "id",
    "classes",
    "selector",
    "attributes",
    "computedStyles",
    "boundingBox",
    "text",
)


@dataclass(frozen=True, slots=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> BoundingBox | None:
        if not isinstance(data, Mapping):
            return None
        try:
            return cls(
                x=float(data.get("x") or 0),
                y=float(data.get("y") or 0),
                width=float(data.get("width") or 0),
                height=float(data.get("height") or 0),
            )
        except (TypeError, ValueError):
            return None

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class ElementDescriptor:
    """Structured description of one page element, as produced by a handler."""

    tag_name: str
    selector: str = ""
    id: str | None = None
    classes: tuple[str, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    computed_styles: Mapping[str, str] = field(default_factory=dict)
    bounding_box: BoundingBox | None = None
    text: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ElementDescriptor:
        attributes = data.get("attributes")
        styles = data.get("computedStyles")
        return cls(
            tag_name=str(data.get("tagName") or ""),
            selector=str(data.get("selector") or ""),
            id=data.get("id") or None,
            classes=tuple(str(c) for c in data.get("classes") or ()),
            attributes=dict(attributes) if isinstance(attributes, Mapping) else {},
            computed_styles=dict(styles) if isinstance(styles, Mapping) else {},
            bounding_box=BoundingBox.from_dict(data.get("boundingBox")),
            text=data.get("text") if isinstance(data.get("text"), str) else None,
            extra={k: v for k, v in data.items() if k not in _DESCRIPTOR_KEYS},
        )

    @classmethod
    def maybe(cls, data: Any) -> ElementDescriptor | None:
        return cls.from_dict(data) if isinstance(data, Mapping) and data.get("tagName") else None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out.update(
            {
                "tagName": self.tag_name,
                "id": self.id,
                "classes": list(self.classes),
                "selector": self.selector,
                "attributes": dict(self.attributes),
                "computedStyles": dict(self.computed_styles),
                "boundingBox": self.bounding_box.to_dict() if self.bounding_box else None,
            }
        )
        if self.text is not None:
            out["text"] = self.text
        return out


@dataclass(frozen=True, slots=True)
class SessionState:
    connected: bool
    current_url: str = ""
    last_inspected_element: ElementDescriptor | None = None
    console_logs: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "currentUrl": self.current_url,
            "lastInspectedElement": (
                self.last_inspected_element.to_dict() if self.last_inspected_element else None
            ),
            "consoleLogs": list(self.console_logs),
        }


def url_matches(pattern: str, url: str) -> bool:
    """Match a response URL: ``/re/`` regex, ``*`` glob, otherwise substring."""
    if not pattern:
        return True
    if len(pattern) > 2 and pattern.startswith("/") and pattern.endswith("/"):
        try:
            return re.search(pattern[1:-1], url) is not None
        except re.error as exc:
            raise ProtocolError(f"Invalid URL pattern {pattern!r}: {exc}") from exc
    if "*" in pattern or "?" in pattern:
        return fnmatch.fnmatchcase(url, pattern)
    return pattern in url


def scroll_delta(direction: str | None, distance: float | None) -> tuple[float, float]:
    step = float(distance) if distance is not None else float(DEFAULT_SCROLL_DISTANCE)
    direction = (direction or "down").lower()
    if direction == "up":
        return 0.0, -step
    if direction == "left":
        return -step, 0.0
    if direction == "right":
        return step, 0.0
    return 0.0, step


class AutomationHandler(ABC):
    """Full automation surface the Bridge dispatches to."""

    name = "handler"

    def __init__(self, console: ConsoleLog | None = None) -> None:
        self.console = console if console is not None else ConsoleLog()
        self._dialog_action: DialogAction = "accept"
        self._last_inspected: ElementDescriptor | None = None
        self._state_lock = threading.Lock()

    # ─────────────────────────────────────────────────────────────────────────
    # Shared state
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def dialog_action(self) -> DialogAction:
        return self._dialog_action

    def _remember(self, element: ElementDescriptor | None) -> ElementDescriptor | None:
        if element is not None:
            with self._state_lock:
                self._last_inspected = element
        return element

    def sync_console(self) -> None:
        """Pull console events the page produced since the last command."""
        return None

    def get_console_logs(self, level: str | None = None, limit: int | None = DEFAULT_LOG_LIMIT) -> list[dict[str, Any]]:
        """Raw console snapshot (filtered by level, newest-bounded)."""
        self.sync_console()
        bound = DEFAULT_LOG_LIMIT if limit is None else limit
        return [m.to_dict() for m in self.console.snapshot(level, bound)]

    def get_state(self) -> SessionState:
        self.sync_console()
        try:
            url = self.current_url()
            connected = True
        except Exception:  # noqa: BLE001
            url = ""
            connected = False
        with self._state_lock:
            last = self._last_inspected
        return SessionState(
            connected=connected,
            current_url=url,
            last_inspected_element=last,
            console_logs=tuple(m.to_dict() for m in self.console.snapshot(limit=DEFAULT_LOG_LIMIT)),
        )

    def set_dialog_handler(self, action: DialogAction) -> None:
        if action not in ("accept", "dismiss"):
            raise ProtocolError(f"Dialog action must be 'accept' or 'dismiss', got {action!r}")
        self._dialog_action = action
        self._apply_dialog_policy(action)

    def _apply_dialog_policy(self, action: DialogAction) -> None:
        return None

    def close(self) -> None:
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Page
    # ─────────────────────────────────────────────────────────────────────────

    @abstractmethod
    def current_url(self) -> str: ...

    @abstractmethod
    def navigate(self, url: str) -> dict[str, Any]: ...

    @abstractmethod
    def reload(self) -> None: ...

    @abstractmethod
    def go_back(self) -> None: ...

    @abstractmethod
    def go_forward(self) -> None: ...

    @abstractmethod
    def set_viewport(self, width: int) -> None: ...

    @abstractmethod
    def page_info(self) -> dict[str, Any]:
        """``{url, title, width, height}`` of the live page."""

    @abstractmethod
    def dom_tree(self, max_depth: int) -> dict[str, Any] | None:
        """Raw element tree (tagName/id/classes/children, text nodes as ``{type: text}``)."""

    # ─────────────────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────────────────

    @abstractmethod
    def inspect_element(self, selector: str | None = None) -> ElementDescriptor | None: ...

    @abstractmethod
    def inspect_element_at_point(self, x: float, y: float) -> ElementDescriptor | None: ...

    @abstractmethod
    def highlight(
        self,
        selector: str,
        color: str = DEFAULT_HIGHLIGHT_COLOR,
        duration: int = DEFAULT_HIGHLIGHT_DURATION_MS,
    ) -> None: ...

    @abstractmethod
    def clear_highlights(self) -> None: ...

    @abstractmethod
    def screenshot(self, selector: str | None = None) -> str:
        """Base64 PNG of the viewport, or of one element."""

    @abstractmethod
    def get_text(self, selector: str) -> str: ...

    @abstractmethod
    def get_attribute(self, selector: str, name: str) -> str | None: ...

    @abstractmethod
    def is_visible(self, selector: str) -> bool: ...

    @abstractmethod
    def is_enabled(self, selector: str) -> bool: ...

    @abstractmethod
    def is_checked(self, selector: str) -> bool: ...

    @abstractmethod
    def evaluate(self, script: str) -> Any: ...

    @abstractmethod
    def get_accessibility_snapshot(self) -> str: ...

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    @abstractmethod
    def click(self, selector: str, button: MouseButton = "left", click_count: int = 1, delay: int = 0) -> None: ...

    @abstractmethod
    def type_text(self, selector: str, text: str, clear_first: bool = False, delay: int = 0) -> None: ...

    @abstractmethod
    def fill(self, selector: str, value: str) -> None: ...

    @abstractmethod
    def select_option(self, selector: str, values: list[str]) -> list[str]: ...

    @abstractmethod
    def hover(self, selector: str) -> None: ...

    @abstractmethod
    def press_key(self, key: str) -> None: ...

    @abstractmethod
    def drag_and_drop(self, source: str, target: str) -> None: ...

    @abstractmethod
    def scroll(
        self,
        selector: str | None = None,
        direction: ScrollDirection | None = None,
        distance: float | None = None,
    ) -> None: ...

    # ─────────────────────────────────────────────────────────────────────────
    # Waiting
    # ─────────────────────────────────────────────────────────────────────────

    @abstractmethod
    def wait_for(
        self, selector: str, timeout: int = DEFAULT_WAIT_TIMEOUT_MS, visible: bool = True
    ) -> ElementDescriptor: ...

    @abstractmethod
    def wait_for_response(self, pattern: str, timeout: int = DEFAULT_RESPONSE_TIMEOUT_MS) -> dict[str, Any]: ...


__all__ = [
    "DEFAULT_HIGHLIGHT_COLOR",
    "DEFAULT_HIGHLIGHT_DURATION_MS",
    "DEFAULT_RESPONSE_TIMEOUT_MS",
    "DEFAULT_SCROLL_DISTANCE",
    "DEFAULT_WAIT_TIMEOUT_MS",
    "AutomationHandler",
    "BoundingBox",
    "DialogAction",
    "ElementDescriptor",
    "SessionState",
    "scroll_delta",
    "url_matches",
]
