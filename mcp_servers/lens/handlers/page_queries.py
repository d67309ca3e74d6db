from __future__ import annotations

import time
from typing import Any

from ..errors import NotFoundError, WaitTimeoutError
from . import scripts
from .base import (
    DEFAULT_HIGHLIGHT_COLOR,
    DEFAULT_HIGHLIGHT_DURATION_MS,
    DEFAULT_WAIT_TIMEOUT_MS,
    ElementDescriptor,
)

POLL_INTERVAL_S = 0.1


class PageQueryMixin:
    """DOM reads both backends answer with the same in-page scripts.

    The host class provides ``_run(function_source, *args)`` and ``_remember``
    (from AutomationHandler).
    """

    def _require(self, found: Any, selector: str) -> None:
        if not found:
            raise NotFoundError(f"Element not found: {selector}")

    def _lookup(self, function_source: str, *args: Any) -> dict[str, Any]:
        payload = self._run(function_source, *args)
        if not isinstance(payload, dict) or not payload.get("found"):
            raise NotFoundError(f"Element not found: {args[0] if args else ''}")
        return payload

    def page_info(self) -> dict[str, Any]:
        info = self._run(scripts.PAGE_INFO)
        return info if isinstance(info, dict) else {"url": "", "title": ""}

    def dom_tree(self, max_depth: int) -> dict[str, Any] | None:
        tree = self._run(scripts.DOM_TREE, int(max_depth))
        return tree if isinstance(tree, dict) else None

    def inspect_element(self, selector: str | None = None) -> ElementDescriptor | None:
        return self._remember(ElementDescriptor.maybe(self._run(scripts.INSPECT_ELEMENT, selector or "")))

    def inspect_element_at_point(self, x: float, y: float) -> ElementDescriptor | None:
        return self._remember(ElementDescriptor.maybe(self._run(scripts.INSPECT_AT_POINT, x, y)))

    def highlight(
        self,
        selector: str,
        color: str = DEFAULT_HIGHLIGHT_COLOR,
        duration: int = DEFAULT_HIGHLIGHT_DURATION_MS,
    ) -> None:
        self._require(self._run(scripts.HIGHLIGHT, selector, color, int(duration)), selector)

    def clear_highlights(self) -> None:
        self._run(scripts.CLEAR_HIGHLIGHTS)

    def get_text(self, selector: str) -> str:
        return str(self._lookup(scripts.GET_TEXT, selector).get("value") or "")

    def get_attribute(self, selector: str, name: str) -> str | None:
        value = self._lookup(scripts.GET_ATTRIBUTE, selector, name).get("value")
        return None if value is None else str(value)

    def is_visible(self, selector: str) -> bool:
        payload = self._run(scripts.ELEMENT_FLAGS, selector)
        return bool(isinstance(payload, dict) and payload.get("found") and payload.get("visible"))

    def is_enabled(self, selector: str) -> bool:
        return bool(self._lookup(scripts.ELEMENT_FLAGS, selector).get("enabled"))

    def is_checked(self, selector: str) -> bool:
        return bool(self._lookup(scripts.ELEMENT_FLAGS, selector).get("checked"))

    def select_option(self, selector: str, values: list[str]) -> list[str]:
        selected = self._run(scripts.SELECT_OPTION, selector, list(values))
        if selected is None:
            raise NotFoundError(f"Element not found: {selector}")
        return [str(v) for v in selected]

    def wait_for(self, selector: str, timeout: int = DEFAULT_WAIT_TIMEOUT_MS, visible: bool = True) -> ElementDescriptor:
        deadline = time.monotonic() + max(0, int(timeout)) / 1000.0
        while True:
            found = ElementDescriptor.maybe(self._run(scripts.QUERY_ELEMENT, selector, bool(visible)))
            if found is not None:
                return found
            if time.monotonic() >= deadline:
                raise WaitTimeoutError(f"Element not found within {timeout}ms: {selector}")
            time.sleep(POLL_INTERVAL_S)


__all__ = ["POLL_INTERVAL_S", "PageQueryMixin"]
