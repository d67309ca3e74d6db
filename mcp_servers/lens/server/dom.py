"""Compact DOM serialization for the tool catalog.

The page returns a raw element tree (``tagName``/``id``/``classes``/``children``
with text nodes as ``{"type": "text", "text": ...}``); this module trims it to
what fits in an agent's context.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

DEFAULT_DOM_DEPTH = 3
MAX_DOM_DEPTH = 10
TEXT_LIMIT = 100

SKIPPED_TAGS = frozenset({"script", "style", "noscript", "svg", "path", "template", "link", "meta"})


def clamp_depth(raw: Any, default: int = DEFAULT_DOM_DEPTH) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        depth = int(float(raw))
    except (TypeError, ValueError):
        return default
    return max(0, min(depth, MAX_DOM_DEPTH))


def _is_text(node: Any) -> bool:
    return isinstance(node, Mapping) and node.get("type") == "text"


def _serialize(node: Mapping[str, Any], depth: int, max_depth: int) -> dict[str, Any] | None:
    if depth > max_depth or _is_text(node):
        return None
    tag = str(node.get("tagName") or "").lower()
    if not tag or tag in SKIPPED_TAGS:
        return None

    out: dict[str, Any] = {"tag": tag}
    if node.get("id"):
        out["id"] = str(node["id"])
    classes = [c for c in node.get("classes") or [] if isinstance(c, str) and c]
    if classes:
        out["classes"] = classes

    children = node.get("children") or []
    if len(children) == 1 and _is_text(children[0]):
        text = str(children[0].get("text") or "").strip()
        if text:
            out["text"] = text[:TEXT_LIMIT]

    kids = [
        serialized
        for child in children
        if isinstance(child, Mapping) and (serialized := _serialize(child, depth + 1, max_depth)) is not None
    ]
    if kids:
        out["children"] = kids
    return out


def serialize_dom(tree: Any, max_depth: int = DEFAULT_DOM_DEPTH) -> dict[str, Any] | None:
    """Serialize ``tree`` down to ``max_depth`` (root is depth 0)."""
    if not isinstance(tree, Mapping):
        return None
    return _serialize(tree, 0, clamp_depth(max_depth))


__all__ = ["DEFAULT_DOM_DEPTH", "MAX_DOM_DEPTH", "SKIPPED_TAGS", "clamp_depth", "serialize_dom"]
