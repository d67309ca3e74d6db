from __future__ import annotations

from typing import Any

from mcp_servers.lens.server.dom import MAX_DOM_DEPTH, TEXT_LIMIT, clamp_depth, serialize_dom


def _chain(depth: int) -> dict[str, Any]:
    node: dict[str, Any] = {"tagName": "SPAN", "children": []}
    for _ in range(depth):
        node = {"tagName": "DIV", "children": [node]}
    return node


def _max_depth(node: dict[str, Any] | None) -> int:
    if not node:
        return -1
    return 1 + max((_max_depth(c) for c in node.get("children", [])), default=-1)


def test_depth_is_clamped() -> None:
    assert clamp_depth(None) == 3
    assert clamp_depth("5") == 5
    assert clamp_depth(2.9) == 2
    assert clamp_depth(-4) == 0
    assert clamp_depth(99) == MAX_DOM_DEPTH
    assert clamp_depth("deep") == 3
    assert clamp_depth(True) == 3


def test_tree_never_exceeds_requested_depth() -> None:
    tree = _chain(20)
    for depth in (0, 1, 3, 10):
        assert _max_depth(serialize_dom(tree, depth)) == depth
    assert _max_depth(serialize_dom(tree, 50)) == MAX_DOM_DEPTH


def test_script_and_style_are_excluded() -> None:
    tree = {
        "tagName": "HTML",
        "children": [
            {"tagName": "HEAD", "children": [{"tagName": "STYLE"}, {"tagName": "META"}]},
            {
                "tagName": "BODY",
                "classes": ["app", ""],
                "children": [
                    {"tagName": "SCRIPT", "children": [{"type": "text", "text": "alert(1)"}]},
                    {"tagName": "MAIN", "id": "root"},
                ],
            },
        ],
    }
    assert serialize_dom(tree, 5) == {
        "tag": "html",
        "children": [
            {"tag": "head"},
            {"tag": "body", "classes": ["app"], "children": [{"tag": "main", "id": "root"}]},
        ],
    }


def test_text_only_for_single_text_child_and_truncated() -> None:
    long_text = "x" * 300
    tree = {
        "tagName": "DIV",
        "children": [
            {"tagName": "P", "children": [{"type": "text", "text": f"  {long_text}  "}]},
            {
                "tagName": "LABEL",
                "children": [{"type": "text", "text": "Name"}, {"tagName": "INPUT"}],
            },
        ],
    }
    out = serialize_dom(tree)
    assert out is not None
    paragraph, label = out["children"]
    assert paragraph["text"] == "x" * TEXT_LIMIT
    assert "text" not in label
    assert label["children"] == [{"tag": "input"}]


def test_non_element_roots() -> None:
    assert serialize_dom(None) is None
    assert serialize_dom({"type": "text", "text": "hi"}) is None
    assert serialize_dom({"tagName": "SCRIPT"}) is None
