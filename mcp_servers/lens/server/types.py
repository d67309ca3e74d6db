"""
Tool results as the agent sees them: MCP content items plus an error flag.
"""

from __future__ import annotations

import json as _json
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ToolContent:
    type: str  # text | image
    text: str | None = None
    data: str | None = None  # base64 PNG
    mime_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.type == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text}


@dataclass(slots=True)
class ToolResult:
    """Content list returned by an agent tool or a catalog tool."""

    content: list[ToolContent] = field(default_factory=list)
    is_error: bool = False
    # In-process value behind the text; never sent on the wire.
    data: Any | None = None

    @classmethod
    def text(cls, text: str) -> ToolResult:
        return cls(content=[ToolContent(type="text", text=text or "")])

    @classmethod
    def error(cls, message: str, *, tool: str | None = None) -> ToolResult:
        """A failed tool call: one short plain-text line, no traceback."""
        detail: dict[str, Any] = {"ok": False, "error": message}
        if tool:
            detail["tool"] = tool
        return cls(content=[ToolContent(type="text", text=message)], is_error=True, data=detail)

    @classmethod
    def json(cls, data: Any) -> ToolResult:
        """Value rendered as indented JSON text."""
        rendered = _json.dumps(data, indent=2, ensure_ascii=False, default=str)
        return cls(content=[ToolContent(type="text", text=rendered)], data=data)

    @classmethod
    def with_image(cls, text: str, data_b64: str, mime_type: str = "image/png", data: Any | None = None) -> ToolResult:
        """Screenshot first, caption second; caption alone when there is no image."""
        caption = ToolContent(type="text", text=text or "")
        if not data_b64:
            return cls(content=[caption], data=data)
        return cls(content=[ToolContent(type="image", data=data_b64, mime_type=mime_type), caption], data=data)

    def to_content_list(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.content]


__all__ = ["ToolContent", "ToolResult"]
