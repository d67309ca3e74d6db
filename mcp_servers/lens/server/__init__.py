"""Server package for the lens MCP surfaces.

Keep this package import light: importing `mcp_servers.lens.server.*` should not
eagerly pull the registry or the catalog server (and with them aiohttp).
"""

from __future__ import annotations

from typing import Any

__all__ = ["ToolCatalogServer", "ToolRegistry", "create_default_registry"]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {"ToolRegistry", "create_default_registry"}:
        from .registry import ToolRegistry, create_default_registry

        return {"ToolRegistry": ToolRegistry, "create_default_registry": create_default_registry}[name]
    if name == "ToolCatalogServer":
        from .catalog import ToolCatalogServer

        return ToolCatalogServer
    raise AttributeError(name)
