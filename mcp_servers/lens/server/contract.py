"""Protocol and tool contract definitions.

This is the single source of truth for:
- supported MCP protocol versions
- server identity
- capabilities advertised by initialize
- the agent tool list and the catalog tool list
"""

from __future__ import annotations

from typing import Any

from .catalog_tools import CATALOG_TOOLS
from .definitions import AGENT_TOOL_DEFINITIONS

SERVER_INFO: dict[str, str] = {"name": "lens", "version": "0.1.0"}
CATALOG_SERVER_INFO: dict[str, str] = {"name": "lens-catalog", "version": "0.1.0"}

SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2024-11-05"]
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]
DEFAULT_PROTOCOL_VERSION = LATEST_PROTOCOL_VERSION

CAPABILITIES: dict[str, Any] = {
    "tools": {"listChanged": False},
}


def select_protocol(requested: Any) -> str:
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return DEFAULT_PROTOCOL_VERSION


def initialize_result(protocol: str, *, server_info: dict[str, str] | None = None) -> dict[str, Any]:
    return {
        "protocolVersion": protocol,
        "serverInfo": server_info or SERVER_INFO,
        "capabilities": CAPABILITIES,
        "instructions": "",
    }


def tools_list() -> list[dict[str, Any]]:
    return AGENT_TOOL_DEFINITIONS


def catalog_tools_list() -> list[dict[str, Any]]:
    return CATALOG_TOOLS


__all__ = [
    "CAPABILITIES",
    "CATALOG_SERVER_INFO",
    "DEFAULT_PROTOCOL_VERSION",
    "LATEST_PROTOCOL_VERSION",
    "SERVER_INFO",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "catalog_tools_list",
    "initialize_result",
    "select_protocol",
    "tools_list",
]
