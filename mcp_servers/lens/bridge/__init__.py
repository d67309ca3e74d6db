"""Local RPC channel between the agent-tool process and the host owning the page."""

from __future__ import annotations

from .client import BridgeClient
from .protocol import COMMAND_SPECS, CommandSpec
from .server import BridgeServer

__all__ = ["COMMAND_SPECS", "BridgeClient", "BridgeServer", "CommandSpec"]
