"""Tool catalog: a small JSON-RPC 2.0 endpoint for read-only page inspection.

Any MCP-capable caller can ``POST /`` here. The catalog never owns a page: it
reads through whichever handler is bound to the Bridge (``handler_source``)
and reads console messages from the shared ConsoleLog.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from aiohttp import web

from ..config import LensConfig
from ..console import ConsoleLog
from ..handlers.base import AutomationHandler
from ..http_service import LoopbackHttpService, any_origin, cors_middleware
from ..redaction import DEFAULT_REDACTOR, SecretRedactor, redact_arguments
from .catalog_tools import CATALOG_HANDLERS
from .contract import CATALOG_SERVER_INFO, catalog_tools_list, initialize_result, select_protocol
from .types import ToolResult

logger = logging.getLogger("mcp.lens.catalog")

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

_json_dumps = functools.partial(json.dumps, ensure_ascii=False, default=str)

HandlerSource = Callable[[], AutomationHandler | None]


def _rpc_error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


class ToolCatalogServer(LoopbackHttpService):
    """Loopback JSON-RPC server for the inspection catalog.

    On a busy port it retries the next ``config.catalog_port_fallbacks`` ports.
    """

    thread_name = "mcp-lens-catalog"

    def __init__(
        self,
        config: LensConfig | None = None,
        *,
        handler_source: HandlerSource | None = None,
        console: ConsoleLog | None = None,
        port: int | None = None,
        redactor: SecretRedactor | None = None,
    ) -> None:
        self.config = config or LensConfig()
        super().__init__(
            host=self.config.host,
            port=self.config.catalog_port if port is None else port,
            port_fallbacks=self.config.catalog_port_fallbacks,
            logger=logger,
        )
        self.handler_source: HandlerSource = handler_source or (lambda: None)
        self.console = console if console is not None else ConsoleLog(self.config.console_capacity)
        self.redactor = redactor or DEFAULT_REDACTOR
        self._executor: ThreadPoolExecutor | None = None

    def _build_app(self) -> web.Application:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mcp-lens-catalog-call")
        app = web.Application(
            client_max_size=self.config.max_body_bytes,
            middlewares=[cors_middleware(any_origin)],
        )
        app.router.add_post("/", self._handle_rpc)
        return app

    async def _on_stopped(self) -> None:
        executor = self._executor
        self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _handle_rpc(self, request: web.Request) -> web.Response:
        try:
            raw = await request.read()
            message = json.loads(raw.decode("utf-8"))
        except (web.HTTPRequestEntityTooLarge, UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
            logger.info("catalog: malformed request body (%s)", exc.__class__.__name__)
            return web.json_response(_rpc_error(None, PARSE_ERROR, "Parse error"), status=400, dumps=_json_dumps)
        if not isinstance(message, dict):
            return web.json_response(
                _rpc_error(None, PARSE_ERROR, "Parse error: expected a JSON object"), status=400, dumps=_json_dumps
            )
        if "id" not in message:
            # Notification: acknowledged, never answered.
            return web.Response(status=202)

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(self._executor, self.handle_message, message)
        return web.json_response(response, dumps=_json_dumps)

    # ─────────────────────────────────────────────────────────────────────────
    # JSON-RPC dispatch (sync; runs on the worker thread)
    # ─────────────────────────────────────────────────────────────────────────

    def handle_message(self, message: dict[str, Any]) -> dict[str, Any]:
        request_id = message.get("id")
        method = message.get("method")
        params = message.get("params") if isinstance(message.get("params"), dict) else {}

        try:
            if method == "initialize":
                result = initialize_result(select_protocol(params.get("protocolVersion")), server_info=CATALOG_SERVER_INFO)
            elif method == "ping":
                result = {"pong": True}
            elif method == "tools/list":
                result = {"tools": catalog_tools_list()}
            elif method == "tools/call":
                name = params.get("name")
                arguments = params.get("arguments") if isinstance(params.get("arguments"), dict) else {}
                if not isinstance(name, str) or name not in CATALOG_HANDLERS:
                    return _rpc_error(request_id, METHOD_NOT_FOUND, f"Unknown tool: {name}")
                result = self.call_tool(name, arguments)
            else:
                return _rpc_error(request_id, METHOD_NOT_FOUND, f"Method {method} not found")
        except Exception as exc:  # noqa: BLE001
            logger.exception("catalog %s failed", method)
            return _rpc_error(request_id, INTERNAL_ERROR, str(exc) or exc.__class__.__name__)
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Run one catalog tool; every text field of the reply is redacted once."""
        logger.info("catalog tool=%s args=%s", name, redact_arguments(arguments))
        handler = self.handler_source()
        if handler is not None:
            handler.sync_console()
        value = CATALOG_HANDLERS[name](handler, self.console, arguments)
        if isinstance(value, ToolResult):
            content, count = self.redactor.redact_value(value.to_content_list())
            is_error = value.is_error
        else:
            redacted, count = self.redactor.redact_value(value)
            content, is_error = ToolResult.json(redacted).to_content_list(), False
        if count:
            logger.info("catalog tool=%s redacted %d secret(s)", name, count)
        payload: dict[str, Any] = {"content": content}
        if is_error:
            payload["isError"] = True
        return payload


__all__ = ["INTERNAL_ERROR", "METHOD_NOT_FOUND", "PARSE_ERROR", "ToolCatalogServer"]
