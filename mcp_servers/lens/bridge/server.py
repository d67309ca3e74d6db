"""Bridge server: the host-side end of the agent/host RPC channel.

``POST /`` with ``{"method", "params"}`` runs one command against the bound
AutomationHandler and answers with a result envelope. Commands run one at a
time on a single worker thread, in arrival order.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from aiohttp import web

from ..config import LensConfig
from ..errors import (
    BackendFaultError,
    BridgeError,
    InvalidTargetError,
    NotConnectedError,
    ProtocolError,
)
from ..handlers.base import AutomationHandler
from ..http_service import LoopbackHttpService, cors_middleware, is_loopback_origin
from ..origins import OriginAllowList
from ..redaction import DEFAULT_REDACTOR, SecretRedactor, redact_arguments
from .protocol import CommandSpec, decode_params, encode_result, error_envelope, get_spec, success_envelope

logger = logging.getLogger("mcp.lens.bridge")

_json_dumps = functools.partial(json.dumps, ensure_ascii=False, default=str)


class BridgeServer(LoopbackHttpService):
    """Loopback HTTP listener with a single-slot handler reference.

    ``start`` fails fast with ``PortUnavailableError`` when the port is taken:
    clients locate the Bridge by its fixed port.
    """

    thread_name = "mcp-lens-bridge"

    def __init__(
        self,
        config: LensConfig | None = None,
        *,
        port: int | None = None,
        allow_list: OriginAllowList | None = None,
        redactor: SecretRedactor | None = None,
    ) -> None:
        self.config = config or LensConfig()
        super().__init__(
            host=self.config.host,
            port=self.config.bridge_port if port is None else port,
            port_fallbacks=0,
            logger=logger,
        )
        self.allow_list = allow_list or OriginAllowList(self.config.allow_origins)
        self.redactor = redactor or DEFAULT_REDACTOR
        self._handler: AutomationHandler | None = None
        self._handler_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    # ─────────────────────────────────────────────────────────────────────────
    # Handler slot
    # ─────────────────────────────────────────────────────────────────────────

    def set_handler(self, handler: AutomationHandler | None) -> AutomationHandler | None:
        """Swap the bound handler; returns the previous one.

        Requests already dispatched keep the handler they captured.
        """
        with self._handler_lock:
            previous = self._handler
            self._handler = handler
        if handler is None:
            logger.info("Bridge handler unbound")
        else:
            logger.info("Bridge handler bound: %s", getattr(handler, "name", type(handler).__name__))
        return previous

    def get_handler(self) -> AutomationHandler | None:
        with self._handler_lock:
            return self._handler

    @property
    def connected(self) -> bool:
        return self.get_handler() is not None

    # ─────────────────────────────────────────────────────────────────────────
    # App
    # ─────────────────────────────────────────────────────────────────────────

    def _build_app(self) -> web.Application:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mcp-lens-bridge-cmd")
        app = web.Application(
            client_max_size=self.config.max_body_bytes,
            middlewares=[cors_middleware(is_loopback_origin)],
        )
        app.router.add_get("/health", self._handle_health)
        app.router.add_post("/", self._handle_root)
        app.router.add_post("/{method}", self._handle_method)
        return app

    async def _on_stopped(self) -> None:
        executor = self._executor
        self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _reply(envelope: dict[str, Any], status: int = 200) -> web.Response:
        return web.json_response(envelope, status=status, dumps=_json_dumps)

    async def _read_json(self, request: web.Request, *, allow_empty: bool = False) -> Any:
        try:
            raw = await request.read()
        except web.HTTPRequestEntityTooLarge as exc:
            raise ProtocolError(f"Request body exceeds {self.config.max_body_bytes} bytes") from exc
        if not raw.strip():
            if allow_empty:
                return None
            raise ProtocolError("Empty request body")
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProtocolError(f"Request body is not valid JSON: {exc}") from exc
        except RecursionError as exc:
            raise ProtocolError("Request body is nested too deeply") from exc

    async def _handle_health(self, _request: web.Request) -> web.Response:
        handler = self.get_handler()
        return self._reply(
            {
                "status": "ok",
                "connected": handler is not None,
                "backend": getattr(handler, "name", None) if handler is not None else None,
                "uptime": round(self.uptime, 3),
                "timestamp": int(time.time() * 1000),
            }
        )

    async def _handle_root(self, request: web.Request) -> web.Response:
        try:
            payload = await self._read_json(request)
        except ProtocolError as exc:
            return self._reply(exc.to_envelope(), 400)
        if not isinstance(payload, dict):
            return self._reply(ProtocolError("Request body must be a JSON object").to_envelope(), 400)
        return await self._dispatch(payload.get("method"), payload.get("params"))

    async def _handle_method(self, request: web.Request) -> web.Response:
        try:
            params = await self._read_json(request, allow_empty=True)
        except ProtocolError as exc:
            return self._reply(exc.to_envelope(), 400)
        return await self._dispatch(request.match_info["method"], params)

    async def _dispatch(self, method: Any, params: Any) -> web.Response:
        """Validate one command and queue it on the worker.

        Order of checks: unknown method, empty handler slot, then params. A
        known command sent while nothing is bound answers ``NotConnected``
        even when its params are malformed.
        """
        try:
            spec = get_spec(method)
        except ProtocolError as exc:
            return self._reply(exc.to_envelope(), 404 if isinstance(method, str) and method else 400)

        handler = self.get_handler()
        if handler is None:
            return self._reply(NotConnectedError("No browser page is connected to the bridge").to_envelope())

        try:
            kwargs = decode_params(spec, params)
        except ProtocolError as exc:
            return self._reply(exc.to_envelope(), 400)

        if spec.method == "navigate":
            check = self.allow_list.validate_url(kwargs["url"])
            if not check.valid:
                logger.warning("navigate refused: %s", check.error)
                return self._reply(InvalidTargetError(check.error or "URL not allowed").to_envelope())

        loop = asyncio.get_running_loop()
        envelope = await loop.run_in_executor(self._executor, self._invoke, handler, spec, kwargs)
        return self._reply(envelope)

    # ─────────────────────────────────────────────────────────────────────────
    # Worker thread
    # ─────────────────────────────────────────────────────────────────────────

    def _invoke(self, handler: AutomationHandler, spec: CommandSpec, kwargs: dict[str, Any]) -> dict[str, Any]:
        started = time.monotonic()
        logger.info("bridge %s %s", spec.method, redact_arguments(kwargs))
        try:
            value = getattr(handler, spec.attr)(**kwargs)
        except BridgeError as exc:
            error: BridgeError = exc
            logger.info("bridge %s -> %s: %s", spec.method, exc.kind, exc.message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("bridge %s: handler %s raised", spec.method, getattr(handler, "name", "?"))
            error = BackendFaultError(str(exc) or exc.__class__.__name__)
        else:
            result, count = self.redactor.redact_value(encode_result(spec, value))
            logger.debug("bridge %s ok in %.0fms", spec.method, (time.monotonic() - started) * 1000)
            return success_envelope(result, redacted_count=count)

        redacted = self.redactor.redact(error.message)
        if redacted.redacted_count:
            error = type(error)(redacted.text)
        return error_envelope(error, redacted_count=redacted.redacted_count)


__all__ = ["BridgeServer"]
