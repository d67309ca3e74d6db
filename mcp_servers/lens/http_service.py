from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import threading
import time
import urllib.parse
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from .errors import PortUnavailableError

_BIND_RETRY_ERRNOS = {errno.EADDRINUSE, errno.EACCES}
_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def is_loopback_origin(origin: str) -> bool:
    try:
        host = (urllib.parse.urlsplit(origin).hostname or "").lower()
    except ValueError:
        return False
    return host in _LOOPBACK_HOSTS


def any_origin(_origin: str) -> bool:
    return True


def cors_middleware(origin_allowed: Callable[[str], bool]) -> Any:
    """Answer preflights with 204 and echo ``Origin`` when the policy accepts it."""

    @web.middleware
    async def _cors(request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]):
        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response(status=204)
        else:
            response = await handler(request)
        origin = request.headers.get("Origin")
        if origin and origin_allowed(origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Vary"] = "Origin"
        return response

    return _cors


class LoopbackHttpService:
    """aiohttp application served from a dedicated daemon thread.

    Sync API for the host process (``start`` / ``stop``), async server inside.
    ``start`` returns once a listener is bound and raises otherwise: when every
    candidate port is busy it raises ``PortUnavailableError``.
    """

    thread_name = "mcp-lens-http"

    def __init__(
        self,
        *,
        host: str = "127.0.0.1",
        port: int = 0,
        port_fallbacks: int = 0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.host = host
        self._configured_port = int(port)
        self._port_fallbacks = max(0, int(port_fallbacks))
        self._logger = logger or logging.getLogger("mcp.lens")

        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._bound_port: int | None = None
        self._start_error: BaseException | None = None
        self._started_at = 0.0

    # ─────────────────────────────────────────────────────────────────────────
    # Subclass hooks
    # ─────────────────────────────────────────────────────────────────────────

    def _build_app(self) -> web.Application:
        raise NotImplementedError

    async def _on_stopped(self) -> None:
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def port(self) -> int | None:
        with self._lock:
            return self._bound_port

    @property
    def uptime(self) -> float:
        return max(0.0, time.monotonic() - self._started_at) if self._started_at else 0.0

    @property
    def is_running(self) -> bool:
        return self.port is not None and bool(self._thread and self._thread.is_alive())

    def port_candidates(self) -> list[int]:
        base = self._configured_port
        if base == 0:
            return [0]
        return [p for p in range(base, base + self._port_fallbacks + 1) if 0 < p <= 65535]

    def start(self, *, wait_timeout: float = 5.0) -> int:
        if self._thread is not None and self._thread.is_alive():
            port = self.port
            if port is not None:
                return port

        self._ready.clear()
        with self._lock:
            self._start_error = None
            self._bound_port = None

        t = threading.Thread(target=self._run_thread, name=self.thread_name, daemon=True)
        self._thread = t
        t.start()

        if not self._ready.wait(timeout=max(0.05, float(wait_timeout))):
            raise RuntimeError(f"{self.thread_name} failed to start on {self.host}:{self._configured_port}")

        with self._lock:
            error = self._start_error
            port = self._bound_port
        if error is not None:
            t.join(timeout=1.0)
            raise error
        if port is None:
            raise RuntimeError(f"{self.thread_name} did not report a bound port")
        self._started_at = time.monotonic()
        return port

    def stop(self, *, timeout: float = 2.0) -> None:
        loop = self._loop
        stop_event = self._stop_event
        if loop is not None and stop_event is not None and not loop.is_closed():
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(stop_event.set)
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)
        self._thread = None
        with self._lock:
            self._bound_port = None

    def __enter__(self) -> LoopbackHttpService:
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()

    # ─────────────────────────────────────────────────────────────────────────
    # Internals (async)
    # ─────────────────────────────────────────────────────────────────────────

    def _run_thread(self) -> None:
        try:
            asyncio.run(self._run_async())
        except Exception as exc:  # noqa: BLE001
            with self._lock:
                if self._start_error is None and self._bound_port is None:
                    self._start_error = exc
            self._logger.exception("%s crashed", self.thread_name)
        finally:
            self._ready.set()

    async def _run_async(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()

        runner = web.AppRunner(self._build_app(), access_log=None)
        await runner.setup()
        try:
            bound = await self._bind(runner)
            if bound is None:
                return
            with self._lock:
                self._bound_port = bound
            self._logger.info("%s listening on %s:%s", self.thread_name, self.host, bound)
            self._ready.set()
            await self._stop_event.wait()
        finally:
            await runner.cleanup()
            await self._on_stopped()
            self._logger.info("%s stopped", self.thread_name)

    async def _bind(self, runner: web.AppRunner) -> int | None:
        last_error = ""
        candidates = self.port_candidates()
        for port in candidates:
            site = web.TCPSite(runner, self.host, port)
            try:
                await site.start()
            except OSError as exc:
                last_error = str(exc)
                with contextlib.suppress(Exception):
                    await site.stop()
                if exc.errno in _BIND_RETRY_ERRNOS:
                    self._logger.warning("%s: port %s unavailable (%s)", self.thread_name, port, exc.strerror or exc)
                    continue
                break
            for addr in runner.addresses:
                if isinstance(addr, tuple) and len(addr) >= 2:
                    return int(addr[1])
            return port

        with self._lock:
            self._start_error = PortUnavailableError(
                self.host, candidates[-1] if candidates else self._configured_port, last_error
            )
        return None


__all__ = ["LoopbackHttpService", "any_origin", "cors_middleware", "is_loopback_origin"]
