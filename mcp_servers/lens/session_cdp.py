"""Raw DevTools (CDP) connection to one page target."""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from collections import deque
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import websocket

from .config import LensConfig
from .http_client import HttpClientError, http_json

logger = logging.getLogger("mcp.lens.cdp")

EventSink = Callable[[dict[str, Any]], None]


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, socket.timeout, BlockingIOError, websocket.WebSocketTimeoutException)):
        return True
    msg = str(exc).lower()
    return "timed out" in msg or "would block" in msg


class CdpConnection:
    """Low-level CDP WebSocket connection.

    Commands are serialised by a re-entrant lock: the Bridge worker and the
    catalog thread may both reach the same page.
    """

    def __init__(self, ws_url: str, timeout: float = 5.0, *, max_events: int = 2000):
        self.ws = websocket.create_connection(ws_url, timeout=timeout, suppress_origin=True)
        self.ws_url = ws_url
        self.timeout = float(timeout)
        self._next_id = 1
        self._lock = threading.RLock()
        # Events that arrive while waiting for a command response are kept for later waits.
        self._event_queue: deque[dict[str, Any]] = deque(maxlen=max(1, int(max_events)))
        self._event_sink: EventSink | None = None

    def set_event_sink(self, sink: EventSink | None) -> None:
        """Attach a callback invoked for every received CDP event."""
        self._event_sink = sink

    def _notify(self, event: dict[str, Any]) -> None:
        sink = self._event_sink
        if sink is None:
            return
        try:
            sink(event)
        except Exception:  # noqa: BLE001
            logger.debug("CDP event sink failed for %s", event.get("method"), exc_info=True)

    def _push_event(self, event: dict[str, Any]) -> None:
        if not isinstance(event, dict) or not isinstance(event.get("method"), str):
            return
        self._notify(event)
        self._event_queue.append(event)

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest queued event params for the given event name."""
        if not event_name:
            return None
        with self._lock:
            for ev in list(self._event_queue):
                if ev.get("method") == event_name:
                    self._event_queue.remove(ev)
                    params = ev.get("params")
                    return params if isinstance(params, dict) else {}
        return None

    def discard_events(self, event_name: str) -> int:
        """Drop every queued event with this name; returns how many were dropped."""
        with self._lock:
            keep = [ev for ev in self._event_queue if ev.get("method") != event_name]
            dropped = len(self._event_queue) - len(keep)
            self._event_queue.clear()
            self._event_queue.extend(keep)
            return dropped

    @staticmethod
    def _is_event(data: Any) -> bool:
        return isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data

    def drain_events(self, *, max_messages: int = 200) -> int:
        """Consume already-buffered events without blocking."""
        drained = 0
        with self._lock:
            for _ in range(max(0, int(max_messages))):
                try:
                    self.ws.settimeout(0.01)
                    raw = self.ws.recv()
                except Exception as exc:  # noqa: BLE001
                    if not _is_timeout(exc):
                        logger.debug("CDP drain stopped: %s", exc)
                    break
                try:
                    data = json.loads(raw)
                except (TypeError, json.JSONDecodeError):
                    continue
                if not self._is_event(data):
                    # Late reply to a posted command.
                    continue
                self._push_event(data)
                drained += 1
        return drained

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for its response."""
        with self._lock:
            msg_id = self._next_id
            self._next_id += 1
            msg: dict[str, Any] = {"id": msg_id, "method": method}
            if params:
                msg["params"] = params
            try:
                self.ws.settimeout(min(2.0, max(0.5, self.timeout)))
                self.ws.send(json.dumps(msg))
            except Exception as exc:  # noqa: BLE001
                raise HttpClientError(f"CDP send failed ({method}): {exc}") from exc
            return self._recv_until(msg_id, method)

    def post(self, method: str, params: dict[str, Any] | None = None) -> int:
        """Send a command without waiting; its response is skipped by later reads.

        Usable from an event sink while another command is waiting (e.g. closing
        a JS dialog that blocks that command).
        """
        with self._lock:
            msg_id = self._next_id
            self._next_id += 1
            msg: dict[str, Any] = {"id": msg_id, "method": method}
            if params:
                msg["params"] = params
            try:
                self.ws.send(json.dumps(msg))
            except Exception as exc:  # noqa: BLE001
                raise HttpClientError(f"CDP send failed ({method}): {exc}") from exc
            return msg_id

    def send_many(self, commands: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Send several commands in order; ``delayMs`` spaces them out."""
        out: list[dict[str, Any]] = []
        with self._lock:
            for cmd in commands:
                method = cmd.get("method")
                if not isinstance(method, str) or not method.strip():
                    raise HttpClientError("send_many: each command must include a non-empty 'method'")
                params = cmd.get("params") if isinstance(cmd.get("params"), dict) else None
                out.append(self.send(method, params))
                delay_ms = int(cmd.get("delayMs") or 0)
                if delay_ms > 0:
                    time.sleep(min(5.0, delay_ms / 1000.0))
        return out

    def _recv_until(self, expected_id: int, method: str) -> dict[str, Any]:
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise HttpClientError(f"CDP response timed out ({method})", timed_out=True)
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                if _is_timeout(exc):
                    continue
                raise HttpClientError(str(exc)) from exc

            try:
                data = json.loads(raw)
            except (TypeError, json.JSONDecodeError):
                continue

            if self._is_event(data):
                self._push_event(data)
                continue

            if isinstance(data, dict) and data.get("id") == expected_id:
                if "error" in data:
                    error = data["error"]
                    message = error.get("message") if isinstance(error, dict) else str(error)
                    raise HttpClientError(f"{method}: {message}")
                result = data.get("result")
                return result if isinstance(result, dict) else {}

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        """Wait for a specific CDP event; None when the timeout expires."""
        queued = self.pop_event(event_name)
        if queued is not None:
            return queued

        deadline = time.monotonic() + max(0.0, float(timeout))
        with self._lock:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                try:
                    self.ws.settimeout(min(0.5, remaining))
                    raw = self.ws.recv()
                except Exception as exc:  # noqa: BLE001
                    if _is_timeout(exc):
                        continue
                    raise HttpClientError(str(exc)) from exc

                try:
                    data = json.loads(raw)
                except (TypeError, json.JSONDecodeError):
                    continue

                if not self._is_event(data):
                    continue
                if data.get("method") == event_name:
                    self._notify(data)
                    params = data.get("params")
                    return params if isinstance(params, dict) else {}
                self._push_event(data)

    def close(self) -> None:
        """Close the socket without a close handshake."""
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                sock.close()


def list_page_targets(config: LensConfig) -> list[dict[str, Any]]:
    """Page targets exposed by the DevTools HTTP endpoint."""
    data = http_json(f"{config.cdp_url}/json/list", timeout=config.cdp_timeout)
    if not isinstance(data, list):
        raise HttpClientError("Unexpected /json/list payload")
    return [t for t in data if isinstance(t, dict) and t.get("type") == "page" and t.get("webSocketDebuggerUrl")]


def connect_first_page(config: LensConfig) -> tuple[CdpConnection, dict[str, Any]]:
    """Attach to the first page target of an already running Chrome."""
    targets = list_page_targets(config)
    if not targets:
        raise HttpClientError(f"No page targets at {config.cdp_url} (is Chrome running with a debugging port?)")
    target = targets[0]
    logger.info("Attaching to page %s (%s)", target.get("id"), target.get("url"))
    return CdpConnection(str(target["webSocketDebuggerUrl"]), timeout=config.cdp_timeout), target


__all__ = ["CdpConnection", "connect_first_page", "list_page_targets"]
