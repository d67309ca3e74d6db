from __future__ import annotations

import json
import socket
import urllib.parse
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import ProxyHandler, Request, build_opener

USER_AGENT = "mcp-lens/0.1"
_LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}


class HttpClientError(Exception):
    """Transport-level failure talking to a loopback service."""

    def __init__(self, message: str, *, status: int | None = None, timed_out: bool = False, refused: bool = False):
        super().__init__(message)
        self.status = status
        self.timed_out = timed_out
        self.refused = refused


def _ensure_loopback(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme != "http":
        raise HttpClientError("Only http:// loopback endpoints are supported")
    if (parsed.hostname or "").lower() not in _LOOPBACK_HOSTS:
        raise HttpClientError(f"Host {parsed.hostname} is not a loopback address")


def _classify(exc: BaseException) -> HttpClientError:
    reason = getattr(exc, "reason", exc)
    if isinstance(reason, (TimeoutError, socket.timeout)) or "timed out" in str(reason).lower():
        return HttpClientError(f"Request timed out: {reason}", timed_out=True)
    if isinstance(reason, ConnectionRefusedError) or "refused" in str(reason).lower():
        return HttpClientError(f"Connection refused: {reason}", refused=True)
    return HttpClientError(str(reason))


def _decode(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HttpClientError(f"Invalid JSON response: {exc}") from exc


def http_json(url: str, payload: Any | None = None, *, timeout: float = 10.0, max_bytes: int = 32_000_000) -> Any:
    """GET (payload is None) or POST JSON to a loopback URL and decode the JSON reply.

    Non-2xx replies still decode their body: the Bridge reports protocol errors
    as JSON envelopes with 4xx statuses.
    """
    _ensure_loopback(url)
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    data = None
    if payload is not None:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers["Content-Type"] = "application/json"
    req = Request(url, data=data, headers=headers, method="POST" if data is not None else "GET")
    # No proxy handler: loopback traffic must never be routed through HTTP(S)_PROXY.
    opener = build_opener(ProxyHandler({}))
    try:
        with opener.open(req, timeout=timeout) as resp:
            return _decode(resp.read(max_bytes))
    except HTTPError as exc:
        body = exc.read(max_bytes) if exc.fp is not None else b""
        try:
            decoded = _decode(body)
        except HttpClientError:
            decoded = None
        if isinstance(decoded, dict):
            return decoded
        raise HttpClientError(f"HTTP {exc.code}: {exc.reason}", status=exc.code) from exc
    except (TimeoutError, socket.timeout, URLError, ConnectionError) as exc:
        raise _classify(exc) from exc
