from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_BRIDGE_PORT = 9333
DEFAULT_CATALOG_PORT = 3333


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class LensConfig:
    host: str = "127.0.0.1"
    bridge_port: int = DEFAULT_BRIDGE_PORT
    catalog_port: int = DEFAULT_CATALOG_PORT
    catalog_port_fallbacks: int = 1
    backend: str = "driver"
    cdp_port: int = 9222
    console_capacity: int = 500
    allow_origins: list[str] = field(default_factory=list)
    request_timeout: float = 30.0
    cdp_timeout: float = 10.0
    max_body_bytes: int = 1024 * 1024

    @staticmethod
    def normalize_backend(raw: str | None) -> str:
        backend = (raw or "").strip().lower()
        if backend in {"script", "inject", "injection", "js"}:
            return "script"
        if backend in {"driver", "cdp", "session", "playwright", ""}:
            return "driver"
        return "driver"

    @classmethod
    def from_env(cls) -> LensConfig:
        allow_raw = os.environ.get("MCP_LENS_ALLOW_ORIGINS", "")
        allow_origins = [o.strip().rstrip("/") for o in allow_raw.split(",") if o.strip()]
        capacity = _env_int("MCP_LENS_CONSOLE_CAPACITY", 500)
        return cls(
            host=(os.environ.get("MCP_LENS_HOST") or "127.0.0.1").strip() or "127.0.0.1",
            bridge_port=_env_int("MCP_LENS_BRIDGE_PORT", DEFAULT_BRIDGE_PORT),
            catalog_port=_env_int("MCP_LENS_CATALOG_PORT", DEFAULT_CATALOG_PORT),
            catalog_port_fallbacks=max(0, _env_int("MCP_LENS_CATALOG_PORT_FALLBACKS", 1)),
            backend=cls.normalize_backend(os.environ.get("MCP_LENS_BACKEND")),
            cdp_port=_env_int("MCP_BROWSER_PORT", 9222),
            console_capacity=capacity if capacity > 0 else 500,
            allow_origins=allow_origins,
            request_timeout=max(1.0, _env_float("MCP_LENS_REQUEST_TIMEOUT", 30.0)),
            cdp_timeout=max(1.0, _env_float("MCP_LENS_CDP_TIMEOUT", 10.0)),
            max_body_bytes=max(1024, _env_int("MCP_LENS_MAX_BODY_BYTES", 1024 * 1024)),
        )

    @property
    def bridge_url(self) -> str:
        return f"http://{self.host}:{self.bridge_port}"

    @property
    def cdp_url(self) -> str:
        return f"http://127.0.0.1:{self.cdp_port}"
