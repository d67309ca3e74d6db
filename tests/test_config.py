from __future__ import annotations

import pytest

from mcp_servers.lens.config import DEFAULT_BRIDGE_PORT, DEFAULT_CATALOG_PORT, LensConfig

_ENV_KEYS = (
    "MCP_LENS_HOST",
    "MCP_LENS_BRIDGE_PORT",
    "MCP_LENS_CATALOG_PORT",
    "MCP_LENS_CATALOG_PORT_FALLBACKS",
    "MCP_LENS_BACKEND",
    "MCP_BROWSER_PORT",
    "MCP_LENS_CONSOLE_CAPACITY",
    "MCP_LENS_ALLOW_ORIGINS",
    "MCP_LENS_REQUEST_TIMEOUT",
    "MCP_LENS_CDP_TIMEOUT",
    "MCP_LENS_MAX_BODY_BYTES",
)


def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clean_env(monkeypatch)
    cfg = LensConfig.from_env()
    assert cfg.host == "127.0.0.1"
    assert cfg.bridge_port == DEFAULT_BRIDGE_PORT == 9333
    assert cfg.catalog_port == DEFAULT_CATALOG_PORT == 3333
    assert cfg.catalog_port_fallbacks == 1
    assert cfg.backend == "driver"
    assert cfg.console_capacity == 500
    assert cfg.allow_origins == []
    assert cfg.bridge_url == "http://127.0.0.1:9333"
    assert cfg.cdp_url == "http://127.0.0.1:9222"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    _clean_env(monkeypatch)
    monkeypatch.setenv("MCP_LENS_BRIDGE_PORT", "9444")
    monkeypatch.setenv("MCP_LENS_BACKEND", "inject")
    monkeypatch.setenv("MCP_LENS_ALLOW_ORIGINS", "http://devbox:3000/, http://devbox:4000")
    monkeypatch.setenv("MCP_LENS_CONSOLE_CAPACITY", "50")
    monkeypatch.setenv("MCP_BROWSER_PORT", "9229")

    cfg = LensConfig.from_env()
    assert cfg.bridge_port == 9444
    assert cfg.backend == "script"
    assert cfg.allow_origins == ["http://devbox:3000", "http://devbox:4000"]
    assert cfg.console_capacity == 50
    assert cfg.cdp_url == "http://127.0.0.1:9229"


def test_malformed_values_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    _clean_env(monkeypatch)
    monkeypatch.setenv("MCP_LENS_BRIDGE_PORT", "not-a-port")
    monkeypatch.setenv("MCP_LENS_CONSOLE_CAPACITY", "-5")
    monkeypatch.setenv("MCP_LENS_REQUEST_TIMEOUT", "0")
    monkeypatch.setenv("MCP_LENS_CATALOG_PORT_FALLBACKS", "-2")
    monkeypatch.setenv("MCP_LENS_BACKEND", "quantum")

    cfg = LensConfig.from_env()
    assert cfg.bridge_port == DEFAULT_BRIDGE_PORT
    assert cfg.console_capacity == 500
    assert cfg.request_timeout == 1.0
    assert cfg.catalog_port_fallbacks == 0
    assert cfg.backend == "driver"
