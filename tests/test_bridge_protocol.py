from __future__ import annotations

import pytest

from mcp_servers.lens.bridge.protocol import (
    COMMAND_SPECS,
    decode_params,
    encode_result,
    error_envelope,
    get_spec,
    success_envelope,
    wait_budget_seconds,
)
from mcp_servers.lens.errors import NotFoundError, ProtocolError
from mcp_servers.lens.handlers.base import AutomationHandler, ElementDescriptor, SessionState


def test_every_command_maps_to_a_handler_method() -> None:
    for spec in COMMAND_SPECS.values():
        assert callable(getattr(AutomationHandler, spec.attr, None)), spec.method


def test_unknown_or_missing_method() -> None:
    with pytest.raises(ProtocolError, match="Unknown method: teleport"):
        get_spec("teleport")
    with pytest.raises(ProtocolError, match="Missing 'method'"):
        get_spec(None)


def test_decode_applies_defaults_and_renames() -> None:
    assert decode_params(get_spec("click"), {"selector": "#go"}) == {
        "selector": "#go",
        "button": "left",
        "click_count": 1,
        "delay": 0,
    }
    assert decode_params(get_spec("type"), {"selector": "#q", "text": "", "clearFirst": "true"}) == {
        "selector": "#q",
        "text": "",
        "clear_first": True,
        "delay": 0,
    }
    assert decode_params(get_spec("waitFor"), {"selector": ".x"}) == {"selector": ".x", "timeout": 5000, "visible": True}
    assert decode_params(get_spec("selectOption"), {"selector": "s", "value": "a"}) == {"selector": "s", "values": ["a"]}
    assert decode_params(get_spec("waitForResponse"), {"urlPattern": "/api"}) == {"pattern": "/api", "timeout": 30000}


def test_decode_rejects_bad_params() -> None:
    with pytest.raises(ProtocolError, match="missing required parameter 'selector'"):
        decode_params(get_spec("click"), {})
    with pytest.raises(ProtocolError, match="must be one of"):
        decode_params(get_spec("click"), {"selector": "a", "button": "thumb"})
    with pytest.raises(ProtocolError, match="must be a number"):
        decode_params(get_spec("inspectElementAtPoint"), {"x": "left", "y": 1})
    with pytest.raises(ProtocolError, match=">= 1"):
        decode_params(get_spec("setViewport"), {"width": 0})
    with pytest.raises(ProtocolError, match="must not be empty"):
        decode_params(get_spec("navigate"), {"url": ""})
    with pytest.raises(ProtocolError, match="must be an object"):
        decode_params(get_spec("reload"), ["x"])


def test_wait_budget() -> None:
    assert wait_budget_seconds(get_spec("waitFor"), {"timeout": 1500}) == 1.5
    assert wait_budget_seconds(get_spec("waitFor"), {}) == 5.0
    assert wait_budget_seconds(get_spec("waitForResponse"), None) == 30.0
    assert wait_budget_seconds(get_spec("click"), {"timeout": 9000}) == 0.0


def test_encode_results_and_envelopes() -> None:
    element = ElementDescriptor(tag_name="button", selector="#go", id="go")
    assert encode_result(get_spec("inspectElement"), element)["tagName"] == "button"
    assert encode_result(get_spec("click"), "ignored") is None
    assert encode_result(get_spec("screenshot"), "iVBOR") == {"image": "iVBOR"}
    state = encode_result(get_spec("getState"), SessionState(connected=True, current_url="http://localhost:3000"))
    assert state == {
        "connected": True,
        "currentUrl": "http://localhost:3000",
        "lastInspectedElement": None,
        "consoleLogs": [],
    }

    assert success_envelope({"a": 1}) == {"success": True, "result": {"a": 1}}
    assert success_envelope("x", redacted_count=2)["redactedCount"] == 2
    assert error_envelope(NotFoundError("Element not found: #x")) == {
        "success": False,
        "error": "Element not found: #x",
        "kind": "NotFound",
    }
