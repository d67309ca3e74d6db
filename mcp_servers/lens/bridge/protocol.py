"""Bridge wire contract.

Single source of truth for the command table: wire method names (camelCase),
the handler attribute each maps to, and parameter validation. Both the server
(decode) and the client (request timeouts for waits) read from it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..errors import BridgeError, ProtocolError
from ..handlers.base import (
    DEFAULT_HIGHLIGHT_COLOR,
    DEFAULT_HIGHLIGHT_DURATION_MS,
    DEFAULT_RESPONSE_TIMEOUT_MS,
    DEFAULT_WAIT_TIMEOUT_MS,
    ElementDescriptor,
    SessionState,
)

_MISSING = object()


@dataclass(frozen=True, slots=True)
class Param:
    name: str
    kind: str = "str"  # str | int | float | bool | str_list | any
    required: bool = False
    default: Any = None
    attr: str | None = None
    choices: tuple[str, ...] = ()
    allow_empty: bool = False
    aliases: tuple[str, ...] = ()
    minimum: float | None = None

    @property
    def kwarg(self) -> str:
        return self.attr or self.name


@dataclass(frozen=True, slots=True)
class CommandSpec:
    method: str
    attr: str
    params: tuple[Param, ...] = ()
    # Name of the millisecond budget parameter for blocking waits.
    wait_param: str | None = None
    wait_default_ms: int = 0
    result: str = "value"  # value | element | state | image | void


def _selector(required: bool = True) -> Param:
    return Param("selector", required=required)


COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("navigate", "navigate", (Param("url", required=True),)),
    CommandSpec("inspectElement", "inspect_element", (_selector(False),), result="element"),
    CommandSpec(
        "inspectElementAtPoint",
        "inspect_element_at_point",
        (Param("x", "float", required=True), Param("y", "float", required=True)),
        result="element",
    ),
    CommandSpec(
        "highlight",
        "highlight",
        (
            _selector(),
            Param("color", default=DEFAULT_HIGHLIGHT_COLOR),
            Param("duration", "int", default=DEFAULT_HIGHLIGHT_DURATION_MS, minimum=0),
        ),
        result="void",
    ),
    CommandSpec("clearHighlights", "clear_highlights", result="void"),
    CommandSpec("screenshot", "screenshot", (_selector(False),), result="image"),
    CommandSpec(
        "getConsoleLogs",
        "get_console_logs",
        (Param("level"), Param("limit", "int", default=20, minimum=0)),
    ),
    CommandSpec("reload", "reload", result="void"),
    CommandSpec(
        "click",
        "click",
        (
            _selector(),
            Param("button", default="left", choices=("left", "right", "middle")),
            Param("clickCount", "int", default=1, attr="click_count", minimum=1),
            Param("delay", "int", default=0, minimum=0),
        ),
        result="void",
    ),
    CommandSpec(
        "type",
        "type_text",
        (
            _selector(),
            Param("text", required=True, allow_empty=True),
            Param("clearFirst", "bool", default=False, attr="clear_first"),
            Param("delay", "int", default=0, minimum=0),
        ),
        result="void",
    ),
    CommandSpec("fill", "fill", (_selector(), Param("value", required=True, allow_empty=True)), result="void"),
    CommandSpec(
        "selectOption",
        "select_option",
        (_selector(), Param("values", "str_list", required=True, aliases=("value",))),
    ),
    CommandSpec("hover", "hover", (_selector(),), result="void"),
    CommandSpec("pressKey", "press_key", (Param("key", required=True),), result="void"),
    CommandSpec(
        "dragAndDrop",
        "drag_and_drop",
        (Param("source", required=True), Param("target", required=True)),
        result="void",
    ),
    CommandSpec(
        "scroll",
        "scroll",
        (
            _selector(False),
            Param("direction", choices=("up", "down", "left", "right")),
            Param("distance", "float", minimum=0),
        ),
        result="void",
    ),
    CommandSpec(
        "waitFor",
        "wait_for",
        (
            _selector(),
            Param("timeout", "int", default=DEFAULT_WAIT_TIMEOUT_MS, minimum=0),
            Param("visible", "bool", default=True),
        ),
        wait_param="timeout",
        wait_default_ms=DEFAULT_WAIT_TIMEOUT_MS,
        result="element",
    ),
    CommandSpec(
        "waitForResponse",
        "wait_for_response",
        (
            Param("pattern", required=True, aliases=("urlPattern",)),
            Param("timeout", "int", default=DEFAULT_RESPONSE_TIMEOUT_MS, minimum=0),
        ),
        wait_param="timeout",
        wait_default_ms=DEFAULT_RESPONSE_TIMEOUT_MS,
    ),
    CommandSpec("getText", "get_text", (_selector(),)),
    CommandSpec("getAttribute", "get_attribute", (_selector(), Param("name", required=True))),
    CommandSpec("isVisible", "is_visible", (_selector(),)),
    CommandSpec("isEnabled", "is_enabled", (_selector(),)),
    CommandSpec("isChecked", "is_checked", (_selector(),)),
    CommandSpec("evaluate", "evaluate", (Param("script", required=True),)),
    CommandSpec("getAccessibilitySnapshot", "get_accessibility_snapshot"),
    CommandSpec("goBack", "go_back", result="void"),
    CommandSpec("goForward", "go_forward", result="void"),
    CommandSpec(
        "setDialogHandler",
        "set_dialog_handler",
        (Param("action", required=True, choices=("accept", "dismiss")),),
        result="void",
    ),
    CommandSpec("setViewport", "set_viewport", (Param("width", "int", required=True, minimum=1),), result="void"),
    CommandSpec("getState", "get_state", result="state"),
)

COMMAND_SPECS: dict[str, CommandSpec] = {spec.method: spec for spec in COMMANDS}


def get_spec(method: Any) -> CommandSpec:
    if not isinstance(method, str) or not method:
        raise ProtocolError("Missing 'method'")
    spec = COMMAND_SPECS.get(method)
    if spec is None:
        raise ProtocolError(f"Unknown method: {method}")
    return spec


def _coerce(method: str, param: Param, value: Any) -> Any:
    where = f"{method}.{param.name}"
    kind = param.kind
    if kind == "any":
        return value
    if kind == "str":
        if not isinstance(value, str):
            raise ProtocolError(f"{where} must be a string")
        if not value and param.required and not param.allow_empty:
            raise ProtocolError(f"{where} must not be empty")
        if param.choices and value not in param.choices:
            raise ProtocolError(f"{where} must be one of {', '.join(param.choices)}")
        return value
    if kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in {"true", "false"}:
            return value.lower() == "true"
        raise ProtocolError(f"{where} must be a boolean")
    if kind in {"int", "float"}:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ProtocolError(f"{where} must be a number")
        try:
            number = float(value)
        except ValueError as exc:
            raise ProtocolError(f"{where} must be a number") from exc
        if number != number or number in (float("inf"), float("-inf")):
            raise ProtocolError(f"{where} must be finite")
        if param.minimum is not None and number < param.minimum:
            raise ProtocolError(f"{where} must be >= {param.minimum:g}")
        return int(number) if kind == "int" else number
    if kind == "str_list":
        items = [value] if isinstance(value, str) else value
        if not isinstance(items, list) or not all(isinstance(v, str) for v in items):
            raise ProtocolError(f"{where} must be a string or a list of strings")
        if not items:
            raise ProtocolError(f"{where} must not be empty")
        return list(items)
    raise ProtocolError(f"{where}: unsupported parameter kind {kind!r}")


def decode_params(spec: CommandSpec, params: Any) -> dict[str, Any]:
    """Validate wire params and map them to handler keyword arguments."""
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise ProtocolError(f"{spec.method}: 'params' must be an object")
    kwargs: dict[str, Any] = {}
    for param in spec.params:
        raw = params.get(param.name, _MISSING)
        for alias in param.aliases:
            if raw is not _MISSING and raw is not None:
                break
            raw = params.get(alias, _MISSING)
        if raw is _MISSING or raw is None:
            if param.required:
                raise ProtocolError(f"{spec.method}: missing required parameter '{param.name}'")
            if param.default is not None:
                kwargs[param.kwarg] = param.default
            continue
        kwargs[param.kwarg] = _coerce(spec.method, param, raw)
    return kwargs


def wait_budget_seconds(spec: CommandSpec, params: Mapping[str, Any] | None) -> float:
    """How long a wait command may legitimately block, in seconds."""
    if not spec.wait_param:
        return 0.0
    raw = (params or {}).get(spec.wait_param)
    try:
        ms = float(raw) if raw is not None and not isinstance(raw, bool) else float(spec.wait_default_ms)
    except (TypeError, ValueError):
        ms = float(spec.wait_default_ms)
    return max(0.0, ms / 1000.0)


def encode_result(spec: CommandSpec, value: Any) -> Any:
    if spec.result == "void":
        return None
    if spec.result == "image":
        return {"image": value}
    if isinstance(value, (ElementDescriptor, SessionState)):
        return value.to_dict()
    return value


def success_envelope(result: Any, *, redacted_count: int = 0) -> dict[str, Any]:
    envelope: dict[str, Any] = {"success": True, "result": result}
    if redacted_count:
        envelope["redactedCount"] = redacted_count
    return envelope


def error_envelope(exc: BridgeError, *, redacted_count: int = 0) -> dict[str, Any]:
    envelope = exc.to_envelope()
    if redacted_count:
        envelope["redactedCount"] = redacted_count
    return envelope


__all__ = [
    "COMMANDS",
    "COMMAND_SPECS",
    "CommandSpec",
    "Param",
    "decode_params",
    "encode_result",
    "error_envelope",
    "get_spec",
    "success_envelope",
    "wait_budget_seconds",
]
