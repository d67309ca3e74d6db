"""Console capture from DevTools events into the shared ConsoleLog."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from ..console import ConsoleLog

CONSOLE_EVENTS = ("Runtime.consoleAPICalled", "Runtime.exceptionThrown", "Log.entryAdded")


def _remote_object_text(obj: Any) -> str:
    if not isinstance(obj, dict):
        return str(obj)
    if "value" in obj:
        value = obj["value"]
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)
    if "unserializableValue" in obj:
        return str(obj["unserializableValue"])
    if obj.get("description"):
        return str(obj["description"])
    return str(obj.get("type") or "")


def _frame_source(stack: Any) -> str | None:
    if not isinstance(stack, dict):
        return None
    frames = stack.get("callFrames")
    if not isinstance(frames, list) or not frames or not isinstance(frames[0], dict):
        return None
    top = frames[0]
    url = top.get("url") or ""
    if not url:
        return None
    return f"{url}:{int(top.get('lineNumber') or 0) + 1}"


def _timestamp(raw: Any) -> int | None:
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return None


def record_console_event(console: ConsoleLog, event: dict[str, Any]) -> bool:
    """Record one CDP event if it carries console output; returns True when recorded."""
    method = event.get("method")
    params = event.get("params")
    if not isinstance(params, dict):
        return False

    if method == "Runtime.consoleAPICalled":
        args = params.get("args") if isinstance(params.get("args"), list) else []
        console.record(
            params.get("type"),
            " ".join(_remote_object_text(a) for a in args),
            source=_frame_source(params.get("stackTrace")),
            timestamp=_timestamp(params.get("timestamp")),
        )
        return True

    if method == "Runtime.exceptionThrown":
        details = params.get("exceptionDetails") if isinstance(params.get("exceptionDetails"), dict) else {}
        exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
        text = exc.get("description") or details.get("text") or "Uncaught exception"
        console.record(
            "error",
            str(text),
            source=details.get("url") or _frame_source(details.get("stackTrace")),
            timestamp=_timestamp(params.get("timestamp")),
        )
        return True

    if method == "Log.entryAdded":
        entry = params.get("entry") if isinstance(params.get("entry"), dict) else {}
        # console-api entries are already reported through Runtime.consoleAPICalled.
        if entry.get("source") == "console-api":
            return False
        console.record(
            entry.get("level"),
            str(entry.get("text") or ""),
            source=entry.get("url") or entry.get("source"),
            timestamp=_timestamp(entry.get("timestamp")),
        )
        return True

    return False


def console_event_sink(console: ConsoleLog) -> Callable[[dict[str, Any]], None]:
    def _sink(event: dict[str, Any]) -> None:
        if event.get("method") in CONSOLE_EVENTS:
            record_console_event(console, event)

    return _sink


__all__ = ["CONSOLE_EVENTS", "console_event_sink", "record_console_event"]
