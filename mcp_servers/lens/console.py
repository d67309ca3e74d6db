"""Console message capture backed by the ring buffer.

Messages are stored raw. Redaction happens where a snapshot leaves the host
(the Bridge envelope or a catalog reply), so same-process consumers of
``snapshot`` see unredacted text.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from .ring_buffer import ConsoleRingBuffer

CONSOLE_LEVELS = ("log", "info", "warn", "error", "debug")
DEFAULT_LOG_LIMIT = 20

_LEVEL_ALIASES = {
    "warning": "warn",
    "verbose": "debug",
    "trace": "debug",
    "dir": "log",
    "table": "log",
    "assert": "error",
}


def normalize_level(raw: str | None) -> str:
    level = (raw or "").strip().lower()
    level = _LEVEL_ALIASES.get(level, level)
    return level if level in CONSOLE_LEVELS else "log"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class ConsoleMessage:
    level: str
    text: str
    timestamp: int
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"level": self.level, "text": self.text, "timestamp": self.timestamp}
        if self.source:
            out["source"] = self.source
        return out


class ConsoleLog:
    """Recent console messages of the live page (bounded, FIFO)."""

    def __init__(self, capacity: int = 500) -> None:
        self._buffer: ConsoleRingBuffer[ConsoleMessage] = ConsoleRingBuffer(capacity)

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    def record(
        self,
        level: str | None,
        text: str,
        *,
        source: str | None = None,
        timestamp: int | None = None,
    ) -> ConsoleMessage:
        message = ConsoleMessage(
            level=normalize_level(level),
            text=str(text),
            timestamp=int(timestamp) if timestamp is not None else _now_ms(),
            source=source,
        )
        self._buffer.push(message)
        return message

    def snapshot(self, level: str | None = None, limit: int | None = None) -> list[ConsoleMessage]:
        """Raw copy, oldest first, filtered by level and bounded to the newest ``limit``."""
        messages = self._buffer.to_list()
        wanted = (level or "").strip().lower()
        if wanted and wanted != "all":
            wanted = normalize_level(wanted)
            messages = [m for m in messages if m.level == wanted]
        if limit is not None:
            limit = int(limit)
            messages = messages[-limit:] if limit > 0 else []
        return messages

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


__all__ = ["CONSOLE_LEVELS", "DEFAULT_LOG_LIMIT", "ConsoleLog", "ConsoleMessage", "normalize_level"]
