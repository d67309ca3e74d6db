"""Error taxonomy shared by the Bridge server, client and automation backends.

Every error that can cross the Bridge carries a stable ``kind`` string so the
client can rebuild the same typed exception from the wire envelope.
"""

from __future__ import annotations

import errno


class BridgeError(Exception):
    """Base class for errors that travel inside a Bridge result envelope."""

    kind = "BackendFault"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.kind

    def __str__(self) -> str:
        return self.message

    def to_envelope(self) -> dict[str, object]:
        return {"success": False, "error": self.message, "kind": self.kind}


class NotConnectedError(BridgeError):
    """No automation handler is bound."""

    kind = "NotConnected"


class NotFoundError(BridgeError):
    """Selector or resource is absent."""

    kind = "NotFound"


class WaitTimeoutError(BridgeError):
    """A wait exceeded its time budget."""

    kind = "Timeout"


class InvalidTargetError(BridgeError):
    """Navigation target refused by the origin allow-list."""

    kind = "InvalidTarget"


class ProtocolError(BridgeError):
    """Malformed body, unknown method or invalid parameters."""

    kind = "ProtocolError"


class BackendFaultError(BridgeError):
    """The automation handler raised."""

    kind = "BackendFault"


class PortUnavailableError(OSError):
    """A loopback listener could not bind its port."""

    def __init__(self, host: str, port: int, reason: str = "") -> None:
        super().__init__(errno.EADDRINUSE, f"Cannot bind {host}:{port}: {reason or 'address in use'}")
        self.host = host
        self.port = port


_KINDS: dict[str, type[BridgeError]] = {
    cls.kind: cls
    for cls in (
        NotConnectedError,
        NotFoundError,
        WaitTimeoutError,
        InvalidTargetError,
        ProtocolError,
        BackendFaultError,
    )
}


def error_from_kind(kind: str | None, message: str) -> BridgeError:
    """Rebuild a typed error from an envelope's ``kind`` field."""
    cls = _KINDS.get(kind or "", BackendFaultError)
    return cls(message)


_PREFIXES: dict[str, str] = {
    "NotConnected": "Browser not connected",
    "NotFound": "Not found",
    "Timeout": "Timed out",
    "InvalidTarget": "Navigation blocked",
    "ProtocolError": "Bad request",
    "BackendFault": "Browser action failed",
}


def render_error(exc: BaseException) -> str:
    """One short line of plain English for an agent transcript (no traceback)."""
    if isinstance(exc, BridgeError):
        prefix = _PREFIXES.get(exc.kind, "Error")
        message = (exc.message or "").strip().splitlines()[0] if exc.message.strip() else ""
        if not message or message.lower().startswith(prefix.lower()):
            return message or prefix
        return f"{prefix}: {message}"
    text = str(exc).strip()
    first = text.splitlines()[0] if text else exc.__class__.__name__
    return f"Error: {first}"


__all__ = [
    "BackendFaultError",
    "BridgeError",
    "InvalidTargetError",
    "NotConnectedError",
    "NotFoundError",
    "PortUnavailableError",
    "ProtocolError",
    "WaitTimeoutError",
    "error_from_kind",
    "render_error",
]
