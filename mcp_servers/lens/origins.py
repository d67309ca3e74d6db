"""Origin allow-list for agent-driven navigation.

Only loopback/localhost-class origins are accepted by default. The check works
on the parsed hostname, so ``localhost.evil.com`` or ``localhost@evil.com``
never pass as localhost.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Iterable
from dataclasses import dataclass

DEFAULT_ALLOWED_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
_ALLOWED_SCHEMES = ("http", "https")


@dataclass(frozen=True, slots=True)
class UrlValidation:
    valid: bool
    normalized: str | None = None
    error: str | None = None


def _origin_of(url: str) -> tuple[str, str, str] | None:
    """Return (scheme, hostname, origin) or None when ``url`` is unusable."""
    try:
        parts = urllib.parse.urlsplit((url or "").strip())
        port = parts.port
    except ValueError:
        return None
    scheme = (parts.scheme or "").lower()
    host = (parts.hostname or "").lower().rstrip(".")
    if scheme not in _ALLOWED_SCHEMES or not host:
        return None
    shown_host = f"[{host}]" if ":" in host else host
    origin = f"{scheme}://{shown_host}" + (f":{port}" if port is not None else "")
    return scheme, host, origin


class OriginAllowList:
    """Predicate restricting navigation targets to trusted (local) origins."""

    def __init__(self, extra_origins: Iterable[str] = ()) -> None:
        extras: set[str] = set()
        for raw in extra_origins:
            parsed = _origin_of(raw)
            if parsed is not None:
                extras.add(parsed[2])
        self._extra_origins = frozenset(extras)

    @property
    def extra_origins(self) -> frozenset[str]:
        return self._extra_origins

    def is_allowed_url(self, url: str) -> bool:
        parsed = _origin_of(url)
        if parsed is None:
            return False
        _scheme, host, origin = parsed
        if host in DEFAULT_ALLOWED_HOSTS:
            return True
        return origin in self._extra_origins

    def validate_url(self, url: str) -> UrlValidation:
        try:
            parts = urllib.parse.urlsplit((url or "").strip())
            parts.port  # noqa: B018 - raises on malformed ports
        except ValueError as exc:
            return UrlValidation(valid=False, error=f"Invalid URL: {exc}")
        if not parts.scheme or not parts.netloc:
            return UrlValidation(valid=False, error=f"Invalid URL: {url!r}")
        if not self.is_allowed_url(url):
            origin = f"{parts.scheme}://{parts.hostname or parts.netloc}"
            return UrlValidation(
                valid=False,
                error=f"URL origin not allowed: {origin}. Only localhost URLs are permitted.",
            )
        return UrlValidation(valid=True, normalized=urllib.parse.urlunsplit(parts))


DEFAULT_ALLOW_LIST = OriginAllowList()


def is_allowed_url(url: str) -> bool:
    return DEFAULT_ALLOW_LIST.is_allowed_url(url)


__all__ = ["DEFAULT_ALLOWED_HOSTS", "DEFAULT_ALLOW_LIST", "OriginAllowList", "UrlValidation", "is_allowed_url"]
