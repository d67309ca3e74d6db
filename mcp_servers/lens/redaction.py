"""Secret redaction for console text and any text leaving the host boundary.

The pattern table is plain data: each entry is a name and a compiled regex,
applied in order against the progressively-redacted string. An earlier
replacement can hide a later pattern's match; that only under-counts
categories, it never re-exposes a secret.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class SecretPattern:
    name: str
    pattern: re.Pattern[str]

    @classmethod
    def compile(cls, name: str, regex: str, flags: int = 0) -> SecretPattern:
        return cls(name=name, pattern=re.compile(regex, flags))


@dataclass(frozen=True, slots=True)
class RedactionResult:
    text: str
    redacted_count: int = 0
    redacted_types: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "redactedCount": self.redacted_count,
            "redactedTypes": list(self.redacted_types),
        }


_AWS_SECRET_CHARS = "A-Za-z0-9/+="

DEFAULT_PATTERNS: tuple[SecretPattern, ...] = (
    # Provider API keys
    SecretPattern.compile("OpenAI", r"sk-[a-zA-Z0-9]{20,}"),
    SecretPattern.compile("Anthropic", r"sk-ant-[a-zA-Z0-9-]{20,}"),
    SecretPattern.compile("GitHub PAT", r"ghp_[a-zA-Z0-9]{36}"),
    SecretPattern.compile("GitHub OAuth", r"gho_[a-zA-Z0-9]{36}"),
    SecretPattern.compile("AWS Access Key", r"AKIA[0-9A-Z]{16}"),
    # Tokens
    SecretPattern.compile("JWT", r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*"),
    SecretPattern.compile("Bearer Token", r"Bearer\s+[a-zA-Z0-9._-]{20,}", re.IGNORECASE),
    # Connection strings with inline credentials
    SecretPattern.compile("MongoDB", r"mongodb(?:\+srv)?://[^:\s/]+:[^@\s]+@\S+"),
    SecretPattern.compile("PostgreSQL", r"postgres(?:ql)?://[^:\s/]+:[^@\s]+@\S+"),
    SecretPattern.compile("MySQL", r"mysql://[^:\s/]+:[^@\s]+@\S+"),
    SecretPattern.compile("Redis", r"rediss?://[^:\s/]*:[^@\s]+@\S+"),
    # Generic assignments
    SecretPattern.compile(
        "Password assignment",
        r"(?:password|passwd|pwd|secret|token|api_key|apikey)\s*[:=]\s*['\"][^'\"]{8,}['\"]",
        re.IGNORECASE,
    ),
    SecretPattern.compile(
        "Authorization header",
        r"authorization['\"]?\s*:\s*['\"][^'\"]{20,}['\"]",
        re.IGNORECASE,
    ),
    # PEM private key blocks
    SecretPattern.compile(
        "Private Key",
        r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----[\s\S]*?-----END (?:[A-Z]+ )?PRIVATE KEY-----",
    ),
    # 40-char AWS secret keys: mixed case plus a digit, not part of a longer run.
    SecretPattern.compile(
        "AWS Secret",
        rf"(?<![{_AWS_SECRET_CHARS}])"
        rf"(?=[{_AWS_SECRET_CHARS}]{{0,39}}[A-Z])"
        rf"(?=[{_AWS_SECRET_CHARS}]{{0,39}}[a-z])"
        rf"(?=[{_AWS_SECRET_CHARS}]{{0,39}}[0-9])"
        rf"[{_AWS_SECRET_CHARS}]{{40}}(?![{_AWS_SECRET_CHARS}])",
    ),
)

# Keys whose string values are binary payloads, never prose.
_IMAGE_KEYS = {"image"}


class SecretRedactor:
    """Applies an ordered table of named secret patterns."""

    def __init__(self, patterns: Iterable[SecretPattern] = DEFAULT_PATTERNS) -> None:
        self._patterns: tuple[SecretPattern, ...] = tuple(patterns)

    @property
    def pattern_names(self) -> list[str]:
        return [p.name for p in self._patterns]

    def with_pattern(self, name: str, regex: str | re.Pattern[str], flags: int = 0) -> SecretRedactor:
        """Return a new redactor with one more pattern appended to the table."""
        compiled = regex if isinstance(regex, re.Pattern) else re.compile(regex, flags)
        return SecretRedactor((*self._patterns, SecretPattern(name=name, pattern=compiled)))

    def redact(self, text: str) -> RedactionResult:
        if not isinstance(text, str) or not text:
            return RedactionResult(text=text)
        result = text
        count = 0
        types: list[str] = []
        for entry in self._patterns:
            result, n = entry.pattern.subn(f"[REDACTED:{entry.name}]", result)
            if n:
                count += n
                if entry.name not in types:
                    types.append(entry.name)
        return RedactionResult(text=result, redacted_count=count, redacted_types=tuple(types))

    def contains_secrets(self, text: str) -> bool:
        if not isinstance(text, str) or not text:
            return False
        return any(entry.pattern.search(text) for entry in self._patterns)

    def redact_value(self, value: Any) -> tuple[Any, int]:
        """Redact every string inside a JSON-like value.

        Returns a redacted copy and the total number of replacements. Image
        payloads (``image`` keys, ``data`` of ``{"type": "image"}`` items) are
        left untouched.
        """
        if isinstance(value, str):
            res = self.redact(value)
            return res.text, res.redacted_count
        if isinstance(value, dict):
            is_image_item = value.get("type") == "image"
            out: dict[Any, Any] = {}
            total = 0
            for k, v in value.items():
                if k in _IMAGE_KEYS or (is_image_item and k == "data"):
                    out[k] = v
                    continue
                out[k], n = self.redact_value(v)
                total += n
            return out, total
        if isinstance(value, (list, tuple)):
            items: list[Any] = []
            total = 0
            for v in value:
                red, n = self.redact_value(v)
                items.append(red)
                total += n
            return items, total
        return value, 0


DEFAULT_REDACTOR = SecretRedactor()


def redact_secrets(text: str) -> RedactionResult:
    return DEFAULT_REDACTOR.redact(text)


def contains_secrets(text: str) -> bool:
    return DEFAULT_REDACTOR.contains_secrets(text)


def redact_value(value: Any) -> tuple[Any, int]:
    return DEFAULT_REDACTOR.redact_value(value)


# ─────────────────────────────────────────────────────────────────────────────
# Log-safe argument redaction (key based)
# ─────────────────────────────────────────────────────────────────────────────

_SENSITIVE_SUBSTRINGS = (
    "token",
    "secret",
    "password",
    "passwd",
    "pwd",
    "authorization",
    "cookie",
    "session",
    "jwt",
    "bearer",
    "api-key",
    "api_key",
    "apikey",
)

# "auth" alone, without matching "author".
_SENSITIVE_EXACT = {"auth"}

# Free-form payload arguments: logged by size only.
_PAYLOAD_KEYS = {"script", "text", "value", "values"}

_LOG_MAX_STR = 200


def is_sensitive_key(key: str) -> bool:
    k = (key or "").strip().lower()
    if not k:
        return False
    if k in _SENSITIVE_EXACT:
        return True
    return any(s in k for s in _SENSITIVE_SUBSTRINGS)


def _redacted_summary(value: Any) -> str:
    if value is None:
        return "<redacted>"
    if isinstance(value, (bytes, bytearray)):
        return f"<redacted bytes len={len(value)}>"
    if isinstance(value, str):
        return f"<redacted str len={len(value)}>"
    if isinstance(value, (list, tuple, set)):
        return f"<redacted list len={len(value)}>"
    if isinstance(value, dict):
        return f"<redacted dict keys={len(value)}>"
    return "<redacted>"


def redact_arguments(args: Any, *, key: str | None = None) -> Any:
    """Redact command/tool arguments for safe logging."""
    if key is not None and (is_sensitive_key(key) or key in _PAYLOAD_KEYS):
        return _redacted_summary(args)
    if isinstance(args, dict):
        return {k: redact_arguments(v, key=str(k)) for k, v in args.items()}
    if isinstance(args, (list, tuple)):
        return [redact_arguments(v) for v in args]
    if isinstance(args, str):
        text = redact_secrets(args).text
        if len(text) > _LOG_MAX_STR:
            return text[:_LOG_MAX_STR] + f"…<{len(text)} chars>"
        return text
    return args


__all__ = [
    "DEFAULT_PATTERNS",
    "DEFAULT_REDACTOR",
    "RedactionResult",
    "SecretPattern",
    "SecretRedactor",
    "contains_secrets",
    "is_sensitive_key",
    "redact_arguments",
    "redact_secrets",
    "redact_value",
]
