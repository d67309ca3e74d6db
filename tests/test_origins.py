from __future__ import annotations

import pytest

from mcp_servers.lens.origins import OriginAllowList, is_allowed_url


@pytest.mark.parametrize(
    "url",
    [
        "http://localhost:3000",
        "http://127.0.0.1:8080/path?q=1",
        "https://localhost",
        "http://[::1]:5173/",
        "HTTP://LOCALHOST:4000",
    ],
)
def test_local_origins_are_allowed(url: str) -> None:
    assert is_allowed_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com",
        "http://localhost.evil.com",
        "http://localhost@evil.com/",
        "file:///etc/passwd",
        "javascript:alert(1)",
        "not a url",
        "",
        "http://localhost:99999",
    ],
)
def test_foreign_or_malformed_urls_are_rejected(url: str) -> None:
    assert not is_allowed_url(url)


def test_extra_origins_extend_the_list() -> None:
    allow = OriginAllowList(["http://devbox.lan:3000/", "garbage"])
    assert allow.extra_origins == frozenset({"http://devbox.lan:3000"})
    assert allow.is_allowed_url("http://devbox.lan:3000/app")
    assert not allow.is_allowed_url("http://devbox.lan:3001/app")
    assert not allow.is_allowed_url("https://devbox.lan:3000/app")


def test_validate_url_reports_reason() -> None:
    allow = OriginAllowList()
    ok = allow.validate_url(" http://localhost:3000/a ")
    assert ok.valid and ok.normalized == "http://localhost:3000/a"

    bad = allow.validate_url("https://example.com/x")
    assert not bad.valid
    assert bad.error == "URL origin not allowed: https://example.com. Only localhost URLs are permitted."

    junk = allow.validate_url("nothing")
    assert not junk.valid
    assert junk.error and junk.error.startswith("Invalid URL")
