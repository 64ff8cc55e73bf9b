"""Tests for utility functions."""

from __future__ import annotations

import re

import httpx

from reconkit.utils import (
    decode_body,
    is_same_origin,
    normalize_headers,
    normalize_url,
    safe_preview,
    safe_regex_finditer,
    truncate_string,
)


class TestNormalizeHeaders:
    """Test header normalization."""

    def test_inputs(self) -> None:
        assert normalize_headers({"X-A": 1}) == {"X-A": "1"}
        assert normalize_headers([("X-A", "1"), ("X-B", "2")]) == {"X-A": "1", "X-B": "2"}
        assert normalize_headers(httpx.Headers({"X-A": "1"})) == {"x-a": "1"}

    def test_unsupported(self) -> None:
        assert normalize_headers(None) == {}
        assert normalize_headers("X-A: 1") == {}
        assert normalize_headers(42) == {}


class TestPreview:
    """Test payload previews."""

    def test_strings(self) -> None:
        assert safe_preview("hello") == "hello"
        assert safe_preview("x" * 10, max_length=4) == "xxxx…"

    def test_binary_and_structured(self) -> None:
        assert safe_preview(b"\x00\x01\x02") == "[bytes length=3]"
        assert safe_preview({"op": "ping"}) == '{"op": "ping"}'
        assert safe_preview(None) is None
        assert safe_preview(3) == "3"

    def test_decode_body(self) -> None:
        assert decode_body(b"") is None
        assert decode_body('{"a":"é"}'.encode()) == '{"a":"é"}'
        assert decode_body(b"\xff\xfe\x00") == "[bytes length=3]"


class TestURLs:
    """Test URL helpers."""

    def test_normalize_url(self) -> None:
        assert normalize_url("https://shop.test/account/", "settings") == "https://shop.test/account/settings"
        assert normalize_url("https://shop.test/account", "/login") == "https://shop.test/login"
        assert normalize_url("https://shop.test/", "https://cdn.test/x") == "https://cdn.test/x"

    def test_same_origin(self) -> None:
        assert is_same_origin("https://shop.test/a", "https://shop.test/b?x=1")
        assert not is_same_origin("https://shop.test/a", "http://shop.test/a")
        assert not is_same_origin("https://shop.test/a", "https://shop.test:8443/a")


class TestStrings:
    """Test string helpers."""

    def test_truncate(self) -> None:
        assert truncate_string("short") == "short"
        assert truncate_string("abcdefghij", max_length=6) == "abc..."

    def test_safe_regex(self) -> None:
        assert [m.group(0) for m in safe_regex_finditer(r"\d+", "a1b22")] == ["1", "22"]
        assert safe_regex_finditer(re.compile("A"), "aA")[0].start() == 1
        assert safe_regex_finditer("(unclosed", "text") == []
