"""
Utility functions for reconkit.

Provides header normalization, payload previews, URL helpers and
safe regex matching shared by the interceptor and the helpers.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx
import structlog

logger = structlog.get_logger(__name__)

ELLIPSIS = "…"


def normalize_headers(candidate: Any) -> dict[str, str]:
    """
    Convert header inputs into a plain string mapping.

    Accepts httpx.Headers, any mapping, or a sequence of (name, value)
    pairs. Anything else yields an empty mapping.

    Args:
        candidate: Header container to normalize

    Returns:
        Header dictionary
    """
    if not candidate:
        return {}

    if isinstance(candidate, httpx.Headers):
        return {key: value for key, value in candidate.multi_items()}

    if isinstance(candidate, Mapping):
        return {str(key): str(value) for key, value in candidate.items()}

    if isinstance(candidate, (list, tuple)):
        normalized: dict[str, str] = {}
        for pair in candidate:
            key, value = pair
            normalized[str(key)] = str(value)
        return normalized

    return {}


def safe_preview(value: Any, max_length: int = 200) -> str | None:
    """
    Short, safe preview of a payload without choking on binary data.

    Args:
        value: Payload to preview
        max_length: Maximum preview length before truncation

    Returns:
        Preview string, or None for a missing payload
    """
    if value is None:
        return None

    if isinstance(value, str):
        return value if len(value) <= max_length else f"{value[:max_length]}{ELLIPSIS}"

    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"[bytes length={len(value)}]"

    if isinstance(value, (Mapping, list, tuple)):
        try:
            dumped = json.dumps(value, default=str)
        except (TypeError, ValueError):
            return f"[object {type(value).__name__}]"
        return dumped if len(dumped) <= max_length else f"{dumped[:max_length]}{ELLIPSIS}"

    return str(value)


def decode_body(content: bytes) -> str | None:
    """
    Decode captured request content for the request log.

    Args:
        content: Raw body bytes

    Returns:
        UTF-8 text, a placeholder for binary content, or None when empty
    """
    if not content:
        return None
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return f"[bytes length={len(content)}]"


def truncate_string(s: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate string to maximum length with suffix.

    Args:
        s: String to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to append when truncated

    Returns:
        Truncated string
    """
    if len(s) <= max_length:
        return s
    return s[: max_length - len(suffix)] + suffix


def normalize_url(base_url: str, path: str) -> str:
    """
    Normalize and resolve a URL path against a base URL.

    Args:
        base_url: Base URL for resolution
        path: Path or URL to normalize

    Returns:
        Normalized absolute URL
    """
    if path.startswith(("http://", "https://")):
        return path

    return urljoin(base_url, path)


def is_same_origin(url1: str, url2: str) -> bool:
    """
    Check if two URLs have the same origin.

    Args:
        url1: First URL
        url2: Second URL

    Returns:
        True if same origin (scheme + domain + port)
    """
    p1 = urlparse(url1)
    p2 = urlparse(url2)
    return (p1.scheme, p1.netloc) == (p2.scheme, p2.netloc)


def safe_regex_finditer(pattern: str | re.Pattern[str], text: str, flags: int = 0) -> list[re.Match[str]]:
    """
    Safely execute a regex search with error handling.

    Args:
        pattern: Regex pattern or compiled pattern
        text: Text to search
        flags: Regex flags, ignored for compiled patterns

    Returns:
        List of match objects (empty on error)
    """
    try:
        compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, flags)
        return list(compiled.finditer(text))
    except re.error as e:
        logger.warning("regex_error", pattern=str(pattern), error=str(e))
        return []


def get_utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)
