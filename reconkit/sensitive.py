"""
Sensitive data scanner.

Runs regex patterns over labelled text sources, storage snapshots and
the session's request log, and reports each hit with its surrounding
context.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from reconkit.models import SensitiveMatch, Severity, StorageSnapshot
from reconkit.utils import safe_regex_finditer

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession

logger = structlog.get_logger(__name__)

CONTEXT_CHARS = 40
MAX_VALUE_LENGTH = 80

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SensitivePattern:
    """Named regex with a severity."""

    name: str
    regex: re.Pattern[str] | str
    severity: Severity = Severity.INFO

    def compiled(self) -> re.Pattern[str]:
        if isinstance(self.regex, re.Pattern):
            return self.regex
        return re.compile(self.regex, re.IGNORECASE)


DEFAULT_PATTERNS: tuple[SensitivePattern, ...] = (
    SensitivePattern(
        "Email Address",
        re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE),
        Severity.LOW,
    ),
    SensitivePattern("AWS Access Key", re.compile(r"\bAKIA[0-9A-Z]{16}\b"), Severity.HIGH),
    SensitivePattern(
        "AWS Secret Key",
        re.compile(r"\b(?<![A-Z0-9])[A-Za-z0-9/+=]{40}(?![A-Z0-9])\b"),
        Severity.HIGH,
    ),
    SensitivePattern("Google API Key", re.compile(r"\bAIza[0-9A-Za-z\-_]{35}\b"), Severity.MEDIUM),
    SensitivePattern(
        "Bearer Token",
        re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
        Severity.HIGH,
    ),
    SensitivePattern(
        "Private IPv4",
        re.compile(r"\b(?:10|127|172\.(?:1[6-9]|2\d|3[0-1])|192\.168)\.\d{1,3}\.\d{1,3}\b"),
        Severity.MEDIUM,
    ),
    SensitivePattern(
        "Password Keyword",
        re.compile(r"(password|passwd|secret|pwd|passwrd)[\"'\s:=]+[^&\s]{4,}", re.IGNORECASE),
        Severity.MEDIUM,
    ),
    SensitivePattern(
        "JWT-like String",
        re.compile(r"\b[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\b"),
        Severity.MEDIUM,
    ),
)


def collect_sources(
    sources: Mapping[str, str] | None = None,
    storage: StorageSnapshot | None = None,
    session: "InterceptorSession | None" = None,
) -> list[tuple[str, str]]:
    """Assemble (label, text) pairs to scan."""
    collected = [(label, text or "") for label, text in (sources or {}).items()]

    if storage is not None:
        collected.append(("localStorage", json.dumps(storage.local_storage)))
        collected.append(("sessionStorage", json.dumps(storage.session_storage)))
        if storage.cookies:
            collected.append(("Cookies", storage.cookies))

    if session is not None:
        entries = [entry.model_dump(mode="json") for entry in session.request_log]
        collected.append(("Request Log", json.dumps(entries)))

    return collected


def scan_text(label: str, text: str, patterns: Iterable[SensitivePattern]) -> list[SensitiveMatch]:
    """Scan one text source with every pattern."""
    matches: list[SensitiveMatch] = []
    for pattern in patterns:
        for match in safe_regex_finditer(pattern.compiled(), text):
            value = match.group(0)
            if not value:
                continue
            start = max(0, match.start() - CONTEXT_CHARS)
            end = min(len(text), match.end() + CONTEXT_CHARS)
            matches.append(
                SensitiveMatch(
                    pattern=pattern.name,
                    severity=pattern.severity,
                    value=value if len(value) <= MAX_VALUE_LENGTH else f"{value[:MAX_VALUE_LENGTH]}…",
                    source=label,
                    context=_WHITESPACE.sub(" ", text[start:end]),
                )
            )
    return matches


def scan_sensitive_data(
    sources: Mapping[str, str] | None = None,
    storage: StorageSnapshot | None = None,
    session: "InterceptorSession | None" = None,
    patterns: Iterable[SensitivePattern] | None = None,
    custom_patterns: Iterable[SensitivePattern] | None = None,
) -> list[SensitiveMatch]:
    """
    Scan text, storage and the request log for secrets.

    Args:
        sources: Labelled text, e.g. {"DOM Text": ..., "Inline Scripts": ...}
        storage: Client-side storage snapshot
        session: Session whose request log is scanned
        patterns: Replacement for the default pattern set
        custom_patterns: Patterns added to the active set

    Returns:
        Matches grouped by source, then by pattern
    """
    active = [*(DEFAULT_PATTERNS if patterns is None else patterns), *(custom_patterns or ())]

    matches: list[SensitiveMatch] = []
    for label, text in collect_sources(sources, storage, session):
        matches.extend(scan_text(label, text, active))

    if matches:
        for match in matches:
            logger.warning(
                "sensitive_data_found",
                pattern=match.pattern,
                severity=match.severity.value,
                source=match.source,
                value=match.value,
            )
    else:
        logger.info("sensitive_data_not_found")
    return matches
