"""
Heuristic classification of GraphQL probe responses.

Pure functions over parsed response bodies and error text; no network.
"""

from __future__ import annotations

import re
from typing import Any

from reconkit.models import ProbeOutcome

SUBFIELD_MARKERS = (
    "must have a selection of subfields",
    "must have a sub selection",
)
ARGUMENT_MARKERS = ("argument", "required", "missing", "must provide")
REJECTION_MARKERS = ("cannot query field", "unknown field")
SUGGESTION_MARKERS = ("did you mean", "suggest", "available fields")

_DID_YOU_MEAN = re.compile(r"did you mean", re.IGNORECASE)
_QUOTED_NAME = re.compile(r"[\"'](\w+)[\"']")
_TYPE_NAME = re.compile(r"type [\"']?(\w+)[\"']?", re.IGNORECASE)


def first_error_message(body: dict[str, Any] | None) -> str | None:
    """
    Message of the first GraphQL error, if any.

    Returns None when the body has no errors; an empty string when the
    first error carries no message.
    """
    if not isinstance(body, dict):
        return None
    errors = body.get("errors")
    if not errors:
        return None
    first = errors[0] if isinstance(errors, list) else errors
    if isinstance(first, dict):
        return str(first.get("message") or "")
    return str(first)


def classify_message(message: str) -> ProbeOutcome:
    """Classify a GraphQL error message."""
    lowered = message.lower()

    if any(marker in lowered for marker in SUBFIELD_MARKERS):
        return ProbeOutcome.CONFIRMED_COMPLEX
    if any(marker in lowered for marker in ARGUMENT_MARKERS):
        return ProbeOutcome.REQUIRES_ARGS
    if any(marker in lowered for marker in REJECTION_MARKERS):
        return ProbeOutcome.REJECTED
    return ProbeOutcome.AMBIGUOUS


def classify_response(body: dict[str, Any] | None) -> ProbeOutcome:
    """
    Classify the response to a bare field probe.

    Args:
        body: Parsed JSON response, or None if the request failed

    Returns:
        Probe outcome
    """
    if body is None:
        return ProbeOutcome.INCONCLUSIVE

    message = first_error_message(body)
    if message is None:
        return ProbeOutcome.CONFIRMED_SCALAR
    return classify_message(message)


def is_rejection(message: str) -> bool:
    """Whether an error states the field does not exist."""
    lowered = message.lower()
    return any(marker in lowered for marker in REJECTION_MARKERS)


def has_suggestions(message: str) -> bool:
    """Whether an error message leaks field suggestions."""
    lowered = message.lower()
    return any(marker in lowered for marker in SUGGESTION_MARKERS)


def extract_suggestions(message: str, field: str | None = None) -> list[str]:
    """
    Harvest field names offered after "Did you mean".

    Args:
        message: GraphQL error message
        field: Probed field name, excluded from the result

    Returns:
        Suggested names in order of appearance, without duplicates
    """
    match = _DID_YOU_MEAN.search(message)
    if match is None:
        return []

    names: list[str] = []
    for name in _QUOTED_NAME.findall(message[match.end():]):
        if name != field and name not in names:
            names.append(name)
    return names


def extract_leaked_names(message: str, field: str | None = None) -> list[str]:
    """
    Field names leaked by a suggestion-style error.

    Uses the "Did you mean" clause when present; otherwise every quoted
    identifier counts, as in 'Available fields: "user", "orders"'.
    """
    if _DID_YOU_MEAN.search(message):
        return extract_suggestions(message, field)

    names: list[str] = []
    for name in _QUOTED_NAME.findall(message):
        if name != field and name not in names:
            names.append(name)
    return names


def extract_type_name(message: str) -> str | None:
    """Type name mentioned in an error, e.g. 'of type "User"'."""
    match = _TYPE_NAME.search(message)
    return match.group(1) if match else None
