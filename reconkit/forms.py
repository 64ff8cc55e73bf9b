"""
HTML form discovery and CSRF replay.

Forms are extracted from page HTML with regular expressions, which is
enough for server-rendered markup; forms built by scripts at runtime
are not seen.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx
import structlog

from reconkit.models import CSRFAssessment, FormField, FormInfo
from reconkit.utils import is_same_origin, normalize_headers, normalize_url, safe_preview

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_PATTERN = re.compile(r"(csrf|xsrf|token|authenticity|requestverification|anti\-forgery)", re.IGNORECASE)

_FORM = re.compile(r"<form\b([^>]*)>(.*?)</form\s*>", re.IGNORECASE | re.DOTALL)
_CONTROL = re.compile(
    r"<input\b([^>]*)>"
    r"|<textarea\b([^>]*)>(.*?)</textarea\s*>"
    r"|<select\b([^>]*)>(.*?)</select\s*>",
    re.IGNORECASE | re.DOTALL,
)
_OPTION = re.compile(r"<option\b([^>]*)>([^<]*)", re.IGNORECASE)

# Controls that never contribute to a submission
_NON_SUBMITTING_TYPES = frozenset({"submit", "button", "reset", "image", "file"})


def _extract_attribute(attrs: str, attr_name: str) -> str | None:
    """Extract attribute value from HTML attribute string."""
    pattern = rf"(?<![\w-]){attr_name}\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s\"'>]+))"
    match = re.search(pattern, attrs, re.IGNORECASE)
    if match is None:
        return None
    return next(group for group in match.groups() if group is not None)


def _has_flag(attrs: str, flag: str) -> bool:
    return re.search(rf"(?<![\w-]){flag}(?![\w-])", attrs, re.IGNORECASE) is not None


def _select_value(options_html: str) -> str:
    options = _OPTION.findall(options_html)
    if not options:
        return ""
    chosen = next((opt for opt in options if _has_flag(opt[0], "selected")), options[0])
    value = _extract_attribute(chosen[0], "value")
    return value if value is not None else chosen[1].strip()


def _parse_fields(content: str) -> list[FormField]:
    fields: list[FormField] = []
    for match in _CONTROL.finditer(content):
        input_attrs, textarea_attrs, textarea_body, select_attrs, select_body = match.groups()

        if input_attrs is not None:
            attrs = input_attrs
            field_type = (_extract_attribute(attrs, "type") or "text").lower()
            value = _extract_attribute(attrs, "value")
            if value is None:
                value = "on" if field_type in ("checkbox", "radio") else ""
        elif textarea_attrs is not None:
            attrs, field_type, value = textarea_attrs, "textarea", textarea_body or ""
        else:
            attrs, field_type, value = select_attrs, "select", _select_value(select_body or "")

        fields.append(
            FormField(
                name=_extract_attribute(attrs, "name") or "",
                type=field_type,
                value=value,
                checked=_has_flag(attrs, "checked"),
                disabled=_has_flag(attrs, "disabled"),
            )
        )
    return fields


def find_all_forms(html: str, base_url: str) -> list[FormInfo]:
    """
    Find all forms and their fields.

    Args:
        html: Page HTML
        base_url: Page URL, used to resolve form actions

    Returns:
        Forms in document order; actions are absolute URLs
    """
    forms: list[FormInfo] = []

    for index, match in enumerate(_FORM.finditer(html)):
        attrs, content = match.group(1), match.group(2)
        action = _extract_attribute(attrs, "action")
        form = FormInfo(
            index=index,
            action=normalize_url(base_url, action) if action else base_url,
            method=(_extract_attribute(attrs, "method") or "GET").upper(),
            id=_extract_attribute(attrs, "id") or "",
            name=_extract_attribute(attrs, "name") or "",
            fields=_parse_fields(content),
        )
        forms.append(form)
        logger.debug("form_found", index=index, action=form.action, method=form.method, fields=len(form.fields))

    logger.info("forms_discovered", count=len(forms), page=base_url)
    return forms


def form_data(form: FormInfo) -> list[tuple[str, str]]:
    """
    Name/value pairs a browser would submit for the form as it stands.

    Unnamed, disabled and button-like controls are skipped, as are
    unchecked checkboxes and radios.
    """
    pairs: list[tuple[str, str]] = []
    for form_field in form.fields:
        if not form_field.name or form_field.disabled or form_field.type in _NON_SUBMITTING_TYPES:
            continue
        if form_field.type in ("checkbox", "radio") and not form_field.checked:
            continue
        pairs.append((form_field.name, form_field.value))
    return pairs


def analyze_csrf_protection(
    forms: list[FormInfo],
    page_url: str,
    token_pattern: re.Pattern[str] | str | None = None,
) -> list[CSRFAssessment]:
    """
    Score forms for CSRF defenses.

    A form is "Likely Protected" when it has a hidden field whose name
    looks like an anti-forgery token and is not submitted with GET;
    everything else is "Needs Review".
    """
    pattern = _compile_token_pattern(token_pattern)
    report: list[CSRFAssessment] = []

    for form in forms:
        tokens = [
            {"name": f.name, "value_preview": safe_preview(f.value, 50) or ""}
            for f in form.fields
            if f.type == "hidden" and pattern.search(f.name)
        ]
        protected = bool(tokens) and form.method != "GET"
        assessment = CSRFAssessment(
            index=form.index,
            action=form.action,
            method=form.method,
            same_origin=is_same_origin(form.action, page_url),
            suspected_tokens=tokens,
            assessment="Likely Protected" if protected else "Needs Review",
        )
        report.append(assessment)
        logger.info(
            "csrf_assessment",
            index=form.index,
            action=form.action,
            method=form.method,
            same_origin=assessment.same_origin,
            tokens=[t["name"] for t in tokens],
            assessment=assessment.assessment,
        )

    if not report:
        logger.info("csrf_no_forms", page=page_url)
    return report


async def replay_form_without_csrf(
    session: "InterceptorSession",
    forms: list[FormInfo],
    index: int,
    *,
    overrides: dict[str, str] | None = None,
    keep_tokens: bool = False,
    method: str | None = None,
    action: str | None = None,
    headers: Any = None,
    token_pattern: re.Pattern[str] | str | None = None,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response | None:
    """
    Replay a form submission with anti-forgery fields removed.

    Args:
        session: Session whose logs record the submission
        forms: Forms from find_all_forms()
        index: Index of the form to replay
        overrides: Field values to replace or add
        keep_tokens: Keep token-like fields instead of dropping them
        method: Method override
        action: Action override, resolved against the form action
        headers: Extra request headers
        token_pattern: Field name pattern identifying tokens
        client: Logged client to send through

    Returns:
        Response, or None if no form has the given index
    """
    if not 0 <= index < len(forms):
        logger.error("form_not_found", index=index, count=len(forms))
        return None

    form = forms[index]
    pattern = _compile_token_pattern(token_pattern)
    overrides = overrides or {}
    request_method = (method or form.method or "GET").upper()
    target = normalize_url(form.action, action) if action else form.action

    original = form_data(form)
    params: list[tuple[str, str]] = []
    removed: list[str] = []
    for name, value in original:
        if not keep_tokens and pattern.search(name):
            removed.append(name)
            continue
        params.append((name, overrides.get(name, value)))

    submitted = {name for name, _ in original}
    params.extend((name, value) for name, value in overrides.items() if name not in submitted)

    request_headers = normalize_headers(headers)
    body: str | None = None
    if request_method == "GET":
        target = str(httpx.URL(target).copy_merge_params(dict(params)))
    else:
        request_headers = {"Content-Type": "application/x-www-form-urlencoded", **request_headers}
        body = urlencode(params)

    logger.info(
        "csrf_replay",
        index=index,
        target=target,
        method=request_method,
        removed_tokens=removed,
        overrides=sorted(overrides),
    )
    session.record_form_submission(target, request_method, dict(params))

    try:
        response = await session.fetch(
            target,
            method=request_method,
            headers=request_headers,
            body=body,
            note=f"csrf replay of form #{index}",
            client=client,
        )
    except httpx.HTTPError as e:
        logger.error("csrf_replay_failed", index=index, error=str(e))
        raise

    logger.info("csrf_replay_response", index=index, status=response.status_code)
    return response


def _compile_token_pattern(token_pattern: re.Pattern[str] | str | None) -> re.Pattern[str]:
    if token_pattern is None:
        return DEFAULT_TOKEN_PATTERN
    if isinstance(token_pattern, re.Pattern):
        return token_pattern
    return re.compile(token_pattern, re.IGNORECASE)
