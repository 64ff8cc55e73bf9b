"""
Logging transports for httpx clients.

The transports decorate an inner httpx transport: every request is
appended to the session's request log before it is forwarded, and the
inner transport's response (or exception) reaches the caller untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from reconkit.models import RequestLogEntry, RequestSource
from reconkit.utils import decode_body, normalize_headers, safe_preview

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession

logger = structlog.get_logger(__name__)

NOTE_EXTENSION = "reconkit.note"
STREAM_PLACEHOLDER = "[streaming body - not captured]"
UNAVAILABLE_PLACEHOLDER = "[unavailable]"
_BYTES_PLACEHOLDER = re.compile(r"\[bytes length=\d+\]")


def capture_body(request: httpx.Request) -> str | None:
    """
    Capture a request body without consuming it.

    Buffered bodies are decoded. Streaming bodies (file uploads, async
    generators) are single-read, so only a placeholder is recorded.
    """
    try:
        content = request.content
    except httpx.RequestNotRead:
        return STREAM_PLACEHOLDER
    return decode_body(content)


def is_placeholder_body(body: str | None) -> bool:
    """Whether a logged body is a capture placeholder rather than the payload."""
    if body is None:
        return False
    return body in (STREAM_PLACEHOLDER, UNAVAILABLE_PLACEHOLDER) or bool(_BYTES_PLACEHOLDER.fullmatch(body))


def entry_from_request(request: httpx.Request, source: RequestSource) -> RequestLogEntry:
    """
    Build a log entry for an outgoing request.

    Falls back to a placeholder entry when normalization fails so the
    request itself is never blocked by logging.
    """
    note = request.extensions.get(NOTE_EXTENSION)
    try:
        return RequestLogEntry(
            method=request.method or "GET",
            url=str(request.url),
            headers=normalize_headers(request.headers),
            body=capture_body(request),
            note=note,
            source=source,
        )
    except Exception as e:
        logger.debug("request_capture_failed", error=str(e))
        return RequestLogEntry(
            method=str(getattr(request, "method", "GET") or "GET"),
            url=str(getattr(request, "url", "")),
            body=UNAVAILABLE_PLACEHOLDER,
            note=note if isinstance(note, str) else None,
            source=source,
        )


class LoggingTransport(httpx.AsyncBaseTransport):
    """
    Async transport decorator recording each request in a session.

    Pass-through: the response object and any transport exception
    are returned or raised exactly as the inner transport produced them.
    """

    def __init__(
        self,
        session: "InterceptorSession",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._session = session
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        entry = self._session.record_request(entry_from_request(request, RequestSource.ASYNC))
        logger.info("fetch_request", method=entry.method, url=entry.url, body=safe_preview(entry.body))

        response = await self._transport.handle_async_request(request)

        logger.info("fetch_response", status=response.status_code, url=entry.url)
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()


class LoggingSyncTransport(httpx.BaseTransport):
    """Blocking counterpart of LoggingTransport for httpx.Client."""

    def __init__(
        self,
        session: "InterceptorSession",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._session = session
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        entry = self._session.record_request(entry_from_request(request, RequestSource.SYNC))
        logger.info("xhr_request", method=entry.method, url=entry.url, body=safe_preview(entry.body))

        return self._transport.handle_request(request)

    def close(self) -> None:
        self._transport.close()


def resolve_url(resource: Any) -> str:
    """Resolve a URL from a string, httpx.URL, request or URL-bearing object."""
    if isinstance(resource, str):
        return resource
    if isinstance(resource, httpx.URL):
        return str(resource)
    if resource is not None and hasattr(resource, "url"):
        return str(resource.url)
    return str(resource)


def _body_kwargs(body: Any) -> dict[str, Any]:
    if body is None:
        return {}
    if isinstance(body, (str, bytes)):
        return {"content": body}
    if isinstance(body, (Mapping, list)):
        return {"json": body}
    return {"content": str(body)}


def build_request(
    resource: Any,
    *,
    method: str | None = None,
    headers: Any = None,
    body: Any = None,
    note: str | None = None,
    client: httpx.AsyncClient | httpx.Client | None = None,
) -> httpx.Request:
    """
    Build the httpx.Request for a fetch-style call.

    An httpx.Request without overrides is reused as-is. With overrides,
    a new request is derived from it, keeping its stream when no body is
    given so the original body is not read. Other resources are built
    with the client, when given, so its default headers apply.
    """
    extensions = {NOTE_EXTENSION: note} if note else {}

    if isinstance(resource, httpx.Request):
        if method is None and headers is None and body is None:
            resource.extensions.update(extensions)
            return resource

        request_headers = normalize_headers(headers) or resource.headers
        if body is None:
            return httpx.Request(
                method or resource.method,
                resource.url,
                headers=request_headers,
                stream=resource.stream,
                extensions={**resource.extensions, **extensions},
            )
        return httpx.Request(
            method or resource.method,
            resource.url,
            headers=request_headers,
            extensions={**resource.extensions, **extensions},
            **_body_kwargs(body),
        )

    factory = client.build_request if client is not None else httpx.Request
    return factory(
        (method or "GET").upper(),
        resolve_url(resource),
        headers=normalize_headers(headers),
        extensions=extensions,
        **_body_kwargs(body),
    )
