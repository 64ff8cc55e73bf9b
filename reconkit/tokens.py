"""
JWT discovery and tampering helpers.

Tokens are decoded without signature verification using PyJWT. Forged
and modified tokens are re-serialized compactly, so an untouched header
or payload re-encodes to its original segment.
"""

from __future__ import annotations

import json
import re
import time
from typing import TYPE_CHECKING, Any

import httpx
import jwt
import structlog
from jwt.utils import base64url_encode

from reconkit.interceptor.http import is_placeholder_body
from reconkit.models import DecodedJWT, StorageSnapshot, TokenLocation

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession

logger = structlog.get_logger(__name__)

JWT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")

# Object keys that commonly hold tokens inside JSON storage values
TOKEN_KEYS = frozenset({
    "accessToken", "access_token",
    "idToken", "id_token",
    "refreshToken", "refresh_token",
    "token", "jwt", "secret",
    "bearerToken", "bearer_token",
    "authToken", "auth_token",
})

# Headers recomputed by the client on replay
_REPLAY_DROP_HEADERS = frozenset({"host", "content-length"})

_jws = jwt.PyJWS()


def is_jwt(value: Any) -> bool:
    """Whether a value has the three-segment base64url JWT shape."""
    return isinstance(value, str) and bool(JWT_PATTERN.match(value))


def decode_jwt(token: str) -> DecodedJWT | None:
    """
    Decode a JWT without verifying its signature.

    Args:
        token: Compact JWT string

    Returns:
        DecodedJWT, or None if the token is malformed
    """
    if not isinstance(token, str) or token.count(".") != 2:
        logger.warning("jwt_malformed", reason="expected three segments")
        return None

    try:
        decoded = _jws.decode_complete(token, options={"verify_signature": False})
        payload = json.loads(decoded["payload"])
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning("jwt_malformed", reason=str(e))
        return None

    if not isinstance(payload, dict):
        logger.warning("jwt_malformed", reason="payload is not a JSON object")
        return None

    return DecodedJWT(header=decoded["header"], payload=payload, signature=token.rsplit(".", 1)[1])


def encode_segment(data: dict[str, Any]) -> str:
    """Compact JSON, base64url encoded without padding."""
    raw = json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64url_encode(raw).decode("ascii")


def rebuild_token(header: dict[str, Any], payload: dict[str, Any], signature: str = "") -> str:
    return f"{encode_segment(header)}.{encode_segment(payload)}.{signature or ''}"


def is_expired(decoded: DecodedJWT, now: float | None = None) -> bool | None:
    """Expiry state from the exp claim; None when absent or not numeric."""
    exp = decoded.payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return exp < (time.time() if now is None else now)


def _locate(token: str, source: str, key: str, path: str = "") -> TokenLocation:
    decoded = decode_jwt(token)
    return TokenLocation(
        source=source,
        key=key,
        path=path,
        token=token,
        decoded=decoded,
        expired=is_expired(decoded) if decoded else None,
    )


def _search_value(value: Any, path: str, source: str, key: str, found: list[TokenLocation]) -> None:
    """Walk parsed JSON for JWT strings, preferring known token keys."""
    if isinstance(value, str):
        if is_jwt(value):
            found.append(_locate(value, source, key, path))
        return

    if isinstance(value, dict):
        items = [(str(k), v) for k, v in value.items()]
    elif isinstance(value, list):
        items = [(str(i), v) for i, v in enumerate(value)]
    else:
        return

    for name, child in items:
        current = f"{path}.{name}" if path else name
        if name in TOKEN_KEYS and is_jwt(child):
            found.append(_locate(child, source, key, current))
        else:
            _search_value(child, current, source, key, found)


def _scan_entry(source: str, key: str, value: str, found: list[TokenLocation]) -> None:
    if is_jwt(value):
        found.append(_locate(value, source, key))
        return
    try:
        parsed = json.loads(value)
    except ValueError:
        return
    if isinstance(parsed, (dict, list)):
        _search_value(parsed, "", source, key, found)


def find_jwt_tokens(storage: StorageSnapshot) -> list[TokenLocation]:
    """
    Find JWTs in a storage snapshot.

    Checks raw localStorage, sessionStorage and cookie values, then
    JSON-encoded values (MSAL caches, auth state blobs) recursively.

    Args:
        storage: Captured client-side storage

    Returns:
        Token locations with decoded contents and expiry state
    """
    found: list[TokenLocation] = []

    for key, value in storage.local_storage.items():
        _scan_entry("localStorage", key, value, found)
    for key, value in storage.session_storage.items():
        _scan_entry("sessionStorage", key, value, found)
    for name, value in storage.cookie_items():
        _scan_entry("cookie", name, value, found)

    for location in found:
        logger.info(
            "jwt_found",
            source=location.source,
            key=location.key,
            path=location.path or None,
            expired=location.expired,
        )
    if not found:
        logger.info("jwt_not_found")
    return found


class JWTLab:
    """Token tampering and replay against the session's request log."""

    def __init__(self, session: "InterceptorSession") -> None:
        self.session = session

    def forge_none_variant(self, token: str, overrides: dict[str, Any] | None = None) -> str | None:
        """
        Re-sign a token with alg "none" and an empty signature.

        Args:
            token: Source JWT
            overrides: Claims merged into the payload

        Returns:
            Forged token, or None if the source is malformed
        """
        decoded = decode_jwt(token)
        if decoded is None:
            return None

        header = {**decoded.header, "alg": "none"}
        payload = {**decoded.payload, **(overrides or {})}
        forged = rebuild_token(header, payload, "")
        logger.info("jwt_forged_none", claims=sorted(overrides or {}))
        return forged

    def modify_claims(
        self,
        token: str,
        claims: dict[str, Any] | None = None,
        *,
        keep_signature: bool = False,
    ) -> str | None:
        """Merge claim updates into the payload; the signature is dropped unless kept."""
        decoded = decode_jwt(token)
        if decoded is None:
            return None

        payload = {**decoded.payload, **(claims or {})}
        signature = decoded.signature if keep_signature else ""
        tampered = rebuild_token(dict(decoded.header), payload, signature)
        logger.info("jwt_claims_modified", claims=sorted(claims or {}), keep_signature=keep_signature)
        return tampered

    def set_expiration(self, token: str, epoch_seconds: int | float) -> str | None:
        if isinstance(epoch_seconds, bool) or not isinstance(epoch_seconds, (int, float)):
            logger.warning("jwt_invalid_expiration", value=repr(epoch_seconds))
            return None
        return self.modify_claims(token, {"exp": epoch_seconds})

    async def replay_request_with_token(
        self,
        log_index: int,
        token: str,
        *,
        header_name: str = "Authorization",
        prefix: str = "Bearer ",
        additional_headers: dict[str, str] | None = None,
        override_body: str | bytes | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> httpx.Response | None:
        """
        Re-send a logged request with a different token.

        Args:
            log_index: Position in the session's request log
            token: Token to place in the auth header
            header_name: Header carrying the token
            prefix: Value prefix, "" for a bare token
            additional_headers: Extra headers applied last
            override_body: Body to send instead of the logged one
            client: Logged client to send through

        Returns:
            Response, or None if the log entry does not exist
        """
        log = self.session.request_log
        if not 0 <= log_index < len(log):
            logger.warning("request_log_entry_not_found", index=log_index, size=len(log))
            return None
        entry = log[log_index]

        # Replace any existing spelling of the auth header
        headers = {
            name: value
            for name, value in entry.headers.items()
            if name.lower() not in _REPLAY_DROP_HEADERS and name.lower() != header_name.lower()
        }
        headers[header_name] = f"{prefix}{token}"
        headers.update(additional_headers or {})

        body: str | bytes | None = entry.body
        if override_body is not None:
            body = override_body
        elif is_placeholder_body(body):
            logger.warning("replay_body_not_captured", index=log_index, body=body)
            body = None

        logger.info("jwt_replay", index=log_index, method=entry.method, url=entry.url, header=header_name)
        response = await self.session.fetch(
            entry.url,
            method=entry.method,
            headers=headers,
            body=body,
            note=f"jwt replay of #{log_index}",
            client=client,
        )
        logger.info("jwt_replay_response", index=log_index, status=response.status_code)
        return response

    def list_requests_with_auth(self, header_name: str = "Authorization") -> list[dict[str, Any]]:
        """Logged requests carrying the given header, matched case-insensitively."""
        wanted = header_name.lower()
        rows: list[dict[str, Any]] = []
        for index, entry in enumerate(self.session.request_log):
            for name, value in entry.headers.items():
                if name.lower() == wanted:
                    rows.append({"index": index, "method": entry.method, "url": entry.url, "header_value": value})
                    break
        return rows
