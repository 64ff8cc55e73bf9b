"""Tests for JWT helpers."""

from __future__ import annotations

import unittest

import httpx
import pytest

from reconkit.interceptor.session import InterceptorSession
from reconkit.models import StorageSnapshot
from reconkit.tokens import (
    JWTLab,
    decode_jwt,
    encode_segment,
    find_jwt_tokens,
    is_expired,
    is_jwt,
    rebuild_token,
)
from tests.conftest import SAMPLE_JWT


class TestDecode:
    """Test decoding without verification."""

    def test_decode_sample(self, sample_jwt: str) -> None:
        decoded = decode_jwt(sample_jwt)

        assert decoded is not None
        assert decoded.header == {"alg": "HS256", "typ": "JWT"}
        assert decoded.payload == {"sub": "1234567890", "name": "John Doe", "iat": 1516239022}
        assert decoded.signature == "SflKxwRJSMeKKF2QT4fwpMeJf36POk6yJV_adQssw5c"

    def test_segments_round_trip(self, sample_jwt: str) -> None:
        """Re-encoding an untouched token reproduces it exactly."""
        decoded = decode_jwt(sample_jwt)
        header_segment, payload_segment, _ = sample_jwt.split(".")

        assert encode_segment(decoded.header) == header_segment
        assert encode_segment(decoded.payload) == payload_segment
        assert rebuild_token(decoded.header, decoded.payload, decoded.signature) == sample_jwt

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "####.$$$$.%%%%", "e30.bm90LWpzb24.sig"])
    def test_malformed_tokens(self, token: str) -> None:
        assert decode_jwt(token) is None

    def test_is_jwt(self, sample_jwt: str) -> None:
        assert is_jwt(sample_jwt)
        assert not is_jwt("header.payload.")
        assert not is_jwt(None)

    def test_expiry(self) -> None:
        expired = decode_jwt(rebuild_token({"alg": "none"}, {"exp": 100}))
        live = decode_jwt(rebuild_token({"alg": "none"}, {"exp": 4102444800}))

        assert is_expired(expired) is True
        assert is_expired(live) is False
        assert is_expired(decode_jwt(SAMPLE_JWT)) is None


class TestFindTokens:
    """Test token discovery in storage."""

    def test_finds_all_locations(self, sample_storage: StorageSnapshot) -> None:
        found = find_jwt_tokens(sample_storage)

        assert [(t.source, t.key, t.path) for t in found] == [
            ("localStorage", "auth", ""),
            ("sessionStorage", "msal.cache", "credential.accessToken"),
            ("cookie", "jwt", ""),
        ]
        assert all(t.decoded is not None and t.decoded.payload["name"] == "John Doe" for t in found)

    def test_nested_lists(self) -> None:
        storage = StorageSnapshot(local_storage={"accounts": '[{"tokens": ["%s"]}]' % SAMPLE_JWT})
        found = find_jwt_tokens(storage)

        assert [t.path for t in found] == ["0.tokens.0"]

    def test_nothing_found(self) -> None:
        assert find_jwt_tokens(StorageSnapshot(local_storage={"theme": "dark"}, cookies="a=1")) == []


class TestJWTLab:
    """Test token tampering."""

    def test_forge_none(self, sample_jwt: str) -> None:
        lab = JWTLab(InterceptorSession())
        forged = lab.forge_none_variant(sample_jwt, {"role": "admin"})

        assert forged.endswith(".")
        decoded = decode_jwt(forged)
        assert decoded.header == {"alg": "none", "typ": "JWT"}
        assert decoded.payload["role"] == "admin"
        assert decoded.payload["sub"] == "1234567890"

    def test_modify_claims_drops_signature(self, sample_jwt: str) -> None:
        tampered = JWTLab(InterceptorSession()).modify_claims(sample_jwt, {"sub": "1"})

        assert tampered.endswith(".")
        assert decode_jwt(tampered).header["alg"] == "HS256"

    def test_modify_claims_keeps_signature(self, sample_jwt: str) -> None:
        tampered = JWTLab(InterceptorSession()).modify_claims(sample_jwt, {"sub": "1"}, keep_signature=True)

        assert tampered.split(".")[2] == sample_jwt.split(".")[2]
        assert tampered.split(".")[0] == sample_jwt.split(".")[0]

    def test_set_expiration(self, sample_jwt: str) -> None:
        lab = JWTLab(InterceptorSession())

        assert decode_jwt(lab.set_expiration(sample_jwt, 1700000000)).payload["exp"] == 1700000000
        assert lab.set_expiration(sample_jwt, "tomorrow") is None

    def test_malformed_input(self) -> None:
        assert JWTLab(InterceptorSession()).forge_none_variant("not-a-token") is None


class TestReplay(unittest.IsolatedAsyncioTestCase):
    """Test replaying logged requests with another token."""

    async def asyncSetUp(self) -> None:
        self.session = InterceptorSession()
        self.seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.seen.append(request)
            return httpx.Response(200, json={"ok": True})

        self.client = self.session.async_client(transport=httpx.MockTransport(handler))
        await self.session.fetch("https://app.test/public", client=self.client)
        await self.session.fetch(
            "https://app.test/api/orders",
            method="POST",
            headers={"Authorization": "Bearer old"},
            body='{"limit": 5}',
            client=self.client,
        )
        self.lab = JWTLab(self.session)

    async def asyncTearDown(self) -> None:
        await self.client.aclose()

    async def test_list_requests_with_auth(self) -> None:
        rows = self.lab.list_requests_with_auth()

        self.assertEqual([r["index"] for r in rows], [1])
        self.assertEqual(rows[0]["header_value"], "Bearer old")
        self.assertEqual(self.lab.list_requests_with_auth("authorization"), rows)

    async def test_replay_swaps_token(self) -> None:
        response = await self.lab.replay_request_with_token(1, SAMPLE_JWT, client=self.client)

        self.assertEqual(response.status_code, 200)
        replayed = self.seen[-1]
        self.assertEqual(replayed.method, "POST")
        self.assertEqual(replayed.headers.get_list("authorization"), [f"Bearer {SAMPLE_JWT}"])
        self.assertEqual(replayed.content, b'{"limit": 5}')
        self.assertEqual(len(self.session.show_request_log()), 3)

    async def test_replay_custom_header(self) -> None:
        await self.lab.replay_request_with_token(
            0,
            "raw-token",
            header_name="X-Auth",
            prefix="",
            additional_headers={"X-Debug": "1"},
            client=self.client,
        )

        replayed = self.seen[-1]
        self.assertEqual(replayed.headers["x-auth"], "raw-token")
        self.assertEqual(replayed.headers["x-debug"], "1")

    async def test_replay_unknown_index(self) -> None:
        self.assertIsNone(await self.lab.replay_request_with_token(5, SAMPLE_JWT, client=self.client))
        self.assertIsNone(await self.lab.replay_request_with_token(-1, SAMPLE_JWT, client=self.client))
