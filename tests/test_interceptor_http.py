"""Tests for HTTP request capture."""

from __future__ import annotations

import json
import unittest

import httpx
import pytest

from reconkit.interceptor.http import (
    NOTE_EXTENSION,
    STREAM_PLACEHOLDER,
    UNAVAILABLE_PLACEHOLDER,
    build_request,
    is_placeholder_body,
    resolve_url,
)
from reconkit.interceptor.session import InterceptorSession
from reconkit.models import RequestSource


class TestFetchCapture(unittest.IsolatedAsyncioTestCase):
    """Test capture through the async logged client."""

    async def asyncSetUp(self) -> None:
        self.session = InterceptorSession()
        self.seen: list[httpx.Request] = []
        self.client = self.session.async_client(transport=httpx.MockTransport(self._handler))

    async def asyncTearDown(self) -> None:
        await self.client.aclose()

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.seen.append(request)
        return httpx.Response(418, headers={"x-upstream": "teapot"}, json={"brewed": False})

    async def test_capture_order_and_default_method(self) -> None:
        """Entries appear in call order; a missing method is GET."""
        await self.session.fetch("https://app.test/one", client=self.client)
        await self.session.fetch("https://app.test/two", method="post", body={"k": 1}, client=self.client)
        await self.session.fetch("https://app.test/three", client=self.client)

        log = self.session.show_request_log()
        self.assertEqual([e.url for e in log], ["https://app.test/one", "https://app.test/two", "https://app.test/three"])
        self.assertEqual([e.method for e in log], ["GET", "POST", "GET"])
        self.assertEqual(json.loads(log[1].body), {"k": 1})
        self.assertTrue(all(e.source == RequestSource.ASYNC for e in log))

    async def test_response_passes_through(self) -> None:
        response = await self.session.fetch("https://app.test/pot", client=self.client)

        self.assertEqual(response.status_code, 418)
        self.assertEqual(response.headers["x-upstream"], "teapot")
        self.assertEqual(response.json(), {"brewed": False})

    async def test_client_methods_are_captured(self) -> None:
        await self.client.put("https://app.test/items/1", content=b"name=widget")

        entry = self.session.show_request_log()[0]
        self.assertEqual(entry.method, "PUT")
        self.assertEqual(entry.body, "name=widget")

    async def test_note_and_headers(self) -> None:
        await self.session.fetch(
            "https://app.test/login",
            headers=[("X-Trace", "abc")],
            note="login attempt",
            client=self.client,
        )

        entry = self.session.show_request_log()[0]
        self.assertEqual(entry.note, "login attempt")
        self.assertEqual(entry.headers["x-trace"], "abc")

    async def test_request_object_reused(self) -> None:
        request = httpx.Request("DELETE", "https://app.test/items/2")
        await self.session.fetch(request, client=self.client)

        self.assertIs(self.seen[0], request)
        self.assertEqual(self.session.show_request_log()[0].method, "DELETE")

    async def test_streaming_body_not_consumed(self) -> None:
        """Single-read bodies are logged as a placeholder and still sent."""

        async def chunks():
            yield b"part-1;"
            yield b"part-2"

        request = httpx.Request("POST", "https://app.test/upload", content=chunks())
        await self.session.fetch(request, client=self.client)

        self.assertEqual(self.session.show_request_log()[0].body, STREAM_PLACEHOLDER)
        self.assertEqual(self.seen[0].content, b"part-1;part-2")

    async def test_capture_failure_does_not_block_request(self) -> None:
        """An entry that fails validation is replaced by a placeholder entry."""
        request = httpx.Request(
            "POST",
            "https://app.test/notes",
            content=b"x",
            extensions={NOTE_EXTENSION: 123},
        )
        response = await self.client.send(request)

        self.assertEqual(response.status_code, 418)
        self.assertIs(self.seen[0], request)
        entry = self.session.show_request_log()[0]
        self.assertEqual(entry.body, UNAVAILABLE_PLACEHOLDER)
        self.assertEqual((entry.method, entry.url), ("POST", "https://app.test/notes"))
        self.assertIsNone(entry.note)

    async def test_transport_error_propagates(self) -> None:
        def failing(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with self.session.async_client(transport=httpx.MockTransport(failing)) as client:
            with self.assertRaises(httpx.ConnectError):
                await self.session.fetch("https://down.test/", client=client)

        # Logged before forwarding
        self.assertEqual(len(self.session.show_request_log()), 1)

    async def test_client_default_headers_applied(self) -> None:
        async with self.session.async_client(
            transport=httpx.MockTransport(self._handler),
            headers={"Authorization": "Bearer t0k3n"},
        ) as client:
            await self.session.fetch("https://app.test/me", client=client)

        self.assertEqual(self.session.show_request_log()[0].headers["authorization"], "Bearer t0k3n")


class TestSyncClient:
    """Test the blocking client counterpart."""

    def test_sync_requests_logged(self, session: InterceptorSession) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        with session.client(transport=transport) as client:
            response = client.post("https://app.test/form", data={"a": "1"})

        assert response.status_code == 204
        entry = session.show_request_log()[0]
        assert entry.source == RequestSource.SYNC
        assert entry.method == "POST"
        assert entry.body == "a=1"


class TestBuildRequest:
    """Test fetch-style request construction."""

    def test_defaults_to_get(self) -> None:
        request = build_request("https://app.test/")
        assert request.method == "GET"

    def test_method_uppercased(self) -> None:
        assert build_request("https://app.test/", method="patch").method == "PATCH"

    def test_mapping_body_sent_as_json(self) -> None:
        request = build_request("https://app.test/", method="POST", body={"q": "x"})
        assert json.loads(request.content) == {"q": "x"}
        assert request.headers["content-type"] == "application/json"

    def test_override_keeps_original_stream(self) -> None:
        original = httpx.Request("POST", "https://app.test/", content=b"payload")
        derived = build_request(original, method="PUT")
        assert derived is not original
        assert derived.method == "PUT"
        assert derived.read() == b"payload"

    @pytest.mark.parametrize(
        ("resource", "expected"),
        [
            ("https://app.test/a", "https://app.test/a"),
            (httpx.URL("https://app.test/b"), "https://app.test/b"),
            (httpx.Request("GET", "https://app.test/c"), "https://app.test/c"),
        ],
    )
    def test_resolve_url(self, resource: object, expected: str) -> None:
        assert resolve_url(resource) == expected


class TestPlaceholders:
    """Test placeholder detection for replay."""

    def test_placeholders(self) -> None:
        assert is_placeholder_body(STREAM_PLACEHOLDER)
        assert is_placeholder_body("[unavailable]")
        assert is_placeholder_body("[bytes length=12]")

    def test_real_bodies(self) -> None:
        assert not is_placeholder_body(None)
        assert not is_placeholder_body('{"a": 1}')
        assert not is_placeholder_body("[1, 2, 3]")
