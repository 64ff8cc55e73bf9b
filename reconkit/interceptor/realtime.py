"""
Logged WebSocket and EventSource channels.

Both wrappers are proxies over a real transport: a websockets client
connection, or a streaming httpx response carrying text/event-stream.
They record every inbound, outbound and lifecycle event in the owning
session's realtime log and keep the channel registry current.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from reconkit.models import Direction, RealtimeChannel
from reconkit.utils import safe_preview

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession

logger = structlog.get_logger(__name__)

# WebSocket readyState values
WS_CONNECTING = 0
WS_OPEN = 1
WS_CLOSING = 2
WS_CLOSED = 3

ABNORMAL_CLOSURE = 1006


class EventSourceError(Exception):
    """Raised when an event stream cannot be established."""


class LoggedWebSocket:
    """
    Proxy over a websockets client connection.

    Exposes the connection interface (send, recv, async iteration, close)
    and delegates every other attribute to the wrapped connection. A
    watcher task notices closes started by the server even when nobody
    is reading.
    """

    def __init__(
        self,
        session: "InterceptorSession",
        channel: RealtimeChannel,
        connection: Any,
    ) -> None:
        self._session = session
        self._channel = channel
        self._connection = connection
        self._closed = False
        self._watcher: asyncio.Task[None] | None = None

    @property
    def id(self) -> str:
        return self._channel.id

    @property
    def connection(self) -> Any:
        """The underlying websockets connection."""
        return self._connection

    @property
    def ready_state(self) -> int:
        """Browser-style readyState derived from the connection state."""
        if self._closed:
            return WS_CLOSED
        state = getattr(self._connection, "state", None)
        if state is None:
            return WS_OPEN
        return int(getattr(state, "value", state))

    async def send(self, message: Any) -> None:
        self._session.record_realtime(self._channel, Direction.OUTBOUND, data=safe_preview(message))
        await self._connection.send(message)

    async def recv(self) -> Any:
        try:
            message = await self._connection.recv()
        except ConnectionClosed as e:
            self._mark_closed(e)
            raise
        self._session.record_realtime(self._channel, Direction.INBOUND, data=safe_preview(message))
        return message

    async def __aiter__(self) -> AsyncIterator[Any]:
        while True:
            try:
                yield await self.recv()
            except ConnectionClosedOK:
                return

    def watch_close(self) -> asyncio.Task[None] | None:
        """
        Start the close watcher.

        Connections without wait_closed() are only seen closing through
        recv() or close().
        """
        if self._watcher is None and not self._closed and hasattr(self._connection, "wait_closed"):
            self._watcher = asyncio.create_task(self._await_close(), name=f"{self._channel.id}-close-watcher")
        return self._watcher

    async def _await_close(self) -> None:
        await self._connection.wait_closed()
        code = getattr(self._connection, "close_code", None)
        reason = getattr(self._connection, "close_reason", None)
        self._mark_closed(
            None,
            code=code if code is not None else ABNORMAL_CLOSURE,
            reason=reason or "",
            log_error=True,
        )

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self._stop_watcher()
        await self._connection.close(code, reason)
        close_code = getattr(self._connection, "close_code", None)
        close_reason = getattr(self._connection, "close_reason", None)
        self._mark_closed(
            None,
            code=close_code if close_code is not None else code,
            reason=close_reason if close_reason is not None else reason,
        )

    async def __aenter__(self) -> "LoggedWebSocket":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if not self._closed:
            await self.close()

    def __getattr__(self, name: str) -> Any:
        if name == "_connection":
            raise AttributeError(name)
        return getattr(self._connection, name)

    def _mark_closed(
        self,
        error: ConnectionClosed | None,
        code: int | None = None,
        reason: str | None = None,
        log_error: bool = False,
    ) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop_watcher()

        if error is not None:
            received = error.rcvd
            code = received.code if received is not None else ABNORMAL_CLOSURE
            reason = received.reason if received is not None else ""
            was_clean = isinstance(error, ConnectionClosedOK)
            if not was_clean:
                self._session.record_realtime(self._channel, Direction.ERROR, data=str(error))
        else:
            was_clean = code != ABNORMAL_CLOSURE
            if log_error and not was_clean:
                self._session.record_realtime(self._channel, Direction.ERROR, data="connection lost")

        self._session.record_realtime(
            self._channel,
            Direction.CLOSED,
            code=code,
            reason=reason or "",
            was_clean=was_clean,
        )
        self._session.remove_channel(self._channel.id)
        logger.info("websocket_closed", channel=self._channel.id, code=code, clean=was_clean)

    def _stop_watcher(self) -> None:
        # The watcher ends by calling _mark_closed; it must not cancel itself
        if self._watcher is not None and self._watcher is not asyncio.current_task():
            self._watcher.cancel()


@dataclass(frozen=True)
class ServerSentEvent:
    """A dispatched server-sent event."""

    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None


async def parse_event_stream(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """
    Parse text/event-stream lines into events.

    Events are dispatched on blank lines; an event with no data lines is
    dropped. The last event id persists across events.
    """
    event_type = ""
    data_lines: list[str] = []
    event_id: str | None = None
    retry: int | None = None

    async for line in lines:
        if not line:
            if data_lines:
                yield ServerSentEvent(
                    event=event_type or "message",
                    data="\n".join(data_lines),
                    id=event_id,
                    retry=retry,
                )
            event_type = ""
            data_lines = []
            retry = None
            continue

        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        match name:
            case "event":
                event_type = value
            case "data":
                data_lines.append(value)
            case "id":
                if "\0" not in value:
                    event_id = value
            case "retry":
                if value.isdigit():
                    retry = int(value)


class LoggedEventSource:
    """
    Server-sent events channel over a streaming httpx response.

    The channel is registered on construction. connect() (or entering
    the async context) opens the stream; iterating yields events.
    """

    CONNECTING = 0
    OPEN = 1
    CLOSED = 2

    def __init__(
        self,
        session: "InterceptorSession",
        channel: RealtimeChannel,
        client: httpx.AsyncClient,
        headers: dict[str, str] | None = None,
        owns_client: bool = False,
    ) -> None:
        self._session = session
        self._channel = channel
        self._client = client
        self._headers = headers or {}
        self._owns_client = owns_client
        self._exit_stack = contextlib.AsyncExitStack()
        self._response: httpx.Response | None = None
        self.ready_state = self.CONNECTING
        self.last_event_id: str | None = None

    @property
    def id(self) -> str:
        return self._channel.id

    @property
    def url(self) -> str:
        return self._channel.url

    async def connect(self) -> "LoggedEventSource":
        """Open the event stream and log READY."""
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache", **self._headers}
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        try:
            response = await self._exit_stack.enter_async_context(
                self._client.stream("GET", self._channel.url, headers=headers)
            )
        except httpx.HTTPError as e:
            await self._fail(str(e))
            raise

        content_type = response.headers.get("content-type", "")
        if response.status_code != 200 or not content_type.startswith("text/event-stream"):
            message = f"unexpected response: {response.status_code} {content_type or 'no content-type'}"
            await self._fail(message)
            raise EventSourceError(message)

        self._response = response
        self.ready_state = self.OPEN
        self._session.record_realtime(self._channel, Direction.READY)
        logger.info("event_source_ready", channel=self._channel.id, url=self._channel.url)
        return self

    async def __aiter__(self) -> AsyncIterator[ServerSentEvent]:
        if self.ready_state == self.CLOSED:
            raise EventSourceError(f"channel {self._channel.id} is closed")
        if self._response is None:
            await self.connect()
        if self._response is None:
            raise EventSourceError(f"channel {self._channel.id} did not open")

        try:
            async for event in parse_event_stream(self._response.aiter_lines()):
                if event.id is not None:
                    self.last_event_id = event.id
                self._session.record_realtime(
                    self._channel,
                    Direction.INBOUND,
                    data=safe_preview(event.data),
                    event=event.event,
                )
                yield event
        except httpx.HTTPError as e:
            await self._fail(str(e))
            raise

        if self.ready_state != self.CLOSED:
            await self._fail("stream ended")

    async def close(self) -> None:
        """Close the stream and deregister the channel."""
        if self.ready_state == self.CLOSED:
            return
        await self._shutdown()
        self._session.record_realtime(self._channel, Direction.CLOSED)
        self._session.remove_channel(self._channel.id)

    async def __aenter__(self) -> "LoggedEventSource":
        return await self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _fail(self, message: str) -> None:
        if self.ready_state == self.CLOSED:
            return
        logger.warning("event_source_error", channel=self._channel.id, error=message)
        await self._shutdown()
        self._session.record_realtime(self._channel, Direction.ERROR, data=message)
        self._session.remove_channel(self._channel.id)

    async def _shutdown(self) -> None:
        self.ready_state = self.CLOSED
        self._response = None
        await self._exit_stack.aclose()
        if self._owns_client:
            await self._client.aclose()
