"""
Interceptor session.

Owns the request, form and realtime logs plus the open channel registry,
and hands out logged HTTP clients and realtime channels bound to it.
One session per test run or investigation keeps state isolated.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx
import structlog
from websockets.asyncio.client import connect as websocket_connect

from reconkit.interceptor.http import (
    LoggingSyncTransport,
    LoggingTransport,
    build_request,
)
from reconkit.interceptor.realtime import (
    WS_CONNECTING,
    LoggedEventSource,
    LoggedWebSocket,
)
from reconkit.models import (
    ChannelSnapshot,
    ChannelType,
    Direction,
    FormLogEntry,
    RealtimeChannel,
    RealtimeLogEntry,
    RequestLogEntry,
)
from reconkit.utils import safe_preview

logger = structlog.get_logger(__name__)

Connector = Callable[..., Awaitable[Any]]


class InterceptorSession:
    """
    Traffic capture context.

    Logs are append-only and chronological; entries are frozen models.
    The only deletions are whole-log clears and channel removal on close.
    """

    def __init__(self, preview_length: int = 200) -> None:
        self.preview_length = preview_length
        self._request_log: list[RequestLogEntry] = []
        self._form_log: list[FormLogEntry] = []
        self._realtime_log: list[RealtimeLogEntry] = []
        self._channels: dict[str, RealtimeChannel] = {}
        self._channel_counter = 0

    # Recording

    def record_request(self, entry: RequestLogEntry) -> RequestLogEntry:
        self._request_log.append(entry)
        return entry

    def record_form_submission(self, action: str, method: str, data: dict[str, str]) -> FormLogEntry:
        entry = FormLogEntry(action=action, method=method.upper(), data=data)
        self._form_log.append(entry)
        logger.info("form_submission", action=action, method=entry.method, fields=list(data))
        return entry

    def record_realtime(
        self,
        channel: RealtimeChannel,
        direction: Direction,
        **details: Any,
    ) -> RealtimeLogEntry:
        entry = RealtimeLogEntry(
            type=channel.type,
            direction=direction,
            channel_id=channel.id,
            url=channel.url,
            **details,
        )
        self._realtime_log.append(entry)
        logger.debug(
            "realtime_event",
            channel=channel.id,
            type=channel.type.value,
            direction=direction.value,
            data=entry.data,
        )
        return entry

    def register_channel(
        self,
        channel_type: ChannelType,
        url: str,
        protocols: Sequence[str] | None = None,
    ) -> RealtimeChannel:
        self._channel_counter += 1
        channel = RealtimeChannel(
            id=f"{channel_type.id_prefix}-{self._channel_counter}",
            type=channel_type,
            url=url,
            protocols=list(protocols or []),
        )
        self._channels[channel.id] = channel
        self.record_realtime(channel, Direction.OPEN)
        return channel

    def remove_channel(self, channel_id: str) -> None:
        self._channels.pop(channel_id, None)

    # Clients and channels

    def async_client(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """Create an httpx.AsyncClient whose traffic is logged here."""
        return httpx.AsyncClient(transport=LoggingTransport(self, transport), **kwargs)

    def client(
        self,
        transport: httpx.BaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.Client:
        """Create a blocking httpx.Client whose traffic is logged here."""
        return httpx.Client(transport=LoggingSyncTransport(self, transport), **kwargs)

    async def fetch(
        self,
        resource: Any,
        *,
        method: str | None = None,
        headers: Any = None,
        body: Any = None,
        note: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> httpx.Response:
        """
        Send a fetch-style request through a logged client.

        Args:
            resource: URL string, httpx.URL, httpx.Request or object with a url
            method: HTTP method (default GET, or the request's own method)
            headers: Header mapping or pair sequence
            body: str/bytes content, or a mapping/list sent as JSON
            note: Free-text note stored on the log entry
            client: Client from async_client(); a temporary one otherwise

        Returns:
            The response exactly as the transport produced it
        """
        if client is not None:
            request = build_request(resource, method=method, headers=headers, body=body, note=note, client=client)
            return await client.send(request)
        async with self.async_client() as temporary:
            request = build_request(resource, method=method, headers=headers, body=body, note=note, client=temporary)
            return await temporary.send(request)

    async def websocket(
        self,
        url: str,
        protocols: str | Sequence[str] | None = None,
        *,
        connector: Connector | None = None,
        **kwargs: Any,
    ) -> LoggedWebSocket:
        """
        Open a logged WebSocket channel.

        Args:
            url: ws:// or wss:// URL
            protocols: Subprotocol name or list of names
            connector: Connection factory (default websockets connect)
            **kwargs: Forwarded to the connector

        Returns:
            LoggedWebSocket proxy over the open connection
        """
        if isinstance(protocols, str):
            protocol_list = [protocols]
        else:
            protocol_list = list(protocols or [])

        channel = self.register_channel(ChannelType.WEBSOCKET, url, protocol_list)
        connect = connector or websocket_connect

        try:
            connection = await connect(url, subprotocols=protocol_list or None, **kwargs)
        except Exception as e:
            self.record_realtime(channel, Direction.ERROR, data=str(e))
            self.remove_channel(channel.id)
            raise

        socket = LoggedWebSocket(self, channel, connection)
        channel.transport = socket
        socket.watch_close()
        logger.info("websocket_opened", channel=channel.id, url=url)
        return socket

    def event_source(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ) -> LoggedEventSource:
        """
        Register a logged EventSource channel.

        The stream is opened by connect() or by entering the returned
        object as an async context manager.
        """
        channel = self.register_channel(ChannelType.EVENT_SOURCE, url)
        source = LoggedEventSource(
            self,
            channel,
            client or httpx.AsyncClient(timeout=None),
            headers=headers,
            owns_client=client is None,
        )
        channel.transport = source
        return source

    # Queries

    def show_request_log(
        self,
        method: str | None = None,
        url_includes: str | None = None,
    ) -> list[RequestLogEntry]:
        """Request log entries in capture order, optionally filtered."""
        rows = [
            entry
            for entry in self._request_log
            if (method is None or entry.method == method)
            and (url_includes is None or url_includes in entry.url)
        ]
        logger.info("request_log", count=len(rows), method=method, url_includes=url_includes)
        return rows

    def show_form_log(self) -> list[FormLogEntry]:
        """Form submissions in capture order."""
        logger.info("form_log", count=len(self._form_log))
        return list(self._form_log)

    def show_realtime_log(
        self,
        type: ChannelType | str | None = None,
        direction: Direction | str | None = None,
        channel_id: str | None = None,
        url_includes: str | None = None,
    ) -> list[RealtimeLogEntry]:
        """Realtime log entries in capture order, optionally filtered."""
        rows = [
            entry
            for entry in self._realtime_log
            if (type is None or entry.type == type)
            and (direction is None or entry.direction == direction)
            and (channel_id is None or entry.channel_id == channel_id)
            and (url_includes is None or url_includes in entry.url)
        ]
        logger.info("realtime_log", count=len(rows))
        return rows

    def list_realtime_channels(self) -> list[ChannelSnapshot]:
        """Snapshot of all currently open channels."""
        snapshots = [
            ChannelSnapshot(
                id=channel.id,
                type=channel.type,
                url=channel.url,
                protocols=list(channel.protocols),
                opened_at=channel.created_at,
                ready_state=channel.transport.ready_state if channel.transport is not None else WS_CONNECTING,
            )
            for channel in self._channels.values()
        ]
        logger.info("realtime_channels", count=len(snapshots))
        return snapshots

    @property
    def request_log(self) -> list[RequestLogEntry]:
        """Copy of the request log, without emitting a log event."""
        return list(self._request_log)

    def get_channel(self, channel_id: str) -> RealtimeChannel | None:
        return self._channels.get(channel_id)

    # Controls

    async def inject_websocket_message(self, channel_id: str, payload: Any) -> bool:
        """
        Send a payload through an open WebSocket channel.

        Returns:
            True when sent; False for unknown, non-WebSocket or failed channels
        """
        channel = self._channels.get(channel_id)
        if channel is None or channel.type != ChannelType.WEBSOCKET or channel.transport is None:
            logger.warning("websocket_channel_not_found", channel=channel_id)
            return False

        try:
            await channel.transport.connection.send(payload)
        except Exception as e:
            logger.error("websocket_injection_failed", channel=channel_id, error=str(e))
            return False

        self.record_realtime(channel, Direction.OUTBOUND_INJECTED, data=safe_preview(payload, self.preview_length))
        logger.info("websocket_payload_injected", channel=channel_id)
        return True

    async def close_realtime_channel(self, channel_id: str, code: int = 1000, reason: str = "") -> bool:
        """
        Close the transport behind a channel.

        Returns:
            True when a close was issued; False for unknown ids or failures
        """
        channel = self._channels.get(channel_id)
        if channel is None:
            logger.warning("realtime_channel_not_found", channel=channel_id)
            return False

        try:
            if channel.transport is None:
                self.remove_channel(channel_id)
            elif channel.type == ChannelType.WEBSOCKET:
                await channel.transport.close(code, reason)
            else:
                await channel.transport.close()
        except Exception as e:
            logger.error("realtime_close_failed", channel=channel_id, error=str(e))
            return False

        logger.info("realtime_channel_closed", channel=channel_id)
        return True

    def clear_logs(self, include_realtime: bool = False) -> None:
        """Truncate request and form logs; the channel registry is untouched."""
        self._request_log.clear()
        self._form_log.clear()
        if include_realtime:
            self._realtime_log.clear()
        logger.info("logs_cleared", include_realtime=include_realtime)

    def clear_realtime_log(self) -> None:
        self._realtime_log.clear()
        logger.info("realtime_log_cleared")
