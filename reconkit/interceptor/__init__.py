"""
Traffic interception for reconkit.

Logged httpx transports, WebSocket and EventSource channel proxies,
and the session object that owns the captured logs.
"""

from reconkit.interceptor.http import LoggingSyncTransport, LoggingTransport, build_request
from reconkit.interceptor.realtime import (
    EventSourceError,
    LoggedEventSource,
    LoggedWebSocket,
    ServerSentEvent,
    parse_event_stream,
)
from reconkit.interceptor.session import InterceptorSession

__all__ = [
    "InterceptorSession",
    "LoggingTransport",
    "LoggingSyncTransport",
    "build_request",
    "LoggedWebSocket",
    "LoggedEventSource",
    "ServerSentEvent",
    "EventSourceError",
    "parse_event_stream",
]
