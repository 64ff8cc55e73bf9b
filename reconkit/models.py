"""
Pydantic models for the reconkit toolkit.

Defines the interceptor log records, realtime channel metadata,
GraphQL probe outcomes and reports, and the probe configuration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reconkit.utils import get_utc_now


class Severity(StrEnum):
    """Severity levels for sensitive data matches."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class RequestSource(StrEnum):
    """Client flavour that issued an intercepted request."""

    ASYNC = "async"  # httpx.AsyncClient (fetch counterpart)
    SYNC = "sync"  # httpx.Client (XMLHttpRequest counterpart)


class ChannelType(StrEnum):
    """Realtime transport kinds."""

    WEBSOCKET = "WebSocket"
    EVENT_SOURCE = "EventSource"

    @property
    def id_prefix(self) -> str:
        """Prefix used for synthetic channel ids."""
        match self:
            case ChannelType.WEBSOCKET:
                return "ws"
            case ChannelType.EVENT_SOURCE:
                return "es"


class Direction(StrEnum):
    """Realtime log entry direction or lifecycle event."""

    OPEN = "OPEN"
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    OUTBOUND_INJECTED = "OUTBOUND_INJECTED"
    CLOSED = "CLOSED"
    ERROR = "ERROR"
    READY = "READY"


class RequestLogEntry(BaseModel):
    """One intercepted HTTP request. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=get_utc_now)
    method: str = Field(default="GET")
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = Field(default=None, description="Decoded body or placeholder")
    note: str | None = None
    source: RequestSource = RequestSource.ASYNC


class FormLogEntry(BaseModel):
    """One form submission sent through the toolkit."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=get_utc_now)
    action: str
    method: str
    data: dict[str, str] = Field(default_factory=dict)


class RealtimeLogEntry(BaseModel):
    """One inbound, outbound or lifecycle event on a realtime channel."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=get_utc_now)
    type: ChannelType
    direction: Direction
    channel_id: str
    url: str = ""
    data: str | None = None
    event: str | None = None
    code: int | None = None
    reason: str | None = None
    was_clean: bool | None = None


@dataclass
class RealtimeChannel:
    """
    Registry record for one open WebSocket or EventSource.

    Holds a live reference to the logged transport wrapper, which is
    None until the underlying connection has been established.
    """

    id: str
    type: ChannelType
    url: str
    protocols: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=get_utc_now)
    transport: Any = field(default=None, repr=False)


class ChannelSnapshot(BaseModel):
    """Point-in-time view of an open realtime channel."""

    id: str
    type: ChannelType
    url: str
    protocols: list[str] = Field(default_factory=list)
    opened_at: datetime
    ready_state: int


class ProbeOutcome(StrEnum):
    """Classification of a single GraphQL field probe."""

    CONFIRMED_SCALAR = "confirmed-scalar"
    CONFIRMED_COMPLEX = "confirmed-complex"
    REQUIRES_ARGS = "requires-args"
    REJECTED = "rejected"
    AMBIGUOUS = "ambiguous"  # unrecognised error text, left untested
    INCONCLUSIVE = "inconclusive"  # network failure, no response to judge

    @property
    def field_exists(self) -> bool:
        """Whether this outcome proves the field is part of the schema."""
        return self in (
            ProbeOutcome.CONFIRMED_SCALAR,
            ProbeOutcome.CONFIRMED_COMPLEX,
            ProbeOutcome.REQUIRES_ARGS,
        )


class Operation(StrEnum):
    """GraphQL root operation types probed by the toolkit."""

    QUERY = "query"
    MUTATION = "mutation"


class ComplexField(BaseModel):
    """A field whose result type needs an explicit subfield selection."""

    name: str
    operation: Operation
    requires_subfields: bool = True


class SubfieldReport(BaseModel):
    """Result of probing the subfields of one complex field."""

    field: str
    operation: Operation = Operation.QUERY
    typename: str | None = None
    subfields: list[str] = Field(default_factory=list)
    scalar_fields: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    example_query: str | None = None
    example_works: bool = False


class EnumerationResult(BaseModel):
    """Discovered schema surface from heuristic enumeration."""

    endpoint: str
    queries: list[str] = Field(default_factory=list)
    mutations: list[str] = Field(default_factory=list)
    complex_fields: list[ComplexField] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    query_outcomes: dict[str, ProbeOutcome] = Field(default_factory=dict)
    mutation_outcomes: dict[str, ProbeOutcome] = Field(default_factory=dict)
    subfields: list[SubfieldReport] = Field(default_factory=list)
    inconclusive: list[str] = Field(
        default_factory=list,
        description="Probes that failed at the network level, as 'operation:field'",
    )

    def is_complex(self, name: str, operation: Operation) -> bool:
        """Check whether a discovered field was flagged as complex."""
        return any(f.name == name and f.operation == operation for f in self.complex_fields)

    def subfield_report(self, name: str, operation: Operation = Operation.QUERY) -> SubfieldReport | None:
        """Subfield report for a probed complex field, if any."""
        for report in self.subfields:
            if report.field == name and report.operation == operation:
                return report
        return None


class IntrospectionReport(BaseModel):
    """Aggregated outcome of the introspection test sequence."""

    endpoint: str
    introspection_enabled: bool = False
    partial_introspection: bool = False
    field_suggestions: bool = False
    typename: str | None = None
    discovered_types: list[str] = Field(default_factory=list)
    discovered_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def add_fields(self, names: list[str]) -> None:
        """Append field names, keeping first-seen order without duplicates."""
        for name in names:
            if name not in self.discovered_fields:
                self.discovered_fields.append(name)


class FormField(BaseModel):
    """Input element of an HTML form."""

    name: str = ""
    type: str = "text"
    value: str = ""
    checked: bool = False
    disabled: bool = False


class FormInfo(BaseModel):
    """HTML form extracted from a page."""

    index: int
    action: str
    method: str = "GET"
    id: str = ""
    name: str = ""
    fields: list[FormField] = Field(default_factory=list)


class CSRFAssessment(BaseModel):
    """CSRF protection assessment for one form."""

    index: int
    action: str
    method: str
    same_origin: bool
    suspected_tokens: list[dict[str, str]] = Field(default_factory=list)
    assessment: str


class StorageSnapshot(BaseModel):
    """Client-side storage captured from a browser session."""

    local_storage: dict[str, str] = Field(default_factory=dict)
    session_storage: dict[str, str] = Field(default_factory=dict)
    cookies: str = Field(default="", description="document.cookie style string")

    def cookie_items(self) -> list[tuple[str, str]]:
        """Split the cookie string into (name, value) pairs."""
        items: list[tuple[str, str]] = []
        for part in self.cookies.split(";"):
            if "=" not in part:
                continue
            name, value = part.split("=", 1)
            items.append((name.strip(), value.strip()))
        return items


class DecodedJWT(BaseModel):
    """Header, payload and raw signature segment of a JWT."""

    header: dict[str, Any]
    payload: dict[str, Any]
    signature: str


class TokenLocation(BaseModel):
    """Where a JWT-shaped value was found."""

    source: str
    key: str
    path: str = ""
    token: str
    decoded: DecodedJWT | None = None
    expired: bool | None = None


class SensitiveMatch(BaseModel):
    """A sensitive data pattern hit in one source."""

    pattern: str
    severity: Severity
    value: str
    source: str
    context: str


class ProbeConfig(BaseModel):
    """GraphQL probing configuration with validation."""

    endpoint: str = Field(min_length=1, description="GraphQL endpoint URL")
    timeout: float = Field(default=30.0, gt=0.0, le=300.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    user_agent: str = Field(default="reconkit/1.0", description="User agent string")
    authorization_token: str | None = Field(
        default=None,
        description="Bearer token sent with every probe",
    )
    custom_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Custom headers to include in requests",
    )
    delay: float = Field(default=0.1, ge=0.0, le=60.0, description="Throttle pause in seconds")
    retries: int = Field(default=1, ge=0, le=10, description="Retries for transient failures")
    retry_delay: float = Field(default=0.5, ge=0.0, le=60.0, description="Pause between retries")
    test_mutations: bool = True
    probe_subfields: bool = True
    probe_mutation_subfields: bool = Field(
        default=True,
        description="Probe subfields of complex mutations (executes real mutations)",
    )
    custom_fields: list[str] = Field(default_factory=list, description="Extra query field candidates")
    try_alternatives: bool = Field(
        default=True,
        description="Continue past a blocked full introspection query",
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Ensure endpoint has a valid scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Endpoint must start with http:// or https://")
        return v

    @field_validator("custom_fields")
    @classmethod
    def validate_custom_fields(cls, v: list[str]) -> list[str]:
        """Field names must be GraphQL identifiers."""
        for name in v:
            if not re.fullmatch(r"[_A-Za-z][_0-9A-Za-z]*", name):
                raise ValueError(f"Invalid GraphQL field name: {name}")
        return v

    def request_headers(self) -> dict[str, str]:
        """Headers applied to every probe request."""
        headers = {"User-Agent": self.user_agent, **self.custom_headers}
        if self.authorization_token:
            headers["Authorization"] = f"Bearer {self.authorization_token}"
        return headers
