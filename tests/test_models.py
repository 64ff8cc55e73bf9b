"""Tests for reconkit models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from reconkit.models import (
    ChannelType,
    ComplexField,
    EnumerationResult,
    IntrospectionReport,
    Operation,
    ProbeConfig,
    ProbeOutcome,
    RequestLogEntry,
    StorageSnapshot,
    SubfieldReport,
)


class TestProbeConfig:
    """Test ProbeConfig validation."""

    def test_defaults(self) -> None:
        config = ProbeConfig(endpoint="https://api.test/graphql")

        assert config.delay == 0.1
        assert config.retries == 1
        assert config.test_mutations is True
        assert config.probe_mutation_subfields is True

    def test_endpoint_requires_scheme(self) -> None:
        with pytest.raises(ValidationError, match="http:// or https://"):
            ProbeConfig(endpoint="api.test/graphql")

    def test_custom_fields_must_be_identifiers(self) -> None:
        config = ProbeConfig(endpoint="https://api.test", custom_fields=["_internal", "adminUsers2"])
        assert config.custom_fields == ["_internal", "adminUsers2"]
        with pytest.raises(ValidationError, match="Invalid GraphQL field name"):
            ProbeConfig(endpoint="https://api.test", custom_fields=["admin-users"])

    def test_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ProbeConfig(endpoint="https://api.test", timeout=0)
        with pytest.raises(ValidationError):
            ProbeConfig(endpoint="https://api.test", delay=-1)

    def test_request_headers(self) -> None:
        config = ProbeConfig(
            endpoint="https://api.test",
            authorization_token="abc",
            custom_headers={"X-Tenant": "acme"},
        )

        assert config.request_headers() == {
            "User-Agent": "reconkit/1.0",
            "X-Tenant": "acme",
            "Authorization": "Bearer abc",
        }
        assert "Authorization" not in ProbeConfig(endpoint="https://api.test").request_headers()


class TestEnums:
    """Test enum helpers."""

    def test_channel_prefix(self) -> None:
        assert ChannelType.WEBSOCKET.id_prefix == "ws"
        assert ChannelType.EVENT_SOURCE.id_prefix == "es"

    def test_field_exists(self) -> None:
        existing = {o for o in ProbeOutcome if o.field_exists}
        assert existing == {
            ProbeOutcome.CONFIRMED_SCALAR,
            ProbeOutcome.CONFIRMED_COMPLEX,
            ProbeOutcome.REQUIRES_ARGS,
        }

    def test_operation_formats_as_keyword(self) -> None:
        assert f"{Operation.MUTATION} {{ x }}" == "mutation { x }"


class TestRecords:
    """Test log records and reports."""

    def test_log_entries_are_frozen(self) -> None:
        entry = RequestLogEntry(url="https://app.test/")

        with pytest.raises(ValidationError):
            entry.url = "https://other.test/"

    def test_cookie_items(self) -> None:
        storage = StorageSnapshot(cookies="sid=abc; theme=dark; flag; token=a=b")

        assert storage.cookie_items() == [("sid", "abc"), ("theme", "dark"), ("token", "a=b")]

    def test_add_fields_dedupes(self) -> None:
        report = IntrospectionReport(endpoint="https://api.test")
        report.add_fields(["user", "users"])
        report.add_fields(["users", "me"])

        assert report.discovered_fields == ["user", "users", "me"]

    def test_enumeration_lookups(self) -> None:
        result = EnumerationResult(
            endpoint="https://api.test",
            complex_fields=[ComplexField(name="user", operation=Operation.QUERY)],
            subfields=[SubfieldReport(field="user", typename="User")],
        )

        assert result.is_complex("user", Operation.QUERY)
        assert not result.is_complex("user", Operation.MUTATION)
        assert result.subfield_report("user").typename == "User"
        assert result.subfield_report("user", Operation.MUTATION) is None
