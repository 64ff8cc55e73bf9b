"""
GraphQL schema prober.

Discovers the shape of a GraphQL API when introspection may be disabled.
Fields are guessed from word lists and classified from the server's
error text, so results are evidence rather than proof: an AMBIGUOUS
outcome means the error wording was not recognised, not that the field
is absent.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from reconkit.graphql.classifier import (
    classify_response,
    extract_leaked_names,
    extract_suggestions,
    extract_type_name,
    first_error_message,
    has_suggestions,
    is_rejection,
)
from reconkit.graphql.client import GraphQLClient
from reconkit.graphql.wordlists import (
    COMMON_MUTATIONS,
    COMMON_QUERY_FIELDS,
    COMMON_SCALAR_FIELDS,
    FULL_INTROSPECTION_QUERY,
    INTROSPECTION_PROBE_FIELDS,
    QUERY_TYPE_QUERY,
    SUGGESTION_PROBE_QUERY,
    TYPE_NAMES_QUERY,
    TYPENAME_QUERY,
)
from reconkit.models import (
    ComplexField,
    EnumerationResult,
    IntrospectionReport,
    Operation,
    ProbeOutcome,
    SubfieldReport,
)
from reconkit.throttle import BatchThrottle
from reconkit.utils import truncate_string

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession
    from reconkit.models import ProbeConfig

logger = structlog.get_logger(__name__)

# Scalars combined into the example query
EXAMPLE_FIELD_LIMIT = 10


def field_document(name: str, operation: Operation = Operation.QUERY, selection: str | None = None) -> str:
    """
    Build a single-field GraphQL document.

    >>> field_document("user", Operation.QUERY, "__typename")
    '{ user { __typename } }'
    """
    body = f"{name} {{ {selection} }}" if selection else name
    if operation == Operation.MUTATION:
        return f"mutation {{ {body} }}"
    return f"{{ {body} }}"


@dataclass(frozen=True)
class FieldProbe:
    """Outcome of probing one bare field."""

    field: str
    operation: Operation
    outcome: ProbeOutcome
    message: str | None = None
    suggestions: tuple[str, ...] = ()


@dataclass
class SchemaProber:
    """
    Heuristic GraphQL schema discovery over a GraphQLClient.

    Probes run strictly one at a time. A BatchThrottle pauses for `delay`
    seconds after every 10th enumeration probe and after every subfield
    probe.
    """

    client: GraphQLClient
    delay: float = 0.1
    test_mutations: bool = True
    probe_subfields: bool = True
    probe_mutation_subfields: bool = True
    custom_fields: list[str] = field(default_factory=list)

    @classmethod
    def from_config(
        cls,
        config: "ProbeConfig",
        session: "InterceptorSession | None" = None,
    ) -> "SchemaProber":
        """Create a prober, and its client, from probe configuration."""
        return cls(
            client=GraphQLClient.from_config(config, session=session),
            delay=config.delay,
            test_mutations=config.test_mutations,
            probe_subfields=config.probe_subfields,
            probe_mutation_subfields=config.probe_mutation_subfields,
            custom_fields=list(config.custom_fields),
        )

    @property
    def endpoint(self) -> str:
        return self.client.endpoint

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "SchemaProber":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def probe_field(self, name: str, operation: Operation = Operation.QUERY) -> FieldProbe:
        """
        Probe one field with no arguments and no selection.

        Args:
            name: Candidate field name
            operation: Root operation to probe under

        Returns:
            FieldProbe with the classified outcome and any suggestions
        """
        body = await self.client.execute(field_document(name, operation))
        outcome = classify_response(body)
        message = first_error_message(body)
        suggestions = tuple(extract_suggestions(message, name)) if message else ()

        match outcome:
            case ProbeOutcome.CONFIRMED_SCALAR | ProbeOutcome.REQUIRES_ARGS:
                logger.info("field_discovered", field=name, operation=str(operation), outcome=str(outcome))
            case ProbeOutcome.CONFIRMED_COMPLEX:
                logger.info("complex_field_discovered", field=name, operation=str(operation))
            case ProbeOutcome.AMBIGUOUS:
                logger.info(
                    "possible_field",
                    field=name,
                    operation=str(operation),
                    message=truncate_string(message or ""),
                )
            case ProbeOutcome.INCONCLUSIVE:
                logger.debug("probe_inconclusive", field=name, operation=str(operation))

        return FieldProbe(
            field=name,
            operation=operation,
            outcome=outcome,
            message=message,
            suggestions=suggestions,
        )

    async def enumerate_schema(self, custom_fields: Iterable[str] | None = None) -> EnumerationResult:
        """
        Enumerate query and mutation fields from word lists.

        Args:
            custom_fields: Extra query candidates for this run

        Returns:
            EnumerationResult with discovered fields, outcomes and
            subfield reports for complex fields
        """
        result = EnumerationResult(endpoint=self.endpoint)
        throttle = BatchThrottle(delay=self.delay, every=10)
        pending: dict[str, Operation] = {}

        candidates = list(dict.fromkeys([*COMMON_QUERY_FIELDS, *self.custom_fields, *(custom_fields or ())]))
        logger.info("enumeration_started", endpoint=self.endpoint, query_candidates=len(candidates))

        for name in candidates:
            self._record(result, await self.probe_field(name, Operation.QUERY), pending)
            await throttle.tick()

        if self.test_mutations:
            for name in COMMON_MUTATIONS:
                self._record(result, await self.probe_field(name, Operation.MUTATION), pending)
                await throttle.tick()

        # One follow-up pass over names the server offered
        for name, operation in pending.items():
            discovered = result.queries if operation == Operation.QUERY else result.mutations
            if name in discovered:
                continue
            self._record(result, await self.probe_field(name, operation), None)
            await throttle.tick()

        if self.probe_subfields:
            for complex_field in list(result.complex_fields):
                if complex_field.operation == Operation.MUTATION and not self.probe_mutation_subfields:
                    continue
                result.subfields.append(await self.probe_subfields(complex_field.name, complex_field.operation))

        logger.info(
            "enumeration_complete",
            endpoint=self.endpoint,
            queries=len(result.queries),
            mutations=len(result.mutations),
            complex_fields=len(result.complex_fields),
            suggestions=len(result.suggestions),
            inconclusive=len(result.inconclusive),
            requests=self.client.request_count,
        )
        return result

    def _record(
        self,
        result: EnumerationResult,
        probe: FieldProbe,
        pending: dict[str, Operation] | None,
    ) -> None:
        """Fold one probe into the enumeration result."""
        if probe.operation == Operation.QUERY:
            outcomes, discovered = result.query_outcomes, result.queries
        else:
            outcomes, discovered = result.mutation_outcomes, result.mutations
        outcomes[probe.field] = probe.outcome

        if probe.outcome == ProbeOutcome.INCONCLUSIVE:
            result.inconclusive.append(f"{probe.operation}:{probe.field}")
        elif probe.outcome.field_exists and probe.field not in discovered:
            discovered.append(probe.field)
            if probe.outcome == ProbeOutcome.CONFIRMED_COMPLEX and not result.is_complex(
                probe.field, probe.operation
            ):
                result.complex_fields.append(ComplexField(name=probe.field, operation=probe.operation))

        if pending is None:
            return
        for name in probe.suggestions:
            if name not in result.suggestions:
                result.suggestions.append(name)
                logger.info("field_suggested", field=name, probed=probe.field)
            pending.setdefault(name, probe.operation)

    async def probe_subfields(self, name: str, operation: Operation = Operation.QUERY) -> SubfieldReport:
        """
        Discover the selectable subfields of a complex field.

        Resolves the type name with a __typename selection, tries each
        common scalar name as a selection, then checks whether a combined
        query over the clean scalars executes.

        Args:
            name: Complex field name
            operation: Root operation the field lives under

        Returns:
            SubfieldReport for the field
        """
        report = SubfieldReport(field=name, operation=operation)
        report.typename = await self._resolve_typename(name, operation)
        throttle = BatchThrottle(delay=self.delay, every=1)

        for candidate in COMMON_SCALAR_FIELDS:
            body = await self.client.execute(field_document(name, operation, candidate))
            await throttle.tick()
            if body is None:
                continue

            message = first_error_message(body)
            if message is None:
                report.subfields.append(candidate)
                report.scalar_fields.append(candidate)
                continue

            # Complex or argument-bearing subfields still exist
            if not is_rejection(message):
                report.subfields.append(candidate)
            for suggested in extract_suggestions(message, candidate):
                if suggested not in report.subfields and suggested not in report.suggestions:
                    report.suggestions.append(suggested)

        if report.scalar_fields:
            document = field_document(name, operation, " ".join(report.scalar_fields[:EXAMPLE_FIELD_LIMIT]))
            report.example_query = document
            body = await self.client.execute(document)
            report.example_works = (
                body is not None and first_error_message(body) is None and body.get("data") is not None
            )

        logger.info(
            "subfields_probed",
            field=name,
            operation=str(operation),
            typename=report.typename,
            subfields=len(report.subfields),
            scalars=len(report.scalar_fields),
            example_works=report.example_works,
        )
        return report

    async def _resolve_typename(self, name: str, operation: Operation) -> str | None:
        body = await self.client.execute(field_document(name, operation, "__typename"))
        if body is None:
            return None

        data = body.get("data")
        value = data.get(name) if isinstance(data, dict) else None
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict) and value.get("__typename"):
            return str(value["__typename"])

        message = first_error_message(body)
        return extract_type_name(message) if message else None

    async def test_introspection(self, try_alternatives: bool = True) -> IntrospectionReport:
        """
        Run the introspection test sequence.

        1. Full __schema introspection; success ends the sequence.
        2. Type names only.
        3. __type(name: "Query") field listing.
        4. Suggestion leaks from an invalid field and __typename.
        5. Brute force of a short common field list.

        Args:
            try_alternatives: Continue with steps 2-5 when step 1 fails

        Returns:
            IntrospectionReport
        """
        report = IntrospectionReport(endpoint=self.endpoint)

        body = await self.client.execute(FULL_INTROSPECTION_QUERY)
        schema = _schema_of(body)
        if schema is not None:
            report.introspection_enabled = True
            report.discovered_types = _type_names(schema)
            logger.warning(
                "introspection_enabled",
                endpoint=self.endpoint,
                types=len(report.discovered_types),
                recommendation="Disable introspection in production",
            )
            return report

        if body is None:
            report.errors.append("Full introspection request failed")
        else:
            message = first_error_message(body)
            if message:
                report.errors.append(message)
            logger.info("introspection_blocked", endpoint=self.endpoint, message=truncate_string(message or ""))

        if not try_alternatives:
            return report

        schema = _schema_of(await self.client.execute(TYPE_NAMES_QUERY))
        if schema is not None:
            report.partial_introspection = True
            report.discovered_types = _type_names(schema)
            logger.warning("partial_introspection", step="type_names", types=len(report.discovered_types))

        body = await self.client.execute(QUERY_TYPE_QUERY)
        data = body.get("data") if body else None
        type_info = data.get("__type") if isinstance(data, dict) else None
        if isinstance(type_info, dict):
            report.partial_introspection = True
            report.add_fields(
                [f["name"] for f in type_info.get("fields") or [] if isinstance(f, dict) and f.get("name")]
            )
            logger.warning("partial_introspection", step="query_type", fields=len(report.discovered_fields))

        for document, probed in ((SUGGESTION_PROBE_QUERY, "invalidFieldTest123"), (TYPENAME_QUERY, None)):
            body = await self.client.execute(document)
            if body is None:
                continue
            message = first_error_message(body)
            if message and has_suggestions(message):
                report.field_suggestions = True
                report.add_fields(extract_leaked_names(message, probed))
                logger.warning("field_suggestions_enabled", message=truncate_string(message))
            data = body.get("data")
            if isinstance(data, dict) and data.get("__typename"):
                report.typename = str(data["__typename"])

        valid: list[str] = []
        for name in INTROSPECTION_PROBE_FIELDS:
            body = await self.client.execute(field_document(name))
            if body is None:
                continue
            message = first_error_message(body)
            if message is not None:
                if not is_rejection(message):
                    valid.append(name)
            elif body.get("data") is not None:
                valid.append(name)
        report.add_fields(valid)

        logger.info(
            "introspection_test_complete",
            endpoint=self.endpoint,
            partial=report.partial_introspection,
            suggestions=report.field_suggestions,
            types=len(report.discovered_types),
            fields=len(report.discovered_fields),
        )
        return report


def _schema_of(body: dict[str, Any] | None) -> dict[str, Any] | None:
    if body is None:
        return None
    data = body.get("data")
    schema = data.get("__schema") if isinstance(data, dict) else None
    return schema if isinstance(schema, dict) else None


def _type_names(schema: dict[str, Any]) -> list[str]:
    return [t["name"] for t in schema.get("types") or [] if isinstance(t, dict) and t.get("name")]
