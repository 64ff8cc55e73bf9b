"""GraphQL schema probing: client, response classifier and prober."""

from reconkit.graphql.classifier import (
    classify_message,
    classify_response,
    extract_suggestions,
    extract_type_name,
    first_error_message,
)
from reconkit.graphql.client import GraphQLClient
from reconkit.graphql.prober import FieldProbe, SchemaProber, field_document

__all__ = [
    "FieldProbe",
    "GraphQLClient",
    "SchemaProber",
    "classify_message",
    "classify_response",
    "extract_suggestions",
    "extract_type_name",
    "field_document",
    "first_error_message",
]
