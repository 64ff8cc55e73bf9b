"""
reconkit - Traffic interception and GraphQL schema probing for web pentesting.

Captures HTTP, WebSocket and EventSource traffic issued through a
session, and discovers GraphQL schemas by introspection or, when that is
disabled, by heuristic field enumeration. Helpers cover JWT tampering,
CSRF form replay and sensitive data scanning.
"""

__version__ = "1.0.0"
__author__ = "Olib AI"

from reconkit.graphql import GraphQLClient, SchemaProber, classify_response
from reconkit.interceptor import InterceptorSession
from reconkit.models import (
    EnumerationResult,
    IntrospectionReport,
    Operation,
    ProbeConfig,
    ProbeOutcome,
    SubfieldReport,
)
from reconkit.throttle import BatchThrottle
from reconkit.tokens import JWTLab, decode_jwt, find_jwt_tokens

__all__ = [
    "__version__",
    "BatchThrottle",
    "EnumerationResult",
    "GraphQLClient",
    "InterceptorSession",
    "IntrospectionReport",
    "JWTLab",
    "Operation",
    "ProbeConfig",
    "ProbeOutcome",
    "SchemaProber",
    "SubfieldReport",
    "classify_response",
    "decode_jwt",
    "find_jwt_tokens",
]
