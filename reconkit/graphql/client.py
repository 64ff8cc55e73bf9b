"""
Minimal GraphQL-over-HTTP client used by the prober.

Every call is a POST of {"query": ...} with a JSON content type. The
response body is parsed regardless of HTTP status, since servers report
validation errors with 400 responses.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx
import structlog

if TYPE_CHECKING:
    from reconkit.interceptor.session import InterceptorSession
    from reconkit.models import ProbeConfig

logger = structlog.get_logger(__name__)


class GraphQLClient:
    """
    Sends GraphQL documents to one endpoint.

    Transport errors and gateway responses (502/503/504) are retried up
    to `retries` times with a fixed pause. When retries are exhausted, or
    the body is not a JSON object, execute() returns None so callers can
    report the probe as inconclusive instead of classifying it.
    """

    RETRYABLE_STATUS = frozenset({502, 503, 504})

    def __init__(
        self,
        endpoint: str,
        client: httpx.AsyncClient,
        *,
        retries: int = 1,
        retry_delay: float = 0.5,
        owns_client: bool = False,
    ) -> None:
        self.endpoint = endpoint
        self.retries = retries
        self.retry_delay = retry_delay
        self._client = client
        self._owns_client = owns_client
        self.request_count = 0

    @classmethod
    def from_config(
        cls,
        config: "ProbeConfig",
        session: "InterceptorSession | None" = None,
    ) -> "GraphQLClient":
        """
        Build a client from probe configuration.

        Args:
            config: Probe configuration
            session: When given, probes are recorded in its request log

        Returns:
            GraphQLClient owning its httpx client
        """
        client_kwargs: dict[str, Any] = {
            "verify": config.verify_ssl,
            "timeout": config.timeout,
            "follow_redirects": True,
            "headers": config.request_headers(),
        }
        if session is not None:
            client = session.async_client(**client_kwargs)
        else:
            client = httpx.AsyncClient(**client_kwargs)

        return cls(
            config.endpoint,
            client,
            retries=config.retries,
            retry_delay=config.retry_delay,
            owns_client=True,
        )

    async def execute(self, query: str) -> dict[str, Any] | None:
        """
        POST a GraphQL document.

        Args:
            query: GraphQL document text

        Returns:
            Parsed response object, or None if no usable response arrived
        """
        attempts = self.retries + 1

        for attempt in range(1, attempts + 1):
            self.request_count += 1
            try:
                response = await self._client.post(
                    self.endpoint,
                    json={"query": query},
                    headers={"Content-Type": "application/json"},
                )
            except httpx.TransportError as e:
                logger.debug("graphql_transport_error", attempt=attempt, error=str(e))
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay)
                    continue
                return None

            if response.status_code in self.RETRYABLE_STATUS and attempt < attempts:
                logger.debug("graphql_gateway_retry", attempt=attempt, status=response.status_code)
                await asyncio.sleep(self.retry_delay)
                continue

            try:
                body = response.json()
            except ValueError:
                logger.debug("graphql_non_json_response", status=response.status_code)
                return None

            if not isinstance(body, dict):
                logger.debug("graphql_unexpected_body", body_type=type(body).__name__)
                return None
            return body

        return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GraphQLClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
