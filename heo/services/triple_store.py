"""SPARQL-over-HTTP client for the knowledge-graph store (Oxigraph)."""

import logging
from typing import Any

import httpx

from heo.core.errors import UpstreamServiceError
from heo.core.logging import get_logger

SERVICE_NAME = "triple_store"


class TripleStoreClient:
    """Read-only SPARQL client.

    Sends SELECT queries to `<endpoint>/query` and returns the parsed
    `application/sparql-results+json` document.
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout: float = 30.0,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.query_endpoint = f"{endpoint_url.rstrip('/')}/query"
        self.timeout = timeout
        self.logger = logger or get_logger(__name__)
        self._transport = transport

    async def select(self, sparql_query: str) -> dict[str, Any]:
        """
        Execute a SPARQL SELECT query.

        Args:
            sparql_query: Query text

        Returns:
            Result document with `head.vars` and `results.bindings`

        Raises:
            UpstreamServiceError: If the request fails or the body is not a
                SPARQL JSON result set
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.query_endpoint,
                    headers={
                        "Content-Type": "application/sparql-query",
                        "Accept": "application/sparql-results+json",
                    },
                    content=sparql_query.encode("utf-8"),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            self.logger.error(f"SPARQL query failed with status {e.response.status_code}")
            raise UpstreamServiceError(
                SERVICE_NAME, "SPARQL query failed", status_code=e.response.status_code
            ) from e
        except httpx.TimeoutException as e:
            self.logger.error(f"SPARQL query timed out after {self.timeout}s")
            raise UpstreamServiceError(SERVICE_NAME, "SPARQL query timed out") from e
        except httpx.HTTPError as e:
            self.logger.error(f"SPARQL query transport error: {e}")
            raise UpstreamServiceError(SERVICE_NAME, f"SPARQL request error: {e}") from e
        except ValueError as e:
            raise UpstreamServiceError(SERVICE_NAME, "SPARQL response is not JSON") from e

        if not isinstance(data, dict) or not isinstance(data.get("results"), dict):
            raise UpstreamServiceError(SERVICE_NAME, "SPARQL response has no result set")

        self.logger.info(
            "SPARQL query executed",
            extra={
                "query_length": len(sparql_query),
                "bindings": len(data["results"].get("bindings") or []),
            },
        )
        return data


def binding_value(binding: dict[str, Any], variable: str) -> str | None:
    """Return the `value` of one variable in a result binding, if bound."""
    term = binding.get(variable)
    if not isinstance(term, dict):
        return None
    value = term.get("value")
    return value if isinstance(value, str) else None
