"""Content-addressable storage via the IPFS HTTP API.

Anchors serialized provenance graphs and returns their CID. Outside
production an unreachable node does not stop the pipeline: `store()` returns
a placeholder id derived from the content instead.
"""

import hashlib
import logging

import httpx

from heo.core.errors import UpstreamServiceError
from heo.core.logging import get_logger

SERVICE_NAME = "content_store"
PLACEHOLDER_PREFIX = "placeholder-"


def placeholder_cid(data: bytes) -> str:
    """Deterministic, clearly-marked stand-in for a real CID."""
    return f"{PLACEHOLDER_PREFIX}{hashlib.sha256(data).hexdigest()[:32]}"


def is_placeholder_cid(cid: str) -> bool:
    return cid.startswith(PLACEHOLDER_PREFIX)


class ContentStore:
    """Minimal IPFS client: add, cat and gateway URLs."""

    def __init__(
        self,
        api_url: str,
        gateway_url: str,
        is_production: bool = False,
        timeout: float = 30.0,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.gateway_base = gateway_url if gateway_url.endswith("/") else f"{gateway_url}/"
        self.is_production = is_production
        self.timeout = timeout
        self.logger = logger or get_logger(__name__)
        self._transport = transport

    def gateway_url(self, cid: str) -> str:
        """Resolvable HTTP URL for a CID."""
        return f"{self.gateway_base}{cid}"

    async def store(self, data: str | bytes) -> str:
        """
        Store content and return its content identifier.

        Args:
            data: Content to store (str is UTF-8 encoded)

        Returns:
            CID string, or a placeholder id outside production when the node
            is unavailable

        Raises:
            UpstreamServiceError: In production, if the node is unavailable or
                returns no hash
        """
        content = data.encode("utf-8") if isinstance(data, str) else data

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_url}/add",
                    params={"pin": "true"},
                    files={"file": ("provenance.ttl", content)},
                )
                response.raise_for_status()
                payload = response.json()
            cid = payload.get("Hash") if isinstance(payload, dict) else None
            if not cid:
                raise UpstreamServiceError(SERVICE_NAME, "IPFS add returned no hash")
        except (httpx.HTTPError, ValueError, UpstreamServiceError) as e:
            if not self.is_production:
                cid = placeholder_cid(content)
                self.logger.warning(
                    f"IPFS unavailable, returning placeholder CID: {e}",
                    extra={"cid": cid},
                )
                return cid

            self.logger.error(f"Failed to store content to IPFS: {e}")
            if isinstance(e, UpstreamServiceError):
                raise
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            raise UpstreamServiceError(
                SERVICE_NAME, f"Failed to store content: {e}", status_code=status_code
            ) from e

        self.logger.info("Stored content to IPFS", extra={"cid": cid, "size": len(content)})
        return cid

    async def retrieve(self, cid: str) -> bytes:
        """
        Fetch content by CID.

        Raises:
            UpstreamServiceError: If the CID is a placeholder or the node fails
        """
        if is_placeholder_cid(cid):
            raise UpstreamServiceError(SERVICE_NAME, f"{cid} is a placeholder and was never stored")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.api_url}/cat", params={"arg": cid})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.logger.error(f"Failed to retrieve {cid}: status {e.response.status_code}")
            raise UpstreamServiceError(
                SERVICE_NAME, f"Failed to retrieve {cid}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            self.logger.error(f"Failed to retrieve {cid}: {e}")
            raise UpstreamServiceError(SERVICE_NAME, f"Failed to retrieve {cid}: {e}") from e

        self.logger.info("Retrieved content from IPFS", extra={"cid": cid, "size": len(response.content)})
        return response.content
