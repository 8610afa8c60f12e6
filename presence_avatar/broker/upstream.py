"""
Upstream avatar-provider token exchange.

Trades a persona configuration for a short-lived streaming token using the
server-held API key. The key is only ever sent upstream.
"""

import logging
from typing import Any, Optional

import httpx

from .errors import InvalidPersonaConfigError, UpstreamError

logger = logging.getLogger("avatar.broker.upstream")


class StreamTokenClient:
    """
    Client for the avatar provider's session-token endpoint.

    The underlying httpx client is created lazily and reused across
    requests; call close() on shutdown.
    """

    def __init__(
        self,
        api_key: str,
        upstream_url: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the token client.

        Args:
            api_key: Provider API key (bearer credential)
            upstream_url: Session-token endpoint URL
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject a mock transport)
        """
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._upstream_url = upstream_url
        self._timeout = timeout
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_keepalive_connections=5),
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def exchange(self, persona_config: Optional[dict[str, Any]]) -> str:
        """
        Exchange a persona configuration for a stream token.

        Args:
            persona_config: Persona settings forwarded verbatim upstream

        Returns:
            The upstream `sessionToken`

        Raises:
            InvalidPersonaConfigError: persona_config missing or empty
            UpstreamError: non-success upstream response or network failure
        """
        if not persona_config:
            raise InvalidPersonaConfigError()

        client = await self._ensure_client()
        try:
            response = await client.post(
                self._upstream_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                json={"personaConfig": persona_config},
            )
        except httpx.HTTPError as e:
            logger.error("Upstream token request failed: %s", e)
            raise UpstreamError(502, str(e)) from e

        if not response.is_success:
            logger.error("Upstream token endpoint returned %d", response.status_code)
            raise UpstreamError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, response.text, "Malformed upstream response") from e
        if not isinstance(data, dict):
            raise UpstreamError(response.status_code, response.text, "Malformed upstream response")

        token = data.get("sessionToken")
        if not token or not isinstance(token, str):
            raise UpstreamError(response.status_code, response.text, "No session token in upstream response")

        logger.info("Issued stream token")
        return token
