"""OAuth client-credentials token provider.

Holds the only state shared across requests: one bearer token and its
expiry.  The token is refreshed ``expiry_margin_s`` seconds before it
actually expires, and an ``asyncio.Lock`` makes sure concurrent requests
that all find it stale trigger a single exchange.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

import httpx

from sentinel_scene.providers.base import ProviderAuthError, UpstreamServiceError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("sentinel_scene.providers.token")

# Used when the token endpoint omits ``expires_in``.
_DEFAULT_EXPIRES_IN_S = 3600.0


class TokenProvider:
    """Caches a bearer token obtained with the client-credentials grant.

    Args:
        client: Shared async HTTP client.
        token_url: Token endpoint.
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        expiry_margin_s: Refresh this many seconds before expiry.
        provider: Service name used in errors.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        expiry_margin_s: float = 60.0,
        provider: str = "sentinel_hub",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._margin = expiry_margin_s
        self._provider = provider
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: str | None = None
        self._expires_at = 0.0

    @property
    def is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at - self._margin

    async def get_token(self) -> str:
        """Return a valid bearer token, exchanging credentials if needed.

        Raises:
            ProviderAuthError: If no credentials are configured.
            UpstreamServiceError: If the exchange fails.
        """
        if self.is_valid:
            return self._token  # type: ignore[return-value]

        async with self._lock:
            # Another coroutine may have refreshed while we waited.
            if self.is_valid:
                return self._token  # type: ignore[return-value]
            await self._refresh()
            return self._token  # type: ignore[return-value]

    def invalidate(self) -> None:
        """Drop the cached token so the next call exchanges again."""
        self._token = None
        self._expires_at = 0.0

    async def _refresh(self) -> None:
        if not self._client_id or not self._client_secret:
            msg = "SH_CLIENT_ID and SH_CLIENT_SECRET must be configured"
            raise ProviderAuthError(self._provider, msg)

        try:
            response = await self._client.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.HTTPError as exc:
            raise UpstreamServiceError(
                self._provider,
                "token",
                upstream_message=str(exc),
            ) from exc

        if response.status_code != httpx.codes.OK:
            raise UpstreamServiceError(
                self._provider,
                "token",
                status_code=response.status_code,
                upstream_message=response.text,
            )

        try:
            body = response.json()
            token = body.get("access_token")
            expires_in = float(body.get("expires_in", _DEFAULT_EXPIRES_IN_S))
        except (ValueError, TypeError, AttributeError) as exc:
            raise UpstreamServiceError(
                self._provider,
                "token",
                status_code=response.status_code,
                upstream_message=f"malformed token response: {response.text[:200]}",
            ) from exc
        if not token:
            raise UpstreamServiceError(
                self._provider,
                "token",
                status_code=response.status_code,
                upstream_message="response has no access_token",
            )

        self._token = token
        self._expires_at = self._clock() + expires_in
        logger.info("Access token refreshed | expires_in=%.0fs", expires_in)
