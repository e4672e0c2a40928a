"""
ScanFlow — OAuth Token Provider

OAuth2 Client Credentials flow for the eBay APIs. The provider owns its
cached token and expiry; the clock is injected so expiry can be tested
without sleeping.

Usage:
    async with httpx.AsyncClient() as http:
        provider = OAuthTokenProvider(http)
        token = await provider.get_token()
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import structlog

from src.config import settings

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OAuthTokenProvider:
    """Get-or-refresh access token cache for one set of client credentials."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: str | None = None,
        client_secret: str | None = None,
        token_url: str | None = None,
        scope: str | None = None,
        refresh_margin_seconds: int | None = None,
        clock: Clock = utc_now,
    ):
        self._client = client
        self._client_id = client_id if client_id is not None else settings.EBAY_CLIENT_ID
        self._client_secret = (
            client_secret if client_secret is not None else settings.EBAY_CLIENT_SECRET
        )
        self._token_url = token_url or settings.EBAY_OAUTH_URL
        self._scope = scope or settings.EBAY_OAUTH_SCOPE
        margin = (
            refresh_margin_seconds
            if refresh_margin_seconds is not None
            else settings.TOKEN_REFRESH_MARGIN_SECONDS
        )
        self._refresh_margin = timedelta(seconds=margin)
        self._clock = clock
        self._token: str | None = None
        self._expires_at: datetime | None = None

    def invalidate(self) -> None:
        """Drop the cached token, e.g. after a 401."""
        self._token = None
        self._expires_at = None

    def _is_fresh(self) -> bool:
        if not self._token or self._expires_at is None:
            return False
        return self._clock() < self._expires_at - self._refresh_margin

    async def get_token(self) -> str:
        """
        Return a valid access token, refreshing it when close to expiry.

        Raises:
            ValueError: If client credentials are not configured or the token
                response carries no access_token.
            httpx.HTTPStatusError: If the token endpoint rejects the request.
        """
        if self._is_fresh():
            return str(self._token)

        if not self._client_id or not self._client_secret:
            raise ValueError("OAuth client credentials not configured (EBAY_CLIENT_ID, EBAY_CLIENT_SECRET)")

        credentials = f"{self._client_id}:{self._client_secret}"
        encoded = base64.b64encode(credentials.encode()).decode()

        try:
            response = await self._client.post(
                self._token_url,
                headers={
                    "Authorization": f"Basic {encoded}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={"grant_type": "client_credentials", "scope": self._scope},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("oauth_token_fetch_failed", error=str(e), source="auth")
            raise

        data = response.json()
        token = data.get("access_token")
        if not token:
            logger.error("oauth_token_missing", keys=sorted(data), source="auth")
            raise ValueError("OAuth token response has no access_token")

        expires_in = int(data.get("expires_in", 7200))
        self._token = token
        self._expires_at = self._clock() + timedelta(seconds=expires_in)

        logger.info("oauth_token_refreshed", expires_in=expires_in, source="auth")
        return str(self._token)
