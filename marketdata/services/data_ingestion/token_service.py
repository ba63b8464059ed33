"""
Groww Token Service

Exchanges the configured API key + secret for a bearer token and caches it
until expiry. Refreshes are single-flight: concurrent callers that find the
cache stale wait on one exchange instead of each starting their own.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import aiohttp

from marketdata.core.config import settings
from marketdata.schemas.market import GrowwTokenResponse
from marketdata.services.base import TokenExchangeError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 86400  # 24h


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GrowwTokenService:
    """Caches one Groww access token per configured key+secret."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api_key = settings.groww_api_key if api_key is None else api_key
        self.api_secret = settings.groww_api_secret if api_secret is None else api_secret
        self.token_url = token_url or settings.groww_token_url
        self._session = session
        self._owns_session = session is None
        self._clock = clock

        self._cached_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def is_key_secret_configured(self) -> bool:
        """Whether key+secret are set (so the exchange should be used)."""
        return bool(self.api_key and self.api_key.strip() and self.api_secret and self.api_secret.strip())

    def _cached(self) -> Optional[str]:
        if self._cached_token and self._expires_at and self._clock() < self._expires_at:
            return self._cached_token
        return None

    async def get_access_token(self) -> Optional[str]:
        """
        Return a valid bearer token.

        Returns None when key+secret are not configured; the caller then
        falls back to the token stored on the data source.

        Raises:
            TokenExchangeError: If the exchange fails
        """
        if not self.is_key_secret_configured():
            return None

        token = self._cached()
        if token:
            return token

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self._cached()
            if token:
                return token
            return await self._fetch_new_token()

    def invalidate(self) -> None:
        self._cached_token = None
        self._expires_at = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _fetch_new_token(self) -> str:
        logger.info("Fetching new Groww API access token using key+secret")
        session = await self._ensure_session()
        data = {"api_key": self.api_key, "api_secret": self.api_secret}

        try:
            async with session.post(
                self.token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=aiohttp.ClientTimeout(total=settings.provider_default_timeout_seconds),
            ) as resp:
                body = await resp.text()
                if resp.status >= 400:
                    logger.error(f"Failed to get Groww access token: {resp.status} - {body}")
                    raise TokenExchangeError(
                        f"Groww token exchange failed: {resp.status}",
                        status=resp.status,
                        body=body,
                        service_name="GrowwTokenService",
                    )
                result = GrowwTokenResponse.model_validate_json(body)
        except TokenExchangeError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to get Groww access token: {e}")
            raise TokenExchangeError(
                f"Groww token exchange failed: {e}", service_name="GrowwTokenService"
            ) from e

        if result.error:
            logger.error(f"Failed to get Groww access token: {result.error}")
            raise TokenExchangeError(
                f"Groww token error: {result.error} - {result.error_description}",
                body=body,
                service_name="GrowwTokenService",
            )
        if not result.access_token or not result.access_token.strip():
            raise TokenExchangeError(
                "Groww token response did not contain access_token",
                body=body,
                service_name="GrowwTokenService",
            )

        expires_in = result.expires_in if result.expires_in is not None else DEFAULT_EXPIRES_IN
        self._cached_token = result.access_token
        self._expires_at = self._clock() + timedelta(seconds=expires_in)
        logger.info(f"Groww access token obtained, expires in {expires_in} seconds")
        return self._cached_token
