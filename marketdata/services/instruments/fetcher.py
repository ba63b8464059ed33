"""
Instrument Fetcher

HTTP retrieval of the instruments reference CSV.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from marketdata.core.config import settings

logger = logging.getLogger(__name__)


class InstrumentFetcher:
    """Downloads the instruments CSV. Failures are logged and return None."""

    def __init__(
        self,
        url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = 120,
    ):
        self.url = url or settings.instruments_url
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def fetch(self) -> Optional[str]:
        """Return the CSV body, or None if the fetch fails."""
        try:
            session = await self._ensure_session()
            async with session.get(self.url, timeout=self._timeout) as resp:
                if resp.status != 200:
                    logger.error(f"Failed to fetch instruments from {self.url}: HTTP {resp.status}")
                    return None
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to fetch instruments from {self.url}: {e}")
            return None
