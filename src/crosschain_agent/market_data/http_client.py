"""aiohttp JSON client with retry and exponential backoff."""
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

logger = logging.getLogger(__name__)


def is_retryable_status(status: int) -> bool:
    return status == 429 or status >= 500


class HttpJsonClient:
    """
    GETs JSON from one base URL over a lazily opened session.

    Rate limits, server errors, timeouts and connection errors are retried up to
    ``max_retries`` times, doubling ``retry_delay`` each time. Any other failure
    returns None so a single bad source never aborts a scan.
    """

    def __init__(self, base_url: str, timeout_seconds: float, max_retries: int, retry_delay: float):
        self.base_url = base_url.rstrip("/")
        self.timeout = ClientTimeout(total=timeout_seconds)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def _backoff(self, attempt: int, url: str, reason: str) -> bool:
        """Sleep before the next attempt; False once retries are used up."""
        if attempt >= self.max_retries:
            logger.error(f"{reason} from {url}, giving up after {attempt + 1} attempts")
            return False
        delay = self.retry_delay * (2 ** attempt)
        logger.warning(f"{reason} from {url}, retry {attempt + 1}/{self.max_retries} in {delay:.1f}s")
        await asyncio.sleep(delay)
        return True

    async def get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Optional[Any]:
        if not self.session:
            await self.initialize()

        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            try:
                async with self.session.get(url, params=params) as response:
                    if response.status == 200:
                        return await response.json()
                    if not is_retryable_status(response.status):
                        logger.error(f"Unexpected HTTP {response.status} from {url}")
                        return None
                    reason = f"HTTP {response.status}"
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                reason = f"Request error {e!r}"

            if not await self._backoff(attempt, url, reason):
                return None
            attempt += 1
