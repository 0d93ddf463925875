"""Birdeye Data Services client: second source in the USD price chain.

Only consulted when an API key is configured.
"""

import asyncio
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from holder_audit.analytics.errors import FetchError
from holder_audit.sources.birdeye.models import BirdeyePrice
from holder_audit.sources.rate_limiter import RateLimiter

BASE_URL = "https://public-api.birdeye.so"
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class BirdeyeClient:
    """Async client for Birdeye Data Services API (Lite plan: 15 RPS)."""

    def __init__(
        self,
        api_key: str,
        rate_limiter: RateLimiter | None = None,
        max_rps: float = 15.0,
    ) -> None:
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=15.0,
            headers={
                "X-API-KEY": api_key,
                "Accept": "application/json",
                "x-chain": "solana",
            },
        )

    async def _request(self, path: str, **kwargs: Any) -> dict[str, Any]:
        """Rate-limited GET with retry for transient errors. Raises FetchError."""
        for attempt in range(MAX_RETRIES + 1):
            await self._rate_limiter.acquire()
            try:
                resp = await self._client.get(path, **kwargs)

                if resp.status_code == 429 or resp.status_code >= 500:
                    if attempt < MAX_RETRIES:
                        delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                        logger.debug(f"[BIRDEYE] HTTP {resp.status_code}, retry {attempt + 1} in {delay}s: {path}")
                        await asyncio.sleep(delay)
                        continue
                    raise FetchError("birdeye", f"HTTP {resp.status_code}: {path}")

                if resp.status_code == 401:
                    raise FetchError("birdeye", "Invalid API key (401)")

                resp.raise_for_status()
                data = resp.json()
                if not data.get("success", True):
                    raise FetchError("birdeye", f"API error: {data.get('message', 'unknown')}")
                return data.get("data") or {}

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[BIRDEYE] {type(e).__name__}, retry {attempt + 1} in {delay}s: {path}")
                    await asyncio.sleep(delay)
                    continue
                raise FetchError("birdeye", f"{path}: {type(e).__name__}") from e
            except httpx.HTTPStatusError as e:
                raise FetchError("birdeye", f"HTTP {e.response.status_code}: {path}") from e

        raise FetchError("birdeye", f"Request failed after retries: {path}")

    async def get_price(self, address: str) -> BirdeyePrice:
        """Current token price. 10 CU."""
        data = await self._request("/defi/price", params={"address": address})
        return BirdeyePrice.model_validate(data)

    async def fetch_usd_price(self, token_address: str) -> Decimal | None:
        try:
            quote = await self.get_price(token_address)
        except FetchError as e:
            logger.debug(f"[BIRDEYE] Price lookup failed for {token_address}: {e}")
            return None
        if quote.value is None or quote.value <= 0:
            return None
        return quote.value

    async def close(self) -> None:
        await self._client.aclose()
