"""Jupiter Price API client: first source in the USD price chain."""

import asyncio
from decimal import Decimal, InvalidOperation

import httpx
from loguru import logger

from holder_audit.sources.jupiter.models import JupiterPrice
from holder_audit.sources.rate_limiter import RateLimiter

BASE_URL = "https://api.jup.ag/price/v2"
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class JupiterClient:
    """Async HTTP client for Jupiter price lookups (free tier: 1 RPS)."""

    def __init__(self, api_key: str = "", max_rps: float = 1.0, base_url: str = BASE_URL) -> None:
        self._base_url = base_url
        self._rate_limiter = RateLimiter(max_rps)
        headers: dict[str, str] = {}
        if api_key:
            headers["x-api-key"] = api_key
        self._client = httpx.AsyncClient(timeout=10.0, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_price(self, mint: str) -> JupiterPrice | None:
        """Price for one token, None when Jupiter has no quote or is unreachable."""
        params = {"ids": mint}

        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(self._base_url, params=params)

                if resp.status_code == 429:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[JUPITER] Rate limited, waiting {delay}s")
                    await asyncio.sleep(delay)
                    continue
                if resp.status_code != 200:
                    logger.debug(f"[JUPITER] HTTP {resp.status_code} for {mint}")
                    return None

                return _parse_price(resp.json(), mint)

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[JUPITER] {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    logger.warning(f"[JUPITER] Failed after {MAX_RETRIES + 1} attempts: {e}")
                    return None

        return None

    async def fetch_usd_price(self, token_address: str) -> Decimal | None:
        quote = await self.get_price(token_address)
        if quote is None or quote.price is None or quote.price <= 0:
            return None
        return quote.price


def _parse_price(data: dict, mint: str) -> JupiterPrice | None:
    token_data = (data.get("data") or {}).get(mint)
    if not token_data:
        return None

    price_str = token_data.get("price")
    if price_str is None:
        return None
    try:
        price = Decimal(str(price_str))
    except InvalidOperation:
        logger.debug(f"[JUPITER] Unparseable price {price_str!r} for {mint}")
        return None

    return JupiterPrice(id=mint, mint_symbol=token_data.get("mintSymbol", ""), price=price)
