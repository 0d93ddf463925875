"""DexScreener client: pair data for price fallback, liquidity, metadata and LP detection.

Everything here is best-effort enrichment: public helpers log and return
None / empty on failure instead of raising.
"""

import asyncio
from decimal import Decimal, InvalidOperation

import httpx
from loguru import logger
from pydantic import ValidationError

from holder_audit.analytics.errors import FetchError
from holder_audit.sources.dexscreener.models import DexScreenerPair, TokenMetadata
from holder_audit.sources.rate_limiter import RateLimiter

BASE_URL = "https://api.dexscreener.com"
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]


def best_price(pairs: list[DexScreenerPair]) -> Decimal | None:
    """priceUsd of the first pair that carries one."""
    for pair in pairs:
        if not pair.priceUsd:
            continue
        try:
            price = Decimal(pair.priceUsd)
        except InvalidOperation:
            continue
        if price > 0:
            return price
    return None


def best_liquidity(pairs: list[DexScreenerPair]) -> Decimal | None:
    """USD liquidity of the deepest pair, None when no pair has any."""
    if not pairs:
        return None
    deepest = max(pairs, key=lambda p: p.liquidity_usd)
    return deepest.liquidity_usd if deepest.liquidity_usd > 0 else None


def token_metadata(pairs: list[DexScreenerPair], mint: str) -> TokenMetadata:
    """Name/symbol of `mint`, preferring its deepest pair."""
    matching = [
        p for p in pairs
        if (p.baseToken and p.baseToken.address == mint)
        or (p.quoteToken and p.quoteToken.address == mint)
    ]
    candidates = matching or pairs
    if not candidates:
        return TokenMetadata()
    chosen = max(candidates, key=lambda p: p.liquidity_usd)
    token = chosen.baseToken
    if chosen.quoteToken and chosen.quoteToken.address == mint:
        token = chosen.quoteToken
    if token is None:
        return TokenMetadata()
    return TokenMetadata(name=token.name or None, symbol=token.symbol or None)


def pair_addresses(pairs: list[DexScreenerPair]) -> list[str]:
    seen: dict[str, None] = {}
    for pair in pairs:
        if pair.pairAddress:
            seen[pair.pairAddress] = None
    return list(seen)


class DexScreenerClient:
    """Async REST client for DexScreener public API (no auth required)."""

    def __init__(self, rate_limiter: RateLimiter | None = None, max_rps: float = 4.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=10.0,
            headers={"Accept": "application/json"},
        )
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)

    async def _get(self, path: str) -> httpx.Response:
        """GET with retry on 429/timeout. Raises FetchError."""
        for attempt in range(MAX_RETRIES):
            await self._rate_limiter.acquire()
            try:
                response = await self._client.get(path)
                if response.status_code == 429:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    retry_after = response.headers.get("Retry-After")
                    if retry_after:
                        delay = max(float(retry_after), delay)
                    logger.debug(f"[DEXSCREENER] 429 rate limited, retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                response.raise_for_status()
                return response
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES - 1:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[DEXSCREENER] {type(e).__name__}, retrying in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    raise FetchError("dexscreener", f"{path}: {type(e).__name__}") from e
            except httpx.HTTPStatusError as e:
                raise FetchError("dexscreener", f"HTTP {e.response.status_code}: {path}") from e
        raise FetchError("dexscreener", f"{path}: rate limited")

    async def get_token_pairs(self, token_address: str) -> list[DexScreenerPair]:
        """All pairs trading the token. Raises FetchError."""
        response = await self._get(f"/latest/dex/tokens/{token_address}")
        data = response.json()
        pairs = data if isinstance(data, list) else (data or {}).get("pairs") or []
        try:
            return [DexScreenerPair.model_validate(p) for p in pairs]
        except ValidationError as e:
            raise FetchError("dexscreener", f"malformed pairs for {token_address}: {e}") from e

    async def _pairs_or_empty(self, token_address: str) -> list[DexScreenerPair]:
        try:
            return await self.get_token_pairs(token_address)
        except FetchError as e:
            logger.debug(f"[DEXSCREENER] {token_address}: {e}")
            return []

    async def fetch_usd_price(self, token_address: str) -> Decimal | None:
        return best_price(await self._pairs_or_empty(token_address))

    async def get_liquidity_usd(self, token_address: str) -> Decimal | None:
        return best_liquidity(await self._pairs_or_empty(token_address))

    async def get_token_metadata(self, token_address: str) -> TokenMetadata:
        return token_metadata(await self._pairs_or_empty(token_address), token_address)

    async def get_pair_addresses(self, token_address: str) -> list[str]:
        addresses = pair_addresses(await self._pairs_or_empty(token_address))
        logger.debug(f"[DEXSCREENER] {len(addresses)} LP pools for {token_address}")
        return addresses

    async def close(self) -> None:
        await self._client.aclose()
