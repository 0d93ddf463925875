"""Helius client: holder balances (DAS getTokenAccounts) and mint supply.

Implements both LedgerBalanceSource and SupplySource. This is the required
path of an audit: anything short of a complete answer raises FetchError.
"""

import asyncio
from collections import defaultdict
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from holder_audit.analytics.errors import FetchError, InvalidInputError
from holder_audit.analytics.types import HolderBalance, TokenSupply
from holder_audit.sources.helius.models import HeliusTokenAccountsPage, HeliusTokenSupply
from holder_audit.sources.rate_limiter import RateLimiter

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]
PAGE_PAUSE_SEC = 0.1


class HeliusClient:
    """Async JSON-RPC client for the Helius mainnet endpoint."""

    def __init__(
        self,
        api_key: str,
        rpc_url: str = "",
        *,
        rate_limiter: RateLimiter | None = None,
        max_rps: float = 10.0,
        page_limit: int = 1000,
        max_pages: int = 100,
    ) -> None:
        self._rpc_url = rpc_url or f"https://mainnet.helius-rpc.com/?api-key={api_key}"
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)
        self._page_limit = page_limit
        self._max_pages = max_pages
        self._client = httpx.AsyncClient(timeout=30.0)
        self._decimals: dict[str, int] = {}

    async def close(self) -> None:
        await self._client.aclose()

    async def _rpc(self, method: str, params: Any) -> Any:
        """POST one JSON-RPC call, retrying 429/timeouts. Raises FetchError."""
        payload = {"jsonrpc": "2.0", "id": method, "method": method, "params": params}

        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.post(self._rpc_url, json=payload)

                if resp.status_code == 429 or resp.status_code >= 500:
                    if attempt < MAX_RETRIES:
                        delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                        logger.debug(f"[HELIUS] {method} HTTP {resp.status_code}, retry in {delay}s")
                        await asyncio.sleep(delay)
                        continue
                    raise FetchError("helius", f"{method} HTTP {resp.status_code}")
                if resp.status_code != 200:
                    raise FetchError("helius", f"{method} HTTP {resp.status_code}")

                data = resp.json()
                if "error" in data:
                    message = (data["error"] or {}).get("message", "RPC error")
                    raise FetchError("helius", f"{method}: {message}")
                return data.get("result")

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                else:
                    logger.warning(f"[HELIUS] {method} failed after {MAX_RETRIES + 1} attempts: {e}")
                    raise FetchError("helius", f"{method}: {type(e).__name__}") from e

        raise FetchError("helius", f"{method}: retries exhausted")

    async def fetch_supply(self, token_address: str) -> TokenSupply:
        try:
            result = await self._rpc(
                "getTokenSupply", [token_address, {"commitment": "confirmed"}]
            )
        except FetchError as e:
            if "WrongSize" in str(e) or "Invalid param" in str(e):
                raise InvalidInputError(
                    f"Invalid token address: {token_address}. Token may not exist or be malformed."
                ) from e
            raise

        if not result or not result.get("value"):
            raise FetchError("helius", f"getTokenSupply: empty response for {token_address}")
        try:
            supply = HeliusTokenSupply.model_validate(result["value"])
        except ValidationError as e:
            raise FetchError("helius", f"getTokenSupply: malformed value: {e}") from e
        self._decimals[token_address] = supply.decimals
        return TokenSupply(raw_amount=supply.amount, decimals=supply.decimals)

    async def get_token_accounts_page(self, token_address: str, page: int) -> HeliusTokenAccountsPage:
        result = await self._rpc(
            "getTokenAccounts",
            {
                "mint": token_address,
                "page": page,
                "limit": self._page_limit,
                "displayOptions": {},
            },
        )
        try:
            return HeliusTokenAccountsPage.model_validate(result or {})
        except ValidationError as e:
            raise FetchError("helius", f"getTokenAccounts: malformed page {page}: {e}") from e

    async def fetch_all_holders(self, token_address: str) -> list[HolderBalance]:
        """All non-zero holders, token accounts summed per owner.

        Mint decimals come from a prior fetch_supply call, fetched here otherwise.
        """
        if token_address not in self._decimals:
            await self.fetch_supply(token_address)
        decimals = self._decimals[token_address]

        by_owner: dict[str, int] = defaultdict(int)
        accounts = 0
        page = 1

        while page <= self._max_pages:
            result = await self.get_token_accounts_page(token_address, page)
            if not result.token_accounts:
                break
            for account in result.token_accounts:
                if account.amount <= 0:
                    continue
                by_owner[account.owner] += account.amount
            accounts += len(result.token_accounts)
            page += 1
            await asyncio.sleep(PAGE_PAUSE_SEC)
        else:
            logger.warning(
                f"[HELIUS] Reached {self._max_pages}-page safety limit for {token_address}"
            )

        logger.debug(
            f"[HELIUS] {token_address}: {accounts} token accounts, {len(by_owner)} owners"
        )
        return [
            HolderBalance(owner=owner, raw_amount=amount, decimals=decimals)
            for owner, amount in by_owner.items()
        ]
