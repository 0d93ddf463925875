"""USD price resolution: Jupiter, then Birdeye when keyed, then DexScreener."""

from collections.abc import Sequence
from decimal import Decimal

from loguru import logger

from holder_audit.interfaces import PriceOracle


class FallbackPriceOracle:
    """Asks each source in order; the first positive price wins.

    Sources return None for "no quote"; a source that raises anyway is
    logged and skipped so one broken provider never blocks the chain.
    """

    def __init__(self, sources: Sequence[tuple[str, PriceOracle]]) -> None:
        self._sources = list(sources)

    @property
    def source_names(self) -> list[str]:
        return [name for name, _ in self._sources]

    async def fetch_usd_price(self, token_address: str) -> Decimal | None:
        for name, source in self._sources:
            try:
                price = await source.fetch_usd_price(token_address)
            except Exception as e:
                logger.warning(f"[PRICE] {name} raised for {token_address}: {e}")
                continue
            if price is not None and price > 0:
                logger.debug(f"[PRICE] {token_address} = ${price} via {name}")
                return price

        logger.info(f"[PRICE] No price for {token_address} from {', '.join(self.source_names)}")
        return None
