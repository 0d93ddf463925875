"""Holder labels: stored wallet labels merged with live LP pool detection.

Holders whose label type is excluded (exchanges, liquidity pools) are
dropped before any aggregate is computed.
"""

from collections.abc import Collection, Iterable, Mapping, Sequence

from loguru import logger

from holder_audit.analytics.types import HolderBalance, HolderLabel
from holder_audit.interfaces import LabelSource
from holder_audit.sources.dexscreener.client import DexScreenerClient

LP_LABEL_TYPE = "LiquidityPool"
DEFAULT_EXCLUDED_TYPES = frozenset({"CEX", "LP", LP_LABEL_TYPE})


class LiquidityDetector:
    """Marks a token's DEX pair accounts as liquidity pools."""

    def __init__(self, dexscreener: DexScreenerClient) -> None:
        self._dexscreener = dexscreener

    async def detect(self, token_address: str) -> dict[str, HolderLabel]:
        pools = await self._dexscreener.get_pair_addresses(token_address)
        if pools:
            logger.debug(f"[LABELS] {len(pools)} LP pools detected for {token_address}")
        return {
            address: HolderLabel(type=LP_LABEL_TYPE, label="LP Pool", source="dexscreener")
            for address in pools
        }


class HolderLabeler:
    """Resolves labels for one token's holders."""

    def __init__(
        self,
        source: LabelSource,
        detector: LiquidityDetector | None = None,
        excluded_types: Collection[str] = DEFAULT_EXCLUDED_TYPES,
    ) -> None:
        self._source = source
        self._detector = detector
        self._excluded = frozenset(excluded_types)

    @property
    def excluded_types(self) -> frozenset[str]:
        return self._excluded

    async def labels_for(
        self, token_address: str, addresses: Sequence[str]
    ) -> dict[str, HolderLabel]:
        """Stored labels, with detected LP pools filling addresses that have none."""
        labels = await self._source.fetch_labels(addresses) if addresses else {}
        if self._detector is not None:
            wanted = set(addresses)
            for address, label in (await self._detector.detect(token_address)).items():
                if address in wanted:
                    labels.setdefault(address, label)
        return labels

    def filter_excluded(
        self, holders: Iterable[HolderBalance], labels: Mapping[str, HolderLabel]
    ) -> list[HolderBalance]:
        return filter_excluded_holders(holders, labels, self._excluded)


def filter_excluded_holders(
    holders: Iterable[HolderBalance],
    labels: Mapping[str, HolderLabel],
    excluded_types: Collection[str] = DEFAULT_EXCLUDED_TYPES,
) -> list[HolderBalance]:
    kept: list[HolderBalance] = []
    for holder in holders:
        label = labels.get(holder.owner)
        if label is not None and label.type in excluded_types:
            continue
        kept.append(holder)
    return kept
