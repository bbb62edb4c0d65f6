"""
Groups raw token holdings into fungible balances and NFT collections.

NFTs are grouped by a collection id derived from the metadata symbol and the
sorted creator addresses, so the same symbol and creator set always map to
the same bucket.
"""

import asyncio
import hashlib
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from src.core.logger.logger import get_logger
from src.core.service.holdings.models import (
    LAMPORTS_PER_SOL,
    SOL_MINT,
    FungibleHolding,
    HoldingsRefreshResult,
    HoldingsSnapshot,
    MetadataFailure,
    NftCollection,
    RawTokenHolding
)
from src.infra.chain.base import NftMetadata
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

MetadataFetcher = Callable[[str], Awaitable[NftMetadata]]

LEGACY_SCHEME = "legacy"
DIGEST_SCHEME = "digest"


def _collection_key(symbol: str, creators: Iterable[str]) -> str:
    sorted_creators = sorted(creators)
    return "".join([symbol, str(len(sorted_creators)), *sorted_creators])


def _legacy_hash(value: str) -> str:
    """32-bit string hash over UTF-16 code units (h = 31*h + c), absolute value"""
    h = 0
    encoded = value.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        h = (31 * h + int.from_bytes(encoded[i:i + 2], "little")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return str(abs(h))


def _digest_hash(value: str) -> str:
    return hashlib.blake2b(value.encode("utf-8"), digest_size=8).hexdigest()


def collection_id(symbol: str, creators: Iterable[str], scheme: Optional[str] = None) -> str:
    """Deterministic collection id for a symbol and creator set, independent of creator order"""
    scheme = scheme or settings.COLLECTION_ID_SCHEME
    key = _collection_key(symbol, creators)
    if scheme == LEGACY_SCHEME:
        return _legacy_hash(key)
    if scheme == DIGEST_SCHEME:
        return _digest_hash(key)
    raise ValueError(f"Unknown collection id scheme: {scheme}")


class CollectionAggregator:

    def __init__(self, scheme: Optional[str] = None):
        self.scheme = scheme or settings.COLLECTION_ID_SCHEME
        if self.scheme not in (LEGACY_SCHEME, DIGEST_SCHEME):
            raise ValueError(f"Unknown collection id scheme: {self.scheme}")

    @staticmethod
    def classify(holdings: Iterable[RawTokenHolding]) -> Tuple[List[RawTokenHolding], List[RawTokenHolding]]:
        """Split holdings into (fungible, non_fungible), dropping empty balances"""
        fungible, non_fungible = [], []
        for holding in holdings:
            if holding.amount_owned <= 0:
                continue
            (non_fungible if holding.is_non_fungible else fungible).append(holding)
        return fungible, non_fungible

    async def _fetch_all(
        self,
        mints: List[str],
        fetch_metadata: MetadataFetcher
    ) -> Tuple[List[NftMetadata], List[MetadataFailure]]:
        results = await asyncio.gather(
            *(fetch_metadata(mint) for mint in mints),
            return_exceptions=True
        )

        fetched, failures = [], []
        for mint, result in zip(mints, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "NFT metadata fetch failed",
                    extra={"mint": mint, "error": str(result), "error_type": type(result).__name__}
                )
                failures.append(MetadataFailure(mint=mint, error=str(result)))
            else:
                fetched.append(result)
        return fetched, failures

    def build_collections(self, metadata: Iterable[NftMetadata]) -> Dict[str, NftCollection]:
        collections: Dict[str, NftCollection] = {}
        for item in metadata:
            creators = item.creator_addresses
            cid = collection_id(item.symbol, creators, self.scheme)
            collection = collections.get(cid)
            if collection is None:
                collection = NftCollection(
                    collectionId=cid,
                    symbol=item.symbol,
                    creatorMints=sorted(creators)
                )
                collections[cid] = collection
            if item.mint not in collection.tokensOwned:
                collection.tokensOwned.append(item.mint)
        return collections

    async def aggregate(
        self,
        holdings: Iterable[RawTokenHolding],
        fetch_metadata: MetadataFetcher,
        native_lamports: Optional[int] = None
    ) -> HoldingsRefreshResult:
        """
        Build a holdings snapshot.

        Metadata for every distinct NFT mint is fetched concurrently; a failed
        fetch excludes that mint and is reported in the result. The native
        balance, when given, is added as the fungible entry "SOL".
        """
        fungible_holdings, nft_holdings = self.classify(holdings)

        fungible: Dict[str, FungibleHolding] = {}
        for holding in fungible_holdings:
            existing = fungible.get(holding.mint)
            amount = holding.amount_owned + (existing.amountOwned if existing else 0)
            fungible[holding.mint] = FungibleHolding(mint=holding.mint, amountOwned=amount)

        if native_lamports is not None:
            fungible[SOL_MINT] = FungibleHolding(mint=SOL_MINT, amountOwned=native_lamports / LAMPORTS_PER_SOL)

        mints = list(dict.fromkeys(holding.mint for holding in nft_holdings))
        metadata, failures = await self._fetch_all(mints, fetch_metadata)

        snapshot = HoldingsSnapshot(
            fungible=fungible,
            nft_collections=self.build_collections(metadata)
        )

        logger.debug(
            "Holdings aggregated",
            extra={
                "fungible_count": len(snapshot.fungible),
                "collection_count": len(snapshot.nft_collections),
                "metadata_failures": len(failures)
            }
        )
        return HoldingsRefreshResult(snapshot=snapshot, metadata_failures=failures)
