from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

SOL_MINT = "SOL"
LAMPORTS_PER_SOL = 1_000_000_000


class RawTokenHolding(BaseModel):
    """Token account balance as reported by the chain adapter"""
    mint: str
    amount_owned: float
    decimals: int = 0
    raw_amount: int = 0
    supply: Optional[int] = None

    @property
    def is_non_fungible(self) -> bool:
        # Wallet convention: one unit with zero decimals. Raw amount stands in for unknown supply.
        supply = self.supply if self.supply is not None else self.raw_amount
        return supply == 1 and self.decimals == 0


class FungibleHolding(BaseModel):
    mint: str
    isFungible: bool = True
    amountOwned: float


class NftCollection(BaseModel):
    collectionId: str
    symbol: str
    creatorMints: List[str] = Field(default_factory=list)
    tokensOwned: List[str] = Field(default_factory=list)


class MetadataFailure(BaseModel):
    mint: str
    error: str


class HoldingsSnapshot(BaseModel):
    """Holdings of one identity, grouped by fungible mint and NFT collection"""
    fungible: Dict[str, FungibleHolding] = Field(default_factory=dict)
    nft_collections: Dict[str, NftCollection] = Field(default_factory=dict)

    def fungible_amount(self, mint: str) -> Optional[float]:
        holding = self.fungible.get(mint)
        return holding.amountOwned if holding else None

    def collection_size(self, collection_id: str) -> Optional[int]:
        collection = self.nft_collections.get(collection_id)
        return len(collection.tokensOwned) if collection else None

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> "HoldingsSnapshot":
        """Read the snapshot persisted on an identity record"""
        record = record or {}
        return cls(
            fungible={
                mint: FungibleHolding(mint=mint, **{k: v for k, v in value.items() if k != "mint"})
                for mint, value in (record.get("tokensOwnedByMint") or {}).items()
            },
            nft_collections={
                collection_id: NftCollection(**value)
                for collection_id, value in (record.get("tokensOwnedByCollection") or {}).items()
            }
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "tokensOwnedByMint": {mint: h.model_dump() for mint, h in self.fungible.items()},
            "tokensOwnedByCollection": {cid: c.model_dump() for cid, c in self.nft_collections.items()}
        }


class HoldingsRefreshResult(BaseModel):
    snapshot: HoldingsSnapshot
    metadata_failures: List[MetadataFailure] = Field(default_factory=list)
