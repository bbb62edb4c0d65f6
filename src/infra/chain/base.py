"""
Chain data adapter interface.
Balances and NFT metadata for a wallet address, independent of the RPC provider.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class ChainDataError(Exception):
    """The chain data provider failed or returned an unusable payload"""


class TokenAccount(BaseModel):
    """One SPL token account owned by an address"""
    mint: str
    raw_amount: int = Field(..., ge=0)
    decimals: int = Field(..., ge=0)
    amount_owned: float
    supply: Optional[int] = None  # Mint supply when the provider reports it


class NftCreator(BaseModel):
    address: str
    verified: bool = False
    share: int = 0


class NftMetadata(BaseModel):
    """Subset of the Metaplex metadata account used for collection grouping"""
    mint: str
    name: str = ""
    symbol: str
    uri: str = ""
    creators: List[NftCreator] = Field(default_factory=list)

    @property
    def creator_addresses(self) -> List[str]:
        return [creator.address for creator in self.creators]


class ChainDataAdapter(ABC):

    @abstractmethod
    async def get_token_accounts(self, address: str) -> List[TokenAccount]:
        """Token accounts owned by address"""

    @abstractmethod
    async def get_native_balance(self, address: str) -> int:
        """Native balance in lamports"""

    @abstractmethod
    async def get_nft_metadata(self, mint: str) -> NftMetadata:
        """Metaplex metadata for mint"""

    async def close(self) -> None:
        pass
