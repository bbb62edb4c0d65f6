"""
Solana JSON-RPC implementation of the chain data adapter.

Token balances come from getTokenAccountsByOwner (jsonParsed), the native
balance from getBalance, and NFT metadata from the Metaplex metadata account
(PDA derived from the mint, decoded with borsh).
"""

import base64
import itertools
from typing import Any, Dict, List, Optional

import httpx
from borsh_construct import CStruct, U8, U16, Bool, String, Option, Vec
from construct import Bytes as ConstructBytes
import base58
from solders.pubkey import Pubkey

from src.core.http_client import HTTPClientConfig
from src.core.logger.logger import get_logger
from src.infra.chain.base import ChainDataAdapter, ChainDataError, NftCreator, NftMetadata, TokenAccount
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

CREATOR_LAYOUT = CStruct(
    "address" / ConstructBytes(32),
    "verified" / Bool,
    "share" / U8
)

# Leading fields of a Metaplex metadata account; trailing fields are ignored
METADATA_LAYOUT = CStruct(
    "key" / U8,
    "update_authority" / ConstructBytes(32),
    "mint" / ConstructBytes(32),
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CREATOR_LAYOUT))
)


def derive_metadata_address(mint: str) -> str:
    """Metaplex metadata PDA for a mint"""
    program = Pubkey.from_string(METADATA_PROGRAM_ID)
    seeds = [b"metadata", bytes(program), bytes(Pubkey.from_string(mint))]
    pda, _ = Pubkey.find_program_address(seeds, program)
    return str(pda)


def decode_metadata(mint: str, data: bytes) -> NftMetadata:
    """Decode a raw metadata account. Strings are zero-padded on chain."""
    parsed = METADATA_LAYOUT.parse(data)
    creators = [
        NftCreator(
            address=base58.b58encode(bytes(creator.address)).decode("utf-8"),
            verified=bool(creator.verified),
            share=creator.share
        )
        for creator in (parsed.creators or [])
    ]
    return NftMetadata(
        mint=mint,
        name=parsed.name.rstrip("\x00"),
        symbol=parsed.symbol.rstrip("\x00"),
        uri=parsed.uri.rstrip("\x00"),
        creators=creators
    )


class SolanaRpcClient(ChainDataAdapter):
    """Chain data adapter backed by a Solana JSON-RPC node"""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        commitment: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.rpc_url = rpc_url or settings.SOLANA_RPC_URL
        self.commitment = commitment or settings.SOLANA_COMMITMENT
        config = HTTPClientConfig.create_client_config("solana_rpc")
        if transport is not None:
            config["transport"] = transport
        self.client = httpx.AsyncClient(**config)
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self.client.aclose()

    async def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params
        }
        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "Solana RPC request failed",
                extra={"rpc_method": method, "error": str(e)}
            )
            raise ChainDataError(f"{method} request failed: {e}") from e

        if body.get("error"):
            error = body["error"]
            logger.warning(
                "Solana RPC returned an error",
                extra={"rpc_method": method, "rpc_error": error}
            )
            raise ChainDataError(f"{method} error: {error.get('message', error)}")

        if "result" not in body:
            raise ChainDataError(f"{method} response has no result")
        return body["result"]

    async def get_token_accounts(self, address: str) -> List[TokenAccount]:
        result = await self._call(
            "getTokenAccountsByOwner",
            [
                address,
                {"programId": TOKEN_PROGRAM_ID},
                {"encoding": "jsonParsed", "commitment": self.commitment}
            ]
        )

        accounts = []
        try:
            for entry in result["value"]:
                info = entry["account"]["data"]["parsed"]["info"]
                token_amount = info["tokenAmount"]
                raw_amount = int(token_amount["amount"])
                decimals = int(token_amount["decimals"])
                ui_amount = token_amount.get("uiAmount")
                accounts.append(TokenAccount(
                    mint=info["mint"],
                    raw_amount=raw_amount,
                    decimals=decimals,
                    amount_owned=ui_amount if ui_amount is not None else raw_amount / (10 ** decimals)
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise ChainDataError(f"Malformed token account payload: {e}") from e

        logger.debug(
            "Fetched token accounts",
            extra={"address": address, "account_count": len(accounts)}
        )
        return accounts

    async def get_native_balance(self, address: str) -> int:
        result = await self._call("getBalance", [address, {"commitment": self.commitment}])
        try:
            return int(result["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise ChainDataError(f"Malformed balance payload: {e}") from e

    async def get_nft_metadata(self, mint: str) -> NftMetadata:
        try:
            metadata_address = derive_metadata_address(mint)
        except ValueError as e:
            raise ChainDataError(f"Invalid mint {mint}: {e}") from e

        result = await self._call(
            "getAccountInfo",
            [metadata_address, {"encoding": "base64", "commitment": self.commitment}]
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not value:
            raise ChainDataError(f"No metadata account for mint {mint}")

        try:
            data = base64.b64decode(value["data"][0])
            return decode_metadata(mint, data)
        except Exception as e:
            raise ChainDataError(f"Undecodable metadata for mint {mint}: {e}") from e
