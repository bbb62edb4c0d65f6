"""
Shared fixtures: in-memory record store, Redis double for the token blacklist,
fake chain adapter and real Ed25519 wallet keys.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import base58
import pytest
from nacl.signing import SigningKey

from src.core.service.auth.identity_provider import IdentityProvider
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.challenge import SignatureProof
from src.core.service.auth.models.session import AuthenticatedSession
from src.core.service.auth.nonce_service import NonceAuthenticator
from src.infra.chain.base import ChainDataAdapter, ChainDataError, NftCreator, NftMetadata, TokenAccount
from src.infra.store.memory_store import MemoryRecordStore


class Wallet:
    """Solana-style wallet backed by a PyNaCl signing key"""

    def __init__(self, signing_key: Optional[SigningKey] = None):
        self.signing_key = signing_key or SigningKey.generate()
        self.public_key = self.signing_key.verify_key.encode()
        self.address = base58.b58encode(self.public_key).decode("utf-8")

    def sign(self, message: str) -> SignatureProof:
        message_bytes = message.encode("utf-8")
        return SignatureProof(
            message=message_bytes,
            signature=self.signing_key.sign(message_bytes).signature,
            public_key=self.public_key
        )

    def sign_b58(self, message: str) -> str:
        return base58.b58encode(self.signing_key.sign(message.encode("utf-8")).signature).decode("utf-8")


class FakeChainAdapter(ChainDataAdapter):
    """Chain adapter serving canned balances and metadata"""

    def __init__(
        self,
        token_accounts: Optional[List[TokenAccount]] = None,
        lamports: int = 0,
        metadata: Optional[Dict[str, NftMetadata]] = None,
        fail_balances: bool = False
    ):
        self.token_accounts = token_accounts or []
        self.lamports = lamports
        self.metadata = metadata or {}
        self.fail_balances = fail_balances
        self.metadata_calls: List[str] = []

    async def get_token_accounts(self, address: str) -> List[TokenAccount]:
        if self.fail_balances:
            raise ChainDataError("node unreachable")
        return list(self.token_accounts)

    async def get_native_balance(self, address: str) -> int:
        if self.fail_balances:
            raise ChainDataError("node unreachable")
        return self.lamports

    async def get_nft_metadata(self, mint: str) -> NftMetadata:
        self.metadata_calls.append(mint)
        if mint not in self.metadata:
            raise ChainDataError(f"No metadata account for mint {mint}")
        return self.metadata[mint]


def nft_metadata(mint: str, symbol: str, creators: List[str]) -> NftMetadata:
    return NftMetadata(
        mint=mint,
        symbol=symbol,
        creators=[NftCreator(address=address, verified=True, share=100 // max(len(creators), 1)) for address in creators]
    )


@pytest.fixture
def wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def other_wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def redis_client() -> AsyncMock:
    """Redis double covering the commands the token blacklist uses"""
    data: Dict[str, str] = {}
    client = AsyncMock()

    async def setex(key, ttl, value):
        data[key] = value
        return True

    async def exists(key):
        return int(key in data)

    client.setex.side_effect = setex
    client.exists.side_effect = exists
    client.ping.return_value = True
    client.data = data
    return client


@pytest.fixture
def jwt_service(redis_client) -> JWTService:
    return JWTService(redis_client)


@pytest.fixture
def identity_provider(store, jwt_service) -> IdentityProvider:
    return IdentityProvider(store, jwt_service)


@pytest.fixture
def authenticator(store, identity_provider) -> NonceAuthenticator:
    return NonceAuthenticator(store, identity_provider)


@pytest.fixture
def session_for():
    def _session(uid: str) -> AuthenticatedSession:
        return AuthenticatedSession(
            user_id=uid,
            jti="test-jti",
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=30)
        )
    return _session


@pytest.fixture
def make_wallet():
    return Wallet


@pytest.fixture
def make_chain():
    return FakeChainAdapter


@pytest.fixture
def make_metadata():
    return nft_metadata
