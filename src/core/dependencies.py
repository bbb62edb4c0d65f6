"""
FastAPI dependency injection functions.
Every collaborator is resolved here so tests can swap them with dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from redis.asyncio import Redis

from src.infra.config.redis import get_redis_client as create_redis_client
from src.infra.config.settings import get_settings
from src.infra.chain.base import ChainDataAdapter
from src.infra.chain.solana_rpc import SolanaRpcClient
from src.infra.store.base import RecordStore
from src.infra.store.memory_store import MemoryRecordStore
from src.infra.store.redis_store import RedisRecordStore
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.identity_provider import IdentityProvider
from src.core.service.auth.nonce_service import NonceAuthenticator
from src.core.service.holdings.collection_aggregator import CollectionAggregator
from src.core.service.holdings.holdings_service import HoldingsService
from src.core.service.vote.vote_service import VoteService
from src.core.service.profile.profile_service import ProfileService
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


async def get_redis_client() -> Redis:
    """Get Redis client dependency."""
    return create_redis_client()


@lru_cache()
def _memory_store() -> MemoryRecordStore:
    logger.warning("Using in-memory record store, data is lost on restart")
    return MemoryRecordStore()


@lru_cache()
def get_chain_client() -> ChainDataAdapter:
    """Shared Solana RPC client, closed on application shutdown."""
    return SolanaRpcClient()


async def get_record_store(redis_client: Redis = Depends(get_redis_client)) -> RecordStore:
    """Get record store for the configured backend."""
    if settings.STORE_BACKEND == "memory":
        return _memory_store()
    return RedisRecordStore(redis_client)


async def get_chain_adapter() -> ChainDataAdapter:
    return get_chain_client()


async def get_jwt_service(redis_client: Redis = Depends(get_redis_client)) -> JWTService:
    """Get JWT service with Redis dependency."""
    return JWTService(redis_client)


async def get_identity_provider(
    store: RecordStore = Depends(get_record_store),
    jwt_service: JWTService = Depends(get_jwt_service)
) -> IdentityProvider:
    return IdentityProvider(store, jwt_service)


async def get_nonce_authenticator(
    store: RecordStore = Depends(get_record_store),
    identity_provider: IdentityProvider = Depends(get_identity_provider)
) -> NonceAuthenticator:
    """Get nonce authenticator with store and identity dependencies."""
    return NonceAuthenticator(store, identity_provider)


async def get_holdings_service(
    store: RecordStore = Depends(get_record_store),
    chain: ChainDataAdapter = Depends(get_chain_adapter)
) -> HoldingsService:
    return HoldingsService(store, chain, CollectionAggregator(settings.COLLECTION_ID_SCHEME))


async def get_vote_service(store: RecordStore = Depends(get_record_store)) -> VoteService:
    return VoteService(store)


async def get_profile_service(store: RecordStore = Depends(get_record_store)) -> ProfileService:
    return ProfileService(store)
