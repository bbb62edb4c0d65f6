import asyncio
from typing import Optional

from src.core.exceptions.base import NotFoundError, collaborator_errors
from src.core.logger.logger import get_logger
from src.core.service.auth.models.identity import USERS_COLLECTION
from src.core.service.auth.models.session import AuthenticatedSession
from src.core.service.holdings.collection_aggregator import CollectionAggregator
from src.core.service.holdings.models import HoldingsRefreshResult, HoldingsSnapshot, RawTokenHolding
from src.infra.chain.base import ChainDataAdapter
from src.infra.store.base import RecordStore

logger = get_logger(__name__)


class HoldingsService:
    """Keeps the holdings snapshot on identity records in sync with the chain"""

    def __init__(
        self,
        store: RecordStore,
        chain: ChainDataAdapter,
        aggregator: Optional[CollectionAggregator] = None
    ):
        self.store = store
        self.chain = chain
        self.aggregator = aggregator or CollectionAggregator()

    async def get_snapshot(self, uid: str) -> Optional[HoldingsSnapshot]:
        """Persisted snapshot for uid, None when the identity record is missing"""
        record = await self.store.get(USERS_COLLECTION, uid)
        if record is None:
            return None
        return HoldingsSnapshot.from_record(record)

    async def refresh_holdings(self, session: AuthenticatedSession) -> HoldingsRefreshResult:
        """Fetch balances, rebuild the snapshot and replace it on the caller's record"""
        uid = session.user_id

        with collaborator_errors("refresh_holdings", uid=uid):
            if await self.store.get(USERS_COLLECTION, uid) is None:
                raise NotFoundError(
                    "Identity record not found",
                    context={"operation": "refresh_holdings", "uid": uid}
                )

            token_accounts, lamports = await asyncio.gather(
                self.chain.get_token_accounts(uid),
                self.chain.get_native_balance(uid)
            )

            holdings = [RawTokenHolding(**account.model_dump()) for account in token_accounts]
            result = await self.aggregator.aggregate(
                holdings,
                self.chain.get_nft_metadata,
                native_lamports=lamports
            )

            await self.store.update(USERS_COLLECTION, uid, result.snapshot.to_record())

        logger.info(
            "Holdings refreshed",
            extra={
                "uid": uid,
                "fungible_count": len(result.snapshot.fungible),
                "collection_count": len(result.snapshot.nft_collections),
                "metadata_failures": [failure.mint for failure in result.metadata_failures]
            }
        )
        return result
