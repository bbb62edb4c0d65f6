from datetime import datetime, timezone

from src.core.logger.logger import get_logger
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.identity import ACCOUNTS_COLLECTION
from src.core.service.auth.models.token import TokenResponse
from src.infra.store.base import RecordStore

logger = get_logger(__name__)


class IdentityProvider:
    """Registry of known identities and issuer of their session credentials"""

    def __init__(self, store: RecordStore, jwt_service: JWTService):
        self.store = store
        self.jwt_service = jwt_service

    async def exists(self, uid: str) -> bool:
        return await self.store.get(ACCOUNTS_COLLECTION, uid) is not None

    async def register(self, uid: str) -> bool:
        """Create the account marker. False when the identity was already registered."""
        created = await self.store.create(
            ACCOUNTS_COLLECTION,
            uid,
            {"registeredAt": datetime.now(timezone.utc).isoformat()}
        )
        if created:
            logger.info("Identity registered", extra={"uid": uid})
        return created

    async def create_session(self, uid: str) -> TokenResponse:
        return await self.jwt_service.create_tokens(uid)
