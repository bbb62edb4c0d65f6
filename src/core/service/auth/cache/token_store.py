import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from redis.asyncio import Redis

from src.core.logger.logger import get_logger
from src.core.service.auth.models.token import TokenBlacklist
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class TokenStore:
    """Redis-based revocation list for issued tokens"""

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self.key_prefix = "blacklist:token:"
        self.margin_minutes = settings.TOKEN_BLACKLIST_EXPIRE_MARGIN_MINUTES

    def _get_key(self, jti: str) -> str:
        return f"{self.key_prefix}{jti}"

    def _serialize_blacklist_entry(self, entry: TokenBlacklist) -> Dict[str, Any]:
        """Convert TokenBlacklist to JSON-serializable dict"""
        return entry.model_dump(mode="json")

    async def add_to_blacklist(
        self,
        jti: str,
        exp: datetime,
        reason: Optional[str] = None
    ) -> None:
        """
        Add a token to the blacklist.
        The entry expires with the token (plus margin).
        """
        try:
            entry = TokenBlacklist(jti=jti, exp=exp, reason=reason)

            ttl = exp - datetime.now(timezone.utc) + timedelta(minutes=self.margin_minutes)
            ttl_seconds = int(ttl.total_seconds())

            if ttl_seconds <= 0:
                logger.info(
                    "Skipping blacklist for expired token",
                    extra={"jti": jti}
                )
                return

            await self.redis.setex(
                self._get_key(jti),
                ttl_seconds,
                json.dumps(self._serialize_blacklist_entry(entry))
            )

            logger.info(
                "Token blacklisted",
                extra={
                    "jti": jti,
                    "expires_in": ttl_seconds,
                    "reason": reason
                }
            )

        except Exception as e:
            logger.error(
                "Failed to blacklist token",
                extra={
                    "jti": jti,
                    "error": str(e)
                }
            )
            raise

    async def is_blacklisted(self, jti: str) -> bool:
        """Check if a token is blacklisted"""
        try:
            exists = await self.redis.exists(self._get_key(jti))

            if exists:
                logger.info(
                    "Blacklisted token access attempt",
                    extra={"jti": jti}
                )

            return bool(exists)

        except Exception as e:
            # Fail-open: an unreachable revocation list does not lock every user out
            logger.warning(
                "Failed to check token blacklist, allowing token",
                extra={
                    "jti": jti,
                    "error": str(e),
                    "error_type": type(e).__name__
                }
            )
            return False
