import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from redis.asyncio import Redis
from fastapi import HTTPException, status
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from src.core.logger.logger import get_logger
from src.core.service.auth.cache.token_store import TokenStore
from src.core.service.auth.models.session import AuthenticatedSession
from src.core.service.auth.models.token import TokenPayload, TokenResponse, TokenType
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class JWTService:
    """Issues, verifies, rotates and revokes session credentials"""

    def __init__(self, redis_client: Redis):
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.access_token_expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
        self.refresh_token_expire_days = settings.REFRESH_TOKEN_EXPIRE_DAYS
        self.token_store = TokenStore(redis_client)

    def _create_token(
        self,
        uid: str,
        token_type: TokenType,
        expires_delta: Optional[timedelta] = None
    ) -> tuple[str, datetime]:
        """
        Create a JWT token with the given parameters
        Returns the token string and its expiration datetime
        """
        if expires_delta is None:
            if token_type == TokenType.ACCESS:
                expires_delta = timedelta(minutes=self.access_token_expire_minutes)
            else:
                expires_delta = timedelta(days=self.refresh_token_expire_days)

        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + expires_delta

        to_encode = TokenPayload(
            uid=uid,
            exp=expires_at,
            iat=issued_at,
            type=token_type,
            jti=str(uuid.uuid4())
        )

        encoded_jwt = jwt.encode(
            to_encode.model_dump(),
            self.secret_key,
            algorithm=self.algorithm
        )

        return encoded_jwt, expires_at

    async def create_tokens(self, uid: str) -> TokenResponse:
        """Generate new access and refresh token pair"""
        access_token, access_exp = self._create_token(uid=uid, token_type=TokenType.ACCESS)
        refresh_token, _ = self._create_token(uid=uid, token_type=TokenType.REFRESH)

        expires_in = int((access_exp - datetime.now(timezone.utc)).total_seconds())

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in
        )

    async def verify_token(self, token: str, expected_type: TokenType) -> TokenPayload:
        """
        Verify a JWT token and return its payload
        Raises HTTPException if token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm]
            )
            token_data = TokenPayload(**payload)
        except ExpiredSignatureError:
            logger.info(
                "Token expired",
                extra={"token_type": expected_type}
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired"
            )
        except (InvalidTokenError, ValueError) as e:
            logger.warning(
                "Invalid token",
                extra={
                    "token_type": expected_type,
                    "error": str(e)
                }
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        if token_data.type != expected_type:
            logger.warning(
                "Token type mismatch",
                extra={
                    "expected_type": expected_type,
                    "actual_type": token_data.type,
                    "uid": token_data.uid
                }
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type"
            )

        if await self.token_store.is_blacklisted(token_data.jti):
            logger.warning(
                "Blacklisted token used",
                extra={
                    "jti": token_data.jti,
                    "uid": token_data.uid
                }
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has been revoked"
            )

        return token_data

    async def authenticate(self, access_token: str) -> AuthenticatedSession:
        """Resolve an access token into the caller's session"""
        token_data = await self.verify_token(access_token, TokenType.ACCESS)
        return token_data.to_session()

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Generate new access token using a valid refresh token.
        The used refresh token is revoked (rotation).
        """
        token_data = await self.verify_token(refresh_token, TokenType.REFRESH)

        new_tokens = await self.create_tokens(token_data.uid)

        await self.token_store.add_to_blacklist(
            jti=token_data.jti,
            exp=token_data.exp,
            reason="Refresh token rotation"
        )

        return new_tokens

    async def revoke_token(self, token: str, reason: Optional[str] = None) -> None:
        """
        Revoke a token by adding it to the blacklist.
        Works for both access and refresh tokens, expired or not.
        """
        try:
            payload = jwt.decode(
                token,
                options={"verify_signature": False}
            )
            token_data = TokenPayload(**payload)
        except (InvalidTokenError, ValueError) as e:
            logger.warning(
                "Failed to revoke token",
                extra={"error": str(e)}
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid token format"
            )

        await self.token_store.add_to_blacklist(
            jti=token_data.jti,
            exp=token_data.exp,
            reason=reason
        )
