from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.core.service.auth.models.session import AuthenticatedSession


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """Claims carried by access and refresh tokens"""
    uid: str = Field(..., description="Wallet address the token was issued to")
    exp: datetime
    iat: datetime
    type: TokenType
    jti: str = Field(..., description="Token id, the blacklist key")

    def to_session(self) -> AuthenticatedSession:
        return AuthenticatedSession(user_id=self.uid, jti=self.jti, expires_at=self.exp)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until the access token expires


class TokenBlacklist(BaseModel):
    """Revoked token entry, kept until the token would have expired anyway"""
    jti: str
    exp: datetime
    blacklisted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None
