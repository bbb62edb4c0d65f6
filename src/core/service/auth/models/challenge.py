from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.core.service.auth.models.token import TokenResponse


class CheckInStatus(str, Enum):
    NEW_USER = "new_user"                    # Unknown identity, signup message returned
    RECORD_CREATED = "record_created"        # Registered identity without a record; record created
    NONCE_ISSUED = "nonce_issued"            # Current nonce returned unchanged
    NONCE_REGENERATED = "nonce_regenerated"  # Record had no nonce; a new one was stored


class CheckInResult(BaseModel):
    """Message the wallet has to sign for the next verification"""
    status: CheckInStatus
    message: str = Field(..., description="Message to be signed")
    nonce: Optional[int] = Field(None, description="Embedded nonce (login messages only)")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "nonce_issued",
                "message": "Sign this message to login into Qwestive. 482913",
                "nonce": 482913
            }
        }


class SignatureProof(BaseModel):
    """Detached Ed25519 signature over message, produced by the wallet"""
    message: bytes
    signature: bytes
    public_key: bytes


class VerifyStatus(str, Enum):
    NEW_USER_REGISTERED = "new_user_registered"
    AUTHENTICATED = "authenticated"


class VerifyResult(BaseModel):
    status: VerifyStatus
    uid: str
    tokens: TokenResponse
