"""
Input DTOs for authentication API endpoints.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, Field, validator


class CheckInRequestDto(BaseModel):
    """DTO for check-in (nonce challenge) request."""

    uid: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Base58 wallet address"
    )

    @validator('uid')
    def validate_uid(cls, v):
        if not v or not v.strip():
            raise ValueError('Wallet address cannot be empty')
        return v.strip()


class VerifyRequestDto(BaseModel):
    """DTO for signature verification request."""

    uid: str = Field(..., min_length=1, max_length=64, description="Base58 wallet address that signed the message")
    message: Union[str, List[int]] = Field(..., description="Signed message, UTF-8 text or byte array")
    signature: Union[str, List[int]] = Field(..., description="Ed25519 signature, base58 or byte array")
    public_key: Union[str, List[int]] = Field(..., description="Signer public key, base58 or byte array")

    @validator('uid')
    def validate_uid(cls, v):
        if not v or not v.strip():
            raise ValueError('Wallet address cannot be empty')
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "uid": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
                "message": "Sign this message to login into Qwestive. 482913",
                "signature": "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW",
                "public_key": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
            }
        }


class RefreshTokenRequestDto(BaseModel):
    """DTO for token refresh request."""

    refresh_token: str = Field(..., min_length=1, description="Valid refresh token")


class LogoutRequestDto(BaseModel):
    """DTO for logout request."""

    access_token: Optional[str] = Field(None, description="Access token to revoke")
    refresh_token: Optional[str] = Field(None, description="Refresh token to revoke")
