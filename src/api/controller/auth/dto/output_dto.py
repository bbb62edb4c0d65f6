"""
Output DTOs for authentication API endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CheckInResponseDto(BaseModel):
    """DTO for check-in response."""

    status: str = Field(..., description="new_user, record_created, nonce_issued or nonce_regenerated")
    message: str = Field(..., description="Message to be signed by wallet")
    nonce: Optional[int] = Field(None, description="Nonce embedded in login messages")


class AuthResponseDto(BaseModel):
    """DTO for successful authentication response."""

    status: str = Field(..., description="new_user_registered or authenticated")
    uid: str = Field(..., description="Authenticated wallet address")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds")


class TokenRefreshResponseDto(BaseModel):
    """DTO for token refresh response."""

    access_token: str = Field(..., description="New JWT access token")
    refresh_token: str = Field(..., description="Rotated JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds")


class LogoutResponseDto(BaseModel):
    """DTO for logout response."""

    success: bool = Field(True, description="Logout success status")
    message: str = Field(default="Successfully logged out", description="Logout message")
    logged_out_tokens: int = Field(0, description="Number of tokens blacklisted")


class HealthCheckResponseDto(BaseModel):
    status: str
    services: dict
    timestamp: str
