"""
Authentication controller: nonce check-in, signature verification and token lifecycle.
"""

from fastapi import APIRouter, Depends

from src.api.controller.auth.dto.input_dto import (
    CheckInRequestDto, VerifyRequestDto, RefreshTokenRequestDto, LogoutRequestDto
)
from src.api.controller.auth.dto.output_dto import (
    CheckInResponseDto, AuthResponseDto, TokenRefreshResponseDto, LogoutResponseDto
)
from src.api.utils.validators import RequestValidator
from src.core.dependencies import get_jwt_service, get_nonce_authenticator
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.challenge import SignatureProof
from src.core.service.auth.nonce_service import NonceAuthenticator
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/check-in", response_model=CheckInResponseDto)
async def check_in(
    request: CheckInRequestDto,
    authenticator: NonceAuthenticator = Depends(get_nonce_authenticator)
):
    """
    Get the message the wallet has to sign.

    Unknown wallets receive the signup message; known wallets receive the
    login message carrying their current nonce. Repeated calls return the
    same nonce until a verification succeeds.
    """
    result = await authenticator.begin_check_in(request.uid)

    return CheckInResponseDto(
        status=result.status.value,
        message=result.message,
        nonce=result.nonce
    )


@router.post("/verify", response_model=AuthResponseDto)
async def verify(
    request: VerifyRequestDto,
    authenticator: NonceAuthenticator = Depends(get_nonce_authenticator)
):
    """
    Verify a signed check-in message and return authentication tokens.

    The public key must be the key of the wallet address. First-time wallets
    are registered with a default profile.
    """
    proof = SignatureProof(
        message=RequestValidator.message_bytes(request.message),
        signature=RequestValidator.proof_bytes(request.signature, "signature"),
        public_key=RequestValidator.proof_bytes(request.public_key, "public_key")
    )

    result = await authenticator.verify(request.uid, proof)

    logger.info(
        f"Authentication successful for {result.uid}",
        extra={"uid": result.uid, "status": result.status.value}
    )

    return AuthResponseDto(
        status=result.status.value,
        uid=result.uid,
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in
    )


@router.post("/refresh", response_model=TokenRefreshResponseDto)
async def refresh_token(
    request: RefreshTokenRequestDto,
    jwt_service: JWTService = Depends(get_jwt_service)
):
    """
    Exchange a valid refresh token for a new token pair.
    The presented refresh token is revoked.
    """
    token = RequestValidator.validate_token(request.refresh_token, "refresh_token")

    tokens = await jwt_service.refresh_access_token(token)

    logger.info("Token refreshed successfully")

    return TokenRefreshResponseDto(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        expires_in=tokens.expires_in
    )


@router.post("/logout", response_model=LogoutResponseDto)
async def logout(
    request: LogoutRequestDto,
    jwt_service: JWTService = Depends(get_jwt_service)
):
    """Revoke the given access and/or refresh token."""
    logged_out_count = 0

    if request.access_token:
        access_token = RequestValidator.validate_token(request.access_token, "access_token")
        await jwt_service.revoke_token(access_token, reason="Logout")
        logged_out_count += 1

    if request.refresh_token:
        refresh_token = RequestValidator.validate_token(request.refresh_token, "refresh_token")
        await jwt_service.revoke_token(refresh_token, reason="Logout")
        logged_out_count += 1

    logger.info(f"Logout successful, blacklisted {logged_out_count} tokens")

    return LogoutResponseDto(
        success=True,
        message="Successfully logged out",
        logged_out_tokens=logged_out_count
    )
