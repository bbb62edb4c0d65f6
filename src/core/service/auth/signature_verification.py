from typing import Optional, Tuple

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from src.core.logger.logger import get_logger

logger = get_logger(__name__)

PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


def decode_wallet_address(address: str) -> bytes:
    """
    Decode a base58 wallet address into its 32 raw public key bytes.
    Raises ValueError when the address is not a valid Solana address.
    """
    if not address or not isinstance(address, str):
        raise ValueError("Address must be a non-empty string")
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise ValueError("Address is not valid base58") from e
    if len(raw) != PUBLIC_KEY_LENGTH:
        raise ValueError(f"Address must decode to {PUBLIC_KEY_LENGTH} bytes, got {len(raw)}")
    return raw


def validate_wallet_address(address: str) -> Tuple[bool, Optional[str]]:
    try:
        decode_wallet_address(address)
        return True, None
    except ValueError as e:
        return False, str(e)


class SignatureVerificationService:
    """Verifies detached Ed25519 signatures produced by Solana wallets"""

    def verify_signature(self, message: bytes, signature: bytes, public_key: bytes) -> Tuple[bool, Optional[str]]:
        """
        Verify a detached signature over message

        Args:
            message: The exact bytes that were signed
            signature: 64-byte Ed25519 signature
            public_key: 32-byte Ed25519 public key

        Returns:
            Tuple[bool, Optional[str]]: (is_valid, error_message)
        """
        if len(public_key) != PUBLIC_KEY_LENGTH:
            return False, "Invalid public key length"

        if len(signature) != SIGNATURE_LENGTH:
            return False, "Invalid signature length"

        try:
            VerifyKey(bytes(public_key)).verify(bytes(message), bytes(signature))
        except BadSignatureError:
            logger.warning(
                "Signature does not match message and public key",
                extra={"public_key": base58.b58encode(bytes(public_key)).decode("utf-8")}
            )
            return False, "Signature verification failed"
        except (ValueError, TypeError) as e:
            logger.warning(
                "Malformed signature input",
                extra={"error": str(e)}
            )
            return False, "Invalid signature format"

        return True, None

    def verify_wallet_signature(
        self,
        wallet_address: str,
        message: bytes,
        signature: bytes,
        public_key: bytes
    ) -> Tuple[bool, Optional[str]]:
        """Verify the signature and that public_key is the key wallet_address encodes"""
        is_valid, error = self.verify_signature(message, signature, public_key)
        if not is_valid:
            return False, error

        try:
            address_key = decode_wallet_address(wallet_address)
        except ValueError as e:
            return False, str(e)

        if address_key != bytes(public_key):
            logger.warning(
                "Public key does not belong to wallet address",
                extra={"wallet_address": wallet_address}
            )
            return False, "Public key does not match wallet address"

        return True, None
