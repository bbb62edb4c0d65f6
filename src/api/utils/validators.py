"""
Input validation helpers shared by the API controllers.
"""

from typing import List, Union

import base58

from src.core.exceptions.base import InvalidArgumentError, PermissionDeniedError, ServiceErrorCode

BinaryInput = Union[str, List[int]]


class RequestValidator:
    """Request-level checks that run before any service is called."""

    @staticmethod
    def validate_token(token: str, token_type: str = "token") -> str:
        """Validate JWT token format."""
        if not token or not token.strip():
            raise InvalidArgumentError(
                f"{token_type.capitalize()} is required",
                details={"validation_errors": [{
                    "field": token_type,
                    "code": ServiceErrorCode.INVALID_INPUT,
                    "message": "Missing field"
                }]}
            )

        token = token.strip()

        # Basic JWT format check (3 parts separated by dots)
        if len(token.split('.')) != 3:
            raise InvalidArgumentError(
                f"Invalid {token_type} format. Expected JWT format.",
                details={"validation_errors": [{
                    "field": token_type,
                    "code": ServiceErrorCode.INVALID_TOKEN,
                    "message": "Expected three dot-separated segments"
                }]}
            )

        return token

    @staticmethod
    def message_bytes(message: BinaryInput) -> bytes:
        """Signed message as bytes. Text is UTF-8 encoded as the wallet signs it."""
        if isinstance(message, str):
            return message.encode("utf-8")
        return RequestValidator._byte_list(message, "message")

    @staticmethod
    def proof_bytes(value: BinaryInput, field: str) -> bytes:
        """
        Signature or public key as bytes, from base58 text or a byte array.
        Undecodable input is a failed proof, not a malformed request.
        """
        if isinstance(value, str):
            try:
                return base58.b58decode(value.strip())
            except ValueError:
                raise PermissionDeniedError(
                    "Invalid signature",
                    details={"reason": f"{field} is not valid base58"}
                )
        return RequestValidator._byte_list(value, field)

    @staticmethod
    def _byte_list(values: List[int], field: str) -> bytes:
        try:
            return bytes(values)
        except (TypeError, ValueError):
            raise PermissionDeniedError(
                "Invalid signature",
                details={"reason": f"{field} must be a list of byte values"}
            )
