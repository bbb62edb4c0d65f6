"""
Service error taxonomy shared by every core service.
Each error carries a stable code and the HTTP status the global handler answers with.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import status

from src.infra.chain.base import ChainDataError
from src.infra.store.base import RecordNotFoundError, StoreUnavailableError


class ServiceErrorCode:
    """Standard error codes for services"""

    # Validation
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_INPUT = "INVALID_INPUT"

    # Lookup
    NOT_FOUND = "NOT_FOUND"

    # Authentication / access
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_NONCE = "INVALID_NONCE"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Voting
    ALREADY_VOTED = "ALREADY_VOTED"

    # Rate Limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    IP_BLOCKED = "IP_BLOCKED"

    # System
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ServiceError(Exception):
    """
    Standardized service error for internal use.
    Gets converted to proper HTTP response by error handler.
    """

    code = ServiceErrorCode.INTERNAL_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        self.context = context or {}
        super().__init__(message)


class InvalidArgumentError(ServiceError):
    """Malformed id, content id or payload. Caller bug, not retried."""
    code = ServiceErrorCode.INVALID_ARGUMENT
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    code = ServiceErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ServiceError):
    """Invalid signature or failed token gate."""
    code = ServiceErrorCode.PERMISSION_DENIED
    status_code = status.HTTP_403_FORBIDDEN


class AlreadyVotedError(ServiceError):
    code = ServiceErrorCode.ALREADY_VOTED
    status_code = status.HTTP_409_CONFLICT


class UnavailableError(ServiceError):
    """Store or chain collaborator failure. Safe to retry with backoff."""
    code = ServiceErrorCode.UNAVAILABLE
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvalidNonceError(UnavailableError):
    """Signed nonce does not match the stored one (or was rotated concurrently)."""
    code = ServiceErrorCode.INVALID_NONCE
    status_code = status.HTTP_401_UNAUTHORIZED


class UnknownError(ServiceError):
    """Unexpected failure during a mutation; wraps the underlying cause."""
    code = ServiceErrorCode.UNKNOWN
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


@contextmanager
def collaborator_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Translate adapter failures raised inside the block into service errors.

    ServiceError passes through untouched, store and chain failures become
    UnavailableError, a missing record on update becomes NotFoundError and
    anything else becomes UnknownError. The raw collaborator message is
    attached under details["cause"].
    """
    error_context = {"operation": operation, **context}
    try:
        yield
    except ServiceError:
        raise
    except RecordNotFoundError as e:
        raise NotFoundError(
            f"{operation} failed: record not found",
            details={"cause": str(e)},
            context=error_context
        ) from e
    except (StoreUnavailableError, ChainDataError) as e:
        raise UnavailableError(
            f"{operation} failed: collaborator unavailable",
            details={"cause": str(e)},
            context=error_context
        ) from e
    except Exception as e:
        raise UnknownError(
            f"{operation} failed unexpectedly",
            details={"cause": str(e), "error_type": type(e).__name__},
            context=error_context
        ) from e
