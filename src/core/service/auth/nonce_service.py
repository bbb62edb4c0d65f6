import secrets
from typing import Optional

from src.core.exceptions.base import (
    InvalidArgumentError,
    InvalidNonceError,
    NotFoundError,
    PermissionDeniedError,
    collaborator_errors
)
from src.core.logger.logger import get_logger
from src.core.service.auth.identity_provider import IdentityProvider
from src.core.service.auth.models.challenge import (
    CheckInResult,
    CheckInStatus,
    SignatureProof,
    VerifyResult,
    VerifyStatus
)
from src.core.service.auth.models.identity import USERS_COLLECTION, UserProfile
from src.core.service.auth.signature_verification import (
    SignatureVerificationService,
    validate_wallet_address
)
from src.infra.config.settings import get_settings
from src.infra.store.base import RecordStore

logger = get_logger(__name__)
settings = get_settings()

NONCE_LENGTH = 6


class NonceAuthenticator:
    """
    Challenge/response login for wallet identities.

    Each identity record holds one numeric nonce. check-in hands out a message
    embedding the current nonce, verify checks the wallet signature over it and
    rotates the nonce so a signed message can be used only once.
    """

    def __init__(
        self,
        store: RecordStore,
        identity_provider: IdentityProvider,
        signature_service: Optional[SignatureVerificationService] = None
    ):
        self.store = store
        self.identity_provider = identity_provider
        self.signature_service = signature_service or SignatureVerificationService()

    def _generate_nonce(self, previous: Optional[int] = None) -> int:
        """Random nonce in the configured range, never equal to previous"""
        span = settings.NONCE_MAX - settings.NONCE_MIN + 1
        while True:
            nonce = settings.NONCE_MIN + secrets.randbelow(span)
            if nonce != previous:
                return nonce

    def login_message(self, nonce: int) -> str:
        return f"{settings.LOGIN_MESSAGE_TEMPLATE.format(app_name=settings.APP_NAME)} {nonce}"

    def signup_message(self) -> str:
        return settings.SIGNUP_MESSAGE_TEMPLATE.format(app_name=settings.APP_NAME)

    async def begin_check_in(self, uid: str) -> CheckInResult:
        """Return the message the wallet has to sign next. Idempotent until verify succeeds."""
        is_valid, error_msg = validate_wallet_address(uid)
        if not is_valid:
            raise InvalidArgumentError(
                f"Invalid wallet address: {error_msg}",
                context={"operation": "begin_check_in", "uid": uid}
            )

        with collaborator_errors("begin_check_in", uid=uid):
            if not await self.identity_provider.exists(uid):
                logger.info("Check-in for unknown identity", extra={"uid": uid})
                return CheckInResult(status=CheckInStatus.NEW_USER, message=self.signup_message())

            record = await self.store.get(USERS_COLLECTION, uid)

            if record is None:
                nonce = self._generate_nonce()
                await self.store.set(USERS_COLLECTION, uid, {"nonce": nonce}, merge=True)
                status = CheckInStatus.RECORD_CREATED
            elif record.get("nonce") is not None:
                nonce = record["nonce"]
                status = CheckInStatus.NONCE_ISSUED
            else:
                nonce = self._generate_nonce()
                await self.store.update(USERS_COLLECTION, uid, {"nonce": nonce})
                status = CheckInStatus.NONCE_REGENERATED

        logger.info("Check-in message issued", extra={"uid": uid, "status": status.value})
        return CheckInResult(status=status, message=self.login_message(nonce), nonce=nonce)

    async def verify(self, uid: str, proof: SignatureProof) -> VerifyResult:
        """
        Verify the wallet signature and issue session credentials.

        Unknown identities are registered with a default profile. Known
        identities must have signed the login message carrying their current
        nonce, which is then rotated.
        """
        is_valid, error_msg = self.signature_service.verify_wallet_signature(
            wallet_address=uid,
            message=proof.message,
            signature=proof.signature,
            public_key=proof.public_key
        )
        if not is_valid:
            logger.warning(
                "Signature rejected",
                extra={"uid": uid, "reason": error_msg}
            )
            raise PermissionDeniedError(
                "Invalid signature",
                details={"reason": error_msg},
                context={"operation": "verify", "uid": uid}
            )

        with collaborator_errors("verify", uid=uid):
            if not await self.identity_provider.exists(uid):
                return await self._register(uid)

            record = await self.store.get(USERS_COLLECTION, uid)
            if record is None:
                raise NotFoundError(
                    "Identity record not found",
                    context={"operation": "verify", "uid": uid}
                )

            stored_nonce = record.get("nonce")
            signed_nonce = proof.message.decode("utf-8", errors="replace")[-NONCE_LENGTH:]

            if stored_nonce is None or signed_nonce != str(stored_nonce):
                logger.warning(
                    "Signed nonce does not match stored nonce",
                    extra={"uid": uid, "has_nonce": stored_nonce is not None}
                )
                raise InvalidNonceError(
                    "Nonce mismatch",
                    context={"operation": "verify", "uid": uid}
                )

            rotated = await self.store.compare_and_set(
                USERS_COLLECTION,
                uid,
                "nonce",
                expected=stored_nonce,
                new_value=self._generate_nonce(previous=stored_nonce)
            )
            if not rotated:
                logger.warning("Nonce already consumed by a concurrent verify", extra={"uid": uid})
                raise InvalidNonceError(
                    "Nonce already used",
                    context={"operation": "verify", "uid": uid}
                )

            tokens = await self.identity_provider.create_session(uid)

        logger.info("Identity authenticated", extra={"uid": uid})
        return VerifyResult(status=VerifyStatus.AUTHENTICATED, uid=uid, tokens=tokens)

    async def _register(self, uid: str) -> VerifyResult:
        # The account marker is claimed first so only one concurrent signup writes the profile
        if not await self.identity_provider.register(uid):
            logger.warning("Concurrent signup lost the registration", extra={"uid": uid})
            raise InvalidNonceError(
                "Identity already registered",
                context={"operation": "verify", "uid": uid}
            )

        profile = UserProfile.default_for(uid, nonce=self._generate_nonce())
        await self.store.set(USERS_COLLECTION, uid, profile.to_record())
        tokens = await self.identity_provider.create_session(uid)

        logger.info("New identity registered and authenticated", extra={"uid": uid})
        return VerifyResult(status=VerifyStatus.NEW_USER_REGISTERED, uid=uid, tokens=tokens)
