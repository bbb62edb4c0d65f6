from enum import Enum

from pydantic import BaseModel

from src.core.exceptions.base import InvalidArgumentError, NotFoundError, collaborator_errors
from src.core.logger.logger import get_logger
from src.core.service.auth.models.identity import USERS_COLLECTION
from src.core.service.auth.models.session import AuthenticatedSession
from src.infra.config.settings import get_settings
from src.infra.store.base import RecordStore

logger = get_logger(__name__)
settings = get_settings()


class UserNameStatus(str, Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class UserNameResult(BaseModel):
    status: UserNameStatus
    user_name: str


class ProfileService:

    def __init__(self, store: RecordStore):
        self.store = store

    def _is_valid_user_name(self, uid: str, user_name: str) -> bool:
        # The wallet address itself is always allowed, it is the default user name
        if user_name == uid:
            return True
        return settings.USERNAME_MIN_LENGTH <= len(user_name) <= settings.USERNAME_MAX_LENGTH

    async def edit_user_name(self, session: AuthenticatedSession, user_name: str) -> UserNameResult:
        uid = session.user_id

        if not isinstance(user_name, str) or not self._is_valid_user_name(uid, user_name):
            raise InvalidArgumentError(
                f"User name must be between {settings.USERNAME_MIN_LENGTH} "
                f"and {settings.USERNAME_MAX_LENGTH} characters",
                context={"operation": "edit_user_name", "uid": uid}
            )

        with collaborator_errors("edit_user_name", uid=uid):
            record = await self.store.get(USERS_COLLECTION, uid)
            if record is None:
                raise NotFoundError(
                    "Identity record not found",
                    context={"operation": "edit_user_name", "uid": uid}
                )

            if record.get("userName") == user_name:
                return UserNameResult(status=UserNameStatus.UNCHANGED, user_name=user_name)

            owners = await self.store.query(USERS_COLLECTION, "userName", user_name)
            if any(owner_id != uid for owner_id, _ in owners):
                raise InvalidArgumentError(
                    f"User name {user_name} is already taken",
                    context={"operation": "edit_user_name", "uid": uid}
                )

            await self.store.set(USERS_COLLECTION, uid, {"userName": user_name}, merge=True)

        logger.info("User name changed", extra={"uid": uid, "user_name": user_name})
        return UserNameResult(status=UserNameStatus.CHANGED, user_name=user_name)
