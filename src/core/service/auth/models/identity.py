"""
Identity record layout in the `users` collection and the registration
marker in `accounts`.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.infra.config.settings import get_settings

settings = get_settings()

USERS_COLLECTION = "users"
ACCOUNTS_COLLECTION = "accounts"


class UserProfile(BaseModel):
    """Default profile written for a newly registered identity"""
    nonce: Optional[int] = None
    userName: str
    displayName: str = ""
    bio: str = ""
    personalLink: str = ""
    profileImage: str = Field(default_factory=lambda: settings.DEFAULT_PROFILE_IMAGE)
    coverImage: str = Field(default_factory=lambda: settings.DEFAULT_COVER_IMAGE)

    @classmethod
    def default_for(cls, uid: str, nonce: int) -> "UserProfile":
        return cls(userName=uid, nonce=nonce)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump()
