from enum import Enum

from pydantic import BaseModel


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class ContentKind(str, Enum):
    POST = "post"
    COMMENT = "comment"

    @property
    def collection(self) -> str:
        return f"{self.value}s"


UP_VOTES_FIELD = "upVoteUserIds"
DOWN_VOTES_FIELD = "downVoteUserIds"


class ContentRef(BaseModel):
    kind: ContentKind
    id: str


class VoteResult(BaseModel):
    content_id: str
    kind: ContentKind
    direction: VoteDirection
    user_id: str
    info: str
