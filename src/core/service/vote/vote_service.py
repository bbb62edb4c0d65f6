from typing import Any, Dict, Optional

from src.core.exceptions.base import (
    AlreadyVotedError,
    InvalidArgumentError,
    NotFoundError,
    collaborator_errors
)
from src.core.logger.logger import get_logger
from src.core.service.access.token_gate import AccessPolicy, require_access
from src.core.service.auth.models.identity import USERS_COLLECTION
from src.core.service.auth.models.session import AuthenticatedSession
from src.core.service.holdings.models import HoldingsSnapshot
from src.core.service.vote.models import (
    DOWN_VOTES_FIELD,
    UP_VOTES_FIELD,
    ContentKind,
    ContentRef,
    VoteDirection,
    VoteResult
)
from src.infra.store.base import RecordStore

logger = get_logger(__name__)


class VoteService:
    """
    Up/down votes on posts and comments, gated by the content's token policy.

    A user id is in at most one of the two vote sets. Moving a vote is a single
    atomic store operation (add to one set, remove from the other).
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def _load_content(self, ref: ContentRef) -> Dict[str, Any]:
        record = await self.store.get(ref.kind.collection, ref.id)
        if record is None:
            raise NotFoundError(
                f"Provided {ref.kind.value} id {ref.id} does not exist",
                context={"operation": "vote", "content_id": ref.id, "kind": ref.kind.value}
            )
        return record

    async def _resolve_policy(self, ref: ContentRef, content: Dict[str, Any]) -> Optional[AccessPolicy]:
        policy = AccessPolicy.from_record(content)
        if policy is not None or ref.kind != ContentKind.COMMENT:
            return policy

        post_id = content.get("postId")
        if not post_id:
            return None
        parent = await self._load_content(ContentRef(kind=ContentKind.POST, id=post_id))
        return AccessPolicy.from_record(parent)

    async def vote(self, direction: VoteDirection, session: AuthenticatedSession, ref: ContentRef) -> VoteResult:
        uid = session.user_id

        if not isinstance(ref.id, str) or not ref.id.strip():
            raise InvalidArgumentError(
                f"Provided {ref.kind.value} id is not a valid string",
                context={"operation": "vote", "uid": uid}
            )

        if direction == VoteDirection.UP:
            same_field, other_field = UP_VOTES_FIELD, DOWN_VOTES_FIELD
        else:
            same_field, other_field = DOWN_VOTES_FIELD, UP_VOTES_FIELD

        with collaborator_errors("vote", uid=uid, content_id=ref.id, kind=ref.kind.value):
            user = await self.store.get(USERS_COLLECTION, uid)
            if user is None:
                raise NotFoundError(
                    "Invalid user credentials",
                    context={"operation": "vote", "uid": uid}
                )

            content = await self._load_content(ref)

            policy = await self._resolve_policy(ref, content)
            if policy is not None:
                require_access(HoldingsSnapshot.from_record(user), policy, uid=uid)

            if uid in (content.get(same_field) or []):
                raise AlreadyVotedError(
                    f"User {uid} has already voted {direction.value} on {ref.kind.value} {ref.id}",
                    context={"operation": "vote", "uid": uid, "content_id": ref.id}
                )

            await self.store.update_arrays(
                ref.kind.collection,
                ref.id,
                union={same_field: uid},
                remove={other_field: uid}
            )

        logger.info(
            "Vote recorded",
            extra={
                "uid": uid,
                "content_id": ref.id,
                "kind": ref.kind.value,
                "direction": direction.value
            }
        )
        return VoteResult(
            content_id=ref.id,
            kind=ref.kind,
            direction=direction,
            user_id=uid,
            info=f"{direction.value.capitalize()} vote for {ref.kind.value} {ref.id} from user {uid} success"
        )
