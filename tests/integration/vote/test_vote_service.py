import asyncio
from unittest.mock import patch

import pytest

from src.core.exceptions.base import (
    AlreadyVotedError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError
)
from src.core.service.auth.models.identity import USERS_COLLECTION
from src.core.service.vote.models import ContentKind, ContentRef, VoteDirection
from src.core.service.vote.vote_service import VoteService
from src.infra.store.base import StoreUnavailableError

UID = "voter"


def holder(amount):
    return {"tokensOwnedByMint": {"MINT": {"mint": "MINT", "isFungible": True, "amountOwned": amount}}}


def post(minimum=5, **fields):
    return {"accessId": "MINT", "minimumAccessBalance": minimum, "upVoteUserIds": [], "downVoteUserIds": [], **fields}


POST = ContentRef(kind=ContentKind.POST, id="post-1")
COMMENT = ContentRef(kind=ContentKind.COMMENT, id="comment-1")


@pytest.fixture
async def vote_service(store):
    await store.set(USERS_COLLECTION, UID, holder(10))
    await store.set("posts", "post-1", post())
    return VoteService(store)


@pytest.mark.asyncio
async def test_up_then_down_moves_vote(vote_service, store, session_for):
    await vote_service.vote(VoteDirection.UP, session_for(UID), POST)
    record = await store.get("posts", "post-1")
    assert record["upVoteUserIds"] == [UID]
    assert record["downVoteUserIds"] == []

    result = await vote_service.vote(VoteDirection.DOWN, session_for(UID), POST)

    record = await store.get("posts", "post-1")
    assert record["upVoteUserIds"] == []
    assert record["downVoteUserIds"] == [UID]
    assert result.direction == VoteDirection.DOWN


@pytest.mark.asyncio
async def test_repeated_vote_is_rejected(vote_service, store, session_for):
    await vote_service.vote(VoteDirection.UP, session_for(UID), POST)

    with pytest.raises(AlreadyVotedError):
        await vote_service.vote(VoteDirection.UP, session_for(UID), POST)

    record = await store.get("posts", "post-1")
    assert record["upVoteUserIds"] == [UID]
    assert record["downVoteUserIds"] == []


@pytest.mark.asyncio
async def test_vote_is_one_atomic_mutation(vote_service, store, session_for):
    with patch.object(store, "update_arrays", wraps=store.update_arrays) as update_arrays:
        await vote_service.vote(VoteDirection.DOWN, session_for(UID), POST)

    update_arrays.assert_awaited_once_with(
        "posts",
        "post-1",
        union={"downVoteUserIds": UID},
        remove={"upVoteUserIds": UID}
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("content_id", ["", "   "])
async def test_invalid_content_id_checked_first(store, session_for, content_id):
    # No user record exists either; the argument check wins
    with pytest.raises(InvalidArgumentError):
        await VoteService(store).vote(VoteDirection.UP, session_for("ghost"), ContentRef(kind=ContentKind.POST, id=content_id))


@pytest.mark.asyncio
async def test_missing_user(vote_service, session_for):
    with pytest.raises(NotFoundError):
        await vote_service.vote(VoteDirection.UP, session_for("ghost"), POST)


@pytest.mark.asyncio
async def test_missing_content(vote_service, session_for):
    with pytest.raises(NotFoundError):
        await vote_service.vote(VoteDirection.UP, session_for(UID), ContentRef(kind=ContentKind.POST, id="nope"))


@pytest.mark.asyncio
async def test_gate_denial(vote_service, store, session_for):
    await store.set("posts", "post-2", post(minimum=10))

    with pytest.raises(PermissionDeniedError):
        await vote_service.vote(VoteDirection.UP, session_for(UID), ContentRef(kind=ContentKind.POST, id="post-2"))

    assert (await store.get("posts", "post-2"))["upVoteUserIds"] == []


@pytest.mark.asyncio
async def test_gate_checked_before_already_voted(vote_service, store, session_for):
    await store.set("posts", "post-2", post(minimum=10, upVoteUserIds=[UID]))

    with pytest.raises(PermissionDeniedError):
        await vote_service.vote(VoteDirection.UP, session_for(UID), ContentRef(kind=ContentKind.POST, id="post-2"))


@pytest.mark.asyncio
async def test_nft_collection_gate(store, session_for):
    await store.set(USERS_COLLECTION, UID, {
        "tokensOwnedByCollection": {
            "1234": {"collectionId": "1234", "symbol": "APE", "creatorMints": ["c"], "tokensOwned": ["m1", "m2"]}
        }
    })
    await store.set("posts", "nft-post", {"accessId": "1234", "minimumAccessBalance": 1,
                                          "upVoteUserIds": [], "downVoteUserIds": []})

    await VoteService(store).vote(VoteDirection.UP, session_for(UID), ContentRef(kind=ContentKind.POST, id="nft-post"))

    assert (await store.get("posts", "nft-post"))["upVoteUserIds"] == [UID]


@pytest.mark.asyncio
async def test_comment_uses_parent_post_policy(vote_service, store, session_for):
    await store.set("posts", "strict-post", post(minimum=20))
    await store.set("comments", "comment-1", {"postId": "strict-post", "upVoteUserIds": [], "downVoteUserIds": []})

    with pytest.raises(PermissionDeniedError):
        await vote_service.vote(VoteDirection.UP, session_for(UID), COMMENT)

    await store.set("comments", "comment-1", {"postId": "post-1", "upVoteUserIds": [], "downVoteUserIds": []})
    await vote_service.vote(VoteDirection.UP, session_for(UID), COMMENT)
    assert (await store.get("comments", "comment-1"))["upVoteUserIds"] == [UID]


@pytest.mark.asyncio
async def test_comment_own_policy_wins(vote_service, store, session_for):
    await store.set("posts", "strict-post", post(minimum=20))
    await store.set("comments", "comment-1", {"postId": "strict-post", "accessId": "MINT", "minimumAccessBalance": 1,
                                              "upVoteUserIds": [], "downVoteUserIds": []})

    await vote_service.vote(VoteDirection.DOWN, session_for(UID), COMMENT)

    assert (await store.get("comments", "comment-1"))["downVoteUserIds"] == [UID]


@pytest.mark.asyncio
async def test_comment_with_missing_parent(vote_service, store, session_for):
    await store.set("comments", "comment-1", {"postId": "deleted-post", "upVoteUserIds": [], "downVoteUserIds": []})

    with pytest.raises(NotFoundError):
        await vote_service.vote(VoteDirection.UP, session_for(UID), COMMENT)


@pytest.mark.asyncio
async def test_concurrent_votes_from_distinct_users(store, session_for):
    users = [f"user-{i}" for i in range(25)]
    for uid in users:
        await store.set(USERS_COLLECTION, uid, holder(10))
    await store.set("posts", "post-1", post())
    service = VoteService(store)

    await asyncio.gather(*(service.vote(VoteDirection.UP, session_for(uid), POST) for uid in users))

    record = await store.get("posts", "post-1")
    assert sorted(record["upVoteUserIds"]) == sorted(users)
    assert record["downVoteUserIds"] == []


@pytest.mark.asyncio
async def test_store_failure_is_unavailable(vote_service, store, session_for):
    with patch.object(store, "update_arrays", side_effect=StoreUnavailableError("timeout")):
        with pytest.raises(UnavailableError) as exc_info:
            await vote_service.vote(VoteDirection.UP, session_for(UID), POST)

    assert exc_info.value.context["content_id"] == "post-1"
    assert exc_info.value.details["cause"] == "timeout"
