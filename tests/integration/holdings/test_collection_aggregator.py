import asyncio

import pytest

from src.core.service.holdings.collection_aggregator import (
    CollectionAggregator,
    _legacy_hash,
    collection_id
)
from src.core.service.holdings.models import RawTokenHolding
from src.infra.chain.base import ChainDataError


def test_collection_id_ignores_creator_order():
    assert collection_id("X", ["b", "a"], "legacy") == collection_id("X", ["a", "b"], "legacy")
    assert collection_id("X", ["b", "a"], "digest") == collection_id("X", ["a", "b"], "digest")


def test_collection_id_depends_on_symbol_and_creators():
    base = collection_id("X", ["a", "b"], "legacy")
    assert collection_id("Y", ["a", "b"], "legacy") != base
    assert collection_id("X", ["a", "c"], "legacy") != base
    assert collection_id("X", ["a"], "legacy") != base


def test_legacy_scheme_matches_existing_records():
    # "A" + "0" creators
    assert collection_id("A", [], "legacy") == "2063"
    assert _legacy_hash("hello") == "99162322"
    # Wraps to the most negative 32-bit value; absolute value is taken
    assert _legacy_hash("polygenelubricants") == "2147483648"
    assert _legacy_hash("") == "0"


def test_digest_scheme_is_64_bit_hex():
    cid = collection_id("APE", ["c1", "c2"], "digest")
    assert len(cid) == 16
    int(cid, 16)


def test_unknown_scheme():
    with pytest.raises(ValueError):
        CollectionAggregator("md5")


def test_classification():
    holdings = [
        RawTokenHolding(mint="nft", amount_owned=1, decimals=0, raw_amount=1, supply=1),
        RawTokenHolding(mint="nft-unknown-supply", amount_owned=1, decimals=0, raw_amount=1),
        RawTokenHolding(mint="semi", amount_owned=1, decimals=0, raw_amount=1, supply=100),
        RawTokenHolding(mint="usdc", amount_owned=1, decimals=6, raw_amount=1_000_000),
        RawTokenHolding(mint="empty", amount_owned=0, decimals=0, raw_amount=0, supply=1),
    ]

    fungible, non_fungible = CollectionAggregator.classify(holdings)

    assert [h.mint for h in fungible] == ["semi", "usdc"]
    assert [h.mint for h in non_fungible] == ["nft", "nft-unknown-supply"]


@pytest.mark.asyncio
async def test_aggregate_builds_snapshot(make_chain, make_metadata):
    chain = make_chain(metadata={
        "m1": make_metadata("m1", "APE", ["c2", "c1"]),
        "m2": make_metadata("m2", "APE", ["c1", "c2"]),
        "m3": make_metadata("m3", "DOG", ["c9"]),
    })
    holdings = [
        RawTokenHolding(mint="usdc", amount_owned=12.5, decimals=6, raw_amount=12_500_000),
        RawTokenHolding(mint="dust", amount_owned=0, decimals=6, raw_amount=0),
        RawTokenHolding(mint="m1", amount_owned=1, decimals=0, raw_amount=1),
        RawTokenHolding(mint="m2", amount_owned=1, decimals=0, raw_amount=1),
        RawTokenHolding(mint="m1", amount_owned=1, decimals=0, raw_amount=1),
        RawTokenHolding(mint="m3", amount_owned=1, decimals=0, raw_amount=1),
        RawTokenHolding(mint="broken", amount_owned=1, decimals=0, raw_amount=1),
    ]

    result = await CollectionAggregator("legacy").aggregate(holdings, chain.get_nft_metadata, native_lamports=2_500_000_000)
    snapshot = result.snapshot

    assert set(snapshot.fungible) == {"usdc", "SOL"}
    assert snapshot.fungible["usdc"].amountOwned == 12.5
    assert snapshot.fungible["SOL"].amountOwned == 2.5

    ape_id = collection_id("APE", ["c1", "c2"], "legacy")
    dog_id = collection_id("DOG", ["c9"], "legacy")
    assert set(snapshot.nft_collections) == {ape_id, dog_id}
    assert snapshot.nft_collections[ape_id].tokensOwned == ["m1", "m2"]
    assert snapshot.nft_collections[ape_id].creatorMints == ["c1", "c2"]
    assert snapshot.nft_collections[ape_id].symbol == "APE"
    assert snapshot.nft_collections[dog_id].tokensOwned == ["m3"]

    assert [failure.mint for failure in result.metadata_failures] == ["broken"]
    # Each distinct mint is fetched once
    assert sorted(chain.metadata_calls) == ["broken", "m1", "m2", "m3"]


@pytest.mark.asyncio
async def test_metadata_fetches_run_concurrently(make_metadata):
    mints = [f"m{i}" for i in range(5)]
    started = []
    all_started = asyncio.Event()

    async def fetch(mint):
        started.append(mint)
        if len(started) == len(mints):
            all_started.set()
        await all_started.wait()
        return make_metadata(mint, "SYM", ["c"])

    holdings = [RawTokenHolding(mint=m, amount_owned=1, decimals=0, raw_amount=1) for m in mints]

    result = await asyncio.wait_for(CollectionAggregator("legacy").aggregate(holdings, fetch), timeout=2)

    collection = next(iter(result.snapshot.nft_collections.values()))
    assert collection.tokensOwned == mints


@pytest.mark.asyncio
async def test_all_metadata_failures_degrade_to_empty_collections():
    async def fetch(mint):
        raise ChainDataError("rpc down")

    holdings = [RawTokenHolding(mint="m1", amount_owned=1, decimals=0, raw_amount=1)]

    result = await CollectionAggregator("digest").aggregate(holdings, fetch)

    assert result.snapshot.nft_collections == {}
    assert result.metadata_failures[0].error == "rpc down"
    assert "SOL" not in result.snapshot.fungible


@pytest.mark.asyncio
async def test_cancelled_metadata_fetch_is_recorded_as_failure(make_metadata):
    async def fetch(mint):
        if mint == "cancelled":
            raise asyncio.CancelledError()
        return make_metadata(mint, "APE", ["c1"])

    holdings = [
        RawTokenHolding(mint="m1", amount_owned=1, decimals=0, raw_amount=1),
        RawTokenHolding(mint="cancelled", amount_owned=1, decimals=0, raw_amount=1),
    ]

    result = await CollectionAggregator("legacy").aggregate(holdings, fetch)

    assert [failure.mint for failure in result.metadata_failures] == ["cancelled"]
    assert result.snapshot.nft_collections[collection_id("APE", ["c1"], "legacy")].tokensOwned == ["m1"]
