"""MongoStore tests. Need a replica set, e.g.

    BIDBOARD_TEST_MONGODB_URI="mongodb://localhost:27017/?replicaSet=rs0" pytest -m mongo
"""

import os
import uuid

import pytest

from bidboard.bidding import accept_bid, get_bid, submit_bid
from bidboard.catalog import create_collection, delete_collection
from bidboard.errors import InvalidStateError, NotFoundError, ValidationError
from bidboard.models import MarketBid
from bidboard.store.mongo import MongoMarketStore
from bidboard.users import register_user

from conftest import PASSWORD

MONGODB_URI = os.environ.get("BIDBOARD_TEST_MONGODB_URI")

pytestmark = [
    pytest.mark.mongo,
    pytest.mark.skipif(not MONGODB_URI, reason="BIDBOARD_TEST_MONGODB_URI not set"),
]


def uid(registration):
    return registration["user"]["user_id"]


@pytest.fixture
async def mongo_store():
    database = f"bidboard_test_{uuid.uuid4().hex[:8]}"
    store = MongoMarketStore(MONGODB_URI, database)
    await store.init()
    yield store
    await store.client.drop_database(database)
    await store.close()


@pytest.fixture
async def market(mongo_store):
    owner = await register_user(mongo_store, "owner@example.com", PASSWORD, "Owner")
    alice = await register_user(mongo_store, "alice@example.com", PASSWORD, "Alice")
    bob = await register_user(mongo_store, "bob@example.com", PASSWORD, "Bob")
    collection = await create_collection(
        mongo_store, owner_id=uid(owner), name="Prints", stocks=5, price=1000.0
    )
    return owner, alice, bob, collection["collection_id"]


async def test_ping(mongo_store):
    assert await mongo_store.ping()


async def test_accept_rejects_siblings_in_one_transaction(mongo_store, market):
    owner, alice, bob, cid = market
    alice_bid = await submit_bid(mongo_store, uid(alice), cid, 1200.0)
    bob_bid = await submit_bid(mongo_store, uid(bob), cid, 1300.0)

    result = await accept_bid(mongo_store, cid, alice_bid["bid_id"], uid(owner))

    assert result["rejected_count"] == 1
    assert (await get_bid(mongo_store, bob_bid["bid_id"]))["status"] == "rejected"

    with pytest.raises(InvalidStateError):
        await mongo_store.accept_bid(cid, bob_bid["bid_id"])


async def test_unique_pending_index(mongo_store, market):
    owner, alice, bob, cid = market
    await submit_bid(mongo_store, uid(alice), cid, 1200.0)

    duplicate = MarketBid(bid_id="bid_dupe0001", collection_id=cid, user_id=uid(alice), price=1300.0)
    with pytest.raises(ValidationError):
        await mongo_store.create_bid(duplicate.model_dump())


async def test_bid_needs_live_collection_and_bidder(mongo_store, market):
    owner, alice, bob, cid = market

    orphan = MarketBid(bid_id="bid_orphan01", collection_id="col_missing", user_id=uid(alice), price=10.0)
    with pytest.raises(NotFoundError, match="Collection"):
        await mongo_store.create_bid(orphan.model_dump())

    ghost = MarketBid(bid_id="bid_ghost001", collection_id=cid, user_id="usr_missing", price=10.0)
    with pytest.raises(NotFoundError, match="User"):
        await mongo_store.create_bid(ghost.model_dump())

    assert await mongo_store.get_bids_for_collection(cid) == []
    assert (await mongo_store.get_collection(cid))["last_bid_at"] is None


async def test_delete_collection_cascade(mongo_store, market):
    owner, alice, bob, cid = market
    bid = await submit_bid(mongo_store, uid(alice), cid, 1200.0)

    result = await delete_collection(mongo_store, cid, uid(owner))

    assert result["deleted_bids"] == 1
    with pytest.raises(NotFoundError):
        await get_bid(mongo_store, bid["bid_id"])
    assert await mongo_store.delete_collection_cascade(cid) is None


async def test_delete_user_cascade(mongo_store, market):
    owner, alice, bob, cid = market
    await submit_bid(mongo_store, uid(alice), cid, 1200.0)

    counts = await mongo_store.delete_user_cascade(uid(owner))

    assert counts == {"deleted_bids": 1, "deleted_collections": 1, "deleted_sessions": 1}
    assert await mongo_store.get_user(uid(owner)) is None
