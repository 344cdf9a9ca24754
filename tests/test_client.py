"""BidboardClient against the ASGI app."""

import httpx
import pytest

from bidboard.api import app
from bidboard.client import BidboardClient
from bidboard.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from bidboard.store import get_store

from conftest import PASSWORD


@pytest.fixture
def transport(store):
    app.dependency_overrides[get_store] = lambda: store
    yield httpx.ASGITransport(app=app)
    app.dependency_overrides.clear()


def make_client(transport):
    return BidboardClient("http://test", transport=transport)


async def test_full_flow(transport):
    async with make_client(transport) as owner, \
            make_client(transport) as alice, \
            make_client(transport) as bob:
        await owner.register("owner@example.com", PASSWORD, "Owner")
        await alice.register("alice@example.com", PASSWORD, "Alice")
        await bob.register("bob@example.com", PASSWORD, "Bob")

        collection = await owner.create_collection("Prints", stocks=5, price=1000.0)
        cid = collection["collection_id"]

        alice_bid = await alice.place_bid(cid, 1200.0)
        bob_bid = await bob.place_bid(cid, 1300.0)

        with pytest.raises(AuthorizationError):
            await bob.accept_bid(cid, alice_bid["bid_id"])

        result = await owner.accept_bid(cid, alice_bid["bid_id"])
        assert result["rejected_count"] == 1

        with pytest.raises(InvalidStateError):
            await bob.update_bid(bob_bid["bid_id"], 1400.0)

        bids = await owner.list_bids(cid)
        assert {b["status"] for b in bids} == {"accepted", "rejected"}


async def test_error_mapping(transport):
    async with make_client(transport) as client:
        with pytest.raises(UnauthenticatedError):
            await client.create_collection("Prints", stocks=1, price=1.0)

        await client.register("owner@example.com", PASSWORD, "Owner")

        with pytest.raises(NotFoundError):
            await client.get_collection("col_missing")

        collection = await client.create_collection("Prints", stocks=1, price=1.0)
        with pytest.raises(ValidationError, match="own collection"):
            await client.place_bid(collection["collection_id"], 5.0)


async def test_logout_drops_token(transport):
    async with make_client(transport) as client:
        await client.register("owner@example.com", PASSWORD, "Owner")
        assert (await client.profile())["email"] == "owner@example.com"

        await client.logout()

        assert client.token is None
        with pytest.raises(UnauthenticatedError):
            await client.profile()


async def test_collection_crud(transport):
    async with make_client(transport) as client:
        await client.register("owner@example.com", PASSWORD, "Owner")
        collection = await client.create_collection("Prints", stocks=1, price=1.0, description="x")

        updated = await client.update_collection(collection["collection_id"], price=2.5)
        assert updated["price"] == 2.5
        assert [c["collection_id"] for c in await client.list_collections()] == [
            collection["collection_id"]
        ]

        deleted = await client.delete_collection(collection["collection_id"])
        assert deleted["deleted_bids"] == 0
        assert await client.list_collections() == []
