"""HTTP tests through the ASGI app."""

import pytest

from conftest import PASSWORD, auth_header


async def _register(client, email, name):
    response = await client.post(
        "/auth/register", json={"email": email, "password": PASSWORD, "name": name}
    )
    assert response.status_code == 201
    return response.json()


async def _create_collection(client, owner, **overrides):
    payload = {"name": "Test Collection", "description": "Test", "stocks": 5, "price": 1000.0}
    payload.update(overrides)
    response = await client.post("/collections", json=payload, headers=auth_header(owner))
    assert response.status_code == 201
    return response.json()


async def _place_bid(client, bidder, collection_id, price):
    response = await client.post(
        "/bids",
        json={"collectionId": collection_id, "price": price},
        headers=auth_header(bidder),
    )
    assert response.status_code == 201
    return response.json()


async def test_root_and_health(client):
    root = await client.get("/")
    assert root.json()["name"] == "Bidboard"

    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"


class TestAuthEndpoints:

    async def test_register_login_profile_logout(self, client):
        registered = await _register(client, "carol@example.com", "Carol")

        login = await client.post(
            "/auth/login", json={"email": "carol@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200
        token = login.json()

        profile = await client.get("/auth/profile", headers=auth_header(token))
        assert profile.json()["user_id"] == registered["user"]["user_id"]

        logout = await client.post("/auth/logout", headers=auth_header(token))
        assert logout.status_code == 200

        profile = await client.get("/auth/profile", headers=auth_header(token))
        assert profile.status_code == 401

    async def test_duplicate_register(self, client):
        await _register(client, "carol@example.com", "Carol")

        response = await client.post(
            "/auth/register",
            json={"email": "carol@example.com", "password": PASSWORD, "name": "Carol"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "CONFLICT"

    async def test_bad_credentials(self, client):
        await _register(client, "carol@example.com", "Carol")

        response = await client.post(
            "/auth/login", json={"email": "carol@example.com", "password": "nope-nope"}
        )
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_create_user_without_session(self, client):
        payload = {"email": "dave@example.com", "password": PASSWORD, "name": "Dave"}

        created = await client.post("/users", json=payload)

        assert created.status_code == 201
        body = created.json()
        assert body["email"] == "dave@example.com"
        assert "access_token" not in body
        assert "password_hash" not in body

        login = await client.post(
            "/auth/login", json={"email": "dave@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200

        duplicate = await client.post("/users", json=payload)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "CONFLICT"

    async def test_malformed_email(self, client):
        response = await client.post(
            "/auth/register", json={"email": "not-an-email", "password": PASSWORD, "name": "X"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestErrorMapping:

    async def test_mutation_without_token(self, client):
        response = await client.post(
            "/collections", json={"name": "x", "stocks": 1, "price": 1.0}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHENTICATED"
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.parametrize("path", [
        "/collections",
        "/collections/col_any",
        "/bids?collectionId=col_any",
        "/bids/bid_any",
    ])
    async def test_collection_and_bid_reads_need_token(self, client, path):
        response = await client.get(path)

        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHENTICATED"

    async def test_user_reads_are_public(self, client):
        alice = await _register(client, "alice@example.com", "Alice")

        assert (await client.get("/users")).status_code == 200
        assert (await client.get(f"/users/{alice['user']['user_id']}")).status_code == 200

    async def test_invalid_token(self, client):
        response = await client.post(
            "/collections",
            json={"name": "x", "stocks": 1, "price": 1.0},
            headers={"Authorization": "Bearer bogus"},
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("payload", [
        {"name": "x", "stocks": 1, "price": 0},
        {"name": "x", "stocks": -1, "price": 5.0},
        {"name": "", "stocks": 1, "price": 5.0},
        {"stocks": 1, "price": 5.0},
    ])
    async def test_invalid_collection_body(self, client, payload):
        owner = await _register(client, "owner@example.com", "Owner")

        response = await client.post("/collections", json=payload, headers=auth_header(owner))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["errors"]

    async def test_not_found(self, client):
        caller = await _register(client, "carol@example.com", "Carol")
        for path in ("/collections/col_missing", "/bids/bid_missing", "/users/usr_missing"):
            response = await client.get(path, headers=auth_header(caller))
            assert response.status_code == 404
            assert response.json() == {"error": "NOT_FOUND", "detail": response.json()["detail"]}

    async def test_bids_require_collection_id(self, client):
        caller = await _register(client, "carol@example.com", "Carol")
        response = await client.get("/bids", headers=auth_header(caller))
        assert response.status_code == 400


async def test_bidding_flow_over_http(client):
    owner = await _register(client, "owner@example.com", "Owner")
    alice = await _register(client, "alice@example.com", "Alice")
    bob = await _register(client, "bob@example.com", "Bob")

    collection = await _create_collection(client, owner)
    cid = collection["collection_id"]

    own_bid = await client.post(
        "/bids", json={"collectionId": cid, "price": 1100.0}, headers=auth_header(owner)
    )
    assert own_bid.status_code == 400
    assert own_bid.json()["error"] == "VALIDATION_ERROR"

    alice_bid = await _place_bid(client, alice, cid, 1200.0)
    bob_bid = await _place_bid(client, bob, cid, 1300.0)

    duplicate = await client.post(
        "/bids", json={"collectionId": cid, "price": 1250.0}, headers=auth_header(alice)
    )
    assert duplicate.status_code == 400

    forbidden = await client.post(
        f"/bids/accept/{cid}/{alice_bid['bid_id']}", headers=auth_header(bob)
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "FORBIDDEN"

    accepted = await client.post(
        f"/bids/accept/{cid}/{alice_bid['bid_id']}", headers=auth_header(owner)
    )
    assert accepted.status_code == 200
    assert accepted.json()["rejected_count"] == 1

    listing = await client.get(
        "/bids", params={"collectionId": cid}, headers=auth_header(owner)
    )
    statuses = {b["bid_id"]: b["status"] for b in listing.json()["bids"]}
    assert statuses == {alice_bid["bid_id"]: "accepted", bob_bid["bid_id"]: "rejected"}

    late_update = await client.patch(
        f"/bids/{bob_bid['bid_id']}", json={"price": 1400.0}, headers=auth_header(bob)
    )
    assert late_update.status_code == 400
    assert late_update.json()["error"] == "INVALID_STATE"

    late_cancel = await client.delete(f"/bids/{alice_bid['bid_id']}", headers=auth_header(alice))
    assert late_cancel.status_code == 400
    assert late_cancel.json()["error"] == "INVALID_STATE"


async def test_update_and_cancel_pending_bid(client):
    owner = await _register(client, "owner@example.com", "Owner")
    alice = await _register(client, "alice@example.com", "Alice")
    cid = (await _create_collection(client, owner))["collection_id"]
    bid = await _place_bid(client, alice, cid, 1200.0)

    updated = await client.patch(
        f"/bids/{bid['bid_id']}", json={"price": 1250.0}, headers=auth_header(alice)
    )
    assert updated.json()["price"] == 1250.0

    by_owner = await client.delete(f"/bids/{bid['bid_id']}", headers=auth_header(owner))
    assert by_owner.status_code == 403

    cancelled = await client.delete(f"/bids/{bid['bid_id']}", headers=auth_header(alice))
    assert cancelled.status_code == 200
    assert (await client.get(f"/bids/{bid['bid_id']}", headers=auth_header(alice))).status_code == 404


async def test_reject_single_bid(client):
    owner = await _register(client, "owner@example.com", "Owner")
    alice = await _register(client, "alice@example.com", "Alice")
    bob = await _register(client, "bob@example.com", "Bob")
    cid = (await _create_collection(client, owner))["collection_id"]
    alice_bid = await _place_bid(client, alice, cid, 1200.0)
    bob_bid = await _place_bid(client, bob, cid, 1300.0)

    response = await client.post(
        f"/bids/reject/{cid}/{alice_bid['bid_id']}", headers=auth_header(owner)
    )

    assert response.status_code == 200
    assert response.json()["rejected_bid"]["status"] == "rejected"
    assert (await client.get(f"/bids/{bob_bid['bid_id']}", headers=auth_header(bob))).json()["status"] == "pending"


async def test_collection_endpoints(client):
    owner = await _register(client, "owner@example.com", "Owner")
    alice = await _register(client, "alice@example.com", "Alice")
    collection = await _create_collection(client, owner)
    cid = collection["collection_id"]
    bid = await _place_bid(client, alice, cid, 1200.0)

    listing = await client.get("/collections", headers=auth_header(alice))
    assert listing.json()["count"] == 1
    assert listing.json()["collections"][0]["bids"][0]["bid_id"] == bid["bid_id"]

    forbidden = await client.patch(
        f"/collections/{cid}", json={"name": "Mine"}, headers=auth_header(alice)
    )
    assert forbidden.status_code == 403

    patched = await client.patch(
        f"/collections/{cid}", json={"stocks": 2}, headers=auth_header(owner)
    )
    assert patched.json()["stocks"] == 2

    deleted = await client.delete(f"/collections/{cid}", headers=auth_header(owner))
    assert deleted.status_code == 200
    assert deleted.json()["deleted_bids"] == 1

    assert (await client.get(f"/collections/{cid}", headers=auth_header(alice))).status_code == 404
    assert (await client.get(f"/bids/{bid['bid_id']}", headers=auth_header(alice))).status_code == 404


async def test_user_endpoints(client):
    alice = await _register(client, "alice@example.com", "Alice")
    bob = await _register(client, "bob@example.com", "Bob")
    alice_id = alice["user"]["user_id"]

    users = await client.get("/users")
    assert users.json()["count"] == 2

    forbidden = await client.patch(
        f"/users/{alice_id}", json={"name": "Hacked"}, headers=auth_header(bob)
    )
    assert forbidden.status_code == 403

    patched = await client.patch(
        f"/users/{alice_id}", json={"name": "Alice B."}, headers=auth_header(alice)
    )
    assert patched.json()["name"] == "Alice B."

    deleted = await client.delete(f"/users/{alice_id}", headers=auth_header(alice))
    assert deleted.status_code == 200
    assert (await client.get(f"/users/{alice_id}")).status_code == 404
