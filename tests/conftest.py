"""Shared fixtures: an in-memory store, three users and an ASGI client."""

import os

os.environ["BIDBOARD_STORAGE_BACKEND"] = "memory"
os.environ["BIDBOARD_PASSWORD_HASH_ITERATIONS"] = "1000"

import httpx
import pytest

from bidboard.config import get_settings

get_settings.cache_clear()

from bidboard.api import app
from bidboard.auth import AuthenticatedUser
from bidboard.catalog import create_collection
from bidboard.store import MemoryMarketStore, get_store
from bidboard.users import register_user

PASSWORD = "password123"


def as_caller(registration: dict) -> AuthenticatedUser:
    user = registration["user"]
    return AuthenticatedUser(
        user_id=user["user_id"],
        email=user["email"],
        name=user["name"],
        role=user["role"],
        session_token=registration["access_token"],
    )


def auth_header(registration: dict) -> dict:
    return {"Authorization": f"Bearer {registration['access_token']}"}


@pytest.fixture
def store():
    return MemoryMarketStore()


@pytest.fixture
async def owner(store):
    return await register_user(store, "owner@example.com", PASSWORD, "Collection Owner")


@pytest.fixture
async def alice(store):
    return await register_user(store, "alice@example.com", PASSWORD, "Alice Bidder")


@pytest.fixture
async def bob(store):
    return await register_user(store, "bob@example.com", PASSWORD, "Bob Bidder")


@pytest.fixture
async def collection(store, owner):
    return await create_collection(
        store,
        owner_id=owner["user"]["user_id"],
        name="Test Collection",
        description="Test Description",
        stocks=5,
        price=1000.0,
    )


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
