"""Persistence backends."""

from typing import Optional

from ..config import get_settings
from .base import MarketStore, serialize_doc
from .memory import MemoryMarketStore
from .mongo import MongoMarketStore

_store: Optional[MarketStore] = None


def create_store(backend: str | None = None) -> MarketStore:
    """Build the store named by ``backend`` (defaults to settings)."""
    settings = get_settings()
    backend = backend or settings.storage_backend

    if backend == "mongo":
        return MongoMarketStore(settings.mongodb_uri, settings.mongodb_database)
    if backend == "memory":
        return MemoryMarketStore()
    raise ValueError(f"Unknown storage backend: {backend}")


def get_store() -> MarketStore:
    """Get the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        _store = create_store()
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


__all__ = [
    "MarketStore",
    "MemoryMarketStore",
    "MongoMarketStore",
    "create_store",
    "get_store",
    "close_store",
    "serialize_doc",
]
