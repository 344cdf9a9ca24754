"""Collection lifecycle: create, read, update, delete."""

import uuid
from typing import Optional
import structlog

from ..auth import is_owner
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import MarketCollection, utcnow
from ..store import MarketStore
from .relations import enrich_collections

logger = structlog.get_logger()


def _check_values(price: Optional[float], stocks: Optional[int]) -> None:
    if price is not None and price <= 0:
        raise ValidationError("Price must be greater than 0")
    if stocks is not None and stocks < 0:
        raise ValidationError("Stocks cannot be negative")


async def _load_owned(store: MarketStore, collection_id: str, caller_id: str, action: str) -> dict:
    collection = await store.get_collection(collection_id)
    if not collection:
        raise NotFoundError("Collection not found")

    if not is_owner(collection, caller_id):
        logger.warning(
            "collection_action_forbidden",
            action=action,
            collection_id=collection_id,
            caller=caller_id,
        )
        raise AuthorizationError(f"You can only {action} your own collections")

    return collection


async def create_collection(
    store: MarketStore,
    owner_id: str,
    name: str,
    stocks: int,
    price: float,
    description: Optional[str] = None,
) -> dict:
    """Create a collection owned by the caller.

    Args:
        store: Active store
        owner_id: Calling user, becomes the owner
        name: Collection name
        stocks: Items in stock (>= 0)
        price: Asking price (> 0)
        description: Optional free text

    Returns:
        The collection with its owner summary and an empty bid list
    """
    _check_values(price, stocks)

    collection = MarketCollection(
        collection_id=f"col_{uuid.uuid4().hex[:12]}",
        user_id=owner_id,
        name=name,
        description=description,
        stocks=stocks,
        price=price,
    )
    created = await store.create_collection(collection.model_dump())

    logger.info(
        "collection_created",
        collection_id=collection.collection_id,
        owner=owner_id,
        price=price,
        stocks=stocks,
    )

    [result] = await enrich_collections(store, [created])
    return result


async def get_collection(store: MarketStore, collection_id: str) -> dict:
    """Get a collection with its owner and bids (most recent first)."""
    collection = await store.get_collection(collection_id)
    if not collection:
        raise NotFoundError("Collection not found")

    [result] = await enrich_collections(store, [collection])
    return result


async def list_collections(store: MarketStore, limit: int = 100) -> list[dict]:
    """All collections, most recent first, each with owner and bids."""
    collections = await store.list_collections(limit)
    return await enrich_collections(store, collections)


async def update_collection(
    store: MarketStore,
    collection_id: str,
    caller_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    stocks: Optional[int] = None,
    price: Optional[float] = None,
) -> dict:
    """Patch a collection. Only the owner may do this."""
    await _load_owned(store, collection_id, caller_id, "update")
    _check_values(price, stocks)

    updates = {}
    if name is not None:
        updates["name"] = name
    if description is not None:
        updates["description"] = description
    if stocks is not None:
        updates["stocks"] = stocks
    if price is not None:
        updates["price"] = price

    if not updates:
        raise ValidationError("No fields to update")

    updates["updated_at"] = utcnow()
    collection = await store.update_collection(collection_id, updates)
    if not collection:
        raise NotFoundError("Collection not found")

    logger.info(
        "collection_updated",
        collection_id=collection_id,
        fields=sorted(k for k in updates if k != "updated_at"),
    )

    [result] = await enrich_collections(store, [collection])
    return result


async def delete_collection(store: MarketStore, collection_id: str, caller_id: str) -> dict:
    """Delete a collection and all of its bids as one unit. Owner only."""
    await _load_owned(store, collection_id, caller_id, "delete")

    deleted_bids = await store.delete_collection_cascade(collection_id)
    if deleted_bids is None:
        raise NotFoundError("Collection not found")

    logger.info("collection_deleted", collection_id=collection_id, deleted_bids=deleted_bids)

    return {
        "message": "Collection deleted successfully",
        "collection_id": collection_id,
        "deleted_bids": deleted_bids,
    }
