"""Nested user/collection summaries for API responses."""

from ..models import collection_summary, user_summary
from ..store import MarketStore


async def enrich_bids(
    store: MarketStore,
    bids: list[dict],
    collections: dict[str, dict] | None = None,
) -> list[dict]:
    """Attach bidder and collection summaries to each bid."""
    users = await store.get_users([b["user_id"] for b in bids])

    if collections is None:
        collections = {}
        for collection_id in {b["collection_id"] for b in bids}:
            collection = await store.get_collection(collection_id)
            if collection:
                collections[collection_id] = collection

    return [
        {
            **bid,
            "user": user_summary(users.get(bid["user_id"])),
            "collection": collection_summary(collections.get(bid["collection_id"])),
        }
        for bid in bids
    ]


async def enrich_collections(store: MarketStore, collections: list[dict]) -> list[dict]:
    """Attach the owner summary and the bid list to each collection."""
    if not collections:
        return []

    by_id = {c["collection_id"]: c for c in collections}
    bids = await store.get_bids_for_collections(list(by_id))
    user_ids = [c["user_id"] for c in collections] + [b["user_id"] for b in bids]
    users = await store.get_users(user_ids)

    bids_by_collection: dict[str, list[dict]] = {cid: [] for cid in by_id}
    for bid in bids:
        bids_by_collection[bid["collection_id"]].append(
            {**bid, "user": user_summary(users.get(bid["user_id"]))}
        )

    return [
        {
            **collection,
            "user": user_summary(users.get(collection["user_id"])),
            "bids": bids_by_collection[collection["collection_id"]],
        }
        for collection in collections
    ]
