"""Bid acceptance and rejection by the collection owner."""

import structlog

from ..auth import is_owner
from ..catalog.relations import enrich_bids
from ..errors import AuthorizationError, InvalidStateError, NotFoundError
from ..models import BidStatus
from ..store import MarketStore

logger = structlog.get_logger()


async def _load_for_decision(
    store: MarketStore,
    collection_id: str,
    bid_id: str,
    caller_id: str,
    action: str,
) -> tuple[dict, dict]:
    collection = await store.get_collection(collection_id)
    if not collection:
        raise NotFoundError("Collection not found")

    if not is_owner(collection, caller_id):
        logger.warning(
            "bid_decision_forbidden",
            action=action,
            collection_id=collection_id,
            caller=caller_id,
        )
        raise AuthorizationError(f"You can only {action} bids on your own collections")

    bid = await store.get_bid(bid_id)
    if not bid:
        raise NotFoundError("Bid not found")

    if bid["collection_id"] != collection_id:
        raise InvalidStateError("Bid does not belong to this collection")

    if bid["status"] != BidStatus.PENDING.value:
        raise InvalidStateError(f"Bid is not pending (status: {bid['status']})")

    return collection, bid


async def accept_bid(
    store: MarketStore,
    collection_id: str,
    bid_id: str,
    caller_id: str,
) -> dict:
    """Accept a bid and reject every other pending bid on the collection.

    Both writes happen in one store transaction: either the target is
    accepted and its siblings rejected, or nothing changes.

    Args:
        store: Active store
        collection_id: Collection the bid was placed on
        bid_id: Winning bid
        caller_id: Caller, must own the collection

    Returns:
        Accepted bid and the number of rejected siblings
    """
    collection, bid = await _load_for_decision(store, collection_id, bid_id, caller_id, "accept")

    accepted, rejected_count = await store.accept_bid(collection_id, bid_id)

    logger.info(
        "bid_accepted",
        collection_id=collection_id,
        bid_id=bid_id,
        bidder=bid["user_id"],
        price=bid["price"],
        rejected_siblings=rejected_count,
    )

    [accepted] = await enrich_bids(store, [accepted], {collection_id: collection})
    return {
        "accepted_bid": accepted,
        "rejected_count": rejected_count,
        "message": "Bid accepted successfully. Other pending bids have been rejected.",
    }


async def reject_bid(
    store: MarketStore,
    collection_id: str,
    bid_id: str,
    caller_id: str,
) -> dict:
    """Reject a single pending bid; siblings are untouched."""
    collection, _ = await _load_for_decision(store, collection_id, bid_id, caller_id, "reject")

    rejected = await store.reject_bid(collection_id, bid_id)
    if not rejected:
        raise InvalidStateError("Bid is not pending")

    logger.info("bid_rejected", collection_id=collection_id, bid_id=bid_id)

    [rejected] = await enrich_bids(store, [rejected], {collection_id: collection})
    return {"rejected_bid": rejected, "message": "Bid rejected successfully."}
