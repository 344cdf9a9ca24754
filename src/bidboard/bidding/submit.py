"""Bid submission, price updates and cancellation."""

import uuid
import structlog

from ..auth import is_owner
from ..catalog.relations import enrich_bids
from ..errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from ..models import BidStatus, MarketBid, utcnow
from ..store import MarketStore

logger = structlog.get_logger()


def _check_price(price: float) -> None:
    if price <= 0:
        raise ValidationError("Bid price must be greater than 0")


async def _enrich_one(store: MarketStore, bid: dict) -> dict:
    [result] = await enrich_bids(store, [bid])
    return result


async def _load_own_pending(store: MarketStore, bid_id: str, caller_id: str, action: str) -> dict:
    """Fetch a bid the caller placed and that is still pending."""
    bid = await store.get_bid(bid_id)
    if not bid:
        raise NotFoundError("Bid not found")

    if not is_owner(bid, caller_id):
        logger.warning("bid_action_forbidden", action=action, bid_id=bid_id, caller=caller_id)
        raise AuthorizationError(f"You can only {action} your own bids")

    if bid["status"] != BidStatus.PENDING.value:
        raise InvalidStateError(f"You can only {action} pending bids (status: {bid['status']})")

    return bid


async def submit_bid(
    store: MarketStore,
    bidder_id: str,
    collection_id: str,
    price: float,
) -> dict:
    """Place a bid on a collection.

    Args:
        store: Active store
        bidder_id: Calling user
        collection_id: Collection to bid on
        price: Offered price (> 0)

    Returns:
        Created bid with bidder and collection summaries
    """
    _check_price(price)

    collection = await store.get_collection(collection_id)
    if not collection:
        raise NotFoundError("Collection not found")

    if is_owner(collection, bidder_id):
        raise ValidationError("You cannot bid on your own collection")

    if await store.find_pending_bid(collection_id, bidder_id):
        raise ValidationError("You already have a pending bid on this collection")

    bid = MarketBid(
        bid_id=f"bid_{uuid.uuid4().hex[:12]}",
        collection_id=collection_id,
        user_id=bidder_id,
        price=price,
        status=BidStatus.PENDING,
    )
    # The store re-checks the collection, the bidder and the pending rule with the insert
    created = await store.create_bid(bid.model_dump())

    logger.info(
        "bid_submitted",
        bid_id=bid.bid_id,
        collection_id=collection_id,
        bidder=bidder_id,
        price=price,
    )

    [result] = await enrich_bids(store, [created], {collection_id: collection})
    return result


async def update_bid(store: MarketStore, bid_id: str, caller_id: str, price: float) -> dict:
    """Change the price of the caller's pending bid."""
    _check_price(price)
    await _load_own_pending(store, bid_id, caller_id, "update")

    bid = await store.update_pending_bid(bid_id, {"price": price, "updated_at": utcnow()})
    if not bid:
        # Accepted or rejected between the read and the write
        raise InvalidStateError("You can only update pending bids")

    logger.info("bid_updated", bid_id=bid_id, price=price)
    return await _enrich_one(store, bid)


async def cancel_bid(store: MarketStore, bid_id: str, caller_id: str) -> dict:
    """Withdraw the caller's pending bid by deleting it."""
    await _load_own_pending(store, bid_id, caller_id, "delete")

    if not await store.delete_pending_bid(bid_id):
        raise InvalidStateError("You can only delete pending bids")

    logger.info("bid_cancelled", bid_id=bid_id, bidder=caller_id)
    return {"message": "Bid deleted successfully", "bid_id": bid_id}


async def get_bid(store: MarketStore, bid_id: str) -> dict:
    bid = await store.get_bid(bid_id)
    if not bid:
        raise NotFoundError("Bid not found")
    return await _enrich_one(store, bid)


async def list_bids_for_collection(store: MarketStore, collection_id: str) -> list[dict]:
    """All bids of a collection, most recent first."""
    collection = await store.get_collection(collection_id)
    if not collection:
        raise NotFoundError("Collection not found")

    bids = await store.get_bids_for_collection(collection_id)
    return await enrich_bids(store, bids, {collection_id: collection})
