"""Bidding system module."""

from .submit import submit_bid, update_bid, cancel_bid, get_bid, list_bids_for_collection
from .accept import accept_bid, reject_bid

__all__ = [
    "submit_bid",
    "update_bid",
    "cancel_bid",
    "get_bid",
    "list_bids_for_collection",
    "accept_bid",
    "reject_bid",
]
