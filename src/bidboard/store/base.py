"""Abstract store interface for Bidboard persistence."""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Convert a stored document to a JSON-serializable dict."""
    if doc is None:
        return None
    result = {}
    for key, value in doc.items():
        if key == "_id":
            continue
        if isinstance(value, datetime):
            result[key] = value.isoformat()
        elif isinstance(value, Enum):
            result[key] = value.value
        elif isinstance(value, dict):
            result[key] = serialize_doc(value)
        elif isinstance(value, list):
            result[key] = [
                serialize_doc(v) if isinstance(v, dict)
                else v.isoformat() if isinstance(v, datetime)
                else v
                for v in value
            ]
        else:
            result[key] = value
    return result


class MarketStore(ABC):
    """Abstract backend for Bidboard persistence.

    Every method that touches more than one document (accepting a bid and
    the two cascading deletes) must apply all of its writes or none of them.
    Status-changing writes are conditioned on the bid still being pending,
    so callers that lost a race get ``None``/``False`` instead of clobbering
    a terminal bid.
    """

    # ============================================================
    # Lifecycle
    # ============================================================

    async def init(self) -> None:
        """Connect and prepare indexes."""
        pass

    async def close(self) -> None:
        """Clean up resources."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the backend is reachable."""
        ...

    # ============================================================
    # User Operations
    # ============================================================

    @abstractmethod
    async def create_user(self, user_data: dict[str, Any]) -> dict[str, Any]:
        """Insert a user. Raises ConflictError if the email is taken."""
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def get_users(self, user_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Fetch several users at once, keyed by user_id."""
        ...

    @abstractmethod
    async def list_users(self, limit: int = 100) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def update_user(
        self,
        user_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Update user fields. Raises ConflictError if the new email is taken."""
        ...

    @abstractmethod
    async def delete_user_cascade(self, user_id: str) -> dict[str, int] | None:
        """Atomically delete a user with their sessions, bids and collections.

        Returns deletion counts, or None if the user did not exist.
        """
        ...

    # ============================================================
    # Session Operations
    # ============================================================

    @abstractmethod
    async def create_session(self, session_data: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def get_session(self, token: str) -> dict[str, Any] | None:
        """Get a session by token. Dates are returned as datetimes."""
        ...

    @abstractmethod
    async def delete_session(self, token: str) -> bool:
        ...

    # ============================================================
    # Collection Operations
    # ============================================================

    @abstractmethod
    async def create_collection(self, collection_data: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def get_collection(self, collection_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def list_collections(self, limit: int = 100) -> list[dict[str, Any]]:
        """List collections, most recent first."""
        ...

    @abstractmethod
    async def update_collection(
        self,
        collection_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def delete_collection_cascade(self, collection_id: str) -> int | None:
        """Atomically delete a collection and all of its bids.

        Returns the number of deleted bids, or None if the collection did
        not exist.
        """
        ...

    # ============================================================
    # Bid Operations
    # ============================================================

    @abstractmethod
    async def create_bid(self, bid_data: dict[str, Any]) -> dict[str, Any]:
        """Insert a pending bid.

        The collection and the bidder are re-checked atomically with the
        insert, so a concurrent cascade delete cannot leave an orphan bid.

        Raises NotFoundError if either is gone, ValidationError if the
        bidder already holds a pending bid on the same collection.
        """
        ...

    @abstractmethod
    async def get_bid(self, bid_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def get_bids_for_collections(
        self,
        collection_ids: list[str],
    ) -> list[dict[str, Any]]:
        """Get bids of the given collections, most recent first."""
        ...

    @abstractmethod
    async def find_pending_bid(
        self,
        collection_id: str,
        user_id: str,
    ) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def update_pending_bid(
        self,
        bid_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Update a bid only while it is pending. None if it no longer is."""
        ...

    @abstractmethod
    async def delete_pending_bid(self, bid_id: str) -> bool:
        """Delete a bid only while it is pending."""
        ...

    @abstractmethod
    async def accept_bid(
        self,
        collection_id: str,
        bid_id: str,
    ) -> tuple[dict[str, Any], int]:
        """Accept a pending bid and reject its pending siblings in one unit.

        Returns the accepted bid and the number of rejected siblings.
        Raises InvalidStateError, with nothing written, if the bid is no
        longer pending on that collection.
        """
        ...

    @abstractmethod
    async def reject_bid(self, collection_id: str, bid_id: str) -> dict[str, Any] | None:
        """Reject a single pending bid. None if it is no longer pending."""
        ...

    async def get_bids_for_collection(self, collection_id: str) -> list[dict[str, Any]]:
        """Get all bids for a collection, most recent first."""
        return await self.get_bids_for_collections([collection_id])
