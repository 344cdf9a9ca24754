"""In-process store for tests and local demos."""

import asyncio
import copy
from typing import Any

import structlog

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..models import BidStatus, utcnow
from .base import MarketStore, serialize_doc

logger = structlog.get_logger()

PENDING = BidStatus.PENDING.value


def _status(doc: dict) -> str:
    status = doc["status"]
    return status.value if isinstance(status, BidStatus) else status


def _newest_first(docs: list[dict]) -> list[dict]:
    # Reversed insertion order breaks created_at ties in favour of later inserts
    return sorted(reversed(docs), key=lambda d: d["created_at"], reverse=True)


class MemoryMarketStore(MarketStore):
    """Dictionary-backed store.

    All operations hold one asyncio lock and never await while holding it,
    so each call, including the multi-document ones, is observed either
    entirely or not at all by concurrent tasks.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._users: dict[str, dict] = {}
        self._sessions: dict[str, dict] = {}
        self._collections: dict[str, dict] = {}
        self._bids: dict[str, dict] = {}

    async def ping(self) -> bool:
        return True

    # ============================================================
    # User Operations
    # ============================================================

    def _email_taken(self, email: str, except_user_id: str | None = None) -> bool:
        return any(
            u["email"] == email and u["user_id"] != except_user_id
            for u in self._users.values()
        )

    async def create_user(self, user_data: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            if self._email_taken(user_data["email"]):
                raise ConflictError("User with this email already exists")
            self._users[user_data["user_id"]] = copy.deepcopy(user_data)
        logger.info("user_created", user_id=user_data["user_id"])
        return serialize_doc(user_data)

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        async with self._lock:
            return serialize_doc(self._users.get(user_id))

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        async with self._lock:
            for user in self._users.values():
                if user["email"] == email:
                    return serialize_doc(user)
        return None

    async def get_users(self, user_ids: list[str]) -> dict[str, dict[str, Any]]:
        async with self._lock:
            return {
                uid: serialize_doc(self._users[uid])
                for uid in set(user_ids)
                if uid in self._users
            }

    async def list_users(self, limit: int = 100) -> list[dict[str, Any]]:
        async with self._lock:
            users = sorted(self._users.values(), key=lambda u: u["created_at"])
            return [serialize_doc(u) for u in users[:limit]]

    async def update_user(
        self,
        user_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if "email" in updates and self._email_taken(updates["email"], user_id):
                raise ConflictError("User with this email already exists")
            user.update(updates)
            return serialize_doc(user)

    async def delete_user_cascade(self, user_id: str) -> dict[str, int] | None:
        async with self._lock:
            if user_id not in self._users:
                return None
            owned = {
                cid for cid, c in self._collections.items() if c["user_id"] == user_id
            }
            bid_ids = [
                bid_id for bid_id, b in self._bids.items()
                if b["user_id"] == user_id or b["collection_id"] in owned
            ]
            tokens = [t for t, s in self._sessions.items() if s["user_id"] == user_id]

            for bid_id in bid_ids:
                del self._bids[bid_id]
            for cid in owned:
                del self._collections[cid]
            for token in tokens:
                del self._sessions[token]
            del self._users[user_id]

        counts = {
            "deleted_bids": len(bid_ids),
            "deleted_collections": len(owned),
            "deleted_sessions": len(tokens),
        }
        logger.info("user_deleted", user_id=user_id, **counts)
        return counts

    # ============================================================
    # Session Operations
    # ============================================================

    async def create_session(self, session_data: dict[str, Any]) -> None:
        async with self._lock:
            self._sessions[session_data["token"]] = dict(session_data)

    async def get_session(self, token: str) -> dict[str, Any] | None:
        async with self._lock:
            session = self._sessions.get(token)
            return dict(session) if session else None

    async def delete_session(self, token: str) -> bool:
        async with self._lock:
            return self._sessions.pop(token, None) is not None

    # ============================================================
    # Collection Operations
    # ============================================================

    async def create_collection(self, collection_data: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            self._collections[collection_data["collection_id"]] = copy.deepcopy(collection_data)
        return serialize_doc(collection_data)

    async def get_collection(self, collection_id: str) -> dict[str, Any] | None:
        async with self._lock:
            return serialize_doc(self._collections.get(collection_id))

    async def list_collections(self, limit: int = 100) -> list[dict[str, Any]]:
        async with self._lock:
            collections = _newest_first(list(self._collections.values()))
            return [serialize_doc(c) for c in collections[:limit]]

    async def update_collection(
        self,
        collection_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        async with self._lock:
            collection = self._collections.get(collection_id)
            if collection is None:
                return None
            collection.update(updates)
            return serialize_doc(collection)

    async def delete_collection_cascade(self, collection_id: str) -> int | None:
        async with self._lock:
            if collection_id not in self._collections:
                return None
            bid_ids = [
                bid_id for bid_id, b in self._bids.items()
                if b["collection_id"] == collection_id
            ]
            for bid_id in bid_ids:
                del self._bids[bid_id]
            del self._collections[collection_id]
            return len(bid_ids)

    # ============================================================
    # Bid Operations
    # ============================================================

    def _pending_bid(self, collection_id: str, user_id: str) -> dict | None:
        for bid in self._bids.values():
            if (
                bid["collection_id"] == collection_id
                and bid["user_id"] == user_id
                and _status(bid) == PENDING
            ):
                return bid
        return None

    async def create_bid(self, bid_data: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            collection = self._collections.get(bid_data["collection_id"])
            if collection is None:
                raise NotFoundError("Collection not found")
            bidder = self._users.get(bid_data["user_id"])
            if bidder is None:
                raise NotFoundError("User not found")
            if self._pending_bid(bid_data["collection_id"], bid_data["user_id"]):
                raise ValidationError("You already have a pending bid on this collection")
            self._bids[bid_data["bid_id"]] = copy.deepcopy(bid_data)
            collection["last_bid_at"] = bid_data["created_at"]
            bidder["last_bid_at"] = bid_data["created_at"]
        return serialize_doc(bid_data)

    async def get_bid(self, bid_id: str) -> dict[str, Any] | None:
        async with self._lock:
            return serialize_doc(self._bids.get(bid_id))

    async def get_bids_for_collections(
        self,
        collection_ids: list[str],
    ) -> list[dict[str, Any]]:
        wanted = set(collection_ids)
        async with self._lock:
            bids = [b for b in self._bids.values() if b["collection_id"] in wanted]
            return [serialize_doc(b) for b in _newest_first(bids)]

    async def find_pending_bid(
        self,
        collection_id: str,
        user_id: str,
    ) -> dict[str, Any] | None:
        async with self._lock:
            return serialize_doc(self._pending_bid(collection_id, user_id))

    async def update_pending_bid(
        self,
        bid_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        async with self._lock:
            bid = self._bids.get(bid_id)
            if bid is None or _status(bid) != PENDING:
                return None
            bid.update(updates)
            return serialize_doc(bid)

    async def delete_pending_bid(self, bid_id: str) -> bool:
        async with self._lock:
            bid = self._bids.get(bid_id)
            if bid is None or _status(bid) != PENDING:
                return False
            del self._bids[bid_id]
            return True

    async def accept_bid(
        self,
        collection_id: str,
        bid_id: str,
    ) -> tuple[dict[str, Any], int]:
        async with self._lock:
            target = self._bids.get(bid_id)
            if (
                target is None
                or target["collection_id"] != collection_id
                or _status(target) != PENDING
            ):
                raise InvalidStateError("Bid is not pending")

            now = utcnow()
            siblings = [
                b for b in self._bids.values()
                if b["collection_id"] == collection_id
                and b["bid_id"] != bid_id
                and _status(b) == PENDING
            ]
            for sibling in siblings:
                sibling["status"] = BidStatus.REJECTED.value
                sibling["updated_at"] = now
            target["status"] = BidStatus.ACCEPTED.value
            target["updated_at"] = now
            return serialize_doc(target), len(siblings)

    async def reject_bid(self, collection_id: str, bid_id: str) -> dict[str, Any] | None:
        async with self._lock:
            bid = self._bids.get(bid_id)
            if bid is None or bid["collection_id"] != collection_id or _status(bid) != PENDING:
                return None
            bid["status"] = BidStatus.REJECTED.value
            bid["updated_at"] = utcnow()
            return serialize_doc(bid)
