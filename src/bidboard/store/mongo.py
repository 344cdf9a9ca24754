"""MongoDB store for Bidboard."""

from typing import Any, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError
import structlog

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..models import BidStatus, utcnow
from .base import MarketStore, serialize_doc

logger = structlog.get_logger()


# ============================================================
# Collection Names
# ============================================================

USERS_COLLECTION = "market_users"
COLLECTIONS_COLLECTION = "market_collections"
BIDS_COLLECTION = "market_bids"
SESSIONS_COLLECTION = "market_sessions"

# Never leak Mongo's ObjectId
NO_ID = {"_id": 0}

PENDING = BidStatus.PENDING.value


def _is_transient(error: OperationFailure) -> bool:
    return error.has_error_label("TransientTransactionError")


class MongoMarketStore(MarketStore):
    """Store backed by MongoDB through motor.

    Multi-document operations run inside a transaction on a client session,
    which requires a replica set or sharded cluster.
    """

    def __init__(self, uri: str, database: str):
        self.uri = uri
        self.database = database
        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    def _connect(self) -> None:
        if self._client is None:
            self._client = AsyncIOMotorClient(self.uri, tz_aware=True)
            self._db = self._client[self.database]
            logger.info("mongodb_connected", database=self.database)

    @property
    def client(self) -> AsyncIOMotorClient:
        """Get client connection."""
        self._connect()
        return self._client

    @property
    def db(self) -> AsyncIOMotorDatabase:
        """Get database connection."""
        self._connect()
        return self._db

    async def init(self) -> None:
        """Initialize database connection and create indexes."""
        await self.setup_indexes()
        logger.info("database_initialized")

    async def close(self) -> None:
        """Close database connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("mongodb_disconnected")

    async def ping(self) -> bool:
        try:
            await self.db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("mongodb_ping_failed", error=str(e))
            return False

    async def _run_transaction(self, operation, name: str):
        """Run ``operation(session)`` inside one transaction.

        A write conflict with a concurrent transaction is reported as
        ConflictError; it is not retried here.
        """
        async with await self.client.start_session() as session:
            try:
                async with session.start_transaction():
                    return await operation(session)
            except OperationFailure as e:
                if _is_transient(e):
                    logger.warning("transaction_conflict", operation=name, error=str(e))
                    raise ConflictError(
                        "The resource was modified concurrently, please retry"
                    ) from e
                raise

    # ============================================================
    # User Operations
    # ============================================================

    async def create_user(self, user_data: dict[str, Any]) -> dict[str, Any]:
        try:
            await self.db[USERS_COLLECTION].insert_one(dict(user_data))
        except DuplicateKeyError as e:
            raise ConflictError("User with this email already exists") from e
        logger.info("user_created", user_id=user_data["user_id"])
        return serialize_doc(user_data)

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        doc = await self.db[USERS_COLLECTION].find_one({"user_id": user_id}, NO_ID)
        return serialize_doc(doc) if doc else None

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        doc = await self.db[USERS_COLLECTION].find_one({"email": email}, NO_ID)
        return serialize_doc(doc) if doc else None

    async def get_users(self, user_ids: list[str]) -> dict[str, dict[str, Any]]:
        if not user_ids:
            return {}
        cursor = self.db[USERS_COLLECTION].find({"user_id": {"$in": list(set(user_ids))}}, NO_ID)
        users = {}
        async for doc in cursor:
            users[doc["user_id"]] = serialize_doc(doc)
        return users

    async def list_users(self, limit: int = 100) -> list[dict[str, Any]]:
        cursor = self.db[USERS_COLLECTION].find({}, NO_ID).sort("created_at", 1).limit(limit)
        users = []
        async for doc in cursor:
            users.append(serialize_doc(doc))
        return users

    async def update_user(
        self,
        user_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        try:
            doc = await self.db[USERS_COLLECTION].find_one_and_update(
                {"user_id": user_id},
                {"$set": updates},
                projection=NO_ID,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise ConflictError("User with this email already exists") from e
        return serialize_doc(doc) if doc else None

    async def delete_user_cascade(self, user_id: str) -> dict[str, int] | None:
        db = self.db

        async def _delete(session):
            user = await db[USERS_COLLECTION].find_one({"user_id": user_id}, session=session)
            if not user:
                return None
            owned = db[COLLECTIONS_COLLECTION].find(
                {"user_id": user_id}, {"collection_id": 1}, session=session
            )
            collection_ids = [doc["collection_id"] async for doc in owned]

            bids = await db[BIDS_COLLECTION].delete_many(
                {"$or": [
                    {"user_id": user_id},
                    {"collection_id": {"$in": collection_ids}},
                ]},
                session=session,
            )
            collections = await db[COLLECTIONS_COLLECTION].delete_many(
                {"user_id": user_id}, session=session
            )
            sessions = await db[SESSIONS_COLLECTION].delete_many(
                {"user_id": user_id}, session=session
            )
            await db[USERS_COLLECTION].delete_one({"user_id": user_id}, session=session)
            return {
                "deleted_bids": bids.deleted_count,
                "deleted_collections": collections.deleted_count,
                "deleted_sessions": sessions.deleted_count,
            }

        counts = await self._run_transaction(_delete, "delete_user")
        if counts is not None:
            logger.info("user_deleted", user_id=user_id, **counts)
        return counts

    # ============================================================
    # Session Operations
    # ============================================================

    async def create_session(self, session_data: dict[str, Any]) -> None:
        await self.db[SESSIONS_COLLECTION].insert_one(dict(session_data))

    async def get_session(self, token: str) -> dict[str, Any] | None:
        return await self.db[SESSIONS_COLLECTION].find_one({"token": token}, NO_ID)

    async def delete_session(self, token: str) -> bool:
        result = await self.db[SESSIONS_COLLECTION].delete_one({"token": token})
        return result.deleted_count > 0

    # ============================================================
    # Collection Operations
    # ============================================================

    async def create_collection(self, collection_data: dict[str, Any]) -> dict[str, Any]:
        await self.db[COLLECTIONS_COLLECTION].insert_one(dict(collection_data))
        return serialize_doc(collection_data)

    async def get_collection(self, collection_id: str) -> dict[str, Any] | None:
        doc = await self.db[COLLECTIONS_COLLECTION].find_one(
            {"collection_id": collection_id}, NO_ID
        )
        return serialize_doc(doc) if doc else None

    async def list_collections(self, limit: int = 100) -> list[dict[str, Any]]:
        cursor = self.db[COLLECTIONS_COLLECTION].find({}, NO_ID).sort("created_at", -1).limit(limit)
        collections = []
        async for doc in cursor:
            collections.append(serialize_doc(doc))
        return collections

    async def update_collection(
        self,
        collection_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        doc = await self.db[COLLECTIONS_COLLECTION].find_one_and_update(
            {"collection_id": collection_id},
            {"$set": updates},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc) if doc else None

    async def delete_collection_cascade(self, collection_id: str) -> int | None:
        db = self.db

        async def _delete(session):
            bids = await db[BIDS_COLLECTION].delete_many(
                {"collection_id": collection_id}, session=session
            )
            result = await db[COLLECTIONS_COLLECTION].delete_one(
                {"collection_id": collection_id}, session=session
            )
            if result.deleted_count == 0:
                raise _CollectionMissing()  # aborts the bid deletion too
            return bids.deleted_count

        try:
            return await self._run_transaction(_delete, "delete_collection")
        except _CollectionMissing:
            return None

    # ============================================================
    # Bid Operations
    # ============================================================

    async def create_bid(self, bid_data: dict[str, Any]) -> dict[str, Any]:
        db = self.db
        stamp = {"$set": {"last_bid_at": bid_data["created_at"]}}

        async def _insert(session):
            # Writing both parents makes a racing cascade delete conflict with us
            collection = await db[COLLECTIONS_COLLECTION].update_one(
                {"collection_id": bid_data["collection_id"]}, stamp, session=session
            )
            if collection.matched_count == 0:
                raise NotFoundError("Collection not found")
            bidder = await db[USERS_COLLECTION].update_one(
                {"user_id": bid_data["user_id"]}, stamp, session=session
            )
            if bidder.matched_count == 0:
                raise NotFoundError("User not found")
            await db[BIDS_COLLECTION].insert_one(dict(bid_data), session=session)

        try:
            await self._run_transaction(_insert, "create_bid")
        except DuplicateKeyError as e:
            raise ValidationError("You already have a pending bid on this collection") from e
        return serialize_doc(bid_data)

    async def get_bid(self, bid_id: str) -> dict[str, Any] | None:
        doc = await self.db[BIDS_COLLECTION].find_one({"bid_id": bid_id}, NO_ID)
        return serialize_doc(doc) if doc else None

    async def get_bids_for_collections(
        self,
        collection_ids: list[str],
    ) -> list[dict[str, Any]]:
        if not collection_ids:
            return []
        cursor = self.db[BIDS_COLLECTION].find(
            {"collection_id": {"$in": list(collection_ids)}}, NO_ID
        ).sort("created_at", -1)
        bids = []
        async for doc in cursor:
            bids.append(serialize_doc(doc))
        return bids

    async def find_pending_bid(
        self,
        collection_id: str,
        user_id: str,
    ) -> dict[str, Any] | None:
        doc = await self.db[BIDS_COLLECTION].find_one(
            {"collection_id": collection_id, "user_id": user_id, "status": PENDING},
            NO_ID,
        )
        return serialize_doc(doc) if doc else None

    async def update_pending_bid(
        self,
        bid_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        doc = await self.db[BIDS_COLLECTION].find_one_and_update(
            {"bid_id": bid_id, "status": PENDING},
            {"$set": updates},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc) if doc else None

    async def delete_pending_bid(self, bid_id: str) -> bool:
        result = await self.db[BIDS_COLLECTION].delete_one({"bid_id": bid_id, "status": PENDING})
        return result.deleted_count > 0

    async def accept_bid(
        self,
        collection_id: str,
        bid_id: str,
    ) -> tuple[dict[str, Any], int]:
        db = self.db

        async def _accept(session):
            now = utcnow()
            accepted = await db[BIDS_COLLECTION].find_one_and_update(
                {"bid_id": bid_id, "collection_id": collection_id, "status": PENDING},
                {"$set": {"status": BidStatus.ACCEPTED.value, "updated_at": now}},
                projection=NO_ID,
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if not accepted:
                raise InvalidStateError("Bid is not pending")

            rejected = await db[BIDS_COLLECTION].update_many(
                {
                    "collection_id": collection_id,
                    "status": PENDING,
                    "bid_id": {"$ne": bid_id},
                },
                {"$set": {"status": BidStatus.REJECTED.value, "updated_at": now}},
                session=session,
            )
            return serialize_doc(accepted), rejected.modified_count

        return await self._run_transaction(_accept, "accept_bid")

    async def reject_bid(self, collection_id: str, bid_id: str) -> dict[str, Any] | None:
        doc = await self.db[BIDS_COLLECTION].find_one_and_update(
            {"bid_id": bid_id, "collection_id": collection_id, "status": PENDING},
            {"$set": {"status": BidStatus.REJECTED.value, "updated_at": utcnow()}},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc) if doc else None

    # ============================================================
    # Index Setup
    # ============================================================

    async def setup_indexes(self) -> None:
        """Create indexes for all collections."""
        db = self.db

        users = db[USERS_COLLECTION]
        await users.create_index([("user_id", 1)], unique=True)
        await users.create_index([("email", 1)], unique=True)

        sessions = db[SESSIONS_COLLECTION]
        await sessions.create_index([("token", 1)], unique=True)
        await sessions.create_index([("user_id", 1)])
        await sessions.create_index([("expires_at", 1)], expireAfterSeconds=0)

        collections = db[COLLECTIONS_COLLECTION]
        await collections.create_index([("collection_id", 1)], unique=True)
        await collections.create_index([("created_at", -1)])
        await collections.create_index([("user_id", 1)])

        bids = db[BIDS_COLLECTION]
        await bids.create_index([("bid_id", 1)], unique=True)
        await bids.create_index([("collection_id", 1), ("created_at", -1)])
        await bids.create_index([("user_id", 1)])
        # One pending bid per bidder per collection
        await bids.create_index(
            [("collection_id", 1), ("user_id", 1)],
            unique=True,
            partialFilterExpression={"status": PENDING},
            name="one_pending_bid_per_user",
        )

        logger.info("indexes_created")


class _CollectionMissing(Exception):
    """Aborts the cascade transaction when the collection is already gone."""
