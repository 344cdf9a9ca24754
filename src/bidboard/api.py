"""Bidboard REST API.

Collections are lots offered by their owner; other users bid on them and the
owner accepts or rejects bids. Only user lookups and sign-up are public;
collections and bids need a bearer token from /auth/register or /auth/login.
"""

from typing import Optional
from pydantic import BaseModel, Field

from fastapi import FastAPI, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from dotenv import load_dotenv

from . import __version__
from .auth import AuthenticatedUser, require_auth
from .bidding import (
    submit_bid,
    update_bid,
    cancel_bid,
    get_bid,
    list_bids_for_collection,
    accept_bid,
    reject_bid,
)
from .catalog import (
    create_collection,
    get_collection,
    list_collections,
    update_collection,
    delete_collection,
)
from .config import get_settings
from .errors import MarketError
from .store import MarketStore, get_store, close_store
from .users import (
    create_user,
    register_user,
    login_user,
    logout_user,
    list_users,
    get_user,
    update_user,
    delete_user,
)

load_dotenv()
logger = structlog.get_logger()

app = FastAPI(
    title="Bidboard",
    description="Collections marketplace with owner-controlled bidding",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# Request/Response Models
# ============================================================

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserUpdateRequest(BaseModel):
    """Request to update a user account."""
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    password: Optional[str] = None


class CollectionCreateRequest(BaseModel):
    """Request to create a new collection."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    stocks: int = Field(..., ge=0)
    price: float = Field(..., gt=0)


class CollectionUpdateRequest(BaseModel):
    """Request to update a collection. Omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    stocks: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, gt=0)


class BidCreateRequest(BaseModel):
    collection_id: str = Field(..., alias="collectionId", min_length=1)
    price: float = Field(..., gt=0)

    class Config:
        populate_by_name = True


class BidUpdateRequest(BaseModel):
    price: float = Field(..., gt=0)


def _limit(limit: Optional[int]) -> int:
    settings = get_settings()
    if limit is None:
        return settings.default_list_limit
    return min(limit, settings.max_list_limit)


# ============================================================
# Error Handling
# ============================================================

@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("request_validation_failed", path=request.url.path)
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "detail": "Invalid request",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


# ============================================================
# Lifecycle
# ============================================================

@app.on_event("startup")
async def startup():
    store = get_store()
    try:
        await store.init()
    except Exception as e:
        # Indexes usually exist already; requests still work without them
        logger.warning("store_init_failed", error=str(e))
    logger.info("bidboard_api_started", storage=get_settings().storage_backend)


@app.on_event("shutdown")
async def shutdown():
    await close_store()
    logger.info("bidboard_api_stopped")


@app.get("/")
def root():
    return {
        "name": "Bidboard",
        "version": __version__,
        "status": "operational",
    }


@app.get("/health")
async def health(store: MarketStore = Depends(get_store)):
    ok = await store.ping()
    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ok" if ok else "degraded", "storage": get_settings().storage_backend},
    )


# ============================================================
# Authentication Endpoints
# ============================================================

@app.post("/auth/register", status_code=201)
async def register(request: RegisterRequest, store: MarketStore = Depends(get_store)):
    """Register a new user and get a bearer token."""
    return await register_user(store, request.email, request.password, request.name)


@app.post("/auth/login")
async def login(request: LoginRequest, store: MarketStore = Depends(get_store)):
    """Exchange email and password for a bearer token."""
    return await login_user(store, request.email, request.password)


@app.post("/auth/logout")
async def logout(
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Invalidate the current session."""
    await logout_user(store, auth.session_token)
    return {"success": True, "message": "Logged out"}


@app.get("/auth/profile")
async def profile(auth: AuthenticatedUser = Depends(require_auth)):
    """Get the current authenticated user."""
    return {
        "user_id": auth.user_id,
        "email": auth.email,
        "name": auth.name,
        "role": auth.role,
    }


# ============================================================
# User Endpoints
# ============================================================

@app.get("/users")
async def users_index(limit: Optional[int] = Query(None, ge=1), store: MarketStore = Depends(get_store)):
    users = await list_users(store, _limit(limit))
    return {"users": users, "count": len(users)}


@app.post("/users", status_code=201)
async def users_create(request: RegisterRequest, store: MarketStore = Depends(get_store)):
    """Create an account without logging in."""
    return await create_user(store, request.email, request.password, request.name)


@app.get("/users/{user_id}")
async def users_show(user_id: str, store: MarketStore = Depends(get_store)):
    return await get_user(store, user_id)


@app.patch("/users/{user_id}")
async def users_update(
    user_id: str,
    request: UserUpdateRequest,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Update a user. Only the user themself or an admin."""
    return await update_user(
        store,
        user_id,
        auth,
        name=request.name,
        email=request.email,
        password=request.password,
    )


@app.delete("/users/{user_id}")
async def users_delete(
    user_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Delete a user with their collections and bids."""
    return await delete_user(store, user_id, auth)


# ============================================================
# Collection Endpoints
# ============================================================

@app.get("/collections")
async def collections_index(
    limit: Optional[int] = Query(None, ge=1),
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Get all collections with owners and bids, most recent first."""
    collections = await list_collections(store, _limit(limit))
    return {"collections": collections, "count": len(collections)}


@app.get("/collections/{collection_id}")
async def collections_show(
    collection_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    return await get_collection(store, collection_id)


@app.post("/collections", status_code=201)
async def collections_create(
    request: CollectionCreateRequest,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Create a collection owned by the caller."""
    return await create_collection(
        store,
        owner_id=auth.user_id,
        name=request.name,
        description=request.description,
        stocks=request.stocks,
        price=request.price,
    )


@app.patch("/collections/{collection_id}")
async def collections_update(
    collection_id: str,
    request: CollectionUpdateRequest,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Update a collection. Only its owner."""
    return await update_collection(
        store,
        collection_id,
        auth.user_id,
        name=request.name,
        description=request.description,
        stocks=request.stocks,
        price=request.price,
    )


@app.delete("/collections/{collection_id}")
async def collections_delete(
    collection_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Delete a collection and all of its bids. Only its owner."""
    return await delete_collection(store, collection_id, auth.user_id)


# ============================================================
# Bid Endpoints
# ============================================================

@app.get("/bids")
async def bids_index(
    collection_id: str = Query(..., alias="collectionId"),
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Get the bids of one collection, most recent first."""
    bids = await list_bids_for_collection(store, collection_id)
    return {"bids": bids, "count": len(bids)}


@app.get("/bids/{bid_id}")
async def bids_show(
    bid_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    return await get_bid(store, bid_id)


@app.post("/bids", status_code=201)
async def bids_create(
    request: BidCreateRequest,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Place a bid. Owners cannot bid on their own collections."""
    return await submit_bid(store, auth.user_id, request.collection_id, request.price)


@app.patch("/bids/{bid_id}")
async def bids_update(
    bid_id: str,
    request: BidUpdateRequest,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Change the price of a pending bid. Only its bidder."""
    return await update_bid(store, bid_id, auth.user_id, request.price)


@app.delete("/bids/{bid_id}")
async def bids_delete(
    bid_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Cancel a pending bid. Only its bidder."""
    return await cancel_bid(store, bid_id, auth.user_id)


@app.post("/bids/accept/{collection_id}/{bid_id}")
async def bids_accept(
    collection_id: str,
    bid_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Accept a bid; every other pending bid on the collection is rejected."""
    return await accept_bid(store, collection_id, bid_id, auth.user_id)


@app.post("/bids/reject/{collection_id}/{bid_id}")
async def bids_reject(
    collection_id: str,
    bid_id: str,
    auth: AuthenticatedUser = Depends(require_auth),
    store: MarketStore = Depends(get_store),
):
    """Reject a single bid."""
    return await reject_bid(store, collection_id, bid_id, auth.user_id)
