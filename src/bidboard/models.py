"""Pydantic models for all Bidboard collections."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# Enums
# ============================================================

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"  # May manage other users' accounts


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"  # Terminal
    REJECTED = "rejected"  # Terminal


# ============================================================
# User Models
# ============================================================

class MarketUser(BaseModel):
    """Registered marketplace user."""
    user_id: str
    email: str
    name: str
    role: UserRole = UserRole.USER
    password_hash: str
    last_bid_at: Optional[datetime] = None  # Last bid placed by this user

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserSession(BaseModel):
    """Bearer token issued on register/login."""
    token: str
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


# ============================================================
# Collection Models
# ============================================================

class MarketCollection(BaseModel):
    """A lot offered for sale by its owner."""
    collection_id: str
    user_id: str  # Owner
    name: str
    description: Optional[str] = None
    stocks: int = Field(ge=0)
    price: float = Field(gt=0)
    last_bid_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================
# Bid Models
# ============================================================

class MarketBid(BaseModel):
    """Offer by a non-owner on a collection."""
    bid_id: str
    collection_id: str
    user_id: str  # Bidder
    price: float = Field(gt=0)

    status: BidStatus = BidStatus.PENDING

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================
# Public projections
# ============================================================

USER_SUMMARY_FIELDS = ("user_id", "name", "email")
COLLECTION_SUMMARY_FIELDS = ("collection_id", "name", "price")


def public_user(doc: dict) -> dict:
    """Strip credentials from a stored user document."""
    return {k: v for k, v in doc.items() if k != "password_hash"}


def user_summary(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    return {k: doc.get(k) for k in USER_SUMMARY_FIELDS}


def collection_summary(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    return {k: doc.get(k) for k in COLLECTION_SUMMARY_FIELDS}
