"""Token-based authentication for Bidboard.

Flow:
1. Client registers (POST /auth/register) or logs in (POST /auth/login)
2. Server returns an opaque session token
3. Client includes the token in the Authorization header: Bearer <token>
4. Server resolves the token to the calling user for every mutating request

Services never see the token itself; they receive the resolved
``AuthenticatedUser`` and compare ids.
"""

import hashlib
import hmac
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import structlog

from .config import get_settings
from .errors import UnauthenticatedError
from .models import UserRole, UserSession, utcnow
from .store import MarketStore, get_store

logger = structlog.get_logger()

HASH_ALGORITHM = "pbkdf2_sha256"


@dataclass
class AuthenticatedUser:
    """Represents the resolved caller."""
    user_id: str
    email: str
    name: str
    role: str = UserRole.USER.value
    session_token: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def is_owner(resource: dict, caller_id: str) -> bool:
    """True when the caller owns the collection, bid or user record."""
    return resource.get("user_id") == caller_id


# ============================================================
# Passwords
# ============================================================

def hash_password(password: str, iterations: Optional[int] = None) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    iterations = iterations or get_settings().password_hash_iterations
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a stored hash."""
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


# ============================================================
# Sessions
# ============================================================

async def create_session(store: MarketStore, user_id: str) -> str:
    """Create a session token for an authenticated user.

    Args:
        store: Active store
        user_id: Verified user id

    Returns:
        Session token string
    """
    token = hashlib.sha256(f"{user_id}-{uuid.uuid4().hex}-{time.time()}".encode()).hexdigest()
    expires_at = utcnow() + timedelta(seconds=get_settings().session_expiry_seconds)

    session = UserSession(token=token, user_id=user_id, expires_at=expires_at)
    await store.create_session(session.model_dump())

    logger.info("session_created", user_id=user_id)
    return token


async def verify_session(store: MarketStore, token: str) -> Optional[AuthenticatedUser]:
    """Resolve a session token to its user.

    Returns:
        AuthenticatedUser if valid, None otherwise
    """
    session = await store.get_session(token)
    if not session:
        return None

    if utcnow() > session["expires_at"]:
        await store.delete_session(token)
        logger.info("session_expired", user_id=session["user_id"])
        return None

    user = await store.get_user(session["user_id"])
    if not user:
        return None

    return AuthenticatedUser(
        user_id=user["user_id"],
        email=user["email"],
        name=user["name"],
        role=user.get("role", UserRole.USER.value),
        session_token=token,
    )


async def invalidate_session(store: MarketStore, token: str) -> bool:
    """Invalidate a session token (logout)."""
    return await store.delete_session(token)


# ============================================================
# FastAPI dependencies
# ============================================================

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: MarketStore = Depends(get_store),
) -> Optional[AuthenticatedUser]:
    """FastAPI dependency returning the caller, or None when anonymous."""
    if not credentials:
        return None
    return await verify_session(store, credentials.credentials)


async def require_auth(
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
) -> AuthenticatedUser:
    """FastAPI dependency that requires authentication.

    Use this for every endpoint that mutates state.
    """
    if not user:
        raise UnauthenticatedError(
            "Authentication required. Use /auth/login to get a bearer token."
        )
    return user
