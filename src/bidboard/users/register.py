"""User registration and login."""

import uuid
from typing import Optional
import structlog

from ..auth import create_session, hash_password, verify_password, invalidate_session
from ..config import get_settings
from ..errors import ConflictError, UnauthenticatedError, ValidationError
from ..models import MarketUser, UserRole, public_user
from ..store import MarketStore

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_password(password: str) -> None:
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters")


async def create_user(
    store: MarketStore,
    email: str,
    password: str,
    name: str,
    role: UserRole = UserRole.USER,
) -> dict:
    """Create an account without opening a session.

    Args:
        store: Active store
        email: Login email (unique, case-insensitive)
        password: Plain password, hashed before storage
        name: Display name
        role: Account role

    Returns:
        The public user (no password hash)
    """
    email = normalize_email(email)
    check_password(password)

    if await store.get_user_by_email(email):
        logger.warning("registration_conflict", email=email)
        raise ConflictError("User with this email already exists")

    user = MarketUser(
        user_id=f"usr_{uuid.uuid4().hex[:12]}",
        email=email,
        name=name.strip(),
        role=role,
        password_hash=hash_password(password),
    )
    # The unique email index still catches a concurrent registration
    created = await store.create_user(user.model_dump())
    return public_user(created)


async def register_user(
    store: MarketStore,
    email: str,
    password: str,
    name: str,
    role: UserRole = UserRole.USER,
) -> dict:
    """Create an account and open a session.

    Returns:
        {"access_token": ..., "user": public user}
    """
    user = await create_user(store, email, password, name, role)
    token = await create_session(store, user["user_id"])

    logger.info("user_registered", user_id=user["user_id"])

    return {"access_token": token, "user": user}


async def login_user(store: MarketStore, email: str, password: str) -> dict:
    """Verify credentials and open a session."""
    user = await store.get_user_by_email(normalize_email(email))
    if not user or not verify_password(password, user["password_hash"]):
        logger.warning("login_failed", email=normalize_email(email))
        raise UnauthenticatedError("Invalid credentials")

    token = await create_session(store, user["user_id"])
    logger.info("user_logged_in", user_id=user["user_id"])

    return {"access_token": token, "user": public_user(user)}


async def logout_user(store: MarketStore, token: Optional[str]) -> bool:
    if not token:
        return False
    return await invalidate_session(store, token)
