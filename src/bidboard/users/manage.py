"""User account management."""

import structlog

from ..auth import AuthenticatedUser, hash_password
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import public_user, utcnow
from ..store import MarketStore
from .register import check_password, normalize_email

logger = structlog.get_logger()


def _check_can_manage(user_id: str, caller: AuthenticatedUser, action: str) -> None:
    if caller.user_id != user_id and not caller.is_admin:
        logger.warning("user_action_forbidden", action=action, user_id=user_id, caller=caller.user_id)
        raise AuthorizationError(f"You can only {action} your own account")


async def list_users(store: MarketStore, limit: int = 100) -> list[dict]:
    users = await store.list_users(limit)
    return [public_user(u) for u in users]


async def get_user(store: MarketStore, user_id: str) -> dict:
    user = await store.get_user(user_id)
    if not user:
        raise NotFoundError("User not found")
    return public_user(user)


async def update_user(
    store: MarketStore,
    user_id: str,
    caller: AuthenticatedUser,
    name: str | None = None,
    email: str | None = None,
    password: str | None = None,
) -> dict:
    """Update a user's name, email or password.

    Only the user themself or an admin may do this. A new email that is
    already registered raises ConflictError (from the store).
    """
    if not await store.get_user(user_id):
        raise NotFoundError("User not found")
    _check_can_manage(user_id, caller, "update")

    updates = {}
    if name is not None:
        updates["name"] = name.strip()
    if email is not None:
        updates["email"] = normalize_email(email)
    if password is not None:
        check_password(password)
        updates["password_hash"] = hash_password(password)

    if not updates:
        raise ValidationError("No fields to update")

    updates["updated_at"] = utcnow()
    user = await store.update_user(user_id, updates)
    if not user:
        raise NotFoundError("User not found")

    logger.info("user_updated", user_id=user_id, fields=sorted(k for k in updates if k != "updated_at"))
    return public_user(user)


async def delete_user(store: MarketStore, user_id: str, caller: AuthenticatedUser) -> dict:
    """Delete a user together with everything they own or bid."""
    if not await store.get_user(user_id):
        raise NotFoundError("User not found")
    _check_can_manage(user_id, caller, "delete")

    counts = await store.delete_user_cascade(user_id)
    if counts is None:
        raise NotFoundError("User not found")

    return {"message": "User deleted successfully", "user_id": user_id, **counts}
