"""User accounts module."""

from .register import create_user, register_user, login_user, logout_user
from .manage import list_users, get_user, update_user, delete_user

__all__ = [
    "create_user",
    "register_user",
    "login_user",
    "logout_user",
    "list_users",
    "get_user",
    "update_user",
    "delete_user",
]
