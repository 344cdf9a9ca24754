"""Collection catalog module."""

from .manage import (
    create_collection,
    get_collection,
    list_collections,
    update_collection,
    delete_collection,
)

__all__ = [
    "create_collection",
    "get_collection",
    "list_collections",
    "update_collection",
    "delete_collection",
]
