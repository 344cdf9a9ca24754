"""Configuration settings for Bidboard.

## Storage

Two backends share one interface (see ``bidboard.store``):

- ``mongo``: MongoDB through motor. Accepting a bid, deleting a collection
  and deleting a user use multi-document transactions, so the server must
  run as a replica set (Atlas clusters do; a local ``mongod`` needs
  ``--replSet``).
- ``memory``: process-local dictionaries guarded by an asyncio lock. Useful
  for tests and demos, lost on restart.

## Sessions

Register/login hand out an opaque bearer token that lives for
``session_expiry_seconds``. Tokens are stored by the active backend, so a
MongoDB deployment keeps sessions across restarts and workers.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Bidboard settings from environment."""

    # Storage
    storage_backend: str = "mongo"  # mongo | memory

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongodb_database: str = "bidboard"

    # Auth
    session_expiry_seconds: int = 86400  # 24 hours
    password_hash_iterations: int = 200_000
    password_min_length: int = 6

    # Listing
    default_list_limit: int = 100
    max_list_limit: int = 500

    # HTTP
    cors_origins: list[str] = ["*"]
    api_url: str = "http://localhost:8000"  # Used by the CLI client

    class Config:
        env_prefix = "BIDBOARD_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
