# vetledger_core/storage/__init__.py

from .models import (
    AccessGrant,
    AttestationRecord,
    AttestationState,
    EventRecord,
    ExpiryRecord,
    GrantState,
    GrantStatus,
)
from .provider import StorageProvider
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage
from vetledger_core.constants import DEFAULT_DB_PATH
import os


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for selecting the runtime storage backend.

        - memory (default)
        - sqlite
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("VETLEDGER_STORAGE_PROVIDER", "memory")

    if provider == "memory":
        return InMemoryStorage()

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("VETLEDGER_DB_PATH", DEFAULT_DB_PATH)
        return SQLiteStorage(db_path)

    raise ValueError(f"Unknown storage provider: {provider}")


__all__ = [
    "AccessGrant",
    "AttestationRecord",
    "AttestationState",
    "EventRecord",
    "ExpiryRecord",
    "GrantState",
    "GrantStatus",
    "StorageProvider",
    "InMemoryStorage",
    "SQLiteStorage",
    "load_storage_provider",
]
