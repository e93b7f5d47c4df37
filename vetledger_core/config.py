# vetledger_core/config.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import os

from vetledger_core.constants import (
    DEFAULT_DB_PATH,
    DEFAULT_MAX_GRANT_WINDOW,
    DEFAULT_MAX_VALIDITY_WINDOW,
    MAX_BATCH_SIZE,
)


@dataclass
class LedgerConfig:
    """
    Runtime settings for a VetLedger instance.

    Values come from explicit arguments first, then VETLEDGER_* environment
    variables, then the package defaults.
    """
    max_validity_window: int = DEFAULT_MAX_VALIDITY_WINDOW
    max_grant_window: int = DEFAULT_MAX_GRANT_WINDOW
    max_batch_size: int = MAX_BATCH_SIZE
    storage_provider: str = "memory"
    db_path: str = DEFAULT_DB_PATH
    event_sink: str = "null"
    indexer_url: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_validity_window <= 0 or self.max_grant_window <= 0:
            raise ValueError("validity windows must be positive")
        if self.max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")

    @classmethod
    def from_env(cls, **overrides) -> "LedgerConfig":
        env = {
            "max_validity_window": int(os.getenv("VETLEDGER_MAX_VALIDITY_WINDOW", DEFAULT_MAX_VALIDITY_WINDOW)),
            "max_grant_window": int(os.getenv("VETLEDGER_MAX_GRANT_WINDOW", DEFAULT_MAX_GRANT_WINDOW)),
            "max_batch_size": int(os.getenv("VETLEDGER_MAX_BATCH_SIZE", MAX_BATCH_SIZE)),
            "storage_provider": os.getenv("VETLEDGER_STORAGE_PROVIDER", "memory").lower(),
            "db_path": os.getenv("VETLEDGER_DB_PATH", DEFAULT_DB_PATH),
            "event_sink": os.getenv("VETLEDGER_EVENT_SINK", "null").lower(),
            "indexer_url": os.getenv("VETLEDGER_INDEXER_URL"),
            "log_level": os.getenv("VETLEDGER_LOG_LEVEL", "INFO").upper(),
        }
        env.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**env)

    def storage_config(self) -> dict:
        return {"provider": self.storage_provider, "sqlite_path": self.db_path}
