# vetledger_core/clock.py
from __future__ import annotations
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from vetledger_core.storage.provider import StorageProvider

CLOCK_COUNTER = "clock_height"


class LogicalClock:
    """
    Shared monotonic counter used for every expiry comparison.

    All components of one ledger hold the same instance; nothing reads
    wall-clock time for validity decisions. A clock bound to a state store
    writes its height there on every advance so a reopened ledger resumes
    where it stopped.
    """

    def __init__(self, height: int = 0, storage: Optional["StorageProvider"] = None):
        if height < 0:
            raise ValueError("clock height cannot be negative")
        self._height = int(height)
        self.storage = storage

    @classmethod
    def from_storage(cls, storage: "StorageProvider") -> "LogicalClock":
        return cls(storage.counter(CLOCK_COUNTER), storage)

    @property
    def now(self) -> int:
        return self._height

    def advance(self, ticks: int = 1) -> int:
        if ticks < 0:
            raise ValueError("logical time only moves forward")
        height = self._height + int(ticks)
        if self.storage is not None:
            with self.storage.transaction():
                self.storage.set_counter(CLOCK_COUNTER, height)
        self._height = height
        return self._height

    def expiry_from_now(self, duration: int) -> int:
        return self._height + int(duration)

    def __repr__(self) -> str:
        return f"LogicalClock(height={self._height})"
