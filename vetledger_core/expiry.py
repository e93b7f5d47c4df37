"""
vetledger_core.expiry
---------------------
Expiry Tracker: a generic `(item_type, item_id) -> expiry_time` registry,
independent of what the tracked items represent.

`is_expired` is computed from the clock; the stored `is_expired` flag is
an audit trail set by `mark_as_expired` and only cleared by the owner
through `update`.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from vetledger_core import events as ev
from vetledger_core.clock import LogicalClock
from vetledger_core.constants import ITEM_TYPE_ATTESTATION, ITEM_TYPE_GRANT, ITEM_TYPES, MAX_BATCH_SIZE
from vetledger_core.errors import ErrorCode, ledger_error
from vetledger_core.events import EventLog
from vetledger_core.logger import get_logger
from vetledger_core.storage.models import ExpiryRecord
from vetledger_core.storage.provider import StorageProvider
from vetledger_core.utils import is_int

log = get_logger("vetledger.expiry")

TRACKED_COUNTER = "tracked_items"


class ExpiryTracker:
    def __init__(
        self,
        storage: StorageProvider,
        clock: LogicalClock,
        events: EventLog,
        owner: str,
        max_batch_size: int = MAX_BATCH_SIZE,
    ):
        self.storage = storage
        self.clock = clock
        self.events = events
        self.owner = owner
        self.max_batch_size = max_batch_size

    @staticmethod
    def _check_item_type(item_type: str) -> None:
        if not isinstance(item_type, str) or item_type not in ITEM_TYPES:
            raise ledger_error(ErrorCode.INVALID_ITEM_TYPE, f"unknown item type {item_type!r}")

    def _require(self, item_type: str, item_id: int) -> ExpiryRecord:
        if not is_int(item_id):
            raise ledger_error(ErrorCode.INVALID_ID, "item id must be an integer")
        rec = self.storage.get_expiry(item_type, item_id)
        if rec is None:
            raise ledger_error(ErrorCode.NOT_FOUND, f"{item_type} {item_id} is not tracked")
        return rec

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def register(self, caller: str, item_type: str, item_id: int, expiry_time: int) -> bool:
        now = self.clock.now
        self._check_item_type(item_type)
        if not is_int(item_id) or item_id <= 0:
            raise ledger_error(ErrorCode.INVALID_ID, "item id must be positive")
        if not is_int(expiry_time) or expiry_time <= now:
            raise ledger_error(ErrorCode.INVALID_EXPIRY, "expiry time must be in the future")
        if self.storage.get_expiry(item_type, item_id) is not None:
            raise ledger_error(ErrorCode.DUPLICATE_ITEM, f"{item_type} {item_id} is already tracked")

        with self.storage.transaction():
            self.storage.insert_expiry(
                ExpiryRecord(item_type, item_id, expiry_time, created_at=now, registered_by=caller)
            )
            self.storage.next_id(TRACKED_COUNTER)
            event = self.events.record(
                ev.EXPIRY_REGISTERED,
                {"item_type": item_type, "item_id": item_id},
                actor=caller,
                at=now,
                extra={"expiry_time": expiry_time},
            )

        self.events.publish(event)
        log.info(f"expiry registered {item_type}:{item_id} at={expiry_time}")
        return True

    def mark_as_expired(self, caller: str, item_type: str, item_id: int) -> bool:
        """Set the sticky flag. Open to any caller once the expiry time has passed."""
        now = self.clock.now
        self._check_item_type(item_type)
        rec = self._require(item_type, item_id)
        if rec.is_expired:
            raise ledger_error(ErrorCode.ALREADY_EXPIRED, f"{item_type} {item_id} already marked")
        if now < rec.expiry_time:
            raise ledger_error(ErrorCode.NOT_EXPIRED, f"{item_type} {item_id} expires at {rec.expiry_time}")

        with self.storage.transaction():
            self.storage.update_expiry(replace(rec, is_expired=True), rec.expiry_time)
            event = self.events.record(
                ev.EXPIRY_MARKED,
                {"item_type": item_type, "item_id": item_id},
                actor=caller,
                at=now,
            )

        self.events.publish(event)
        log.info(f"expiry marked {item_type}:{item_id}")
        return True

    def update(self, caller: str, item_type: str, item_id: int, new_expiry_time: int) -> bool:
        now = self.clock.now
        if caller != self.owner:
            log.warning(f"update rejected code={int(ErrorCode.UNAUTHORIZED)} {item_type}:{item_id}")
            raise ledger_error(ErrorCode.UNAUTHORIZED, "tracker owner only")
        self._check_item_type(item_type)
        rec = self._require(item_type, item_id)
        if not is_int(new_expiry_time) or new_expiry_time <= now:
            raise ledger_error(ErrorCode.INVALID_EXPIRY, "expiry time must be in the future")

        with self.storage.transaction():
            self.storage.update_expiry(
                replace(rec, expiry_time=new_expiry_time, is_expired=False), rec.expiry_time
            )
            event = self.events.record(
                ev.EXPIRY_UPDATED,
                {"item_type": item_type, "item_id": item_id},
                actor=caller,
                at=now,
                extra={"previous_expiry_time": rec.expiry_time, "expiry_time": new_expiry_time},
            )

        self.events.publish(event)
        log.info(f"expiry updated {item_type}:{item_id} {rec.expiry_time}->{new_expiry_time}")
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_expiry(self, item_type: str, item_id: int) -> Optional[ExpiryRecord]:
        return self.storage.get_expiry(item_type, item_id)

    def is_expired(self, item_type: str, item_id: int) -> bool:
        rec = self.storage.get_expiry(item_type, item_id)
        if rec is None:
            return False
        return rec.is_expired or self.clock.now >= rec.expiry_time

    def is_valid(self, item_type: str, item_id: int) -> bool:
        rec = self.storage.get_expiry(item_type, item_id)
        return rec is not None and not self.is_expired(item_type, item_id)

    def time_until_expiry(self, item_type: str, item_id: int) -> Optional[int]:
        rec = self.storage.get_expiry(item_type, item_id)
        if rec is None:
            return None
        if rec.is_expired:
            return 0
        return max(0, rec.expiry_time - self.clock.now)

    def will_expire_within(self, item_type: str, item_id: int, window: int) -> bool:
        rec = self.storage.get_expiry(item_type, item_id)
        if rec is None:
            return False
        return rec.is_expired or rec.expiry_time <= self.clock.now + window

    def items_expiring_at(self, expiry_time: int) -> List[Tuple[str, int]]:
        return self.storage.items_expiring_at(expiry_time)

    def batch_check_valid(self, item_type: str, item_ids: Iterable[int]) -> List[bool]:
        self._check_item_type(item_type)
        ids = list(item_ids) if isinstance(item_ids, (list, tuple, range)) else None
        if ids is None or not all(is_int(i) for i in ids):
            raise ledger_error(ErrorCode.INVALID_BATCH, "item ids must be a list of integers")
        if len(ids) > self.max_batch_size:
            raise ledger_error(ErrorCode.INVALID_BATCH, f"at most {self.max_batch_size} ids per batch")
        return [self.is_valid(item_type, i) for i in ids]

    def batch_check_attestations_valid(self, item_ids: Iterable[int]) -> List[bool]:
        return self.batch_check_valid(ITEM_TYPE_ATTESTATION, item_ids)

    def batch_check_grants_valid(self, item_ids: Iterable[int]) -> List[bool]:
        return self.batch_check_valid(ITEM_TYPE_GRANT, item_ids)

    def calculate_expiry_from_now(self, duration: int) -> int:
        if not is_int(duration) or duration <= 0:
            raise ledger_error(ErrorCode.INVALID_EXPIRY, "duration must be positive")
        return self.clock.expiry_from_now(duration)

    def total_tracked_items(self) -> int:
        return self.storage.counter(TRACKED_COUNTER)

    def info(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "current_time": self.clock.now,
            "total_tracked_items": self.total_tracked_items(),
            "item_types": sorted(ITEM_TYPES),
            "max_batch_size": self.max_batch_size,
        }
