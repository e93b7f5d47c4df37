"""
vetledger_core.ledger
---------------------
VetLedger wires the Attestation Ledger, Access Grant Ledger and Expiry
Tracker onto one state store, one logical clock and one event log, and
exposes every operation as a named entry point.

Entry points never raise for ledger failures: `call()` and `submit()`
return a `Result` carrying either the value or the `LedgerError`.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import inspect

from vetledger_core.access import AccessGrantLedger
from vetledger_core.attestations import AttestationLedger
from vetledger_core.clock import LogicalClock
from vetledger_core.config import LedgerConfig
from vetledger_core.crypto import call_identity, verify_call
from vetledger_core.envelope import Call
from vetledger_core.errors import ErrorCode, LedgerError, ledger_error
from vetledger_core.events import EventLog, EventSink, event_sink_factory
from vetledger_core.expiry import ExpiryTracker
from vetledger_core.logger import get_logger
from vetledger_core.registries import (
    InMemoryProviderRegistry,
    InMemoryVolunteerRegistry,
    ProviderRegistry,
    VolunteerRegistry,
)
from vetledger_core.storage import StorageProvider, load_storage_provider

log = get_logger("vetledger.ledger")

COMPONENT_LOGGERS = (
    "vetledger.ledger",
    "vetledger.attestations",
    "vetledger.access",
    "vetledger.expiry",
    "vetledger.events",
    "vetledger.registries",
)


@dataclass
class Result:
    ok: bool
    value: Any = None
    error: Optional[LedgerError] = None

    @classmethod
    def success(cls, value: Any) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: LedgerError) -> "Result":
        return cls(ok=False, error=error)

    @property
    def error_code(self) -> Optional[int]:
        return int(self.error.code) if self.error else None

    def unwrap(self) -> Any:
        if not self.ok:
            raise self.error
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"ok": False, "error": self.error.to_dict()}
        value = self.value
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        return {"ok": True, "value": value}


class VetLedger:
    def __init__(
        self,
        owner: str,
        storage: Optional[StorageProvider] = None,
        clock: Optional[LogicalClock] = None,
        volunteers: Optional[VolunteerRegistry] = None,
        providers: Optional[ProviderRegistry] = None,
        config: Optional[LedgerConfig] = None,
        sink: Optional[EventSink] = None,
    ):
        self.owner = owner
        self.config = config or LedgerConfig.from_env()
        for name in COMPONENT_LOGGERS:
            get_logger(name, self.config.log_level)
        self.storage = storage or load_storage_provider(self.config.storage_config())
        self.clock = clock or LogicalClock.from_storage(self.storage)
        self.volunteers = volunteers or InMemoryVolunteerRegistry()
        self.providers = providers or InMemoryProviderRegistry(owner)
        self.events = EventLog(self.storage, sink or event_sink_factory(self.config.event_sink, self.config.indexer_url))

        self.attestations = AttestationLedger(
            self.storage, self.clock, self.volunteers, self.providers, self.events,
            max_validity_window=self.config.max_validity_window,
        )
        self.access = AccessGrantLedger(
            self.storage, self.clock, self.volunteers, self.attestations, self.events,
            max_grant_window=self.config.max_grant_window,
        )
        self.expiry = ExpiryTracker(
            self.storage, self.clock, self.events, owner,
            max_batch_size=self.config.max_batch_size,
        )

        # entry points that act on behalf of the caller
        self._mutations: Dict[str, Callable[..., Any]] = {
            "issue-attestation": self.attestations.issue,
            "revoke-attestation": self.attestations.revoke,
            "grant-access": self.access.grant,
            "revoke-access": self.access.revoke,
            "fetch-attestation": self.access.fetch,
            "register-expiry": self.expiry.register,
            "mark-as-expired": self.expiry.mark_as_expired,
            "update-expiry": self.expiry.update,
        }
        self._queries: Dict[str, Callable[..., Any]] = {
            "get-attestation": self.attestations.get,
            "is-attestation-valid": self.attestations.is_valid,
            "list-by-subject": self.attestations.list_by_subject,
            "list-by-issuer": self.attestations.list_by_issuer,
            "list-valid-by-subject": self.attestations.list_valid_by_subject,
            "get-access-grant": self.access.get_grant,
            "check-access": self.access.check_access,
            "list-accessible": self.access.list_accessible,
            "get-item-expiry": self.expiry.get_expiry,
            "is-item-expired": self.expiry.is_expired,
            "is-item-valid": self.expiry.is_valid,
            "get-time-until-expiry": self.expiry.time_until_expiry,
            "will-expire-within": self.expiry.will_expire_within,
            "items-expiring-at": self.expiry.items_expiring_at,
            "batch-check-attestations-valid": self.expiry.batch_check_attestations_valid,
            "batch-check-grants-valid": self.expiry.batch_check_grants_valid,
            "calculate-expiry-from-now": self.expiry.calculate_expiry_from_now,
            "get-total-tracked-items": self.expiry.total_tracked_items,
            "get-tracker-info": self.expiry.info,
        }

    @property
    def entry_points(self):
        return sorted(list(self._mutations) + list(self._queries))

    def call(self, op: str, caller: str = "", **args) -> Result:
        """Invoke a named entry point for an already authenticated caller."""
        args = {k.replace("-", "_"): v for k, v in args.items()}
        if op in self._mutations:
            fn, bound = self._mutations[op], (caller,)
        elif op in self._queries:
            fn, bound = self._queries[op], ()
        else:
            return Result.failure(ledger_error(ErrorCode.NOT_FOUND, f"unknown entry point {op!r}"))

        try:
            inspect.signature(fn).bind(*bound, **args)
        except TypeError as e:
            return Result.failure(ledger_error(ErrorCode.INVALID_ARGUMENTS, str(e)))

        try:
            value = fn(*bound, **args)
        except LedgerError as e:
            log.warning(f"{op} failed code={int(e.code)} caller={caller}")
            return Result.failure(e)
        except (TypeError, ValueError) as e:
            log.warning(f"{op} rejected malformed arguments caller={caller}: {e}")
            return Result.failure(ledger_error(ErrorCode.INVALID_ARGUMENTS, str(e)))
        return Result.success(value)

    def submit(self, call: Call) -> Result:
        """Verify a signed call envelope and dispatch it."""
        if not verify_call(call):
            log.warning(f"rejected call msg_id={call.msg_id}: bad signature")
            return Result.failure(ledger_error(ErrorCode.UNAUTHORIZED, "invalid call signature"))
        if self.storage.seen_msg(call.msg_id):
            log.warning(f"rejected call msg_id={call.msg_id}: replay")
            return Result.failure(ledger_error(ErrorCode.UNAUTHORIZED, "call already submitted"))
        self.storage.mark_msg(call.msg_id)
        return self.call(call.op, call_identity(call), **call.args)

    def advance(self, ticks: int = 1) -> int:
        return self.clock.advance(ticks)

    def verify_audit_chain(self) -> bool:
        return self.events.verify_chain()

    def close(self) -> None:
        self.events.sink.close()
        self.storage.close()
