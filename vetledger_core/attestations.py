"""
vetledger_core.attestations
---------------------------
Attestation Ledger: verified providers publish time-bound background check
results about registered volunteers.

Records are never deleted. Revocation moves `valid_until` to the current
tick so the record persists but reads as expired.
"""

from __future__ import annotations
from typing import List, Optional

from vetledger_core import events as ev
from vetledger_core.clock import LogicalClock
from vetledger_core.constants import CHECK_STATUSES, CHECK_TYPES, DEFAULT_MAX_VALIDITY_WINDOW
from vetledger_core.errors import ErrorCode, ledger_error
from vetledger_core.events import EventLog
from vetledger_core.logger import get_logger
from vetledger_core.registries import ProviderRegistry, VolunteerRegistry
from vetledger_core.storage.models import AttestationRecord
from vetledger_core.storage.provider import StorageProvider
from vetledger_core.utils import is_int

log = get_logger("vetledger.attestations")


class AttestationLedger:
    def __init__(
        self,
        storage: StorageProvider,
        clock: LogicalClock,
        volunteers: VolunteerRegistry,
        providers: ProviderRegistry,
        events: EventLog,
        max_validity_window: int = DEFAULT_MAX_VALIDITY_WINDOW,
    ):
        self.storage = storage
        self.clock = clock
        self.volunteers = volunteers
        self.providers = providers
        self.events = events
        self.max_validity_window = max_validity_window

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def issue(self, caller: str, subject_id: int, check_type: str, status: str, valid_until: int) -> int:
        """
        Publish a check result for `subject_id` and return its id.

        Every precondition is checked before anything is written:
        verified provider (101), registered subject (303), check type
        (202), status (203), then the validity window (200).
        """
        now = self.clock.now

        provider_id = self.providers.lookup_provider_by_identity(caller)
        if provider_id is None or not self.providers.is_verified_provider(provider_id):
            log.warning(f"issue rejected code={int(ErrorCode.NOT_VERIFIED_PROVIDER)} caller={caller}")
            raise ledger_error(ErrorCode.NOT_VERIFIED_PROVIDER)
        if not is_int(subject_id):
            raise ledger_error(ErrorCode.INVALID_ID, "subject id must be an integer")
        if not self.volunteers.is_registered(subject_id):
            raise ledger_error(ErrorCode.SUBJECT_NOT_REGISTERED, f"subject {subject_id} is not registered")
        if not isinstance(check_type, str) or check_type not in CHECK_TYPES:
            raise ledger_error(ErrorCode.INVALID_CHECK_TYPE, f"unknown check type {check_type!r}")
        if not isinstance(status, str) or status not in CHECK_STATUSES:
            raise ledger_error(ErrorCode.INVALID_STATUS, f"unknown status {status!r}")
        if not is_int(valid_until) or valid_until <= now or valid_until - now > self.max_validity_window:
            raise ledger_error(ErrorCode.INVALID_EXPIRY, "valid_until outside the validity window")

        with self.storage.transaction():
            attestation_id = self.storage.next_id("attestation")
            rec = AttestationRecord(
                id=attestation_id,
                subject_id=subject_id,
                issuer_id=provider_id,
                check_type=check_type,
                status=status,
                issued_at=now,
                valid_until=valid_until,
                issuer_identity=caller,
            )
            self.storage.insert_attestation(rec)
            event = self.events.record(
                ev.ATTESTATION_ISSUED,
                {"attestation_id": attestation_id, "subject_id": subject_id, "issuer_id": provider_id},
                actor=caller,
                at=now,
                extra={"check_type": check_type, "status": status, "valid_until": valid_until},
            )

        self.events.publish(event)
        log.info(f"attestation issued id={attestation_id} subject={subject_id} issuer={provider_id}")
        return attestation_id

    def revoke(self, caller: str, attestation_id: int) -> bool:
        now = self.clock.now
        if not is_int(attestation_id):
            raise ledger_error(ErrorCode.INVALID_ID, "attestation id must be an integer")
        rec = self.storage.get_attestation(attestation_id)
        if rec is None:
            raise ledger_error(ErrorCode.NOT_FOUND, f"attestation {attestation_id} not found")
        if caller != rec.issuer_identity:
            log.warning(f"revoke rejected code={int(ErrorCode.NOT_ISSUER)} id={attestation_id}")
            raise ledger_error(ErrorCode.NOT_ISSUER, "only the issuing identity may revoke")
        if not rec.is_valid_at(now):
            raise ledger_error(ErrorCode.ALREADY_EXPIRED, f"attestation {attestation_id} already expired")

        with self.storage.transaction():
            self.storage.update_attestation(rec.with_valid_until(now))
            event = self.events.record(
                ev.ATTESTATION_REVOKED,
                {"attestation_id": attestation_id, "subject_id": rec.subject_id},
                actor=caller,
                at=now,
            )

        self.events.publish(event)
        log.info(f"attestation revoked id={attestation_id}")
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, attestation_id: int) -> Optional[AttestationRecord]:
        return self.storage.get_attestation(attestation_id)

    def is_valid(self, attestation_id: int) -> bool:
        rec = self.storage.get_attestation(attestation_id)
        return rec is not None and rec.is_valid_at(self.clock.now)

    def list_by_subject(self, subject_id: int) -> List[int]:
        return self.storage.attestations_by_subject(subject_id)

    def list_by_issuer(self, issuer_id: int) -> List[int]:
        return self.storage.attestations_by_issuer(issuer_id)

    def list_valid_by_subject(self, subject_id: int) -> List[int]:
        return [a for a in self.storage.attestations_by_subject(subject_id) if self.is_valid(a)]

    def total(self) -> int:
        return self.storage.counter("attestation")
