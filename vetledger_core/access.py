"""
vetledger_core.access
---------------------
Access Grant Ledger: volunteers consent to one organization viewing one of
their attestations, and can withdraw that consent.

Grant lifecycle:

    ACTIVE --revoke--> REVOKED          (stored, terminal)
    ACTIVE --clock passes expiry--> EXPIRED   (computed, never stored)

The fast lookup `(grantee, attestation) -> grant id` holds the grant that
currently speaks for a pair. Revoking removes it so the pair can be
granted again.
"""

from __future__ import annotations
from typing import List, Optional

from vetledger_core import events as ev
from vetledger_core.attestations import AttestationLedger
from vetledger_core.clock import LogicalClock
from vetledger_core.constants import DEFAULT_MAX_GRANT_WINDOW
from vetledger_core.errors import ErrorCode, ledger_error
from vetledger_core.events import EventLog
from vetledger_core.logger import get_logger
from vetledger_core.registries import VolunteerRegistry
from vetledger_core.storage.models import AccessGrant, AttestationRecord, GrantState
from vetledger_core.storage.provider import StorageProvider
from vetledger_core.utils import is_int

log = get_logger("vetledger.access")


def subject_owns_attestation(attestation: AttestationRecord, subject_id: int) -> bool:
    """Ownership rule for grant creation, evaluated on immutable snapshots."""
    return attestation.subject_id == subject_id


class AccessGrantLedger:
    def __init__(
        self,
        storage: StorageProvider,
        clock: LogicalClock,
        volunteers: VolunteerRegistry,
        attestations: AttestationLedger,
        events: EventLog,
        max_grant_window: int = DEFAULT_MAX_GRANT_WINDOW,
    ):
        self.storage = storage
        self.clock = clock
        self.volunteers = volunteers
        self.attestations = attestations
        self.events = events
        self.max_grant_window = max_grant_window

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def grant(self, caller: str, grantee_identity: str, attestation_id: int, expiry: int) -> int:
        now = self.clock.now

        subject_id = self.volunteers.lookup_subject_by_identity(caller)
        if subject_id is None:
            raise ledger_error(ErrorCode.SUBJECT_NOT_REGISTERED, "register as a volunteer first")
        if not isinstance(grantee_identity, str) or not grantee_identity:
            raise ledger_error(ErrorCode.INVALID_IDENTITY, "grantee identity is required")
        if not is_int(expiry) or expiry <= now or expiry - now > self.max_grant_window:
            raise ledger_error(ErrorCode.INVALID_EXPIRY, "expiry outside the grant window")
        if not is_int(attestation_id):
            raise ledger_error(ErrorCode.INVALID_ID, "attestation id must be an integer")

        attestation = self.attestations.get(attestation_id)
        if attestation is None or not attestation.is_valid_at(now):
            raise ledger_error(ErrorCode.ATTESTATION_INVALID, f"attestation {attestation_id} is not valid")

        current = self._current_grant(grantee_identity, attestation_id)
        if current is not None and current.state(now) is GrantState.ACTIVE:
            raise ledger_error(ErrorCode.DUPLICATE_GRANT, "an active grant already exists for this pair")

        if not subject_owns_attestation(attestation, subject_id):
            log.warning(f"grant rejected code={int(ErrorCode.NOT_SUBJECT_OWNER)} attestation={attestation_id}")
            raise ledger_error(ErrorCode.NOT_SUBJECT_OWNER, "attestation belongs to another volunteer")

        with self.storage.transaction():
            grant_id = self.storage.next_id("grant")
            grant = AccessGrant(
                id=grant_id,
                subject_id=subject_id,
                grantee_identity=grantee_identity,
                attestation_id=attestation_id,
                granted_at=now,
                expiry=expiry,
                granter_identity=caller,
            )
            self.storage.insert_grant(grant)
            self.storage.set_grant_lookup(grantee_identity, attestation_id, grant_id)
            event = self.events.record(
                ev.ACCESS_GRANTED,
                {"grant_id": grant_id, "attestation_id": attestation_id, "subject_id": subject_id},
                actor=caller,
                at=now,
                extra={"grantee": grantee_identity, "expiry": expiry},
            )

        self.events.publish(event)
        log.info(f"access granted id={grant_id} attestation={attestation_id} grantee={grantee_identity}")
        return grant_id

    def revoke(self, caller: str, grant_id: int) -> bool:
        now = self.clock.now
        if not is_int(grant_id):
            raise ledger_error(ErrorCode.INVALID_ID, "grant id must be an integer")
        grant = self.storage.get_grant(grant_id)
        if grant is None:
            raise ledger_error(ErrorCode.NOT_FOUND, f"grant {grant_id} not found")
        if caller != grant.granter_identity:
            log.warning(f"revoke rejected code={int(ErrorCode.NOT_GRANT_OWNER)} grant={grant_id}")
            raise ledger_error(ErrorCode.NOT_GRANT_OWNER, "only the granting identity may revoke")
        if not grant.active:
            raise ledger_error(ErrorCode.GRANT_INACTIVE, f"grant {grant_id} is already inactive")

        with self.storage.transaction():
            self.storage.update_grant(grant.revoked())
            # an expired grant may already have been superseded for this pair
            if self.storage.get_grant_lookup(*grant.lookup_key) == grant_id:
                self.storage.delete_grant_lookup(*grant.lookup_key)
            event = self.events.record(
                ev.ACCESS_REVOKED,
                {"grant_id": grant_id, "attestation_id": grant.attestation_id, "subject_id": grant.subject_id},
                actor=caller,
                at=now,
                extra={"grantee": grant.grantee_identity},
            )

        self.events.publish(event)
        log.info(f"access revoked id={grant_id}")
        return True

    def fetch(self, caller: str, attestation_id: int) -> AttestationRecord:
        """
        Return the attestation to an organization holding a live grant.

        The grant is re-checked on every call; an attestation that lapsed
        or was revoked after the grant was made is reported as invalid.
        """
        now = self.clock.now
        if not is_int(attestation_id):
            raise ledger_error(ErrorCode.INVALID_ID, "attestation id must be an integer")
        grant = self._current_grant(caller, attestation_id)
        if grant is None or grant.state(now) is not GrantState.ACTIVE:
            log.warning(f"fetch rejected code={int(ErrorCode.ACCESS_DENIED)} attestation={attestation_id}")
            raise ledger_error(ErrorCode.ACCESS_DENIED, "no active grant for this attestation")

        attestation = self.attestations.get(attestation_id)
        if attestation is None or not attestation.is_valid_at(now):
            raise ledger_error(ErrorCode.ATTESTATION_INVALID, f"attestation {attestation_id} is no longer valid")

        with self.storage.transaction():
            event = self.events.record(
                ev.ATTESTATION_FETCHED,
                {"grant_id": grant.id, "attestation_id": attestation_id, "subject_id": grant.subject_id},
                actor=caller,
                at=now,
            )

        self.events.publish(event)
        return attestation

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _current_grant(self, grantee_identity: str, attestation_id: int) -> Optional[AccessGrant]:
        grant_id = self.storage.get_grant_lookup(grantee_identity, attestation_id)
        if grant_id is None:
            return None
        return self.storage.get_grant(grant_id)

    def get_grant(self, grant_id: int) -> Optional[AccessGrant]:
        return self.storage.get_grant(grant_id)

    def check_access(self, grantee_identity: str, attestation_id: int) -> bool:
        grant = self._current_grant(grantee_identity, attestation_id)
        if grant is None or grant.state(self.clock.now) is not GrantState.ACTIVE:
            return False
        return self.attestations.is_valid(attestation_id)

    def list_accessible(self, grantee_identity: str) -> List[int]:
        now = self.clock.now
        accessible = []
        for grant_id in self.storage.grants_by_grantee(grantee_identity):
            grant = self.storage.get_grant(grant_id)
            if grant is not None and grant.state(now) is GrantState.ACTIVE:
                accessible.append(grant.attestation_id)
        return accessible

    def list_by_subject(self, subject_id: int) -> List[int]:
        return self.storage.grants_by_subject(subject_id)

    def list_by_grantee(self, grantee_identity: str) -> List[int]:
        return self.storage.grants_by_grantee(grantee_identity)

    def total(self) -> int:
        return self.storage.counter("grant")
