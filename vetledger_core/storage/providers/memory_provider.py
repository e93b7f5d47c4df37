from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple
import copy

from vetledger_core.storage.models import AccessGrant, AttestationRecord, EventRecord, ExpiryRecord
from vetledger_core.storage.provider import StorageProvider


def _append_unique(index: Dict, key, value) -> None:
    bucket = index.setdefault(key, [])
    if value not in bucket:
        bucket.append(value)


class InMemoryStorage(StorageProvider):
    _STATE = (
        "counters", "attestations", "by_subject", "by_issuer",
        "grants", "grant_subject_index", "grant_grantee_index", "grant_lookup",
        "expiry", "schedule", "audit", "replay",
    )

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.attestations: Dict[int, AttestationRecord] = {}
        self.by_subject: Dict[int, List[int]] = {}
        self.by_issuer: Dict[int, List[int]] = {}
        self.grants: Dict[int, AccessGrant] = {}
        self.grant_subject_index: Dict[int, List[int]] = {}
        self.grant_grantee_index: Dict[str, List[int]] = {}
        self.grant_lookup: Dict[Tuple[str, int], int] = {}
        self.expiry: Dict[Tuple[str, int], ExpiryRecord] = {}
        self.schedule: Dict[int, List[Tuple[str, int]]] = {}
        self.audit: List[EventRecord] = []
        self.replay = set()
        self._depth = 0

    @contextmanager
    def transaction(self):
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = copy.deepcopy({name: getattr(self, name) for name in self._STATE})
        self._depth = 1
        try:
            yield self
        except BaseException:
            for name, value in snapshot.items():
                setattr(self, name, value)
            raise
        finally:
            self._depth = 0

    # counters
    def next_id(self, name: str) -> int:
        self.counters[name] = self.counters.get(name, 0) + 1
        return self.counters[name]

    def counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def set_counter(self, name: str, value: int):
        self.counters[name] = value

    # attestations
    def insert_attestation(self, rec: AttestationRecord):
        self.attestations[rec.id] = rec
        _append_unique(self.by_subject, rec.subject_id, rec.id)
        _append_unique(self.by_issuer, rec.issuer_id, rec.id)

    def update_attestation(self, rec: AttestationRecord):
        self.attestations[rec.id] = rec

    def get_attestation(self, attestation_id: int):
        return self.attestations.get(attestation_id)

    def attestations_by_subject(self, subject_id: int):
        return list(self.by_subject.get(subject_id, []))

    def attestations_by_issuer(self, issuer_id: int):
        return list(self.by_issuer.get(issuer_id, []))

    # access grants
    def insert_grant(self, grant: AccessGrant):
        self.grants[grant.id] = grant
        _append_unique(self.grant_subject_index, grant.subject_id, grant.id)
        _append_unique(self.grant_grantee_index, grant.grantee_identity, grant.id)

    def update_grant(self, grant: AccessGrant):
        self.grants[grant.id] = grant

    def get_grant(self, grant_id: int):
        return self.grants.get(grant_id)

    def grants_by_subject(self, subject_id: int):
        return list(self.grant_subject_index.get(subject_id, []))

    def grants_by_grantee(self, grantee_identity: str):
        return list(self.grant_grantee_index.get(grantee_identity, []))

    def set_grant_lookup(self, grantee_identity: str, attestation_id: int, grant_id: int):
        self.grant_lookup[(grantee_identity, attestation_id)] = grant_id

    def get_grant_lookup(self, grantee_identity: str, attestation_id: int):
        return self.grant_lookup.get((grantee_identity, attestation_id))

    def delete_grant_lookup(self, grantee_identity: str, attestation_id: int):
        self.grant_lookup.pop((grantee_identity, attestation_id), None)

    # expiry tracking
    def insert_expiry(self, rec: ExpiryRecord):
        self.expiry[rec.key] = rec
        _append_unique(self.schedule, rec.expiry_time, rec.key)

    def update_expiry(self, rec: ExpiryRecord, previous_expiry_time: int):
        self.expiry[rec.key] = rec
        if previous_expiry_time != rec.expiry_time:
            bucket = self.schedule.get(previous_expiry_time, [])
            if rec.key in bucket:
                bucket.remove(rec.key)
            if not bucket:
                self.schedule.pop(previous_expiry_time, None)
            _append_unique(self.schedule, rec.expiry_time, rec.key)

    def get_expiry(self, item_type: str, item_id: int):
        return self.expiry.get((item_type, item_id))

    def items_expiring_at(self, expiry_time: int):
        return list(self.schedule.get(expiry_time, []))

    # audit
    def append_event(self, event: EventRecord):
        self.audit.append(event)

    def last_event(self):
        return self.audit[-1] if self.audit else None

    def list_events(self):
        return list(self.audit)

    # replay guard
    def seen_msg(self, msg_id: str) -> bool:
        return msg_id in self.replay

    def mark_msg(self, msg_id: str):
        self.replay.add(msg_id)

    # nothing to persist
    def flush(self): pass
    def close(self): pass
