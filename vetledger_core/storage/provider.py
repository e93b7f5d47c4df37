# vetledger_core/storage/provider.py
from __future__ import annotations
from typing import ContextManager, List, Optional, Tuple

from vetledger_core.storage.models import (
    AccessGrant,
    AttestationRecord,
    EventRecord,
    ExpiryRecord,
)


class StorageProvider:
    """
    Interface every state backend implements.

    Secondary indices keep insertion order and never hold duplicates.
    Writes made inside `transaction()` are applied all together or not at
    all; a provider used outside a transaction applies each write at once.
    """

    def transaction(self) -> ContextManager["StorageProvider"]:
        raise NotImplementedError

    # counters
    def next_id(self, name: str) -> int: ...
    def counter(self, name: str) -> int: ...
    def set_counter(self, name: str, value: int) -> None: ...

    # attestations
    def insert_attestation(self, rec: AttestationRecord) -> None: ...
    def update_attestation(self, rec: AttestationRecord) -> None: ...
    def get_attestation(self, attestation_id: int) -> Optional[AttestationRecord]: ...
    def attestations_by_subject(self, subject_id: int) -> List[int]: ...
    def attestations_by_issuer(self, issuer_id: int) -> List[int]: ...

    # access grants
    def insert_grant(self, grant: AccessGrant) -> None: ...
    def update_grant(self, grant: AccessGrant) -> None: ...
    def get_grant(self, grant_id: int) -> Optional[AccessGrant]: ...
    def grants_by_subject(self, subject_id: int) -> List[int]: ...
    def grants_by_grantee(self, grantee_identity: str) -> List[int]: ...
    def set_grant_lookup(self, grantee_identity: str, attestation_id: int, grant_id: int) -> None: ...
    def get_grant_lookup(self, grantee_identity: str, attestation_id: int) -> Optional[int]: ...
    def delete_grant_lookup(self, grantee_identity: str, attestation_id: int) -> None: ...

    # expiry tracking
    def insert_expiry(self, rec: ExpiryRecord) -> None: ...
    def update_expiry(self, rec: ExpiryRecord, previous_expiry_time: int) -> None: ...
    def get_expiry(self, item_type: str, item_id: int) -> Optional[ExpiryRecord]: ...
    def items_expiring_at(self, expiry_time: int) -> List[Tuple[str, int]]: ...

    # audit
    def append_event(self, event: EventRecord) -> None: ...
    def last_event(self) -> Optional[EventRecord]: ...
    def list_events(self) -> List[EventRecord]: ...

    # replay guard
    def seen_msg(self, msg_id: str) -> bool: ...
    def mark_msg(self, msg_id: str) -> None: ...

    def flush(self) -> None: ...
    def close(self) -> None: ...
