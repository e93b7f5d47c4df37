# vetledger_core/storage/models.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AttestationState(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"


class GrantStatus(str, Enum):
    """Stored status of a grant. Only ACTIVE -> REVOKED is ever written."""
    ACTIVE = "active"
    REVOKED = "revoked"


class GrantState(str, Enum):
    """Observed state of a grant; EXPIRED is computed from the clock."""
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AttestationRecord:
    """
    One completed background check result.

    Only `valid_until` ever changes after creation (revocation moves it to
    the revoking tick); every other field is fixed at issue time.
    """
    id: int
    subject_id: int
    issuer_id: int
    check_type: str
    status: str
    issued_at: int
    valid_until: int
    issuer_identity: str

    def is_valid_at(self, now: int) -> bool:
        return now < self.valid_until

    def state(self, now: int) -> AttestationState:
        return AttestationState.VALID if self.is_valid_at(now) else AttestationState.EXPIRED

    def with_valid_until(self, valid_until: int) -> "AttestationRecord":
        return replace(self, valid_until=valid_until)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AccessGrant:
    """Volunteer consent for one organization to view one attestation."""
    id: int
    subject_id: int
    grantee_identity: str
    attestation_id: int
    granted_at: int
    expiry: int
    granter_identity: str
    status: GrantStatus = GrantStatus.ACTIVE

    @property
    def active(self) -> bool:
        return self.status is GrantStatus.ACTIVE

    @property
    def lookup_key(self) -> Tuple[str, int]:
        return (self.grantee_identity, self.attestation_id)

    def state(self, now: int) -> GrantState:
        if not self.active:
            return GrantState.REVOKED
        if now >= self.expiry:
            return GrantState.EXPIRED
        return GrantState.ACTIVE

    def revoked(self) -> "AccessGrant":
        return replace(self, status=GrantStatus.REVOKED)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["active"] = self.active
        return d


@dataclass(frozen=True)
class ExpiryRecord:
    """Generic `(item_type, item_id) -> expiry_time` entry."""
    item_type: str
    item_id: int
    expiry_time: int
    created_at: int
    is_expired: bool = False
    registered_by: str = ""

    @property
    def key(self) -> Tuple[str, int]:
        return (self.item_type, self.item_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EventRecord:
    """
    Structured record emitted by every state-mutating operation.

    `prev_hash` / `event_hash` chain the records so any later edit of a
    stored event is detectable.
    """
    seq: int
    event: str
    ids: Dict[str, Any]
    actor: str
    at: int
    prev_hash: Optional[str] = None
    event_hash: str = ""
    recorded_ts: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def hash_body(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "event": self.event,
            "ids": self.ids,
            "actor": self.actor,
            "at": self.at,
            "prev_hash": self.prev_hash,
            "recorded_ts": self.recorded_ts,
            "extra": self.extra,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
