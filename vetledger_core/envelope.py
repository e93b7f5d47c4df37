"""
vetledger_core.envelope
-----------------------
Defines the Call envelope: the signed container a client submits to invoke
one named ledger entry point.

Key features:
- Deterministic canonicalization for signing
- Replay-safe identifiers (msg_id)
- Caller public key travels with the call; identity is derived on receipt
"""

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional
from .constants import SCHEMA_VERSION
from .utils import canonical_json, new_id, now_ts


@dataclass
class Call:
    op: str = ""                # entry point, e.g. "issue-attestation"
    args: Dict[str, Any] = field(default_factory=dict)
    schema_ver: str = SCHEMA_VERSION
    msg_id: str = field(default_factory=new_id)
    ts: str = field(default_factory=now_ts)
    pubkey_b64: str = ""        # caller's Ed25519 public key
    sig: Optional[str] = None   # base64 signature over to_signing_bytes()

    def to_signing_bytes(self) -> bytes:
        body = {
            "schema_ver": self.schema_ver,
            "msg_id": self.msg_id,
            "op": self.op,
            "args": self.args,
            "pubkey_b64": self.pubkey_b64,
        }
        return canonical_json(body)

    def to_dict(self, include_sig: bool = True) -> Dict[str, Any]:
        d = asdict(self)
        if not include_sig:
            d["sig"] = None
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Call":
        return cls(
            op=data.get("op", ""),
            args=dict(data.get("args") or {}),
            schema_ver=data.get("schema_ver", SCHEMA_VERSION),
            msg_id=data.get("msg_id") or new_id(),
            ts=data.get("ts") or now_ts(),
            pubkey_b64=data.get("pubkey_b64", ""),
            sig=data.get("sig"),
        )
