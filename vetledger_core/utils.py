"""
vetledger_core.utils
--------------------
Lightweight helpers for id generation, timestamping, base64 utilities, and canonical JSON serialization.
Canonical JSON keeps call signing and event hash chaining deterministic.
"""

from __future__ import annotations
import base64, json, time, uuid, hashlib
from typing import Any, Dict

def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")

def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"))

def now_ts() -> str:
    # RFC3339 / ISO 8601 in UTC, second precision (wall clock, audit only)
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

def new_id() -> str:
    return uuid.uuid4().hex

def canonical_json(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")

def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def is_int(value: Any) -> bool:
    # bool is an int subclass; ids and ticks never are
    return isinstance(value, int) and not isinstance(value, bool)
