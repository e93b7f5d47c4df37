"""
vetledger_core.crypto
---------------------
Ed25519 primitives that give every ledger caller a cryptographic identity:

- ed25519_generate / ed25519_sign / ed25519_verify
- identity_from_pubkey(): stable identity string for a public key
- sign_call() / verify_call(): canonical helpers for signed call envelopes

An identity is the truncated SHA-256 fingerprint of the raw public key, so
no personal data is ever needed to address a caller.
"""

from __future__ import annotations
from typing import Tuple
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ed25519
import hashlib
from .utils import b64e, b64d
from .envelope import Call

# --------- Ed25519 (sign/verify) ----------
def ed25519_generate() -> Tuple[bytes, bytes]:
    sk = ed25519.Ed25519PrivateKey.generate()
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()

def ed25519_public(priv_raw: bytes) -> bytes:
    return ed25519.Ed25519PrivateKey.from_private_bytes(priv_raw).public_key().public_bytes_raw()

def ed25519_sign(priv_raw: bytes, data: bytes) -> bytes:
    sk = ed25519.Ed25519PrivateKey.from_private_bytes(priv_raw)
    return sk.sign(data)

def ed25519_verify(pub_raw: bytes, sig: bytes, data: bytes) -> bool:
    try:
        ed25519.Ed25519PublicKey.from_public_bytes(pub_raw).verify(sig, data)
        return True
    except (InvalidSignature, ValueError):
        return False

# --------- Identities ----------
def compute_pubkey_fingerprint(pubkey_b64: str) -> str:
    """
    Compute a stable fingerprint for an Ed25519 public key.

    - Input: base64-encoded Ed25519 public key
    - Output: hex-encoded SHA256 hash (truncated to 32 chars)
    """
    raw = b64d(pubkey_b64)
    digest = hashlib.sha256(raw).hexdigest()
    return digest[:32]

def identity_from_pubkey(pub_raw: bytes) -> str:
    return compute_pubkey_fingerprint(b64e(pub_raw))

# --------- Call envelope helpers ----------
def sign_call(call: Call, priv_raw: bytes) -> Call:
    call.pubkey_b64 = b64e(ed25519_public(priv_raw))
    call.sig = b64e(ed25519_sign(priv_raw, call.to_signing_bytes()))
    return call

def verify_call(call: Call) -> bool:
    if not call.sig or not call.pubkey_b64:
        return False
    try:
        pub_raw, sig = b64d(call.pubkey_b64), b64d(call.sig)
    except ValueError:
        return False
    return ed25519_verify(pub_raw, sig, call.to_signing_bytes())

def call_identity(call: Call) -> str:
    return compute_pubkey_fingerprint(call.pubkey_b64) if call.pubkey_b64 else ""
