"""
vetledger_core.errors
---------------------
Error taxonomy shared by every ledger component.

Codes follow a numeric-range convention:

- 100-199  authorization (who is calling)
- 200-299  validation (what was passed in)
- 300-399  business logic (state of referenced records)

Components raise `LedgerError` subclasses; the `VetLedger` facade turns
them into `Result` values for external callers.
"""

from __future__ import annotations
from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    # authorization
    UNAUTHORIZED = 100
    NOT_VERIFIED_PROVIDER = 101
    NOT_ISSUER = 102
    NOT_GRANT_OWNER = 103
    NOT_SUBJECT_OWNER = 104
    ACCESS_DENIED = 105

    # validation
    INVALID_EXPIRY = 200
    INVALID_ID = 201
    INVALID_CHECK_TYPE = 202
    INVALID_STATUS = 203
    INVALID_ITEM_TYPE = 204
    INVALID_IDENTITY = 205
    INVALID_BATCH = 206
    NOT_FOUND = 207
    DUPLICATE_GRANT = 208
    DUPLICATE_ITEM = 209
    ALREADY_REGISTERED = 210
    INVALID_ARGUMENTS = 211

    # business logic
    ALREADY_EXPIRED = 300
    ATTESTATION_INVALID = 301
    NOT_EXPIRED = 302
    SUBJECT_NOT_REGISTERED = 303
    GRANT_INACTIVE = 304

    @property
    def category(self) -> str:
        if self.value < 200:
            return "authorization"
        if self.value < 300:
            return "validation"
        return "business"


class LedgerError(Exception):
    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = ErrorCode(code)
        self.message = message or self.code.name.lower().replace("_", "-")
        super().__init__(f"[{int(self.code)}] {self.message}")

    @property
    def name(self) -> str:
        return self.code.name

    @property
    def category(self) -> str:
        return self.code.category

    def to_dict(self) -> dict:
        return {"code": int(self.code), "name": self.name, "message": self.message}


class AuthorizationError(LedgerError):
    pass


class ValidationError(LedgerError):
    pass


class BusinessLogicError(LedgerError):
    pass


def ledger_error(code: ErrorCode, message: Optional[str] = None) -> LedgerError:
    """Build the subclass matching the code's range."""
    code = ErrorCode(code)
    if code.category == "authorization":
        return AuthorizationError(code, message)
    if code.category == "validation":
        return ValidationError(code, message)
    return BusinessLogicError(code, message)
