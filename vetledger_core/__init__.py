"""
VetLedger Core Package
======================
Application logic for anchoring volunteer background checks in an
append-only ledger.

Provides:
- Attestation Ledger (providers publish time-bound check results)
- Access Grant Ledger (volunteers consent to organization access)
- Expiry Tracker (generic time-bound item registry)
- Pluggable state storage (in-memory, SQLite)
- Ed25519 caller identities and a hash-chained event log
"""

from vetledger_core.clock import LogicalClock
from vetledger_core.errors import ErrorCode, LedgerError
from vetledger_core.ledger import Result, VetLedger

__all__ = [
    "ErrorCode",
    "LedgerError",
    "LogicalClock",
    "Result",
    "VetLedger",
]
