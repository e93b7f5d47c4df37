"""
vetledger_core.registries
-------------------------
Identity registries the ledger consults but does not own.

`VolunteerRegistry` and `ProviderRegistry` are the only surfaces the core
relies on. The in-memory implementations below are reference adapters for
tests and single-process deployments; they hold hashed identities and
free-form metadata only.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from vetledger_core.errors import ErrorCode, ledger_error
from vetledger_core.logger import get_logger

log = get_logger("vetledger.registries")


class VolunteerRegistry(Protocol):
    def is_registered(self, subject_id: int) -> bool: ...
    def lookup_subject_by_identity(self, identity: str) -> Optional[int]: ...


class ProviderRegistry(Protocol):
    def is_verified_provider(self, provider_id: int) -> bool: ...
    def lookup_provider_by_identity(self, identity: str) -> Optional[int]: ...


@dataclass
class VolunteerEntry:
    id: int
    identity: str
    hashed_identity: str
    metadata: str = ""


@dataclass
class ProviderEntry:
    id: int
    identity: str
    name: str
    description: str = ""
    verified: bool = False


class InMemoryVolunteerRegistry:
    def __init__(self):
        self._volunteers: Dict[int, VolunteerEntry] = {}
        self._by_identity: Dict[str, int] = {}

    def register(self, identity: str, hashed_identity: str, metadata: str = "") -> int:
        if not hashed_identity:
            raise ledger_error(ErrorCode.INVALID_IDENTITY, "hashed identity is required")
        if identity in self._by_identity:
            raise ledger_error(ErrorCode.ALREADY_REGISTERED, "volunteer already registered")
        subject_id = len(self._volunteers) + 1
        self._volunteers[subject_id] = VolunteerEntry(subject_id, identity, hashed_identity, metadata)
        self._by_identity[identity] = subject_id
        log.info(f"volunteer registered subject_id={subject_id}")
        return subject_id

    def get(self, subject_id: int) -> Optional[VolunteerEntry]:
        return self._volunteers.get(subject_id)

    def is_registered(self, subject_id: int) -> bool:
        return subject_id in self._volunteers

    def lookup_subject_by_identity(self, identity: str) -> Optional[int]:
        return self._by_identity.get(identity)


class InMemoryProviderRegistry:
    """Providers are added and verified by the registry owner only."""

    def __init__(self, owner: str):
        self.owner = owner
        self._providers: Dict[int, ProviderEntry] = {}
        self._by_identity: Dict[str, int] = {}

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise ledger_error(ErrorCode.UNAUTHORIZED, "registry owner only")

    def add_provider(self, caller: str, name: str, description: str, identity: str) -> int:
        self._require_owner(caller)
        if not name or not identity:
            raise ledger_error(ErrorCode.INVALID_IDENTITY, "provider name and identity are required")
        if identity in self._by_identity:
            raise ledger_error(ErrorCode.ALREADY_REGISTERED, "provider already added")
        provider_id = len(self._providers) + 1
        self._providers[provider_id] = ProviderEntry(provider_id, identity, name, description)
        self._by_identity[identity] = provider_id
        log.info(f"provider added provider_id={provider_id}")
        return provider_id

    def verify_provider(self, caller: str, provider_id: int) -> bool:
        self._require_owner(caller)
        entry = self._providers.get(provider_id)
        if entry is None:
            raise ledger_error(ErrorCode.NOT_FOUND, f"provider {provider_id} not found")
        entry.verified = True
        log.info(f"provider verified provider_id={provider_id}")
        return True

    def suspend_provider(self, caller: str, provider_id: int) -> bool:
        self._require_owner(caller)
        entry = self._providers.get(provider_id)
        if entry is None:
            raise ledger_error(ErrorCode.NOT_FOUND, f"provider {provider_id} not found")
        entry.verified = False
        log.info(f"provider suspended provider_id={provider_id}")
        return True

    def get(self, provider_id: int) -> Optional[ProviderEntry]:
        return self._providers.get(provider_id)

    def is_verified_provider(self, provider_id: int) -> bool:
        entry = self._providers.get(provider_id)
        return bool(entry and entry.verified)

    def lookup_provider_by_identity(self, identity: str) -> Optional[int]:
        return self._by_identity.get(identity)
