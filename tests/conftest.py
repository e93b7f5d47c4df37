from dataclasses import dataclass

import pytest

from vetledger_core.config import LedgerConfig
from vetledger_core.crypto import ed25519_generate, identity_from_pubkey, sign_call
from vetledger_core.envelope import Call
from vetledger_core.events import LocalEventSink
from vetledger_core.ledger import VetLedger
from vetledger_core.storage import InMemoryStorage, SQLiteStorage


@dataclass
class Actor:
    priv: bytes
    pub: bytes
    identity: str

    def signed(self, op, **args):
        return sign_call(Call(op=op, args=args), self.priv)


def make_actor() -> Actor:
    priv, pub = ed25519_generate()
    return Actor(priv, pub, identity_from_pubkey(pub))


@pytest.fixture
def actors():
    names = ["deployer", "volunteer", "volunteer2", "provider", "org", "org2"]
    return {name: make_actor() for name in names}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        store = InMemoryStorage()
    else:
        store = SQLiteStorage(str(tmp_path / "state.db"))
    yield store
    store.close()


@pytest.fixture
def sink():
    return LocalEventSink()


@pytest.fixture
def ledger(storage, actors, sink):
    return VetLedger(actors["deployer"].identity, storage=storage, config=LedgerConfig(), sink=sink)


@pytest.fixture
def onboarded(ledger, actors):
    """Volunteer 1 registered, provider 1 added and verified."""
    ledger.volunteers.register(actors["volunteer"].identity, "hash123abc456def789", "Volunteer metadata")
    ledger.providers.add_provider(
        actors["deployer"].identity, "Acme Background Checks", "Professional service", actors["provider"].identity
    )
    ledger.providers.verify_provider(actors["deployer"].identity, 1)
    return ledger


@pytest.fixture
def attested(onboarded, actors):
    """Attestation 1 (criminal/passed, valid until 1000) issued for volunteer 1."""
    onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 1000)
    return onboarded
