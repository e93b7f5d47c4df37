import pytest

from vetledger_core.errors import ErrorCode, LedgerError
from vetledger_core.events import ATTESTATION_ISSUED, ATTESTATION_REVOKED


def test_issue_as_verified_provider(onboarded, actors):
    att_id = onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 1000)
    assert att_id == 1

    rec = onboarded.attestations.get(1)
    assert rec.subject_id == 1
    assert rec.issuer_id == 1
    assert rec.check_type == "criminal"
    assert rec.status == "passed"
    assert rec.issued_at == 0
    assert rec.valid_until == 1000
    assert rec.issuer_identity == actors["provider"].identity

    assert onboarded.attestations.is_valid(1)
    assert onboarded.attestations.list_by_subject(1) == [1]
    assert onboarded.attestations.list_by_issuer(1) == [1]


def test_issue_emits_event(onboarded, actors, sink):
    onboarded.attestations.issue(actors["provider"].identity, 1, "education", "pending", 500)
    issued = onboarded.events.events(ATTESTATION_ISSUED)
    assert len(issued) == 1
    assert issued[0].ids == {"attestation_id": 1, "subject_id": 1, "issuer_id": 1}
    assert issued[0].actor == actors["provider"].identity
    assert sink.published[-1].event == ATTESTATION_ISSUED


def test_unverified_provider_cannot_issue(ledger, actors):
    ledger.volunteers.register(actors["volunteer"].identity, "hash123abc456def789")
    ledger.providers.add_provider(actors["deployer"].identity, "Acme", "", actors["provider"].identity)

    with pytest.raises(LedgerError) as exc:
        ledger.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 1000)
    assert exc.value.code == ErrorCode.NOT_VERIFIED_PROVIDER
    assert int(exc.value.code) == 101


def test_unknown_identity_cannot_issue(onboarded, actors):
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.issue(actors["org"].identity, 1, "criminal", "passed", 1000)
    assert exc.value.code == ErrorCode.NOT_VERIFIED_PROVIDER


def test_suspended_provider_cannot_issue(onboarded, actors):
    onboarded.providers.suspend_provider(actors["deployer"].identity, 1)
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 1000)
    assert exc.value.code == ErrorCode.NOT_VERIFIED_PROVIDER


def test_invalid_check_type(onboarded, actors):
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.issue(actors["provider"].identity, 1, "invalid-type", "passed", 1000)
    assert exc.value.code == ErrorCode.INVALID_CHECK_TYPE
    assert int(exc.value.code) == 202


def test_invalid_status(onboarded, actors):
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "maybe", 1000)
    assert exc.value.code == ErrorCode.INVALID_STATUS


def test_unregistered_subject(onboarded, actors):
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.issue(actors["provider"].identity, 42, "criminal", "passed", 1000)
    assert exc.value.code == ErrorCode.SUBJECT_NOT_REGISTERED
    assert exc.value.category == "business"


@pytest.mark.parametrize("valid_until", [0, -5, 52561, 10**9])
def test_invalid_window(onboarded, actors, valid_until):
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", valid_until)
    assert exc.value.code == ErrorCode.INVALID_EXPIRY


def test_issued_records_stay_inside_window(onboarded, actors):
    onboarded.advance(7)
    window = onboarded.attestations.max_validity_window
    for valid_until in (8, 100, 7 + window):
        att_id = onboarded.attestations.issue(actors["provider"].identity, 1, "reference", "passed", valid_until)
        rec = onboarded.attestations.get(att_id)
        assert rec.valid_until > rec.issued_at
        assert rec.valid_until - rec.issued_at <= window


def test_failed_issue_writes_nothing(onboarded, actors):
    with pytest.raises(LedgerError):
        onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 0)

    assert onboarded.attestations.total() == 0
    assert onboarded.attestations.list_by_subject(1) == []
    assert onboarded.events.events() == []

    # ids continue from 1 after a failure
    assert onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 10) == 1


def test_expires_with_logical_time(attested):
    attested.advance(999)
    assert attested.attestations.is_valid(1)
    attested.advance(1)
    assert not attested.attestations.is_valid(1)
    assert attested.attestations.list_valid_by_subject(1) == []


def test_revoke_by_issuer(attested, actors):
    attested.advance(10)
    assert attested.attestations.revoke(actors["provider"].identity, 1) is True

    rec = attested.attestations.get(1)
    assert rec is not None
    assert rec.valid_until == 10
    assert rec.check_type == "criminal"
    assert not attested.attestations.is_valid(1)
    assert attested.events.events(ATTESTATION_REVOKED)[0].ids["attestation_id"] == 1


def test_revoke_by_other_identity(attested, actors):
    with pytest.raises(LedgerError) as exc:
        attested.attestations.revoke(actors["volunteer"].identity, 1)
    assert exc.value.code == ErrorCode.NOT_ISSUER
    assert attested.attestations.is_valid(1)


def test_revoke_missing(onboarded, actors):
    with pytest.raises(LedgerError) as exc:
        onboarded.attestations.revoke(actors["provider"].identity, 99)
    assert exc.value.code == ErrorCode.NOT_FOUND


def test_revoke_twice(attested, actors):
    attested.advance(5)
    attested.attestations.revoke(actors["provider"].identity, 1)
    attested.advance(5)
    with pytest.raises(LedgerError) as exc:
        attested.attestations.revoke(actors["provider"].identity, 1)
    assert exc.value.code == ErrorCode.ALREADY_EXPIRED
    assert attested.attestations.get(1).valid_until == 5


def test_list_valid_by_subject(attested, actors):
    issuer = actors["provider"].identity
    attested.attestations.issue(issuer, 1, "employment", "passed", 2000)
    attested.attestations.issue(issuer, 1, "education", "failed", 3000)
    attested.attestations.revoke(issuer, 2)

    assert attested.attestations.list_by_subject(1) == [1, 2, 3]
    assert attested.attestations.list_valid_by_subject(1) == [1, 3]
    assert attested.attestations.list_by_issuer(1) == [1, 2, 3]
