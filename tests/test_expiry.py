import pytest

from vetledger_core.errors import ErrorCode, LedgerError
from vetledger_core.events import EXPIRY_MARKED, EXPIRY_REGISTERED


@pytest.fixture
def tracker(ledger):
    return ledger.expiry


@pytest.fixture
def owner(actors):
    return actors["deployer"].identity


def test_register_attestation(tracker, owner):
    assert tracker.register(owner, "attestation", 1, 1000) is True
    rec = tracker.get_expiry("attestation", 1)
    assert rec.expiry_time == 1000
    assert rec.created_at == 0
    assert rec.is_expired is False
    assert tracker.total_tracked_items() == 1
    assert tracker.events.events(EXPIRY_REGISTERED)[0].ids == {"item_type": "attestation", "item_id": 1}


def test_register_grant(tracker, owner):
    assert tracker.register(owner, "grant", 1, 500) is True
    assert tracker.items_expiring_at(500) == [("grant", 1)]


def test_register_invalid_item_type(tracker, owner):
    with pytest.raises(LedgerError) as exc:
        tracker.register(owner, "invalid-type", 1, 1000)
    assert exc.value.code == ErrorCode.INVALID_ITEM_TYPE


def test_register_past_expiry(tracker, owner):
    with pytest.raises(LedgerError) as exc:
        tracker.register(owner, "attestation", 1, 0)
    assert exc.value.code == ErrorCode.INVALID_EXPIRY
    assert int(exc.value.code) == 200


def test_register_zero_id(tracker, owner):
    with pytest.raises(LedgerError) as exc:
        tracker.register(owner, "attestation", 0, 1000)
    assert exc.value.code == ErrorCode.INVALID_ID
    assert int(exc.value.code) == 201


def test_register_twice(tracker, owner):
    tracker.register(owner, "attestation", 1, 1000)
    with pytest.raises(LedgerError) as exc:
        tracker.register(owner, "attestation", 1, 2000)
    assert exc.value.code == ErrorCode.DUPLICATE_ITEM
    assert tracker.total_tracked_items() == 1
    assert tracker.get_expiry("attestation", 1).expiry_time == 1000


def test_anyone_may_register(tracker, actors):
    assert tracker.register(actors["org"].identity, "grant", 4, 40)
    assert tracker.get_expiry("grant", 4).registered_by == actors["org"].identity


def test_expired_by_time(ledger, tracker, owner):
    tracker.register(owner, "attestation", 2, 10)
    assert tracker.is_valid("attestation", 2)
    assert not tracker.is_expired("attestation", 2)

    ledger.advance(15)
    assert tracker.is_expired("attestation", 2)
    assert not tracker.is_valid("attestation", 2)
    # never marked, flag untouched
    assert tracker.get_expiry("attestation", 2).is_expired is False


def test_mark_after_expiry_by_anyone(ledger, tracker, owner, actors):
    tracker.register(owner, "grant", 3, 10)
    ledger.advance(15)
    assert tracker.mark_as_expired(actors["volunteer"].identity, "grant", 3) is True
    assert tracker.get_expiry("grant", 3).is_expired is True
    assert tracker.events.events(EXPIRY_MARKED)[0].actor == actors["volunteer"].identity


def test_mark_before_expiry(tracker, owner):
    tracker.register(owner, "attestation", 4, 1000)
    with pytest.raises(LedgerError) as exc:
        tracker.mark_as_expired(owner, "attestation", 4)
    assert exc.value.code == ErrorCode.NOT_EXPIRED
    assert tracker.get_expiry("attestation", 4).is_expired is False


def test_mark_exactly_at_expiry(ledger, tracker, owner):
    tracker.register(owner, "grant", 4, 10)
    ledger.advance(10)
    assert tracker.mark_as_expired(owner, "grant", 4)


def test_mark_twice(ledger, tracker, owner):
    tracker.register(owner, "grant", 5, 10)
    ledger.advance(15)
    tracker.mark_as_expired(owner, "grant", 5)
    with pytest.raises(LedgerError) as exc:
        tracker.mark_as_expired(owner, "grant", 5)
    assert exc.value.code == ErrorCode.ALREADY_EXPIRED
    assert int(exc.value.code) == 300
    assert tracker.is_expired("grant", 5)


def test_mark_untracked(tracker, owner):
    with pytest.raises(LedgerError) as exc:
        tracker.mark_as_expired(owner, "grant", 77)
    assert exc.value.code == ErrorCode.NOT_FOUND


def test_time_until_expiry(ledger, tracker, owner):
    tracker.register(owner, "attestation", 6, 100)
    assert tracker.time_until_expiry("attestation", 6) == 100
    ledger.advance(40)
    assert tracker.time_until_expiry("attestation", 6) == 60
    ledger.advance(100)
    assert tracker.time_until_expiry("attestation", 6) == 0
    assert tracker.time_until_expiry("attestation", 9999) is None


def test_will_expire_within(tracker, owner):
    tracker.register(owner, "grant", 7, 50)
    assert tracker.will_expire_within("grant", 7, 100) is True
    assert tracker.will_expire_within("grant", 7, 10) is False
    assert tracker.will_expire_within("grant", 8, 100) is False


def test_owner_updates_expiry(ledger, tracker, owner):
    tracker.register(owner, "attestation", 8, 100)
    assert tracker.update(owner, "attestation", 8, 200) is True
    assert tracker.get_expiry("attestation", 8).expiry_time == 200
    assert tracker.items_expiring_at(100) == []
    assert tracker.items_expiring_at(200) == [("attestation", 8)]


def test_update_clears_expired_flag(ledger, tracker, owner):
    tracker.register(owner, "grant", 8, 10)
    ledger.advance(10)
    tracker.mark_as_expired(owner, "grant", 8)
    tracker.update(owner, "grant", 8, 50)

    rec = tracker.get_expiry("grant", 8)
    assert rec.is_expired is False
    assert not tracker.is_expired("grant", 8)


def test_non_owner_cannot_update(tracker, owner, actors):
    tracker.register(owner, "grant", 9, 100)
    with pytest.raises(LedgerError) as exc:
        tracker.update(actors["volunteer"].identity, "grant", 9, 200)
    assert exc.value.code == ErrorCode.UNAUTHORIZED
    assert tracker.get_expiry("grant", 9).expiry_time == 100


def test_update_untracked(tracker, owner):
    with pytest.raises(LedgerError) as exc:
        tracker.update(owner, "grant", 9, 200)
    assert exc.value.code == ErrorCode.NOT_FOUND


def test_batch_check_attestations(ledger, tracker, owner):
    for i in range(10, 13):
        tracker.register(owner, "attestation", i, 1000)
    assert tracker.batch_check_attestations_valid([10, 11, 12]) == [True, True, True]
    assert tracker.batch_check_attestations_valid([10, 99]) == [True, False]


def test_batch_check_grants(ledger, tracker, owner):
    for i in range(20, 23):
        tracker.register(owner, "grant", i, 500)
    tracker.register(owner, "grant", 23, 5)
    ledger.advance(5)
    assert tracker.batch_check_grants_valid([20, 21, 22, 23]) == [True, True, True, False]


def test_batch_is_bounded(tracker):
    with pytest.raises(LedgerError) as exc:
        tracker.batch_check_grants_valid(range(1, 100))
    assert exc.value.code == ErrorCode.INVALID_BATCH


def test_calculate_expiry_from_now(ledger, tracker):
    ledger.advance(12)
    assert tracker.calculate_expiry_from_now(100) == 112


def test_info_and_totals(tracker, owner):
    assert tracker.total_tracked_items() == 0
    tracker.register(owner, "grant", 1, 10)
    info = tracker.info()
    assert info["owner"] == owner
    assert info["total_tracked_items"] == 1
    assert info["item_types"] == ["attestation", "grant"]


def test_missing_item_queries(tracker):
    assert tracker.get_expiry("attestation", 9999) is None
    assert tracker.is_expired("grant", 9999) is False
    assert tracker.is_valid("grant", 9999) is False


def test_failed_mark_leaves_no_event(ledger, tracker, owner):
    tracker.register(owner, "attestation", 1, 1000)
    with pytest.raises(LedgerError):
        tracker.mark_as_expired(owner, "attestation", 1)
    assert tracker.events.events(EXPIRY_MARKED) == []
