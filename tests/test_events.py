import logging
from dataclasses import replace

import pytest
import requests

from vetledger_core.events import (
    ACCESS_GRANTED, ATTESTATION_ISSUED, EventLog, HTTPEventSink, LocalEventSink, NullEventSink,
    event_sink_factory,
)
from vetledger_core.errors import LedgerError
from vetledger_core.storage import InMemoryStorage, SQLiteStorage


def test_chain_verifies_after_operations(attested, actors):
    attested.access.grant(actors["volunteer"].identity, actors["org"].identity, 1, 500)
    attested.access.revoke(actors["volunteer"].identity, 1)

    events = attested.events.events()
    assert [e.seq for e in events] == [1, 2, 3]
    assert events[0].prev_hash is None
    assert events[1].prev_hash == events[0].event_hash
    assert attested.verify_audit_chain()


def test_tampered_memory_event_is_detected():
    store = InMemoryStorage()
    log = EventLog(store)
    log.record(ATTESTATION_ISSUED, {"attestation_id": 1}, actor="p", at=0)
    log.record(ACCESS_GRANTED, {"grant_id": 1}, actor="v", at=1)
    assert log.verify_chain()

    store.audit[0] = replace(store.audit[0], ids={"attestation_id": 2})
    assert not log.verify_chain()


def test_tampered_sqlite_event_is_detected(tmp_path):
    store = SQLiteStorage(str(tmp_path / "state.db"))
    log = EventLog(store)
    log.record(ATTESTATION_ISSUED, {"attestation_id": 1}, actor="p", at=0)
    assert log.verify_chain()

    store.db.execute("UPDATE audit SET actor='someone-else' WHERE seq=1")
    store.db.commit()
    assert not log.verify_chain()
    store.close()


def test_failed_operation_publishes_nothing(onboarded, actors, sink):
    received = []
    sink.subscribe("*", received.append)
    with pytest.raises(LedgerError):
        onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 0)
    assert received == []

    onboarded.attestations.issue(actors["provider"].identity, 1, "criminal", "passed", 10)
    assert [e.event for e in received] == [ATTESTATION_ISSUED]


def test_local_sink_routes_by_name():
    sink = LocalEventSink()
    granted = []
    sink.subscribe(ACCESS_GRANTED, granted.append)

    log = EventLog(InMemoryStorage(), sink)
    log.publish(log.record(ATTESTATION_ISSUED, {"attestation_id": 1}, actor="p", at=0))
    log.publish(log.record(ACCESS_GRANTED, {"grant_id": 1}, actor="v", at=0))

    assert [e.event for e in granted] == [ACCESS_GRANTED]
    assert len(sink.published) == 2


class _Response:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


def test_http_sink_posts_event(monkeypatch):
    calls = []

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return _Response(202)

    monkeypatch.setattr(requests, "post", fake_post)
    log = EventLog(InMemoryStorage(), HTTPEventSink("http://indexer.local/"))
    log.publish(log.record(ATTESTATION_ISSUED, {"attestation_id": 1}, actor="p", at=3))

    url, body, timeout = calls[0]
    assert url == "http://indexer.local/events"
    assert body["event"] == ATTESTATION_ISSUED
    assert body["ids"] == {"attestation_id": 1}
    assert body["at"] == 3
    assert timeout == 5.0


def test_http_sink_failure_is_logged_not_raised(monkeypatch, caplog):
    def failing_post(url, json, timeout):
        raise requests.ConnectionError("indexer down")

    monkeypatch.setattr(requests, "post", failing_post)
    sink = HTTPEventSink("http://indexer.local")
    log = EventLog(InMemoryStorage(), sink)

    with caplog.at_level(logging.ERROR, logger="vetledger.events"):
        event = log.record(ACCESS_GRANTED, {"grant_id": 1}, actor="v", at=0)
        result = sink.publish(event)

    assert "indexer down" in result["error"]
    assert "[HTTP PUB]" in caplog.text
    assert log.verify_chain()


def test_event_sink_factory(monkeypatch):
    monkeypatch.delenv("VETLEDGER_EVENT_SINK", raising=False)
    assert isinstance(event_sink_factory(), NullEventSink)

    monkeypatch.setenv("VETLEDGER_EVENT_SINK", "local")
    assert isinstance(event_sink_factory(), LocalEventSink)

    monkeypatch.setenv("VETLEDGER_EVENT_SINK", "http")
    monkeypatch.setenv("VETLEDGER_INDEXER_URL", "http://indexer.local")
    sink = event_sink_factory()
    assert isinstance(sink, HTTPEventSink)
    assert sink.base_url == "http://indexer.local"

    monkeypatch.delenv("VETLEDGER_INDEXER_URL")
    with pytest.raises(ValueError):
        event_sink_factory("http")
    with pytest.raises(ValueError):
        event_sink_factory("kafka")


def test_recorded_timestamp_is_covered_by_hash():
    store = InMemoryStorage()
    log = EventLog(store)
    log.record(ATTESTATION_ISSUED, {"attestation_id": 1}, actor="p", at=0)

    store.audit[0] = replace(store.audit[0], recorded_ts="1999-01-01T00:00:00Z")
    assert not log.verify_chain()


def test_failing_subscriber_does_not_fail_committed_operation(attested, actors, sink, caplog):
    def boom(event):
        raise RuntimeError("subscriber down")

    sink.subscribe("*", boom)
    with caplog.at_level(logging.ERROR, logger="vetledger.events"):
        result = attested.call(
            "grant-access", actors["volunteer"].identity,
            grantee_identity=actors["org"].identity, attestation_id=1, expiry=500,
        )
    assert result.ok
    assert attested.access.get_grant(result.value) is not None
    assert "event sink failed" in caplog.text
