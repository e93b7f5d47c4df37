"""
vetledger_core.events
---------------------
Structured events for every state-mutating ledger operation.

- EventLog: builds `{event, ids, actor, at}` records, hash-chains them into
  the storage audit table (inside the caller's transaction) and forwards
  committed records to an EventSink for off-ledger indexing.
- Sinks: NullEventSink, LocalEventSink (in-process subscribers),
  HTTPEventSink (POST to an indexer).
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional
import os

import requests

from vetledger_core.logger import get_logger
from vetledger_core.storage.models import EventRecord
from vetledger_core.storage.provider import StorageProvider
from vetledger_core.utils import canonical_json, now_ts, sha256

log = get_logger("vetledger.events")

# Event names
ATTESTATION_ISSUED = "attestation-issued"
ATTESTATION_REVOKED = "attestation-revoked"
ACCESS_GRANTED = "access-granted"
ACCESS_REVOKED = "access-revoked"
ATTESTATION_FETCHED = "attestation-fetched"
EXPIRY_REGISTERED = "expiry-registered"
EXPIRY_MARKED = "expiry-marked"
EXPIRY_UPDATED = "expiry-updated"


class EventSink:
    """Destination for committed events. Sinks never affect ledger state."""
    name: str = "base"

    def publish(self, event: EventRecord) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return


class NullEventSink(EventSink):
    name = "null"

    def publish(self, event: EventRecord) -> None:
        return


class LocalEventSink(EventSink):
    """In-process fan-out keyed by event name ("*" receives everything)."""
    name = "local"

    def __init__(self):
        self.handlers: Dict[str, List[Callable[[EventRecord], None]]] = {}
        self.published: List[EventRecord] = []

    def subscribe(self, event_name: str, handler: Callable[[EventRecord], None]) -> None:
        self.handlers.setdefault(event_name, []).append(handler)

    def publish(self, event: EventRecord) -> None:
        self.published.append(event)
        log.debug(f"[LOCAL PUB] {event.event} seq={event.seq}")
        for handler in self.handlers.get(event.event, []) + self.handlers.get("*", []):
            handler(event)


class HTTPEventSink(EventSink):
    """
    Posts committed events as JSON to an off-ledger indexer.

    Delivery is best-effort: the ledger has already committed, so failures
    are logged and left for the indexer to reconcile from the audit chain.
    """
    name = "http"

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def publish(self, event: EventRecord) -> Optional[dict]:
        url = f"{self.base_url}/events"
        try:
            res = requests.post(url, json=event.to_dict(), timeout=self.timeout)
        except requests.RequestException as e:
            log.error(f"[HTTP PUB] {event.event} seq={event.seq} failed: {e}")
            return {"error": str(e)}
        if res.ok:
            log.debug(f"[HTTP PUB] {res.status_code} {event.event} seq={event.seq}")
            return {"status": res.status_code}
        log.error(f"[HTTP PUB] {res.status_code}: {res.text}")
        return {"error": res.text, "status": res.status_code}


def event_sink_factory(mode: Optional[str] = None, indexer_url: Optional[str] = None) -> EventSink:
    """
    mode:
      - "null"  → discard (default)
      - "local" → in-process subscribers
      - "http"  → POST to VETLEDGER_INDEXER_URL
    """
    mode = (mode or os.getenv("VETLEDGER_EVENT_SINK", "null")).lower()

    if mode == "local":
        return LocalEventSink()

    if mode == "http":
        url = indexer_url or os.getenv("VETLEDGER_INDEXER_URL")
        if not url:
            raise ValueError("HTTP event sink requires VETLEDGER_INDEXER_URL")
        return HTTPEventSink(url)

    if mode == "null":
        return NullEventSink()

    raise ValueError(f"Unknown event sink: {mode}")


def hash_event(event: EventRecord) -> str:
    return sha256(canonical_json(event.hash_body()))


class EventLog:
    """Tamper-evident, append-only audit trail backed by the state store."""

    def __init__(self, storage: StorageProvider, sink: Optional[EventSink] = None):
        self.storage = storage
        self.sink = sink or NullEventSink()

    def record(
        self,
        event: str,
        ids: Dict[str, Any],
        actor: str,
        at: int,
        extra: Optional[Dict[str, Any]] = None,
    ) -> EventRecord:
        """Append a chained record. Call inside the operation's transaction."""
        last = self.storage.last_event()
        draft = EventRecord(
            seq=(last.seq + 1) if last else 1,
            event=event,
            ids=dict(ids),
            actor=actor,
            at=at,
            prev_hash=last.event_hash if last else None,
            recorded_ts=now_ts(),
            extra=dict(extra or {}),
        )
        rec = replace(draft, event_hash=hash_event(draft))
        self.storage.append_event(rec)
        return rec

    def publish(self, event: EventRecord) -> None:
        """Forward a committed record to the sink. Sink failures are logged only."""
        try:
            self.sink.publish(event)
        except Exception:
            log.exception(f"event sink failed for {event.event} seq={event.seq}")

    def events(self, name: Optional[str] = None) -> List[EventRecord]:
        events = self.storage.list_events()
        if name is None:
            return events
        return [e for e in events if e.event == name]

    def verify_chain(self) -> bool:
        previous_hash = None
        for event in self.storage.list_events():
            if event.prev_hash != previous_hash:
                return False
            if hash_event(event) != event.event_hash:
                return False
            previous_hash = event.event_hash
        return True
