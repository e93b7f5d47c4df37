from __future__ import annotations
from contextlib import contextmanager
from typing import Optional, List, Tuple
import json, sqlite3, os
from vetledger_core.storage.provider import StorageProvider
from vetledger_core.storage.models import (
    AccessGrant,
    AttestationRecord,
    EventRecord,
    ExpiryRecord,
    GrantStatus,
)

_ATTESTATION_COLS = "id,subject_id,issuer_id,check_type,status,issued_at,valid_until,issuer_identity"
_GRANT_COLS = "id,subject_id,grantee_identity,attestation_id,granted_at,expiry,granter_identity,status"
_EXPIRY_COLS = "item_type,item_id,expiry_time,created_at,is_expired,registered_by"
_AUDIT_COLS = "seq,event,ids,actor,at,prev_hash,event_hash,recorded_ts,extra"


class SQLiteStorage(StorageProvider):
    def __init__(self, path="db/vetledger_state.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)
        self._depth = 0

        self._init()

    def execute(self, sql: str, params: tuple = None):
        if params:
            return self.db.execute(sql, params)
        return self.db.execute(sql)

    def fetch_one(self, sql: str, params: tuple = None):
        cur = self.execute(sql, params)
        row = cur.fetchone()
        if row is None:
            return None
        columns = [col[0] for col in cur.description]
        return {columns[i]: row[i] for i in range(len(columns))}

    def _commit(self) -> None:
        # inside a transaction the outermost block decides
        if not self._depth:
            self.db.commit()

    def _init(self) -> None:
        c = self.db.cursor()

        c.execute("""CREATE TABLE IF NOT EXISTS counters(
            name TEXT PRIMARY KEY,
            value INTEGER NOT NULL
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS attestations(
            id INTEGER PRIMARY KEY,
            subject_id INTEGER NOT NULL,
            issuer_id INTEGER NOT NULL,
            check_type TEXT NOT NULL,
            status TEXT NOT NULL,
            issued_at INTEGER NOT NULL,
            valid_until INTEGER NOT NULL,
            issuer_identity TEXT NOT NULL
        )""")
        c.execute("CREATE INDEX IF NOT EXISTS ix_attestations_subject ON attestations(subject_id, id)")
        c.execute("CREATE INDEX IF NOT EXISTS ix_attestations_issuer ON attestations(issuer_id, id)")
        c.execute("""CREATE TABLE IF NOT EXISTS grants(
            id INTEGER PRIMARY KEY,
            subject_id INTEGER NOT NULL,
            grantee_identity TEXT NOT NULL,
            attestation_id INTEGER NOT NULL,
            granted_at INTEGER NOT NULL,
            expiry INTEGER NOT NULL,
            granter_identity TEXT NOT NULL,
            status TEXT NOT NULL
        )""")
        c.execute("CREATE INDEX IF NOT EXISTS ix_grants_subject ON grants(subject_id, id)")
        c.execute("CREATE INDEX IF NOT EXISTS ix_grants_grantee ON grants(grantee_identity, id)")
        c.execute("""CREATE TABLE IF NOT EXISTS grant_lookup(
            grantee_identity TEXT NOT NULL,
            attestation_id INTEGER NOT NULL,
            grant_id INTEGER NOT NULL,
            PRIMARY KEY (grantee_identity, attestation_id)
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS expiry_items(
            item_type TEXT NOT NULL,
            item_id INTEGER NOT NULL,
            expiry_time INTEGER NOT NULL,
            created_at INTEGER NOT NULL,
            is_expired INTEGER NOT NULL DEFAULT 0,
            registered_by TEXT,
            PRIMARY KEY (item_type, item_id)
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS expiry_schedule(
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            expiry_time INTEGER NOT NULL,
            item_type TEXT NOT NULL,
            item_id INTEGER NOT NULL,
            UNIQUE (expiry_time, item_type, item_id)
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS audit(
            seq INTEGER PRIMARY KEY,
            event TEXT NOT NULL,
            ids TEXT NOT NULL,
            actor TEXT,
            at INTEGER NOT NULL,
            prev_hash TEXT,
            event_hash TEXT NOT NULL UNIQUE,
            recorded_ts TEXT,
            extra TEXT
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS replay_guard(
            msg_id TEXT PRIMARY KEY
        )""")

        self.db.commit()

    @contextmanager
    def transaction(self):
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if not self._depth:
                self.db.rollback()
            raise
        else:
            self._depth -= 1
            if not self._depth:
                self.db.commit()

    # --- counters ---

    def next_id(self, name: str) -> int:
        self.db.execute(
            "INSERT INTO counters(name,value) VALUES(?,1) "
            "ON CONFLICT(name) DO UPDATE SET value=value+1",
            (name,),
        )
        value = self.counter(name)
        self._commit()
        return value

    def counter(self, name: str) -> int:
        row = self.db.execute("SELECT value FROM counters WHERE name=?", (name,)).fetchone()
        return row[0] if row else 0

    def set_counter(self, name: str, value: int) -> None:
        self.db.execute(
            "INSERT INTO counters(name,value) VALUES(?,?) "
            "ON CONFLICT(name) DO UPDATE SET value=excluded.value",
            (name, value),
        )
        self._commit()

    # --- attestations ---

    def insert_attestation(self, rec: AttestationRecord) -> None:
        self.db.execute(
            f"INSERT INTO attestations({_ATTESTATION_COLS}) VALUES(?,?,?,?,?,?,?,?)",
            (rec.id, rec.subject_id, rec.issuer_id, rec.check_type, rec.status,
             rec.issued_at, rec.valid_until, rec.issuer_identity),
        )
        self._commit()

    def update_attestation(self, rec: AttestationRecord) -> None:
        # valid_until is the only mutable column
        self.db.execute("UPDATE attestations SET valid_until=? WHERE id=?", (rec.valid_until, rec.id))
        self._commit()

    def get_attestation(self, attestation_id: int) -> Optional[AttestationRecord]:
        cur = self.db.execute(f"SELECT {_ATTESTATION_COLS} FROM attestations WHERE id=?", (attestation_id,))
        row = cur.fetchone()
        if not row: return None
        return AttestationRecord(*row)

    def attestations_by_subject(self, subject_id: int) -> List[int]:
        cur = self.db.execute("SELECT id FROM attestations WHERE subject_id=? ORDER BY id", (subject_id,))
        return [r[0] for r in cur.fetchall()]

    def attestations_by_issuer(self, issuer_id: int) -> List[int]:
        cur = self.db.execute("SELECT id FROM attestations WHERE issuer_id=? ORDER BY id", (issuer_id,))
        return [r[0] for r in cur.fetchall()]

    # --- access grants ---

    def insert_grant(self, grant: AccessGrant) -> None:
        self.db.execute(
            f"INSERT INTO grants({_GRANT_COLS}) VALUES(?,?,?,?,?,?,?,?)",
            (grant.id, grant.subject_id, grant.grantee_identity, grant.attestation_id,
             grant.granted_at, grant.expiry, grant.granter_identity, grant.status.value),
        )
        self._commit()

    def update_grant(self, grant: AccessGrant) -> None:
        self.db.execute("UPDATE grants SET status=? WHERE id=?", (grant.status.value, grant.id))
        self._commit()

    def get_grant(self, grant_id: int) -> Optional[AccessGrant]:
        cur = self.db.execute(f"SELECT {_GRANT_COLS} FROM grants WHERE id=?", (grant_id,))
        row = cur.fetchone()
        if not row: return None
        *fields, status = row
        return AccessGrant(*fields, status=GrantStatus(status))

    def grants_by_subject(self, subject_id: int) -> List[int]:
        cur = self.db.execute("SELECT id FROM grants WHERE subject_id=? ORDER BY id", (subject_id,))
        return [r[0] for r in cur.fetchall()]

    def grants_by_grantee(self, grantee_identity: str) -> List[int]:
        cur = self.db.execute("SELECT id FROM grants WHERE grantee_identity=? ORDER BY id", (grantee_identity,))
        return [r[0] for r in cur.fetchall()]

    def set_grant_lookup(self, grantee_identity: str, attestation_id: int, grant_id: int) -> None:
        self.db.execute(
            "INSERT INTO grant_lookup(grantee_identity,attestation_id,grant_id) VALUES(?,?,?) "
            "ON CONFLICT(grantee_identity,attestation_id) DO UPDATE SET grant_id=excluded.grant_id",
            (grantee_identity, attestation_id, grant_id),
        )
        self._commit()

    def get_grant_lookup(self, grantee_identity: str, attestation_id: int) -> Optional[int]:
        row = self.db.execute(
            "SELECT grant_id FROM grant_lookup WHERE grantee_identity=? AND attestation_id=?",
            (grantee_identity, attestation_id),
        ).fetchone()
        return row[0] if row else None

    def delete_grant_lookup(self, grantee_identity: str, attestation_id: int) -> None:
        self.db.execute(
            "DELETE FROM grant_lookup WHERE grantee_identity=? AND attestation_id=?",
            (grantee_identity, attestation_id),
        )
        self._commit()

    # --- expiry tracking ---

    def insert_expiry(self, rec: ExpiryRecord) -> None:
        self.db.execute(
            f"INSERT INTO expiry_items({_EXPIRY_COLS}) VALUES(?,?,?,?,?,?)",
            (rec.item_type, rec.item_id, rec.expiry_time, rec.created_at, int(rec.is_expired), rec.registered_by),
        )
        self.db.execute(
            "INSERT OR IGNORE INTO expiry_schedule(expiry_time,item_type,item_id) VALUES(?,?,?)",
            (rec.expiry_time, rec.item_type, rec.item_id),
        )
        self._commit()

    def update_expiry(self, rec: ExpiryRecord, previous_expiry_time: int) -> None:
        self.db.execute(
            "UPDATE expiry_items SET expiry_time=?, is_expired=? WHERE item_type=? AND item_id=?",
            (rec.expiry_time, int(rec.is_expired), rec.item_type, rec.item_id),
        )
        if previous_expiry_time != rec.expiry_time:
            self.db.execute(
                "DELETE FROM expiry_schedule WHERE expiry_time=? AND item_type=? AND item_id=?",
                (previous_expiry_time, rec.item_type, rec.item_id),
            )
            self.db.execute(
                "INSERT OR IGNORE INTO expiry_schedule(expiry_time,item_type,item_id) VALUES(?,?,?)",
                (rec.expiry_time, rec.item_type, rec.item_id),
            )
        self._commit()

    def get_expiry(self, item_type: str, item_id: int) -> Optional[ExpiryRecord]:
        cur = self.db.execute(
            f"SELECT {_EXPIRY_COLS} FROM expiry_items WHERE item_type=? AND item_id=?",
            (item_type, item_id),
        )
        row = cur.fetchone()
        if not row: return None
        item_type, item_id, expiry_time, created_at, is_expired, registered_by = row
        return ExpiryRecord(item_type, item_id, expiry_time, created_at, bool(is_expired), registered_by or "")

    def items_expiring_at(self, expiry_time: int) -> List[Tuple[str, int]]:
        cur = self.db.execute(
            "SELECT item_type, item_id FROM expiry_schedule WHERE expiry_time=? ORDER BY seq",
            (expiry_time,),
        )
        return [(r[0], r[1]) for r in cur.fetchall()]

    # --- audit ---

    def _row_to_event(self, row) -> EventRecord:
        seq, event, ids, actor, at, prev_hash, event_hash, recorded_ts, extra = row
        return EventRecord(
            seq=seq,
            event=event,
            ids=json.loads(ids),
            actor=actor or "",
            at=at,
            prev_hash=prev_hash,
            event_hash=event_hash,
            recorded_ts=recorded_ts or "",
            extra=json.loads(extra) if extra else {},
        )

    def append_event(self, event: EventRecord) -> None:
        self.db.execute(
            f"INSERT INTO audit({_AUDIT_COLS}) VALUES(?,?,?,?,?,?,?,?,?)",
            (event.seq, event.event, json.dumps(event.ids, separators=(",", ":"), sort_keys=True),
             event.actor, event.at, event.prev_hash, event.event_hash, event.recorded_ts,
             json.dumps(event.extra, separators=(",", ":"), sort_keys=True)),
        )
        self._commit()

    def last_event(self) -> Optional[EventRecord]:
        row = self.db.execute(f"SELECT {_AUDIT_COLS} FROM audit ORDER BY seq DESC LIMIT 1").fetchone()
        return self._row_to_event(row) if row else None

    def list_events(self) -> List[EventRecord]:
        cur = self.db.execute(f"SELECT {_AUDIT_COLS} FROM audit ORDER BY seq")
        return [self._row_to_event(r) for r in cur.fetchall()]

    # --- replay guard ---

    def seen_msg(self, msg_id: str) -> bool:
        cur = self.db.execute("SELECT 1 FROM replay_guard WHERE msg_id=?", (msg_id,))
        return cur.fetchone() is not None

    def mark_msg(self, msg_id: str) -> None:
        self.db.execute("INSERT OR IGNORE INTO replay_guard(msg_id) VALUES(?)", (msg_id,))
        self._commit()

    def flush(self):
        self.db.commit()

    def close(self):
        self.db.close()
