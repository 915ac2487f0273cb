"""SQLite store for snapshots and deal events.

Both tables are append-only: BEFORE UPDATE / BEFORE DELETE triggers abort
the statement, and the store reports such attempts as ImmutableRecordError.
UNIQUE(deal_id, sequence_number) turns a lost append race into
EventSequenceConflictError.

Every operation opens its own connection, so one store can be shared across
threads. Writers for the same deal coordinate through deal_lock(), which
maps deal ids onto a fixed pool of lock stripes.
"""

import json
import logging
import sqlite3
import threading
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..errors import AuditStoreError, EventSequenceConflictError, ImmutableRecordError
from ..schemas import AuditEvent, AuditStoreCFG, Snapshot
from .hashing import canonical_json

logger = logging.getLogger(__name__)

IMMUTABLE_MARKER = "is immutable"
LOCK_STRIPES = 64

_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    id TEXT PRIMARY KEY,
    deal_id TEXT NOT NULL,
    snapshot_type TEXT NOT NULL,
    created_at TEXT NOT NULL,
    roster_json TEXT NOT NULL,
    roster_hash TEXT NOT NULL,
    structure_json TEXT,
    structure_hash TEXT,
    reason TEXT,
    created_by TEXT NOT NULL,
    created_by_name TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_snapshots_deal
    ON snapshots (deal_id, created_at);

CREATE TABLE IF NOT EXISTS deal_events (
    id TEXT PRIMARY KEY,
    deal_id TEXT NOT NULL,
    sequence_number INTEGER NOT NULL,
    event_type TEXT NOT NULL,
    event_data_json TEXT NOT NULL,
    previous_event_hash TEXT,
    event_hash TEXT NOT NULL,
    actor_id TEXT NOT NULL,
    actor_name TEXT NOT NULL,
    actor_role TEXT NOT NULL,
    authority_context_json TEXT NOT NULL,
    evidence_refs_json TEXT,
    from_state TEXT,
    to_state TEXT,
    occurred_at TEXT NOT NULL,
    UNIQUE (deal_id, sequence_number)
);

CREATE TRIGGER IF NOT EXISTS snapshots_no_update
    BEFORE UPDATE ON snapshots
    BEGIN SELECT RAISE(ABORT, 'snapshots is immutable'); END;
CREATE TRIGGER IF NOT EXISTS snapshots_no_delete
    BEFORE DELETE ON snapshots
    BEGIN SELECT RAISE(ABORT, 'snapshots is immutable'); END;
CREATE TRIGGER IF NOT EXISTS deal_events_no_update
    BEFORE UPDATE ON deal_events
    BEGIN SELECT RAISE(ABORT, 'deal_events is immutable'); END;
CREATE TRIGGER IF NOT EXISTS deal_events_no_delete
    BEFORE DELETE ON deal_events
    BEGIN SELECT RAISE(ABORT, 'deal_events is immutable'); END;
"""

_SNAPSHOT_COLUMNS = (
    "id, deal_id, snapshot_type, created_at, roster_json, roster_hash, "
    "structure_json, structure_hash, reason, created_by, created_by_name"
)

_EVENT_COLUMNS = (
    "id, deal_id, sequence_number, event_type, event_data_json, previous_event_hash, "
    "event_hash, actor_id, actor_name, actor_role, authority_context_json, "
    "evidence_refs_json, from_state, to_state, occurred_at"
)


class AuditStore:
    """Append-only persistence for snapshots and hash-chained events."""

    def __init__(self, locator: str) -> None:
        text = str(locator or "").strip()
        if not text:
            raise AuditStoreError("locator must be non-empty")
        self.locator = text
        self.path = Path(_sqlite_path(text))
        self._lock_stripes: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise AuditStoreError(f"cannot open audit store: {exc}", locator=text) from exc

    @classmethod
    def from_cfg(cls, cfg: AuditStoreCFG) -> "AuditStore":
        return cls(cfg.locator)

    # -------------------------------------------------------------------------
    # Coordination
    # -------------------------------------------------------------------------

    def deal_lock(self, deal_id: str) -> threading.Lock:
        """The in-process lock serialising writers for one deal.

        Always the same lock for a given deal id; unrelated deals may share a
        stripe. Not reentrant.
        """
        return self._lock_stripes[zlib.crc32(deal_id.encode("utf-8")) % LOCK_STRIPES]

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def insert_snapshot(self, snapshot: Snapshot) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO snapshots ({_SNAPSHOT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    snapshot.id,
                    snapshot.deal_id,
                    snapshot.snapshot_type,
                    snapshot.created_at,
                    snapshot.roster_json,
                    snapshot.roster_hash,
                    snapshot.structure_json,
                    snapshot.structure_hash,
                    snapshot.reason,
                    snapshot.created_by,
                    snapshot.created_by_name,
                ),
            )

    def get_snapshot(self, snapshot_id: str) -> Optional[Snapshot]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_SNAPSHOT_COLUMNS} FROM snapshots WHERE id = ?",
                (snapshot_id,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_snapshot(row)

    def list_snapshots(self, deal_id: str) -> List[Snapshot]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_SNAPSHOT_COLUMNS} FROM snapshots WHERE deal_id = ? ORDER BY created_at, id",
                (deal_id,),
            ).fetchall()
        return [_row_to_snapshot(row) for row in rows]

    def delete_snapshot(self, snapshot_id: str) -> None:
        """Attempt to delete a snapshot; the store rejects it.

        Raises:
            ImmutableRecordError: Always, while the immutability triggers exist
        """
        self._mutate("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))

    # -------------------------------------------------------------------------
    # Deal events
    # -------------------------------------------------------------------------

    def insert_event(self, event: AuditEvent) -> None:
        """Insert one event.

        Raises:
            EventSequenceConflictError: The (deal_id, sequence_number) slot is taken
        """
        params = (
            event.id,
            event.deal_id,
            event.sequence_number,
            event.event_type,
            canonical_json(event.event_data),
            event.previous_event_hash,
            event.event_hash,
            event.actor_id,
            event.actor_name,
            event.actor_role,
            canonical_json(event.authority_context),
            canonical_json(event.evidence_refs) if event.evidence_refs is not None else None,
            event.from_state,
            event.to_state,
            event.occurred_at,
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO deal_events ({_EVENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    params,
                )
        except sqlite3.IntegrityError as exc:
            if "deal_events.deal_id" in str(exc) or "deal_events.sequence_number" in str(exc):
                raise EventSequenceConflictError(event.deal_id, event.sequence_number, attempts=1) from exc
            raise

    def latest_event(self, deal_id: str) -> Optional[AuditEvent]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM deal_events WHERE deal_id = ? "
                "ORDER BY sequence_number DESC LIMIT 1",
                (deal_id,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_event(row)

    def list_events(self, deal_id: str) -> List[AuditEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM deal_events WHERE deal_id = ? ORDER BY sequence_number ASC",
                (deal_id,),
            ).fetchall()
        return [_row_to_event(row) for row in rows]

    def delete_event(self, event_id: str) -> None:
        """Attempt to delete an event; the store rejects it.

        Raises:
            ImmutableRecordError: Always, while the immutability triggers exist
        """
        self._mutate("DELETE FROM deal_events WHERE id = ?", (event_id,))

    def update_event_data(self, event_id: str, event_data: Dict[str, Any]) -> None:
        """Attempt to rewrite an event payload; the store rejects it.

        Raises:
            ImmutableRecordError: Always, while the immutability triggers exist
        """
        self._mutate(
            "UPDATE deal_events SET event_data_json = ? WHERE id = ?",
            (canonical_json(event_data), event_id),
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _mutate(self, sql: str, params: tuple) -> None:
        try:
            with self._connect() as conn:
                conn.execute(sql, params)
        except sqlite3.DatabaseError as exc:
            if IMMUTABLE_MARKER in str(exc):
                logger.error("Rejected mutation of audit record: %s", exc)
                raise ImmutableRecordError(str(exc)) from exc
            raise

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.path), timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()


def _row_to_snapshot(row: sqlite3.Row) -> Snapshot:
    return Snapshot(
        id=row["id"],
        deal_id=row["deal_id"],
        snapshot_type=row["snapshot_type"],
        created_at=row["created_at"],
        roster_json=row["roster_json"],
        roster_hash=row["roster_hash"],
        structure_json=row["structure_json"],
        structure_hash=row["structure_hash"],
        reason=row["reason"],
        created_by=row["created_by"],
        created_by_name=row["created_by_name"],
    )


def _row_to_event(row: sqlite3.Row) -> AuditEvent:
    evidence = row["evidence_refs_json"]
    return AuditEvent(
        id=row["id"],
        deal_id=row["deal_id"],
        sequence_number=row["sequence_number"],
        event_type=row["event_type"],
        event_data=json.loads(row["event_data_json"]),
        previous_event_hash=row["previous_event_hash"],
        event_hash=row["event_hash"],
        actor_id=row["actor_id"],
        actor_name=row["actor_name"],
        actor_role=row["actor_role"],
        authority_context=json.loads(row["authority_context_json"]),
        evidence_refs=json.loads(evidence) if evidence is not None else None,
        from_state=row["from_state"],
        to_state=row["to_state"],
        occurred_at=row["occurred_at"],
    )


def _sqlite_path(locator: str) -> str:
    if locator.startswith("sqlite:///"):
        return locator[len("sqlite:///"):]
    if locator.startswith("sqlite://"):
        return locator[len("sqlite://"):]
    return locator
