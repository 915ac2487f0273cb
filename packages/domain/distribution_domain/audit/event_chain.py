"""Per-deal hash-chained audit log.

Each event stores the hash of its predecessor, so deleting, reordering or
editing an event breaks the chain in a way verify_chain can report:

    event_hash = sha256(canonical {dealId, sequenceNumber, eventType,
                                   eventData, previousHash, timestamp})
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..errors import EventSequenceConflictError
from ..schemas import (
    Actor,
    AuditEvent,
    AuditStoreCFG,
    ChainIssue,
    ChainVerification,
    SYSTEM_ACTOR,
)
from .hashing import canonical_json, compute_event_hash
from .store import AuditStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog:
    """Appends and verifies a deal's event chain.

    Appends for one deal are serialised by the store's per-deal lock; a
    writer in another process that wins the same sequence number surfaces as
    a storage conflict, which is retried up to cfg.max_append_retries times.

    Example:
        log = AuditLog(store, AuditStoreCFG(locator=path))
        log.append_event("deal_1", "DISTRIBUTION_APPROVED", {"amount": "250000"}, actor)
        log.verify_chain("deal_1").valid
    """

    def __init__(
        self,
        store: AuditStore,
        cfg: AuditStoreCFG,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.cfg = cfg
        self._clock = clock or _utc_now

    def append_event(
        self,
        deal_id: str,
        event_type: str,
        event_data: Optional[Dict[str, Any]] = None,
        actor: Optional[Actor] = None,
        *,
        authority_context: Optional[Dict[str, Any]] = None,
        evidence_refs: Optional[List[Any]] = None,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
    ) -> AuditEvent:
        """Append the next event for a deal.

        Raises:
            EventSequenceConflictError: Another writer kept winning the next
                sequence number after all retries (retryable)
        """
        actor = actor or SYSTEM_ACTOR
        # Stored form, so the returned event hashes the same as the row read back
        data = json.loads(canonical_json(event_data or {}))

        with self.store.deal_lock(deal_id):
            attempts = 0
            while True:
                attempts += 1
                previous = self.store.latest_event(deal_id)
                sequence_number = previous.sequence_number + 1 if previous else 1
                previous_hash = previous.event_hash if previous else None
                occurred_at = self._clock().isoformat()

                event = AuditEvent(
                    id=str(uuid.uuid4()),
                    deal_id=deal_id,
                    sequence_number=sequence_number,
                    event_type=event_type,
                    event_data=data,
                    previous_event_hash=previous_hash,
                    event_hash=compute_event_hash(
                        deal_id, sequence_number, event_type, data, previous_hash, occurred_at
                    ),
                    actor_id=actor.id,
                    actor_name=actor.name,
                    actor_role=actor.role,
                    authority_context=authority_context or {},
                    evidence_refs=evidence_refs,
                    from_state=from_state,
                    to_state=to_state,
                    occurred_at=occurred_at,
                )
                try:
                    self.store.insert_event(event)
                except EventSequenceConflictError as exc:
                    if attempts > self.cfg.max_append_retries:
                        logger.error(
                            "Giving up on event append for deal %s after %d attempts",
                            deal_id, attempts,
                        )
                        raise EventSequenceConflictError(deal_id, sequence_number, attempts) from exc
                    logger.warning(
                        "Sequence %d for deal %s already taken; retrying (attempt %d)",
                        sequence_number, deal_id, attempts,
                    )
                    continue

                logger.info(
                    "Appended %s event #%d for deal %s", event_type, sequence_number, deal_id
                )
                return event

    def list_events(self, deal_id: str) -> List[AuditEvent]:
        return self.store.list_events(deal_id)

    def verify_chain(self, deal_id: str) -> ChainVerification:
        """Walk the chain in sequence order and collect every issue.

        Checks per event:
            - sequence numbers run 1, 2, 3, ... without gaps
            - previous_event_hash equals the prior event's event_hash
              (None for the first event returned)
            - event_hash matches a hash recomputed from the stored content
        """
        events = self.store.list_events(deal_id)
        issues: List[ChainIssue] = []
        expected = 1
        expected_previous_hash: Optional[str] = None

        for event in events:
            if event.sequence_number != expected:
                issues.append(ChainIssue(
                    event_id=event.id,
                    sequence_number=event.sequence_number,
                    issue=f"Sequence gap: expected {expected}, found {event.sequence_number}",
                ))

            if event.previous_event_hash != expected_previous_hash:
                issues.append(ChainIssue(
                    event_id=event.id,
                    sequence_number=event.sequence_number,
                    issue="Chain break: previousEventHash doesn't match previous event's hash",
                ))

            recalculated = compute_event_hash(
                event.deal_id,
                event.sequence_number,
                event.event_type,
                event.event_data,
                event.previous_event_hash,
                event.occurred_at,
            )
            if recalculated != event.event_hash:
                issues.append(ChainIssue(
                    event_id=event.id,
                    sequence_number=event.sequence_number,
                    issue="Hash mismatch: stored eventHash doesn't match recalculated hash",
                ))

            expected = event.sequence_number + 1
            expected_previous_hash = event.event_hash

        if issues:
            logger.warning("Event chain for deal %s has %d issue(s)", deal_id, len(issues))

        return ChainVerification(
            deal_id=deal_id,
            valid=not issues,
            total_events=len(events),
            issues=issues,
        )
