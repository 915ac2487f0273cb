"""Immutable audit records: snapshots and hash-chained deal events.

Snapshots freeze the capital-provider roster (and, for distribution
snapshots, the waterfall structure) so a calculation can be reproduced later.
Deal events form a per-deal hash chain:

    event_1.previous_event_hash = None
    event_n.previous_event_hash = event_(n-1).event_hash

Both are append-only. The store rejects UPDATE and DELETE on them.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import Field

from .base import DomainModel, FrozenDomainModel, DealId


SnapshotType = Literal["CAP_TABLE", "DISTRIBUTION_CALC", "CAPITAL_CALL_CALC"]


# =============================================================================
# Actor
# =============================================================================

class Actor(DomainModel):
    """Who performed an audited action."""

    id: str = Field(default="SYSTEM")
    name: str = Field(default="Unknown")
    role: str = Field(default="SYSTEM")


SYSTEM_ACTOR = Actor()


# =============================================================================
# Snapshot
# =============================================================================

class Snapshot(FrozenDomainModel):
    """A frozen roster (and optionally waterfall structure) with content hashes.

    structure_json / structure_hash are None when no waterfall structure
    existed for the deal at freeze time. None means "no waterfall defined",
    which is different from an empty structure.
    """

    id: str
    deal_id: DealId
    snapshot_type: SnapshotType
    created_at: str = Field(description="ISO-8601 UTC timestamp")
    roster_json: str = Field(description="Canonical JSON of the frozen positions")
    roster_hash: str = Field(description="sha256 hex digest of roster_json")
    structure_json: Optional[str] = None
    structure_hash: Optional[str] = None
    reason: Optional[str] = None
    created_by: str = "SYSTEM"
    created_by_name: str = "Unknown"

    @property
    def has_structure(self) -> bool:
        return self.structure_json is not None


class SnapshotVerification(DomainModel):
    """Result of recomputing a snapshot's hashes."""

    snapshot_id: str
    valid: bool
    stored_hash: Optional[str] = None
    recalculated_hash: Optional[str] = None
    match: bool = False
    structure_stored_hash: Optional[str] = None
    structure_recalculated_hash: Optional[str] = None
    structure_match: Optional[bool] = None
    error: Optional[str] = None


# =============================================================================
# Deal Events
# =============================================================================

class AuditEvent(FrozenDomainModel):
    """One link in a deal's event hash chain."""

    id: str
    deal_id: DealId
    sequence_number: int = Field(ge=1)
    event_type: str
    event_data: Dict[str, Any] = Field(default_factory=dict)
    previous_event_hash: Optional[str] = None
    event_hash: str
    actor_id: str = "SYSTEM"
    actor_name: str = "Unknown"
    actor_role: str = "SYSTEM"
    authority_context: Dict[str, Any] = Field(default_factory=dict)
    evidence_refs: Optional[List[Any]] = None
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    occurred_at: str = Field(description="ISO-8601 UTC timestamp included in the event hash")


class ChainIssue(DomainModel):
    """A single integrity finding in a deal's event chain."""

    event_id: str
    sequence_number: int
    issue: str


class ChainVerification(DomainModel):
    """Result of walking a deal's event chain."""

    deal_id: DealId
    valid: bool
    total_events: int
    issues: List[ChainIssue] = Field(default_factory=list)
