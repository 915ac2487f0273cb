"""Exception taxonomy for the distribution domain.

- InputValidationError: caller input is malformed; nothing was computed.
- EventSequenceConflictError: another writer claimed the next sequence
  number for the deal; reload and retry the append.
- ImmutableRecordError: an UPDATE/DELETE hit an append-only audit table.
- SnapshotNotFoundError: no snapshot with the requested id.

Integrity failures (hash mismatch, chain gaps) are NOT exceptions; they are
returned as verification findings.
"""

from typing import Optional


class DistributionError(Exception):
    """Base class for distribution domain errors."""
    pass


class InputValidationError(DistributionError, ValueError):
    """Raised when a waterfall input violates a precondition.

    The message names the violated precondition, e.g.
    "LP capital must be greater than zero".
    """

    def __init__(self, precondition: str):
        super().__init__(precondition)
        self.precondition = precondition


class EventSequenceConflictError(DistributionError):
    """Raised when an event append lost the race for a sequence number."""

    retryable = True

    def __init__(self, deal_id: str, sequence_number: int, attempts: int):
        super().__init__(
            f"Sequence number {sequence_number} for deal '{deal_id}' was claimed by "
            f"another writer ({attempts} attempt(s)); reload and retry the append"
        )
        self.deal_id = deal_id
        self.sequence_number = sequence_number
        self.attempts = attempts


class ImmutableRecordError(DistributionError):
    """Raised when an audit record update or delete is attempted."""
    pass


class SnapshotNotFoundError(DistributionError, LookupError):
    """Raised when a snapshot id does not exist."""

    def __init__(self, snapshot_id: str):
        super().__init__(f"Snapshot '{snapshot_id}' not found")
        self.snapshot_id = snapshot_id


class AuditStoreError(DistributionError):
    """Raised when the audit store cannot be opened or queried."""

    def __init__(self, message: str, locator: Optional[str] = None):
        super().__init__(message)
        self.locator = locator
