"""Tamper-evident records of distribution inputs.

- AuditStore: SQLite persistence with immutability triggers
- SnapshotService: freeze / verify / replay rosters and structures
- AuditLog: per-deal hash-chained events

Usage:
    from distribution_domain.audit import AuditStore, AuditLog, SnapshotService

    store = AuditStore("sqlite:///audit.sqlite")
    snapshots = SnapshotService(store, directory)
    log = AuditLog(store, AuditStoreCFG(locator="sqlite:///audit.sqlite"))
"""

from .hashing import canonical_json, compute_event_hash, serialize_roster, serialize_structure, sha256_hex
from .store import AuditStore
from .directory import DealDirectory, InMemoryDealDirectory
from .snapshots import FrozenInputs, SnapshotService
from .event_chain import AuditLog

__all__ = [
    "canonical_json",
    "compute_event_hash",
    "serialize_roster",
    "serialize_structure",
    "sha256_hex",
    "AuditStore",
    "DealDirectory",
    "InMemoryDealDirectory",
    "FrozenInputs",
    "SnapshotService",
    "AuditLog",
]
