"""Snapshot service: freeze, verify and replay calculation inputs.

A snapshot stores the canonical JSON of a deal's active positions (and, for
distribution snapshots, its waterfall structure) together with sha256 hashes.
Loading a snapshot back yields models equal to the ones that were frozen, so
re-running the engines on them reproduces the same result.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from ..calculations import calculate_waterfall, group_positions_by_class_priority
from ..errors import InputValidationError, SnapshotNotFoundError
from ..schemas import (
    Actor,
    AuditStoreCFG,
    CapitalProviderPosition,
    DistributionResult,
    Snapshot,
    SnapshotVerification,
    SYSTEM_ACTOR,
    WaterfallCFG,
    WaterfallStructure,
)
from ..schemas.records import SnapshotType
from .directory import DealDirectory
from .hashing import serialize_roster, serialize_structure, sha256_hex
from .store import AuditStore

logger = logging.getLogger(__name__)

SNAPSHOT_NOT_FOUND = "Snapshot not found"
NO_FROZEN_STRUCTURE = "Snapshot has no frozen waterfall structure"


@dataclass(frozen=True)
class FrozenInputs:
    """Models rebuilt from a snapshot's stored JSON."""

    positions: List[CapitalProviderPosition]
    structure: Optional[WaterfallStructure]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotService:
    """Creates and checks immutable snapshots of deal inputs.

    Example:
        service = SnapshotService(store, directory, AuditStoreCFG(locator=path))
        snapshot = service.freeze_distribution_inputs("deal_1", reason="Q4 distribution")
        service.verify(snapshot.id).valid
        result = service.reproduce(snapshot.id, cash_flows)
    """

    def __init__(
        self,
        store: AuditStore,
        directory: DealDirectory,
        cfg: Optional[AuditStoreCFG] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.directory = directory
        self.cfg = cfg
        self._clock = clock or _utc_now

    # -------------------------------------------------------------------------
    # Freezing
    # -------------------------------------------------------------------------

    def freeze_roster(
        self,
        deal_id: str,
        snapshot_type: SnapshotType = "CAP_TABLE",
        reason: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Snapshot:
        """Freeze the deal's active positions."""
        return self._freeze(deal_id, snapshot_type, reason, actor, include_structure=False)

    def freeze_distribution_inputs(
        self,
        deal_id: str,
        reason: Optional[str],
        actor: Optional[Actor] = None,
    ) -> Snapshot:
        """Freeze active positions plus the current waterfall structure.

        structure_json and structure_hash stay None when the deal has no
        structure.
        """
        return self._freeze(deal_id, "DISTRIBUTION_CALC", reason, actor, include_structure=True)

    def _freeze(
        self,
        deal_id: str,
        snapshot_type: SnapshotType,
        reason: Optional[str],
        actor: Optional[Actor],
        include_structure: bool,
    ) -> Snapshot:
        actor = actor or SYSTEM_ACTOR
        with self.store.deal_lock(deal_id):
            positions = [
                p for p in self.directory.list_active_positions(deal_id) if p.status == "ACTIVE"
            ]
            roster_json = serialize_roster(positions)

            structure_json = None
            structure_hash = None
            if include_structure:
                structure_json = serialize_structure(self.directory.get_waterfall_structure(deal_id))
                if structure_json is not None:
                    structure_hash = sha256_hex(structure_json)

            snapshot = Snapshot(
                id=str(uuid.uuid4()),
                deal_id=deal_id,
                snapshot_type=snapshot_type,
                created_at=self._clock().isoformat(),
                roster_json=roster_json,
                roster_hash=sha256_hex(roster_json),
                structure_json=structure_json,
                structure_hash=structure_hash,
                reason=reason,
                created_by=actor.id,
                created_by_name=actor.name,
            )
            self.store.insert_snapshot(snapshot)

        logger.info(
            "Froze %s snapshot %s for deal %s (%d positions, structure=%s)",
            snapshot_type, snapshot.id, deal_id, len(positions), structure_hash is not None,
        )
        return snapshot

    # -------------------------------------------------------------------------
    # Reading and verification
    # -------------------------------------------------------------------------

    def get(self, snapshot_id: str) -> Snapshot:
        """Raises SnapshotNotFoundError for an unknown id."""
        snapshot = self.store.get_snapshot(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot

    def list_for_deal(self, deal_id: str) -> List[Snapshot]:
        return self.store.list_snapshots(deal_id)

    def verify(self, snapshot_id: str) -> SnapshotVerification:
        """Recompute the stored hashes. Never raises."""
        snapshot = self.store.get_snapshot(snapshot_id)
        if snapshot is None:
            return SnapshotVerification(snapshot_id=snapshot_id, valid=False, error=SNAPSHOT_NOT_FOUND)

        recalculated = sha256_hex(snapshot.roster_json)
        match = recalculated == snapshot.roster_hash

        structure_recalculated = None
        structure_match = None
        if snapshot.structure_json is not None:
            structure_recalculated = sha256_hex(snapshot.structure_json)
            structure_match = structure_recalculated == snapshot.structure_hash

        valid = match and structure_match is not False
        if not valid:
            logger.warning("Snapshot %s failed hash verification", snapshot_id)

        return SnapshotVerification(
            snapshot_id=snapshot_id,
            valid=valid,
            stored_hash=snapshot.roster_hash,
            recalculated_hash=recalculated,
            match=match,
            structure_stored_hash=snapshot.structure_hash,
            structure_recalculated_hash=structure_recalculated,
            structure_match=structure_match,
        )

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    def load_inputs(self, snapshot: Snapshot) -> FrozenInputs:
        """Rebuild positions and structure from a snapshot's JSON."""
        positions = [CapitalProviderPosition.model_validate(item) for item in json.loads(snapshot.roster_json)]
        structure = None
        if snapshot.structure_json is not None:
            structure = WaterfallStructure.model_validate(json.loads(snapshot.structure_json))
        return FrozenInputs(positions=positions, structure=structure)

    def reproduce(
        self,
        snapshot_id: str,
        cash_flows: Sequence,
        use_class_terms: bool = True,
        cfg: Optional[WaterfallCFG] = None,
    ) -> DistributionResult:
        """Re-run the waterfall on a snapshot's frozen inputs.

        Raises:
            SnapshotNotFoundError: Unknown snapshot id
            InputValidationError: The snapshot froze no waterfall structure
        """
        inputs = self.load_inputs(self.get(snapshot_id))
        if inputs.structure is None:
            logger.error("Cannot reproduce snapshot %s: %s", snapshot_id, NO_FROZEN_STRUCTURE)
            raise InputValidationError(NO_FROZEN_STRUCTURE)

        class_groups = group_positions_by_class_priority(inputs.positions) if use_class_terms else None
        return calculate_waterfall(
            cash_flows,
            inputs.structure,
            use_class_terms=use_class_terms,
            class_groups=class_groups,
            cfg=cfg,
        )
