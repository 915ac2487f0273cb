"""Tests for snapshots of distribution inputs.

Tests cover:
- Canonical serialisation and hashing
- Freezing rosters and distribution inputs
- Hash verification (valid, tampered, missing)
- Replaying a snapshot reproduces the same result
- Append-only storage
"""

import sqlite3
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from distribution_domain.audit import (
    AuditStore,
    InMemoryDealDirectory,
    SnapshotService,
    canonical_json,
    serialize_roster,
    sha256_hex,
)
from distribution_domain.calculations import calculate_waterfall, group_positions_by_class_priority
from distribution_domain.errors import (
    AuditStoreError,
    ImmutableRecordError,
    InputValidationError,
    SnapshotNotFoundError,
)
from distribution_domain.schemas import (
    Actor,
    AuditStoreCFG,
    CapitalProviderPosition,
    ShareClass,
    create_default_structure,
)


DEAL = "deal_riverside"
SENIOR = ShareClass(code="P", name="Preferred", priority=1, preferred_return=Decimal("0.10"))
CLASS_A = ShareClass(code="A", name="Class A", priority=2)
FLOWS = [250_000, 300_000, 14_000_000]


def _positions():
    return [
        CapitalProviderPosition(
            id="lp_pension", entity_name="Pension Fund", share_class=SENIOR,
            ownership_pct=Decimal("30"), committed_capital=Decimal("3000000"),
        ),
        CapitalProviderPosition(
            id="lp_family", share_class=CLASS_A,
            ownership_pct=Decimal("60"), committed_capital=Decimal("6000000"),
        ),
        CapitalProviderPosition(
            id="lp_exited", share_class=CLASS_A, status="INACTIVE",
            ownership_pct=Decimal("10"), committed_capital=Decimal("1000000"),
        ),
    ]


class _StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self):
        self.current = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def store(tmp_path):
    return AuditStore(f"sqlite:///{tmp_path / 'audit.sqlite'}")


@pytest.fixture
def directory():
    directory = InMemoryDealDirectory()
    for position in _positions():
        directory.add_position(DEAL, position)
    directory.set_waterfall_structure(DEAL, create_default_structure(Decimal("10000000")))
    return directory


@pytest.fixture
def service(store, directory):
    return SnapshotService(store, directory, clock=_StepClock())


# =============================================================================
# Hashing
# =============================================================================

def test_canonical_json_is_key_order_independent():
    assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})
    assert canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'


def test_canonical_json_writes_decimals_as_strings():
    assert canonical_json({"amount": Decimal("1.50")}) == '{"amount":"1.50"}'


def test_roster_serialisation_ignores_input_order():
    positions = _positions()
    assert serialize_roster(positions) == serialize_roster(list(reversed(positions)))


def test_store_rejects_empty_locator():
    with pytest.raises(AuditStoreError, match="locator must be non-empty"):
        AuditStore("  ")


def test_store_from_cfg(tmp_path):
    store = AuditStore.from_cfg(AuditStoreCFG(locator=str(tmp_path / "nested" / "audit.sqlite")))
    assert store.path.exists()


# =============================================================================
# Freezing
# =============================================================================

class TestFreeze:
    """freeze_roster / freeze_distribution_inputs"""

    def test_freeze_roster(self, service):
        snapshot = service.freeze_roster(DEAL, reason="Quarter close")

        assert snapshot.snapshot_type == "CAP_TABLE"
        assert snapshot.roster_hash == sha256_hex(snapshot.roster_json)
        assert snapshot.structure_json is None
        assert snapshot.structure_hash is None
        assert snapshot.reason == "Quarter close"
        assert snapshot.created_by == "SYSTEM"
        assert "lp_exited" not in snapshot.roster_json

    def test_freeze_distribution_inputs(self, service):
        actor = Actor(id="user_7", name="Dana Analyst", role="ANALYST")

        snapshot = service.freeze_distribution_inputs(DEAL, "Q4 distribution", actor)

        assert snapshot.snapshot_type == "DISTRIBUTION_CALC"
        assert snapshot.has_structure
        assert snapshot.structure_hash == sha256_hex(snapshot.structure_json)
        assert (snapshot.created_by, snapshot.created_by_name) == ("user_7", "Dana Analyst")
        assert service.get(snapshot.id) == snapshot

    def test_missing_structure_is_none_not_empty(self, store, directory):
        directory.set_waterfall_structure(DEAL, None)
        service = SnapshotService(store, directory)

        snapshot = service.freeze_distribution_inputs(DEAL, reason=None)

        assert snapshot.structure_json is None
        assert snapshot.structure_hash is None
        verification = service.verify(snapshot.id)
        assert verification.valid
        assert verification.structure_match is None

    def test_same_roster_same_hash(self, service):
        first = service.freeze_roster(DEAL)
        second = service.freeze_roster(DEAL)

        assert first.id != second.id
        assert first.roster_hash == second.roster_hash

    def test_list_for_deal_in_creation_order(self, service):
        ids = [service.freeze_roster(DEAL).id for _ in range(3)]
        service.freeze_roster("other_deal")

        assert [s.id for s in service.list_for_deal(DEAL)] == ids


# =============================================================================
# Verification
# =============================================================================

class TestVerify:
    """verify never raises; findings are returned"""

    def test_valid_snapshot(self, service):
        snapshot = service.freeze_distribution_inputs(DEAL, reason=None)

        verification = service.verify(snapshot.id)

        assert verification.valid
        assert verification.match
        assert verification.structure_match is True
        assert verification.stored_hash == verification.recalculated_hash

    def test_missing_snapshot(self, service):
        verification = service.verify("no-such-id")

        assert not verification.valid
        assert verification.error == "Snapshot not found"

    def test_get_missing_snapshot_raises(self, service):
        with pytest.raises(SnapshotNotFoundError, match="no-such-id"):
            service.get("no-such-id")

    def test_tampered_roster_detected(self, service, store):
        snapshot = service.freeze_distribution_inputs(DEAL, reason=None)
        conn = sqlite3.connect(str(store.path))
        conn.execute("DROP TRIGGER snapshots_no_update")
        conn.execute(
            "UPDATE snapshots SET roster_json = ? WHERE id = ?",
            (snapshot.roster_json.replace("3000000", "4000000"), snapshot.id),
        )
        conn.commit()
        conn.close()

        verification = service.verify(snapshot.id)

        assert not verification.valid
        assert not verification.match
        assert verification.structure_match is True


# =============================================================================
# Replay
# =============================================================================

class TestReproduce:
    """Frozen inputs replay to the same result"""

    def test_reproduce_matches_live_calculation(self, service, directory):
        snapshot = service.freeze_distribution_inputs(DEAL, reason="Q4")
        positions = directory.list_active_positions(DEAL)
        live = calculate_waterfall(
            FLOWS,
            directory.get_waterfall_structure(DEAL),
            use_class_terms=True,
            class_groups=group_positions_by_class_priority(positions),
        )

        replayed = service.reproduce(snapshot.id, FLOWS)

        assert replayed.summary == live.summary
        assert replayed.by_position == live.by_position

    def test_reproduce_ignores_later_roster_changes(self, service, directory):
        snapshot = service.freeze_distribution_inputs(DEAL, reason="Q4")
        before = service.reproduce(snapshot.id, FLOWS)

        directory.add_position(DEAL, CapitalProviderPosition(
            id="lp_late", ownership_pct=Decimal("5"), committed_capital=Decimal("500000"),
        ))
        directory.set_waterfall_structure(DEAL, create_default_structure(Decimal("20000000")))
        after = service.reproduce(snapshot.id, FLOWS)

        assert after.summary == before.summary
        assert "lp_late" not in after.by_position

    def test_load_inputs_round_trip(self, service, directory):
        snapshot = service.freeze_distribution_inputs(DEAL, reason=None)

        inputs = service.load_inputs(snapshot)

        assert sorted(inputs.positions, key=lambda p: p.id) == sorted(
            directory.list_active_positions(DEAL), key=lambda p: p.id
        )
        assert inputs.structure == directory.get_waterfall_structure(DEAL)

    def test_reproduce_without_structure(self, service):
        snapshot = service.freeze_roster(DEAL)

        with pytest.raises(InputValidationError, match="no frozen waterfall structure"):
            service.reproduce(snapshot.id, FLOWS)

    def test_reproduce_unknown_snapshot(self, service):
        with pytest.raises(SnapshotNotFoundError):
            service.reproduce("no-such-id", FLOWS)


# =============================================================================
# Immutability
# =============================================================================

def test_snapshots_cannot_be_deleted(service, store):
    snapshot = service.freeze_roster(DEAL)

    with pytest.raises(ImmutableRecordError, match="snapshots is immutable"):
        store.delete_snapshot(snapshot.id)

    assert store.get_snapshot(snapshot.id) == snapshot
