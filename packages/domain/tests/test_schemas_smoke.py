"""Smoke tests for schema validation.

These tests verify that:
1. All schemas can be imported
2. Basic instantiation works
3. Field validation catches obvious errors
4. Templates and defaults build valid structures
"""

import math
import pytest
from decimal import Decimal
from pydantic import ValidationError

from distribution_domain import __version__
from distribution_domain.schemas import (
    # Base
    DomainModel,
    # Share classes and positions
    ShareClass,
    CapitalProviderPosition,
    UNCLASSIFIED_PRIORITY,
    UNCLASSIFIED_SHARE_CLASS,
    # Structure
    PromoteTier,
    WaterfallStructure,
    DEFAULT_PROMOTE_TIERS,
    WATERFALL_TEMPLATES,
    create_default_structure,
    # Configuration
    WaterfallCFG,
    AuditStoreCFG,
    CashFlowScenario,
    # Records
    Actor,
    Snapshot,
    AuditEvent,
)


class TestBasicInstantiation:
    """Test that basic schema instantiation works."""

    def test_version(self):
        assert __version__ == "0.1.0"

    def test_share_class_with_pref(self):
        """Test creating a preferred class with its own pref."""
        share_class = ShareClass(code="P", name="Preferred", priority=1, preferred_return=Decimal("0.10"))
        assert share_class.priority == 1
        assert share_class.preferred_return == Decimal("0.10")
        assert not share_class.is_unclassified

    def test_share_class_explicit_zero_pref_is_not_none(self):
        share_class = ShareClass(code="B", priority=2, preferred_return=Decimal("0"))
        assert share_class.preferred_return is not None
        assert share_class.preferred_return == Decimal("0")

    def test_position_without_class_uses_sentinel(self):
        position = CapitalProviderPosition(id="lp1", committed_capital=Decimal("1000000"))
        assert position.share_class is None
        assert position.effective_share_class == UNCLASSIFIED_SHARE_CLASS
        assert position.effective_share_class.priority == UNCLASSIFIED_PRIORITY == 999
        assert position.effective_share_class.code == "NONE"

    def test_structure_defaults(self):
        structure = WaterfallStructure(lp_capital=Decimal("9000000"), gp_capital=Decimal("1000000"))
        assert structure.total_equity == Decimal("10000000")
        assert structure.lp_ownership == Decimal("0.9")
        assert structure.gp_catch_up_enabled is False
        assert structure.catch_up_rate == Decimal("1.0")
        assert structure.hurdle_type == "irr"
        assert structure.promote_tiers == []

    def test_actor_defaults(self):
        actor = Actor()
        assert (actor.id, actor.name, actor.role) == ("SYSTEM", "Unknown", "SYSTEM")

    def test_cfg_defaults(self):
        cfg = WaterfallCFG()
        assert cfg.tier_selection == "single_pass"
        assert cfg.tier_policy == "fallback"
        assert cfg.currency_quantum == Decimal("0.01")
        assert cfg.irr_tolerance == 1e-4
        assert cfg.irr_max_iterations == 100

    def test_domain_model_base(self):
        assert issubclass(WaterfallStructure, DomainModel)


class TestPromoteTier:
    """Unbounded hurdle spellings and split checks."""

    @pytest.mark.parametrize("hurdle", [None, float("inf"), "inf", "Infinity", Decimal("Infinity")])
    def test_unbounded_hurdle_normalises_to_none(self, hurdle):
        tier = PromoteTier(hurdle=hurdle, lp_split=Decimal("0.8"), gp_split=Decimal("0.2"))
        assert tier.hurdle is None
        assert tier.is_unbounded

    def test_finite_hurdle_kept(self):
        tier = PromoteTier(hurdle=Decimal("0.12"), lp_split=Decimal("0.8"), gp_split=Decimal("0.2"))
        assert tier.hurdle == Decimal("0.12")
        assert tier.splits_sum_to_one

    def test_splits_not_summing_to_one_are_accepted_but_flagged(self):
        tier = PromoteTier(hurdle=None, lp_split=Decimal("0.7"), gp_split=Decimal("0.2"))
        assert not tier.splits_sum_to_one

    def test_tiers_accept_json_string(self):
        structure = WaterfallStructure(
            lp_capital=Decimal("1000000"),
            promote_tiers='[{"hurdle": 0.12, "lp_split": 0.8, "gp_split": 0.2}, '
                          '{"hurdle": null, "lp_split": 0.7, "gp_split": 0.3}]',
        )
        assert len(structure.promote_tiers) == 2
        assert structure.promote_tiers[1].hurdle is None


class TestValidation:
    """Test that validation rules work correctly."""

    def test_negative_capital_rejected(self):
        with pytest.raises(ValidationError):
            WaterfallStructure(lp_capital=Decimal("-1"))

    def test_split_above_one_rejected(self):
        with pytest.raises(ValidationError):
            PromoteTier(hurdle=None, lp_split=Decimal("1.2"), gp_split=Decimal("0"))

    def test_negative_priority_rejected(self):
        with pytest.raises(ValidationError):
            ShareClass(code="X", priority=-1)

    def test_invalid_json_tiers_rejected(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            WaterfallStructure(lp_capital=Decimal("1"), promote_tiers="[not json")

    def test_empty_locator_rejected(self):
        with pytest.raises(ValidationError, match="locator must be non-empty"):
            AuditStoreCFG(locator="   ")

    def test_scenario_requires_cash_flows(self):
        with pytest.raises(ValidationError):
            CashFlowScenario(id="empty", label="Empty", cash_flows=[])

    def test_snapshot_is_frozen(self):
        snapshot = Snapshot(
            id="s1",
            deal_id="deal_1",
            snapshot_type="CAP_TABLE",
            created_at="2024-01-01T00:00:00+00:00",
            roster_json="[]",
            roster_hash="abc",
        )
        with pytest.raises(ValidationError):
            snapshot.reason = "edited"

    def test_event_sequence_starts_at_one(self):
        with pytest.raises(ValidationError):
            AuditEvent(
                id="e0",
                deal_id="deal_1",
                sequence_number=0,
                event_type="CREATED",
                event_hash="abc",
                occurred_at="2024-01-01T00:00:00+00:00",
            )


class TestTemplates:
    """Default structure and strategy templates."""

    def test_all_templates_present(self):
        assert set(WATERFALL_TEMPLATES) == {
            "CORE", "CORE_PLUS", "VALUE_ADD", "OPPORTUNISTIC",
            "EQUITY_MULTIPLE", "FAMILY_OFFICE", "JOINT_VENTURE", "INSTITUTIONAL",
        }

    def test_template_tiers_are_well_formed(self):
        for key, template in WATERFALL_TEMPLATES.items():
            assert template.promote_tiers, key
            assert all(t.splits_sum_to_one for t in template.promote_tiers), key
            assert template.promote_tiers[-1].hurdle is None, key

    def test_from_template(self):
        structure = WaterfallStructure.from_template(
            "VALUE_ADD", lp_capital=Decimal("9000000"), gp_capital=Decimal("1000000")
        )
        assert structure.preferred_return_rate == Decimal("0.08")
        assert structure.gp_catch_up_enabled
        assert [t.gp_split for t in structure.promote_tiers] == [
            Decimal("0.20"), Decimal("0.30"), Decimal("0.35"), Decimal("0.50")
        ]

    def test_from_template_equity_multiple(self):
        structure = WaterfallStructure.from_template("EQUITY_MULTIPLE", lp_capital=Decimal("1000000"))
        assert structure.hurdle_type == "equity_multiple"
        assert structure.promote_tiers[0].hurdle == Decimal("1.25")

    def test_from_template_unknown_key(self):
        with pytest.raises(KeyError, match="Unknown waterfall template"):
            WaterfallStructure.from_template("NOPE", lp_capital=Decimal("1"))

    def test_create_default_structure(self):
        structure = create_default_structure(Decimal("10000000"))
        assert structure.gp_capital == Decimal("1000000")
        assert structure.lp_capital == Decimal("9000000")
        assert structure.preferred_return_rate == Decimal("0.08")
        assert structure.gp_catch_up_enabled
        assert structure.promote_tiers == DEFAULT_PROMOTE_TIERS
        assert not math.isinf(float(structure.promote_tiers[0].hurdle))
