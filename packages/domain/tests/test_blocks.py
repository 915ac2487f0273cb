"""Tests for blocks architecture.

Tests cover:
- BlockContext reads, writes and missing-key reporting
- Dependency resolution over the pipeline's context keys
- BlockExecutor ordering and input/output validation
- RosterBlock, WaterfallBlock, ReturnsBlock integration
"""

import math
import pytest
from decimal import Decimal

from distribution_domain.blocks import (
    Block,
    BlockContext,
    BlockExecutor,
    RosterBlock,
    WaterfallBlock,
    ReturnsBlock,
)
from distribution_domain.blocks.base import topological_sort, CircularDependencyError
from distribution_domain.errors import DistributionError
from distribution_domain.schemas import (
    CapitalProviderPosition,
    PromoteTier,
    ShareClass,
    WaterfallCFG,
    WaterfallStructure,
)


# =============================================================================
# BlockContext Tests
# =============================================================================

def test_block_context_set_then_get():
    context = BlockContext()
    context.set("cash_flows", [500_000, 12_000_000])

    assert context.get("cash_flows") == [500_000, 12_000_000]
    assert context.has("cash_flows")
    assert not context.has("waterfall_structure")


def test_block_context_keys_in_write_order():
    context = BlockContext()
    context.set("positions", [])
    context.set("cash_flows", [])

    assert context.keys() == ["positions", "cash_flows"]


def test_block_context_missing_key_lists_available():
    context = BlockContext()
    context.set("positions", [])

    with pytest.raises(KeyError, match=r"Key 'class_groups' not found in context\. Available keys: \['positions'\]"):
        context.get("class_groups")


def test_block_context_get_optional():
    context = BlockContext()
    assert context.get_optional("waterfall_cfg") is None
    assert context.get_optional("waterfall_cfg", 5) == 5
    context.set("waterfall_cfg", 1)
    assert context.get_optional("waterfall_cfg", 5) == 1


def test_block_context_missing_preserves_order():
    context = BlockContext()
    context.set("cash_flows", [])

    assert context.missing(["positions", "cash_flows", "waterfall_structure"]) == [
        "positions",
        "waterfall_structure",
    ]


# =============================================================================
# Dependency Resolution Tests
# =============================================================================

class KeyBlock(Block):
    """Block that writes a marker string to each declared output."""

    def __init__(self, name, reads, writes):
        self.name = name
        self.reads = reads
        self.writes = writes

    def inputs(self):
        return self.reads

    def outputs(self):
        return self.writes

    def execute(self, context):
        for key in self.writes:
            context.set(key, f"{self.name}:{key}")

    def __repr__(self):
        return f"KeyBlock({self.name})"


@pytest.fixture
def pipeline():
    """Roster -> waterfall -> returns, using the real context keys."""
    roster = KeyBlock("roster", ["positions"], ["class_groups"])
    waterfall = KeyBlock("waterfall", ["cash_flows", "class_groups"], ["distribution_result"])
    returns = KeyBlock("returns", ["distribution_result"], ["returns_summary"])
    return roster, waterfall, returns


def test_sort_orders_producers_first(pipeline):
    roster, waterfall, returns = pipeline

    assert topological_sort([returns, roster, waterfall]) == [roster, waterfall, returns]


def test_sort_keeps_given_order_for_independent_blocks():
    roster = KeyBlock("roster", ["positions"], ["class_groups"])
    standard = KeyBlock("standard", ["class_groups"], ["standard_result"])
    per_class = KeyBlock("per_class", ["class_groups"], ["per_class_result"])

    ordered = topological_sort([per_class, standard, roster])

    assert ordered == [roster, per_class, standard]


def test_sort_detects_cycles():
    a = KeyBlock("a", ["distribution_result"], ["class_groups"])
    b = KeyBlock("b", ["class_groups"], ["distribution_result"])

    with pytest.raises(CircularDependencyError, match="Circular dependency detected") as excinfo:
        topological_sort([a, b])
    assert isinstance(excinfo.value, DistributionError)


def test_sort_rejects_two_producers_of_one_key():
    first = KeyBlock("first", [], ["distribution_result"])
    second = KeyBlock("second", [], ["distribution_result"])

    with pytest.raises(ValueError, match="Multiple blocks produce 'distribution_result'"):
        topological_sort([first, second])


def test_sort_ignores_keys_set_up_front(pipeline):
    roster, waterfall, _ = pipeline

    # positions and cash_flows have no producer; they come from the caller
    assert topological_sort([waterfall, roster]) == [roster, waterfall]


def test_topological_sort_distribution_pipeline():
    """The shipped blocks order themselves roster -> waterfall -> returns."""
    roster = RosterBlock()
    waterfall = WaterfallBlock(use_class_terms=True)
    returns = ReturnsBlock()

    assert topological_sort([returns, waterfall, roster]) == [roster, waterfall, returns]


# =============================================================================
# BlockExecutor Tests
# =============================================================================

def test_executor_runs_pipeline(pipeline):
    context = BlockContext()
    context.set("positions", [])
    context.set("cash_flows", [])

    BlockExecutor(list(reversed(pipeline))).execute(context)

    assert context.get("class_groups") == "roster:class_groups"
    assert context.get("returns_summary") == "returns:returns_summary"


def test_executor_reuses_resolved_order(pipeline):
    executor = BlockExecutor(list(reversed(pipeline)))

    assert executor.order is executor.order
    assert [block.name for block in executor.order] == ["roster", "waterfall", "returns"]


def test_executor_reports_missing_input(pipeline):
    context = BlockContext()
    context.set("positions", [])

    with pytest.raises(KeyError, match="requires input 'cash_flows'"):
        BlockExecutor(list(pipeline)).execute(context)


def test_executor_reports_unwritten_output():

    class SilentBlock(Block):
        def inputs(self):
            return []

        def outputs(self):
            return ["distribution_result"]

        def execute(self, context):
            pass

    with pytest.raises(ValueError, match="declared output 'distribution_result' but didn't write"):
        BlockExecutor([SilentBlock()]).execute(BlockContext())


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def positions():
    """Senior class P (10% pref) ahead of class A (deal pref)."""
    senior = ShareClass(code="P", name="Preferred", priority=1, preferred_return=Decimal("0.10"))
    class_a = ShareClass(code="A", name="Class A", priority=2)
    return [
        CapitalProviderPosition(
            id="lp_senior", entity_name="Senior Pension", share_class=senior,
            ownership_pct=Decimal("30"), committed_capital=Decimal("3000000"),
        ),
        CapitalProviderPosition(
            id="lp_a1", share_class=class_a,
            ownership_pct=Decimal("40"), committed_capital=Decimal("4000000"),
        ),
        CapitalProviderPosition(
            id="lp_a2", share_class=class_a,
            ownership_pct=Decimal("20"), committed_capital=Decimal("2000000"),
        ),
        CapitalProviderPosition(
            id="lp_gone", share_class=class_a, status="INACTIVE",
            ownership_pct=Decimal("10"), committed_capital=Decimal("1000000"),
        ),
    ]


@pytest.fixture
def structure():
    return WaterfallStructure(
        lp_capital=Decimal("9000000"),
        gp_capital=Decimal("1000000"),
        preferred_return_rate=Decimal("0.08"),
        promote_tiers=[PromoteTier(hurdle=None, lp_split=Decimal("0.8"), gp_split=Decimal("0.2"))],
    )


@pytest.fixture
def context(positions, structure):
    context = BlockContext()
    context.set("positions", positions)
    context.set("cash_flows", [3_500_000, 12_000_000])
    context.set("waterfall_structure", structure)
    return context


# =============================================================================
# RosterBlock Tests
# =============================================================================

def test_roster_block(context):
    """Roster is ordered by priority then id and skips inactive positions."""
    RosterBlock().execute(context)

    roster = context.get("roster_positions")
    assert list(roster["position_id"]) == ["lp_senior", "lp_a1", "lp_a2"]
    assert list(roster["share_class_code"]) == ["P", "A", "A"]
    assert list(roster["priority"]) == [1, 2, 2]
    assert roster.loc[0, "entity_name"] == "Senior Pension"
    assert roster.loc[1, "entity_name"] == "lp_a1"
    assert roster.loc[1, "class_ownership_pct"] == pytest.approx(2 / 3)
    assert roster.loc[0, "class_ownership_pct"] == pytest.approx(1.0)

    groups = context.get("class_groups")
    assert sorted(groups) == [1, 2]
    assert groups[2].total_capital == Decimal("6000000")


def test_roster_block_unclassified_positions():
    context = BlockContext()
    context.set("positions", [
        CapitalProviderPosition(id="lp_x", committed_capital=Decimal("100")),
        CapitalProviderPosition(id="lp_y", committed_capital=Decimal("100")),
    ])
    RosterBlock().execute(context)

    roster = context.get("roster_positions")
    assert set(roster["share_class_code"]) == {"NONE"}
    assert set(roster["priority"]) == {999}
    # No ownership recorded: even split
    assert list(roster["class_ownership_pct"]) == [pytest.approx(0.5), pytest.approx(0.5)]


# =============================================================================
# WaterfallBlock Tests
# =============================================================================

def test_waterfall_block_standard(structure):
    context = BlockContext()
    context.set("cash_flows", [500_000, 12_000_000])
    context.set("waterfall_structure", structure)

    BlockExecutor([WaterfallBlock()]).execute(context)

    periods = context.get("waterfall_periods")
    assert len(periods) == 2
    assert list(periods["period"]) == [1, 2]
    assert (periods["lp_share"] + periods["gp_share"]).sum() == pytest.approx(12_500_000)
    assert math.isinf(periods.loc[1, "tier_hurdle"])
    assert context.get("waterfall_by_class").empty
    assert context.get("waterfall_by_position").empty
    assert context.get("distribution_result").mode == "standard"


def test_waterfall_block_equity_multiple_metric(structure):
    context = BlockContext()
    context.set("cash_flows", [12_000_000])
    context.set("waterfall_structure", structure.model_copy(update={
        "hurdle_type": "equity_multiple",
        "promote_tiers": [
            PromoteTier(hurdle=Decimal("1.5"), lp_split=Decimal("0.8"), gp_split=Decimal("0.2")),
            PromoteTier(hurdle=None, lp_split=Decimal("0.7"), gp_split=Decimal("0.3")),
        ],
    }))

    WaterfallBlock().execute(context)

    periods = context.get("waterfall_periods")
    # (9M capital + 720k pref + 90% of the 1.28M remainder) / 9M
    assert periods.loc[0, "provisional_multiple"] == pytest.approx(1.208, abs=1e-6)
    assert periods["provisional_irr"].isna().all()
    assert periods.loc[0, "tier_hurdle"] == pytest.approx(1.5)


def test_waterfall_block_uses_optional_cfg(structure):
    context = BlockContext()
    context.set("cash_flows", [100])
    context.set("waterfall_structure", structure.model_copy(update={"promote_tiers": []}))
    context.set("waterfall_cfg", WaterfallCFG(tier_policy="fallback"))

    WaterfallBlock().execute(context)

    assert context.get("distribution_result").terms.tier_fallback_applied


def test_waterfall_block_per_class(context):
    BlockExecutor([RosterBlock(), WaterfallBlock(use_class_terms=True)]).execute(context)

    by_class = context.get("waterfall_by_class")
    period_1 = by_class[by_class["period"] == 1]
    assert list(period_1["share_class_code"]) == ["P", "A"]
    assert list(period_1["capital_return"]) == [3_000_000.0, 500_000.0]

    by_position = context.get("waterfall_by_position")
    period_1_positions = by_position[by_position["period"] == 1].set_index("position_id")["amount"]
    assert period_1_positions["lp_senior"] == pytest.approx(3_000_000.0)
    assert period_1_positions["lp_a1"] == pytest.approx(333_333.34)
    assert period_1_positions["lp_a2"] == pytest.approx(166_666.66)
    assert "lp_gone" not in set(by_position["position_id"])


# =============================================================================
# ReturnsBlock Tests
# =============================================================================

def test_full_pipeline(context):
    """Roster -> waterfall -> returns, given in reverse order."""
    BlockExecutor([
        ReturnsBlock(),
        WaterfallBlock(use_class_terms=True),
        RosterBlock(),
    ]).execute(context)

    returns = context.get("returns_by_position").set_index("position_id")
    assert set(returns.index) == {"lp_senior", "lp_a1", "lp_a2"}
    assert returns.loc["lp_senior", "investment_amount"] == 3_000_000.0
    assert returns.loc["lp_senior", "moic"] > 1.0
    assert returns.loc["lp_senior", "irr"] is not None

    summary = context.get("returns_summary").iloc[0]
    assert summary["lp_total_return"] + summary["gp_total_return"] == pytest.approx(15_500_000)
    assert returns["total_distribution"].sum() == pytest.approx(summary["lp_total_return"])
    assert summary["final_lp_return"] == summary["lp_total_return"]

    by_class = context.get("returns_by_class")
    assert set(by_class["share_class_code"]) == {"P", "A"}
    assert by_class["total_distribution"].is_monotonic_decreasing
    assert by_class["total_investment"].sum() == pytest.approx(9_000_000)


def test_returns_block_standard_run_has_no_positions(context):
    """A standard run carries no position breakdown to compute returns from."""
    BlockExecutor([RosterBlock(), WaterfallBlock(), ReturnsBlock()]).execute(context)

    assert context.get("returns_by_position").empty
    assert context.get("returns_by_class").empty
    assert len(context.get("returns_summary")) == 1
