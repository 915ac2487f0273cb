"""Waterfall computation block.

Runs the distribution waterfall over a cash-flow series and lays the result
out as DataFrames:

1. One row per period (phase amounts, tier, running totals)
2. One row per period per share class (per-class runs)
3. One row per period per position (per-class runs)
"""

from typing import List, Optional
import pandas as pd

from .base import Block, BlockContext
from ..calculations import calculate_waterfall
from ..schemas import DistributionResult, WaterfallCFG, WaterfallStructure


PERIOD_COLUMNS = [
    "period",
    "cash_flow",
    "lp_share",
    "gp_share",
    "lp_capital_return",
    "gp_capital_return",
    "lp_pref_payment",
    "gp_catch_up",
    "lp_promote",
    "gp_promote",
    "provisional_irr",
    "provisional_multiple",
    "tier_hurdle",
    "tier_lp_split",
    "tier_gp_split",
    "in_catch_up",
    "cumulative_lp",
    "cumulative_gp",
]

CLASS_COLUMNS = [
    "period",
    "share_class_code",
    "priority",
    "capital_return",
    "pref_return",
    "promote",
    "total",
]

POSITION_COLUMNS = ["period", "position_id", "amount"]


class WaterfallBlock(Block):
    """Computes the distribution waterfall for a cash-flow series.

    Inputs (from context):
        - cash_flows: Sequence of period cash amounts
        - waterfall_structure: WaterfallStructure
        - class_groups: Dict[int, ClassGroup] (only when use_class_terms=True)
        - waterfall_cfg: WaterfallCFG (optional; defaults apply when absent)

    Outputs (to context):
        - distribution_result: DistributionResult
        - waterfall_periods: DataFrame, one row per period (PERIOD_COLUMNS)
        - waterfall_by_class: DataFrame, one row per period per class
          (empty for the standard waterfall)
        - waterfall_by_position: DataFrame, one row per period per position
          (empty for the standard waterfall)

    Example:
        context = BlockContext()
        context.set("cash_flows", [500_000, 12_000_000])
        context.set("waterfall_structure", structure)

        WaterfallBlock().execute(context)
        periods_df = context.get("waterfall_periods")
    """

    def __init__(
        self,
        use_class_terms: bool = False,
        cash_flows_key: str = "cash_flows",
        structure_key: str = "waterfall_structure",
        class_groups_key: str = "class_groups",
        config_key: str = "waterfall_cfg",
    ):
        """Initialize WaterfallBlock.

        Args:
            use_class_terms: Run the per-class priority waterfall
            cash_flows_key: Context key for the cash-flow series
            structure_key: Context key for the WaterfallStructure
            class_groups_key: Context key for class groups (per-class only)
            config_key: Context key for an optional WaterfallCFG
        """
        self.use_class_terms = use_class_terms
        self.cash_flows_key = cash_flows_key
        self.structure_key = structure_key
        self.class_groups_key = class_groups_key
        self.config_key = config_key

    def inputs(self) -> List[str]:
        keys = [self.cash_flows_key, self.structure_key]
        if self.use_class_terms:
            keys.append(self.class_groups_key)
        return keys

    def outputs(self) -> List[str]:
        return [
            "distribution_result",
            "waterfall_periods",
            "waterfall_by_class",
            "waterfall_by_position",
        ]

    def execute(self, context: BlockContext) -> None:
        structure: WaterfallStructure = context.get(self.structure_key)
        cfg: Optional[WaterfallCFG] = context.get_optional(self.config_key)
        class_groups = context.get(self.class_groups_key) if self.use_class_terms else None

        result = calculate_waterfall(
            context.get(self.cash_flows_key),
            structure,
            use_class_terms=self.use_class_terms,
            class_groups=class_groups,
            cfg=cfg,
        )

        context.set("distribution_result", result)
        context.set("waterfall_periods", self._compute_periods(result))
        context.set("waterfall_by_class", self._compute_by_class(result))
        context.set("waterfall_by_position", self._compute_by_position(result))

    def _compute_periods(self, result: DistributionResult) -> pd.DataFrame:
        rows = []
        for p in result.periods:
            tier = p.applied_tier
            rows.append({
                "period": p.period,
                "cash_flow": float(p.cash_flow),
                "lp_share": float(p.lp_share),
                "gp_share": float(p.gp_share),
                "lp_capital_return": float(p.lp_capital_return),
                "gp_capital_return": float(p.gp_capital_return),
                "lp_pref_payment": float(p.lp_pref_payment),
                "gp_catch_up": float(p.gp_catch_up),
                "lp_promote": float(p.lp_promote),
                "gp_promote": float(p.gp_promote),
                "provisional_irr": p.provisional_irr,
                "provisional_multiple": (
                    float(p.provisional_multiple) if p.provisional_multiple is not None else None
                ),
                "tier_hurdle": (
                    float(tier.hurdle) if tier is not None and tier.hurdle is not None
                    else (float("inf") if tier is not None else None)
                ),
                "tier_lp_split": float(tier.lp_split) if tier is not None else None,
                "tier_gp_split": float(tier.gp_split) if tier is not None else None,
                "in_catch_up": p.in_catch_up,
                "cumulative_lp": float(p.cumulative_lp),
                "cumulative_gp": float(p.cumulative_gp),
            })
        return pd.DataFrame(rows, columns=PERIOD_COLUMNS)

    def _compute_by_class(self, result: DistributionResult) -> pd.DataFrame:
        rows = []
        for p in result.periods:
            for code, allocation in (p.by_class or {}).items():
                rows.append({
                    "period": p.period,
                    "share_class_code": code,
                    "priority": allocation.priority,
                    "capital_return": float(allocation.capital_return),
                    "pref_return": float(allocation.pref_return),
                    "promote": float(allocation.promote),
                    "total": float(allocation.total),
                })
        df = pd.DataFrame(rows, columns=CLASS_COLUMNS)
        if not df.empty:
            df = df.sort_values(["period", "priority"]).reset_index(drop=True)
        return df

    def _compute_by_position(self, result: DistributionResult) -> pd.DataFrame:
        rows = []
        for p in result.periods:
            for position_id, amount in sorted((p.by_position or {}).items()):
                rows.append({
                    "period": p.period,
                    "position_id": position_id,
                    "amount": float(amount),
                })
        return pd.DataFrame(rows, columns=POSITION_COLUMNS)
