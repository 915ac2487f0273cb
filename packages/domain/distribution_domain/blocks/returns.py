"""Returns computation block.

Computes return metrics from waterfall distributions.

Metrics:
- MOIC (Multiple on Invested Capital): total_distribution / committed_capital
- IRR: periodic IRR of [-committed_capital, *period distributions]
"""

from typing import List
import pandas as pd

from .base import Block, BlockContext
from ..calculations import calculate_irr
from ..schemas import DistributionResult


BY_POSITION_COLUMNS = [
    "position_id",
    "share_class_code",
    "investment_amount",
    "total_distribution",
    "moic",
    "irr",
]

BY_CLASS_COLUMNS = [
    "share_class_code",
    "total_investment",
    "total_distribution",
    "aggregate_moic",
]


class ReturnsBlock(Block):
    """Computes return metrics by position, by class and for the deal.

    Inputs (from context):
        - distribution_result: DistributionResult (from WaterfallBlock)
        - waterfall_by_position: DataFrame (from WaterfallBlock)
        - roster_positions: DataFrame (from RosterBlock)

    Outputs (to context):
        - returns_by_position: DataFrame with columns:
            * position_id, share_class_code
            * investment_amount: Committed capital
            * total_distribution: Sum over all periods
            * moic: total_distribution / investment_amount (None without capital)
            * irr: Periodic IRR (None when undefined)

        - returns_by_class: DataFrame with columns:
            * share_class_code, total_investment, total_distribution, aggregate_moic

        - returns_summary: DataFrame with single row:
            * lp_total_return, gp_total_return, total_promote
            * lp_irr, gp_irr, lp_equity_multiple, gp_equity_multiple
            * final_lp_return, final_gp_return (after any lookback clawback)

    Example:
        executor = BlockExecutor([RosterBlock(), WaterfallBlock(use_class_terms=True), ReturnsBlock()])
        executor.execute(context)
        returns_df = context.get("returns_by_position")
    """

    def __init__(
        self,
        result_key: str = "distribution_result",
        by_position_key: str = "waterfall_by_position",
        roster_key: str = "roster_positions",
    ):
        """Initialize ReturnsBlock.

        Args:
            result_key: Context key for the DistributionResult
            by_position_key: Context key for waterfall_by_position DataFrame
            roster_key: Context key for roster_positions DataFrame
        """
        self.result_key = result_key
        self.by_position_key = by_position_key
        self.roster_key = roster_key

    def inputs(self) -> List[str]:
        return [self.result_key, self.by_position_key, self.roster_key]

    def outputs(self) -> List[str]:
        return [
            "returns_by_position",
            "returns_by_class",
            "returns_summary",
        ]

    def execute(self, context: BlockContext) -> None:
        result: DistributionResult = context.get(self.result_key)
        by_position_df: pd.DataFrame = context.get(self.by_position_key)
        roster_df: pd.DataFrame = context.get(self.roster_key)

        returns_df = self._compute_by_position(by_position_df, roster_df, len(result.periods))
        context.set("returns_by_position", returns_df)
        context.set("returns_by_class", self._compute_by_class(returns_df))
        context.set("returns_summary", self._compute_summary(result))

    def _compute_by_position(
        self,
        by_position_df: pd.DataFrame,
        roster_df: pd.DataFrame,
        period_count: int,
    ) -> pd.DataFrame:
        if by_position_df.empty or roster_df.empty:
            return pd.DataFrame(columns=BY_POSITION_COLUMNS)

        # period x position matrix, zero where a position got nothing
        matrix = (
            by_position_df.pivot_table(index="period", columns="position_id", values="amount", aggfunc="sum")
            .reindex(range(1, period_count + 1))
            .fillna(0.0)
        )

        rows = []
        for _, row in roster_df.iterrows():
            position_id = row["position_id"]
            investment = float(row["committed_capital"])
            flows = matrix[position_id].tolist() if position_id in matrix.columns else [0.0] * period_count
            total = float(sum(flows))
            rows.append({
                "position_id": position_id,
                "share_class_code": row["share_class_code"],
                "investment_amount": investment,
                "total_distribution": total,
                "moic": total / investment if investment > 0 else None,
                "irr": calculate_irr([-investment, *flows]) if investment > 0 else None,
            })

        return pd.DataFrame(rows, columns=BY_POSITION_COLUMNS)

    def _compute_by_class(self, returns_df: pd.DataFrame) -> pd.DataFrame:
        if returns_df.empty:
            return pd.DataFrame(columns=BY_CLASS_COLUMNS)

        by_class = returns_df.groupby("share_class_code").agg({
            "investment_amount": "sum",
            "total_distribution": "sum",
        }).reset_index()

        by_class = by_class.rename(columns={
            "investment_amount": "total_investment",
        })

        by_class["aggregate_moic"] = by_class.apply(
            lambda row: (
                row["total_distribution"] / row["total_investment"]
                if row["total_investment"] > 0
                else None
            ),
            axis=1,
        )

        return by_class.sort_values("total_distribution", ascending=False).reset_index(drop=True)

    def _compute_summary(self, result: DistributionResult) -> pd.DataFrame:
        summary = result.summary
        return pd.DataFrame([{
            "lp_total_return": float(summary.lp_total_return),
            "gp_total_return": float(summary.gp_total_return),
            "total_promote": float(summary.total_promote),
            "lp_irr": summary.lp_irr,
            "gp_irr": summary.gp_irr,
            "lp_equity_multiple": float(summary.lp_equity_multiple),
            "gp_equity_multiple": float(summary.gp_equity_multiple),
            "final_lp_return": float(result.final_lp_return),
            "final_gp_return": float(result.final_gp_return),
        }])
