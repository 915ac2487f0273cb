"""Roster computation block.

Turns a list of capital-provider positions into a roster DataFrame and the
class groups the per-class waterfall consumes.
"""

from typing import List
import pandas as pd

from .base import Block, BlockContext
from ..calculations import group_positions_by_class_priority
from ..schemas import CapitalProviderPosition


ROSTER_COLUMNS = [
    "position_id",
    "entity_name",
    "share_class_code",
    "share_class_name",
    "priority",
    "ownership_pct",
    "committed_capital",
    "class_ownership_pct",
]


class RosterBlock(Block):
    """Builds the roster view of a deal's positions.

    Inputs (from context):
        - positions: List[CapitalProviderPosition] (ACTIVE positions only are used)

    Outputs (to context):
        - roster_positions: DataFrame with columns:
            * position_id, entity_name
            * share_class_code, share_class_name, priority (NONE / 999 when unclassified)
            * ownership_pct: Ownership weight as recorded
            * committed_capital: Capital committed
            * class_ownership_pct: Share of the class's total ownership (0..1)
          ordered by priority, then position id

        - class_groups: Dict[int, ClassGroup] keyed by priority

    Example:
        context = BlockContext()
        context.set("positions", positions)

        RosterBlock().execute(context)
        context.get("roster_positions")
    """

    def __init__(self, positions_key: str = "positions"):
        """Initialize RosterBlock.

        Args:
            positions_key: Context key for the position list
        """
        self.positions_key = positions_key

    def inputs(self) -> List[str]:
        return [self.positions_key]

    def outputs(self) -> List[str]:
        return ["roster_positions", "class_groups"]

    def execute(self, context: BlockContext) -> None:
        positions: List[CapitalProviderPosition] = [
            p for p in context.get(self.positions_key) if p.status == "ACTIVE"
        ]
        class_groups = group_positions_by_class_priority(positions)

        rows = []
        for priority in sorted(class_groups):
            group = class_groups[priority]
            for position in group.positions:
                class_share = (
                    float(position.ownership_pct / group.total_ownership)
                    if group.total_ownership > 0
                    else 1.0 / len(group.positions)
                )
                rows.append({
                    "position_id": position.id,
                    "entity_name": position.entity_name or position.id,
                    "share_class_code": group.code,
                    "share_class_name": group.share_class.name,
                    "priority": priority,
                    "ownership_pct": float(position.ownership_pct),
                    "committed_capital": float(position.committed_capital),
                    "class_ownership_pct": class_share,
                })

        context.set("roster_positions", pd.DataFrame(rows, columns=ROSTER_COLUMNS))
        context.set("class_groups", class_groups)
