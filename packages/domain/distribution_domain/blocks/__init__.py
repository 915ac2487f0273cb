"""Computation blocks for distribution analysis.

This package contains the computation layer that turns domain schemas into
DataFrames for reporting or other consumption.

Architecture:
    Schemas (data models) → Blocks (computation) → DataFrames (output)

Available blocks:
- RosterBlock: Positions to roster DataFrame and class groups
- WaterfallBlock: Runs the distribution waterfall over a cash-flow series
- ReturnsBlock: MOIC and IRR by position, by class and for the deal

Usage:
    from distribution_domain.blocks import BlockExecutor, BlockContext, RosterBlock, WaterfallBlock

    context = BlockContext()
    context.set("positions", positions)
    context.set("cash_flows", cash_flows)
    context.set("waterfall_structure", structure)

    BlockExecutor([RosterBlock(), WaterfallBlock(use_class_terms=True)]).execute(context)
    periods_df = context.get("waterfall_periods")
"""

from .base import Block, BlockExecutor, BlockContext, CircularDependencyError, topological_sort
from .roster import RosterBlock
from .waterfall import WaterfallBlock
from .returns import ReturnsBlock

__all__ = [
    "Block",
    "BlockExecutor",
    "BlockContext",
    "CircularDependencyError",
    "topological_sort",
    "RosterBlock",
    "WaterfallBlock",
    "ReturnsBlock",
]
