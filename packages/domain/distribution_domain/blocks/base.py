"""Base classes for computation blocks.

A block reads named inputs from a BlockContext and writes named outputs
(mostly pandas DataFrames) back to it. The distribution pipeline is three
blocks:

    RosterBlock      positions -> roster_positions, class_groups
    WaterfallBlock   cash_flows, waterfall_structure, class_groups -> distribution_result, waterfall_*
    ReturnsBlock     distribution_result, waterfall_by_position, roster_positions -> returns_*

BlockExecutor orders blocks by their declared keys (Kahn's algorithm) and
checks both sides of every block as it runs.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..errors import DistributionError


# =============================================================================
# Block Context
# =============================================================================

@dataclass
class BlockContext:
    """Key/value store shared by the blocks of one run.

    Example:
        context = BlockContext()
        context.set("positions", positions)
        context.set("cash_flows", [500_000, 12_000_000])

        RosterBlock().execute(context)
        roster_df = context.get("roster_positions")
    """

    _data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        """Raises KeyError (listing available keys) when key is missing."""
        try:
            return self._data[key]
        except KeyError:
            raise KeyError(f"Key '{key}' not found in context. Available keys: {self.keys()}") from None

    def get_optional(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return list(self._data)

    def missing(self, keys: Iterable[str]) -> List[str]:
        """Keys from `keys` that have not been written yet, in order."""
        return [key for key in keys if key not in self._data]


# =============================================================================
# Block Base Class
# =============================================================================

class Block(ABC):
    """A computation unit with declared inputs and outputs.

    Keys listed by inputs() that no other block produces (positions,
    cash_flows, waterfall_structure) must be set on the context up front.

    Subclass example:
        class RosterBlock(Block):
            def inputs(self) -> List[str]:
                return ["positions"]

            def outputs(self) -> List[str]:
                return ["roster_positions", "class_groups"]

            def execute(self, context: BlockContext) -> None:
                positions = context.get("positions")
                context.set("roster_positions", to_frame(positions))
                context.set("class_groups", group_positions_by_class_priority(positions))
    """

    @abstractmethod
    def inputs(self) -> List[str]:
        """Context keys this block reads."""

    @abstractmethod
    def outputs(self) -> List[str]:
        """Context keys this block writes."""

    @abstractmethod
    def execute(self, context: BlockContext) -> None:
        """Read inputs from context, compute, write outputs to context."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(inputs={self.inputs()}, outputs={self.outputs()})"


# =============================================================================
# Dependency Resolution
# =============================================================================

class CircularDependencyError(DistributionError):
    """Blocks feed each other's inputs in a cycle."""


def _producers(blocks: List[Block]) -> Dict[str, Block]:
    producers: Dict[str, Block] = {}
    for block in blocks:
        for key in block.outputs():
            existing = producers.get(key)
            if existing is not None:
                raise ValueError(f"Multiple blocks produce '{key}': {existing} and {block}")
            producers[key] = block
    return producers


def topological_sort(blocks: List[Block]) -> List[Block]:
    """Order blocks so every producer runs before its consumers.

    Blocks with no pending producers keep their given order.

    Raises:
        ValueError: Two blocks declare the same output
        CircularDependencyError: The dependency graph has a cycle

    Example:
        RosterBlock: outputs ["class_groups"]
        WaterfallBlock: inputs ["class_groups"], outputs ["distribution_result"]
        ReturnsBlock: inputs ["distribution_result"]

        topological_sort([returns, waterfall, roster]) -> [roster, waterfall, returns]
    """
    producers = _producers(blocks)

    pending: Dict[Block, int] = {}
    consumers: Dict[Block, List[Block]] = {block: [] for block in blocks}
    for block in blocks:
        upstream = [producers[key] for key in block.inputs() if key in producers]
        pending[block] = len(upstream)
        for producer in upstream:
            consumers[producer].append(block)

    ready = deque(block for block in blocks if pending[block] == 0)
    ordered: List[Block] = []
    while ready:
        block = ready.popleft()
        ordered.append(block)
        for consumer in consumers[block]:
            pending[consumer] -= 1
            if pending[consumer] == 0:
                ready.append(consumer)

    if len(ordered) < len(blocks):
        stuck = [block for block in blocks if pending[block] > 0]
        raise CircularDependencyError(f"Circular dependency detected among blocks: {stuck}")
    return ordered


# =============================================================================
# Block Executor
# =============================================================================

class BlockExecutor:
    """Runs blocks in dependency order against one context.

    The order is resolved on the first execute() and reused afterwards, so
    one executor can run the same pipeline for several deals or scenarios.

    Example:
        executor = BlockExecutor([ReturnsBlock(), WaterfallBlock(), RosterBlock()])
        context = BlockContext()
        context.set("positions", positions)
        context.set("cash_flows", cash_flows)
        context.set("waterfall_structure", structure)

        executor.execute(context)
        context.get("returns_by_position")
    """

    def __init__(self, blocks: List[Block]):
        self.blocks = blocks
        self._order: Optional[List[Block]] = None

    @property
    def order(self) -> List[Block]:
        if self._order is None:
            self._order = topological_sort(self.blocks)
        return self._order

    def execute(self, context: BlockContext) -> BlockContext:
        """Execute all blocks in dependency order.

        Raises:
            CircularDependencyError: If blocks have circular dependencies
            KeyError: If a required input is not in context
            ValueError: If a block did not write a declared output
        """
        for block in self.order:
            absent = context.missing(block.inputs())
            if absent:
                raise KeyError(
                    f"Block {block} requires input '{absent[0]}' but it's not in context. "
                    f"Available keys: {context.keys()}"
                )

            block.execute(context)

            unwritten = context.missing(block.outputs())
            if unwritten:
                raise ValueError(
                    f"Block {block} declared output '{unwritten[0]}' but didn't write it to context"
                )
        return context
