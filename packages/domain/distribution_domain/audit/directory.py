"""Read access to a deal's live roster and waterfall structure.

The snapshot service freezes whatever a DealDirectory reports. Applications
back it with their relational store; InMemoryDealDirectory serves tests and
scripts.
"""

from typing import Dict, List, Optional, Protocol

from ..schemas import CapitalProviderPosition, WaterfallStructure


class DealDirectory(Protocol):
    """Source of the current capital-provider roster and structure for a deal."""

    def list_active_positions(self, deal_id: str) -> List[CapitalProviderPosition]:
        ...

    def get_waterfall_structure(self, deal_id: str) -> Optional[WaterfallStructure]:
        ...


class InMemoryDealDirectory:
    """DealDirectory held in dictionaries.

    Example:
        directory = InMemoryDealDirectory()
        directory.add_position("deal_1", CapitalProviderPosition(id="lp1", committed_capital=1_000_000))
        directory.set_waterfall_structure("deal_1", structure)
    """

    def __init__(self) -> None:
        self._positions: Dict[str, Dict[str, CapitalProviderPosition]] = {}
        self._structures: Dict[str, WaterfallStructure] = {}

    def add_position(self, deal_id: str, position: CapitalProviderPosition) -> None:
        """Add or replace a position (keyed by position id)."""
        self._positions.setdefault(deal_id, {})[position.id] = position

    def set_waterfall_structure(self, deal_id: str, structure: Optional[WaterfallStructure]) -> None:
        if structure is None:
            self._structures.pop(deal_id, None)
        else:
            self._structures[deal_id] = structure

    def list_active_positions(self, deal_id: str) -> List[CapitalProviderPosition]:
        positions = self._positions.get(deal_id, {}).values()
        return [p.model_copy(deep=True) for p in positions if p.status == "ACTIVE"]

    def get_waterfall_structure(self, deal_id: str) -> Optional[WaterfallStructure]:
        structure = self._structures.get(deal_id)
        return structure.model_copy(deep=True) if structure is not None else None
