"""Share-class grouping and within-class allocation.

Positions are grouped by their share class priority. Positions without a
class land in the NONE group (priority 999) and are paid last. Inside a
class, cash is split pro-rata by ownership weight and rounded down to the
currency quantum; the residual goes to the largest share so the class total
is preserved exactly and no share goes negative.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Iterable, List, Optional, Sequence

from ..schemas import CapitalProviderPosition, ShareClass

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


# =============================================================================
# Class Groups
# =============================================================================

@dataclass(frozen=True)
class ClassGroup:
    """Positions sharing one payment priority.

    total_capital is the sum of committed capital; total_ownership is the sum
    of ownership weights (used for within-class and promote splits).
    """

    share_class: ShareClass
    positions: List[CapitalProviderPosition] = field(default_factory=list)
    total_capital: Decimal = ZERO
    total_ownership: Decimal = ZERO

    @property
    def priority(self) -> int:
        return self.share_class.priority

    @property
    def code(self) -> str:
        return self.share_class.code


def group_positions_by_class_priority(
    positions: Iterable[CapitalProviderPosition],
) -> Dict[int, ClassGroup]:
    """Group positions by share class priority.

    The first class seen at a priority names the group. Positions inside a
    group are ordered by id so allocations are deterministic.

    Returns:
        Dict mapping priority -> ClassGroup
    """
    classes: Dict[int, ShareClass] = {}
    members: Dict[int, List[CapitalProviderPosition]] = {}

    for position in positions:
        share_class = position.effective_share_class
        classes.setdefault(share_class.priority, share_class)
        members.setdefault(share_class.priority, []).append(position)

    groups: Dict[int, ClassGroup] = {}
    for priority, group_positions in members.items():
        ordered = sorted(group_positions, key=lambda p: p.id)
        groups[priority] = ClassGroup(
            share_class=classes[priority],
            positions=ordered,
            total_capital=sum((p.committed_capital for p in ordered), ZERO),
            total_ownership=sum((p.ownership_pct for p in ordered), ZERO),
        )
    return groups


def sorted_class_priorities(groups: Dict[int, ClassGroup]) -> List[int]:
    """Priorities in payment order (lowest number first)."""
    return sorted(groups.keys())


# =============================================================================
# Preferred Return
# =============================================================================

def effective_preferred_return(share_class: Optional[ShareClass], deal_rate: Decimal) -> Decimal:
    """Class pref if explicitly set (zero included), otherwise the deal rate."""
    if share_class is not None and share_class.preferred_return is not None:
        return share_class.preferred_return
    return deal_rate


def calculate_class_preferred(
    share_class: Optional[ShareClass],
    capital_contributed: Decimal,
    capital_returned: Decimal,
    year_count: Decimal,
    pref_already_paid: Decimal,
    deal_rate: Decimal,
) -> Dict[str, Decimal]:
    """Preferred return owed to a class on its unreturned capital.

    Simple (non-compounding) accrual over year_count periods.

    Returns:
        {"rate", "unreturned_capital", "accrued", "already_paid", "owed"}
    """
    rate = effective_preferred_return(share_class, deal_rate)
    unreturned = max(ZERO, capital_contributed - capital_returned)
    accrued = unreturned * rate * year_count
    owed = max(ZERO, accrued - pref_already_paid)
    return {
        "rate": rate,
        "unreturned_capital": unreturned,
        "accrued": accrued,
        "already_paid": pref_already_paid,
        "owed": owed,
    }


# =============================================================================
# Within-Class Allocation
# =============================================================================

def allocate_within_class(
    positions: Sequence[CapitalProviderPosition],
    amount: Decimal,
    total_ownership: Decimal,
    quantum: Decimal = CENT,
) -> Dict[str, Decimal]:
    """Split a class amount across its positions.

    Pro-rata by ownership weight, or evenly when the class has no ownership
    recorded. Each share is rounded down to the quantum and the residual goes to
    the largest share (lowest id on ties), so the shares sum to amount exactly.

    Example:
        Three equal holders splitting 100.00:
            {"lp1": 33.34, "lp2": 33.33, "lp3": 33.33}
    """
    if not positions:
        return {}

    ordered = sorted(positions, key=lambda p: p.id)
    if amount <= 0:
        return {p.id: ZERO for p in ordered}

    count = Decimal(len(ordered))
    raw: Dict[str, Decimal] = {}
    for position in ordered:
        if total_ownership > 0:
            raw[position.id] = amount * position.ownership_pct / total_ownership
        else:
            raw[position.id] = amount / count

    shares = {pid: value.quantize(quantum, rounding=ROUND_DOWN) for pid, value in raw.items()}
    residual = amount - sum(shares.values(), ZERO)

    if residual != 0:
        largest = ordered[0].id
        for position in ordered[1:]:
            if shares[position.id] > shares[largest]:
                largest = position.id
        shares[largest] += residual
        logger.debug("Assigned rounding residual %s to position %s", residual, largest)

    return shares
