"""Capital-provider positions.

A position is one LP's stake in a deal: its ownership percentage, committed
capital, and (optionally) the share class that decides its priority and terms.
Ownership percentages are only used for pro-rata splits inside a class; they
are never compared across classes.
"""

from typing import Literal, Optional
from decimal import Decimal
from pydantic import Field

from .base import DomainModel, PositionId, MoneyAmount, OwnershipWeight
from .share_classes import ShareClass, UNCLASSIFIED_SHARE_CLASS


# =============================================================================
# Position
# =============================================================================

class CapitalProviderPosition(DomainModel):
    """One LP's position in a deal.

    Examples:
        Classified position:
            id="lp_pension"
            ownership_pct=30
            committed_capital=3_000_000
            share_class=ShareClass(code="P", priority=1, preferred_return=0.10)

        Unclassified position (treated as the NONE class, paid last):
            id="lp_family_office"
            ownership_pct=10
            committed_capital=1_000_000
            share_class=None
    """

    id: PositionId = Field(
        description="Position identifier (the LP actor id)"
    )

    entity_name: Optional[str] = Field(
        default=None,
        description="Legal name of the LP entity"
    )

    ownership_pct: OwnershipWeight = Field(
        default=Decimal("0"),
        description="Ownership weight used for pro-rata splits within the position's class"
    )

    committed_capital: MoneyAmount = Field(
        default=Decimal("0"),
        description="Capital committed by this LP (drives class capital totals)"
    )

    capital_contributed: Optional[MoneyAmount] = Field(
        default=None,
        description="Capital actually contributed to date, if tracked separately from commitment"
    )

    status: Literal["ACTIVE", "INACTIVE"] = Field(
        default="ACTIVE",
        description="Only ACTIVE positions are frozen into snapshots"
    )

    share_class: Optional[ShareClass] = Field(
        default=None,
        description="Share class; None means unclassified (lowest priority)"
    )

    @property
    def effective_share_class(self) -> ShareClass:
        """Share class used by the waterfall (sentinel when unclassified)."""
        return self.share_class if self.share_class is not None else UNCLASSIFIED_SHARE_CLASS
