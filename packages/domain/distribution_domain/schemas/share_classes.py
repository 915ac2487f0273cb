"""Share classes and their economic terms.

A share class groups LP positions that share a payment priority and economic
terms. In a per-class waterfall, senior classes (lower priority number) are
fully served in each phase before any junior class receives cash.
"""

from typing import Optional
from decimal import Decimal
from pydantic import Field

from .base import DomainModel, ShareClassCode, Rate, Percentage


# Positions without a share class are paid after every classified position.
UNCLASSIFIED_PRIORITY = 999
UNCLASSIFIED_CLASS_CODE = "NONE"


# =============================================================================
# Share Class
# =============================================================================

class ShareClass(DomainModel):
    """A cohort of LP positions sharing priority and economic terms.

    Priority:
        - 1 = paid first
        - Higher numbers are paid after lower numbers
        - Positions with no class use the sentinel (priority 999)

    Preferred return:
        - None = fall back to the deal-level preferred return
        - Decimal("0") = explicit zero pref (NOT the same as None)

    Example:
        Preferred class paid first with a 10% pref:
            ShareClass(code="P", name="Preferred", priority=1,
                       preferred_return=Decimal("0.10"))

        Common LP class using the deal rate:
            ShareClass(code="A", name="Class A", priority=2)
    """

    id: Optional[str] = Field(
        default=None,
        description="Storage identifier of the class (None for the unclassified sentinel)"
    )

    code: ShareClassCode

    name: str = Field(
        default="",
        description="Human-readable name (e.g., 'Class A')"
    )

    priority: int = Field(
        default=UNCLASSIFIED_PRIORITY,
        ge=0,
        description="Payment priority (lower = paid first)"
    )

    preferred_return: Optional[Rate] = Field(
        default=None,
        description="Class preferred return override. None = use deal-level rate; 0 is a valid override"
    )

    management_fee: Optional[Percentage] = Field(
        default=None,
        description="Annual management fee rate (carried for reporting; not applied by the waterfall)"
    )

    carry_percent: Optional[Percentage] = Field(
        default=None,
        description="Class carry percentage (carried for reporting; not applied by the waterfall)"
    )

    @property
    def is_unclassified(self) -> bool:
        return self.code == UNCLASSIFIED_CLASS_CODE


def unclassified_share_class() -> ShareClass:
    """Return the sentinel class used for positions without a share class."""
    return ShareClass(
        id=None,
        code=UNCLASSIFIED_CLASS_CODE,
        name="No Class",
        priority=UNCLASSIFIED_PRIORITY,
        preferred_return=None,
    )


UNCLASSIFIED_SHARE_CLASS = unclassified_share_class()
