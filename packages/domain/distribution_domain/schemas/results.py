"""Distribution result models.

A DistributionResult is what the waterfall engines return: one
PeriodDistribution per cash-flow period plus a deal-level summary. Per-class
runs add class and position breakdowns.

Invariant (without lookback):
    summary.lp_total_return + summary.gp_total_return == sum(cash flows)
    (negative periods distribute nothing)
"""

from typing import Dict, List, Literal, Optional
from decimal import Decimal
from pydantic import Field

from .base import DomainModel, MoneyAmount, Rate
from .structure import WaterfallStructure, PromoteTier


# =============================================================================
# Per-Period Models
# =============================================================================

class ClassPeriodAllocation(DomainModel):
    """What one share class received in one period."""

    priority: int
    capital_return: MoneyAmount = Decimal("0")
    pref_return: MoneyAmount = Decimal("0")
    promote: MoneyAmount = Decimal("0")
    total: MoneyAmount = Decimal("0")


class PeriodDistribution(DomainModel):
    """Breakdown of one period's cash through the waterfall phases.

    Per-phase amounts are for this period only; the *_returned / *_paid /
    cumulative_* fields are running totals at period end.
    """

    period: int = Field(ge=1, description="1-based period number")
    cash_flow: Decimal = Field(description="Cash available this period")

    lp_share: MoneyAmount
    gp_share: MoneyAmount

    # This period's phase amounts
    lp_capital_return: MoneyAmount = Decimal("0")
    gp_capital_return: MoneyAmount = Decimal("0")
    lp_pref_payment: MoneyAmount = Decimal("0")
    gp_catch_up: MoneyAmount = Decimal("0")
    lp_promote: MoneyAmount = Decimal("0")
    gp_promote: MoneyAmount = Decimal("0")

    # Promote tier chosen this period (None when no promote-phase cash).
    # provisional_multiple is set instead of provisional_irr for equity-multiple hurdles.
    provisional_irr: Optional[float] = None
    provisional_multiple: Optional[Decimal] = None
    applied_tier: Optional[PromoteTier] = None

    # Running totals
    lp_capital_returned: MoneyAmount
    gp_capital_returned: MoneyAmount
    lp_pref_accrued: MoneyAmount
    lp_pref_paid: MoneyAmount
    gp_catch_up_paid: MoneyAmount
    in_catch_up: bool = False
    cumulative_lp: MoneyAmount
    cumulative_gp: MoneyAmount

    # Per-class runs only
    by_class: Optional[Dict[str, ClassPeriodAllocation]] = None
    by_position: Optional[Dict[str, Decimal]] = None


# =============================================================================
# Summary Models
# =============================================================================

class LookbackAdjustment(DomainModel):
    """End-of-series clawback from GP promote to cover an LP pref shortfall."""

    lp_shortfall: MoneyAmount
    clawback_from_gp: MoneyAmount
    adjusted_lp_return: MoneyAmount
    adjusted_gp_return: MoneyAmount


class DistributionSummary(DomainModel):
    """Deal-level totals and return metrics (unadjusted for lookback)."""

    lp_irr: Optional[float] = None
    gp_irr: Optional[float] = None
    lp_equity_multiple: Decimal
    gp_equity_multiple: Decimal
    lp_total_return: MoneyAmount
    gp_total_return: MoneyAmount
    total_promote: MoneyAmount
    lp_capital_returned: MoneyAmount
    gp_capital_returned: MoneyAmount
    lp_pref_paid: MoneyAmount
    gp_catch_up_paid: MoneyAmount
    total_distributed: MoneyAmount


class ClassSummary(DomainModel):
    """Lifetime totals for one share class in a per-class run."""

    code: str
    name: str
    priority: int
    capital: MoneyAmount
    effective_pref: Rate
    capital_returned: MoneyAmount
    pref_paid: MoneyAmount
    total_distributed: MoneyAmount
    equity_multiple: Decimal


class ClassTerms(DomainModel):
    """Terms actually applied to a class (effective pref after fallback)."""

    preferred_return: Rate
    priority: int


class AppliedTerms(DomainModel):
    """The structure the engine actually ran with.

    promote_tiers are the resolved tiers (sorted, or the default terminal
    tier when the input tiers were malformed). effective_lp_capital is the
    LP capital used for IRR and multiples.
    """

    structure: WaterfallStructure
    effective_lp_capital: MoneyAmount
    promote_tiers: List[PromoteTier]
    tier_fallback_applied: bool = False
    per_class_terms: Optional[Dict[str, ClassTerms]] = None


# =============================================================================
# Distribution Result
# =============================================================================

class DistributionResult(DomainModel):
    """Output of a waterfall calculation."""

    mode: Literal["standard", "per_class"]
    periods: List[PeriodDistribution]
    summary: DistributionSummary
    terms: AppliedTerms
    by_class: Optional[Dict[str, ClassSummary]] = None
    by_position: Optional[Dict[str, Decimal]] = None
    lookback_adjustment: Optional[LookbackAdjustment] = None

    @property
    def total_cash_flow(self) -> Decimal:
        return sum((p.cash_flow for p in self.periods), Decimal("0"))

    @property
    def final_lp_return(self) -> Decimal:
        """LP total after any lookback clawback."""
        if self.lookback_adjustment is not None:
            return self.lookback_adjustment.adjusted_lp_return
        return self.summary.lp_total_return

    @property
    def final_gp_return(self) -> Decimal:
        """GP total after any lookback clawback."""
        if self.lookback_adjustment is not None:
            return self.lookback_adjustment.adjusted_gp_return
        return self.summary.gp_total_return
