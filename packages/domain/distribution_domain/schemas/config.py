"""Calculation and storage configuration.

WaterfallCFG tunes the engines (tier selection, malformed-tier policy,
rounding, root finder). AuditStoreCFG points the snapshot service and the
audit log at their store. CashFlowScenario names a cash-flow series for
side-by-side comparison.
"""

from typing import List, Literal
from decimal import Decimal
from pydantic import Field, field_validator

from .base import DomainModel, SignedMoneyAmount


TierSelectionMode = Literal["single_pass", "fixed_point"]
TierPolicy = Literal["fallback", "strict"]


# =============================================================================
# Waterfall Configuration
# =============================================================================

class WaterfallCFG(DomainModel):
    """Configuration for the waterfall engines.

    Tier selection:
        - single_pass: estimate the period-end IRR once from a provisional
          allocation of the remaining cash, then pick the tier (default).
        - fixed_point: repeat tier -> allocation -> IRR until the tier stops
          changing (or fixed_point_max_iterations is reached).

    Tier policy (empty tier list or splits not summing to 1):
        - fallback: use the default 80/20 terminal tier and log a warning (default)
        - strict: raise InputValidationError

    Example:
        WaterfallCFG(tier_selection="fixed_point", tier_policy="strict")
    """

    tier_selection: TierSelectionMode = Field(
        default="single_pass",
        description="How the promote tier is chosen each period"
    )

    fixed_point_max_iterations: int = Field(
        default=10,
        ge=1,
        description="Iteration cap for fixed_point tier selection"
    )

    tier_policy: TierPolicy = Field(
        default="fallback",
        description="What to do with empty or malformed promote tiers"
    )

    currency_quantum: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Smallest currency unit used when rounding per-position allocations"
    )

    irr_guess: float = Field(
        default=0.1,
        description="Starting rate for the IRR solver"
    )

    irr_tolerance: float = Field(
        default=1e-4,
        gt=0,
        description="Convergence tolerance on the rate"
    )

    irr_max_iterations: int = Field(
        default=100,
        ge=1,
        description="Iteration cap for the IRR solver"
    )


# =============================================================================
# Audit Store Configuration
# =============================================================================

class AuditStoreCFG(DomainModel):
    """Configuration for the snapshot / event store.

    Example:
        AuditStoreCFG(locator="sqlite:///var/lib/deals/audit.sqlite")
    """

    locator: str = Field(
        description="SQLite file path or sqlite:/// URL"
    )

    max_append_retries: int = Field(
        default=3,
        ge=0,
        description="Retries when a concurrent writer claimed the same sequence number"
    )

    @field_validator("locator")
    @classmethod
    def validate_locator(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("locator must be non-empty")
        return text


# =============================================================================
# Cash Flow Scenario
# =============================================================================

class CashFlowScenario(DomainModel):
    """A named cash-flow series for scenario comparison.

    Example:
        CashFlowScenario(id="base", label="Base Case",
                         cash_flows=[500_000, 600_000, 12_000_000])
    """

    id: str = Field(
        description="Unique identifier for this scenario (e.g., 'base_case')"
    )

    label: str = Field(
        description="Human-readable label (e.g., 'Base Case')"
    )

    cash_flows: List[SignedMoneyAmount] = Field(
        min_length=1,
        description="Distributable cash per period (index 0 = first distribution period)"
    )
