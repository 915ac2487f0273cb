"""Waterfall structure models.

A waterfall structure is the contractual rulebook for splitting distributed
cash between LPs and the GP:

1. Return of capital
2. Preferred return (simple accrual on unreturned LP capital)
3. GP catch-up (optional)
4. Promote tiers, selected by LP IRR (or equity multiple) hurdles

This module also carries the industry-standard templates used to seed a new
deal's structure.
"""

import json
import math
from typing import Dict, List, Literal, Optional
from decimal import Decimal
from pydantic import Field, field_validator

from .base import DomainModel, MoneyAmount, Rate, Percentage


HurdleType = Literal["irr", "equity_multiple"]


# =============================================================================
# Promote Tier
# =============================================================================

class PromoteTier(DomainModel):
    """One promote tier: the LP/GP split applied while the hurdle is not exceeded.

    Hurdle:
        - Decimal IRR (0.12 = 12%) or equity multiple (1.5 = 1.5x)
        - None = unbounded (the terminal tier catching all remaining ranges).
          float("inf"), "inf" and "Infinity" are accepted and stored as None.

    Splits:
        lp_split + gp_split should equal 1. The model does not reject a tier
        whose splits don't sum to 1; tier resolution decides whether such a
        structure falls back to the default terminal tier or fails.

    Example:
        Up to 12% IRR, 80/20:
            PromoteTier(hurdle=Decimal("0.12"), lp_split=Decimal("0.80"), gp_split=Decimal("0.20"))
    """

    hurdle: Optional[Decimal] = Field(
        default=None,
        description="Upper bound of this tier (IRR or equity multiple). None = unbounded"
    )

    lp_split: Percentage = Field(
        description="Fraction of promote-phase cash paid to LPs"
    )

    gp_split: Percentage = Field(
        description="Fraction of promote-phase cash paid to the GP"
    )

    description: Optional[str] = Field(
        default=None,
        description="Human-readable label (e.g., '1.25x to 1.5x')"
    )

    @field_validator("hurdle", mode="before")
    @classmethod
    def normalize_unbounded_hurdle(cls, value):
        """Map the various spellings of an infinite hurdle to None."""
        if value is None:
            return None
        if isinstance(value, str) and value.strip().lower() in ("inf", "+inf", "infinity", "+infinity"):
            return None
        if isinstance(value, float) and math.isinf(value) and value > 0:
            return None
        if isinstance(value, Decimal) and value.is_infinite() and value > 0:
            return None
        return value

    @property
    def is_unbounded(self) -> bool:
        return self.hurdle is None

    @property
    def splits_sum_to_one(self) -> bool:
        return abs((self.lp_split + self.gp_split) - Decimal("1")) <= Decimal("1e-9")


# =============================================================================
# Waterfall Structure
# =============================================================================

class WaterfallStructure(DomainModel):
    """Deal-level waterfall rulebook.

    Capital:
        lp_capital must be > 0 for a calculation (the engines check this and
        report the failed precondition). The schema accepts 0 so that template
        defaults and frozen historical structures can still be loaded.

    Example (value-add deal, 8% pref, full catch-up):
        WaterfallStructure(
            lp_capital=Decimal("9000000"),
            gp_capital=Decimal("1000000"),
            preferred_return_rate=Decimal("0.08"),
            promote_tiers=[
                PromoteTier(hurdle=Decimal("0.12"), lp_split=Decimal("0.80"), gp_split=Decimal("0.20")),
                PromoteTier(hurdle=None, lp_split=Decimal("0.70"), gp_split=Decimal("0.30")),
            ],
            gp_catch_up_enabled=True,
        )
    """

    lp_capital: MoneyAmount = Field(
        description="Total LP capital invested"
    )

    gp_capital: MoneyAmount = Field(
        default=Decimal("0"),
        description="GP co-invest"
    )

    preferred_return_rate: Rate = Field(
        default=Decimal("0"),
        description="Deal-level preferred return per period (e.g., 0.08 for 8%)"
    )

    promote_tiers: List[PromoteTier] = Field(
        default_factory=list,
        description="Promote tiers, ascending by hurdle; last tier is the catch-all"
    )

    gp_catch_up_enabled: bool = Field(
        default=False,
        description="Whether the GP catches up after the preferred return is paid"
    )

    catch_up_rate: Percentage = Field(
        default=Decimal("1.0"),
        description="Fraction of the catch-up shortfall paid per period (1.0 = 100% to GP)"
    )

    lookback_enabled: bool = Field(
        default=False,
        description="Apply the end-of-series LP shortfall clawback"
    )

    hurdle_type: HurdleType = Field(
        default="irr",
        description="Whether tier hurdles are LP IRRs or LP equity multiples"
    )

    @field_validator("promote_tiers", mode="before")
    @classmethod
    def parse_json_tiers(cls, value):
        """Accept promote tiers stored as a JSON string."""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"promote_tiers is not valid JSON: {exc.msg}") from exc
        return value

    @property
    def total_equity(self) -> Decimal:
        return self.lp_capital + self.gp_capital

    @property
    def lp_ownership(self) -> Decimal:
        """LP share of total equity (1 when there is no equity at all)."""
        if self.total_equity <= 0:
            return Decimal("1")
        return self.lp_capital / self.total_equity

    @classmethod
    def from_template(
        cls,
        template_key: str,
        lp_capital: Decimal,
        gp_capital: Decimal = Decimal("0"),
    ) -> "WaterfallStructure":
        """Build a structure from one of WATERFALL_TEMPLATES.

        Raises:
            KeyError: If the template key is unknown
        """
        if template_key not in WATERFALL_TEMPLATES:
            raise KeyError(
                f"Unknown waterfall template '{template_key}'. "
                f"Available: {sorted(WATERFALL_TEMPLATES)}"
            )
        template = WATERFALL_TEMPLATES[template_key]
        return cls(
            lp_capital=lp_capital,
            gp_capital=gp_capital,
            preferred_return_rate=template.preferred_return_rate,
            promote_tiers=[tier.model_copy() for tier in template.promote_tiers],
            gp_catch_up_enabled=template.gp_catch_up_enabled,
            catch_up_rate=template.catch_up_rate,
            hurdle_type=template.hurdle_type,
        )


# =============================================================================
# Defaults and Templates
# =============================================================================

DEFAULT_TERMINAL_TIER = PromoteTier(
    hurdle=None,
    lp_split=Decimal("0.80"),
    gp_split=Decimal("0.20"),
    description="Default terminal tier",
)

DEFAULT_PROMOTE_TIERS: List[PromoteTier] = [
    PromoteTier(hurdle=Decimal("0.12"), lp_split=Decimal("0.80"), gp_split=Decimal("0.20")),
    PromoteTier(hurdle=Decimal("0.15"), lp_split=Decimal("0.70"), gp_split=Decimal("0.30")),
    PromoteTier(hurdle=Decimal("0.20"), lp_split=Decimal("0.60"), gp_split=Decimal("0.40")),
    PromoteTier(hurdle=None, lp_split=Decimal("0.50"), gp_split=Decimal("0.50")),
]

DEFAULT_PREFERRED_RETURN = Decimal("0.08")


class WaterfallTemplate(DomainModel):
    """Industry-standard waterfall terms by strategy type."""

    name: str
    description: str
    preferred_return_rate: Rate
    gp_catch_up_enabled: bool
    catch_up_rate: Percentage
    promote_tiers: List[PromoteTier]
    hurdle_type: HurdleType = "irr"
    typical_gp_co_invest: Percentage = Decimal("0.05")
    target_returns: Dict[str, str] = Field(default_factory=dict)


def _tier(hurdle: Optional[str], lp: str, gp: str, description: Optional[str] = None) -> PromoteTier:
    return PromoteTier(
        hurdle=Decimal(hurdle) if hurdle is not None else None,
        lp_split=Decimal(lp),
        gp_split=Decimal(gp),
        description=description,
    )


WATERFALL_TEMPLATES: Dict[str, WaterfallTemplate] = {
    # Stabilized, low-risk assets
    "CORE": WaterfallTemplate(
        name="Core",
        description="6% pref, minimal promote - for stabilized, low-risk assets",
        preferred_return_rate=Decimal("0.06"),
        gp_catch_up_enabled=False,
        catch_up_rate=Decimal("0"),
        promote_tiers=[
            _tier("0.06", "0.95", "0.05"),
            _tier("0.08", "0.90", "0.10"),
            _tier(None, "0.85", "0.15"),
        ],
        typical_gp_co_invest=Decimal("0.05"),
        target_returns={"irr": "6-8%", "equity": "1.2-1.4x"},
    ),
    "CORE_PLUS": WaterfallTemplate(
        name="Core Plus",
        description="7% pref, moderate promote - for stable assets with upside",
        preferred_return_rate=Decimal("0.07"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("0.5"),
        promote_tiers=[
            _tier("0.10", "0.85", "0.15"),
            _tier("0.12", "0.80", "0.20"),
            _tier(None, "0.75", "0.25"),
        ],
        typical_gp_co_invest=Decimal("0.05"),
        target_returns={"irr": "9-12%", "equity": "1.3-1.5x"},
    ),
    "VALUE_ADD": WaterfallTemplate(
        name="Value Add",
        description="8% pref, standard 80/20 promote - for repositioning opportunities",
        preferred_return_rate=Decimal("0.08"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("1.0"),
        promote_tiers=[
            _tier("0.12", "0.80", "0.20"),
            _tier("0.15", "0.70", "0.30"),
            _tier("0.18", "0.65", "0.35"),
            _tier(None, "0.50", "0.50"),
        ],
        typical_gp_co_invest=Decimal("0.10"),
        target_returns={"irr": "13-18%", "equity": "1.5-2.0x"},
    ),
    "OPPORTUNISTIC": WaterfallTemplate(
        name="Opportunistic",
        description="10% pref, aggressive promote - for development and distressed",
        preferred_return_rate=Decimal("0.10"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("1.0"),
        promote_tiers=[
            _tier("0.15", "0.80", "0.20"),
            _tier("0.20", "0.70", "0.30"),
            _tier("0.25", "0.60", "0.40"),
            _tier(None, "0.50", "0.50"),
        ],
        typical_gp_co_invest=Decimal("0.10"),
        target_returns={"irr": "18-25%+", "equity": "2.0x+"},
    ),
    # Common for development deals
    "EQUITY_MULTIPLE": WaterfallTemplate(
        name="Equity Multiple Based",
        description="Hurdles based on equity multiples instead of IRR",
        preferred_return_rate=Decimal("0.08"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("1.0"),
        hurdle_type="equity_multiple",
        promote_tiers=[
            _tier("1.25", "0.90", "0.10", "Up to 1.25x"),
            _tier("1.50", "0.80", "0.20", "1.25x to 1.5x"),
            _tier("2.00", "0.70", "0.30", "1.5x to 2.0x"),
            _tier("2.50", "0.60", "0.40", "2.0x to 2.5x"),
            _tier(None, "0.50", "0.50", "Above 2.5x"),
        ],
        typical_gp_co_invest=Decimal("0.10"),
        target_returns={"equity": "1.7-2.5x"},
    ),
    "FAMILY_OFFICE": WaterfallTemplate(
        name="Family Office / HNW",
        description="Simpler 8% pref, single promote tier",
        preferred_return_rate=Decimal("0.08"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("1.0"),
        promote_tiers=[
            _tier(None, "0.70", "0.30"),
        ],
        typical_gp_co_invest=Decimal("0.10"),
        target_returns={"irr": "12-16%", "equity": "1.5-1.8x"},
    ),
    "JOINT_VENTURE": WaterfallTemplate(
        name="Joint Venture (with Operator)",
        description="Partnership JV - promote to operating partner",
        preferred_return_rate=Decimal("0.08"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("1.0"),
        promote_tiers=[
            _tier("0.08", "0.90", "0.10"),
            _tier("0.12", "0.80", "0.20"),
            _tier("0.15", "0.70", "0.30"),
            _tier(None, "0.60", "0.40"),
        ],
        typical_gp_co_invest=Decimal("0.05"),
        target_returns={"irr": "12-18%", "equity": "1.6-2.2x"},
    ),
    "INSTITUTIONAL": WaterfallTemplate(
        name="Institutional Platform",
        description="Large institutional LP terms - lower promotes",
        preferred_return_rate=Decimal("0.07"),
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("0.5"),
        promote_tiers=[
            _tier("0.10", "0.88", "0.12"),
            _tier("0.13", "0.82", "0.18"),
            _tier("0.16", "0.78", "0.22"),
            _tier(None, "0.75", "0.25"),
        ],
        typical_gp_co_invest=Decimal("0.02"),
        target_returns={"irr": "10-14%", "equity": "1.4-1.7x"},
    ),
}


def create_default_structure(
    total_equity: Decimal,
    gp_co_invest_pct: Decimal = Decimal("0.10"),
) -> WaterfallStructure:
    """Create the default structure for a deal of the given total equity.

    Args:
        total_equity: Total equity investment (LP + GP)
        gp_co_invest_pct: GP share of total equity (0.10 = 10%)

    Returns:
        Structure with an 8% pref, full catch-up and the default promote tiers
    """
    gp_capital = Decimal(total_equity) * Decimal(gp_co_invest_pct)
    return WaterfallStructure(
        lp_capital=Decimal(total_equity) - gp_capital,
        gp_capital=gp_capital,
        preferred_return_rate=DEFAULT_PREFERRED_RETURN,
        promote_tiers=[tier.model_copy() for tier in DEFAULT_PROMOTE_TIERS],
        gp_catch_up_enabled=True,
        catch_up_rate=Decimal("1.0"),
        lookback_enabled=False,
    )
