"""Return metrics shared by the waterfall engines.

- lp_hurdle_metric: the LP return measure tiers are compared against
- summarize_distribution: deal-level totals, IRRs, multiples and promote
- calculate_lookback: end-of-series LP shortfall clawback
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence, Union

from ..schemas import (
    DistributionSummary,
    LookbackAdjustment,
    PeriodDistribution,
    WaterfallCFG,
)
from ..schemas.structure import HurdleType
from .irr import calculate_irr, equity_multiple

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def series_irr(capital: Decimal, flows: Sequence[Decimal], cfg: WaterfallCFG) -> Optional[float]:
    """IRR of [-capital, *flows] using the configured solver settings."""
    if capital <= 0:
        return None
    return calculate_irr(
        [-capital, *flows],
        guess=cfg.irr_guess,
        tolerance=cfg.irr_tolerance,
        max_iterations=cfg.irr_max_iterations,
    )


def lp_hurdle_metric(
    lp_flows: Sequence[Decimal],
    lp_capital: Decimal,
    hurdle_type: HurdleType,
    cfg: WaterfallCFG,
) -> Optional[Union[float, Decimal]]:
    """LP IRR (float) or LP equity multiple (Decimal) for tier selection."""
    if hurdle_type == "equity_multiple":
        return equity_multiple(sum(lp_flows, ZERO), lp_capital)
    return series_irr(lp_capital, lp_flows, cfg)


def summarize_distribution(
    periods: Sequence[PeriodDistribution],
    lp_capital: Decimal,
    gp_capital: Decimal,
    cfg: WaterfallCFG,
) -> DistributionSummary:
    """Aggregate period results into deal-level metrics.

    total_promote is what the GP received beyond its pro-rata equity share:
        max(0, gp_total - gp_capital / total_equity * (lp_total + gp_total))
    """
    lp_flows = [p.lp_share for p in periods]
    gp_flows = [p.gp_share for p in periods]
    lp_total = sum(lp_flows, ZERO)
    gp_total = sum(gp_flows, ZERO)

    total_equity = lp_capital + gp_capital
    total_promote = ZERO
    if total_equity > 0:
        total_promote = max(ZERO, gp_total - gp_capital / total_equity * (lp_total + gp_total))

    last = periods[-1] if periods else None
    return DistributionSummary(
        lp_irr=series_irr(lp_capital, lp_flows, cfg),
        gp_irr=series_irr(gp_capital, gp_flows, cfg),
        lp_equity_multiple=equity_multiple(lp_total, lp_capital),
        gp_equity_multiple=equity_multiple(gp_total, gp_capital),
        lp_total_return=lp_total,
        gp_total_return=gp_total,
        total_promote=total_promote,
        lp_capital_returned=last.lp_capital_returned if last else ZERO,
        gp_capital_returned=last.gp_capital_returned if last else ZERO,
        lp_pref_paid=last.lp_pref_paid if last else ZERO,
        gp_catch_up_paid=last.gp_catch_up_paid if last else ZERO,
        total_distributed=lp_total + gp_total,
    )


def calculate_lookback(
    summary: DistributionSummary,
    lp_capital: Decimal,
    preferred_return_rate: Decimal,
    period_count: int,
) -> Optional[LookbackAdjustment]:
    """Claw back GP promote when the LP never reached its preferred return.

    Applies only when the realized LP IRR is known and below the preferred
    rate. shortfall = lp_capital * rate * periods - pref paid; the clawback is
    capped at the GP's total promote.

    Returns:
        LookbackAdjustment, or None when no shortfall exists
    """
    if summary.lp_irr is None or summary.lp_irr >= float(preferred_return_rate):
        return None

    shortfall = lp_capital * preferred_return_rate * Decimal(period_count) - summary.lp_pref_paid
    if shortfall <= 0:
        return None

    clawback = min(shortfall, summary.total_promote)
    logger.warning(
        "Lookback applied: LP IRR %.4f below pref %s, shortfall %s, clawback %s",
        summary.lp_irr, preferred_return_rate, shortfall, clawback,
    )
    return LookbackAdjustment(
        lp_shortfall=shortfall,
        clawback_from_gp=clawback,
        adjusted_lp_return=summary.lp_total_return + clawback,
        adjusted_gp_return=summary.gp_total_return - clawback,
    )
