"""Standard (single LP pool) waterfall engine.

Each period's cash runs through ordered phases against running deal state:

1. Accrual: pref_accrued += unreturned LP capital x preferred rate (simple)
2. Return of capital: pro-rata between LP and GP unreturned capital
3. Preferred payment: pay pref_accrued - pref_paid
4. GP catch-up (optional): once pref is fully paid, pay the GP toward
   pref_paid x g / (1 - g), with g the first tier's GP split
5. Promote: split what remains per the tier selected by a provisional
   period-end LP IRR (or equity multiple)

State is an immutable DealState; each phase returns a new value and the
periods are folded left to right. Negative period cash flows distribute
nothing (accrual still runs).
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

from ..errors import InputValidationError
from ..schemas import (
    AppliedTerms,
    DistributionResult,
    PeriodDistribution,
    PromoteTier,
    WaterfallCFG,
    WaterfallStructure,
)
from .metrics import calculate_lookback, lp_hurdle_metric, summarize_distribution
from .tiers import catch_up_gp_split, resolve_promote_tiers, select_tier

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")

LP_CAPITAL_NOT_POSITIVE = "LP capital must be greater than zero"
EMPTY_CASH_FLOWS = "Cash flows must be a non-empty sequence"


# =============================================================================
# Engine State
# =============================================================================

@dataclass(frozen=True)
class DealState:
    """Deal-wide running totals carried from period to period."""

    lp_capital_returned: Decimal = ZERO
    gp_capital_returned: Decimal = ZERO
    pref_accrued: Decimal = ZERO
    pref_paid: Decimal = ZERO
    catch_up_paid: Decimal = ZERO
    catch_up_complete: bool = False
    lp_flows: Tuple[Decimal, ...] = ()
    gp_flows: Tuple[Decimal, ...] = ()


@dataclass(frozen=True)
class PromoteDecision:
    """Tier chosen for one period's promote-phase cash."""

    tier: PromoteTier
    metric: Optional[Union[float, Decimal]]
    lp_promote: Decimal
    gp_promote: Decimal


# =============================================================================
# Validation
# =============================================================================

def validate_inputs(cash_flows: Sequence, lp_capital: Decimal) -> List[Decimal]:
    """Check engine preconditions and normalise the series to Decimal.

    Raises:
        InputValidationError: Naming the failed precondition
    """
    if lp_capital <= 0:
        logger.error("Waterfall rejected: %s (lp_capital=%s)", LP_CAPITAL_NOT_POSITIVE, lp_capital)
        raise InputValidationError(LP_CAPITAL_NOT_POSITIVE)
    if cash_flows is None or isinstance(cash_flows, (str, bytes)) or len(cash_flows) == 0:
        logger.error("Waterfall rejected: %s", EMPTY_CASH_FLOWS)
        raise InputValidationError(EMPTY_CASH_FLOWS)
    return [cf if isinstance(cf, Decimal) else Decimal(str(cf)) for cf in cash_flows]


# =============================================================================
# Shared Phases (catch-up, promote)
# =============================================================================

def catch_up_payment(
    remaining: Decimal,
    pref_paid: Decimal,
    catch_up_paid: Decimal,
    tiers: Sequence[PromoteTier],
    catch_up_rate: Decimal,
) -> Tuple[Decimal, bool]:
    """GP catch-up for one period.

    Target is the catch-up at which the GP holds the first tier's GP split of
    (pref paid + catch-up). A GP split of 1 or more sends all remaining cash
    to the GP.

    Returns:
        (payment, catch-up complete after this payment)
    """
    g = catch_up_gp_split(tiers)
    if g >= ONE:
        return remaining, False
    if g <= ZERO:
        return ZERO, True

    target = pref_paid * g / (ONE - g)
    shortfall = target - catch_up_paid
    if shortfall <= 0:
        return ZERO, True

    payment = min(remaining, shortfall * catch_up_rate)
    return payment, catch_up_paid + payment >= target


def decide_promote(
    remaining: Decimal,
    lp_so_far: Decimal,
    provisional_lp_fraction: Decimal,
    prior_lp_flows: Sequence[Decimal],
    lp_capital: Decimal,
    tiers: Sequence[PromoteTier],
    structure: WaterfallStructure,
    cfg: WaterfallCFG,
) -> PromoteDecision:
    """Select the promote tier and split the remaining cash.

    single_pass estimates the period-end LP metric once, assuming the LP gets
    provisional_lp_fraction of the remainder. fixed_point then re-estimates
    with the selected tier's LP split until the tier stops changing.
    """

    def metric_for(lp_fraction: Decimal):
        provisional = lp_so_far + remaining * lp_fraction
        return lp_hurdle_metric([*prior_lp_flows, provisional], lp_capital, structure.hurdle_type, cfg)

    metric = metric_for(provisional_lp_fraction)
    tier = select_tier(tiers, metric)

    if cfg.tier_selection == "fixed_point":
        for iteration in range(cfg.fixed_point_max_iterations):
            refined_metric = metric_for(tier.lp_split)
            refined_tier = select_tier(tiers, refined_metric)
            metric = refined_metric
            if refined_tier == tier:
                break
            tier = refined_tier
        else:
            logger.debug("Fixed-point tier selection hit the iteration cap; using last tier chosen")

    lp_promote = remaining * tier.lp_split
    return PromoteDecision(
        tier=tier,
        metric=metric,
        lp_promote=lp_promote,
        gp_promote=remaining - lp_promote,
    )


def split_metric(metric: Optional[Union[float, Decimal]], structure: WaterfallStructure):
    """(provisional_irr, provisional_multiple) for a period record."""
    if metric is None:
        return None, None
    if structure.hurdle_type == "equity_multiple":
        return None, Decimal(metric)
    return float(metric), None


# =============================================================================
# Standard Engine
# =============================================================================

def _run_period(
    state: DealState,
    period: int,
    cash_flow: Decimal,
    structure: WaterfallStructure,
    tiers: Sequence[PromoteTier],
    cfg: WaterfallCFG,
) -> Tuple[DealState, PeriodDistribution]:
    remaining = max(cash_flow, ZERO)

    # 1. Accrual
    unreturned_lp = structure.lp_capital - state.lp_capital_returned
    state = replace(state, pref_accrued=state.pref_accrued + unreturned_lp * structure.preferred_return_rate)

    # 2. Return of capital
    lp_need = structure.lp_capital - state.lp_capital_returned
    gp_need = structure.gp_capital - state.gp_capital_returned
    total_need = lp_need + gp_need
    lp_roc = gp_roc = ZERO
    if remaining > 0 and total_need > 0:
        if remaining >= total_need:
            lp_roc, gp_roc = lp_need, gp_need
        else:
            lp_roc = remaining * lp_need / total_need
            gp_roc = remaining - lp_roc
        remaining -= lp_roc + gp_roc
        state = replace(
            state,
            lp_capital_returned=state.lp_capital_returned + lp_roc,
            gp_capital_returned=state.gp_capital_returned + gp_roc,
        )

    # 3. Preferred payment
    pref_payment = min(remaining, max(ZERO, state.pref_accrued - state.pref_paid))
    remaining -= pref_payment
    state = replace(state, pref_paid=state.pref_paid + pref_payment)

    # 4. GP catch-up
    catch_up = ZERO
    in_catch_up = False
    if (
        structure.gp_catch_up_enabled
        and not state.catch_up_complete
        and remaining > 0
        and state.pref_paid >= state.pref_accrued
    ):
        catch_up, complete = catch_up_payment(
            remaining, state.pref_paid, state.catch_up_paid, tiers, structure.catch_up_rate
        )
        remaining -= catch_up
        in_catch_up = catch_up > 0 and not complete
        state = replace(state, catch_up_paid=state.catch_up_paid + catch_up, catch_up_complete=complete)

    # 5. Promote
    lp_so_far = lp_roc + pref_payment
    decision: Optional[PromoteDecision] = None
    if remaining > 0:
        decision = decide_promote(
            remaining,
            lp_so_far,
            structure.lp_ownership,
            state.lp_flows,
            structure.lp_capital,
            tiers,
            structure,
            cfg,
        )

    lp_promote = decision.lp_promote if decision else ZERO
    gp_promote = decision.gp_promote if decision else ZERO
    lp_share = lp_so_far + lp_promote
    gp_share = gp_roc + catch_up + gp_promote

    state = replace(state, lp_flows=state.lp_flows + (lp_share,), gp_flows=state.gp_flows + (gp_share,))
    provisional_irr, provisional_multiple = split_metric(decision.metric if decision else None, structure)

    logger.debug(
        "Period %d: cash=%s roc=(%s, %s) pref=%s catch_up=%s promote=(%s, %s)",
        period, cash_flow, lp_roc, gp_roc, pref_payment, catch_up, lp_promote, gp_promote,
    )

    record = PeriodDistribution(
        period=period,
        cash_flow=cash_flow,
        lp_share=lp_share,
        gp_share=gp_share,
        lp_capital_return=lp_roc,
        gp_capital_return=gp_roc,
        lp_pref_payment=pref_payment,
        gp_catch_up=catch_up,
        lp_promote=lp_promote,
        gp_promote=gp_promote,
        provisional_irr=provisional_irr,
        provisional_multiple=provisional_multiple,
        applied_tier=decision.tier if decision else None,
        lp_capital_returned=state.lp_capital_returned,
        gp_capital_returned=state.gp_capital_returned,
        lp_pref_accrued=state.pref_accrued,
        lp_pref_paid=state.pref_paid,
        gp_catch_up_paid=state.catch_up_paid,
        in_catch_up=in_catch_up,
        cumulative_lp=sum(state.lp_flows, ZERO),
        cumulative_gp=sum(state.gp_flows, ZERO),
    )
    return state, record


def calculate_standard_waterfall(
    cash_flows: Sequence,
    structure: WaterfallStructure,
    cfg: Optional[WaterfallCFG] = None,
) -> DistributionResult:
    """Run the standard LP/GP waterfall over a cash-flow series.

    Args:
        cash_flows: Distributable cash per period (index 0 = first period)
        structure: Deal waterfall terms
        cfg: Engine configuration (defaults to WaterfallCFG())

    Returns:
        DistributionResult with mode="standard"

    Raises:
        InputValidationError: Non-positive LP capital, empty series, or
            malformed tiers under the strict tier policy

    Example:
        >>> structure = WaterfallStructure(
        ...     lp_capital=Decimal("10000000"),
        ...     preferred_return_rate=Decimal("0.08"),
        ...     promote_tiers=[PromoteTier(hurdle=None, lp_split=1, gp_split=0)],
        ... )
        >>> result = calculate_standard_waterfall([500000, 12000000], structure)
        >>> result.summary.lp_total_return
        Decimal('12500000.00')
    """
    cfg = cfg or WaterfallCFG()
    flows = validate_inputs(cash_flows, structure.lp_capital)
    tiers, fallback_applied = resolve_promote_tiers(structure.promote_tiers, cfg.tier_policy)

    logger.info(
        "Standard waterfall: %d periods, lp_capital=%s gp_capital=%s pref=%s tiers=%d",
        len(flows), structure.lp_capital, structure.gp_capital,
        structure.preferred_return_rate, len(tiers),
    )

    state = DealState()
    periods: List[PeriodDistribution] = []
    for index, cash_flow in enumerate(flows, start=1):
        state, record = _run_period(state, index, cash_flow, structure, tiers, cfg)
        periods.append(record)

    summary = summarize_distribution(periods, structure.lp_capital, structure.gp_capital, cfg)
    lookback = None
    if structure.lookback_enabled:
        lookback = calculate_lookback(summary, structure.lp_capital, structure.preferred_return_rate, len(flows))

    logger.info(
        "Standard waterfall complete: lp_total=%s gp_total=%s lp_irr=%s",
        summary.lp_total_return, summary.gp_total_return, summary.lp_irr,
    )

    return DistributionResult(
        mode="standard",
        periods=periods,
        summary=summary,
        terms=AppliedTerms(
            structure=structure,
            effective_lp_capital=structure.lp_capital,
            promote_tiers=tiers,
            tier_fallback_applied=fallback_applied,
        ),
        lookback_adjustment=lookback,
    )
