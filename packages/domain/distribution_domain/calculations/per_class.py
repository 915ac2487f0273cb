"""Per-class priority waterfall engine.

Same phases as the standard engine, but accrual, return of capital and
preferred payment walk the share classes in ascending priority: a senior
class is fully served in a phase before a junior class sees any cash in that
phase. GP capital is returned after every class. Catch-up and promote stay
deal-wide:

- catch-up starts only once every class's pref is fully paid
- the promote tier is chosen from a provisional LP metric that assumes half
  of the remaining cash goes to LPs
- LP promote is split across classes by each class's share of total LP
  ownership, then within each class by position ownership

Each period's class totals are allocated to positions with
allocate_within_class, so per-position amounts sum exactly to class totals.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import InputValidationError
from ..schemas import (
    AppliedTerms,
    ClassPeriodAllocation,
    ClassSummary,
    ClassTerms,
    DistributionResult,
    PeriodDistribution,
    PromoteTier,
    WaterfallCFG,
    WaterfallStructure,
)
from .allocation import (
    ClassGroup,
    allocate_within_class,
    effective_preferred_return,
    sorted_class_priorities,
)
from .irr import equity_multiple
from .metrics import calculate_lookback, summarize_distribution
from .standard import (
    PromoteDecision,
    catch_up_payment,
    decide_promote,
    split_metric,
    validate_inputs,
)
from .tiers import resolve_promote_tiers

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HALF = Decimal("0.5")

EMPTY_CLASS_GROUPS = "Class groups must not be empty"


# =============================================================================
# Engine State
# =============================================================================

@dataclass(frozen=True)
class ClassState:
    """Running totals for one share class."""

    priority: int
    code: str
    capital: Decimal
    pref_rate: Decimal
    ownership: Decimal
    capital_returned: Decimal = ZERO
    pref_accrued: Decimal = ZERO
    pref_paid: Decimal = ZERO
    total_distributed: Decimal = ZERO

    @property
    def unreturned_capital(self) -> Decimal:
        return max(ZERO, self.capital - self.capital_returned)

    @property
    def pref_due(self) -> Decimal:
        return max(ZERO, self.pref_accrued - self.pref_paid)


@dataclass(frozen=True)
class PerClassState:
    """Deal-wide running totals plus one ClassState per class (priority order)."""

    classes: Tuple[ClassState, ...]
    gp_capital_returned: Decimal = ZERO
    catch_up_paid: Decimal = ZERO
    catch_up_complete: bool = False
    lp_flows: Tuple[Decimal, ...] = ()
    gp_flows: Tuple[Decimal, ...] = ()

    @property
    def lp_capital_returned(self) -> Decimal:
        return sum((c.capital_returned for c in self.classes), ZERO)

    @property
    def pref_accrued(self) -> Decimal:
        return sum((c.pref_accrued for c in self.classes), ZERO)

    @property
    def pref_paid(self) -> Decimal:
        return sum((c.pref_paid for c in self.classes), ZERO)


# =============================================================================
# Helpers
# =============================================================================

def _split_promote_across_classes(
    lp_promote: Decimal,
    classes: Sequence[ClassState],
) -> List[Decimal]:
    """Split LP promote by class ownership; evenly when ownership is zero.

    The residual left by Decimal division goes to the largest share (most
    senior class on ties) so the parts sum to lp_promote.
    """
    if lp_promote <= 0:
        return [ZERO for _ in classes]

    total_ownership = sum((c.ownership for c in classes), ZERO)
    if total_ownership > 0:
        parts = [lp_promote * c.ownership / total_ownership for c in classes]
    else:
        parts = [lp_promote / Decimal(len(classes)) for _ in classes]

    residual = lp_promote - sum(parts, ZERO)
    if residual != 0:
        largest = max(range(len(parts)), key=lambda i: (parts[i], -i))
        parts[largest] += residual
    return parts


def _initial_state(
    class_groups: Dict[int, ClassGroup],
    deal_rate: Decimal,
) -> PerClassState:
    classes = []
    for priority in sorted_class_priorities(class_groups):
        group = class_groups[priority]
        classes.append(ClassState(
            priority=priority,
            code=group.code,
            capital=group.total_capital,
            pref_rate=effective_preferred_return(group.share_class, deal_rate),
            ownership=group.total_ownership,
        ))
    return PerClassState(classes=tuple(classes))


# =============================================================================
# Period Fold
# =============================================================================

def _run_period(
    state: PerClassState,
    period: int,
    cash_flow: Decimal,
    structure: WaterfallStructure,
    class_groups: Dict[int, ClassGroup],
    effective_lp_capital: Decimal,
    tiers: Sequence[PromoteTier],
    cfg: WaterfallCFG,
) -> Tuple[PerClassState, PeriodDistribution]:
    remaining = max(cash_flow, ZERO)
    count = len(state.classes)
    roc = [ZERO] * count
    pref = [ZERO] * count

    # 1. Accrual per class at its effective rate
    classes = [
        replace(c, pref_accrued=c.pref_accrued + c.unreturned_capital * c.pref_rate)
        for c in state.classes
    ]

    # 2. Return of capital, senior first, then GP
    for i, c in enumerate(classes):
        if remaining <= 0:
            break
        roc[i] = min(remaining, c.unreturned_capital)
        remaining -= roc[i]
        classes[i] = replace(c, capital_returned=c.capital_returned + roc[i])

    gp_roc = min(remaining, max(ZERO, structure.gp_capital - state.gp_capital_returned))
    remaining -= gp_roc
    state = replace(state, classes=tuple(classes), gp_capital_returned=state.gp_capital_returned + gp_roc)

    # 3. Preferred payment, senior first
    for i, c in enumerate(classes):
        if remaining <= 0:
            break
        pref[i] = min(remaining, c.pref_due)
        remaining -= pref[i]
        classes[i] = replace(c, pref_paid=c.pref_paid + pref[i])
    state = replace(state, classes=tuple(classes))

    # 4. Deal-wide GP catch-up once every class is current on pref
    catch_up = ZERO
    in_catch_up = False
    if (
        structure.gp_catch_up_enabled
        and not state.catch_up_complete
        and remaining > 0
        and all(c.pref_paid >= c.pref_accrued for c in classes)
    ):
        catch_up, complete = catch_up_payment(
            remaining, state.pref_paid, state.catch_up_paid, tiers, structure.catch_up_rate
        )
        remaining -= catch_up
        in_catch_up = catch_up > 0 and not complete
        state = replace(state, catch_up_paid=state.catch_up_paid + catch_up, catch_up_complete=complete)

    # 5. Deal-wide promote
    lp_so_far = sum(roc, ZERO) + sum(pref, ZERO)
    decision: Optional[PromoteDecision] = None
    if remaining > 0:
        decision = decide_promote(
            remaining, lp_so_far, HALF, state.lp_flows, effective_lp_capital, tiers, structure, cfg
        )
    lp_promote = decision.lp_promote if decision else ZERO
    gp_promote = decision.gp_promote if decision else ZERO
    promote = _split_promote_across_classes(lp_promote, classes)

    # Class and position allocations
    by_class: Dict[str, ClassPeriodAllocation] = {}
    by_position: Dict[str, Decimal] = {}
    for i, c in enumerate(classes):
        class_total = roc[i] + pref[i] + promote[i]
        classes[i] = replace(c, total_distributed=c.total_distributed + class_total)
        by_class[c.code] = ClassPeriodAllocation(
            priority=c.priority,
            capital_return=roc[i],
            pref_return=pref[i],
            promote=promote[i],
            total=class_total,
        )
        group = class_groups[c.priority]
        by_position.update(
            allocate_within_class(group.positions, class_total, group.total_ownership, cfg.currency_quantum)
        )

    lp_share = lp_so_far + lp_promote
    gp_share = gp_roc + catch_up + gp_promote
    state = replace(
        state,
        classes=tuple(classes),
        lp_flows=state.lp_flows + (lp_share,),
        gp_flows=state.gp_flows + (gp_share,),
    )
    provisional_irr, provisional_multiple = split_metric(decision.metric if decision else None, structure)

    logger.debug(
        "Period %d: cash=%s class_roc=%s gp_roc=%s class_pref=%s catch_up=%s promote=(%s, %s)",
        period, cash_flow, roc, gp_roc, pref, catch_up, lp_promote, gp_promote,
    )

    record = PeriodDistribution(
        period=period,
        cash_flow=cash_flow,
        lp_share=lp_share,
        gp_share=gp_share,
        lp_capital_return=sum(roc, ZERO),
        gp_capital_return=gp_roc,
        lp_pref_payment=sum(pref, ZERO),
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
        by_class=by_class,
        by_position=by_position,
    )
    return state, record


# =============================================================================
# Per-Class Engine
# =============================================================================

def calculate_per_class_waterfall(
    cash_flows: Sequence,
    structure: WaterfallStructure,
    class_groups: Dict[int, ClassGroup],
    cfg: Optional[WaterfallCFG] = None,
) -> DistributionResult:
    """Run the waterfall with share-class priority.

    Args:
        cash_flows: Distributable cash per period (index 0 = first period)
        structure: Deal waterfall terms (deal rate, GP capital, tiers, catch-up)
        class_groups: Output of group_positions_by_class_priority
        cfg: Engine configuration (defaults to WaterfallCFG())

    Returns:
        DistributionResult with mode="per_class", by_class and by_position

    Raises:
        InputValidationError: Non-positive LP capital, empty series, no class
            groups, or malformed tiers under the strict tier policy
    """
    cfg = cfg or WaterfallCFG()
    flows = validate_inputs(cash_flows, structure.lp_capital)
    if not class_groups:
        logger.error("Per-class waterfall rejected: %s", EMPTY_CLASS_GROUPS)
        raise InputValidationError(EMPTY_CLASS_GROUPS)
    tiers, fallback_applied = resolve_promote_tiers(structure.promote_tiers, cfg.tier_policy)

    state = _initial_state(class_groups, structure.preferred_return_rate)
    class_capital = sum((c.capital for c in state.classes), ZERO)
    effective_lp_capital = max(class_capital, structure.lp_capital)

    logger.info(
        "Per-class waterfall: %d periods, %d classes, effective_lp_capital=%s gp_capital=%s",
        len(flows), len(state.classes), effective_lp_capital, structure.gp_capital,
    )

    periods: List[PeriodDistribution] = []
    for index, cash_flow in enumerate(flows, start=1):
        state, record = _run_period(
            state, index, cash_flow, structure, class_groups, effective_lp_capital, tiers, cfg
        )
        periods.append(record)

    summary = summarize_distribution(periods, effective_lp_capital, structure.gp_capital, cfg)
    lookback = None
    if structure.lookback_enabled:
        lookback = calculate_lookback(summary, effective_lp_capital, structure.preferred_return_rate, len(flows))

    by_class: Dict[str, ClassSummary] = {}
    per_class_terms: Dict[str, ClassTerms] = {}
    for c in state.classes:
        share_class = class_groups[c.priority].share_class
        by_class[c.code] = ClassSummary(
            code=c.code,
            name=share_class.name,
            priority=c.priority,
            capital=c.capital,
            effective_pref=c.pref_rate,
            capital_returned=c.capital_returned,
            pref_paid=c.pref_paid,
            total_distributed=c.total_distributed,
            equity_multiple=equity_multiple(c.total_distributed, c.capital),
        )
        per_class_terms[c.code] = ClassTerms(preferred_return=c.pref_rate, priority=c.priority)

    by_position: Dict[str, Decimal] = {}
    for record in periods:
        for position_id, amount in (record.by_position or {}).items():
            by_position[position_id] = by_position.get(position_id, ZERO) + amount

    logger.info(
        "Per-class waterfall complete: lp_total=%s gp_total=%s classes=%s",
        summary.lp_total_return, summary.gp_total_return, list(by_class),
    )

    return DistributionResult(
        mode="per_class",
        periods=periods,
        summary=summary,
        terms=AppliedTerms(
            structure=structure,
            effective_lp_capital=effective_lp_capital,
            promote_tiers=tiers,
            tier_fallback_applied=fallback_applied,
            per_class_terms=per_class_terms,
        ),
        by_class=by_class,
        by_position=by_position,
        lookback_adjustment=lookback,
    )
