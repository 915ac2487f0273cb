"""Promote tier resolution and selection.

Resolution validates and orders a structure's tiers once per calculation.
Selection picks the tier for one period from an LP return metric (IRR or
equity multiple):

    first tier (ascending hurdle) whose hurdle >= metric
    -> last tier when every hurdle is exceeded
    -> first tier when the metric is unknown
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

from ..errors import InputValidationError
from ..schemas import PromoteTier, DEFAULT_TERMINAL_TIER
from ..schemas.config import TierPolicy

logger = logging.getLogger(__name__)

EMPTY_TIERS = "Promote tiers must not be empty"
SPLITS_NOT_ONE = "Promote tier splits must sum to 1"


def _hurdle_key(tier: PromoteTier) -> Tuple[int, Decimal]:
    # Unbounded tiers sort last
    if tier.hurdle is None:
        return (1, Decimal("0"))
    return (0, tier.hurdle)


def resolve_promote_tiers(
    tiers: Sequence[PromoteTier],
    policy: TierPolicy = "fallback",
) -> Tuple[List[PromoteTier], bool]:
    """Sort tiers by hurdle and apply the malformed-tier policy.

    Args:
        tiers: Tiers as given on the structure
        policy: "fallback" (default terminal tier + warning) or "strict" (raise)

    Returns:
        (resolved tiers, whether the default terminal tier was substituted)

    Raises:
        InputValidationError: Under the strict policy, for an empty list or a
            tier whose splits don't sum to 1
    """
    problem: Optional[str] = None
    if not tiers:
        problem = EMPTY_TIERS
    elif not all(tier.splits_sum_to_one for tier in tiers):
        problem = SPLITS_NOT_ONE

    if problem is None:
        return sorted(tiers, key=_hurdle_key), False

    if policy == "strict":
        logger.error("Rejecting promote tiers: %s", problem)
        raise InputValidationError(problem)

    logger.warning("%s; using default terminal tier (80/20)", problem)
    return [DEFAULT_TERMINAL_TIER.model_copy()], True


def select_tier(
    tiers: Sequence[PromoteTier],
    metric: Optional[Union[float, Decimal]],
) -> PromoteTier:
    """Pick the applicable tier for an LP return metric.

    tiers must already be resolved (non-empty, ascending by hurdle).
    """
    if metric is None:
        return tiers[0]

    value = Decimal(str(metric))
    for tier in tiers:
        if tier.hurdle is None or tier.hurdle >= value:
            return tier
    return tiers[-1]


def catch_up_gp_split(tiers: Sequence[PromoteTier]) -> Decimal:
    """GP split the catch-up targets: the first resolved tier's GP split."""
    return tiers[0].gp_split
